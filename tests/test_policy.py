from __future__ import annotations

import pytest

from pdfunite_tree.policy import FeatureAction, FeaturePolicy, Ordering


def test_default_rules() -> None:
    policy = FeaturePolicy()

    assert policy.action_for("/Names") is FeatureAction.ACCEPT
    assert policy.action_for("/OpenAction") is FeatureAction.WARN
    assert policy.action_for("/Metadata") is FeatureAction.WARN
    assert policy.action_for("/PieceInfo") is FeatureAction.WARN
    assert policy.action_for("/AcroForm") is FeatureAction.REJECT


@pytest.mark.parametrize("key", ["/Type", "/Pages", "/PageMode", "/Version", "/PageLayout", "/Outlines"])
def test_structural_keys_always_pass(key: str) -> None:
    policy = FeaturePolicy(rules={key: FeatureAction.REJECT}, strict=True)

    assert policy.action_for(key) is FeatureAction.ACCEPT


def test_strict_mode_turns_accepted_keys_into_warnings() -> None:
    policy = FeaturePolicy(strict=True)

    assert policy.action_for("/Names") is FeatureAction.WARN
    assert policy.action_for("/AcroForm") is FeatureAction.REJECT


def test_with_rules_normalizes_keys_and_overrides() -> None:
    policy = FeaturePolicy().with_rules(warn=["AcroForm"], reject=["/Names"])

    assert policy.action_for("/AcroForm") is FeatureAction.WARN
    assert policy.action_for("Names") is FeatureAction.REJECT
    assert FeaturePolicy().action_for("/Names") is FeatureAction.ACCEPT


def test_evaluate_sorts_and_deduplicates() -> None:
    verdicts = FeaturePolicy().evaluate(["/Type", "/OpenAction", "Type", "/Foo"])

    assert verdicts == [
        ("/Foo", FeatureAction.REJECT),
        ("/OpenAction", FeatureAction.WARN),
        ("/Type", FeatureAction.ACCEPT),
    ]


def test_policy_accepts_plain_string_actions() -> None:
    policy = FeaturePolicy(rules={"/Foo": "warn"}, default="accept")

    assert policy.action_for("/Foo") is FeatureAction.WARN
    assert policy.action_for("/Bar") is FeatureAction.ACCEPT


@pytest.mark.parametrize(
    "ordering, expected",
    [
        (Ordering.CASE_INSENSITIVE, ["1.pdf", "10.pdf", "2.pdf", "a.pdf", "B.pdf"]),
        (Ordering.CASE_SENSITIVE, ["1.pdf", "10.pdf", "2.pdf", "B.pdf", "a.pdf"]),
        (Ordering.NATURAL, ["1.pdf", "2.pdf", "10.pdf", "a.pdf", "B.pdf"]),
    ],
)
def test_ordering(ordering: Ordering, expected: list[str]) -> None:
    names = ["B.pdf", "10.pdf", "a.pdf", "2.pdf", "1.pdf"]

    assert sorted(names, key=ordering.key) == expected
