from __future__ import annotations

from io import StringIO
from pathlib import Path
from typing import Callable

from rich.console import Console

from pdfunite_tree.policy import Ordering
from pdfunite_tree.report import Diagnostic, DiagnosticKind, Report, Severity
from pdfunite_tree.walker import WalkOptions, walk_tree


def render_text(report: Report) -> str:
    buffer = StringIO()
    Console(file=buffer, width=100, color_system=None).print(report.render())
    return buffer.getvalue()


def test_record_uses_default_severity(tmp_path: Path) -> None:
    report = Report(tmp_path)

    warning = report.record(tmp_path / "notes.txt", DiagnosticKind.UNSUPPORTED_FILE_TYPE, "skipped")
    error = report.record(tmp_path / "bad.pdf", DiagnosticKind.UNPARSEABLE_PDF, "broken")

    assert warning.severity is Severity.WARNING
    assert error.is_error
    assert report.errors == [error]
    assert report.warnings == [warning]
    assert report.exit_code == 1
    assert report.summary() == "1 error(s), 1 warning(s)"


def test_warnings_alone_exit_cleanly(tmp_path: Path) -> None:
    report = Report(tmp_path)
    report.warning(tmp_path / "empty", DiagnosticKind.EMPTY_SUBTREE, "nothing here")

    assert not report.has_errors
    assert report.exit_code == 0


def test_visit_records_ancestors(tmp_path: Path) -> None:
    report = Report(tmp_path)

    report.visit(tmp_path / "a" / "b" / "c.pdf")

    assert report.visited == [tmp_path, tmp_path / "a", tmp_path / "a" / "b", tmp_path / "a" / "b" / "c.pdf"]


def test_render_shows_whole_tree_with_marked_failures(tmp_path: Path) -> None:
    report = Report(tmp_path)
    report.visit(tmp_path / "ok.pdf")
    report.visit(tmp_path / "chapter", is_dir=True)
    report.visit(tmp_path / "chapter" / "fine.pdf")
    report.error(tmp_path / "chapter" / "bad.pdf", DiagnosticKind.UNPARSEABLE_PDF, "cannot parse")
    report.warning(tmp_path / "notes.txt", DiagnosticKind.UNSUPPORTED_FILE_TYPE, "skipped")

    text = render_text(report)

    assert "ok.pdf" in text
    assert "chapter/" in text
    assert "fine.pdf" in text
    assert "✗ bad.pdf" in text
    assert "UnparseablePdf: cannot parse" in text
    assert "⚠ notes.txt" in text
    assert text.index("chapter/") < text.index("ok.pdf")


def test_diagnostic_str_names_path_and_kind(tmp_path: Path) -> None:
    diagnostic = Diagnostic(
        path=tmp_path / "x.pdf",
        severity=Severity.ERROR,
        kind=DiagnosticKind.DANGLING_REFERENCE,
        message="Reference 9 0 R has no object",
    )

    assert str(diagnostic) == f"{tmp_path / 'x.pdf'}: DanglingReference: Reference 9 0 R has no object"


def test_extend_and_lookup_by_path(tmp_path: Path) -> None:
    report = Report(tmp_path)
    path = tmp_path / "x.pdf"
    report.extend(
        [
            Diagnostic(path, Severity.WARNING, DiagnosticKind.UNSUPPORTED_FEATURE, "dropped", "/OpenAction"),
            Diagnostic(path, Severity.ERROR, DiagnosticKind.UNSUPPORTED_FEATURE, "rejected", "/AcroForm"),
        ]
    )

    assert [d.feature_key for d in report.for_path(path)] == ["/OpenAction", "/AcroForm"]
    assert report.kinds() == [DiagnosticKind.UNSUPPORTED_FEATURE] * 2


def test_render_follows_walk_ordering(tmp_path: Path) -> None:
    report = Report(tmp_path, ordering=Ordering.NATURAL)
    for name in ("10.pdf", "2.pdf", "1.pdf"):
        report.visit(tmp_path / name)

    text = render_text(report)

    assert text.index("1.pdf") < text.index("2.pdf") < text.index("10.pdf")


def test_walk_report_uses_walk_ordering(tree_factory: Callable[..., Path]) -> None:
    root = tree_factory({"10.pdf": 1, "2.pdf": 1, "notes.txt": b"hello"})

    result = walk_tree(root, WalkOptions(ordering=Ordering.NATURAL))

    assert [leaf.name for leaf in result.unit.iter_leaves()] == ["2.pdf", "10.pdf"]
    text = render_text(result.report)
    assert text.index("2.pdf") < text.index("10.pdf")
