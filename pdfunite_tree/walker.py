"""Walk an input directory, validate its documents and build the merge unit."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
import logging
import os
from pathlib import Path
import stat
from typing import Iterator, Sequence, Union

from .backends import PDFCodec, PypdfCodec
from .exceptions import (
    DanglingReference,
    EmptyMergeUnit,
    EmptySubtree,
    MaxDepthExceeded,
    MissingPageTree,
    PdfTreeError,
    SymlinkEscapesTree,
    UnparseablePdf,
    UnsupportedFeature,
    UnsupportedFileType,
)
from .policy import FeatureAction, FeaturePolicy, Ordering
from .report import Diagnostic, DiagnosticKind, Report, Severity
from .types import DirectoryGroup, ExternalValidator, LeafDocument, WalkResult, XoppConverter
from .utils import PathLike, ensure_path, is_within

LOGGER = logging.getLogger("pdfunite_tree.walker")

PDF_SIGNATURE = b"%PDF-"
SIGNATURE_WINDOW = 1024
DEFAULT_MAX_DEPTH = 4


class EntryKind(str, Enum):
    DIRECTORY = "directory"
    REGULAR_FILE = "file"
    SYMLINK = "symlink"
    OTHER = "other"


def classify(path: Path) -> EntryKind:
    """Classify ``path`` without following it."""

    mode = path.lstat().st_mode
    if stat.S_ISLNK(mode):
        return EntryKind.SYMLINK
    if stat.S_ISDIR(mode):
        return EntryKind.DIRECTORY
    if stat.S_ISREG(mode):
        return EntryKind.REGULAR_FILE
    return EntryKind.OTHER


def looks_like_pdf(path: Path) -> bool:
    with path.open("rb") as handle:
        return PDF_SIGNATURE in handle.read(SIGNATURE_WINDOW)


@dataclass(slots=True)
class WalkOptions:
    """
    Settings for a tree walk.

    Attributes:
        max_depth: Deepest directory level taken into the merge (root is 0)
        policy: Verdicts for catalog entries of the input documents
        ordering: Sort order of the entries of each directory
        directories_first: Place subdirectories before documents
        xopp_converter: Turns a ``.xopp`` notebook into PDF bytes
        validators: Checks run on the raw bytes before parsing
        workers: Number of threads used to validate documents
    """
    max_depth: int = DEFAULT_MAX_DEPTH
    policy: FeaturePolicy = field(default_factory=FeaturePolicy)
    ordering: Ordering = Ordering.CASE_INSENSITIVE
    directories_first: bool = True
    xopp_converter: XoppConverter | None = None
    validators: Sequence[ExternalValidator] = ()
    workers: int = 1


# -- Scan results ------------------------------------------------------------


@dataclass(slots=True)
class _Candidate:
    name: str
    path: Path
    convert: bool = False


@dataclass(slots=True)
class _Directory:
    name: str
    path: Path
    children: list[Union["_Directory", _Candidate]] = field(default_factory=list)

    def iter_candidates(self) -> Iterator[_Candidate]:
        for child in self.children:
            if isinstance(child, _Directory):
                yield from child.iter_candidates()
            else:
                yield child


class TreeWalker:
    """Turns a directory tree into a :class:`DirectoryGroup` and a :class:`Report`.

    A problem with one entry is recorded as a diagnostic and the walk
    continues with its siblings.
    """

    def __init__(self, options: WalkOptions | None = None, *, codec: PDFCodec | None = None) -> None:
        self.options = options or WalkOptions()
        self.codec = codec or PypdfCodec()
        if self.options.max_depth < 0:
            raise ValueError("max_depth must not be negative")

    def walk(self, root: PathLike) -> WalkResult:
        root_path = ensure_path(root)
        if not root_path.exists():
            raise FileNotFoundError(f"Directory not found: {root}")
        if not root_path.is_dir():
            raise NotADirectoryError(f"Not a directory: {root}")

        LOGGER.info("Walking %s (max depth %d)", root_path, self.options.max_depth)
        report = Report(
            root_path,
            ordering=self.options.ordering,
            directories_first=self.options.directories_first,
        )
        skeleton = _Directory(name=root_path.name, path=root_path)
        self._scan(skeleton, 0, report, root_path.resolve(), via_link=False)

        candidates = list(skeleton.iter_candidates())
        leaves: dict[Path, LeafDocument] = {}
        for candidate, (leaf, diagnostics) in zip(candidates, self._validate_all(candidates)):
            report.extend(diagnostics)
            if leaf is not None:
                leaves[candidate.path] = leaf

        unit = self._assemble(skeleton, leaves, report)
        if not unit.children:
            report.error(root_path, DiagnosticKind.EMPTY_MERGE_UNIT, EmptyMergeUnit().message)
        LOGGER.info(
            "Walk of %s finished: %d document(s), %s",
            root_path,
            len(leaves),
            report.summary(),
        )
        return WalkResult(unit=unit, report=report)

    # -- Phase 1: scanning ---------------------------------------------------

    def _scan(self, directory: _Directory, depth: int, report: Report, real_root: Path, *, via_link: bool) -> None:
        try:
            entries = [(path, classify(path)) for path in directory.path.iterdir()]
        except OSError as exc:
            report.error(directory.path, DiagnosticKind.UNSUPPORTED_FILE_TYPE, f"Cannot read directory: {exc}")
            return

        resolved: list[tuple[Path, EntryKind, bool]] = []
        for path, kind in entries:
            linked = kind is EntryKind.SYMLINK
            if linked:
                try:
                    kind = self._follow_link(path, depth + 1, real_root, via_link)
                except SymlinkEscapesTree as exc:
                    report.error(path, DiagnosticKind.SYMLINK_ESCAPES_TREE, exc.message)
                    continue
            resolved.append((path, kind, linked))

        ordering = self.options.ordering
        resolved.sort(
            key=lambda item: (
                self.options.directories_first and item[1] is not EntryKind.DIRECTORY,
                ordering.key(item[0].name),
            )
        )

        for path, kind, linked in resolved:
            report.visit(path, is_dir=kind is EntryKind.DIRECTORY)
            if kind is EntryKind.DIRECTORY:
                try:
                    self._check_depth(path, depth + 1)
                except MaxDepthExceeded as exc:
                    report.error(path, DiagnosticKind.MAX_DEPTH_EXCEEDED, exc.message)
                    continue
                child = _Directory(name=path.name, path=path)
                directory.children.append(child)
                self._scan(child, depth + 1, report, real_root, via_link=via_link or linked)
                continue
            try:
                candidate = self._classify_file(path, kind)
            except UnsupportedFileType as exc:
                report.warning(path, DiagnosticKind.UNSUPPORTED_FILE_TYPE, exc.message)
            except OSError as exc:
                report.error(path, DiagnosticKind.UNPARSEABLE_PDF, f"Unable to read file: {exc}")
            else:
                directory.children.append(candidate)

    def _check_depth(self, path: Path, depth: int) -> None:
        if depth > self.options.max_depth:
            raise MaxDepthExceeded(
                f"Directory depth {depth} exceeds the maximum depth of {self.options.max_depth}; "
                f"{path.name} is not merged"
            )

    def _follow_link(self, link: Path, depth: int, real_root: Path, via_link: bool) -> EntryKind:
        """Read ``link`` once and return the kind of its target."""

        if via_link:
            raise SymlinkEscapesTree(f"Symbolic link inside a followed link is not followed: {link}")
        target = Path(os.readlink(link))
        if not target.is_absolute():
            target = link.parent / target
        target = Path(os.path.normpath(target))
        try:
            kind = classify(target)
        except OSError as exc:
            raise SymlinkEscapesTree(f"Symbolic link target is missing: {link} -> {target}") from exc
        if kind is EntryKind.SYMLINK:
            raise SymlinkEscapesTree(f"Symbolic link points to another link: {link} -> {target}")

        real_target = target.resolve()
        if not is_within(real_target, real_root):
            raise SymlinkEscapesTree(f"Symbolic link points outside the input tree: {link} -> {target}")
        if kind is EntryKind.DIRECTORY:
            if is_within(link.parent.resolve(), real_target):
                raise SymlinkEscapesTree(f"Symbolic link points to an enclosing directory: {link} -> {target}")
            target_depth = len(real_target.relative_to(real_root).parts)
            if max(depth, target_depth) > self.options.max_depth:
                raise SymlinkEscapesTree(
                    f"Symbolic link target lies beyond the maximum depth of {self.options.max_depth}: {link}"
                )
        LOGGER.debug("Following symbolic link %s -> %s", link, target)
        return kind

    def _classify_file(self, path: Path, kind: EntryKind) -> _Candidate:
        if kind is not EntryKind.REGULAR_FILE:
            raise UnsupportedFileType("Not a regular file or directory")
        suffix = path.suffix.lower()
        if suffix == ".pdf":
            return _Candidate(name=path.name, path=path)
        if suffix == ".xopp":
            if self.options.xopp_converter is None:
                raise UnsupportedFileType("No xopp converter configured; file skipped")
            return _Candidate(name=path.name, path=path, convert=True)
        if not looks_like_pdf(path):
            raise UnsupportedFileType("Not a PDF document; file skipped")
        return _Candidate(name=path.name, path=path)

    # -- Phase 2: validation -------------------------------------------------

    def _validate_all(self, candidates: list[_Candidate]) -> list[tuple[LeafDocument | None, list[Diagnostic]]]:
        workers = self.options.workers
        if workers > 1 and len(candidates) > 1:
            with ThreadPoolExecutor(max_workers=workers) as executor:
                return list(executor.map(self._validate, candidates))
        return [self._validate(candidate) for candidate in candidates]

    def _validate(self, candidate: _Candidate) -> tuple[LeafDocument | None, list[Diagnostic]]:
        path = candidate.path

        def problem(
            kind: DiagnosticKind,
            message: str,
            severity: Severity = Severity.ERROR,
            key: str | None = None,
        ) -> Diagnostic:
            return Diagnostic(path=path, severity=severity, kind=kind, message=message, feature_key=key)

        try:
            if candidate.convert:
                LOGGER.debug("Converting %s", path)
                data = self.options.xopp_converter(path)
            else:
                data = path.read_bytes()
        except OSError as exc:
            return None, [problem(DiagnosticKind.UNPARSEABLE_PDF, f"Unable to read file: {exc}")]
        except PdfTreeError as exc:
            return None, [problem(DiagnosticKind.UNPARSEABLE_PDF, exc.message)]
        except Exception as exc:
            LOGGER.warning("Converter failed on %s: %s", path, exc)
            return None, [problem(DiagnosticKind.UNPARSEABLE_PDF, f"Unexpected error converting file: {exc}")]

        for validator in self.options.validators:
            try:
                message = validator(path, data)
            except Exception as exc:
                LOGGER.warning("Validator failed on %s: %s", path, exc)
                return None, [problem(DiagnosticKind.UNPARSEABLE_PDF, f"Unexpected error validating file: {exc}")]
            if message:
                return None, [problem(DiagnosticKind.UNPARSEABLE_PDF, message)]

        try:
            store = self.codec.load(data, source=str(path))
            pages = store.page_refs()
        except DanglingReference as exc:
            return None, [problem(DiagnosticKind.DANGLING_REFERENCE, exc.message)]
        except MissingPageTree as exc:
            return None, [problem(DiagnosticKind.MISSING_PAGE_TREE, exc.message)]
        except UnparseablePdf as exc:
            return None, [problem(DiagnosticKind.UNPARSEABLE_PDF, exc.message)]
        if not pages:
            return None, [problem(DiagnosticKind.UNPARSEABLE_PDF, "PDF has no pages")]

        diagnostics: list[Diagnostic] = []
        for key, action in self.options.policy.evaluate(str(k) for k in store.catalog().keys()):
            if action is FeatureAction.WARN:
                message = f"Catalog entry {key} is dropped from the merge"
                diagnostics.append(problem(DiagnosticKind.UNSUPPORTED_FEATURE, message, Severity.WARNING, key))
            elif action is FeatureAction.REJECT:
                diagnostics.append(
                    problem(DiagnosticKind.UNSUPPORTED_FEATURE, UnsupportedFeature(key).message, key=key)
                )
        if any(d.is_error for d in diagnostics):
            return None, diagnostics

        LOGGER.debug("Validated %s (%d page(s))", path, len(pages))
        return LeafDocument(name=candidate.name, path=path, store=store), diagnostics

    # -- Phase 3: assembly ---------------------------------------------------

    def _assemble(self, directory: _Directory, leaves: dict[Path, LeafDocument], report: Report) -> DirectoryGroup:
        group = DirectoryGroup(name=directory.name, path=directory.path)
        for child in directory.children:
            if isinstance(child, _Directory):
                subgroup = self._assemble(child, leaves, report)
                if subgroup.children:
                    group.children.append(subgroup)
                else:
                    report.warning(child.path, DiagnosticKind.EMPTY_SUBTREE, EmptySubtree().message)
            elif child.path in leaves:
                group.children.append(leaves[child.path])
        return group


def walk_tree(root: PathLike, options: WalkOptions | None = None, *, codec: PDFCodec | None = None) -> WalkResult:
    """Walk ``root`` and return its merge unit with the collected diagnostics."""

    return TreeWalker(options, codec=codec).walk(root)


__all__ = ["EntryKind", "WalkOptions", "TreeWalker", "classify", "looks_like_pdf", "walk_tree"]
