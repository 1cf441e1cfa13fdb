"""Diagnostics collected while walking, validating and merging a tree.

A :class:`Report` remembers every path the walker visited, so the rendered
tree always shows the complete input directory with the failing entries
highlighted and their messages listed underneath.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Iterable

from rich.text import Text
from rich.tree import Tree

from .policy import Ordering


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class DiagnosticKind(str, Enum):
    """Closed taxonomy of problems an input tree can have."""

    DANGLING_REFERENCE = "DanglingReference"
    MISSING_PAGE_TREE = "MissingPageTree"
    UNPARSEABLE_PDF = "UnparseablePdf"
    UNSUPPORTED_FILE_TYPE = "UnsupportedFileType"
    UNSUPPORTED_FEATURE = "UnsupportedFeature"
    SYMLINK_ESCAPES_TREE = "SymlinkEscapesTree"
    MAX_DEPTH_EXCEEDED = "MaxDepthExceeded"
    EMPTY_SUBTREE = "EmptySubtree"
    EMPTY_MERGE_UNIT = "EmptyMergeUnit"
    REBASE_COLLISION = "RebaseCollision"
    NO_OUTLINE_LEAVES = "NoOutlineLeaves"

    @property
    def default_severity(self) -> Severity:
        if self in (DiagnosticKind.UNSUPPORTED_FILE_TYPE, DiagnosticKind.EMPTY_SUBTREE):
            return Severity.WARNING
        return Severity.ERROR


@dataclass(frozen=True, slots=True)
class Diagnostic:
    path: Path
    severity: Severity
    kind: DiagnosticKind
    message: str
    feature_key: str | None = None

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR

    def __str__(self) -> str:
        return f"{self.path}: {self.kind.value}: {self.message}"


class Report:
    """Accumulates diagnostics for one run, keyed by filesystem path."""

    def __init__(
        self,
        root: Path,
        *,
        ordering: Ordering = Ordering.CASE_INSENSITIVE,
        directories_first: bool = True,
    ) -> None:
        self.root = Path(root)
        self.ordering = ordering
        self.directories_first = directories_first
        self._diagnostics: list[Diagnostic] = []
        self._visited: dict[Path, bool] = {self.root: True}

    # -- Recording -----------------------------------------------------------

    def visit(self, path: Path, *, is_dir: bool = False) -> None:
        """Record that ``path`` exists in the input tree."""

        path = Path(path)
        self._visited.setdefault(path, is_dir)
        parent = path.parent
        while parent != path and parent not in self._visited and self._is_below_root(parent):
            self._visited[parent] = True
            path, parent = parent, parent.parent

    def add(self, diagnostic: Diagnostic) -> Diagnostic:
        self.visit(diagnostic.path, is_dir=self._visited.get(diagnostic.path, False))
        self._diagnostics.append(diagnostic)
        return diagnostic

    def record(
        self,
        path: Path,
        kind: DiagnosticKind,
        message: str,
        *,
        severity: Severity | None = None,
        feature_key: str | None = None,
    ) -> Diagnostic:
        return self.add(
            Diagnostic(
                path=Path(path),
                severity=severity or kind.default_severity,
                kind=kind,
                message=message,
                feature_key=feature_key,
            )
        )

    def error(self, path: Path, kind: DiagnosticKind, message: str, **kwargs) -> Diagnostic:
        return self.record(path, kind, message, severity=Severity.ERROR, **kwargs)

    def warning(self, path: Path, kind: DiagnosticKind, message: str, **kwargs) -> Diagnostic:
        return self.record(path, kind, message, severity=Severity.WARNING, **kwargs)

    def extend(self, diagnostics: Iterable[Diagnostic]) -> None:
        for diagnostic in diagnostics:
            self.add(diagnostic)

    # -- Queries -------------------------------------------------------------

    @property
    def diagnostics(self) -> list[Diagnostic]:
        return list(self._diagnostics)

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self._diagnostics if d.severity is Severity.ERROR]

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self._diagnostics if d.severity is Severity.WARNING]

    @property
    def has_errors(self) -> bool:
        return any(d.severity is Severity.ERROR for d in self._diagnostics)

    @property
    def exit_code(self) -> int:
        return 1 if self.has_errors else 0

    @property
    def visited(self) -> list[Path]:
        return sorted(self._visited)

    def for_path(self, path: Path) -> list[Diagnostic]:
        path = Path(path)
        return [d for d in self._diagnostics if d.path == path]

    def kinds(self) -> list[DiagnosticKind]:
        return [d.kind for d in self._diagnostics]

    def summary(self) -> str:
        errors = len(self.errors)
        warnings = len(self.warnings)
        return f"{errors} error(s), {warnings} warning(s)"

    # -- Rendering -----------------------------------------------------------

    def render(self) -> Tree:
        """Return the visited tree with diagnostics beneath their paths."""

        tree = Tree(self._label(self.root, self.root.name or str(self.root)))
        nodes: dict[Path, Tree] = {self.root: tree}
        for path in self._render_order():
            parent = nodes.get(path.parent, tree)
            nodes[path] = parent.add(self._label(path, path.name))
        for path, node in nodes.items():
            for diagnostic in self.for_path(path):
                style = "red" if diagnostic.is_error else "yellow"
                node.add(Text(f"{diagnostic.kind.value}: {diagnostic.message}", style=style))
        return tree

    def _render_order(self) -> list[Path]:
        inside = [p for p in self._visited if p != self.root and self._is_below_root(p)]
        outside = [p for p in self._visited if not self._is_below_root(p)]
        return sorted(inside, key=self._sort_key) + outside

    def _sort_key(self, path: Path) -> list[tuple[bool, Any]]:
        # Same order as the walk, at every level.
        key = []
        current = self.root
        for part in path.relative_to(self.root).parts:
            current = current / part
            is_file = not self._visited.get(current, False)
            key.append((self.directories_first and is_file, self.ordering.key(part)))
        return key

    def _label(self, path: Path, name: str) -> Text:
        diagnostics = self.for_path(path)
        suffix = "/" if self._visited.get(path, False) else ""
        if any(d.is_error for d in diagnostics):
            return Text(f"✗ {name}{suffix}", style="bold red")
        if diagnostics:
            return Text(f"⚠ {name}{suffix}", style="yellow")
        return Text(f"{name}{suffix}")

    def _is_below_root(self, path: Path) -> bool:
        try:
            path.relative_to(self.root)
        except ValueError:
            return False
        return True


__all__ = ["Severity", "DiagnosticKind", "Diagnostic", "Report"]
