"""
pdfunite-tree - Merge a directory tree of PDFs into one bookmarked PDF.

Every directory becomes a bookmark and every document a nested bookmark
pointing at its first page. The inverse operation splits such a document
back into one file per bookmark leaf.

Quick Start:
    >>> from pdfunite_tree import merge_directory
    >>> run = merge_directory('lectures/')
    >>> run.output
    PosixPath('lectures-united.pdf')
    >>> print(run.report.summary())
    0 error(s), 0 warning(s)

Main Classes:
    - TreeWalker: Validate an input tree into a merge unit
    - MergeEngine: Fold a merge unit into one object store
    - Splitter: Partition a document at bookmark leaves
    - ObjectStore: In-memory object graph of one document
    - PypdfCodec: Parse and serialize object stores

Configuration:
    - WalkOptions / MergeOptions
    - FeaturePolicy: Verdicts for catalog entries of input documents

Reports:
    - Report / Diagnostic: Path-keyed problems found during a run

For CLI usage, use the 'pdfunite-tree' command after installation.
"""

__version__ = "1.0.0"

# Object graph and codec
from pdfunite_tree.store import ObjectRef, ObjectStore
from pdfunite_tree.backends import PDFCodec, PypdfCodec

# Configuration
from pdfunite_tree.policy import FeatureAction, FeaturePolicy, Ordering

# Reports
from pdfunite_tree.report import Diagnostic, DiagnosticKind, Report, Severity

# Data types
from pdfunite_tree.types import (
    DirectoryGroup,
    LeafDocument,
    MergeResult,
    MergeRun,
    PageSpan,
    SplitPart,
    WalkResult,
)

# Core operations
from pdfunite_tree.walker import TreeWalker, WalkOptions, walk_tree
from pdfunite_tree.outline import OutlineBuilder, OutlineNode, read_outline
from pdfunite_tree.merger import MergeEngine, MergeOptions, merge_directory, merge_tree
from pdfunite_tree.splitter import Splitter, split_document, split_file, write_parts

# Exceptions
from pdfunite_tree.exceptions import (
    PdfTreeError,
    DanglingReference,
    MissingPageTree,
    UnparseablePdf,
    UnsupportedFileType,
    UnsupportedFeature,
    SymlinkEscapesTree,
    MaxDepthExceeded,
    EmptySubtree,
    EmptyMergeUnit,
    RebaseCollision,
    NoOutlineLeaves,
)

__all__ = [
    # Object graph and codec
    "ObjectRef",
    "ObjectStore",
    "PDFCodec",
    "PypdfCodec",
    # Configuration
    "FeatureAction",
    "FeaturePolicy",
    "Ordering",
    "WalkOptions",
    "MergeOptions",
    # Reports
    "Diagnostic",
    "DiagnosticKind",
    "Report",
    "Severity",
    # Data types
    "DirectoryGroup",
    "LeafDocument",
    "MergeResult",
    "MergeRun",
    "PageSpan",
    "SplitPart",
    "WalkResult",
    # Core operations
    "TreeWalker",
    "walk_tree",
    "OutlineBuilder",
    "OutlineNode",
    "read_outline",
    "MergeEngine",
    "merge_tree",
    "merge_directory",
    "Splitter",
    "split_document",
    "split_file",
    "write_parts",
    # Exceptions
    "PdfTreeError",
    "DanglingReference",
    "MissingPageTree",
    "UnparseablePdf",
    "UnsupportedFileType",
    "UnsupportedFeature",
    "SymlinkEscapesTree",
    "MaxDepthExceeded",
    "EmptySubtree",
    "EmptyMergeUnit",
    "RebaseCollision",
    "NoOutlineLeaves",
    # Version info
    "__version__",
]
