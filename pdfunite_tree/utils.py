"""Utility helpers shared by pdfunite-tree modules."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Union

PathLike = Union[str, Path]

_UNSAFE_CHARACTERS = re.compile(r'[\\/:*?"<>|\x00-\x1f]')


def get_logger(name: str = "pdfunite_tree") -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.propagate = False
    return logger


def ensure_path(path: PathLike) -> Path:
    """Return an absolute :class:`~pathlib.Path` for *path* without following links."""

    return Path(path).expanduser().absolute()


def is_within(path: Path, root: Path) -> bool:
    """Return ``True`` when *path* equals *root* or lies below it."""

    try:
        path.relative_to(root)
    except ValueError:
        return False
    return True


def sanitize_component(name: str, fallback: str = "untitled") -> str:
    """Make *name* usable as a single path component."""

    cleaned = _UNSAFE_CHARACTERS.sub("_", name).strip().strip(".")
    return cleaned or fallback


def format_file_size(size_bytes: float) -> str:
    """
    Format file size in human-readable format.

    Args:
        size_bytes: File size in bytes

    Returns:
        Formatted string (e.g., "1.5 MB", "500 KB")
    """
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size_bytes < 1024.0:
            return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024.0
    return f"{size_bytes:.1f} PB"


__all__ = ["PathLike", "get_logger", "ensure_path", "is_within", "sanitize_component", "format_file_size"]
