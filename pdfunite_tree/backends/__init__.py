"""Codec backends for pdfunite-tree."""

from .base import PDFCodec
from .pypdf_backend import PypdfCodec

__all__ = [
    "PDFCodec",
    "PypdfCodec",
]
