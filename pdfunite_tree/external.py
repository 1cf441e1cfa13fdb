"""Adapters for the optional command line tools used around a merge.

Both factories return ``None`` when the executable is not on ``PATH`` so
callers can skip the step entirely.
"""

from __future__ import annotations

import logging
from pathlib import Path
import shutil
import subprocess
import tempfile

from .exceptions import UnparseablePdf
from .types import ExternalValidator, XoppConverter

LOGGER = logging.getLogger("pdfunite_tree.external")

# qpdf --check exit status for documents with errors.
QPDF_ERRORS = 2
QPDF_WARNINGS = 3


def _executable(name: str, explicit: str | None) -> str | None:
    executable = explicit or shutil.which(name)
    if not executable:
        LOGGER.debug("%s not available", name)
    return executable


def _run(command: list[str]) -> subprocess.CompletedProcess[str]:
    LOGGER.debug("Running command: %s", command)
    return subprocess.run(
        command,
        capture_output=True,
        text=True,
        check=False,
    )


def xournalpp_converter(executable: str | None = None) -> XoppConverter | None:
    """Return a converter that renders ``.xopp`` notebooks with ``xournalpp``."""

    xournalpp = _executable("xournalpp", executable)
    if xournalpp is None:
        return None

    def convert(path: Path) -> bytes:
        with tempfile.TemporaryDirectory() as workdir:
            target = Path(workdir) / f"{path.stem}.pdf"
            try:
                result = _run([xournalpp, f"--create-pdf={target}", str(path)])
            except OSError as exc:
                raise UnparseablePdf(f"Failed to execute xournalpp: {exc}") from exc
            if result.returncode != 0 or not target.is_file():
                LOGGER.error("xournalpp failed with code %s: %s", result.returncode, result.stderr)
                raise UnparseablePdf(f"xournalpp could not convert {path.name}: {result.stderr.strip()}")
            return target.read_bytes()

    return convert


def qpdf_validator(executable: str | None = None) -> ExternalValidator | None:
    """Return a validator that runs ``qpdf --check`` on each candidate."""

    qpdf = _executable("qpdf", executable)
    if qpdf is None:
        return None

    def validate(path: Path, data: bytes) -> str | None:
        with tempfile.TemporaryDirectory() as workdir:
            candidate = Path(workdir) / "candidate.pdf"
            candidate.write_bytes(data)
            try:
                result = _run([qpdf, "--check", str(candidate)])
            except OSError as exc:
                return f"Failed to execute qpdf: {exc}"
        if result.returncode in (0, QPDF_WARNINGS):
            if result.returncode == QPDF_WARNINGS:
                LOGGER.warning("qpdf reported warnings for %s", path)
            return None
        detail = (result.stderr or result.stdout).strip()
        return f"qpdf --check failed for {path.name}: {detail}"

    return validate


__all__ = ["xournalpp_converter", "qpdf_validator", "QPDF_ERRORS", "QPDF_WARNINGS"]
