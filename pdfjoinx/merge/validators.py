"""Validation utilities for the :mod:`pdfjoinx.merge` package."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Any, Dict, Union

from ..core.objects import PdfName, PdfStream, PdfString
from ..core.xref import ResolvedDocument, resolve_document
from ..exceptions import DocumentParseError, PdfValidationError
from .utils import PathLike, ensure_path

LOGGER = logging.getLogger("pdfjoinx.merge")

PdfInput = Union[PathLike, bytes, bytearray, memoryview]


@dataclass(frozen=True)
class PDFInfo:
    """Summary information describing a PDF document."""

    path: Path | None
    version: str
    num_pages: int
    num_objects: int
    xref_kind: str
    metadata: Dict[str, Any]


def _load(source: PdfInput) -> tuple[Path | None, bytes]:
    if isinstance(source, (bytes, bytearray, memoryview)):
        return None, bytes(source)
    pdf_path = ensure_path(source)
    try:
        return pdf_path, pdf_path.read_bytes()
    except OSError as exc:
        LOGGER.error("Failed to read PDF %s: %s", pdf_path, exc)
        raise PdfValidationError(f"Unable to read PDF: {pdf_path}", cause=exc) from exc


def _resolve(source: PdfInput) -> tuple[Path | None, ResolvedDocument]:
    pdf_path, data = _load(source)
    label = pdf_path if pdf_path is not None else "<bytes>"
    LOGGER.debug("Validating PDF at %s", label)
    if not data:
        raise PdfValidationError("PDF is empty")
    try:
        document = resolve_document(data)
    except DocumentParseError as exc:
        LOGGER.error("Failed to parse PDF %s: %s", label, exc)
        raise PdfValidationError(f"Unable to parse PDF: {exc}", cause=exc) from exc
    if document.page_count == 0:
        LOGGER.error("PDF %s contains no pages", label)
        raise PdfValidationError("PDF contains no pages")
    return pdf_path, document


def validate_pdf(source: PdfInput) -> bool:
    """Return ``True`` if *source* is a valid, mergeable PDF.

    *source* is a file path or the PDF bytes. ``PdfValidationError`` is
    raised if the document cannot be read, is encrypted, or does not contain
    any pages.
    """

    pdf_path, _ = _resolve(source)
    LOGGER.info("Validated PDF %s successfully", pdf_path if pdf_path is not None else "<bytes>")
    return True


def _metadata_value(value: Any) -> Any:
    if isinstance(value, PdfString):
        return value.text()
    if isinstance(value, PdfName):
        return f"/{value}"
    return value


def get_pdf_info(source: PdfInput) -> PDFInfo:
    """Return :class:`PDFInfo` describing the PDF at *source*."""

    pdf_path, document = _resolve(source)

    metadata: Dict[str, Any] = {}
    try:
        info = document.resolver.resolve(document.trailer.get("Info"))
    except DocumentParseError as exc:
        LOGGER.warning("Failed to capture metadata: %s", exc)
        info = None
    if isinstance(info, dict):
        for key, value in info.items():
            try:
                value = document.resolver.resolve(value)
            except DocumentParseError:
                continue
            if value is None or isinstance(value, (dict, list, PdfStream)):
                continue
            metadata[f"/{key}"] = _metadata_value(value)

    pdf_info = PDFInfo(
        path=pdf_path,
        version=document.version,
        num_pages=document.page_count,
        num_objects=document.object_count,
        xref_kind=document.xref_kind,
        metadata=metadata,
    )
    LOGGER.debug("Collected PDF info: %s", pdf_info)
    return pdf_info


__all__ = ["PDFInfo", "PdfInput", "get_pdf_info", "validate_pdf"]
