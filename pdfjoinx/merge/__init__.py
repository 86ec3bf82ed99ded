"""Merge utilities for the :mod:`pdfjoinx` package."""

from __future__ import annotations

from ..exceptions import IOFailure, NoContentError, PdfMergeError, PdfValidationError
from .engine import GlobalObjectSpace, MergeEngine, MergeResult, SkippedDocument, merge_bytes
from .merger import PdfMerger, merge_pdfs
from .options import MergeOptions
from .validators import PDFInfo, get_pdf_info, validate_pdf

__all__ = [
    "merge_bytes",
    "merge_pdfs",
    "validate_pdf",
    "get_pdf_info",
    "GlobalObjectSpace",
    "MergeEngine",
    "MergeOptions",
    "MergeResult",
    "PdfMerger",
    "SkippedDocument",
    "PDFInfo",
    "PdfMergeError",
    "PdfValidationError",
    "NoContentError",
    "IOFailure",
]
