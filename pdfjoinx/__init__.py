"""Structural PDF merging: concatenate documents without re-rendering them."""

from __future__ import annotations

from . import core, merge
from .exceptions import (
    CircularReferenceError,
    DocumentParseError,
    EncryptedDocumentError,
    IOFailure,
    MalformedObjectError,
    MalformedTokenError,
    MergeCancelledError,
    MissingRootError,
    NoContentError,
    PdfMergeError,
    PdfValidationError,
)
from .merge import (
    MergeEngine,
    MergeOptions,
    MergeResult,
    PDFInfo,
    PdfMerger,
    get_pdf_info,
    merge_bytes,
    merge_pdfs,
    validate_pdf,
)

__version__ = "0.1.0"

merge_documents = merge_pdfs

__all__ = [
    "core",
    "merge",
    "merge_bytes",
    "merge_documents",
    "merge_pdfs",
    "validate_pdf",
    "get_pdf_info",
    "MergeEngine",
    "MergeOptions",
    "MergeResult",
    "PdfMerger",
    "PDFInfo",
    "PdfMergeError",
    "DocumentParseError",
    "MalformedTokenError",
    "MalformedObjectError",
    "EncryptedDocumentError",
    "MissingRootError",
    "CircularReferenceError",
    "NoContentError",
    "IOFailure",
    "MergeCancelledError",
    "PdfValidationError",
    "__version__",
]
