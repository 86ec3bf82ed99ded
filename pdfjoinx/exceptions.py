"""Custom exceptions for the :mod:`pdfjoinx` package."""

from __future__ import annotations


class PdfMergeError(Exception):
    """Base class for every error raised by :mod:`pdfjoinx`.

    ``document_index`` is the zero-based position of the offending input in
    the caller's sequence, when the error can be tied to one document.
    ``cause`` is the underlying exception, also chained as ``__cause__``.
    """

    def __init__(
        self,
        message: str = "",
        *,
        document_index: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.document_index = document_index
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    @property
    def default_message(self) -> str:
        return "PDF merge failed."

    def with_document(self, index: int) -> "PdfMergeError":
        """Tag the error with ``index`` unless it already names a document."""

        if self.document_index is None:
            self.document_index = index
        return self

    def __str__(self) -> str:
        if self.document_index is None:
            return self.message
        return f"document #{self.document_index}: {self.message}"


class DocumentParseError(PdfMergeError):
    """Raised when a single input document cannot be parsed."""

    @property
    def default_message(self) -> str:
        return "Unable to parse PDF document."


class MalformedTokenError(DocumentParseError):
    """Raised on unterminated strings/streams or illegal bytes."""

    @property
    def default_message(self) -> str:
        return "Malformed PDF token."


class MalformedObjectError(DocumentParseError):
    """Raised when an object header, value or stream is invalid."""

    @property
    def default_message(self) -> str:
        return "Malformed PDF object."


class EncryptedDocumentError(MalformedObjectError):
    """Raised for encrypted inputs, which cannot be merged."""

    @property
    def default_message(self) -> str:
        return "Encrypted PDF documents are not supported."


class MissingRootError(DocumentParseError):
    """Raised when the catalog or the page tree cannot be located."""

    @property
    def default_message(self) -> str:
        return "Unable to locate the document catalog or page tree."


class CircularReferenceError(DocumentParseError):
    """Raised when the page tree revisits a node on the current path."""

    @property
    def default_message(self) -> str:
        return "Circular reference in page tree."


class NoContentError(PdfMergeError):
    """Raised when no usable input document remains to be merged."""

    @property
    def default_message(self) -> str:
        return "No usable PDF documents to merge."


class IOFailure(PdfMergeError):
    """Raised when reading an input or writing the output fails."""

    @property
    def default_message(self) -> str:
        return "I/O failure during PDF merge."


class MergeCancelledError(PdfMergeError):
    """Raised when a merge is cancelled through its cancellation event."""

    @property
    def default_message(self) -> str:
        return "PDF merge was cancelled."


class PdfValidationError(PdfMergeError):
    """Raised when a PDF file fails validation."""

    @property
    def default_message(self) -> str:
        return "PDF validation failed."


__all__ = [
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
]
