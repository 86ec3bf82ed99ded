"""Serializer writing a :class:`MergedDocument` back to PDF bytes."""

from __future__ import annotations

from hashlib import md5
from io import BytesIO
import logging
import math
from typing import Any, BinaryIO

from .filters import flate_encode
from .objects import MergedDocument, PdfName, PdfReference, PdfStream, PdfString

__all__ = ["PdfSerializer", "serialize", "encode_value", "version_key"]

LOGGER = logging.getLogger("pdfjoinx.core")

_BINARY_MARKER = b"%\xe2\xe3\xcf\xd3\n"
_NAME_SAFE = frozenset(range(0x21, 0x7F)) - frozenset(b"()<>[]{}/%#")


def _format_real(value: float) -> bytes:
    if math.isnan(value) or math.isinf(value):
        raise ValueError(f"Cannot encode non-finite real {value!r}")
    text = repr(value)
    if "e" in text or "E" in text:
        text = f"{value:.10f}".rstrip("0")
        if text.endswith("."):
            text += "0"
    return text.encode("ascii")


def _encode_name(name: str) -> bytes:
    out = bytearray(b"/")
    for byte in name.encode("latin-1"):
        if byte in _NAME_SAFE:
            out.append(byte)
        else:
            out += b"#%02X" % byte
    return bytes(out)


def _encode_string(string: PdfString) -> bytes:
    if string.hex:
        return b"<" + string.value.hex().upper().encode("ascii") + b">"
    escaped = (
        string.value.replace(b"\\", b"\\\\")
        .replace(b"(", b"\\(")
        .replace(b")", b"\\)")
        .replace(b"\r", b"\\r")
    )
    return b"(" + escaped + b")"


def encode_value(value: Any) -> bytes:
    """Encode a direct PDF value."""

    if value is None:
        return b"null"
    if value is True:
        return b"true"
    if value is False:
        return b"false"
    if isinstance(value, int):
        return str(value).encode("ascii")
    if isinstance(value, float):
        return _format_real(value)
    if isinstance(value, PdfName):
        return _encode_name(value)
    if isinstance(value, PdfString):
        return _encode_string(value)
    if isinstance(value, PdfReference):
        return b"%d %d R" % (value.number, value.generation)
    if isinstance(value, list):
        return b"[" + b" ".join(encode_value(item) for item in value) + b"]"
    if isinstance(value, dict):
        parts = [_encode_name(key) + b" " + encode_value(item) for key, item in value.items()]
        return b"<<" + b" ".join(parts) + b">>"
    if isinstance(value, PdfStream):
        raise TypeError("Streams can only be written as indirect objects")
    raise TypeError(f"Cannot encode {type(value).__name__} as a PDF value")


class PdfSerializer:
    """Write objects, a cross-reference section and a trailer.

    With ``xref_stream`` enabled the cross-reference section is written as a
    Flate-compressed stream (PDF 1.5+) instead of a classic table.
    """

    def __init__(self, *, xref_stream: bool = False) -> None:
        self.xref_stream = xref_stream

    def serialize(self, document: MergedDocument) -> bytes:
        buffer = BytesIO()
        self._write_to(document, buffer)
        return buffer.getvalue()

    def write(self, document: MergedDocument, sink: BinaryIO) -> int:
        """Serialize ``document`` in memory, then write it to ``sink`` in one call."""

        data = self.serialize(document)
        sink.write(data)
        return len(data)

    # -- Internal helpers ----------------------------------------------------

    def _version(self, document: MergedDocument) -> str:
        version = document.version
        if self.xref_stream and version_key(version) < (1, 5):
            version = "1.5"
        return version

    def _write_to(self, document: MergedDocument, out: BytesIO) -> None:
        out.write(b"%PDF-" + self._version(document).encode("ascii") + b"\n")
        out.write(_BINARY_MARKER)

        offsets: dict[int, int] = {}
        for number in sorted(document.objects):
            offsets[number] = out.tell()
            out.write(self._encode_indirect(number, document.objects[number]))

        document_id = PdfString(md5(out.getvalue()).digest(), hex=True)
        trailer: dict[str, Any] = {
            "Size": document.size,
            "Root": PdfReference(document.root),
        }
        if document.info is not None:
            trailer["Info"] = PdfReference(document.info)
        trailer["ID"] = [document_id, document_id]

        if self.xref_stream:
            startxref = self._write_xref_stream(document, offsets, trailer, out)
        else:
            startxref = self._write_xref_table(document, offsets, trailer, out)
        out.write(b"startxref\n%d\n%%%%EOF\n" % startxref)
        LOGGER.debug("Serialized %d object(s), startxref at %d", len(offsets), startxref)

    def _encode_indirect(self, number: int, value: Any) -> bytes:
        header = b"%d 0 obj\n" % number
        if isinstance(value, PdfStream):
            dictionary = dict(value.dictionary)
            dictionary["Length"] = len(value.data)
            body = encode_value(dictionary) + b"\nstream\n" + value.data + b"\nendstream"
        else:
            body = encode_value(value)
        return header + body + b"\nendobj\n"

    def _write_xref_table(
        self,
        document: MergedDocument,
        offsets: dict[int, int],
        trailer: dict[str, Any],
        out: BytesIO,
    ) -> int:
        startxref = out.tell()
        lines = [b"xref\n", b"0 %d\n" % document.size, b"0000000000 65535 f \n"]
        for number in range(1, document.size):
            if number in offsets:
                lines.append(b"%010d 00000 n \n" % offsets[number])
            else:
                lines.append(b"0000000000 00000 f \n")
        out.write(b"".join(lines))
        out.write(b"trailer\n" + encode_value(trailer) + b"\n")
        return startxref

    def _write_xref_stream(
        self,
        document: MergedDocument,
        offsets: dict[int, int],
        trailer: dict[str, Any],
        out: BytesIO,
    ) -> int:
        startxref = out.tell()
        stream_number = document.size
        size = stream_number + 1
        offset_width = max(1, (startxref.bit_length() + 7) // 8)

        rows = bytearray()
        for number in range(size):
            if number == stream_number:
                rows += b"\x01" + startxref.to_bytes(offset_width, "big") + b"\x00\x00"
            elif number in offsets:
                rows += b"\x01" + offsets[number].to_bytes(offset_width, "big") + b"\x00\x00"
            else:
                generation = b"\xff\xff" if number == 0 else b"\x00\x00"
                rows += b"\x00" + bytes(offset_width) + generation

        dictionary: dict[str, Any] = {
            "Type": PdfName("XRef"),
            "Size": size,
            "W": [1, offset_width, 2],
            "Index": [0, size],
            "Filter": PdfName("FlateDecode"),
        }
        dictionary.update(trailer)
        dictionary["Size"] = size
        out.write(self._encode_indirect(stream_number, PdfStream(dictionary, flate_encode(bytes(rows)))))
        return startxref


def version_key(version: str) -> tuple[int, ...]:
    try:
        return tuple(int(part) for part in version.split("."))
    except ValueError:
        return (1, 4)


def serialize(document: MergedDocument, *, xref_stream: bool = False) -> bytes:
    """Return the PDF bytes of ``document``."""

    return PdfSerializer(xref_stream=xref_stream).serialize(document)
