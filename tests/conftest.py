from __future__ import annotations

from pathlib import Path
from typing import Callable, Mapping
import sys
import zlib

import pytest
from pypdf import PdfWriter
from pypdf.generic import DecodedStreamObject, NameObject

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


def _write_with_contents(path: Path, pages: int, title: str | None, label: str) -> Path:
    writer = PdfWriter()
    for number in range(pages):
        page = writer.add_blank_page(width=200, height=200)
        stream = DecodedStreamObject()
        stream.set_data(f"BT /F1 12 Tf 20 100 Td ({label} page {number + 1}) Tj ET".encode("latin-1"))
        page[NameObject("/Contents")] = writer._add_object(stream)
    if title is not None:
        writer.add_metadata({"/Title": title})
    with path.open("wb") as handle:
        writer.write(handle)
    return path


@pytest.fixture()
def sample_pdf(tmp_path: Path) -> Path:
    pdf_path = tmp_path / "sample.pdf"
    writer = PdfWriter()
    for _ in range(5):
        writer.add_blank_page(width=200, height=200)
    writer.add_metadata({"/Producer": "pdfjoinx-tests", "/Title": "Sample"})
    with pdf_path.open("wb") as stream:
        writer.write(stream)
    return pdf_path


@pytest.fixture()
def empty_pdf(tmp_path: Path) -> Path:
    pdf_path = tmp_path / "empty.pdf"
    writer = PdfWriter()
    with pdf_path.open("wb") as stream:
        writer.write(stream)
    return pdf_path


@pytest.fixture()
def pdf_factory(tmp_path: Path) -> Callable[..., Path]:
    def _create(filename: str, title: str | None = None, pages: int = 1) -> Path:
        return _write_with_contents(tmp_path / filename, pages, title, Path(filename).stem)

    return _create


@pytest.fixture()
def sample_pdfs(pdf_factory: Callable[..., Path]) -> list[Path]:
    pdf1 = pdf_factory("one.pdf", title="Document One")
    pdf2 = pdf_factory("two.pdf")
    return [pdf1, pdf2]


@pytest.fixture()
def content_pdf_bytes(pdf_factory: Callable[..., Path]) -> bytes:
    """A one-page PDF whose page carries an uncompressed content stream."""

    return pdf_factory("content.pdf", title="Content").read_bytes()


def build_raw_pdf(
    objects: Mapping[int, bytes],
    root: int = 1,
    *,
    info: int | None = None,
    version: bytes = b"1.4",
    extra_trailer: bytes = b"",
) -> bytes:
    """Serialize hand-written object bodies with a classic cross-reference table."""

    out = bytearray(b"%PDF-" + version + b"\n%\xe2\xe3\xcf\xd3\n")
    offsets: dict[int, int] = {}
    for number in sorted(objects):
        offsets[number] = len(out)
        out += b"%d 0 obj\n" % number + objects[number] + b"\nendobj\n"
    size = max(objects, default=0) + 1
    startxref = len(out)
    out += b"xref\n0 %d\n0000000000 65535 f \n" % size
    for number in range(1, size):
        if number in offsets:
            out += b"%010d 00000 n \n" % offsets[number]
        else:
            out += b"0000000000 00000 f \n"
    trailer = b"/Size %d /Root %d 0 R" % (size, root)
    if info is not None:
        trailer += b" /Info %d 0 R" % info
    out += b"trailer\n<<" + trailer + extra_trailer + b">>\nstartxref\n%d\n%%%%EOF\n" % startxref
    return bytes(out)


@pytest.fixture()
def raw_pdf() -> Callable[..., bytes]:
    return build_raw_pdf


@pytest.fixture()
def two_page_raw_pdf() -> bytes:
    return build_raw_pdf(
        {
            1: b"<< /Type /Catalog /Pages 2 0 R >>",
            2: b"<< /Type /Pages /Kids [3 0 R 4 0 R] /Count 2 /MediaBox [0 0 612 792] "
            b"/Resources << /Font << /F1 6 0 R >> >> >>",
            3: b"<< /Type /Page /Parent 2 0 R /Contents 5 0 R >>",
            4: b"<< /Type /Page /Parent 2 0 R /Contents 5 0 R /Rotate 90 >>",
            5: b"<< /Length 17 >>\nstream\nBT (shared) Tj ET\nendstream",
            6: b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
            7: b"<< /Title (Raw Sample) /Author <4A6F65> >>",
        },
        info=7,
    )


XREF_STREAM_CONTENT = b"BT (packed) Tj ET"


def build_xref_stream_pdf(index: bytes | None = None) -> bytes:
    """Catalog, page tree and page packed in an object stream behind an xref stream.

    The page's content stream (object 6) stays uncompressed. ``index`` is
    written verbatim as the xref stream's ``/Index`` entry when given.
    """

    packed = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 100 100] /Contents 6 0 R >>",
    ]
    header = b""
    body = b""
    for number, text in enumerate(packed, start=1):
        header += b"%d %d " % (number, len(body))
        body += text + b" "
    payload = zlib.compress(header + body)

    out = bytearray(b"%PDF-1.5\n")
    objstm_offset = len(out)
    out += (
        b"4 0 obj\n<< /Type /ObjStm /N 3 /First %d /Filter /FlateDecode /Length %d >>\nstream\n"
        % (len(header), len(payload))
    )
    out += payload + b"\nendstream\nendobj\n"
    content_offset = len(out)
    out += b"6 0 obj\n<< /Length %d >>\nstream\n" % len(XREF_STREAM_CONTENT)
    out += XREF_STREAM_CONTENT + b"\nendstream\nendobj\n"
    xref_offset = len(out)

    rows = b"\x00\x00\x00\x00\x00\xff\xff"
    for slot in range(3):
        rows += b"\x02" + (4).to_bytes(4, "big") + slot.to_bytes(2, "big")
    for offset in (objstm_offset, xref_offset, content_offset):
        rows += b"\x01" + offset.to_bytes(4, "big") + b"\x00\x00"
    index_entry = b" /Index " + index if index is not None else b""
    out += (
        b"5 0 obj\n<< /Type /XRef /Size 7 /W [1 4 2]%s /Root 1 0 R /Length %d >>\nstream\n"
        % (index_entry, len(rows))
    )
    out += rows + b"\nendstream\nendobj\nstartxref\n%d\n%%%%EOF\n" % xref_offset
    return bytes(out)


@pytest.fixture()
def xref_stream_pdf() -> Callable[..., bytes]:
    return build_xref_stream_pdf
