from __future__ import annotations

import zlib

import pytest

from pdfjoinx.core.objects import PdfName, PdfReference, PdfStream, PdfString
from pdfjoinx.core.parser import ObjectParser, parse_object_stream
from pdfjoinx.exceptions import MalformedObjectError


def test_parses_dictionary_with_references_and_nested_values():
    data = b"4 0 obj\n<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612.5 792] /Note (hi) /Flag true /Empty null >>\nendobj\n"

    parsed = ObjectParser(data).parse_object_at(0)

    assert (parsed.number, parsed.generation, parsed.offset) == (4, 0, 0)
    assert parsed.reference == PdfReference(4, 0)
    value = parsed.value
    assert value["Type"] == PdfName("Page")
    assert value["Parent"] == PdfReference(2, 0)
    assert value["MediaBox"] == [0, 0, 612.5, 792]
    assert value["Note"] == PdfString(b"hi")
    assert value["Flag"] is True
    assert value["Empty"] is None


def test_numbers_not_followed_by_r_stay_numbers():
    parser = ObjectParser(b"[1 2 3 0 R 4]")

    assert parser.parse_value_at(0) == [1, 2, PdfReference(3, 0), 4]


def test_stream_body_is_kept_verbatim():
    body = b"\x00\x01binary)(\xff"
    data = b"7 0 obj << /Length %d >> stream\n" % len(body) + body + b"\nendstream endobj"

    stream = ObjectParser(data).parse_object_at(0).value

    assert isinstance(stream, PdfStream)
    assert stream.data == body
    assert stream.dictionary["Length"] == len(body)


def test_indirect_length_uses_resolver():
    data = b"7 0 obj << /Length 8 0 R >> stream\nabcd\nendstream endobj"
    calls = []

    def resolve(reference):
        calls.append(reference)
        return 4

    stream = ObjectParser(data, resolve_length=resolve).parse_object_at(0).value

    assert calls == [PdfReference(8, 0)]
    assert stream.data == b"abcd"
    assert stream.dictionary["Length"] == 4


def test_indirect_length_without_resolver_is_rejected():
    data = b"7 0 obj << /Length 8 0 R >> stream\nabcd\nendstream endobj"

    with pytest.raises(MalformedObjectError):
        ObjectParser(data).parse_object_at(0)


def test_declared_length_past_buffer_is_rejected():
    data = b"7 0 obj << /Length 500 >> stream\nabcd\nendstream endobj"

    with pytest.raises(MalformedObjectError):
        ObjectParser(data).parse_object_at(0)


@pytest.mark.parametrize(
    "data",
    [
        b"garbage here",
        b"1 0 object << >> endobj",
        b"1 0 obj << /A 1 >>",
        b"1 0 obj [1 2 endobj",
        b"1 0 obj << 1 2 >> endobj",
        b"1 0 obj [1] stream\nendstream endobj",
    ],
)
def test_malformed_objects_raise(data):
    with pytest.raises(MalformedObjectError):
        ObjectParser(data).parse_object_at(0)


def test_unexpected_object_number_is_rejected():
    with pytest.raises(MalformedObjectError):
        ObjectParser(b"5 0 obj 1 endobj").parse_object_at(0, expected=(6, 0))


def test_offset_outside_buffer_is_rejected():
    with pytest.raises(MalformedObjectError):
        ObjectParser(b"1 0 obj 1 endobj").parse_object_at(100)


def test_parse_object_stream_unpacks_compressed_objects():
    first = b"<< /Type /Font >>"
    second = b"[10 0 R 42]"
    header = b"11 0 12 %d " % (len(first) + 1)
    payload = header + first + b" " + second
    stream = PdfStream(
        {"Type": PdfName("ObjStm"), "N": 2, "First": len(header), "Filter": PdfName("FlateDecode")},
        zlib.compress(payload),
    )

    objects = parse_object_stream(stream)

    assert objects == {11: {"Type": "Font"}, 12: [PdfReference(10, 0), 42]}


def test_parse_object_stream_requires_header_entries():
    with pytest.raises(MalformedObjectError):
        parse_object_stream(PdfStream({"Type": PdfName("ObjStm")}, b""))
