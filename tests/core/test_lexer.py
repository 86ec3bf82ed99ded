from __future__ import annotations

import pytest

from pdfjoinx.core.lexer import Lexer, TokenKind
from pdfjoinx.core.objects import PdfName, PdfString
from pdfjoinx.exceptions import MalformedTokenError


def _values(data: bytes) -> list[tuple[TokenKind, object]]:
    return [(token.kind, token.value) for token in Lexer(data).tokens()]


def test_tokenizes_primitives_and_skips_comments():
    tokens = _values(b"% leading comment\n12 -3 4.5 .5 /Type true [ ] << >> R")

    assert tokens == [
        (TokenKind.NUMBER, 12),
        (TokenKind.NUMBER, -3),
        (TokenKind.NUMBER, 4.5),
        (TokenKind.NUMBER, 0.5),
        (TokenKind.NAME, PdfName("Type")),
        (TokenKind.KEYWORD, "true"),
        (TokenKind.DELIMITER, "["),
        (TokenKind.DELIMITER, "]"),
        (TokenKind.DELIMITER, "<<"),
        (TokenKind.DELIMITER, ">>"),
        (TokenKind.KEYWORD, "R"),
        (TokenKind.EOF, None),
    ]


def test_integers_and_reals_stay_distinct():
    integer, real, _ = Lexer(b"1 1.0").tokens()

    assert isinstance(integer.value, int)
    assert isinstance(real.value, float)


def test_literal_string_escapes_and_nesting():
    token = Lexer(rb"(a\(b\) (nested) \101\n\\end)").next_token()

    assert token.kind is TokenKind.STRING
    assert token.value == PdfString(b"a(b) (nested) A\n\\end")


def test_literal_string_line_continuation_and_bare_cr():
    token = Lexer(b"(one\\\ntwo\rthree)").next_token()

    assert token.value.value == b"onetwo\nthree"


def test_hex_string_ignores_whitespace_and_pads_odd_digits():
    token = Lexer(b"<48 65 6C6C 6F7>").next_token()

    assert token.value == PdfString(b"Hello\x70", hex=True)


def test_name_escapes_are_decoded():
    token = Lexer(b"/A#20B#2Fc").next_token()

    assert token.value == "A B/c"


def test_offsets_point_at_token_start():
    tokens = list(Lexer(b"  /Name 42").tokens())

    assert [token.offset for token in tokens[:2]] == [2, 8]


@pytest.mark.parametrize(
    "data",
    [
        b"(unterminated",
        b"<4142",
        b"<41XY>",
        b"> stray",
        b") stray",
    ],
)
def test_malformed_tokens_raise(data):
    with pytest.raises(MalformedTokenError):
        list(Lexer(data).tokens())


@pytest.mark.parametrize("data", [b"1" * 400 + b".0", b"-" + b"9" * 320 + b".5"])
def test_out_of_range_reals_raise(data):
    with pytest.raises(MalformedTokenError):
        Lexer(data).next_token()


def test_read_stream_body_is_verbatim():
    lexer = Lexer(b"stream\r\n\x00(\xff)endstream endobj")
    assert lexer.next_token().is_keyword("stream")

    assert lexer.read_stream_body(4) == b"\x00(\xff)"
    assert lexer.next_token().is_keyword("endobj")


def test_read_stream_body_past_end_raises():
    lexer = Lexer(b"stream\nabc")
    lexer.next_token()

    with pytest.raises(MalformedTokenError):
        lexer.read_stream_body(10)


def test_read_stream_body_requires_endstream():
    lexer = Lexer(b"stream\nabcdef endobj")
    lexer.next_token()

    with pytest.raises(MalformedTokenError):
        lexer.read_stream_body(3)
