"""Tokenizer turning raw PDF bytes into primitive tokens.

Stream bodies are never tokenized: once the parser has read a stream
dictionary it calls :meth:`Lexer.read_stream_body` with the declared length
and receives the body verbatim.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import math
import re
from typing import Any, Iterator

from ..exceptions import MalformedTokenError
from .objects import PdfName, PdfString

__all__ = ["TokenKind", "Token", "Lexer", "WHITESPACE", "DELIMITERS"]


WHITESPACE = b"\x00\t\n\r\f "
DELIMITERS = b"()<>[]{}/%"

_NUMBER_RE = re.compile(rb"[+-]?(?:\d+\.?\d*|\.\d+)")
_NAME_ESCAPE_RE = re.compile(rb"#([0-9A-Fa-f]{2})")
_HEX_DIGITS = frozenset(b"0123456789abcdefABCDEF")
_ESCAPES = {
    ord("n"): b"\n",
    ord("r"): b"\r",
    ord("t"): b"\t",
    ord("b"): b"\b",
    ord("f"): b"\f",
    ord("("): b"(",
    ord(")"): b")",
    ord("\\"): b"\\",
}


class TokenKind(Enum):
    NUMBER = "number"
    STRING = "string"
    NAME = "name"
    DELIMITER = "delimiter"
    KEYWORD = "keyword"
    EOF = "eof"


@dataclass(frozen=True, slots=True)
class Token:
    kind: TokenKind
    value: Any
    offset: int

    def is_keyword(self, keyword: str) -> bool:
        return self.kind is TokenKind.KEYWORD and self.value == keyword

    def is_delimiter(self, delimiter: str) -> bool:
        return self.kind is TokenKind.DELIMITER and self.value == delimiter


class Lexer:
    """Cursor over a byte buffer producing :class:`Token` objects."""

    def __init__(self, buffer: bytes, position: int = 0) -> None:
        self.buffer = buffer
        self.position = position

    def seek(self, position: int) -> None:
        self.position = position

    def tokens(self, start: int | None = None) -> Iterator[Token]:
        """Lazily yield tokens up to and including the EOF token."""

        if start is not None:
            self.seek(start)
        while True:
            token = self.next_token()
            yield token
            if token.kind is TokenKind.EOF:
                return

    def peek_token(self) -> Token:
        saved = self.position
        try:
            return self.next_token()
        finally:
            self.position = saved

    def next_token(self) -> Token:
        buffer = self.buffer
        length = len(buffer)
        index = self._skip_whitespace_and_comments(self.position)
        if index >= length:
            self.position = length
            return Token(TokenKind.EOF, None, length)

        char = buffer[index]
        if char == 0x28:  # (
            value, end = self._read_literal_string(index)
            self.position = end
            return Token(TokenKind.STRING, PdfString(value), index)
        if char == 0x3C:  # <
            if buffer[index + 1 : index + 2] == b"<":
                self.position = index + 2
                return Token(TokenKind.DELIMITER, "<<", index)
            value, end = self._read_hex_string(index)
            self.position = end
            return Token(TokenKind.STRING, PdfString(value, hex=True), index)
        if char == 0x3E:  # >
            if buffer[index + 1 : index + 2] == b">":
                self.position = index + 2
                return Token(TokenKind.DELIMITER, ">>", index)
            raise MalformedTokenError(f"Unexpected '>' at offset {index}")
        if char in b"[]{}":
            self.position = index + 1
            return Token(TokenKind.DELIMITER, chr(char), index)
        if char == 0x29:  # )
            raise MalformedTokenError(f"Unbalanced ')' at offset {index}")
        if char == 0x2F:  # /
            end = self._regular_run_end(index + 1)
            self.position = end
            return Token(TokenKind.NAME, _decode_name(buffer[index + 1 : end]), index)

        end = self._regular_run_end(index)
        raw = buffer[index:end]
        self.position = end
        if _NUMBER_RE.fullmatch(raw):
            if b"." in raw:
                real = float(raw)
                if not math.isfinite(real):
                    raise MalformedTokenError(f"Real number at offset {index} is out of range")
                return Token(TokenKind.NUMBER, real, index)
            return Token(TokenKind.NUMBER, int(raw), index)
        return Token(TokenKind.KEYWORD, raw.decode("latin-1"), index)

    def read_stream_body(self, length: int) -> bytes:
        """Return ``length`` raw bytes following the ``stream`` keyword.

        The cursor must sit right after ``stream``. The single end-of-line
        marker is skipped, the body is copied verbatim and the closing
        ``endstream`` keyword is consumed.
        """

        buffer = self.buffer
        index = self.position
        if buffer[index : index + 2] == b"\r\n":
            index += 2
        elif buffer[index : index + 1] in (b"\n", b"\r"):
            index += 1
        end = index + length
        if length < 0 or end > len(buffer):
            raise MalformedTokenError(
                f"Stream at offset {index} runs past the end of the buffer"
            )
        data = buffer[index:end]
        closing = self._skip_whitespace_and_comments(end)
        if buffer[closing : closing + 9] != b"endstream":
            raise MalformedTokenError(f"Unterminated stream at offset {index}")
        self.position = closing + 9
        return data

    # -- Internal helpers ----------------------------------------------------

    def _skip_whitespace_and_comments(self, index: int) -> int:
        buffer = self.buffer
        length = len(buffer)
        while index < length:
            char = buffer[index]
            if char in WHITESPACE:
                index += 1
            elif char == 0x25:  # %
                while index < length and buffer[index] not in b"\r\n":
                    index += 1
            else:
                break
        return index

    def _regular_run_end(self, index: int) -> int:
        buffer = self.buffer
        length = len(buffer)
        while index < length and buffer[index] not in WHITESPACE and buffer[index] not in DELIMITERS:
            index += 1
        return index

    def _read_literal_string(self, start: int) -> tuple[bytes, int]:
        buffer = self.buffer
        length = len(buffer)
        out = bytearray()
        depth = 1
        index = start + 1
        while index < length:
            char = buffer[index]
            if char == 0x5C:  # backslash
                index += 1
                if index >= length:
                    break
                escaped = buffer[index]
                if escaped in _ESCAPES:
                    out += _ESCAPES[escaped]
                    index += 1
                elif 0x30 <= escaped <= 0x37:
                    digits_end = index
                    while digits_end < min(index + 3, length) and 0x30 <= buffer[digits_end] <= 0x37:
                        digits_end += 1
                    out.append(int(buffer[index:digits_end], 8) & 0xFF)
                    index = digits_end
                elif escaped == 0x0D:
                    index += 1
                    if buffer[index : index + 1] == b"\n":
                        index += 1
                elif escaped == 0x0A:
                    index += 1
                else:
                    out.append(escaped)
                    index += 1
                continue
            if char == 0x28:
                depth += 1
            elif char == 0x29:
                depth -= 1
                if depth == 0:
                    return bytes(out), index + 1
            elif char == 0x0D:
                # Bare CR and CRLF inside strings both mean a single LF.
                out.append(0x0A)
                index += 1
                if buffer[index : index + 1] == b"\n":
                    index += 1
                continue
            out.append(char)
            index += 1
        raise MalformedTokenError(f"Unterminated literal string at offset {start}")

    def _read_hex_string(self, start: int) -> tuple[bytes, int]:
        end = self.buffer.find(b">", start + 1)
        if end == -1:
            raise MalformedTokenError(f"Unterminated hex string at offset {start}")
        digits = bytes(b for b in self.buffer[start + 1 : end] if b not in WHITESPACE)
        if any(b not in _HEX_DIGITS for b in digits):
            raise MalformedTokenError(f"Illegal character in hex string at offset {start}")
        if len(digits) % 2:
            digits += b"0"
        return bytes.fromhex(digits.decode("ascii")), end + 1


def _decode_name(raw: bytes) -> PdfName:
    decoded = _NAME_ESCAPE_RE.sub(lambda match: bytes.fromhex(match.group(1).decode("ascii")), raw)
    return PdfName(decoded.decode("latin-1"))
