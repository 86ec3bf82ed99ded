"""Indirect object parser built on top of :class:`~pdfjoinx.core.lexer.Lexer`."""

from __future__ import annotations

import logging
from typing import Any, Callable

from ..exceptions import MalformedObjectError
from .filters import decode_stream
from .lexer import Lexer, Token, TokenKind
from .objects import IndirectObject, PdfReference, PdfStream

__all__ = ["ObjectParser", "parse_object_stream"]

LOGGER = logging.getLogger("pdfjoinx.core")

LengthResolver = Callable[[PdfReference], Any]


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class ObjectParser:
    """Parse indirect objects and direct values out of a byte buffer.

    ``resolve_length`` dereferences indirect ``/Length`` entries of stream
    dictionaries; without it such streams are rejected.
    """

    def __init__(self, buffer: bytes, *, resolve_length: LengthResolver | None = None) -> None:
        self.buffer = buffer
        self.lexer = Lexer(buffer)
        self._resolve_length = resolve_length

    # -- Indirect objects ----------------------------------------------------

    def parse_object_at(
        self, offset: int, expected: tuple[int, int] | None = None
    ) -> IndirectObject:
        """Parse the ``N G obj ... endobj`` block starting at ``offset``."""

        if offset < 0 or offset >= len(self.buffer):
            raise MalformedObjectError(f"Object offset {offset} lies outside the buffer")
        self.lexer.seek(offset)
        header = [self.lexer.next_token() for _ in range(3)]
        number_token, generation_token, keyword = header
        if not (
            number_token.kind is TokenKind.NUMBER
            and _is_int(number_token.value)
            and generation_token.kind is TokenKind.NUMBER
            and _is_int(generation_token.value)
            and keyword.is_keyword("obj")
        ):
            raise MalformedObjectError(f"Offset {offset} does not point at an object header")
        identifier = (number_token.value, generation_token.value)
        if expected is not None and identifier[0] != expected[0]:
            raise MalformedObjectError(
                f"Expected object {expected[0]} {expected[1]} at offset {offset}, "
                f"found {identifier[0]} {identifier[1]}"
            )

        value = self.parse_value()
        token = self.lexer.next_token()
        if token.is_keyword("stream"):
            if not isinstance(value, dict):
                raise MalformedObjectError(
                    f"Stream body of object {identifier[0]} is not preceded by a dictionary"
                )
            value = self._read_stream(value, identifier)
            token = self.lexer.next_token()
        if not token.is_keyword("endobj"):
            raise MalformedObjectError(f"Object {identifier[0]} {identifier[1]} is missing endobj")
        return IndirectObject(identifier[0], identifier[1], value, offset)

    # -- Direct values -------------------------------------------------------

    def parse_value_at(self, position: int) -> Any:
        self.lexer.seek(position)
        return self.parse_value()

    def parse_value(self, token: Token | None = None) -> Any:
        if token is None:
            token = self.lexer.next_token()
        kind = token.kind

        if kind is TokenKind.NUMBER:
            if _is_int(token.value) and token.value >= 0:
                reference = self._try_reference(token.value)
                if reference is not None:
                    return reference
            return token.value
        if kind in (TokenKind.STRING, TokenKind.NAME):
            return token.value
        if kind is TokenKind.DELIMITER:
            if token.value == "[":
                return self._parse_array()
            if token.value == "<<":
                return self._parse_dictionary()
            raise MalformedObjectError(f"Unexpected '{token.value}' at offset {token.offset}")
        if kind is TokenKind.KEYWORD:
            if token.value == "true":
                return True
            if token.value == "false":
                return False
            if token.value == "null":
                return None
            raise MalformedObjectError(f"Unexpected keyword {token.value!r} at offset {token.offset}")
        raise MalformedObjectError("Unexpected end of data while parsing a value")

    def _try_reference(self, number: int) -> PdfReference | None:
        saved = self.lexer.position
        generation = self.lexer.next_token()
        if generation.kind is TokenKind.NUMBER and _is_int(generation.value):
            if self.lexer.next_token().is_keyword("R"):
                return PdfReference(number, generation.value)
        self.lexer.seek(saved)
        return None

    def _parse_array(self) -> list[Any]:
        items: list[Any] = []
        while True:
            token = self.lexer.next_token()
            if token.is_delimiter("]"):
                return items
            if token.kind is TokenKind.EOF:
                raise MalformedObjectError("Unterminated array")
            items.append(self.parse_value(token))

    def _parse_dictionary(self) -> dict[str, Any]:
        entries: dict[str, Any] = {}
        while True:
            token = self.lexer.next_token()
            if token.is_delimiter(">>"):
                return entries
            if token.kind is TokenKind.EOF:
                raise MalformedObjectError("Unterminated dictionary")
            if token.kind is not TokenKind.NAME:
                raise MalformedObjectError(
                    f"Dictionary key at offset {token.offset} is not a name"
                )
            entries[str(token.value)] = self.parse_value()

    # -- Streams -------------------------------------------------------------

    def _read_stream(self, dictionary: dict[str, Any], identifier: tuple[int, int]) -> PdfStream:
        length = dictionary.get("Length")
        if isinstance(length, PdfReference):
            if self._resolve_length is None:
                raise MalformedObjectError(
                    f"Stream {identifier[0]} has an indirect /Length that cannot be resolved"
                )
            length = self._resolve_length(length)
        if not _is_int(length) or length < 0:
            raise MalformedObjectError(f"Stream {identifier[0]} has an invalid /Length")
        if self.lexer.position + length > len(self.buffer):
            raise MalformedObjectError(
                f"Stream {identifier[0]} declares {length} bytes, exceeding the buffer"
            )
        data = self.lexer.read_stream_body(length)
        normalized = dict(dictionary)
        normalized["Length"] = len(data)
        return PdfStream(normalized, data)


def parse_object_stream(stream: PdfStream) -> dict[int, Any]:
    """Return ``{object number: value}`` for every object packed in ``stream``."""

    dictionary = stream.dictionary
    count = dictionary.get("N")
    first = dictionary.get("First")
    if not _is_int(count) or not _is_int(first):
        raise MalformedObjectError("Object stream is missing /N or /First")

    payload = decode_stream(stream)
    parser = ObjectParser(payload)
    parser.lexer.seek(0)
    slots: list[tuple[int, int]] = []
    for _ in range(count):
        number = parser.lexer.next_token()
        position = parser.lexer.next_token()
        if not (_is_int(number.value) and _is_int(position.value)):
            raise MalformedObjectError("Corrupt object stream header")
        slots.append((number.value, position.value))

    objects: dict[int, Any] = {}
    for number, position in slots:
        objects[number] = parser.parse_value_at(first + position)
    LOGGER.debug("Unpacked %d object(s) from object stream", len(objects))
    return objects
