"""Tagged PDF object model shared by the parser, merge engine and writer.

PDF values map onto Python types as follows:

* ``null`` -> ``None``
* booleans -> ``bool``
* integers / reals -> ``int`` / ``float`` (kept distinct for round-trips)
* strings -> :class:`PdfString`
* names -> :class:`PdfName`
* arrays -> ``list``
* dictionaries -> ``dict`` keyed by the name without its leading slash
* streams -> :class:`PdfStream`
* indirect references -> :class:`PdfReference`
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterator


class PdfName(str):
    """A PDF name, stored without its leading ``/``."""

    __slots__ = ()

    def __repr__(self) -> str:
        return f"PdfName({str(self)!r})"


@dataclass(frozen=True, slots=True)
class PdfString:
    """A PDF string; ``hex`` records whether it was written as ``<...>``."""

    value: bytes
    hex: bool = False

    def text(self) -> str:
        if self.value.startswith(b"\xfe\xff"):
            return self.value[2:].decode("utf-16-be", "ignore")
        return self.value.decode("latin-1")


@dataclass(frozen=True, slots=True)
class PdfReference:
    """An ``N G R`` indirect reference."""

    number: int
    generation: int = 0

    def __str__(self) -> str:
        return f"{self.number} {self.generation} R"


@dataclass(slots=True)
class PdfStream:
    """A stream object: its dictionary plus the raw (still encoded) body."""

    dictionary: dict[str, Any]
    data: bytes

    @property
    def filters(self) -> list[str]:
        value = self.dictionary.get("Filter")
        if value is None:
            return []
        if isinstance(value, list):
            return [str(item) for item in value]
        return [str(value)]

    def decode(self) -> bytes:
        from .filters import decode_stream

        return decode_stream(self)


@dataclass(slots=True)
class IndirectObject:
    """An object identified by ``(number, generation)`` within one document."""

    number: int
    generation: int
    value: Any
    offset: int | None = None

    @property
    def reference(self) -> PdfReference:
        return PdfReference(self.number, self.generation)


@dataclass(slots=True)
class XrefEntry:
    """Location of one object: a byte offset or a slot in an object stream."""

    number: int
    generation: int = 0
    offset: int | None = None
    container: int | None = None
    index: int | None = None

    @property
    def compressed(self) -> bool:
        return self.container is not None


@dataclass(slots=True)
class MergedDocument:
    """The single object graph produced by the merge engine."""

    objects: dict[int, Any] = field(default_factory=dict)
    root: int = 0
    info: int | None = None
    version: str = "1.4"

    @property
    def size(self) -> int:
        return max(self.objects, default=0) + 1


def iter_references(value: Any) -> Iterator[PdfReference]:
    """Yield every reference nested inside ``value`` in document order."""

    if isinstance(value, PdfReference):
        yield value
    elif isinstance(value, PdfStream):
        yield from iter_references(value.dictionary)
    elif isinstance(value, dict):
        for item in value.values():
            yield from iter_references(item)
    elif isinstance(value, list):
        for item in value:
            yield from iter_references(item)


def map_references(value: Any, mapper: Callable[[PdfReference], Any]) -> Any:
    """Return a copy of ``value`` with every reference replaced by ``mapper``."""

    if isinstance(value, PdfReference):
        return mapper(value)
    if isinstance(value, PdfStream):
        return PdfStream(map_references(value.dictionary, mapper), value.data)
    if isinstance(value, dict):
        return {key: map_references(item, mapper) for key, item in value.items()}
    if isinstance(value, list):
        return [map_references(item, mapper) for item in value]
    return value


__all__ = [
    "PdfName",
    "PdfString",
    "PdfReference",
    "PdfStream",
    "IndirectObject",
    "XrefEntry",
    "MergedDocument",
    "iter_references",
    "map_references",
]
