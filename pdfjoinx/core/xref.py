"""Cross-reference resolution and page tree traversal for one PDF document.

The resolver locates the trailer by scanning backwards for ``startxref``,
walks every cross-reference section along the ``/Prev`` chain (classic
tables, cross-reference streams and hybrid files), then loads objects on
demand from their byte offsets or from the object streams holding them.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
import logging
import re
import threading
from typing import Any, cast

from ..exceptions import (
    CircularReferenceError,
    DocumentParseError,
    EncryptedDocumentError,
    MalformedObjectError,
    MergeCancelledError,
    MissingRootError,
)
from .filters import decode_stream
from .lexer import WHITESPACE
from .objects import PdfReference, PdfStream, XrefEntry, iter_references
from .parser import ObjectParser, parse_object_stream

__all__ = [
    "INHERITABLE_PAGE_ATTRIBUTES",
    "PageLeaf",
    "ResolvedDocument",
    "CrossReferenceResolver",
    "resolve_document",
]

LOGGER = logging.getLogger("pdfjoinx.core")

INHERITABLE_PAGE_ATTRIBUTES = ("Resources", "MediaBox", "CropBox", "Rotate")

_HEADER_RE = re.compile(rb"%PDF-(\d+\.\d+)")
_XREF_ENTRY_RE = re.compile(rb"(\d+)[ ]+(\d+)[ ]+([nf])")
_SECTION_ONLY_KEYS = frozenset(
    {"Prev", "XRefStm", "Type", "W", "Index", "Filter", "DecodeParms", "Length"}
)


@dataclass(slots=True)
class PageLeaf:
    """A page reference plus the attributes it inherits from its ancestors."""

    reference: PdfReference
    inherited: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class ResolvedDocument:
    """One parsed input document, ready to be merged."""

    index: int | None
    version: str
    trailer: dict[str, Any]
    entries: dict[int, XrefEntry]
    catalog_ref: PdfReference
    pages: list[PageLeaf]
    xref_kind: str
    resolver: "CrossReferenceResolver"
    reachable: list[int] = field(default_factory=list)
    tree_nodes: frozenset[int] = frozenset()

    @property
    def page_count(self) -> int:
        return len(self.pages)

    @property
    def object_count(self) -> int:
        return len(self.entries)

    def get_object(self, number: int) -> Any:
        return self.resolver.get_object(number)


# -- Utility helpers ---------------------------------------------------------


def _decode_be_integer(buffer: bytes) -> int:
    """Decode a big-endian integer from ``buffer`` handling empty segments."""

    value = 0
    for byte in buffer:
        value = (value << 8) | byte
    return value


def _skip_ws(buffer: bytes, index: int) -> int:
    while index < len(buffer) and buffer[index] in WHITESPACE:
        index += 1
    return index


def _read_int(buffer: bytes, index: int) -> tuple[int, int]:
    index = _skip_ws(buffer, index)
    start = index
    while index < len(buffer) and buffer[index] in b"0123456789":
        index += 1
    if start == index:
        raise MalformedObjectError(f"Expected integer in xref table at offset {start}")
    return int(buffer[start:index]), index


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


# -- Resolver ----------------------------------------------------------------


class CrossReferenceResolver:
    """Build the object map of one document and resolve its page tree."""

    def __init__(
        self,
        buffer: bytes,
        *,
        document_index: int | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self.buffer = buffer
        self.document_index = document_index
        self._cancel_event = cancel_event
        self._base: int | None = None
        self._version: str | None = None
        self._startxref: int | None = None
        self._xref_kind: str | None = None
        self._entries: dict[int, XrefEntry] | None = None
        self._trailer: dict[str, Any] | None = None
        self._objects: dict[int, Any] = {}
        self._object_streams: dict[int, dict[int, Any]] = {}
        self._loading: set[int] = set()
        self._tree_nodes: set[int] = set()

    # -- Header and trailer --------------------------------------------------

    @property
    def version(self) -> str:
        if self._version is None:
            match = _HEADER_RE.search(self.buffer, 0, 1024)
            if match is None:
                raise MalformedObjectError("Missing %PDF- header")
            self._base = match.start()
            self._version = match.group(1).decode("ascii")
        return self._version

    @property
    def base_offset(self) -> int:
        """Position of the ``%PDF-`` header; xref offsets are relative to it."""

        self.version
        return cast(int, self._base)

    def locate_startxref(self) -> int:
        if self._startxref is not None:
            return self._startxref
        marker = b"startxref"
        index = self.buffer.rfind(marker)
        if index == -1:
            raise MalformedObjectError("Unable to locate startxref marker")
        match = re.match(rb"\s*(\d+)", self.buffer[index + len(marker) : index + len(marker) + 32])
        if match is None:
            raise MalformedObjectError("startxref offset not found")
        self._startxref = int(match.group(1))
        return self._startxref

    @property
    def entries(self) -> dict[int, XrefEntry]:
        if self._entries is None:
            return self.read_cross_reference()
        return self._entries

    @property
    def trailer(self) -> dict[str, Any]:
        if self._trailer is None:
            self.read_cross_reference()
        return cast("dict[str, Any]", self._trailer)

    @property
    def xref_kind(self) -> str:
        if self._xref_kind is None:
            self.read_cross_reference()
        return cast(str, self._xref_kind)

    def read_cross_reference(self) -> dict[int, XrefEntry]:
        """Walk every xref section, newest first, and merge their entries."""

        base = self.base_offset
        found: dict[int, XrefEntry | None] = {}
        trailers: list[dict[str, Any]] = []
        visited: set[int] = set()
        next_offset: int | None = self.locate_startxref()

        while next_offset is not None and next_offset not in visited:
            self._check_cancelled()
            visited.add(next_offset)
            position = _skip_ws(self.buffer, base + next_offset)
            if position >= len(self.buffer):
                raise MalformedObjectError(f"Cross-reference offset {next_offset} is out of range")

            if self.buffer.startswith(b"xref", position):
                section, trailer = self._parse_xref_table_section(position)
                kind = "table"
                hybrid = trailer.get("XRefStm")
                if _is_int(hybrid):
                    stream_section, _ = self._parse_xref_stream_section(base + hybrid)
                    for number, entry in stream_section.items():
                        if section.get(number) is None:
                            section[number] = entry
            else:
                section, trailer = self._parse_xref_stream_section(position)
                kind = "stream"

            if self._xref_kind is None:
                self._xref_kind = kind
            for number, entry in section.items():
                # Newer sections are read first and win.
                found.setdefault(number, entry)
            trailers.append(trailer)

            prev = trailer.get("Prev")
            next_offset = prev if _is_int(prev) else None

        merged: dict[str, Any] = {}
        for trailer in trailers:
            for key, value in trailer.items():
                if key not in _SECTION_ONLY_KEYS:
                    merged.setdefault(key, value)

        self._entries = {number: entry for number, entry in found.items() if entry is not None}
        self._trailer = merged
        LOGGER.debug(
            "Read %d cross-reference section(s) with %d live object(s)",
            len(trailers),
            len(self._entries),
        )
        return self._entries

    def _parse_xref_table_section(
        self, start: int
    ) -> tuple[dict[int, XrefEntry | None], dict[str, Any]]:
        buffer = self.buffer
        base = self.base_offset
        section: dict[int, XrefEntry | None] = {}
        index = _skip_ws(buffer, start + len(b"xref"))

        while index < len(buffer):
            if buffer.startswith(b"trailer", index):
                trailer = ObjectParser(buffer).parse_value_at(index + len(b"trailer"))
                if not isinstance(trailer, dict):
                    raise MalformedObjectError("Trailer is not a dictionary")
                return section, trailer
            first, index = _read_int(buffer, index)
            count, index = _read_int(buffer, index)
            for number in range(first, first + count):
                index = _skip_ws(buffer, index)
                match = _XREF_ENTRY_RE.match(buffer, index)
                if match is None:
                    raise MalformedObjectError(f"Corrupt cross-reference entry at offset {index}")
                index = match.end()
                if match.group(3) == b"n":
                    section[number] = XrefEntry(
                        number, int(match.group(2)), offset=base + int(match.group(1))
                    )
                else:
                    section[number] = None
            index = _skip_ws(buffer, index)

        raise MalformedObjectError("Cross-reference table has no trailer")

    def _parse_xref_stream_section(
        self, start: int
    ) -> tuple[dict[int, XrefEntry | None], dict[str, Any]]:
        parsed = ObjectParser(self.buffer).parse_object_at(start)
        stream = parsed.value
        if not isinstance(stream, PdfStream):
            raise MalformedObjectError(f"Offset {start} does not hold a cross-reference stream")
        dictionary = stream.dictionary
        widths = dictionary.get("W")
        if not isinstance(widths, list) or len(widths) != 3 or not all(_is_int(w) and w >= 0 for w in widths):
            raise MalformedObjectError("Cross-reference stream has an invalid /W array")
        entry_width = sum(widths)
        if entry_width <= 0:
            raise MalformedObjectError("Cross-reference stream has an empty /W array")

        size = dictionary.get("Size")
        index_obj = dictionary.get("Index")
        if index_obj is None:
            subsections = [(0, size)] if _is_int(size) and size >= 0 else []
        elif (
            isinstance(index_obj, list)
            and len(index_obj) % 2 == 0
            and all(_is_int(value) and value >= 0 for value in index_obj)
        ):
            subsections = [(index_obj[i], index_obj[i + 1]) for i in range(0, len(index_obj), 2)]
        else:
            raise MalformedObjectError("Cross-reference stream has an invalid /Index array")

        decoded = decode_stream(stream)
        base = self.base_offset
        section: dict[int, XrefEntry | None] = {}
        position = 0
        for first, count in subsections:
            for number in range(first, first + count):
                end = position + entry_width
                if end > len(decoded):
                    raise MalformedObjectError("Cross-reference stream data is truncated")
                record = decoded[position:end]
                position = end
                type_field = _decode_be_integer(record[: widths[0]]) if widths[0] else 1
                field2 = _decode_be_integer(record[widths[0] : widths[0] + widths[1]])
                field3 = _decode_be_integer(record[widths[0] + widths[1] :])
                if type_field == 1:
                    section[number] = XrefEntry(number, field3, offset=base + field2)
                elif type_field == 2:
                    section[number] = XrefEntry(number, 0, container=field2, index=field3)
                else:
                    section[number] = None
        return section, dictionary

    # -- Object loading ------------------------------------------------------

    def get_object(self, number: int) -> Any:
        """Return the value of object ``number``, loading it on first use."""

        if number in self._objects:
            return self._objects[number]
        self._check_cancelled()
        entry = self.entries.get(number)
        if entry is None:
            raise MalformedObjectError(
                f"Reference to object {number}, which is not in the cross-reference table"
            )
        if number in self._loading:
            raise MalformedObjectError(f"Object {number} depends on itself while loading")

        self._loading.add(number)
        try:
            if entry.container is not None:
                value = self._load_compressed(number, entry.container)
            elif entry.offset is not None:
                parser = ObjectParser(self.buffer, resolve_length=self._resolve_length)
                value = parser.parse_object_at(entry.offset, expected=(number, entry.generation)).value
            else:
                raise MalformedObjectError(f"Object {number} has no location")
        finally:
            self._loading.discard(number)
        self._objects[number] = value
        return value

    def _load_compressed(self, number: int, container_number: int) -> Any:
        objects = self._object_streams.get(container_number)
        if objects is None:
            container = self.get_object(container_number)
            if not isinstance(container, PdfStream) or container.dictionary.get("Type") != "ObjStm":
                raise MalformedObjectError(f"Object {container_number} is not an object stream")
            objects = parse_object_stream(container)
            self._object_streams[container_number] = objects
        if number not in objects:
            raise MalformedObjectError(
                f"Object {number} is missing from object stream {container_number}"
            )
        return objects[number]

    def _resolve_length(self, reference: PdfReference) -> int:
        value = self.get_object(reference.number)
        if not _is_int(value):
            raise MalformedObjectError(f"Indirect stream length {reference} is not an integer")
        return value

    def resolve(self, value: Any) -> Any:
        """Follow references until a direct value is reached."""

        seen: set[int] = set()
        while isinstance(value, PdfReference):
            if value.number in seen:
                raise MalformedObjectError(f"Reference chain through {value} loops")
            seen.add(value.number)
            value = self.get_object(value.number)
        return value

    # -- Catalog and page tree -----------------------------------------------

    def catalog(self) -> tuple[PdfReference, dict[str, Any]]:
        root = self.trailer.get("Root")
        if not isinstance(root, PdfReference):
            raise MissingRootError("Trailer has no /Root reference")
        try:
            catalog = self.get_object(root.number)
        except MalformedObjectError as exc:
            raise MissingRootError(f"Catalog object {root} cannot be loaded", cause=exc) from exc
        if not isinstance(catalog, dict):
            raise MissingRootError(f"Catalog object {root} is not a dictionary")
        return root, catalog

    def page_leaves(self) -> list[PageLeaf]:
        """Return the page leaves in document order (depth-first, left to right)."""

        _, catalog = self.catalog()
        pages_ref = catalog.get("Pages")
        if not isinstance(pages_ref, PdfReference):
            raise MissingRootError("Catalog has no /Pages reference")
        try:
            pages_root = self.get_object(pages_ref.number)
        except MalformedObjectError as exc:
            raise MissingRootError(f"Page tree root {pages_ref} cannot be loaded", cause=exc) from exc
        if not isinstance(pages_root, dict):
            raise MissingRootError(f"Page tree root {pages_ref} is not a dictionary")

        leaves: list[PageLeaf] = []
        self._walk(pages_ref, None, {}, set(), set(), leaves)
        return leaves

    def _walk(
        self,
        reference: PdfReference,
        parent: PdfReference | None,
        inherited: dict[str, Any],
        path: set[int],
        seen: set[int],
        leaves: list[PageLeaf],
    ) -> None:
        number = reference.number
        if number in path:
            raise CircularReferenceError(f"Page tree node {number} is its own ancestor")
        if number in seen:
            raise MalformedObjectError(f"Page tree node {number} is reachable more than once")
        node = self.get_object(number)
        if not isinstance(node, dict):
            raise MalformedObjectError(f"Page tree node {number} is not a dictionary")
        if parent is not None:
            back_link = node.get("Parent")
            if not isinstance(back_link, PdfReference) or back_link.number != parent.number:
                raise MalformedObjectError(
                    f"Page tree node {number} does not point back to its parent {parent.number}"
                )
        seen.add(number)

        node_type = node.get("Type")
        kids = node.get("Kids")
        if node_type == "Page" or (node_type != "Pages" and kids is None):
            leaves.append(PageLeaf(reference, dict(inherited)))
            return

        kids = self.resolve(kids)
        if not isinstance(kids, list):
            raise MalformedObjectError(f"Page tree node {number} has no /Kids array")
        scope = dict(inherited)
        for key in INHERITABLE_PAGE_ATTRIBUTES:
            if key in node:
                scope[key] = node[key]

        self._tree_nodes.add(number)
        path.add(number)
        for kid in kids:
            if not isinstance(kid, PdfReference):
                raise MalformedObjectError(f"Page tree node {number} has a direct kid")
            self._walk(kid, reference, scope, path, seen, leaves)
        path.discard(number)

    def page_dictionary(self, leaf: PageLeaf) -> dict[str, Any]:
        """Return the page as a standalone dictionary.

        Inherited attributes missing from the page are materialized and the
        ``/Parent`` link is dropped, since the page is about to be re-parented.
        """

        page = self.get_object(leaf.reference.number)
        if not isinstance(page, dict):
            raise MalformedObjectError(f"Page {leaf.reference} is not a dictionary")
        standalone = dict(page)
        standalone.pop("Parent", None)
        for key, value in leaf.inherited.items():
            standalone.setdefault(key, value)
        return standalone

    def reachable_objects(self, leaves: list[PageLeaf]) -> list[int]:
        """Return the numbers of every object reachable from ``leaves``.

        Intermediate page tree nodes are never entered. Loading each object
        here surfaces dangling references before any renumbering starts.
        """

        by_number = {leaf.reference.number: leaf for leaf in leaves}
        order: list[int] = []
        seen: set[int] = set(by_number)
        pending = deque(by_number)
        while pending:
            self._check_cancelled()
            number = pending.popleft()
            order.append(number)
            leaf = by_number.get(number)
            value = self.page_dictionary(leaf) if leaf is not None else self.get_object(number)
            for reference in iter_references(value):
                target = reference.number
                if target in seen or target in self._tree_nodes:
                    continue
                if target not in self.entries:
                    raise MalformedObjectError(
                        f"Object {number} references {reference}, which does not exist"
                    )
                seen.add(target)
                pending.append(target)
        return order

    # -- Entry point ---------------------------------------------------------

    def parse(self) -> ResolvedDocument:
        """Resolve the whole document: xref, trailer, catalog and page leaves."""

        try:
            version = self.version
            entries = self.entries
            trailer = self.trailer
            if "Encrypt" in trailer:
                raise EncryptedDocumentError()
            catalog_ref, _ = self.catalog()
            pages = self.page_leaves()
            reachable = self.reachable_objects(pages)
        except DocumentParseError as exc:
            if self.document_index is not None:
                exc.with_document(self.document_index)
            raise
        except (ValueError, TypeError, KeyError, IndexError, AttributeError, OverflowError, RecursionError) as exc:
            raise MalformedObjectError(
                f"Corrupt PDF structure: {exc}", document_index=self.document_index, cause=exc
            ) from exc
        LOGGER.debug(
            "Resolved document %s: version %s, %d page(s), %d object(s)",
            self.document_index,
            version,
            len(pages),
            len(entries),
        )
        return ResolvedDocument(
            index=self.document_index,
            version=version,
            trailer=trailer,
            entries=entries,
            catalog_ref=catalog_ref,
            pages=pages,
            xref_kind=self.xref_kind,
            resolver=self,
            reachable=reachable,
            tree_nodes=frozenset(self._tree_nodes),
        )

    def _check_cancelled(self) -> None:
        if self._cancel_event is not None and self._cancel_event.is_set():
            raise MergeCancelledError(document_index=self.document_index)


def resolve_document(
    buffer: bytes,
    *,
    document_index: int | None = None,
    cancel_event: threading.Event | None = None,
) -> ResolvedDocument:
    """Parse ``buffer`` and return its :class:`ResolvedDocument`."""

    resolver = CrossReferenceResolver(
        buffer, document_index=document_index, cancel_event=cancel_event
    )
    return resolver.parse()
