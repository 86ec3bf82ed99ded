"""Structural merge engine.

Input documents are parsed independently on a thread pool. Renumbering into
the shared global object space and serialization then run on the calling
thread, so the global counter has a single writer.
"""

from __future__ import annotations

from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
import logging
import threading
from typing import Any, Iterable, Optional

from ..core.objects import MergedDocument, PdfName, PdfReference, PdfStream, map_references
from ..core.utils import text_string
from ..core.writer import PdfSerializer, version_key
from ..core.xref import ResolvedDocument, resolve_document
from ..exceptions import DocumentParseError, MergeCancelledError, NoContentError
from .options import MergeOptions

LOGGER = logging.getLogger("pdfjoinx.merge")

PdfSource = Optional[bytes | bytearray | memoryview]

_INFO_KEY_MAP = {
    "title": "Title",
    "author": "Author",
    "subject": "Subject",
    "keywords": "Keywords",
    "creator": "Creator",
    "producer": "Producer",
}


@dataclass(slots=True)
class SkippedDocument:
    """An input dropped in lenient mode, with the error that disqualified it."""

    index: int
    error: DocumentParseError


@dataclass(slots=True)
class MergeResult:
    data: bytes
    page_count: int
    object_count: int
    documents: int
    skipped: list[SkippedDocument] = field(default_factory=list)


class GlobalObjectSpace:
    """Injective mapping ``(document, object number) -> global number``."""

    def __init__(self) -> None:
        self._next = 1
        self._numbers: dict[tuple[int, int], int] = {}

    def allocate(self) -> int:
        number = self._next
        self._next += 1
        return number

    def assign(self, document: int, number: int) -> tuple[int, bool]:
        """Return the global number of a source object and whether it is new."""

        key = (document, number)
        existing = self._numbers.get(key)
        if existing is not None:
            return existing, False
        assigned = self.allocate()
        self._numbers[key] = assigned
        return assigned, True

    def lookup(self, document: int, number: int) -> int | None:
        return self._numbers.get((document, number))

    def __len__(self) -> int:
        return self._next - 1


class MergeEngine:
    """Concatenate PDF byte buffers into a single PDF document."""

    def __init__(self, options: MergeOptions | None = None, **overrides: Any) -> None:
        self.options = (options or MergeOptions()).with_overrides(**overrides)

    def merge(
        self,
        documents: Iterable[PdfSource],
        *,
        cancel_event: threading.Event | None = None,
    ) -> MergeResult:
        candidates: list[tuple[int, bytes]] = []
        for index, data in enumerate(documents):
            if not data:
                LOGGER.debug("Ignoring null or empty input #%d", index)
                continue
            candidates.append((index, bytes(data)))

        resolved, skipped = self._parse_all(candidates, cancel_event)
        if not resolved and not self.options.allow_empty:
            raise NoContentError("No usable PDF documents to merge")

        merged, page_count = self._assemble(resolved, cancel_event)
        data = PdfSerializer(xref_stream=self.options.xref_stream).serialize(merged)
        LOGGER.info(
            "Merged %d document(s) into %d page(s), %d object(s), %d byte(s)",
            len(resolved),
            page_count,
            len(merged.objects),
            len(data),
        )
        return MergeResult(
            data=data,
            page_count=page_count,
            object_count=len(merged.objects),
            documents=len(resolved),
            skipped=skipped,
        )

    # -- Parsing -------------------------------------------------------------

    def _parse_all(
        self,
        candidates: list[tuple[int, bytes]],
        cancel_event: threading.Event | None,
    ) -> tuple[list[ResolvedDocument], list[SkippedDocument]]:
        resolved: list[ResolvedDocument] = []
        skipped: list[SkippedDocument] = []
        if not candidates:
            return resolved, skipped

        with ThreadPoolExecutor(
            max_workers=self.options.workers, thread_name_prefix="pdfjoinx-parse"
        ) as executor:
            futures: list[tuple[int, Future[ResolvedDocument]]] = [
                (
                    index,
                    executor.submit(
                        resolve_document, data, document_index=index, cancel_event=cancel_event
                    ),
                )
                for index, data in candidates
            ]
            try:
                for index, future in futures:
                    try:
                        document = future.result()
                    except DocumentParseError as exc:
                        if self.options.strict:
                            raise
                        LOGGER.warning("Skipping document #%d: %s", index, exc)
                        skipped.append(SkippedDocument(index, exc))
                        continue
                    resolved.append(document)
            except BaseException:
                for _, future in futures:
                    future.cancel()
                raise

        self._check_cancelled(cancel_event)
        return resolved, skipped

    # -- Renumbering and assembly ------------------------------------------

    def _assemble(
        self,
        documents: list[ResolvedDocument],
        cancel_event: threading.Event | None,
    ) -> tuple[MergedDocument, int]:
        space = GlobalObjectSpace()
        objects: dict[int, Any] = {}
        catalog_number = space.allocate()
        pages_number = space.allocate()

        kids: list[PdfReference] = []
        first_pages: list[tuple[ResolvedDocument, int]] = []
        for position, document in enumerate(documents):
            self._check_cancelled(cancel_event)
            numbers = self._copy_document(position, document, pages_number, space, objects)
            LOGGER.debug(
                "Document #%s contributed %d page(s)", document.index, len(numbers)
            )
            kids.extend(PdfReference(number) for number in numbers)
            if numbers:
                first_pages.append((document, numbers[0]))

        objects[pages_number] = {
            "Type": PdfName("Pages"),
            "Kids": kids,
            "Count": len(kids),
        }
        catalog: dict[str, Any] = {"Type": PdfName("Catalog"), "Pages": PdfReference(pages_number)}
        if self.options.bookmarks is not None and first_pages:
            catalog["Outlines"] = PdfReference(self._build_outline(first_pages, space, objects))
            catalog["PageMode"] = PdfName("UseOutlines")
        objects[catalog_number] = catalog

        info_number = self._build_info(documents, space, objects)
        version = max(
            (document.version for document in documents), key=version_key, default="1.4"
        )
        if version_key(version) < (1, 4):
            version = "1.4"
        merged = MergedDocument(
            objects=objects, root=catalog_number, info=info_number, version=version
        )
        return merged, len(kids)

    def _copy_document(
        self,
        position: int,
        document: ResolvedDocument,
        pages_number: int,
        space: GlobalObjectSpace,
        objects: dict[int, Any],
    ) -> list[int]:
        """Renumber every page of ``document`` and its reachable objects."""

        resolver = document.resolver
        leaves = {leaf.reference.number: leaf for leaf in document.pages}
        pending: deque[tuple[int, int]] = deque()

        def remap(reference: PdfReference) -> PdfReference:
            if reference.number in document.tree_nodes:
                return PdfReference(pages_number)
            target, fresh = space.assign(position, reference.number)
            if fresh:
                pending.append((reference.number, target))
            return PdfReference(target)

        page_numbers: list[int] = []
        for leaf in document.pages:
            page_numbers.append(remap(leaf.reference).number)
            while pending:
                source, target = pending.popleft()
                page = leaves.get(source)
                if page is not None:
                    copied = map_references(resolver.page_dictionary(page), remap)
                    copied["Parent"] = PdfReference(pages_number)
                else:
                    copied = map_references(resolver.get_object(source), remap)
                objects[target] = copied
        return page_numbers

    def _build_outline(
        self,
        first_pages: list[tuple[ResolvedDocument, int]],
        space: GlobalObjectSpace,
        objects: dict[int, Any],
    ) -> int:
        titles = list(self.options.bookmarks or [])
        outline_number = space.allocate()
        item_numbers = [space.allocate() for _ in first_pages]
        for slot, ((document, page_number), item_number) in enumerate(zip(first_pages, item_numbers)):
            index = document.index if document.index is not None else slot
            title = titles[index] if index < len(titles) and titles[index] else f"Document {index + 1}"
            item: dict[str, Any] = {
                "Title": text_string(title),
                "Parent": PdfReference(outline_number),
                "Dest": [PdfReference(page_number), PdfName("Fit")],
            }
            if slot > 0:
                item["Prev"] = PdfReference(item_numbers[slot - 1])
            if slot + 1 < len(item_numbers):
                item["Next"] = PdfReference(item_numbers[slot + 1])
            objects[item_number] = item
        objects[outline_number] = {
            "Type": PdfName("Outlines"),
            "First": PdfReference(item_numbers[0]),
            "Last": PdfReference(item_numbers[-1]),
            "Count": len(item_numbers),
        }
        LOGGER.debug("Added %d bookmark(s) to merged PDF", len(item_numbers))
        return outline_number

    def _build_info(
        self,
        documents: list[ResolvedDocument],
        space: GlobalObjectSpace,
        objects: dict[int, Any],
    ) -> int | None:
        info: dict[str, Any] = {}
        if self.options.document_info:
            for key, value in self.options.document_info.items():
                if value is None:
                    continue
                string_value = str(value).strip()
                if not string_value:
                    continue
                pdf_key = _INFO_KEY_MAP.get(str(key).lower(), str(key).lstrip("/"))
                info[pdf_key] = text_string(string_value)
        elif self.options.metadata and documents:
            info = self._copy_info(documents[0])

        if not info:
            return None
        number = space.allocate()
        objects[number] = info
        return number

    def _copy_info(self, document: ResolvedDocument) -> dict[str, Any]:
        """Return the direct entries of ``document``'s ``/Info`` dictionary."""

        reference = document.trailer.get("Info")
        if reference is None:
            return {}
        try:
            info = document.resolver.resolve(reference)
        except DocumentParseError as exc:
            LOGGER.warning("Failed to capture metadata from document #%s: %s", document.index, exc)
            return {}
        if not isinstance(info, dict):
            return {}
        copied: dict[str, Any] = {}
        for key, value in info.items():
            try:
                value = document.resolver.resolve(value)
            except DocumentParseError as exc:
                LOGGER.warning("Dropping metadata entry /%s: %s", key, exc)
                continue
            if value is None or isinstance(value, (dict, list, PdfStream)):
                continue
            copied[key] = value
        return copied

    @staticmethod
    def _check_cancelled(cancel_event: threading.Event | None) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise MergeCancelledError()


def merge_bytes(
    documents: Iterable[PdfSource],
    *,
    options: MergeOptions | None = None,
    cancel_event: threading.Event | None = None,
    **overrides: Any,
) -> bytes:
    """Merge ``documents`` and return the merged PDF bytes."""

    engine = MergeEngine(options, **overrides)
    return engine.merge(documents, cancel_event=cancel_event).data


__all__ = [
    "GlobalObjectSpace",
    "MergeEngine",
    "MergeResult",
    "SkippedDocument",
    "merge_bytes",
]
