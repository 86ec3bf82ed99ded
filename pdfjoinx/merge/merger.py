"""File and stream facade over :class:`~pdfjoinx.merge.engine.MergeEngine`.

:class:`PdfMerger` offers the four classic entry points: byte buffers or
file paths in, and a writable binary stream or a destination path out. The
merged document is fully assembled in memory before anything is written.
"""

from __future__ import annotations

import logging
from pathlib import Path
import threading
from typing import Any, BinaryIO, Iterable, Union

from ..exceptions import IOFailure
from .engine import MergeEngine, MergeResult, PdfSource
from .options import MergeOptions
from .utils import PathLike, ensure_iterable, ensure_path, is_regular_file

LOGGER = logging.getLogger("pdfjoinx.merge")

Destination = Union[BinaryIO, PathLike]


def _read_input(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        LOGGER.error("Failed to read PDF %s: %s", path, exc)
        raise IOFailure(f"Unable to read PDF: {path}", cause=exc) from exc


def _dump(data: bytes, out: Destination) -> Path | None:
    """Write ``data`` to a stream (flushed, left open) or to a path."""

    if hasattr(out, "write"):
        try:
            out.write(data)  # type: ignore[union-attr]
            out.flush()  # type: ignore[union-attr]
        except (OSError, ValueError) as exc:
            LOGGER.error("Failed to write merged PDF to stream: %s", exc)
            raise IOFailure("Failed to write merged PDF to stream", cause=exc) from exc
        return None

    output_path = ensure_path(out)  # type: ignore[arg-type]
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with output_path.open("wb") as output_handle:
            output_handle.write(data)
    except OSError as exc:
        LOGGER.error("Failed to write merged PDF to %s: %s", output_path, exc)
        raise IOFailure(f"Failed to write merged PDF to {output_path}", cause=exc) from exc
    return output_path


class PdfMerger:
    """Merge several PDF documents into a single one."""

    def __init__(self, options: MergeOptions | None = None, **overrides: Any) -> None:
        self.engine = MergeEngine(options, **overrides)

    @property
    def options(self) -> MergeOptions:
        return self.engine.options

    def merge(
        self,
        pdfs: Iterable[PdfSource],
        out: Destination,
        *,
        cancel_event: threading.Event | None = None,
    ) -> MergeResult:
        """Merge PDF byte buffers and dump the result to ``out``.

        Args:
            pdfs: PDF contents; ``None`` and empty buffers are ignored.
            out: A writable binary stream, which is flushed but not closed,
                or a destination path, which is created or truncated.
            cancel_event: Optional event aborting the merge when set.

        Raises:
            PdfMergeError: If merging fails; output failures raise
                :class:`~pdfjoinx.exceptions.IOFailure`.
        """

        result = self.engine.merge(pdfs, cancel_event=cancel_event)
        destination = _dump(result.data, out)
        if destination is not None:
            LOGGER.info("Wrote %d page(s) to %s", result.page_count, destination)
        return result

    def merge_files(
        self,
        pdfs: Iterable[PathLike | None],
        out: Destination,
        *,
        cancel_event: threading.Event | None = None,
    ) -> MergeResult:
        """Merge PDF files and dump the result to ``out``.

        ``None`` entries, missing paths and non-regular files are ignored;
        they keep their slot so document indices in errors and in
        :attr:`MergeResult.skipped` match positions in ``pdfs``.
        """

        contents: list[bytes | None] = []
        for path in ensure_iterable(pdfs):
            if path is None or not is_regular_file(path):
                LOGGER.debug("Ignoring missing or non-regular input %s", path)
                contents.append(None)
                continue
            LOGGER.debug("Reading input PDF %s", path)
            contents.append(_read_input(path))
        return self.merge(contents, out, cancel_event=cancel_event)


def merge_pdfs(
    inputs: Iterable[PathLike],
    output: PathLike,
    *,
    options: MergeOptions | None = None,
    **overrides: Any,
) -> Path:
    """Merge *inputs* into *output* and return the resulting path.

    Args:
        inputs: An iterable of file paths to merge.
        output: The output file path that will contain the merged PDF.
        options: Base :class:`MergeOptions`; keyword arguments override
            individual fields (``strict=True``, ``bookmarks=[...]``...).

    Raises:
        PdfMergeError: If merging fails for any reason.
    """

    output_path = ensure_path(output)
    PdfMerger(options, **overrides).merge_files(inputs, output_path)
    return output_path


__all__ = ["PdfMerger", "merge_pdfs"]
