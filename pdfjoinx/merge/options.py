"""Configuration for merge operations."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Mapping, Sequence


@dataclass(frozen=True)
class MergeOptions:
    """Options controlling :class:`~pdfjoinx.merge.engine.MergeEngine`.

    Attributes:
        strict: Abort the whole merge when one document fails to parse
            instead of skipping it with a warning.
        allow_empty: When no usable document remains, produce a minimal
            document with an empty page tree instead of raising
            :class:`~pdfjoinx.exceptions.NoContentError`.
        workers: Number of parsing threads; ``None`` uses the executor
            default.
        xref_stream: Write a compressed cross-reference stream instead of a
            classic table.
        metadata: Copy the ``/Info`` dictionary of the first usable input.
        document_info: Explicit document information (``title``,
            ``author``, ``subject``, ``keywords`` or raw PDF keys). Takes
            precedence over ``metadata``.
        bookmarks: Outline titles, one per input document. When set, an
            outline item pointing at each document's first page is added.
    """

    strict: bool = False
    allow_empty: bool = False
    workers: int | None = None
    xref_stream: bool = False
    metadata: bool = True
    document_info: Mapping[str, object] | None = None
    bookmarks: Sequence[str] | None = None

    def __post_init__(self) -> None:
        if self.workers is not None and self.workers < 1:
            raise ValueError("workers must be a positive integer")

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> "MergeOptions":
        """Build options from a plain mapping, rejecting unknown keys."""

        known = {option.name for option in fields(cls)}
        unknown = sorted(set(config) - known)
        if unknown:
            raise ValueError(f"Unknown merge option(s): {', '.join(unknown)}")
        return cls(**dict(config))

    def with_overrides(self, **overrides: Any) -> "MergeOptions":
        if not overrides:
            return self
        return replace(self, **overrides)


__all__ = ["MergeOptions"]
