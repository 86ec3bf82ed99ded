"""Utility helpers for the :mod:`pdfjoinx.merge` package."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Union

PathLike = Union[str, Path]


def ensure_path(path: PathLike) -> Path:
    """Absolute form of an input or output location, with ``~`` expanded.

    The path does not have to exist yet: missing inputs are filtered later by
    :func:`is_regular_file` and output parents are created on write.
    """

    return Path(path).expanduser().resolve(strict=False)


def ensure_iterable(paths: Iterable[PathLike | None]) -> list[Path | None]:
    """Convert an iterable of paths to :class:`Path` objects, keeping ``None`` slots."""

    return [None if path is None else ensure_path(path) for path in paths]


def is_regular_file(path: Path | None) -> bool:
    return path is not None and path.exists() and path.is_file()


__all__ = ["PathLike", "ensure_path", "ensure_iterable", "is_regular_file"]
