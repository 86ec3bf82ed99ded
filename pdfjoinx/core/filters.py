"""Stream filter helpers backed by :mod:`pypdf.filters`.

Only the filters needed to read object streams and cross-reference streams
are supported. Page content streams are copied verbatim by the merge engine
and never decoded.
"""

from __future__ import annotations

from typing import Any

from pypdf.filters import FlateDecode
from pypdf.generic import DictionaryObject, NameObject, NumberObject

from ..exceptions import MalformedObjectError
from .objects import PdfStream

__all__ = ["decode_stream", "flate_encode"]


def _decode_parms(parms: Any) -> DictionaryObject | None:
    if isinstance(parms, list):
        parms = next((item for item in parms if isinstance(item, dict)), None)
    if not isinstance(parms, dict):
        return None
    converted = DictionaryObject()
    for key, value in parms.items():
        if isinstance(value, bool) or not isinstance(value, int):
            continue
        converted[NameObject(f"/{key}")] = NumberObject(value)
    return converted


def decode_stream(stream: PdfStream) -> bytes:
    """Return the decoded body of ``stream``."""

    filters = stream.filters
    if not filters:
        return stream.data
    if filters != ["FlateDecode"]:
        raise MalformedObjectError(f"Unsupported stream filter chain: {filters}")
    try:
        return FlateDecode.decode(stream.data, _decode_parms(stream.dictionary.get("DecodeParms")))
    except Exception as exc:
        raise MalformedObjectError("Unable to decode Flate stream", cause=exc) from exc


def flate_encode(data: bytes) -> bytes:
    return FlateDecode.encode(data)
