"""Structural PDF primitives: tokenizer, object parser, xref resolver and serializer."""

from __future__ import annotations

from .lexer import Lexer, Token, TokenKind
from .objects import (
    IndirectObject,
    MergedDocument,
    PdfName,
    PdfReference,
    PdfStream,
    PdfString,
    XrefEntry,
)
from .parser import ObjectParser, parse_object_stream
from .writer import PdfSerializer, serialize
from .xref import CrossReferenceResolver, PageLeaf, ResolvedDocument, resolve_document

__all__ = [
    "Lexer",
    "Token",
    "TokenKind",
    "IndirectObject",
    "MergedDocument",
    "PdfName",
    "PdfReference",
    "PdfStream",
    "PdfString",
    "XrefEntry",
    "ObjectParser",
    "parse_object_stream",
    "PdfSerializer",
    "serialize",
    "CrossReferenceResolver",
    "PageLeaf",
    "ResolvedDocument",
    "resolve_document",
]
