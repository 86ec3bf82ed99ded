"""Utilities shared by the pdfjoinx core and its command line interface."""

from __future__ import annotations

import logging

from .objects import PdfString


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.propagate = False
    return logger


def text_string(text: str) -> PdfString:
    """Encode ``text`` as a PDF text string (Latin-1 when possible, else UTF-16BE)."""

    try:
        return PdfString(text.encode("latin-1"))
    except UnicodeEncodeError:
        return PdfString(b"\xfe\xff" + text.encode("utf-16-be"))
