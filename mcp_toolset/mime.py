"""
Content sniffing for upload parts.

Only the first 512 bytes are inspected. Markup and byte-order marks are
checked first, then binary signatures through ``filetype``, then a plain
text heuristic.
"""

from __future__ import annotations

import logging

import filetype

from mcp_toolset.errors import FileAccessError

logger = logging.getLogger(__name__)

SNIFF_LENGTH = 512
DEFAULT_MIME = "application/octet-stream"
TEXT_MIME = "text/plain; charset=utf-8"

_BOMS = (
    (b"\xef\xbb\xbf", "text/plain; charset=utf-8"),
    (b"\xfe\xff", "text/plain; charset=utf-16be"),
    (b"\xff\xfe", "text/plain; charset=utf-16le"),
)

# Tags must be followed by a space or '>' to count as HTML
_HTML_TAGS = (
    b"<!DOCTYPE HTML", b"<HTML", b"<HEAD", b"<SCRIPT", b"<IFRAME", b"<H1",
    b"<DIV", b"<FONT", b"<TABLE", b"<A", b"<STYLE", b"<TITLE", b"<B",
    b"<BODY", b"<BR", b"<P", b"<!--",
)

# Control bytes that never show up in text
_BINARY_BYTES = frozenset(
    list(range(0x00, 0x09)) + [0x0B] + list(range(0x0E, 0x1B)) + list(range(0x1C, 0x20))
)


def detect_mime(path: str) -> str:
    """
    Classify a file by its leading bytes.

    Raises:
        FileAccessError: the file cannot be opened or read
    """
    try:
        with open(path, "rb") as f:
            head = f.read(SNIFF_LENGTH)
    except OSError as e:
        raise FileAccessError(path, e) from e

    mime = sniff(head)
    logger.debug(f"Detected {mime} for {path}")
    return mime


def sniff(head: bytes) -> str:
    """Classify a byte prefix; never fails."""
    head = head[:SNIFF_LENGTH]

    for bom, mime in _BOMS:
        if head.startswith(bom):
            return mime

    markup = _sniff_markup(head.lstrip(b"\t\n\x0c\r "))
    if markup:
        return markup

    kind = filetype.guess(head) if head else None
    if kind is not None:
        return kind.mime

    if any(b in _BINARY_BYTES for b in head):
        return DEFAULT_MIME
    return TEXT_MIME


def _sniff_markup(head: bytes) -> str | None:
    upper = head.upper()
    for tag in _HTML_TAGS:
        if upper.startswith(tag):
            rest = head[len(tag):len(tag) + 1]
            if tag == b"<!--" or rest in (b" ", b">"):
                return "text/html; charset=utf-8"
    if head.startswith(b"<?xml"):
        return "text/xml; charset=utf-8"
    return None
