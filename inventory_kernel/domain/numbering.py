"""
Document number formatting.

Numbers look like ``MOV-2026-00042``: prefix, four-digit year and a
zero-padded counter value.  Values beyond the pad width keep growing
(``MOV-2026-100000``); nothing is ever truncated.
"""

import re
from typing import NamedTuple

DEFAULT_WIDTH = 5

_NUMBER_RE = re.compile(r"^(?P<prefix>[A-Z]+)-(?P<year>\d{4})-(?P<value>\d+)$")


class DocumentNumber(NamedTuple):
    prefix: str
    year: int
    value: int


def format_document_number(
    prefix: str, year: int, value: int, width: int = DEFAULT_WIDTH
) -> str:
    """Render ``prefix``, ``year`` and counter ``value`` as a document number."""
    if value < 1:
        raise ValueError(f"sequence value must be >= 1, got {value}")
    if not 1 <= year <= 9999:
        raise ValueError(f"year out of range: {year}")
    return f"{prefix}-{year:04d}-{value:0{width}d}"


def parse_document_number(number: str) -> DocumentNumber:
    """Inverse of ``format_document_number``; raises ValueError if malformed."""
    match = _NUMBER_RE.match(number)
    if match is None:
        raise ValueError(f"not a document number: {number!r}")
    return DocumentNumber(
        prefix=match.group("prefix"),
        year=int(match.group("year")),
        value=int(match.group("value")),
    )
