"""Utility helpers for the VinylMatch service."""

from __future__ import annotations

import math
import re
from typing import Any


YEAR_RE = re.compile(r"\d{4}")
ARTIST_TITLE_SEPARATOR = " - "
UNKNOWN_ARTIST = "Unknown Artist"

COUNTRY_ALIASES = {
    "US": "United States",
    "USA": "United States",
    "UK": "United Kingdom",
}


def as_int(value: Any, default: int = 0) -> int:
    """Coerce loosely typed upstream numbers, falling back to ``default``."""

    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return default
    return default


def parse_year(value: Any) -> int:
    """Return a release year, or 0 when the value does not carry one."""

    if isinstance(value, int) and not isinstance(value, bool):
        return max(value, 0)
    if not value:
        return 0
    match = YEAR_RE.search(str(value))
    if not match:
        return 0
    return int(match.group(0))


def split_artist_title(raw: Any) -> tuple[str, str]:
    """Split a combined ``"Artist - Title"`` search label.

    Only the first separator divides artist from title; later separators stay
    part of the title. Labels without a separator keep the raw string as the
    title and report an unknown artist.
    """

    text = str(raw or "")
    if ARTIST_TITLE_SEPARATOR not in text:
        return UNKNOWN_ARTIST, text.strip() or "Unknown"
    artist, title = text.split(ARTIST_TITLE_SEPARATOR, 1)
    artist = artist.strip() or UNKNOWN_ARTIST
    return artist, title.strip() or text


def normalize_country(value: Any) -> str | None:
    """Return a display country name, merging common abbreviations."""

    if not isinstance(value, str):
        return None
    country = value.strip()
    if not country:
        return None
    return COUNTRY_ALIASES.get(country, country)


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up."""

    return int(math.floor(value + 0.5))
