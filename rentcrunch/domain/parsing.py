# rentcrunch/domain/parsing.py
from __future__ import annotations

import math
import re
from typing import Any, Iterable

from .errors import InputError
from .types import SearchFilters


def to_int(x: Any) -> int | None:
    if x is None or x == "":
        return None
    try:
        return int(float(x))
    except (TypeError, ValueError, OverflowError):
        return None


def to_float(x: Any) -> float | None:
    if x is None or x == "":
        return None
    try:
        v = float(x)
    except (TypeError, ValueError):
        return None
    return v if math.isfinite(v) else None


_MONEY_JUNK = re.compile(r"[^\d.\-]")


def parse_money_input(text: Any, *, field: str = "price") -> float | None:
    """
    "$250,000" -> 250000.0, "" / None -> None.
    Anything else that does not parse to a finite, non-negative number is rejected.
    """
    if text is None:
        return None
    if isinstance(text, (int, float)) and not isinstance(text, bool):
        v = float(text)
    else:
        s = str(text).strip()
        if not s:
            return None
        cleaned = _MONEY_JUNK.sub("", s)
        v = to_float(cleaned)
        if v is None:
            raise InputError(f"Invalid {field}: {s!r} is not a number")
    if not math.isfinite(v):
        raise InputError(f"Invalid {field}: must be a finite number")
    if v < 0:
        raise InputError(f"Invalid {field}: must not be negative")
    return v


def normalize_location(location: Any) -> str:
    s = re.sub(r"\s+", " ", str(location or "")).strip()
    if not s:
        raise InputError("Please enter a location (city, ZIP code or address)")
    if len(s) > 200:
        raise InputError("Location is too long")
    if not re.search(r"[A-Za-z0-9]", s):
        raise InputError(f"Invalid location: {s!r}")
    return s


_STREET_SUFFIXES = (
    "st", "street", "ave", "avenue", "rd", "road", "dr", "drive", "ln", "lane",
    "blvd", "boulevard", "ct", "court", "way", "pl", "place", "ter", "terrace",
    "cir", "circle", "pkwy", "parkway", "hwy", "highway", "trl", "trail",
)
_ADDRESS_RE = re.compile(
    r"^\s*\d+[a-z]?\s+(?:[nsew]\.?\s+)?[a-z0-9.'\- ]+?\s(?:" + "|".join(_STREET_SUFFIXES) + r")\b\.?",
    re.IGNORECASE,
)


def looks_like_address(location: str) -> bool:
    """'123 Main St, Detroit, MI' -> True; 'Detroit, MI' / '48009' -> False."""
    return bool(_ADDRESS_RE.match(location or ""))


def _choices(values: Iterable[Any] | None, *, field: str, cast: type) -> tuple:
    out = []
    for v in values or ():
        n = to_float(v)
        if n is None or n < 0:
            raise InputError(f"Invalid {field} filter value: {v!r}")
        out.append(cast(n))
    return tuple(sorted(set(out)))


def build_filters(
    *,
    min_price: Any = None,
    max_price: Any = None,
    bedrooms: Iterable[Any] | None = None,
    bathrooms: Iterable[Any] | None = None,
    min_ratio: Any = None,
    property_type: str | None = None,
) -> SearchFilters:
    """Validate raw (typically text) filter inputs into SearchFilters."""
    lo = parse_money_input(min_price, field="minimum price")
    hi = parse_money_input(max_price, field="maximum price")
    if hi == 0:
        hi = None  # 0 means "no maximum"
    if lo is not None and hi is not None and lo > hi:
        raise InputError("Minimum price must not exceed maximum price")

    ratio = None
    if min_ratio not in (None, ""):
        ratio = to_float(min_ratio)
        if ratio is None or ratio < 0:
            raise InputError(f"Invalid minimum ratio: {min_ratio!r}")

    return SearchFilters(
        min_price=lo,
        max_price=hi,
        bedrooms=_choices(bedrooms, field="bedrooms", cast=int),
        bathrooms=_choices(bathrooms, field="bathrooms", cast=float),
        min_ratio=ratio,
        property_type=(property_type or "Houses").strip() or "Houses",
    )
