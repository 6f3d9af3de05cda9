# rentcrunch/domain/sorting.py
from __future__ import annotations

import locale
import math
from typing import TYPE_CHECKING, Any, Iterable

from .financial import cashflow
from .scoring import crunch_score
from .types import CashflowSettings, Property, SortDirection, SortKey

if TYPE_CHECKING:
    from .overrides import OverrideStore


PRICE_DEPENDENT_KEYS = frozenset({SortKey.price, SortKey.ratio, SortKey.cashflow, SortKey.score})
RENT_DEPENDENT_KEYS = frozenset({SortKey.rent_estimate, SortKey.ratio, SortKey.cashflow, SortKey.score})
SETTINGS_DEPENDENT_KEYS = frozenset({SortKey.cashflow, SortKey.score})
STRING_KEYS = frozenset({SortKey.address})


def _effective(prop: Property, overrides: "OverrideStore | None") -> Property:
    return overrides.effective(prop) if overrides is not None else prop


def sort_key_value(
    prop: Property,
    key: SortKey,
    overrides: "OverrideStore | None" = None,
    settings: CashflowSettings | None = None,
) -> Any:
    """
    Value compared for `key`. Overrides are resolved before any computed key.
    Returns None for missing values.
    """
    eff = _effective(prop, overrides)

    if key == SortKey.price:
        return eff.price
    if key == SortKey.ratio:
        return eff.rent_estimate / eff.price if eff.price > 0 else 0.0
    if key in (SortKey.cashflow, SortKey.score):
        s = settings or CashflowSettings.from_settings()
        cf = cashflow(eff, s)
        if key == SortKey.cashflow:
            return cf.monthly_cashflow
        return crunch_score(eff, s, cf)
    if key == SortKey.rent_estimate:
        return eff.rent_estimate
    if key == SortKey.address:
        return eff.address or None
    return getattr(eff, SortKey(key).value)


def _is_missing(v: Any) -> bool:
    return v is None or (isinstance(v, float) and math.isnan(v))


def sort_properties(
    properties: Iterable[Property],
    key: SortKey | str | None,
    direction: SortDirection | str = SortDirection.asc,
    overrides: "OverrideStore | None" = None,
    settings: CashflowSettings | None = None,
) -> list[Property]:
    """
    Stable sort. Missing values are the lowest value when ascending and the
    highest when descending, so they always lead the list. key=None keeps input order.
    """
    items = list(properties)
    if key is None:
        return items

    key = SortKey(key)
    descending = SortDirection(direction) == SortDirection.desc
    is_string = key in STRING_KEYS
    placeholder: Any = "" if is_string else 0.0

    # Computed keys are evaluated once per property, not once per comparison.
    decorated = []
    for prop in items:
        v = sort_key_value(prop, key, overrides, settings)
        missing = _is_missing(v)
        if missing:
            v = placeholder
        elif is_string:
            v = locale.strxfrm(str(v).casefold())
        # asc: missing rank 0 sorts first; desc (reversed): missing rank 1 sorts first
        rank = (1 if missing else 0) if descending else (0 if missing else 1)
        decorated.append(((rank, v), prop))

    # sorted(reverse=True) keeps equal elements in input order, so both directions are stable.
    decorated.sort(key=lambda pair: pair[0], reverse=descending)
    return [prop for _, prop in decorated]
