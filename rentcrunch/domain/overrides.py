# rentcrunch/domain/overrides.py
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Callable, Mapping

from .parsing import parse_money_input
from .types import Property

log = logging.getLogger(__name__)

OverrideListener = Callable[[str, str, float | None], None]  # (kind, property_id, value)


class OverrideStore:
    """
    User-entered price/rent overrides keyed by property id.

    Absence of an entry means "use the property's own value". Every downstream
    calculation goes through effective_price/effective_rent (or effective()).
    """

    def __init__(self) -> None:
        self._price: dict[str, float] = {}
        self._rent: dict[str, float] = {}
        self._listeners: list[OverrideListener] = []

    # -------------------------
    # Mutators
    # -------------------------

    def set_price(self, property_id: str, value: Any) -> float | None:
        """Set (or clear with None/"") a price override. Returns the stored value."""
        return self._set(self._price, "price", property_id, value)

    def set_rent(self, property_id: str, value: Any) -> float | None:
        return self._set(self._rent, "rent", property_id, value)

    def clear(self) -> None:
        for pid in list(self._price):
            self.set_price(pid, None)
        for pid in list(self._rent):
            self.set_rent(pid, None)

    def _set(self, table: dict[str, float], kind: str, property_id: str, value: Any) -> float | None:
        parsed = parse_money_input(value, field=f"{kind} override")
        if parsed is None:
            if table.pop(property_id, None) is None:
                return None
        else:
            if table.get(property_id) == parsed:
                return parsed
            table[property_id] = parsed
        self._notify(kind, property_id, parsed)
        return parsed

    # -------------------------
    # Lookups
    # -------------------------

    def price_for(self, property_id: str) -> float | None:
        return self._price.get(property_id)

    def rent_for(self, property_id: str) -> float | None:
        return self._rent.get(property_id)

    def effective_price(self, prop: Property) -> float:
        v = self._price.get(prop.property_id)
        return prop.price if v is None else v

    def effective_rent(self, prop: Property) -> float:
        v = self._rent.get(prop.property_id)
        return prop.rent_estimate if v is None else v

    def effective(self, prop: Property) -> Property:
        """The property with overrides substituted (same instance when none apply)."""
        price = self._price.get(prop.property_id)
        rent = self._rent.get(prop.property_id)
        if price is None and rent is None:
            return prop
        return replace(
            prop,
            price=prop.price if price is None else price,
            rent_estimate=prop.rent_estimate if rent is None else rent,
        )

    def __len__(self) -> int:
        return len(set(self._price) | set(self._rent))

    # -------------------------
    # Mirroring (external key/value persistence)
    # -------------------------

    def subscribe(self, listener: OverrideListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self, kind: str, property_id: str, value: float | None) -> None:
        for fn in list(self._listeners):
            try:
                fn(kind, property_id, value)
            except Exception:
                log.exception("override listener failed kind=%s property_id=%s", kind, property_id)

    def to_dict(self) -> dict[str, dict[str, float]]:
        return {"price": dict(self._price), "rent": dict(self._rent)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Mapping[str, Any]] | None) -> "OverrideStore":
        """Rebuild from to_dict() output; unparsable entries are skipped."""
        store = cls()
        for kind, table in (("price", store._price), ("rent", store._rent)):
            for pid, raw in dict((data or {}).get(kind) or {}).items():
                try:
                    v = parse_money_input(raw, field=f"{kind} override")
                except ValueError:
                    log.warning("dropping invalid %s override for %s: %r", kind, pid, raw)
                    continue
                if v is not None:
                    table[str(pid)] = v
        return store
