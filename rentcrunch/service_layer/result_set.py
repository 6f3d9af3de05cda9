# rentcrunch/service_layer/result_set.py
from __future__ import annotations

from dataclasses import replace
from typing import Iterable, Iterator

from ..domain.types import Property


def merge_mutable_fields(existing: Property, incoming: Property) -> Property:
    """
    Listing facts are fixed once fetched; only the rent estimate (and its
    provenance) and a newly learned days-on-market may change.
    """
    return replace(
        existing,
        rent_estimate=incoming.rent_estimate,
        rent_source=incoming.rent_source,
        days_on_market=(
            incoming.days_on_market if incoming.days_on_market is not None else existing.days_on_market
        ),
    )


class ResultSet:
    """
    Ordered, id-unique property list. Owned by one SearchSession; not thread-safe.
    """

    def __init__(self) -> None:
        self._items: list[Property] = []
        self._index: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, property_id: object) -> bool:
        return property_id in self._index

    def __iter__(self) -> Iterator[Property]:
        return iter(list(self._items))

    def get(self, property_id: str) -> Property | None:
        i = self._index.get(property_id)
        return None if i is None else self._items[i]

    def snapshot(self) -> tuple[Property, ...]:
        return tuple(self._items)

    def clear(self) -> None:
        self._items.clear()
        self._index.clear()

    def insert(self, prop: Property) -> bool:
        """Append; False (and no change) if the id is already present."""
        if prop.property_id in self._index:
            return False
        self._index[prop.property_id] = len(self._items)
        self._items.append(prop)
        return True

    def update_in_place(self, prop: Property) -> bool:
        """Replace mutable fields of an existing entry, keeping its position. True if anything changed."""
        i = self._index.get(prop.property_id)
        if i is None:
            return False
        merged = merge_mutable_fields(self._items[i], prop)
        if merged == self._items[i]:
            return False
        self._items[i] = merged
        return True

    def reorder(self, ordered: Iterable[Property]) -> None:
        """Adopt a new order. Must be a permutation of the current ids."""
        items = list(ordered)
        ids = [p.property_id for p in items]
        if len(items) != len(self._items) or set(ids) != set(self._index):
            raise ValueError("reorder() must receive a permutation of the current result set")
        self._items = items
        self._index = {pid: i for i, pid in enumerate(ids)}
