"""Admin table search: filter, direct match, fuzzy fallback, sort.

Pure functions over a collection of ``ShipmentRecord``; nothing here
touches the store.
"""

from __future__ import annotations

from typing import Iterable, List

from modules.shipments.constants import (
    DEFAULT_SORT_KEY,
    FILTER_ACTIVE,
    FILTER_ALL,
    FILTER_DELIVERED,
    FILTER_ON_HOLD,
    FILTER_TYPES,
    FUZZY_MAX_DISTANCE,
    FUZZY_MIN_QUERY_LENGTH,
    SORT_KEYS,
    ShipmentStatus,
)
from modules.shipments.dtos import ShipmentRecord
from modules.shipments.exceptions import ShipmentValidationError


def levenshtein(a: str, b: str) -> int:
    """Edit distance (insert, delete, substitute) between two strings."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        row = [i]
        for j, cb in enumerate(b, start=1):
            row.append(
                min(
                    previous[j] + 1,
                    row[j - 1] + 1,
                    previous[j - 1] + (ca != cb),
                )
            )
        previous = row
    return previous[-1]


def _fields(record: ShipmentRecord) -> List[str]:
    return [
        record.tracking_number,
        record.current_status,
        record.origin,
        record.destination,
    ]


def _initials(value: str) -> str:
    return "".join(word[0] for word in value.split())


def matches_directly(record: ShipmentRecord, query: str) -> bool:
    """Case-insensitive substring or word-initials prefix on any field."""
    needle = query.casefold()
    for value in _fields(record):
        text = value.casefold()
        if needle in text:
            return True
        if _initials(text).startswith(needle):
            return True
    return False


def matches_fuzzily(record: ShipmentRecord, query: str) -> bool:
    needle = query.casefold()
    for value in _fields(record):
        text = value.casefold()
        candidates = [text, *text.split()]
        if any(levenshtein(needle, c) <= FUZZY_MAX_DISTANCE for c in candidates):
            return True
    return False


def _passes_filter(record: ShipmentRecord, filter_type: str) -> bool:
    status = record.current_status
    if filter_type == FILTER_ACTIVE:
        return status != ShipmentStatus.DELIVERED
    if filter_type == FILTER_DELIVERED:
        return status == ShipmentStatus.DELIVERED
    if filter_type == FILTER_ON_HOLD:
        return status == ShipmentStatus.ON_HOLD
    return True


def search_records(
    records: Iterable[ShipmentRecord],
    query: str = "",
    filter_type: str = FILTER_ALL,
    sort_key: str = DEFAULT_SORT_KEY,
) -> List[ShipmentRecord]:
    """Filter, match and sort ``records`` for the admin table.

    An empty query keeps every filtered record.  When no record matches
    directly and the query is long enough, records within
    ``FUZZY_MAX_DISTANCE`` edits of a field or word are returned instead.
    """
    if filter_type not in FILTER_TYPES:
        raise ShipmentValidationError(f"Unknown filter type '{filter_type}'.")
    if sort_key not in SORT_KEYS:
        raise ShipmentValidationError(f"Unknown sort key '{sort_key}'.")

    pool = [r for r in records if _passes_filter(r, filter_type)]
    query = (query or "").strip()

    if query:
        direct = [r for r in pool if matches_directly(r, query)]
        if not direct and len(query) >= FUZZY_MIN_QUERY_LENGTH:
            direct = [r for r in pool if matches_fuzzily(r, query)]
        pool = direct

    attribute = SORT_KEYS[sort_key]
    return sorted(pool, key=lambda r: getattr(r, attribute).casefold())
