from __future__ import annotations

from functools import cmp_to_key
from typing import Any, Callable, Iterable, Sequence

from recordquery.core.errors import FilterError, TypeMismatchError
from recordquery.schemas.filter_set import SortClause, SortOrder
from recordquery.services.accessors import Accessor, FieldAccessorMap
from recordquery.services.literals import parse_bool, parse_datetime, parse_number, parse_time_of_day


def _strict_text(value: Any) -> str:
    if not isinstance(value, str):
        raise TypeMismatchError(f"Not a text value: {value!r}")
    return value


# Attempted in this order; the first coercion that succeeds for both operands decides.
_COERCIONS: tuple[Callable[[Any], Any], ...] = (
    parse_number,
    _strict_text,
    parse_bool,
    parse_datetime,
    parse_time_of_day,
)


def _sign(a, b) -> int:
    if a < b:
        return -1
    if a > b:
        return 1
    return 0


def compare_values(a: Any, b: Any) -> int:
    if a is None or b is None:
        if a is None and b is None:
            return 0
        return -1 if a is None else 1
    for coerce in _COERCIONS:
        try:
            left, right = coerce(a), coerce(b)
        except FilterError:
            continue
        return _sign(left, right)
    return 0


def resolve_sort_keys(sort_fields: Iterable[SortClause], accessors: FieldAccessorMap) -> list[tuple[Accessor, bool]]:
    """(accessor, descending) pairs; sort keys naming unknown fields are dropped."""
    keys = []
    for clause in sort_fields:
        accessor = accessors.resolve(clause.field)
        if accessor is None:
            continue
        keys.append((accessor, SortOrder(clause.order) is SortOrder.DESC))
    return keys


def compare_records(a: Any, b: Any, keys: Sequence[tuple[Accessor, bool]]) -> int:
    for accessor, descending in keys:
        result = compare_values(accessor(a), accessor(b))
        if descending:
            result = -result
        if result:
            return result
    return 0


def sort_records(records: list[Any], sort_fields: Iterable[SortClause], accessors: FieldAccessorMap) -> list[Any]:
    """Sort `records` in place and return it."""
    keys = resolve_sort_keys(sort_fields, accessors)
    if keys and len(records) > 1:
        records.sort(key=cmp_to_key(lambda a, b: compare_records(a, b, keys)))
    return records
