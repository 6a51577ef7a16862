from __future__ import annotations

import logging
import operator
from dataclasses import dataclass, field as dc_field
from typing import Any, Callable, Iterable

from recordquery.core.errors import TypeMismatchError, UnsupportedDataTypeError, UnsupportedModeError
from recordquery.schemas.filter_set import DataType, FilterClause, Mode
from recordquery.services.accessors import Accessor, FieldAccessorMap
from recordquery.services.literals import (
    BoolLiteral,
    NumberLiteral,
    PredicateLiteral,
    TextLiteral,
    TimeLiteral,
    canonical_text,
    date_literal,
    date_range,
    number_range,
    parse_bool,
    parse_bool_literal,
    parse_datetime,
    parse_number,
    parse_number_literal,
    parse_text,
    parse_time_of_day,
    time_range,
)

_LOG = logging.getLogger("recordquery.evaluator")

_RELATIONS: dict[Mode, Callable[[Any, Any], bool]] = {
    Mode.EQUAL: operator.eq,
    Mode.NOT_EQUAL: operator.ne,
    Mode.GT: operator.gt,
    Mode.AFTER: operator.gt,
    Mode.GTE: operator.ge,
    Mode.LT: operator.lt,
    Mode.BEFORE: operator.lt,
    Mode.LTE: operator.le,
}

_OPERANDLESS_MODES = {Mode.IS_EMPTY, Mode.IS_NOT_EMPTY}


@dataclass(frozen=True)
class Predicate:
    field: str
    mode: Mode
    data_type: DataType
    value: PredicateLiteral | None
    accessor: Accessor | None = dc_field(default=None, compare=False, repr=False)


def _number_literal(value, mode: Mode, field: str) -> PredicateLiteral:
    if mode is Mode.RANGE:
        return number_range(value, field)
    return NumberLiteral(parse_number_literal(value, field))


def _text_literal(value, mode: Mode, field: str) -> PredicateLiteral | None:
    if mode in _OPERANDLESS_MODES:
        return None
    if not isinstance(value, str):
        raise TypeMismatchError(f'Invalid text value for field "{field}": {value!r}', field=field)
    return TextLiteral(canonical_text(value))


def _bool_literal(value, mode: Mode, field: str) -> PredicateLiteral:
    return BoolLiteral(parse_bool_literal(value, field))


def _date_literal(value, mode: Mode, field: str) -> PredicateLiteral:
    if mode is Mode.RANGE:
        return date_range(value, field)
    return date_literal(value, field)


def _time_literal(value, mode: Mode, field: str) -> PredicateLiteral:
    if mode is Mode.RANGE:
        return time_range(value, field)
    return TimeLiteral(parse_time_of_day(value, field))


def _match_number(raw: Any, p: Predicate) -> bool:
    if raw is None:
        return p.mode is Mode.NOT_EQUAL
    number = parse_number(raw, p.field)
    if p.mode is Mode.RANGE:
        return p.value.low.value <= number <= p.value.high.value
    return _RELATIONS[p.mode](number, p.value.value)


def _match_text(raw: Any, p: Predicate) -> bool:
    data = canonical_text(parse_text(raw, p.field))
    mode = p.mode
    if mode is Mode.IS_EMPTY:
        return data == ""
    if mode is Mode.IS_NOT_EMPTY:
        return data != ""
    needle = p.value.value
    if mode is Mode.EQUAL:
        return data == needle
    if mode is Mode.NOT_EQUAL:
        return data != needle
    if mode is Mode.CONTAINS:
        return needle in data
    if mode is Mode.NOT_CONTAINS:
        return needle not in data
    if mode is Mode.STARTS_WITH:
        return data.startswith(needle)
    return data.endswith(needle)


def _match_bool(raw: Any, p: Predicate) -> bool:
    if raw is None:
        return p.mode is Mode.NOT_EQUAL
    return _RELATIONS[p.mode](parse_bool(raw, p.field), p.value.value)


def _match_date(raw: Any, p: Predicate) -> bool:
    if raw is None:
        return p.mode is Mode.NOT_EQUAL
    moment = parse_datetime(raw, p.field)
    literal = p.value
    if p.mode is Mode.RANGE:
        low = literal.low.value if literal.low.has_time else literal.low.start_of_day
        high = literal.high.value if literal.high.has_time else literal.high.end_of_day
        return low <= moment <= high
    if literal.has_time:
        return _RELATIONS[p.mode](moment, literal.value)

    # Date-only literal: compare against the whole calendar day.
    start, end = literal.start_of_day, literal.end_of_day
    if p.mode is Mode.EQUAL:
        return start <= moment <= end
    if p.mode is Mode.NOT_EQUAL:
        return moment < start or moment > end
    if p.mode in (Mode.GT, Mode.AFTER):
        return moment > end
    if p.mode is Mode.GTE:
        return moment >= start
    if p.mode in (Mode.LT, Mode.BEFORE):
        return moment < start
    return moment <= end


def _match_time(raw: Any, p: Predicate) -> bool:
    if raw is None:
        return p.mode is Mode.NOT_EQUAL
    moment = parse_time_of_day(raw, p.field)
    if p.mode is Mode.RANGE:
        return p.value.low.value <= moment <= p.value.high.value
    return _RELATIONS[p.mode](moment, p.value.value)


@dataclass(frozen=True)
class _TypeRules:
    modes: frozenset
    decode: Callable[[Any, Mode, str], PredicateLiteral | None]
    match: Callable[[Any, Predicate], bool]


_RELATIONAL_MODES = frozenset({Mode.EQUAL, Mode.NOT_EQUAL, Mode.GT, Mode.GTE, Mode.LT, Mode.LTE, Mode.RANGE})
_TEMPORAL_MODES = _RELATIONAL_MODES | {Mode.BEFORE, Mode.AFTER}

RULES: dict[DataType, _TypeRules] = {
    DataType.NUMBER: _TypeRules(_RELATIONAL_MODES, _number_literal, _match_number),
    DataType.TEXT: _TypeRules(
        frozenset(
            {
                Mode.EQUAL,
                Mode.NOT_EQUAL,
                Mode.CONTAINS,
                Mode.NOT_CONTAINS,
                Mode.STARTS_WITH,
                Mode.ENDS_WITH,
                Mode.IS_EMPTY,
                Mode.IS_NOT_EMPTY,
            }
        ),
        _text_literal,
        _match_text,
    ),
    DataType.BOOL: _TypeRules(frozenset({Mode.EQUAL, Mode.NOT_EQUAL}), _bool_literal, _match_bool),
    DataType.DATE: _TypeRules(_TEMPORAL_MODES, _date_literal, _match_date),
    DataType.TIME: _TypeRules(_TEMPORAL_MODES, _time_literal, _match_time),
}


def _rules_for(clause: FilterClause) -> _TypeRules:
    try:
        data_type = DataType(clause.data_type)
    except ValueError:
        raise UnsupportedDataTypeError(f"Unsupported data type: {clause.data_type}", field=clause.field)
    return RULES[data_type]


def compile_predicate(clause: FilterClause, accessor: Accessor | None = None) -> Predicate:
    rules = _rules_for(clause)
    data_type = DataType(clause.data_type)
    try:
        mode = Mode(clause.mode)
    except ValueError:
        raise UnsupportedModeError(f"Unsupported filter mode: {clause.mode}", field=clause.field, mode=str(clause.mode))
    if mode not in rules.modes:
        raise UnsupportedModeError(
            f'{mode.value} filter not supported for {data_type.value} field "{clause.field}"',
            field=clause.field,
            mode=mode.value,
        )
    literal = rules.decode(clause.value, mode, clause.field)
    return Predicate(field=clause.field, mode=mode, data_type=data_type, value=literal, accessor=accessor)


def compile_predicates(clauses: Iterable[FilterClause], accessors: FieldAccessorMap) -> list[Predicate]:
    """Build predicates for every clause whose field resolves; others are skipped."""
    out = []
    for clause in clauses:
        accessor = accessors.resolve(clause.field)
        if accessor is None:
            _LOG.debug("skipping filter on unknown field %r", clause.field)
            continue
        out.append(compile_predicate(clause, accessor))
    return out


def evaluate(predicate: Predicate, record: Any) -> bool:
    return RULES[predicate.data_type].match(predicate.accessor(record), predicate)


def matches_value(predicate: Predicate, value: Any) -> bool:
    return RULES[predicate.data_type].match(value, predicate)
