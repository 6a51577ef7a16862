from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Union

from recordquery.core.errors import MalformedRangeError, TypeMismatchError
from recordquery.schemas.filter_set import RangeValue

# Tried in order; the first layout that parses wins.
DATETIME_LAYOUTS = (
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%a, %d %b %Y %H:%M:%S %Z",
    "%a, %d %b %Y %H:%M:%S %z",
    "%d %b %y %H:%M %Z",
    "%d %b %y %H:%M %z",
    "%A, %d-%b-%y %H:%M:%S %Z",
    "%a %b %d %H:%M:%S %Y",
    "%a %b %d %H:%M:%S %Z %Y",
    "%a %b %d %H:%M:%S %z %Y",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%d %H:%M:%S.%f",
    "%Y-%m-%d %H:%M:%S%z",
    "%m/%d/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M:%S",
    "%a %b %d %Y %H:%M:%S %z",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%dT%H:%M:%S",
    "%Y/%m/%d %H:%M:%S%z",
    "%Y/%m/%d %H:%M:%S %Z",
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%d/%m/%Y",
)

TIME_LAYOUTS = (
    "%I:%M%p",
    "%H:%M:%S",
    "%H:%M",
    "%H:%M:%S.%f",
    "%I:%M:%S %p",
    "%I:%M %p",
    "%H:%M:%S%z",
    "%H:%M:%S %Z",
    "%I:%M:%S %p %Z",
)

# Time-of-day values are compared on this date only.
REFERENCE_DATE = date(2000, 1, 1)

_FRACTION_RE = re.compile(r"(\.\d{6})\d+")
_BOOL_TRUE = {"1", "true", "yes", "y"}
_BOOL_FALSE = {"0", "false", "no", "n"}


@dataclass(frozen=True)
class NumberLiteral:
    value: float


@dataclass(frozen=True)
class TextLiteral:
    value: str


@dataclass(frozen=True)
class BoolLiteral:
    value: bool


@dataclass(frozen=True)
class DateLiteral:
    value: datetime
    has_time: bool

    @property
    def start_of_day(self) -> datetime:
        return self.value.replace(hour=0, minute=0, second=0, microsecond=0)

    @property
    def end_of_day(self) -> datetime:
        return self.start_of_day + timedelta(days=1) - timedelta(microseconds=1)


@dataclass(frozen=True)
class TimeLiteral:
    value: datetime


@dataclass(frozen=True)
class RangeLiteral:
    low: "ScalarLiteral"
    high: "ScalarLiteral"


ScalarLiteral = Union[NumberLiteral, TextLiteral, BoolLiteral, DateLiteral, TimeLiteral]
PredicateLiteral = Union[ScalarLiteral, RangeLiteral]


def _mismatch(field: str | None, kind: str, value: Any) -> TypeMismatchError:
    return TypeMismatchError(f'Invalid {kind} value for field "{field}": {value!r}', field=field)


def parse_number(value: Any, field: str | None = None) -> float:
    if isinstance(value, bool):
        raise _mismatch(field, "number", value)
    if isinstance(value, (int, float, Decimal)):
        return float(value)
    raise _mismatch(field, "number", value)


def parse_number_literal(value: Any, field: str | None = None) -> float:
    if isinstance(value, str):
        text = value.strip().replace(",", ".")
        if not text:
            raise _mismatch(field, "number", value)
        try:
            return float(Decimal(text))
        except (InvalidOperation, ValueError):
            raise _mismatch(field, "number", value)
    return parse_number(value, field)


def parse_text(value: Any, field: str | None = None) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise _mismatch(field, "text", value)
    return value


def canonical_text(value: str) -> str:
    return value.strip().lower()


def parse_bool(value: Any, field: str | None = None) -> bool:
    if isinstance(value, bool):
        return value
    raise _mismatch(field, "boolean", value)


def parse_bool_literal(value: Any, field: str | None = None) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value if value is not None else "").strip().lower()
    if text in _BOOL_TRUE:
        return True
    if text in _BOOL_FALSE:
        return False
    raise _mismatch(field, "boolean", value)


def _as_utc_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _strptime_first(text: str, layouts) -> datetime | None:
    candidate = _FRACTION_RE.sub(r"\1", text)
    for layout in layouts:
        try:
            return datetime.strptime(candidate, layout)
        except ValueError:
            continue
    return None


def parse_datetime(value: Any, field: str | None = None) -> datetime:
    """Coerce a record or literal value into an aware datetime (naive -> UTC)."""
    if isinstance(value, datetime):
        return _as_utc_aware(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    if isinstance(value, str):
        parsed = _strptime_first(value.strip(), DATETIME_LAYOUTS)
        if parsed is not None:
            return _as_utc_aware(parsed)
    raise _mismatch(field, "date", value)


def has_time_component(value: datetime) -> bool:
    return bool(value.hour or value.minute or value.second or value.microsecond)


def parse_time_of_day(value: Any, field: str | None = None) -> datetime:
    if isinstance(value, datetime):
        moment = value.time()
    elif isinstance(value, time):
        moment = value.replace(tzinfo=None)
    elif isinstance(value, str):
        text = value.strip()
        parsed = _strptime_first(text, TIME_LAYOUTS)
        if parsed is None:
            parsed = _strptime_first(text, DATETIME_LAYOUTS)
        if parsed is None:
            raise _mismatch(field, "time", value)
        moment = parsed.time()
    else:
        raise _mismatch(field, "time", value)
    return datetime.combine(REFERENCE_DATE, moment)


def _range_bounds(value: Any, field: str | None) -> tuple[Any, Any]:
    if isinstance(value, RangeValue):
        low, high = value.from_, value.to
    elif isinstance(value, Mapping):
        if "from" not in value or "to" not in value:
            raise MalformedRangeError(f'Range for field "{field}" must have both "from" and "to"', field=field)
        low, high = value["from"], value["to"]
    elif isinstance(value, (list, tuple)) and len(value) == 2:
        low, high = value
    else:
        raise MalformedRangeError(f'Invalid range value for field "{field}": {value!r}', field=field)
    if low is None or high is None:
        raise MalformedRangeError(f'Range for field "{field}" must have both "from" and "to"', field=field)
    return low, high


def number_range(value: Any, field: str | None = None) -> RangeLiteral:
    low, high = _range_bounds(value, field)
    return RangeLiteral(NumberLiteral(parse_number_literal(low, field)), NumberLiteral(parse_number_literal(high, field)))


def date_range(value: Any, field: str | None = None) -> RangeLiteral:
    low, high = (date_literal(bound, field) for bound in _range_bounds(value, field))
    if low.value > high.value:
        raise MalformedRangeError(f'Range "from" date is after "to" date for field "{field}"', field=field)
    return RangeLiteral(low, high)


def time_range(value: Any, field: str | None = None) -> RangeLiteral:
    low, high = (TimeLiteral(parse_time_of_day(bound, field)) for bound in _range_bounds(value, field))
    if low.value > high.value:
        raise MalformedRangeError(f'Range "from" time is after "to" time for field "{field}"', field=field)
    return RangeLiteral(low, high)


def date_literal(value: Any, field: str | None = None) -> DateLiteral:
    parsed = parse_datetime(value, field)
    return DateLiteral(parsed, has_time_component(parsed))
