from __future__ import annotations

import dataclasses
import logging
from datetime import date, datetime, time, timezone
from typing import Any, Mapping

from sqlalchemy import and_, asc, desc, false, func, inspect as sa_inspect, not_, or_
from sqlalchemy.orm import ColumnProperty, Query, RelationshipProperty, aliased

from recordquery.core.config import settings
from recordquery.schemas.filter_set import DataType, FilterSet, Logic, Mode, Page, SortOrder
from recordquery.services.evaluator import Predicate, compile_predicate
from recordquery.services.pagination import PaginationResult, normalize_page, total_page_count

_LOG = logging.getLogger("recordquery.sql_query")

# Positive form used for each negated mode; the negation also keeps NULL / missing rows.
_NEGATED = {
    Mode.NOT_EQUAL: Mode.EQUAL,
    Mode.NOT_CONTAINS: Mode.CONTAINS,
}


def _attribute_index(mapper) -> dict[str, Any]:
    index: dict[str, Any] = {}
    for prop in mapper.attrs:
        if prop.key.startswith("_"):
            continue
        info = prop.columns[0].info if isinstance(prop, ColumnProperty) and prop.columns else prop.info
        names = [prop.key, info.get("alias")]
        for name in names:
            if name:
                index.setdefault(name, prop)
        for name in names:
            if name:
                index.setdefault(name.lower(), prop)
    return index


def resolve_path(model, field: str):
    """(relationships, column property) for a dotted field, or None when it does not resolve."""
    parts = str(field or "").split(".")
    if len(parts) - 1 > settings.FILTER_MAX_DEPTH:
        return None
    mapper = sa_inspect(model)
    relationships = []
    for part in parts[:-1]:
        index = _attribute_index(mapper)
        prop = index.get(part) or index.get(part.lower())
        if not isinstance(prop, RelationshipProperty) or prop.uselist:
            return None
        relationships.append(prop)
        mapper = prop.mapper
    index = _attribute_index(mapper)
    prop = index.get(parts[-1]) or index.get(parts[-1].lower())
    if not isinstance(prop, ColumnProperty):
        return None
    return relationships, prop


def _column_python_type(col):
    try:
        return col.property.columns[0].type.python_type
    except Exception:
        return None


def _column_is_naive(col) -> bool:
    try:
        return not bool(getattr(col.property.columns[0].type, "timezone", False))
    except Exception:
        return True


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _text_condition(col, mode: Mode, needle: str | None):
    # NULL reads as the empty string.
    trimmed = func.trim(func.coalesce(col, ""))
    lowered = func.lower(trimmed)
    if mode is Mode.IS_NOT_EMPTY:
        return trimmed != ""
    escaped = _escape_like(needle)
    if mode is Mode.EQUAL:
        return lowered == needle
    if mode is Mode.CONTAINS:
        return lowered.like(f"%{escaped}%", escape="\\")
    if mode is Mode.STARTS_WITH:
        return lowered.like(f"{escaped}%", escape="\\")
    return lowered.like(f"%{escaped}", escape="\\")


def _relational(col, mode: Mode, value):
    if mode is Mode.EQUAL:
        return and_(col.isnot(None), col == value)
    if mode in (Mode.GT, Mode.AFTER):
        return col > value
    if mode is Mode.GTE:
        return col >= value
    if mode in (Mode.LT, Mode.BEFORE):
        return col < value
    return col <= value


def _db_datetime(col, value: datetime):
    if _column_is_naive(col):
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _utc_day(value: datetime) -> tuple[date, bool]:
    """UTC calendar day of an instant, and whether the instant is that day's midnight."""
    moment = value.astimezone(timezone.utc)
    return moment.date(), moment.time() == time.min


def _date_column_condition(col, mode: Mode, literal):
    """Date (no time) columns: a row is its day's midnight UTC."""
    if mode is Mode.RANGE:
        low, high = literal.low, literal.high
        if low.has_time:
            low_day, on_midnight = _utc_day(low.value)
            low_cond = col >= low_day if on_midnight else col > low_day
        else:
            low_cond = col >= low.value.date()
        high_day = _utc_day(high.value)[0] if high.has_time else high.value.date()
        return and_(low_cond, col <= high_day)
    if not literal.has_time:
        return _relational(col, mode, literal.value.date())
    day, on_midnight = _utc_day(literal.value)
    if mode is Mode.EQUAL:
        return _relational(col, mode, day) if on_midnight else false()
    if mode in (Mode.GT, Mode.AFTER):
        return col > day
    if mode is Mode.GTE:
        return col >= day if on_midnight else col > day
    if mode in (Mode.LT, Mode.BEFORE):
        return col < day if on_midnight else col <= day
    return col <= day


def _datetime_condition(col, mode: Mode, literal):
    if _column_python_type(col) is date:
        return _date_column_condition(col, mode, literal)
    if mode is Mode.RANGE:
        low = literal.low.value if literal.low.has_time else literal.low.start_of_day
        high = literal.high.value if literal.high.has_time else literal.high.end_of_day
        return col.between(_db_datetime(col, low), _db_datetime(col, high))
    if literal.has_time:
        return _relational(col, mode, _db_datetime(col, literal.value))
    start = _db_datetime(col, literal.start_of_day)
    end = _db_datetime(col, literal.end_of_day)
    if mode is Mode.EQUAL:
        return and_(col.isnot(None), col >= start, col <= end)
    if mode in (Mode.GT, Mode.AFTER):
        return col > end
    if mode is Mode.GTE:
        return col >= start
    if mode in (Mode.LT, Mode.BEFORE):
        return col < start
    return col <= end


def _time_value(col, value: datetime):
    if _column_python_type(col) is time:
        return value.time()
    return value


def _positive_condition(col, predicate: Predicate, mode: Mode):
    literal = predicate.value
    if predicate.data_type is DataType.TEXT:
        return _text_condition(col, mode, literal.value if literal is not None else None)
    if predicate.data_type is DataType.DATE:
        return _datetime_condition(col, mode, literal)
    if mode is Mode.RANGE:
        if predicate.data_type is DataType.TIME:
            return col.between(_time_value(col, literal.low.value), _time_value(col, literal.high.value))
        return col.between(literal.low.value, literal.high.value)
    if predicate.data_type is DataType.TIME:
        return _relational(col, mode, _time_value(col, literal.value))
    return _relational(col, mode, literal.value)


def _predicate_condition(model, predicate: Predicate):
    resolved = resolve_path(model, predicate.field)
    if resolved is None:
        return None
    relationships, prop = resolved
    owner = relationships[-1].mapper.class_ if relationships else model
    col = getattr(owner, prop.key)

    mode = predicate.mode
    negate = False
    if mode in _NEGATED:
        mode, negate = _NEGATED[mode], True
    elif predicate.data_type is DataType.TEXT and mode is Mode.IS_EMPTY:
        mode, negate = Mode.IS_NOT_EMPTY, True

    condition = _positive_condition(col, predicate, mode)
    for rel in reversed(relationships):
        condition = getattr(rel.parent.class_, rel.key).has(condition)
    return not_(condition) if negate else condition


def apply_filters(q: Query, model, fs: FilterSet) -> Query:
    conditions = []
    for clause in fs.filters:
        if resolve_path(model, clause.field) is None:
            _LOG.debug("skipping filter on unknown column %r", clause.field)
            continue
        predicate = compile_predicate(clause)
        conditions.append(_predicate_condition(model, predicate))
    if not conditions:
        return q
    if fs.logic is Logic.OR:
        return q.filter(or_(*conditions))
    return q.filter(and_(*conditions))


def apply_sorting(q: Query, model, fs: FilterSet) -> Query:
    joined: dict[tuple[str, ...], Any] = {}
    for s in fs.sort_fields:
        resolved = resolve_path(model, s.field)
        if resolved is None:
            continue
        relationships, prop = resolved
        entity = model
        path: tuple[str, ...] = ()
        for rel in relationships:
            path = path + (rel.key,)
            target = joined.get(path)
            if target is None:
                target = aliased(rel.mapper.class_)
                q = q.outerjoin(getattr(entity, rel.key).of_type(target))
                joined[path] = target
            entity = target
        col = getattr(entity, prop.key)
        if s.order is SortOrder.DESC:
            q = q.order_by(desc(col).nulls_last())
        else:
            q = q.order_by(asc(col).nulls_first())
    return q


def apply_filter_set(q: Query, model, fs: FilterSet) -> Query:
    return apply_sorting(apply_filters(q, model, fs), model, fs)


def apply_preset_conditions(q: Query, model, conditions: Any) -> Query:
    """Add `column == value` for every non-None entry of a mapping, dataclass or object."""
    if conditions is None:
        return q
    if isinstance(conditions, Mapping):
        items = dict(conditions)
    elif dataclasses.is_dataclass(conditions) and not isinstance(conditions, type):
        items = {f.name: getattr(conditions, f.name) for f in dataclasses.fields(conditions)}
    else:
        items = {k: v for k, v in vars(conditions).items() if not k.startswith("_")}
    for key, value in items.items():
        if value is None:
            continue
        resolved = resolve_path(model, key)
        if resolved is None or resolved[0]:
            continue
        q = q.filter(getattr(model, resolved[1].key) == value)
    return q


def data_query_sql_no_page(q: Query, model, fs: FilterSet) -> list[Any]:
    return apply_filter_set(q, model, fs).all()


def data_query_sql(q: Query, model, fs: FilterSet, page: Page | None = None) -> PaginationResult:
    page = page or Page()
    index, size = normalize_page(page.index, page.size)
    filtered = apply_filters(q, model, fs)
    total = filtered.count()
    rows = apply_sorting(filtered, model, fs).offset(index * size).limit(size).all()
    return PaginationResult(
        data=rows,
        total_size=total,
        total_page=total_page_count(total, size),
        page_index=index,
        page_size=size,
    )
