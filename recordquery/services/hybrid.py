from __future__ import annotations

import logging

from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from recordquery.core.config import settings
from recordquery.schemas.filter_set import FilterSet, Page
from recordquery.services.data_query import data_query
from recordquery.services.pagination import PaginationResult
from recordquery.services.sql_query import data_query_sql, resolve_path

_LOG = logging.getLogger("recordquery.hybrid")

STRATEGY_MEMORY = "memory"
STRATEGY_DATABASE = "database"


def _count_rows(db: Session, table) -> int:
    return int(db.execute(select(func.count()).select_from(table)).scalar() or 0)


def _sqlite_stat_rows(db: Session, table_name: str) -> int | None:
    # sqlite_stat1 only exists after ANALYZE.
    has_stats = db.execute(
        text("SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = 'sqlite_stat1'")
    ).scalar()
    if not has_stats:
        return None
    stat = db.execute(
        text("SELECT stat FROM sqlite_stat1 WHERE tbl = :tbl LIMIT 1"),
        {"tbl": table_name},
    ).scalar()
    if not stat:
        return None
    first = str(stat).split(" ")[0]
    return int(first) if first.isdigit() else None


def estimate_table_rows(db: Session, model) -> int:
    """Cheap row-count estimate for the model's table, per dialect."""
    table = model.__table__
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        value = db.execute(
            text("SELECT reltuples::BIGINT FROM pg_class WHERE relname = :name"),
            {"name": table.name},
        ).scalar()
        if value is None:
            raise LookupError(f"no pg_class entry for {table.name}")
        return int(value)
    if dialect in {"mysql", "mariadb"}:
        value = db.execute(
            text(
                "SELECT TABLE_ROWS FROM INFORMATION_SCHEMA.TABLES "
                "WHERE TABLE_SCHEMA = DATABASE() AND TABLE_NAME = :name"
            ),
            {"name": table.name},
        ).scalar()
        if value is None:
            raise LookupError(f"no information_schema entry for {table.name}")
        return int(value)
    if dialect == "sqlite":
        estimated = _sqlite_stat_rows(db, table.name)
        if estimated is not None:
            return estimated
    return _count_rows(db, table)


def choose_strategy(db: Session, model, threshold: int | None = None) -> str:
    limit = settings.HYBRID_ROW_THRESHOLD if threshold is None else int(threshold)
    try:
        estimated = estimate_table_rows(db, model)
    except (SQLAlchemyError, LookupError, ValueError):
        _LOG.warning("row estimate unavailable for %s; using database filtering", model.__name__, exc_info=True)
        return STRATEGY_DATABASE
    strategy = STRATEGY_MEMORY if estimated <= limit else STRATEGY_DATABASE
    _LOG.debug("hybrid strategy for %s: estimated=%d threshold=%d -> %s", model.__name__, estimated, limit, strategy)
    return strategy


def _eager_load_options(model, fs: FilterSet) -> list:
    # Relationships read by filters or sort keys must be loaded up front:
    # worker threads cannot lazy-load through the session.
    options = []
    seen: set[tuple[str, ...]] = set()
    fields = [c.field for c in fs.filters] + [s.field for s in fs.sort_fields]
    for field in fields:
        resolved = resolve_path(model, field)
        if resolved is None or not resolved[0]:
            continue
        relationships = resolved[0]
        path = tuple(rel.key for rel in relationships)
        if path in seen:
            continue
        seen.add(path)
        loader = joinedload(getattr(model, relationships[0].key))
        for rel in relationships[1:]:
            loader = loader.joinedload(getattr(rel.parent.class_, rel.key))
        options.append(loader)
    return options


def data_query_hybrid(
    db: Session,
    model,
    fs: FilterSet,
    page: Page | None = None,
    *,
    threshold: int | None = None,
) -> PaginationResult:
    if choose_strategy(db, model, threshold) == STRATEGY_MEMORY:
        rows = db.query(model).options(*_eager_load_options(model, fs)).all()
        return data_query(rows, model, fs, page)
    return data_query_sql(db.query(model), model, fs, page)
