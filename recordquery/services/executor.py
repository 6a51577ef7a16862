from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from threading import Lock
from typing import Any, Sequence

from recordquery.core.config import settings
from recordquery.core.errors import FilterError
from recordquery.schemas.filter_set import Logic
from recordquery.services.evaluator import Predicate, evaluate

_LOG = logging.getLogger("recordquery.executor")


class _FirstError:
    """Holds the first error reported by any worker."""

    def __init__(self):
        self._lock = Lock()
        self.error: FilterError | None = None

    def record(self, error: FilterError) -> None:
        with self._lock:
            if self.error is None:
                self.error = error


def worker_count(requested: int | None = None) -> int:
    value = settings.FILTER_WORKERS if requested is None else int(requested)
    if value <= 0:
        value = os.cpu_count() or 1
    return max(value, 1)


def chunk_bounds(total: int, workers: int) -> list[tuple[int, int]]:
    """Contiguous [start, end) ranges of equal size (the last may be shorter)."""
    if total <= 0:
        return []
    size = -(-total // max(workers, 1))
    return [(start, min(start + size, total)) for start in range(0, total, size)]


def record_matches(record: Any, predicates: Sequence[Predicate], logic: Logic) -> bool:
    if not predicates:
        return True
    if logic is Logic.OR:
        return any(evaluate(p, record) for p in predicates)
    return all(evaluate(p, record) for p in predicates)


def _filter_chunk(
    records: Sequence[Any],
    start: int,
    end: int,
    predicates: Sequence[Predicate],
    logic: Logic,
    first_error: _FirstError,
) -> list[Any]:
    kept: list[Any] = []
    for index in range(start, end):
        record = records[index]
        try:
            if record_matches(record, predicates, logic):
                kept.append(record)
        except FilterError as exc:
            first_error.record(exc)
            return kept
    return kept


def filter_records(
    records: Sequence[Any],
    predicates: Sequence[Predicate],
    logic: Logic = Logic.AND,
    *,
    workers: int | None = None,
) -> list[Any]:
    """Return the records that satisfy the predicates under `logic`.

    Records are split into contiguous chunks evaluated on a pool created for
    this call. Output is the chunk results joined in chunk order. The first
    evaluation error from any chunk is raised once every chunk has finished.
    """
    logic = Logic(logic)
    if not records:
        return []
    if not predicates:
        return list(records)

    bounds = chunk_bounds(len(records), worker_count(workers))
    first_error = _FirstError()
    if len(bounds) == 1:
        chunks = [_filter_chunk(records, 0, len(records), predicates, logic, first_error)]
    else:
        _LOG.debug("filtering %d records in %d chunks", len(records), len(bounds))
        with ThreadPoolExecutor(max_workers=len(bounds), thread_name_prefix="recordquery-filter") as pool:
            futures = [
                pool.submit(_filter_chunk, records, start, end, predicates, logic, first_error)
                for start, end in bounds
            ]
            chunks = [future.result() for future in futures]

    if first_error.error is not None:
        raise first_error.error

    out: list[Any] = []
    for chunk in chunks:
        out.extend(chunk)
    return out
