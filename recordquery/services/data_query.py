from __future__ import annotations

import logging
from typing import Any, Sequence

from recordquery.schemas.filter_set import FilterSet, Page
from recordquery.services.accessors import FieldAccessorMap, get_accessors
from recordquery.services.evaluator import compile_predicates
from recordquery.services.executor import filter_records
from recordquery.services.pagination import PaginationResult, paginate
from recordquery.services.sorting import sort_records

_LOG = logging.getLogger("recordquery.data_query")


def _accessors_for(record_type: type | FieldAccessorMap) -> FieldAccessorMap:
    if isinstance(record_type, FieldAccessorMap):
        return record_type
    return get_accessors(record_type)


def data_query_no_page(
    records: Sequence[Any],
    record_type: type | FieldAccessorMap,
    fs: FilterSet,
    *,
    workers: int | None = None,
) -> list[Any]:
    """Filter and sort `records` in memory; returns every matching record."""
    accessors = _accessors_for(record_type)
    predicates = compile_predicates(fs.filters, accessors)
    rows = filter_records(records, predicates, fs.logic, workers=workers)
    return sort_records(rows, fs.sort_fields, accessors)


def data_query(
    records: Sequence[Any],
    record_type: type | FieldAccessorMap,
    fs: FilterSet,
    page: Page | None = None,
    *,
    workers: int | None = None,
) -> PaginationResult:
    page = page or Page()
    rows = data_query_no_page(records, record_type, fs, workers=workers)
    result = paginate(rows, page.index, page.size)
    _LOG.debug(
        "in-memory query matched %d of %d records (page %d/%d)",
        result.total_size,
        len(records),
        result.page_index,
        result.total_page,
    )
    return result
