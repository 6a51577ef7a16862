from __future__ import annotations

import csv
import io
import re
from datetime import date, datetime, time
from typing import Any, Callable, Mapping, Sequence

from recordquery.schemas.filter_set import FilterSet
from recordquery.services.accessors import FieldAccessorMap, get_accessors
from recordquery.services.data_query import data_query_no_page

_SPACES_RE = re.compile(r"\s+")


def csv_cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    text = str(value)
    if "\n" in text or "\r" in text:
        text = _SPACES_RE.sub(" ", text).strip()
    return text


def _write(header: Sequence[str], rows) -> bytes:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(header)
    for row in rows:
        writer.writerow(row)
    return buf.getvalue().encode("utf-8")


def export_csv(records: Sequence[Any], record_type: type | FieldAccessorMap, fs: FilterSet) -> bytes:
    """Filtered and sorted records as CSV; one column per top-level and nested field."""
    accessors = record_type if isinstance(record_type, FieldAccessorMap) else get_accessors(record_type)
    rows = data_query_no_page(records, accessors, fs)
    header = sorted(accessors.primary_keys)
    getters = [accessors.resolve(key) for key in header]
    return _write(header, ([csv_cell(getter(row)) for getter in getters] for row in rows))


def export_csv_custom(
    records: Sequence[Any],
    record_type: type | FieldAccessorMap,
    fs: FilterSet,
    row_builder: Callable[[Any], Mapping[str, Any]],
) -> bytes:
    """CSV whose columns come from `row_builder`; headers are the sorted keys of the first row."""
    rows = data_query_no_page(records, record_type, fs)
    if not rows:
        return b""
    header = sorted(row_builder(rows[0]).keys())
    built = (row_builder(row) for row in rows)
    return _write(header, ([csv_cell(values.get(key)) for key in header] for values in built))
