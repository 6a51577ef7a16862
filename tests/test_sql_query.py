import unittest
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from recordquery.schemas.filter_set import (
    DataType,
    FilterClause,
    FilterSet,
    Logic,
    Mode,
    Page,
    SortClause,
    SortOrder,
)
from recordquery.services.data_query import data_query, data_query_no_page
from recordquery.services.sql_query import (
    apply_filter_set,
    apply_preset_conditions,
    data_query_sql,
    data_query_sql_no_page,
)
from tests.members import MEMBER_COUNT, Member, make_member_engine


def _fs(*clauses, logic=Logic.AND, sort=None):
    return FilterSet(
        filters=[FilterClause(field=f, value=v, mode=m, data_type=t) for f, v, m, t in clauses],
        sort_fields=sort or [],
        logic=logic,
    )


def _loaded_members(session):
    return session.query(Member).options(joinedload(Member.friend)).all()


_AGREEMENT_CASES = {
    "text_contains": _fs(("name", "JOHN", Mode.CONTAINS, DataType.TEXT)),
    "text_not_contains_keeps_null": _fs(("name", "john", Mode.NOT_CONTAINS, DataType.TEXT)),
    "text_not_equal_keeps_null": _fs(("name", "mary 001", Mode.NOT_EQUAL, DataType.TEXT)),
    "text_equal": _fs(("name", " Mary 007 ", Mode.EQUAL, DataType.TEXT)),
    "text_equal_empty_matches_null": _fs(("name", "", Mode.EQUAL, DataType.TEXT)),
    "text_not_equal_empty_drops_null": _fs(("name", "  ", Mode.NOT_EQUAL, DataType.TEXT)),
    "text_starts_with_empty": _fs(("name", "", Mode.STARTS_WITH, DataType.TEXT)),
    "text_not_contains_empty": _fs(("name", "", Mode.NOT_CONTAINS, DataType.TEXT)),
    "text_is_empty": _fs(("name", None, Mode.IS_EMPTY, DataType.TEXT)),
    "text_is_not_empty": _fs(("name", None, Mode.IS_NOT_EMPTY, DataType.TEXT)),
    "text_starts_with": _fs(("name", "jo", Mode.STARTS_WITH, DataType.TEXT)),
    "text_ends_with": _fs(("name", "5", Mode.ENDS_WITH, DataType.TEXT)),
    "text_like_wildcards_are_literal": _fs(("email", "m1_", Mode.STARTS_WITH, DataType.TEXT)),
    "number_gte": _fs(("age", 40, Mode.GTE, DataType.NUMBER)),
    "number_not_equal_keeps_null": _fs(("age", 27, Mode.NOT_EQUAL, DataType.NUMBER)),
    "number_range": _fs(("age", {"from": 30, "to": 40}, Mode.RANGE, DataType.NUMBER)),
    "float_range_string_bounds": _fs(("height", {"from": "155,5", "to": "160"}, Mode.RANGE, DataType.NUMBER)),
    "bool_equal": _fs(("is_active", "true", Mode.EQUAL, DataType.BOOL)),
    "bool_not_equal": _fs(("is_active", True, Mode.NOT_EQUAL, DataType.BOOL)),
    "date_day_equal": _fs(("created_at", "2026-01-02", Mode.EQUAL, DataType.DATE)),
    "date_day_not_equal": _fs(("created_at", "2026-01-02", Mode.NOT_EQUAL, DataType.DATE)),
    "date_day_after": _fs(("created_at", "2026-01-03", Mode.AFTER, DataType.DATE)),
    "date_day_lte": _fs(("created_at", "2026-01-03", Mode.LTE, DataType.DATE)),
    "date_instant_before": _fs(("created_at", "2026-01-02T09:00:00Z", Mode.BEFORE, DataType.DATE)),
    "date_instant_with_offset": _fs(("created_at", "2026-01-02T12:00:00+03:00", Mode.EQUAL, DataType.DATE)),
    "date_mixed_range": _fs(
        ("created_at", {"from": "2026-01-02T12:00:00", "to": "2026-01-04"}, Mode.RANGE, DataType.DATE)
    ),
    "date_column_equal": _fs(("birthday", "1990-01-10", Mode.EQUAL, DataType.DATE)),
    "date_column_after_instant": _fs(("birthday", "1990-01-10T10:00:00Z", Mode.GT, DataType.DATE)),
    "date_column_lte_instant": _fs(("birthday", "1990-01-10T10:00:00Z", Mode.LTE, DataType.DATE)),
    "date_column_range": _fs(("birthday", {"from": "1990-01-05", "to": "1990-01-08"}, Mode.RANGE, DataType.DATE)),
    "date_column_gt_offset_instant": _fs(("birthday", "1990-01-10T02:00:00+05:00", Mode.GT, DataType.DATE)),
    "date_column_gte_utc_midnight": _fs(("birthday", "1990-01-10T05:00:00+05:00", Mode.GTE, DataType.DATE)),
    "date_column_lt_utc_midnight": _fs(("birthday", "1990-01-10T05:00:00+05:00", Mode.LT, DataType.DATE)),
    "date_column_equal_utc_midnight": _fs(("birthday", "1990-01-10T05:00:00+05:00", Mode.EQUAL, DataType.DATE)),
    "date_column_not_equal_offset_instant": _fs(("birthday", "1990-01-10T02:00:00+05:00", Mode.NOT_EQUAL, DataType.DATE)),
    "date_column_offset_range": _fs(
        ("birthday", {"from": "1990-01-10T05:00:00+05:00", "to": "1990-01-12T03:00:00+05:00"}, Mode.RANGE, DataType.DATE)
    ),
    "time_gte": _fs(("shift_start", "08:00", Mode.GTE, DataType.TIME)),
    "time_range": _fs(("shift_start", {"from": "09:00", "to": "12:00"}, Mode.RANGE, DataType.TIME)),
    "nested_equal": _fs(("friend.name", "alice", Mode.EQUAL, DataType.TEXT)),
    "nested_not_equal_keeps_missing": _fs(("friend.name", "alice", Mode.NOT_EQUAL, DataType.TEXT)),
    "column_alias": _fs(("displayName", "mary", Mode.EQUAL, DataType.TEXT)),
    "or_logic": _fs(
        ("age", 25, Mode.LT, DataType.NUMBER),
        ("friend.name", "b", Mode.STARTS_WITH, DataType.TEXT),
        logic=Logic.OR,
    ),
    "unknown_field_ignored": _fs(
        ("ghost_field", "x", Mode.EQUAL, DataType.NUMBER),
        ("age", 50, Mode.GT, DataType.NUMBER),
    ),
}


class SqlQueryAgreementTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.engine = make_member_engine()

    @classmethod
    def tearDownClass(cls):
        cls.engine.dispose()

    def test_filters_agree_with_in_memory_evaluation(self):
        with Session(self.engine) as session:
            rows = _loaded_members(session)
            for name, fs in _AGREEMENT_CASES.items():
                with self.subTest(case=name):
                    in_memory = sorted(m.id for m in data_query_no_page(rows, Member, fs))
                    in_sql = sorted(m.id for m in data_query_sql_no_page(session.query(Member), Member, fs))
                    self.assertEqual(in_sql, in_memory)

    def test_null_text_equals_empty_string(self):
        fs = _fs(("name", "", Mode.EQUAL, DataType.TEXT))
        with Session(self.engine) as session:
            rows = data_query_sql_no_page(session.query(Member), Member, fs)
        self.assertEqual(sorted(m.id for m in rows), [1, 18, 20, 35, 39, 52, 58])

    def test_date_column_compares_offset_instants_in_utc(self):
        # 1990-01-10T02:00+05:00 is 1990-01-09T21:00Z, before the 1990-01-10 row.
        fs = _fs(("birthday", "1990-01-10T02:00:00+05:00", Mode.GT, DataType.DATE))
        with Session(self.engine) as session:
            ids = [m.id for m in data_query_sql_no_page(session.query(Member), Member, fs)]
        self.assertIn(10, ids)
        self.assertNotIn(9, ids)

    def test_sorting_agrees_with_in_memory_sort(self):
        sort = [
            SortClause(field="friend.name"),
            SortClause(field="age", order=SortOrder.DESC),
            SortClause(field="id"),
        ]
        fs = _fs(("height", 170, Mode.LT, DataType.NUMBER), sort=sort)
        with Session(self.engine) as session:
            rows = _loaded_members(session)
            in_memory = [m.id for m in data_query_no_page(rows, Member, fs)]
            in_sql = [m.id for m in apply_filter_set(session.query(Member), Member, fs).all()]
        self.assertEqual(in_sql, in_memory)

    def test_text_sort_puts_null_first(self):
        fs = _fs(sort=[SortClause(field="name"), SortClause(field="id")])
        with Session(self.engine) as session:
            rows = data_query_sql_no_page(session.query(Member), Member, fs)
            self.assertIsNone(rows[0].name)
            in_memory = data_query_no_page(_loaded_members(session), Member, fs)
            self.assertEqual([m.id for m in rows], [m.id for m in in_memory])

    def test_paginated_result_agrees(self):
        fs = _fs(("is_active", True, Mode.EQUAL, DataType.BOOL), sort=[SortClause(field="id", order=SortOrder.DESC)])
        page = Page(index=1, size=10)
        with Session(self.engine) as session:
            in_sql = data_query_sql(session.query(Member), Member, fs, page)
            in_memory = data_query(_loaded_members(session), Member, fs, page)
            self.assertEqual([m.id for m in in_sql.data], [m.id for m in in_memory.data])
        self.assertEqual(in_sql.total_size, in_memory.total_size)
        self.assertEqual(in_sql.total_page, in_memory.total_page)
        self.assertEqual(in_sql.page_index, 1)

    def test_page_past_the_end_is_empty(self):
        with Session(self.engine) as session:
            result = data_query_sql(session.query(Member), Member, _fs(), Page(index=99, size=10))
        self.assertEqual(result.data, [])
        self.assertEqual(result.total_size, MEMBER_COUNT)
        self.assertEqual(result.total_page, 6)


@dataclass
class _MemberPreset:
    is_active: Optional[bool] = None
    age: Optional[int] = None


class PresetConditionTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.engine = make_member_engine()

    @classmethod
    def tearDownClass(cls):
        cls.engine.dispose()

    def test_mapping_skips_none_values(self):
        with Session(self.engine) as session:
            q = apply_preset_conditions(session.query(Member), Member, {"is_active": False, "age": None})
            rows = q.all()
        self.assertTrue(rows)
        self.assertTrue(all(not m.is_active for m in rows))

    def test_dataclass_conditions_combine_with_filter_set(self):
        fs = _fs(("age", 30, Mode.GTE, DataType.NUMBER))
        with Session(self.engine) as session:
            q = apply_preset_conditions(session.query(Member), Member, _MemberPreset(is_active=True))
            rows = data_query_sql_no_page(q, Member, fs)
        self.assertTrue(rows)
        self.assertTrue(all(m.is_active and m.age >= 30 for m in rows))

    def test_unknown_and_nested_keys_are_ignored(self):
        with Session(self.engine) as session:
            q = apply_preset_conditions(session.query(Member), Member, {"ghost": 1, "friend.name": "Bob"})
            self.assertEqual(q.count(), MEMBER_COUNT)


if __name__ == "__main__":
    unittest.main()
