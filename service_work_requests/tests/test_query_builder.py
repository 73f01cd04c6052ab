"""
Unit tests for search predicates and pagination.
"""

import pytest

from service_work_requests.app.domain.query_builder import (
    DEFAULT_LIMIT,
    INT8_MAX,
    MAX_LIMIT,
    Pagination,
    WorkRequestFilter,
    build_predicate,
    parse_int,
    parse_int4,
)


class TestParseInt:
    """Test cases for integer parsing."""

    @pytest.mark.parametrize("value,expected", [
        ("42", 42),
        (" 42 ", 42),
        ("-7", -7),
        ("+7", 7),
        ("007", 7),
        (42, 42),
        (42.0, 42),
    ])
    def test_integers(self, value, expected):
        assert parse_int(value) == expected

    @pytest.mark.parametrize("value", [
        None, "", "   ", "abc", "42abc", "4 2", "1.5", "1e3", "0x1A", 1.5, True, False, [], {},
    ])
    def test_non_integers(self, value):
        assert parse_int(value) is None

    def test_int4_range(self):
        assert parse_int4("2147483647") == 2147483647
        assert parse_int4("2147483648") is None
        assert parse_int4("-2147483649") is None


class TestWorkRequestFilter:
    """Test cases for WorkRequestFilter."""

    def test_filter_is_alias_for_search(self):
        assert WorkRequestFilter.from_query(filter_="pipe").search == "pipe"

    def test_search_wins_over_filter(self):
        assert WorkRequestFilter.from_query(search="road", filter_="pipe").search == "road"

    def test_empty_values_are_dropped(self):
        filters = WorkRequestFilter.from_query(search="", filter_="", status="")

        assert filters.search is None
        assert filters.status is None
        assert filters.is_empty


class TestBuildPredicate:
    """Test cases for build_predicate."""

    def test_no_filters(self):
        predicate = build_predicate(WorkRequestFilter())

        assert predicate.where_clause == ""
        assert predicate.params == ()
        assert predicate.next_index == 1

    def test_numeric_search(self):
        """A numeric term matches the id exactly or any text column."""
        predicate = build_predicate(WorkRequestFilter(search="42"))

        assert predicate.params == (42, "%42%")
        assert predicate.where_clause == (
            "WHERE (wr.id = $1 OR wr.address ILIKE $2 "
            "OR wr.description ILIKE $2 OR ct.type_name ILIKE $2)"
        )
        assert predicate.next_index == 3

    def test_text_search(self):
        predicate = build_predicate(WorkRequestFilter(search="pipe"))

        assert predicate.params == ("%pipe%",)
        assert "wr.id" not in predicate.where_clause
        assert predicate.where_clause == (
            "WHERE (wr.address ILIKE $1 OR wr.description ILIKE $1 OR ct.type_name ILIKE $1)"
        )

    def test_partially_numeric_search_is_text(self):
        predicate = build_predicate(WorkRequestFilter(search="42abc"))

        assert predicate.params == ("%42abc%",)

    def test_out_of_range_numeric_search_is_text(self):
        predicate = build_predicate(WorkRequestFilter(search="99999999999"))

        assert predicate.params == ("%99999999999%",)
        assert "wr.id" not in predicate.where_clause

    def test_status_name(self):
        predicate = build_predicate(WorkRequestFilter(status="Open"))

        assert predicate.where_clause == "WHERE s.name ILIKE $1"
        assert predicate.params == ("%Open%",)

    def test_status_id(self):
        predicate = build_predicate(WorkRequestFilter(status="3"))

        assert predicate.where_clause == "WHERE wr.status_id = $1"
        assert predicate.params == (3,)

    def test_search_and_status_share_numbering(self):
        """Status placeholders continue after the search placeholders."""
        predicate = build_predicate(WorkRequestFilter(search="42", status="Open"))

        assert predicate.params == (42, "%42%", "%Open%")
        assert predicate.clauses[1] == "s.name ILIKE $3"
        assert " AND " in predicate.where_clause
        assert predicate.next_index == 4

    def test_text_search_and_status_id(self):
        predicate = build_predicate(WorkRequestFilter(search="pipe", status="2"))

        assert predicate.params == ("%pipe%", 2)
        assert predicate.clauses[1] == "wr.status_id = $2"

    def test_search_value_is_never_inlined(self):
        term = "'; DROP TABLE work_requests; --"
        predicate = build_predicate(WorkRequestFilter(search=term))

        assert "DROP" not in predicate.where_clause
        assert predicate.params == (f"%{term}%",)


class TestPagination:
    """Test cases for Pagination."""

    @pytest.mark.parametrize("limit,expected", [
        (None, DEFAULT_LIMIT),
        ("", DEFAULT_LIMIT),
        ("0", DEFAULT_LIMIT),
        ("-5", DEFAULT_LIMIT),
        ("abc", DEFAULT_LIMIT),
        ("20", 20),
        ("500", 500),
        ("501", MAX_LIMIT),
        ("10000", MAX_LIMIT),
    ])
    def test_limit(self, limit, expected):
        assert Pagination.from_query(limit=limit).limit == expected

    @pytest.mark.parametrize("offset,expected", [
        (None, 0),
        ("-1", 0),
        ("abc", 0),
        ("40", 40),
        ("1000000", 1000000),
        (str(INT8_MAX + 10), INT8_MAX),
    ])
    def test_offset(self, offset, expected):
        assert Pagination.from_query(offset=offset).offset == expected

    def test_has_more(self):
        assert Pagination(limit=20, offset=0).has_more(45) is True
        assert Pagination(limit=20, offset=20).has_more(45) is True
        assert Pagination(limit=20, offset=40).has_more(45) is False
        assert Pagination(limit=20, offset=25).has_more(45) is False
        assert Pagination(limit=100, offset=0).has_more(0) is False
