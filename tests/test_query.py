"""Tests for the list query builder, independent of any database."""

import asyncio

import pytest

from campus_cms.core.exceptions import InvalidIdError, ValidationError
from campus_cms.core.ids import encode_id
from campus_cms.core.query import (
    FilterKind,
    ListConfig,
    PaginatedResult,
    QueryBuilder,
    parse_bool
)
from campus_cms.models.domain.common import SortOrder

CONFIG = ListConfig(
    sort_fields=("sort_order", "name"),
    default_sort="sort_order",
    default_order=SortOrder.ASC,
    default_limit=10,
    filters={"kind": FilterKind.TEXT, "active": FilterKind.BOOL, "year": FilterKind.INT, "owner": FilterKind.ID},
    search_fields=("name", "body")
)


class FakeStore:
    """In-memory store that records the criteria it was given."""

    def __init__(self, rows):
        self.rows = rows
        self.calls = []

    def _matches(self, row, criteria):
        for name, value in criteria.equals + criteria.narrowing:
            if row.get(name) != value:
                return False
        if criteria.search_term:
            term = criteria.search_term.lower()
            return any(term in str(row.get(name, "")).lower() for name in criteria.search_fields)
        return True

    async def count(self, criteria):
        self.calls.append("count")
        await asyncio.sleep(0)
        return sum(1 for row in self.rows if self._matches(row, criteria))

    async def fetch(self, criteria, sort_by, sort_order, offset, limit):
        self.calls.append("fetch")
        await asyncio.sleep(0)
        rows = sorted(
            (row for row in self.rows if self._matches(row, criteria)),
            key=lambda row: (row[sort_by], row["id"]),
            reverse=sort_order == SortOrder.DESC
        )
        return rows[offset:offset + limit]


def make_rows(count, **overrides):
    return [
        {"id": i, "sort_order": i, "name": f"Row {i}", "body": "", "kind": "a", "active": i % 2 == 0, **overrides}
        for i in range(1, count + 1)
    ]


def test_parse_applies_defaults():
    query = QueryBuilder(CONFIG).parse({})
    assert (query.page, query.limit, query.sort_by, query.sort_order) == (1, 10, "sort_order", SortOrder.ASC)
    assert query.filters == ()
    assert query.query is None


@pytest.mark.parametrize(
    "params, page, limit",
    [
        ({"page": "0", "limit": "0"}, 1, 1),
        ({"page": "-4", "limit": "1000"}, 1, 100),
        ({"page": "abc", "limit": "xyz"}, 1, 10),
        ({"page": "3", "limit": "25"}, 3, 25),
    ]
)
def test_parse_clamps_paging(params, page, limit):
    query = QueryBuilder(CONFIG).parse(params)
    assert (query.page, query.limit) == (page, limit)


def test_parse_falls_back_on_unknown_sort():
    query = QueryBuilder(CONFIG).parse({"sortBy": "password", "sortOrder": "sideways"})
    assert query.sort_by == "sort_order"
    assert query.sort_order == SortOrder.ASC


def test_parse_converts_filters_by_kind():
    owner = encode_id(8)
    query = QueryBuilder(CONFIG).parse({"kind": "a", "active": "false", "year": "2020", "owner": owner, "extra": "x"})
    assert dict(query.filters) == {"kind": "a", "active": False, "year": 2020, "owner": 8}


def test_parse_rejects_bad_filter_values():
    builder = QueryBuilder(CONFIG)
    with pytest.raises(ValidationError):
        builder.parse({"active": "yes"})
    with pytest.raises(ValidationError):
        builder.parse({"year": "twenty"})
    with pytest.raises(InvalidIdError):
        builder.parse({"owner": "8"})


def test_blank_search_term_is_ignored():
    assert QueryBuilder(CONFIG).parse({"query": "   "}).query is None


@pytest.mark.parametrize("value, expected", [("true", True), ("FALSE", False), (" True ", True)])
def test_parse_bool(value, expected):
    assert parse_bool(value, "flag") is expected


def test_parse_bool_rejects_other_strings():
    with pytest.raises(ValidationError) as exc_info:
        parse_bool("1", "is_active")
    assert exc_info.value.errors[0]["field"] == "is_active"


async def test_paginate_last_partial_page():
    store = FakeStore(make_rows(25))
    result = await QueryBuilder(CONFIG).paginate(store, {"page": "3", "limit": "10"})
    assert [row["id"] for row in result.items] == [21, 22, 23, 24, 25]
    assert result.meta() == {"total": 25, "page": 3, "limit": 10, "totalPages": 3}
    assert sorted(store.calls) == ["count", "fetch"]


async def test_page_beyond_the_end_is_empty():
    result = await QueryBuilder(CONFIG).paginate(FakeStore(make_rows(5)), {"page": "9"})
    assert result.items == []
    assert result.total == 5
    assert result.total_pages == 1


async def test_empty_result_has_zero_pages():
    result = await QueryBuilder(CONFIG).paginate(FakeStore([]), {"query": "nothing"})
    assert result.meta()["totalPages"] == 0


async def test_narrowing_cannot_be_widened_by_filters():
    store = FakeStore(make_rows(10))
    result = await QueryBuilder(CONFIG).paginate(
        store,
        {"active": "false", "limit": "100"},
        narrowing={"active": True}
    )
    assert result.total == 0


async def test_search_matches_any_field_case_insensitively():
    rows = make_rows(3)
    rows[1]["body"] = "Scholarship Programs"
    result = await QueryBuilder(CONFIG).paginate(FakeStore(rows), {"query": "scholarship"})
    assert [row["id"] for row in result.items] == [2]


async def test_mapper_is_applied_to_items():
    result = await QueryBuilder(CONFIG).paginate(
        FakeStore(make_rows(2)),
        {"sortBy": "name", "sortOrder": "desc"},
        mapper=lambda row: row["name"]
    )
    assert result.items == ["Row 2", "Row 1"]


def test_total_pages_rounds_up():
    assert PaginatedResult(items=[], total=21, page=1, limit=10).total_pages == 3
    assert PaginatedResult(items=[], total=20, page=1, limit=10).total_pages == 2
