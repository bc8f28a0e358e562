"""Tests for paginated listing and the full search view."""

import math

import pytest

from heritage_library.library.query import ListOptions, list_all, search_all, timestamp_millis

from conftest import make_resource


def _ids(page):
    return [rid for records in page.resources.values() for rid in records]


def _fill(store, count, category="foods"):
    for i in range(count):
        store.add(category, make_resource(
            f"r{i:02d}", f"title {i:02d}",
            updatedAt=f"2024-01-{i + 1:02d}T00:00:00.000Z",
        ))


class TestPagination:

    @pytest.mark.parametrize("total,limit", [(10, 3), (9, 3), (1, 12), (25, 5)])
    def test_page_sizes(self, store, total, limit):
        _fill(store, total)
        pages = math.ceil(total / limit)

        first = list_all(store, ListOptions(limit=limit))
        assert first.pagination.total_pages == pages
        assert first.pagination.total_items == total

        seen = []
        for page in range(1, pages + 1):
            result = list_all(store, ListOptions(page=page, limit=limit))
            ids = _ids(result)
            assert len(ids) <= limit
            seen.extend(ids)
        expected_last = total % limit or limit
        assert len(_ids(list_all(store, ListOptions(page=pages, limit=limit)))) == expected_last
        assert sorted(seen) == sorted(f"r{i:02d}" for i in range(total))

    def test_page_past_end_is_clamped(self, store):
        _fill(store, 5)
        result = list_all(store, ListOptions(page=99, limit=2))
        assert result.pagination.current_page == 3
        assert result.pagination.has_next_page is False
        assert result.pagination.has_prev_page is True
        assert _ids(result) == ["r00"]

    def test_empty_library(self, store):
        result = list_all(store)
        assert result.resources == {}
        assert result.pagination.total_items == 0
        assert result.pagination.total_pages == 1
        assert result.pagination.current_page == 1
        assert result.pagination.has_prev_page is False
        assert result.pagination.has_next_page is False

    def test_metadata_serializes_in_camel_case(self, store):
        _fill(store, 3)
        dumped = list_all(store, ListOptions(limit=2)).model_dump(by_alias=True)
        assert dumped["pagination"] == {
            "currentPage": 1,
            "itemsPerPage": 2,
            "totalItems": 3,
            "totalPages": 2,
            "hasPrevPage": False,
            "hasNextPage": True,
        }


class TestSorting:

    def test_default_is_updated_at_descending(self, seeded_store):
        result = list_all(seeded_store)
        assert _ids(result) == ["dumplings", "duck", "paper"]

    def test_title_ascending_is_case_insensitive(self, store):
        for rid, title in [("b", "Beta"), ("a", "alpha"), ("g", "Gamma")]:
            store.add("misc", make_resource(rid, title))
        result = list_all(store, ListOptions(sort_by="title", sort_order="asc"))
        titles = [r["title"] for r in result.resources["misc"].values()]
        assert titles == ["alpha", "Beta", "Gamma"]

    def test_ties_keep_input_order_in_both_directions(self, store):
        for rid in ["x1", "x2", "x3"]:
            store.add("misc", make_resource(rid, "same"))
        asc = list_all(store, ListOptions(sort_by="title", sort_order="asc"))
        desc = list_all(store, ListOptions(sort_by="title", sort_order="desc"))
        assert _ids(asc) == ["x1", "x2", "x3"]
        assert _ids(desc) == ["x1", "x2", "x3"]

    def test_missing_dates_sort_as_epoch(self, store):
        # replace_category installs records as-is, without stamping timestamps.
        store.replace_category("misc", [
            make_resource("dated", "a", createdAt="2020-05-05T00:00:00.000Z"),
            {"id": "undated", "title": "b"},
        ])
        result = list_all(store, ListOptions(sort_by="createdAt", sort_order="asc"))
        assert _ids(result) == ["undated", "dated"]

    def test_page_is_regrouped_by_category_in_sort_order(self, seeded_store):
        result = list_all(seeded_store, ListOptions(sort_by="updatedAt", sort_order="asc"))
        assert list(result.resources) == ["traditionalCrafts", "traditionalFoods"]
        assert list(result.resources["traditionalFoods"]) == ["duck", "dumplings"]
        assert "category" not in result.resources["traditionalFoods"]["duck"]


class TestFilters:

    def test_category_filter_is_exact(self, seeded_store):
        result = list_all(seeded_store, ListOptions(category="traditionalCrafts"))
        assert _ids(result) == ["paper"]
        assert list_all(seeded_store, ListOptions(category="traditional")).pagination.total_items == 0

    @pytest.mark.parametrize("term,expected", [
        ("烤鸭", ["duck"]),
        ("京菜", ["duck"]),
        ("民间", ["paper"]),
        ("面食", ["dumplings"]),
    ])
    def test_search_covers_text_tags_and_keywords(self, seeded_store, term, expected):
        assert _ids(list_all(seeded_store, ListOptions(search=term))) == expected

    def test_search_is_case_insensitive_and_reads_content(self, store):
        store.add("misc", make_resource("a", "Tea", content="Gongfu BREWING"))
        store.add("misc", make_resource("b", "Silk"))
        assert _ids(list_all(store, ListOptions(search="  brewing "))) == ["a"]


class TestFallbackIds:

    def test_records_without_id_use_title(self, store):
        store.replace_category("misc", [{"title": "untitled id"}])
        result = list_all(store)
        assert _ids(result) == ["untitled id"]

    def test_records_without_id_or_title_get_a_token(self, store):
        store.replace_category("misc", [{"description": "anonymous"}])
        ids = _ids(list_all(store))
        assert len(ids) == 1 and ids[0]


class TestSearchAll:

    def test_returns_everything_grouped(self, seeded_store):
        resources, total = search_all(seeded_store)
        assert total == 3
        assert set(resources) == {"traditionalFoods", "traditionalCrafts"}
        assert set(resources["traditionalFoods"]) == {"dumplings", "duck"}
        assert resources["traditionalCrafts"]["paper"]["id"] == "paper"


@pytest.mark.parametrize("value,expected", [
    ("1970-01-01T00:00:01.000Z", 1000.0),
    ("1970-01-01T00:00:01", 1000.0),
    (None, 0.0),
    ("", 0.0),
    ("yesterday", 0.0),
])
def test_timestamp_millis(value, expected):
    assert timestamp_millis(value) == expected
