from __future__ import annotations

from resource_kit.core.static_query import paginate_items, run_static_query, search_items, sort_items


def _make_people():
    return [
        {"name": "Ada", "age": 36, "city": "London"},
        {"name": "grace", "age": 85, "city": "New York"},
        {"name": "Alan", "age": None, "city": "Wilmslow"},
        {"name": "Barbara", "age": 9, "city": "london"},
    ]


def test_search_is_case_insensitive_across_fields():
    people = _make_people()

    matches, has_results = search_items(people, "LONDON", ["city"])

    assert has_results
    assert [p["name"] for p in matches] == ["Ada", "Barbara"]


def test_search_treats_query_literally():
    people = [{"name": "a.b"}, {"name": "axb"}]

    matches, _ = search_items(people, "a.b", ["name"])

    assert matches == [{"name": "a.b"}]


def test_search_without_match_returns_everything():
    people = _make_people()

    matches, has_results = search_items(people, "nobody")

    assert not has_results
    assert matches == people


def test_empty_search_matches_everything():
    people = _make_people()

    assert search_items(people, "  ") == (people, True)
    assert search_items(people, None) == (people, True)


def test_sort_numeric_with_missing_values_last():
    ordered = sort_items(_make_people(), "age")

    assert [p["name"] for p in ordered] == ["Barbara", "Ada", "grace", "Alan"]


def test_sort_text_case_insensitive_descending():
    ordered = sort_items(_make_people(), "name", "desc")

    assert [p["name"] for p in ordered] == ["grace", "Barbara", "Alan", "Ada"]


def test_paginate_bounds():
    items = list(range(5))

    assert paginate_items(items, 2, 2) == [2, 3]
    assert paginate_items(items, 3, 2) == [4]
    assert paginate_items(items, 9, 2) == []
    assert paginate_items(items, 1, 0) == items


def test_run_static_query_counts_matches_before_paginating():
    result = run_static_query(_make_people(), search="r", search_fields=["name"], sort_by="name", page=2, per_page=1)

    assert result.match_count == 2
    assert [p["name"] for p in result.items] == ["grace"]
    assert result.has_results
