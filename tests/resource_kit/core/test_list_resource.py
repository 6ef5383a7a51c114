from __future__ import annotations

import asyncio
import json

import pytest

from resource_kit.core.context import ResourceContext
from resource_kit.core.exceptions import ConfigError
from resource_kit.core.list_resource import ListResource
from resource_kit.services.navigation import InMemoryLocation, InMemoryNavigator
from resource_kit.services.storage import InMemoryStorage
from resource_kit.services.transport import CallableTransport


def _make_static_list(items=None, context=None, **config) -> ListResource:
    raw = {"id": "letters", "payload": {"items": items if items is not None else _letters()}}
    raw.update(config)
    return ListResource(raw, context=context)


def _letters():
    return [{"title": "a"}, {"title": "b"}, {"title": "c"}]


def _make_url_context(url: str = "/list", transport=None, storage=None) -> ResourceContext:
    location = InMemoryLocation(url)
    return ResourceContext(
        transport=transport,
        storage=storage,
        location=location,
        navigator=InMemoryNavigator(location),
    )


def _make_transport(response, calls):
    async def fetch(url, query=None, headers=None):
        calls.append(dict(query))
        return response

    return CallableTransport(fetch)


def _titles(items):
    return [item["title"] for item in items]


async def _fetch(lr: ListResource):
    return await lr.fetch()


# -----------------------------------------------------------------------------
# Static mode
# -----------------------------------------------------------------------------
def test_static_pipeline_paginates_in_memory_items():
    lr = _make_static_list(itemsPerPage=2)

    assert lr.is_static()
    assert _titles(lr._get_items()) == ["a", "b"]

    lr.set_current_page(2)
    assert _titles(lr._get_items()) == ["c"]


def test_static_fetch_builds_page_payload():
    lr = _make_static_list(itemsPerPage=2)
    seen = []
    lr.subscribe("items", seen.append)

    lr.set_current_page(2)
    payload = asyncio.run(_fetch(lr))

    assert _titles(payload["items"]) == ["c"]
    assert payload["resultCount"] == 3
    assert _titles(seen[-1]) == ["c"]
    assert _titles(lr.get_items()) == ["a", "b", "c"]
    assert lr.get_total_pages() == 2
    assert lr.get_item_range() == (2, 3)
    assert lr.has_results()
    assert lr.has_items()


def test_item_range_stays_within_collection():
    lr = _make_static_list(itemsPerPage=2)
    asyncio.run(_fetch(lr))
    assert lr.get_item_range() == (1, 2)

    empty = _make_static_list(items=[], id="empty", itemsPerPage=2)
    asyncio.run(_fetch(empty))
    start, _ = empty.get_item_range()
    assert start == 1


def test_static_search_without_matches_keeps_all_items_and_flags_no_results():
    items = [{"title": "apple"}, {"title": "banana"}]
    lr = _make_static_list(items=items, searchFields=["title"])
    lr.add_search_filter()

    async def scenario():
        await lr.search("zzz")
        no_match = (_titles(lr.get_page_items()), lr.has_results())
        await lr.search("AN")
        return no_match

    no_match = asyncio.run(scenario())

    assert no_match == (["apple", "banana"], False)
    assert _titles(lr.get_page_items()) == ["banana"]
    assert lr.has_results()
    assert lr.get_total_items() == 1


def test_static_sorting_uses_sort_filters():
    items = [{"title": "b", "age": 30}, {"title": "a", "age": 5}, {"title": "c", "age": 12}]
    lr = _make_static_list(items=items)
    lr.get_sort_filter().set_value("age")
    lr.get_sort_dir_filter().set_value("desc")

    payload = asyncio.run(_fetch(lr))

    assert _titles(payload["items"]) == ["b", "c", "a"]
    assert lr.get_sort_direction() == "desc"


def test_filter_factories_are_idempotent():
    lr = _make_static_list()

    assert lr.get_sort_filter() is lr.get_sort_filter()
    assert lr.get_sort_dir_filter() is lr.get_sort_dir_filter()
    assert lr.get_search_filter() is lr.add_search_filter()
    assert lr.get_view_filter() is lr.add_view_filter()
    assert lr.get_filter("page") is lr.page_filter
    assert lr.get_filter("perPage") is lr.per_page_filter


# -----------------------------------------------------------------------------
# Items
# -----------------------------------------------------------------------------
def test_add_item_then_get_item_returns_processed_item():
    lr = _make_static_list(items=[])
    added = []
    lr.subscribe("add_item", lambda item, prepend: added.append(item))

    item = lr.add_item({"id": 5, "name": "five"})

    assert lr.get_item(lr.get_item_id(item)) is item
    assert item["list_resource"] is lr
    assert added == [item]
    assert lr.get_raw_item(5) is not None


def test_add_item_twice_keeps_single_entry():
    lr = _make_static_list(items=[])

    lr.add_item({"id": 5, "name": "first"})
    lr.add_item({"id": 5, "name": "second"})

    assert len(lr.items) == 1
    assert lr.get_item(5)["name"] == "second"
    assert lr.config.total_items == 1


def test_item_id_resolution_order():
    lr = ListResource({"id": "people", "itemIdMap": "uuid"})

    assert lr.get_item_id({"uuid": "u-1", "id": 3}) == "u-1"
    assert lr.get_item_id({"id": 3}) == 3
    assert lr.get_item_id({"name": "x"}) == lr.get_item_id({"name": "x"})

    mapped = ListResource({"id": "mapped", "mapItemId": lambda item: f"user-{item['name']}"})
    assert mapped.get_item_id({"name": "x", "id": 1}) == "user-x"


def test_remove_and_update_unknown_items_are_noops():
    lr = _make_static_list(items=[{"id": 1, "title": "a"}])
    events = []
    lr.subscribe("remove_item", lambda *args: events.append("remove"))
    lr.subscribe("update_item", lambda *args: events.append("update"))

    lr.remove_item({"id": 99})
    assert lr.update_item({"id": 99, "title": "z"}) is None

    assert events == []
    assert len(lr.items) == 1


def test_remove_and_update_known_items():
    lr = _make_static_list(items=[{"id": 1, "title": "a"}, {"id": 2, "title": "b"}])
    total = lr.config.total_items

    updated = lr.update_item({"id": 2, "title": "B"})
    lr.remove_item({"id": 1})

    assert updated["title"] == "B"
    assert _titles(lr.items) == ["B"]
    assert lr.get_item(1) is None
    assert lr.config.total_items == total - 1


def test_register_item_creates_once_and_retags_node():
    lr = _make_static_list(items=[])
    added = []
    lr.subscribe("add_item", lambda *args: added.append(args))

    first = lr.register_item({"id": 7, "title": "g"}, "node-1")
    again = lr.register_item({"id": 7, "title": "g"}, "node-2")

    assert first is again
    assert again["node"] == "node-2"
    assert len(lr.items) == 1
    assert added == []


def test_next_and_previous_item_wrap_around():
    lr = _make_static_list(items=[{"id": 1, "title": "a"}, {"id": 2, "title": "b"}])

    assert lr.get_next_item({"id": 2})["title"] == "a"
    assert lr.get_previous_item({"id": 1})["title"] == "b"


# -----------------------------------------------------------------------------
# Selection
# -----------------------------------------------------------------------------
def test_toggle_selections_deselects_all_then_selects_all():
    lr = _make_static_list(items=[{"title": "a"}, {"title": "b"}], hasSelection=True, isItemSelectable=lambda item: True)
    a, b = lr.items

    lr.select_item(a)
    lr.select_item(b)

    assert lr.toggle_selections() is False
    assert not lr.has_selections()

    assert lr.toggle_selections() is True
    assert lr.is_selected(a) and lr.is_selected(b)


def test_select_item_emits_item_and_aggregate_events():
    lr = _make_static_list(items=[{"id": 1, "title": "a"}], hasSelection=True)
    events = []
    lr.subscribe("item_selected_1", lambda value: events.append(("selected", value)))
    lr.subscribe("item_deselected_1", lambda value: events.append(("deselected", value)))
    lr.subscribe("selection_change", lambda selected: events.append(("change", len(selected))))

    item = lr.get_item(1)
    lr.select_item(item)
    lr.select_item(item)
    lr.toggle_item(item)

    assert events == [("selected", True), ("change", 1), ("deselected", False), ("change", 0)]


def test_unselectable_items_are_skipped():
    lr = _make_static_list(
        items=[{"id": 1, "locked": True}, {"id": 2, "locked": False}],
        hasSelection=True,
        isItemSelectable=lambda item: not item["locked"],
    )

    lr.set_selections(True)

    assert lr.get_selected_ids() == [2]
    assert lr.get_selectable_items() == [lr.get_item(2)]


def test_set_selections_emits_single_change_event():
    lr = _make_static_list(items=[{"id": 1}, {"id": 2}, {"id": 3}], hasSelection=True)
    changes = []
    per_item = []
    lr.subscribe("selection_change", changes.append)
    for item_id in (1, 2, 3):
        lr.subscribe(f"item_selected_{item_id}", per_item.append)

    lr.set_selections(True)

    assert len(changes) == 1
    assert per_item == []
    assert lr.get_selected_count() == 3


def test_selection_is_persisted_and_restored():
    storage = InMemoryStorage()
    ctx = ResourceContext(storage=storage)
    items = [{"id": 1, "title": "a"}, {"id": 2, "title": "b"}]
    lr = _make_static_list(items=[dict(i) for i in items], context=ctx, hasSelection=True, hasSelectionSave=True)

    lr.select_item(lr.get_item(2))
    lr.destroy()

    stored = json.loads(storage.get("letters-selected"))
    assert stored == [{"id": 2, "title": "b"}]
    assert storage.get("letters-selected-length") == "1"

    restored = _make_static_list(items=[dict(i) for i in items], context=ctx, hasSelection=True, hasSelectionSave=True)
    restored.initialize_selected_items()
    assert restored.is_selected(restored.get_item(2))
    assert restored.get_selected_count() == 1

    restored.clear_selection_data()
    assert storage.get("letters-selected") is None
    assert not restored.has_selections()


def _six_items():
    return [{"id": i, "title": t} for i, t in enumerate("abcdef", start=1)]


def test_filter_by_selections_shows_only_selected_items():
    lr = _make_static_list(items=_six_items(), hasSelection=True, itemsPerPage=2)
    lr.select_item(lr.get_item(2))

    lr.filter_by_selections()

    assert _titles(lr.get_page_items()) == ["b"]
    assert lr.get_total_items() == 1
    assert lr.get_total_pages() == 1
    assert lr.get_item_range() == (1, 1)

    # The next fetch pages the whole collection again
    asyncio.run(_fetch(lr))
    assert lr.get_total_items() == 6
    assert lr.get_total_pages() == 3


def test_filter_by_persisted_selections_keeps_item_index_consistent():
    ctx = ResourceContext(storage=InMemoryStorage())
    lr = _make_static_list(items=_six_items(), context=ctx, hasSelection=True, hasSelectionSave=True, itemsPerPage=2)
    lr.select_item(lr.get_item(2))

    lr.filter_by_selections()

    shown = lr.get_page_items()[0]
    assert shown is lr.get_item(2)
    assert lr.get_item(2) is lr.items[lr.get_item_index({"id": 2})]

    lr.update_item({"id": 2, "title": "B"})
    assert shown["title"] == "B"


# -----------------------------------------------------------------------------
# Filters, URL and navigation
# -----------------------------------------------------------------------------
def test_filters_url_keeps_non_default_and_non_clearable_values():
    ctx = _make_url_context("/list?sortBy=name&other=1")
    lr = _make_static_list(context=ctx, itemsPerPage=10)
    lr.add_sort_filter()

    assert lr.get_filters_url() == "/list?sortBy=name&other=1&page=1&perPage=10"
    assert lr.get_clear_filters_url() == "/list?other=1"


def test_filters_url_needs_location():
    lr = _make_static_list()

    with pytest.raises(ConfigError):
        lr.get_filters_url()


def test_set_current_page_navigates_and_updates_page():
    ctx = _make_url_context("/list")
    lr = _make_static_list(context=ctx, itemsPerPage=2)

    lr.set_current_page(2)

    assert ctx.location.get_url() == "/list?page=2"
    assert lr.get_current_page() == 2
    assert _titles(lr._get_items()) == ["c"]


def test_query_params_include_only_request_filters():
    lr = _make_static_list(itemsPerPage=10, query={"fixed": True})
    lr.add_search_filter()
    lr.add_view_filter()
    lr.add_filter("status", {"defaultValue": "open", "isRequestFilter": True, "queryName": "state"})

    assert lr.get_query() == {"fixed": True, "page": 1, "perPage": 10, "search": "", "state": "open"}


def test_active_filters_and_clearing():
    lr = _make_static_list()
    status = lr.add_filter("status", {"defaultValue": "all", "isRequestFilter": True})

    status.set_value("open")
    lr.initialize_filters()
    assert lr.has_active_filter
    assert lr.active_filters == [status]
    assert lr.can_clear_filters()

    lr.clear_filters()
    assert status.get_value() == "all"
    assert not lr.has_active_filter
    assert not lr.can_clear_filters()


def test_toggle_list_persists_collapsed_state():
    storage = InMemoryStorage()
    ctx = ResourceContext(storage=storage)
    lr = _make_static_list(context=ctx, hasToggleSave=True)
    toggles = []
    lr.subscribe("TOGGLE", toggles.append)

    lr.toggle_list()

    assert toggles == [True]
    assert lr.is_collapsed()

    reopened = _make_static_list(context=ctx, hasToggleSave=True)
    assert reopened.is_collapsed()


# -----------------------------------------------------------------------------
# Remote mode
# -----------------------------------------------------------------------------
def test_remote_fetch_processes_items_and_totals():
    calls = []
    response = {"payload": {"results": [{"id": 1}, {"id": 2}], "resultCount": 5, "totalPages": 3, "page": 1}}
    ctx = ResourceContext(transport=_make_transport(response, calls))
    lr = ListResource({"id": "users", "url": "/api/users", "itemsPerPage": 2}, context=ctx)
    updates = []
    lr.subscribe("items_updated", updates.append)

    asyncio.run(_fetch(lr))

    assert not lr.is_static()
    assert calls == [{"page": 1, "perPage": 2}]
    assert [item["id"] for item in lr.items] == [1, 2]
    assert lr.get_item(2)["list_resource"] is lr
    assert lr.get_total_items() == 5
    assert lr.get_total_pages() == 3
    assert len(updates) == 1
    assert ctx.registry.get("users") is lr


def test_route_change_refetches_only_when_filters_change():
    calls = []
    response = {"payload": {"results": [{"id": 1}], "resultCount": 1}}
    ctx = _make_url_context("/users", transport=_make_transport(response, calls))
    lr = ListResource({"id": "users", "url": "/api/users", "itemsPerPage": 2}, context=ctx)

    async def scenario():
        await lr.fetch()
        await lr.fetch()
        ctx.navigator.go("/users?page=2")
        await lr.resource.request
        ctx.navigator.go("/users?page=2#top")
        await asyncio.sleep(0)

    asyncio.run(scenario())

    assert [call["page"] for call in calls] == [1, 1, "2"]
    assert ctx.navigator.events.handler_count("route_change") == 1


def test_destroy_clears_state_and_leaves_registry():
    ctx = ResourceContext()
    lr = _make_static_list(context=ctx)

    lr.destroy()

    assert lr.items == []
    assert lr.filters == {}
    assert ctx.registry.get("letters") is None
