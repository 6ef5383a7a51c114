from __future__ import annotations

import hashlib
import json
import logging
import math
import uuid
from dataclasses import replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from resource_kit.services.selection_store import SelectionStore, serialisable_item

from .configs import FilterConfig, ListResourceConfig
from .context import ResourceContext
from .events import ROUTE_CHANGE, EventEmitter, Unsubscribe
from .filter import UNSET, Filter
from .resource import EVENT_PAYLOAD, Resource, ResourceHooks
from .static_query import run_static_query

logger = logging.getLogger(__name__)

Item = Dict[str, Any]

ITEM_OWNER_KEY = "list_resource"
ITEM_NODE_KEY = "node"
NO_RESULTS_CODE = "no-results"

EVENT_ITEMS = "items"
EVENT_ITEMS_UPDATED = "items_updated"
EVENT_ADD_ITEM = "add_item"
EVENT_ADD_ITEMS = "add_items"
EVENT_REMOVE_ITEM = "remove_item"
EVENT_REMOVE_ITEMS = "remove_items"
EVENT_UPDATE_ITEM = "update_item"
EVENT_SELECTION_CHANGE = "selection_change"
EVENT_TOGGLE = "TOGGLE"
EVENT_PROCESSING = "PROCESSING"


def _present(value: Any) -> bool:
    return value is not None and value != ""


class ListResource:
    """
    A Resource specialised for paginated, filterable, sortable, selectable
    item collections.

    The list owns a Resource (sharing its event emitter) and plugs into it
    through hooks rather than subclassing:
    - remote mode (a URL is configured): items come from the transport
    - static mode (no URL, or is_static=True): `items` holds the whole
      in-memory collection and each fetch runs search -> sort -> paginate over it;
      the resulting page is the payload's `items`

    Filters own the page, per-page, sort, sort direction, search, view and
    toggle state; their values are resolved from URL, storage and defaults.
    """

    def __init__(
        self,
        config: Union[ListResourceConfig, Mapping[str, Any], None] = None,
        *,
        context: Optional[ResourceContext] = None,
        response_validator: Optional[Callable[[Any], Union[bool, str]]] = None,
    ):
        if isinstance(config, ListResourceConfig):
            self.config = replace(config)
        else:
            self.config = ListResourceConfig.from_dict(config)
        self.context = context or ResourceContext()
        self.events = EventEmitter()
        self.id = self.config.id or type(self).__name__
        self.item_id_map = self.config.item_id_map or "id"

        self.items: List[Item] = []
        self.items_by_id: Dict[Any, Item] = {}
        self.raw_items_by_id: Dict[Any, Item] = {}
        self.filters: Dict[str, Filter] = {}
        self.has_active_filter = False
        self.active_filters: List[Filter] = []
        self.filter_signature: Optional[str] = None
        self.prev_filter_signature: Optional[str] = None
        self.selected_items: List[Item] = []
        self.selected_items_by_id: Dict[Any, Item] = {}
        self.static_query_count: Optional[int] = None
        self._no_results = False
        self._selection_count: Optional[int] = None
        self.is_processing = False

        self.page_filter: Optional[Filter] = None
        self.per_page_filter: Optional[Filter] = None
        self.sort_filter: Optional[Filter] = None
        self.sort_dir_filter: Optional[Filter] = None
        self.search_filter: Optional[Filter] = None
        self.view_filter: Optional[Filter] = None
        self.toggle_list_filter: Optional[Filter] = None
        self._route_unsubscribe: Optional[Unsubscribe] = None

        self.selection_store: Optional[SelectionStore] = None
        if self.has_selection_save():
            self.selection_store = SelectionStore(self.context.storage, self.id)

        self._setup_filters()

        initial_payload, self.config.payload = self.config.payload, None

        self.resource = Resource(
            self.config.url,
            self.config,
            context=self.context,
            events=self.events,
            resource_id=self.id,
            register=False,
            hooks=ResourceHooks(
                fetch_strategy=self._fetch_items,
                payload_preprocessor=self._preprocess_payload,
                response_validator=response_validator,
                query_builder=self.get_query,
            ),
        )
        if initial_payload and self.is_static():
            self.set_items(self.get_items_from_payload(initial_payload), notify=False)
        elif initial_payload:
            self.resource.initialize_payload(initial_payload, update=False)

        self.resource.add_unsubscribe(self.events.subscribe(EVENT_PAYLOAD, self._on_payload))
        self.context.registry.register(self)

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------
    def subscribe(self, name: str, handler: Callable[..., Any]) -> Unsubscribe:
        return self.events.subscribe(name, handler)

    @property
    def is_ready(self) -> bool:
        return self.resource.is_ready

    @property
    def has_fetched(self) -> bool:
        return self.resource.has_fetched

    @property
    def has_failed(self) -> bool:
        return self.resource.has_failed

    @property
    def poll_count(self) -> int:
        return self.resource.poll_count

    @property
    def payload(self) -> Any:
        return self.resource.payload

    def get_payload(self) -> Any:
        return self.resource.get_payload()

    def get_url(self) -> Optional[str]:
        return self.resource.get_url()

    def set_url(self, url: Optional[str]) -> ListResource:
        self.resource.set_url(url)
        return self

    def is_static(self) -> bool:
        return bool(self.config.is_static) or not self.resource.get_url()

    def is_collapsed(self) -> bool:
        return self.config.is_collapsed

    def has_toggle_save(self) -> bool:
        return self.config.has_toggle_save

    def has_selection_save(self) -> bool:
        return self.config.has_selection_save

    def has_selection(self) -> bool:
        return self.config.has_selection

    def map_item(self, callback: Callable[[Item], Item]) -> ListResource:
        self.config.pre_process_item = callback
        return self

    def set_pre_process_node(self, callback: Callable[[Any], Any]) -> ListResource:
        self.config.pre_process_node = callback
        return self

    def set_is_processing(self, value: bool) -> ListResource:
        self.is_processing = value
        self.events.emit(EVENT_PROCESSING, value)
        return self

    # -------------------------------------------------------------------------
    # Pagination
    # -------------------------------------------------------------------------
    @staticmethod
    def _to_int(value: Any, fallback: int) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            return fallback

    def get_current_page(self) -> int:
        value = self.page_filter.get_value() if self.page_filter is not None else None
        return max(self._to_int(value, self.config.current_page or 1), 1)

    def set_current_page(self, page: int) -> ListResource:
        """
        Move to `page`. With a navigator the page parameter is also written to
        the URL, which keeps URL-driven page filters in sync.
        """
        location = self.context.location
        if location is not None and self.page_filter.is_url_filter():
            url = location.edit_url({self.page_filter.get_url_name(): page})
            if self.context.navigator is not None:
                self.context.navigator.go(url)
            else:
                location.set_url(url)
        self.page_filter.set_value(page)
        self.config.current_page = page
        return self

    def get_per_page(self) -> int:
        value = self.per_page_filter.get_value() if self.per_page_filter is not None else None
        per_page = self._to_int(value, 0)
        if per_page > 0:
            return per_page
        if isinstance(self.payload, Mapping):
            return self._to_int(self.payload.get("perPage"), 0)
        return 0

    def get_page(self, payload: Any = None) -> int:
        payload = self.payload if payload is None else payload
        if isinstance(payload, Mapping) and payload.get("page") is not None:
            return self._to_int(payload["page"], self.get_current_page())
        return self.get_current_page()

    def get_total_items(self, payload: Any = None) -> int:
        if self.is_static():
            if self._selection_count is not None:
                return self._selection_count
            if self._search_value() and self.static_query_count is not None:
                return self.static_query_count
            return len(self.items)
        payload = self.payload if payload is None else payload
        if isinstance(payload, Mapping) and payload.get("resultCount") is not None:
            return self._to_int(payload["resultCount"], len(self.items))
        return len(self.items)

    def get_total_pages(self, payload: Any = None) -> int:
        payload = self.payload if payload is None else payload
        if not self.is_static() and isinstance(payload, Mapping) and payload.get("totalPages") is not None:
            return self._to_int(payload["totalPages"], 0)
        total = self.get_total_items(payload)
        per_page = self.get_per_page()
        if per_page <= 0:
            return 1 if total else 0
        return math.ceil(total / per_page)

    def get_item_range(self) -> Tuple[int, int]:
        """
        1-based inclusive [start, end] of the current page, clamped to the
        collection: start >= 1 and end <= total items. A page past the end is
        shifted back so it still shows a full page where possible.
        """
        total_items = self.get_total_items()
        per_page = self.get_per_page()
        if per_page <= 0:
            per_page = max(total_items, 1)
        start = (self.get_page() - 1) * per_page + 1
        end = start + per_page - 1
        if end > total_items:
            end = total_items
            start = end - per_page + 1
        if start <= 0:
            start = 1
        return start, end

    def get_next_page(self) -> int:
        page = self.get_current_page() + 1
        return 1 if page > self.get_total_pages() else page

    def get_previous_page(self) -> int:
        page = self.get_current_page() - 1
        return max(self.get_total_pages(), 1) if page < 1 else page

    def next_page(self) -> int:
        page = self.get_next_page()
        self.set_current_page(page)
        return page

    def previous_page(self) -> int:
        page = self.get_previous_page()
        self.set_current_page(page)
        return page

    def get_sort_direction(self) -> Optional[str]:
        if self.sort_dir_filter is not None:
            return self.sort_dir_filter.get_value()
        if isinstance(self.payload, Mapping):
            return (self.payload.get("defaultSorting") or {}).get("order")
        return None

    def has_results(self) -> bool:
        output = self.payload.get("output") if isinstance(self.payload, Mapping) else None
        return not any(entry.get("code") == NO_RESULTS_CODE for entry in output or [])

    # -------------------------------------------------------------------------
    # Resource API
    # -------------------------------------------------------------------------
    def fetch(self, *args: Any):
        """Start (or join) a fetch cycle; see Resource.fetch."""
        request = self.resource.fetch(*args)
        self.handle_route_change()
        return request

    def poll(self, on_complete=None, must_stop=None, interval=None):
        return self.resource.poll(on_complete, must_stop, interval)

    def stop_polling(self) -> None:
        self.resource.stop_polling()

    async def on_load(self) -> None:
        await self.resource.on_load()

    def update(self, payload: Optional[Mapping[str, Any]] = None) -> Any:
        return self.resource.update(payload)

    async def _fetch_items(self, resource: Resource, *args: Any) -> Any:
        if self.is_static():
            payload = resource.initialize_payload(self._get_static_payload())
        else:
            payload = await resource.fetch_payload(*args)
        self.initialize_filters()
        return payload

    def handle_route_change(self) -> None:
        """Refetch on navigation whenever it changed a filter value. Subscribes once."""
        navigator = self.context.navigator
        if navigator is None or self._route_unsubscribe is not None:
            return
        self._route_unsubscribe = navigator.events.subscribe(ROUTE_CHANGE, self._on_route_change)
        self.resource.add_unsubscribe(self._route_unsubscribe)

    def _on_route_change(self, *_: Any) -> None:
        if self.have_filters_changed():
            logger.debug("Filters changed on navigation, refetching", extra={"resource_id": self.id})
            self.fetch().add_done_callback(self._consume_background_result)

    @staticmethod
    def _consume_background_result(request) -> None:
        # Failures already surfaced through the ERROR event.
        if not request.cancelled():
            request.exception()

    def get_query(self) -> Dict[str, Any]:
        return {**self.config.query, **self.get_filter_query_params()}

    def search(self, value: Any):
        self.get_search_filter().set_value(value)
        return self.fetch()

    def get_items_from_payload(self, payload: Any = None) -> List[Item]:
        if isinstance(payload, list):
            return payload
        if isinstance(payload, Mapping):
            for key in ("results", "items"):
                if isinstance(payload.get(key), list):
                    return payload[key]
        return []

    def _preprocess_payload(self, payload: Any) -> Dict[str, Any]:
        items = self.get_items_from_payload(payload)
        payload = dict(payload) if isinstance(payload, Mapping) else {}
        if self.is_static():
            # Static payloads carry one page of the already indexed collection;
            # copies (e.g. a persisted selection) resolve to the indexed item.
            page_items = [self._indexed_item(item) for item in items]
        else:
            self.items_by_id = {}
            self.raw_items_by_id = {}
            self.items = page_items = self.pre_process_items(items)
        payload["items"] = page_items

        self.config.total_items = self.get_total_items(payload)
        self.config.total_pages = self.get_total_pages(payload)
        if self.page_filter is not None:
            self.config.current_page = self._to_int(self.page_filter.get_value(), 1) or 1
        self.initialize_selected_items()
        return payload

    def _indexed_item(self, item: Item) -> Item:
        indexed = self.items_by_id.get(self._lookup_id(item))
        return indexed if indexed is not None else self.pre_process_item(item)

    def _on_payload(self, payload: Any) -> None:
        items = payload.get("items", []) if isinstance(payload, Mapping) else []
        self.events.emit(EVENT_ITEMS, items)
        self.events.emit(EVENT_ITEMS_UPDATED, items)

    def _get_static_payload(self) -> Dict[str, Any]:
        page_items = self._get_items()
        payload: Dict[str, Any] = {
            "items": page_items,
            "resultCount": self.get_total_items(),
            "page": self.get_current_page(),
            "perPage": self.get_per_page(),
        }
        if self._no_results:
            payload["output"] = [{"code": NO_RESULTS_CODE, "query": self._search_value()}]
        return payload

    def _search_value(self) -> Any:
        return self.search_filter.get_value() if self.search_filter is not None else None

    def _get_items(self) -> List[Item]:
        """
        Static mode: run search -> sort -> paginate over the in-memory items
        using the current search, sort, page and per-page filter values.
        """
        result = run_static_query(
            self.items,
            search=self._search_value(),
            search_fields=self.config.search_fields,
            sort_by=self.sort_filter.get_value() if self.sort_filter is not None else None,
            sort_dir=self.sort_dir_filter.get_value() if self.sort_dir_filter is not None else None,
            page=self.get_current_page(),
            per_page=self.get_per_page(),
        )
        self._selection_count = None
        self._no_results = not result.has_results
        self.static_query_count = result.match_count
        return result.items

    # -------------------------------------------------------------------------
    # List API
    # -------------------------------------------------------------------------
    def get_items(self) -> List[Item]:
        return self.items

    def get_page_items(self) -> List[Item]:
        """Items of the current page: the payload's items, or all items before any fetch."""
        if isinstance(self.payload, Mapping) and isinstance(self.payload.get("items"), list):
            return self.payload["items"]
        return self.items

    def open_list(self):
        if not self.items:
            return self.fetch()
        return None

    def refresh(self, refresh_filters: bool = True):
        if refresh_filters and self.context.navigator is not None and self.context.location is not None:
            self.context.navigator.go(self.get_filters_url(encode=False))
        return self.fetch()

    def has_no_items(self) -> bool:
        return bool(self.is_ready and not self.items)

    def has_items(self) -> bool:
        return bool(self.is_ready and self.items)

    def toggle_list(self, state: Optional[bool] = None) -> ListResource:
        self.config.is_collapsed = (not self.is_collapsed()) if state is None else bool(state)
        if self.toggle_list_filter is not None:
            self.toggle_list_filter.set_value(not self.is_collapsed())
        self.events.emit(EVENT_TOGGLE, self.is_collapsed())
        return self

    # -------------------------------------------------------------------------
    # Item API
    # -------------------------------------------------------------------------
    def _lookup_id(self, item: Mapping[str, Any]) -> Any:
        """Resolve an item's identity without the random last resort; None if unknown."""
        map_item_id = self.config.map_item_id
        if map_item_id is not None:
            mapped = map_item_id(item)
            if _present(mapped):
                return mapped
        for key in (self.item_id_map, "id"):
            if _present(item.get(key)):
                return item[key]
        return self._content_id(item)

    @staticmethod
    def _content_id(item: Mapping[str, Any]) -> Optional[str]:
        try:
            body = json.dumps(serialisable_item(dict(item)), sort_keys=True, default=str)
        except (TypeError, ValueError):
            return None
        return "item-" + hashlib.sha1(body.encode("utf-8")).hexdigest()[:12]

    def get_item_id(self, item: Mapping[str, Any]) -> Any:
        """
        Identity of an item: map_item_id(item), else the configured id field,
        else `id`, else a hash of the item's content. A random id is the last
        resort and is logged, since it cannot be reproduced.
        """
        item_id = self._lookup_id(item)
        if item_id is None:
            item_id = "item-" + uuid.uuid4().hex[:12]
            logger.warning(
                "Item has no stable identity, using a random id",
                extra={"resource_id": self.id, "item_id": item_id},
            )
        return item_id

    def pre_process_items(self, items: List[Item]) -> List[Item]:
        return [self.pre_process_item(item) for item in items]

    def pre_process_item(self, item: Item) -> Item:
        """
        Stamp the resolved id on the item (under `id` and the id field), attach
        the owning list and index it. Items this list already processed keep
        their identity and are only re-indexed.
        """
        if item.get(ITEM_OWNER_KEY) is self and _present(item.get(self.item_id_map)):
            item_id = item[self.item_id_map]
            self.items_by_id[item_id] = item
            self.raw_items_by_id.setdefault(item_id, item)
            return item

        raw_item = item
        if self.config.pre_process_item is not None:
            item = self.config.pre_process_item(item)
        item_id = self.get_item_id(item)
        item["id"] = item_id
        item[self.item_id_map] = item_id
        item[ITEM_OWNER_KEY] = self
        self.items_by_id[item_id] = item
        self.raw_items_by_id[item_id] = raw_item
        return item

    def set_items(self, items: List[Item], notify: bool = True) -> None:
        self.items_by_id = {}
        self.raw_items_by_id = {}
        self.items = self.pre_process_items(list(items))
        self.config.total_items = len(self.items)
        if notify:
            self.events.emit(EVENT_ITEMS, self.items)
            self.events.emit(EVENT_ITEMS_UPDATED, self.items)

    def add_item(self, item: Item, notify: bool = True, prepend: bool = False) -> Item:
        """Add (or re-add) an item; an existing item with the same identity is evicted first."""
        self.remove_item(item, notify=False)
        item = self.pre_process_item(item)
        if prepend:
            self.items.insert(0, item)
        else:
            self.items.append(item)
        self.config.total_items += 1
        if notify:
            self.events.emit(EVENT_ADD_ITEM, item, prepend)
            self.events.emit(EVENT_ITEMS_UPDATED, self.items)
        return item

    def add_items(self, items: List[Item], notify: bool = True, prepend: bool = False) -> None:
        for item in items:
            self.add_item(item, notify=False, prepend=prepend)
        if notify:
            self.events.emit(EVENT_ADD_ITEMS, items)
            self.events.emit(EVENT_ITEMS_UPDATED, self.items)

    def register_item(self, payload: Item, node: Any) -> Item:
        """
        Associate a display handle with an item, creating the item (without an
        add_item event) when none with the derived id exists yet.
        """
        for existing in self.items:
            if existing.get(ITEM_NODE_KEY) is node:
                return existing
        if self.config.pre_process_node is not None:
            self.config.pre_process_node(node)

        item_id = self._lookup_id(payload)
        item = self.items_by_id.get(item_id) if item_id is not None else None
        if item is None:
            item = self.add_item(payload, notify=False)
        item[ITEM_NODE_KEY] = node
        return item

    def get_item(self, item_id: Any) -> Optional[Item]:
        return self.items_by_id.get(item_id)

    def get_raw_item(self, item_id: Any) -> Optional[Item]:
        return self.raw_items_by_id.get(item_id)

    def get_item_index(self, item: Mapping[str, Any]) -> int:
        item_id = self._lookup_id(item)
        if item_id is None:
            return -1
        for index, existing in enumerate(self.items):
            if existing.get(self.item_id_map) == item_id:
                return index
        return -1

    def get_next_item(self, item: Mapping[str, Any]) -> Optional[Item]:
        if not self.items:
            return None
        index = self.get_item_index(item) + 1
        return self.items[index] if index < len(self.items) else self.items[0]

    def get_previous_item(self, item: Mapping[str, Any]) -> Optional[Item]:
        if not self.items:
            return None
        index = self.get_item_index(item) - 1
        return self.items[index] if index >= 0 else self.items[-1]

    def remove_item(self, item: Mapping[str, Any], notify: bool = True) -> None:
        index = self.get_item_index(item)
        if index == -1:
            return
        removed = self.items.pop(index)
        item_id = removed.get(self.item_id_map)
        self.items_by_id.pop(item_id, None)
        self.raw_items_by_id.pop(item_id, None)
        self.config.total_items = max(self.config.total_items - 1, 0)
        if notify:
            self.events.emit(EVENT_REMOVE_ITEM, removed, index)
            self.events.emit(EVENT_ITEMS_UPDATED, self.items)

    def remove_items(self, notify: bool = True) -> None:
        self.items = []
        self.items_by_id = {}
        self.raw_items_by_id = {}
        self.config.total_items = 0
        if notify:
            self.events.emit(EVENT_REMOVE_ITEMS)
            self.events.emit(EVENT_ITEMS_UPDATED, self.items)

    def update_item(self, item: Mapping[str, Any], notify: bool = True) -> Optional[Item]:
        """Merge `item` into the stored item with the same identity; no-op when absent."""
        index = self.get_item_index(item)
        if index == -1:
            return None
        existing = self.items[index]
        existing.update({k: v for k, v in item.items() if k != ITEM_OWNER_KEY})
        self.items_by_id[existing[self.item_id_map]] = existing
        if notify:
            self.events.emit(EVENT_UPDATE_ITEM, existing, index)
        return existing

    # -------------------------------------------------------------------------
    # Filters API
    # -------------------------------------------------------------------------
    def _setup_filters(self) -> None:
        self.paginate()
        if self.has_toggle_save():
            self.toggle_list_filter = self.add_filter(
                f"{self.id}-toggleList",
                {"default_value": not self.config.is_collapsed, "has_local_storage": True},
            )
            self.config.is_collapsed = not bool(self.toggle_list_filter.get_value())

    def paginate(self, items_per_page: Optional[int] = None) -> ListResource:
        if items_per_page is None:
            items_per_page = self.config.items_per_page
        page_param = self.config.page_param or "page"
        per_page_param = self.config.per_page_param or "perPage"

        def on_page(page: Any) -> None:
            self.config.current_page = self._to_int(page, 1)

        self.page_filter = self.add_filter(f"{self.id}-page", {
            "default_value": 1,
            "is_url_filter": True,
            "is_request_filter": True,
            "url_param_name": page_param,
            "alias": page_param,
            "allow_clear": False,
            "callback": on_page,
        })
        self.per_page_filter = self.add_filter(f"{self.id}-size", {
            "default_value": items_per_page,
            "alias": per_page_param,
            "url_param_name": per_page_param,
            "query_name": per_page_param,
            "is_url_filter": True,
            "is_request_filter": True,
            "allow_clear": False,
        })
        if self.config.per_page_options:
            self.per_page_filter.set_options([
                option if isinstance(option, Mapping) else {"value": option, "label": str(option)}
                for option in self.config.per_page_options
            ])
        return self

    def add_filter(self, filter_id: str, config: Union[FilterConfig, Mapping[str, Any], None] = None) -> Filter:
        list_filter = Filter(filter_id, config, context=self.context)
        self.filters[list_filter.key] = list_filter
        return list_filter

    def set_filter(self, name: str, value: Any = None) -> ListResource:
        list_filter = self.filters.get(name)
        if list_filter is not None:
            list_filter.set_value(value)
        return self

    def remove_filter(self, name: str) -> None:
        """Drop the filter and its persisted value."""
        list_filter = self.filters.pop(name, None)
        storage_key = list_filter.id if list_filter is not None else name
        if self.context.storage is not None:
            self.context.storage.remove(storage_key)

    def get_filter(self, name: str) -> Optional[Filter]:
        return self.filters.get(name)

    def get_filters(self) -> List[Filter]:
        return list(self.filters.values())

    def get_filter_values(self) -> Dict[str, Any]:
        return {f.get_alias() or f.get_id(): f.get_value() for f in self.get_filters()}

    def get_filter_signature(self) -> str:
        return json.dumps(self.get_filter_values(), default=str)

    def have_filters_changed(self) -> bool:
        self.prev_filter_signature = self.filter_signature
        self.filter_signature = self.get_filter_signature()
        return self.prev_filter_signature != self.filter_signature

    def get_filter_payload(self, filter_id: str) -> Any:
        filters = self.payload.get("filters") if isinstance(self.payload, Mapping) else None
        return filters.get(filter_id) if isinstance(filters, Mapping) else None

    def is_filter_active(self, filter_id: str) -> bool:
        filter_payload = self.get_filter_payload(filter_id)
        if isinstance(filter_payload, Mapping) and filter_payload.get("isActive") is not None:
            return bool(filter_payload["isActive"])
        list_filter = self.get_filter(filter_id)
        return bool(list_filter is not None and list_filter.is_active())

    def initialize_filters(self) -> None:
        """Re-resolve every filter and recompute the active-filter state."""
        self.has_active_filter = False
        self.active_filters = []
        sort_filters = (self.sort_filter, self.sort_dir_filter)
        for list_filter in self.get_filters():
            list_filter.initialize_value()
            if list_filter not in sort_filters and list_filter.is_active():
                self.active_filters.append(list_filter)
                self.has_active_filter = True
        self.filter_signature = self.get_filter_signature()

    def get_filter_query_params(self) -> Dict[str, Any]:
        query: Dict[str, Any] = {}
        for list_filter in self.get_filters():
            if not list_filter.is_request_filter():
                continue
            name = list_filter.get_query_name() or list_filter.get_alias() or list_filter.get_id()
            query[name] = list_filter.get_query_value()
        return query

    def get_filters_url(self, encode: bool = True) -> str:
        """
        Current URL with every URL filter's parameter set to its value, or
        removed when the value is the default of a clearable filter without storage.
        """
        patch: Dict[str, Any] = {}
        for list_filter in self.get_filters():
            if not list_filter.is_url_filter():
                continue
            value = list_filter.value if list_filter.value is not UNSET else list_filter.get_value()
            keep = (
                value != list_filter.get_default_value()
                or list_filter.has_local_storage()
                or not list_filter.allow_clear()
            )
            patch[list_filter.get_url_name()] = value if keep else None
        return self.context.require_location().edit_url(patch, encode)

    def get_clear_filters_url(self) -> str:
        patch: Dict[str, Any] = {
            f.get_url_name(): None for f in self.get_filters() if f.is_url_filter()
        }
        if self.search_filter is not None:
            patch[self.search_filter.get_url_name()] = None
        return self.context.require_location().edit_url(patch)

    def has_url_filter(self) -> bool:
        return any(f.is_url_filter() for f in self.get_filters())

    def can_clear_filter(self, list_filter: Filter) -> bool:
        return bool(
            list_filter.allow_clear()
            and list_filter.is_request_filter()
            and list_filter.get_default_value() != list_filter.get_value()
        )

    def can_clear_filters(self) -> bool:
        return any(self.can_clear_filter(f) for f in self.get_filters())

    def clear_filters(self, notify: bool = False) -> None:
        self.clear_filter_values(True)
        self.has_active_filter = False
        if self.page_filter is not None:
            self.page_filter.reset_value(notify)
        if self.context.navigator is not None and self.context.location is not None:
            self.context.navigator.go(self.get_clear_filters_url())

    def clear_filter_values(self, notify: bool = False) -> None:
        for list_filter in self.get_filters():
            if list_filter.allow_clear():
                list_filter.reset_value(notify)

    def add_sort_filter(self, config: Optional[Mapping[str, Any]] = None) -> Filter:
        if self.sort_filter is None:
            self.sort_filter = self.add_filter(self.config.sort_by_param, {
                "default_value": "",
                "is_request_filter": True,
                "is_url_filter": True,
                "has_local_storage": True,
                **(config or {}),
            })
        return self.sort_filter

    def get_sort_filter(self) -> Filter:
        return self.add_sort_filter()

    def add_sort_dir_filter(self, config: Optional[Mapping[str, Any]] = None) -> Filter:
        if self.sort_dir_filter is None:
            self.sort_dir_filter = self.add_filter(self.config.sort_dir_param, {
                "default_value": "asc",
                "is_request_filter": True,
                "is_url_filter": True,
                **(config or {}),
            })
        return self.sort_dir_filter

    def get_sort_dir_filter(self) -> Filter:
        return self.add_sort_dir_filter()

    def add_view_filter(self, config: Optional[Mapping[str, Any]] = None) -> Filter:
        if self.view_filter is None:
            self.view_filter = self.add_filter(f"{self.id}-view", {
                "default_value": "list",
                "alias": "views",
                "has_local_storage": True,
                **(config or {}),
            })
        return self.view_filter

    def get_view_filter(self, config: Optional[Mapping[str, Any]] = None) -> Filter:
        return self.add_view_filter(config)

    def add_search_filter(self, config: Optional[Mapping[str, Any]] = None) -> Filter:
        if self.search_filter is None:
            self.search_filter = self.add_filter(self.config.search_param, {
                "default_value": "",
                "is_request_filter": True,
                **(config or {}),
            })
        return self.search_filter

    def get_search_filter(self) -> Filter:
        return self.add_search_filter()

    # -------------------------------------------------------------------------
    # Selection API
    # -------------------------------------------------------------------------
    def initialize_selected_items(self) -> ListResource:
        self.selected_items = list(self.get_selected_items())
        self.selected_items_by_id = {self.get_item_id(item): item for item in self.selected_items}
        return self

    def is_item_selectable(self, item: Mapping[str, Any]) -> bool:
        if not self.has_selection():
            return False
        if self.config.is_item_selectable is not None:
            return bool(self.config.is_item_selectable(item))
        return True

    def has_selections(self) -> bool:
        return bool(self.selected_items)

    def has_selectable_items(self) -> bool:
        return any(self.is_item_selectable(item) for item in self.items)

    def get_selectable_items(self) -> List[Item]:
        return [item for item in self.items if self.is_item_selectable(item)]

    def get_selected_items(self) -> List[Item]:
        if self.selection_store is not None:
            return self.selection_store.load()
        return self.selected_items

    def set_selected_items(self, items: List[Item]) -> None:
        self.selected_items = items
        if self.selection_store is not None:
            self.selection_store.save(items)

    def get_selected_ids(self) -> List[Any]:
        return [item[self.item_id_map] for item in self.get_selected_items() if _present(item.get(self.item_id_map))]

    def get_selected_count(self) -> int:
        if self.selection_store is not None:
            return self.selection_store.count()
        return len(self.selected_items)

    def has_partial_selection(self) -> bool:
        return any(self.is_item_selectable(item) and not self.is_selected(item) for item in self.items)

    def is_selected(self, item: Mapping[str, Any]) -> bool:
        item_id = self._lookup_id(item)
        return item_id is not None and item_id in self.selected_items_by_id

    def _select(self, item: Item, items: Optional[List[Item]], item_event: bool) -> bool:
        if self.is_selected(item) or (self.has_selection() and not self.is_item_selectable(item)):
            return False
        selected = list(self.selected_items) if items is None else items
        selected.append(item)
        item_id = self.get_item_id(item)
        self.selected_items_by_id[item_id] = item
        self.set_selected_items(selected)
        if item_event:
            self.events.emit(f"item_selected_{item_id}", True)
        return True

    def _deselect(self, item: Mapping[str, Any], item_event: bool) -> bool:
        if not self.is_selected(item):
            return False
        item_id = self._lookup_id(item)
        del self.selected_items_by_id[item_id]
        self.set_selected_items(list(self.selected_items_by_id.values()))
        if item_event:
            self.events.emit(f"item_deselected_{item_id}", False)
        return True

    def select_item(self, item: Item, items: Optional[List[Item]] = None, notify: bool = True) -> ListResource:
        if self._select(item, items, item_event=True) and notify:
            self.events.emit(EVENT_SELECTION_CHANGE, self.selected_items)
        return self

    def deselect_item(self, item: Mapping[str, Any], notify: bool = True) -> ListResource:
        if self._deselect(item, item_event=True) and notify:
            self.events.emit(EVENT_SELECTION_CHANGE, self.selected_items)
        return self

    def toggle_item(self, item: Item, notify: bool = True) -> ListResource:
        if self.is_selected(item):
            self.deselect_item(item, notify=False)
        else:
            self.select_item(item, notify=False)
        if notify:
            self.events.emit(EVENT_SELECTION_CHANGE, self.selected_items)
        return self

    def set_selections(self, selected: bool, items: Optional[List[Item]] = None, notify: bool = True) -> ListResource:
        """
        Select (or deselect) every item of `items` (default: the list's items),
        emitting a single selection_change at the end.
        """
        for item in list(self.items if items is None else items):
            if selected:
                self._select(item, None, item_event=False)
            else:
                self._deselect(item, item_event=False)
        if notify:
            self.events.emit(EVENT_SELECTION_CHANGE, self.selected_items)
        return self

    def toggle_selections(self) -> bool:
        """
        Select all selectable items unless all of them are already selected,
        in which case deselect everything.

        :return: True if items were selected, False if they were deselected
        """
        value = self.has_partial_selection()
        self.set_selections(value)
        return value

    def add_selections(self, items: List[Item], notify: bool = True) -> ListResource:
        for item in items:
            self._select(item, None, item_event=True)
        if notify:
            self.events.emit(EVENT_SELECTION_CHANGE, self.selected_items)
        return self

    def clear_selection_data(self) -> ListResource:
        if self.selection_store is not None:
            self.selection_store.clear()
        for item_id in list(self.selected_items_by_id):
            self.events.emit(f"item_deselected_{item_id}", False)
        self.selected_items = []
        self.selected_items_by_id = {}
        self.events.emit(EVENT_SELECTION_CHANGE, self.selected_items)
        return self

    def filter_by_selections(self) -> Any:
        """Show only the selected items, without fetching."""
        selected = self.get_selected_items()
        self._selection_count = len(selected)
        return self.resource.update({
            "results": selected,
            "resultCount": len(selected),
            "totalPages": 1,
            "page": 1,
        })

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------
    def destroy(self) -> None:
        """
        Drop items, selection and filters, leave the registry and tear down the
        owned Resource. Persisted selection is kept so a recreated list restores it.
        """
        self.items = []
        self.items_by_id = {}
        self.raw_items_by_id = {}
        self.selected_items = []
        self.selected_items_by_id = {}
        self.filters = {}
        self._route_unsubscribe = None
        self.context.registry.remove(self.id, self)
        self.resource.destroy()
