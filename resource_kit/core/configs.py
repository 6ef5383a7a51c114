from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, fields
from typing import Any, Callable, Dict, List, Mapping, Optional, Type, TypeVar

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

MODE_CONCURRENT = "concurrent"
MODE_CONSECUTIVE = "consecutive"
FETCH_MODES = (MODE_CONCURRENT, MODE_CONSECUTIVE)

C = TypeVar("C")


def to_snake_case(name: str) -> str:
    """
    Convert a camelCase option name to snake_case.

    "pollInterval" -> "poll_interval", "isURLFilter" -> "is_url_filter"
    """
    s1 = re.sub(r"(.)([A-Z][a-z]+)", r"\1_\2", name)
    return re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", s1).lower()


def _from_raw(cls: Type[C], raw: Optional[Mapping[str, Any]]) -> C:
    known = {f.name for f in fields(cls)}
    kwargs: Dict[str, Any] = {}
    for key, value in (raw or {}).items():
        name = to_snake_case(key)
        if name not in known:
            logger.warning("Ignoring unknown config option", extra={"option": key, "config": cls.__name__})
            continue
        kwargs[name] = value
    return cls(**kwargs)


@dataclass
class ResourceConfig:
    """
    Options recognised by a Resource. Timings are in milliseconds.

    - poll_interval: delay between poll cycles, floored at 2000ms when used
    - max_poll_count: a poll stops once more cycles than this have completed
    - mode: "concurrent" runs the primary and auxiliary fetches together,
      "consecutive" runs the primary fetch first
    - debounce_fetch: accepted for compatibility; readiness is restored at completion
    """

    id: Optional[str] = None
    url: Optional[str] = None
    payload: Any = None
    query: Dict[str, Any] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    poll_interval: int = 5000
    max_poll_count: int = 10
    mode: str = MODE_CONCURRENT
    debounce_fetch: int = 2000
    show_logs: bool = False

    def __post_init__(self) -> None:
        if self.mode not in FETCH_MODES:
            raise ConfigError(f"Unknown fetch mode '{self.mode}', expected one of {FETCH_MODES}")

    @classmethod
    def from_dict(cls, raw: Optional[Mapping[str, Any]] = None):
        return _from_raw(cls, raw)


@dataclass
class ListResourceConfig(ResourceConfig):
    """
    Options recognised by a ListResource, on top of ResourceConfig.
    """

    current_page: int = 1
    items_per_page: int = 0
    per_page_options: List[Any] = field(default_factory=list)
    total_items: int = 0
    total_pages: int = 0

    page_param: str = "page"
    per_page_param: str = "perPage"
    search_param: str = "search"
    sort_by_param: str = "sortBy"
    sort_dir_param: str = "sortDir"
    search_fields: List[str] = field(default_factory=list)

    has_selection: bool = False
    has_selection_save: bool = False
    has_toggle_save: bool = False
    is_collapsible: bool = False
    is_collapsed: bool = False
    is_static: Optional[bool] = None

    item_id_map: str = "id"
    map_item_id: Optional[Callable[[Dict[str, Any]], Any]] = None
    pre_process_item: Optional[Callable[[Dict[str, Any]], Dict[str, Any]]] = None
    pre_process_node: Optional[Callable[[Any], Any]] = None
    is_item_selectable: Optional[Callable[[Dict[str, Any]], bool]] = None


@dataclass
class FilterConfig:
    """
    Options recognised by a Filter.

    - url_param_name: query parameter read/written for URL filters (defaults to the filter id)
    - query_name / alias: keys used in outgoing request queries (falling back to the id)
    - is_url_filter: the URL value wins over persisted and default values
    - is_only_url_filter: the value is exactly the URL value, nothing else is consulted
    - is_request_filter: the value is sent with fetch requests
    - has_local_storage: the value is persisted under the filter id
    - allow_clear: the filter can be cleared and may report itself active
    """

    default_value: Any = None
    url_param_name: Optional[str] = None
    query_name: Optional[str] = None
    alias: Optional[str] = None
    is_url_filter: bool = False
    is_only_url_filter: bool = False
    is_request_filter: bool = False
    has_local_storage: bool = False
    allow_clear: bool = True
    callback: Optional[Callable[[Any], Any]] = None
    pre_process_value: Optional[Callable[[Any, Any], Any]] = None
    pre_process_query_param: Optional[Callable[[Any], Any]] = None

    @classmethod
    def from_dict(cls, raw: Optional[Mapping[str, Any]] = None) -> FilterConfig:
        return _from_raw(cls, raw)
