from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from .configs import FilterConfig
from .context import ResourceContext
from .events import EventEmitter

logger = logging.getLogger(__name__)

VALUE_EVENT = "value"


class _Unset:
    """Marker for a filter whose value has not been resolved or set this session."""

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET = _Unset()


def _is_empty_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple)) and len(value) == 0


class Filter:
    """
    A named control whose effective value is resolved from the URL, persisted
    storage and its default, in that order of precedence.

    Resolution (get_value) is recomputed on every call:
    1. start from the cached value if set this session, else the default
    2. read the URL value under the filter's URL parameter name
    3. URL-only filters return the URL value verbatim
    4. read the persisted value (JSON under the filter id)
    5. URL filters adopt a present URL value
    6. otherwise, outside pop navigation, storage-backed filters adopt a persisted value
    7. fall back to the default when nothing is set, or when a URL filter has no
       URL value and either nothing is persisted or the navigation was a pop
    8. apply pre_process_value

    URL participation needs a Location on the context; without one the filter
    behaves as a plain in-memory/storage filter.
    """

    def __init__(
        self,
        filter_id: str,
        config: Union[FilterConfig, Mapping[str, Any], None] = None,
        *,
        context: Optional[ResourceContext] = None,
    ):
        self.id = filter_id
        self.config = config if isinstance(config, FilterConfig) else FilterConfig.from_dict(config)
        self.context = context or ResourceContext()
        self.events = EventEmitter()
        self.key = self.config.alias or self.id
        self.value: Any = UNSET
        self.url_value: Optional[str] = None
        self._is_active = False
        self._options: List[Dict[str, Any]] = []

    def subscribe(self, name: str, handler):
        return self.events.subscribe(name, handler)

    # ------------------------------------------------------------------
    # Value resolution
    # ------------------------------------------------------------------
    def get_value(self) -> Any:
        cfg = self.config
        value = self.value if self.value is not UNSET else cfg.default_value
        self.url_value = self.get_url_value()
        if cfg.is_only_url_filter:
            return self.url_value

        saved_value = self.get_saved_value()
        is_pop_state = self.context.is_pop_state()
        url_sync = self._url_sync()

        if url_sync and self.url_value is not None:
            value = self.url_value
        elif not is_pop_state and cfg.has_local_storage and saved_value is not None:
            value = saved_value

        if value is None or (
            url_sync and not self.url_value and (saved_value is None or is_pop_state)
        ):
            value = cfg.default_value

        if cfg.pre_process_value is not None:
            value = cfg.pre_process_value(value, self)
        return value

    def initialize_value(self) -> None:
        """
        Re-derive the value and, if it changed, store it without notification
        and emit exactly one `value` event.
        """
        current_value = self.value
        self.value = self.get_value()
        self._update_active()
        if current_value != self.value:
            self.set_value(self.value, notify=False)
            self.events.emit(VALUE_EVENT, self.value, self)

    def set_value(self, value: Any, notify: bool = True) -> Filter:
        cfg = self.config
        if cfg.pre_process_value is not None:
            value = cfg.pre_process_value(value, self)

        current_value = self.get_value()
        if self.has_local_storage() and self.context.storage is not None:
            if value is None:
                self.context.storage.remove(self.id)
            else:
                self.context.storage.set(self.id, json.dumps(value, default=str))

        self.value = value
        self._update_active()
        if notify and value != current_value:
            if cfg.callback is not None:
                cfg.callback(value)
            self.events.emit(VALUE_EVENT, value, self)
        return self

    def reset_value(self, notify: bool = True) -> None:
        """Reset to the default value (or None when there is no default)."""
        self.value = self.config.default_value
        self.set_value(self.value, notify)

    def get_url_value(self) -> Optional[str]:
        location = self.context.location
        if location is None:
            return None
        return location.get_query_param(self.get_url_name())

    def get_saved_value(self) -> Any:
        """
        Return the persisted value, or None when absent or unreadable.
        """
        storage = self.context.storage
        if not self.has_local_storage() or storage is None:
            return None
        item = storage.get(self.id)
        if not item:
            return None
        try:
            return json.loads(item)
        except ValueError:
            logger.warning("Ignoring unreadable persisted filter value", extra={"filter_id": self.id})
            return None

    def get_query_value(self) -> Any:
        """The value as sent in request queries (after pre_process_query_param)."""
        value = self.get_value()
        if self.config.pre_process_query_param is not None:
            value = self.config.pre_process_query_param(value)
        return value

    # ------------------------------------------------------------------
    # Active state
    # ------------------------------------------------------------------
    def _update_active(self) -> None:
        cfg = self.config
        value = self.value
        if (
            value is UNSET
            or value is None
            or value == cfg.default_value
            or (_is_empty_sequence(value) and _is_empty_sequence(cfg.default_value))
        ):
            self._is_active = False
        else:
            self._is_active = bool(cfg.allow_clear and cfg.is_request_filter)

    def is_active(self) -> bool:
        return self._is_active

    def has_changed(self) -> bool:
        return self.value is not UNSET and self.value != self.config.default_value

    def _url_sync(self) -> bool:
        return bool(self.config.is_url_filter and self.context.location is not None)

    # ------------------------------------------------------------------
    # Config accessors
    # ------------------------------------------------------------------
    def get_id(self) -> str:
        return self.id

    def get_default_value(self) -> Any:
        return self.config.default_value

    def set_default_value(self, value: Any) -> Filter:
        self.config.default_value = value
        return self

    def allow_clear(self) -> bool:
        return self.config.allow_clear

    def set_allow_clear(self, allow_clear: bool) -> None:
        self.config.allow_clear = allow_clear

    def has_local_storage(self) -> bool:
        return self.config.has_local_storage

    def is_url_filter(self) -> bool:
        return self.config.is_url_filter

    def set_url_filter(self, is_url_filter: bool) -> Filter:
        self.config.is_url_filter = is_url_filter
        return self

    def is_request_filter(self) -> bool:
        return self.config.is_request_filter

    def get_url_name(self) -> str:
        return self.config.url_param_name or self.id

    def get_alias(self) -> Optional[str]:
        return self.config.alias

    def get_query_name(self) -> Optional[str]:
        return self.config.query_name

    # Options are the choices a UI offers for this filter (e.g. per-page sizes).
    def set_options(self, options: List[Dict[str, Any]]) -> None:
        self._options = list(options)

    def get_options(self) -> List[Dict[str, Any]]:
        return self._options

    def __repr__(self) -> str:
        return f"Filter(id={self.id!r}, value={self.value!r})"
