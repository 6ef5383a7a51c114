from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from resource_kit.core.events import ROUTE_CHANGE, EventEmitter

logger = logging.getLogger(__name__)


def _format_param(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(_format_param(v) for v in value)
    return str(value)


def edit_url(url: str, patch: Mapping[str, Any], encode: bool = True) -> str:
    """
    Return `url` with its query string patched.

    A None value removes the parameter, anything else replaces (or appends) it.
    Parameter order is preserved; new parameters are appended.
    """
    parts = urlsplit(url)
    params: Dict[str, str] = dict(parse_qsl(parts.query, keep_blank_values=True))
    for name, value in patch.items():
        if value is None:
            params.pop(name, None)
        else:
            params[name] = _format_param(value)

    if encode:
        query = urlencode(params)
    else:
        query = "&".join(f"{name}={value}" for name, value in params.items())
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


def get_url_param(url: str, name: str) -> Optional[str]:
    """Return the first value of query parameter `name` in `url`, or None."""
    for key, value in parse_qsl(urlsplit(url).query, keep_blank_values=True):
        if key == name:
            return value
    return None


class Location(ABC):
    """
    Read access to the current URL and its query string.
    """

    @abstractmethod
    def get_url(self) -> str:
        """Current URL, relative to the origin (path + query + fragment)."""
        pass

    @abstractmethod
    def set_url(self, url: str) -> None:
        pass

    def get_query_param(self, name: str) -> Optional[str]:
        return get_url_param(self.get_url(), name)

    def edit_url(self, patch: Mapping[str, Any], encode: bool = True) -> str:
        """Build the current URL with `patch` applied; does not navigate."""
        return edit_url(self.get_url(), patch, encode)


class Navigator(ABC):
    """
    Navigation collaborator: issues navigations, reports whether the current
    navigation was a back/forward ("pop") transition and emits `route_change`.
    """

    events: EventEmitter

    @abstractmethod
    def go(self, url: str) -> None:
        pass

    @abstractmethod
    def is_pop_state(self) -> bool:
        pass

    def on_route_change(self, handler):
        return self.events.subscribe(ROUTE_CHANGE, handler)


class InMemoryLocation(Location):
    def __init__(self, url: str = "/"):
        self._url = url

    def get_url(self) -> str:
        return self._url

    def set_url(self, url: str) -> None:
        self._url = url


class InMemoryNavigator(Navigator):
    """
    History-stack navigator over a Location.

    go() pushes a new entry and drops any forward history; back()/forward()
    move through the stack and mark the navigation as a pop transition.
    """

    def __init__(self, location: Location):
        self.location = location
        self.events = EventEmitter()
        self._history: List[str] = [location.get_url()]
        self._index = 0
        self._is_pop = False

    def go(self, url: str) -> None:
        del self._history[self._index + 1:]
        self._history.append(url)
        self._index += 1
        self._navigate(url, is_pop=False)

    def back(self) -> bool:
        if self._index == 0:
            return False
        self._index -= 1
        self._navigate(self._history[self._index], is_pop=True)
        return True

    def forward(self) -> bool:
        if self._index >= len(self._history) - 1:
            return False
        self._index += 1
        self._navigate(self._history[self._index], is_pop=True)
        return True

    def is_pop_state(self) -> bool:
        return self._is_pop

    def _navigate(self, url: str, is_pop: bool) -> None:
        logger.debug("Navigating", extra={"url": url, "pop": is_pop})
        self._is_pop = is_pop
        self.location.set_url(url)
        self.events.emit(ROUTE_CHANGE, url)
