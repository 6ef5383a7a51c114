from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

Handler = Callable[..., Any]
Unsubscribe = Callable[[], None]

ROUTE_CHANGE = "route_change"


class EventEmitter:
    """
    Named-event pub/sub owned by a Filter, Resource or ListResource.

    Handlers run synchronously in subscription order. A failing handler is
    logged and does not prevent the remaining handlers from running.
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)

    def subscribe(self, name: str, handler: Handler) -> Unsubscribe:
        """
        Register `handler` for `name`.

        :return: a callable that detaches the handler; safe to call more than once
        """
        self._handlers[name].append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(name)
            if handlers and handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def emit(self, name: str, *args: Any) -> None:
        for handler in list(self._handlers.get(name, ())):
            try:
                handler(*args)
            except Exception:
                logger.exception("Event handler failed", extra={"event": name})

    def handler_count(self, name: str) -> int:
        return len(self._handlers.get(name, ()))

    def clear(self) -> None:
        self._handlers.clear()
