from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

from .configs import MODE_CONSECUTIVE, ResourceConfig
from .context import ResourceContext
from .events import EventEmitter, Unsubscribe
from .exceptions import ConfigError, PayloadValidationError, PollingError, TransportError

logger = logging.getLogger(__name__)

# Poll intervals below this many milliseconds are raised to it.
MIN_POLL_INTERVAL_MS = 2000

EVENT_READY = "ready"
EVENT_FETCH = "fetch"
EVENT_PAYLOAD = "payload"
EVENT_ERROR = "ERROR"


@dataclass
class ResourceHooks:
    """
    Extension points of a Resource. Every hook is optional.

    - fetch_strategy(resource, *args): produces the payload for a fetch cycle;
      defaults to the remote fetch (resource.fetch_payload)
    - auxiliary_fetches(resource): extra awaitables joined with the primary fetch
    - payload_preprocessor(payload): transforms a payload before it is stored
    - response_validator(response): True when valid, otherwise False or a reason string
    - query_builder(): the query sent with remote fetches; defaults to config.query
    """
    fetch_strategy: Optional[Callable[..., Awaitable[Any]]] = None
    auxiliary_fetches: Optional[Callable[["Resource"], List[Awaitable[Any]]]] = None
    payload_preprocessor: Optional[Callable[[Any], Any]] = None
    response_validator: Optional[Callable[[Any], Union[bool, str]]] = None
    query_builder: Optional[Callable[[], Dict[str, Any]]] = None


class Resource:
    """
    Fetchable, pollable, observable data unit.

    A fetch cycle moves the resource from ready to fetching and back:
    `ready(False)` and `fetch` are emitted when it starts, `payload` when a
    payload is stored, `ERROR` on failure and `ready(True)` when it completes.
    Only one cycle runs at a time: fetch() while not ready returns the task of
    the cycle in flight.

    fetch() and poll() must be called from inside a running asyncio loop.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        config: Union[ResourceConfig, Mapping[str, Any], None] = None,
        *,
        context: Optional[ResourceContext] = None,
        hooks: Optional[ResourceHooks] = None,
        events: Optional[EventEmitter] = None,
        resource_id: Optional[str] = None,
        register: bool = True,
    ):
        self.config = config if isinstance(config, ResourceConfig) else ResourceConfig.from_dict(config)
        self.context = context or ResourceContext()
        self.hooks = hooks or ResourceHooks()
        self.events = events or EventEmitter()
        self.id = resource_id or self.config.id or type(self).__name__
        self._url = url if url is not None else self.config.url
        self._unsubscribes: List[Unsubscribe] = []

        self.request: Optional[asyncio.Task] = None
        self.request_headers: Dict[str, str] = {}
        self.is_ready = True
        self.has_failed = False
        self.has_fetched = False
        self.poll_count = 0
        self._payload: Any = {}

        self._is_polling = False
        self._poll_handle: Optional[asyncio.TimerHandle] = None
        self._poll_future: Optional[asyncio.Future] = None
        self._poll_interval_ms = self.config.poll_interval
        self._on_poll_completed: Optional[Callable[[Any], Any]] = None
        self._must_stop_polling_cb: Optional[Callable[[Any], bool]] = None

        if self.config.payload:
            self.initialize_payload(self.config.payload)
        if register:
            self.context.registry.register(self)

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------
    def subscribe(self, name: str, handler: Callable[..., Any]) -> Unsubscribe:
        return self.events.subscribe(name, handler)

    def add_unsubscribe(self, unsubscribe: Unsubscribe) -> None:
        """Register a callback run once by destroy()."""
        self._unsubscribes.append(unsubscribe)

    def get_url(self) -> Optional[str]:
        return self._url

    def set_url(self, url: Optional[str]) -> Resource:
        self._url = url
        return self

    @property
    def payload(self) -> Any:
        return self._payload

    def set_payload(self, payload: Any) -> Resource:
        self._payload = payload
        return self

    def get_payload(self) -> Any:
        """Shallow copy of the current payload."""
        if isinstance(self._payload, list):
            return list(self._payload)
        return dict(self._payload or {})

    def get_headers(self) -> Dict[str, str]:
        return dict(self.config.headers)

    def get_query(self) -> Dict[str, Any]:
        if self.hooks.query_builder is not None:
            return dict(self.hooks.query_builder())
        return dict(self.config.query)

    # -------------------------------------------------------------------------
    # Fetching
    # -------------------------------------------------------------------------
    def fetch(self, *args: Any) -> asyncio.Task:
        """
        Start a fetch cycle and return its task; while a cycle is in flight,
        return the in-flight task instead of starting another.

        The task resolves with the payload or raises whatever failed the cycle.
        """
        if self.is_ready:
            loop = asyncio.get_running_loop()
            self.is_ready = False
            self.events.emit(EVENT_READY, False)
            self.events.emit(EVENT_FETCH)
            if self.config.mode == MODE_CONSECUTIVE:
                coro = self._fetch_consecutive(*args)
            else:
                coro = self._fetch_concurrent(*args)
            self.request = loop.create_task(coro)
        return self.request

    async def _fetch_concurrent(self, *args: Any) -> Any:
        fetches: List[asyncio.Future] = []
        try:
            fetches = [asyncio.ensure_future(f) for f in (self._run_fetch(*args), *self._auxiliary_fetches())]
            await asyncio.gather(*fetches)
        except Exception as exc:
            # The first failure fails the cycle; siblings still running are abandoned.
            for pending in fetches:
                if not pending.done():
                    pending.cancel()
            self._on_error(exc)
            raise
        else:
            return self._on_success()
        finally:
            self._on_complete()

    async def _fetch_consecutive(self, *args: Any) -> Any:
        try:
            await self._run_fetch(*args)
            await asyncio.gather(*self._auxiliary_fetches())
        except Exception as exc:
            self._on_error(exc)
            raise
        else:
            return self._on_success()
        finally:
            self._on_complete()

    def _run_fetch(self, *args: Any) -> Awaitable[Any]:
        if self.hooks.fetch_strategy is not None:
            return self.hooks.fetch_strategy(self, *args)
        return self.fetch_payload(*args)

    def _auxiliary_fetches(self) -> List[Awaitable[Any]]:
        if self.hooks.auxiliary_fetches is None:
            return []
        return list(self.hooks.auxiliary_fetches(self))

    async def fetch_payload(self, query: Optional[Mapping[str, Any]] = None) -> Any:
        """
        Remote fetch: hand URL, query and headers to the transport, validate the
        response and store its payload. `query` overrides entries of get_query().
        """
        transport = self.context.transport
        if transport is None:
            raise TransportError(f"Resource '{self.id}' has no transport configured")
        url = self.get_url()
        if not url:
            raise ConfigError(f"Resource '{self.id}' has no URL to fetch")

        headers = self.get_headers()
        params = self.get_query()
        if query:
            params.update(query)

        logger.debug("Fetching resource", extra={"resource_id": self.id, "url": url})
        response = await transport.fetch(url, query=params, headers=headers)
        valid = self.validate_resource_payload(response)
        if valid is not True:
            raise PayloadValidationError(valid)
        return self.initialize_payload(response, headers)

    def validate_resource_payload(self, response: Any) -> Union[bool, str]:
        if self.hooks.response_validator is None:
            return True
        return self.hooks.response_validator(response)

    def initialize_payload(self, response: Any = None, headers: Optional[Dict[str, str]] = None, update: bool = True) -> Any:
        """
        Extract the payload body from a response, preprocess and store it.
        Emits `payload` unless `update` is False.
        """
        payload = self._extract_payload(response)
        if self.hooks.payload_preprocessor is not None:
            payload = self.hooks.payload_preprocessor(payload)
        self._payload = payload
        self.request_headers = dict(headers or {})
        if update:
            self.events.emit(EVENT_PAYLOAD, payload)
        return payload

    @staticmethod
    def _extract_payload(response: Any) -> Any:
        # Preference: response["value"]["payload"], then response["payload"], then the response itself
        if response is None:
            return {}
        if isinstance(response, Mapping):
            value = response.get("value")
            if isinstance(value, Mapping) and value.get("payload") is not None:
                return value["payload"]
            if response.get("payload") is not None:
                return response["payload"]
        return response

    def _on_success(self) -> Any:
        self.has_failed = False
        return self._payload

    def _on_error(self, error: BaseException) -> None:
        self.has_failed = True
        if self.config.show_logs:
            logger.error("Error fetching payload", extra={"resource_id": self.id, "error": repr(error)})
        else:
            logger.debug("Error fetching payload", extra={"resource_id": self.id, "error": repr(error)})
        self.events.emit(EVENT_ERROR, error)

    def _on_complete(self) -> None:
        self.is_ready = True
        self.has_fetched = True
        self.events.emit(EVENT_READY, True)

    def update(self, payload: Optional[Mapping[str, Any]] = None) -> Any:
        """
        Shallow-merge `payload` into the current payload and re-run payload
        initialisation, without touching the network.
        """
        if isinstance(self._payload, dict):
            self._payload.update(payload or {})
        elif payload is not None:
            self._payload = dict(payload)
        return self.initialize_payload(self._payload, self.request_headers)

    # -------------------------------------------------------------------------
    # Polling
    # -------------------------------------------------------------------------
    def poll(
        self,
        on_complete: Optional[Callable[[Any], Any]] = None,
        must_stop: Optional[Callable[[Any], bool]] = None,
        interval: Optional[int] = None,
    ) -> asyncio.Future:
        """
        Fetch repeatedly until `must_stop(payload)` is true or more than
        `max_poll_count` cycles have completed, waiting `interval` ms
        (config.poll_interval by default, never below MIN_POLL_INTERVAL_MS)
        between cycles, then call `on_complete(payload)`.

        :return: a future resolved with the final payload when polling stops;
            it fails with PollingError if this resource is already polling
        """
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        if self._is_polling:
            future.set_exception(PollingError(f"Resource '{self.id}' is already polling"))
            return future

        requested = self.config.poll_interval if interval is None else interval
        self._poll_interval_ms = max(requested, MIN_POLL_INTERVAL_MS)
        self._on_poll_completed = on_complete
        self._must_stop_polling_cb = must_stop
        self._poll_future = future
        self._is_polling = True
        self.poll_count = 0
        self._poll()
        return future

    def is_polling(self) -> bool:
        return self._is_polling

    def stop_polling(self) -> None:
        """Stop polling; safe to call at any time, any number of times."""
        if self._poll_handle is not None:
            self._poll_handle.cancel()
            self._poll_handle = None
        self._is_polling = False
        future, self._poll_future = self._poll_future, None
        if future is not None and not future.done():
            future.set_result(self._payload)

    def _poll(self) -> None:
        self._poll_handle = None
        if not self._is_polling:
            return
        self.fetch().add_done_callback(self._on_poll_complete)

    def _on_poll_complete(self, request: asyncio.Task) -> None:
        # Failures were already reported through ERROR; polling carries on regardless.
        if not request.cancelled():
            request.exception()
        if not self._is_polling:
            return
        self.poll_count += 1
        if self._must_stop_polling():
            on_complete = self._on_poll_completed
            self.stop_polling()
            if on_complete is not None:
                on_complete(self._payload)
        else:
            loop = asyncio.get_running_loop()
            self._poll_handle = loop.call_later(self._poll_interval_ms / 1000, self._poll)

    def _must_stop_polling(self) -> bool:
        if self._must_stop_polling_cb is not None and self._must_stop_polling_cb(self._payload):
            return True
        return self.poll_count > self.config.max_poll_count

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------
    async def on_load(self) -> None:
        """
        Return once a fetch cycle has completed: immediately if one already
        has, otherwise on the next `ready(True)`.
        """
        if self.has_fetched:
            return
        loaded = asyncio.get_running_loop().create_future()

        def _on_ready(is_ready: bool) -> None:
            if is_ready and not loaded.done():
                loaded.set_result(None)
                unsubscribe()

        unsubscribe = self.events.subscribe(EVENT_READY, _on_ready)
        await loaded

    def destroy(self) -> None:
        """
        Stop polling, clear the payload, run every registered unsubscribe
        callback once and leave the registry.
        """
        self.stop_polling()
        self._payload = {}
        unsubscribes, self._unsubscribes = self._unsubscribes, []
        for unsubscribe in unsubscribes:
            unsubscribe()
        self.context.registry.remove(self.id, self)
