from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Mapping


class Transport(ABC):
    """
    API-fetch collaborator. Resources never talk to the network themselves;
    they hand the URL, query and headers to a Transport and wait for the response.
    """

    @abstractmethod
    async def fetch(self, url: str, *, query: Mapping[str, Any], headers: Mapping[str, str]) -> Any:
        """
        Perform the request and return the decoded response body.
        Any exception raised here fails the fetch cycle.
        """
        raise NotImplementedError()


class CallableTransport(Transport):
    """
    Adapts a plain async function `fn(url, query=..., headers=...)` to the Transport interface.
    """

    def __init__(self, fn: Callable[..., Awaitable[Any]]):
        self._fn = fn

    async def fetch(self, url: str, *, query: Mapping[str, Any], headers: Mapping[str, str]) -> Any:
        return await self._fn(url, query=query, headers=headers)
