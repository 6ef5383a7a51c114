from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, List, Optional

logger = logging.getLogger(__name__)


class ResourceRegistry:
    """
    Registry of live resources keyed by their id, so the app can look up and
    tear down resources without holding references everywhere.

    Purpose:
    - Lets unrelated parts of an app share a Resource/ListResource by id
    - Central place to destroy every live resource (e.g. on app shutdown)

    Design Notes:
    - Stores instances, not classes; resources register themselves on construction
    - Ids are assumed unique: a second registration under the same id replaces the first
      (last writer wins), logged at debug level but never raised
    - Lookups and removals tolerate absent ids
    - There is no module-level registry: the owner (usually a ResourceContext) holds one
    """

    def __init__(self) -> None:
        self._resources: Dict[str, Any] = {}

    def register(self, resource: Any) -> None:
        """
        Register a resource under its 'id' attribute

        :param resource: any object exposing 'id' (Resource, ListResource)
        """
        previous = self._resources.get(resource.id)
        if previous is not None and previous is not resource:
            logger.debug("Replacing registered resource", extra={"resource_id": resource.id})
        self._resources[resource.id] = resource

    def get(self, resource_id: str) -> Optional[Any]:
        """
        :param resource_id: the id of the resource
        :return: the registered resource, or None if nothing is registered under that id
        """
        return self._resources.get(resource_id)

    def remove(self, resource_id: str, resource: Any = None) -> bool:
        """
        Remove the entry for resource_id. When `resource` is given, the entry is
        only removed if it still points at that instance (it may have been replaced).

        :return: True if an entry was removed
        """
        current = self._resources.get(resource_id)
        if current is None or (resource is not None and current is not resource):
            return False
        del self._resources[resource_id]
        return True

    def ids(self) -> List[str]:
        return list(self._resources)

    def destroy_all(self) -> None:
        """Destroy every registered resource; each one deregisters itself."""
        for resource in list(self._resources.values()):
            resource.destroy()
        self._resources.clear()

    def __contains__(self, resource_id: object) -> bool:
        return resource_id in self._resources

    def __iter__(self) -> Iterator[str]:
        return iter(self._resources)

    def __len__(self) -> int:
        return len(self._resources)
