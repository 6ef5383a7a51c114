from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from .exceptions import ConfigError
from .registry import ResourceRegistry

if TYPE_CHECKING:
    from resource_kit.services.navigation import Location, Navigator
    from resource_kit.services.storage import KeyValueStorage
    from resource_kit.services.transport import Transport


@dataclass
class ResourceContext:
    """
    Holds the collaborators shared by resources and filters: the registry,
    the fetch transport, key-value persistence, the current location and the
    navigator. Passed into constructors instead of using module-level globals.

    Every collaborator is optional. Filters degrade gracefully without a
    location or storage; operations that cannot work without one raise ConfigError.
    """
    registry: ResourceRegistry = field(default_factory=ResourceRegistry)
    transport: Optional[Transport] = None
    storage: Optional[KeyValueStorage] = None
    location: Optional[Location] = None
    navigator: Optional[Navigator] = None

    def is_pop_state(self) -> bool:
        return bool(self.navigator is not None and self.navigator.is_pop_state())

    def require_location(self) -> Location:
        if self.location is None:
            raise ConfigError("This operation needs a Location; none is configured on the ResourceContext")
        return self.location
