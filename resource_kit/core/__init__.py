"""
Core domain layer: resources, list resources, filters, the event emitter,
the resource registry and the context that carries shared collaborators
"""

from .context import ResourceContext
from .events import EventEmitter
from .filter import Filter
from .list_resource import ListResource
from .registry import ResourceRegistry
from .resource import Resource, ResourceHooks

__all__ = [
    "EventEmitter",
    "Filter",
    "ListResource",
    "Resource",
    "ResourceContext",
    "ResourceHooks",
    "ResourceRegistry",
]
