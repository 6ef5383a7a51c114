"""
Top-level package for resource-kit.

Observable, pollable data resources and paginated, filterable, selectable
item lists, with pluggable transport, storage and navigation.
Most code should import from submodules such as:
    resource_kit.core
    resource_kit.services
    resource_kit.config

Applications call resource_kit.logging_config.configure_logging() once at
startup; the library itself only emits records through module loggers.
"""

__all__: list[str] = []
