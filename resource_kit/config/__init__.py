"""
Config package for resource_kit.

Responsible for loading list-resource configs from JSON files.
"""

from .loader import load_resource_configs

__all__ = ["load_resource_configs"]
