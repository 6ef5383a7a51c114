from __future__ import annotations

from typing import Any


class ResourceKitError(Exception):
    """Base exception for all resource_kit errors"""
    pass


class ConfigError(ResourceKitError):
    """Invalid resource/filter configuration or a missing collaborator"""
    pass


class TransportError(ResourceKitError):
    """No transport available for a remote fetch"""
    pass


class PollingError(ResourceKitError):
    """poll() called while a poll cycle is already active"""
    pass


class PayloadValidationError(ResourceKitError):
    """
    The response validator rejected a fetched response.

    `reason` keeps whatever the validator returned (False or a descriptive string).
    """

    def __init__(self, reason: Any):
        self.reason = reason
        message = reason if isinstance(reason, str) else "Invalid resource payload"
        super().__init__(message)
