from __future__ import annotations


class ConfigError(ValueError):
    """Raised when a simulation config describes an impossible world."""


class InvalidParameterError(ValueError):
    """Raised when a live parameter edit would leave the set invalid."""
