"""Custom exceptions for farm intelligence."""

from __future__ import annotations


class FarmIntelError(Exception):
    """Base exception for all farm intelligence errors."""


class PersistenceError(FarmIntelError):
    """Raised when the key-value store cannot be read or written."""


class SchemaVersionError(FarmIntelError):
    """Raised when a persisted blob carries an unknown schema version."""


class ConfigError(FarmIntelError):
    """Raised when a config file cannot be parsed or validated."""
