"""Custom exception types for the TeamCity build collector."""


class CollectorError(Exception):
    """Base exception for all recoverable collector errors."""


class ConfigurationError(CollectorError):
    """Raised when runtime configuration values are missing or invalid."""


class ApiError(CollectorError):
    """Raised when a TeamCity API request fails or returns an unexpected response."""


class MalformedUrlError(CollectorError):
    """Raised when a build or server URL cannot be parsed or rebuilt."""


class DataValidationError(CollectorError):
    """Raised when API payloads do not have the shape the collector expects."""
