"""Custom exceptions for sitecoord."""


class SitecoordError(Exception):
    """Base exception for all sitecoord errors."""

    pass


class InvalidInputError(SitecoordError):
    """Raised when an analysis is called without a usable task collection."""

    pass


class ValidationError(SitecoordError):
    """Raised when validation fails."""

    pass


class RecordError(ValidationError):
    """Raised when a single task or trade record cannot be ingested."""

    pass


class ConfigError(ValidationError):
    """Raised when a configuration value is out of range or malformed."""

    pass


class StoreError(SitecoordError):
    """Raised when the snapshot file cannot be read."""

    pass
