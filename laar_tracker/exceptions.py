"""Exception types shared across the tracker.

Business outcomes such as "already exists", "not found" or "final state" are
returned as result dicts; only the conditions below are raised.
"""


class TrackerError(Exception):
    """Base class for tracker errors."""


class ValidationError(TrackerError):
    """Malformed or missing input, rejected before any I/O."""


class TransportError(TrackerError):
    """Backing spreadsheet or browsing context failure."""


class ConfigurationError(TrackerError, ValueError):
    """Missing or invalid environment configuration."""
