"""Error taxonomy for panel lookups."""

from __future__ import annotations


class IctLookupError(Exception):
    """Base class for all ict-lookup errors."""


class MalformedReference(IctLookupError, ValueError):
    """Log file name does not follow the ``<position>-...`` convention."""


class MalformedSerial(IctLookupError, ValueError):
    """Serial too short or its sequence field is not numeric."""


class LookupFailed(IctLookupError):
    """A single lookup against the results database failed."""


class NoHistory(IctLookupError):
    """The scanned serial has no recorded test history."""


class CatalogError(IctLookupError):
    """The product catalog file could not be parsed."""


class SettingsError(IctLookupError):
    """A required setting is missing or invalid."""
