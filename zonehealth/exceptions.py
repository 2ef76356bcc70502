"""
zoneHealth Exceptions
=====================

Error taxonomy for the health check.

Only DirectoryAuthError and MissingDependencyError are allowed to reach the
top level; every other directory failure is absorbed per scope unit by the
collection fetcher.
"""


class ZoneHealthError(Exception):
    """Base class for all zoneHealth errors."""


class DirectoryQueryError(ZoneHealthError):
    """A directory query failed for one scope unit (timeout, transport, bad data)."""


class ObjectNotFoundError(DirectoryQueryError):
    """A directory object could not be found by its distinguished name."""

    def __init__(self, dn: str):
        super().__init__(f"Object not found: {dn}")
        self.dn = dn


class DirectoryAuthError(ZoneHealthError):
    """The directory rejected the supplied credentials. Always fatal."""


class MissingDependencyError(ZoneHealthError):
    """A required module or service is not available. Always fatal."""
