"""Error classes shared by the storage adapters, services and HTTP layer."""

from __future__ import annotations


class CloudStoreError(Exception):
    """Base class for errors raised by the CloudStore backend."""


class NotFoundError(CloudStoreError):
    """A grant, group or folder does not exist."""


class ValidationError(CloudStoreError):
    """Caller supplied an invalid permission level, principal or email."""


class StoreError(CloudStoreError):
    """The underlying entity store failed for a reason other than a missing entity."""
