"""Exception hierarchy shared by the catalog collaborators.

Collaborators (store, directory client, seed, sync) raise these; the
catalog coordinator catches them at its boundary and turns them into a
diagnostic message.
"""

from __future__ import annotations


class CatalogError(Exception):
    """Base class for every error raised inside skincare_catalog."""


class ProductDecodeError(CatalogError):
    """A product record is missing required fields or has the wrong shape."""


class StoreUnavailableError(CatalogError):
    """The persistent store could not be read or written."""


class DirectoryError(CatalogError):
    """The remote product directory failed."""


class DirectoryNetworkError(DirectoryError):
    """Transport failure or unexpected HTTP status."""


class DirectoryDecodeError(DirectoryError):
    """The directory answered but the payload could not be decoded."""


class SeedError(CatalogError):
    """The bundled seed catalog could not be used."""


class SeedMissingError(SeedError):
    """The bundled seed document does not exist."""


class SeedCorruptError(SeedError):
    """The bundled seed document exists but does not decode."""


class SyncError(CatalogError):
    """The remote favorites document store failed."""


__all__ = [
    "CatalogError",
    "ProductDecodeError",
    "StoreUnavailableError",
    "DirectoryError",
    "DirectoryNetworkError",
    "DirectoryDecodeError",
    "SeedError",
    "SeedMissingError",
    "SeedCorruptError",
    "SyncError",
]
