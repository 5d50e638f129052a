"""Local persistence: the JSON documents cache and the bundled seed catalog."""

from .file_store import FileDataStore, ProductStore
from .seed import BundleSeed

__all__ = [
    "BundleSeed",
    "FileDataStore",
    "ProductStore",
]
