"""
Skincare Catalog – local-first product catalog cache.

The catalog coordinator reconciles a JSON documents cache, a bundled seed
catalog and the Open Beauty Facts directory, while keeping the user's
favorites visible across every reload, search and refresh.
"""

__version__ = "0.1.0"

__all__ = [
    "catalog",
    "cli",
    "config",
    "directory",
    "domain",
    "errors",
    "frontend",
    "logging",
    "paths",
    "service",
    "store",
    "sync",
]
