from .client import DEFAULT_BASE_URL, OpenBeautyFactsClient, ProductDirectory

__all__ = [
    "DEFAULT_BASE_URL",
    "OpenBeautyFactsClient",
    "ProductDirectory",
]
