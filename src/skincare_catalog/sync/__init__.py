from .favorites import DocumentStoreFavoritesSync, FavoritesSync

__all__ = ["DocumentStoreFavoritesSync", "FavoritesSync"]
