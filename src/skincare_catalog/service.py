from __future__ import annotations

from .catalog import CatalogCoordinator
from .config import CatalogSettings
from .directory import OpenBeautyFactsClient
from .logging import get_logger
from .store import BundleSeed, FileDataStore
from .sync import DocumentStoreFavoritesSync


LOG = get_logger("catalog-service")


def build_coordinator(settings: CatalogSettings, *, seed_store: bool = True) -> CatalogCoordinator:
    """Wire the store, seed, directory client and optional sync into a coordinator.

    The returned coordinator is not initialized yet; callers decide whether
    to hit the network (``initialize``) or work from local tiers only.
    """
    store = FileDataStore(settings.data_dir)
    seed = BundleSeed(settings.seed_path)
    if seed_store:
        store.seed_if_needed(seed)

    directory = OpenBeautyFactsClient(
        settings.obf_base_url,
        timeout=settings.timeout,
        user_agent=settings.user_agent,
        cache=store,
    )

    sync = None
    if settings.sync_enabled:
        sync = DocumentStoreFavoritesSync(settings.sync_url, settings.sync_token, timeout=settings.timeout)

    coordinator = CatalogCoordinator(
        store,
        directory,
        seed,
        sync,
        user_id=settings.user_id,
        page_size=settings.page_size,
        sample_size=settings.sample_size,
    )
    LOG.info("Catalog coordinator ready (store=%s)", store.root_dir)
    return coordinator
