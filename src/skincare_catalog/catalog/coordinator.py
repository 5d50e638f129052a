from __future__ import annotations

from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import replace
from threading import RLock
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set, Union

from ..domain.models import Product
from ..errors import DirectoryError, SeedCorruptError, SeedMissingError, StoreUnavailableError
from ..logging import get_logger
from .fallback import resolve_fallback, synthetic_products
from .session import DEFAULT_PAGE_SIZE, FallbackTier, SearchSession


LOG = get_logger("catalog-coordinator")

DEFAULT_SAMPLE_SIZE = 20

Listener = Callable[[str], None]

# Event names passed to subscribers.
EVENT_CATALOG = "catalog"
EVENT_FAVORITES = "favorites"
EVENT_SEARCH = "search"
EVENT_DIAGNOSTIC = "diagnostic"


class CatalogCoordinator:
    """Single owner of the catalog snapshot, the favorite set and the search session.

    Reconciles the documents cache (``store``), the bundled seed (``seed``)
    and the remote directory (``directory``). Favorited products are kept
    ahead of everything else whenever the snapshot is rebuilt and are never
    dropped by a reload.

    All state changes happen under one re-entrant lock. Remote calls run
    outside the lock; their results are merged under it against the
    favorite set as it is at merge time, and responses belonging to a
    superseded search are discarded. Every operation catches collaborator
    failures and reports them through ``diagnostic`` instead of raising.
    """

    def __init__(
        self,
        store,
        directory=None,
        seed=None,
        sync=None,
        *,
        user_id: Optional[str] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        sample_size: int = DEFAULT_SAMPLE_SIZE,
        executor: Optional[Executor] = None,
    ) -> None:
        self.store = store
        self.directory = directory
        self.seed = seed
        self.sync = sync
        self.user_id = user_id
        self.page_size = int(page_size)
        self.sample_size = int(sample_size)

        self._lock = RLock()
        self._products: List[Product] = []
        self._favorites: Set[str] = set()
        # Every product seen from any source, by id; lets orphan favorites be re-inserted.
        self._known: Dict[str, Product] = {}
        # Ids appended to the snapshot only because they were favorited.
        self._favorite_inserted: Set[str] = set()
        self._session = SearchSession(page_size=self.page_size)
        self._sample_in_flight = False
        self._sample_failed = False
        self._diagnostic: Optional[str] = None
        self._active_tier: Optional[FallbackTier] = None
        self._listeners: List[Listener] = []
        self._executor = executor
        self._owns_executor = executor is None

    # ------------------------------------------------------------------
    # Read snapshots
    # ------------------------------------------------------------------
    @property
    def products(self) -> List[Product]:
        with self._lock:
            return list(self._products)

    @property
    def favorite_ids(self) -> frozenset:
        with self._lock:
            return frozenset(self._favorites)

    @property
    def session(self) -> SearchSession:
        with self._lock:
            return self._session.snapshot()

    @property
    def diagnostic(self) -> Optional[str]:
        return self._diagnostic

    @property
    def active_tier(self) -> Optional[FallbackTier]:
        return self._active_tier

    def is_favorite(self, product_id: str) -> bool:
        with self._lock:
            return product_id in self._favorites

    def favorite_products(self) -> List[Product]:
        with self._lock:
            return self._favorited_in_memory()

    # ------------------------------------------------------------------
    # Change notification
    # ------------------------------------------------------------------
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener(event)``; returns a callable that unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self, events: Iterable[str]) -> None:
        ordered = list(dict.fromkeys(events))
        if not ordered:
            return
        with self._lock:
            listeners = list(self._listeners)
        for event in ordered:
            for listener in listeners:
                try:
                    listener(event)
                except Exception:
                    LOG.exception("Listener failed while handling %r", event)

    def _set_diagnostic(self, message: Optional[str], events: List[str]) -> None:
        if message:
            LOG.info("Diagnostic: %s", message)
        if message != self._diagnostic:
            self._diagnostic = message
            events.append(EVENT_DIAGNOSTIC)

    # ------------------------------------------------------------------
    # Merge helpers (caller holds the lock)
    # ------------------------------------------------------------------
    def _register(self, products: Iterable[Product]) -> None:
        for p in products:
            self._known[p.id] = p

    def _find(self, product_id: str) -> Optional[Product]:
        for p in self._products:
            if p.id == product_id:
                return p
        for p in self._session.results:
            if p.id == product_id:
                return p
        return self._known.get(product_id)

    def _adopt_known_ids(self, products: Sequence[Product]) -> List[Product]:
        """Give remote products the id we already use for the same barcode.

        Remote records get a fresh id on every decode; reusing the known one
        keeps ids stable across reloads, favorites first.
        """
        by_barcode: Dict[str, str] = {}
        for p in self._known.values():
            if p.barcode and (p.barcode not in by_barcode or p.id in self._favorites):
                by_barcode[p.barcode] = p.id
        out: List[Product] = []
        for p in products:
            known_id = by_barcode.get(p.barcode) if p.barcode else None
            out.append(replace(p, id=known_id) if known_id and known_id != p.id else p)
        return out

    def _favorited_in_memory(self) -> List[Product]:
        """Favorited products in snapshot order, then orphan favorites we know of."""
        out: List[Product] = []
        seen: Set[str] = set()
        for p in list(self._products) + list(self._known.values()):
            if p.id in self._favorites and p.id not in seen:
                out.append(p)
                seen.add(p.id)
        return out

    def _merge_favorites_first(self, incoming: Sequence[Product]) -> List[Product]:
        self._register(incoming)
        merged = self._favorited_in_memory()
        seen_ids = {p.id for p in merged}
        fav_barcodes = {p.barcode for p in merged if p.barcode}
        for p in incoming:
            if p.id in seen_ids or (p.barcode and p.barcode in fav_barcodes):
                continue
            merged.append(p)
            seen_ids.add(p.id)
        return merged

    def _replace_snapshot(self, incoming: Sequence[Product], tier: FallbackTier, events: List[str]) -> None:
        self._products = self._merge_favorites_first(incoming)
        self._favorite_inserted.clear()
        self._active_tier = tier
        events.append(EVENT_CATALOG)

    def _load_favorites(self) -> Optional[Set[str]]:
        try:
            return set(self.store.load_favorite_ids())
        except StoreUnavailableError as exc:
            LOG.warning("Favorites unreadable, treating as empty: %s", exc)
            return None

    def _persist_favorites(self, events: List[str]) -> None:
        ids = sorted(self._favorites)
        try:
            self.store.save_favorite_ids(ids)
        except StoreUnavailableError as exc:
            self._set_diagnostic(f"Could not save favorites: {exc}", events)
        items = [p.to_projection() for p in self._favorited_in_memory()]
        self._queue_sync(ids, items)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    def initialize(self) -> bool:
        """Load favorites first, then a random sample from the remote directory."""
        self.load_local()
        return self.load_random_sample()

    def load_local(self) -> None:
        """Load the favorite set and remember cached products. Local I/O only."""
        events: List[str] = []
        with self._lock:
            loaded = self._load_favorites()
            self._favorites = loaded if loaded is not None else set()
            try:
                self._register(self.store.load_products())
            except StoreUnavailableError as exc:
                LOG.warning("Documents cache unreadable: %s", exc)
            events.append(EVENT_FAVORITES)
            LOG.info("Loaded %d favorite(s)", len(self._favorites))
        self._notify(events)

    def load_random_sample(self, count: Optional[int] = None) -> bool:
        """Replace the snapshot with favorites followed by a fresh remote sample.

        On failure the snapshot is left as it was. Returns True when the
        snapshot was replaced.
        """
        n = int(count or self.sample_size)
        events: List[str] = []
        with self._lock:
            directory = self.directory
            if directory is None:
                self._sample_failed = True
                self._set_diagnostic("No product directory configured", events)
            elif self._sample_in_flight:
                LOG.debug("Random sample already loading; ignoring request")
                return False
            else:
                self._sample_in_flight = True
        if directory is None:
            self._notify(events)
            return False

        try:
            fetched = directory.fetch_random_products(n)
        except DirectoryError as exc:
            return self._sample_failed_with(f"Failed to load products: {exc}")
        except Exception as exc:
            LOG.exception("Unexpected error while loading random products")
            return self._sample_failed_with(f"Failed to load products: {exc}")

        with self._lock:
            self._sample_in_flight = False
            if not fetched:
                self._sample_failed = True
                self._set_diagnostic("Remote directory returned no products", events)
                replaced = False
            else:
                self._sample_failed = False
                self._replace_snapshot(self._adopt_known_ids(fetched), FallbackTier.REMOTE, events)
                self._set_diagnostic(None, events)
                replaced = True
                LOG.info("Catalog now has %d product(s) from remote sample", len(self._products))
        self._notify(events)
        return replaced

    def _sample_failed_with(self, message: str) -> bool:
        events: List[str] = []
        with self._lock:
            self._sample_in_flight = False
            self._sample_failed = True
            self._set_diagnostic(message, events)
        self._notify(events)
        return False

    def search(self, query: str, page_size: Optional[int] = None) -> List[Product]:
        """Start a new search session and fetch its first page.

        A blank query clears the session and returns the whole catalog.
        """
        q = (query or "").strip()
        ps = int(page_size or self.page_size)
        events: List[str] = [EVENT_SEARCH]
        with self._lock:
            self._session.reset(q, ps)
            if not q:
                self._set_diagnostic(None, events)
                directory = None
                snapshot = list(self._products)
            else:
                directory = self.directory
                self._session.in_flight = directory is not None
            generation = self._session.generation
        if not q:
            self._notify(events)
            return snapshot
        if directory is None:
            return self._search_failed(q, generation, "No product directory configured")

        try:
            results = directory.search(q, page=1, page_size=ps)
        except DirectoryError as exc:
            return self._search_failed(q, generation, f"Search failed: {exc}")
        except Exception as exc:
            LOG.exception("Unexpected error while searching %r", q)
            return self._search_failed(q, generation, f"Search failed: {exc}")

        with self._lock:
            if self._is_stale(q, generation):
                LOG.debug("Discarding stale results for %r", q)
                return []
            s = self._session
            s.in_flight = False
            page = self._dedupe(self._adopt_known_ids(results))
            self._register(page)
            s.results = page
            # A full page is taken to mean more may exist.
            s.has_more = len(results) >= ps
            if not results:
                self._set_diagnostic(f"No results for '{q}'", events)
            else:
                self._set_diagnostic(None, events)
            out = list(page)
        self._notify(events)
        return out

    def _search_failed(self, q: str, generation: int, message: str) -> List[Product]:
        events: List[str] = []
        with self._lock:
            if self._is_stale(q, generation):
                return []
            s = self._session
            s.in_flight = False
            s.results = []
            s.api_failed = True
            s.has_more = False
            events.append(EVENT_SEARCH)
            self._set_diagnostic(message, events)
            self._resolve_fallback_locked(events)
        self._notify(events)
        return []

    def _is_stale(self, q: str, generation: int) -> bool:
        return self._session.generation != generation or self._session.query != q

    @staticmethod
    def _dedupe(products: Sequence[Product]) -> List[Product]:
        seen: Set[str] = set()
        out: List[Product] = []
        for p in products:
            if p.id not in seen:
                out.append(p)
                seen.add(p.id)
        return out

    def load_more(self) -> List[Product]:
        """Fetch the next page of the current search; returns only the new items."""
        with self._lock:
            s = self._session
            if self.directory is None or not s.query or s.in_flight or not s.has_more:
                return []
            s.in_flight = True
            directory = self.directory
            q, generation = s.query, s.generation
            next_page, ps = s.page + 1, s.page_size

        events: List[str] = []
        try:
            fetched = directory.search(q, page=next_page, page_size=ps)
        except Exception as exc:
            if not isinstance(exc, DirectoryError):
                LOG.exception("Unexpected error while loading page %d of %r", next_page, q)
            with self._lock:
                if self._is_stale(q, generation):
                    return []
                self._session.in_flight = False
                self._session.has_more = False
                events.append(EVENT_SEARCH)
                self._set_diagnostic(f"Loading more results failed: {exc}", events)
            self._notify(events)
            return []

        with self._lock:
            if self._is_stale(q, generation):
                LOG.debug("Discarding stale page %d for %r", next_page, q)
                return []
            s = self._session
            s.in_flight = False
            new: List[Product] = []
            if fetched:
                present = {p.id for p in s.results}
                for p in self._adopt_known_ids(fetched):
                    if p.id not in present:
                        new.append(p)
                        present.add(p.id)
                self._register(new)
                s.results.extend(new)
                s.page = next_page
            if len(fetched) < ps:
                s.has_more = False
            events.append(EVENT_SEARCH)
            LOG.info("Page %d for %r added %d result(s); total=%d", next_page, q, len(new), len(s.results))
        self._notify(events)
        return new

    def close_search(self) -> None:
        """Tear down the search session (e.g. the search view was dismissed)."""
        with self._lock:
            self._session.reset("", self.page_size)
        self._notify([EVENT_SEARCH])

    def filtered(self, query: str = "") -> List[Product]:
        """Products to display for ``query``; may resolve a local fallback tier."""
        q = (query or "").strip()
        events: List[str] = []
        with self._lock:
            if not self._products and (self._session.api_failed or self._sample_failed):
                self._resolve_fallback_locked(events)
            if not q:
                result = list(self._products)
            elif self._session.query == q and self._session.results:
                result = list(self._session.results)
            else:
                result = [p for p in self._products if p.matches(q)]
        self._notify(events)
        return result

    def resolve_fallback(self) -> FallbackTier:
        """Merge the best available local tier into the snapshot. No network I/O."""
        events: List[str] = []
        with self._lock:
            tier = self._resolve_fallback_locked(events)
        self._notify(events)
        return tier

    def _resolve_fallback_locked(self, events: List[str]) -> FallbackTier:
        tier, products, reason = resolve_fallback(self.seed, self.store)
        # Overlay: keep whatever was already shown that the tier does not cover.
        ids = {p.id for p in products}
        barcodes = {p.barcode for p in products if p.barcode}
        kept = [p for p in self._products if p.id not in ids and not (p.barcode and p.barcode in barcodes)]
        self._replace_snapshot(list(products) + kept, tier, events)
        if reason:
            LOG.info("Fallback to %s: %s", tier.value, reason)
        if tier is FallbackTier.SYNTHETIC_TEST_DATA:
            self._set_diagnostic(reason, events)
        return tier

    def toggle_favorite(self, product: Union[Product, str]) -> bool:
        """Flip favorite membership; returns True when the product is now a favorite."""
        events: List[str] = [EVENT_FAVORITES]
        with self._lock:
            if isinstance(product, Product):
                pid = product.id
                self._register([product])
                record: Optional[Product] = product
            else:
                pid = str(product)
                record = self._find(pid)

            if pid in self._favorites:
                self._favorites.discard(pid)
                if pid in self._favorite_inserted:
                    self._products = [p for p in self._products if p.id != pid]
                    self._favorite_inserted.discard(pid)
                    events.append(EVENT_CATALOG)
                now_favorite = False
            else:
                self._favorites.add(pid)
                if record is not None and all(p.id != pid for p in self._products):
                    self._products.append(record)
                    self._favorite_inserted.add(pid)
                    events.append(EVENT_CATALOG)
                now_favorite = True
            LOG.info("Product %s favorite=%s", pid, now_favorite)
            self._persist_favorites(events)
        self._notify(events)
        return now_favorite

    def force_refresh_from_bundle(self) -> bool:
        """Rebuild the documents cache from the bundled seed.

        A missing (or empty) seed falls through to synthetic placeholders;
        a seed that exists but does not decode is reported and leaves the
        snapshot alone. The search session is not touched.
        """
        events: List[str] = []
        with self._lock:
            loaded = self._load_favorites()
            if loaded is not None:
                self._favorites = loaded
                events.append(EVENT_FAVORITES)
            try:
                self.store.delete_products()
            except StoreUnavailableError as exc:
                LOG.warning("Could not delete cached catalog: %s", exc)

            try:
                if self.seed is None:
                    raise SeedMissingError("no bundle seed configured")
                seeded = self.seed.load()
            except SeedCorruptError as exc:
                self._set_diagnostic(f"Bundled catalog is corrupt: {exc}", events)
                LOG.error("Refresh aborted: %s", exc)
                refreshed = False
            except SeedMissingError as exc:
                LOG.warning("Bundled catalog missing, using test data: %s", exc)
                self._replace_snapshot(synthetic_products(), FallbackTier.SYNTHETIC_TEST_DATA, events)
                self._set_diagnostic(f"Bundled catalog missing; showing test products ({exc})", events)
                refreshed = True
            else:
                if not seeded:
                    self._replace_snapshot(synthetic_products(), FallbackTier.SYNTHETIC_TEST_DATA, events)
                    self._set_diagnostic("Bundled catalog is empty; showing test products", events)
                else:
                    try:
                        self.store.save_products(seeded)
                    except StoreUnavailableError as exc:
                        LOG.warning("Could not persist refreshed catalog: %s", exc)
                    self._replace_snapshot(seeded, FallbackTier.BUNDLE_SEED, events)
                    self._set_diagnostic(None, events)
                    LOG.info("Refreshed catalog from bundle (%d products)", len(seeded))
                refreshed = True
        self._notify(events)
        return refreshed

    def lookup_barcode(self, code: str) -> Optional[Product]:
        """Find a product by barcode: snapshot, documents cache, then remote.

        None means "no such product" or a failed lookup; ``diagnostic``
        tells them apart.
        """
        code = (code or "").strip()
        if not code:
            return None
        events: List[str] = []
        with self._lock:
            for p in list(self._products) + list(self._known.values()):
                if p.barcode == code:
                    return p
            try:
                for p in self.store.load_products():
                    if p.barcode == code:
                        self._register([p])
                        return p
            except StoreUnavailableError as exc:
                LOG.warning("Documents cache unreadable during lookup: %s", exc)
            directory = self.directory

        if directory is None:
            with self._lock:
                self._set_diagnostic("No product directory configured", events)
            self._notify(events)
            return None

        try:
            found = directory.fetch_by_barcode(code)
        except Exception as exc:
            if not isinstance(exc, DirectoryError):
                LOG.exception("Unexpected error while looking up %s", code)
            with self._lock:
                self._set_diagnostic(f"Barcode lookup failed: {exc}", events)
            self._notify(events)
            return None

        with self._lock:
            if found is None:
                self._set_diagnostic(f"No product for barcode {code}", events)
            else:
                found = self._adopt_known_ids([found])[0]
                self._register([found])
                self._set_diagnostic(None, events)
        self._notify(events)
        return found

    # ------------------------------------------------------------------
    # Remote favorites sync
    # ------------------------------------------------------------------
    def sync_favorites_from_cloud(self) -> bool:
        """Union the remote favorite list into the local one.

        Removals are not propagated: an id missing remotely stays local.
        """
        if self.sync is None or not self.user_id:
            return False
        try:
            ids, items = self.sync.load(self.user_id)
        except Exception as exc:
            LOG.warning("Loading remote favorites failed: %s", exc)
            return False

        events: List[str] = []
        with self._lock:
            for item in items:
                try:
                    p = Product.from_projection(item)
                except (TypeError, ValueError) as exc:
                    LOG.debug("Skipping bad remote favorite item: %s", exc)
                    continue
                self._known.setdefault(p.id, p)
            added = set(ids) - self._favorites
            self._favorites |= set(ids)
            present = {p.id for p in self._products}
            for fid in sorted(added):
                record = self._known.get(fid)
                if record is not None and fid not in present:
                    self._products.append(record)
                    self._favorite_inserted.add(fid)
                    events.append(EVENT_CATALOG)
            if added:
                events.append(EVENT_FAVORITES)
            LOG.info("Merged %d remote favorite(s); %d new", len(ids), len(added))
            self._persist_favorites(events)
        self._notify(events)
        return True

    def _queue_sync(self, ids: List[str], items: List[Dict[str, Any]]) -> None:
        if self.sync is None or not self.user_id:
            return
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="favorites-sync")
        self._executor.submit(self._push_favorites, self.user_id, ids, items)

    def _push_favorites(self, user_id: str, ids: List[str], items: List[Dict[str, Any]]) -> None:
        try:
            self.sync.save(user_id, ids, items)
        except Exception as exc:
            LOG.warning("Favorites sync failed (ignored): %s", exc)

    def close(self) -> None:
        """Wait for queued favorite syncs and release the background worker."""
        if self._executor is not None and self._owns_executor:
            self._executor.shutdown(wait=True)
            self._executor = None
