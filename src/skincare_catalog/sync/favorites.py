from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

import requests

from ..errors import SyncError
from ..logging import get_logger


class FavoritesSync(Protocol):
    """Remote copy of a user's favorites. Callers treat it as best effort."""

    def load(self, user_id: str) -> Tuple[List[str], List[Dict[str, Any]]]: ...

    def save(self, user_id: str, ids: Sequence[str], items: Sequence[Dict[str, Any]]) -> None: ...


class DocumentStoreFavoritesSync:
    """Favorites kept as one JSON document per user in a REST document store.

    Document path: ``<base>/users/<user_id>/favorites/list``. The body is
    ``{"ids": [...], "items": [...], "updatedAt": <iso>}``; a 404 reads as
    an empty list.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        *,
        timeout: int = 15,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base = base_url.rstrip("/")
        self.timeout = int(timeout)
        self.log = get_logger("favorites-sync")
        self.s = session or requests.Session()
        self.s.headers.update({"Accept": "application/json"})
        if token:
            self.s.headers.update({"Authorization": f"Bearer {token}"})

    def _doc_url(self, user_id: str) -> str:
        return f"{self.base}/users/{requests.utils.quote(user_id, safe='')}/favorites/list"

    def load(self, user_id: str) -> Tuple[List[str], List[Dict[str, Any]]]:
        url = self._doc_url(user_id)
        try:
            r = self.s.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise SyncError(f"GET favorites failed: {e}") from e
        if r.status_code == 404:
            return [], []
        if r.status_code != 200:
            raise SyncError(f"GET favorites returned HTTP {r.status_code}")
        try:
            body = r.json()
        except ValueError as e:
            raise SyncError(f"Favorites document is not JSON: {e}") from e
        if not isinstance(body, dict):
            return [], []
        ids = [str(v) for v in body.get("ids") or [] if v]
        items = [i for i in body.get("items") or [] if isinstance(i, dict)]
        self.log.debug("Loaded %d remote favorite id(s) for %s", len(ids), user_id)
        return ids, items

    def save(self, user_id: str, ids: Sequence[str], items: Sequence[Dict[str, Any]]) -> None:
        payload = {
            "ids": list(ids),
            "items": list(items),
            "updatedAt": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        }
        url = self._doc_url(user_id)
        try:
            r = self.s.put(url, json=payload, timeout=self.timeout)
            r.raise_for_status()
        except requests.RequestException as e:
            raise SyncError(f"PUT favorites failed: {e}") from e
        self.log.info("Saved %d favorite(s) for %s", len(payload["ids"]), user_id)
