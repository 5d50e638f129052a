from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
import requests

from skincare_catalog.directory import OpenBeautyFactsClient
from skincare_catalog.errors import DirectoryDecodeError, DirectoryNetworkError, SyncError
from skincare_catalog.store import FileDataStore
from skincare_catalog.sync import DocumentStoreFavoritesSync


class _Response:
    def __init__(self, status_code: int = 200, payload: Any = None, text: Optional[str] = None) -> None:
        self.status_code = status_code
        self._payload = payload
        self._text = text

    def json(self) -> Any:
        if self._text is not None:
            raise ValueError("Expecting value")
        return self._payload

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")


class _Session:
    """Records requests and replays queued responses (or raises queued exceptions)."""

    def __init__(self, *responses: Any) -> None:
        self.headers: Dict[str, str] = {}
        self.responses: List[Any] = list(responses)
        self.calls: List[Dict[str, Any]] = []

    def _next(self, method: str, url: str, **kwargs: Any) -> Any:
        self.calls.append({"method": method, "url": url, **kwargs})
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def get(self, url: str, **kwargs: Any) -> Any:
        return self._next("GET", url, **kwargs)

    def put(self, url: str, **kwargs: Any) -> Any:
        return self._next("PUT", url, **kwargs)


class _FixedChoice:
    def __init__(self, value: str) -> None:
        self.value = value

    def choice(self, seq):
        assert self.value in seq
        return self.value


def _hit(code: str, name: str) -> Dict[str, Any]:
    return {"code": code, "product_name": name, "brands": "Brand", "categories_tags": ["en:serums"]}


def test_search_sends_cgi_parameters() -> None:
    session = _Session(_Response(payload={"count": "2", "page": 1, "page_size": "20", "products": [_hit("1", "A"), _hit("2", "B")]}))
    client = OpenBeautyFactsClient("https://obf.test/", timeout=7, session=session)

    products = client.search("retinol", page=3, page_size=20)

    assert [p.name for p in products] == ["A", "B"]
    call = session.calls[0]
    assert call["url"] == "https://obf.test/cgi/search.pl"
    assert call["timeout"] == 7
    assert call["params"]["search_terms"] == "retinol"
    assert call["params"]["page"] == "3"
    assert call["params"]["json"] == "1"
    assert session.headers["User-Agent"].startswith("skincare-catalog/")


def test_blank_search_skips_network() -> None:
    session = _Session()
    client = OpenBeautyFactsClient(session=session)
    assert client.search("  ") == []
    assert session.calls == []


@pytest.mark.parametrize(
    "response, error",
    [
        (_Response(status_code=503), DirectoryNetworkError),
        (requests.ConnectionError("refused"), DirectoryNetworkError),
        (_Response(text="<html>"), DirectoryDecodeError),
        (_Response(payload={"products": {"not": "a list"}}), DirectoryDecodeError),
    ],
)
def test_search_failures_map_to_directory_errors(response, error) -> None:
    client = OpenBeautyFactsClient(session=_Session(response))
    with pytest.raises(error):
        client.search("serum")


def test_barcode_not_found_is_none() -> None:
    session = _Session(
        _Response(status_code=404, payload={"status": 0, "status_verbose": "product not found"}),
        _Response(payload={"status": "0"}),
    )
    client = OpenBeautyFactsClient("https://obf.test", session=session)

    assert client.fetch_by_barcode("000") is None
    assert client.fetch_by_barcode("001") is None
    assert session.calls[0]["url"] == "https://obf.test/api/v2/product/000.json"


def test_barcode_server_error_raises() -> None:
    client = OpenBeautyFactsClient(session=_Session(_Response(status_code=500)))
    with pytest.raises(DirectoryNetworkError):
        client.fetch_by_barcode("123")


def test_fetched_products_are_cached_by_barcode(tmp_path: Path) -> None:
    cache = FileDataStore(str(tmp_path))
    session = _Session(
        _Response(payload={"products": [_hit("1", "A"), _hit("2", "B")]}),
        _Response(payload={"products": [_hit("2", "B again"), _hit("3", "C")]}),
        _Response(payload={"status": 1, "product": _hit("1", "A v2")}),
    )
    client = OpenBeautyFactsClient(session=session, cache=cache)

    client.search("serum")
    client.search("serum", page=2)
    found = client.fetch_by_barcode("1")

    assert found.name == "A v2"
    assert [(p.barcode, p.name) for p in cache.load_products()] == [("1", "A v2"), ("2", "B"), ("3", "C")]


def test_random_products_search_a_beauty_term() -> None:
    session = _Session(_Response(payload={"products": [_hit("1", "A")]}))
    client = OpenBeautyFactsClient(session=session, rng=_FixedChoice("sunscreen"))

    products = client.fetch_random_products(5)

    assert [p.name for p in products] == ["A"]
    assert session.calls[0]["params"]["search_terms"] == "sunscreen"
    assert session.calls[0]["params"]["page_size"] == "5"


def test_favorites_sync_load_and_save() -> None:
    session = _Session(
        _Response(payload={"ids": ["a", "b"], "items": [{"id": "a", "name": "A"}, "junk"]}),
        _Response(status_code=200),
    )
    sync = DocumentStoreFavoritesSync("https://docs.test/v1/", "secret", session=session)

    ids, items = sync.load("user 1")
    sync.save("user 1", ["a"], [{"id": "a"}])

    assert ids == ["a", "b"]
    assert items == [{"id": "a", "name": "A"}]
    assert session.headers["Authorization"] == "Bearer secret"
    assert session.calls[0]["url"] == "https://docs.test/v1/users/user%201/favorites/list"
    put = session.calls[1]
    assert put["method"] == "PUT"
    assert put["json"]["ids"] == ["a"]
    assert put["json"]["updatedAt"].endswith("Z")


def test_favorites_sync_missing_document_is_empty() -> None:
    sync = DocumentStoreFavoritesSync("https://docs.test", session=_Session(_Response(status_code=404)))
    assert sync.load("u") == ([], [])


@pytest.mark.parametrize(
    "response",
    [_Response(status_code=500), requests.Timeout("slow"), _Response(text="oops")],
)
def test_favorites_sync_load_errors(response) -> None:
    sync = DocumentStoreFavoritesSync("https://docs.test", session=_Session(response))
    with pytest.raises(SyncError):
        sync.load("u")


def test_favorites_sync_save_error() -> None:
    sync = DocumentStoreFavoritesSync("https://docs.test", session=_Session(_Response(status_code=403)))
    with pytest.raises(SyncError):
        sync.save("u", [], [])
