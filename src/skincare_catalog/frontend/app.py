from __future__ import annotations

import os
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from starlette.applications import Starlette
from starlette.exceptions import HTTPException
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from ..catalog import CatalogCoordinator
from ..config import build_settings
from ..domain.models import Product
from ..logging import get_logger
from ..service import build_coordinator


LOG = get_logger("catalog-frontend")


def _parse_int(value: Optional[str], *, default: int, minimum: int, maximum: int) -> int:
    try:
        parsed = int(value) if value is not None else default
    except (TypeError, ValueError):
        parsed = default
    if parsed < minimum:
        return minimum
    if parsed > maximum:
        return maximum
    return parsed


def create_app(
    coordinator: Optional[CatalogCoordinator] = None,
    *,
    root_dir: Optional[str] = None,
    allow_origins: Optional[List[str]] = None,
    initialize: bool = True,
) -> Starlette:
    """Create a Starlette app exposing the catalog coordinator as a JSON API."""

    if coordinator is None:
        settings = build_settings(script_dir=root_dir or os.getcwd())
        coordinator = build_coordinator(settings)
    if initialize:
        coordinator.initialize()
    else:
        coordinator.load_local()

    def _product(p: Product) -> Dict[str, Any]:
        payload = p.to_dict()
        payload["favorite"] = coordinator.is_favorite(p.id)
        return payload

    def _envelope(items: List[Product], **extra: Any) -> Dict[str, Any]:
        tier = coordinator.active_tier
        payload: Dict[str, Any] = {
            "items": [_product(p) for p in items],
            "total": len(items),
            "diagnostic": coordinator.diagnostic,
            "tier": tier.value if tier else None,
        }
        payload.update(extra)
        return payload

    def _session_payload() -> Dict[str, Any]:
        s = coordinator.session
        return _envelope(
            s.results,
            query=s.query,
            page=s.page,
            has_more=s.has_more,
            api_failed=s.api_failed,
        )

    async def health(_: Request) -> JSONResponse:
        return JSONResponse({"status": "ok", "products": len(coordinator.products)})

    async def products(request: Request) -> JSONResponse:
        qp = request.query_params
        query = qp.get("q") or qp.get("query") or ""
        limit = _parse_int(qp.get("limit"), default=500, minimum=1, maximum=5000)
        items = coordinator.filtered(query)[:limit]
        return JSONResponse(_envelope(items, query=query))

    async def sample(request: Request) -> JSONResponse:
        count = _parse_int(request.query_params.get("count"), default=coordinator.sample_size, minimum=1, maximum=100)
        replaced = coordinator.load_random_sample(count)
        return JSONResponse(_envelope(coordinator.products, replaced=replaced))

    async def search(request: Request) -> JSONResponse:
        try:
            body = await request.json()
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="Body must be JSON") from exc
        if not isinstance(body, dict) or not isinstance(body.get("query"), str):
            raise HTTPException(status_code=400, detail="Missing 'query'")
        page_size = body.get("page_size")
        if page_size is not None and (not isinstance(page_size, int) or page_size <= 0):
            raise HTTPException(status_code=400, detail="page_size must be a positive integer")
        results = coordinator.search(body["query"], page_size=page_size)
        if not body["query"].strip():
            return JSONResponse(_envelope(results, query="", page=1, has_more=False, api_failed=False))
        return JSONResponse(_session_payload())

    async def search_more(_: Request) -> JSONResponse:
        new = coordinator.load_more()
        payload = _session_payload()
        payload["added"] = len(new)
        return JSONResponse(payload)

    async def search_close(_: Request) -> JSONResponse:
        coordinator.close_search()
        return JSONResponse({"status": "closed"})

    async def favorites(_: Request) -> JSONResponse:
        return JSONResponse(_envelope(coordinator.favorite_products(), ids=sorted(coordinator.favorite_ids)))

    async def toggle_favorite(request: Request) -> JSONResponse:
        product_id = request.path_params["product_id"]
        now = coordinator.toggle_favorite(product_id)
        return JSONResponse({"id": product_id, "favorite": now, "diagnostic": coordinator.diagnostic})

    async def favorites_sync(_: Request) -> JSONResponse:
        ok = coordinator.sync_favorites_from_cloud()
        return JSONResponse({"synced": ok, "ids": sorted(coordinator.favorite_ids)})

    async def barcode(request: Request) -> JSONResponse:
        code = request.path_params["code"]
        found = coordinator.lookup_barcode(code)
        if found is None:
            raise HTTPException(status_code=404, detail=coordinator.diagnostic or "Product not found")
        return JSONResponse(_product(found))

    async def refresh(_: Request) -> JSONResponse:
        ok = coordinator.force_refresh_from_bundle()
        return JSONResponse(_envelope(coordinator.products, refreshed=ok))

    routes = [
        Route("/api/health", health, methods=["GET"]),
        Route("/api/products", products, methods=["GET"]),
        Route("/api/products/sample", sample, methods=["POST"]),
        Route("/api/search", search, methods=["POST"]),
        Route("/api/search", search_close, methods=["DELETE"]),
        Route("/api/search/more", search_more, methods=["POST"]),
        Route("/api/favorites", favorites, methods=["GET"]),
        Route("/api/favorites/sync", favorites_sync, methods=["POST"]),
        Route("/api/favorites/{product_id:str}", toggle_favorite, methods=["POST"]),
        Route("/api/barcode/{code:str}", barcode, methods=["GET"]),
        Route("/api/refresh", refresh, methods=["POST"]),
    ]

    @asynccontextmanager
    async def lifespan(_: Starlette) -> AsyncIterator[None]:
        yield
        coordinator.close()

    app = Starlette(debug=False, routes=routes, lifespan=lifespan)

    origins = allow_origins or ["http://localhost:5173", "http://127.0.0.1:5173"]
    if "*" in origins:
        cors_allow_origins = ["*"]
    else:
        cors_allow_origins = origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.coordinator = coordinator
    LOG.info("Catalog API ready with %d route(s)", len(routes))
    return app


__all__ = ["create_app"]
