from __future__ import annotations

import argparse
import json
import os
import sys
from typing import List, Sequence

from ..catalog import CatalogCoordinator
from ..config import build_settings
from ..domain.models import Product
from ..logging import get_logger
from ..service import build_coordinator

LOG = get_logger("cli-main")


def _add_common_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--data-dir", help="Directory for products.json/favorites.json (default: var/catalog at project root)")
    p.add_argument("--seed", help="Path to a seed catalog JSON (default: the bundled one)")
    p.add_argument("--base-url", help="Override Open Beauty Facts base URL (defaults to env/.env)")
    p.add_argument("--timeout", type=int, help="HTTP timeout in seconds for remote requests")
    p.add_argument("--page-size", type=int, help="Search page size")
    p.add_argument("--user-id", help="User id for remote favorites sync (overrides env/.env)")


def _coordinator(ns: argparse.Namespace) -> CatalogCoordinator:
    settings = build_settings(ns, script_dir=os.getcwd())
    return build_coordinator(settings)


def _print_products(products: List[Product], coordinator: CatalogCoordinator) -> None:
    out = []
    for p in products:
        row = p.to_dict()
        row["favorite"] = coordinator.is_favorite(p.id)
        out.append(row)
    print(json.dumps(out, ensure_ascii=False, indent=2))


def _report(coordinator: CatalogCoordinator) -> None:
    if coordinator.diagnostic:
        LOG.warning(coordinator.diagnostic)
    if coordinator.active_tier is not None:
        LOG.info(f"Catalog tier: {coordinator.active_tier.value}")


def _sample(ns: argparse.Namespace) -> int:
    c = _coordinator(ns)
    try:
        c.initialize()
        products = c.filtered("")
        _report(c)
        _print_products(products, c)
        return 0 if products else 1
    finally:
        c.close()


def _search(ns: argparse.Namespace) -> int:
    c = _coordinator(ns)
    try:
        c.search(ns.query)
        for _ in range(max(0, ns.pages - 1)):
            if not c.session.has_more:
                break
            c.load_more()
        products = c.filtered(ns.query)
        _report(c)
        _print_products(products, c)
        return 0 if products else 1
    finally:
        c.close()


def _barcode(ns: argparse.Namespace) -> int:
    c = _coordinator(ns)
    try:
        found = c.lookup_barcode(ns.code)
        _report(c)
        if found is None:
            return 1
        _print_products([found], c)
        return 0
    finally:
        c.close()


def _favorite(ns: argparse.Namespace) -> int:
    c = _coordinator(ns)
    try:
        if ns.online:
            c.initialize()
        else:
            c.load_local()
            c.resolve_fallback()
        now = c.toggle_favorite(ns.product_id)
        print(json.dumps({"id": ns.product_id, "favorite": now}))
        return 0
    finally:
        c.close()


def _favorites(ns: argparse.Namespace) -> int:
    c = _coordinator(ns)
    try:
        if ns.online:
            c.initialize()
        else:
            c.load_local()
            c.resolve_fallback()
        if ns.pull:
            c.sync_favorites_from_cloud()
        _print_products(c.favorite_products(), c)
        return 0
    finally:
        c.close()


def _refresh(ns: argparse.Namespace) -> int:
    c = _coordinator(ns)
    try:
        ok = c.force_refresh_from_bundle()
        _report(c)
        LOG.info(f"Catalog now holds {len(c.products)} product(s)")
        return 0 if ok else 1
    finally:
        c.close()


def _serve(ns: argparse.Namespace) -> int:
    from ..frontend import create_app
    import uvicorn

    allow_origins = ns.allow_origins
    if allow_origins and len(allow_origins) == 1 and allow_origins[0] == "*":
        allow_origins = ["*"]

    app = create_app(_coordinator(ns), allow_origins=allow_origins, initialize=not ns.offline)
    uvicorn.run(app, host=ns.host, port=ns.port, log_level=ns.log_level)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    provided = list(argv) if argv is not None else sys.argv[1:]
    LOG.debug(f"CLI invoked with arguments: {provided}")

    parser = argparse.ArgumentParser(
        prog="skincare-catalog",
        description="Local-first skincare product catalog backed by Open Beauty Facts.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    sample = subparsers.add_parser("sample", help="Load favorites plus a random remote sample and print the catalog.")
    _add_common_args(sample)
    sample.set_defaults(handler=_sample)

    search = subparsers.add_parser("search", help="Search the remote directory (falls back to local tiers).")
    _add_common_args(search)
    search.add_argument("query")
    search.add_argument("--pages", type=int, default=1, help="Number of result pages to fetch")
    search.set_defaults(handler=_search)

    barcode = subparsers.add_parser("barcode", help="Look up one product by barcode.")
    _add_common_args(barcode)
    barcode.add_argument("code")
    barcode.set_defaults(handler=_barcode)

    favorite = subparsers.add_parser("favorite", help="Toggle a product id in the favorite set.")
    _add_common_args(favorite)
    favorite.add_argument("product_id")
    favorite.add_argument("--online", action="store_true", help="Load a remote sample first")
    favorite.set_defaults(handler=_favorite)

    favorites = subparsers.add_parser("favorites", help="Print favorited products.")
    _add_common_args(favorites)
    favorites.add_argument("--pull", action="store_true", help="Merge the remote favorites list first")
    favorites.add_argument("--online", action="store_true", help="Load a remote sample first")
    favorites.set_defaults(handler=_favorites)

    refresh = subparsers.add_parser("refresh", help="Rebuild the documents cache from the bundled catalog.")
    _add_common_args(refresh)
    refresh.set_defaults(handler=_refresh)

    serve = subparsers.add_parser("serve", help="Run the catalog JSON API.")
    _add_common_args(serve)
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8001)
    serve.add_argument("--log-level", default="info")
    serve.add_argument("--offline", action="store_true", help="Skip the initial remote sample")
    serve.add_argument(
        "--allow-origin",
        action="append",
        dest="allow_origins",
        help="Allowed CORS origin (can be provided multiple times, use '*' for any).",
    )
    serve.set_defaults(handler=_serve)

    args = parser.parse_args(provided)
    code = args.handler(args)
    LOG.info(f"Subcommand '{args.command}' finished with exit code {code}.")
    return code


if __name__ == "__main__":
    sys.exit(main())
