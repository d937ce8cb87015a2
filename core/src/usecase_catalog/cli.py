from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from logging.handlers import RotatingFileHandler

import uvicorn

from usecase_catalog.app import create_app
from usecase_catalog.config import (
    apply_env_overrides,
    load_catalog_config,
    resolve_catalog_paths,
)
from usecase_catalog.loader import (
    DEFAULT_PAGE_SIZE,
    CatalogSession,
    InfiniteLoader,
    LoaderState,
    LoginFailed,
    RowIdentity,
)
from usecase_catalog.logs import LOG_FORMAT


def serve(args: argparse.Namespace) -> int:
    paths = resolve_catalog_paths()
    config = apply_env_overrides(load_catalog_config(paths))

    logging.basicConfig(
        level=logging.INFO,
        format=LOG_FORMAT,
        handlers=[
            RotatingFileHandler(
                paths.log_path,
                maxBytes=config.logging.max_size_mb * 1024 * 1024,
                backupCount=config.logging.backup_count,
                encoding="utf-8",
            ),
            logging.StreamHandler(),
        ],
    )

    host = args.host or config.network.bind_host
    port = args.port or config.network.port

    uvicorn.run(create_app(), host=host, port=port)
    return 0


async def _dump(args: argparse.Namespace, out) -> int:
    redirects: list[str] = []

    async with CatalogSession(args.url, timeout=args.timeout) as session:
        try:
            await session.login(args.token)
        except LoginFailed as exc:
            print(f"login failed: {exc}", file=sys.stderr)
            return 1

        loader = InfiniteLoader(
            session,
            page_size=args.page_size,
            row_identity=RowIdentity(args.row_identity),
            navigate=redirects.append,
        )
        rows = await loader.load_all()

    if loader.state is LoaderState.REDIRECTING:
        print(f"session rejected; log in again at {redirects[0]}", file=sys.stderr)
        return 1

    for row in rows:
        payload = {"id": row.key, **row.record.model_dump(mode="json", by_alias=True)}
        out.write(json.dumps(payload, ensure_ascii=False) + "\n")

    if loader.state is LoaderState.ERROR:
        print(f"stopped after {len(rows)} rows: {loader.error}", file=sys.stderr)
        return 2
    return 0


def dump(args: argparse.Namespace) -> int:
    if not args.token:
        print("a token is required (--token or USECASE_CATALOG_TOKEN)", file=sys.stderr)
        return 1
    return asyncio.run(_dump(args, sys.stdout))


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="usecase-catalog", description="AI use case catalog")
    sub = p.add_subparsers(dest="command")

    serve_p = sub.add_parser("serve", help="Run the catalog service")
    serve_p.add_argument("--host", default=None, help="Bind host (default: from config)")
    serve_p.add_argument("--port", type=int, default=None, help="Port (default: from config)")
    serve_p.set_defaults(func=serve)

    dump_p = sub.add_parser("dump", help="Log in to a running service and print every row")
    dump_p.add_argument("--url", default="http://127.0.0.1:8000", help="Service base URL")
    dump_p.add_argument(
        "--token",
        default=os.environ.get("USECASE_CATALOG_TOKEN"),
        help="Shared secret (default: USECASE_CATALOG_TOKEN)",
    )
    dump_p.add_argument("--page-size", type=int, default=DEFAULT_PAGE_SIZE)
    dump_p.add_argument(
        "--row-identity",
        choices=[identity.value for identity in RowIdentity],
        default=RowIdentity.INDEX.value,
    )
    dump_p.add_argument("--timeout", type=float, default=30.0)
    dump_p.set_defaults(func=dump)

    return p


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        # No subcommand: run the server.
        args = parser.parse_args(["serve"])
    return args.func(args)
