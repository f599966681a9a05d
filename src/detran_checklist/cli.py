"""Command-line interface for the DETRAN checklist project."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

from .bootstrap import initialise_backend, load_catalog_state, shutdown_backend
from .config import Settings, get_settings
from .health import BackendHealthMonitor
from .main import serve_http, serve_stdio
from .models import Service
from .seed import generate_seed_sql, initial_services


async def _seed_async(settings: Settings) -> int:
    state, store = load_catalog_state(settings)
    backend = await initialise_backend(settings, state, BackendHealthMonitor(), store=store)
    try:
        count = await backend.import_services(initial_services())
        if backend.mirrors_remote:
            await asyncio.to_thread(store.save, state)
    finally:
        await shutdown_backend(backend)
    print(f"Seeded {count} service(s) into the {backend.display_name} backend.")
    return count


async def _status_async(settings: Settings, *, live: bool) -> None:
    state, store = load_catalog_state(settings)

    if live:
        backend = await initialise_backend(settings, state, BackendHealthMonitor(), store=store)
        try:
            await backend.list_services()
            status = await backend.get_status()
        finally:
            await shutdown_backend(backend)
        print(f"→ Backend: {backend.backend_id}")
        print(f"   Services: {len(state.services)}")
        print(f"   Status: {status}")
        return

    if settings.backend == "json":
        loaded = store.load()
        if loaded is not None:
            state = loaded
    if not state.services:
        print("No cached catalog data. Use --live to query the backend.")
        return
    print(f"→ Backend: {settings.backend}")
    print(f"   Snapshot: {store.path}")
    for category, count in _count_by_category(state.services.values()).items():
        print(f"   {category}: {count}")
    print(f"   Services: {len(state.services)}")


def _count_by_category(services) -> dict[str, int]:
    counts: dict[str, int] = {}
    for service in services:
        counts[service.category.value] = counts.get(service.category.value, 0) + 1
    return counts


async def _catalog_services(settings: Settings) -> list[Service]:
    state, store = load_catalog_state(settings)
    backend = await initialise_backend(settings, state, BackendHealthMonitor(), store=store)
    try:
        return list(await backend.list_services())
    finally:
        await shutdown_backend(backend)


def _export_sql(settings: Settings, *, from_catalog: bool, output: Path | None) -> None:
    if from_catalog:
        services = asyncio.run(_catalog_services(settings))
    else:
        services = initial_services()
    sql = generate_seed_sql(services, table_prefix=settings.table_prefix)
    if output is None:
        sys.stdout.write(sql)
        return
    output.write_text(sql, encoding="utf-8")
    print(f"Wrote {len(services)} service(s) to {output}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="CLI helpers for the DETRAN checklist project",
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("serve", parents=[common], help="Run the MCP server over stdio")

    http_parser = subparsers.add_parser(
        "serve-http", parents=[common], help="Run the MCP server over streamable HTTP"
    )
    http_parser.add_argument("--host", default="127.0.0.1", help="Host/IP to bind")
    http_parser.add_argument("--port", type=int, default=8000, help="Port to bind")
    http_parser.add_argument(
        "--json-response",
        action="store_true",
        help="Return JSON responses instead of event streams",
    )

    subparsers.add_parser(
        "seed",
        parents=[common],
        help="Write the built-in DETRAN services into the configured backend",
    )

    status_parser = subparsers.add_parser(
        "status",
        parents=[common],
        help="Display catalog snapshot and backend status information",
    )
    status_parser.add_argument(
        "--live",
        action="store_true",
        help="Query the configured backend (may hit the network)",
    )

    export_parser = subparsers.add_parser(
        "export-sql",
        parents=[common],
        help="Render INSERT statements for the PostgREST tables",
    )
    export_parser.add_argument(
        "--from-catalog",
        action="store_true",
        help="Export the current catalog instead of the built-in services",
    )
    export_parser.add_argument(
        "--output",
        type=Path,
        help="File to write (default: standard output)",
    )

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))
    settings = get_settings()

    if args.command == "serve":
        asyncio.run(serve_stdio(settings))
        return 0

    if args.command == "serve-http":
        asyncio.run(
            serve_http(
                settings,
                host=args.host,
                port=args.port,
                log_level=args.log_level,
                json_response=args.json_response,
            )
        )
        return 0

    if args.command == "seed":
        asyncio.run(_seed_async(settings))
        return 0

    if args.command == "status":
        asyncio.run(_status_async(settings, live=args.live))
        return 0

    if args.command == "export-sql":
        _export_sql(settings, from_catalog=args.from_catalog, output=args.output)
        return 0

    parser.print_help()
    return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
