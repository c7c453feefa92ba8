"""Command line entry points: the MCP server and the corpus exporter."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Sequence

from opencontext.cache.store import CacheStore
from opencontext.config import ensure_default_config, get_settings
from opencontext.fetching import FetchError
from opencontext.metrics.observability import get_logger
from opencontext.sources import GoStdlibExporter, build_http_client


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    from opencontext import __version__

    parser = argparse.ArgumentParser(prog="open-context", description="Serve cached documentation over MCP.")
    parser.add_argument("-cc", "--clear-cache", action="store_true", help="Remove every cached record and exit")
    parser.add_argument(
        "-t",
        "--transport",
        choices=("stdio", "http"),
        default=None,
        help="Transport to serve on (default: stdio)",
    )
    parser.add_argument("-H", "--host", default=None, help="Host to bind in http mode (default: localhost)")
    parser.add_argument("-p", "--port", type=int, default=None, help="Port to bind in http mode (default: 9011)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    ensure_default_config()
    override = {
        key: value
        for key, value in (("transport", args.transport), ("host", args.host), ("port", args.port))
        if value is not None
    }
    settings = get_settings(override or None)
    logger = get_logger("cli")

    if args.clear_cache:
        store = CacheStore(settings.cache_dir, settings.cache_ttl_seconds)
        if store.clear():
            print(f"Cache cleared: {settings.cache_dir}")
        else:
            print(f"Cache is already empty: {settings.cache_dir}")
        return 0

    from opencontext.api import build_dependencies, serve_stdio

    deps = build_dependencies(settings)
    logger.info(
        "server.starting",
        transport=settings.transport,
        cache_dir=str(settings.cache_dir),
        corpus_entries=len(deps.corpus),
    )
    try:
        if settings.transport == "http":
            import uvicorn

            from opencontext.api.app import create_app

            uvicorn.run(create_app(settings=settings, dependencies=deps), host=settings.host, port=settings.port)
            return 0
        return serve_stdio(deps.dispatcher)
    finally:
        deps.close()


def parse_fetch_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="opencontext-fetch",
        description="Export a language's standard library documentation as a corpus collection.",
    )
    parser.add_argument("--language", choices=("go",), default="go", help="Language to export")
    parser.add_argument("--output", type=Path, default=Path("./data"), help="Corpus root to write into")
    parser.add_argument("--limit", type=int, default=100, help="Maximum number of packages to export")
    parser.add_argument("--delay", type=float, default=0.5, help="Seconds to wait between package requests")
    return parser.parse_args(argv)


def fetch_main(argv: Sequence[str] | None = None) -> int:
    args = parse_fetch_args(argv if argv is not None else sys.argv[1:])
    settings = get_settings()
    client = build_http_client(timeout_seconds=settings.http_timeout_seconds, user_agent=settings.user_agent)
    try:
        exporter = GoStdlibExporter(client, limit=args.limit, delay_seconds=args.delay)
        written = exporter.export(args.output)
    except FetchError as exc:
        print(f"Export failed: {exc}", file=sys.stderr)
        return 1
    finally:
        client.close()
    print(f"Exported {written} {args.language} packages to {args.output / args.language}")
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
