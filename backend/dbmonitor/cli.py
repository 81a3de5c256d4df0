"""
Command line entry point.

  dbmonitor serve                 run the API server (uvicorn)
  dbmonitor watch [--url URL]     print database status on every health probe
  dbmonitor query SQL [PARAM...]  run one query through the retrying client
"""

import argparse
import asyncio
import json
import logging
import os
import sys

from dbmonitor.client import ClientError, DatabaseClient, StatusReporter
from dbmonitor.core.config import settings


def _default_url() -> str:
    return os.environ.get("DBMONITOR_URL", f"http://localhost:{settings.PORT}/api")


def serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run(
        "dbmonitor.main:app",
        host=args.host,
        port=args.port,
        log_level=args.log_level,
    )
    return 0


async def _watch(url: str, interval: float) -> None:
    async with DatabaseClient(url, check_interval=interval) as client:
        client.on_connection_change(StatusReporter(lambda: client.state))
        while True:
            await asyncio.sleep(3600)


def watch(args: argparse.Namespace) -> int:
    try:
        asyncio.run(_watch(args.url, args.interval))
    except KeyboardInterrupt:
        pass
    return 0


async def _query(url: str, text: str, params: list[str]) -> dict:
    async with DatabaseClient(url) as client:
        return await client.query(text, params or None)


def query(args: argparse.Namespace) -> int:
    try:
        result = asyncio.run(_query(args.url, args.text, args.params))
    except ClientError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    print(json.dumps(result, indent=2, default=str))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dbmonitor", description="SQL query/health API and monitor."
    )
    parser.add_argument("--log-level", default="info", help="Logging level (default info)")
    sub = parser.add_subparsers(dest="command", required=True)

    p_serve = sub.add_parser("serve", help="Run the API server")
    p_serve.add_argument("--host", default=settings.HOST)
    p_serve.add_argument("--port", type=int, default=settings.PORT)
    p_serve.set_defaults(func=serve)

    p_watch = sub.add_parser("watch", help="Print database connectivity changes")
    p_watch.add_argument("--url", default=_default_url(), help="API base URL")
    p_watch.add_argument(
        "--interval", type=float, default=30.0, help="Seconds between probes (default 30)"
    )
    p_watch.set_defaults(func=watch)

    p_query = sub.add_parser("query", help="Run one SQL query")
    p_query.add_argument("text", help="SQL text, e.g. 'SELECT $1::int AS n'")
    p_query.add_argument("params", nargs="*", help="Positional parameters for $1..$n")
    p_query.add_argument("--url", default=_default_url(), help="API base URL")
    p_query.set_defaults(func=query)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
