"""Newswatch — CLI entrypoint.

    python -m newswatch.main --server            # default
    python -m newswatch.main --analyze BTCUSDT,ETHUSDT
    python -m newswatch.main --analyze BTCUSDT --mock
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from newswatch import __version__
from newswatch.config import Settings, get_settings
from newswatch.services import build_services
from newswatch.utils import setup_logging

logger = logging.getLogger("newswatch")

BANNER = rf"""
  _ __   _____      _____      ____ _| |_ ___| |__
 | '_ \ / _ \ \ /\ / /\ \ /\ / / _` | __/ __| '_ \
 | | | |  __/\ V  V /  \ V  V / (_| | || (__| | | |
 |_| |_|\___| \_/\_/    \_/\_/ \__,_|\__\___|_| |_|  v{__version__}
  News-driven market alerts
"""


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="newswatch",
        description="Newswatch — news-driven market alert pipeline",
    )
    group = parser.add_argument_group("modes")
    group.add_argument("--server", action="store_true", help="Run FastAPI server (default)")
    group.add_argument("--analyze", metavar="A,B,C", help="Analyze a comma-separated list of subjects once")

    parser.add_argument("--mock", action="store_true", help="Use the deterministic mock classifier")
    return parser


async def _analyze_once(settings: Settings, subjects: list[str], mock: bool) -> int:
    services = build_services(settings, mock=mock)
    await services.startup()
    try:
        results = await services.orchestrator.analyze_batch(subjects)
    finally:
        await services.shutdown()

    summary = services.orchestrator.summarize(results)
    for r in results:
        headline = r.alert.headline if r.alert else "-"
        logger.info("  %-12s %-9s %5dms  %s", r.subject, r.status.value, r.duration_ms, headline)
    logger.info("Summary: %s", json.dumps(summary.to_dict()))
    return 0 if summary.analyzed + summary.cached > 0 else 1


async def _serve(settings: Settings, mock: bool) -> None:
    import uvicorn
    from newswatch.api.app import create_app

    app = create_app(services=build_services(settings, mock=mock))
    config = uvicorn.Config(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )
    server = uvicorn.Server(config)
    await server.serve()


def main() -> None:
    parser = _build_parser()
    args = parser.parse_args()

    settings = get_settings()
    setup_logging(settings.log_level)

    print(BANNER, file=sys.stderr)

    try:
        if args.analyze:
            subjects = [s.strip() for s in args.analyze.split(",") if s.strip()]
            if not subjects:
                parser.error("--analyze needs at least one subject")
            sys.exit(asyncio.run(_analyze_once(settings, subjects, args.mock)))
        asyncio.run(_serve(settings, args.mock))
    except KeyboardInterrupt:
        logger.info("Interrupted — shutting down")


if __name__ == "__main__":
    main()
