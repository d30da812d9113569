# src/main.py — v2
"""CLI entry point — enrich, sync, status, cleanup commands.

Usage:
    modelsync enrich
    modelsync sync
    modelsync status
    modelsync cleanup

Each command runs exactly one invocation and prints its result as JSON.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx

from modelsync.config.settings import ConfigurationError, Settings, load_settings
from modelsync.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        settings = load_settings()
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1
    _setup_logging(settings, args.verbose)

    try:
        return asyncio.run(args.func(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="modelsync",
        description=f"modelsync v{__version__} — AI model catalog sync and enrichment",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    p_enrich = subparsers.add_parser(
        "enrich", help="Run one enrichment cycle (descriptions + translations)",
    )
    p_enrich.set_defaults(func=_cmd_enrich)

    p_sync = subparsers.add_parser(
        "sync", help="Rebuild the catalog from upstream and manual models",
    )
    p_sync.set_defaults(func=_cmd_sync)

    p_status = subparsers.add_parser(
        "status", help="Show pending / failed enrichment counts",
    )
    p_status.set_defaults(func=_cmd_status)

    p_cleanup = subparsers.add_parser(
        "cleanup", help="Reset over-long (corrupted) descriptions",
    )
    p_cleanup.set_defaults(func=_cmd_cleanup)

    return parser


@asynccontextmanager
async def open_runtime(settings: Settings) -> AsyncIterator[tuple]:
    """Yield ``(VersionedStore, KeyedLock, httpx.AsyncClient)``; closes all on exit."""
    from modelsync.kv.kv_factory import create_kv_store
    from modelsync.locking.keyed_lock import KeyedLock
    from modelsync.storage.versioned_store import VersionedStore

    models_kv = create_kv_store(settings, "models")
    locks_kv = create_kv_store(settings, "locks")
    http = httpx.AsyncClient()
    try:
        yield (
            VersionedStore(models_kv),
            KeyedLock(locks_kv, settle_delay_s=settings.lock_settle_delay_s),
            http,
        )
    finally:
        await http.aclose()
        await models_kv.close()
        await locks_kv.close()


def _openrouter(settings: Settings, http: httpx.AsyncClient):
    from modelsync.clients.openrouter_client import OpenRouterClient

    return OpenRouterClient(
        api_key=settings.openrouter_key,
        base_url=settings.openrouter_base_url,
        referer=settings.openrouter_referer,
        title=settings.openrouter_title,
        generation_timeout_s=settings.series_desc_timeout_s,
        catalog_timeout_s=settings.fetch_timeout_s,
        max_tokens=settings.series_desc_max_length + 50,
        http_client=http,
    )


async def _cmd_enrich(settings: Settings) -> int:
    """Execute one enrichment invocation."""
    from modelsync.clients.google_translate_client import GoogleTranslateClient
    from modelsync.enrichment.orchestrator import EnrichmentOrchestrator

    async with open_runtime(settings) as (store, locks, http):
        translator = GoogleTranslateClient(
            api_key=settings.google_translate_api_key,
            url=settings.google_translate_url,
            timeout_s=settings.translation_timeout_s,
            http_client=http,
        )
        orchestrator = EnrichmentOrchestrator(
            store, locks, _openrouter(settings, http), translator, settings,
        )
        result = await orchestrator.run()
    print(result.model_dump_json(indent=2))
    return 0 if result.success else 2


async def _cmd_sync(settings: Settings) -> int:
    """Execute one syncer invocation."""
    from modelsync.sync.syncer import ModelSyncer

    async with open_runtime(settings) as (store, locks, http):
        syncer = ModelSyncer(store, locks, _openrouter(settings, http), http, settings)
        result = await syncer.run()
    print(result.model_dump_json(indent=2))
    return 0 if result.outcome in ("written", "unchanged") else 2


async def _cmd_status(settings: Settings) -> int:
    """Print the status report."""
    from modelsync.maintenance.status import generate_status_report

    async with open_runtime(settings) as (store, locks, _http):
        report = await generate_status_report(store, locks, settings.target_languages_list)
    print(report.model_dump_json(indent=2))
    return 0 if report.status == "ok" else 2


async def _cmd_cleanup(settings: Settings) -> int:
    """Run the maintenance sweep."""
    from modelsync.maintenance.cleanup import run_cleanup

    async with open_runtime(settings) as (store, locks, _http):
        report = await run_cleanup(store, locks, settings)
    print(report.model_dump_json(indent=2))
    return 0 if report.status != "error" else 2


def _setup_logging(settings: Settings, verbose: bool) -> None:
    """Configure logging for CLI usage."""
    from modelsync.logging.logger import setup_logging

    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )


if __name__ == "__main__":
    sys.exit(main())
