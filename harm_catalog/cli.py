"""
Harm Catalog CLI
================

Inspect and refresh the local catalog from a terminal.

COMMANDS:
- status:   Where each dataset currently comes from
- sync:     Refresh every dataset from the network
- combo:    Interaction between two substances
- timeline: Onset / peak / after-effects curve
- search:   Find substances by name, alias or category

USAGE:
    python -m harm_catalog [--config FILE] [--offline] COMMAND [ARGS]
"""

from __future__ import annotations
from dataclasses import replace
from pathlib import Path
from typing import List, Optional
import argparse
import asyncio
import json
import logging

from .config import load_config
from .contracts import PhaseName, Timeline
from .fetcher import StaticConnectivity
from .observability import setup_logging
from .resolver import InteractionResolver
from .search import SubstanceIndex
from .synchronizer import CatalogSynchronizer, create_synchronizer
from .timeline import build_timeline, timeline_for_substance

logger = logging.getLogger(__name__)


def cmd_status(sync: CatalogSynchronizer, args) -> int:
    status = sync.status()
    if args.json:
        print(json.dumps(status, indent=2))
        return 0
    print("DATASET      | STATE        | RECORDS | LAST SYNCED")
    print("-" * 60)
    for name, info in status.items():
        synced = info['last_synced_at'] or "never"
        print(f"{name:<12} | {info['state']:<12} | {info['records']:>7} | {synced}")
    return 0


def cmd_sync(sync: CatalogSynchronizer, args) -> int:
    results = asyncio.run(sync.refresh_all())
    failures = 0
    for dataset, result in results.items():
        if result.is_success:
            print(f"[OK]   {dataset.value}: {result.value.state.value}")
        else:
            failures += 1
            print(f"[FAIL] {dataset.value}: {result.error.code.name} {result.error.message}")
    return 1 if failures else 0


def cmd_combo(sync: CatalogSynchronizer, args) -> int:
    resolver = InteractionResolver(sync)
    entry = resolver.resolve(args.first, args.second)
    if entry is None:
        print(f"No documented interaction between {args.first} and {args.second}.")
        return 0

    definition = resolver.describe(entry.status)
    label = " ".join(p for p in (definition.emoji, entry.raw_status or definition.label) if p)
    print(f"{entry.a} + {entry.b}: {label}")
    print(f"  {definition.definition}")
    if entry.note:
        print(f"  Note: {entry.note}")
    for source in entry.sources:
        print(f"  Source: {source.title or ''} {source.url or ''}".rstrip())
    return 0


def _print_timeline(timeline: Timeline) -> None:
    for phase in timeline.phases:
        print(f"{phase.name.value:<14} {phase.start_minutes:7.1f} - {phase.end_minutes:7.1f} min")
    print(f"total          {timeline.total_minutes:7.1f} min")
    print("axis: " + "  ".join(timeline.axis_labels))
    peak_start = timeline.phase(PhaseName.PEAK).start_minutes
    for sample in timeline.samples:
        marker = "*" if sample.offset_minutes == peak_start else " "
        bar = "#" * int(round(sample.intensity / 5))
        print(f"{sample.offset_minutes:7.1f}{marker} {bar}")


def cmd_timeline(sync: CatalogSynchronizer, args) -> int:
    if args.substance:
        substance = SubstanceIndex(sync).get(args.substance)
        if substance is None:
            print(f"Unknown substance: {args.substance}")
            return 1
        timeline = timeline_for_substance(substance)
    else:
        texts = list(args.durations) + [None] * (3 - len(args.durations))
        timeline = build_timeline(*texts)

    if timeline is None:
        print("No duration data available.")
        return 0
    _print_timeline(timeline)
    return 0


def cmd_search(sync: CatalogSynchronizer, args) -> int:
    matches = SubstanceIndex(sync).search(args.query, args.category or ())
    if not matches:
        print("No matches.")
        return 0
    for substance in matches:
        aliases = ", ".join(sorted(substance.aliases))
        print(f"{substance.display_name:<20} [{', '.join(substance.categories)}] {aliases}")
    return 0


COMMANDS = {
    'status': cmd_status,
    'sync': cmd_sync,
    'combo': cmd_combo,
    'timeline': cmd_timeline,
    'search': cmd_search,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="harm_catalog", description="Harm-reduction catalog")
    parser.add_argument("--config", type=Path, help="JSON config file")
    parser.add_argument("--cache", type=Path, help="Override cache database path")
    parser.add_argument("--offline", action="store_true", help="Never touch the network")
    parser.add_argument("--log-level", help="Override log level")
    parser.add_argument("--log-format", choices=["text", "json"], help="Override log format")

    subparsers = parser.add_subparsers(dest="command")

    status_parser = subparsers.add_parser("status", help="Show dataset state")
    status_parser.add_argument("--json", action="store_true", help="Machine-readable output")

    subparsers.add_parser("sync", help="Refresh all datasets")

    combo_parser = subparsers.add_parser("combo", help="Look up an interaction")
    combo_parser.add_argument("first")
    combo_parser.add_argument("second")

    timeline_parser = subparsers.add_parser("timeline", help="Show a duration timeline")
    timeline_parser.add_argument(
        "durations", nargs="*",
        help="ONSET PEAK AFTER texts, e.g. '20-40 minutes' '2-4 hours' '1-2 hours'"
    )
    timeline_parser.add_argument("--substance", help="Build from a catalog entry instead")

    search_parser = subparsers.add_parser("search", help="Search substances")
    search_parser.add_argument("query", nargs="?", default="")
    search_parser.add_argument("--category", action="append", help="Filter by category (repeatable)")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command not in COMMANDS:
        parser.print_help()
        return 2
    if args.command == 'timeline' and len(args.durations) > 3:
        parser.error(f"timeline takes at most 3 durations (ONSET PEAK AFTER), got {len(args.durations)}")

    try:
        config = load_config(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"[!] {e}")
        return 2

    if args.cache:
        config = replace(config, cache_path=args.cache)
    setup_logging(args.log_level or config.log_level, args.log_format or config.log_format)

    sync = create_synchronizer(config)
    if args.offline:
        sync = CatalogSynchronizer(
            store=sync.store,
            registry=sync.registry,
            connectivity=StaticConnectivity(online=False),
        )
    logger.debug("Running %s", args.command)
    return COMMANDS[args.command](sync, args)
