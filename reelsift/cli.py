#!/usr/bin/env python3
"""
cli.py - Entry point for reelsift
Search every configured source for a title and print one ranked list.
"""

import argparse
import asyncio
import sys
import time
from pathlib import Path
from typing import Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table

import reelsift as pkg
from reelsift import logger
from reelsift.config import (
    QUALITY_PRESETS,
    GIB,
    OrchestratorConfig,
    RankingConfig,
    ReelsiftConfig,
    build_ranking_config,
    load_config,
    ranking_config_from_preference,
)
from reelsift.errors import InvalidConfig
from reelsift.search.engine import search, search_with_debug
from reelsift.search.query_builder import known_query_profiles
from reelsift.search.report import render_report
from reelsift.search.types import MediaQuery, RankedResult
from reelsift.sources import build_adapters, close_adapters

console = Console()
DEFAULT_RESULT_LIMIT = 20
EXIT_INVALID_CONFIG = 2
QUALITY_CHOICES = ("4k", "2160p", "1080p", "720p", "any")


def _ui_info(message: str) -> None:
    console.print(f"[cyan][INFO][/cyan] {message}")


def _ui_warn(message: str) -> None:
    console.print(f"[yellow][WARNING][/yellow] {message}")


def _ui_error(message: str) -> None:
    console.print(f"[red][ERROR][/red] {message}")


def _format_size(size_bytes: int) -> str:
    if size_bytes <= 0:
        return "?"
    if size_bytes >= GIB:
        return f"{size_bytes / GIB:.1f} GiB"
    return f"{size_bytes / 1024 ** 2:.0f} MiB"


def resolve_config_path(args_config: Optional[str]) -> Optional[Path]:
    """Explicit path (file or directory), else ./config.toml when present, else built-in defaults."""
    if args_config:
        p = Path(args_config).expanduser()
        if p.is_dir():
            p = p / "config.toml"
        return p

    cwd_candidate = Path.cwd() / "config.toml"
    if cwd_candidate.exists():
        return cwd_candidate
    return None


def build_query(args: argparse.Namespace) -> MediaQuery:
    if args.episode is not None and args.season is None:
        raise InvalidConfig("--episode requires --season")
    kind = "series" if args.season is not None else "movie"
    try:
        return MediaQuery(
            external_id=args.id,
            kind=kind,
            title=args.title,
            year=args.year,
            season=args.season,
            episode=args.episode,
        )
    except ValueError as e:
        raise InvalidConfig(str(e)) from e


def resolve_ranking(args: argparse.Namespace, config: ReelsiftConfig) -> RankingConfig:
    """Command-line preset/quality replace the [ranking] table; otherwise it is used as loaded."""
    if args.quality:
        return ranking_config_from_preference(args.quality, args.preset or config.ranking.preset)
    if args.preset:
        return build_ranking_config(args.preset)
    return config.ranking


def resolve_orchestrator(args: argparse.Namespace, config: ReelsiftConfig) -> OrchestratorConfig:
    if args.timeout is None:
        return config.search
    return OrchestratorConfig(**{**config.search.model_dump(), "timeout_seconds": args.timeout})


def display_results(results: Sequence[RankedResult], limit: int) -> None:
    table = Table(title=f"Ranked results ({min(limit, len(results))} of {len(results)})")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Title", style="cyan", overflow="fold")
    table.add_column("Quality")
    table.add_column("Size", justify="right")
    table.add_column("Seeds", justify="right", style="green")
    table.add_column("Source")
    table.add_column("Score", justify="right", style="bold")
    for idx, result in enumerate(results[:limit], start=1):
        table.add_row(
            str(idx),
            escape(result.title),
            escape(result.quality.summary()),
            _format_size(result.size_bytes),
            str(result.seed_count),
            result.source_id,
            str(result.rank_score),
        )
    console.print(table)


def display_profiles() -> None:
    """Print the built-in per-source query profiles and ranking presets."""
    profiles = Table(title="Source query profiles")
    profiles.add_column("Source", style="cyan")
    profiles.add_column("ID lookup")
    profiles.add_column("Year")
    profiles.add_column("Episode format")
    profiles.add_column("Escaping")
    profiles.add_column("Max length", justify="right")
    for source_id, profile in sorted(known_query_profiles().items()):
        profiles.add_row(
            source_id,
            "✓" if profile.supports_id_lookup else "✗",
            "✓" if profile.supports_year else "✗",
            profile.episode_format,
            "✓" if profile.needs_escaping else "✗",
            str(profile.max_query_length) if profile.max_query_length else "-",
        )
    console.print(profiles)

    presets = Table(title="Ranking presets")
    presets.add_column("Preset", style="cyan")
    presets.add_column("Settings")
    for name, values in QUALITY_PRESETS.items():
        presets.add_row(name, escape(", ".join(f"{key}={value}" for key, value in values.items())))
    console.print(presets)


async def run_search(
    config: ReelsiftConfig,
    query: MediaQuery,
    ranking: RankingConfig,
    orchestrator: OrchestratorConfig,
    *,
    debug: bool = False,
    json_path: Optional[Path] = None,
    limit: int = DEFAULT_RESULT_LIMIT,
) -> list[RankedResult]:
    primary, backup = build_adapters(config)
    log = logger.get_logger()
    names = [adapter.source_id for adapter in primary] + ([f"{backup.source_id} (backup)"] if backup else [])
    if not names:
        _ui_warn("No sources enabled; check the [sources] tables in config.toml.")

    started = time.monotonic()
    try:
        log.status(f"Searching {', '.join(names) or 'no sources'} for {query.label()}...")
        if debug or json_path:
            outcome = await search_with_debug(query, primary, backup=backup, ranking=ranking, orchestrator=orchestrator)
            results = outcome.results
            if debug:
                render_report(console, outcome.report)
            if json_path:
                json_path.parent.mkdir(parents=True, exist_ok=True)
                json_path.write_text(outcome.report.to_json(), encoding="utf-8")
                _ui_info(f"Wrote debug report to {json_path}")
        else:
            results = await search(query, primary, backup=backup, ranking=ranking, orchestrator=orchestrator)
    finally:
        await close_adapters([*primary, backup])

    log.info(f"Found {len(results)} results in {time.monotonic() - started:.1f}s")
    if results:
        display_results(results, limit)
    else:
        _ui_warn(f"No results for {escape(query.label())}")
    return results


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="reelsift", description="Aggregate and rank media search results")
    parser.add_argument("--version", action="version", version=f"reelsift {pkg.__version__}")
    commands = parser.add_subparsers(dest="command")

    search_cmd = commands.add_parser("search", help="Search all sources for a title")
    search_cmd.add_argument("title", help="Title to search for")
    for args, kwargs in (
        (("--id",), {"metavar": "IMDB_ID", "help": "External id (e.g. tt0133093)"}),
        (("--year",), {"type": int, "help": "Release year"}),
        (("--season",), {"type": int, "help": "Season number (implies a series search)"}),
        (("--episode",), {"type": int, "help": "Episode number"}),
        (("--preset",), {"choices": list(QUALITY_PRESETS), "help": "Ranking preset"}),
        (("--quality",), {"choices": QUALITY_CHOICES, "help": "Preferred resolution"}),
        (("--timeout",), {"type": float, "metavar": "SEC", "help": "Per-source timeout, clamped to 5-120s"}),
        (("--limit",), {"type": int, "default": DEFAULT_RESULT_LIMIT, "help": "Rows to print"}),
        (("-d", "--debug"), {"action": "store_true", "help": "Debug mode with API calls and the search report"}),
        (("--json",), {"metavar": "PATH", "help": "Write the search report as JSON"}),
        (("-c", "--config"), {"metavar": "PATH", "help": "Path to config.toml (file or directory)"}),
        (("--log-file",), {"metavar": "PATH", "help": "Also write log lines to this file"}),
    ):
        search_cmd.add_argument(*args, **kwargs)

    commands.add_parser("profiles", help="Show built-in query profiles and ranking presets")
    return parser


def main(argv: Optional[Sequence[str]] = None):
    """Entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)
    if args.command == "profiles":
        display_profiles()
        sys.exit(0)

    log = logger.ReelsiftLogger(
        log_file=Path(args.log_file).expanduser() if args.log_file else None,
        debug=args.debug,
    )
    logger.set_logger(log)
    try:
        config_path = resolve_config_path(args.config)
        config = load_config(config_path) if config_path else ReelsiftConfig()
        if config_path:
            _ui_info(f"Read configuration file \"{config_path}\"")
        query = build_query(args)
        ranking = resolve_ranking(args, config)
        orchestrator = resolve_orchestrator(args, config)
        asyncio.run(
            run_search(
                config,
                query,
                ranking,
                orchestrator,
                debug=args.debug,
                json_path=Path(args.json).expanduser() if args.json else None,
                limit=max(1, args.limit),
            )
        )
        sys.exit(0)
    except InvalidConfig as e:
        _ui_error(escape(str(e)))
        sys.exit(EXIT_INVALID_CONFIG)
    except KeyboardInterrupt:
        _ui_info("Cancelled.")
        sys.exit(0)
    except Exception as e:
        _ui_error(f"Fatal error: {escape(str(e))}")
        sys.exit(1)
    finally:
        log.close()


if __name__ == "__main__":
    main()
