"""
Command-line interface for the batch lookup system.

This module provides the main CLI entry point with commands for:
- lookup: Look up a batch of domains across the configured channels
- history: Show, export or clear the history of successful lookups
- cache: Clear or purge the result cache
- config: Configuration management
"""

import argparse
import asyncio
import dataclasses
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, TextIO

from . import __version__
from .audit_logger import AuditLogger
from .config import (
    DEFAULT_STATE_DIR,
    CacheConfig,
    HistoryConfig,
    LoggingConfig,
    LookupConfig,
    PersistenceConfig,
    RateLimitConfig,
    SystemConfig,
)
from .domain_set import DomainSet
from .enums import SourceMode
from .exceptions import ConfigError
from .exporter import to_csv, to_json
from .history_store import HistoryStore
from .models import DomainResult
from .orchestrator import QueryOrchestrator
from .result_cache import ResultCache
from .storage import FileBlobStore


DEFAULT_CONFIG_PATH = DEFAULT_STATE_DIR / "config.json"


def create_default_config(
    simulation_mode: bool = False,
    state_dir: Optional[Path] = None,
    hmac_secret: str = "default-secret-change-me",
) -> SystemConfig:
    """
    Create a default system configuration.

    Args:
        simulation_mode: Enable simulation mode (no real network requests)
        state_dir: Directory holding the cache and history files
        hmac_secret: Secret for HMAC protection

    Returns:
        SystemConfig with default settings
    """
    return SystemConfig(
        persistence=PersistenceConfig(
            state_dir=state_dir or DEFAULT_STATE_DIR,
            hmac_secret=hmac_secret,
        ),
        simulation_mode=simulation_mode,
    )


def load_config_from_file(config_path: Path) -> Optional[SystemConfig]:
    """
    Load configuration from a JSON file.

    Value ranges are not checked here; call SystemConfig.validate().

    Args:
        config_path: Path to the configuration file

    Returns:
        SystemConfig if successful, None otherwise
    """
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        defaults = RateLimitConfig()
        rate_limits_data = data.get("rate_limits", {})
        rate_limits = RateLimitConfig(
            default_interval_seconds=float(rate_limits_data.get(
                "default_interval_seconds", defaults.default_interval_seconds
            )),
            per_channel={
                str(channel): float(interval)
                for channel, interval in rate_limits_data.get("per_channel", defaults.per_channel).items()
            },
        )

        lookup_data = data.get("lookup", {})
        lookup = LookupConfig(
            rdap_timeout=float(lookup_data.get("rdap_timeout", 3.0)),
            whois_timeout=float(lookup_data.get("whois_timeout", 5.0)),
        )

        cache = CacheConfig(
            ttl_seconds=float(data.get("cache", {}).get("ttl_seconds", CacheConfig.ttl_seconds)),
        )
        history = HistoryConfig(
            max_entries=int(data.get("history", {}).get("max_entries", HistoryConfig.max_entries)),
        )

        persistence_data = data.get("persistence", {})
        state_dir = persistence_data.get("state_dir")
        persistence = PersistenceConfig(
            state_dir=Path(state_dir) if state_dir else DEFAULT_STATE_DIR,
            hmac_secret=persistence_data.get("hmac_secret", "default-secret-change-me"),
        )

        logging_data = data.get("logging", {})
        logging_config = LoggingConfig(
            level=logging_data.get("level", "info"),
            output_format=logging_data.get("output_format", "text"),
        )

        return SystemConfig(
            rate_limits=rate_limits,
            lookup=lookup,
            cache=cache,
            history=history,
            persistence=persistence,
            logging=logging_config,
            workers=int(data.get("workers", SystemConfig.workers)),
            source_mode=SourceMode(data.get("source_mode", SourceMode.AUTO.value)),
            simulation_mode=bool(data.get("simulation_mode", False)),
        )

    except FileNotFoundError:
        return None
    except (json.JSONDecodeError, AttributeError, KeyError, TypeError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return None


def save_config_to_file(config: SystemConfig, config_path: Path) -> bool:
    """
    Save configuration to a JSON file.

    Args:
        config: SystemConfig to save
        config_path: Path to save the configuration

    Returns:
        True if successful, False otherwise
    """
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "rate_limits": {
                "default_interval_seconds": config.rate_limits.default_interval_seconds,
                "per_channel": dict(config.rate_limits.per_channel),
            },
            "lookup": {
                "rdap_timeout": config.lookup.rdap_timeout,
                "whois_timeout": config.lookup.whois_timeout,
            },
            "cache": {
                "ttl_seconds": config.cache.ttl_seconds,
            },
            "history": {
                "max_entries": config.history.max_entries,
            },
            "persistence": {
                "state_dir": str(config.persistence.state_dir),
                "hmac_secret": config.persistence.hmac_secret,
            },
            "logging": {
                "level": config.logging.level,
                "output_format": config.logging.output_format,
            },
            "workers": config.workers,
            "source_mode": config.source_mode.value,
            "simulation_mode": config.simulation_mode,
        }

        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

        return True

    except (OSError, TypeError) as e:
        print(f"Error saving config: {e}", file=sys.stderr)
        return False


def resolve_config(args: argparse.Namespace) -> Optional[SystemConfig]:
    """Load the config named on the command line (or defaults) and apply overrides."""
    config = None
    if getattr(args, "config", None):
        config = load_config_from_file(Path(args.config))
        if config is None:
            print(f"Error: Could not load config from {args.config}", file=sys.stderr)
            return None

    if config is None:
        config = create_default_config()

    overrides = {}
    if getattr(args, "dry_run", False):
        overrides["simulation_mode"] = True
    if getattr(args, "workers", None) is not None:
        overrides["workers"] = args.workers
    if getattr(args, "source", None):
        overrides["source_mode"] = SourceMode(args.source)
    if overrides:
        config = dataclasses.replace(config, **overrides)
    if getattr(args, "state_dir", None):
        config = dataclasses.replace(
            config,
            persistence=dataclasses.replace(config.persistence, state_dir=Path(args.state_dir)),
        )
    return config


def create_logger(config: SystemConfig, verbose: bool) -> Optional[AuditLogger]:
    if not verbose:
        return None
    return AuditLogger.from_config(config.logging.level, config.logging.output_format)


def format_result_line(result: DomainResult) -> str:
    """One-line summary of a finished result."""
    best = result.best
    if best is None:
        return f"  ✗ {result.domain}: {result.error}"
    parts = [f"  ✓ {result.domain} [{best.source}]"]
    if best.registrar:
        parts.append(f"registrar={best.registrar}")
    if best.expires_date:
        parts.append(f"expires={best.expires_date}")
    parts.append(f"{result.latency_ms or 0}ms")
    return " ".join(parts)


def render_export(results, output_format: str) -> str:
    if output_format == "json":
        return to_json(results)
    return to_csv(results)


def write_export(text: str, output_file: Optional[Path], stream: Optional[TextIO] = None) -> bool:
    """Write export text to a file, or to the stream (stdout by default) when no file is given."""
    if stream is None:
        stream = sys.stdout
    if output_file is None:
        stream.write(text)
        if not text.endswith("\n"):
            stream.write("\n")
        return True
    try:
        output_file.parent.mkdir(parents=True, exist_ok=True)
        with open(output_file, "w", encoding="utf-8", newline="") as f:
            f.write(text)
        print(f"Results written to: {output_file}")
        return True
    except OSError as e:
        print(f"Error writing results: {e}", file=sys.stderr)
        return False


def infer_format(output_format: Optional[str], output_file: Optional[Path]) -> str:
    if output_format:
        return output_format
    if output_file is not None and output_file.suffix.lower() == ".json":
        return "json"
    return "csv"


def read_input_text(domains: list[str], file: Optional[str]) -> Optional[str]:
    """Join positional domains and file contents into one input text."""
    chunks = list(domains)
    if file:
        try:
            if file == "-":
                chunks.append(sys.stdin.read())
            else:
                with open(file, "r", encoding="utf-8") as f:
                    chunks.append(f.read())
        except FileNotFoundError:
            print(f"Error: File not found: {file}", file=sys.stderr)
            return None
        except OSError as e:
            print(f"Error reading file: {e}", file=sys.stderr)
            return None
    return "\n".join(chunks)


async def lookup_domains(
    domains: DomainSet,
    config: SystemConfig,
    output_format: Optional[str] = None,
    output_file: Optional[Path] = None,
    verbose: bool = False,
) -> int:
    """
    Look up a batch of domains and report the results.

    Args:
        domains: Normalized domains to look up
        config: System configuration
        output_format: 'csv' or 'json'; None prints no export unless a file is given
        output_file: Optional path to write the export to
        verbose: Enable verbose output

    Returns:
        Exit code (0 if any domain succeeded, 1 otherwise)
    """
    if config.simulation_mode:
        print("Simulation mode enabled - no network requests are made")

    print(f"Looking up {len(domains)} domain(s) via {config.source_mode.value}...")

    def _print_finished(result: DomainResult) -> None:
        if result.is_finished:
            print(format_result_line(result))

    logger = create_logger(config, verbose)
    async with QueryOrchestrator(
        config=config,
        logger=logger,
        on_update=_print_finished,
    ) as orchestrator:
        orchestrator.load_stores()
        stats = await orchestrator.run_batch(domains)
        results = orchestrator.results()

    print(
        f"\nSummary: {stats.success}/{stats.total} succeeded, "
        f"{stats.failed} failed, avg {stats.avg_latency_ms}ms"
    )

    if output_format or output_file:
        text = render_export(results, infer_format(output_format, output_file))
        if not write_export(text, output_file):
            return 1

    return 0 if stats.success > 0 else 1


def cmd_lookup(args: argparse.Namespace) -> int:
    """Handle the 'lookup' command."""
    config = resolve_config(args)
    if config is None:
        return 1

    text = read_input_text(args.domains, args.file)
    if text is None:
        return 1

    domains = DomainSet.parse(text)
    if not domains:
        print("Error: No valid domains in input", file=sys.stderr)
        return 1

    output_file = Path(args.output) if args.output else None
    try:
        return asyncio.run(lookup_domains(
            domains=domains,
            config=config,
            output_format=args.format,
            output_file=output_file,
            verbose=args.verbose,
        ))
    except ConfigError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1


def open_history(config: SystemConfig, logger: Optional[AuditLogger] = None) -> HistoryStore:
    history = HistoryStore(
        FileBlobStore(config.persistence.state_dir),
        config.persistence.hmac_secret,
        max_entries=config.history.max_entries,
        logger=logger,
    )
    history.load()
    return history


def open_cache(config: SystemConfig, logger: Optional[AuditLogger] = None) -> ResultCache:
    cache = ResultCache(
        FileBlobStore(config.persistence.state_dir),
        config.persistence.hmac_secret,
        ttl_seconds=config.cache.ttl_seconds,
        logger=logger,
    )
    cache.load()
    return cache


def cmd_history(args: argparse.Namespace) -> int:
    """Handle the 'history' command."""
    config = resolve_config(args)
    if config is None:
        return 1
    history = open_history(config)
    entries = history.entries
    if args.domains:
        wanted = {domain.strip().lower().rstrip(".") for domain in args.domains}
        entries = [entry for entry in entries if entry.domain in wanted]

    if args.action == "show":
        if not entries:
            print("No matching history entries." if args.domains else "History is empty.")
            return 0
        for entry in reversed(entries):
            finished = ""
            if entry.finished_at is not None:
                finished = datetime.fromtimestamp(entry.finished_at / 1000).strftime("%Y-%m-%d %H:%M:%S")
            best = entry.best
            print(f"{finished}  {entry.domain}  [{best.source}]  {best.registrar or '-'}  {best.expires_date or '-'}")
        print(f"\n{len(entries)} entr{'y' if len(entries) == 1 else 'ies'}")
        return 0

    elif args.action == "export":
        output_file = Path(args.output) if args.output else None
        text = render_export(entries, infer_format(args.format, output_file))
        return 0 if write_export(text, output_file) else 1

    elif args.action == "clear":
        history.clear()
        print("History cleared.")
        return 0

    return 1


def cmd_cache(args: argparse.Namespace) -> int:
    """Handle the 'cache' command."""
    config = resolve_config(args)
    if config is None:
        return 1
    cache = open_cache(config)

    if args.action == "clear":
        count = len(cache)
        cache.clear()
        print(f"Cache cleared ({count} entries removed).")
        return 0

    elif args.action == "purge":
        removed = cache.purge_expired()
        print(f"Purged {removed} expired entr{'y' if removed == 1 else 'ies'}, {len(cache)} remaining.")
        return 0

    return 1


def cmd_config(args: argparse.Namespace) -> int:
    """Handle the 'config' command."""
    config_path = Path(args.path) if args.path else DEFAULT_CONFIG_PATH

    if args.action == "show":
        config = load_config_from_file(config_path)
        if config is None:
            print(f"No configuration found at: {config_path}")
            print("Use 'config init' to create a default configuration.")
            return 1

        print(f"Configuration from: {config_path}")
        print(f"  Source mode: {config.source_mode.value}")
        print(f"  Workers: {config.workers}")
        print(f"  Simulation mode: {config.simulation_mode}")
        print(f"  Default interval: {config.rate_limits.default_interval_seconds}s")
        for channel, interval in sorted(config.rate_limits.per_channel.items()):
            print(f"    {channel}: {interval}s")
        print(f"  Cache TTL: {config.cache.ttl_seconds}s")
        print(f"  History size: {config.history.max_entries}")
        print(f"  State directory: {config.persistence.state_dir}")
        print(f"  Log level: {config.logging.level}")
        return 0

    elif args.action == "init":
        if config_path.exists() and not args.force:
            print(f"Configuration already exists at: {config_path}")
            print("Use --force to overwrite.")
            return 1

        config = create_default_config()
        if save_config_to_file(config, config_path):
            print(f"Configuration created at: {config_path}")
            return 0
        return 1

    elif args.action == "validate":
        config = load_config_from_file(config_path)
        if config is None:
            print(f"Error: Could not load config from {config_path}", file=sys.stderr)
            return 1
        try:
            config.validate()
        except ConfigError as e:
            print(f"Error: {e.message}", file=sys.stderr)
            return 1

        print(f"Configuration at {config_path} is valid.")
        return 0

    return 1


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config", "-c",
        help="Path to configuration file",
    )
    parser.add_argument(
        "--state-dir",
        help="Directory for cache and history files",
    )


def _add_export_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--format",
        choices=["csv", "json"],
        help="Export format (default: from --output suffix, else csv)",
    )
    parser.add_argument(
        "--output", "-o",
        help="Path to write the export to",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="whois-batch",
        description="Concurrent multi-source WHOIS/RDAP batch lookup",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # 'lookup' command
    lookup_parser = subparsers.add_parser(
        "lookup",
        help="Look up a batch of domains",
    )
    lookup_parser.add_argument(
        "domains",
        nargs="*",
        help="Domains to look up (separated by spaces, commas or semicolons)",
    )
    lookup_parser.add_argument(
        "--file", "-f",
        help="Read additional domains from a file ('-' for stdin)",
    )
    lookup_parser.add_argument(
        "--source", "-s",
        choices=[mode.value for mode in SourceMode],
        help="Source mode (default: from config, else auto)",
    )
    lookup_parser.add_argument(
        "--workers", "-w",
        type=int,
        help="Number of concurrent workers",
    )
    _add_export_arguments(lookup_parser)
    lookup_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Simulation mode - no real network requests",
    )
    _add_common_arguments(lookup_parser)
    lookup_parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output",
    )
    lookup_parser.set_defaults(func=cmd_lookup)

    # 'history' command
    history_parser = subparsers.add_parser(
        "history",
        help="Show, export or clear the lookup history",
    )
    history_parser.add_argument(
        "action",
        choices=["show", "export", "clear"],
        help="History action",
    )
    history_parser.add_argument(
        "domains",
        nargs="*",
        help="Only show or export these domains",
    )
    _add_export_arguments(history_parser)
    _add_common_arguments(history_parser)
    history_parser.set_defaults(func=cmd_history)

    # 'cache' command
    cache_parser = subparsers.add_parser(
        "cache",
        help="Result cache management",
    )
    cache_parser.add_argument(
        "action",
        choices=["clear", "purge"],
        help="Cache action",
    )
    _add_common_arguments(cache_parser)
    cache_parser.set_defaults(func=cmd_cache)

    # 'config' command
    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
    )
    config_parser.add_argument(
        "action",
        choices=["show", "init", "validate"],
        help="Configuration action",
    )
    config_parser.add_argument(
        "--path", "-p",
        help="Path to configuration file",
    )
    config_parser.add_argument(
        "--force",
        action="store_true",
        help="Force overwrite existing configuration",
    )
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
