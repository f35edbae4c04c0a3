"""
Contest Entry Engine
Command-line entry point.

Usage:
    contest-entry --profile profile.json --contest contest.json
    contest-entry --profile profile.json --contest a.json b.json --config config.json --debug
    contest-entry --stats
"""

import argparse
import asyncio
import json
import sys
import tempfile
from pathlib import Path
from typing import List, Optional

from loguru import logger
from pydantic import ValidationError

from contest_entry import __version__
from contest_entry.browser import PlaywrightBrowserProvider
from contest_entry.captcha import TwoCaptchaSolver
from contest_entry.config import EngineConfig, EntryOptions
from contest_entry.database import EntryStore
from contest_entry.models import Contest, EntryStatus, Profile
from contest_entry.orchestrator import EntryOrchestrator
from contest_entry.recorder import EntryRecorder
from contest_entry.utils.helpers import get_app_data_directory
from contest_entry.utils.simple_logger import slog


def setup_logging(debug: bool = False, log_dir: Optional[Path] = None):
    """Configure logging with loguru."""
    log_dir = log_dir or get_app_data_directory() / "logs"
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        log_dir = Path(tempfile.gettempdir()) / "contest-entry" / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)
        print(f"Warning: Could not create log directory, using {log_dir}: {e}")

    # Remove default handler
    logger.remove()

    def stdout_sink(message):
        try:
            sys.stdout.write(message)
            sys.stdout.flush()
        except UnicodeEncodeError:
            encoding = sys.stdout.encoding or 'utf-8'
            sys.stdout.write(message.encode(encoding, errors='replace').decode(encoding, errors='replace'))
            sys.stdout.flush()

    logger.add(
        stdout_sink,
        format="{time:HH:mm:ss} | {level: <8} | {message}",
        level="DEBUG" if debug else "INFO",
        colorize=False,
    )

    # File handler
    logger.add(
        log_dir / "entries_{time:YYYY-MM-DD}.log",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        level="DEBUG",
        rotation="1 day",
        retention="7 days",
        compression="gz",
    )

    logger.info(f"🚀 Contest Entry Engine v{__version__}")


def parse_args(argv: Optional[List[str]] = None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Contest Entry Engine - automated contest entries"
    )
    parser.add_argument("--profile", type=str, help="Path to profile JSON")
    parser.add_argument("--contest", type=str, nargs="+", default=[],
                        help="Path(s) to contest JSON (an object or a list of objects)")
    parser.add_argument("--config", type=str, help="Path to JSON config file")
    parser.add_argument("--timeout-ms", type=int, help="Per-attempt deadline in milliseconds")
    parser.add_argument("--proxy-id", type=str, help="Proxy id from the config's proxies map")
    parser.add_argument("--no-screenshots", action="store_true", help="Do not capture screenshots")
    parser.add_argument("--no-newsletter", action="store_true",
                        help="Leave newsletter opt-in checkboxes unchecked")
    parser.add_argument("--share-data", action="store_true",
                        help="Check data-sharing consent checkboxes")
    parser.add_argument("--headless", action="store_true", help="Run browser in headless mode")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--stats", action="store_true", help="Print entry statistics and exit")
    return parser.parse_args(argv)


def load_config(args) -> Optional[EngineConfig]:
    """Load configuration from file, letting command line flags override it."""
    config_data = {}
    if args.config:
        config_path = Path(args.config)
        if not config_path.exists():
            logger.error(f"Config file not found: {config_path}")
            return None
        with open(config_path) as f:
            config_data = json.load(f)
        slog.detail(f"Loaded config from: {config_path}")

    settings = config_data.setdefault("settings", {})
    if args.debug:
        settings["debug"] = True
    if args.headless:
        settings["headless"] = True

    try:
        return EngineConfig(**config_data)
    except ValidationError as e:
        logger.error(f"Invalid configuration: {e}")
        return None


def load_contests(paths: List[str]) -> List[Contest]:
    contests = []
    for path in paths:
        with open(path) as f:
            data = json.load(f)
        items = data if isinstance(data, list) else [data]
        contests.extend(Contest(**item) for item in items)
    return contests


def build_options(args) -> EntryOptions:
    return EntryOptions(
        timeout_ms=args.timeout_ms,
        take_screenshots=not args.no_screenshots,
        check_newsletter_for_bonus=not args.no_newsletter,
        share_data_with_partners=args.share_data,
        proxy_id=args.proxy_id,
    )


async def run(args) -> int:
    """Run the requested attempts; returns the process exit code."""
    config = load_config(args)
    if not config:
        logger.error("Failed to load configuration. Exiting.")
        return 1

    settings = config.settings
    slog.set_detailed(settings.detailed_logs or settings.debug)

    recorder = EntryRecorder(EntryStore(settings.resolved_database_url()))

    if args.stats:
        print(json.dumps(await recorder.get_entry_stats(), indent=2))
        return 0

    if not args.profile or not args.contest:
        logger.error("--profile and --contest are required")
        return 2

    try:
        with open(args.profile) as f:
            profile = Profile(**json.load(f))
        contests = load_contests(args.contest)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        logger.error(f"Could not load input: {e}")
        return 1

    solver = TwoCaptchaSolver(config.api_keys.captcha) if config.api_keys.captcha else None
    if not solver:
        slog.detail("No CAPTCHA key configured, CAPTCHAs will not be solved")

    provider = PlaywrightBrowserProvider(
        headless=settings.headless,
        proxies=config.proxies,
        page_timeout_ms=settings.page_load_timeout_ms,
    )
    orchestrator = EntryOrchestrator(provider, recorder, settings=settings, captcha_solver=solver)

    try:
        results = await orchestrator.enter_many(contests, profile, build_options(args))
    finally:
        slog.detail("🧹 Cleaning up resources...")
        await provider.close()

    for result in results:
        print(json.dumps(result.to_dict(), indent=2))

    return 1 if any(r.status == EntryStatus.FAILED for r in results) else 0


def main(argv: Optional[List[str]] = None):
    """Console script entry point."""
    args = parse_args(argv)
    setup_logging(debug=args.debug)
    try:
        code = asyncio.run(run(args))
    except KeyboardInterrupt:
        slog.detail_warning("⏹ Stopped by user (Ctrl+C)")
        code = 130
    sys.exit(code)


if __name__ == "__main__":
    main()
