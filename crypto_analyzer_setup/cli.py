#!/usr/bin/env python3
"""
Crypto Analyzer Setup

Provisions a Ubuntu/Debian VPS to host the Crypto Trading Setup Analyzer:
system packages, Docker, Docker Compose, Node.js, the application directory
with its scripts, a systemd unit, log rotation, firewall rules and cron jobs.
Run `install` with root privileges (e.g. `sudo crypto-analyzer-setup install`).
"""

import asyncio
import logging
import signal
import sys
import tempfile
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

import click
from rich.markup import escape
from rich.traceback import install as install_rich_traceback

from crypto_analyzer_setup import APP_NAME, VERSION
from crypto_analyzer_setup.artifacts import (
    ensure_directories,
    write_app_artifacts,
    write_system_artifacts,
)
from crypto_analyzer_setup.config import Config, default_username
from crypto_analyzer_setup.cron import register_cron_entries
from crypto_analyzer_setup.log import setup_logger
from crypto_analyzer_setup.provisioner import AnalyzerSetup, SetupError
from crypto_analyzer_setup.ui import (
    console,
    print_error,
    print_success,
    print_warning,
)

install_rich_traceback(show_locals=False)

DEFAULT_LOG_FILE = Config.LOG_FILE

user_option = click.option(
    "--user",
    "username",
    envvar="CRYPTO_ANALYZER_USER",
    default=default_username,
    show_default="invoking user",
    help="Account that owns the install directory and the cron jobs",
)
log_file_option = click.option(
    "--log-file",
    default=DEFAULT_LOG_FILE,
    show_default=True,
    type=click.Path(dir_okay=False),
    help="Debug log destination",
)
verbose_option = click.option("--verbose", "-v", is_flag=True, help="Show debug output")


def init_logging(log_file: str, verbose: bool) -> logging.Logger:
    """Open the log file, falling back to the temp dir when it is not writable."""
    try:
        return setup_logger(log_file, verbose)
    except PermissionError:
        fallback = Path(tempfile.gettempdir()) / Path(log_file).name
        logger = setup_logger(fallback, verbose)
        logger.warning(f"Cannot write {log_file}; logging to {fallback} instead.")
        return logger


# ----------------------------------------------------------------
# Signal Handling and Event Loop
# ----------------------------------------------------------------
def exit_code_for(signum: int) -> int:
    if signum == signal.SIGINT:
        return 130
    if signum == signal.SIGTERM:
        return 143
    return 128 + signum


def run_async(
    factory: Callable[[], Awaitable[Any]],
    cleanup: Optional[Callable[[], Awaitable[None]]] = None,
) -> Any:
    """
    Run a coroutine on a fresh event loop.

    SIGINT, SIGTERM and SIGHUP cancel the coroutine; cleanup still runs and
    the process exits with 128 + signal number.
    """
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    main_task = loop.create_task(factory())
    received = []

    def on_signal(signum: int) -> None:
        received.append(signum)
        main_task.cancel()

    for sig in (signal.SIGINT, signal.SIGTERM, signal.SIGHUP):
        loop.add_signal_handler(sig, on_signal, sig)

    try:
        return loop.run_until_complete(main_task)
    except (asyncio.CancelledError, KeyboardInterrupt):
        signum = received[0] if received else signal.SIGINT
        print_warning(f"Interrupted by {signal.Signals(signum).name}, shutting down...")
        sys.exit(exit_code_for(signum))
    finally:
        if cleanup is not None:
            loop.run_until_complete(cleanup())
        for sig in (signal.SIGINT, signal.SIGTERM, signal.SIGHUP):
            loop.remove_signal_handler(sig)
        loop.close()
        asyncio.set_event_loop(None)


# ----------------------------------------------------------------
# Commands
# ----------------------------------------------------------------
@click.group(help=__doc__)
@click.version_option(VERSION, prog_name=APP_NAME)
def main() -> None:
    pass


@main.command()
@user_option
@log_file_option
@verbose_option
@click.option("--dry-run", is_flag=True, help="Log every action without changing the system")
def install(username: str, log_file: str, verbose: bool, dry_run: bool) -> None:
    """Provision this server. Stops at the first failing step."""
    if dry_run and log_file == DEFAULT_LOG_FILE:
        log_file = str(Path(tempfile.gettempdir()) / Path(log_file).name)
    logger = init_logging(log_file, verbose)
    config = Config(USERNAME=username, LOG_FILE=log_file, DRY_RUN=dry_run)
    setup = AnalyzerSetup(config)

    try:
        run_async(setup.run_all, setup.cleanup_async)
    except SetupError as e:
        logger.debug("Setup aborted", exc_info=e.cause)
        print_error(escape(str(e)))
        sys.exit(1)


@main.command()
@click.option(
    "--output",
    "-o",
    required=True,
    type=click.Path(file_okay=False),
    help="Directory that stands in for / when writing files",
)
@log_file_option
@verbose_option
def render(output: str, log_file: str, verbose: bool) -> None:
    """Write the application tree, unit file and logrotate rule under OUTPUT only."""
    logger = init_logging(log_file, verbose)
    config = Config(DESTDIR=output)

    ensure_directories(config)
    written = write_app_artifacts(config) + write_system_artifacts(config)
    for path in written:
        logger.info(f"Wrote {path}")
    print_success(f"{len(written)} files written under {output}")


@main.command()
@user_option
@log_file_option
@verbose_option
@click.option("--dry-run", is_flag=True, help="Only print the entries")
def cron(username: str, log_file: str, verbose: bool, dry_run: bool) -> None:
    """Register the backup and monitor cron jobs. Safe to re-run."""
    init_logging(log_file, verbose)
    config = Config(USERNAME=username)

    if dry_run:
        for entry in config.cron_entries:
            console.print(entry, markup=False, highlight=False)
        return

    added = run_async(lambda: register_cron_entries(username, config.cron_entries))
    if added:
        print_success(f"Added {len(added)} cron entries for {username}")
    else:
        print_success(f"Cron entries for {username} are up to date")


if __name__ == "__main__":
    main()
