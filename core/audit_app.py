"""
======================================================================
 Discord Audit Bridge — Version v0.1.0 (Build 2026.10)
======================================================================
"""

"""
Audit runtime entrypoint.

This module launches the Discord audit bridge as an independent process.
It owns:

- configuration loading (.env, environment, command line)
- event loop creation
- signal wiring
- the process exit code

Exit codes:
- 0: requested shutdown or clean session end
- 1: fatal gateway connection error
- 2: invalid configuration
"""

import argparse
import asyncio
import signal
import sys
from typing import List, Optional

from runtime.version import as_string
from shared.config.audit import AuditConfig, load_audit_config
from shared.errors import ConfigError
from shared.logging.logger import get_logger, set_level
from services.audit.runtime.supervisor import AuditSupervisor

log = get_logger("core.audit_app")

EXIT_CONFIG_ERROR = 2


# ----------------------------------------------------------------------
# COMMAND LINE
# ----------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="discord-audit",
        description="Forward Discord message lifecycle events to Graylog.",
    )
    parser.add_argument(
        "--discord-token",
        help="bot or personal discord token (env: DISCORD_TOKEN)",
    )
    parser.add_argument(
        "--bot",
        dest="is_bot",
        action="store_true",
        default=None,
        help="the token is a bot token (env: DISCORD_IS_BOT)",
    )
    parser.add_argument(
        "--graylog-address",
        help="udp gelf endpoint as host:port (env: GRAYLOG_ADDRESS)",
    )
    parser.add_argument(
        "--cache-size",
        type=int,
        help="number of message snapshots kept for deletions (env: AUDIT_CACHE_SIZE)",
    )
    parser.add_argument(
        "--log-level",
        help="milestone log level (env: AUDIT_LOG_LEVEL)",
    )
    parser.add_argument(
        "--no-stdout",
        dest="stdout_enabled",
        action="store_false",
        default=None,
        help="do not write audit records to stdout (env: AUDIT_STDOUT)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=as_string(),
    )
    return parser


def apply_overrides(config: AuditConfig, args: argparse.Namespace) -> AuditConfig:
    """
    Command-line values win over environment values when given.
    """
    if args.discord_token:
        config.discord_token = args.discord_token
    if args.is_bot is not None:
        config.is_bot = args.is_bot
    if args.graylog_address:
        config.graylog_address = args.graylog_address
    if args.cache_size is not None:
        if args.cache_size < 0:
            raise ConfigError("--cache-size must not be negative")
        config.cache_size = args.cache_size
    if args.log_level:
        config.log_level = args.log_level.upper()
    if args.stdout_enabled is not None:
        config.stdout_enabled = args.stdout_enabled
    return config


def load_config(argv: Optional[List[str]] = None) -> AuditConfig:
    args = build_parser().parse_args(argv)
    config = apply_overrides(load_audit_config(), args)
    return config.validate()


# ----------------------------------------------------------------------
# MAIN ASYNC ENTRYPOINT
# ----------------------------------------------------------------------

async def main(stop_event: asyncio.Event, config: AuditConfig) -> int:
    log.info(f"{as_string()} booting")

    supervisor = AuditSupervisor(config)
    code = await supervisor.run(stop_event)

    log.info("Audit runtime stopped")
    return code


# ----------------------------------------------------------------------
# SIGNAL HANDLING (WINDOWS-SAFE)
# ----------------------------------------------------------------------

def _install_signal_handlers(
    loop: asyncio.AbstractEventLoop,
    stop_event: asyncio.Event,
):
    """
    Windows-safe Ctrl+C handler.
    Uses signal.signal + asyncio.Event to unwind cleanly.
    """

    def _handler(signum, frame):
        try:
            loop.call_soon_threadsafe(stop_event.set)
        except RuntimeError:
            # loop already closed
            stop_event.set()

    signal.signal(signal.SIGINT, _handler)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, _handler)


# ----------------------------------------------------------------------
# ENTRYPOINT
# ----------------------------------------------------------------------

def run(argv: Optional[List[str]] = None) -> int:
    try:
        config = load_config(argv)
    except ConfigError as e:
        log.error(f"Invalid configuration: {e}")
        return EXIT_CONFIG_ERROR
    except KeyboardInterrupt:
        # Graylog address resolution runs before signal handlers exist
        log.info("KeyboardInterrupt during startup; exiting")
        return 0

    try:
        set_level(config.log_level)
    except ValueError as e:
        log.warning(f"{e}; keeping default log level")

    stop_event = asyncio.Event()

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    _install_signal_handlers(loop, stop_event)

    code = 0
    try:
        code = loop.run_until_complete(main(stop_event, config))

    except KeyboardInterrupt:
        log.info("KeyboardInterrupt received; shutting down")

    finally:
        # --------------------------------------------------
        # CANCEL REMAINING TASKS (CLEANLY)
        # --------------------------------------------------
        pending = [t for t in asyncio.all_tasks(loop) if not t.done()]
        for task in pending:
            task.cancel()

        if pending:
            loop.run_until_complete(
                asyncio.gather(*pending, return_exceptions=True)
            )

        # --------------------------------------------------
        # FINAL LOOP CLEANUP
        # --------------------------------------------------
        loop.run_until_complete(loop.shutdown_asyncgens())

        asyncio.set_event_loop(None)
        loop.close()

    return code


if __name__ == "__main__":
    sys.exit(run())
