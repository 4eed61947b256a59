"""Console and structured logging.

This module provides:
1. Icon vocabulary (Icon class namespace)
2. Level-based styling
3. Core log functions (log, info, warn, error)
4. Domain helpers used by the CLI (connection_failed, command_failed, batch_summary, ...)
5. Structlog configuration (configure)

Console output uses Rich markup for colors and goes to stderr, so stdout
stays clean for command results. The protocol engine logs structured
events through structlog; those go to stderr in verbose mode and to a
JSON Lines file when enabled.
"""

from __future__ import annotations

import logging
import logging.handlers
from datetime import datetime
from typing import TYPE_CHECKING

import structlog
from rich.console import Console
from rich.markup import escape

if TYPE_CHECKING:
    from rrdcached_client.config import Config

_console = Console(highlight=False, stderr=True)


# ─────────────────────────────────────────────────────────────────────────────
# Icons
# ─────────────────────────────────────────────────────────────────────────────


class Icon:
    """Icon vocabulary for console output."""

    OK = "[bold green]✓[/]"
    FAIL = "[bold red]✗[/]"
    DISCONNECTED = "[red]⬤[/]"


# ─────────────────────────────────────────────────────────────────────────────
# Level Styles
# ─────────────────────────────────────────────────────────────────────────────

_LEVEL_STYLES = {
    "info": "[bright_blue]\\[info][/]",
    "warn": "[yellow]\\[warn][/]",
    "error": "[bold red]\\[err][/] ",
}


# ─────────────────────────────────────────────────────────────────────────────
# Core Functions
# ─────────────────────────────────────────────────────────────────────────────


def log(level: str, msg: str, icon: str = "") -> None:
    """Print a log message with timestamp and level.

    Args:
        level: Log level (info, warn, error)
        msg: Message to print (can include Rich markup)
        icon: Optional icon to show after level (e.g., Icon.OK)
    """
    ts = datetime.now().strftime("%H:%M:%S")
    lvl = _LEVEL_STYLES.get(level, f"[{level}]")
    icon_part = f" {icon}" if icon else ""
    _console.print(f"[dim]{ts}[/] {lvl}{icon_part} {msg}")


def info(msg: str, icon: str = "") -> None:
    """Log an info message."""
    log("info", msg, icon)


def warn(msg: str, icon: str = "") -> None:
    """Log a warning message."""
    log("warn", msg, icon)


def error(msg: str, icon: str = "") -> None:
    """Log an error message."""
    log("error", msg, icon)


# ─────────────────────────────────────────────────────────────────────────────
# Domain Helpers
# ─────────────────────────────────────────────────────────────────────────────


def connection_failed(path: str, error_msg: str) -> None:
    """Log daemon unreachable."""
    error(
        f"Cannot reach rrdcached at [cyan]{escape(path)}[/]: {escape(error_msg)}",
        Icon.DISCONNECTED,
    )


def command_failed(error_msg: str) -> None:
    """Log a command rejected by the daemon."""
    error(escape(error_msg), Icon.FAIL)


def protocol_violation(buffer: str) -> None:
    """Log garbage received from the daemon."""
    shown = buffer[:200] + ".." if len(buffer) > 200 else buffer
    error(f"Protocol violation [dim]got {escape(repr(shown))}[/]", Icon.FAIL)


def batch_summary(total: int, errors: dict[int, str]) -> None:
    """Log the outcome of a BATCH run."""
    if not errors:
        info(f"Batch of [cyan]{total}[/] commands succeeded", Icon.OK)
        return
    warn(f"Batch of [cyan]{total}[/] commands: [red]{len(errors)}[/] failed")
    for index, message in sorted(errors.items()):
        warn(f"  #{index}: {escape(message)}")


def config_created(path: str) -> None:
    """Log config file created."""
    info(f"Created config at [cyan]{escape(path)}[/]")


# ─────────────────────────────────────────────────────────────────────────────
# Structlog Configuration
# ─────────────────────────────────────────────────────────────────────────────


def _add_source(source: str) -> structlog.types.Processor:
    """Create a processor that adds a source field to log events."""

    def processor(
        logger: structlog.types.WrappedLogger,
        method_name: str,
        event_dict: structlog.types.EventDict,
    ) -> structlog.types.EventDict:
        event_dict["source"] = source
        return event_dict

    return processor


def configure(config: Config, verbose: bool = False) -> None:
    """Configure structlog and stdlib logging.

    Verbose mode renders engine events on stderr at debug level. With
    ``logging.json_file`` enabled, events are also written as JSON Lines
    to a rotating file.

    Args:
        config: Application config with paths and logging settings
        verbose: Show engine events on the console
    """
    level = logging.DEBUG if verbose else getattr(logging, config.logging.level.upper())

    stdlib_root = logging.getLogger()
    stdlib_root.setLevel(level)

    # Clear any existing handlers
    stdlib_root.handlers.clear()

    shared_chain = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        _add_source("rrdcached-client"),
        structlog.processors.format_exc_info,
    ]

    if config.logging.json_file:
        # Ensure state directory exists for log file
        config.state_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            config.log_path,
            maxBytes=config.logging.log_max_bytes,
            backupCount=config.logging.log_backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=structlog.processors.JSONRenderer(),
                foreign_pre_chain=[
                    structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
                    *shared_chain,
                ],
            )
        )
        stdlib_root.addHandler(file_handler)

    if verbose:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=structlog.dev.ConsoleRenderer(colors=False),
                foreign_pre_chain=shared_chain,
            )
        )
        stdlib_root.addHandler(console_handler)

    if not stdlib_root.handlers:
        stdlib_root.addHandler(logging.NullHandler())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="%H:%M:%S", utc=False),
            structlog.processors.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

