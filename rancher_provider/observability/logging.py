"""Logging configuration for the provider.

Modules log through loguru with bound context (``resource``, ``volume_id``,
``phase``, ...). Logging is disabled by default (library behaviour) and
enabled by setup_logging, typically by the host process right after loading
the plugin. The plugin's stdout belongs to the host runtime, so console
output goes to stderr.

Example:
    from rancher_provider.observability import LogConfig, setup_logging, teardown_logging

    handler_ids = setup_logging(LogConfig(level="DEBUG", file="rancher-provider.log"))
    ...
    teardown_logging(handler_ids)
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

from loguru import logger

type LogLevel = Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"]

_PACKAGE = "rancher_provider"

_CONTEXT_KEYS = (
    "component", "resource", "phase", "environment_id",
    "volume_id", "resource_id", "base_url",
)

# Rendered context lands in extra[ctx], e.g. " [resource=rancher_volume volume_id=1v12]"
LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}{extra[ctx]} - {message}"


def _with_context(record: Any) -> None:
    extra = record["extra"]
    bound = " ".join(f"{k}={extra[k]}" for k in _CONTEXT_KEYS if k in extra)
    extra["ctx"] = f" [{bound}]" if bound else ""


@dataclass(frozen=True, slots=True)
class LogConfig:
    """Logging configuration.

    Attributes:
        level: Minimum log level.
        file: Path to a log file. None disables file output.
        console: Whether to log to stderr.
    """

    level: LogLevel = "INFO"
    file: str | None = None
    console: bool = True


def setup_logging(config: LogConfig) -> list[int]:
    """Enable package logging and return handler IDs for cleanup."""
    logger.remove()
    logger.configure(patcher=_with_context)
    logger.enable(_PACKAGE)

    sinks: list[Any] = []
    if config.console:
        sinks.append(sys.stderr)
    if config.file:
        Path(config.file).parent.mkdir(parents=True, exist_ok=True)
        sinks.append(config.file)

    return [
        logger.add(sink, level=config.level, format=LOG_FORMAT, filter=_PACKAGE, diagnose=False)
        for sink in sinks
    ]


def teardown_logging(handler_ids: list[int]) -> None:
    """Remove handlers and disable package logging."""
    for hid in handler_ids:
        logger.remove(hid)
    logger.disable(_PACKAGE)
