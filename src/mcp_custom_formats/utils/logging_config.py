"""Logging configuration for the formatsmith MCP server.

Two streams:
- ``mcp_custom_formats.*``: application log, rotated file + stderr
- ``formatsmith.perf``: one line per timed remote call or tool invocation

Environment Variables:
    FORMATSMITH_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
    FORMATSMITH_LOG_FILE: Path to log file (default: ~/.formatsmith/formatsmith.log)
    FORMATSMITH_LOG_MAX_SIZE: Max log file size in MB (default: 10)
    FORMATSMITH_LOG_BACKUPS: Number of backup files to keep (default: 5)

Usage:
    from mcp_custom_formats.utils.logging_config import setup_logging, timed

    setup_logging()  # once, at startup

    @timed("list_custom_formats")
    async def list_custom_formats(self):
        ...

    async with timed_section("deploy_batch", instance_id="radarr-main", count=3):
        ...
"""
import functools
import logging
import os
import time
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Callable, Optional

# Separate from the package logger so timings can be filtered out
perf_logger = logging.getLogger("formatsmith.perf")

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
MAIN_FORMAT = "%(asctime)s.%(msecs)03d | %(name)-30s | %(levelname)-7s | %(message)s"
PERF_FORMAT = "%(asctime)s.%(msecs)03d | PERF | %(message)s"


def get_log_level() -> int:
    name = os.environ.get("FORMATSMITH_LOG_LEVEL", "INFO").upper()
    return getattr(logging, name, logging.INFO)


def get_log_file() -> Path:
    default = Path.home() / ".formatsmith" / "formatsmith.log"
    return Path(os.environ.get("FORMATSMITH_LOG_FILE", str(default)))


def _rotating_handler(path: Path, fmt: str) -> RotatingFileHandler:
    max_mb = int(os.environ.get("FORMATSMITH_LOG_MAX_SIZE", "10"))
    handler = RotatingFileHandler(
        path,
        maxBytes=max_mb * 1024 * 1024,
        backupCount=int(os.environ.get("FORMATSMITH_LOG_BACKUPS", "5")),
        encoding="utf-8",
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(fmt, datefmt=DATE_FORMAT))
    return handler


def setup_logging() -> None:
    """Attach handlers to the package and perf loggers.

    The file gets everything; stderr respects FORMATSMITH_LOG_LEVEL.
    stdout is left alone because MCP speaks over it.
    """
    log_level = get_log_level()
    log_file = get_log_file()
    log_file.parent.mkdir(parents=True, exist_ok=True)
    perf_file = log_file.parent / "formatsmith-perf.log"

    console = logging.StreamHandler()
    console.setLevel(log_level)
    console.setFormatter(logging.Formatter(MAIN_FORMAT, datefmt=DATE_FORMAT))

    package_logger = logging.getLogger("mcp_custom_formats")
    package_logger.setLevel(logging.DEBUG)
    package_logger.addHandler(console)
    package_logger.addHandler(_rotating_handler(log_file, MAIN_FORMAT))

    perf_logger.setLevel(logging.DEBUG)
    perf_logger.addHandler(_rotating_handler(perf_file, PERF_FORMAT))
    perf_logger.propagate = False

    package_logger.info(
        f"Logging initialized: level={logging.getLevelName(log_level)}, "
        f"file={log_file}, perf={perf_file}"
    )


def _report(
    operation: str,
    instance_id: Optional[str],
    started: float,
    error: Optional[BaseException] = None,
    **extra: Any,
) -> None:
    elapsed_ms = (time.perf_counter() - started) * 1000
    outcome = "OK" if error is None else f"FAIL: {error}"
    line = f"{operation:24s} | {instance_id or 'N/A':15s} | {elapsed_ms:8.2f}ms | {outcome}"
    if extra:
        line += " | " + " | ".join(f"{k}={v}" for k, v in extra.items())

    if error is None:
        perf_logger.info(line)
    else:
        perf_logger.warning(line)


def timed(operation: str, instance_id: Optional[str] = None) -> Callable:
    """Decorator timing an async method.

    The instance id defaults to ``self.instance_id`` of the decorated method.
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            inst_id = instance_id
            if inst_id is None and args:
                inst_id = getattr(args[0], "instance_id", None)

            started = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                _report(operation, inst_id, started, e)
                raise
            _report(operation, inst_id, started)
            return result

        return wrapper

    return decorator


@asynccontextmanager
async def timed_section(operation: str, instance_id: Optional[str] = None, **extra):
    """Time the body of an ``async with`` block."""
    started = time.perf_counter()
    try:
        yield
    except Exception as e:
        _report(operation, instance_id, started, e, **extra)
        raise
    _report(operation, instance_id, started, **extra)
