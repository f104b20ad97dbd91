"""Loguru sinks for the identity core.

The core itself only logs through ``loguru.logger``; it never installs
sinks. The embedding application (the mobile backend or an admin CLI)
calls ``configure_logging()`` once at startup, after ``set_config()``,
so that every line carries the ``subject`` the services bind and stdlib
loggers from ``httpx`` and ``redis`` end up in the same sinks.
"""

import logging
import sys
from pathlib import Path

from loguru import logger

from src.fleet_auth.runtime.config.config_data import LoggingConfig
from src.fleet_auth.runtime.context import get_config

LINE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "[<cyan>{extra[subject]}</cyan>] | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

# Chatty at INFO; only their problems are worth keeping
QUIET_LOGGERS = ("httpx", "httpcore", "redis")


class InterceptHandler(logging.Handler):
    """Forward stdlib ``logging`` records into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        logger.opt(depth=2, exception=record.exc_info).bind(
            logger_name=record.name
        ).log(level, record.getMessage())


def _add_file_sink(cfg: LoggingConfig, diagnose: bool) -> None:
    path = Path(cfg.file)
    path.parent.mkdir(parents=True, exist_ok=True)
    as_json = cfg.format == "json"
    logger.add(
        str(path),
        level=cfg.level,
        format="{message}" if as_json else LINE_FORMAT,
        serialize=as_json,
        rotation=f"{cfg.max_size_mb} MB",
        retention=cfg.backup_count,
        compression="zip",
        enqueue=True,
        backtrace=diagnose,
        diagnose=diagnose,
    )


def _intercept_stdlib() -> None:
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in list(logging.root.manager.loggerDict):
        stdlog = logging.getLogger(name)
        stdlog.handlers = []
        stdlog.propagate = True
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def configure_logging() -> None:
    """Replace all loguru sinks according to the active ``logging`` config.

    Safe to call again after the config changes; previous sinks are removed.
    """
    config = get_config()
    cfg = config.logging
    # Variable values in tracebacks may include codes and phone numbers
    diagnose = config.app.environment != "production"

    logger.remove()
    logger.configure(extra={"subject": "-"})
    logger.add(
        sys.stderr,
        level=cfg.level,
        format=LINE_FORMAT,
        colorize=True,
        backtrace=diagnose,
        diagnose=diagnose,
    )
    if cfg.file:
        _add_file_sink(cfg, diagnose)
    _intercept_stdlib()

    logger.debug(f"Logging configured at {cfg.level} ({cfg.format}, file={cfg.file})")
