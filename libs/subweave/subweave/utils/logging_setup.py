"""Logging initialization for scripts and host applications."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from subweave.config import LoggingSettings, Settings

ROOT_LOGGER = "subweave"
NOISY_LOGGERS: tuple[str, ...] = ("httpx", "httpcore")

_CONFIGURED_FLAG = "_subweave_configured"


def _level(name: str | None, default: int = logging.INFO) -> int:
    value = logging.getLevelName(str(name or "").strip().upper())
    return value if isinstance(value, int) else default


def build_handlers(config: LoggingSettings, log_dir: str | Path) -> list[logging.Handler]:
    formatter = logging.Formatter(fmt=config.format, datefmt=config.datefmt)
    handlers: list[logging.Handler] = []
    if config.console:
        handlers.append(logging.StreamHandler())
    if config.file:
        path = Path(config.file)
        if not path.is_absolute():
            path = Path(log_dir) / path
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                path,
                maxBytes=config.max_bytes,
                backupCount=config.backup_count,
                encoding="utf-8",
            )
        )
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def setup_logging(settings: Settings, *, force: bool = False) -> logging.Logger:
    """Attach handlers to the ``subweave`` logger tree.

    Loggers owned by the host application are left alone, except that the
    HTTP client loggers are raised to ``third_party_level``. Calling this
    twice is a no-op unless ``force`` is set.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    if getattr(logger, _CONFIGURED_FLAG, False) and not force:
        return logger

    for old in logger.handlers:
        old.close()

    logger.setLevel(_level(settings.logging.level))
    logger.handlers = build_handlers(settings.logging, settings.log_dir)
    logger.propagate = False

    noisy_level = _level(settings.logging.third_party_level, logging.WARNING)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)

    setattr(logger, _CONFIGURED_FLAG, True)
    return logger
