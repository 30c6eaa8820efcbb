"""Logging, error reporting and mutation metrics."""

# purpose: centralise the observability hooks shared by the store, protocol and CLI
# status: active
# depends_on: sentry_sdk, prometheus_client

from __future__ import annotations

import logging
import logging.handlers
import os
import pathlib

import sentry_sdk
from prometheus_client import Counter

LOGGER_NAME = "responsibilities"
_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"

MUTATION_COUNT = Counter(
    "versioned_mutations_total",
    "Committed mutations of versioned records",
    ["kind", "operation"],
)

_configured = False
_sentry_enabled = False


def configure_logging(level: str | None = None, log_dir: str | None = None) -> logging.Logger:
    """Attach console (and optional rotating file) handlers to the package logger.

    Safe to call repeatedly; handlers are only installed once per process.
    """

    global _configured
    logger = logging.getLogger(LOGGER_NAME)
    level_name = (level or os.getenv("RESPONSIBILITIES_LOG_LEVEL", "INFO")).upper()
    logger.setLevel(getattr(logging, level_name, logging.INFO))
    if _configured:
        return logger

    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(_FORMAT))
    logger.addHandler(console)

    log_dir = log_dir or os.getenv("RESPONSIBILITIES_LOG_DIR")
    if log_dir:
        pathlib.Path(log_dir).mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            os.path.join(log_dir, f"{LOGGER_NAME}.log"),
            maxBytes=5_000_000,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(file_handler)

    _configured = True
    return logger


def init_error_reporting(dsn: str | None = None) -> bool:
    global _sentry_enabled
    dsn = dsn or os.getenv("SENTRY_DSN")
    if dsn:
        sentry_sdk.init(dsn=dsn)
        _sentry_enabled = True
    return _sentry_enabled


def report_invariant_violation(logger: logging.Logger, exc: BaseException) -> None:
    logger.error("invariant violation: %s", exc, exc_info=exc)
    if _sentry_enabled:
        sentry_sdk.capture_exception(exc)


def record_mutation(kind: str, operation: str) -> None:
    MUTATION_COUNT.labels(kind, operation).inc()
