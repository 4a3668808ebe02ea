"""
Structured logging configuration.

Ledger code logs events, not sentences: the message is a dotted event
name ("journal_entry.posted") and the facts travel in ``extra``:

    logger.info("journal_entry.posted", extra={"tenant": ctx.schema_name, "entry_id": entry.pk})

Output:
- Development: one readable line per event, tenant in brackets
- Production: JSON lines to stdout, correlation fields at top level

Environment variables:
- LOG_FORMAT: "json" or "console" (default: json in production)
- LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
"""
import json
import logging
import os
from datetime import datetime, timezone


# Application loggers, one per app
APP_LOGGERS = ("tenant", "accounting", "reports", "ops")

# Fields lifted out of "extra" so log queries can filter on them directly
CORRELATION_FIELDS = ("tenant", "entry_id", "entry_number", "account_id", "user_id")

_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


def get_logging_config(debug: bool = False) -> dict:
    """
    Build Django's LOGGING dict.

    Args:
        debug: Whether running in debug mode

    Returns:
        Django LOGGING dict
    """
    log_level = os.environ.get("LOG_LEVEL", "DEBUG" if debug else "INFO")
    log_format = os.environ.get("LOG_FORMAT", "console" if debug else "json")

    if log_format == "json":
        formatters = {"json": {"()": "ops.logging_config.JsonFormatter"}}
        console = {
            "class": "logging.StreamHandler",
            "formatter": "json",
            "stream": "ext://sys.stdout",
        }
    else:
        formatters = {
            "ledger": {
                "format": "[{asctime}] {levelname} {name} [{tenant}] {message}",
                "style": "{",
            },
        }
        console = {
            "class": "logging.StreamHandler",
            "formatter": "ledger",
            "filters": ["tenant_default"],
        }

    loggers = {
        "": {"handlers": ["console"], "level": log_level},
        "django": {"handlers": ["console"], "level": log_level, "propagate": False},
        "django.request": {
            "handlers": ["console"],
            "level": log_level if debug else "ERROR",
            "propagate": False,
        },
        # SQL echo only while debugging
        "django.db.backends": {
            "handlers": ["console"] if debug else ["null"],
            "level": "DEBUG" if debug else "INFO",
            "propagate": False,
        },
    }
    for name in APP_LOGGERS:
        loggers[name] = {"handlers": ["console"], "level": log_level, "propagate": False}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "tenant_default": {"()": "ops.logging_config.TenantDefaultFilter"},
        },
        "formatters": formatters,
        "handlers": {
            "console": console,
            "null": {"class": "logging.NullHandler"},
        },
        "loggers": loggers,
    }


class TenantDefaultFilter(logging.Filter):
    """Give records without a tenant a placeholder so the console format never fails."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "tenant"):
            record.tenant = "-"
        return True


class JsonFormatter(logging.Formatter):
    """
    One JSON object per record:

    - timestamp, level, logger, event
    - correlation fields (tenant, entry_id, ...) when present
    - extra: remaining custom attributes
    - exception: formatted traceback, if any
    """

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
        }

        custom = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS
        }
        for field in CORRELATION_FIELDS:
            if field in custom:
                payload[field] = custom.pop(field)
        if custom:
            payload["extra"] = custom

        if record.levelno >= logging.ERROR:
            payload["location"] = f"{record.pathname}:{record.lineno} in {record.funcName}"
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def get_logger(name: str) -> logging.Logger:
    """
    Get an application logger.

    Usage:
        logger = get_logger("accounting")
        logger.info("journal_entry.voided", extra={"tenant": ctx.schema_name, "entry_id": entry.pk})
    """
    return logging.getLogger(name)
