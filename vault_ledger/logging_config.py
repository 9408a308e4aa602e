"""
Structured Logging Configuration Module

JSON log lines for the vault ledger. Ledger, event, transfer and audit
loggers live under the ``vault`` namespace; ``log_action`` attaches the
owner and action of an operation to the record so they land as top-level
JSON keys.
"""

import logging
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# Record attributes copied into the JSON document when set
STRUCTURED_FIELDS = ("correlation_id", "owner", "action", "resource", "extra")

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """Render a record as one JSON object per line"""

    def format(self, record):
        document: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in STRUCTURED_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                document[name] = value

        if record.exc_info:
            document["exception"] = self.formatException(record.exc_info)

        return json.dumps(document, default=str)


def _build_handler(log_format: str, log_file: Optional[str]) -> logging.Handler:
    handler = logging.FileHandler(log_file) if log_file else logging.StreamHandler()
    if log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    return handler


def setup_logging(level: str = "INFO", logger_name: str = "vault",
                  log_format: str = "json", log_file: Optional[str] = None) -> logging.Logger:
    """
    Configure the vault logger.

    Calling it again replaces the previous handler, so the API and tests
    can reconfigure freely. Child loggers (``vault.ledger``,
    ``vault.events``, ``vault.transfer``, ``vault.audit``) reach the
    handler installed here.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        logger_name: Logger to configure
        log_format: "json" or "text"
        log_file: Write to this file instead of stderr
    """
    logger = logging.getLogger(logger_name)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    logger.addHandler(_build_handler(log_format, log_file))
    logger.setLevel(level.upper())
    logger.propagate = False
    return logger


def get_logger(name: str = "vault") -> logging.Logger:
    return logging.getLogger(name)


def log_action(logger: logging.Logger, level: str, message: str,
               owner: Optional[Any] = None, action: Optional[str] = None,
               resource: Optional[str] = None, correlation_id: Optional[str] = None,
               extra: Optional[dict] = None):
    """
    Log ``message`` with the operation's owner and action attached.

    Owners may be any hashable identity and are logged as strings. Empty
    fields are left off the record.
    """
    fields = {
        "owner": None if owner is None else str(owner),
        "action": action,
        "resource": resource,
        "correlation_id": correlation_id,
        "extra": extra,
    }
    logger.log(
        logging.getLevelName(level.upper()),
        message,
        extra={name: value for name, value in fields.items() if value}
    )
