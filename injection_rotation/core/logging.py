import logging
import os
from logging.config import dictConfig
from typing import Optional

# Per-statement SQL echo is too chatty for the rewrite-on-every-log history table
QUIET_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool")


def configure_logging(level: Optional[str] = None) -> str:
    """Console logging for the service. Returns the level that was applied."""
    log_level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    quiet = {name: {"level": "WARNING"} for name in QUIET_LOGGERS}
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "rotation": {
                    "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
                    "datefmt": "%Y-%m-%dT%H:%M:%S%z",
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "rotation",
                    "level": log_level,
                }
            },
            "loggers": {
                # Records propagate to the root console handler
                "injection_rotation": {"level": log_level},
                "uvicorn.access": {"handlers": ["console"], "level": log_level, "propagate": False},
                **quiet,
            },
            "root": {"handlers": ["console"], "level": log_level},
        }
    )
    logging.getLogger("injection_rotation").debug("Logging configured at %s", log_level)
    return log_level


__all__ = ["configure_logging"]
