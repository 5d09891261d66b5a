"""Structured logging configuration using dictConfig.

Collector and article-search loggers live under ``trendwire.collectors`` and
can be tuned apart from the rest of the pipeline through ``LOGGER_LEVELS``,
e.g. ``{"trendwire.collectors.articles": "WARNING"}``.
"""
import logging
import logging.config
import sys
from typing import Dict, Any, Mapping, Optional

from .settings import get_settings

# Chatty third-party loggers used by the collectors
QUIET_LOGGERS = ("httpx", "httpcore", "tenacity")


def level_number(level: str) -> int:
    """Numeric value of a level name; unknown names count as INFO."""
    value = logging.getLevelName(str(level).upper())
    return value if isinstance(value, int) else logging.INFO


def _logger_overrides(config: Dict[str, Any], logger_levels: Mapping[str, str]) -> None:
    for name, level in logger_levels.items():
        level = str(level).upper()
        if name in config["loggers"]:
            config["loggers"][name]["level"] = level
        else:
            # Propagates to the nearest configured parent's handler
            config["loggers"][name] = {"level": level, "propagate": True}


def get_logging_config(service_name: Optional[str] = None, level: Optional[str] = None) -> Dict[str, Any]:
    """
    Get logging configuration dictionary.

    Args:
        service_name: Tag added to every line, e.g. "trender"
        level: Level for the trendwire loggers; defaults to LOG_LEVEL
    """
    settings = get_settings()
    production = settings.environment == "production"
    level = (level or settings.log_level).upper()
    logger_levels = dict(settings.logger_levels)

    # The handler must let through the most verbose configured logger
    handler_level = min([level, *logger_levels.values()], key=level_number)

    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
                "class": "pythonjsonlogger.json.JsonFormatter"
            },
            "console": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S"
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": handler_level.upper(),
                "formatter": "json" if production else "console",
                "stream": sys.stdout
            }
        },
        "loggers": {
            "trendwire": {
                "level": level,
                "handlers": ["console"],
                "propagate": False
            },
            "uvicorn": {
                "level": "INFO",
                "handlers": ["console"],
                "propagate": False
            },
            "uvicorn.access": {
                "level": "WARNING",
                "handlers": ["console"],
                "propagate": False
            }
        },
        "root": {
            "level": settings.log_level,
            "handlers": ["console"]
        }
    }

    for name in QUIET_LOGGERS:
        config["loggers"][name] = {"level": "WARNING", "handlers": ["console"], "propagate": False}

    _logger_overrides(config, logger_levels)

    if service_name:
        if production:
            config["formatters"]["json"]["format"] = f"%(asctime)s %(levelname)s {service_name} %(name)s %(message)s"
        else:
            config["formatters"]["console"]["format"] = f"%(asctime)s [{service_name}] [%(levelname)s] %(name)s: %(message)s"

    return config


def setup_logging(service_name: Optional[str] = None, level: Optional[str] = None) -> None:
    """Configure structured logging using dictConfig."""
    logging.config.dictConfig(get_logging_config(service_name, level))


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance."""
    return logging.getLogger(name)
