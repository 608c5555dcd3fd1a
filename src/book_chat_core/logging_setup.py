from __future__ import annotations

import logging
import logging.config

_QUIET_LOGGERS = ("httpx", "httpcore", "botocore", "boto3", "urllib3", "nats")


def setup_logging(level: str = "INFO") -> None:
    """
    Configure the root logger once for the process. Chatty client libraries stay at WARNING
    unless the service itself runs at DEBUG.
    """
    level = (level or "INFO").upper()
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "standard": {
                    "format": "%(asctime)s %(levelname)s %(name)s - %(message)s",
                    "datefmt": "%Y-%m-%dT%H:%M:%S%z",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "standard",
                    "stream": "ext://sys.stdout",
                },
            },
            "root": {"handlers": ["console"], "level": level},
        }
    )
    quiet_level = logging.DEBUG if level == "DEBUG" else logging.WARNING
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)
