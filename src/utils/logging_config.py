"""Logging and tracing setup for the discovery service.

Every module logs through the shared ``discovery`` logger so the ranking
pipeline can be followed end to end in one stream. Third-party clients that
chatter at DEBUG (Firestore's gRPC stack, HTTP pools) are held at WARNING.
"""

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler

from src.config import config


SERVICE_LOGGER_NAME = "discovery"
LOG_FORMAT = "%(asctime)s | discovery | %(levelname)s | %(name)s | %(message)s"
LOG_FILE_NAME = "discovery.log"
LOG_MAX_BYTES = 2_000_000
LOG_BACKUP_COUNT = 5
NOISY_LOGGERS = ("google", "grpc", "urllib3", "httpx", "httpcore")


def setup_logging(*, debug: bool = False) -> None:
    """Route discovery logs to stdout and a rotating file.

    The console follows ``debug`` (INFO otherwise); the file always keeps
    DEBUG so per-node graph traces are available after the fact.
    """

    os.makedirs(config.LOG_DIR, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    console_handler.setFormatter(formatter)

    file_handler = RotatingFileHandler(
        os.path.join(config.LOG_DIR, LOG_FILE_NAME),
        maxBytes=LOG_MAX_BYTES,
        backupCount=LOG_BACKUP_COUNT,
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)

    # uvicorn --reload imports the app twice.
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def setup_langsmith() -> bool:
    """Send discovery graph runs to LangSmith when tracing is configured.

    Returns whether tracing was switched on.
    """

    if not config.LANGSMITH_ENABLED or not config.LANGSMITH_API_KEY:
        logger.debug("LangSmith tracing disabled")
        return False

    os.environ["LANGCHAIN_TRACING_V2"] = "true"
    os.environ["LANGCHAIN_API_KEY"] = config.LANGSMITH_API_KEY
    os.environ.setdefault("LANGCHAIN_PROJECT", config.LANGSMITH_PROJECT)

    try:
        from langsmith import Client

        Client()
    except Exception as exc:  # pragma: no cover - optional dependency
        logger.warning("LangSmith unavailable, graph runs will not be traced: %s", str(exc))
        return False

    logger.info("Tracing discovery graph runs to LangSmith project %s", os.environ["LANGCHAIN_PROJECT"])
    return True


logger = logging.getLogger(SERVICE_LOGGER_NAME)
