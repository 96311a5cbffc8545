"""Logging system setup: stderr output via a non-blocking queue handler."""

import atexit
import logging
import logging.handlers
import queue
import sys

from ..config import get_settings

APP_LOGGER_NAME = "claude_code_step"


def setup_logging() -> logging.Logger:
    """
    Initialize the package logger from settings.

    Records go through a QueueHandler so that a slow stderr never blocks the
    event loop driving the CLI subprocess. stdout is left alone: it carries
    the JSON result. Calling this again replaces the previous handlers.
    """
    settings = get_settings()

    app_logger = logging.getLogger(APP_LOGGER_NAME)
    shutdown_logging()
    app_logger.setLevel(settings.logging.level)
    app_logger.propagate = False

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(settings.logging.level)
    stderr_handler.setFormatter(logging.Formatter(settings.logging.format))

    log_queue: queue.Queue = queue.Queue(-1)  # -1 means unlimited size
    queue_handler = logging.handlers.QueueHandler(log_queue)
    queue_listener = logging.handlers.QueueListener(
        log_queue, stderr_handler, respect_handler_level=True
    )
    queue_listener.start()

    # Stored on the logger so shutdown_logging can find it
    app_logger._queue_listener = queue_listener  # type: ignore[attr-defined]
    atexit.register(queue_listener.stop)

    app_logger.addHandler(queue_handler)
    app_logger.debug(f"Logging initialized at level {settings.logging.level}")
    return app_logger


def shutdown_logging() -> None:
    """Flush and stop the queue listener and drop the package handlers."""
    app_logger = logging.getLogger(APP_LOGGER_NAME)

    listener = getattr(app_logger, "_queue_listener", None)
    if listener is not None:
        listener.stop()
        atexit.unregister(listener.stop)
        app_logger._queue_listener = None  # type: ignore[attr-defined]

    for handler in list(app_logger.handlers):
        app_logger.removeHandler(handler)
        handler.close()
