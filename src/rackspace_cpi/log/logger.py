#!/usr/bin/env python3

"""CLI logging: loguru sinks fed by the stdlib loggers used across the package."""

from __future__ import annotations

import io
import logging
import sys

from loguru import logger


LOG_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[request_id]} | {name}:{function}:{line} | {message}"
)


class LoguruHandler(logging.Handler):
    """Forward stdlib log records to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        """Re-emit ``record`` through loguru, keeping the original caller.

        Args:
            record: Stdlib log record.
        """
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        logger.patch(
            lambda r: r.update(name=record.name, function=record.funcName, line=record.lineno)
        ).opt(exception=record.exc_info).log(level, record.getMessage())


class RequestLog:
    """Capture the log of one CPI request.

    Logs go to stderr and to an in-memory buffer whose text is returned to
    the orchestrator with the response.
    """

    def __init__(self, request_id: str, level: str = "DEBUG", stderr_level: str = "INFO") -> None:
        """Initialize request log.

        Args:
            request_id: Id bound to every record of the request.
            level: Level captured into the response log.
            stderr_level: Level written to stderr.
        """
        self.request_id = request_id
        self.level = level
        self.stderr_level = stderr_level
        self._buffer = io.StringIO()
        self._sink_ids: list[int] = []
        self._handler = LoguruHandler()

    def __enter__(self) -> "RequestLog":
        logger.remove()
        logger.configure(extra={"request_id": self.request_id})
        self._sink_ids = [
            logger.add(sys.stderr, level=self.stderr_level, format=LOG_FORMAT, colorize=False),
            logger.add(self._buffer, level=self.level, format=LOG_FORMAT, colorize=False),
        ]
        root = logging.getLogger("rackspace_cpi")
        root.setLevel(logging.DEBUG)
        root.addHandler(self._handler)
        return self

    def __exit__(self, *exc_info: object) -> None:
        logging.getLogger("rackspace_cpi").removeHandler(self._handler)
        for sink_id in self._sink_ids:
            logger.remove(sink_id)
        self._sink_ids = []

    def text(self) -> str:
        return self._buffer.getvalue()
