"""Shared logging utilities for FastAPI applications."""

import logging

import common.settings

LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s: %(message)s'


class HealthCheckFilter(logging.Filter):
    """Filter out health check requests from uvicorn access logs."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Return False to suppress health check log entries."""
        return '/health' not in record.getMessage()


def configure_logging() -> None:
    """Configure application logging and suppress health check access entries.

    The root logger gets a stream handler at ``common.settings.LOG_LEVEL``
    unless one is already installed (uvicorn or pytest may have done so).
    """
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(format=LOG_FORMAT)
    root.setLevel(common.settings.LOG_LEVEL)
    logging.getLogger('uvicorn.access').addFilter(HealthCheckFilter())
