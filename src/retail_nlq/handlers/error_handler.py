from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class RetailNLQError(RuntimeError):
    """Base class for errors raised by the analytics engine."""


class GenerationError(RetailNLQError):
    """The text-generation service could not be reached or gave no usable reply."""


class SqlRejectedError(RetailNLQError):
    def __init__(self, reason: str, sql: str = ""):
        super().__init__(reason)
        self.reason = reason
        self.sql = sql


class ExecutionError(RetailNLQError):
    """A validated statement failed in the store (timeout, syntax, connectivity)."""


def friendly_error(e: Exception):
    logger.exception("Unhandled error")
    return f"⚠️ {type(e).__name__}: {e}"
