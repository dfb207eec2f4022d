"""
Request correlation IDs for tracing one staging request across log lines.
"""
import logging
import secrets
import time
from contextvars import ContextVar

import structlog

# Context variable to store request ID across async calls
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def new_request_id() -> str:
    """Generate a request ID like ``req_1712345678901_9f2c4a1b``."""
    return f"req_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


def get_request_id() -> str:
    """Get the current request ID from context."""
    return request_id_var.get()


def bind_request_id(request_id: str):
    """Bind the request ID for the current task; returns a token for reset."""
    structlog.contextvars.bind_contextvars(request_id=request_id)
    return request_id_var.set(request_id)


def reset_request_id(token) -> None:
    request_id_var.reset(token)
    structlog.contextvars.unbind_contextvars("request_id")


class ContextualLogger:
    """
    A logger wrapper that automatically includes the request_id.
    Use this in services for consistent logging.
    """

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def _format_msg(self, msg: str) -> str:
        request_id = get_request_id()
        return f"[{request_id}] {msg}" if request_id else msg

    def debug(self, msg: str, *args, **kwargs):
        self.logger.debug(self._format_msg(msg), *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        self.logger.info(self._format_msg(msg), *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        self.logger.warning(self._format_msg(msg), *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        self.logger.error(self._format_msg(msg), *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs):
        self.logger.exception(self._format_msg(msg), *args, **kwargs)


def get_logger(name: str) -> ContextualLogger:
    """Get a contextual logger that includes the request ID."""
    return ContextualLogger(name)
