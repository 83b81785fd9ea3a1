"""
Framework logger with correlation context support.
"""
from typing import Any, Optional

import structlog

from .correlation import CorrelationContext


class FrameworkLogger:
    """Thin structlog façade that tags every event with an explicit CorrelationContext."""

    def __init__(self, name: str, context: Optional[CorrelationContext] = None):
        self.name = name
        self.context = context
        fields = context.as_log_fields() if context is not None else {}
        self._logger = structlog.get_logger(name, **fields)

    @classmethod
    def get_logger(cls, name: str, context: Optional[CorrelationContext] = None) -> 'FrameworkLogger':
        return cls(name, context)

    def with_context(self, context: Optional[CorrelationContext]) -> 'FrameworkLogger':
        """Return a logger tagged with ``context``; ``None`` keeps the current one."""
        if context is None or context == self.context:
            return self
        return FrameworkLogger(self.name, context)

    def debug(self, event: str, **fields: Any):
        self._logger.debug(event, **fields)

    def info(self, event: str, **fields: Any):
        self._logger.info(event, **fields)

    def warning(self, event: str, **fields: Any):
        self._logger.warning(event, **fields)

    def error(self, event: str, **fields: Any):
        self._logger.error(event, **fields)

    def step(self, description: str, **fields: Any):
        self._logger.info(f"STEP: {description}", **fields)

    def api_call(self, method: str, endpoint: str):
        self._logger.info("API CALL", method=method, endpoint=endpoint)

    def api_response(self, status_code: int, response_time_ms: float):
        self._logger.info("API RESPONSE", status_code=status_code, response_time_ms=response_time_ms)
