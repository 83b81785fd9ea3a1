"""
Logging package: correlation context and structured logging setup.
"""
from .correlation import CorrelationContext, generate_correlation_id
from .logger import FrameworkLogger
from .logging_config import (
    configure_logging, configure_structlog,
    CorrelationIDProcessor, ContextPrefixProcessor, TimestampProcessor
)

__all__ = [
    'CorrelationContext', 'generate_correlation_id', 'FrameworkLogger',
    'configure_logging', 'configure_structlog',
    'CorrelationIDProcessor', 'ContextPrefixProcessor', 'TimestampProcessor'
]
