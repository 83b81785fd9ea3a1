"""
Structured logging configuration for the automation framework.
"""
import logging
import logging.config
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import structlog

NOT_AVAILABLE = 'N/A'


class CorrelationIDProcessor:
    """Fill in missing correlation fields once any of them is bound."""

    def __call__(self, logger, method_name, event_dict):
        if 'correlation_id' in event_dict or 'test' in event_dict:
            event_dict.setdefault('test', NOT_AVAILABLE)
            event_dict.setdefault('correlation_id', NOT_AVAILABLE)
        return event_dict


class ContextPrefixProcessor:
    """Prefix the event with ``[test][correlation_id]`` for console output."""

    def __call__(self, logger, method_name, event_dict):
        if 'correlation_id' in event_dict:
            test = event_dict.pop('test', NOT_AVAILABLE)
            correlation_id = event_dict.pop('correlation_id')
            event_dict['event'] = f"[{test}][{correlation_id}] {event_dict.get('event', '')}"
        return event_dict


class TimestampProcessor:
    """Add ISO timestamp to log records."""

    def __call__(self, logger, method_name, event_dict):
        event_dict['timestamp'] = datetime.now(timezone.utc).isoformat()
        return event_dict


def configure_structlog(fmt: str = 'console'):
    """Configure structlog on top of the stdlib logging tree."""
    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        TimestampProcessor(),
        CorrelationIDProcessor(),
    ]

    if fmt == 'json':
        renderer = structlog.processors.JSONRenderer()
    else:
        processors.append(ContextPrefixProcessor())
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    processors.extend([
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        renderer,
    ])

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


def configure_logging(level: str = 'INFO', fmt: str = 'console', log_file: Optional[str] = None):
    """Set up stdlib logging handlers and the structlog processor chain."""
    if fmt not in ('console', 'json'):
        raise ValueError(f"Unsupported log format: {fmt}")

    log_level = level.upper()
    configure_structlog(fmt)

    handlers = {
        'console': {
            'class': 'logging.StreamHandler',
            'level': log_level,
            'formatter': 'plain',
            'stream': 'ext://sys.stderr',
        }
    }
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers['file'] = {
            'class': 'logging.handlers.RotatingFileHandler',
            'level': log_level,
            'formatter': 'plain',
            'filename': log_file,
            'maxBytes': 10485760,  # 10MB
            'backupCount': 5,
        }

    logging_config = {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'plain': {
                'format': '%(message)s'
            }
        },
        'handlers': handlers,
        'loggers': {
            '': {
                'handlers': list(handlers),
                'level': log_level,
            },
            'urllib3': {
                'level': 'WARNING',
            },
            'watchdog': {
                'level': 'WARNING',
            },
        }
    }

    logging.config.dictConfig(logging_config)
