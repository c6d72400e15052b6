"""Logging setup for the maintflow backend.

``configure_logging`` is called once from ``create_app``; modules obtain their
logger with ``logging.getLogger(__name__)``.
"""
from __future__ import annotations
import logging
import logging.config

LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s: %(message)s'

_configured = False


def configure_logging(level: str = 'INFO') -> None:
    global _configured
    logging.config.dictConfig({
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'default': {'format': LOG_FORMAT},
        },
        'handlers': {
            'console': {
                'class': 'logging.StreamHandler',
                'formatter': 'default',
            },
        },
        'loggers': {
            'maintflow': {
                'handlers': ['console'],
                'level': level,
                'propagate': False,
            },
        },
    })
    _configured = True


def reset_logging() -> None:
    """Drop maintflow handlers (tests that reconfigure logging call this)."""
    global _configured
    logger = logging.getLogger('maintflow')
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True
    _configured = False


def is_configured() -> bool:
    return _configured


__all__ = ['configure_logging', 'reset_logging', 'is_configured', 'LOG_FORMAT']
