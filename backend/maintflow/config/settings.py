from __future__ import annotations
"""Process configuration read once by ``create_app``.

Values come from the environment (``.env`` is loaded by the app factory) and can
be overridden by the ``config`` mapping passed to ``create_app``.
"""
import os
from typing import Any, Dict, Mapping, Optional

DEFAULT_QR_EXPIRATION_MINUTES = 5
DEFAULT_LIMIT = 50
MAX_LIMIT = 200


def _positive_int(name: str, raw: Any) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValueError(f'{name} must be an integer')
    if value < 1:
        raise ValueError(f'{name} must be >= 1')
    return value


def load_settings(overrides: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """Build the app config dict from the environment plus explicit overrides."""
    settings: Dict[str, Any] = {
        'JWT_SECRET_KEY': os.getenv('JWT_SECRET_KEY', 'dev-secret'),
        'DATABASE_URL': os.getenv('DATABASE_URL', 'sqlite:///dev.db'),
        'QR_EXPIRATION_MINUTES': os.getenv('QR_EXPIRATION_MINUTES', DEFAULT_QR_EXPIRATION_MINUTES),
        'LOG_LEVEL': os.getenv('LOG_LEVEL', 'INFO'),
        'PAGE_DEFAULT_LIMIT': os.getenv('PAGE_DEFAULT_LIMIT', DEFAULT_LIMIT),
        'PAGE_MAX_LIMIT': os.getenv('PAGE_MAX_LIMIT', MAX_LIMIT),
    }
    if overrides:
        settings.update(overrides)
    for key in ('QR_EXPIRATION_MINUTES', 'PAGE_DEFAULT_LIMIT', 'PAGE_MAX_LIMIT'):
        settings[key] = _positive_int(key, settings[key])
    settings['LOG_LEVEL'] = str(settings['LOG_LEVEL']).upper()
    return settings


def normalize_pagination(limit_raw, offset_raw, default_limit: int = DEFAULT_LIMIT, max_limit: int = MAX_LIMIT):
    try:
        limit = int(limit_raw) if limit_raw is not None else default_limit
        offset = int(offset_raw) if offset_raw is not None else 0
    except ValueError:
        raise ValueError('limit/offset must be int')
    limit = max(1, min(limit, max_limit))
    offset = max(0, offset)
    return limit, offset


__all__ = ['load_settings', 'normalize_pagination', 'DEFAULT_QR_EXPIRATION_MINUTES', 'DEFAULT_LIMIT', 'MAX_LIMIT']
