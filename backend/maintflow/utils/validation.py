from __future__ import annotations
"""Request parsing helpers shared by the blueprints.

All failures abort with 400 so the unified error handler renders them.
"""
from typing import Any, Dict, Iterable, Optional
from flask import abort, request


def json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        abort(400, description='JSON object body required')
    return data


def validate_choice(value: Optional[str], allowed: Iterable[str], field_name: str = 'status') -> Optional[str]:
    """Return the upper-cased value if it is one of ``allowed`` (None passes through)."""
    if value is None or value == '':
        return None
    norm = str(value).strip().upper()
    if norm not in set(allowed):
        abort(400, description=f'{field_name} invalid')
    return norm


def parse_bool(value, field_name: str) -> Optional[bool]:
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ('1', 'true', 'yes'):
        return True
    if text in ('0', 'false', 'no'):
        return False
    abort(400, description=f'{field_name} must be a boolean')


def parse_int(value, field_name: str, required: bool = False) -> Optional[int]:
    if value is None or value == '':
        if required:
            abort(400, description=f'{field_name} required')
        return None
    if isinstance(value, bool):
        abort(400, description=f'{field_name} must be an integer')
    try:
        return int(value)
    except (TypeError, ValueError):
        abort(400, description=f'{field_name} must be an integer')


__all__ = ['json_body', 'validate_choice', 'parse_bool', 'parse_int']
