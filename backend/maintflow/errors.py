from __future__ import annotations
"""Workflow denial raised by the calling services.

``WorkflowError`` is a werkzeug ``HTTPException`` so the unified error handler in
``create_app`` renders it like any ``abort()``; the extra ``error_code`` is added
to the JSON body.
"""
from typing import Any, Dict, Optional
from werkzeug.exceptions import HTTPException

# Engine / guard codes
INVALID_TRANSITION = 'INVALID_TRANSITION'
ROLE_NOT_ALLOWED = 'ROLE_NOT_ALLOWED'
NOT_OWNER = 'NOT_OWNER'
URGENCY_MISMATCH = 'URGENCY_MISMATCH'
OWNERSHIP_LOCKED = 'OWNERSHIP_LOCKED'
WORK_ORDERS_ACTIVE = 'WORK_ORDERS_ACTIVE'

# Service level codes
NOT_FOUND = 'NOT_FOUND'
VALIDATION_ERROR = 'VALIDATION_ERROR'
NOT_APPROVER = 'NOT_APPROVER'
APPROVER_NOT_FOUND = 'APPROVER_NOT_FOUND'
OWNER_NOT_FOUND = 'OWNER_NOT_FOUND'
ALREADY_BATCHED = 'ALREADY_BATCHED'
CONCURRENT_MODIFICATION = 'CONCURRENT_MODIFICATION'
STORAGE_FAILURE = 'STORAGE_FAILURE'

# QR codes (values double as the human reason)
QR_NOT_FOUND = 'QR_NOT_FOUND'
QR_MISMATCH = 'QR_MISMATCH'
QR_ALREADY_USED = 'QR_ALREADY_USED'
QR_EXPIRED = 'QR_EXPIRED'
QR_NOT_ALLOWED = 'QR_NOT_ALLOWED'
QR_SCAN_TYPE_MISMATCH = 'QR_SCAN_TYPE_MISMATCH'

_HTTP_STATUS = {
    NOT_FOUND: 404,
    ROLE_NOT_ALLOWED: 403,
    NOT_OWNER: 403,
    NOT_APPROVER: 403,
    CONCURRENT_MODIFICATION: 409,
    ALREADY_BATCHED: 409,
    STORAGE_FAILURE: 503,
}


class WorkflowError(HTTPException):
    """A denied workflow action; nothing has been committed when it is raised."""

    def __init__(self, error_code: str, description: Optional[str] = None, status: Optional[int] = None, extra: Optional[Dict[str, Any]] = None):
        self.code = status or _HTTP_STATUS.get(error_code, 400)
        super().__init__(description=description or error_code)
        self.error_code = error_code
        self.extra = extra or {}

    @property
    def name(self) -> str:  # type: ignore[override]
        from werkzeug.http import HTTP_STATUS_CODES
        return HTTP_STATUS_CODES.get(self.code, 'Unknown Error')

    def to_dict(self) -> Dict[str, Any]:
        body = {
            'status': self.code,
            'title': self.name,
            'detail': self.description,
            'code': self.error_code,
        }
        body.update(self.extra)
        return body

    def __repr__(self) -> str:
        return f'<WorkflowError {self.code} {self.error_code}: {self.description}>'


def http_status_for(error_code: str) -> int:
    return _HTTP_STATUS.get(error_code, 400)


__all__ = [
    'WorkflowError', 'http_status_for',
    'INVALID_TRANSITION', 'ROLE_NOT_ALLOWED', 'NOT_OWNER', 'URGENCY_MISMATCH', 'OWNERSHIP_LOCKED',
    'WORK_ORDERS_ACTIVE', 'NOT_FOUND', 'VALIDATION_ERROR', 'NOT_APPROVER', 'APPROVER_NOT_FOUND',
    'OWNER_NOT_FOUND', 'ALREADY_BATCHED', 'CONCURRENT_MODIFICATION', 'STORAGE_FAILURE',
    'QR_NOT_FOUND', 'QR_MISMATCH', 'QR_ALREADY_USED', 'QR_EXPIRED', 'QR_NOT_ALLOWED', 'QR_SCAN_TYPE_MISMATCH',
]
