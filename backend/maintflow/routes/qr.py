from __future__ import annotations
from flask import Blueprint, current_app
from maintflow import get_db
from maintflow.constants.roles import Role
from maintflow.decorators.auth import require_roles
from maintflow.models.qr import QRRecord
from maintflow.services.policy import current_user
from maintflow.services.work_order_service import WorkOrderService
from maintflow.utils.validation import json_body, parse_int

qr_bp = Blueprint('qr', __name__)


def qr_json(record: QRRecord, include_token: bool = True):
    body = {
        'id': record.id,
        'work_order_id': record.work_order_id,
        'scan_type': record.scan_type,
        'technician_count': record.technician_count,
        'generated_at': record.generated_at.isoformat(),
        'expires_at': record.expires_at.isoformat(),
        'used': record.used,
    }
    if include_token:
        body['token'] = record.token
    return body


def _service() -> WorkOrderService:
    return WorkOrderService(get_db(), qr_expiration_minutes=current_app.config['QR_EXPIRATION_MINUTES'])


@qr_bp.post('/generate')
@require_roles(Role.SM.value)
def generate():
    actor = current_user()
    data = json_body()
    record = _service().generate_qr(
        parse_int(data.get('work_order_id'), 'work_order_id', required=True), actor,
        technician_count=parse_int(data.get('technician_count'), 'technician_count'),
        scan_type=data.get('scan_type'),
    )
    return qr_json(record), 201


@qr_bp.get('/work-orders/<int:work_order_id>/active')
@require_roles(Role.SM.value)
def active(work_order_id: int):
    actor = current_user()
    svc = _service()
    svc.get_work_order(work_order_id, actor)
    return {'data': [qr_json(r, include_token=False) for r in svc.qr.active_tokens(work_order_id)]}
