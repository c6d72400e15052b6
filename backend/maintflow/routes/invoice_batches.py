from __future__ import annotations
from flask import Blueprint, abort
from maintflow import get_db
from maintflow.constants.roles import Role
from maintflow.decorators.auth import require_roles
from maintflow.models.work_order import InvoiceBatch
from maintflow.services.invoice_batch_service import InvoiceBatchService
from maintflow.services.policy import current_user
from maintflow.utils.listing import apply_pagination, make_list_response
from maintflow.utils.validation import json_body

batches_bp = Blueprint('invoice_batches', __name__)


def batch_json(b: InvoiceBatch, work_order_ids=None):
    body = {
        'id': b.id,
        'batch_number': b.batch_number,
        'vendor_company_id': b.vendor_company_id,
        'created_by_user_id': b.created_by_user_id,
        'total_amount': str(b.total_amount),
        'currency': b.currency,
        'status': b.status,
        'created_at': b.created_at.isoformat(),
    }
    if work_order_ids is not None:
        body['work_order_ids'] = work_order_ids
    return body


@batches_bp.post('')
@require_roles(Role.S3.value)
def create_batch():
    actor = current_user()
    ids = json_body().get('work_order_ids')
    if not isinstance(ids, list):
        abort(400, description='work_order_ids must be a list')
    svc = InvoiceBatchService(get_db())
    batch = svc.create_batch(actor, ids)
    return batch_json(batch, [wo.id for wo in svc.batch_work_orders(batch.id)]), 201


@batches_bp.get('')
@require_roles(Role.S3.value, Role.AMM.value, Role.C2.value)
def list_batches():
    actor = current_user()
    paged_q, total, limit, offset = apply_pagination(InvoiceBatchService(get_db()).list_batches(actor))
    rows = [batch_json(b) for b in paged_q.all()]
    return make_list_response(rows, total, limit, offset)
