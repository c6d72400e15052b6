"""initial workflow tables

Revision ID: 0001_initial_workflow
Revises: 
Create Date: 2026-10-18
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = '0001_initial_workflow'
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table('companies',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False, unique=True)
    )
    op.create_table('regions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('companies.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False)
    )
    op.create_index('ix_regions_company_id', 'regions', ['company_id'])
    op.create_table('stores',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('companies.id', ondelete='CASCADE'), nullable=False),
        sa.Column('region_id', sa.Integer(), sa.ForeignKey('regions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False)
    )
    op.create_index('ix_stores_company_id', 'stores', ['company_id'])
    op.create_index('ix_stores_region_id', 'stores', ['region_id'])
    op.create_table('vendor_companies',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False, unique=True),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('1'))
    )
    op.create_table('assets',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('store_id', sa.Integer(), sa.ForeignKey('stores.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('serial_number', sa.String(length=64))
    )
    op.create_index('ix_assets_store_id', 'assets', ['store_id'])
    op.create_table('users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('email', sa.String(length=128), nullable=False, unique=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('role', sa.String(length=8), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('1')),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('companies.id'), nullable=True),
        sa.Column('region_id', sa.Integer(), sa.ForeignKey('regions.id'), nullable=True),
        sa.Column('store_id', sa.Integer(), sa.ForeignKey('stores.id'), nullable=True),
        sa.Column('vendor_company_id', sa.Integer(), sa.ForeignKey('vendor_companies.id'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'))
    )
    for col in ['email', 'role', 'company_id', 'region_id', 'store_id', 'vendor_company_id']:
        op.create_index(f'ix_users_{col}', 'users', [col])

    op.create_table('tickets',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('companies.id'), nullable=False),
        sa.Column('store_id', sa.Integer(), sa.ForeignKey('stores.id'), nullable=False),
        sa.Column('created_by_user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('category', sa.String(length=64), nullable=False),
        sa.Column('original_description', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('urgent', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('current_status', sa.String(length=48), nullable=False),
        sa.Column('current_owner_user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('clarification_requested_by_user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('asset_id', sa.Integer(), sa.ForeignKey('assets.id'), nullable=True),
        sa.Column('archived', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False)
    )
    for col in ['company_id', 'store_id', 'current_status', 'current_owner_user_id']:
        op.create_index(f'ix_tickets_{col}', 'tickets', [col])
    op.create_table('ticket_comments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('ticket_id', sa.Integer(), sa.ForeignKey('tickets.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('is_internal', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('created_at', sa.DateTime(), nullable=False)
    )
    op.create_index('ix_ticket_comments_ticket_id', 'ticket_comments', ['ticket_id'])
    op.create_table('cost_estimations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('ticket_id', sa.Integer(), sa.ForeignKey('tickets.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('created_by_user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False)
    )
    op.create_table('approval_records',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('ticket_id', sa.Integer(), sa.ForeignKey('tickets.id', ondelete='CASCADE'), nullable=False),
        sa.Column('approver_user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('role', sa.String(length=8), nullable=False),
        sa.Column('decision', sa.String(length=16), nullable=False),
        sa.Column('comment', sa.Text()),
        sa.Column('created_at', sa.DateTime(), nullable=False)
    )
    op.create_index('ix_approval_records_ticket_id', 'approval_records', ['ticket_id'])

    op.create_table('invoice_batches',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('batch_number', sa.String(length=48), nullable=False, unique=True),
        sa.Column('vendor_company_id', sa.Integer(), sa.ForeignKey('vendor_companies.id'), nullable=False),
        sa.Column('created_by_user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('total_amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='EUR'),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False)
    )
    op.create_index('ix_invoice_batches_vendor_company_id', 'invoice_batches', ['vendor_company_id'])
    op.create_table('work_orders',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('ticket_id', sa.Integer(), sa.ForeignKey('tickets.id', ondelete='CASCADE'), nullable=False),
        sa.Column('vendor_company_id', sa.Integer(), sa.ForeignKey('vendor_companies.id'), nullable=False),
        sa.Column('created_by_user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('assigned_technician_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('current_status', sa.String(length=48), nullable=False),
        sa.Column('current_owner_type', sa.String(length=16), nullable=False),
        sa.Column('current_owner_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('description', sa.Text()),
        sa.Column('comment_to_vendor', sa.Text()),
        sa.Column('eta', sa.DateTime(), nullable=True),
        sa.Column('opened_at', sa.DateTime(), nullable=True),
        sa.Column('declared_technician_count', sa.Integer(), nullable=True),
        sa.Column('checkin_ts', sa.DateTime(), nullable=True),
        sa.Column('checkout_ts', sa.DateTime(), nullable=True),
        sa.Column('invoice_batch_id', sa.Integer(), sa.ForeignKey('invoice_batches.id'), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False)
    )
    for col in ['ticket_id', 'vendor_company_id', 'current_status', 'current_owner_id', 'invoice_batch_id']:
        op.create_index(f'ix_work_orders_{col}', 'work_orders', [col])
    op.create_table('work_order_visits',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('work_order_id', sa.Integer(), sa.ForeignKey('work_orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('technician_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('technician_count', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('checkin_at', sa.DateTime(), nullable=False),
        sa.Column('checkout_at', sa.DateTime(), nullable=True),
        sa.Column('outcome', sa.String(length=32)),
        sa.Column('comment', sa.Text())
    )
    op.create_index('ix_work_order_visits_work_order_id', 'work_order_visits', ['work_order_id'])
    op.create_table('work_report_rows',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('work_order_id', sa.Integer(), sa.ForeignKey('work_orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('visit_id', sa.Integer(), sa.ForeignKey('work_order_visits.id'), nullable=True),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('hours', sa.Numeric(8, 2)),
        sa.Column('created_at', sa.DateTime(), nullable=False)
    )
    op.create_index('ix_work_report_rows_work_order_id', 'work_report_rows', ['work_order_id'])
    op.create_table('vendor_price_list_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('vendor_company_id', sa.Integer(), sa.ForeignKey('vendor_companies.id'), nullable=False),
        sa.Column('category', sa.String(length=64), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=False),
        sa.Column('unit', sa.String(length=16), nullable=False, server_default='pcs'),
        sa.Column('price_per_unit', sa.Numeric(12, 2), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.Column('selectable', sa.Boolean(), nullable=False, server_default=sa.text('1'))
    )
    op.create_index('ix_vendor_price_list_items_vendor_company_id', 'vendor_price_list_items', ['vendor_company_id'])
    op.create_table('invoice_rows',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('work_order_id', sa.Integer(), sa.ForeignKey('work_orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('price_list_item_id', sa.Integer(), sa.ForeignKey('vendor_price_list_items.id'), nullable=True),
        sa.Column('description', sa.String(length=255), nullable=False),
        sa.Column('unit', sa.String(length=16), nullable=False, server_default='pcs'),
        sa.Column('quantity', sa.Numeric(10, 2), nullable=False),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('line_total', sa.Numeric(12, 2), nullable=False),
        sa.Column('price_warning', sa.Boolean(), nullable=False, server_default=sa.text('0'))
    )
    op.create_index('ix_invoice_rows_work_order_id', 'invoice_rows', ['work_order_id'])
    op.create_table('qr_records',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('token', sa.String(length=64), nullable=False, unique=True),
        sa.Column('work_order_id', sa.Integer(), sa.ForeignKey('work_orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('scan_type', sa.String(length=16), nullable=False),
        sa.Column('generated_by_user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('generated_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('used', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('used_at', sa.DateTime(), nullable=True),
        sa.Column('technician_count', sa.Integer(), nullable=True)
    )
    op.create_index('ix_qr_records_token', 'qr_records', ['token'])
    op.create_index('ix_qr_records_work_order_id', 'qr_records', ['work_order_id'])
    op.create_table('audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('entity_type', sa.String(length=16), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=False),
        sa.Column('ticket_id', sa.Integer(), nullable=True),
        sa.Column('work_order_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('prev_status', sa.String(length=48)),
        sa.Column('new_status', sa.String(length=48)),
        sa.Column('actor_type', sa.String(length=16), nullable=False),
        sa.Column('actor_id', sa.Integer(), nullable=True),
        sa.Column('comment', sa.Text()),
        sa.Column('meta', sa.JSON()),
        sa.Column('created_at', sa.DateTime(), nullable=False)
    )
    for col in ['entity_type', 'entity_id', 'ticket_id', 'work_order_id', 'action', 'actor_id']:
        op.create_index(f'ix_audit_logs_{col}', 'audit_logs', [col])


def downgrade():
    for table in ['audit_logs', 'qr_records', 'invoice_rows', 'vendor_price_list_items', 'work_report_rows',
                  'work_order_visits', 'work_orders', 'invoice_batches', 'approval_records', 'cost_estimations',
                  'ticket_comments', 'tickets', 'users', 'assets', 'vendor_companies', 'stores', 'regions', 'companies']:
        op.drop_table(table)
