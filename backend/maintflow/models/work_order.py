from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Text, Boolean, ForeignKey, DateTime, Numeric
from maintflow.models.org import Base
from maintflow.constants.statuses import WorkOrderStatus
from maintflow.utils.clock import utcnow


class WorkOrder(Base):
    __tablename__ = 'work_orders'
    OWNER_INTERNAL = 'INTERNAL'
    OWNER_VENDOR = 'VENDOR'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_id: Mapped[int] = mapped_column(ForeignKey('tickets.id', ondelete='CASCADE'), nullable=False, index=True)
    vendor_company_id: Mapped[int] = mapped_column(ForeignKey('vendor_companies.id'), nullable=False, index=True)
    created_by_user_id: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False)
    assigned_technician_id: Mapped[Optional[int]] = mapped_column(ForeignKey('users.id'), nullable=True)
    current_status: Mapped[str] = mapped_column(String(48), nullable=False, default=WorkOrderStatus.CREATED.value, index=True)
    current_owner_type: Mapped[str] = mapped_column(String(16), nullable=False, default=OWNER_VENDOR)
    current_owner_id: Mapped[Optional[int]] = mapped_column(ForeignKey('users.id'), nullable=True, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text)
    comment_to_vendor: Mapped[Optional[str]] = mapped_column(Text)
    eta: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    opened_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    declared_technician_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    checkin_ts: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    checkout_ts: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    invoice_batch_id: Mapped[Optional[int]] = mapped_column(ForeignKey('invoice_batches.id'), nullable=True, index=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    ticket = relationship('Ticket', back_populates='work_orders')
    visits = relationship('WorkOrderVisit', order_by='WorkOrderVisit.id', cascade='all, delete-orphan')
    invoice_rows = relationship('InvoiceRow', order_by='InvoiceRow.id', cascade='all, delete-orphan')
    work_report_rows = relationship('WorkReportRow', order_by='WorkReportRow.id', cascade='all, delete-orphan')

    __mapper_args__ = {'version_id_col': version}


class WorkOrderVisit(Base):
    """One technician visit: opened at check-in, closed at check-out."""
    __tablename__ = 'work_order_visits'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    work_order_id: Mapped[int] = mapped_column(ForeignKey('work_orders.id', ondelete='CASCADE'), nullable=False, index=True)
    technician_id: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False)
    technician_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    checkin_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    checkout_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    outcome: Mapped[Optional[str]] = mapped_column(String(32))
    comment: Mapped[Optional[str]] = mapped_column(Text)


class WorkReportRow(Base):
    __tablename__ = 'work_report_rows'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    work_order_id: Mapped[int] = mapped_column(ForeignKey('work_orders.id', ondelete='CASCADE'), nullable=False, index=True)
    visit_id: Mapped[Optional[int]] = mapped_column(ForeignKey('work_order_visits.id'), nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    hours: Mapped[Optional[Decimal]] = mapped_column(Numeric(8, 2))
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)


class VendorPriceListItem(Base):
    """Agreed unit price of one vendor item; cost proposal rows are checked against it."""
    __tablename__ = 'vendor_price_list_items'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    vendor_company_id: Mapped[int] = mapped_column(ForeignKey('vendor_companies.id'), nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(64), nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    unit: Mapped[str] = mapped_column(String(16), nullable=False, default='pcs')
    price_per_unit: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    # billed automatically (arrival, time units); hidden from item pickers
    selectable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class InvoiceRow(Base):
    __tablename__ = 'invoice_rows'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    work_order_id: Mapped[int] = mapped_column(ForeignKey('work_orders.id', ondelete='CASCADE'), nullable=False, index=True)
    price_list_item_id: Mapped[Optional[int]] = mapped_column(ForeignKey('vendor_price_list_items.id'), nullable=True)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    unit: Mapped[str] = mapped_column(String(16), nullable=False, default='pcs')
    quantity: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    line_total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    # off the price list, or priced above it
    price_warning: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class InvoiceBatch(Base):
    __tablename__ = 'invoice_batches'
    STATUS_CREATED = 'CREATED'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    batch_number: Mapped[str] = mapped_column(String(48), unique=True, nullable=False)
    vendor_company_id: Mapped[int] = mapped_column(ForeignKey('vendor_companies.id'), nullable=False, index=True)
    created_by_user_id: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default='EUR')
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_CREATED)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
