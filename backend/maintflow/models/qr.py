from __future__ import annotations
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Boolean, ForeignKey, DateTime
from maintflow.models.org import Base


class QRRecord(Base):
    """Single-use check-in / check-out token; ``used`` flips to true exactly once."""
    __tablename__ = 'qr_records'
    SCAN_CHECKIN = 'CHECKIN'
    SCAN_CHECKOUT = 'CHECKOUT'
    ALL_SCAN_TYPES = (SCAN_CHECKIN, SCAN_CHECKOUT)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    token: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    work_order_id: Mapped[int] = mapped_column(ForeignKey('work_orders.id', ondelete='CASCADE'), nullable=False, index=True)
    scan_type: Mapped[str] = mapped_column(String(16), nullable=False)
    generated_by_user_id: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False)
    generated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    used: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    used_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    technician_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
