from __future__ import annotations
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Text, JSON, DateTime
from maintflow.models.org import Base
from maintflow.utils.clock import utcnow


class AuditLog(Base):
    """Append-only history of accepted ticket and work order transitions."""
    __tablename__ = 'audit_logs'
    ENTITY_TICKET = 'TICKET'
    ENTITY_WORK_ORDER = 'WORK_ORDER'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    entity_type: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    entity_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    ticket_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    work_order_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    action: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    prev_status: Mapped[Optional[str]] = mapped_column(String(48))
    new_status: Mapped[Optional[str]] = mapped_column(String(48))
    actor_type: Mapped[str] = mapped_column(String(16), nullable=False)
    actor_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    comment: Mapped[Optional[str]] = mapped_column(Text)
    meta: Mapped[dict] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
