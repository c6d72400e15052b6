from __future__ import annotations
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Text, ForeignKey, DateTime
from maintflow.models.org import Base
from maintflow.utils.clock import utcnow


class ApprovalRecord(Base):
    """Append-only approval chain decision; never updated or deleted."""
    __tablename__ = 'approval_records'
    DECISION_APPROVED = 'APPROVED'
    DECISION_RETURNED = 'RETURNED'
    DECISION_REJECTED = 'REJECTED'
    ALL_DECISIONS = (DECISION_APPROVED, DECISION_RETURNED, DECISION_REJECTED)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_id: Mapped[int] = mapped_column(ForeignKey('tickets.id', ondelete='CASCADE'), nullable=False, index=True)
    approver_user_id: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False)
    role: Mapped[str] = mapped_column(String(8), nullable=False)
    decision: Mapped[str] = mapped_column(String(16), nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
