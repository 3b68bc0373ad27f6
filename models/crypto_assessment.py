# models/crypto_assessment.py
from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, Float, Index, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from database import Base

STATUS_GENERATING = "generating"
STATUS_READY = "ready"
STATUS_FAILED = "failed"

TERMINAL_STATUSES = frozenset({STATUS_READY, STATUS_FAILED})


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CryptoAssessment(Base):
    __tablename__ = "crypto_assessments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)

    # Supabase auth.users.id of the requester; never changes after insert
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    crypto_symbol: Mapped[str] = mapped_column(String(32), nullable=False)
    investment_amount: Mapped[float] = mapped_column(Float, nullable=False)
    risk_tolerance: Mapped[str] = mapped_column(String(16), nullable=False)
    time_horizon: Mapped[str] = mapped_column(String(16), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # written by the workflow engine only
    assessment_data: Mapped[dict | None] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"), nullable=True
    )
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_GENERATING)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), onupdate=_utcnow, nullable=False
    )

    __table_args__ = (
        Index("ix_crypto_assessments_user_status", "user_id", "status"),
    )

    @property
    def is_complete(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "crypto_symbol": self.crypto_symbol,
            "investment_amount": self.investment_amount,
            "risk_tolerance": self.risk_tolerance,
            "time_horizon": self.time_horizon,
            "notes": self.notes,
            "assessment_data": self.assessment_data,
            "status": self.status,
            "error_message": self.error_message,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
