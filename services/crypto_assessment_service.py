from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from models.crypto_assessment import (
    STATUS_FAILED,
    STATUS_GENERATING,
    STATUS_READY,
    CryptoAssessment,
)
from schemas.crypto_assessment import AssessmentStatus, InvestmentDecision

logger = logging.getLogger(__name__)

SORTABLE_COLUMNS = {
    "created_at": CryptoAssessment.created_at,
    "updated_at": CryptoAssessment.updated_at,
}


class AssessmentError(Exception):
    """Base error for assessment persistence operations."""

    def __init__(self, message: str, code: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}


class AssessmentNotFoundError(AssessmentError):
    def __init__(self, assessment_id: str):
        super().__init__(
            f"Assessment not found: {assessment_id}",
            "ASSESSMENT_NOT_FOUND",
            {"assessmentId": assessment_id},
        )


class AssessmentValidationError(AssessmentError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "ASSESSMENT_VALIDATION_ERROR", details)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything we write is UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def create_assessment(
    db: Session,
    user_id: str,
    *,
    crypto_symbol: str,
    investment_amount: float,
    risk_tolerance: str,
    time_horizon: str,
    notes: str | None = None,
) -> CryptoAssessment:
    if not user_id:
        raise AssessmentValidationError("user_id is required")

    row = CryptoAssessment(
        user_id=str(user_id),
        crypto_symbol=crypto_symbol,
        investment_amount=float(investment_amount),
        risk_tolerance=getattr(risk_tolerance, "value", risk_tolerance),
        time_horizon=getattr(time_horizon, "value", time_horizon),
        notes=notes or None,
        assessment_data=None,
        status=STATUS_GENERATING,
        error_message=None,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info("assessment_created id=%s symbol=%s", row.id, row.crypto_symbol)
    return row


def get_assessment(db: Session, assessment_id: str, user_id: str) -> CryptoAssessment:
    row = (
        db.query(CryptoAssessment)
        .filter(CryptoAssessment.id == assessment_id, CryptoAssessment.user_id == str(user_id))
        .first()
    )
    if row is None:
        raise AssessmentNotFoundError(assessment_id)
    return row


def has_access(db: Session, assessment_id: str, user_id: str) -> bool:
    try:
        get_assessment(db, assessment_id, user_id)
    except AssessmentNotFoundError:
        return False
    return True


def list_user_assessments(
    db: Session,
    user_id: str,
    *,
    limit: int = 50,
    offset: int = 0,
    status: str | None = None,
    sort_by: str = "created_at",
    order: str = "desc",
) -> List[CryptoAssessment]:
    column = SORTABLE_COLUMNS.get(sort_by)
    if column is None:
        raise AssessmentValidationError(f"cannot sort by {sort_by!r}", {"sortBy": sort_by})
    if order not in ("asc", "desc"):
        raise AssessmentValidationError(f"invalid order {order!r}", {"order": order})

    query = db.query(CryptoAssessment).filter(CryptoAssessment.user_id == str(user_id))
    if status:
        query = query.filter(CryptoAssessment.status == getattr(status, "value", status))

    ordering = column.asc() if order == "asc" else column.desc()
    return query.order_by(ordering).offset(max(0, offset)).limit(max(1, limit)).all()


def count_assessments(db: Session, user_id: str, status: str | None = None) -> int:
    query = db.query(func.count(CryptoAssessment.id)).filter(CryptoAssessment.user_id == str(user_id))
    if status:
        query = query.filter(CryptoAssessment.status == getattr(status, "value", status))
    return int(query.scalar() or 0)


def get_recent_assessments(db: Session, user_id: str, limit: int = 5) -> List[CryptoAssessment]:
    return list_user_assessments(db, user_id, limit=limit, status=STATUS_READY)


def get_user_investing_stats(db: Session, user_id: str, now: datetime | None = None) -> Dict[str, Any]:
    """Dashboard aggregates over the user's ready assessments."""
    rows = (
        db.query(CryptoAssessment.created_at, CryptoAssessment.assessment_data)
        .filter(CryptoAssessment.user_id == str(user_id), CryptoAssessment.status == STATUS_READY)
        .all()
    )

    now = _as_utc(now or datetime.now(timezone.utc))
    start_of_month = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

    decision_counts = {decision.value: 0 for decision in InvestmentDecision}
    monthly_total = 0
    confidence_sum = 0.0
    confidence_count = 0

    for created_at, data in rows:
        if created_at is not None and _as_utc(created_at) >= start_of_month:
            monthly_total += 1

        data = data or {}
        decision = data.get("decision")
        if decision in decision_counts:
            decision_counts[decision] += 1

        confidence = data.get("confidence")
        if isinstance(confidence, (int, float)) and not isinstance(confidence, bool) and math.isfinite(confidence):
            confidence_sum += float(confidence)
            confidence_count += 1

    return {
        "totalReady": len(rows),
        "monthlyTotal": monthly_total,
        "decisionCounts": decision_counts,
        "averageConfidence": confidence_sum / confidence_count if confidence_count else None,
    }


def _get_by_id(db: Session, assessment_id: str) -> CryptoAssessment:
    row = db.query(CryptoAssessment).filter(CryptoAssessment.id == assessment_id).first()
    if row is None:
        raise AssessmentNotFoundError(assessment_id)
    return row


def _get_generating(db: Session, assessment_id: str) -> CryptoAssessment:
    # a row leaves "generating" exactly once
    row = _get_by_id(db, assessment_id)
    if row.status != STATUS_GENERATING:
        raise AssessmentValidationError(
            f"assessment {assessment_id} is already {row.status}",
            {"assessmentId": assessment_id, "status": row.status},
        )
    return row


def update_assessment_data(
    db: Session,
    assessment_id: str,
    data: Dict[str, Any],
    status: str = STATUS_READY,
) -> CryptoAssessment:
    """Writer side: store the workflow result. Not used by the polling client."""
    status = getattr(status, "value", status)
    if status not in {s.value for s in AssessmentStatus}:
        raise AssessmentValidationError(f"invalid status {status!r}")
    if status == STATUS_GENERATING:
        raise AssessmentValidationError("assessment data can only be stored with a terminal status")

    row = _get_generating(db, assessment_id)
    row.assessment_data = data
    row.status = status
    row.error_message = None
    db.commit()
    db.refresh(row)
    logger.info("assessment_updated id=%s status=%s", row.id, row.status)
    return row


def update_assessment_error(db: Session, assessment_id: str, error_message: str) -> CryptoAssessment:
    row = _get_generating(db, assessment_id)
    row.status = STATUS_FAILED
    row.error_message = error_message
    row.assessment_data = None
    db.commit()
    db.refresh(row)
    logger.warning("assessment_failed id=%s", row.id)
    return row


def delete_assessment(db: Session, assessment_id: str, user_id: str) -> None:
    row = get_assessment(db, assessment_id, user_id)
    db.delete(row)
    db.commit()
