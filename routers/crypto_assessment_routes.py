import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from database import get_db
from middleware.rate_limit import READ_LIMIT, WRITE_LIMIT, limiter
from schemas.crypto_assessment import (
    AssessmentStatus,
    CryptoAssessmentCreate,
    CryptoAssessmentEnvelope,
    CryptoAssessmentList,
    GenerateAssessmentRequest,
    GenerateAssessmentResponse,
    InvestingStats,
    WebhookPayload,
)
from services.crypto_assessment_service import (
    AssessmentNotFoundError,
    AssessmentValidationError,
    count_assessments,
    create_assessment,
    delete_assessment,
    get_assessment,
    get_user_investing_stats,
    list_user_assessments,
    update_assessment_error,
)
from services.n8n.crypto_webhook import N8nCryptoError, generate_crypto_assessment
from services.supabase_auth import get_current_user_id

logger = logging.getLogger(__name__)
router = APIRouter(tags=["crypto-assessments"])


@router.post("/crypto-assessments", response_model=CryptoAssessmentEnvelope)
@limiter.limit(WRITE_LIMIT)
def create_crypto_assessment(
    request: Request,
    payload: CryptoAssessmentCreate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    try:
        row = create_assessment(
            db,
            user_id,
            crypto_symbol=payload.crypto_symbol,
            investment_amount=payload.investment_amount,
            risk_tolerance=payload.risk_tolerance,
            time_horizon=payload.time_horizon,
            notes=payload.notes,
        )
    except AssessmentValidationError as exc:
        raise HTTPException(status_code=400, detail=exc.message)
    return {"assessment": row}


@router.get("/crypto-assessments", response_model=CryptoAssessmentList)
@limiter.limit(READ_LIMIT)
def list_crypto_assessments(
    request: Request,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    status_filter: Optional[AssessmentStatus] = Query(None, alias="status"),
    sort_by: str = Query("created_at"),
    order: str = Query("desc"),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    try:
        rows = list_user_assessments(
            db,
            user_id,
            limit=limit,
            offset=offset,
            status=status_filter,
            sort_by=sort_by,
            order=order,
        )
    except AssessmentValidationError as exc:
        raise HTTPException(status_code=400, detail=exc.message)
    return {"assessments": rows, "count": count_assessments(db, user_id, status_filter)}


@router.get("/crypto-assessments/stats", response_model=InvestingStats)
@limiter.limit(READ_LIMIT)
def crypto_assessment_stats(
    request: Request,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return get_user_investing_stats(db, user_id)


@router.get("/crypto-assessments/{assessment_id}", response_model=CryptoAssessmentEnvelope)
@limiter.limit(READ_LIMIT)
def get_crypto_assessment(
    request: Request,
    assessment_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    try:
        return {"assessment": get_assessment(db, assessment_id, user_id)}
    except AssessmentNotFoundError as exc:
        raise HTTPException(status_code=404, detail=exc.message)


@router.delete("/crypto-assessments/{assessment_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit(WRITE_LIMIT)
def delete_crypto_assessment(
    request: Request,
    assessment_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    try:
        delete_assessment(db, assessment_id, user_id)
    except AssessmentNotFoundError as exc:
        raise HTTPException(status_code=404, detail=exc.message)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/crypto-assessment/generate",
    response_model=GenerateAssessmentResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(WRITE_LIMIT)
async def generate_assessment(
    request: Request,
    payload: GenerateAssessmentRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    try:
        row = create_assessment(
            db,
            user_id,
            crypto_symbol=payload.cryptoSymbol,
            investment_amount=payload.investmentAmount,
            risk_tolerance=payload.riskTolerance,
            time_horizon=payload.timeHorizon,
            notes=payload.notes,
        )
    except Exception:
        logger.exception("crypto_generate_insert_failed")
        raise HTTPException(status_code=500, detail="Could not create the assessment")

    webhook_payload = WebhookPayload(
        userId=user_id,
        assessmentId=row.id,
        cryptoSymbol=payload.cryptoSymbol,
        investmentAmount=payload.investmentAmount,
        riskTolerance=payload.riskTolerance,
        timeHorizon=payload.timeHorizon,
        notes=payload.notes,
    )

    try:
        await generate_crypto_assessment(webhook_payload)
    except N8nCryptoError as exc:
        update_assessment_error(db, row.id, exc.message or "Webhook error")
        status_code = exc.status_code if isinstance(exc.status_code, int) else 502
        logger.error(
            "crypto_generate_webhook_failed assessment_id=%s status=%s",
            row.id, status_code,
            extra={"assessment_id": row.id, "error_code": exc.code},
        )
        return JSONResponse(
            status_code=status_code,
            content={"error": exc.message or "Could not trigger the AI workflow"},
        )

    return GenerateAssessmentResponse(assessmentId=row.id)
