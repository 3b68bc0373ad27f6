from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

MIN_INVESTMENT_AMOUNT = 100
MAX_INVESTMENT_AMOUNT = 1_000_000
MAX_NOTES_LENGTH = 500

VALID_CRYPTO_PAIRS = (
    "BTC/USDT",
    "ETH/USDT",
    "BNB/USDT",
    "SOL/USDT",
    "ADA/USDT",
    "XRP/USDT",
    "DOT/USDT",
    "AVAX/USDT",
    "MATIC/USDT",
    "LTC/USDT",
)


class RiskTolerance(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TimeHorizon(str, Enum):
    SHORT = "short"    # < 1 month
    MEDIUM = "medium"  # 1-6 months
    LONG = "long"      # > 6 months


class InvestmentDecision(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"
    DONT_INVEST = "DONT_INVEST"


class AssessmentStatus(str, Enum):
    GENERATING = "generating"
    READY = "ready"
    FAILED = "failed"


def _normalize_pair(value: str) -> str:
    pair = (value or "").strip().upper()
    if pair not in VALID_CRYPTO_PAIRS:
        raise ValueError(f"unsupported crypto pair: {value!r}")
    return pair


def _normalize_notes(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    notes = value.strip()
    return notes or None


# ============================================================================
# ASSESSMENT RESULT (stored in assessment_data)
# ============================================================================

class PriceTargets(BaseModel):
    entryPrice: float = Field(gt=0)
    targetPrice: float = Field(gt=0)
    stopLoss: float = Field(gt=0)
    takeProfit1: Optional[float] = Field(default=None, gt=0)
    takeProfit2: Optional[float] = Field(default=None, gt=0)


class TechnicalSignals(BaseModel):
    rsi: float = Field(ge=0, le=100)
    macd: float
    support: float = Field(gt=0)
    resistance: float = Field(gt=0)
    trend: Literal["bullish", "bearish", "neutral"]
    volatility: Literal["low", "medium", "high"]


class RiskAnalysis(BaseModel):
    marketRisk: float = Field(ge=1, le=10)
    liquidityRisk: float = Field(ge=1, le=10)
    volatilityRisk: float = Field(ge=1, le=10)
    regulatoryRisk: float = Field(ge=1, le=10)
    overallRisk: float = Field(ge=1, le=10)


class AssessmentData(BaseModel):
    model_config = ConfigDict(extra="allow")

    decision: InvestmentDecision
    confidence: float = Field(ge=1, le=10)
    riskScore: float = Field(ge=1, le=10)
    priceTargets: Optional[PriceTargets] = None
    technicalSignals: Optional[TechnicalSignals] = None
    riskAnalysis: Optional[RiskAnalysis] = None
    reasoning: str = ""
    marketContext: str = ""
    recommendations: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    timestamp: Optional[str] = None


# ============================================================================
# REQUESTS
# ============================================================================

class CryptoAssessmentCreate(BaseModel):
    """Body of POST /api/crypto-assessments.

    Accepts the column names as well as the short wire names the polling
    client sends. Any owner field in the body is ignored; the owner is the
    authenticated user.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    crypto_symbol: str = Field(validation_alias=AliasChoices("crypto_symbol", "symbol"))
    investment_amount: float = Field(
        ge=MIN_INVESTMENT_AMOUNT,
        le=MAX_INVESTMENT_AMOUNT,
        validation_alias=AliasChoices("investment_amount", "amount"),
    )
    risk_tolerance: RiskTolerance
    time_horizon: TimeHorizon
    notes: Optional[str] = Field(default=None, max_length=MAX_NOTES_LENGTH)

    @field_validator("crypto_symbol")
    @classmethod
    def validate_symbol(cls, value: str) -> str:
        return _normalize_pair(value)

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, value: Optional[str]) -> Optional[str]:
        return _normalize_notes(value)


class GenerateAssessmentRequest(BaseModel):
    """Body of POST /api/crypto-assessment/generate (camelCase, as the form sends it)."""

    cryptoSymbol: str = Field(min_length=1)
    investmentAmount: float = Field(ge=MIN_INVESTMENT_AMOUNT)
    riskTolerance: RiskTolerance
    timeHorizon: TimeHorizon
    notes: Optional[str] = Field(default=None, max_length=MAX_NOTES_LENGTH)

    @field_validator("cryptoSymbol")
    @classmethod
    def validate_symbol(cls, value: str) -> str:
        return _normalize_pair(value)

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, value: Optional[str]) -> Optional[str]:
        return _normalize_notes(value)


class WebhookPayload(BaseModel):
    """What the workflow engine receives."""

    userId: str
    assessmentId: str
    cryptoSymbol: str
    investmentAmount: float
    riskTolerance: RiskTolerance
    timeHorizon: TimeHorizon
    notes: Optional[str] = None

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class WebhookResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    success: bool = False
    assessmentId: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None


# ============================================================================
# RESPONSES
# ============================================================================

class CryptoAssessmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    crypto_symbol: str
    investment_amount: float
    risk_tolerance: str
    time_horizon: str
    notes: Optional[str] = None
    assessment_data: Optional[Dict[str, Any]] = None
    status: AssessmentStatus
    error_message: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class CryptoAssessmentEnvelope(BaseModel):
    assessment: CryptoAssessmentOut


class CryptoAssessmentList(BaseModel):
    assessments: List[CryptoAssessmentOut]
    count: int


class GenerateAssessmentResponse(BaseModel):
    success: bool = True
    assessmentId: str
    status: AssessmentStatus = AssessmentStatus.GENERATING


class InvestingStats(BaseModel):
    totalReady: int
    monthlyTotal: int
    decisionCounts: Dict[str, int]
    averageConfidence: Optional[float] = None
