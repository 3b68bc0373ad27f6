from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from schemas.crypto_assessment import MAX_NOTES_LENGTH, MIN_INVESTMENT_AMOUNT, WebhookPayload
from services.assessment_client.messages import DEFAULT_LOCALE, translate


@dataclass(frozen=True)
class AssessmentForm:
    owner: str
    crypto_symbol: str
    investment_amount: float
    risk_tolerance: str
    time_horizon: str
    notes: Optional[str] = None

    def create_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "owner": self.owner,
            "symbol": self.crypto_symbol,
            "amount": self.investment_amount,
            "risk_tolerance": self.risk_tolerance,
            "time_horizon": self.time_horizon,
        }
        if self.notes:
            body["notes"] = self.notes
        return body

    def webhook_payload(self, assessment_id: str) -> WebhookPayload:
        return WebhookPayload(
            userId=self.owner,
            assessmentId=assessment_id,
            cryptoSymbol=self.crypto_symbol,
            investmentAmount=self.investment_amount,
            riskTolerance=self.risk_tolerance,
            timeHorizon=self.time_horizon,
            notes=self.notes or None,
        )


def validate_assessment_request(form: AssessmentForm, locale: str = DEFAULT_LOCALE) -> Tuple[bool, List[str]]:
    errors: List[str] = []

    if not form.owner:
        errors.append(translate("validation.owner", locale))
    if not form.crypto_symbol:
        errors.append(translate("validation.symbol", locale))
    if not form.investment_amount or form.investment_amount < MIN_INVESTMENT_AMOUNT:
        errors.append(translate("validation.amount", locale))
    if not form.risk_tolerance:
        errors.append(translate("validation.risk", locale))
    if not form.time_horizon:
        errors.append(translate("validation.time", locale))
    if form.notes and len(form.notes) > MAX_NOTES_LENGTH:
        errors.append(translate("validation.notes", locale))

    return not errors, errors
