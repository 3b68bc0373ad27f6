from __future__ import annotations

import logging
import math
from typing import Any, Dict, Optional

import httpx

from services.feature_forms.engine import (
    FeatureFormConfig,
    FieldOption,
    FormField,
    FormStep,
    FormTip,
)

logger = logging.getLogger(__name__)

GENERATE_PATH = "/api/crypto-assessment/generate"
UNAUTHORIZED_MESSAGE = "Please sign in and try again."
GENERIC_FAILURE_MESSAGE = "Could not start the crypto assessment. Please try again."


class CryptoFormSubmitError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def build_generate_payload(data: Dict[str, Any]) -> Dict[str, Any]:
    """Coerce raw form data into the generate endpoint's camelCase body."""
    raw_amount = data.get("investmentAmount")
    try:
        amount = float(raw_amount)
    except (TypeError, ValueError):
        amount = 0.0
    if not math.isfinite(amount):
        amount = 0.0

    payload: Dict[str, Any] = {
        "cryptoSymbol": data.get("cryptoSymbol") if isinstance(data.get("cryptoSymbol"), str) else "",
        "investmentAmount": amount,
        "riskTolerance": data.get("riskTolerance") if isinstance(data.get("riskTolerance"), str) else "medium",
        "timeHorizon": data.get("timeHorizon") if isinstance(data.get("timeHorizon"), str) else "medium",
    }
    notes = data.get("notes")
    if isinstance(notes, str) and notes.strip():
        payload["notes"] = notes.strip()
    return payload


async def submit_crypto_assessment(
    http: httpx.AsyncClient,
    data: Dict[str, Any],
    *,
    base_url: str = "",
    access_token: Optional[str] = None,
) -> Dict[str, Any]:
    headers = {"Authorization": f"Bearer {access_token}"} if access_token else {}
    response = await http.post(
        f"{base_url.rstrip('/')}{GENERATE_PATH}",
        json=build_generate_payload(data),
        headers=headers,
    )

    try:
        body = response.json()
    except ValueError:
        body = None
    if not isinstance(body, dict):
        body = {}

    if not response.is_success or not body.get("success") or not body.get("assessmentId"):
        message = body.get("error") or body.get("detail")
        if not isinstance(message, str):
            message = UNAUTHORIZED_MESSAGE if response.status_code == 401 else GENERIC_FAILURE_MESSAGE
        raise CryptoFormSubmitError(message, response.status_code)

    return {
        "assessmentId": body["assessmentId"],
        "status": body.get("status") or "generating",
    }


def crypto_assessment_form(
    http: httpx.AsyncClient,
    *,
    base_url: str = "",
    access_token: Optional[str] = None,
) -> FeatureFormConfig:
    async def _submit(data: Dict[str, Any]) -> Dict[str, Any]:
        return await submit_crypto_assessment(http, data, base_url=base_url, access_token=access_token)

    def _succeeded(result: Dict[str, Any], data: Dict[str, Any]) -> None:
        logger.info("crypto_form_submitted assessment_id=%s", result.get("assessmentId"))

    def _failed(error: Exception, data: Dict[str, Any]) -> None:
        logger.warning("crypto_form_failed error=%s", error)

    return FeatureFormConfig(
        id="crypto-assessment",
        category="investing",
        title="Crypto Risk Assessment",
        description="Risk and opportunity analysis for an asset in your crypto portfolio.",
        credit_cost=2,
        steps=(
            FormStep(
                id="crypto-selection",
                title="Pick a crypto",
                description="Choose the asset you want analyzed.",
                fields=(
                    FormField(
                        id="cryptoSymbol",
                        type="cards",
                        label="Which crypto asset do you want to analyze?",
                        required=True,
                        options=(
                            FieldOption("BTC/USDT", "Bitcoin", icon="₿"),
                            FieldOption("ETH/USDT", "Ethereum", icon="Ξ"),
                            FieldOption("SOL/USDT", "Solana", icon="◎"),
                            FieldOption("XRP/USDT", "Ripple", icon="✦"),
                        ),
                    ),
                ),
            ),
            FormStep(
                id="investment-details",
                title="Investment details",
                description="Set the amount and your risk level.",
                fields=(
                    FormField(
                        id="investmentAmount",
                        type="slider",
                        label="Investment amount",
                        required=True,
                        default=5000,
                        min=500,
                        max=200000,
                        step=500,
                    ),
                    FormField(
                        id="riskTolerance",
                        type="radio",
                        label="Risk tolerance",
                        required=True,
                        options=(
                            FieldOption("low", "Low"),
                            FieldOption("medium", "Medium"),
                            FieldOption("high", "High"),
                        ),
                    ),
                    FormField(
                        id="timeHorizon",
                        type="radio",
                        label="Time horizon",
                        required=True,
                        options=(
                            FieldOption("short", "Short term"),
                            FieldOption("medium", "Medium term"),
                            FieldOption("long", "Long term"),
                        ),
                    ),
                ),
            ),
            FormStep(
                id="notes",
                title="Add a note",
                description="Optionally share your strategy or notes.",
                fields=(
                    FormField(
                        id="notes",
                        type="textarea",
                        label="Notes",
                        placeholder="Portfolio allocation, target levels, etc.",
                    ),
                ),
            ),
        ),
        tips=(
            FormTip(
                id="crypto-popularity",
                field_id="cryptoSymbol",
                content="BTC and ETH are the most analyzed assets and good starting points.",
                condition=lambda data, current: current == "cryptoSymbol",
            ),
            FormTip(
                id="amount-suggestion",
                field_id="investmentAmount",
                kind="info",
                content="A minimum of 1000 is recommended for more meaningful results.",
                condition=lambda data, current: isinstance(data.get("investmentAmount"), (int, float))
                and data["investmentAmount"] < 1000,
            ),
            FormTip(
                id="risk-warning",
                field_id="riskTolerance",
                kind="warning",
                content="High risk tolerance selected. Remember to diversify your portfolio.",
                condition=lambda data, current: data.get("riskTolerance") == "high",
            ),
        ),
        on_submit=_submit,
        on_success=_succeeded,
        on_error=_failed,
    )
