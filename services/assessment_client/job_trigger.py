from __future__ import annotations

import logging
from typing import Any, Dict

import httpx

from schemas.crypto_assessment import WebhookPayload
from services.assessment_client.config import DEFAULT_WEBHOOK_TIMEOUT_SEC
from services.assessment_client.errors import AssessmentApiError, ErrorCode
from services.assessment_client.messages import DEFAULT_LOCALE

logger = logging.getLogger(__name__)


class JobTrigger:
    """Asks the external workflow engine to run an assessment.

    Success only means the request was accepted. The engine writes the
    terminal status to the job row on its own schedule.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        webhook_url: str,
        *,
        timeout_sec: float = DEFAULT_WEBHOOK_TIMEOUT_SEC,
        locale: str = DEFAULT_LOCALE,
    ) -> None:
        if not webhook_url:
            raise ValueError("webhook_url is required")
        self._http = http
        self._url = webhook_url
        self._timeout = timeout_sec
        self._locale = locale

    async def trigger(self, payload: WebhookPayload) -> str:
        """Return the assessment id the engine acknowledged."""
        details: Dict[str, Any] = {"assessmentId": payload.assessmentId}

        try:
            response = await self._http.post(self._url, json=payload.to_json(), timeout=self._timeout)
        except httpx.TimeoutException as exc:
            logger.warning("webhook_timeout assessment_id=%s after=%.0fs", payload.assessmentId, self._timeout)
            raise AssessmentApiError.from_code(
                ErrorCode.TIMEOUT_ERROR, {**details, "originalError": exc}, locale=self._locale
            ) from exc
        except httpx.RequestError as exc:
            logger.warning("webhook_network_error assessment_id=%s error=%s", payload.assessmentId, type(exc).__name__)
            raise AssessmentApiError.from_code(
                ErrorCode.NETWORK_ERROR, {**details, "originalError": exc}, locale=self._locale
            ) from exc

        if response.is_error:
            logger.warning("webhook_rejected assessment_id=%s status=%s", payload.assessmentId, response.status_code)
            raise AssessmentApiError.from_code(
                ErrorCode.WEBHOOK_ERROR,
                {
                    **details,
                    "status": response.status_code,
                    "statusText": response.reason_phrase,
                    "error": response.text[:1000],
                },
                locale=self._locale,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise AssessmentApiError.from_code(
                ErrorCode.WEBHOOK_FAILED,
                {**details, "reason": "invalid_json", "error": response.text[:1000]},
                locale=self._locale,
            ) from exc

        if not isinstance(body, dict) or not body.get("success"):
            reported = body.get("error") or body.get("message") if isinstance(body, dict) else None
            logger.warning("webhook_reported_failure assessment_id=%s", payload.assessmentId)
            raise AssessmentApiError.from_code(
                ErrorCode.WEBHOOK_FAILED,
                {**details, "response": body},
                message=reported or None,
                locale=self._locale,
            )

        return str(body.get("assessmentId") or payload.assessmentId)
