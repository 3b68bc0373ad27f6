from __future__ import annotations

import logging
from typing import Dict, Optional

import httpx

from services.assessment_client.errors import AssessmentApiError, ErrorCode
from services.assessment_client.messages import DEFAULT_LOCALE, translate
from services.assessment_client.validation import AssessmentForm

logger = logging.getLogger(__name__)

CREATE_PATH = "/api/crypto-assessments"


class RecordCreator:
    """Inserts the pending assessment row through the backend. One attempt, no retries."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        base_url: str = "",
        headers: Optional[Dict[str, str]] = None,
        locale: str = DEFAULT_LOCALE,
    ) -> None:
        self._http = http
        self._url = f"{base_url.rstrip('/')}{CREATE_PATH}"
        self._headers = headers or {}
        self._locale = locale

    def _error(self, reason: str, **details) -> AssessmentApiError:
        return AssessmentApiError(
            translate("error.CREATE_FAILED", self._locale),
            ErrorCode.UNEXPECTED_ERROR,
            {"stage": "create", "reason": reason, **details},
        )

    async def create(self, form: AssessmentForm) -> str:
        try:
            response = await self._http.post(self._url, json=form.create_body(), headers=self._headers)
        except httpx.RequestError as exc:
            logger.warning("assessment_create_request_failed error=%s", type(exc).__name__)
            raise self._error("request_failed", originalError=exc) from exc

        if response.is_error:
            logger.warning("assessment_create_rejected status=%s", response.status_code)
            raise self._error("http_status", status=response.status_code, body=response.text[:500])

        try:
            body = response.json()
        except ValueError as exc:
            raise self._error("invalid_json", body=response.text[:500]) from exc

        assessment = body.get("assessment") if isinstance(body, dict) else None
        assessment_id = assessment.get("id") if isinstance(assessment, dict) else None
        if not assessment_id:
            raise self._error("missing_id", body=body)

        logger.info("assessment_create_ok assessment_id=%s", assessment_id)
        return str(assessment_id)
