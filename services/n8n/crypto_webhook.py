from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

import httpx

from schemas.crypto_assessment import WebhookPayload, WebhookResponse

logger = logging.getLogger(__name__)

DEFAULT_WEBHOOK_URL = "https://cekuai.duckdns.org/webhook/crypto-risk-assessment"
N8N_WEBHOOK_TIMEOUT_SEC = float(os.getenv("N8N_WEBHOOK_TIMEOUT_SEC", "45"))


class N8nCryptoError(RuntimeError):
    """Raised when the workflow engine does not accept an assessment request."""

    def __init__(self, message: str, code: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code


def resolve_webhook_url() -> tuple[str, bool]:
    """Return (url, from_env)."""
    raw = (os.getenv("N8N_CRYPTO_WEBHOOK_URL") or "").strip()
    if raw:
        return raw, True
    return DEFAULT_WEBHOOK_URL, False


async def generate_crypto_assessment(
    payload: WebhookPayload,
    *,
    client: httpx.AsyncClient | None = None,
    url: str | None = None,
    timeout: float = N8N_WEBHOOK_TIMEOUT_SEC,
) -> WebhookResponse:
    webhook_url, from_env = (url, True) if url else resolve_webhook_url()

    logger.info(
        "n8n_webhook_request assessment_id=%s symbol=%s from_env=%s",
        payload.assessmentId, payload.cryptoSymbol, from_env,
    )

    owns_client = client is None
    http = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))
    try:
        response = await http.post(webhook_url, json=payload.to_json(), timeout=timeout)
    except httpx.TimeoutException as exc:
        logger.error("n8n_webhook_timeout assessment_id=%s after=%.0fs", payload.assessmentId, timeout)
        raise N8nCryptoError(
            f"Webhook request timed out after {timeout:.0f} seconds", code="TIMEOUT", status_code=408
        ) from exc
    except httpx.TransportError as exc:
        logger.error("n8n_webhook_network_error assessment_id=%s error=%s", payload.assessmentId, exc)
        raise N8nCryptoError(f"Network error: {exc}", code="NETWORK_ERROR") from exc
    finally:
        if owns_client:
            await http.aclose()

    if response.is_error:
        logger.error(
            "n8n_webhook_rejected assessment_id=%s status=%s", payload.assessmentId, response.status_code
        )
        raise N8nCryptoError(
            f"Webhook request failed: {response.reason_phrase}",
            code=response.text[:500],
            status_code=response.status_code,
        )

    try:
        body: Dict[str, Any] = response.json()
    except ValueError as exc:
        logger.error("n8n_webhook_invalid_json assessment_id=%s", payload.assessmentId)
        raise N8nCryptoError(
            "Webhook returned invalid JSON response", code="INVALID_JSON", status_code=502
        ) from exc

    result = WebhookResponse.model_validate(body if isinstance(body, dict) else {"success": False})
    if not result.success:
        raise N8nCryptoError(
            result.error or result.message or "Webhook returned error", code="WEBHOOK_ERROR"
        )

    logger.info("n8n_webhook_accepted assessment_id=%s", result.assessmentId or payload.assessmentId)
    return result
