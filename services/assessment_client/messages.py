"""User-facing text for assessment statuses and errors.

Technical detail goes to logs; these strings are what callers show.
"""
from __future__ import annotations

import os
from typing import Dict

DEFAULT_LOCALE = os.getenv("ASSESSMENT_LOCALE", "en")

CATALOGS: Dict[str, Dict[str, str]] = {
    "en": {
        "error.WEBHOOK_ERROR": "Could not start the analysis. Please try again.",
        "error.WEBHOOK_FAILED": "Could not start the analysis. Please try again.",
        "error.TIMEOUT_ERROR": "The request timed out. Please try again.",
        "error.NETWORK_ERROR": "Connection error. Please check your internet connection.",
        "error.POLLING_TIMEOUT": "The analysis took longer than 2 minutes. Please try again.",
        "error.NOT_FOUND": "Assessment not found.",
        "error.ASSESSMENT_FAILED": "The analysis failed.",
        "error.FETCH_ERROR": "Could not retrieve the assessment status.",
        "error.UNEXPECTED_ERROR": "An unexpected error occurred.",
        "error.CREATE_FAILED": "Could not create the assessment.",
        "status.generating": "Analyzing...",
        "status.ready": "Analysis complete!",
        "status.failed": "The analysis failed.",
        "status.unknown": "Unknown status",
        "progress.creating": "Creating assessment...",
        "progress.triggering": "Starting analysis...",
        "progress.polling": "Analyzing...",
        "validation.owner": "User id is required",
        "validation.symbol": "Crypto symbol is required",
        "validation.amount": "Investment amount must be at least 100",
        "validation.risk": "Select a risk tolerance",
        "validation.time": "Select a time horizon",
        "validation.notes": "Notes can be at most 500 characters",
        "unknown": "An unknown error occurred.",
    },
    "tr": {
        "error.WEBHOOK_ERROR": "Analiz başlatılamadı. Lütfen tekrar deneyin.",
        "error.WEBHOOK_FAILED": "Analiz başlatılamadı. Lütfen tekrar deneyin.",
        "error.TIMEOUT_ERROR": "İstek zaman aşımına uğradı. Lütfen tekrar deneyin.",
        "error.NETWORK_ERROR": "Bağlantı hatası. Lütfen internet bağlantınızı kontrol edin.",
        "error.POLLING_TIMEOUT": "Analiz 2 dakikayı aştı. Lütfen tekrar deneyin.",
        "error.NOT_FOUND": "Değerlendirme bulunamadı.",
        "error.ASSESSMENT_FAILED": "Analiz başarısız oldu.",
        "error.FETCH_ERROR": "Değerlendirme durumu alınamadı.",
        "error.UNEXPECTED_ERROR": "Beklenmeyen bir hata oluştu.",
        "error.CREATE_FAILED": "Değerlendirme oluşturulamadı.",
        "status.generating": "Analiz yapılıyor...",
        "status.ready": "Analiz tamamlandı!",
        "status.failed": "Analiz başarısız oldu.",
        "status.unknown": "Bilinmeyen durum",
        "progress.creating": "Değerlendirme oluşturuluyor...",
        "progress.triggering": "Analiz başlatılıyor...",
        "progress.polling": "Analiz yapılıyor...",
        "validation.owner": "Kullanıcı ID'si gerekli",
        "validation.symbol": "Kripto para sembolü gerekli",
        "validation.amount": "Yatırım tutarı minimum 100 TL olmalıdır",
        "validation.risk": "Risk toleransı seçmelisiniz",
        "validation.time": "Zaman ufku seçmelisiniz",
        "validation.notes": "Notlar en fazla 500 karakter olabilir",
        "unknown": "Bilinmeyen bir hata oluştu.",
    },
}


def translate(key: str, locale: str = DEFAULT_LOCALE) -> str:
    catalog = CATALOGS.get(locale) or CATALOGS["en"]
    return catalog.get(key) or CATALOGS["en"].get(key) or key


def get_status_message(status: str, locale: str = DEFAULT_LOCALE) -> str:
    if status in ("generating", "ready", "failed"):
        return translate(f"status.{status}", locale)
    return translate("status.unknown", locale)


def format_error_message(error: object, locale: str = DEFAULT_LOCALE) -> str:
    # AssessmentApiError already carries a catalog message
    message = getattr(error, "message", None)
    if isinstance(message, str) and message:
        return message
    if isinstance(error, Exception) and str(error):
        return str(error)
    return translate("unknown", locale)


def calculate_time_remaining(current_attempt: int, max_attempts: int, interval_sec: float) -> float:
    """Seconds left before the client-side deadline, never negative."""
    return max((max_attempts - current_attempt) * interval_sec, 0)
