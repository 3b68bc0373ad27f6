from __future__ import annotations

import os
from dataclasses import dataclass

from services.assessment_client.messages import DEFAULT_LOCALE

DEFAULT_POLL_INTERVAL_SEC = 3.0
DEFAULT_MAX_ATTEMPTS = 40          # 40 * 3s = 120s client-side deadline
DEFAULT_WEBHOOK_TIMEOUT_SEC = 30.0
DEFAULT_API_BASE_URL = os.getenv("ASSESSMENT_API_BASE_URL", "")

# orchestrator maps poller progress [0, 100] into [15, 95]
PROGRESS_CREATING = 5
PROGRESS_TRIGGERING = 10
PROGRESS_POLL_FLOOR = 15
PROGRESS_POLL_SPAN = 0.8


@dataclass(frozen=True)
class PollingConfig:
    interval_sec: float = DEFAULT_POLL_INTERVAL_SEC
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    webhook_timeout_sec: float = DEFAULT_WEBHOOK_TIMEOUT_SEC
    locale: str = DEFAULT_LOCALE

    def __post_init__(self) -> None:
        if self.interval_sec < 0:
            raise ValueError("interval_sec must be >= 0")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.webhook_timeout_sec <= 0:
            raise ValueError("webhook_timeout_sec must be > 0")

    @property
    def deadline_sec(self) -> float:
        return self.interval_sec * self.max_attempts

    @classmethod
    def from_env(cls) -> "PollingConfig":
        return cls(
            interval_sec=float(os.getenv("ASSESSMENT_POLL_INTERVAL_SEC", DEFAULT_POLL_INTERVAL_SEC)),
            max_attempts=int(os.getenv("ASSESSMENT_POLL_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS)),
            webhook_timeout_sec=float(os.getenv("ASSESSMENT_WEBHOOK_TIMEOUT_SEC", DEFAULT_WEBHOOK_TIMEOUT_SEC)),
            locale=os.getenv("ASSESSMENT_LOCALE", DEFAULT_LOCALE),
        )
