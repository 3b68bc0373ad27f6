from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Optional

from services.assessment_client.errors import AssessmentApiError

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class ProgressInfo:
    """Progress of a submission.

    ``percentage`` is derived from the attempt count alone. The backend
    exposes no progress signal, so this is an estimate of elapsed budget,
    not of work done.
    """

    percentage: int
    current_attempt: int
    max_attempts: int
    message: str
    estimated_seconds_remaining: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class AssessmentCallbacks:
    """Caller hooks. A hook that raises is logged and never breaks the session driving it."""

    on_complete: Callable[[Dict[str, Any]], None]
    on_error: Callable[[AssessmentApiError], None]
    on_progress: Optional[Callable[[ProgressInfo], None]] = None

    def progress(self, info: ProgressInfo) -> None:
        if self.on_progress is not None:
            self._call("on_progress", self.on_progress, info)

    def complete(self, record: Dict[str, Any]) -> None:
        self._call("on_complete", self.on_complete, record)

    def error(self, error: AssessmentApiError) -> None:
        self._call("on_error", self.on_error, error)

    @staticmethod
    def _call(name: str, fn: Callable[[Any], None], arg: Any) -> None:
        try:
            fn(arg)
        except Exception:
            logger.exception("assessment_callback_failed callback=%s", name)
