"""Polls the status endpoint until an assessment reaches a terminal status.

A poll session is a three-state machine (polling, done-success,
done-failure). Ticks run strictly one after another: the next tick is
scheduled only once the previous fetch has resolved, so a session never
has two requests in flight.

Cancellation is cooperative. ``abort()`` stops future ticks and makes the
session drop whatever an in-flight fetch returns; it does not tear down
the HTTP request itself.
"""
from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Dict, Optional

import httpx

from services.assessment_client.callbacks import AssessmentCallbacks, ProgressInfo, round_half_up
from services.assessment_client.config import PollingConfig
from services.assessment_client.errors import AssessmentApiError, ErrorCode
from services.assessment_client.messages import calculate_time_remaining, translate
from services.assessment_client.scheduler import AsyncioScheduler, Scheduler, SessionToken

logger = logging.getLogger(__name__)

STATUS_PATH = "/api/crypto-assessments/{assessment_id}"


class PollState(str, Enum):
    POLLING = "polling"
    SUCCEEDED = "done_success"
    FAILED = "done_failure"


def poll_progress(attempt: int, config: PollingConfig) -> ProgressInfo:
    """Progress for a given attempt: ``attempt / max_attempts`` clamped to [0, 100]."""
    percentage = min(max(attempt / config.max_attempts * 100, 0), 100)
    remaining = calculate_time_remaining(attempt, config.max_attempts, config.interval_sec)
    return ProgressInfo(
        percentage=round_half_up(percentage),
        current_attempt=min(attempt, config.max_attempts),
        max_attempts=config.max_attempts,
        message=translate("progress.polling", config.locale),
        estimated_seconds_remaining=round_half_up(remaining),
    )


class StatusPoller:
    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        base_url: str = "",
        config: Optional[PollingConfig] = None,
        headers: Optional[Dict[str, str]] = None,
        scheduler_factory: Callable[[], Scheduler] = AsyncioScheduler,
    ) -> None:
        self._http = http
        self._base_url = base_url.rstrip("/")
        self.config = config or PollingConfig()
        self._headers = headers or {}
        self._scheduler_factory = scheduler_factory

    async def fetch_status(self, assessment_id: str) -> Optional[Dict[str, Any]]:
        """GET the job record. None when the body carries no assessment.

        Raises AssessmentApiError(FETCH_ERROR) on network errors, non-2xx
        responses and unreadable bodies.
        """
        url = f"{self._base_url}{STATUS_PATH.format(assessment_id=assessment_id)}"
        try:
            response = await self._http.get(url, headers=self._headers)
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise AssessmentApiError.from_code(
                ErrorCode.FETCH_ERROR,
                {"assessmentId": assessment_id, "error": exc},
                locale=self.config.locale,
            ) from exc

        assessment = body.get("assessment") if isinstance(body, dict) else None
        return assessment if isinstance(assessment, dict) and assessment else None

    async def get_assessment(self, assessment_id: str) -> Dict[str, Any]:
        """One-shot read, raising NOT_FOUND instead of returning None."""
        record = await self.fetch_status(assessment_id)
        if record is None:
            raise AssessmentApiError.from_code(
                ErrorCode.NOT_FOUND, {"assessmentId": assessment_id}, locale=self.config.locale
            )
        return record

    def session(self, assessment_id: str, callbacks: AssessmentCallbacks) -> "PollSession":
        return PollSession(self, assessment_id, callbacks, self._scheduler_factory())

    def start(self, assessment_id: str, callbacks: AssessmentCallbacks) -> "PollSession":
        """Create a session and run it as a task on the current loop."""
        session = self.session(assessment_id, callbacks)
        session.start()
        return session


class PollSession:
    def __init__(
        self,
        poller: StatusPoller,
        assessment_id: str,
        callbacks: AssessmentCallbacks,
        scheduler: Scheduler,
    ) -> None:
        self._poller = poller
        self.assessment_id = assessment_id
        self._callbacks = callbacks
        self._scheduler = scheduler
        self._token = SessionToken()
        self._task: Optional[asyncio.Task] = None
        self.config = poller.config
        self.state = PollState.POLLING
        self.attempts = 0
        self.aborted = False

    @property
    def done(self) -> bool:
        return self.state is not PollState.POLLING

    def _live(self, token: int) -> bool:
        return not self.aborted and self.state is PollState.POLLING and self._token.is_current(token)

    def start(self) -> asyncio.Task:
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self.run())
        return self._task

    async def wait(self) -> None:
        if self._task is not None:
            await self._task

    def abort(self) -> None:
        """Stop polling. Nothing is delivered after this returns. Safe to call repeatedly."""
        if self.aborted:
            return
        self.aborted = True
        self._token.invalidate()
        self._scheduler.cancel()
        logger.info("poll_aborted assessment_id=%s attempts=%d", self.assessment_id, self.attempts)

    async def run(self) -> None:
        token = self._token.current
        while self._live(token):
            if not await self._tick(token):
                return
            if not await self._scheduler.sleep(self.config.interval_sec):
                return

    async def _tick(self, token: int) -> bool:
        """One poll tick. True means the record is still generating."""
        self.attempts += 1
        self._callbacks.progress(poll_progress(self.attempts, self.config))

        if self.attempts > self.config.max_attempts:
            self._fail(
                ErrorCode.POLLING_TIMEOUT,
                {"assessmentId": self.assessment_id, "attempts": self.attempts},
            )
            return False

        try:
            record = await self._poller.fetch_status(self.assessment_id)
        except AssessmentApiError as exc:
            if self._live(token):
                self._finish(PollState.FAILED, exc)
            return False

        if not self._live(token):
            return False

        if record is None:
            self._fail(ErrorCode.NOT_FOUND, {"assessmentId": self.assessment_id})
            return False

        status = record.get("status")
        if status == "ready":
            self._finish(PollState.SUCCEEDED, record)
            return False
        if status == "failed":
            error_message = record.get("error_message")
            self._fail(
                ErrorCode.ASSESSMENT_FAILED,
                {"assessmentId": self.assessment_id, "errorMessage": error_message},
                message=error_message or None,
            )
            return False
        if status == "generating":
            return True

        self._fail(
            ErrorCode.UNEXPECTED_ERROR,
            {"assessmentId": self.assessment_id, "status": status},
        )
        return False

    def _fail(self, code: ErrorCode, details: Dict[str, Any], message: Optional[str] = None) -> None:
        error = AssessmentApiError.from_code(code, details, message=message, locale=self.config.locale)
        self._finish(PollState.FAILED, error)

    def _finish(self, state: PollState, outcome: Any) -> None:
        # state flips before the callback so a re-entrant abort or late tick sees a finished session
        self.state = state
        self._token.invalidate()
        self._scheduler.cancel()
        if state is PollState.SUCCEEDED:
            logger.info("poll_ready assessment_id=%s attempts=%d", self.assessment_id, self.attempts)
            self._callbacks.complete(outcome)
        else:
            logger.warning(
                "poll_failed assessment_id=%s code=%s attempts=%d",
                self.assessment_id, outcome.code.value, self.attempts,
            )
            self._callbacks.error(outcome)
