"""End-to-end assessment submission: create the row, trigger the workflow, poll.

    submitter = AssessmentSubmitter(http, base_url=API, webhook_url=HOOK)
    handle = submitter.submit(form, AssessmentCallbacks(on_complete=..., on_error=...))
    ...
    handle.cancel()   # whichever phase is running; no-op once finished

Exactly one of ``on_complete`` / ``on_error`` fires per submission unless
it is cancelled first, in which case neither does.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any, Callable, Dict, Optional

import httpx

from services.assessment_client.callbacks import AssessmentCallbacks, ProgressInfo, round_half_up
from services.assessment_client.config import (
    DEFAULT_API_BASE_URL,
    PROGRESS_CREATING,
    PROGRESS_POLL_FLOOR,
    PROGRESS_POLL_SPAN,
    PROGRESS_TRIGGERING,
    PollingConfig,
)
from services.assessment_client.errors import AssessmentApiError, ErrorCode
from services.assessment_client.job_trigger import JobTrigger
from services.assessment_client.messages import translate
from services.assessment_client.record_creator import RecordCreator
from services.assessment_client.scheduler import AsyncioScheduler, Scheduler, SessionToken
from services.assessment_client.status_poller import PollSession, StatusPoller
from services.assessment_client.validation import AssessmentForm

logger = logging.getLogger(__name__)


def rescale_poll_progress(raw_percentage: float) -> int:
    """Map poller progress [0, 100] onto the submission's [15, 95] band."""
    raw = min(max(raw_percentage, 0), 100)
    return round_half_up(PROGRESS_POLL_FLOOR + raw * PROGRESS_POLL_SPAN)


class SubmissionHandle:
    def __init__(self, callbacks: AssessmentCallbacks) -> None:
        self._callbacks = callbacks
        self._token = SessionToken()
        self._task: Optional[asyncio.Task] = None
        self._session: Optional[PollSession] = None
        self.assessment_id: Optional[str] = None
        self.cancelled = False
        self.finished = False

    @property
    def token(self) -> int:
        return self._token.current

    def cancel(self) -> None:
        if self.cancelled or self.finished:
            return
        self.cancelled = True
        self._token.invalidate()
        if self._session is not None:
            self._session.abort()
        logger.info("submission_cancelled assessment_id=%s", self.assessment_id)

    async def wait(self) -> None:
        if self._task is not None:
            await self._task

    def _live(self, token: int) -> bool:
        return not (self.finished or self.cancelled) and self._token.is_current(token)

    def _progress(self, token: int, info: ProgressInfo) -> None:
        if self._live(token):
            self._callbacks.progress(info)

    def _complete(self, token: int, record: Dict[str, Any]) -> None:
        if not self._live(token):
            return
        self.finished = True
        self._callbacks.complete(record)

    def _error(self, token: int, error: AssessmentApiError) -> None:
        if not self._live(token):
            return
        self.finished = True
        self._callbacks.error(error)


class AssessmentSubmitter:
    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        webhook_url: str,
        base_url: Optional[str] = None,
        access_token: Optional[str] = None,
        config: Optional[PollingConfig] = None,
        scheduler_factory: Callable[[], Scheduler] = AsyncioScheduler,
    ) -> None:
        self.config = config or PollingConfig()
        base_url = DEFAULT_API_BASE_URL if base_url is None else base_url
        headers = {"Authorization": f"Bearer {access_token}"} if access_token else {}
        self.creator = RecordCreator(http, base_url=base_url, headers=headers, locale=self.config.locale)
        self.trigger = JobTrigger(
            http, webhook_url, timeout_sec=self.config.webhook_timeout_sec, locale=self.config.locale
        )
        self.poller = StatusPoller(
            http,
            base_url=base_url,
            config=self.config,
            headers=headers,
            scheduler_factory=scheduler_factory,
        )

    def _phase_progress(self, percentage: int, key: str) -> ProgressInfo:
        return ProgressInfo(
            percentage=percentage,
            current_attempt=0,
            max_attempts=self.config.max_attempts,
            message=translate(key, self.config.locale),
            estimated_seconds_remaining=round_half_up(
                self.config.deadline_sec * (100 - percentage) / 100
            ),
        )

    def submit(self, form: AssessmentForm, callbacks: AssessmentCallbacks) -> SubmissionHandle:
        """Start a submission on the running loop and return its handle immediately."""
        handle = SubmissionHandle(callbacks)
        handle._task = asyncio.get_running_loop().create_task(self.run(form, handle))
        return handle

    async def run(self, form: AssessmentForm, handle: SubmissionHandle) -> None:
        token = handle.token
        try:
            handle._progress(token, self._phase_progress(PROGRESS_CREATING, "progress.creating"))
            assessment_id = await self.creator.create(form)
            handle.assessment_id = assessment_id
            if not handle._live(token):
                return

            handle._progress(token, self._phase_progress(PROGRESS_TRIGGERING, "progress.triggering"))
            await self.trigger.trigger(form.webhook_payload(assessment_id))
            if not handle._live(token):
                return

            handle._progress(token, self._phase_progress(PROGRESS_POLL_FLOOR, "progress.polling"))
            session = self.poller.session(
                assessment_id,
                AssessmentCallbacks(
                    on_progress=lambda info: handle._progress(
                        token, replace(info, percentage=rescale_poll_progress(info.percentage))
                    ),
                    on_complete=lambda record: handle._complete(token, record),
                    on_error=lambda error: handle._error(token, error),
                ),
            )
            handle._session = session
            if not handle._live(token):
                return
            await session.run()
        except AssessmentApiError as exc:
            handle._error(token, exc)
        except Exception as exc:
            if not handle._live(token):
                logger.exception("submission_error_after_close assessment_id=%s", handle.assessment_id)
                return
            logger.exception("submission_unexpected_error assessment_id=%s", handle.assessment_id)
            handle._error(
                token,
                AssessmentApiError.from_code(
                    ErrorCode.UNEXPECTED_ERROR, {"originalError": exc}, locale=self.config.locale
                ),
            )
