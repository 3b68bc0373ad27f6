import asyncio
import unittest

import httpx

from services.assessment_client.callbacks import AssessmentCallbacks
from services.assessment_client.config import PollingConfig
from services.assessment_client.errors import ErrorCode
from services.assessment_client.scheduler import ManualScheduler
from services.assessment_client.status_poller import PollState, StatusPoller, poll_progress

BASE_URL = "http://api.test"


class Recorder:
    def __init__(self):
        self.completed = []
        self.errors = []
        self.progress = []

    def callbacks(self):
        return AssessmentCallbacks(
            on_complete=self.completed.append,
            on_error=self.errors.append,
            on_progress=self.progress.append,
        )


def status_sequence(*statuses, error_message=None):
    """Handler answering successive GETs with the given statuses; repeats the last one."""
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        status = statuses[min(len(calls), len(statuses)) - 1]
        record = {"id": "abc", "status": status}
        if status == "failed":
            record["error_message"] = error_message
        if status == "ready":
            record["assessment_data"] = {"decision": "BUY", "confidence": 7}
        return httpx.Response(200, json={"assessment": record})

    return handler, calls


class StatusPollerTests(unittest.TestCase):
    def _run_session(self, handler, config=None):
        recorder = Recorder()
        schedulers = []

        def scheduler_factory():
            scheduler = ManualScheduler()
            schedulers.append(scheduler)
            return scheduler

        async def run():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
                poller = StatusPoller(
                    http,
                    base_url=BASE_URL,
                    config=config or PollingConfig(),
                    scheduler_factory=scheduler_factory,
                )
                session = poller.session("abc", recorder.callbacks())
                await session.run()
                return session

        session = asyncio.run(run())
        return session, recorder, schedulers[0]

    def test_ready_after_two_generating_completes_once_after_three_ticks(self):
        handler, calls = status_sequence("generating", "generating", "ready")
        session, recorder, scheduler = self._run_session(handler)

        self.assertEqual(len(calls), 3)
        self.assertEqual(session.attempts, 3)
        self.assertEqual(session.state, PollState.SUCCEEDED)
        self.assertEqual(len(recorder.completed), 1)
        self.assertEqual(recorder.completed[0]["status"], "ready")
        self.assertEqual(recorder.errors, [])
        self.assertEqual(scheduler.sleeps, [3.0, 3.0])
        self.assertEqual(str(calls[0].url), f"{BASE_URL}/api/crypto-assessments/abc")

    def test_always_generating_times_out_after_exactly_max_attempts_fetches(self):
        handler, calls = status_sequence("generating")
        session, recorder, _ = self._run_session(handler, PollingConfig(max_attempts=5))

        self.assertEqual(len(calls), 5)
        self.assertEqual(recorder.completed, [])
        self.assertEqual(len(recorder.errors), 1)
        self.assertEqual(recorder.errors[0].code, ErrorCode.POLLING_TIMEOUT)
        self.assertEqual(session.state, PollState.FAILED)

    def test_failed_status_surfaces_backend_error_message(self):
        handler, calls = status_sequence("generating", "failed", error_message="insufficient data")
        session, recorder, _ = self._run_session(handler)

        self.assertEqual(len(calls), 2)
        self.assertEqual(len(recorder.errors), 1)
        self.assertEqual(recorder.errors[0].code, ErrorCode.ASSESSMENT_FAILED)
        self.assertEqual(recorder.errors[0].message, "insufficient data")

    def test_failed_status_without_message_uses_default(self):
        handler, _ = status_sequence("failed")
        _, recorder, _ = self._run_session(handler)

        self.assertEqual(recorder.errors[0].code, ErrorCode.ASSESSMENT_FAILED)
        self.assertEqual(recorder.errors[0].message, "The analysis failed.")

    def test_body_without_assessment_is_not_found(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={})

        _, recorder, _ = self._run_session(handler)

        self.assertEqual(len(calls), 1)
        self.assertEqual([e.code for e in recorder.errors], [ErrorCode.NOT_FOUND])

    def test_non_2xx_is_fetch_error(self):
        def handler(request):
            return httpx.Response(500, text="boom")

        _, recorder, _ = self._run_session(handler)

        self.assertEqual([e.code for e in recorder.errors], [ErrorCode.FETCH_ERROR])

    def test_network_error_is_fetch_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        _, recorder, _ = self._run_session(handler)

        self.assertEqual([e.code for e in recorder.errors], [ErrorCode.FETCH_ERROR])
        self.assertIsInstance(recorder.errors[0].details["error"], httpx.ConnectError)

    def test_unknown_status_is_unexpected_error(self):
        handler, _ = status_sequence("queued")
        _, recorder, _ = self._run_session(handler)

        self.assertEqual([e.code for e in recorder.errors], [ErrorCode.UNEXPECTED_ERROR])

    def test_progress_is_monotonic_and_reported_before_each_fetch(self):
        handler, calls = status_sequence("generating", "generating", "generating", "ready")
        _, recorder, _ = self._run_session(handler)

        percentages = [p.percentage for p in recorder.progress]
        self.assertEqual(len(percentages), len(calls))
        self.assertEqual(percentages, sorted(percentages))
        self.assertEqual([p.current_attempt for p in recorder.progress], [1, 2, 3, 4])

    def test_abort_during_inflight_fetch_suppresses_delivery(self):
        recorder = Recorder()
        started = asyncio.Event()
        release = asyncio.Event()

        async def handler(request):
            started.set()
            await release.wait()
            return httpx.Response(200, json={"assessment": {"id": "abc", "status": "ready"}})

        async def run():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
                poller = StatusPoller(http, base_url=BASE_URL, scheduler_factory=ManualScheduler)
                session = poller.start("abc", recorder.callbacks())
                await started.wait()
                session.abort()
                session.abort()
                release.set()
                await session.wait()
                return session

        session = asyncio.run(run())

        self.assertTrue(session.aborted)
        self.assertEqual(recorder.completed, [])
        self.assertEqual(recorder.errors, [])

    def test_raising_progress_hook_does_not_stall_the_session(self):
        recorder = Recorder()
        handler, calls = status_sequence("ready")

        def broken_progress(info):
            raise RuntimeError("ui bug")

        async def run():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
                poller = StatusPoller(http, base_url=BASE_URL, scheduler_factory=ManualScheduler)
                session = poller.start(
                    "abc",
                    AssessmentCallbacks(
                        on_complete=recorder.completed.append,
                        on_error=recorder.errors.append,
                        on_progress=broken_progress,
                    ),
                )
                await session.wait()
                return session

        with self.assertLogs("services.assessment_client.callbacks", level="ERROR"):
            session = asyncio.run(run())

        self.assertEqual(session.state, PollState.SUCCEEDED)
        self.assertEqual(len(calls), 1)
        self.assertEqual(len(recorder.completed), 1)
        self.assertEqual(recorder.errors, [])

    def test_raising_completion_hook_still_finishes_once(self):
        handler, calls = status_sequence("ready")
        delivered = []

        def broken_complete(record):
            delivered.append(record)
            raise ValueError("render failed")

        async def run():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
                poller = StatusPoller(http, base_url=BASE_URL, scheduler_factory=ManualScheduler)
                session = poller.session(
                    "abc", AssessmentCallbacks(on_complete=broken_complete, on_error=delivered.append)
                )
                await session.run()
                return session

        with self.assertLogs("services.assessment_client.callbacks", level="ERROR"):
            session = asyncio.run(run())

        self.assertTrue(session.done)
        self.assertEqual(len(delivered), 1)
        self.assertEqual(len(calls), 1)

    def test_deadline_tick_keeps_attempt_within_max(self):
        handler, _ = status_sequence("generating")
        _, recorder, _ = self._run_session(handler, PollingConfig(max_attempts=3))

        self.assertEqual([p.current_attempt for p in recorder.progress], [1, 2, 3, 3])
        self.assertEqual(recorder.progress[-1].percentage, 100)
        self.assertEqual(recorder.errors[0].code, ErrorCode.POLLING_TIMEOUT)

    def test_get_assessment_raises_not_found(self):
        def handler(request):
            return httpx.Response(200, json={"assessment": None})

        async def run():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
                await StatusPoller(http, base_url=BASE_URL).get_assessment("missing")

        with self.assertRaises(Exception) as ctx:
            asyncio.run(run())
        self.assertEqual(ctx.exception.code, ErrorCode.NOT_FOUND)


class PollProgressTests(unittest.TestCase):
    def test_progress_clamps_and_estimates_remaining_time(self):
        config = PollingConfig(interval_sec=3.0, max_attempts=40)

        first = poll_progress(1, config)
        self.assertEqual(first.percentage, 3)
        self.assertEqual(first.estimated_seconds_remaining, 117)

        over = poll_progress(41, config)
        self.assertEqual(over.percentage, 100)
        self.assertEqual(over.estimated_seconds_remaining, 0)
        self.assertEqual(over.current_attempt, 40)

    def test_progress_rounds_half_up(self):
        config = PollingConfig(max_attempts=8)
        # 1/8 = 12.5%
        self.assertEqual(poll_progress(1, config).percentage, 13)


if __name__ == "__main__":
    unittest.main()
