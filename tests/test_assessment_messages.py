import asyncio
import unittest

from services.assessment_client.config import PollingConfig
from services.assessment_client.errors import AssessmentApiError, ErrorCode
from services.assessment_client.messages import (
    calculate_time_remaining,
    format_error_message,
    get_status_message,
    translate,
)
from services.assessment_client.scheduler import AsyncioScheduler, ManualScheduler, SessionToken
from services.assessment_client.validation import AssessmentForm, validate_assessment_request


class MessageCatalogTests(unittest.TestCase):
    def test_every_error_code_has_a_message_in_each_locale(self):
        for locale in ("en", "tr"):
            for code in ErrorCode:
                text = translate(f"error.{code.value}", locale)
                self.assertNotEqual(text, f"error.{code.value}")

    def test_unknown_locale_falls_back_to_english(self):
        self.assertEqual(translate("status.ready", "de"), "Analysis complete!")

    def test_status_messages(self):
        self.assertEqual(get_status_message("generating"), "Analyzing...")
        self.assertEqual(get_status_message("ready", "tr"), "Analiz tamamlandı!")
        self.assertEqual(get_status_message("archived"), "Unknown status")

    def test_format_error_message_prefers_catalog_message(self):
        error = AssessmentApiError.from_code(ErrorCode.POLLING_TIMEOUT, locale="tr")
        self.assertEqual(format_error_message(error), "Analiz 2 dakikayı aştı. Lütfen tekrar deneyin.")
        self.assertEqual(format_error_message(RuntimeError("disk full")), "disk full")
        self.assertEqual(format_error_message(None), "An unknown error occurred.")

    def test_time_remaining_never_negative(self):
        self.assertEqual(calculate_time_remaining(10, 40, 3), 90)
        self.assertEqual(calculate_time_remaining(45, 40, 3), 0)

    def test_error_to_dict_hides_details(self):
        error = AssessmentApiError.from_code(ErrorCode.FETCH_ERROR, {"status": 500})
        self.assertEqual(error.to_dict(), {"code": "FETCH_ERROR", "message": "Could not retrieve the assessment status."})


class ValidationTests(unittest.TestCase):
    def _form(self, **overrides):
        values = dict(
            owner="user-1",
            crypto_symbol="BTC/USDT",
            investment_amount=100,
            risk_tolerance="low",
            time_horizon="medium",
        )
        values.update(overrides)
        return AssessmentForm(**values)

    def test_valid_form(self):
        self.assertEqual(validate_assessment_request(self._form()), (True, []))

    def test_collects_every_problem(self):
        valid, errors = validate_assessment_request(
            self._form(owner="", crypto_symbol="", investment_amount=99, notes="x" * 501)
        )
        self.assertFalse(valid)
        self.assertEqual(
            errors,
            [
                "User id is required",
                "Crypto symbol is required",
                "Investment amount must be at least 100",
                "Notes can be at most 500 characters",
            ],
        )

    def test_messages_follow_locale(self):
        _, errors = validate_assessment_request(self._form(risk_tolerance=""), locale="tr")
        self.assertEqual(errors, ["Risk toleransı seçmelisiniz"])


class PollingConfigTests(unittest.TestCase):
    def test_defaults_give_two_minute_deadline(self):
        self.assertEqual(PollingConfig().deadline_sec, 120)

    def test_rejects_zero_attempts(self):
        with self.assertRaises(ValueError):
            PollingConfig(max_attempts=0)


class SchedulerTests(unittest.TestCase):
    def test_manual_scheduler_fires_due_timer_on_advance(self):
        scheduler = ManualScheduler()
        fired = []
        scheduler.call_later(1.0, lambda: fired.append(scheduler.now()))

        self.assertEqual(scheduler.advance(0.5), 0)
        self.assertEqual(scheduler.advance(0.5), 1)
        self.assertEqual(fired, [1.0])
        self.assertFalse(scheduler.has_pending)

    def test_manual_scheduler_keeps_one_timer(self):
        scheduler = ManualScheduler()
        fired = []
        scheduler.call_later(1.0, lambda: fired.append("first"))
        scheduler.call_later(1.0, lambda: fired.append("second"))

        scheduler.run_until_idle()

        self.assertEqual(fired, ["second"])

    def test_manual_scheduler_cancel_drops_timer(self):
        scheduler = ManualScheduler()
        scheduler.call_later(1.0, lambda: self.fail("cancelled timer fired"))
        scheduler.cancel()
        self.assertEqual(scheduler.run_until_idle(), 0)

    def test_asyncio_scheduler_sleep_elapses(self):
        async def run():
            return await AsyncioScheduler().sleep(0.01)

        self.assertTrue(asyncio.run(run()))

    def test_asyncio_scheduler_cancel_wakes_sleeper(self):
        async def run():
            scheduler = AsyncioScheduler()
            loop = asyncio.get_running_loop()
            loop.call_soon(scheduler.cancel)
            return await scheduler.sleep(60)

        self.assertFalse(asyncio.run(run()))

    def test_asyncio_scheduler_call_later_and_cancel(self):
        async def run():
            scheduler = AsyncioScheduler()
            fired = []
            scheduler.call_later(0.01, lambda: fired.append("kept"))
            await asyncio.sleep(0.05)
            scheduler.call_later(0.01, lambda: fired.append("dropped"))
            scheduler.cancel()
            await asyncio.sleep(0.05)
            return fired

        self.assertEqual(asyncio.run(run()), ["kept"])

    def test_session_token_invalidation(self):
        token = SessionToken()
        first = token.current
        self.assertTrue(token.is_current(first))
        token.invalidate()
        self.assertFalse(token.is_current(first))
        self.assertGreater(token.issue(), first)


if __name__ == "__main__":
    unittest.main()
