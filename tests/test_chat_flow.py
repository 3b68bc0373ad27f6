import unittest

from services.assessment_client.scheduler import ManualScheduler
from services.chat_flow.crypto_flow import (
    ADD_NOTE_OPTION,
    AMOUNT_PROMPT,
    CRYPTO_ASSESSMENT_FLOW,
    CUSTOM_AMOUNT_OPTION,
    NO_NOTES_OPTION,
)
from services.chat_flow.engine import (
    TYPING_DELAY_SEC,
    ChatFlowRunner,
    ScriptPhase,
    Select,
    Start,
    initial_state,
    transition,
)
from services.chat_flow.workout_flow import WORKOUT_PLAN_FLOW


def ai_messages(runner):
    return [m.content for m in runner.state.messages if m.role == "ai"]


class CryptoChatFlowTests(unittest.TestCase):
    def setUp(self):
        self.scheduler = ManualScheduler()
        self.runner = ChatFlowRunner(CRYPTO_ASSESSMENT_FLOW, scheduler=self.scheduler)

    def answer(self, field, value):
        self.runner.select(field, value)
        self.scheduler.run_until_idle()

    def reach_summary(self):
        self.runner.start()
        self.scheduler.run_until_idle()
        self.answer("crypto_symbol", "BTC/USDT")
        self.answer("investment_amount", "1,000")
        self.answer("risk_tolerance", "medium")
        self.answer("time_horizon", "short")
        self.answer("notes", NO_NOTES_OPTION)

    def test_welcome_uses_typing_then_follow_up_delay(self):
        self.runner.start()
        self.assertTrue(self.runner.state.typing)
        self.assertEqual(self.runner.state.messages, ())

        self.scheduler.advance(TYPING_DELAY_SEC)
        self.assertFalse(self.runner.state.typing)
        self.assertEqual(len(ai_messages(self.runner)), 1)
        self.assertEqual(self.runner.state.step, "welcome")

        self.scheduler.advance(0.5)
        self.assertEqual(len(ai_messages(self.runner)), 2)
        self.assertEqual(self.runner.state.step, "crypto")

    def test_step_waits_for_its_field(self):
        self.runner.start()
        self.scheduler.run_until_idle()

        self.assertEqual(self.runner.state.step, "crypto")
        self.assertFalse(self.scheduler.has_pending)

    def test_full_walkthrough_reaches_generating(self):
        self.reach_summary()

        self.assertEqual(self.runner.state.step, "summary")
        self.assertTrue(self.runner.is_complete)
        self.assertEqual(ai_messages(self.runner)[-2:], ["Great! Here are your preferences:", "Anything you'd like to change?"])

        self.runner.confirm()
        self.scheduler.run_until_idle()

        self.assertEqual(self.runner.state.step, "generating")
        self.assertEqual(ai_messages(self.runner)[-1], "Starting your analysis... This can take 30-60 seconds.")
        self.assertEqual(len(self.runner.state.messages), 19)

    def test_step_script_runs_once(self):
        self.runner.start()
        self.scheduler.run_until_idle()

        self.runner.select("crypto_symbol", "BTC/USDT")
        self.runner.select("crypto_symbol", "ETH/USDT")
        self.scheduler.run_until_idle()

        acks = [m for m in ai_messages(self.runner) if m.startswith("I'll prepare")]
        self.assertEqual(acks, ["I'll prepare a full analysis for ETH/USDT."])

    def test_custom_amount_goes_through_amount_input(self):
        self.runner.start()
        self.scheduler.run_until_idle()
        self.answer("crypto_symbol", "SOL/USDT")
        self.answer("investment_amount", CUSTOM_AMOUNT_OPTION)

        self.assertEqual(self.runner.state.step, "amount_input")
        self.assertEqual(ai_messages(self.runner)[-1], "Please type the investment amount.")

        self.answer("investment_amount", "7500")
        self.assertEqual(self.runner.state.step, "risk")
        self.assertEqual(self.runner.form_data["investment_amount"], "7500")

    def test_add_note_collects_free_text(self):
        self.runner.start()
        self.scheduler.run_until_idle()
        for field, value in (
            ("crypto_symbol", "BTC/USDT"),
            ("investment_amount", "5,000"),
            ("risk_tolerance", "low"),
            ("time_horizon", "long"),
            ("notes", ADD_NOTE_OPTION),
        ):
            self.answer(field, value)

        self.assertEqual(self.runner.state.step, "notes_input")

        self.answer("notes", "I already hold some BTC")
        self.assertEqual(self.runner.state.step, "summary")
        self.assertEqual(self.runner.form_data["notes"], "I already hold some BTC")

    def test_edit_clears_field_and_returns_to_summary(self):
        self.reach_summary()

        self.runner.start_edit("amount")
        self.assertEqual(self.runner.state.step, "edit_selection")
        self.assertEqual(self.runner.form_data["investment_amount"], "")
        self.scheduler.run_until_idle()

        self.assertEqual(self.runner.state.step, "amount")
        self.assertEqual(ai_messages(self.runner)[-2:], ["Okay, let's update that:", AMOUNT_PROMPT])

        self.answer("investment_amount", "25,000")

        self.assertEqual(self.runner.state.step, "summary")
        self.assertEqual(self.runner.state.edit_target, "")
        self.assertEqual(self.runner.form_data["investment_amount"], "25,000")
        self.assertEqual(self.runner.form_data["crypto_symbol"], "BTC/USDT")
        self.assertNotIn("What is your risk tolerance?", ai_messages(self.runner)[-4:])
        self.assertEqual(ai_messages(self.runner)[-1], "Anything you'd like to change?")

    def test_edit_during_pending_script_discards_it(self):
        self.runner.start()
        self.scheduler.run_until_idle()
        self.runner.select("crypto_symbol", "BTC/USDT")

        self.runner.start_edit("crypto")
        self.scheduler.run_until_idle()

        self.assertNotIn("I'll prepare a full analysis for BTC/USDT.", ai_messages(self.runner))
        self.assertEqual(self.runner.state.step, "crypto")

    def test_reset_to_summary(self):
        self.reach_summary()
        self.runner.start_edit("risk")

        self.runner.reset_to_summary()
        self.scheduler.run_until_idle()

        self.assertEqual(self.runner.state.step, "summary")
        self.assertEqual(self.runner.state.edit_target, "")
        self.assertFalse(self.runner.state.typing)

    def test_confirm_ignored_when_incomplete(self):
        self.runner.reset_to_summary()
        self.runner.confirm()

        self.assertFalse(self.scheduler.has_pending)
        self.assertEqual(self.runner.state.step, "summary")

    def test_on_change_sees_every_state(self):
        seen = []
        runner = ChatFlowRunner(CRYPTO_ASSESSMENT_FLOW, scheduler=self.scheduler, on_change=seen.append)
        runner.start()
        self.scheduler.run_until_idle()

        self.assertEqual([s.step for s in seen], ["welcome", "welcome", "crypto"])


class TransitionTests(unittest.TestCase):
    def test_stale_phase_is_ignored(self):
        state, timers = transition(CRYPTO_ASSESSMENT_FLOW, initial_state(CRYPTO_ASSESSMENT_FLOW), Start())
        stale = ScriptPhase("welcome", 1, state.generation - 1)

        after, effects = transition(CRYPTO_ASSESSMENT_FLOW, state, stale)

        self.assertIs(after, state)
        self.assertEqual(effects, [])
        self.assertEqual(timers[0].event.generation, state.generation)

    def test_transition_does_not_mutate_input(self):
        state = initial_state(CRYPTO_ASSESSMENT_FLOW)
        after, _ = transition(CRYPTO_ASSESSMENT_FLOW, state, Select("crypto_symbol", "BTC/USDT"))

        self.assertEqual(state.form["crypto_symbol"], "")
        self.assertEqual(after.form["crypto_symbol"], "BTC/USDT")
        self.assertEqual(after.messages[-1].role, "user")


class WorkoutChatFlowTests(unittest.TestCase):
    def test_equipment_needs_at_least_one_item(self):
        scheduler = ManualScheduler()
        runner = ChatFlowRunner(WORKOUT_PLAN_FLOW, scheduler=scheduler)
        runner.start()
        scheduler.run_until_idle()

        for field, value in (
            ("goal", "Build muscle"),
            ("level", "Beginner"),
            ("days_per_week", "3"),
            ("duration", "45"),
        ):
            runner.select(field, value)
            scheduler.run_until_idle()

        self.assertEqual(runner.state.step, "equipment")

        runner.select("equipment", [])
        self.assertFalse(scheduler.has_pending)

        runner.select("equipment", ["Dumbbells", "Resistance bands"])
        scheduler.run_until_idle()
        self.assertEqual(runner.state.step, "notes")
        self.assertIn(
            "Perfect! We'll make a great program with Dumbbells, Resistance bands.",
            [m.content for m in runner.state.messages],
        )

        runner.select("notes", "None")
        scheduler.run_until_idle()
        self.assertEqual(runner.state.step, "summary")
        self.assertTrue(runner.is_complete)

        runner.confirm()
        scheduler.run_until_idle()
        self.assertEqual(runner.state.step, "generating")


if __name__ == "__main__":
    unittest.main()
