from __future__ import annotations

from typing import Any, Mapping

from services.chat_flow.engine import (
    SUMMARY,
    WELCOME,
    EditTarget,
    FlowDefinition,
    Script,
    Step,
    has_value,
)

CRYPTO_OPTIONS = ("BTC/USDT", "ETH/USDT", "SOL/USDT", "BNB/USDT", "XRP/USDT")
AMOUNT_SUGGESTIONS = ("1,000", "5,000", "10,000", "25,000")
CUSTOM_AMOUNT_OPTION = "Enter custom amount"
RISK_TOLERANCE_OPTIONS = ("low", "medium", "high")
TIME_HORIZON_OPTIONS = ("short", "medium", "long")
NO_NOTES_OPTION = "None"
ADD_NOTE_OPTION = "Add note"

AMOUNT_PROMPT = "How much are you planning to invest?"
RISK_PROMPT = "What is your risk tolerance?"
TIME_PROMPT = "How long do you plan to hold the investment?"
NOTES_PROMPT = "Is there anything you'd like to add as a note?"


def _welcome(form: Mapping[str, Any]) -> Script:
    return Script(
        messages=("Hi! Welcome to the crypto investment assessment. Let's work out a strategy that suits you.",),
        follow_up=("Which crypto pair should we analyze?",),
        next_step="crypto",
    )


def _crypto(form: Mapping[str, Any]) -> Script:
    return Script(
        messages=(f"I'll prepare a full analysis for {form['crypto_symbol']}.",),
        follow_up=(AMOUNT_PROMPT,),
        next_step="amount",
    )


def _amount_confirmed(form: Mapping[str, Any]) -> Script:
    return Script(
        messages=(f"I'll take your {form['investment_amount']} investment into account.",),
        follow_up=(RISK_PROMPT,),
        next_step="risk",
    )


def _amount(form: Mapping[str, Any]) -> Script:
    if form["investment_amount"] == CUSTOM_AMOUNT_OPTION:
        return Script(messages=("Please type the investment amount.",), next_step="amount_input")
    return _amount_confirmed(form)


def _custom_amount_given(form: Mapping[str, Any]) -> bool:
    amount = form.get("investment_amount")
    return has_value(amount) and amount != CUSTOM_AMOUNT_OPTION


def _risk(form: Mapping[str, Any]) -> Script:
    return Script(
        messages=(f"I'll tailor the suggestions to a {form['risk_tolerance']} risk tolerance.",),
        follow_up=(TIME_PROMPT,),
        next_step="time",
    )


def _time(form: Mapping[str, Any]) -> Script:
    return Script(
        messages=(f"The analysis will target a {form['time_horizon']} time horizon.",),
        follow_up=(NOTES_PROMPT,),
        next_step="notes",
    )


def _notes(form: Mapping[str, Any]) -> Script:
    notes = form["notes"]
    if notes == NO_NOTES_OPTION:
        return Script(messages=("Alright, no extra notes.",), follow_up=(), next_step=SUMMARY)
    if notes == ADD_NOTE_OPTION:
        return Script(messages=("You can type your note here:",), next_step="notes_input")
    return _note_taken(form)


def _note_given(form: Mapping[str, Any]) -> bool:
    notes = form.get("notes")
    return has_value(notes) and notes != ADD_NOTE_OPTION


def _note_taken(form: Mapping[str, Any]) -> Script:
    return Script(messages=("Got it, I'll keep your note in mind.",), follow_up=(), next_step=SUMMARY)


def _summary(form: Mapping[str, Any]) -> Script:
    return Script(
        messages=("Great! Here are your preferences:",),
        follow_up=("Anything you'd like to change?",),
    )


CRYPTO_ASSESSMENT_FLOW = FlowDefinition(
    name="crypto_assessment",
    defaults={
        "crypto_symbol": "",
        "investment_amount": "",
        "risk_tolerance": "",
        "time_horizon": "",
        "notes": "",
    },
    steps={
        WELCOME: Step(WELCOME, _welcome),
        "crypto": Step("crypto", _crypto, field="crypto_symbol"),
        "amount": Step("amount", _amount, field="investment_amount"),
        "amount_input": Step("amount_input", _amount_confirmed, gate=_custom_amount_given),
        "risk": Step("risk", _risk, field="risk_tolerance"),
        "time": Step("time", _time, field="time_horizon"),
        "notes": Step("notes", _notes, field="notes"),
        "notes_input": Step("notes_input", _note_taken, gate=_note_given),
        SUMMARY: Step(SUMMARY, _summary),
    },
    required=("crypto_symbol", "investment_amount", "risk_tolerance", "time_horizon"),
    edit_targets={
        "crypto": EditTarget("crypto_symbol", ("crypto",), "Which crypto pair should we analyze?"),
        "amount": EditTarget("investment_amount", ("amount", "amount_input"), AMOUNT_PROMPT),
        "risk": EditTarget("risk_tolerance", ("risk",), RISK_PROMPT),
        "time": EditTarget("time_horizon", ("time",), TIME_PROMPT),
        "notes": EditTarget("notes", ("notes", "notes_input"), NOTES_PROMPT),
    },
    edit_intro="Okay, let's update that:",
    generating_message="Starting your analysis... This can take 30-60 seconds.",
)
