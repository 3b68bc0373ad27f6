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

NO_NOTES_OPTION = "None"
ADD_NOTE_OPTION = "I have a note"

GOAL_PROMPT = "What is your training goal?"
LEVEL_PROMPT = "What is your current fitness level?"
DAYS_PROMPT = "How many days a week do you want to train?"
DURATION_PROMPT = "How long can you spend on each workout?"
EQUIPMENT_PROMPT = "Which equipment do you have? You can pick more than one."
NOTES_PROMPT = "Finally, anything I should know? Injuries, health conditions or anything else to keep in mind?"


def _welcome(form: Mapping[str, Any]) -> Script:
    return Script(
        messages=("Hi! I'm your personal training coach. I'll put together a program just for you.",),
        follow_up=(f"First question: {GOAL_PROMPT[0].lower()}{GOAL_PROMPT[1:]}",),
        next_step="goal",
    )


def _goal(form: Mapping[str, Any]) -> Script:
    return Script(
        messages=(f"Great choice! We'll build a solid program for {form['goal']}.",),
        follow_up=(LEVEL_PROMPT,),
        next_step="level",
    )


def _level(form: Mapping[str, Any]) -> Script:
    return Script(
        messages=(f"Got it, you're at {form['level']} level. I'll adjust for that.",),
        follow_up=(DAYS_PROMPT,),
        next_step="days",
    )


def _days(form: Mapping[str, Any]) -> Script:
    return Script(
        messages=(f"Okay, we'll train {form['days_per_week']} days a week.",),
        follow_up=(DURATION_PROMPT,),
        next_step="duration",
    )


def _duration(form: Mapping[str, Any]) -> Script:
    return Script(
        messages=(f"Great! I'll plan {form['duration']} minute workouts.",),
        follow_up=(EQUIPMENT_PROMPT,),
        next_step="equipment",
    )


def _equipment(form: Mapping[str, Any]) -> Script:
    return Script(
        messages=(f"Perfect! We'll make a great program with {', '.join(form['equipment'])}.",),
        follow_up=(NOTES_PROMPT,),
        next_step="notes",
    )


def _notes(form: Mapping[str, Any]) -> Script:
    notes = form["notes"]
    if notes == NO_NOTES_OPTION:
        return Script(messages=("Okay, nothing special to note.",), follow_up=(), next_step=SUMMARY)
    if notes == ADD_NOTE_OPTION:
        return Script(messages=("You can type your note here:",), next_step="notes_input")
    return _note_taken(form)


def _note_given(form: Mapping[str, Any]) -> bool:
    notes = form.get("notes")
    return has_value(notes) and notes != ADD_NOTE_OPTION


def _note_taken(form: Mapping[str, Any]) -> Script:
    return Script(messages=("Understood, I'll keep that in mind.",), follow_up=(), next_step=SUMMARY)


def _summary(form: Mapping[str, Any]) -> Script:
    return Script(
        messages=("Great! Here's a summary of your choices:",),
        follow_up=("Anything you'd like to change?",),
    )


WORKOUT_PLAN_FLOW = FlowDefinition(
    name="workout_plan",
    defaults={
        "goal": "",
        "level": "",
        "days_per_week": "",
        "duration": "",
        "equipment": [],
        "notes": "",
    },
    steps={
        WELCOME: Step(WELCOME, _welcome),
        "goal": Step("goal", _goal, field="goal"),
        "level": Step("level", _level, field="level"),
        "days": Step("days", _days, field="days_per_week"),
        "duration": Step("duration", _duration, field="duration"),
        "equipment": Step("equipment", _equipment, field="equipment"),
        "notes": Step("notes", _notes, field="notes"),
        "notes_input": Step("notes_input", _note_taken, gate=_note_given),
        SUMMARY: Step(SUMMARY, _summary),
    },
    required=("goal", "level", "days_per_week", "duration", "equipment"),
    edit_targets={
        "goal": EditTarget("goal", ("goal",), GOAL_PROMPT),
        "level": EditTarget("level", ("level",), LEVEL_PROMPT),
        "days": EditTarget("days_per_week", ("days",), DAYS_PROMPT),
        "duration": EditTarget("duration", ("duration",), DURATION_PROMPT),
        "equipment": EditTarget("equipment", ("equipment",), "Which equipment do you have?"),
        "notes": EditTarget("notes", ("notes", "notes_input"), "Do you have any special notes?"),
    },
    edit_intro="Okay, let's change it:",
    generating_message="Building your program... This can take 30-40 seconds.",
)
