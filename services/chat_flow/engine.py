"""Scripted conversational wizard as an explicit state machine.

``transition(flow, state, event)`` is pure: it returns the next state and
the timers to start. ``ChatFlowRunner`` applies those timers through a
scheduler and feeds the resulting events back in.

Every step runs its script at most once (the ``processed`` set). Scripts
are split in two phases around the simulated typing delays, and each
scheduled phase carries the state's ``generation``. Edits and resets bump
the generation, so a phase scheduled before them is dropped on arrival.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from services.assessment_client.scheduler import AsyncioScheduler, Scheduler

logger = logging.getLogger(__name__)

TYPING_DELAY_SEC = 1.0
FOLLOW_UP_DELAY_SEC = 0.5

WELCOME = "welcome"
SUMMARY = "summary"
EDIT_SELECTION = "edit_selection"
GENERATING = "generating"


# ============================================================================
# FLOW DEFINITION
# ============================================================================

@dataclass(frozen=True)
class Script:
    """What a step says once its gate opens.

    ``messages`` are posted after the typing delay. Without ``follow_up``
    the flow moves to ``next_step`` right then; with it, the follow-up
    messages and the move happen after a second, shorter delay.
    """

    messages: Tuple[str, ...]
    next_step: Optional[str] = None
    follow_up: Optional[Tuple[str, ...]] = None


@dataclass(frozen=True)
class Step:
    name: str
    script: Callable[[Mapping[str, Any]], Script]
    field: Optional[str] = None
    gate: Optional[Callable[[Mapping[str, Any]], bool]] = None

    def is_open(self, form: Mapping[str, Any]) -> bool:
        if self.gate is not None:
            return self.gate(form)
        if self.field is None:
            return True
        return has_value(form.get(self.field))


@dataclass(frozen=True)
class EditTarget:
    field: str
    steps: Tuple[str, ...]
    prompt: str


@dataclass(frozen=True)
class FlowDefinition:
    name: str
    defaults: Mapping[str, Any]
    steps: Mapping[str, Step]
    required: Tuple[str, ...]
    edit_targets: Mapping[str, EditTarget]
    edit_intro: str
    generating_message: str


def has_value(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, set)):
        return len(value) > 0
    return True


# ============================================================================
# STATE & EVENTS
# ============================================================================

@dataclass(frozen=True)
class Message:
    role: str  # "ai" | "user"
    content: str


@dataclass(frozen=True)
class ChatState:
    step: str
    form: Mapping[str, Any]
    messages: Tuple[Message, ...] = ()
    processed: frozenset = frozenset()
    typing: bool = False
    busy: bool = False
    edit_target: str = ""
    generation: int = 0

    def is_complete(self, flow: FlowDefinition) -> bool:
        return all(has_value(self.form.get(name)) for name in flow.required)


@dataclass(frozen=True)
class Start:
    pass


@dataclass(frozen=True)
class Select:
    field: str
    value: Any


@dataclass(frozen=True)
class ScriptPhase:
    step: str
    phase: int
    generation: int


@dataclass(frozen=True)
class Edit:
    target: str


@dataclass(frozen=True)
class ResetToSummary:
    pass


@dataclass(frozen=True)
class Confirm:
    pass


Event = Union[Start, Select, ScriptPhase, Edit, ResetToSummary, Confirm]


@dataclass(frozen=True)
class Schedule:
    delay: float
    event: ScriptPhase


def initial_state(flow: FlowDefinition) -> ChatState:
    form = {key: (list(value) if isinstance(value, list) else value) for key, value in flow.defaults.items()}
    return ChatState(step=WELCOME, form=form)


# ============================================================================
# TRANSITIONS
# ============================================================================

def _say(state: ChatState, *contents: str, role: str = "ai") -> ChatState:
    added = tuple(Message(role, text) for text in contents)
    return replace(state, messages=state.messages + added)


def _display(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ", ".join(str(item) for item in value)
    return str(value)


def _script_for(flow: FlowDefinition, state: ChatState, step_name: str) -> Script:
    if step_name == EDIT_SELECTION:
        target = flow.edit_targets[state.edit_target]
        return Script(messages=(flow.edit_intro, target.prompt), next_step=state.edit_target)
    if step_name == GENERATING:
        return Script(messages=(flow.generating_message,), next_step=GENERATING)

    script = flow.steps[step_name].script(state.form)
    # while editing, a step that was already answered sends the user back to the summary
    if state.edit_target and script.next_step and script.next_step in state.processed:
        return Script(messages=script.messages, next_step=SUMMARY, follow_up=())
    return script


def _gate_open(flow: FlowDefinition, state: ChatState) -> bool:
    if state.step == EDIT_SELECTION:
        return state.edit_target in flow.edit_targets
    if state.step == GENERATING:
        return False
    step = flow.steps.get(state.step)
    return step is not None and step.is_open(state.form)


def _advance(flow: FlowDefinition, state: ChatState) -> Tuple[ChatState, List[Schedule]]:
    """Enter the current step's script if nothing is running and its gate is open."""
    if state.busy or state.step in state.processed or not _gate_open(flow, state):
        return state, []
    state = replace(
        state,
        processed=state.processed | {state.step},
        typing=True,
        busy=True,
    )
    return state, [Schedule(TYPING_DELAY_SEC, ScriptPhase(state.step, 1, state.generation))]


def _enter(flow: FlowDefinition, state: ChatState, next_step: Optional[str]) -> Tuple[ChatState, List[Schedule]]:
    state = replace(state, busy=False)
    if next_step is not None:
        state = replace(state, step=next_step)
        if next_step == SUMMARY:
            state = replace(state, edit_target="")
    return _advance(flow, state)


def _run_phase(flow: FlowDefinition, state: ChatState, event: ScriptPhase) -> Tuple[ChatState, List[Schedule]]:
    if event.generation != state.generation or not state.busy:
        return state, []

    script = _script_for(flow, state, event.step)
    if event.phase == 1:
        state = replace(_say(state, *script.messages), typing=False)
        if script.follow_up is None:
            return _enter(flow, state, script.next_step)
        return state, [Schedule(FOLLOW_UP_DELAY_SEC, ScriptPhase(event.step, 2, state.generation))]

    state = _say(state, *(script.follow_up or ()))
    return _enter(flow, state, script.next_step)


def transition(flow: FlowDefinition, state: ChatState, event: Event) -> Tuple[ChatState, List[Schedule]]:
    if isinstance(event, Start):
        return _advance(flow, state)

    if isinstance(event, Select):
        form = dict(state.form)
        form[event.field] = list(event.value) if isinstance(event.value, (list, tuple)) else event.value
        state = _say(replace(state, form=form), _display(event.value), role="user")
        return _advance(flow, state)

    if isinstance(event, ScriptPhase):
        return _run_phase(flow, state, event)

    if isinstance(event, Edit):
        target = flow.edit_targets.get(event.target)
        if target is None:
            logger.warning("chat_flow_unknown_edit_target flow=%s target=%s", flow.name, event.target)
            return state, []
        form = dict(state.form)
        default = flow.defaults.get(target.field, "")
        form[target.field] = list(default) if isinstance(default, list) else default
        cleared = set(target.steps) | {EDIT_SELECTION, SUMMARY}
        state = replace(
            state,
            form=form,
            processed=state.processed - cleared,
            edit_target=event.target,
            step=EDIT_SELECTION,
            typing=False,
            busy=False,
            generation=state.generation + 1,
        )
        return _advance(flow, state)

    if isinstance(event, ResetToSummary):
        return replace(
            state,
            step=SUMMARY,
            edit_target="",
            typing=False,
            busy=False,
            generation=state.generation + 1,
        ), []

    if isinstance(event, Confirm):
        if state.step != SUMMARY or state.busy or not state.is_complete(flow):
            return state, []
        state = replace(state, typing=True, busy=True)
        return state, [Schedule(TYPING_DELAY_SEC, ScriptPhase(GENERATING, 1, state.generation))]

    raise TypeError(f"unknown chat flow event: {event!r}")


# ============================================================================
# RUNNER
# ============================================================================

class ChatFlowRunner:
    """Holds the current state and drives scheduled script phases."""

    def __init__(
        self,
        flow: FlowDefinition,
        scheduler: Optional[Scheduler] = None,
        on_change: Optional[Callable[[ChatState], None]] = None,
    ) -> None:
        self.flow = flow
        self.state = initial_state(flow)
        self._scheduler = scheduler or AsyncioScheduler()
        self._on_change = on_change

    def dispatch(self, event: Event) -> ChatState:
        self.state, timers = transition(self.flow, self.state, event)
        if isinstance(event, (Edit, ResetToSummary)):
            self._scheduler.cancel()
        for timer in timers:
            self._scheduler.call_later(timer.delay, lambda e=timer.event: self.dispatch(e))
        if self._on_change is not None:
            self._on_change(self.state)
        return self.state

    def start(self) -> ChatState:
        return self.dispatch(Start())

    def select(self, field_name: str, value: Any) -> ChatState:
        return self.dispatch(Select(field_name, value))

    def start_edit(self, target: str) -> ChatState:
        return self.dispatch(Edit(target))

    def reset_to_summary(self) -> ChatState:
        return self.dispatch(ResetToSummary())

    def confirm(self) -> ChatState:
        return self.dispatch(Confirm())

    def close(self) -> None:
        self._scheduler.cancel()

    @property
    def is_complete(self) -> bool:
        return self.state.is_complete(self.flow)

    @property
    def form_data(self) -> Dict[str, Any]:
        return dict(self.state.form)
