"""Multi-step feature form: declarative steps, per-step validation, async submit."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

VIEW_FORM = "form"
VIEW_LOADING = "loading"
VIEW_SUCCESS = "success"
VIEW_ERROR = "error"

DEFAULT_SUBMIT_ERROR = "Something went wrong while processing your request."

FIELD_TYPES = {"select", "slider", "radio", "text", "textarea", "cards", "number", "custom"}


@dataclass(frozen=True)
class FieldOption:
    value: Any
    label: str
    description: Optional[str] = None
    icon: Optional[str] = None


@dataclass(frozen=True)
class FormField:
    id: str
    type: str
    label: str
    required: bool = False
    multiple: bool = False
    default: Any = None
    options: tuple = ()
    placeholder: Optional[str] = None
    min: Optional[float] = None
    max: Optional[float] = None
    step: Optional[float] = None

    def __post_init__(self) -> None:
        if self.type not in FIELD_TYPES:
            raise ValueError(f"unknown field type {self.type!r} for field {self.id!r}")


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class FormStep:
    id: str
    title: str
    fields: tuple
    description: Optional[str] = None
    validation: Optional[Callable[[Dict[str, Any]], ValidationResult]] = None


@dataclass(frozen=True)
class FormTip:
    """Hint shown next to the form when ``condition`` holds for the current data."""

    id: str
    content: str
    kind: str = "tip"  # tip | warning | info | success
    field_id: Optional[str] = None
    condition: Optional[Callable[[Dict[str, Any], Optional[str]], bool]] = None


@dataclass(frozen=True)
class FeatureFormConfig:
    id: str
    category: str
    title: str
    steps: tuple
    on_submit: Callable[[Dict[str, Any]], Awaitable[Any]]
    description: Optional[str] = None
    credit_cost: int = 0
    tips: tuple = ()
    on_success: Optional[Callable[[Any, Dict[str, Any]], None]] = None
    on_error: Optional[Callable[[Exception, Dict[str, Any]], None]] = None


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or (isinstance(value, (list, tuple)) and len(value) == 0)


def default_step_validation(step: FormStep, data: Dict[str, Any]) -> ValidationResult:
    errors = {
        f.id: f"{f.label} is required."
        for f in step.fields
        if f.required and _is_empty(data.get(f.id))
    }
    return ValidationResult(valid=not errors, errors=errors)


def build_default_form_data(steps: tuple) -> Dict[str, Any]:
    defaults: Dict[str, Any] = {}
    for step in steps:
        for f in step.fields:
            if f.default is not None:
                defaults[f.id] = list(f.default) if isinstance(f.default, (list, tuple)) else f.default
            elif f.type == "cards" and f.multiple:
                defaults[f.id] = []
    return defaults


class FeatureForm:
    def __init__(self, config: FeatureFormConfig, initial_data: Optional[Dict[str, Any]] = None) -> None:
        self.config = config
        self._defaults = build_default_form_data(config.steps)
        self._initial = dict(initial_data or {})
        self.is_open = False
        self.current_step = 0
        self.data: Dict[str, Any] = {**self._defaults, **self._initial}
        self.errors: Dict[str, str] = {}
        self.view = VIEW_FORM
        self.is_submitting = False
        self.error: Optional[str] = None
        self.result: Any = None
        self.current_field: Optional[str] = None

    @property
    def active_step(self) -> Optional[FormStep]:
        if 0 <= self.current_step < len(self.config.steps):
            return self.config.steps[self.current_step]
        return None

    def _reset_state(self, data: Optional[Dict[str, Any]] = None) -> None:
        self.current_step = 0
        self.data = {**self._defaults, **self._initial, **(data or {})}
        self.errors = {}
        self.result = None
        self.error = None
        self.current_field = None
        self.view = VIEW_FORM

    def open(self, data: Optional[Dict[str, Any]] = None) -> None:
        self._reset_state(data)
        self.is_open = True

    def close(self) -> None:
        self._reset_state()
        self.is_open = False

    def reset(self) -> None:
        self.close()
        self.is_submitting = False

    def update(self, field_id: str, value: Any) -> None:
        self.data[field_id] = value
        self.errors.pop(field_id, None)

    def validate_step(self, index: int) -> ValidationResult:
        if not 0 <= index < len(self.config.steps):
            return ValidationResult(valid=True)
        step = self.config.steps[index]
        result = step.validation(dict(self.data)) if step.validation else default_step_validation(step, self.data)
        if not result.valid:
            self.errors.update(result.errors)
        return result

    def next_step(self) -> bool:
        if self.current_step >= len(self.config.steps) - 1:
            return False
        if not self.validate_step(self.current_step).valid:
            self.view = VIEW_FORM
            return False
        self.current_step += 1
        self.current_field = None
        return True

    def prev_step(self) -> None:
        self.current_step = max(0, self.current_step - 1)
        self.current_field = None

    def set_step(self, index: int) -> None:
        self.current_step = max(0, min(index, len(self.config.steps) - 1))
        self.current_field = None

    def active_tips(self) -> List[FormTip]:
        return [
            tip for tip in self.config.tips
            if tip.condition is None or tip.condition(self.data, self.current_field)
        ]

    async def submit(self) -> Any:
        """Validate every step, then run the submit handler.

        Stops on the first invalid step and leaves the form on it. Returns
        the handler's result, or None when validation or the handler failed.
        """
        for index in range(len(self.config.steps)):
            if not self.validate_step(index).valid:
                self.current_step = index
                self.view = VIEW_FORM
                return None

        submitted = dict(self.data)
        self.is_submitting = True
        self.error = None
        self.view = VIEW_LOADING
        try:
            result = await self.config.on_submit(submitted)
        except Exception as exc:
            logger.warning("feature_form_submit_failed form=%s error=%s", self.config.id, exc)
            self.is_submitting = False
            self.error = str(exc) or DEFAULT_SUBMIT_ERROR
            self.view = VIEW_ERROR
            if self.config.on_error is not None:
                self.config.on_error(exc, submitted)
            return None

        self.is_submitting = False
        self.result = result
        self.view = VIEW_SUCCESS
        if self.config.on_success is not None:
            self.config.on_success(result, submitted)
        return result
