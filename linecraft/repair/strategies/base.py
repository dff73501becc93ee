from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Tuple, Union

from linecraft.utils.catalog import downgrade_complexity
from linecraft.utils.types import ParameterSuggestions, RepairContext

ACTIONS = ("regenerate", "modify_prompt", "modify_params", "accept", "manual_review")
MANUAL_ACTIONS = ("manual_review",)

PromptOverride = Union[str, Callable[[RepairContext], str]]
SuggestionSource = Union[ParameterSuggestions, Callable[[RepairContext], ParameterSuggestions]]
Escalation = Callable[[RepairContext], ParameterSuggestions]


@dataclass(frozen=True)
class RepairStrategy:
    issue_code: str
    priority: int
    base_confidence: float
    action: str
    prompt_override: PromptOverride = ""
    negative_boost: Tuple[str, ...] = ()
    parameter_suggestions: Optional[SuggestionSource] = None
    escalation: Optional[Escalation] = None
    escalation_threshold: int = 1
    max_attempts: int = 2
    notes: str = ""

    def __post_init__(self) -> None:
        if self.action not in ACTIONS:
            raise ValueError(f"Unknown repair action '{self.action}' for {self.issue_code}")
        if self.priority < 1:
            raise ValueError(f"Priority must be >= 1 for {self.issue_code}")

    @property
    def manual(self) -> bool:
        return self.action in MANUAL_ACTIONS

    def render_override(self, context: RepairContext) -> str:
        if callable(self.prompt_override):
            return self.prompt_override(context)
        return self.prompt_override

    def base_suggestion(self, context: RepairContext) -> Optional[ParameterSuggestions]:
        if self.parameter_suggestions is None:
            return None
        if callable(self.parameter_suggestions):
            return self.parameter_suggestions(context)
        return self.parameter_suggestions

    def suggestion_for(
        self,
        context: RepairContext,
        prior_occurrences: int,
        allow_escalation: bool = True,
    ) -> Tuple[Optional[ParameterSuggestions], bool]:
        """Return the parameter suggestion and whether it is the escalated one."""
        if (
            allow_escalation
            and self.escalation is not None
            and prior_occurrences >= self.escalation_threshold
        ):
            return self.escalation(context), True
        return self.base_suggestion(context), False


def lower_temperature(value: float, reason: str) -> ParameterSuggestions:
    return ParameterSuggestions(temperature=value, reasons=(reason,))


def simplify(steps: int = 1, temperature: Optional[float] = None, reason: str = "") -> Escalation:
    """Escalation that drops the complexity tier relative to the current attempt."""

    def _escalate(context: RepairContext) -> ParameterSuggestions:
        return ParameterSuggestions(
            complexity_id=downgrade_complexity(context.complexity_id, steps),
            temperature=temperature,
            reasons=(reason or f"Reduce complexity by {steps} tier(s)",),
        )

    return _escalate
