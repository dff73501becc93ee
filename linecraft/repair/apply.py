from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple

from linecraft.utils.types import GenerationParameters, ParameterChange, RepairPlan

_PARAMETER_LABELS = (
    ("style_id", "Style"),
    ("complexity_id", "Complexity"),
    ("audience_id", "Audience"),
    ("temperature", "Temperature"),
)


@dataclass(frozen=True)
class AppliedRepair:
    parameters: GenerationParameters
    negative_boosts: Tuple[str, ...]
    repair_instructions: Tuple[str, ...]
    changes: Tuple[ParameterChange, ...]
    changes_summary: Tuple[str, ...]


def apply_repair_plan(
    plan: RepairPlan,
    parameters: GenerationParameters,
    negative_boosts: Sequence[str] = (),
) -> AppliedRepair:
    """
    Derive the next attempt's inputs from a repair plan. Negative boosts
    accumulate across attempts; repair instructions come from this plan only.
    """
    summary: List[str] = []
    if plan.prompt_overrides:
        summary.append(f"Added {len(plan.prompt_overrides)} repair instruction(s)")

    merged_boosts = list(negative_boosts)
    added = [term for term in plan.negative_boosts if term not in merged_boosts]
    merged_boosts.extend(added)
    if added:
        summary.append(f"Added {len(added)} negative terms")

    suggestions = plan.parameter_suggestions
    reason = "; ".join(suggestions.reasons) or plan.summary
    updates = {}
    changes: List[ParameterChange] = []
    for field_name, label in _PARAMETER_LABELS:
        proposed = getattr(suggestions, field_name)
        current = getattr(parameters, field_name)
        if proposed is None or proposed == current:
            continue
        updates[field_name] = proposed
        changes.append(
            ParameterChange(
                field=field_name,
                old_value=current,
                new_value=proposed,
                reason=reason,
                attempt_number=plan.attempt_number + 1,
            )
        )
        summary.append(f"{label}: {current} -> {proposed}")

    return AppliedRepair(
        parameters=parameters.with_changes(**updates) if updates else parameters,
        negative_boosts=tuple(merged_boosts),
        repair_instructions=plan.prompt_overrides,
        changes=tuple(changes),
        changes_summary=tuple(summary),
    )
