from __future__ import annotations

from linecraft.qa.taxonomy import IssueCode
from linecraft.repair.strategies.base import RepairStrategy
from linecraft.utils.catalog import audience_spec, downgrade_complexity, effective_complexity
from linecraft.utils.types import ParameterSuggestions, RepairContext

CATEGORY = "audience"
DESCRIPTION = "Content and difficulty suited to the target audience."


def _not_suitable(context: RepairContext) -> str:
    guidance = audience_spec(context.audience_id).content_guidance
    return f"[CRITICAL] Content not suitable for {context.audience_id}. Content guidance: {guidance}"


def _too_complex_for_audience(context: RepairContext) -> str:
    ceiling = audience_spec(context.audience_id).max_complexity
    return f"[REPAIR] Complexity exceeds max for {context.audience_id}: {ceiling}. Simplify."


def _cap_to_audience(context: RepairContext) -> ParameterSuggestions:
    capped = effective_complexity(context.complexity_id, context.audience_id)
    if capped == context.complexity_id:
        capped = downgrade_complexity(context.complexity_id)
    return ParameterSuggestions(
        complexity_id=capped,
        reasons=(f"Cap complexity for {context.audience_id}",),
    )


def _below_audience_cap(context: RepairContext) -> ParameterSuggestions:
    capped = effective_complexity(context.complexity_id, context.audience_id)
    return ParameterSuggestions(
        complexity_id=downgrade_complexity(capped),
        temperature=0.6,
        reasons=(f"Still too complex for {context.audience_id}; go below the audience maximum",),
    )


STRATEGIES = (
    RepairStrategy(
        issue_code=IssueCode.INAPPROPRIATE_CONTENT.value,
        priority=1,
        base_confidence=0,
        action="manual_review",
        prompt_override=_not_suitable,
        negative_boost=("inappropriate", "mature", "adult content"),
        max_attempts=0,
        notes="Content policy violation; requires human review",
    ),
    RepairStrategy(
        issue_code=IssueCode.SCARY_FOR_YOUNG.value,
        priority=1,
        base_confidence=90,
        action="regenerate",
        prompt_override=(
            "[CRITICAL] Content may frighten young children. Remove teeth, fangs, claws, angry expressions, "
            "fire, weapons. Make everything FRIENDLY and CUTE."
        ),
        negative_boost=("scary", "frightening", "teeth", "fangs", "claws", "angry", "threatening"),
        parameter_suggestions=ParameterSuggestions(
            style_id="Kawaii",
            reasons=("Switch to a friendly style for young audiences",),
        ),
        escalation=lambda context: ParameterSuggestions(
            style_id="Kawaii",
            complexity_id=downgrade_complexity(context.complexity_id),
            temperature=0.5,
            reasons=("Frightening content persisted; friendlier style and simpler scene",),
        ),
        max_attempts=3,
        notes="Young audience safety is paramount",
    ),
    RepairStrategy(
        issue_code=IssueCode.TOO_COMPLEX_FOR_AUDIENCE.value,
        priority=2,
        base_confidence=80,
        action="modify_params",
        prompt_override=_too_complex_for_audience,
        negative_boost=("complex", "intricate", "detailed"),
        parameter_suggestions=_cap_to_audience,
        escalation=_below_audience_cap,
        max_attempts=2,
        notes="Auto-downgrade complexity",
    ),
)
