from __future__ import annotations

from linecraft.qa.taxonomy import IssueCode
from linecraft.repair.strategies.base import RepairStrategy, lower_temperature, simplify
from linecraft.utils.catalog import complexity_spec
from linecraft.utils.types import RepairContext

CATEGORY = "complexity"
DESCRIPTION = "Region count and detail level for the requested tier."


def _target(context: RepairContext) -> str:
    return f"{context.complexity_id} ({complexity_spec(context.complexity_id).region_range})"


STRATEGIES = (
    RepairStrategy(
        issue_code=IssueCode.TOO_COMPLEX.value,
        priority=2,
        base_confidence=75,
        action="regenerate",
        prompt_override=lambda context: f"[REPAIR] Image is too complex. Target: {_target(context)}. Simplify.",
        negative_boost=("complex", "intricate", "detailed", "busy"),
        parameter_suggestions=lower_temperature(0.6, "Excess detail responds to lower temperature"),
        escalation=simplify(1, temperature=0.6, reason="Still too complex; drop one complexity tier"),
        max_attempts=2,
        notes="May need complexity downgrade",
    ),
    RepairStrategy(
        issue_code=IssueCode.TOO_SIMPLE.value,
        priority=4,
        base_confidence=60,
        action="modify_prompt",
        prompt_override=lambda context: (
            f"[MINOR] Image is simpler than requested. Target: {_target(context)}."
        ),
        max_attempts=2,
        notes="Minor - simpler is often acceptable",
    ),
    RepairStrategy(
        issue_code=IssueCode.REGION_COUNT_EXCEEDED.value,
        priority=2,
        base_confidence=70,
        action="regenerate",
        prompt_override=lambda context: (
            f"[REPAIR] Too many regions. Target for {_target(context)}. Merge small regions."
        ),
        negative_boost=("detailed", "intricate", "many regions"),
        escalation=simplify(1, reason="Region count still exceeded; drop one complexity tier"),
        max_attempts=2,
        notes="Too many regions = too complex",
    ),
    RepairStrategy(
        issue_code=IssueCode.REGION_COUNT_INSUFFICIENT.value,
        priority=4,
        base_confidence=60,
        action="modify_prompt",
        prompt_override=lambda context: f"[MINOR] Too few regions. Target for {_target(context)}.",
        max_attempts=2,
        notes="Minor - fewer regions often acceptable",
    ),
)
