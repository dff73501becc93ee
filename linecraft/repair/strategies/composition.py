from __future__ import annotations

from linecraft.qa.taxonomy import IssueCode
from linecraft.repair.strategies.base import RepairStrategy, simplify
from linecraft.utils.catalog import complexity_spec
from linecraft.utils.types import RepairContext

CATEGORY = "composition"
DESCRIPTION = "Density, rest areas, balance and framing of the page."


def _too_dense(context: RepairContext) -> str:
    rule = complexity_spec(context.complexity_id).rest_area_rule
    return f"[REPAIR] Image is TOO DENSE. Add breathing room. {rule}. Aim for at least 15-20% white space."


def _needs_rest_areas(context: RepairContext) -> str:
    rule = complexity_spec(context.complexity_id).rest_area_rule
    return f"[REPAIR] MUST INCLUDE REST AREAS. {rule}. At least 15% of canvas should be clear white space."


def _more_rest_areas(context: RepairContext) -> str:
    return f"[REPAIR] Need MORE rest areas. {complexity_spec(context.complexity_id).rest_area_rule}"


STRATEGIES = (
    RepairStrategy(
        issue_code=IssueCode.HORROR_VACUI.value,
        priority=2,
        base_confidence=80,
        action="regenerate",
        prompt_override=_too_dense,
        negative_boost=("dense", "busy", "cluttered", "packed", "crowded"),
        escalation=simplify(1, reason="Page still too dense; reduce complexity"),
        max_attempts=2,
        notes="Overly dense images are exhausting to color",
    ),
    RepairStrategy(
        issue_code=IssueCode.NO_REST_AREAS.value,
        priority=2,
        base_confidence=80,
        action="regenerate",
        prompt_override=_needs_rest_areas,
        negative_boost=("dense", "busy", "no breathing room"),
        escalation=simplify(1, reason="Rest areas still missing; reduce complexity"),
        max_attempts=2,
        notes="Rest areas prevent colorist fatigue",
    ),
    RepairStrategy(
        issue_code=IssueCode.INSUFFICIENT_REST_AREAS.value,
        priority=3,
        base_confidence=75,
        action="regenerate",
        prompt_override=_more_rest_areas,
        negative_boost=("dense", "busy"),
        max_attempts=2,
        notes="Minor composition issue",
    ),
    RepairStrategy(
        issue_code=IssueCode.COMPOSITION_IMBALANCED.value,
        priority=4,
        base_confidence=60,
        action="modify_prompt",
        prompt_override="[MINOR] Distribute visual weight more evenly across the canvas.",
        negative_boost=("unbalanced", "lopsided"),
        max_attempts=2,
        notes="Minor - may accept with warning",
    ),
    RepairStrategy(
        issue_code=IssueCode.SUBJECT_CROPPED.value,
        priority=3,
        base_confidence=70,
        action="regenerate",
        prompt_override=(
            "[REPAIR] Keep main subject fully within canvas bounds. Leave at least 10% margin on all edges."
        ),
        negative_boost=("cropped", "cut off"),
        max_attempts=2,
        notes="Cropping can lose important elements",
    ),
)
