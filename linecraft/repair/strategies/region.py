from __future__ import annotations

from linecraft.qa.taxonomy import IssueCode
from linecraft.repair.strategies.base import RepairStrategy, lower_temperature, simplify
from linecraft.utils.catalog import complexity_spec, downgrade_complexity, style_spec
from linecraft.utils.types import ParameterSuggestions, RepairContext

CATEGORY = "region"
DESCRIPTION = "Closed, fillable regions of a usable size."


def _closed_regions(context: RepairContext) -> str:
    return (
        "[CRITICAL] ALL REGIONS MUST BE 100% CLOSED. Every shape must be watertight. "
        f"All line endpoints must CONNECT. Style: {style_spec(context.style_id).line_weight}."
    )


def _larger_regions(context: RepairContext) -> str:
    spec = complexity_spec(context.complexity_id)
    return (
        f"[REPAIR] Increase region sizes. {style_spec(context.style_id).line_weight}. "
        f"No region smaller than {spec.min_region_mm}mm. Merge tiny regions into larger ones."
    )


def _one_tier_simpler(context: RepairContext) -> ParameterSuggestions:
    return ParameterSuggestions(
        complexity_id=downgrade_complexity(context.complexity_id),
        reasons=("Regions too small for the current complexity",),
    )


STRATEGIES = (
    RepairStrategy(
        issue_code=IssueCode.UNCLOSED_REGIONS.value,
        priority=1,
        base_confidence=80,
        action="regenerate",
        prompt_override=_closed_regions,
        negative_boost=("open paths", "gaps", "broken lines", "disconnected"),
        escalation=simplify(1, temperature=0.5, reason="Open regions persisted; fewer, larger shapes"),
        max_attempts=3,
        notes="Unclosed regions cannot be colored",
    ),
    RepairStrategy(
        issue_code=IssueCode.UNCLOSED_WATER_REGIONS.value,
        priority=1,
        base_confidence=85,
        action="regenerate",
        prompt_override=(
            "[CRITICAL] WATER MUST BE ENCLOSED SHAPES, NOT WAVY LINES. Draw water as a series of "
            "ENCLOSED wave shapes. Each wave crest = a CLOSED colorable region. NO decorative wavy lines."
        ),
        negative_boost=("wavy lines", "water lines", "wave lines", "ripple lines"),
        escalation=lambda context: lower_temperature(0.5, "Open water lines persisted"),
        max_attempts=3,
        notes="Water is commonly rendered wrong",
    ),
    RepairStrategy(
        issue_code=IssueCode.UNCLOSED_HAIR_STRANDS.value,
        priority=1,
        base_confidence=85,
        action="regenerate",
        prompt_override=(
            "[CRITICAL] HAIR MUST BE ENCLOSED SECTIONS, NOT INDIVIDUAL STRANDS. "
            "Group hair into 5-15 enclosed sections. NO individual hair strand lines."
        ),
        negative_boost=("hair strands", "individual hairs", "hair lines", "detailed hair"),
        escalation=simplify(1, reason="Hair strands persisted; simplify the subject"),
        max_attempts=3,
        notes="Hair commonly has too many strands",
    ),
    RepairStrategy(
        issue_code=IssueCode.REGIONS_TOO_SMALL.value,
        priority=2,
        base_confidence=75,
        action="regenerate",
        prompt_override=_larger_regions,
        negative_boost=("tiny details", "micro details", "intricate"),
        parameter_suggestions=_one_tier_simpler,
        escalation=simplify(2, reason="Regions still too small; drop two complexity tiers"),
        max_attempts=2,
        notes="May need complexity downgrade",
    ),
    RepairStrategy(
        issue_code=IssueCode.SOLID_BLACK_FILLS.value,
        priority=1,
        base_confidence=90,
        action="regenerate",
        prompt_override=(
            "[CRITICAL] NO SOLID BLACK FILLED AREAS. Everything must be OUTLINED, not filled. "
            "Pupils = outlined circles. Shadows = don't exist (leave white)."
        ),
        negative_boost=("solid black", "filled black", "black fill", "silhouette"),
        escalation=lambda context: lower_temperature(0.5, "Solid fills persisted"),
        max_attempts=3,
        notes="Solid fills rob users of coloring opportunity",
    ),
)
