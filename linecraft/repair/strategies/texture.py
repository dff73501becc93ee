from __future__ import annotations

from linecraft.qa.taxonomy import IssueCode
from linecraft.repair.strategies.base import RepairStrategy, lower_temperature, simplify

CATEGORY = "texture"
DESCRIPTION = "Tonal texture techniques that leave no colorable regions."

_TEXTURE_TEMPERATURE = lower_temperature(0.6, "Texture marks respond to lower temperature")

STRATEGIES = (
    RepairStrategy(
        issue_code=IssueCode.STIPPLING_DETECTED.value,
        priority=1,
        base_confidence=90,
        action="regenerate",
        prompt_override=(
            "[CRITICAL] ABSOLUTELY NO STIPPLING. No dots for texture or shading. "
            "Use OUTLINED SHAPES instead of dots."
        ),
        negative_boost=("stippling", "stippled", "dots", "dotted", "pointillism", "dot shading"),
        parameter_suggestions=_TEXTURE_TEMPERATURE,
        escalation=simplify(1, temperature=0.4, reason="Stippling persisted; simplify and cool down"),
        max_attempts=3,
        notes="Stippling creates grey tonal areas",
    ),
    RepairStrategy(
        issue_code=IssueCode.HATCHING_DETECTED.value,
        priority=1,
        base_confidence=90,
        action="regenerate",
        prompt_override=(
            "[CRITICAL] ABSOLUTELY NO HATCHING. No parallel lines for shading. "
            "Leave would-be-shaded areas WHITE."
        ),
        negative_boost=("hatching", "hatched", "parallel lines", "line shading", "pen and ink"),
        parameter_suggestions=_TEXTURE_TEMPERATURE,
        escalation=simplify(1, temperature=0.4, reason="Hatching persisted; simplify and cool down"),
        max_attempts=3,
        notes="Hatching creates grey tonal areas",
    ),
    RepairStrategy(
        issue_code=IssueCode.CROSSHATCHING_DETECTED.value,
        priority=1,
        base_confidence=90,
        action="regenerate",
        prompt_override="[CRITICAL] NO CROSS-HATCHING. No intersecting parallel lines for shading.",
        negative_boost=("crosshatching", "cross-hatching", "grid shading"),
        parameter_suggestions=_TEXTURE_TEMPERATURE,
        escalation=simplify(1, temperature=0.4, reason="Cross-hatching persisted; simplify and cool down"),
        max_attempts=3,
        notes="Cross-hatching creates dense grey areas",
    ),
    RepairStrategy(
        issue_code=IssueCode.TEXTURE_MARKS_DETECTED.value,
        priority=1,
        base_confidence=85,
        action="regenerate",
        prompt_override=(
            "[CRITICAL] NO DECORATIVE TEXTURE MARKS. Every line must be part of a CLOSED shape boundary."
        ),
        negative_boost=("texture marks", "decorative strokes", "loose strokes"),
        escalation=lambda context: lower_temperature(0.5, "Texture marks persisted; reduce sampling randomness"),
        max_attempts=3,
        notes="Texture marks don't create colorable regions",
    ),
    RepairStrategy(
        issue_code=IssueCode.DECORATIVE_TEXTURE_LINES.value,
        priority=1,
        base_confidence=85,
        action="regenerate",
        prompt_override=(
            "[CRITICAL] NO DECORATIVE TEXTURE LINES. Represent texture through OUTLINED SHAPES only:\n"
            "- KNIT/FABRIC = outlined geometric shapes, NOT texture strokes\n"
            "- FUR = outlined SECTIONS, NOT individual hair strokes\n"
            "- WOOD = outlined PLANKS, NOT grain lines\n"
            "- WATER = enclosed WAVE SHAPES, NOT wavy lines"
        ),
        negative_boost=(
            "fur strokes",
            "hair strokes",
            "fabric texture",
            "knit texture",
            "wood grain lines",
            "decorative lines",
        ),
        escalation=simplify(1, reason="Texture lines persisted; fewer surfaces to texture"),
        max_attempts=3,
        notes="Common issue - must convert texture to shapes",
    ),
)
