from __future__ import annotations

from linecraft.qa.taxonomy import IssueCode
from linecraft.repair.strategies.base import RepairStrategy, lower_temperature

CATEGORY = "color_tone"
DESCRIPTION = "Anything other than pure black lines on pure white."

STRATEGIES = (
    RepairStrategy(
        issue_code=IssueCode.COLOR_DETECTED.value,
        priority=1,
        base_confidence=90,
        action="regenerate",
        prompt_override=(
            "[CRITICAL] OUTPUT MUST BE PURE BLACK (#000000) LINES ON PURE WHITE (#FFFFFF) ONLY. "
            "NO colors whatsoever."
        ),
        negative_boost=("color", "colored", "colorful", "tinted", "sepia", "hue"),
        escalation=lambda context: lower_temperature(0.5, "Color persisted; reduce sampling randomness"),
        max_attempts=3,
        notes="Color is absolutely forbidden",
    ),
    RepairStrategy(
        issue_code=IssueCode.GREY_TONES_DETECTED.value,
        priority=1,
        base_confidence=85,
        action="regenerate",
        prompt_override=(
            "[CRITICAL] NO GREY TONES. Only pure black lines on pure white. "
            "If you would use grey for shading, leave it WHITE instead."
        ),
        negative_boost=("grey", "gray", "grey tones", "grey shading", "tonal variation", "shading"),
        escalation=lambda context: lower_temperature(0.5, "Grey tones persisted; reduce sampling randomness"),
        max_attempts=3,
        notes="Grey tones create unprintable results",
    ),
    RepairStrategy(
        issue_code=IssueCode.GRADIENT_DETECTED.value,
        priority=1,
        base_confidence=85,
        action="regenerate",
        prompt_override=(
            "[CRITICAL] NO GRADIENTS. Every pixel is either pure black or pure white. "
            "Hard, crisp line edges only."
        ),
        negative_boost=("gradient", "gradual", "fade", "soft edge", "blend"),
        escalation=lambda context: lower_temperature(0.5, "Gradients persisted; reduce sampling randomness"),
        max_attempts=3,
        notes="Gradients cannot be colored",
    ),
    RepairStrategy(
        issue_code=IssueCode.SHADING_DETECTED.value,
        priority=1,
        base_confidence=85,
        action="regenerate",
        prompt_override=(
            "[CRITICAL] NO SHADING. No light/shadow effects. Flat, uniform line work only. "
            "The colorist adds shading."
        ),
        negative_boost=("shading", "shadow", "shadows", "highlights", "lighting"),
        escalation=lambda context: lower_temperature(0.5, "Shading persisted; reduce sampling randomness"),
        max_attempts=3,
        notes="Shading prevents user creativity",
    ),
)
