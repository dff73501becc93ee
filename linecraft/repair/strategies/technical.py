from __future__ import annotations

from linecraft.qa.taxonomy import IssueCode
from linecraft.repair.strategies.base import RepairStrategy, lower_temperature

CATEGORY = "technical"
DESCRIPTION = "Rendering quality of the produced image."

STRATEGIES = (
    RepairStrategy(
        issue_code=IssueCode.LOW_RESOLUTION.value,
        priority=3,
        base_confidence=70,
        action="accept",
        max_attempts=3,
        notes="Resolution is a generator limitation",
    ),
    RepairStrategy(
        issue_code=IssueCode.ARTIFACTS_PRESENT.value,
        priority=4,
        base_confidence=60,
        action="accept",
        negative_boost=("artifacts", "noise"),
        max_attempts=3,
        notes="Minor artifacts may be acceptable",
    ),
    RepairStrategy(
        issue_code=IssueCode.BLURRY_LINES.value,
        priority=3,
        base_confidence=70,
        action="regenerate",
        prompt_override="[REPAIR] Lines must be crisp and sharp. NO soft or blurry lines.",
        negative_boost=("blurry", "soft", "fuzzy", "out of focus"),
        escalation=lambda context: lower_temperature(0.5, "Blurry lines persisted"),
        max_attempts=2,
        notes="Blurry lines affect print quality",
    ),
    RepairStrategy(
        issue_code=IssueCode.ANTI_ALIASING_GREY.value,
        priority=5,
        base_confidence=50,
        action="accept",
        max_attempts=3,
        notes="Minor anti-aliasing is acceptable",
    ),
)
