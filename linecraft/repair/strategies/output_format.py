from __future__ import annotations

from linecraft.qa.taxonomy import IssueCode
from linecraft.repair.strategies.base import RepairStrategy, lower_temperature

CATEGORY = "format"
DESCRIPTION = "The output must be one flat line-art page."

STRATEGIES = (
    RepairStrategy(
        issue_code=IssueCode.MOCKUP_FORMAT_DETECTED.value,
        priority=1,
        base_confidence=95,
        action="regenerate",
        prompt_override=(
            "[CRITICAL] OUTPUT MUST BE THE ILLUSTRATION ITSELF, NOT A MOCKUP. NO paper on table, "
            "NO desk visible, NO art supplies. Output = the line art filling the entire canvas."
        ),
        negative_boost=("mockup", "product shot", "paper on table", "art supplies", "desk", "staged", "photo of"),
        parameter_suggestions=lower_temperature(0.7, "Mockup framing responds to lower temperature"),
        escalation=lambda context: lower_temperature(0.5, "Mockup framing persisted"),
        max_attempts=3,
        notes="Mockup format is completely wrong output",
    ),
    RepairStrategy(
        issue_code=IssueCode.MULTIPLE_IMAGES_DETECTED.value,
        priority=1,
        base_confidence=95,
        action="regenerate",
        prompt_override=(
            "[CRITICAL] OUTPUT MUST BE A SINGLE ILLUSTRATION. ONE image only. NO grid, NO collage, "
            "NO multiple panels. Fill the entire canvas with ONE cohesive illustration."
        ),
        negative_boost=("multiple images", "grid", "collage", "panels", "collection", "series"),
        escalation=lambda context: lower_temperature(0.5, "Multiple panels persisted"),
        max_attempts=3,
        notes="Multiple images indicate prompt misunderstanding",
    ),
    RepairStrategy(
        issue_code=IssueCode.CONTAINS_FRAME_BORDER.value,
        priority=4,
        base_confidence=70,
        action="modify_prompt",
        prompt_override="[MINOR] Do not include decorative frame or border unless specifically requested.",
        negative_boost=("frame", "border"),
        max_attempts=2,
        notes="Minor - may accept if frame is simple",
    ),
    RepairStrategy(
        issue_code=IssueCode.CONTAINS_TEXT.value,
        priority=2,
        base_confidence=85,
        action="regenerate",
        prompt_override=(
            "[REPAIR] NO TEXT in the image unless specifically requested. "
            "NO words, letters, numbers, signs, or labels."
        ),
        negative_boost=("text", "words", "letters", "writing", "labels"),
        escalation=lambda context: lower_temperature(0.6, "Text persisted"),
        max_attempts=2,
        notes="Text often renders poorly",
    ),
    RepairStrategy(
        issue_code=IssueCode.PHOTO_REALISTIC.value,
        priority=1,
        base_confidence=90,
        action="regenerate",
        prompt_override=(
            "[CRITICAL] OUTPUT MUST BE LINE ART, NOT PHOTOREALISTIC. "
            "Black outlines on white background. Coloring book style."
        ),
        negative_boost=("photorealistic", "realistic", "photograph", "3d render"),
        escalation=lambda context: lower_temperature(0.5, "Photorealism persisted"),
        max_attempts=3,
        notes="Completely wrong output type",
    ),
)
