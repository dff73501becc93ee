from __future__ import annotations

from linecraft.qa.taxonomy import IssueCode
from linecraft.repair.strategies.base import RepairStrategy, lower_temperature
from linecraft.utils.catalog import style_spec
from linecraft.utils.types import ParameterSuggestions, RepairContext

CATEGORY = "style"
DESCRIPTION = "Line weight and shape language of the requested style."


def _match_style(context: RepairContext) -> str:
    spec = style_spec(context.style_id)
    return f"[REPAIR] Style mismatch. Must match: {context.style_id}. {spec.positive_description}"


def _line_weight(context: RepairContext) -> str:
    return f"[REPAIR] Line weight must be: {style_spec(context.style_id).line_weight}"


def _uniform_line_weight(context: RepairContext) -> str:
    spec = style_spec(context.style_id)
    if spec.uniform_lines:
        return f"[REPAIR] This style requires UNIFORM line weight: {spec.line_weight}. NO variation."
    return ""


STRATEGIES = (
    RepairStrategy(
        issue_code=IssueCode.STYLE_MISMATCH.value,
        priority=2,
        base_confidence=70,
        action="regenerate",
        prompt_override=_match_style,
        escalation=lambda context: lower_temperature(0.5, "Style drifted twice; reduce sampling randomness"),
        max_attempts=2,
        notes="Style enforcement needed",
    ),
    RepairStrategy(
        issue_code=IssueCode.LINE_WEIGHT_WRONG.value,
        priority=2,
        base_confidence=75,
        action="regenerate",
        prompt_override=_line_weight,
        escalation=lambda context: lower_temperature(0.6, "Line weight drifted twice"),
        max_attempts=2,
        notes="Line weight affects colorability",
    ),
    RepairStrategy(
        issue_code=IssueCode.LINE_WEIGHT_INCONSISTENT.value,
        priority=3,
        base_confidence=70,
        action="regenerate",
        prompt_override=_uniform_line_weight,
        negative_boost=("variable line weight", "inconsistent lines"),
        max_attempts=2,
        notes="Some styles require uniform lines",
    ),
    RepairStrategy(
        issue_code=IssueCode.CURVES_IN_GEOMETRIC.value,
        priority=1,
        base_confidence=95,
        action="regenerate",
        prompt_override=(
            "[CRITICAL] GEOMETRIC STYLE REQUIRES STRAIGHT LINES ONLY. ZERO curves, ZERO rounded corners, "
            "ZERO arcs. Every line must be perfectly straight."
        ),
        negative_boost=("curves", "curved", "round", "rounded", "circular", "arc", "organic"),
        parameter_suggestions=lower_temperature(0.4, "Straight-line styles need low temperature"),
        escalation=lambda context: lower_temperature(0.3, "Curves persisted in geometric style"),
        max_attempts=3,
        notes="Geometric is strict - curves are failure",
    ),
    RepairStrategy(
        issue_code=IssueCode.SHARP_ANGLES_IN_KAWAII.value,
        priority=2,
        base_confidence=80,
        action="regenerate",
        prompt_override=(
            "[REPAIR] KAWAII STYLE REQUIRES ALL ROUNDED CORNERS. Every corner must have minimum 2mm radius. "
            "NO sharp points."
        ),
        negative_boost=("sharp", "angular", "pointed", "hard edges"),
        max_attempts=2,
        notes="Kawaii requires softness",
    ),
    RepairStrategy(
        issue_code=IssueCode.THIN_LINES_IN_BOLD.value,
        priority=1,
        base_confidence=85,
        action="regenerate",
        prompt_override=(
            "[CRITICAL] BOLD STYLE REQUIRES THICK 4mm LINES MINIMUM. NO thin lines, NO fine details."
        ),
        negative_boost=("thin lines", "fine lines", "delicate", "detailed", "intricate"),
        parameter_suggestions=ParameterSuggestions(
            complexity_id="Very Simple",
            reasons=("Bold styles need the simplest complexity tier",),
        ),
        escalation=lambda context: ParameterSuggestions(
            complexity_id="Very Simple",
            temperature=0.5,
            reasons=("Thin lines persisted in bold style",),
        ),
        max_attempts=3,
        notes="Bold styles are for simple coloring",
    ),
)
