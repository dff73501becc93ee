from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Union

from linecraft.utils.types import IssueDefinition

SEVERITY_ORDER: Dict[str, int] = {"critical": 0, "major": 1, "minor": 2}
UNKNOWN_CATEGORY = "unknown"


class IssueCode(str, Enum):
    # color & tone
    COLOR_DETECTED = "COLOR_DETECTED"
    GREY_TONES_DETECTED = "GREY_TONES_DETECTED"
    GRADIENT_DETECTED = "GRADIENT_DETECTED"
    SHADING_DETECTED = "SHADING_DETECTED"
    # texture
    STIPPLING_DETECTED = "STIPPLING_DETECTED"
    HATCHING_DETECTED = "HATCHING_DETECTED"
    CROSSHATCHING_DETECTED = "CROSSHATCHING_DETECTED"
    TEXTURE_MARKS_DETECTED = "TEXTURE_MARKS_DETECTED"
    DECORATIVE_TEXTURE_LINES = "DECORATIVE_TEXTURE_LINES"
    # regions
    UNCLOSED_REGIONS = "UNCLOSED_REGIONS"
    UNCLOSED_WATER_REGIONS = "UNCLOSED_WATER_REGIONS"
    UNCLOSED_HAIR_STRANDS = "UNCLOSED_HAIR_STRANDS"
    REGIONS_TOO_SMALL = "REGIONS_TOO_SMALL"
    SOLID_BLACK_FILLS = "SOLID_BLACK_FILLS"
    # composition
    HORROR_VACUI = "HORROR_VACUI"
    NO_REST_AREAS = "NO_REST_AREAS"
    INSUFFICIENT_REST_AREAS = "INSUFFICIENT_REST_AREAS"
    COMPOSITION_IMBALANCED = "COMPOSITION_IMBALANCED"
    SUBJECT_CROPPED = "SUBJECT_CROPPED"
    # format
    MOCKUP_FORMAT_DETECTED = "MOCKUP_FORMAT_DETECTED"
    MULTIPLE_IMAGES_DETECTED = "MULTIPLE_IMAGES_DETECTED"
    CONTAINS_FRAME_BORDER = "CONTAINS_FRAME_BORDER"
    CONTAINS_TEXT = "CONTAINS_TEXT"
    PHOTO_REALISTIC = "PHOTO_REALISTIC"
    # style
    STYLE_MISMATCH = "STYLE_MISMATCH"
    LINE_WEIGHT_WRONG = "LINE_WEIGHT_WRONG"
    LINE_WEIGHT_INCONSISTENT = "LINE_WEIGHT_INCONSISTENT"
    CURVES_IN_GEOMETRIC = "CURVES_IN_GEOMETRIC"
    SHARP_ANGLES_IN_KAWAII = "SHARP_ANGLES_IN_KAWAII"
    THIN_LINES_IN_BOLD = "THIN_LINES_IN_BOLD"
    # complexity
    TOO_COMPLEX = "TOO_COMPLEX"
    TOO_SIMPLE = "TOO_SIMPLE"
    REGION_COUNT_EXCEEDED = "REGION_COUNT_EXCEEDED"
    REGION_COUNT_INSUFFICIENT = "REGION_COUNT_INSUFFICIENT"
    # audience
    INAPPROPRIATE_CONTENT = "INAPPROPRIATE_CONTENT"
    SCARY_FOR_YOUNG = "SCARY_FOR_YOUNG"
    TOO_COMPLEX_FOR_AUDIENCE = "TOO_COMPLEX_FOR_AUDIENCE"
    # technical
    LOW_RESOLUTION = "LOW_RESOLUTION"
    ARTIFACTS_PRESENT = "ARTIFACTS_PRESENT"
    BLURRY_LINES = "BLURRY_LINES"
    ANTI_ALIASING_GREY = "ANTI_ALIASING_GREY"
    # analysis service
    SERVICE_ERROR = "SERVICE_ERROR"
    ANALYSIS_UNAVAILABLE = "ANALYSIS_UNAVAILABLE"


@dataclass(frozen=True)
class UnknownIssueCode:
    """A code reported by the analyzer that this registry does not know about."""

    value: str


AnyIssueCode = Union[IssueCode, UnknownIssueCode]


def _define(
    code: IssueCode,
    severity: str,
    category: str,
    description: str,
    auto_repairable: bool = True,
) -> IssueDefinition:
    return IssueDefinition(
        code=code.value,
        severity=severity,
        category=category,
        auto_repairable=auto_repairable,
        description=description,
    )


_REGISTRY = (
    _define(IssueCode.COLOR_DETECTED, "critical", "color_tone", "Color detected; output must be black on white."),
    _define(IssueCode.GREY_TONES_DETECTED, "critical", "color_tone", "Grey tones detected between black and white."),
    _define(IssueCode.GRADIENT_DETECTED, "critical", "color_tone", "Gradient or soft tonal transition detected."),
    _define(IssueCode.SHADING_DETECTED, "critical", "color_tone", "Light or shadow shading detected."),
    _define(IssueCode.STIPPLING_DETECTED, "critical", "texture", "Stippled dots used for texture or shading."),
    _define(IssueCode.HATCHING_DETECTED, "critical", "texture", "Parallel hatching lines used for shading."),
    _define(IssueCode.CROSSHATCHING_DETECTED, "critical", "texture", "Cross-hatching used for shading."),
    _define(IssueCode.TEXTURE_MARKS_DETECTED, "critical", "texture", "Loose texture marks that do not bound regions."),
    _define(IssueCode.DECORATIVE_TEXTURE_LINES, "critical", "texture", "Decorative texture strokes (fur, grain, knit)."),
    _define(IssueCode.UNCLOSED_REGIONS, "critical", "region", "Regions with gaps that cannot be colored."),
    _define(IssueCode.UNCLOSED_WATER_REGIONS, "critical", "region", "Water drawn as open wavy lines."),
    _define(IssueCode.UNCLOSED_HAIR_STRANDS, "critical", "region", "Hair drawn as open individual strands."),
    _define(IssueCode.REGIONS_TOO_SMALL, "major", "region", "Regions below the minimum colorable size."),
    _define(IssueCode.SOLID_BLACK_FILLS, "critical", "region", "Solid black filled areas."),
    _define(IssueCode.HORROR_VACUI, "major", "composition", "Canvas is densely filled with no breathing room."),
    _define(IssueCode.NO_REST_AREAS, "major", "composition", "No rest areas for the requested complexity."),
    _define(IssueCode.INSUFFICIENT_REST_AREAS, "minor", "composition", "Fewer rest areas than the complexity requires."),
    _define(IssueCode.COMPOSITION_IMBALANCED, "minor", "composition", "Visual weight is unevenly distributed."),
    _define(IssueCode.SUBJECT_CROPPED, "major", "composition", "Main subject is cut off by the canvas edge."),
    _define(IssueCode.MOCKUP_FORMAT_DETECTED, "critical", "format", "Output is a product mockup, not the page."),
    _define(IssueCode.MULTIPLE_IMAGES_DETECTED, "critical", "format", "Output contains several images or panels."),
    _define(IssueCode.CONTAINS_FRAME_BORDER, "minor", "format", "Unrequested frame or border."),
    _define(IssueCode.CONTAINS_TEXT, "major", "format", "Unrequested text, letters or labels."),
    _define(IssueCode.PHOTO_REALISTIC, "critical", "format", "Photorealistic rendering instead of line art."),
    _define(IssueCode.STYLE_MISMATCH, "major", "style", "Output does not match the requested style."),
    _define(IssueCode.LINE_WEIGHT_WRONG, "major", "style", "Line weight differs from the style requirement."),
    _define(IssueCode.LINE_WEIGHT_INCONSISTENT, "minor", "style", "Line weight varies where it should be uniform."),
    _define(IssueCode.CURVES_IN_GEOMETRIC, "critical", "style", "Curves present in a straight-line style."),
    _define(IssueCode.SHARP_ANGLES_IN_KAWAII, "major", "style", "Sharp corners in a rounded style."),
    _define(IssueCode.THIN_LINES_IN_BOLD, "critical", "style", "Thin lines in a bold-line style."),
    _define(IssueCode.TOO_COMPLEX, "major", "complexity", "More detail than the requested complexity."),
    _define(IssueCode.TOO_SIMPLE, "minor", "complexity", "Less detail than the requested complexity."),
    _define(IssueCode.REGION_COUNT_EXCEEDED, "major", "complexity", "Region count above the complexity range."),
    _define(IssueCode.REGION_COUNT_INSUFFICIENT, "minor", "complexity", "Region count below the complexity range."),
    _define(
        IssueCode.INAPPROPRIATE_CONTENT,
        "critical",
        "audience",
        "Content is not suitable for the target audience.",
        auto_repairable=False,
    ),
    _define(IssueCode.SCARY_FOR_YOUNG, "critical", "audience", "Frightening content for a young audience."),
    _define(IssueCode.TOO_COMPLEX_FOR_AUDIENCE, "major", "audience", "Complexity above the audience maximum."),
    _define(IssueCode.LOW_RESOLUTION, "minor", "technical", "Resolution below print quality."),
    _define(IssueCode.ARTIFACTS_PRESENT, "minor", "technical", "Compression or rendering artifacts."),
    _define(IssueCode.BLURRY_LINES, "major", "technical", "Soft or blurry line edges."),
    _define(IssueCode.ANTI_ALIASING_GREY, "minor", "technical", "Grey anti-aliasing halo around lines."),
    _define(IssueCode.SERVICE_ERROR, "critical", "service", "Quality analysis could not be completed."),
    _define(IssueCode.ANALYSIS_UNAVAILABLE, "minor", "service", "Quality analysis skipped; result is unvalidated."),
)

_DEFINITIONS: Dict[IssueCode, IssueDefinition] = {IssueCode(item.code): item for item in _REGISTRY}

_CODE_SEPARATORS = re.compile(r"[^A-Za-z0-9]+")


def normalize_code_text(raw: str) -> str:
    return _CODE_SEPARATORS.sub("_", str(raw).strip()).strip("_").upper()


def parse_issue_code(raw: Union[str, IssueCode, UnknownIssueCode]) -> AnyIssueCode:
    if isinstance(raw, (IssueCode, UnknownIssueCode)):
        return raw
    normalized = normalize_code_text(raw)
    try:
        return IssueCode(normalized)
    except ValueError:
        return UnknownIssueCode(normalized or "UNSPECIFIED")


def issue_code_value(code: Union[str, IssueCode, UnknownIssueCode]) -> str:
    parsed = parse_issue_code(code)
    return parsed.value


def lookup(code: Union[str, IssueCode, UnknownIssueCode]) -> IssueDefinition:
    """
    Resolve an issue code to its definition. Codes outside the registry get a
    default definition (major, auto-repairable) so newer analyzer output still
    flows through scoring and repair.
    """
    parsed = parse_issue_code(code)
    if isinstance(parsed, IssueCode):
        return _DEFINITIONS[parsed]
    return IssueDefinition(
        code=parsed.value,
        severity="major",
        category=UNKNOWN_CATEGORY,
        auto_repairable=True,
        description=f"Unrecognized issue reported by analysis: {parsed.value}",
    )


def is_known(code: Union[str, IssueCode, UnknownIssueCode]) -> bool:
    return isinstance(parse_issue_code(code), IssueCode)


def list_issue_definitions() -> List[IssueDefinition]:
    return [_DEFINITIONS[code] for code in IssueCode]


def list_categories() -> List[str]:
    categories: List[str] = []
    for definition in list_issue_definitions():
        if definition.category not in categories:
            categories.append(definition.category)
    return categories


def severity_rank(severity: str) -> int:
    return SEVERITY_ORDER.get(severity, len(SEVERITY_ORDER))
