from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Tuple

DEFAULT_STYLE = "Cozy"
DEFAULT_COMPLEXITY = "Moderate"
DEFAULT_AUDIENCE = "adults"


@dataclass(frozen=True)
class StyleSpec:
    style_id: str
    keyword: str
    positive_description: str
    line_weight: str

    @property
    def uniform_lines(self) -> bool:
        weight = self.line_weight.lower()
        return "uniform" in weight or "consistent" in weight


@dataclass(frozen=True)
class ComplexitySpec:
    complexity_id: str
    tier: int
    region_range: str
    background_rule: str
    rest_area_rule: str
    detail_level: str
    min_region_mm: int


@dataclass(frozen=True)
class AudienceSpec:
    audience_id: str
    max_complexity: str
    content_guidance: str
    young: bool = False


STYLE_SPECS: Dict[str, StyleSpec] = {
    spec.style_id: spec
    for spec in (
        StyleSpec(
            "Cozy",
            "Bold and Easy coloring book page, thick uniform black marker outlines, cute simple illustration",
            "Simple rounded forms with extremely thick uniform black outlines. Large open coloring areas.",
            "EXTREMELY THICK uniform monoline (2-3mm), same weight throughout, NO line variation",
        ),
        StyleSpec(
            "HandDrawn",
            "Hand-drawn hygge coloring book, extra-thick felt-tip marker lines, cozy lifestyle illustration",
            "Warm domestic scenes with ultra-thick marker outlines and organic hand-drawn charm.",
            "ULTRA-THICK felt-tip marker lines (2-3mm), uniform weight with slight hand-drawn wobble",
        ),
        StyleSpec(
            "Kawaii",
            "Super deformed kawaii coloring page, cute mascot style, chibi proportions",
            "Mascot style with 2-head proportions, soft rounded forms and thick marker lines.",
            "uniform thick monoline weight (felt-tip marker style)",
        ),
        StyleSpec(
            "Whimsical",
            "Whimsical storybook illustration coloring page, fairy tale aesthetic",
            "Narrative storybook style with curvilinear organic geometry and flowing lines.",
            "variable flowing lines (Art Nouveau influence, felt-tip quality)",
        ),
        StyleSpec(
            "Cartoon",
            "Western cartoon style coloring page",
            "Classic animation style with squash and stretch dynamics and clear silhouettes.",
            "thick uniform outlines (vector art style)",
        ),
        StyleSpec(
            "Botanical",
            "Antique botanical illustration, scientific plate",
            "Scientifically accurate line art with clean unbroken lines, isolated on white.",
            "fine 0.3mm technical pen lines",
        ),
        StyleSpec(
            "Realistic",
            "Scientific illustration, steel engraving line art",
            "Museum-quality academic drawing in high-contrast black ink on white.",
            "variable width ink lines with crisp sharp edges",
        ),
        StyleSpec(
            "Geometric",
            "Geometric abstraction coloring page",
            "Faceted style using only straight lines and polygons.",
            "uniform straight lines (0.8mm)",
        ),
        StyleSpec(
            "Fantasy",
            "Fantasy concept art, vector line art",
            "Heroic proportions and dynamic action with clear silhouettes and open rest areas.",
            "Variable line weight (bold outer contours, fine inner details)",
        ),
        StyleSpec(
            "Gothic",
            "Gothic style line art",
            "Elegant gothic style with stained glass motifs and ornate outlined patterns.",
            "fine to medium varied lines",
        ),
        StyleSpec(
            "StainedGlass",
            "Stained glass coloring page",
            "Thick leaded lines separating clear geometric and organic sections.",
            "thick bold uniform lines (simulating lead cames)",
        ),
        StyleSpec(
            "Mandala",
            "Sacred geometry mandala coloring page",
            "Symmetric closed-loop tessellation with a center-focused composition.",
            "precise vector lines",
        ),
        StyleSpec(
            "Zentangle",
            "Zentangle inspired art coloring page",
            "Pattern-filled silhouette where each segment holds a distinct outlined pattern.",
            "Uniform monoline (fine pen style)",
        ),
    )
}

COMPLEXITY_SPECS: Dict[str, ComplexitySpec] = {
    spec.complexity_id: spec
    for spec in (
        ComplexitySpec(
            "Very Simple",
            0,
            "3-8 large colorable regions",
            "Pure white background with zero background elements (isolated subject)",
            "Entire background is white space",
            "Single iconic subject. No tiny details.",
            10,
        ),
        ComplexitySpec(
            "Simple",
            1,
            "15-30 large colorable regions",
            "Clear background with essential context only",
            "Balanced white space for visual clarity",
            "Focus on main subject. Strong clear outlines.",
            5,
        ),
        ComplexitySpec(
            "Moderate",
            2,
            "40-80 colorable regions",
            "Full scene with foreground, midground and background",
            "Include 4-6 clear white space rest areas covering minimum 15% of image",
            "Complete scene. Balanced detail distribution.",
            3,
        ),
        ComplexitySpec(
            "Intricate",
            3,
            "80-120 colorable regions",
            "Detailed environment throughout",
            "Include 2-4 rest areas covering minimum 10% of image",
            "Rich detailed scene. Patterns as shapes.",
            2,
        ),
        ComplexitySpec(
            "Extreme Detail",
            4,
            "120-150+ colorable regions",
            "Maximum detail throughout",
            "Include 2-3 small rest areas for visual relief",
            "Expert-level complexity. Shapes within shapes.",
            1,
        ),
    )
}

AUDIENCE_SPECS: Dict[str, AudienceSpec] = {
    spec.audience_id: spec
    for spec in (
        AudienceSpec(
            "toddlers",
            "Very Simple",
            "Single friendly recognizable object, zero background distraction, no scary elements",
            young=True,
        ),
        AudienceSpec(
            "preschool",
            "Simple",
            "Friendly characters, simple scenes, clear definition, educational themes welcome",
            young=True,
        ),
        AudienceSpec("kids", "Moderate", "Fun engaging scenes, adventure themes, appropriate for ages 6-12", young=True),
        AudienceSpec("teens", "Intricate", "Stylish dynamic scenes for ages 13-17"),
        AudienceSpec("adults", "Extreme Detail", "Sophisticated artistic designs for relaxation"),
        AudienceSpec(
            "seniors",
            "Moderate",
            "High clarity, distinct sections, nostalgic themes, avoid tiny details for dexterity",
        ),
    )
}

COMPLEXITY_ORDER: Tuple[str, ...] = tuple(
    spec.complexity_id for spec in sorted(COMPLEXITY_SPECS.values(), key=lambda item: item.tier)
)

FRAMING_GUIDANCE: Dict[str, str] = {
    "letter": "Vertical portrait composition (8.5 x 11 in). Fit full height.",
    "17:22": "Vertical portrait composition (8.5 x 11 in). Fit full height.",
    "a4": "Vertical portrait composition (A4). Fit full height.",
    "210:297": "Vertical portrait composition (A4). Fit full height.",
    "3:4": "Vertical portrait composition (3:4). Fit full height.",
    "portrait": "Vertical portrait composition (3:4). Fit full height.",
    "4:3": "Horizontal landscape composition. Wide aspect ratio.",
    "landscape": "Horizontal landscape composition. Wide aspect ratio.",
    "1:1": "Square composition (1:1). Balanced height and width.",
    "square": "Square composition (1:1). Balanced height and width.",
}

# Styles whose imagery does not suit young audiences without adaptation.
_MATURE_STYLES = {"Gothic", "Realistic", "Fantasy"}


def style_spec(style_id: str) -> StyleSpec:
    return STYLE_SPECS.get(style_id, STYLE_SPECS[DEFAULT_STYLE])


def complexity_spec(complexity_id: str) -> ComplexitySpec:
    return COMPLEXITY_SPECS.get(complexity_id, COMPLEXITY_SPECS[DEFAULT_COMPLEXITY])


def audience_spec(audience_id: str) -> AudienceSpec:
    return AUDIENCE_SPECS.get(audience_id, AUDIENCE_SPECS[DEFAULT_AUDIENCE])


def framing_guidance(aspect_ratio: str) -> str:
    return FRAMING_GUIDANCE.get(aspect_ratio, "Full-bleed composition filling the entire canvas.")


def effective_complexity(complexity_id: str, audience_id: str) -> str:
    """Cap the requested complexity at the audience maximum."""
    requested = complexity_spec(complexity_id)
    ceiling = complexity_spec(audience_spec(audience_id).max_complexity)
    if requested.tier > ceiling.tier:
        return ceiling.complexity_id
    return requested.complexity_id


def downgrade_complexity(complexity_id: str, steps: int = 1) -> str:
    tier = max(0, complexity_spec(complexity_id).tier - steps)
    return COMPLEXITY_ORDER[tier]


def validate_selection(style_id: str, complexity_id: str, audience_id: str) -> None:
    problems: List[str] = []
    if style_id not in STYLE_SPECS:
        problems.append(f"Unknown style '{style_id}'. Available: {', '.join(sorted(STYLE_SPECS))}")
    if complexity_id not in COMPLEXITY_SPECS:
        problems.append(f"Unknown complexity '{complexity_id}'. Available: {', '.join(COMPLEXITY_ORDER)}")
    if audience_id not in AUDIENCE_SPECS:
        problems.append(f"Unknown audience '{audience_id}'. Available: {', '.join(sorted(AUDIENCE_SPECS))}")
    if problems:
        raise ValueError("; ".join(problems))


def combination_warnings(style_id: str, complexity_id: str, audience_id: str) -> List[str]:
    warnings: List[str] = []
    capped = effective_complexity(complexity_id, audience_id)
    if capped != complexity_id:
        warnings.append(
            f"Complexity '{complexity_id}' exceeds the maximum for {audience_id}; using '{capped}'."
        )
    if style_id in _MATURE_STYLES and audience_spec(audience_id).young:
        warnings.append(f"Style '{style_id}' may produce imagery unsuitable for {audience_id}.")
    if style_id == "Geometric" and complexity_spec(complexity_id).tier == 0:
        warnings.append("Geometric style at Very Simple complexity tends to produce abstract results.")
    return warnings
