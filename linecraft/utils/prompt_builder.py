from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

from linecraft.utils.catalog import (
    audience_spec,
    complexity_spec,
    effective_complexity,
    framing_guidance,
    style_spec,
)
from linecraft.utils.resources import load_prompt

BASE_NEGATIVE_TERMS: Tuple[str, ...] = (
    "color",
    "grey",
    "shading",
    "gradient",
    "texture",
    "stippling",
    "hatching",
    "solid black fill",
    "photorealistic",
    "text",
    "watermark",
    "frame",
)

REPAIR_SEPARATOR = "=" * 79


@dataclass(frozen=True)
class PromptInputs:
    subject: str
    style_id: str
    complexity_id: str
    audience_id: str
    aspect_ratio: str = "1:1"
    repair_instructions: Tuple[str, ...] = ()


@dataclass(frozen=True)
class PromptPair:
    positive: str
    negative: str


class TemplatePromptBuilder:
    """
    Default prompt collaborator. Any object exposing ``build(PromptInputs) ->
    PromptPair`` can replace it in the orchestrator.
    """

    def __init__(self, template_name: str = "generate_page.txt") -> None:
        self.template = load_prompt(template_name)

    def build(self, inputs: PromptInputs) -> PromptPair:
        style = style_spec(inputs.style_id)
        complexity = complexity_spec(effective_complexity(inputs.complexity_id, inputs.audience_id))
        audience = audience_spec(inputs.audience_id)

        request = self.template.format(
            style_keyword=style.keyword,
            style_description=style.positive_description,
            audience_id=inputs.audience_id,
            subject=inputs.subject.strip(),
            content_guidance=audience.content_guidance,
            line_weight=style.line_weight,
            region_range=complexity.region_range,
            background_rule=complexity.background_rule,
            detail_level=complexity.detail_level,
            min_region_mm=complexity.min_region_mm,
            rest_area_rule=complexity.rest_area_rule,
            framing=framing_guidance(inputs.aspect_ratio),
        ).strip()

        return PromptPair(
            positive=with_repair_instructions(request, inputs.repair_instructions),
            negative=", ".join(BASE_NEGATIVE_TERMS),
        )


def with_repair_instructions(prompt: str, instructions: Sequence[str]) -> str:
    block = "\n\n".join(item for item in instructions if item)
    if not block:
        return prompt
    return f"{block}\n\n{REPAIR_SEPARATOR}\nORIGINAL REQUEST:\n{REPAIR_SEPARATOR}\n\n{prompt}"


def merge_negative_prompt(base: str, boosts: Sequence[str]) -> str:
    existing = [term.strip() for term in base.split(",") if term.strip()]
    extra = [term for term in boosts if term not in existing]
    return ", ".join(existing + extra)
