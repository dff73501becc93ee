from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from linecraft.qa.taxonomy import IssueCode, issue_code_value, lookup

from . import (
    audience,
    color_tone,
    complexity,
    composition,
    output_format,
    region,
    service,
    style,
    technical,
    texture,
)
from .base import RepairStrategy

_CATEGORY_MODULES = (
    color_tone,
    texture,
    region,
    composition,
    output_format,
    style,
    complexity,
    audience,
    technical,
    service,
)


def get_strategy_registry() -> Dict[str, RepairStrategy]:
    registry: Dict[str, RepairStrategy] = {}
    for module in _CATEGORY_MODULES:
        for strategy in module.STRATEGIES:
            if strategy.issue_code in registry:
                raise RuntimeError(f"Duplicate repair strategy for {strategy.issue_code}")
            registry[strategy.issue_code] = strategy
    return registry


def generic_strategy(code: str) -> RepairStrategy:
    """Fallback for codes the registry does not cover."""
    return RepairStrategy(
        issue_code=code,
        priority=3,
        base_confidence=50,
        action="regenerate",
        prompt_override=f"[REPAIR] Resolve the reported problem ({code}) while keeping pure black line art.",
        max_attempts=2,
        notes="Generic repair for an unrecognized issue",
    )


def resolve_strategy(
    code: str,
    registry: Optional[Dict[str, RepairStrategy]] = None,
) -> RepairStrategy:
    registry = registry if registry is not None else get_strategy_registry()
    value = issue_code_value(code)
    strategy = registry.get(value)
    if strategy is None:
        return generic_strategy(value)
    return strategy


def missing_strategies(registry: Optional[Dict[str, RepairStrategy]] = None) -> List[str]:
    registry = registry if registry is not None else get_strategy_registry()
    return [code.value for code in IssueCode if code.value not in registry]


def list_strategy_descriptors(categories: Optional[Iterable[str]] = None) -> List[dict]:
    registry = get_strategy_registry()
    selected = set(categories) if categories else None
    known = {module.CATEGORY for module in _CATEGORY_MODULES}
    if selected:
        unknown = sorted(selected - known)
        if unknown:
            raise ValueError(
                f"Unknown issue category '{unknown[0]}'. Available: {', '.join(sorted(known))}"
            )

    descriptors: List[dict] = []
    for code in IssueCode:
        definition = lookup(code)
        if selected and definition.category not in selected:
            continue
        strategy = registry[code.value]
        descriptors.append(
            {
                "issue_code": code.value,
                "category": definition.category,
                "severity": definition.severity,
                "auto_repairable": definition.auto_repairable and not strategy.manual,
                "priority": strategy.priority,
                "action": strategy.action,
                "base_confidence": strategy.base_confidence,
                "max_attempts": strategy.max_attempts,
                "escalates": strategy.escalation is not None,
                "notes": strategy.notes,
            }
        )
    return descriptors
