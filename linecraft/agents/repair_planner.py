from __future__ import annotations

import uuid
from typing import Dict, List, Optional, Sequence, Tuple, Union

from linecraft.logging_config import get_logger
from linecraft.qa.taxonomy import severity_rank
from linecraft.repair.strategies import RepairStrategy, get_strategy_registry, resolve_strategy
from linecraft.utils.types import (
    ParameterSuggestions,
    QaIssue,
    QaResult,
    RepairAction,
    RepairContext,
    RepairPlan,
)

CONFIDENCE_DECAY_PER_OCCURRENCE = 10.0

logger = get_logger(__name__)


class RepairPlanBuilder:
    """
    Turns one attempt's issues plus the run's issue history into a repair plan.
    Confidence decays with every prior occurrence of a code, and strategies
    switch to their escalated parameter suggestion once a code recurs.
    """

    def __init__(
        self,
        registry: Optional[Dict[str, RepairStrategy]] = None,
        allow_escalation: bool = True,
        confidence_decay: float = CONFIDENCE_DECAY_PER_OCCURRENCE,
    ) -> None:
        self.registry = registry if registry is not None else get_strategy_registry()
        self.allow_escalation = allow_escalation
        self.confidence_decay = confidence_decay

    def build(
        self,
        qa: Union[QaResult, Sequence[QaIssue]],
        context: RepairContext,
        max_attempts: int,
    ) -> RepairPlan:
        issues = list(qa.issues) if isinstance(qa, QaResult) else list(qa)
        ordered = sorted(issues, key=lambda issue: severity_rank(issue.severity))

        actions: List[RepairAction] = []
        unrepairable: List[QaIssue] = []
        handled_codes: List[str] = []

        for issue in ordered:
            strategy = resolve_strategy(issue.code, self.registry)
            prior = context.previous_issues.occurrences(issue.code)

            if not issue.auto_repairable or strategy.manual or prior >= strategy.max_attempts:
                unrepairable.append(issue)
                continue
            if issue.code in handled_codes:
                continue
            handled_codes.append(issue.code)
            actions.append(self._action_for(issue, strategy, context, prior))

        actions.sort(key=lambda action: action.priority)

        prompt_overrides = tuple(action.prompt_override for action in actions if action.prompt_override)
        negative_boosts = _dedupe(term for action in actions for term in action.negative_boosts)
        parameter_suggestions = _merge_suggestions(actions)

        critical = sum(1 for issue in issues if issue.severity == "critical")
        major = sum(1 for issue in issues if issue.severity == "major")
        can_auto_repair = not unrepairable
        should_regenerate = (
            can_auto_repair
            and context.attempt_number < max_attempts
            and (critical > 0 or major > 0)
        )
        overall_confidence = (
            round(sum(action.confidence for action in actions) / len(actions), 1) if actions else 0.0
        )

        plan = RepairPlan(
            repair_id=f"repair-{uuid.uuid4().hex[:10]}",
            can_auto_repair=can_auto_repair,
            should_regenerate=should_regenerate,
            overall_confidence=overall_confidence,
            actions=tuple(actions),
            prompt_overrides=prompt_overrides,
            negative_boosts=negative_boosts,
            parameter_suggestions=parameter_suggestions,
            unrepairable_issues=tuple(unrepairable),
            attempt_number=context.attempt_number,
            max_attempts=max_attempts,
            summary=_summary(context.attempt_number, max_attempts, critical, major, unrepairable, should_regenerate),
        )
        logger.info(
            "repair_plan_built",
            repair_id=plan.repair_id,
            attempt=context.attempt_number,
            actions=len(actions),
            unrepairable=[issue.code for issue in unrepairable],
            should_regenerate=should_regenerate,
            escalated=[action.issue_code for action in actions if action.escalated],
        )
        return plan

    def _action_for(
        self,
        issue: QaIssue,
        strategy: RepairStrategy,
        context: RepairContext,
        prior: int,
    ) -> RepairAction:
        confidence = max(0.0, min(100.0, strategy.base_confidence - self.confidence_decay * prior))
        suggestion, escalated = strategy.suggestion_for(context, prior, self.allow_escalation)
        if suggestion is not None and suggestion.is_empty():
            suggestion = None
        if suggestion is not None:
            reason = f"{issue.code}: {strategy.notes}"
            suggestion = ParameterSuggestions(
                style_id=suggestion.style_id,
                complexity_id=suggestion.complexity_id,
                audience_id=suggestion.audience_id,
                temperature=suggestion.temperature,
                reasons=suggestion.reasons or (reason,),
            )
        return RepairAction(
            issue_code=issue.code,
            priority=strategy.priority,
            confidence=confidence,
            action=strategy.action,
            prompt_override=strategy.render_override(context),
            negative_boosts=tuple(strategy.negative_boost),
            parameter_suggestions=suggestion,
            notes=strategy.notes,
            escalated=escalated,
        )


def _dedupe(terms) -> Tuple[str, ...]:
    seen: List[str] = []
    for term in terms:
        if term not in seen:
            seen.append(term)
    return tuple(seen)


def _merge_suggestions(actions: Sequence[RepairAction]) -> ParameterSuggestions:
    # Apply lowest priority first so higher-priority actions win conflicting fields.
    merged = ParameterSuggestions()
    for action in sorted(actions, key=lambda item: item.priority, reverse=True):
        if action.parameter_suggestions is not None:
            merged = merged.overridden_by(action.parameter_suggestions)
    ordered_reasons = _dedupe(
        reason
        for action in actions
        if action.parameter_suggestions is not None
        for reason in action.parameter_suggestions.reasons
    )
    return ParameterSuggestions(
        style_id=merged.style_id,
        complexity_id=merged.complexity_id,
        audience_id=merged.audience_id,
        temperature=merged.temperature,
        reasons=ordered_reasons,
    )


def _summary(
    attempt: int,
    max_attempts: int,
    critical: int,
    major: int,
    unrepairable: Sequence[QaIssue],
    should_regenerate: bool,
) -> str:
    head = f"Attempt {attempt}/{max_attempts}: {critical} critical, {major} major issues."
    if unrepairable:
        codes = ", ".join(sorted({issue.code for issue in unrepairable}))
        return f"{head} Manual review needed ({codes})."
    if should_regenerate:
        return f"{head} Auto-repair possible."
    if attempt >= max_attempts:
        return f"{head} Attempt budget exhausted."
    return f"{head} Nothing blocking to repair."
