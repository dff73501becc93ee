from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping, Optional, Sequence

from linecraft.qa.taxonomy import IssueCode, lookup
from linecraft.utils.types import PipelineConfig, QaIssue, QaResult

DEFAULT_WEIGHTS: Dict[str, float] = {
    "line_quality": 0.25,
    "region_integrity": 0.25,
    "style_compliance": 0.20,
    "complexity_compliance": 0.10,
    "audience_alignment": 0.10,
    "composition": 0.10,
}

DEFAULT_PENALTIES: Dict[str, float] = {
    "critical": 25.0,
    "major": 10.0,
    "minor": 3.0,
}

DEFAULT_MAJOR_TOLERANCE: Dict[str, int] = {
    "production": 0,
    "preview": 2,
}


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


@dataclass(frozen=True)
class ScoringPolicy:
    weights: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_WEIGHTS))
    penalties: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_PENALTIES))
    minimum_pass_score: float = 70.0
    publish_threshold: float = 85.0
    major_tolerance: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_MAJOR_TOLERANCE))

    def __post_init__(self) -> None:
        total = sum(self.weights.values())
        if not math.isclose(total, 1.0, abs_tol=1e-6):
            raise ValueError(f"Scoring weights must sum to 1.0, got {total:.4f}")
        negative = [name for name, weight in self.weights.items() if weight < 0]
        if negative:
            raise ValueError(f"Scoring weights must be non-negative: {', '.join(sorted(negative))}")
        missing = [severity for severity in DEFAULT_PENALTIES if severity not in self.penalties]
        if missing:
            raise ValueError(f"Missing penalties for severities: {', '.join(missing)}")

    def tolerance_for(self, mode: str) -> int:
        return int(self.major_tolerance.get(mode, DEFAULT_MAJOR_TOLERANCE.get(mode, 0)))

    @classmethod
    def from_config(cls, config: Dict[str, object]) -> "ScoringPolicy":
        return cls.from_pipeline_config(PipelineConfig.from_config(config))

    @classmethod
    def from_pipeline_config(cls, config: PipelineConfig) -> "ScoringPolicy":
        tolerance = dict(DEFAULT_MAJOR_TOLERANCE)
        tolerance[config.mode] = config.major_tolerance
        return cls(
            weights=dict(config.weights) if config.weights else dict(DEFAULT_WEIGHTS),
            penalties={**DEFAULT_PENALTIES, **config.penalties},
            minimum_pass_score=config.minimum_pass_score,
            publish_threshold=config.publish_threshold,
            major_tolerance=tolerance,
        )


class Scorer:
    def __init__(self, policy: Optional[ScoringPolicy] = None) -> None:
        self.policy = policy or ScoringPolicy()

    def weighted_score(self, dimension_scores: Mapping[str, float]) -> float:
        total = 0.0
        for name, weight in self.policy.weights.items():
            total += clamp(float(dimension_scores.get(name, 0.0)), 0.0, 100.0) * weight
        return clamp(total, 0.0, 100.0)

    def penalty_score(self, issues: Iterable[QaIssue]) -> float:
        deduction = 0.0
        for issue in issues:
            penalty = self.policy.penalties.get(issue.severity, self.policy.penalties["major"])
            deduction += penalty * clamp(issue.confidence, 0.0, 1.0)
        return clamp(100.0 - deduction, 0.0, 100.0)

    def complete_dimensions(
        self,
        dimension_scores: Optional[Mapping[str, float]],
        issues: Sequence[QaIssue],
    ) -> Dict[str, float]:
        """Fill dimensions the analyzer left out with the penalty-based score."""
        fallback = self.penalty_score(issues)
        supplied = dict(dimension_scores or {})
        return {
            name: round(clamp(float(supplied.get(name, fallback)), 0.0, 100.0), 2)
            for name in self.policy.weights
        }

    def evaluate(
        self,
        request_id: str,
        issues: Sequence[QaIssue],
        dimension_scores: Optional[Mapping[str, float]] = None,
        recommendations: Sequence[str] = (),
        mode: str = "production",
        fail_safe: bool = False,
        score_override: Optional[float] = None,
    ) -> QaResult:
        issues = tuple(issues)
        critical = sum(1 for issue in issues if issue.severity == "critical")
        major = sum(1 for issue in issues if issue.severity == "major")
        minor = len(issues) - critical - major

        if score_override is not None:
            score = clamp(float(score_override), 0.0, 100.0)
            dimensions = {name: score for name in self.policy.weights}
        elif dimension_scores:
            dimensions = self.complete_dimensions(dimension_scores, issues)
            score = self.weighted_score(dimensions)
        else:
            score = self.penalty_score(issues)
            dimensions = {name: score for name in self.policy.weights}
        score = round(score, 2)

        passed = (
            critical == 0
            and major <= self.policy.tolerance_for(mode)
            and score >= self.policy.minimum_pass_score
        )
        is_publishable = (
            critical == 0
            and major == 0
            and score >= self.policy.publish_threshold
            and not fail_safe
        )

        return QaResult(
            request_id=request_id,
            passed=passed,
            score=score,
            is_publishable=is_publishable,
            issues=issues,
            critical_count=critical,
            major_count=major,
            minor_count=minor,
            summary=self._summary(passed, is_publishable, score, critical, major, minor, fail_safe),
            recommendations=tuple(recommendations),
            dimension_scores=dimensions,
            mode=mode,
            fail_safe=fail_safe,
        )

    def fail_safe(self, request_id: str, mode: str, reason: str) -> QaResult:
        """
        Result used when analysis could not run. Production blocks the image
        with a critical SERVICE_ERROR; preview lets it through at the pass
        threshold with a minor advisory so it is never publishable.
        """
        if mode == "preview":
            definition = lookup(IssueCode.ANALYSIS_UNAVAILABLE)
            score: Optional[float] = self.policy.minimum_pass_score
        else:
            definition = lookup(IssueCode.SERVICE_ERROR)
            score = None
        issue = QaIssue(
            code=definition.code,
            severity=definition.severity,
            category=definition.category,
            message=f"{definition.description} {reason}".strip(),
            confidence=1.0,
            auto_repairable=definition.auto_repairable,
        )
        return self.evaluate(
            request_id=request_id,
            issues=[issue],
            recommendations=("Retry once the analysis service is reachable.",),
            mode=mode,
            fail_safe=True,
            score_override=score,
        )

    def _summary(
        self,
        passed: bool,
        is_publishable: bool,
        score: float,
        critical: int,
        major: int,
        minor: int,
        fail_safe: bool,
    ) -> str:
        if fail_safe:
            verdict = "unvalidated" if passed else "analysis unavailable"
        elif is_publishable:
            verdict = "publishable"
        elif passed:
            verdict = "passed, needs review"
        else:
            verdict = "failed"
        return f"{verdict}: score {score:.0f}, {critical} critical, {major} major, {minor} minor"
