from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple

SEVERITIES = ("critical", "major", "minor")
PIPELINE_MODES = ("production", "preview")
PIPELINE_PHASES = ("initializing", "generating", "validating", "repairing", "complete", "failed")
RESULT_STATUSES = ("succeeded", "failed", "cancelled")


@dataclass(frozen=True)
class IssueDefinition:
    code: str
    severity: str
    category: str
    auto_repairable: bool
    description: str = ""


@dataclass(frozen=True)
class QaIssue:
    code: str
    severity: str
    category: str
    message: str
    confidence: float
    auto_repairable: bool
    location: Optional[str] = None


@dataclass(frozen=True)
class QaResult:
    request_id: str
    passed: bool
    score: float
    is_publishable: bool
    issues: Tuple[QaIssue, ...]
    critical_count: int
    major_count: int
    minor_count: int
    summary: str
    recommendations: Tuple[str, ...] = ()
    dimension_scores: Dict[str, float] = field(default_factory=dict)
    mode: str = "production"
    fail_safe: bool = False


@dataclass(frozen=True)
class ParameterSuggestions:
    style_id: Optional[str] = None
    complexity_id: Optional[str] = None
    audience_id: Optional[str] = None
    temperature: Optional[float] = None
    reasons: Tuple[str, ...] = ()

    def is_empty(self) -> bool:
        return (
            self.style_id is None
            and self.complexity_id is None
            and self.audience_id is None
            and self.temperature is None
        )

    def overridden_by(self, other: "ParameterSuggestions") -> "ParameterSuggestions":
        """Return a copy where every field set on ``other`` wins."""
        return ParameterSuggestions(
            style_id=other.style_id if other.style_id is not None else self.style_id,
            complexity_id=other.complexity_id if other.complexity_id is not None else self.complexity_id,
            audience_id=other.audience_id if other.audience_id is not None else self.audience_id,
            temperature=other.temperature if other.temperature is not None else self.temperature,
            reasons=self.reasons + tuple(r for r in other.reasons if r not in self.reasons),
        )


class IssueHistory:
    """
    Append-only record of issue codes seen across attempts of one pipeline run,
    with a per-code occurrence counter.
    """

    def __init__(self, codes: Optional[Iterable[str]] = None) -> None:
        self._codes: List[str] = []
        self._counts: Dict[str, int] = {}
        if codes:
            for code in codes:
                self._append(str(code))

    def record_attempt(self, codes: Iterable[str]) -> None:
        # One occurrence per code per attempt, however many locations reported it.
        seen: List[str] = []
        for code in codes:
            value = str(code)
            if value not in seen:
                seen.append(value)
        for value in seen:
            self._append(value)

    def occurrences(self, code: str) -> int:
        return self._counts.get(str(code), 0)

    @property
    def codes(self) -> Tuple[str, ...]:
        return tuple(self._codes)

    def _append(self, code: str) -> None:
        self._codes.append(code)
        self._counts[code] = self._counts.get(code, 0) + 1

    def __len__(self) -> int:
        return len(self._codes)

    def __iter__(self) -> Iterator[str]:
        return iter(tuple(self._codes))


@dataclass
class RepairContext:
    style_id: str
    complexity_id: str
    audience_id: str
    attempt_number: int
    previous_issues: IssueHistory = field(default_factory=IssueHistory)
    original_prompt: str = ""


@dataclass(frozen=True)
class RepairAction:
    issue_code: str
    priority: int
    confidence: float
    action: str
    prompt_override: str
    negative_boosts: Tuple[str, ...]
    parameter_suggestions: Optional[ParameterSuggestions]
    notes: str
    escalated: bool = False


@dataclass(frozen=True)
class RepairPlan:
    repair_id: str
    can_auto_repair: bool
    should_regenerate: bool
    overall_confidence: float
    actions: Tuple[RepairAction, ...]
    prompt_overrides: Tuple[str, ...]
    negative_boosts: Tuple[str, ...]
    parameter_suggestions: ParameterSuggestions
    unrepairable_issues: Tuple[QaIssue, ...]
    attempt_number: int
    max_attempts: int
    summary: str = ""


@dataclass(frozen=True)
class GenerationParameters:
    style_id: str
    complexity_id: str
    audience_id: str
    temperature: float

    def with_changes(self, **changes: Any) -> "GenerationParameters":
        return replace(self, **changes)


@dataclass(frozen=True)
class ParameterChange:
    field: str
    old_value: Any
    new_value: Any
    reason: str
    attempt_number: int


@dataclass(frozen=True)
class GenerationRequest:
    positive_prompt: str
    negative_prompt: str
    style_id: str
    complexity_id: str
    audience_id: str
    aspect_ratio: str
    resolution_tier: str
    temperature: float
    reference_image: Optional[str] = None


@dataclass(frozen=True)
class GenerationResult:
    success: bool
    image_url: Optional[str]
    error: Optional[str]
    prompt_used: str
    duration_ms: int


@dataclass(frozen=True)
class AnalysisRequest:
    image: str
    request_id: str
    style_id: str
    complexity_id: str
    audience_id: str
    original_prompt: str


@dataclass(frozen=True)
class AttemptResult:
    attempt_number: int
    image_url: Optional[str]
    qa_result: Optional[QaResult]
    repair_plan: Optional[RepairPlan]
    duration_ms: int
    prompt_used: str
    negative_prompt_used: str
    parameters_used: GenerationParameters
    error: Optional[str] = None


@dataclass(frozen=True)
class MockProvider:
    """Deterministic in-process generation backend."""

    kind: str = "mock"


@dataclass(frozen=True)
class McpProvider:
    """Generation routed through an MCP tool call."""

    server: Optional[str] = None
    tool: str = "linecraft.generate_image"
    kind: str = "mcp"


GENERATION_PROVIDERS = (MockProvider, McpProvider)


@dataclass(frozen=True)
class GenerateAndValidateRequest:
    subject: str
    style_id: str
    complexity_id: str
    audience_id: str
    aspect_ratio: str = "1:1"
    resolution_tier: str = "2K"
    reference_image: Optional[str] = None
    provider: Any = field(default_factory=McpProvider)
    request_id: str = field(default_factory=lambda: f"req-{uuid.uuid4().hex[:12]}")


@dataclass(frozen=True)
class PipelineProgress:
    phase: str
    message: str
    percent_complete: int
    attempt: int
    max_attempts: int


ProgressCallback = Callable[[PipelineProgress], None]


@dataclass(frozen=True)
class PipelineConfig:
    max_attempts: int = 3
    enable_qa: bool = True
    enable_auto_retry: bool = True
    minimum_pass_score: float = 70.0
    allow_parameter_escalation: bool = True
    mode: str = "production"
    major_tolerance: int = 0
    publish_threshold: float = 85.0
    analysis_timeout_seconds: float = 60.0
    generation_timeout_seconds: float = 120.0
    default_temperature: float = 0.8
    weights: Dict[str, float] = field(default_factory=dict)
    penalties: Dict[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.mode not in PIPELINE_MODES:
            raise ValueError(f"mode must be one of: {', '.join(PIPELINE_MODES)}")
        if self.major_tolerance < 0:
            raise ValueError("major_tolerance must be >= 0")

    @classmethod
    def from_config(cls, config: Dict[str, Any], **overrides: Any) -> "PipelineConfig":
        pipeline_cfg = config.get("pipeline", {})
        scoring_cfg = config.get("scoring", {})
        analysis_cfg = config.get("analysis", {})
        generation_cfg = config.get("generation", {})

        mode = str(overrides.pop("mode", None) or pipeline_cfg.get("mode", "production"))
        tolerance_cfg = scoring_cfg.get("major_tolerance", {})
        if isinstance(tolerance_cfg, dict):
            default_tolerance = int(tolerance_cfg.get(mode, 0 if mode == "production" else 2))
        else:
            default_tolerance = int(tolerance_cfg)

        values: Dict[str, Any] = {
            "max_attempts": int(pipeline_cfg.get("max_attempts", 3)),
            "enable_qa": bool(pipeline_cfg.get("enable_qa", True)),
            "enable_auto_retry": bool(pipeline_cfg.get("enable_auto_retry", True)),
            "minimum_pass_score": float(pipeline_cfg.get("minimum_pass_score", 70.0)),
            "allow_parameter_escalation": bool(pipeline_cfg.get("allow_parameter_escalation", True)),
            "mode": mode,
            "major_tolerance": default_tolerance,
            "publish_threshold": float(scoring_cfg.get("publish_threshold", 85.0)),
            "analysis_timeout_seconds": float(analysis_cfg.get("timeout_seconds", 60.0)),
            "generation_timeout_seconds": float(generation_cfg.get("timeout_seconds", 120.0)),
            "default_temperature": float(pipeline_cfg.get("default_temperature", 0.8)),
            "weights": dict(scoring_cfg.get("weights", {}) or {}),
            "penalties": dict(scoring_cfg.get("penalties", {}) or {}),
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)


@dataclass(frozen=True)
class GenerateAndValidateResult:
    request_id: str
    status: str
    success: bool
    image_url: Optional[str]
    quality_score: Optional[float]
    is_publishable: bool
    total_attempts: int
    final_qa_result: Optional[QaResult]
    attempt_history: Tuple[AttemptResult, ...]
    parameter_changes: Tuple[ParameterChange, ...]
    summary: str
    final_parameters: Optional[GenerationParameters] = None
    unrepairable_issues: Tuple[QaIssue, ...] = ()
    config_fingerprint: str = ""
    duration_ms: int = 0

    @property
    def cancelled(self) -> bool:
        return self.status == "cancelled"
