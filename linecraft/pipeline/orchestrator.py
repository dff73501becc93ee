from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from linecraft.agents.analyzer import AnalyzerAgent
from linecraft.agents.generator import GeneratorAgent
from linecraft.agents.repair_planner import RepairPlanBuilder
from linecraft.logging_config import bind_request_id, clear_request_id, get_logger
from linecraft.qa.scoring import Scorer, ScoringPolicy
from linecraft.repair.apply import apply_repair_plan
from linecraft.utils.cancellation import CancellationToken, PipelineCancelled
from linecraft.utils.catalog import combination_warnings, effective_complexity, validate_selection
from linecraft.utils.config import DEFAULT_CONFIG_PATH, config_hash, load_config
from linecraft.utils.prompt_builder import PromptInputs, TemplatePromptBuilder, merge_negative_prompt
from linecraft.utils.services import ANALYZE_TOOL, VisionAnalysisClient, build_image_client, validate_provider
from linecraft.utils.types import (
    AnalysisRequest,
    AttemptResult,
    GenerateAndValidateRequest,
    GenerateAndValidateResult,
    GenerationParameters,
    GenerationRequest,
    IssueHistory,
    ParameterChange,
    PipelineConfig,
    PipelineProgress,
    ProgressCallback,
    QaIssue,
    RepairContext,
    RepairPlan,
)

logger = get_logger(__name__)

# Share of one attempt's progress reached when each phase starts.
_PHASE_OFFSETS = {
    "initializing": 0.0,
    "generating": 0.1,
    "validating": 0.6,
    "repairing": 0.9,
}


@dataclass
class _RunState:
    parameters: GenerationParameters
    attempts: List[AttemptResult] = field(default_factory=list)
    changes: List[ParameterChange] = field(default_factory=list)
    negative_boosts: Tuple[str, ...] = ()
    repair_instructions: Tuple[str, ...] = ()
    history: IssueHistory = field(default_factory=IssueHistory)
    current_attempt: int = 0


class Orchestrator:
    """
    Runs the generate -> validate -> repair loop for one request. Every
    collaborator can be injected; anything left out is built from the merged
    configuration.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        pipeline_config: Optional[PipelineConfig] = None,
        generator: Optional[GeneratorAgent] = None,
        analyzer: Optional[AnalyzerAgent] = None,
        prompt_builder: Optional[Any] = None,
        planner: Optional[RepairPlanBuilder] = None,
        analysis_client: Optional[VisionAnalysisClient] = None,
        mcp_client: Optional[Any] = None,
        config_path: Path = DEFAULT_CONFIG_PATH,
    ) -> None:
        self.config = config if config is not None else load_config(config_path)
        self.pipeline_config = pipeline_config or PipelineConfig.from_config(self.config)
        self.config_fingerprint = config_hash(
            {**self.config, "effective_pipeline": asdict(self.pipeline_config)}
        )
        self.mcp_client = mcp_client
        self.generator = generator
        self.prompt_builder = prompt_builder or TemplatePromptBuilder()
        self.planner = planner or RepairPlanBuilder(
            allow_escalation=self.pipeline_config.allow_parameter_escalation
        )

        if analyzer is None:
            analysis_cfg = self.config.get("analysis", {})
            client = analysis_client or VisionAnalysisClient(
                mcp_client=mcp_client,
                tool=str(analysis_cfg.get("tool", ANALYZE_TOOL)),
            )
            analyzer = AnalyzerAgent(
                client=client,
                scorer=Scorer(ScoringPolicy.from_pipeline_config(self.pipeline_config)),
                mode=self.pipeline_config.mode,
                timeout_seconds=self.pipeline_config.analysis_timeout_seconds,
            )
        self.analyzer = analyzer

    def run(
        self,
        request: GenerateAndValidateRequest,
        progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> GenerateAndValidateResult:
        validate_selection(request.style_id, request.complexity_id, request.audience_id)
        provider = validate_provider(request.provider)
        token = cancel_token or CancellationToken()
        generator = self.generator or GeneratorAgent(
            client=build_image_client(provider, self.mcp_client),
            timeout_seconds=self.pipeline_config.generation_timeout_seconds,
        )

        bind_request_id(request.request_id)
        started = time.monotonic()
        state = self._initial_state(request)
        self._emit(progress, "initializing", "Preparing generation", 0)
        try:
            result = self._attempt_loop(request, state, generator, token, progress, started)
        except PipelineCancelled as exc:
            result = self._cancelled_result(request, state, str(exc), started)
            self._emit(progress, "failed", f"Cancelled: {exc}", state.current_attempt)
            logger.info("pipeline_cancelled", attempts=len(state.attempts), reason=str(exc))
        finally:
            clear_request_id()
        return result

    def _initial_state(self, request: GenerateAndValidateRequest) -> _RunState:
        for warning in combination_warnings(request.style_id, request.complexity_id, request.audience_id):
            logger.warning("combination_warning", message=warning)

        complexity = effective_complexity(request.complexity_id, request.audience_id)
        state = _RunState(
            parameters=GenerationParameters(
                style_id=request.style_id,
                complexity_id=complexity,
                audience_id=request.audience_id,
                temperature=self.pipeline_config.default_temperature,
            )
        )
        if complexity != request.complexity_id:
            state.changes.append(
                ParameterChange(
                    field="complexity_id",
                    old_value=request.complexity_id,
                    new_value=complexity,
                    reason=f"Capped at the maximum complexity for {request.audience_id}",
                    attempt_number=1,
                )
            )
        return state

    def _attempt_loop(
        self,
        request: GenerateAndValidateRequest,
        state: _RunState,
        generator: GeneratorAgent,
        token: CancellationToken,
        progress: Optional[ProgressCallback],
        started: float,
    ) -> GenerateAndValidateResult:
        cfg = self.pipeline_config

        for attempt in range(1, cfg.max_attempts + 1):
            token.raise_if_cancelled()
            state.current_attempt = attempt
            attempt_started = time.monotonic()
            parameters = state.parameters
            logger.info("attempt_started", attempt=attempt, max_attempts=cfg.max_attempts, **asdict(parameters))
            self._emit(progress, "generating", f"Generating attempt {attempt}", attempt)

            prompt = self.prompt_builder.build(
                PromptInputs(
                    subject=request.subject,
                    style_id=parameters.style_id,
                    complexity_id=parameters.complexity_id,
                    audience_id=parameters.audience_id,
                    aspect_ratio=request.aspect_ratio,
                    repair_instructions=state.repair_instructions,
                )
            )
            negative_prompt = merge_negative_prompt(prompt.negative, state.negative_boosts)
            generated = generator.generate(
                GenerationRequest(
                    positive_prompt=prompt.positive,
                    negative_prompt=negative_prompt,
                    style_id=parameters.style_id,
                    complexity_id=parameters.complexity_id,
                    audience_id=parameters.audience_id,
                    aspect_ratio=request.aspect_ratio,
                    resolution_tier=request.resolution_tier,
                    temperature=parameters.temperature,
                    reference_image=request.reference_image,
                ),
                token,
            )
            token.raise_if_cancelled()

            if not generated.success or not generated.image_url:
                state.attempts.append(
                    AttemptResult(
                        attempt_number=attempt,
                        image_url=None,
                        qa_result=None,
                        repair_plan=None,
                        duration_ms=_elapsed_ms(attempt_started),
                        prompt_used=generated.prompt_used,
                        negative_prompt_used=negative_prompt,
                        parameters_used=parameters,
                        error=generated.error,
                    )
                )
                logger.warning("attempt_generation_failed", attempt=attempt, error=generated.error)
                continue

            if not cfg.enable_qa:
                state.attempts.append(
                    AttemptResult(
                        attempt_number=attempt,
                        image_url=generated.image_url,
                        qa_result=None,
                        repair_plan=None,
                        duration_ms=_elapsed_ms(attempt_started),
                        prompt_used=generated.prompt_used,
                        negative_prompt_used=negative_prompt,
                        parameters_used=parameters,
                    )
                )
                self._emit(progress, "complete", "Generated without validation", attempt)
                return self._success_result(request, state, started)

            self._emit(progress, "validating", f"Validating attempt {attempt}", attempt)
            qa = self.analyzer.analyze(
                AnalysisRequest(
                    image=generated.image_url,
                    request_id=request.request_id,
                    style_id=parameters.style_id,
                    complexity_id=parameters.complexity_id,
                    audience_id=parameters.audience_id,
                    original_prompt=request.subject,
                ),
                token,
            )
            token.raise_if_cancelled()

            if qa.passed:
                state.attempts.append(
                    AttemptResult(
                        attempt_number=attempt,
                        image_url=generated.image_url,
                        qa_result=qa,
                        repair_plan=None,
                        duration_ms=_elapsed_ms(attempt_started),
                        prompt_used=generated.prompt_used,
                        negative_prompt_used=negative_prompt,
                        parameters_used=parameters,
                    )
                )
                logger.info("attempt_passed", attempt=attempt, score=qa.score, publishable=qa.is_publishable)
                self._emit(progress, "complete", f"Passed with score {qa.score:.0f}", attempt)
                return self._success_result(request, state, started)

            context = RepairContext(
                style_id=parameters.style_id,
                complexity_id=parameters.complexity_id,
                audience_id=parameters.audience_id,
                attempt_number=attempt,
                previous_issues=state.history,
                original_prompt=request.subject,
            )
            plan = self.planner.build(qa, context, cfg.max_attempts)
            state.history.record_attempt(issue.code for issue in qa.issues)
            state.attempts.append(
                AttemptResult(
                    attempt_number=attempt,
                    image_url=generated.image_url,
                    qa_result=qa,
                    repair_plan=plan,
                    duration_ms=_elapsed_ms(attempt_started),
                    prompt_used=generated.prompt_used,
                    negative_prompt_used=negative_prompt,
                    parameters_used=parameters,
                )
            )

            if not plan.should_regenerate or not cfg.enable_auto_retry:
                self._emit(progress, "failed", plan.summary, attempt)
                return self._failure_result(request, state, started, plan)

            self._emit(progress, "repairing", f"Repairing: {len(plan.actions)} action(s)", attempt)
            applied = apply_repair_plan(plan, parameters, state.negative_boosts)
            state.parameters = applied.parameters
            state.negative_boosts = applied.negative_boosts
            state.repair_instructions = applied.repair_instructions
            state.changes.extend(applied.changes)
            logger.info(
                "repair_applied",
                attempt=attempt,
                repair_id=plan.repair_id,
                confidence=plan.overall_confidence,
                changes=list(applied.changes_summary),
            )

        self._emit(progress, "failed", "Attempt budget exhausted", state.current_attempt)
        return self._failure_result(request, state, started, None)

    def _emit(
        self,
        progress: Optional[ProgressCallback],
        phase: str,
        message: str,
        attempt: int,
    ) -> None:
        if progress is None:
            return
        max_attempts = self.pipeline_config.max_attempts
        if phase in ("complete", "failed"):
            percent = 100
        else:
            done = max(attempt - 1, 0) + _PHASE_OFFSETS[phase]
            percent = min(99, int(done / max_attempts * 100))
        progress(
            PipelineProgress(
                phase=phase,
                message=message,
                percent_complete=percent,
                attempt=attempt,
                max_attempts=max_attempts,
            )
        )

    def _success_result(
        self,
        request: GenerateAndValidateRequest,
        state: _RunState,
        started: float,
    ) -> GenerateAndValidateResult:
        final = state.attempts[-1]
        qa = final.qa_result
        if qa is None:
            summary = f"Accepted attempt {final.attempt_number} without validation (QA disabled)."
        else:
            verdict = "publishable" if qa.is_publishable else "passed, flagged for review"
            summary = (
                f"Attempt {final.attempt_number}/{self.pipeline_config.max_attempts} {verdict} "
                f"with score {qa.score:.0f}."
            )
        if state.changes:
            summary += f" {len(state.changes)} parameter change(s) applied."
        result = self._result(
            request,
            state,
            started,
            status="succeeded",
            success=True,
            final=final,
            summary=summary,
        )
        logger.info("pipeline_finished", status=result.status, attempts=result.total_attempts, score=result.quality_score)
        return result

    def _failure_result(
        self,
        request: GenerateAndValidateRequest,
        state: _RunState,
        started: float,
        plan: Optional[RepairPlan],
    ) -> GenerateAndValidateResult:
        final = _best_attempt(state.attempts)
        unrepairable: Tuple[QaIssue, ...] = plan.unrepairable_issues if plan is not None else ()
        attempts = len(state.attempts)
        if final is None or final.qa_result is None:
            summary = f"No image produced after {attempts} attempt(s)."
        else:
            summary = (
                f"Failed after {attempts} attempt(s); best score {final.qa_result.score:.0f} "
                f"from attempt {final.attempt_number}."
            )
        if unrepairable:
            codes = ", ".join(sorted({issue.code for issue in unrepairable}))
            summary += f" Manual review required: {codes}."
        elif plan is not None and plan.should_regenerate:
            summary += " Automatic retry is disabled."
        result = self._result(
            request,
            state,
            started,
            status="failed",
            success=False,
            final=final,
            summary=summary,
            unrepairable=unrepairable,
        )
        logger.info("pipeline_finished", status=result.status, attempts=result.total_attempts, score=result.quality_score)
        return result

    def _cancelled_result(
        self,
        request: GenerateAndValidateRequest,
        state: _RunState,
        reason: str,
        started: float,
    ) -> GenerateAndValidateResult:
        return self._result(
            request,
            state,
            started,
            status="cancelled",
            success=False,
            final=None,
            summary=f"Cancelled during attempt {state.current_attempt}: {reason}",
        )

    def _result(
        self,
        request: GenerateAndValidateRequest,
        state: _RunState,
        started: float,
        status: str,
        success: bool,
        final: Optional[AttemptResult],
        summary: str,
        unrepairable: Tuple[QaIssue, ...] = (),
    ) -> GenerateAndValidateResult:
        qa = final.qa_result if final is not None else None
        return GenerateAndValidateResult(
            request_id=request.request_id,
            status=status,
            success=success,
            image_url=final.image_url if final is not None else None,
            quality_score=qa.score if qa is not None else None,
            is_publishable=bool(qa is not None and qa.is_publishable),
            total_attempts=len(state.attempts),
            final_qa_result=qa,
            attempt_history=tuple(state.attempts),
            parameter_changes=tuple(state.changes),
            summary=summary,
            final_parameters=final.parameters_used if final is not None else state.parameters,
            unrepairable_issues=unrepairable,
            config_fingerprint=self.config_fingerprint,
            duration_ms=_elapsed_ms(started),
        )


def _best_attempt(attempts: List[AttemptResult]) -> Optional[AttemptResult]:
    scored = [attempt for attempt in attempts if attempt.qa_result is not None]
    if not scored:
        return attempts[-1] if attempts else None
    # max() keeps the earliest attempt on ties.
    return max(scored, key=lambda attempt: attempt.qa_result.score)  # type: ignore[union-attr]


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def run_pipeline(
    request: GenerateAndValidateRequest,
    config: Optional[PipelineConfig] = None,
    progress: Optional[ProgressCallback] = None,
    cancel_token: Optional[CancellationToken] = None,
    **collaborators: Any,
) -> GenerateAndValidateResult:
    orchestrator = Orchestrator(pipeline_config=config, **collaborators)
    return orchestrator.run(request, progress=progress, cancel_token=cancel_token)


@dataclass(frozen=True)
class PromptPreview:
    positive: str
    negative: str
    style_id: str
    requested_complexity_id: str
    complexity_id: str
    audience_id: str
    warnings: Tuple[str, ...] = ()

    @property
    def complexity_capped(self) -> bool:
        return self.complexity_id != self.requested_complexity_id


def preview_prompt(
    subject: str,
    style_id: str,
    complexity_id: str,
    audience_id: str,
    aspect_ratio: str = "1:1",
    prompt_builder: Optional[Any] = None,
) -> PromptPreview:
    """Render the first attempt's prompts without calling any service."""
    validate_selection(style_id, complexity_id, audience_id)
    effective = effective_complexity(complexity_id, audience_id)
    builder = prompt_builder or TemplatePromptBuilder()
    pair = builder.build(
        PromptInputs(
            subject=subject,
            style_id=style_id,
            complexity_id=effective,
            audience_id=audience_id,
            aspect_ratio=aspect_ratio,
        )
    )
    return PromptPreview(
        positive=pair.positive,
        negative=merge_negative_prompt(pair.negative, ()),
        style_id=style_id,
        requested_complexity_id=complexity_id,
        complexity_id=effective,
        audience_id=audience_id,
        warnings=tuple(combination_warnings(style_id, complexity_id, audience_id)),
    )


def result_to_dict(result: GenerateAndValidateResult) -> Dict[str, Any]:
    payload = asdict(result)
    payload["cancelled"] = result.cancelled
    return payload
