from __future__ import annotations

import copy
import logging
import unittest
from typing import Any, Dict, List, Optional

from linecraft.pipeline.orchestrator import Orchestrator, preview_prompt, result_to_dict, run_pipeline
from linecraft.utils.cancellation import CancellationToken
from linecraft.utils.config import DEFAULT_CONFIG
from linecraft.utils.types import (
    GenerateAndValidateRequest,
    GenerationRequest,
    GenerationResult,
    MockProvider,
    PipelineConfig,
    PipelineProgress,
)


class _RecordingGenerator:
    def __init__(self, failures: int = 0) -> None:
        self.requests: List[GenerationRequest] = []
        self.failures = failures

    def generate(self, request: GenerationRequest, cancel_token=None) -> GenerationResult:
        del cancel_token
        self.requests.append(request)
        if len(self.requests) <= self.failures:
            return GenerationResult(
                success=False,
                image_url=None,
                error="upstream 503",
                prompt_used=request.positive_prompt,
                duration_ms=1,
            )
        return GenerationResult(
            success=True,
            image_url=f"data:image/png;base64,attempt{len(self.requests)}",
            error=None,
            prompt_used=request.positive_prompt,
            duration_ms=1,
        )


class _ScriptedAnalysisClient:
    """Returns one scripted response per call; the last one repeats."""

    def __init__(self, responses: List[Any]) -> None:
        self.responses = list(responses)
        self.payloads: List[Dict[str, Any]] = []

    def analyze_image(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.payloads.append(payload)
        index = min(len(self.payloads), len(self.responses)) - 1
        response = self.responses[index]
        if isinstance(response, Exception):
            raise response
        return response


class _CancellingAnalysisClient:
    def __init__(self, token: CancellationToken) -> None:
        self.token = token

    def analyze_image(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        del payload
        self.token.cancel("user closed the editor")
        return {"issues": [{"code": "COLOR_DETECTED", "confidence": 0.9}]}


def _clean() -> Dict[str, Any]:
    return {"dimension_scores": {}, "issues": [], "recommendations": []}


def _issues(*codes: str, confidence: float = 1.0) -> Dict[str, Any]:
    return {"issues": [{"code": code, "confidence": confidence} for code in codes]}


def _request(**overrides: Any) -> GenerateAndValidateRequest:
    values: Dict[str, Any] = {
        "subject": "a sleepy fox curled under a tree",
        "style_id": "Cozy",
        "complexity_id": "Moderate",
        "audience_id": "adults",
        "provider": MockProvider(),
        "request_id": "req-test",
    }
    values.update(overrides)
    return GenerateAndValidateRequest(**values)


def _orchestrator(
    client: Any,
    generator: Optional[_RecordingGenerator] = None,
    **pipeline: Any,
) -> Orchestrator:
    return Orchestrator(
        config=copy.deepcopy(DEFAULT_CONFIG),
        pipeline_config=PipelineConfig(**pipeline),
        generator=generator or _RecordingGenerator(),
        analysis_client=client,
    )


class OrchestratorScenarioTests(unittest.TestCase):
    def test_very_simple_clean_page_passes_first_attempt(self) -> None:
        orchestrator = _orchestrator(_ScriptedAnalysisClient([_clean()]))
        result = orchestrator.run(_request(complexity_id="Very Simple"))

        self.assertTrue(result.success)
        self.assertEqual(result.status, "succeeded")
        self.assertEqual(result.quality_score, 100.0)
        self.assertTrue(result.final_qa_result.passed)
        self.assertTrue(result.is_publishable)
        self.assertEqual(len(result.attempt_history), 1)
        self.assertEqual(result.total_attempts, 1)
        self.assertEqual(result.image_url, "data:image/png;base64,attempt1")

    def test_color_detected_regenerates_with_boosted_negative_prompt(self) -> None:
        generator = _RecordingGenerator()
        client = _ScriptedAnalysisClient([_issues("COLOR_DETECTED", confidence=0.9), _clean()])
        orchestrator = _orchestrator(client, generator, max_attempts=3)

        result = orchestrator.run(_request())

        self.assertTrue(result.success)
        self.assertEqual(result.total_attempts, 2)
        plan = result.attempt_history[0].repair_plan
        self.assertIsNotNone(plan)
        self.assertTrue(plan.should_regenerate)
        self.assertEqual(len(plan.actions), 1)
        self.assertEqual(plan.actions[0].priority, 1)
        self.assertIn("color", plan.negative_boosts)

        self.assertEqual(len(generator.requests), 2)
        second_negative = generator.requests[1].negative_prompt
        for term in plan.negative_boosts:
            self.assertIn(term, second_negative)
        self.assertNotIn("colorful", generator.requests[0].negative_prompt)
        self.assertIn("NO colors whatsoever", generator.requests[1].positive_prompt)
        self.assertIn("ORIGINAL REQUEST:", generator.requests[1].positive_prompt)

    def test_unknown_code_is_counted_as_major(self) -> None:
        orchestrator = _orchestrator(_ScriptedAnalysisClient([_issues("MYSTERY_SMUDGE")]), max_attempts=1)
        result = orchestrator.run(_request())

        qa = result.final_qa_result
        self.assertEqual(qa.issues[0].code, "MYSTERY_SMUDGE")
        self.assertEqual(qa.issues[0].severity, "major")
        self.assertEqual(qa.major_count, 1)
        self.assertFalse(qa.passed)

    def test_inappropriate_content_stops_immediately(self) -> None:
        generator = _RecordingGenerator()
        orchestrator = _orchestrator(
            _ScriptedAnalysisClient([_issues("INAPPROPRIATE_CONTENT")]),
            generator,
            max_attempts=5,
        )
        result = orchestrator.run(_request())

        self.assertFalse(result.success)
        self.assertEqual(result.status, "failed")
        self.assertEqual(result.total_attempts, 1)
        self.assertEqual(len(generator.requests), 1)
        plan = result.attempt_history[0].repair_plan
        self.assertFalse(plan.can_auto_repair)
        self.assertFalse(plan.should_regenerate)
        self.assertEqual([issue.code for issue in result.unrepairable_issues], ["INAPPROPRIATE_CONTENT"])
        self.assertIn("Manual review required", result.summary)

    def test_cancellation_mid_analysis_returns_cancelled_outcome(self) -> None:
        token = CancellationToken()
        events: List[PipelineProgress] = []
        orchestrator = _orchestrator(_CancellingAnalysisClient(token), max_attempts=3)

        result = orchestrator.run(_request(), progress=events.append, cancel_token=token)

        self.assertEqual(result.status, "cancelled")
        self.assertTrue(result.cancelled)
        self.assertFalse(result.success)
        self.assertIsNone(result.final_qa_result)
        self.assertIsNone(result.quality_score)
        self.assertEqual(result.attempt_history, ())
        self.assertEqual(events[-1].phase, "failed")
        self.assertIn("user closed the editor", events[-1].message)

    def test_cancelled_before_start_never_generates(self) -> None:
        token = CancellationToken()
        token.cancel()
        generator = _RecordingGenerator()
        orchestrator = _orchestrator(_ScriptedAnalysisClient([_clean()]), generator)

        result = orchestrator.run(_request(), cancel_token=token)

        self.assertEqual(result.status, "cancelled")
        self.assertEqual(generator.requests, [])

    def test_attempts_never_exceed_budget(self) -> None:
        for max_attempts in range(1, 6):
            generator = _RecordingGenerator()
            orchestrator = _orchestrator(
                _ScriptedAnalysisClient([_issues("COLOR_DETECTED", "HORROR_VACUI")]),
                generator,
                max_attempts=max_attempts,
            )
            result = orchestrator.run(_request())
            self.assertLessEqual(result.total_attempts, max_attempts)
            self.assertLessEqual(len(generator.requests), max_attempts)
            self.assertFalse(result.success)


class OrchestratorBehaviourTests(unittest.TestCase):
    def test_generation_failure_is_retried_without_repair(self) -> None:
        generator = _RecordingGenerator(failures=1)
        orchestrator = _orchestrator(_ScriptedAnalysisClient([_clean()]), generator, max_attempts=3)

        result = orchestrator.run(_request())

        self.assertTrue(result.success)
        self.assertEqual(result.total_attempts, 2)
        first = result.attempt_history[0]
        self.assertEqual(first.error, "upstream 503")
        self.assertIsNone(first.qa_result)
        self.assertIsNone(first.repair_plan)
        self.assertEqual(generator.requests[0].negative_prompt, generator.requests[1].negative_prompt)

    def test_every_generation_failing_returns_failure_without_image(self) -> None:
        generator = _RecordingGenerator(failures=10)
        orchestrator = _orchestrator(_ScriptedAnalysisClient([_clean()]), generator, max_attempts=3)

        result = orchestrator.run(_request())

        self.assertEqual(result.status, "failed")
        self.assertIsNone(result.image_url)
        self.assertIsNone(result.final_qa_result)
        self.assertEqual(result.total_attempts, 3)
        self.assertIn("No image produced", result.summary)

    def test_recurring_issue_escalates_and_lowers_confidence(self) -> None:
        client = _ScriptedAnalysisClient([_issues("COLOR_DETECTED"), _issues("COLOR_DETECTED"), _clean()])
        generator = _RecordingGenerator()
        orchestrator = _orchestrator(client, generator, max_attempts=3)

        result = orchestrator.run(_request())

        self.assertTrue(result.success)
        first_action = result.attempt_history[0].repair_plan.actions[0]
        second_action = result.attempt_history[1].repair_plan.actions[0]
        self.assertLess(second_action.confidence, first_action.confidence)
        self.assertFalse(first_action.escalated)
        self.assertTrue(second_action.escalated)
        self.assertEqual(generator.requests[2].temperature, 0.5)
        change = result.parameter_changes[-1]
        self.assertEqual(change.field, "temperature")
        self.assertEqual(change.attempt_number, 3)

    def test_escalation_can_be_disabled(self) -> None:
        client = _ScriptedAnalysisClient([_issues("COLOR_DETECTED"), _issues("COLOR_DETECTED"), _clean()])
        generator = _RecordingGenerator()
        orchestrator = _orchestrator(client, generator, max_attempts=3, allow_parameter_escalation=False)

        result = orchestrator.run(_request())

        self.assertFalse(result.attempt_history[1].repair_plan.actions[0].escalated)
        self.assertEqual(generator.requests[2].temperature, 0.8)
        self.assertEqual(result.parameter_changes, ())

    def test_failure_returns_best_scoring_attempt(self) -> None:
        client = _ScriptedAnalysisClient(
            [_issues("COLOR_DETECTED"), _issues("COLOR_DETECTED", "GREY_TONES_DETECTED")]
        )
        orchestrator = _orchestrator(client, max_attempts=2)

        result = orchestrator.run(_request())

        self.assertFalse(result.success)
        self.assertEqual(result.total_attempts, 2)
        self.assertEqual(result.image_url, "data:image/png;base64,attempt1")
        self.assertEqual(result.quality_score, 75.0)

    def test_auto_retry_disabled_stops_after_first_failure(self) -> None:
        generator = _RecordingGenerator()
        orchestrator = _orchestrator(
            _ScriptedAnalysisClient([_issues("COLOR_DETECTED"), _clean()]),
            generator,
            max_attempts=3,
            enable_auto_retry=False,
        )

        result = orchestrator.run(_request())

        self.assertFalse(result.success)
        self.assertEqual(len(generator.requests), 1)
        self.assertIn("Automatic retry is disabled", result.summary)

    def test_qa_disabled_accepts_first_image_unvalidated(self) -> None:
        client = _ScriptedAnalysisClient([_issues("COLOR_DETECTED")])
        orchestrator = _orchestrator(client, enable_qa=False)

        result = orchestrator.run(_request())

        self.assertTrue(result.success)
        self.assertIsNone(result.final_qa_result)
        self.assertFalse(result.is_publishable)
        self.assertEqual(client.payloads, [])

    def test_production_analysis_outage_blocks_and_retries(self) -> None:
        client = _ScriptedAnalysisClient([RuntimeError("vision backend down"), _clean()])
        orchestrator = _orchestrator(client, max_attempts=3)

        result = orchestrator.run(_request())

        first_qa = result.attempt_history[0].qa_result
        self.assertTrue(first_qa.fail_safe)
        self.assertEqual(first_qa.issues[0].code, "SERVICE_ERROR")
        self.assertEqual(first_qa.critical_count, 1)
        self.assertFalse(first_qa.passed)
        self.assertTrue(result.success)
        self.assertEqual(result.total_attempts, 2)

    def test_preview_analysis_outage_passes_unpublishable(self) -> None:
        client = _ScriptedAnalysisClient([RuntimeError("vision backend down")])
        orchestrator = _orchestrator(client, mode="preview", major_tolerance=2)

        result = orchestrator.run(_request())

        self.assertTrue(result.success)
        self.assertFalse(result.is_publishable)
        self.assertEqual(result.final_qa_result.issues[0].code, "ANALYSIS_UNAVAILABLE")
        self.assertEqual(result.quality_score, 70.0)

    def test_complexity_is_capped_for_audience(self) -> None:
        generator = _RecordingGenerator()
        orchestrator = _orchestrator(_ScriptedAnalysisClient([_clean()]), generator)

        result = orchestrator.run(_request(complexity_id="Extreme Detail", audience_id="toddlers"))

        self.assertEqual(generator.requests[0].complexity_id, "Very Simple")
        self.assertEqual(result.parameter_changes[0].field, "complexity_id")
        self.assertEqual(result.parameter_changes[0].old_value, "Extreme Detail")

    def test_progress_phases_and_percentages(self) -> None:
        events: List[PipelineProgress] = []
        client = _ScriptedAnalysisClient([_issues("COLOR_DETECTED"), _clean()])
        orchestrator = _orchestrator(client, max_attempts=2)

        orchestrator.run(_request(), progress=events.append)

        phases = [event.phase for event in events]
        self.assertEqual(
            phases,
            ["initializing", "generating", "validating", "repairing", "generating", "validating", "complete"],
        )
        percents = [event.percent_complete for event in events]
        self.assertEqual(percents, sorted(percents))
        self.assertEqual(percents[-1], 100)
        self.assertTrue(all(event.max_attempts == 2 for event in events))

    def test_invalid_selection_is_rejected(self) -> None:
        orchestrator = _orchestrator(_ScriptedAnalysisClient([_clean()]))
        with self.assertRaises(ValueError):
            orchestrator.run(_request(style_id="Baroque"))

    def test_unsupported_provider_is_rejected(self) -> None:
        orchestrator = _orchestrator(_ScriptedAnalysisClient([_clean()]))
        with self.assertRaises(ValueError):
            orchestrator.run(_request(provider={"kind": "mock"}))

    def test_result_carries_fingerprint_and_serializes(self) -> None:
        orchestrator = _orchestrator(_ScriptedAnalysisClient([_clean()]))
        result = orchestrator.run(_request())

        payload = result_to_dict(result)
        self.assertEqual(payload["status"], "succeeded")
        self.assertEqual(len(payload["config_fingerprint"]), 64)
        self.assertEqual(payload["attempt_history"][0]["attempt_number"], 1)
        self.assertFalse(payload["cancelled"])

    def test_run_pipeline_entry_point(self) -> None:
        result = run_pipeline(
            _request(),
            PipelineConfig(max_attempts=1),
            config=copy.deepcopy(DEFAULT_CONFIG),
            generator=_RecordingGenerator(),
            analysis_client=_ScriptedAnalysisClient([_clean()]),
        )
        self.assertTrue(result.success)

    def test_run_keeps_host_logging_handlers(self) -> None:
        root = logging.getLogger()
        handler = logging.NullHandler()
        root.addHandler(handler)
        try:
            run_pipeline(
                _request(),
                PipelineConfig(max_attempts=1),
                config=copy.deepcopy(DEFAULT_CONFIG),
                generator=_RecordingGenerator(),
                analysis_client=_ScriptedAnalysisClient([_clean()]),
            )
            self.assertIn(handler, root.handlers)
        finally:
            root.removeHandler(handler)

    def test_fingerprint_reflects_effective_pipeline_config(self) -> None:
        lenient = _orchestrator(_ScriptedAnalysisClient([_clean()]), max_attempts=1, minimum_pass_score=10)
        strict = _orchestrator(
            _ScriptedAnalysisClient([_clean()]),
            max_attempts=5,
            minimum_pass_score=99,
            mode="preview",
            major_tolerance=2,
        )
        same = _orchestrator(_ScriptedAnalysisClient([_clean()]), max_attempts=1, minimum_pass_score=10)

        self.assertNotEqual(lenient.config_fingerprint, strict.config_fingerprint)
        self.assertEqual(lenient.config_fingerprint, same.config_fingerprint)
        self.assertEqual(
            lenient.run(_request()).config_fingerprint,
            lenient.config_fingerprint,
        )


class PromptPreviewTests(unittest.TestCase):
    def test_preview_caps_complexity_for_audience(self) -> None:
        preview = preview_prompt("a sleepy fox", "Cozy", "Extreme Detail", "toddlers")

        self.assertTrue(preview.complexity_capped)
        self.assertEqual(preview.complexity_id, "Very Simple")
        self.assertIn("a sleepy fox", preview.positive)
        self.assertIn("3-8 large colorable regions", preview.positive)
        self.assertIn("color", preview.negative.split(", "))

    def test_preview_without_cap(self) -> None:
        preview = preview_prompt("a lighthouse", "Cozy", "Simple", "adults")
        self.assertFalse(preview.complexity_capped)
        self.assertEqual(preview.requested_complexity_id, "Simple")

    def test_preview_rejects_unknown_selection(self) -> None:
        with self.assertRaises(ValueError):
            preview_prompt("a fox", "Baroque", "Simple", "adults")


if __name__ == "__main__":
    unittest.main()
