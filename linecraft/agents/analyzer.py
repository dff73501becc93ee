from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional, Tuple

from jsonschema import Draft202012Validator

from linecraft.logging_config import get_logger
from linecraft.qa.scoring import Scorer, clamp
from linecraft.qa.taxonomy import IssueCode, is_known, lookup, parse_issue_code
from linecraft.utils.cancellation import CancellationToken, PipelineCancelled, ServiceTimeout, call_with_deadline
from linecraft.utils.catalog import audience_spec, complexity_spec, style_spec
from linecraft.utils.resources import load_prompt, load_schema
from linecraft.utils.services import VisionAnalysisClient
from linecraft.utils.types import AnalysisRequest, QaIssue, QaResult

logger = get_logger(__name__)

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_SEPARATORS = re.compile(r"[\s\-_]+")
_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class MalformedAnalysis(ValueError):
    """The analysis response could not be parsed or failed schema validation."""


def _snake(name: str) -> str:
    return _SEPARATORS.sub("_", _CAMEL_BOUNDARY.sub("_", name.strip())).lower()


def normalize_confidence(value: Any) -> float:
    if value is None:
        return 1.0
    confidence = float(value)
    if confidence > 1.0:
        confidence = confidence / 100.0
    return clamp(confidence, 0.0, 1.0)


def normalize_issue(raw: Dict[str, Any]) -> QaIssue:
    """Build a typed issue; the registry decides severity and repairability."""
    code = parse_issue_code(str(raw.get("code", "")))
    definition = lookup(code)
    message = str(raw.get("description") or raw.get("message") or definition.description)
    location = raw.get("location")
    if isinstance(location, dict):
        location = json.dumps(location, sort_keys=True)
    return QaIssue(
        code=definition.code,
        severity=definition.severity,
        category=definition.category,
        message=message,
        confidence=normalize_confidence(raw.get("confidence")),
        auto_repairable=definition.auto_repairable,
        location=str(location) if location else None,
    )


class AnalyzerAgent:
    def __init__(
        self,
        client: Optional[VisionAnalysisClient] = None,
        scorer: Optional[Scorer] = None,
        mode: str = "production",
        timeout_seconds: Optional[float] = 60.0,
    ) -> None:
        self.client = client or VisionAnalysisClient()
        self.scorer = scorer or Scorer()
        self.mode = mode
        self.timeout_seconds = timeout_seconds
        self.prompt = load_prompt("analyze_page.txt")
        self.validator = Draft202012Validator(load_schema("analysis_response.schema.json"))

    def build_payload(self, request: AnalysisRequest) -> Dict[str, Any]:
        style = style_spec(request.style_id)
        complexity = complexity_spec(request.complexity_id)
        audience = audience_spec(request.audience_id)
        allowed = [code.value for code in IssueCode if code not in (IssueCode.SERVICE_ERROR, IssueCode.ANALYSIS_UNAVAILABLE)]
        rubric = self.prompt.format(
            original_prompt=request.original_prompt,
            style_id=request.style_id,
            line_weight=style.line_weight,
            complexity_id=request.complexity_id,
            region_range=complexity.region_range,
            min_region_mm=complexity.min_region_mm,
            rest_area_rule=complexity.rest_area_rule,
            audience_id=request.audience_id,
            content_guidance=audience.content_guidance,
            issue_codes=", ".join(allowed),
        )
        return {
            "image": request.image,
            "request_id": request.request_id,
            "style_id": request.style_id,
            "complexity_id": request.complexity_id,
            "audience_id": request.audience_id,
            "original_prompt": request.original_prompt,
            "rubric": rubric,
            "allowed_codes": allowed,
        }

    def parse_response(self, raw: Any) -> Tuple[List[QaIssue], Dict[str, float], List[str]]:
        data = raw
        if isinstance(raw, str):
            text = _FENCE.sub("", raw.strip())
            try:
                data = json.loads(text)
            except json.JSONDecodeError as exc:
                raise MalformedAnalysis(f"Analysis response is not JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise MalformedAnalysis("Analysis response must be a JSON object.")

        data = {_snake(key): value for key, value in data.items()}
        errors = [
            f"{'/'.join(str(part) for part in error.path) or '<root>'}: {error.message}"
            for error in sorted(self.validator.iter_errors(data), key=lambda item: list(item.path))
        ]
        if errors:
            raise MalformedAnalysis("Analysis response failed validation: " + "; ".join(errors))

        issues = [normalize_issue(item) for item in data.get("issues", [])]
        dimensions = {
            _snake(name): clamp(float(value), 0.0, 100.0)
            for name, value in (data.get("dimension_scores") or {}).items()
        }
        recommendations = [str(item) for item in data.get("recommendations", []) or []]
        return issues, dimensions, recommendations

    def analyze(self, request: AnalysisRequest, cancel_token: Optional[CancellationToken] = None) -> QaResult:
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        payload = self.build_payload(request)
        try:
            raw = call_with_deadline(
                lambda: self.client.analyze_image(payload),
                self.timeout_seconds,
                cancel_token,
            )
        except PipelineCancelled:
            raise
        except ServiceTimeout as exc:
            return self._fail_safe(request, f"Analysis timed out: {exc}")
        except Exception as exc:
            return self._fail_safe(request, f"Analysis transport failed: {exc}")

        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        try:
            issues, dimensions, recommendations = self.parse_response(raw)
        except MalformedAnalysis as exc:
            return self._fail_safe(request, str(exc))

        unknown = sorted({issue.code for issue in issues if not is_known(issue.code)})
        if unknown:
            logger.warning("analysis_unknown_codes", codes=unknown)

        result = self.scorer.evaluate(
            request_id=request.request_id,
            issues=issues,
            dimension_scores=dimensions,
            recommendations=recommendations,
            mode=self.mode,
        )
        logger.info(
            "analysis_complete",
            passed=result.passed,
            score=result.score,
            critical=result.critical_count,
            major=result.major_count,
            minor=result.minor_count,
        )
        return result

    def _fail_safe(self, request: AnalysisRequest, reason: str) -> QaResult:
        logger.warning("analysis_fail_safe", mode=self.mode, reason=reason)
        return self.scorer.fail_safe(request.request_id, self.mode, reason)
