from __future__ import annotations

import time
from typing import Any, Dict, Optional

from linecraft.logging_config import get_logger
from linecraft.utils.cancellation import CancellationToken, PipelineCancelled, call_with_deadline
from linecraft.utils.services import ImageGenerationClient
from linecraft.utils.types import GenerationRequest, GenerationResult

logger = get_logger(__name__)


class GeneratorAgent:
    def __init__(
        self,
        client: Optional[ImageGenerationClient] = None,
        timeout_seconds: Optional[float] = 120.0,
    ) -> None:
        self.client = client or ImageGenerationClient()
        self.timeout_seconds = timeout_seconds

    def build_arguments(self, request: GenerationRequest) -> Dict[str, Any]:
        arguments: Dict[str, Any] = {
            "prompt": request.positive_prompt,
            "negative_prompt": request.negative_prompt,
            "style_id": request.style_id,
            "complexity_id": request.complexity_id,
            "audience_id": request.audience_id,
            "aspect_ratio": request.aspect_ratio,
            "resolution_tier": request.resolution_tier,
            "temperature": request.temperature,
        }
        if request.reference_image:
            arguments["reference_image"] = request.reference_image
        return arguments

    def generate(
        self,
        request: GenerationRequest,
        cancel_token: Optional[CancellationToken] = None,
    ) -> GenerationResult:
        """Failures come back as ``success=False``; only cancellation raises."""
        started = time.monotonic()
        arguments = self.build_arguments(request)
        try:
            response = call_with_deadline(
                lambda: self.client.generate_image(arguments),
                self.timeout_seconds,
                cancel_token,
            )
        except PipelineCancelled:
            raise
        except Exception as exc:
            logger.warning("generation_failed", error=str(exc))
            return GenerationResult(
                success=False,
                image_url=None,
                error=str(exc) or exc.__class__.__name__,
                prompt_used=request.positive_prompt,
                duration_ms=_elapsed_ms(started),
            )

        image_url = response.get("image_url") if isinstance(response, dict) else None
        if not image_url:
            return GenerationResult(
                success=False,
                image_url=None,
                error="Generation returned no image.",
                prompt_used=request.positive_prompt,
                duration_ms=_elapsed_ms(started),
            )

        duration_ms = _elapsed_ms(started)
        logger.info("generation_complete", duration_ms=duration_ms, style_id=request.style_id)
        return GenerationResult(
            success=True,
            image_url=str(image_url),
            error=None,
            prompt_used=request.positive_prompt,
            duration_ms=duration_ms,
        )


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
