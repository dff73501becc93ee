from __future__ import annotations

import base64
import os
from typing import Any, Dict, Optional, Union

from linecraft.utils.mcp import SERVER_ENV, mock_services_enabled, normalize_mcp_response, resolve_mcp_client
from linecraft.utils.types import GENERATION_PROVIDERS, McpProvider, MockProvider

GENERATE_TOOL = "linecraft.generate_image"
ANALYZE_TOOL = "linecraft.analyze_image"

GenerationProvider = Union[MockProvider, McpProvider]

_MOCK_PAGE_SVG = (
    "<svg xmlns='http://www.w3.org/2000/svg' width='1024' height='1024' viewBox='0 0 1024 1024'>"
    "<rect width='1024' height='1024' fill='white'/>"
    "<circle cx='512' cy='470' r='260' fill='none' stroke='black' stroke-width='14'/>"
    "<circle cx='420' cy='420' r='36' fill='none' stroke='black' stroke-width='12'/>"
    "<circle cx='604' cy='420' r='36' fill='none' stroke='black' stroke-width='12'/>"
    "<path d='M400 560 Q512 650 624 560' fill='none' stroke='black' stroke-width='12'/>"
    "</svg>"
)


class _McpToolClient:
    def __init__(
        self,
        mcp_client: Optional[Any] = None,
        server: Optional[str] = None,
        tool: str = "",
        mock_mode: Optional[bool] = None,
    ) -> None:
        self.server = server or os.getenv(SERVER_ENV)
        self.tool = tool
        self.mock_mode = mock_services_enabled() if mock_mode is None else mock_mode
        self.mcp_client = mcp_client
        if self.mcp_client is None and not self.mock_mode:
            self.mcp_client = resolve_mcp_client()

    def _call(self, arguments: Dict[str, Any], expected_keys=()) -> Dict[str, Any]:
        if not self.server or not self.mcp_client:
            raise RuntimeError(
                f"MCP tool '{self.tool}' is not configured. Set LINECRAFT_MCP_SERVER and either "
                "LINECRAFT_MCP_CLIENT_FACTORY or LINECRAFT_MCP_COMMAND, or enable LINECRAFT_MOCK_SERVICES=1."
            )
        response = self.mcp_client.call_tool(server=self.server, tool=self.tool, arguments=arguments)
        return normalize_mcp_response(response, expected_keys=expected_keys)


class ImageGenerationClient(_McpToolClient):
    """Image generation reached through an MCP tool call."""

    def __init__(
        self,
        mcp_client: Optional[Any] = None,
        server: Optional[str] = None,
        tool: str = GENERATE_TOOL,
        mock_mode: Optional[bool] = None,
    ) -> None:
        super().__init__(mcp_client=mcp_client, server=server, tool=tool, mock_mode=mock_mode)

    def generate_image(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        if self.mock_mode:
            return self._mock_image(arguments)

        response = self._call(arguments, expected_keys=("image_url", "imageUrl", "image"))
        image_url = response.get("image_url") or response.get("imageUrl") or response.get("image")
        if not image_url:
            raise RuntimeError(f"Generation tool '{self.tool}' did not return an image.")
        return {**response, "image_url": image_url}

    def _mock_image(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        encoded = base64.b64encode(_MOCK_PAGE_SVG.encode("utf-8")).decode("ascii")
        return {
            "image_url": f"data:image/svg+xml;base64,{encoded}",
            "model": "mock",
            "style_id": arguments.get("style_id"),
        }


class VisionAnalysisClient(_McpToolClient):
    """Vision analysis reached through an MCP tool call."""

    def __init__(
        self,
        mcp_client: Optional[Any] = None,
        server: Optional[str] = None,
        tool: str = ANALYZE_TOOL,
        mock_mode: Optional[bool] = None,
    ) -> None:
        super().__init__(mcp_client=mcp_client, server=server, tool=tool, mock_mode=mock_mode)

    def analyze_image(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        if self.mock_mode:
            return {"dimension_scores": {}, "issues": [], "recommendations": []}
        return self._call(payload, expected_keys=("issues", "dimension_scores", "dimensionScores"))


def validate_provider(provider: Any) -> GenerationProvider:
    if not isinstance(provider, GENERATION_PROVIDERS):
        names = ", ".join(cls.__name__ for cls in GENERATION_PROVIDERS)
        raise ValueError(f"Unsupported generation provider {provider!r}. Expected one of: {names}")
    return provider


def resolve_provider(mode: str = "auto", server: Optional[str] = None, tool: str = GENERATE_TOOL) -> GenerationProvider:
    if mode not in {"auto", "mock", "real"}:
        raise ValueError("mode must be one of: auto, mock, real")
    if mode == "mock" or (mode == "auto" and mock_services_enabled()):
        return MockProvider()
    return McpProvider(server=server, tool=tool)


def build_image_client(provider: GenerationProvider, mcp_client: Optional[Any] = None) -> ImageGenerationClient:
    provider = validate_provider(provider)
    if isinstance(provider, MockProvider):
        return ImageGenerationClient(mock_mode=True)
    return ImageGenerationClient(
        mcp_client=mcp_client,
        server=provider.server,
        tool=provider.tool,
        mock_mode=False,
    )
