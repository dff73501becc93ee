from __future__ import annotations

import os
import sys
import types
import unittest
from unittest.mock import patch

from linecraft.agents.generator import GeneratorAgent
from linecraft.utils.mcp import PythonSDKMCPClient, normalize_mcp_response, resolve_mcp_client
from linecraft.utils.services import (
    ImageGenerationClient,
    VisionAnalysisClient,
    build_image_client,
    resolve_provider,
    validate_provider,
)
from linecraft.utils.types import GenerationRequest, McpProvider, MockProvider

_UNCONFIGURED = {
    "LINECRAFT_MOCK_SERVICES": "0",
    "LINECRAFT_MCP_SERVER": "",
    "LINECRAFT_MCP_CLIENT_FACTORY": "",
    "LINECRAFT_MCP_COMMAND": "",
}


class _FakeMCPClient:
    def __init__(self, response=None) -> None:
        self.calls = []
        self.response = response if response is not None else {"image_url": "https://cdn.example/page.png"}

    def call_tool(self, server, tool, arguments):
        self.calls.append({"server": server, "tool": tool, "arguments": arguments})
        return self.response


def _generation_request() -> GenerationRequest:
    return GenerationRequest(
        positive_prompt="a turtle",
        negative_prompt="color",
        style_id="Cozy",
        complexity_id="Simple",
        audience_id="kids",
        aspect_ratio="1:1",
        resolution_tier="2K",
        temperature=0.8,
    )


class ServiceClientTests(unittest.TestCase):
    def test_mock_mode_generates_svg_data_url(self) -> None:
        with patch.dict(os.environ, {"LINECRAFT_MOCK_SERVICES": "1"}, clear=False):
            client = ImageGenerationClient()
            response = client.generate_image({"style_id": "Cozy"})
        self.assertTrue(response["image_url"].startswith("data:image/svg+xml;base64,"))

    def test_mock_analysis_returns_no_issues(self) -> None:
        client = VisionAnalysisClient(mock_mode=True)
        self.assertEqual(client.analyze_image({})["issues"], [])

    def test_configured_client_is_used_for_tool_call(self) -> None:
        fake = _FakeMCPClient()
        with patch.dict(os.environ, {"LINECRAFT_MOCK_SERVICES": "0"}, clear=False):
            client = ImageGenerationClient(mcp_client=fake, server="art-server")
            response = client.generate_image({"prompt": "a turtle"})

        self.assertEqual(response["image_url"], "https://cdn.example/page.png")
        self.assertEqual(fake.calls[0]["server"], "art-server")
        self.assertEqual(fake.calls[0]["tool"], "linecraft.generate_image")

    def test_camel_case_image_key_is_accepted(self) -> None:
        fake = _FakeMCPClient({"imageUrl": "https://cdn.example/alt.png"})
        client = ImageGenerationClient(mcp_client=fake, server="art-server", mock_mode=False)
        self.assertEqual(client.generate_image({})["image_url"], "https://cdn.example/alt.png")

    def test_missing_configuration_raises(self) -> None:
        with patch.dict(os.environ, _UNCONFIGURED, clear=False):
            client = VisionAnalysisClient()
            with self.assertRaises(RuntimeError):
                client.analyze_image({"image": "x"})

    def test_factory_loader_from_environment(self) -> None:
        module_name = "linecraft_test_fake_factory"
        module = types.ModuleType(module_name)
        module.build_client = lambda: _FakeMCPClient()  # type: ignore[attr-defined]
        sys.modules[module_name] = module
        try:
            with patch.dict(
                os.environ,
                {"LINECRAFT_MCP_CLIENT_FACTORY": f"{module_name}:build_client", "LINECRAFT_MCP_COMMAND": ""},
                clear=False,
            ):
                client = resolve_mcp_client()
        finally:
            sys.modules.pop(module_name, None)
        self.assertIsInstance(client, _FakeMCPClient)

    def test_command_builds_sdk_client(self) -> None:
        with patch.dict(
            os.environ,
            {"LINECRAFT_MCP_CLIENT_FACTORY": "", "LINECRAFT_MCP_COMMAND": "art-mcp", "LINECRAFT_MCP_ARGS": "--port 9 --quiet"},
            clear=False,
        ):
            client = resolve_mcp_client()
        self.assertIsInstance(client, PythonSDKMCPClient)
        self.assertEqual(client.args, ["--port", "9", "--quiet"])

    def test_invalid_factory_spec_raises(self) -> None:
        with patch.dict(os.environ, {"LINECRAFT_MCP_CLIENT_FACTORY": "no_colon_here"}, clear=False):
            with self.assertRaises(RuntimeError):
                resolve_mcp_client()


class NormalizeResponseTests(unittest.TestCase):
    def test_text_content_json_is_parsed(self) -> None:
        payload = {"content": [{"type": "text", "text": '{"issues": [], "dimension_scores": {}}'}]}
        self.assertEqual(normalize_mcp_response(payload, expected_keys=("issues",))["issues"], [])

    def test_structured_content_preferred(self) -> None:
        payload = {"structuredContent": {"image_url": "u"}, "content": []}
        self.assertEqual(normalize_mcp_response(payload, expected_keys=("image_url",)), {"image_url": "u"})

    def test_container_unwrapped(self) -> None:
        payload = {"result": {"issues": [{"code": "TOO_SIMPLE"}]}}
        self.assertEqual(len(normalize_mcp_response(payload, expected_keys=("issues",))["issues"]), 1)

    def test_error_result_raises(self) -> None:
        with self.assertRaises(RuntimeError):
            normalize_mcp_response({"isError": True, "content": [{"text": "quota exceeded"}]})

    def test_unparseable_raises(self) -> None:
        with self.assertRaises(RuntimeError):
            normalize_mcp_response({"content": [{"text": "plain words"}]}, expected_keys=("issues",))


class ProviderTests(unittest.TestCase):
    def test_resolve_provider_modes(self) -> None:
        self.assertIsInstance(resolve_provider("mock"), MockProvider)
        self.assertIsInstance(resolve_provider("real", server="s"), McpProvider)
        with patch.dict(os.environ, {"LINECRAFT_MOCK_SERVICES": "1"}, clear=False):
            self.assertIsInstance(resolve_provider("auto"), MockProvider)
        with self.assertRaises(ValueError):
            resolve_provider("sometimes")

    def test_validate_provider_rejects_loose_objects(self) -> None:
        with self.assertRaises(ValueError):
            validate_provider({"provider": "mcp"})
        provider = McpProvider(server="s")
        self.assertIs(validate_provider(provider), provider)

    def test_build_image_client_for_mock_provider(self) -> None:
        client = build_image_client(MockProvider())
        self.assertTrue(client.mock_mode)


class GeneratorAgentTests(unittest.TestCase):
    def test_success_carries_image_and_prompt(self) -> None:
        fake = _FakeMCPClient()
        agent = GeneratorAgent(client=ImageGenerationClient(mcp_client=fake, server="s", mock_mode=False))
        result = agent.generate(_generation_request())

        self.assertTrue(result.success)
        self.assertEqual(result.image_url, "https://cdn.example/page.png")
        self.assertEqual(result.prompt_used, "a turtle")
        arguments = fake.calls[0]["arguments"]
        self.assertEqual(arguments["negative_prompt"], "color")
        self.assertNotIn("reference_image", arguments)

    def test_transport_failure_becomes_unsuccessful_result(self) -> None:
        with patch.dict(os.environ, _UNCONFIGURED, clear=False):
            agent = GeneratorAgent(client=ImageGenerationClient())
            result = agent.generate(_generation_request())
        self.assertFalse(result.success)
        self.assertIsNone(result.image_url)
        self.assertIn("not configured", result.error)


if __name__ == "__main__":
    unittest.main()
