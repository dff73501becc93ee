from __future__ import annotations

import asyncio
import importlib
import json
import os
import shlex
from typing import Any, Dict, List, Optional, Sequence

SERVER_ENV = "LINECRAFT_MCP_SERVER"
CLIENT_FACTORY_ENV = "LINECRAFT_MCP_CLIENT_FACTORY"
COMMAND_ENV = "LINECRAFT_MCP_COMMAND"
ARGS_ENV = "LINECRAFT_MCP_ARGS"
MOCK_ENV = "LINECRAFT_MOCK_SERVICES"


class PythonSDKMCPClient:
    """
    Optional MCP transport using the official Python SDK over stdio.
    This is only activated when LINECRAFT_MCP_COMMAND is configured.
    """

    def __init__(self, command: str, args: Optional[List[str]] = None) -> None:
        self.command = command
        self.args = args or []

    def call_tool(self, server: Optional[str], tool: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        # `server` is ignored for direct stdio transport; included for API compatibility.
        del server
        return asyncio.run(self._call_tool(tool=tool, arguments=arguments))

    async def _call_tool(self, tool: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        try:
            from mcp import ClientSession, StdioServerParameters  # type: ignore
            from mcp.client.stdio import stdio_client  # type: ignore
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise RuntimeError(
                "MCP SDK not installed. Install optional dependency `mcp`."
            ) from exc

        params = StdioServerParameters(command=self.command, args=self.args)
        async with stdio_client(params) as (read, write):
            async with ClientSession(read, write) as session:
                await session.initialize()
                result = await session.call_tool(tool, arguments)
        return normalize_mcp_response(result)


def normalize_mcp_response(result: Any, expected_keys: Sequence[str] = ()) -> Dict[str, Any]:
    """
    Flatten the shapes an MCP tool result can take into one dict. When
    ``expected_keys`` is given, wrapper containers holding one of those keys
    are unwrapped.
    """
    if isinstance(result, dict):
        payload = result
    elif hasattr(result, "model_dump"):
        payload = result.model_dump()  # type: ignore[assignment]
    elif hasattr(result, "dict"):
        payload = result.dict()  # type: ignore[assignment]
    else:
        payload = {}

    if payload.get("isError") or payload.get("is_error"):
        raise RuntimeError(f"MCP tool reported an error: {_text_content(payload) or 'no details'}")

    if any(key in payload for key in expected_keys):
        return payload

    for container_key in ("result", "data", "output"):
        candidate = payload.get(container_key)
        if isinstance(candidate, dict) and (
            not expected_keys or any(key in candidate for key in expected_keys)
        ):
            return candidate

    for structured_key in ("structuredContent", "structured_content"):
        structured = payload.get(structured_key)
        if isinstance(structured, dict):
            return structured

    for chunk in _text_chunks(payload):
        try:
            parsed = json.loads(chunk)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed

    if payload and not expected_keys:
        return payload

    raise RuntimeError("MCP tool response did not include parseable structured content.")


def _text_chunks(payload: Dict[str, Any]) -> List[str]:
    text_chunks: List[str] = []
    for item in payload.get("content", []) or []:
        if isinstance(item, dict):
            text_value = item.get("text")
        else:
            text_value = getattr(item, "text", None)
        if isinstance(text_value, str):
            text_chunks.append(text_value)
    return text_chunks


def _text_content(payload: Dict[str, Any]) -> str:
    return " ".join(_text_chunks(payload)).strip()


def load_client_factory(factory_spec: str) -> Any:
    if ":" not in factory_spec:
        raise RuntimeError(
            f"Invalid {CLIENT_FACTORY_ENV} format. Use 'module_path:factory_name'."
        )
    module_name, symbol = factory_spec.split(":", 1)
    module = importlib.import_module(module_name)
    target = getattr(module, symbol)
    client = target() if callable(target) else target
    if not hasattr(client, "call_tool"):
        raise RuntimeError("Loaded MCP client does not implement call_tool(server, tool, arguments).")
    return client


def resolve_mcp_client() -> Optional[Any]:
    factory = os.getenv(CLIENT_FACTORY_ENV)
    if factory:
        return load_client_factory(factory)

    command = os.getenv(COMMAND_ENV)
    if command:
        args = shlex.split(os.getenv(ARGS_ENV, ""))
        return PythonSDKMCPClient(command=command, args=args)

    return None


def mock_services_enabled() -> bool:
    return os.getenv(MOCK_ENV, "0") == "1"
