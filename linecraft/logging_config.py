"""
Structured logging for linecraft.

structlog renders JSON when stderr is not a terminal and a console layout
otherwise. The active pipeline request id is injected into every event.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from typing import Any, Dict, Optional

import structlog

_request_id_ctx: ContextVar[str] = ContextVar("linecraft_request_id", default="")

_configured = False


def bind_request_id(request_id: str) -> None:
    _request_id_ctx.set(request_id)


def clear_request_id() -> None:
    _request_id_ctx.set("")


def _inject_context(_logger: Any, _method: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    request_id = _request_id_ctx.get("")
    if request_id:
        event_dict.setdefault("request_id", request_id)
    return event_dict


def setup_logging(level: str = "INFO", log_format: str = "auto", force: bool = False) -> None:
    """Configure structlog and the stdlib root handler. Runs once unless forced."""
    global _configured
    if _configured and not force:
        return
    _configured = True

    if log_format == "auto":
        use_json = not sys.stderr.isatty()
    else:
        use_json = log_format == "json"

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        _inject_context,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if use_json:
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for noisy in ("mcp", "httpx", "httpcore", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def setup_logging_from_config(
    config: Dict[str, Any],
    level: Optional[str] = None,
    force: bool = False,
) -> None:
    """Entry points only; library code never touches the root logger."""
    logging_cfg = config.get("logging", {})
    setup_logging(
        level=level or str(logging_cfg.get("level", "INFO")),
        log_format=str(logging_cfg.get("format", "auto")),
        force=force,
    )


def get_logger(name: Optional[str] = None) -> Any:
    return structlog.get_logger(name)
