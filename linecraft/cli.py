from __future__ import annotations

import importlib
import json
import os
import shlex
import shutil
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from linecraft import __version__
from linecraft.agents.analyzer import normalize_issue
from linecraft.agents.repair_planner import RepairPlanBuilder
from linecraft.logging_config import setup_logging, setup_logging_from_config
from linecraft.pipeline.orchestrator import Orchestrator, preview_prompt, result_to_dict
from linecraft.repair.strategies import list_strategy_descriptors
from linecraft.utils.config import DEFAULT_CONFIG_PATH, load_config
from linecraft.utils.mcp import CLIENT_FACTORY_ENV, COMMAND_ENV, MOCK_ENV, SERVER_ENV, mock_services_enabled
from linecraft.utils.services import ImageGenerationClient, resolve_provider
from linecraft.utils.structured_data import dump_structured_data, load_structured_file
from linecraft.utils.types import GenerateAndValidateRequest, IssueHistory, PipelineConfig, RepairContext

app = typer.Typer(help="Generate coloring pages and repair them until they pass line-art QA.")

_STATUS_STYLE = {"ok": "green", "warn": "yellow", "fail": "red"}


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show linecraft version and exit.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log pipeline events to stderr."),
) -> None:
    del version
    ctx.ensure_object(dict)["log_level"] = "INFO" if verbose else "WARNING"
    setup_logging(level=ctx.obj["log_level"], force=True)


def _dependency_check(module_name: str, required: bool) -> dict:
    try:
        importlib.import_module(module_name)
        return {
            "check": f"python_module:{module_name}",
            "status": "ok",
            "required": required,
            "message": f"Module '{module_name}' is importable.",
        }
    except Exception as exc:
        status = "fail" if required else "warn"
        message = f"Module '{module_name}' is unavailable: {exc}"
        if module_name == "mcp":
            message = f"{message} Install with: pip install 'linecraft[mcp]'"
        return {
            "check": f"python_module:{module_name}",
            "status": status,
            "required": required,
            "message": message,
        }


def _mcp_check(probe_mcp: bool) -> dict:
    if mock_services_enabled():
        return {
            "check": "services_mcp",
            "status": "ok",
            "required": False,
            "message": f"Mock mode is enabled ({MOCK_ENV}=1); real MCP probe skipped.",
        }

    server = os.getenv(SERVER_ENV, "").strip()
    factory = os.getenv(CLIENT_FACTORY_ENV, "").strip()
    command = os.getenv(COMMAND_ENV, "").strip()

    if not server:
        return {
            "check": "services_mcp",
            "status": "warn",
            "required": False,
            "message": f"{SERVER_ENV} is not configured.",
        }

    if not factory and not command:
        return {
            "check": "services_mcp",
            "status": "warn",
            "required": False,
            "message": f"No MCP transport configured. Set {CLIENT_FACTORY_ENV} or {COMMAND_ENV}.",
        }

    if command:
        command_parts = shlex.split(command)
        command_bin = command_parts[0] if command_parts else ""
        if not command_bin:
            return {
                "check": "services_mcp",
                "status": "fail",
                "required": False,
                "message": f"{COMMAND_ENV} is set but empty after parsing.",
            }
        if shutil.which(command_bin) is None:
            return {
                "check": "services_mcp",
                "status": "fail",
                "required": False,
                "message": f"MCP command binary '{command_bin}' is not on PATH.",
            }

    if not probe_mcp:
        return {
            "check": "services_mcp",
            "status": "ok",
            "required": False,
            "message": "MCP configuration detected. Run `linecraft doctor --probe-mcp` for an end-to-end probe.",
        }

    try:
        client = ImageGenerationClient(mock_mode=False)
        client.generate_image(
            {
                "prompt": "Connectivity probe: a single circle outline.",
                "negative_prompt": "color",
                "style_id": "Cozy",
                "complexity_id": "Very Simple",
                "audience_id": "adults",
                "aspect_ratio": "1:1",
                "resolution_tier": "1K",
                "temperature": 0.0,
            }
        )
        return {
            "check": "services_mcp",
            "status": "ok",
            "required": False,
            "message": f"MCP probe succeeded via `{client.tool}`.",
        }
    except Exception as exc:
        return {
            "check": "services_mcp",
            "status": "fail",
            "required": False,
            "message": f"MCP probe failed: {exc}",
        }


def _render_doctor_output(report: dict) -> None:
    table = Table(title="linecraft doctor")
    table.add_column("Check", justify="left")
    table.add_column("Status", justify="left")
    table.add_column("Required", justify="center")
    table.add_column("Message", justify="left")

    for check in report.get("checks", []):
        status = str(check.get("status", "warn"))
        style = _STATUS_STYLE.get(status, "white")
        table.add_row(
            str(check.get("check", "")),
            f"[{style}]{status}[/{style}]",
            "yes" if check.get("required", False) else "no",
            str(check.get("message", "")),
        )

    console = Console()
    console.print(table)
    console.print(
        f"Overall: {'PASS' if report.get('passed') else 'FAIL'} "
        f"(required failures: {report.get('required_failures', 0)}, "
        f"optional failures: {report.get('optional_failures', 0)})"
    )


def _render_attempts(payload: Dict[str, Any]) -> None:
    table = Table(title=f"Request {payload.get('request_id')}")
    table.add_column("#", justify="right")
    table.add_column("Score", justify="right")
    table.add_column("Passed", justify="center")
    table.add_column("Issues", justify="left")
    table.add_column("Parameters", justify="left")
    table.add_column("ms", justify="right")

    for attempt in payload.get("attempt_history", []):
        qa = attempt.get("qa_result") or {}
        params = attempt.get("parameters_used") or {}
        if attempt.get("error"):
            issues_text = f"[red]generation failed: {attempt['error']}[/red]"
        else:
            issues_text = ", ".join(issue.get("code", "") for issue in qa.get("issues", [])) or "-"
        score = qa.get("score")
        table.add_row(
            str(attempt.get("attempt_number")),
            f"{score:.0f}" if isinstance(score, (int, float)) else "n/a",
            "yes" if qa.get("passed") else "no",
            issues_text,
            f"{params.get('style_id')} / {params.get('complexity_id')} / t={params.get('temperature')}",
            str(attempt.get("duration_ms", "")),
        )

    console = Console()
    console.print(table)
    for change in payload.get("parameter_changes", []):
        console.print(
            f"Attempt {change.get('attempt_number')}: {change.get('field')} "
            f"{change.get('old_value')} -> {change.get('new_value')} ({change.get('reason')})"
        )
    console.print(f"Status: {payload.get('status')}  Score: {payload.get('quality_score')}")
    console.print(f"Summary: {payload.get('summary')}")


@app.command()
def generate(
    ctx: typer.Context,
    subject: str = typer.Argument(..., help="What the coloring page should show."),
    style: str = typer.Option("Cozy", "--style", help="Style ID."),
    complexity: str = typer.Option("Moderate", "--complexity", help="Complexity tier."),
    audience: str = typer.Option("adults", "--audience", help="Target audience."),
    aspect_ratio: Optional[str] = typer.Option(None, "--aspect-ratio", help="Page aspect ratio."),
    resolution_tier: Optional[str] = typer.Option(None, "--resolution", help="Resolution tier (1K, 2K, 4K)."),
    mode: str = typer.Option(
        "auto",
        "--mode",
        help="Service execution mode: auto, mock, or real.",
    ),
    max_attempts: Optional[int] = typer.Option(None, "--max-attempts", help="Hard ceiling on generation attempts."),
    preview: bool = typer.Option(False, "--preview", help="Lenient preview QA instead of production QA."),
    no_retry: bool = typer.Option(False, "--no-retry", help="Stop after the first failed QA check."),
    config_path: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config", help="Path to linecraft.yaml."),
    output_path: Optional[Path] = typer.Option(None, "--output", help="Optional path to write the result JSON."),
    as_json: bool = typer.Option(False, "--as-json", help="Print the full result JSON."),
) -> None:
    if mode not in {"auto", "mock", "real"}:
        raise typer.BadParameter("mode must be one of: auto, mock, real")

    previous_mock_mode = os.getenv(MOCK_ENV)
    if mode == "mock":
        os.environ[MOCK_ENV] = "1"
    elif mode == "real":
        os.environ[MOCK_ENV] = "0"

    try:
        config = load_config(config_path)
        setup_logging_from_config(config, level=(ctx.obj or {}).get("log_level"), force=True)
        generation_cfg = config.get("generation", {})
        pipeline_config = PipelineConfig.from_config(
            config,
            max_attempts=max_attempts,
            mode="preview" if preview else None,
            enable_auto_retry=False if no_retry else None,
        )
        request = GenerateAndValidateRequest(
            subject=subject,
            style_id=style,
            complexity_id=complexity,
            audience_id=audience,
            aspect_ratio=aspect_ratio or str(generation_cfg.get("aspect_ratio", "1:1")),
            resolution_tier=resolution_tier or str(generation_cfg.get("resolution_tier", "2K")),
            provider=resolve_provider(mode, tool=str(generation_cfg.get("tool", "linecraft.generate_image"))),
        )
        orchestrator = Orchestrator(config=config, pipeline_config=pipeline_config)
        result = orchestrator.run(request)
    except ValueError as exc:
        raise typer.BadParameter(str(exc))
    except RuntimeError as exc:
        typer.echo(f"Generation failed: {exc}")
        raise typer.Exit(code=1)
    finally:
        if mode in {"mock", "real"}:
            if previous_mock_mode is None:
                os.environ.pop(MOCK_ENV, None)
            else:
                os.environ[MOCK_ENV] = previous_mock_mode

    payload = result_to_dict(result)
    if output_path:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(json.dumps(payload, indent=2, default=str), encoding="utf-8")

    if as_json:
        typer.echo(json.dumps(payload, indent=2, default=str))
    else:
        _render_attempts(payload)
        if output_path:
            typer.echo(f"Result written to: {output_path}")

    if not result.success:
        raise typer.Exit(code=1)


@app.command()
def inspect(
    result_path: Path = typer.Argument(..., exists=True, help="Result JSON written by `generate --output`."),
    as_json: bool = typer.Option(False, "--as-json", help="Print the attempt history as JSON."),
) -> None:
    payload = load_structured_file(result_path)
    if not isinstance(payload, dict) or "attempt_history" not in payload:
        raise typer.BadParameter(f"{result_path} is not a linecraft result file.")

    if as_json:
        typer.echo(json.dumps(payload.get("attempt_history", []), indent=2))
        return
    _render_attempts(payload)


@app.command()
def prompt(
    subject: str = typer.Argument(..., help="What the coloring page should show."),
    style: str = typer.Option("Cozy", "--style", help="Style ID."),
    complexity: str = typer.Option("Moderate", "--complexity", help="Complexity tier."),
    audience: str = typer.Option("adults", "--audience", help="Target audience."),
    aspect_ratio: str = typer.Option("1:1", "--aspect-ratio", help="Page aspect ratio."),
    as_json: bool = typer.Option(False, "--as-json", help="Print the prompts as JSON."),
) -> None:
    """Show the prompts the first attempt would send, without generating."""
    try:
        preview = preview_prompt(subject, style, complexity, audience, aspect_ratio=aspect_ratio)
    except ValueError as exc:
        raise typer.BadParameter(str(exc))

    if as_json:
        payload = asdict(preview)
        payload["complexity_capped"] = preview.complexity_capped
        typer.echo(json.dumps(payload, indent=2))
        return

    console = Console()
    if preview.complexity_capped:
        console.print(
            f"[yellow]Complexity capped for {preview.audience_id}: "
            f"{preview.requested_complexity_id} -> {preview.complexity_id}[/yellow]"
        )
    for warning in preview.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")
    console.print("[bold]Positive prompt[/bold]")
    console.print(preview.positive, markup=False)
    console.print("[bold]Negative prompt[/bold]")
    console.print(preview.negative, markup=False)


@app.command()
def plan(
    issues_path: Path = typer.Argument(..., exists=True, help="JSON or YAML file with reported issues."),
    style: str = typer.Option("Cozy", "--style", help="Style ID used for the attempt."),
    complexity: str = typer.Option("Moderate", "--complexity", help="Complexity tier used for the attempt."),
    audience: str = typer.Option("adults", "--audience", help="Audience used for the attempt."),
    attempt: int = typer.Option(1, "--attempt", help="Attempt number the issues came from."),
    max_attempts: int = typer.Option(3, "--max-attempts", help="Attempt budget."),
    history: List[str] = typer.Option(
        [],
        "--history",
        help="Comma-separated issue codes from one earlier attempt. Repeat per attempt.",
    ),
    no_escalation: bool = typer.Option(False, "--no-escalation", help="Disable parameter escalation."),
    as_json: bool = typer.Option(False, "--as-json", help="Print the repair plan as JSON."),
    as_yaml: bool = typer.Option(False, "--as-yaml", help="Print the repair plan as YAML."),
) -> None:
    raw = load_structured_file(issues_path)
    if isinstance(raw, dict):
        raw = raw.get("issues", [])
    if not isinstance(raw, list) or not all(isinstance(item, dict) for item in raw):
        raise typer.BadParameter("Issues file must hold a list of issues or an object with an 'issues' list.")

    previous = IssueHistory()
    for entry in history:
        previous.record_attempt(code.strip() for code in entry.split(",") if code.strip())

    context = RepairContext(
        style_id=style,
        complexity_id=complexity,
        audience_id=audience,
        attempt_number=attempt,
        previous_issues=previous,
    )
    builder = RepairPlanBuilder(allow_escalation=not no_escalation)
    repair_plan = builder.build([normalize_issue(item) for item in raw], context, max_attempts)
    # JSON round trip turns tuples into lists so safe_dump accepts them.
    payload = json.loads(json.dumps(asdict(repair_plan)))

    if as_json:
        typer.echo(dump_structured_data(payload, as_yaml=False))
        return
    if as_yaml:
        typer.echo(dump_structured_data(payload))
        return

    table = Table(title=f"Repair plan {repair_plan.repair_id}")
    table.add_column("Priority", justify="right")
    table.add_column("Issue", justify="left")
    table.add_column("Action", justify="left")
    table.add_column("Confidence", justify="right")
    table.add_column("Escalated", justify="center")
    for action in repair_plan.actions:
        table.add_row(
            str(action.priority),
            action.issue_code,
            action.action,
            f"{action.confidence:.0f}",
            "yes" if action.escalated else "no",
        )
    console = Console()
    console.print(table)
    if repair_plan.negative_boosts:
        console.print(f"Negative boosts: {', '.join(repair_plan.negative_boosts)}")
    suggestions = repair_plan.parameter_suggestions
    if not suggestions.is_empty():
        console.print(
            "Parameters: "
            f"style={suggestions.style_id} complexity={suggestions.complexity_id} "
            f"audience={suggestions.audience_id} temperature={suggestions.temperature}"
        )
    for issue in repair_plan.unrepairable_issues:
        console.print(f"[red]Unrepairable:[/red] {issue.code} ({issue.severity})")
    console.print(repair_plan.summary)


@app.command()
def strategies(
    category: List[str] = typer.Option([], "--category", help="Only list these issue categories."),
    as_json: bool = typer.Option(False, "--as-json", help="Print strategy descriptors as JSON."),
) -> None:
    try:
        descriptors = list_strategy_descriptors(category or None)
    except ValueError as exc:
        raise typer.BadParameter(str(exc))

    if as_json:
        typer.echo(json.dumps(descriptors, indent=2))
        return

    table = Table(title="Repair strategies")
    table.add_column("Issue code", justify="left")
    table.add_column("Category", justify="left")
    table.add_column("Severity", justify="left")
    table.add_column("Priority", justify="right")
    table.add_column("Action", justify="left")
    table.add_column("Max attempts", justify="right")
    table.add_column("Escalates", justify="center")
    for item in descriptors:
        table.add_row(
            item["issue_code"],
            item["category"],
            item["severity"],
            str(item["priority"]),
            item["action"],
            str(item["max_attempts"]),
            "yes" if item["escalates"] else "no",
        )
    Console().print(table)


@app.command()
def doctor(
    as_json: bool = typer.Option(False, "--as-json", help="Print doctor report as JSON."),
    probe_mcp: bool = typer.Option(
        False,
        "--probe-mcp",
        help="Attempt an end-to-end generation MCP probe.",
    ),
    strict: bool = typer.Option(
        False,
        "--strict",
        help="Exit non-zero if any check reports failure.",
    ),
) -> None:
    checks = [
        _dependency_check("typer", required=True),
        _dependency_check("rich", required=True),
        _dependency_check("yaml", required=True),
        _dependency_check("jsonschema", required=True),
        _dependency_check("structlog", required=True),
        _dependency_check("mcp", required=False),
        _mcp_check(probe_mcp=probe_mcp),
    ]

    required_failures = sum(
        1 for check in checks if check.get("required", False) and check.get("status") == "fail"
    )
    optional_failures = sum(
        1 for check in checks if not check.get("required", False) and check.get("status") == "fail"
    )

    report = {
        "version": __version__,
        "checks": checks,
        "probe_mcp": probe_mcp,
        "required_failures": required_failures,
        "optional_failures": optional_failures,
        "passed": required_failures == 0,
    }

    if as_json:
        typer.echo(json.dumps(report, indent=2))
    else:
        _render_doctor_output(report)

    if required_failures > 0:
        raise typer.Exit(code=1)
    if strict and optional_failures > 0:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
