"""CLI command definitions for the research report service."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import typer
import uvicorn
from rich.console import Console
from rich.table import Table

from config import Config
from astock_research.api.app import create_app
from astock_research.domain.errors import ReportWorkflowError
from astock_research.domain.models.report import ReportKind, ReportRequest
from astock_research.domain.services.intent import classify_message
from astock_research.domain.services.periods import parse_period
from astock_research.settings.loader import load_settings
from astock_research.streaming.sink import CallbackSink, Message
from astock_research.utils.logging import configure_logging
from astock_research.workflows.blueprint import describe_stages
from astock_research.workflows.graph import ReportWorkflow

console = Console()
app = typer.Typer(help="Stream A-share research reports from the terminal or over HTTP.")


@dataclass
class AppContext:
    """Holds reusable process-wide objects for CLI commands."""

    config: Config
    _workflow: Optional[ReportWorkflow] = field(default=None, repr=False)

    @property
    def workflow(self) -> ReportWorkflow:
        # Built on first use so `classify` works without provider credentials.
        if self._workflow is None:
            self._workflow = ReportWorkflow.from_config(self.config)
        return self._workflow


def _init_context(debug_override: Optional[bool] = None) -> AppContext:
    """Create a context with configuration and logging."""
    config = load_settings(debug_override=debug_override)
    configure_logging(debug=config.debug)
    return AppContext(config=config)


@app.callback()
def main_callback(
    ctx: typer.Context,
    debug: Optional[bool] = typer.Option(
        None,
        "--debug/--no-debug",
        help="Temporarily toggle verbose logging without touching environment variables.",
    ),
) -> None:
    """Attach the lazily constructed application context to Typer."""
    ctx.obj = _init_context(debug_override=debug)


def _print_event(message: Message) -> None:
    kind = message.get("type")
    if kind == "workflow-start":
        console.rule(message["display"]["title"])
        console.print(" -> ".join(message["display"]["steps"]), style="dim")
    elif kind == "workflow-progress":
        console.print(f"[cyan]{message['percentage']:>3}%[/cyan] {message['message']}")
    elif kind == "display":
        display = message["display"]
        console.print(f"[magenta]{display['title']}[/magenta] {display.get('content') or display.get('results') or ''}")
    elif kind == "workflow-complete":
        console.print(f"[bold green]{message['message']}[/bold green]")
    elif kind == "workflow-error":
        console.print(f"[bold red]{message['error']}[/bold red]")
        console.print(f"{message['details']} / {message['suggestion']}")


async def _generate(workflow: ReportWorkflow, request: ReportRequest) -> str:
    try:
        return await workflow.run(request, CallbackSink(_print_event))
    finally:
        await workflow.aclose()


@app.command()
def generate(
    ctx: typer.Context,
    subject: str = typer.Argument(..., help="Company name or ticker, e.g. 贵州茅台 or 600519.SH"),
    report_date: Optional[str] = typer.Option(
        None, "--date", help="Report date YYYYMMDD; defaults to the last completed quarter end."
    ),
    kind: Optional[str] = typer.Option(None, "--kind", help="Report kind: 年报, 半年报, 一季报, 三季报."),
    model: Optional[str] = typer.Option(None, "--model", help="Model selector, e.g. poe:gpt-4o."),
    markdown_path: Optional[Path] = typer.Option(
        None,
        "--markdown",
        help="Optional custom path for the rendered Markdown report.",
    ),
) -> None:
    """Run the streaming workflow for a single company and save the Markdown report."""
    if ctx.obj is None:
        raise typer.Exit(code=1)
    context: AppContext = ctx.obj

    try:
        request = ReportRequest(
            subject_name=subject,
            as_of_date=parse_period(report_date) if report_date else None,
            report_kind=ReportKind.parse(kind),
            model_selector=model,
        )
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=2) from exc

    try:
        report = asyncio.run(_generate(context.workflow, request))
    except ReportWorkflowError as exc:
        raise typer.Exit(code=1) from exc

    context.config.ensure_directories()
    output_md = markdown_path or context.config.output_dir / f"{subject}_{request.report_date}.md"
    output_md.parent.mkdir(parents=True, exist_ok=True)
    output_md.write_text(report, encoding="utf-8")
    console.print(f"Markdown report available at {output_md}")


@app.command()
def plan() -> None:
    """Display the workflow stages for quick operator reference."""
    table = Table(title="Workflow Stages")
    table.add_column("Step", style="cyan")
    table.add_column("Description")

    for idx, step in enumerate(describe_stages(), start=1):
        table.add_row(str(idx), step)

    console.print(table)


@app.command()
def classify(message: str = typer.Argument(..., help="Chat message to classify.")) -> None:
    """Show how the chat route would route ``message``."""
    decision = classify_message(message)
    style = "green" if decision.is_report else "yellow"
    console.print(f"[{style}]{decision.intent.value}[/{style}] ({decision.reason})")


@app.command()
def serve(
    ctx: typer.Context,
    host: Optional[str] = typer.Option(None, "--host", help="Bind address; defaults to API_HOST."),
    port: Optional[int] = typer.Option(None, "--port", help="Bind port; defaults to API_PORT."),
) -> None:
    """Serve the chat and research-report endpoints with uvicorn."""
    if ctx.obj is None:
        raise typer.Exit(code=1)
    context: AppContext = ctx.obj
    api = create_app(context.config, context.workflow)
    uvicorn.run(
        api,
        host=host or context.config.api_host,
        port=port or context.config.api_port,
        log_level="debug" if context.config.debug else "info",
    )
