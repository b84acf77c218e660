"""CLI runner for the prompt router.

Subcommands:
    route     Classify a prompt and show the routing decision (no network)
    ask       Route and complete a prompt with automatic fallback
    health    Show which provider API keys are configured
    evaluate  Run the labeled evaluation set through the router
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from prompt_router import __version__
from prompt_router.core.credential_availability import CredentialChecker
from prompt_router.core.custom_rules import load_custom_rules
from prompt_router.core.fallback_executor import FallbackExecutor, FinalResult
from prompt_router.core.health_tracker import HealthTracker
from prompt_router.core.model_catalog import Priority
from prompt_router.core.observability import configure_telemetry
from prompt_router.core.router import PromptRouter, RoutingDecision
from prompt_router.evaluation import render_report, run_evaluation
from prompt_router.settings import Settings, get_settings

logger = logging.getLogger(__name__)

console = Console()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="prompt-router",
        description="Route prompts to the best available LLM provider",
    )
    parser.add_argument("--version", "-v", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--json", action="store_true", help="Print machine-readable JSON")
    subparsers = parser.add_subparsers(dest="command", required=True)

    priority_choices = [p.value for p in Priority]

    route_parser = subparsers.add_parser("route", help="Show the routing decision for a prompt")
    route_parser.add_argument("prompt", help="Prompt text")
    route_parser.add_argument("--priority", "-p", choices=priority_choices, default=None)
    route_parser.add_argument("--rules", help="JSON file of custom category -> model rules")

    ask_parser = subparsers.add_parser("ask", help="Route and complete a prompt")
    ask_parser.add_argument("prompt", help="Prompt text")
    ask_parser.add_argument("--priority", "-p", choices=priority_choices, default=None)
    ask_parser.add_argument("--rules", help="JSON file of custom category -> model rules")

    subparsers.add_parser("health", help="Show which provider API keys are configured")
    subparsers.add_parser("evaluate", help="Run the routing evaluation set")
    return parser


def _priority(args: argparse.Namespace, settings: Settings) -> Priority:
    return Priority(args.priority) if args.priority else settings.router.default_priority


def render_decision(decision: RoutingDecision) -> None:
    table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
    table.add_column("#", justify="right")
    table.add_column("Model")
    table.add_column("Provider")
    for index, model in enumerate(decision.selected_models, start=1):
        table.add_row(str(index), model.model_id, model.provider.value)

    console.print(f"[bold]Category:[/bold] {decision.category.value}")
    console.print(f"[bold]Priority:[/bold] {decision.priority.value}")
    console.print(f"[bold]Estimated cost:[/bold] ${decision.estimated_cost:.6f}")
    console.print(f"[dim]{escape(decision.reasoning)}[/dim]")
    if decision.selected_models:
        console.print(table)
    else:
        console.print("[yellow]No models available. Check API keys.[/yellow]")


def render_result(result: FinalResult) -> None:
    if result.routing_decision is not None:
        render_decision(result.routing_decision)
    if not result.success:
        console.print(Panel(escape(result.error or ""), title="Error", border_style="red"))
        return
    console.print(Panel(escape(result.content or ""), title=f"{result.model} ({result.provider})"))
    console.print(
        f"[dim]Actual cost ${result.actual_cost or 0.0:.6f} · "
        f"{result.latency_ms or 0.0:.0f}ms · {result.attempts} attempt(s)[/dim]"
    )


def render_health(health: Dict[str, Dict[str, Any]]) -> None:
    for provider, info in health.items():
        console.print(f"[dim]{provider}: {info['failure_count']} failure(s) this run[/dim]")


def handle_route(args: argparse.Namespace, settings: Settings) -> int:
    router = PromptRouter.from_settings(settings, HealthTracker.from_settings(settings.router))
    overrides = load_custom_rules(args.rules) if args.rules else None
    decision = router.route_prompt(args.prompt, _priority(args, settings), custom_overrides=overrides)
    if args.json:
        print(json.dumps(decision.to_dict(), indent=2))
    else:
        render_decision(decision)
    return 0


def handle_ask(args: argparse.Namespace, settings: Settings) -> int:
    executor = FallbackExecutor.from_settings(settings)
    overrides = load_custom_rules(args.rules) if args.rules else None
    result = asyncio.run(
        executor.execute_with_fallback(args.prompt, _priority(args, settings), overrides)
    )
    health = {provider: state.to_dict() for provider, state in executor.get_health_status().items()}
    if args.json:
        print(json.dumps({**result.to_dict(), "health": health}, indent=2))
    else:
        render_result(result)
        render_health(health)
    return 0 if result.success else 1


def handle_health(args: argparse.Namespace, settings: Settings) -> int:
    checker = CredentialChecker(settings.api)
    if args.json:
        print(json.dumps({"credentials": checker.get_credential_status()}, indent=2))
    else:
        console.print(checker.get_status_report())
    return 0


def handle_evaluate(args: argparse.Namespace, settings: Settings) -> int:
    router = PromptRouter.from_settings(settings, HealthTracker.from_settings(settings.router))
    report = run_evaluation(router)
    if args.json:
        print(json.dumps({"accuracy": report.accuracy, "records": len(report.records)}, indent=2))
    else:
        render_report(report, console)
    return 0


HANDLERS = {
    "route": handle_route,
    "ask": handle_ask,
    "health": handle_health,
    "evaluate": handle_evaluate,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()

    logging.basicConfig(
        level=settings.router.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    configure_telemetry(logfire_token=settings.api.get_key_value("LOGFIRE_TOKEN"))

    try:
        return HANDLERS[args.command](args, settings)
    except (OSError, ValueError) as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        return 2


def main_entry() -> None:
    """Entry point for the installed console script."""
    sys.exit(main())
