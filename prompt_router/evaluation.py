"""Routing evaluation harness.

Runs a labeled prompt set through the classifier and router for every
priority and reports classification accuracy plus the simulated cost and
latency of the first candidate the router would pick. No network calls are
made: cost comes from the catalog's estimate and latency from the model's
ordinal latency score.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from rich.console import Console
from rich.table import Table

from prompt_router.core.model_catalog import ModelDescriptor, Priority, PromptCategory
from prompt_router.core.prompt_classifier import classify_prompt
from prompt_router.core.router import PromptRouter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EvaluationCase:
    case_id: str
    prompt: str
    expected: PromptCategory


DEFAULT_EVALUATION_SET: Sequence[EvaluationCase] = (
    EvaluationCase(
        "sum_01",
        "Summarize the key points of the 2024 Paris Olympics opening ceremony.",
        PromptCategory.SUMMARIZATION,
    ),
    EvaluationCase(
        "code_01",
        "Write a TypeScript function to fetch data from an API and handle errors.",
        PromptCategory.CODE_GENERATION,
    ),
    EvaluationCase(
        "qa_c_01",
        "Explain in detail the theory of general relativity and its implications for black holes.",
        PromptCategory.QA_COMPLEX,
    ),
    EvaluationCase("math_01", "What is the integral of x^2 * sin(x) dx?", PromptCategory.MATH_LOGIC),
    EvaluationCase(
        "creative_01",
        "Write a short story about a robot who discovers music.",
        PromptCategory.CREATIVE_WRITING,
    ),
    EvaluationCase("qa_s_01", "What is the capital of Bangladesh?", PromptCategory.QA_SIMPLE),
    EvaluationCase("trans_01", "Translate 'good morning' in french.", PromptCategory.TRANSLATION),
    EvaluationCase(
        "analysis_01",
        "Compare and contrast renewable and fossil energy policies.",
        PromptCategory.ANALYSIS,
    ),
    EvaluationCase("chat_01", "Hello there, nice to meet you.", PromptCategory.GENERAL_CHAT),
)


def simulated_latency_ms(model: ModelDescriptor) -> float:
    """Map the 1-10 latency score onto milliseconds (10 is fastest)."""
    return float(max(11 - model.latency, 1) * 250)


@dataclass
class EvaluationRecord:
    case_id: str
    priority: Priority
    classified_as: PromptCategory
    expected: PromptCategory
    chosen_model: Optional[str]
    cost: float
    latency_ms: Optional[float]

    @property
    def correct(self) -> bool:
        return self.classified_as == self.expected


@dataclass
class PrioritySummary:
    priority: Priority
    average_cost: float
    average_latency_ms: Optional[float]
    routed: int


@dataclass
class EvaluationReport:
    records: List[EvaluationRecord] = field(default_factory=list)

    @property
    def accuracy(self) -> float:
        if not self.records:
            return 0.0
        return sum(1 for r in self.records if r.correct) / len(self.records)

    def summary_for(self, priority: Priority) -> PrioritySummary:
        records = [r for r in self.records if r.priority == priority]
        routed = [r for r in records if r.chosen_model is not None]
        latencies = [r.latency_ms for r in routed if r.latency_ms is not None]
        return PrioritySummary(
            priority=priority,
            average_cost=sum(r.cost for r in routed) / len(routed) if routed else 0.0,
            average_latency_ms=sum(latencies) / len(latencies) if latencies else None,
            routed=len(routed),
        )

    def summaries(self) -> Dict[Priority, PrioritySummary]:
        return {p: self.summary_for(p) for p in Priority}


def run_evaluation(
    router: PromptRouter,
    cases: Sequence[EvaluationCase] = DEFAULT_EVALUATION_SET,
    priorities: Sequence[Priority] = tuple(Priority),
) -> EvaluationReport:
    report = EvaluationReport()
    for case in cases:
        category = classify_prompt(case.prompt)
        for priority in priorities:
            decision = router.route(category, priority)
            chosen = decision.selected_models[0] if decision.selected_models else None
            report.records.append(
                EvaluationRecord(
                    case_id=case.case_id,
                    priority=priority,
                    classified_as=category,
                    expected=case.expected,
                    chosen_model=chosen.model_id if chosen else None,
                    cost=router.catalog.estimate_cost(chosen.model_id) if chosen else 0.0,
                    latency_ms=simulated_latency_ms(chosen) if chosen else None,
                )
            )
            logger.debug(f"[{case.case_id}/{priority.value}] {category.value} -> {chosen.model_id if chosen else 'none'}")
    return report


def render_report(report: EvaluationReport, console: Optional[Console] = None) -> None:
    console = console or Console()

    table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
    table.add_column("Case")
    table.add_column("Priority")
    table.add_column("Classified")
    table.add_column("OK")
    table.add_column("Chosen model")
    table.add_column("Cost", justify="right")
    table.add_column("Latency", justify="right")
    for r in report.records:
        table.add_row(
            r.case_id,
            r.priority.value,
            r.classified_as.value,
            "✅" if r.correct else "❌",
            r.chosen_model or "-",
            f"${r.cost:.5f}",
            f"{r.latency_ms:.0f}ms" if r.latency_ms is not None else "-",
        )
    console.print(table)

    correct = sum(1 for r in report.records if r.correct)
    console.print(
        f"\n[bold]Classification Accuracy:[/bold] {report.accuracy * 100:.2f}% "
        f"({correct}/{len(report.records)})"
    )
    for summary in report.summaries().values():
        latency = f"{summary.average_latency_ms:.0f}ms" if summary.average_latency_ms is not None else "-"
        console.print(
            f"[bold]{summary.priority.value.upper()}[/bold]: average cost ${summary.average_cost:.5f}, "
            f"average latency {latency} ({summary.routed} routed)"
        )
