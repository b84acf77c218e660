"""Tests for the routing evaluation harness."""

from rich.console import Console

from prompt_router.core.model_catalog import Priority, PromptCategory, ProviderType
from prompt_router.core.router import PromptRouter
from prompt_router.evaluation import (
    DEFAULT_EVALUATION_SET,
    EvaluationCase,
    render_report,
    run_evaluation,
    simulated_latency_ms,
)


class TestRunEvaluation:
    """Tests for run_evaluation."""

    def test_default_set_is_fully_classified(self, router):
        report = run_evaluation(router)
        assert len(report.records) == len(DEFAULT_EVALUATION_SET) * len(Priority)
        assert report.accuracy == 1.0

    def test_cost_priority_is_cheapest_on_average(self, router):
        summaries = run_evaluation(router).summaries()
        assert summaries[Priority.COST].average_cost < summaries[Priority.QUALITY].average_cost

    def test_misclassification_is_reported(self, router):
        cases = [EvaluationCase("x", "Hello there", PromptCategory.MATH_LOGIC)]
        report = run_evaluation(router, cases, priorities=[Priority.COST])
        assert report.accuracy == 0.0
        assert not report.records[0].correct

    def test_unroutable_cases_have_no_model(self, catalog, health_tracker, credentials_for):
        router = PromptRouter(catalog, health_tracker, credentials_for())
        report = run_evaluation(router, priorities=[Priority.LATENCY])
        assert all(r.chosen_model is None for r in report.records)
        summary = report.summary_for(Priority.LATENCY)
        assert summary.routed == 0
        assert summary.average_latency_ms is None

    def test_simulated_latency(self, catalog):
        assert simulated_latency_ms(catalog.get("google/gemini-1.5-flash-latest")) == 250.0
        assert simulated_latency_ms(catalog.get("anthropic/claude-3-opus-20240229")) == 1750.0

    def test_render_report(self, catalog, health_tracker, credentials_for):
        router = PromptRouter(catalog, health_tracker, credentials_for(ProviderType.GOOGLE))
        console = Console(record=True, width=160)
        render_report(run_evaluation(router), console)
        text = console.export_text()
        assert "Classification Accuracy:" in text
        assert "COST" in text
