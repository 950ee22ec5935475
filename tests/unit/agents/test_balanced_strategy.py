"""Unit tests for agentreuse.agents.strategies.balanced module."""

from datetime import UTC, datetime, timedelta

import pytest

from agentreuse.agents.models import AgentStatus
from agentreuse.agents.scoring import PerformanceScore
from agentreuse.agents.strategies.balanced import (
    NO_MATCH_REASON,
    AgentCandidate,
    BalancedSelectionStrategy,
    SelectionCriteria,
)
from agentreuse.agents.workload import WorkloadMetrics


def _candidate(
    agent_id: str,
    capabilities: tuple[str, ...] = ("testing",),
    *,
    overall: float | None = None,
    **kwargs: object,
) -> AgentCandidate:
    score = None
    if overall is not None:
        score = PerformanceScore(
            overall=overall, speed=overall, reliability=overall,
            resource_efficiency=overall, availability=overall,
        )
    return AgentCandidate(
        agent_id=agent_id,
        type="tester",
        capabilities=frozenset(capabilities),
        performance_score=score,
        **kwargs,  # type: ignore[arg-type]
    )


@pytest.fixture
def strategy() -> BalancedSelectionStrategy:
    return BalancedSelectionStrategy()


class TestComponentScores:
    """Test the individual score components."""

    @pytest.mark.parametrize(
        ("usage_count", "expected"),
        [(0, 0.3), (1, 0.8), (5, 0.8), (6, 0.6), (10, 0.6), (11, 0.4), (100, 0.4)],
    )
    def test_reuse_score_buckets(
        self, strategy: BalancedSelectionStrategy, usage_count: int, expected: float
    ) -> None:
        """Moderate reuse scores best."""
        assert strategy.reuse_score(usage_count) == expected

    def test_freshness_score(self, strategy: BalancedSelectionStrategy) -> None:
        """Very recently used agents are mildly penalized."""
        now = datetime.now(UTC)
        assert strategy.freshness_score(None) == 1.0
        assert strategy.freshness_score(now - timedelta(minutes=30)) == 0.7
        assert strategy.freshness_score(now - timedelta(hours=3)) == 0.9
        assert strategy.freshness_score(now - timedelta(hours=10)) == 1.0

    def test_workload_score(self, strategy: BalancedSelectionStrategy) -> None:
        """Less loaded agents score higher."""
        assert strategy.workload_score(None) == 0.7
        assert strategy.workload_score(WorkloadMetrics()) == pytest.approx(1.0)
        assert strategy.workload_score(
            WorkloadMetrics(cpu_usage=0.5, memory_usage=0.5, active_tasks=5)
        ) == pytest.approx(0.5)
        assert strategy.workload_score(
            WorkloadMetrics(cpu_usage=1.0, memory_usage=1.0, active_tasks=30)
        ) == pytest.approx(0.0)

    def test_capability_score(self) -> None:
        """Matched fraction plus a capped bonus for extra capabilities."""
        full = _candidate("a", ("a", "b", "c", "d", "e"))
        partial = _candidate("b", ("a", "b", "c"))

        assert BalancedSelectionStrategy.capability_score(full, ("a",)) == 1.0
        assert BalancedSelectionStrategy.capability_score(partial, ("a", "x")) == pytest.approx(0.55)
        assert BalancedSelectionStrategy.capability_score(partial, ()) == 1.0

    def test_composite_score_for_fresh_candidate(
        self, strategy: BalancedSelectionStrategy
    ) -> None:
        """Unknown performance and workload fall back to defaults."""
        criteria = SelectionCriteria(required_capabilities=("testing",))
        score = strategy.calculate_selection_score(_candidate("a"), criteria)
        # 0.5 * 0.4 + 0.7 * 0.3 + 0.3 * 0.15 + 1.0 * 0.15 + 1.0 * 0.1
        assert score == pytest.approx(0.705)

    def test_criteria_flags_change_weights(self, strategy: BalancedSelectionStrategy) -> None:
        """prefer_reused boosts agents with proven reuse."""
        veteran = _candidate("a", usage_count=3)
        plain = SelectionCriteria(required_capabilities=("testing",))
        reuse = SelectionCriteria(required_capabilities=("testing",), prefer_reused=True)

        assert strategy.calculate_selection_score(veteran, reuse) > strategy.calculate_selection_score(
            veteran, plain
        )


class TestSelectAgents:
    """Test select_agents."""

    def test_selects_best_candidates(self, strategy: BalancedSelectionStrategy) -> None:
        """Highest composite scores win, the rest are alternatives."""
        candidates = [
            _candidate("low", overall=0.1),
            _candidate("high", overall=0.9),
            _candidate("mid", overall=0.5),
        ]

        result = strategy.select_agents(candidates, SelectionCriteria(max_agents=2))

        assert [c.agent_id for c in result.selected_agents] == ["high", "mid"]
        assert [c.agent_id for c in result.alternatives] == ["low"]
        assert 0.0 < result.score <= 1.0

    def test_score_is_mean_of_selected(self, strategy: BalancedSelectionStrategy) -> None:
        """Result score averages the selected candidates."""
        criteria = SelectionCriteria(max_agents=2)
        a, b = _candidate("a", overall=0.9), _candidate("b", overall=0.3)

        result = strategy.select_agents([a, b], criteria)

        expected = (
            strategy.calculate_selection_score(a, criteria)
            + strategy.calculate_selection_score(b, criteria)
        ) / 2
        assert result.score == pytest.approx(expected)

    def test_filters_unavailable_and_incapable(self, strategy: BalancedSelectionStrategy) -> None:
        """Busy agents and agents missing a capability are never selected."""
        candidates = [
            _candidate("busy", status=AgentStatus.BUSY),
            _candidate("coder", ("coding",)),
            _candidate("ok", ("testing", "coding")),
        ]
        criteria = SelectionCriteria(required_capabilities=("testing",), max_agents=3)

        result = strategy.select_agents(candidates, criteria)
        assert [c.agent_id for c in result.selected_agents] == ["ok"]

    def test_no_eligible_candidates(self, strategy: BalancedSelectionStrategy) -> None:
        """Zero eligible candidates is an empty result, not an error."""
        result = strategy.select_agents(
            [_candidate("a", ("coding",))],
            SelectionCriteria(required_capabilities=("testing",)),
        )
        assert result.selected_agents == []
        assert result.score == 0.0
        assert result.reasoning == NO_MATCH_REASON

    def test_reasoning_reflects_criteria(self, strategy: BalancedSelectionStrategy) -> None:
        """The explanation lists the criteria that shaped the choice."""
        result = strategy.select_agents(
            [_candidate("a", overall=0.8, usage_count=4)],
            SelectionCriteria(required_capabilities=("testing",), prefer_reused=True),
        )

        assert "High performance agents (avg: 80.0%)" in result.reasoning
        assert "Balanced workload distribution" in result.reasoning
        assert "Experienced agents (avg usage: 4.0)" in result.reasoning
        assert "All required capabilities matched" in result.reasoning


class TestEvaluateSelection:
    """Test evaluate_selection."""

    def test_empty_selection(self, strategy: BalancedSelectionStrategy) -> None:
        """Nothing selected scores zero."""
        evaluation = strategy.evaluate_selection([], SelectionCriteria())
        assert evaluation.score == 0.0
        assert "No agents selected" in evaluation.weaknesses

    def test_strong_balanced_selection(self, strategy: BalancedSelectionStrategy) -> None:
        """High performers with similar load are strengths."""
        evaluation = strategy.evaluate_selection(
            [_candidate("a", overall=0.9), _candidate("b", overall=0.8)],
            SelectionCriteria(),
        )
        assert "High-performing agent selection" in evaluation.strengths
        assert "Well-balanced workload distribution" in evaluation.strengths

    def test_weak_uneven_selection(self, strategy: BalancedSelectionStrategy) -> None:
        """Low performers with uneven load get recommendations."""
        evaluation = strategy.evaluate_selection(
            [
                _candidate("a", overall=0.2, workload_metrics=WorkloadMetrics(active_tasks=0)),
                _candidate("b", overall=0.3, workload_metrics=WorkloadMetrics(active_tasks=6)),
            ],
            SelectionCriteria(),
        )
        assert "Low average performance" in evaluation.weaknesses
        assert "Uneven workload distribution" in evaluation.weaknesses
        assert len(evaluation.recommendations) == 2
