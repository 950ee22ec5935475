"""Balanced selection strategy.

Ranks available, capability-matching candidates by a composite of
performance, workload balance, proven reuse, capability fit and freshness,
then takes the top ``max_agents``. Weights of the first three depend on the
caller's criteria flags; all constants come from SelectionConfig.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime

from agentreuse.agents.models import AgentStatus, RegisteredAgent
from agentreuse.agents.scoring import PerformanceScore
from agentreuse.agents.workload import WorkloadMetrics
from agentreuse.config.models import SelectionConfig

NO_MATCH_REASON = "No available agents match the required capabilities"


@dataclass(slots=True)
class AgentCandidate:
    """A scored view of one agent, as seen by the strategy.

    Attributes:
        agent_id: Registered agent id.
        type: Worker template name.
        capabilities: Declared capabilities.
        status: Registry status at the time of selection.
        performance_score: Latest performance score, if any.
        workload_metrics: Latest workload snapshot, if any.
        usage_count: Tasks the agent was assigned to so far.
        last_used: Time of the last assignment, None if never used.
    """

    agent_id: str
    type: str
    capabilities: frozenset[str]
    status: AgentStatus = AgentStatus.AVAILABLE
    performance_score: PerformanceScore | None = None
    workload_metrics: WorkloadMetrics | None = None
    usage_count: int = 0
    last_used: datetime | None = None

    @classmethod
    def from_agent(
        cls,
        agent: RegisteredAgent,
        performance_score: PerformanceScore | None = None,
        workload_metrics: WorkloadMetrics | None = None,
    ) -> AgentCandidate:
        return cls(
            agent_id=agent.id,
            type=agent.type,
            capabilities=agent.capabilities,
            status=agent.status,
            performance_score=performance_score,
            workload_metrics=workload_metrics,
            usage_count=agent.usage_count,
            last_used=agent.last_used,
        )


@dataclass(slots=True)
class SelectionCriteria:
    required_capabilities: tuple[str, ...] = ()
    task_type: str = "general"
    max_agents: int = 2
    prioritize_performance: bool = True
    balance_workload: bool = True
    prefer_reused: bool = False


@dataclass(slots=True)
class SelectionResult:
    """Chosen candidates, their mean composite score and an explanation."""

    selected_agents: list[AgentCandidate] = field(default_factory=list)
    score: float = 0.0
    reasoning: str = ""
    alternatives: list[AgentCandidate] = field(default_factory=list)


@dataclass(slots=True)
class SelectionEvaluation:
    score: float
    strengths: list[str] = field(default_factory=list)
    weaknesses: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)


class BalancedSelectionStrategy:
    """Composite-score selection over pre-filtered candidates.

    Example:
        strategy = BalancedSelectionStrategy()
        result = strategy.select_agents(
            candidates,
            SelectionCriteria(required_capabilities=("testing",), max_agents=1),
        )
        if not result.selected_agents:
            print(result.reasoning)
    """

    def __init__(self, config: SelectionConfig | None = None) -> None:
        self._config = config or SelectionConfig()

    @property
    def config(self) -> SelectionConfig:
        return self._config

    def select_agents(
        self,
        candidates: Sequence[AgentCandidate],
        criteria: SelectionCriteria,
    ) -> SelectionResult:
        """Pick the best ``criteria.max_agents`` candidates.

        Zero eligible candidates is not an error: the result is empty with
        score 0 and an explanatory reason.
        """
        eligible = [c for c in candidates if self._is_eligible(c, criteria)]
        if not eligible:
            return SelectionResult(reasoning=NO_MATCH_REASON)

        scored = [(c, self.calculate_selection_score(c, criteria)) for c in eligible]
        scored.sort(key=lambda item: item[1], reverse=True)

        count = max(0, min(criteria.max_agents, len(scored)))
        selected = scored[:count]
        if not selected:
            return SelectionResult(
                reasoning="No agents selected",
                alternatives=[c for c, _ in scored],
            )

        return SelectionResult(
            selected_agents=[c for c, _ in selected],
            score=sum(s for _, s in selected) / len(selected),
            reasoning=self._reasoning([c for c, _ in selected], criteria),
            alternatives=[c for c, _ in scored[count:]],
        )

    @staticmethod
    def _is_eligible(candidate: AgentCandidate, criteria: SelectionCriteria) -> bool:
        if candidate.status != AgentStatus.AVAILABLE:
            return False
        return all(cap in candidate.capabilities for cap in criteria.required_capabilities)

    # -------------------------------------------------------------------------
    # Composite score
    # -------------------------------------------------------------------------

    def calculate_selection_score(
        self, candidate: AgentCandidate, criteria: SelectionCriteria
    ) -> float:
        cfg = self._config
        wp = cfg.performance_weight[0 if criteria.prioritize_performance else 1]
        ww = cfg.workload_weight[0 if criteria.balance_workload else 1]
        wr = cfg.reuse_weight[0 if criteria.prefer_reused else 1]

        score = (
            self._performance(candidate) * wp
            + self.workload_score(candidate.workload_metrics) * ww
            + self.reuse_score(candidate.usage_count) * wr
            + self.capability_score(candidate, criteria.required_capabilities)
            * cfg.capability_weight
            + self.freshness_score(candidate.last_used) * cfg.freshness_weight
        )
        return max(0.0, min(1.0, score))

    def _performance(self, candidate: AgentCandidate) -> float:
        if candidate.performance_score is None:
            return self._config.default_performance
        return candidate.performance_score.overall

    def workload_score(self, metrics: WorkloadMetrics | None) -> float:
        """Higher for less loaded agents."""
        if metrics is None:
            return self._config.default_workload_score
        cpu = max(0.0, 1.0 - metrics.cpu_usage)
        memory = max(0.0, 1.0 - metrics.memory_usage)
        tasks = max(
            0.0, 1.0 - min(1.0, metrics.active_tasks / self._config.reference_task_count)
        )
        return 0.4 * cpu + 0.3 * memory + 0.3 * tasks

    def reuse_score(self, usage_count: int) -> float:
        """Rewards moderate, proven reuse."""
        if usage_count <= 0:
            return self._config.unused_reuse_score
        for bound, score in self._config.reuse_buckets:
            if usage_count <= bound:
                return score
        return self._config.overused_reuse_score

    @staticmethod
    def capability_score(
        candidate: AgentCandidate, required_capabilities: Sequence[str]
    ) -> float:
        """Fraction of required capabilities matched, plus a small bonus for extras."""
        required_count = len(required_capabilities)
        if required_count == 0:
            base = 1.0
        else:
            matched = sum(1 for cap in required_capabilities if cap in candidate.capabilities)
            base = matched / required_count
        extra = max(0, len(candidate.capabilities) - required_count)
        return min(1.0, base + min(0.2, 0.05 * extra))

    def freshness_score(self, last_used: datetime | None) -> float:
        """Mild penalty for agents used very recently."""
        if last_used is None:
            return self._config.stale_freshness_score
        hours = (datetime.now(UTC) - last_used).total_seconds() / 3600
        for bound, score in self._config.freshness_buckets:
            if hours < bound:
                return score
        return self._config.stale_freshness_score

    # -------------------------------------------------------------------------
    # Explanation and evaluation
    # -------------------------------------------------------------------------

    def _reasoning(
        self, selected: Sequence[AgentCandidate], criteria: SelectionCriteria
    ) -> str:
        reasons: list[str] = []

        if criteria.prioritize_performance:
            average = sum(self._performance(c) for c in selected) / len(selected)
            reasons.append(f"High performance agents (avg: {average * 100:.1f}%)")

        if criteria.balance_workload:
            reasons.append("Balanced workload distribution")

        if criteria.prefer_reused:
            average_usage = sum(c.usage_count for c in selected) / len(selected)
            reasons.append(f"Experienced agents (avg usage: {average_usage:.1f})")

        if all(
            all(cap in c.capabilities for cap in criteria.required_capabilities)
            for c in selected
        ):
            reasons.append("All required capabilities matched")

        return ", ".join(reasons) or "Selected by composite score"

    def evaluate_selection(
        self, selected: Sequence[AgentCandidate], criteria: SelectionCriteria
    ) -> SelectionEvaluation:
        """Judge a selection's performance level and workload spread."""
        if not selected:
            return SelectionEvaluation(
                score=0.0,
                weaknesses=["No agents selected"],
                recommendations=["Register or spawn agents with the required capabilities"],
            )

        scores = [self.calculate_selection_score(c, criteria) for c in selected]
        evaluation = SelectionEvaluation(score=sum(scores) / len(scores))

        average_performance = sum(self._performance(c) for c in selected) / len(selected)
        if average_performance > 0.7:
            evaluation.strengths.append("High-performing agent selection")
        elif average_performance < 0.4:
            evaluation.weaknesses.append("Low average performance")
            evaluation.recommendations.append(
                "Consider training or replacing underperforming agents"
            )

        active = [c.workload_metrics.active_tasks if c.workload_metrics else 0 for c in selected]
        if max(active) - min(active) <= 2:
            evaluation.strengths.append("Well-balanced workload distribution")
        else:
            evaluation.weaknesses.append("Uneven workload distribution")
            evaluation.recommendations.append("Redistribute tasks to balance agent workloads")

        return evaluation


__all__ = [
    "NO_MATCH_REASON",
    "AgentCandidate",
    "BalancedSelectionStrategy",
    "SelectionCriteria",
    "SelectionEvaluation",
    "SelectionResult",
]
