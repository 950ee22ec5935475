"""Performance scoring for agent selection.

Converts an agent's task history and current workload into one comparable
score in [0, 1]:

    overall = w_speed * speed
            + w_reliability * reliability
            + w_resource * resource_efficiency
            + w_availability * availability

Each computed score is kept in a bounded per-agent history so selection can
use the most recent one without recomputing it.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from agentreuse.agents.models import RegisteredAgent
from agentreuse.agents.workload import WorkloadMetrics
from agentreuse.config.models import ScoringWeights
from agentreuse.observability.logging import get_logger

log = get_logger(__name__)

NEW_AGENT_RELIABILITY = 0.5
UNSCORED_CANDIDATE = 0.5


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


# =============================================================================
# Score types
# =============================================================================


@dataclass(frozen=True, slots=True)
class PerformanceScore:
    """Score components, all in [0, 1]."""

    overall: float
    speed: float
    reliability: float
    resource_efficiency: float
    availability: float
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(frozen=True, slots=True)
class TaskHistorySnapshot:
    """Task history fed into ``calculate_score``.

    Attributes:
        completed_tasks: Successful task count.
        failed_tasks: Failed task count.
        average_task_duration_ms: Mean task duration.
        uptime: Uptime fraction.
    """

    completed_tasks: int = 0
    failed_tasks: int = 0
    average_task_duration_ms: float = 0.0
    uptime: float = 1.0


@dataclass(slots=True)
class ScoreHistory:
    """Scores recorded for one agent plus the last reported counters."""

    agent_id: str
    scores: deque[PerformanceScore]
    total_tasks: int = 0
    successful_tasks: int = 0
    average_response_time_ms: float = 0.0
    uptime: float = 0.0


@dataclass(frozen=True, slots=True)
class ScoredCandidate:
    agent: RegisteredAgent
    score: float


# =============================================================================
# Scorer
# =============================================================================


class PerformanceScorer:
    """Computes and remembers per-agent performance scores.

    Example:
        scorer = PerformanceScorer()
        score = scorer.calculate_score(
            "dev-1",
            WorkloadMetrics(cpu_usage=0.2),
            TaskHistorySnapshot(completed_tasks=9, failed_tasks=1,
                                average_task_duration_ms=20000),
        )
        ranking = scorer.rank_agents(["dev-1", "dev-2"])
    """

    def __init__(self, weights: ScoringWeights | None = None) -> None:
        self._weights = weights or ScoringWeights()
        self._history: dict[str, ScoreHistory] = {}

    @property
    def weights(self) -> ScoringWeights:
        return self._weights

    def calculate_score(
        self,
        agent_id: str,
        workload: WorkloadMetrics,
        task_history: TaskHistorySnapshot,
    ) -> PerformanceScore:
        """Score an agent and append the result to its history."""
        speed = self._speed(task_history.average_task_duration_ms)
        reliability = self._reliability(
            task_history.completed_tasks, task_history.failed_tasks, workload.error_rate
        )
        efficiency = self._resource_efficiency(workload)
        availability = _clamp(task_history.uptime)

        w = self._weights
        overall = _clamp(
            speed * w.speed
            + reliability * w.reliability
            + efficiency * w.resource_efficiency
            + availability * w.availability
        )
        score = PerformanceScore(
            overall=overall,
            speed=speed,
            reliability=reliability,
            resource_efficiency=efficiency,
            availability=availability,
        )
        self._record(agent_id, score, task_history)
        return score

    def calculate_agent_score(
        self,
        agent: RegisteredAgent,
        workload: WorkloadMetrics | None = None,
        uptime: float = 1.0,
    ) -> PerformanceScore:
        """Score a registered agent from its own performance history."""
        history = agent.performance_history
        snapshot = TaskHistorySnapshot(
            completed_tasks=history.tasks_completed,
            failed_tasks=history.tasks_failed,
            average_task_duration_ms=history.average_duration,
            uptime=uptime,
        )
        return self.calculate_score(agent.id, workload or WorkloadMetrics(), snapshot)

    def _speed(self, average_duration_ms: float) -> float:
        # No recorded duration yet counts as fast.
        if average_duration_ms <= 0:
            return 1.0
        return _clamp(self._weights.baseline_duration_ms / average_duration_ms)

    @staticmethod
    def _reliability(completed: int, failed: int, error_rate: float) -> float:
        total = completed + failed
        if total <= 0:
            return NEW_AGENT_RELIABILITY
        success_rate = _clamp(completed / total)
        return _clamp((success_rate + max(0.0, 1.0 - error_rate)) / 2)

    @staticmethod
    def _resource_efficiency(workload: WorkloadMetrics) -> float:
        cpu = max(0.0, 1.0 - workload.cpu_usage)
        memory = max(0.0, 1.0 - workload.memory_usage)
        return _clamp(0.6 * cpu + 0.4 * memory)

    def _record(
        self, agent_id: str, score: PerformanceScore, task_history: TaskHistorySnapshot
    ) -> None:
        history = self._history.get(agent_id)
        if history is None:
            history = ScoreHistory(
                agent_id=agent_id,
                scores=deque(maxlen=self._weights.history_size),
            )
            self._history[agent_id] = history

        history.scores.append(score)
        history.total_tasks = task_history.completed_tasks + task_history.failed_tasks
        history.successful_tasks = task_history.completed_tasks
        history.average_response_time_ms = task_history.average_task_duration_ms
        history.uptime = task_history.uptime

        log.debug(
            "agents.scoring.score_recorded",
            agent_id=agent_id,
            overall=round(score.overall, 4),
        )

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_current_score(self, agent_id: str) -> PerformanceScore | None:
        history = self._history.get(agent_id)
        if history is None or not history.scores:
            return None
        return history.scores[-1]

    def get_average_score(self, agent_id: str, count: int = 10) -> PerformanceScore | None:
        """Component-wise mean of the last ``count`` scores."""
        history = self._history.get(agent_id)
        if history is None or not history.scores or count <= 0:
            return None

        recent = list(history.scores)[-count:]
        n = len(recent)
        return PerformanceScore(
            overall=sum(s.overall for s in recent) / n,
            speed=sum(s.speed for s in recent) / n,
            reliability=sum(s.reliability for s in recent) / n,
            resource_efficiency=sum(s.resource_efficiency for s in recent) / n,
            availability=sum(s.availability for s in recent) / n,
        )

    def get_performance_history(self, agent_id: str) -> ScoreHistory | None:
        return self._history.get(agent_id)

    def rank_agents(self, agent_ids: Iterable[str]) -> list[tuple[str, float]]:
        """Sort ids by current overall score, unseen agents scoring 0."""
        rankings = []
        for agent_id in agent_ids:
            current = self.get_current_score(agent_id)
            rankings.append((agent_id, current.overall if current else 0.0))
        rankings.sort(key=lambda item: item[1], reverse=True)
        return rankings

    def score_agents(
        self,
        candidates: Sequence[RegisteredAgent],
        required_capabilities: Sequence[str] = (),
        task_context: Any = None,
    ) -> list[ScoredCandidate]:
        """Pair each candidate with its current score, best first.

        Candidates without a recorded score get 0.5.
        """
        scored = []
        for agent in candidates:
            current = self.get_current_score(agent.id)
            scored.append(
                ScoredCandidate(agent, current.overall if current else UNSCORED_CANDIDATE)
            )
        scored.sort(key=lambda c: c.score, reverse=True)
        return scored

    def clear_history(self, agent_id: str) -> None:
        self._history.pop(agent_id, None)

    def get_tracked_agents(self) -> list[str]:
        return list(self._history)


__all__ = [
    "PerformanceScore",
    "PerformanceScorer",
    "ScoreHistory",
    "ScoredCandidate",
    "TaskHistorySnapshot",
]
