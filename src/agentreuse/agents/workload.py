"""Workload monitoring for the agent pool.

The monitor keeps a bounded time series of WorkloadMetrics snapshots per
agent and answers two questions: is this agent overloaded, and which of a
set of candidates may take more work. Snapshots are appended, never edited.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from operator import attrgetter
from typing import Any, TypeVar

from agentreuse.config.models import WorkloadThresholds
from agentreuse.observability.logging import get_logger

log = get_logger(__name__)

_T = TypeVar("_T")


# =============================================================================
# Metrics
# =============================================================================


@dataclass(frozen=True, slots=True)
class WorkloadMetrics:
    """One workload snapshot of an agent.

    Attributes:
        cpu_usage: CPU usage fraction.
        memory_usage: Memory usage fraction.
        active_tasks: Tasks currently running on the agent.
        completed_tasks: Tasks finished since monitoring started.
        average_task_duration_ms: Mean task duration.
        error_rate: Error rate fraction, capped at 1.0.
        timestamp: When the snapshot was taken.
    """

    cpu_usage: float = 0.0
    memory_usage: float = 0.0
    active_tasks: int = 0
    completed_tasks: int = 0
    average_task_duration_ms: float = 0.0
    error_rate: float = 0.0
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(frozen=True, slots=True)
class LoadDistribution:
    """Agents bucketed by active_tasks / max_concurrent_tasks."""

    low: int = 0
    medium: int = 0
    high: int = 0
    overload: int = 0


@dataclass(frozen=True, slots=True)
class WorkloadStatistics:
    """Aggregate workload across all monitored agents.

    Attributes:
        total_agents: Agents with at least one snapshot.
        average_load: Mean active task count.
        overloaded_agents: Agents over any threshold.
        idle_agents: Agents not overloaded and with no active task.
        total_active_tasks: Sum of active tasks.
        load_distribution: Agents per load bucket.
    """

    total_agents: int
    average_load: float
    overloaded_agents: int
    idle_agents: int
    total_active_tasks: int = 0
    load_distribution: LoadDistribution = field(default_factory=LoadDistribution)


# =============================================================================
# Monitor
# =============================================================================


class WorkloadMonitor:
    """Per-agent workload time series with overload detection.

    Example:
        monitor = WorkloadMonitor()
        monitor.record_metrics("dev-1", WorkloadMetrics(cpu_usage=0.95))
        monitor.is_overloaded("dev-1")  # True
    """

    def __init__(self, thresholds: WorkloadThresholds | None = None) -> None:
        self._thresholds = thresholds or WorkloadThresholds()
        self._metrics: dict[str, deque[WorkloadMetrics]] = {}

    @property
    def thresholds(self) -> WorkloadThresholds:
        return self._thresholds

    def record_metrics(self, agent_id: str, metrics: WorkloadMetrics) -> None:
        """Append a snapshot, dropping the oldest beyond the history size."""
        history = self._metrics.get(agent_id)
        if history is None:
            history = deque(maxlen=self._thresholds.history_size)
            self._metrics[agent_id] = history
        history.append(metrics)

    def get_current_workload(self, agent_id: str) -> WorkloadMetrics | None:
        history = self._metrics.get(agent_id)
        if not history:
            return None
        return history[-1]

    def get_average_metrics(
        self, agent_id: str, window_minutes: float = 10.0
    ) -> WorkloadMetrics | None:
        """Mean of the snapshots taken in the last ``window_minutes``.

        Task counts are rounded to whole tasks. Returns None when there is
        no snapshot inside the window.
        """
        history = self._metrics.get(agent_id)
        if not history:
            return None

        cutoff = datetime.now(UTC) - timedelta(minutes=window_minutes)
        recent = [m for m in history if m.timestamp >= cutoff]
        if not recent:
            return None

        count = len(recent)
        return WorkloadMetrics(
            cpu_usage=sum(m.cpu_usage for m in recent) / count,
            memory_usage=sum(m.memory_usage for m in recent) / count,
            active_tasks=round(sum(m.active_tasks for m in recent) / count),
            completed_tasks=round(sum(m.completed_tasks for m in recent) / count),
            average_task_duration_ms=sum(m.average_task_duration_ms for m in recent) / count,
            error_rate=sum(m.error_rate for m in recent) / count,
        )

    def is_overloaded(self, agent_id: str) -> bool:
        """True if any metric is over its threshold.

        An agent without recorded metrics is never overloaded.
        """
        current = self.get_current_workload(agent_id)
        if current is None:
            return False

        t = self._thresholds
        return (
            current.cpu_usage > t.max_cpu_usage
            or current.memory_usage > t.max_memory_usage
            or current.active_tasks > t.max_concurrent_tasks
            or current.error_rate > t.max_error_rate
        )

    def is_available(self, agent_id: str) -> bool:
        return not self.is_overloaded(agent_id)

    def filter_by_availability(
        self,
        candidates: Iterable[_T],
        key: Callable[[_T], str] | None = None,
    ) -> list[_T]:
        """Drop overloaded candidates, keeping the input order.

        Args:
            candidates: Agents (anything with an ``id``) or other items.
            key: Maps a candidate to its agent id. Defaults to ``.id``.
        """
        get_id: Callable[[Any], str] = key or attrgetter("id")
        return [c for c in candidates if not self.is_overloaded(get_id(c))]

    def track_task_assignment(self, agent_id: str, task_id: str) -> WorkloadMetrics:
        """Append a snapshot with one more active task."""
        current = self.get_current_workload(agent_id) or WorkloadMetrics()
        snapshot = replace(
            current,
            active_tasks=current.active_tasks + 1,
            timestamp=datetime.now(UTC),
        )
        self.record_metrics(agent_id, snapshot)
        log.debug(
            "agents.workload.task_assigned",
            agent_id=agent_id,
            task_id=task_id,
            active_tasks=snapshot.active_tasks,
        )
        return snapshot

    def track_task_completion(
        self, agent_id: str, task_id: str, success: bool
    ) -> WorkloadMetrics:
        """Append a snapshot with one task moved from active to completed.

        A failed task raises the error rate by the configured increment.
        """
        current = self.get_current_workload(agent_id) or WorkloadMetrics()
        error_rate = current.error_rate
        if not success:
            error_rate = min(1.0, error_rate + self._thresholds.error_rate_increment)

        snapshot = replace(
            current,
            active_tasks=max(0, current.active_tasks - 1),
            completed_tasks=current.completed_tasks + 1,
            error_rate=error_rate,
            timestamp=datetime.now(UTC),
        )
        self.record_metrics(agent_id, snapshot)
        log.debug(
            "agents.workload.task_completed",
            agent_id=agent_id,
            task_id=task_id,
            success=success,
            error_rate=error_rate,
        )
        return snapshot

    def clear_metrics(self, agent_id: str) -> None:
        self._metrics.pop(agent_id, None)

    def get_monitored_agents(self) -> list[str]:
        return list(self._metrics)

    def get_workload_statistics(self) -> WorkloadStatistics:
        """Aggregate the latest snapshot of every monitored agent."""
        total = len(self._metrics)
        if total == 0:
            return WorkloadStatistics(
                total_agents=0, average_load=0.0, overloaded_agents=0, idle_agents=0
            )

        active = 0
        overloaded = 0
        idle = 0
        buckets = {"low": 0, "medium": 0, "high": 0, "overload": 0}
        capacity = self._thresholds.max_concurrent_tasks

        for agent_id in self._metrics:
            current = self.get_current_workload(agent_id)
            if current is None:
                continue
            active += current.active_tasks
            if self.is_overloaded(agent_id):
                overloaded += 1
            elif current.active_tasks == 0:
                idle += 1

            ratio = current.active_tasks / capacity
            if ratio < 0.3:
                buckets["low"] += 1
            elif ratio < 0.7:
                buckets["medium"] += 1
            elif ratio <= 1.0:
                buckets["high"] += 1
            else:
                buckets["overload"] += 1

        return WorkloadStatistics(
            total_agents=total,
            average_load=active / total,
            overloaded_agents=overloaded,
            idle_agents=idle,
            total_active_tasks=active,
            load_distribution=LoadDistribution(**buckets),
        )


__all__ = [
    "LoadDistribution",
    "WorkloadMetrics",
    "WorkloadMonitor",
    "WorkloadStatistics",
]
