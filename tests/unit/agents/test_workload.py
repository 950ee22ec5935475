"""Unit tests for agentreuse.agents.workload module."""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import pytest

from agentreuse.agents.workload import (
    LoadDistribution,
    WorkloadMetrics,
    WorkloadMonitor,
)
from agentreuse.config.models import WorkloadThresholds


@dataclass
class _Candidate:
    id: str


class TestWorkloadMetrics:
    """Test the WorkloadMetrics snapshot."""

    def test_defaults(self) -> None:
        """A default snapshot is idle."""
        metrics = WorkloadMetrics()
        assert metrics.cpu_usage == 0.0
        assert metrics.active_tasks == 0
        assert metrics.error_rate == 0.0
        assert metrics.timestamp.tzinfo is not None

    def test_is_frozen(self) -> None:
        """Snapshots are immutable."""
        metrics = WorkloadMetrics()
        with pytest.raises(AttributeError):
            metrics.cpu_usage = 0.5  # type: ignore[misc]


class TestRecordAndQuery:
    """Test recording and querying snapshots."""

    def test_current_workload_is_latest(self, monitor: WorkloadMonitor) -> None:
        """The latest snapshot is current."""
        monitor.record_metrics("a", WorkloadMetrics(cpu_usage=0.1))
        monitor.record_metrics("a", WorkloadMetrics(cpu_usage=0.4))
        assert monitor.get_current_workload("a").cpu_usage == 0.4

    def test_unknown_agent_has_no_workload(self, monitor: WorkloadMonitor) -> None:
        """No snapshot means None."""
        assert monitor.get_current_workload("ghost") is None
        assert monitor.get_average_metrics("ghost") is None

    def test_history_is_bounded(self) -> None:
        """Only history_size snapshots are kept."""
        monitor = WorkloadMonitor(WorkloadThresholds(history_size=3))
        for i in range(5):
            monitor.record_metrics("a", WorkloadMetrics(active_tasks=i))

        average = monitor.get_average_metrics("a")
        # Snapshots 2, 3, 4 remain
        assert average.active_tasks == 3

    def test_average_metrics_over_window(self, monitor: WorkloadMonitor) -> None:
        """Averages only include snapshots inside the window."""
        old = datetime.now(UTC) - timedelta(minutes=30)
        monitor.record_metrics("a", WorkloadMetrics(cpu_usage=1.0, timestamp=old))
        monitor.record_metrics("a", WorkloadMetrics(cpu_usage=0.2, active_tasks=1))
        monitor.record_metrics("a", WorkloadMetrics(cpu_usage=0.4, active_tasks=2))

        average = monitor.get_average_metrics("a", window_minutes=10)

        assert average.cpu_usage == pytest.approx(0.3)
        assert average.active_tasks == 2  # round(1.5)

    def test_average_metrics_empty_window(self, monitor: WorkloadMonitor) -> None:
        """No snapshot inside the window gives None."""
        old = datetime.now(UTC) - timedelta(hours=1)
        monitor.record_metrics("a", WorkloadMetrics(timestamp=old))
        assert monitor.get_average_metrics("a", window_minutes=5) is None


class TestOverload:
    """Test overload detection."""

    @pytest.mark.parametrize(
        "metrics",
        [
            WorkloadMetrics(cpu_usage=0.81),
            WorkloadMetrics(memory_usage=0.91),
            WorkloadMetrics(active_tasks=11),
            WorkloadMetrics(error_rate=0.11),
        ],
    )
    def test_any_threshold_overloads(self, monitor: WorkloadMonitor, metrics: WorkloadMetrics) -> None:
        """Exceeding any single threshold means overloaded."""
        monitor.record_metrics("a", metrics)
        assert monitor.is_overloaded("a") is True
        assert monitor.is_available("a") is False

    def test_threshold_values_are_exclusive(self, monitor: WorkloadMonitor) -> None:
        """Sitting exactly at a threshold is not overloaded."""
        monitor.record_metrics(
            "a",
            WorkloadMetrics(cpu_usage=0.8, memory_usage=0.9, active_tasks=10, error_rate=0.1),
        )
        assert monitor.is_overloaded("a") is False

    def test_unmonitored_agent_is_available(self, monitor: WorkloadMonitor) -> None:
        """No metrics means not overloaded."""
        assert monitor.is_overloaded("new") is False
        assert monitor.is_available("new") is True

    def test_filter_by_availability(self, monitor: WorkloadMonitor) -> None:
        """Overloaded candidates are dropped, order kept."""
        monitor.record_metrics("b", WorkloadMetrics(cpu_usage=0.95))
        candidates = [_Candidate("a"), _Candidate("b"), _Candidate("c")]

        assert [c.id for c in monitor.filter_by_availability(candidates)] == ["a", "c"]

    def test_filter_by_availability_with_key(self, monitor: WorkloadMonitor) -> None:
        """A key function maps arbitrary items to agent ids."""
        monitor.record_metrics("a", WorkloadMetrics(error_rate=0.5))
        assert monitor.filter_by_availability(["a", "b"], key=lambda s: s) == ["b"]


class TestTaskTracking:
    """Test task assignment and completion tracking."""

    def test_assignment_increments_active_tasks(self, monitor: WorkloadMonitor) -> None:
        """Assignment starts from an empty snapshot for new agents."""
        snapshot = monitor.track_task_assignment("a", "t-1")
        assert snapshot.active_tasks == 1
        monitor.track_task_assignment("a", "t-2")
        assert monitor.get_current_workload("a").active_tasks == 2

    def test_completion_moves_active_to_completed(self, monitor: WorkloadMonitor) -> None:
        """Completion decrements active and increments completed."""
        monitor.track_task_assignment("a", "t-1")
        snapshot = monitor.track_task_completion("a", "t-1", success=True)

        assert snapshot.active_tasks == 0
        assert snapshot.completed_tasks == 1
        assert snapshot.error_rate == 0.0

    def test_failed_completion_raises_error_rate(self, monitor: WorkloadMonitor) -> None:
        """Each failure adds the increment, capped at 1.0."""
        for i in range(15):
            monitor.track_task_completion("a", f"t-{i}", success=False)
        snapshot = monitor.get_current_workload("a")

        assert snapshot.error_rate == 1.0
        assert snapshot.active_tasks == 0

    def test_completion_keeps_resource_usage(self, monitor: WorkloadMonitor) -> None:
        """Tracking copies cpu and memory from the last snapshot."""
        monitor.record_metrics("a", WorkloadMetrics(cpu_usage=0.3, memory_usage=0.6, active_tasks=1))
        snapshot = monitor.track_task_completion("a", "t-1", success=True)
        assert snapshot.cpu_usage == 0.3
        assert snapshot.memory_usage == 0.6

    def test_clear_metrics(self, monitor: WorkloadMonitor) -> None:
        """Cleared agents are no longer monitored."""
        monitor.track_task_assignment("a", "t-1")
        monitor.track_task_assignment("b", "t-2")
        monitor.clear_metrics("a")
        assert monitor.get_monitored_agents() == ["b"]


class TestWorkloadStatistics:
    """Test get_workload_statistics."""

    def test_empty_monitor(self, monitor: WorkloadMonitor) -> None:
        """No monitored agents gives zeros."""
        stats = monitor.get_workload_statistics()
        assert stats.total_agents == 0
        assert stats.average_load == 0.0
        assert stats.load_distribution == LoadDistribution()

    def test_aggregates_latest_snapshots(self, monitor: WorkloadMonitor) -> None:
        """Buckets use active_tasks / max_concurrent_tasks."""
        monitor.record_metrics("idle", WorkloadMetrics(active_tasks=0))
        monitor.record_metrics("medium", WorkloadMetrics(active_tasks=5))
        monitor.record_metrics("high", WorkloadMetrics(active_tasks=9))
        monitor.record_metrics("over", WorkloadMetrics(active_tasks=12))

        stats = monitor.get_workload_statistics()

        assert stats.total_agents == 4
        assert stats.total_active_tasks == 26
        assert stats.average_load == pytest.approx(6.5)
        assert stats.overloaded_agents == 1
        assert stats.idle_agents == 1
        assert stats.load_distribution == LoadDistribution(low=1, medium=1, high=1, overload=1)
