"""Unit tests for agentreuse.agents.history module."""

import pytest

from agentreuse.agents.history import (
    DURATION_WINDOW,
    QUALITY_WINDOW,
    PerformanceHistory,
)


class TestPerformanceHistoryDefaults:
    """Test a fresh history."""

    def test_new_history_is_empty(self) -> None:
        """A new history has no tasks and optimistic rates."""
        history = PerformanceHistory()
        assert history.tasks_completed == 0
        assert history.tasks_failed == 0
        assert history.total_tasks == 0
        assert history.success_rate == 1.0
        assert history.average_duration == 0.0

    def test_empty_windows_use_defaults(self) -> None:
        """Window queries fall back to their defaults."""
        history = PerformanceHistory()
        assert history.get_recent_success_rate() == 1.0
        assert history.get_average_quality() == 0.8


class TestAddCompletion:
    """Test recording successful tasks."""

    def test_completion_updates_counters(self) -> None:
        """Completions count and average durations."""
        history = PerformanceHistory()
        history.add_completion(1000, 0)
        history.add_completion(3000, 0)

        assert history.tasks_completed == 2
        assert history.average_duration == 2000
        assert history.success_rate == 1.0

    def test_quality_from_estimate_accuracy(self) -> None:
        """Quality is min(1, accuracy + 0.5)."""
        history = PerformanceHistory()
        history.add_completion(1500, 1000)  # accuracy 0.5
        history.add_completion(1000, 1000)  # accuracy 1.0

        assert history.quality_scores == pytest.approx((1.0, 1.0))

    def test_quality_for_far_off_estimate(self) -> None:
        """A duration far from the estimate scores 0.5."""
        history = PerformanceHistory()
        history.add_completion(5000, 1000)
        assert history.quality_scores == (0.5,)

    def test_quality_partially_accurate(self) -> None:
        """Accuracy 0.25 scores 0.75."""
        history = PerformanceHistory()
        history.add_completion(250, 1000)
        assert history.quality_scores == pytest.approx((0.75,))

    def test_no_estimate_scores_full_quality(self) -> None:
        """A non-positive estimate means no estimate."""
        history = PerformanceHistory()
        history.add_completion(1234, 0)
        assert history.quality_scores == (1.0,)

    def test_duration_window_is_bounded(self) -> None:
        """Only the most recent durations are kept."""
        history = PerformanceHistory()
        for i in range(DURATION_WINDOW + 20):
            history.add_completion(i, 0)

        assert len(history.durations) == DURATION_WINDOW
        assert history.durations[0] == 20
        assert history.tasks_completed == DURATION_WINDOW + 20


class TestAddFailure:
    """Test recording failed tasks."""

    def test_failure_updates_success_rate(self) -> None:
        """success_rate is completed / total."""
        history = PerformanceHistory()
        history.add_completion(100, 0)
        history.add_completion(100, 0)
        history.add_completion(100, 0)
        history.add_failure("boom")

        assert history.tasks_failed == 1
        assert history.success_rate == 0.75
        assert history.failure_reasons == ("boom",)

    def test_failure_scores_zero_quality(self) -> None:
        """Failed tasks enter the quality window with zero."""
        history = PerformanceHistory()
        history.add_completion(100, 0)
        history.add_failure("timeout")

        assert history.get_average_quality() == 0.5

    def test_failure_does_not_touch_durations(self) -> None:
        """Durations only come from completions."""
        history = PerformanceHistory()
        history.add_failure("crash")
        assert history.durations == ()
        assert history.average_duration == 0.0

    def test_quality_window_is_bounded(self) -> None:
        """At most QUALITY_WINDOW quality scores are kept."""
        history = PerformanceHistory()
        for _ in range(QUALITY_WINDOW + 5):
            history.add_failure("x")
        assert len(history.quality_scores) == QUALITY_WINDOW


class TestWindows:
    """Test rolling window queries."""

    def test_recent_success_rate_uses_window(self) -> None:
        """Only the last `window` outcomes count."""
        history = PerformanceHistory()
        for _ in range(5):
            history.add_failure("old")
        for _ in range(10):
            history.add_completion(100, 0)

        assert history.get_recent_success_rate(10) == 1.0
        assert history.get_recent_success_rate(20) == pytest.approx(10 / 15)

    def test_average_quality_uses_window(self) -> None:
        """Only the last `window` quality scores count."""
        history = PerformanceHistory()
        history.add_failure("old")
        history.add_completion(100, 0)

        assert history.get_average_quality(1) == 1.0
        assert history.get_average_quality(2) == 0.5
