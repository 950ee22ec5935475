"""Per-agent task history.

A PerformanceHistory belongs to exactly one RegisteredAgent and is only
mutated through ``add_completion`` / ``add_failure``. The pool manager's
acquire/release discipline guarantees a single writer per agent.
"""

from __future__ import annotations

from collections import deque
from datetime import UTC, datetime

DURATION_WINDOW = 100
QUALITY_WINDOW = 50
FAILURE_WINDOW = 50
OUTCOME_WINDOW = 100

DEFAULT_QUALITY = 0.8


class PerformanceHistory:
    """Completed/failed counters plus bounded rolling windows.

    Attributes:
        tasks_completed: Number of successful tasks.
        tasks_failed: Number of failed tasks.
        average_duration: Mean of the duration window, in milliseconds.
        success_rate: completed / (completed + failed); 1.0 before any task.
        last_updated: Time of the last mutation.
    """

    __slots__ = (
        "_durations",
        "_failures",
        "_outcomes",
        "_quality_scores",
        "average_duration",
        "last_updated",
        "success_rate",
        "tasks_completed",
        "tasks_failed",
    )

    def __init__(self) -> None:
        self.tasks_completed = 0
        self.tasks_failed = 0
        self.average_duration = 0.0
        self.success_rate = 1.0
        self.last_updated = datetime.now(UTC)
        self._durations: deque[float] = deque(maxlen=DURATION_WINDOW)
        self._quality_scores: deque[float] = deque(maxlen=QUALITY_WINDOW)
        self._failures: deque[str] = deque(maxlen=FAILURE_WINDOW)
        self._outcomes: deque[bool] = deque(maxlen=OUTCOME_WINDOW)

    @property
    def total_tasks(self) -> int:
        return self.tasks_completed + self.tasks_failed

    @property
    def durations(self) -> tuple[float, ...]:
        return tuple(self._durations)

    @property
    def quality_scores(self) -> tuple[float, ...]:
        return tuple(self._quality_scores)

    @property
    def failure_reasons(self) -> tuple[str, ...]:
        return tuple(self._failures)

    def add_completion(self, duration_ms: float, estimated_duration_ms: float) -> None:
        """Record a successful task.

        Quality is derived from how close the duration came to the estimate:
        ``min(1, accuracy + 0.5)``. A non-positive estimate means "no
        estimate" and scores full accuracy.
        """
        duration_ms = max(0.0, float(duration_ms))
        self.tasks_completed += 1
        self._durations.append(duration_ms)
        self._outcomes.append(True)
        self.average_duration = sum(self._durations) / len(self._durations)
        self._refresh_success_rate()

        if estimated_duration_ms > 0:
            accuracy = max(0.0, 1 - abs(duration_ms - estimated_duration_ms) / estimated_duration_ms)
        else:
            accuracy = 1.0
        self._quality_scores.append(min(1.0, accuracy + 0.5))

    def add_failure(self, reason: str) -> None:
        """Record a failed task. Failed tasks score zero quality."""
        self.tasks_failed += 1
        self._failures.append(reason)
        self._outcomes.append(False)
        self._quality_scores.append(0.0)
        self._refresh_success_rate()

    def get_recent_success_rate(self, window: int = 10) -> float:
        """Success rate over the last ``window`` outcomes (1.0 when empty)."""
        if window <= 0 or not self._outcomes:
            return 1.0
        recent = list(self._outcomes)[-window:]
        return sum(recent) / len(recent)

    def get_average_quality(self, window: int = 20) -> float:
        """Mean quality of the last ``window`` tasks (0.8 when empty)."""
        if window <= 0 or not self._quality_scores:
            return DEFAULT_QUALITY
        recent = list(self._quality_scores)[-window:]
        return sum(recent) / len(recent)

    def _refresh_success_rate(self) -> None:
        self.success_rate = self.tasks_completed / self.total_tasks
        self.last_updated = datetime.now(UTC)

    def __repr__(self) -> str:
        return (
            f"PerformanceHistory(completed={self.tasks_completed}, "
            f"failed={self.tasks_failed}, success_rate={self.success_rate:.2f})"
        )
