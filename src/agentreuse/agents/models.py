"""Data model shared by the agent-reuse components.

The registry owns RegisteredAgent records (and their PerformanceHistory);
everything else here is a transient value passed between the registry,
pool manager and selector.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from agentreuse.agents.history import PerformanceHistory

if TYPE_CHECKING:
    from agentreuse.agents.workload import WorkloadStatistics


def _utcnow() -> datetime:
    return datetime.now(UTC)


# =============================================================================
# Enums
# =============================================================================


class AgentStatus(StrEnum):
    """Lifecycle status of a registered agent."""

    AVAILABLE = "available"
    BUSY = "busy"
    OVERLOADED = "overloaded"
    MAINTENANCE = "maintenance"
    ERROR = "error"
    OFFLINE = "offline"


class TaskComplexity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AgentSource(StrEnum):
    """How an AcquiredAgent entered the acquisition."""

    REUSED = "reused"
    SPAWNED = "spawned"


class RecommendationType(StrEnum):
    SPAWN = "spawn"
    CLEANUP = "cleanup"
    REBALANCE = "rebalance"
    UPGRADE = "upgrade"


class RecommendationPriority(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# =============================================================================
# Agents
# =============================================================================


@dataclass(slots=True)
class AgentProfile:
    """Declared identity and capabilities of a worker.

    Attributes:
        id: Profile identifier (usually equal to the agent id).
        name: Human-readable name.
        type: Worker template name, e.g. "tester".
        capabilities: Declared capability names.
        max_concurrent_tasks: Concurrent tasks the worker accepts.
        priority: Scheduling priority in [0, 100].
        metadata: Free-form metadata.
    """

    id: str
    name: str
    type: str
    capabilities: tuple[str, ...] = ()
    max_concurrent_tasks: int = 1
    priority: int = 50
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class RegisteredAgent:
    """Canonical registry record of a worker.

    Attributes:
        id: Agent identifier, unique within a registry.
        profile: The profile the agent was registered with.
        status: Current lifecycle status.
        current_workload: Load fraction in [0, 1].
        capabilities: Normalized capability set (index key).
        performance_history: Task history, owned by this record.
        registered_at: Registration time.
        last_activity: Time of the last status/workload change.
        metadata: Merged status metadata.
        usage_count: Number of tasks this agent was assigned to.
        last_used: Time of the last assignment, None if never assigned.
        assigned_task_id: Task currently holding the agent, if any.
    """

    id: str
    profile: AgentProfile
    status: AgentStatus = AgentStatus.AVAILABLE
    current_workload: float = 0.0
    capabilities: frozenset[str] = frozenset()
    performance_history: PerformanceHistory = field(default_factory=PerformanceHistory)
    registered_at: datetime = field(default_factory=_utcnow)
    last_activity: datetime = field(default_factory=_utcnow)
    metadata: dict[str, Any] = field(default_factory=dict)
    usage_count: int = 0
    last_used: datetime | None = None
    assigned_task_id: str | None = None

    @property
    def type(self) -> str:
        return self.profile.type

    @property
    def idle_seconds(self) -> float:
        """Seconds since last activity."""
        return (_utcnow() - self.last_activity).total_seconds()

    def has_capabilities(self, required: tuple[str, ...] | list[str]) -> bool:
        return all(cap in self.capabilities for cap in required)


@dataclass(frozen=True, slots=True)
class RegistryStatistics:
    """Aggregate registry view returned by ``get_registry_stats``."""

    total_agents: int
    available_agents: int
    busy_agents: int
    average_workload: float
    capability_coverage: int
    registry_health: float


# =============================================================================
# Tasks
# =============================================================================


@dataclass(slots=True)
class TaskContext:
    """Scheduling context of the task agents are acquired for.

    Attributes:
        id: Task identifier.
        type: Task type, e.g. "implementation".
        feature_name: Feature the task belongs to.
        priority: Base priority for spawned profiles, None for the default.
        estimated_duration_ms: Expected duration, 0 when unknown.
        complexity: Estimated complexity.
        metadata: Free-form metadata.
    """

    id: str
    type: str = "general"
    feature_name: str | None = None
    priority: int | None = None
    estimated_duration_ms: float = 0.0
    complexity: TaskComplexity = TaskComplexity.MEDIUM
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class TaskDefinition:
    """Unit of work handed to the external task executor."""

    id: str
    type: str
    description: str = ""
    input: dict[str, Any] = field(default_factory=dict)
    priority: int | None = None
    estimated_duration_ms: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class AgentMetrics:
    agent_id: str
    task_duration_ms: float
    cpu_usage: float = 0.0
    memory_usage: float = 0.0
    success_rate: float = 1.0
    quality_score: float = 0.8


@dataclass(slots=True)
class TaskResult:
    """Outcome of ``execute_task_with_intelligent_selection``.

    Attributes:
        success: Whether the executor reported success.
        duration_ms: Wall-clock execution time.
        agent_metrics: Metrics of the primary agent, if computed.
        output: Opaque executor output.
        error: Error message on failure.
    """

    success: bool
    duration_ms: float
    agent_metrics: AgentMetrics | None = None
    output: Any = None
    error: str | None = None


# =============================================================================
# Acquisition and selection
# =============================================================================


@dataclass(slots=True)
class AcquiredAgent:
    """Handle on a worker for one acquire -> release cycle."""

    id: str
    type: str
    capabilities: tuple[str, ...]
    source: AgentSource
    assigned_task_id: str
    spawned_at: datetime | None = None
    reused_at: datetime | None = None


@dataclass(slots=True)
class AgentSelection:
    """Result of one selection request. Empty selections carry a reason."""

    selected_agents: list[RegisteredAgent] = field(default_factory=list)
    alternative_agents: list[RegisteredAgent] = field(default_factory=list)
    selection_reason: str = ""
    confidence: float = 0.0
    estimated_success: float = 0.0

    @property
    def is_empty(self) -> bool:
        return not self.selected_agents


@dataclass(slots=True)
class SelectionOptions:
    """Caller options for selection and execution.

    Attributes:
        max_agents: Maximum number of agents to select or acquire.
        prioritize_performance: Weigh performance more heavily.
        balance_workload: Weigh workload balance more heavily.
        prefer_reuse: Weigh proven reuse more heavily.
        task_type: Overrides the task type derived from the task.
    """

    max_agents: int = 2
    prioritize_performance: bool = True
    balance_workload: bool = True
    prefer_reuse: bool = False
    task_type: str | None = None


@dataclass(slots=True)
class ExecutionOptions(SelectionOptions):
    """Selection options plus an overall execution deadline in seconds."""

    timeout: float | None = None


# =============================================================================
# Pool optimization
# =============================================================================


@dataclass(slots=True)
class OptimizationRecommendation:
    type: RecommendationType
    reason: str
    expected_impact: float
    priority: RecommendationPriority
    agent_id: str | None = None
    agent_type: str | None = None


@dataclass(slots=True)
class OptimizationResult:
    recommendation: OptimizationRecommendation
    applied: bool
    actual_impact: float = 0.0
    error: str | None = None


@dataclass(slots=True)
class PoolOptimizationResult:
    initial_stats: RegistryStatistics
    recommendations: list[OptimizationRecommendation]
    results: list[OptimizationResult]
    optimized_at: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True, slots=True)
class PoolStatistics:
    """Counters maintained by the pool manager.

    Attributes:
        total_spawned: Agents spawned since construction.
        total_reused: Agents reused since construction.
        reuse_rate: reused / (reused + spawned), 0 before any acquisition.
        average_pool_size: Mean pool size sampled at each acquisition.
        cleanup_rate: Cleaned up / released agents, 0 before any release.
    """

    total_spawned: int
    total_reused: int
    reuse_rate: float
    average_pool_size: float
    cleanup_rate: float


@dataclass(frozen=True, slots=True)
class SystemStatistics:
    registry: RegistryStatistics
    workload: WorkloadStatistics
    pool: PoolStatistics


__all__ = [
    "AcquiredAgent",
    "AgentMetrics",
    "AgentProfile",
    "AgentSelection",
    "AgentSource",
    "AgentStatus",
    "ExecutionOptions",
    "OptimizationRecommendation",
    "OptimizationResult",
    "PoolOptimizationResult",
    "PoolStatistics",
    "RecommendationPriority",
    "RecommendationType",
    "RegisteredAgent",
    "RegistryStatistics",
    "SelectionOptions",
    "SystemStatistics",
    "TaskComplexity",
    "TaskContext",
    "TaskDefinition",
    "TaskResult",
]
