"""Pydantic models for agent-reuse configuration.

All configuration validation happens through these frozen models.

Classes:
    RegistryConfig: Status hysteresis, staleness and health parameters
    WorkloadThresholds: Overload thresholds for the workload monitor
    ScoringWeights: Weights of the performance score components
    SelectionConfig: Composite selection weights and bucket constants
    PoolManagerConfig: Pool sizing, release policy, spawn retries and the
        capability -> worker type table
    AgentReuseConfig: Top-level configuration combining all sections
"""

from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from agentreuse.observability.logging import LoggingConfig


class RegistryConfig(BaseModel, frozen=True):
    """Agent registry configuration.

    Attributes:
        available_workload_threshold: Workload below which a busy agent
            becomes available again.
        busy_workload_threshold: Workload above which an available agent
            becomes busy.
        stale_after_seconds: Default inactivity before cleanup_stale_agents
            removes a non-busy agent.
        healthy_capability_count: Number of indexed capabilities that counts
            as full coverage in the health score.
    """

    available_workload_threshold: float = Field(default=0.2, ge=0.0, le=1.0)
    busy_workload_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    stale_after_seconds: float = Field(default=3600.0, gt=0.0)
    healthy_capability_count: int = Field(default=10, ge=1)

    @field_validator("busy_workload_threshold")
    @classmethod
    def validate_hysteresis(cls, v: float, info: object) -> float:
        """Busy threshold must sit above the available threshold."""
        data = getattr(info, "data", {})
        low = data.get("available_workload_threshold", 0.2)
        if v <= low:
            msg = f"busy_workload_threshold ({v}) must be > available_workload_threshold ({low})"
            raise ValueError(msg)
        return v


class WorkloadThresholds(BaseModel, frozen=True):
    """Thresholds above which a worker counts as overloaded.

    Attributes:
        max_cpu_usage: CPU usage fraction.
        max_memory_usage: Memory usage fraction.
        max_concurrent_tasks: Active task count.
        max_error_rate: Error rate fraction.
        error_rate_increment: Added to the error rate on each failed task.
        history_size: Snapshots kept per worker.
    """

    max_cpu_usage: float = Field(default=0.8, ge=0.0)
    max_memory_usage: float = Field(default=0.9, ge=0.0)
    max_concurrent_tasks: int = Field(default=10, ge=1)
    max_error_rate: float = Field(default=0.1, ge=0.0)
    error_rate_increment: float = Field(default=0.1, ge=0.0, le=1.0)
    history_size: int = Field(default=100, ge=1)


class ScoringWeights(BaseModel, frozen=True):
    """Weights of the PerformanceScorer components.

    Attributes:
        speed: Weight of the speed component.
        reliability: Weight of the reliability component.
        resource_efficiency: Weight of the resource efficiency component.
        availability: Weight of the uptime component.
        baseline_duration_ms: Average task duration that scores speed 1.0.
        history_size: Scores kept per worker.
    """

    speed: float = Field(default=0.3, ge=0.0)
    reliability: float = Field(default=0.4, ge=0.0)
    resource_efficiency: float = Field(default=0.2, ge=0.0)
    availability: float = Field(default=0.1, ge=0.0)
    baseline_duration_ms: float = Field(default=30000.0, gt=0.0)
    history_size: int = Field(default=50, ge=1)


class SelectionConfig(BaseModel, frozen=True):
    """Balanced selection weights and heuristics.

    The reuse and freshness buckets are empirical defaults. Each bucket list
    is ordered and the first matching upper bound wins.

    Attributes:
        performance_weight: (prioritized, normal) weight of performance.
        workload_weight: (balanced, normal) weight of workload balance.
        reuse_weight: (preferred, normal) weight of reuse.
        capability_weight: Weight of the capability match.
        freshness_weight: Weight of freshness.
        unused_reuse_score: Reuse score for an agent never used.
        reuse_buckets: (max usage count, score) pairs for used agents.
        overused_reuse_score: Reuse score beyond the last bucket.
        freshness_buckets: (max hours since last use, score) pairs.
        stale_freshness_score: Freshness beyond the last bucket.
        default_performance: Performance assumed without a recorded score.
        default_workload_score: Workload balance assumed without metrics.
        reference_task_count: Active task count that zeroes the task part of
            workload balance.
    """

    performance_weight: tuple[float, float] = (0.4, 0.25)
    workload_weight: tuple[float, float] = (0.3, 0.2)
    reuse_weight: tuple[float, float] = (0.2, 0.15)
    capability_weight: float = Field(default=0.15, ge=0.0)
    freshness_weight: float = Field(default=0.1, ge=0.0)
    unused_reuse_score: float = Field(default=0.3, ge=0.0, le=1.0)
    reuse_buckets: tuple[tuple[int, float], ...] = ((5, 0.8), (10, 0.6))
    overused_reuse_score: float = Field(default=0.4, ge=0.0, le=1.0)
    freshness_buckets: tuple[tuple[float, float], ...] = ((1.0, 0.7), (6.0, 0.9))
    stale_freshness_score: float = Field(default=1.0, ge=0.0, le=1.0)
    default_performance: float = Field(default=0.5, ge=0.0, le=1.0)
    default_workload_score: float = Field(default=0.7, ge=0.0, le=1.0)
    reference_task_count: int = Field(default=10, ge=1)

    @field_validator("reuse_buckets", "freshness_buckets")
    @classmethod
    def validate_buckets_ascending(
        cls, v: tuple[tuple[float, float], ...]
    ) -> tuple[tuple[float, float], ...]:
        """Bucket bounds must be strictly ascending."""
        bounds = [bound for bound, _ in v]
        if any(a >= b for a, b in zip(bounds, bounds[1:], strict=False)):
            msg = f"Bucket bounds must be strictly ascending, got {bounds}"
            raise ValueError(msg)
        return v


DEFAULT_CAPABILITY_TYPE_MAP: dict[str, list[str]] = {
    "design": ["design-architect"],
    "architecture": ["design-architect", "system-architect"],
    "system-architecture": ["system-architect"],
    "implementation": ["developer"],
    "coding": ["developer", "coder"],
    "testing": ["tester", "developer"],
    "code-review": ["reviewer", "developer"],
    "project-management": ["task-planner"],
    "task-breakdown": ["task-planner"],
    "planning": ["task-planner"],
    "analysis": ["analyst", "researcher"],
    "research": ["researcher"],
    "documentation": ["requirements-engineer", "steering-author"],
}


class PoolManagerConfig(BaseModel, frozen=True):
    """Agent pool manager configuration.

    Attributes:
        max_pool_size: Pool size up to which released agents are kept.
        min_pool_size: Pool size at or below which nothing is cleaned up.
        cleanup_threshold: Workload below which a recently idle agent is kept.
        idle_grace_seconds: Idle time under which an agent counts as warm.
        recent_use_seconds: Window in which a use counts as recent.
        keep_usage_count: Usage count above which an agent is worth keeping.
        reuse_max_workload: Workload at or above which agents are not reused.
        default_max_agents: Agents acquired when the caller does not say.
        fallback_agent_type: Type spawned for capabilities missing from the map.
        capability_type_map: Capability -> candidate worker types.
        spawn_retry_attempts: Attempts for transient spawner failures.
        spawn_retry_wait_initial: First backoff wait in seconds.
        spawn_retry_wait_max: Maximum backoff wait in seconds.
    """

    max_pool_size: int = Field(default=20, ge=1)
    min_pool_size: int = Field(default=3, ge=0)
    cleanup_threshold: float = Field(default=0.1, ge=0.0, le=1.0)
    idle_grace_seconds: float = Field(default=300.0, ge=0.0)
    recent_use_seconds: float = Field(default=1800.0, ge=0.0)
    keep_usage_count: int = Field(default=2, ge=0)
    reuse_max_workload: float = Field(default=0.8, ge=0.0, le=1.0)
    default_max_agents: int = Field(default=2, ge=1)
    fallback_agent_type: str = Field(default="general", min_length=1)
    capability_type_map: dict[str, list[str]] = Field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_CAPABILITY_TYPE_MAP.items()}
    )
    spawn_retry_attempts: int = Field(default=3, ge=1)
    spawn_retry_wait_initial: float = Field(default=0.1, ge=0.0)
    spawn_retry_wait_max: float = Field(default=2.0, ge=0.0)


class AgentReuseConfig(BaseModel, frozen=True):
    """Top-level agent-reuse configuration.

    Validates against config.yaml in ~/.agentreuse/.
    """

    registry: RegistryConfig = Field(default_factory=RegistryConfig)
    workload: WorkloadThresholds = Field(default_factory=WorkloadThresholds)
    scoring: ScoringWeights = Field(default_factory=ScoringWeights)
    selection: SelectionConfig = Field(default_factory=SelectionConfig)
    pool: PoolManagerConfig = Field(default_factory=PoolManagerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def get_default_config() -> AgentReuseConfig:
    """Get the default configuration with every value populated."""
    return AgentReuseConfig()


def get_config_dir() -> Path:
    """Get the configuration directory path (~/.agentreuse/)."""
    return Path.home() / ".agentreuse"
