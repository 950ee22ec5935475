"""Agent Pool Manager: reuse-first acquisition and release of workers.

This module provides:
- GreedyReuseStrategy: claims idle, capable, non-overloaded agents
- SpawnPlanner: picks worker types to spawn, decides cleanup on release
  and analyzes pool health
- AgentPoolManager: acquire/release orchestration, pool optimization and
  pool statistics

Per acquisition the pool moves through:

    Idle -> Matching -> (Reusing | Spawning) -> Assigned
         -> Executing (external) -> Releasing -> (Pooled | Cleaned up)

Agents are marked busy inside the registry mutation that selects them
(``claim_agents``) or registers them (``reserve_for``), so no agent is ever
handed to two tasks at once. The registry lock is never held while waiting
on the spawner.

Usage:
    pool = AgentPoolManager(registry, spawner, monitor=monitor)

    agents = await pool.acquire_agents(["testing"], TaskContext(id="t-1"))
    try:
        ...
    finally:
        await pool.release_agents([a.id for a in agents], TaskContext(id="t-1"))
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import replace
from datetime import UTC, datetime
import math
import time
from typing import TYPE_CHECKING

import stamina

from agentreuse.agents.models import (
    AcquiredAgent,
    AgentProfile,
    AgentSource,
    AgentStatus,
    OptimizationRecommendation,
    OptimizationResult,
    PoolOptimizationResult,
    PoolStatistics,
    RecommendationPriority,
    RecommendationType,
    RegisteredAgent,
    RegistryStatistics,
    TaskComplexity,
    TaskContext,
)
from agentreuse.config.models import PoolManagerConfig
from agentreuse.core.capability import normalize_capabilities
from agentreuse.core.errors import (
    InsufficientAgentsError,
    SpawnerUnavailableError,
    SpawnFailure,
)
from agentreuse.observability.logging import get_logger

if TYPE_CHECKING:
    from agentreuse.agents.protocols import Spawner, TaskReassigner
    from agentreuse.agents.registry import AgentRegistry
    from agentreuse.agents.workload import WorkloadMonitor

log = get_logger(__name__)

DEFAULT_SPAWN_PRIORITY = 70

_RELEASABLE = frozenset(s for s in AgentStatus if s != AgentStatus.BUSY)


# =============================================================================
# Reuse
# =============================================================================


class GreedyReuseStrategy:
    """Claims any available agent that matches every capability.

    Agents at or above ``reuse_max_workload`` and agents the monitor reports
    as overloaded are skipped. The least busy agents are claimed first.
    """

    def __init__(
        self,
        registry: AgentRegistry,
        config: PoolManagerConfig,
        monitor: WorkloadMonitor | None = None,
    ) -> None:
        self._registry = registry
        self._config = config
        self._monitor = monitor

    async def find_reusable_agents(
        self,
        required_capabilities: Sequence[str],
        task_context: TaskContext,
        max_agents: int,
    ) -> list[AcquiredAgent]:
        is_eligible = None
        if self._monitor is not None:
            monitor = self._monitor
            is_eligible = lambda agent: monitor.is_available(agent.id)  # noqa: E731

        claimed = await self._registry.claim_agents(
            required_capabilities,
            task_context.id,
            max_agents,
            max_workload=self._config.reuse_max_workload,
            is_eligible=is_eligible,
        )

        now = datetime.now(UTC)
        reused = [
            AcquiredAgent(
                id=agent.id,
                type=agent.type,
                capabilities=tuple(sorted(agent.capabilities)),
                source=AgentSource.REUSED,
                assigned_task_id=task_context.id,
                reused_at=now,
            )
            for agent in claimed
        ]
        log.info(
            "agents.pool.agents_reused",
            task_id=task_context.id,
            count=len(reused),
        )
        return reused


# =============================================================================
# Spawn planning, cleanup decisions and pool health
# =============================================================================


class SpawnPlanner:
    """Pool sizing decisions.

    Picks the worker types that cover the most requested capabilities,
    decides whether a released agent is kept for reuse, and turns registry
    statistics into optimization recommendations.
    """

    def __init__(self, registry: AgentRegistry, config: PoolManagerConfig) -> None:
        self._registry = registry
        self._config = config

    def select_types_for_spawning(
        self, required_capabilities: Sequence[str], count: int
    ) -> list[str]:
        """Distinct worker types ordered by how many capabilities they cover.

        Capabilities missing from the type table count towards the fallback
        type. Ties keep first-seen order.
        """
        if count <= 0:
            return []
        if not required_capabilities:
            return [self._config.fallback_agent_type]

        type_scores: dict[str, int] = {}
        for capability in required_capabilities:
            candidates = self._config.capability_type_map.get(capability) or [
                self._config.fallback_agent_type
            ]
            for agent_type in candidates:
                type_scores[agent_type] = type_scores.get(agent_type, 0) + 1

        ranked = sorted(type_scores, key=lambda t: type_scores[t], reverse=True)
        return ranked[:count]

    def should_cleanup_agent(self, agent_id: str) -> bool:
        """Decide whether a released agent is removed from the pool.

        Agents are kept while the pool is small, while they are in use, and
        while they are warm or proven, unless the pool is over its maximum
        size.
        """
        agent = self._registry.get_agent(agent_id)
        if agent is None:
            return True

        cfg = self._config
        total = len(self._registry)
        if total <= cfg.min_pool_size:
            return False
        if agent.status == AgentStatus.BUSY:
            return False
        if total > cfg.max_pool_size:
            return True

        if agent.idle_seconds < cfg.idle_grace_seconds and agent.current_workload < cfg.cleanup_threshold:
            return False

        recently_used = (
            agent.last_used is not None
            and (datetime.now(UTC) - agent.last_used).total_seconds() < cfg.recent_use_seconds
        )
        return not (agent.usage_count > cfg.keep_usage_count or recently_used)

    def analyze_pool_health(
        self,
        stats: RegistryStatistics,
        agents: Sequence[RegisteredAgent],
    ) -> list[OptimizationRecommendation]:
        recommendations: list[OptimizationRecommendation] = []

        if stats.available_agents < stats.total_agents * 0.3:
            recommendations.append(
                OptimizationRecommendation(
                    type=RecommendationType.SPAWN,
                    reason="Low availability ratio - need more agents",
                    expected_impact=0.3,
                    priority=RecommendationPriority.HIGH,
                )
            )

        if stats.average_workload < 0.2 and stats.total_agents > 5:
            recommendations.append(
                OptimizationRecommendation(
                    type=RecommendationType.CLEANUP,
                    reason="High number of idle agents - cleanup needed",
                    expected_impact=0.2,
                    priority=RecommendationPriority.MEDIUM,
                )
            )

        if self.workload_deviation(agents) > 0.3:
            recommendations.append(
                OptimizationRecommendation(
                    type=RecommendationType.REBALANCE,
                    reason="High workload variance - rebalancing needed",
                    expected_impact=0.25,
                    priority=RecommendationPriority.MEDIUM,
                )
            )

        return recommendations

    @staticmethod
    def workload_deviation(agents: Sequence[RegisteredAgent]) -> float:
        """Population standard deviation of the agents' workloads."""
        if not agents:
            return 0.0
        workloads = [a.current_workload for a in agents]
        mean = sum(workloads) / len(workloads)
        variance = sum((w - mean) ** 2 for w in workloads) / len(workloads)
        return math.sqrt(variance)


# =============================================================================
# Pool manager
# =============================================================================


class AgentPoolManager:
    """Reuse-first acquisition with spawning as the fallback.

    Example:
        pool = AgentPoolManager(registry, spawner)

        context = TaskContext(id="task-1", complexity=TaskComplexity.HIGH)
        agents = await pool.acquire_agents(["testing"], context, max_agents=2)
        # -> e.g. one reused and one spawned AcquiredAgent

        await pool.release_agents([a.id for a in agents], context)
        stats = pool.get_pool_statistics()
    """

    def __init__(
        self,
        registry: AgentRegistry,
        spawner: Spawner,
        config: PoolManagerConfig | None = None,
        *,
        monitor: WorkloadMonitor | None = None,
        reassigner: TaskReassigner | None = None,
    ) -> None:
        """Initialize the pool manager.

        Args:
            registry: Registry holding every pooled agent.
            spawner: Collaborator that creates, starts and stops workers.
            config: Pool sizing, release policy and retry configuration.
            monitor: Optional workload monitor used to skip overloaded agents.
            reassigner: Optional collaborator for rebalance recommendations.
        """
        self._registry = registry
        self._spawner = spawner
        self._config = config or PoolManagerConfig()
        self._monitor = monitor
        self._reassigner = reassigner

        self._reuse = GreedyReuseStrategy(registry, self._config, monitor)
        self._planner = SpawnPlanner(registry, self._config)

        self._total_spawned = 0
        self._total_reused = 0
        self._total_released = 0
        self._total_cleaned_on_release = 0
        self._pool_size_total = 0
        self._pool_size_samples = 0

        log.info(
            "agents.pool.initialized",
            max_pool_size=self._config.max_pool_size,
            min_pool_size=self._config.min_pool_size,
        )

    @property
    def config(self) -> PoolManagerConfig:
        return self._config

    @property
    def planner(self) -> SpawnPlanner:
        return self._planner

    # -------------------------------------------------------------------------
    # Acquisition
    # -------------------------------------------------------------------------

    async def acquire_agents(
        self,
        required_capabilities: Iterable[str],
        task_context: TaskContext,
        max_agents: int | None = None,
    ) -> list[AcquiredAgent]:
        """Acquire up to ``max_agents`` agents, reusing before spawning.

        Every returned agent is already busy with ``task_context.id``.

        Raises:
            InsufficientAgentsError: If neither reuse nor spawning produced
                a single agent.
        """
        required = normalize_capabilities(required_capabilities)
        limit = max_agents if max_agents is not None else self._config.default_max_agents

        self._pool_size_total += len(self._registry)
        self._pool_size_samples += 1

        acquired: list[AcquiredAgent] = []
        try:
            reused = await self._reuse.find_reusable_agents(required, task_context, limit)
            acquired.extend(reused)

            needed = limit - len(reused)
            if needed > 0:
                await self._spawn_agents(required, task_context, needed, acquired)
        except BaseException:
            # Interrupted part-way: hand back what was already claimed.
            await self._return_to_pool([a.id for a in acquired], task_context)
            raise

        if not acquired:
            log.warning(
                "agents.pool.acquisition_failed",
                task_id=task_context.id,
                capabilities=list(required),
            )
            raise InsufficientAgentsError(required, task_context.id)

        reused_count = sum(1 for a in acquired if a.source == AgentSource.REUSED)
        self._total_reused += reused_count
        self._total_spawned += len(acquired) - reused_count

        if self._monitor is not None:
            for agent in acquired:
                self._monitor.track_task_assignment(agent.id, task_context.id)

        log.info(
            "agents.pool.agents_acquired",
            task_id=task_context.id,
            count=len(acquired),
            reused=reused_count,
            spawned=len(acquired) - reused_count,
        )
        return acquired

    async def _spawn_agents(
        self,
        required_capabilities: tuple[str, ...],
        task_context: TaskContext,
        count: int,
        acquired: list[AcquiredAgent],
    ) -> None:
        """Spawn one agent per selected type, isolating failures per type.

        Each spawned agent is appended to ``acquired`` as soon as it is
        registered, so an interrupted acquisition can hand it back.
        """
        for agent_type in self._planner.select_types_for_spawning(required_capabilities, count):
            try:
                acquired.append(
                    await self._spawn_one(agent_type, required_capabilities, task_context)
                )
            except SpawnFailure as e:
                log.warning(
                    "agents.pool.spawn_failed",
                    task_id=task_context.id,
                    agent_type=agent_type,
                    agent_id=e.agent_id,
                    error=str(e),
                )

    async def _spawn_one(
        self,
        agent_type: str,
        required_capabilities: tuple[str, ...],
        task_context: TaskContext,
    ) -> AcquiredAgent:
        """Create, start and register one worker, reserved for the task.

        Raises:
            SpawnFailure: If any step failed. A worker that was created is
                stopped again before the error is raised.
        """
        profile = self.build_profile(agent_type, required_capabilities, task_context)
        try:
            agent_id = await self._spawner.create_worker(agent_type, profile)
        except SpawnFailure:
            raise
        except Exception as e:
            raise SpawnFailure.from_exception(e, agent_type=agent_type) from e

        try:
            await self._with_retry(self._spawner.start_worker, agent_id)
            if agent_id != profile.id:
                profile = replace(profile, id=agent_id)
            await self._registry.register_agent(agent_id, profile, reserve_for=task_context.id)
        except Exception as e:
            await self._stop_quietly(agent_id)
            if isinstance(e, SpawnFailure):
                raise
            raise SpawnFailure.from_exception(e, agent_type=agent_type, agent_id=agent_id) from e
        except BaseException:
            # Cancelled before the worker was registered.
            await self._stop_quietly(agent_id)
            raise

        log.info(
            "agents.pool.agent_spawned",
            task_id=task_context.id,
            agent_id=agent_id,
            agent_type=agent_type,
        )
        return AcquiredAgent(
            id=agent_id,
            type=agent_type,
            capabilities=profile.capabilities,
            source=AgentSource.SPAWNED,
            assigned_task_id=task_context.id,
            spawned_at=datetime.now(UTC),
        )

    def build_profile(
        self,
        agent_type: str,
        required_capabilities: Sequence[str],
        task_context: TaskContext,
    ) -> AgentProfile:
        """Profile for a worker spawned for ``task_context``."""
        return AgentProfile(
            id=f"{agent_type}-{task_context.id}-{int(time.time() * 1000)}",
            name=f"{agent_type} for {task_context.feature_name or task_context.id}",
            type=agent_type,
            capabilities=tuple(required_capabilities),
            max_concurrent_tasks=1,
            priority=self.priority_for_context(task_context),
            metadata={
                "created_for": task_context.id,
                "required_capabilities": list(required_capabilities),
            },
        )

    @staticmethod
    def priority_for_context(task_context: TaskContext) -> int:
        priority = task_context.priority or DEFAULT_SPAWN_PRIORITY
        if task_context.complexity == TaskComplexity.HIGH:
            priority += 10
        elif task_context.complexity == TaskComplexity.LOW:
            priority -= 5
        return max(50, min(100, priority))

    async def _with_retry(
        self, operation: Callable[[str], Awaitable[None]], agent_id: str
    ) -> None:
        """Call a spawner operation, retrying transient failures."""
        cfg = self._config

        @stamina.retry(
            on=SpawnerUnavailableError,
            attempts=cfg.spawn_retry_attempts,
            wait_initial=cfg.spawn_retry_wait_initial,
            wait_max=cfg.spawn_retry_wait_max,
            wait_jitter=min(0.5, cfg.spawn_retry_wait_max),
        )
        async def _do_call() -> None:
            await operation(agent_id)

        await _do_call()

    async def _stop_quietly(self, agent_id: str) -> None:
        try:
            await self._with_retry(self._spawner.stop_worker, agent_id)
        except Exception as e:
            log.error("agents.pool.stop_failed", agent_id=agent_id, error=str(e))

    async def _return_to_pool(self, agent_ids: Sequence[str], task_context: TaskContext) -> None:
        for agent_id in agent_ids:
            await self._registry.transition_agent_status(
                agent_id,
                AgentStatus.AVAILABLE,
                expected=(AgentStatus.BUSY,),
                metadata={"last_task": task_context.id, "interrupted": True},
                assigned_to=task_context.id,
            )
        if agent_ids:
            log.warning(
                "agents.pool.acquisition_interrupted",
                task_id=task_context.id,
                returned=list(agent_ids),
            )

    # -------------------------------------------------------------------------
    # Release
    # -------------------------------------------------------------------------

    async def release_agents(
        self,
        agent_ids: Sequence[str],
        task_context: TaskContext,
        *,
        success: bool = True,
    ) -> list[str]:
        """Return agents to the pool, cleaning up those not worth keeping.

        Each agent is handled independently: a failure releasing one is
        logged and does not affect the others. An agent that is no longer
        held by ``task_context`` is skipped, so a late or repeated release
        never frees an agent another task owns.

        Args:
            agent_ids: Agents acquired for the task.
            task_context: The task they were acquired for.
            success: Task outcome, reported to the workload monitor.

        Returns:
            Ids of the agents that were cleaned up.
        """
        cleaned: list[str] = []
        for agent_id in agent_ids:
            try:
                released = await self._registry.transition_agent_status(
                    agent_id,
                    AgentStatus.AVAILABLE,
                    expected=(AgentStatus.BUSY,),
                    metadata={
                        "last_task": task_context.id,
                        "released_at": datetime.now(UTC).isoformat(),
                    },
                    assigned_to=task_context.id,
                )
                if not released:
                    log.warning(
                        "agents.pool.release_skipped",
                        agent_id=agent_id,
                        task_id=task_context.id,
                        reason="agent not held by task",
                    )
                    continue
                self._total_released += 1

                if self._monitor is not None:
                    self._monitor.track_task_completion(agent_id, task_context.id, success)

                if self._planner.should_cleanup_agent(agent_id) and await self.cleanup_agent(agent_id):
                    cleaned.append(agent_id)
                    self._total_cleaned_on_release += 1
            except Exception as e:
                log.warning(
                    "agents.pool.release_failed",
                    agent_id=agent_id,
                    task_id=task_context.id,
                    error=str(e),
                )

        log.info(
            "agents.pool.agents_released",
            task_id=task_context.id,
            count=len(agent_ids),
            cleaned=len(cleaned),
        )
        return cleaned

    async def cleanup_agent(self, agent_id: str, *, force: bool = False) -> bool:
        """Stop an agent's worker and remove it from the pool.

        The agent is first moved to maintenance so it can not be claimed
        while its worker stops. Unless ``force`` is set, a busy agent is
        left alone. If stopping fails the agent stays in the pool.

        Returns:
            True if the agent was stopped and unregistered.
        """
        expected = AgentStatus if force else _RELEASABLE
        taken = await self._registry.transition_agent_status(
            agent_id,
            AgentStatus.MAINTENANCE,
            expected=expected,
            metadata={"cleanup": True},
        )
        if not taken:
            return False

        try:
            await self._with_retry(self._spawner.stop_worker, agent_id)
        except Exception as e:
            log.error("agents.pool.cleanup_failed", agent_id=agent_id, error=str(e))
            await self._registry.update_agent_status(
                agent_id, AgentStatus.AVAILABLE, {"cleanup_error": str(e)}
            )
            return False

        await self._registry.unregister_agent(agent_id)
        if self._monitor is not None:
            self._monitor.clear_metrics(agent_id)
        log.info("agents.pool.agent_cleaned_up", agent_id=agent_id)
        return True

    # -------------------------------------------------------------------------
    # Optimization and statistics
    # -------------------------------------------------------------------------

    async def optimize_pool(self) -> PoolOptimizationResult:
        """Analyze pool health and apply the supported recommendations."""
        stats = self._registry.get_registry_stats()
        recommendations = self._planner.analyze_pool_health(
            stats, self._registry.get_all_active_agents()
        )

        results = []
        for recommendation in recommendations:
            try:
                applied = await self._apply(recommendation)
                results.append(
                    OptimizationResult(
                        recommendation=recommendation,
                        applied=applied,
                        actual_impact=recommendation.expected_impact if applied else 0.0,
                    )
                )
            except Exception as e:
                log.warning(
                    "agents.pool.optimization_failed",
                    recommendation=recommendation.type.value,
                    error=str(e),
                )
                results.append(
                    OptimizationResult(recommendation=recommendation, applied=False, error=str(e))
                )

        log.info(
            "agents.pool.optimized",
            recommendations=len(recommendations),
            applied=sum(1 for r in results if r.applied),
        )
        return PoolOptimizationResult(
            initial_stats=stats,
            recommendations=recommendations,
            results=results,
        )

    async def _apply(self, recommendation: OptimizationRecommendation) -> bool:
        if recommendation.type == RecommendationType.CLEANUP:
            removed = await self._registry.cleanup_stale_agents()
            for agent_id in removed:
                await self._stop_quietly(agent_id)
                if self._monitor is not None:
                    self._monitor.clear_metrics(agent_id)
            return bool(removed)

        if recommendation.type == RecommendationType.REBALANCE:
            if self._reassigner is None:
                log.info("agents.pool.rebalance_skipped", reason="no reassigner configured")
                return False
            return await self._reassigner.rebalance(self._registry.get_all_active_agents())

        log.warning("agents.pool.unsupported_optimization", type=recommendation.type.value)
        return False

    def get_pool_statistics(self) -> PoolStatistics:
        acquired = self._total_reused + self._total_spawned
        return PoolStatistics(
            total_spawned=self._total_spawned,
            total_reused=self._total_reused,
            reuse_rate=self._total_reused / acquired if acquired else 0.0,
            average_pool_size=(
                self._pool_size_total / self._pool_size_samples if self._pool_size_samples else 0.0
            ),
            cleanup_rate=(
                self._total_cleaned_on_release / self._total_released if self._total_released else 0.0
            ),
        )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def shutdown(self) -> None:
        """Stop and unregister every pooled agent."""
        agent_ids = [a.id for a in self._registry.get_all_agents()]
        for agent_id in agent_ids:
            await self.cleanup_agent(agent_id, force=True)
        log.info("agents.pool.shutdown", agents=len(agent_ids))


__all__ = [
    "AgentPoolManager",
    "GreedyReuseStrategy",
    "SpawnPlanner",
]
