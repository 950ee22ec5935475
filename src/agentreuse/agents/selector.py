"""Intelligent agent selector: the entry point of the agent-reuse core.

Selection flows one way through the components:

    capabilities -> AgentRegistry (capability match)
                 -> WorkloadMonitor (availability filter)
                 -> PerformanceScorer (rank)
                 -> BalancedSelectionStrategy (pick)

Execution acquires agents from the pool manager, runs the task on the
primary agent through the TaskExecutor, records the outcome in that agent's
history and always releases every acquired agent, whatever the outcome.

Usage:
    selector = IntelligentAgentSelector(registry, pool, monitor, scorer, executor)

    selection = await selector.select_optimal_agents(["testing"], TaskContext(id="t-1"))
    if not selection.selected_agents:
        print(selection.selection_reason)

    result = await selector.execute_task_with_intelligent_selection(
        ["testing"], TaskDefinition(id="t-2", type="testing"),
    )
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
import time
from typing import TYPE_CHECKING

from agentreuse.agents.models import (
    AgentMetrics,
    AgentSelection,
    ExecutionOptions,
    PoolOptimizationResult,
    RegisteredAgent,
    SelectionOptions,
    SystemStatistics,
    TaskComplexity,
    TaskContext,
    TaskDefinition,
    TaskResult,
)
from agentreuse.agents.pool import AgentPoolManager
from agentreuse.agents.registry import AgentRegistry
from agentreuse.agents.scoring import PerformanceScorer
from agentreuse.agents.strategies.balanced import (
    AgentCandidate,
    BalancedSelectionStrategy,
    SelectionCriteria,
)
from agentreuse.agents.workload import WorkloadMonitor
from agentreuse.core.capability import normalize_capabilities
from agentreuse.core.errors import ExecutionFailure
from agentreuse.observability.logging import (
    bind_context,
    configure_logging,
    get_logger,
    unbind_context,
)

if TYPE_CHECKING:
    from agentreuse.agents.protocols import (
        ExecutionOutcome,
        Spawner,
        TaskExecutor,
        TaskReassigner,
    )
    from agentreuse.config.models import AgentReuseConfig

log = get_logger(__name__)

HIGH_COMPLEXITY_TYPES = frozenset({"system-design", "architecture", "complex-implementation"})
MEDIUM_COMPLEXITY_TYPES = frozenset({"implementation", "testing", "code-review"})


def determine_complexity(task: TaskDefinition) -> TaskComplexity:
    """Complexity from ``metadata["complexity"]``, else from the task type."""
    declared = task.metadata.get("complexity")
    if declared is not None:
        try:
            return TaskComplexity(declared)
        except ValueError:
            log.warning(
                "agents.selector.invalid_complexity",
                task_id=task.id,
                complexity=declared,
            )

    if task.type in HIGH_COMPLEXITY_TYPES:
        return TaskComplexity.HIGH
    if task.type in MEDIUM_COMPLEXITY_TYPES:
        return TaskComplexity.MEDIUM
    return TaskComplexity.LOW


class IntelligentAgentSelector:
    """Facade over registry, monitor, scorer, strategy and pool manager.

    Selection never raises: every failure point yields an empty selection
    with a reason. Execution propagates acquisition and execution errors,
    but never leaves an acquired agent busy.
    """

    def __init__(
        self,
        registry: AgentRegistry,
        pool_manager: AgentPoolManager,
        monitor: WorkloadMonitor,
        scorer: PerformanceScorer,
        executor: TaskExecutor,
        *,
        strategy: BalancedSelectionStrategy | None = None,
    ) -> None:
        self._registry = registry
        self._pool = pool_manager
        self._monitor = monitor
        self._scorer = scorer
        self._executor = executor
        self._strategy = strategy or BalancedSelectionStrategy()

    @classmethod
    def from_config(
        cls,
        config: AgentReuseConfig,
        spawner: Spawner,
        executor: TaskExecutor,
        *,
        reassigner: TaskReassigner | None = None,
    ) -> IntelligentAgentSelector:
        """Build the selector and every component it drives from one config.

        Also applies the ``logging`` section. Typical use:

            selector = IntelligentAgentSelector.from_config(
                load_config(), spawner, executor
            )
        """
        configure_logging(config.logging)

        registry = AgentRegistry(config.registry)
        monitor = WorkloadMonitor(config.workload)
        pool = AgentPoolManager(
            registry, spawner, config.pool, monitor=monitor, reassigner=reassigner
        )
        return cls(
            registry,
            pool,
            monitor,
            PerformanceScorer(config.scoring),
            executor,
            strategy=BalancedSelectionStrategy(config.selection),
        )

    @property
    def registry(self) -> AgentRegistry:
        return self._registry

    @property
    def pool_manager(self) -> AgentPoolManager:
        return self._pool

    @property
    def monitor(self) -> WorkloadMonitor:
        return self._monitor

    @property
    def scorer(self) -> PerformanceScorer:
        return self._scorer

    @property
    def strategy(self) -> BalancedSelectionStrategy:
        return self._strategy

    # -------------------------------------------------------------------------
    # Selection
    # -------------------------------------------------------------------------

    async def select_optimal_agents(
        self,
        required_capabilities: Iterable[str],
        task_context: TaskContext,
        options: SelectionOptions | None = None,
    ) -> AgentSelection:
        """Rank capable, available agents and pick the best ones.

        Returns:
            The selection. It is empty, with a reason, when no agent has the
            capabilities, when all capable agents are overloaded, or when
            selection failed internally.
        """
        options = options or SelectionOptions()
        started = time.monotonic()

        try:
            required = normalize_capabilities(required_capabilities)

            candidates = await self._registry.find_capable_agents(required)
            if not candidates:
                log.warning(
                    "agents.selector.no_capable_agents",
                    task_id=task_context.id,
                    capabilities=list(required),
                )
                return self._empty_selection("No capable agents found")

            available = self._monitor.filter_by_availability(candidates)
            if not available:
                log.warning("agents.selector.all_agents_busy", task_id=task_context.id)
                return self._empty_selection("All capable agents are busy")

            scored = self._scorer.score_agents(available, required, task_context)
            criteria = SelectionCriteria(
                required_capabilities=required,
                task_type=options.task_type or task_context.type,
                max_agents=options.max_agents,
                prioritize_performance=options.prioritize_performance,
                balance_workload=options.balance_workload,
                prefer_reused=options.prefer_reuse,
            )
            result = self._strategy.select_agents(
                [
                    AgentCandidate.from_agent(
                        s.agent,
                        self._scorer.get_current_score(s.agent.id),
                        self._monitor.get_current_workload(s.agent.id),
                    )
                    for s in scored
                ],
                criteria,
            )
        except Exception as e:
            log.error(
                "agents.selector.selection_failed",
                task_id=task_context.id,
                error=str(e),
                elapsed_ms=round((time.monotonic() - started) * 1000, 2),
            )
            return self._empty_selection(f"Selection failed: {e}")

        by_id = {agent.id: agent for agent in available}
        selected = [by_id[c.agent_id] for c in result.selected_agents]
        alternatives = [by_id[c.agent_id] for c in result.alternatives]

        log.info(
            "agents.selector.agents_selected",
            task_id=task_context.id,
            selected=[a.id for a in selected],
            elapsed_ms=round((time.monotonic() - started) * 1000, 2),
        )

        if not selected:
            return self._empty_selection(result.reasoning, alternatives)

        return AgentSelection(
            selected_agents=selected,
            alternative_agents=alternatives,
            selection_reason=result.reasoning,
            confidence=result.score,
            estimated_success=(
                sum(a.performance_history.success_rate for a in selected) / len(selected)
            ),
        )

    @staticmethod
    def _empty_selection(
        reason: str, alternatives: list[RegisteredAgent] | None = None
    ) -> AgentSelection:
        return AgentSelection(
            selected_agents=[],
            alternative_agents=alternatives or [],
            selection_reason=reason,
            confidence=0.0,
            estimated_success=0.0,
        )

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    async def execute_task_with_intelligent_selection(
        self,
        required_capabilities: Iterable[str],
        task: TaskDefinition,
        options: ExecutionOptions | None = None,
    ) -> TaskResult:
        """Acquire agents, run the task on the primary one, release them all.

        An executor that reports ``success=False`` produces a failed
        TaskResult. An executor that raises, or exceeds ``options.timeout``,
        is recorded as a failure and re-raised as ExecutionFailure after the
        agents are released.

        Raises:
            InsufficientAgentsError: If no agent could be acquired.
            ExecutionFailure: If the executor raised or timed out.
        """
        options = options or ExecutionOptions()
        context = self.task_context_for(task, options)

        bind_context(task_id=task.id)
        try:
            agents = await self._pool.acquire_agents(
                required_capabilities, context, options.max_agents
            )
            primary = agents[0]
            success = False
            try:
                outcome = await self._execute(primary.id, task, options.timeout)
                success = outcome.success
                self._record_outcome(primary.id, task, outcome)
            finally:
                await self._pool.release_agents(
                    [a.id for a in agents], context, success=success
                )
        finally:
            unbind_context("task_id")

        log.info(
            "agents.selector.task_executed",
            task_id=task.id,
            agent_id=primary.id,
            success=outcome.success,
            duration_ms=outcome.duration_ms,
        )
        return TaskResult(
            success=outcome.success,
            duration_ms=outcome.duration_ms,
            agent_metrics=self._agent_metrics(primary.id, outcome),
            output=outcome.output,
            error=None if outcome.success else outcome.error or "Task reported failure",
        )

    async def _execute(
        self, agent_id: str, task: TaskDefinition, timeout: float | None
    ) -> ExecutionOutcome:
        """Run the executor, converting raised errors into ExecutionFailure."""
        started = time.monotonic()
        try:
            if timeout is None:
                return await self._executor.execute(agent_id, task)
            return await asyncio.wait_for(self._executor.execute(agent_id, task), timeout)
        except TimeoutError as e:
            reason = f"Task {task.id} timed out after {timeout}s"
            self._record_failure(agent_id, reason)
            raise ExecutionFailure(
                reason,
                task_id=task.id,
                agent_id=agent_id,
                timed_out=True,
                details={"elapsed_ms": round((time.monotonic() - started) * 1000, 2)},
            ) from e
        except Exception as e:
            self._record_failure(agent_id, str(e) or type(e).__name__)
            raise ExecutionFailure(
                f"Task {task.id} failed on agent {agent_id}: {e}",
                task_id=task.id,
                agent_id=agent_id,
                details={"original_exception": type(e).__name__},
            ) from e

    def _record_outcome(
        self, agent_id: str, task: TaskDefinition, outcome: ExecutionOutcome
    ) -> None:
        if not outcome.success:
            self._record_failure(agent_id, outcome.error or "Task reported failure")
            return
        try:
            self._registry.record_completion(
                agent_id, outcome.duration_ms, task.estimated_duration_ms
            )
            self._refresh_score(agent_id)
        except Exception as e:
            log.warning("agents.selector.metrics_update_failed", agent_id=agent_id, error=str(e))

    def _record_failure(self, agent_id: str, reason: str) -> None:
        try:
            self._registry.record_failure(agent_id, reason)
            self._refresh_score(agent_id)
        except Exception as e:
            log.warning("agents.selector.metrics_update_failed", agent_id=agent_id, error=str(e))

    def _refresh_score(self, agent_id: str) -> None:
        agent = self._registry.get_agent(agent_id)
        if agent is not None:
            self._scorer.calculate_agent_score(
                agent, self._monitor.get_current_workload(agent_id)
            )

    def _agent_metrics(self, agent_id: str, outcome: ExecutionOutcome) -> AgentMetrics | None:
        agent = self._registry.get_agent(agent_id)
        if agent is None:
            return None
        workload = self._monitor.get_current_workload(agent_id)
        history = agent.performance_history
        return AgentMetrics(
            agent_id=agent_id,
            task_duration_ms=outcome.duration_ms,
            cpu_usage=workload.cpu_usage if workload else 0.0,
            memory_usage=workload.memory_usage if workload else 0.0,
            success_rate=history.success_rate,
            quality_score=history.get_average_quality(),
        )

    @staticmethod
    def task_context_for(task: TaskDefinition, options: ExecutionOptions) -> TaskContext:
        return TaskContext(
            id=task.id,
            type=options.task_type or task.type,
            feature_name=task.metadata.get("feature_name"),
            priority=task.priority,
            estimated_duration_ms=task.estimated_duration_ms,
            complexity=determine_complexity(task),
            metadata=dict(task.metadata),
        )

    # -------------------------------------------------------------------------
    # System
    # -------------------------------------------------------------------------

    def get_system_statistics(self) -> SystemStatistics:
        return SystemStatistics(
            registry=self._registry.get_registry_stats(),
            workload=self._monitor.get_workload_statistics(),
            pool=self._pool.get_pool_statistics(),
        )

    async def optimize_system(self) -> PoolOptimizationResult:
        return await self._pool.optimize_pool()

    async def shutdown(self) -> None:
        """Stop every pooled agent, then clear the registry."""
        await self._pool.shutdown()
        await self._registry.shutdown()
        log.info("agents.selector.shutdown")


__all__ = [
    "IntelligentAgentSelector",
    "determine_complexity",
]
