"""Agent Registry: the source of truth for every known worker.

This module provides:
- Registration and unregistration of workers
- A capability inverted index (capability -> agent ids)
- Capability matching by set intersection
- Status/workload tracking with hysteresis
- Aggregate registry health
- Fire-and-forget status-change notifications

All mutations, and capability matching, run under one asyncio.Lock owned
by the registry instance. The lock is never held across an await on a
collaborator.

Usage:
    registry = AgentRegistry()
    await registry.register_agent("tester-1", profile)

    capable = await registry.find_capable_agents(["testing"])
    claimed = await registry.claim_agents(["testing"], task_id="t-1", limit=2)
"""

from __future__ import annotations

import asyncio
from collections import Counter
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
import inspect
from typing import Any

from agentreuse.agents.history import PerformanceHistory
from agentreuse.agents.models import (
    AgentProfile,
    AgentStatus,
    RegisteredAgent,
    RegistryStatistics,
)
from agentreuse.config.models import RegistryConfig
from agentreuse.core.capability import normalize_capabilities
from agentreuse.core.errors import DuplicateIDError, UnknownAgentError
from agentreuse.events.agents import (
    create_agent_registered_event,
    create_agent_status_changed_event,
    create_agent_unregistered_event,
)
from agentreuse.events.base import BaseEvent
from agentreuse.observability.logging import get_logger

log = get_logger(__name__)

Subscriber = Callable[[BaseEvent], Awaitable[None] | None]
"""Status-change callback. May be a plain function or a coroutine function."""


@dataclass(frozen=True, slots=True)
class CapabilityAnalysis:
    """Capability distribution across registered agents.

    Attributes:
        distribution: Capability -> number of agents declaring it.
        most_common: Up to five (capability, count) pairs, most agents first.
        rarest: Up to five (capability, count) pairs, fewest agents first.
    """

    distribution: dict[str, int]
    most_common: list[tuple[str, int]]
    rarest: list[tuple[str, int]]


class AgentRegistry:
    """Registry of workers with a capability inverted index.

    Invariant: an agent id is in ``capability_index()[c]`` if and only if
    the agent is registered and declares ``c``. Capabilities whose agent
    set becomes empty are dropped from the index.

    Example:
        registry = AgentRegistry()
        registry.subscribe(on_status_change)

        await registry.register_agent("dev-1", profile)
        await registry.update_agent_workload("dev-1", 0.85)  # -> busy

        stats = registry.get_registry_stats()
        await registry.shutdown()
    """

    def __init__(self, config: RegistryConfig | None = None) -> None:
        """Initialize an empty registry.

        Args:
            config: Hysteresis, staleness and health parameters.
        """
        self._config = config or RegistryConfig()
        self._agents: dict[str, RegisteredAgent] = {}
        self._capability_index: dict[str, set[str]] = {}
        self._lock = asyncio.Lock()
        self._subscribers: list[Subscriber] = []
        self._notifications: set[asyncio.Task[None]] = set()
        self._health = 1.0

    @property
    def config(self) -> RegistryConfig:
        return self._config

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    async def register_agent(
        self,
        agent_id: str,
        profile: AgentProfile,
        *,
        reserve_for: str | None = None,
    ) -> RegisteredAgent:
        """Register a worker and index its capabilities.

        Args:
            agent_id: Unique agent id.
            profile: Declared profile.
            reserve_for: Task id to assign the agent to in the same mutation.
                The agent is then inserted busy and can not be claimed by a
                concurrent acquisition.

        Returns:
            The new registry record.

        Raises:
            DuplicateIDError: If the id is already registered.
            ValueError: If a capability name is empty.
        """
        capabilities = normalize_capabilities(profile.capabilities)

        async with self._lock:
            if agent_id in self._agents:
                raise DuplicateIDError(agent_id)

            now = datetime.now(UTC)
            agent = RegisteredAgent(
                id=agent_id,
                profile=profile,
                capabilities=frozenset(capabilities),
                performance_history=PerformanceHistory(),
                registered_at=now,
                last_activity=now,
            )
            if reserve_for is not None:
                self._assign(agent, reserve_for, now)

            self._agents[agent_id] = agent
            for capability in capabilities:
                self._capability_index.setdefault(capability, set()).add(agent_id)
            self._update_health()

            self._notify(
                create_agent_registered_event(
                    agent_id, profile.type, capabilities, agent.status.value
                )
            )

        log.info(
            "agents.registry.agent_registered",
            agent_id=agent_id,
            agent_type=profile.type,
            capabilities=list(capabilities),
            reserved_for=reserve_for,
        )
        return agent

    async def unregister_agent(self, agent_id: str) -> bool:
        """Remove a worker and purge it from the capability index.

        Returns:
            True if the agent was removed, False if the id was unknown.
        """
        async with self._lock:
            removed = self._remove(agent_id)

        if not removed:
            log.warning(
                "agents.registry.unknown_agent",
                agent_id=agent_id,
                operation="unregister_agent",
            )
        return removed

    def _remove(self, agent_id: str) -> bool:
        """Remove an agent. Caller must hold the lock."""
        agent = self._agents.pop(agent_id, None)
        if agent is None:
            return False

        for capability in agent.capabilities:
            holders = self._capability_index.get(capability)
            if holders is None:
                continue
            holders.discard(agent_id)
            if not holders:
                del self._capability_index[capability]

        self._update_health()
        self._notify(create_agent_unregistered_event(agent_id, agent.status.value))
        log.info("agents.registry.agent_unregistered", agent_id=agent_id)
        return True

    # -------------------------------------------------------------------------
    # Capability matching
    # -------------------------------------------------------------------------

    async def find_capable_agents(
        self, required_capabilities: Iterable[str]
    ) -> list[RegisteredAgent]:
        """Return every agent whose capabilities cover the requirement.

        An empty requirement matches every registered agent.
        """
        required = normalize_capabilities(required_capabilities)
        async with self._lock:
            return self._match(required)

    def _match(self, required: tuple[str, ...]) -> list[RegisteredAgent]:
        """Intersect the index sets of the required capabilities.

        Caller must hold the lock.
        """
        if not required:
            return list(self._agents.values())

        first = self._capability_index.get(required[0])
        if not first:
            return []

        matched = set(first)
        for capability in required[1:]:
            holders = self._capability_index.get(capability)
            if not holders:
                return []
            matched &= holders
            if not matched:
                return []

        return [self._agents[agent_id] for agent_id in sorted(matched) if agent_id in self._agents]

    async def claim_agents(
        self,
        required_capabilities: Iterable[str],
        task_id: str,
        limit: int,
        *,
        max_workload: float = 0.8,
        is_eligible: Callable[[RegisteredAgent], bool] | None = None,
    ) -> list[RegisteredAgent]:
        """Atomically select and assign available agents to a task.

        Matching, filtering, ordering and marking busy happen in one
        registry mutation, so two concurrent claims never receive the same
        agent.

        Args:
            required_capabilities: Capabilities every claimed agent must have.
            task_id: Task the agents are assigned to.
            limit: Maximum number of agents to claim.
            max_workload: Agents at or above this workload are skipped.
            is_eligible: Extra synchronous filter, e.g. an overload check.

        Returns:
            Claimed agents, least busy first.
        """
        required = normalize_capabilities(required_capabilities)
        if limit <= 0:
            return []

        async with self._lock:
            candidates = [
                agent
                for agent in self._match(required)
                if agent.status == AgentStatus.AVAILABLE
                and agent.current_workload < max_workload
                and (is_eligible is None or is_eligible(agent))
            ]
            candidates.sort(key=lambda a: a.current_workload)
            claimed = candidates[:limit]

            now = datetime.now(UTC)
            for agent in claimed:
                previous = agent.status
                self._assign(agent, task_id, now)
                self._notify(
                    create_agent_status_changed_event(
                        agent.id,
                        agent.status.value,
                        previous.value,
                        {"task_id": task_id},
                    )
                )
            if claimed:
                self._update_health()

        if claimed:
            log.debug(
                "agents.registry.agents_claimed",
                task_id=task_id,
                agent_ids=[a.id for a in claimed],
            )
        return claimed

    @staticmethod
    def _assign(agent: RegisteredAgent, task_id: str, now: datetime) -> None:
        agent.status = AgentStatus.BUSY
        agent.assigned_task_id = task_id
        agent.usage_count += 1
        agent.last_used = now
        agent.last_activity = now
        agent.metadata["task_id"] = task_id

    # -------------------------------------------------------------------------
    # Status and workload
    # -------------------------------------------------------------------------

    async def update_agent_status(
        self,
        agent_id: str,
        status: AgentStatus,
        metadata: dict[str, Any] | None = None,
    ) -> bool:
        """Transition an agent's status and merge metadata.

        Moving an agent out of ``busy`` clears its task assignment.

        Returns:
            True if updated, False if the id was unknown.
        """
        async with self._lock:
            agent = self._agents.get(agent_id)
            if agent is not None:
                self._set_status(agent, AgentStatus(status), metadata)

        if agent is None:
            log.warning(
                "agents.registry.unknown_agent",
                agent_id=agent_id,
                operation="update_agent_status",
            )
            return False
        return True

    async def transition_agent_status(
        self,
        agent_id: str,
        status: AgentStatus,
        *,
        expected: Iterable[AgentStatus],
        metadata: dict[str, Any] | None = None,
        assigned_to: str | None = None,
    ) -> bool:
        """Change status only if the current status is one of ``expected``.

        The check and the change happen in one mutation, so an agent can be
        taken out of rotation without racing a concurrent claim. With
        ``assigned_to`` the agent must also be held by that task.

        Returns:
            True if the transition was applied.
        """
        allowed = frozenset(AgentStatus(s) for s in expected)
        async with self._lock:
            agent = self._agents.get(agent_id)
            if agent is None or agent.status not in allowed:
                return False
            if assigned_to is not None and agent.assigned_task_id != assigned_to:
                return False
            self._set_status(agent, AgentStatus(status), metadata)
        return True

    def _set_status(
        self,
        agent: RegisteredAgent,
        status: AgentStatus,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Apply a status change. Caller must hold the lock."""
        previous = agent.status
        agent.status = status
        agent.last_activity = datetime.now(UTC)
        if metadata:
            agent.metadata.update(metadata)
        if status != AgentStatus.BUSY:
            agent.assigned_task_id = None
            agent.metadata.pop("task_id", None)

        self._update_health()
        self._notify(
            create_agent_status_changed_event(
                agent.id, status.value, previous.value, metadata
            )
        )
        if previous != status:
            log.debug(
                "agents.registry.status_changed",
                agent_id=agent.id,
                status=status.value,
                previous_status=previous.value,
            )

    async def update_agent_workload(self, agent_id: str, workload: float) -> bool:
        """Set an agent's workload, applying status hysteresis.

        Workload above the busy threshold moves an available agent to busy;
        workload below the available threshold moves a busy agent back to
        available. Values in between never change status. A busy agent that
        is assigned to a task stays busy until it is released.

        Returns:
            True if updated, False if the id was unknown.
        """
        workload = min(1.0, max(0.0, float(workload)))

        async with self._lock:
            agent = self._agents.get(agent_id)
            if agent is not None:
                agent.current_workload = workload
                agent.last_activity = datetime.now(UTC)

                if (
                    workload > self._config.busy_workload_threshold
                    and agent.status == AgentStatus.AVAILABLE
                ):
                    self._set_status(agent, AgentStatus.BUSY, {"auto_transition": True})
                elif (
                    workload < self._config.available_workload_threshold
                    and agent.status == AgentStatus.BUSY
                    and agent.assigned_task_id is None
                ):
                    self._set_status(agent, AgentStatus.AVAILABLE, {"auto_transition": True})
                else:
                    self._update_health()

        if agent is None:
            log.warning(
                "agents.registry.unknown_agent",
                agent_id=agent_id,
                operation="update_agent_workload",
            )
            return False
        return True

    async def cleanup_stale_agents(
        self, max_inactive_seconds: float | None = None
    ) -> list[str]:
        """Unregister every non-busy agent inactive for too long.

        Args:
            max_inactive_seconds: Inactivity limit, defaults to the
                configured ``stale_after_seconds`` (one hour).

        Returns:
            Ids of the removed agents.
        """
        limit = (
            self._config.stale_after_seconds
            if max_inactive_seconds is None
            else max_inactive_seconds
        )

        async with self._lock:
            stale = [
                agent.id
                for agent in self._agents.values()
                if agent.status != AgentStatus.BUSY and agent.idle_seconds > limit
            ]
            for agent_id in stale:
                self._remove(agent_id)

        if stale:
            log.info("agents.registry.stale_agents_removed", agent_ids=stale)
        return stale

    # -------------------------------------------------------------------------
    # Performance history
    # -------------------------------------------------------------------------

    def record_completion(
        self, agent_id: str, duration_ms: float, estimated_duration_ms: float = 0.0
    ) -> None:
        """Record a successful task in the agent's history.

        Raises:
            UnknownAgentError: If the id is not registered.
        """
        agent = self._require(agent_id, "record_completion")
        agent.performance_history.add_completion(duration_ms, estimated_duration_ms)
        agent.last_activity = datetime.now(UTC)

    def record_failure(self, agent_id: str, reason: str) -> None:
        """Record a failed task in the agent's history.

        Raises:
            UnknownAgentError: If the id is not registered.
        """
        agent = self._require(agent_id, "record_failure")
        agent.performance_history.add_failure(reason)
        agent.last_activity = datetime.now(UTC)

    def _require(self, agent_id: str, operation: str) -> RegisteredAgent:
        agent = self._agents.get(agent_id)
        if agent is None:
            raise UnknownAgentError(agent_id, operation=operation)
        return agent

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_agent(self, agent_id: str) -> RegisteredAgent | None:
        return self._agents.get(agent_id)

    def get_all_agents(self) -> list[RegisteredAgent]:
        return list(self._agents.values())

    def get_all_active_agents(self) -> list[RegisteredAgent]:
        """All registered agents that are not offline."""
        return [a for a in self._agents.values() if a.status != AgentStatus.OFFLINE]

    def get_agents_by_status(self, status: AgentStatus) -> list[RegisteredAgent]:
        return [a for a in self._agents.values() if a.status == status]

    def capability_index(self) -> dict[str, frozenset[str]]:
        """Read-only snapshot of the capability inverted index."""
        return {cap: frozenset(ids) for cap, ids in self._capability_index.items()}

    def get_capability_analysis(self) -> CapabilityAnalysis:
        counts = Counter({cap: len(ids) for cap, ids in self._capability_index.items()})
        ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        rarest = sorted(counts.items(), key=lambda item: (item[1], item[0]))
        return CapabilityAnalysis(
            distribution=dict(ordered),
            most_common=ordered[:5],
            rarest=rarest[:5],
        )

    def get_registry_stats(self) -> RegistryStatistics:
        """Aggregate registry view, including the current health score."""
        agents = list(self._agents.values())
        total = len(agents)
        available = sum(1 for a in agents if a.status == AgentStatus.AVAILABLE)
        busy = sum(1 for a in agents if a.status == AgentStatus.BUSY)
        average = sum(a.current_workload for a in agents) / total if total else 0.0

        return RegistryStatistics(
            total_agents=total,
            available_agents=available,
            busy_agents=busy,
            average_workload=average,
            capability_coverage=len(self._capability_index),
            registry_health=self._compute_health(total, available, average),
        )

    @property
    def health(self) -> float:
        """Health score as of the last mutation."""
        return self._health

    def _compute_health(self, total: int, available: int, average_workload: float) -> float:
        if total == 0:
            return 1.0
        coverage = min(1.0, len(self._capability_index) / self._config.healthy_capability_count)
        return (
            0.4 * (available / total)
            + 0.4 * max(0.0, 1.0 - average_workload)
            + 0.2 * coverage
        )

    def _update_health(self) -> None:
        self._health = self.get_registry_stats().registry_health

    def __len__(self) -> int:
        return len(self._agents)

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._agents

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def subscribe(self, callback: Subscriber) -> Subscriber:
        """Register a status-change callback. Returns the callback."""
        self._subscribers.append(callback)
        return callback

    def unsubscribe(self, callback: Subscriber) -> bool:
        try:
            self._subscribers.remove(callback)
        except ValueError:
            return False
        return True

    def _notify(self, event: BaseEvent) -> None:
        """Fan the event out to every subscriber in its own task."""
        for subscriber in list(self._subscribers):
            task = asyncio.create_task(self._deliver(subscriber, event))
            self._notifications.add(task)
            task.add_done_callback(self._notifications.discard)

    async def _deliver(self, subscriber: Subscriber, event: BaseEvent) -> None:
        try:
            result = subscriber(event)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            log.warning(
                "agents.registry.subscriber_failed",
                event_type=event.type,
                agent_id=event.aggregate_id,
                error=str(e),
            )

    async def wait_for_notifications(self) -> None:
        """Wait until every pending notification has been delivered."""
        while self._notifications:
            await asyncio.gather(*list(self._notifications), return_exceptions=True)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def shutdown(self) -> None:
        """Drain pending notifications and clear all state."""
        await self.wait_for_notifications()
        async with self._lock:
            count = len(self._agents)
            self._agents.clear()
            self._capability_index.clear()
            self._subscribers.clear()
            self._health = 1.0
        log.info("agents.registry.shutdown", agents_cleared=count)


__all__ = [
    "AgentRegistry",
    "CapabilityAnalysis",
    "Subscriber",
]
