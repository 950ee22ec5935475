"""Shared fixtures for the agent pool tests.

The spawner and executor fakes are deterministic: no processes, no sleeps
beyond what a test asks for.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import pytest

from agentreuse.agents.models import AgentProfile, RegisteredAgent, TaskDefinition
from agentreuse.agents.protocols import ExecutionOutcome
from agentreuse.agents.registry import AgentRegistry
from agentreuse.agents.workload import WorkloadMonitor
from agentreuse.config.models import PoolManagerConfig
from agentreuse.core.errors import SpawnerUnavailableError
from agentreuse.observability.logging import reset_logging, set_console_logging


class FakeSpawner:
    """Spawner that records every call.

    Attributes:
        fail_types: Worker types whose create_worker raises.
        start_unavailable: Remaining start_worker calls that raise
            SpawnerUnavailableError before succeeding.
        stop_error: If set, stop_worker raises it.
    """

    def __init__(self) -> None:
        self.created: list[tuple[str, AgentProfile]] = []
        self.started: list[str] = []
        self.stopped: list[str] = []
        self.start_attempts = 0
        self.fail_types: set[str] = set()
        self.start_unavailable = 0
        self.stop_error: Exception | None = None
        self._counter = 0

    async def create_worker(self, agent_type: str, profile: AgentProfile) -> str:
        if agent_type in self.fail_types:
            msg = f"cannot create {agent_type}"
            raise RuntimeError(msg)
        self._counter += 1
        agent_id = f"{agent_type}-{self._counter}"
        self.created.append((agent_type, profile))
        return agent_id

    async def start_worker(self, agent_id: str) -> None:
        self.start_attempts += 1
        if self.start_unavailable > 0:
            self.start_unavailable -= 1
            msg = "spawner busy"
            raise SpawnerUnavailableError(msg, agent_id=agent_id)
        self.started.append(agent_id)

    async def stop_worker(self, agent_id: str) -> None:
        if self.stop_error is not None:
            raise self.stop_error
        self.stopped.append(agent_id)


class FakeExecutor:
    """Executor returning a fixed outcome, or raising, after an optional delay."""

    def __init__(
        self,
        outcome: ExecutionOutcome | None = None,
        *,
        error: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self.outcome = outcome or ExecutionOutcome(success=True, duration_ms=1200.0, output="ok")
        self.error = error
        self.delay = delay
        self.calls: list[tuple[str, TaskDefinition]] = []

    async def execute(self, agent_id: str, task: TaskDefinition) -> ExecutionOutcome:
        self.calls.append((agent_id, task))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.outcome


@pytest.fixture(autouse=True)
def quiet_logging() -> Any:
    """Keep log output out of test captures."""
    set_console_logging(False)
    yield
    set_console_logging(True)
    reset_logging()


@pytest.fixture
def registry() -> AgentRegistry:
    return AgentRegistry()


@pytest.fixture
def monitor() -> WorkloadMonitor:
    return WorkloadMonitor()


@pytest.fixture
def spawner() -> FakeSpawner:
    return FakeSpawner()


@pytest.fixture
def pool_config() -> PoolManagerConfig:
    """Pool config with zero retry backoff."""
    return PoolManagerConfig(spawn_retry_wait_initial=0.0, spawn_retry_wait_max=0.0)


@pytest.fixture
def register(
    registry: AgentRegistry,
) -> Callable[..., Awaitable[RegisteredAgent]]:
    """Factory registering an agent with the given capabilities."""

    async def _register(
        agent_id: str,
        capabilities: tuple[str, ...] = ("testing",),
        agent_type: str = "tester",
        **profile_kwargs: Any,
    ) -> RegisteredAgent:
        profile = AgentProfile(
            id=agent_id,
            name=agent_id,
            type=agent_type,
            capabilities=capabilities,
            **profile_kwargs,
        )
        return await registry.register_agent(agent_id, profile)

    return _register


@pytest.fixture
def make_executor() -> type[FakeExecutor]:
    """The FakeExecutor class, for tests that need a custom outcome."""
    return FakeExecutor
