"""Boundary contracts for the collaborators of the agent pool.

The pool never starts processes or runs tasks itself. Deployments plug in
implementations of these protocols; tests use deterministic fakes.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from agentreuse.agents.models import AgentProfile, RegisteredAgent, TaskDefinition


@dataclass(frozen=True, slots=True)
class ExecutionOutcome:
    """What the task executor reports back.

    Attributes:
        success: Whether the task succeeded.
        duration_ms: Execution time as measured by the executor.
        output: Opaque result, never interpreted by the pool.
        error: Failure description when ``success`` is False.
    """

    success: bool
    duration_ms: float
    output: Any = None
    error: str | None = None


@runtime_checkable
class Spawner(Protocol):
    """Creates, starts and stops worker processes by type.

    ``stop_worker`` must be a no-op for an id that is already stopped.
    Implementations raise ``SpawnerUnavailableError`` for transient
    failures worth retrying.
    """

    async def create_worker(self, agent_type: str, profile: AgentProfile) -> str: ...

    async def start_worker(self, agent_id: str) -> None: ...

    async def stop_worker(self, agent_id: str) -> None: ...


@runtime_checkable
class TaskExecutor(Protocol):
    """Runs a task on an assigned worker."""

    async def execute(self, agent_id: str, task: TaskDefinition) -> ExecutionOutcome: ...


@runtime_checkable
class TaskReassigner(Protocol):
    """Moves work between agents to even out their workload.

    Returns True if anything was reassigned.
    """

    async def rebalance(self, agents: Sequence[RegisteredAgent]) -> bool: ...


__all__ = [
    "ExecutionOutcome",
    "Spawner",
    "TaskExecutor",
    "TaskReassigner",
]
