"""Error hierarchy for agent-reuse.

Expected "no result" outcomes (no capable agents, everyone busy) are not
errors: selection returns an empty result with a reason instead. The
exceptions below cover everything else.

Exception Hierarchy:
    AgentReuseError (base)
    ├── ConfigError              - Configuration loading and validation
    ├── DuplicateIDError         - Registering an id that is already present
    ├── UnknownAgentError        - Operating on an id that is not registered
    ├── InsufficientAgentsError  - Acquisition produced zero usable agents
    ├── SpawnFailure             - One worker type failed to spawn
    │   └── SpawnerUnavailableError - Transient spawner failure (retried)
    ├── ExecutionFailure         - The task executor raised or timed out
    ├── ConsensusTimeoutError    - No consensus result before the deadline
    └── ConsensusRejectedError   - Consensus reached but not achieved
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any


class AgentReuseError(Exception):
    """Base exception for all agent-reuse errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dict with additional context.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (details: {self.details})"
        return self.message


class ConfigError(AgentReuseError):
    """Error from configuration loading or validation.

    Attributes:
        config_key: The configuration key that caused the error.
        config_file: Path to the config file if applicable.
    """

    def __init__(
        self,
        message: str,
        *,
        config_key: str | None = None,
        config_file: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.config_key = config_key
        self.config_file = config_file


class DuplicateIDError(AgentReuseError):
    """Raised when registering an agent id that is already registered.

    Re-registration is not idempotent: callers must unregister first.
    """

    def __init__(self, agent_id: str) -> None:
        super().__init__(
            f"Agent {agent_id} is already registered",
            details={"agent_id": agent_id},
        )
        self.agent_id = agent_id


class UnknownAgentError(AgentReuseError):
    """Raised when an operation targets an agent id that is not registered."""

    def __init__(self, agent_id: str, *, operation: str | None = None) -> None:
        details: dict[str, Any] = {"agent_id": agent_id}
        if operation:
            details["operation"] = operation
        super().__init__(f"Agent {agent_id} is not registered", details=details)
        self.agent_id = agent_id
        self.operation = operation


class InsufficientAgentsError(AgentReuseError):
    """Raised when neither reuse nor spawning produced a single agent."""

    def __init__(self, required_capabilities: Sequence[str], task_id: str) -> None:
        super().__init__(
            f"No agents could be acquired for task {task_id}",
            details={
                "task_id": task_id,
                "required_capabilities": list(required_capabilities),
            },
        )
        self.required_capabilities = tuple(required_capabilities)
        self.task_id = task_id


class SpawnFailure(AgentReuseError):
    """A single worker type could not be created or started.

    Spawn failures are isolated per type: the pool manager logs them and
    continues with the remaining types.
    """

    def __init__(
        self,
        message: str,
        *,
        agent_type: str | None = None,
        agent_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.agent_type = agent_type
        self.agent_id = agent_id

    @classmethod
    def from_exception(
        cls, exc: Exception, *, agent_type: str, agent_id: str | None = None
    ) -> SpawnFailure:
        """Wrap an exception raised by the spawner collaborator."""
        error = cls(
            f"Failed to spawn {agent_type}: {exc}",
            agent_type=agent_type,
            agent_id=agent_id,
            details={"original_exception": type(exc).__name__},
        )
        error.__cause__ = exc
        return error


class SpawnerUnavailableError(SpawnFailure):
    """Transient spawner failure. Calls raising this are retried."""


class ExecutionFailure(AgentReuseError):
    """The task executor raised or the task exceeded its deadline.

    Attributes:
        task_id: The task that failed.
        agent_id: The primary agent the task was executed on.
        timed_out: True when the failure was a deadline expiry.
    """

    def __init__(
        self,
        message: str,
        *,
        task_id: str,
        agent_id: str | None = None,
        timed_out: bool = False,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.task_id = task_id
        self.agent_id = agent_id
        self.timed_out = timed_out


class ConsensusTimeoutError(AgentReuseError):
    """No consensus outcome was available before the deadline."""

    def __init__(self, proposal_id: str, timeout: float) -> None:
        super().__init__(
            f"Consensus timeout for proposal {proposal_id}",
            details={"proposal_id": proposal_id, "timeout_seconds": timeout},
        )
        self.proposal_id = proposal_id
        self.timeout = timeout


class ConsensusRejectedError(AgentReuseError):
    """Consensus finished without reaching the required ratio."""

    def __init__(self, proposal_id: str, final_ratio: float, reason: str | None) -> None:
        super().__init__(
            f"Consensus failed for proposal {proposal_id}: {reason or 'Insufficient votes'}",
            details={"proposal_id": proposal_id, "final_ratio": final_ratio},
        )
        self.proposal_id = proposal_id
        self.final_ratio = final_ratio
        self.reason = reason
