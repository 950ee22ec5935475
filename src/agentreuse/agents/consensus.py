"""Consensus boundary for decisions that need approval.

The voting engine itself is an external collaborator. This module only
defines the proposal/outcome types, the gateway protocol, and the helpers
that submit a proposal and poll for its result.

Usage:
    proposal = ConsensusProposal(
        id="task-42-1700000000000",
        action="implement_task",
        payload={"task_id": "task-42"},
    )
    outcome = await require_consensus(gateway, proposal, timeout=300)
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Protocol, runtime_checkable

from agentreuse.core.errors import ConsensusRejectedError, ConsensusTimeoutError
from agentreuse.observability.logging import get_logger

log = get_logger(__name__)

DEFAULT_THRESHOLD = 0.66
DEFAULT_TIMEOUT_SECONDS = 300.0
DEFAULT_POLL_INTERVAL_SECONDS = 1.0


class ProposalState(StrEnum):
    PENDING = "pending"
    ACHIEVED = "achieved"
    FAILED = "failed"


@dataclass(slots=True)
class ConsensusProposal:
    """A decision submitted for approval.

    Attributes:
        id: Proposal identifier.
        action: What is being approved, e.g. "implement_task".
        payload: Action-specific details.
        required_threshold: Vote ratio needed for approval.
        task_id: Task the proposal belongs to, if any.
        metadata: Free-form metadata.
    """

    id: str
    action: str
    payload: dict[str, Any] = field(default_factory=dict)
    required_threshold: float = DEFAULT_THRESHOLD
    task_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ProposalStatus:
    state: ProposalState
    current_ratio: float = 0.0


@dataclass(frozen=True, slots=True)
class ConsensusOutcome:
    achieved: bool
    final_ratio: float
    reason: str | None = None


@runtime_checkable
class ConsensusGateway(Protocol):
    """Accepts proposals and reports their voting status."""

    async def submit(self, proposal: ConsensusProposal) -> str: ...

    async def get_status(self, proposal_id: str) -> ProposalStatus: ...


async def await_consensus(
    gateway: ConsensusGateway,
    proposal: ConsensusProposal,
    *,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
) -> ConsensusOutcome:
    """Submit a proposal and poll until voting finishes.

    Errors raised by the gateway propagate unchanged.

    Raises:
        ConsensusTimeoutError: If voting is still pending after ``timeout``.
    """
    proposal_id = await gateway.submit(proposal)
    log.info(
        "agents.consensus.proposal_submitted",
        proposal_id=proposal_id,
        action=proposal.action,
        threshold=proposal.required_threshold,
    )

    async def _poll() -> ConsensusOutcome:
        while True:
            status = await gateway.get_status(proposal_id)
            if status.state == ProposalState.ACHIEVED:
                return ConsensusOutcome(True, status.current_ratio, "Consensus achieved")
            if status.state == ProposalState.FAILED:
                return ConsensusOutcome(False, status.current_ratio, "Consensus failed")
            await asyncio.sleep(poll_interval)

    try:
        outcome = await asyncio.wait_for(_poll(), timeout)
    except TimeoutError as e:
        log.warning("agents.consensus.timeout", proposal_id=proposal_id, timeout=timeout)
        raise ConsensusTimeoutError(proposal_id, timeout) from e

    log.info(
        "agents.consensus.proposal_decided",
        proposal_id=proposal_id,
        achieved=outcome.achieved,
        final_ratio=outcome.final_ratio,
    )
    return outcome


async def require_consensus(
    gateway: ConsensusGateway,
    proposal: ConsensusProposal,
    *,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
) -> ConsensusOutcome:
    """Like ``await_consensus``, but a rejected proposal raises.

    Raises:
        ConsensusTimeoutError: If voting is still pending after ``timeout``.
        ConsensusRejectedError: If voting finished without approval.
    """
    outcome = await await_consensus(
        gateway, proposal, timeout=timeout, poll_interval=poll_interval
    )
    if not outcome.achieved:
        raise ConsensusRejectedError(proposal.id, outcome.final_ratio, outcome.reason)
    return outcome


__all__ = [
    "ConsensusGateway",
    "ConsensusOutcome",
    "ConsensusProposal",
    "ProposalState",
    "ProposalStatus",
    "await_consensus",
    "require_consensus",
]
