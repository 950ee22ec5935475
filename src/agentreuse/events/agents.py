"""Event definitions for agent lifecycle and status changes.

Every status transition in the registry produces one of these events,
including registration (status "available") and unregistration
(status "offline"), so a subscriber can follow an agent from start to end
by watching ``data["status"]`` alone.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from agentreuse.events.base import BaseEvent

AGENT_AGGREGATE = "agent"


def create_agent_registered_event(
    agent_id: str,
    agent_type: str,
    capabilities: Iterable[str],
    status: str,
) -> BaseEvent:
    """Factory for the agent registration event.

    Args:
        agent_id: Registered agent id.
        agent_type: Worker template name.
        capabilities: Declared capabilities.
        status: Status the agent was registered with.

    Returns:
        BaseEvent with type "agent.registry.registered".
    """
    return BaseEvent(
        type="agent.registry.registered",
        aggregate_type=AGENT_AGGREGATE,
        aggregate_id=agent_id,
        data={
            "agent_type": agent_type,
            "capabilities": sorted(capabilities),
            "status": status,
        },
    )


def create_agent_unregistered_event(agent_id: str, previous_status: str) -> BaseEvent:
    """Factory for the agent unregistration event.

    Returns:
        BaseEvent with type "agent.registry.unregistered" and status "offline".
    """
    return BaseEvent(
        type="agent.registry.unregistered",
        aggregate_type=AGENT_AGGREGATE,
        aggregate_id=agent_id,
        data={"status": "offline", "previous_status": previous_status},
    )


def create_agent_status_changed_event(
    agent_id: str,
    status: str,
    previous_status: str,
    metadata: dict[str, Any] | None = None,
) -> BaseEvent:
    """Factory for a status transition of a registered agent.

    Returns:
        BaseEvent with type "agent.status.changed".
    """
    return BaseEvent(
        type="agent.status.changed",
        aggregate_type=AGENT_AGGREGATE,
        aggregate_id=agent_id,
        data={
            "status": status,
            "previous_status": previous_status,
            "metadata": dict(metadata or {}),
        },
    )
