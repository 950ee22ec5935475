"""Event definitions for agent-reuse."""

from agentreuse.events.agents import (
    create_agent_registered_event,
    create_agent_status_changed_event,
    create_agent_unregistered_event,
)
from agentreuse.events.base import BaseEvent

__all__ = [
    "BaseEvent",
    "create_agent_registered_event",
    "create_agent_status_changed_event",
    "create_agent_unregistered_event",
]
