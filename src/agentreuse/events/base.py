"""Base event definition.

Events are immutable (frozen pydantic models) records of state changes,
named with the dot.notation.past_tense convention. The registry hands them
to status subscribers.
"""

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field


class BaseEvent(BaseModel, frozen=True):
    """Base class for all agent-reuse events.

    Attributes:
        id: Unique event identifier (UUID).
        type: Event type, e.g. "agent.status.changed".
        timestamp: When the event occurred (UTC).
        aggregate_type: Type of aggregate this event belongs to.
        aggregate_id: Identifier of the aggregate (the agent id for agent events).
        data: Event-specific payload data.

    Example:
        event = BaseEvent(
            type="agent.status.changed",
            aggregate_type="agent",
            aggregate_id="tester-1",
            data={"status": "busy", "previous_status": "available"},
        )
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    type: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    aggregate_type: str
    aggregate_id: str
    data: dict[str, Any] = Field(default_factory=dict)
