"""agent-reuse core module - shared errors and capability names."""

from agentreuse.core.capability import (
    Capability,
    CapabilityCatalog,
    normalize_capabilities,
)
from agentreuse.core.errors import (
    AgentReuseError,
    ConfigError,
    ConsensusRejectedError,
    ConsensusTimeoutError,
    DuplicateIDError,
    ExecutionFailure,
    InsufficientAgentsError,
    SpawnerUnavailableError,
    SpawnFailure,
    UnknownAgentError,
)

__all__ = [
    # Capabilities
    "Capability",
    "CapabilityCatalog",
    "normalize_capabilities",
    # Errors
    "AgentReuseError",
    "ConfigError",
    "ConsensusRejectedError",
    "ConsensusTimeoutError",
    "DuplicateIDError",
    "ExecutionFailure",
    "InsufficientAgentsError",
    "SpawnFailure",
    "SpawnerUnavailableError",
    "UnknownAgentError",
]
