"""Configuration module for agent-reuse.

Configuration is stored in ~/.agentreuse/config.yaml (or the path in
AGENTREUSE_CONFIG) and validated by frozen pydantic models.

Usage:
    from agentreuse.config import load_config

    config = load_config()
    max_pool = config.pool.max_pool_size
"""

from agentreuse.config.loader import (
    config_exists,
    create_default_config,
    ensure_config_dir,
    get_config_path,
    load_config,
)
from agentreuse.config.models import (
    DEFAULT_CAPABILITY_TYPE_MAP,
    AgentReuseConfig,
    PoolManagerConfig,
    RegistryConfig,
    ScoringWeights,
    SelectionConfig,
    WorkloadThresholds,
    get_config_dir,
    get_default_config,
)

__all__ = [
    # Models
    "AgentReuseConfig",
    "DEFAULT_CAPABILITY_TYPE_MAP",
    "PoolManagerConfig",
    "RegistryConfig",
    "ScoringWeights",
    "SelectionConfig",
    "WorkloadThresholds",
    # Loader functions
    "config_exists",
    "create_default_config",
    "ensure_config_dir",
    "get_config_path",
    "load_config",
    # Model helpers
    "get_config_dir",
    "get_default_config",
]
