"""Configuration loading and management for agent-reuse.

Functions:
    load_config: Load configuration from ~/.agentreuse/config.yaml
    create_default_config: Write a default config.yaml
    ensure_config_dir: Ensure ~/.agentreuse/ exists
    config_exists: Check whether config.yaml exists
    get_config_path: Resolve the config path (AGENTREUSE_CONFIG or default)
"""

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import ValidationError as PydanticValidationError
import yaml

# Load .env from the current directory and ~/.agentreuse/
load_dotenv()
load_dotenv(Path.home() / ".agentreuse" / ".env")

from agentreuse.config.models import (  # noqa: E402
    AgentReuseConfig,
    get_config_dir,
    get_default_config,
)
from agentreuse.core.errors import ConfigError  # noqa: E402


def ensure_config_dir() -> Path:
    """Create ~/.agentreuse/ and its logs/ subdirectory if missing."""
    config_dir = get_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / "logs").mkdir(exist_ok=True)
    return config_dir


def get_config_path() -> Path:
    """Resolve the config file path.

    Priority:
        1. AGENTREUSE_CONFIG environment variable
        2. ~/.agentreuse/config.yaml
    """
    env_path = os.environ.get("AGENTREUSE_CONFIG", "").strip()
    if env_path:
        return Path(env_path).expanduser()
    return get_config_dir() / "config.yaml"


def _model_to_yaml_dict(model: AgentReuseConfig) -> dict[str, Any]:
    return model.model_dump(mode="json")


def create_default_config(
    config_dir: Path | None = None,
    *,
    overwrite: bool = False,
) -> Path:
    """Write config.yaml with default values.

    Args:
        config_dir: Directory to create the file in. Defaults to ~/.agentreuse/
        overwrite: Replace an existing file.

    Returns:
        Path to the written config file.

    Raises:
        ConfigError: If the file exists and overwrite=False.
    """
    if config_dir is None:
        config_dir = ensure_config_dir()
    else:
        config_dir.mkdir(parents=True, exist_ok=True)

    config_path = config_dir / "config.yaml"
    if config_path.exists() and not overwrite:
        raise ConfigError(
            f"Configuration file already exists: {config_path}",
            config_file=str(config_path),
        )

    with config_path.open("w") as f:
        yaml.dump(
            _model_to_yaml_dict(get_default_config()),
            f,
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )
    return config_path


def load_config(config_path: Path | None = None) -> AgentReuseConfig:
    """Load and validate configuration from a YAML file.

    Args:
        config_path: Path to config file. Defaults to get_config_path().

    Returns:
        Validated AgentReuseConfig instance.

    Raises:
        ConfigError: If the file is missing, malformed, or fails validation.
    """
    if config_path is None:
        config_path = get_config_path()

    if not config_path.exists():
        raise ConfigError(
            f"Configuration file not found: {config_path}",
            config_file=str(config_path),
        )

    try:
        with config_path.open() as f:
            config_dict = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Failed to parse configuration file: {e}",
            config_file=str(config_path),
            details={"yaml_error": str(e)},
        ) from e

    if config_dict is None:
        config_dict = {}
    if not isinstance(config_dict, dict):
        raise ConfigError(
            "Configuration root must be a mapping",
            config_file=str(config_path),
        )

    try:
        return AgentReuseConfig.model_validate(config_dict)
    except PydanticValidationError as e:
        error_messages = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            error_messages.append(f"  - {loc}: {error['msg']}")

        raise ConfigError(
            "Configuration validation failed:\n" + "\n".join(error_messages),
            config_file=str(config_path),
            details={"validation_errors": e.errors()},
        ) from e


def config_exists() -> bool:
    """Check whether the resolved config file exists."""
    return get_config_path().exists()
