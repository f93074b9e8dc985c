"""Project configuration I/O for agentpack.toml."""

from pathlib import Path

import tomli

from agentpack.errors import ConfigError
from agentpack.models.config import ProjectConfig
from agentpack.models.plan import validate_conflict_strategy

CONFIG_FILENAME = "agentpack.toml"


def load_project_config(workspace_root: Path) -> ProjectConfig | None:
    """Load agentpack.toml from the workspace root.

    Returns None if file doesn't exist.

    Raises:
        ConfigError: If the file is not valid TOML or has invalid values
    """
    config_path = workspace_root / CONFIG_FILENAME
    if not config_path.exists():
        return None

    with open(config_path, "rb") as f:
        try:
            data = tomli.load(f)
        except tomli.TOMLDecodeError as e:
            raise ConfigError(f"Invalid {CONFIG_FILENAME}: {e}") from e

    install = data.get("install", {})
    defaults = create_default_config()

    try:
        strategy = validate_conflict_strategy(
            install.get("default_strategy", defaults.default_strategy)
        )
    except ValueError as e:
        raise ConfigError(str(e)) from e

    threshold: float | None = defaults.namespace_threshold
    if not install.get("whole_package_namespacing", True):
        threshold = None
    elif "namespace_threshold" in install:
        threshold = float(install["namespace_threshold"])
        if not 0.0 <= threshold <= 1.0:
            raise ConfigError(f"namespace_threshold must be between 0 and 1: {threshold}")

    platforms = install.get("platforms", defaults.platforms)
    if not isinstance(platforms, list) or not all(isinstance(p, str) for p in platforms):
        raise ConfigError("install.platforms must be a list of platform ids")

    return ProjectConfig(
        default_strategy=strategy,
        namespace_threshold=threshold,
        platforms=list(platforms),
    )


def create_default_config() -> ProjectConfig:
    """Create default project configuration."""
    return ProjectConfig(
        default_strategy="ask",
        namespace_threshold=0.0,
        platforms=[],
    )
