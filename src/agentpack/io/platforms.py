"""Platform definition loading.

Built-in definitions ship in ``data/platforms.yml``. A workspace may add or
override platforms in ``.agentpack/platforms.yml``; overrides replace
top-level fields of a built-in definition with the same id.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from agentpack.errors import ConfigError
from agentpack.models.flow import PlatformDefinition, PlatformsConfig

WORKSPACE_PLATFORMS = Path(".agentpack") / "platforms.yml"


def builtin_platforms_path() -> Path:
    return Path(__file__).parent.parent / "data" / "platforms.yml"


def _read_platforms_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid platform file {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict) or not isinstance(data.get("platforms", {}), dict):
        raise ConfigError(f"Platform file {path} must contain a 'platforms' mapping")
    return data.get("platforms", {})


def load_platforms(workspace_root: Path | None = None) -> dict[str, PlatformDefinition]:
    """Load built-in platforms merged with workspace overrides.

    Args:
        workspace_root: Workspace whose overrides apply, if any

    Returns:
        Platform definitions keyed by id, in definition order

    Raises:
        ConfigError: If any definition fails validation
    """
    raw = _read_platforms_yaml(builtin_platforms_path())

    if workspace_root is not None:
        override_path = workspace_root / WORKSPACE_PLATFORMS
        if override_path.exists():
            for platform_id, override in _read_platforms_yaml(override_path).items():
                base = raw.get(platform_id, {})
                if not isinstance(override, dict):
                    raise ConfigError(f"Platform override '{platform_id}' must be a mapping")
                raw[platform_id] = {**base, **override}

    try:
        config = PlatformsConfig.model_validate({"platforms": raw})
    except ValidationError as e:
        raise ConfigError(f"Invalid platform configuration: {e}") from e
    return dict(config.platforms)


def select_platforms(
    platforms: dict[str, PlatformDefinition], requested: list[str]
) -> dict[str, PlatformDefinition]:
    """Pick enabled platforms by id.

    An empty request selects every enabled platform.

    Raises:
        ConfigError: If a requested id is unknown or disabled
    """
    if not requested:
        return {pid: p for pid, p in platforms.items() if p.enabled}

    selected: dict[str, PlatformDefinition] = {}
    for platform_id in requested:
        definition = platforms.get(platform_id)
        if definition is None:
            raise ConfigError(f"Unknown platform: {platform_id}")
        if not definition.enabled:
            raise ConfigError(f"Platform is disabled: {platform_id}")
        selected[platform_id] = definition
    return selected


def detect_platforms(
    platforms: dict[str, PlatformDefinition], workspace_root: Path
) -> list[str]:
    """Enabled platforms whose root directory or root file exists in the workspace."""
    detected: list[str] = []
    for platform_id, definition in platforms.items():
        if not definition.enabled:
            continue
        has_dir = (workspace_root / definition.root_dir).is_dir()
        has_file = definition.root_file is not None and (
            workspace_root / definition.root_file
        ).is_file()
        if has_dir or has_file:
            detected.append(platform_id)
    return detected
