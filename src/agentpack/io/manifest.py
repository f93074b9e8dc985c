"""Package manifest I/O."""

from pathlib import Path

import yaml

from agentpack.errors import ConfigError
from agentpack.models.package import PackageManifest

MANIFEST_FILENAME = "package.yml"


def load_package_manifest(package_root: Path) -> PackageManifest:
    """Load name and version from a package's package.yml.

    Raises:
        ConfigError: If the manifest is missing or lacks a name
    """
    manifest_path = package_root / MANIFEST_FILENAME
    if not manifest_path.exists():
        raise ConfigError(f"No {MANIFEST_FILENAME} found in {package_root}")

    with open(manifest_path, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid {manifest_path}: {e}") from e

    if not isinstance(data, dict) or not data.get("name"):
        raise ConfigError(f"{manifest_path} must declare a name")

    return PackageManifest(name=str(data["name"]), version=str(data.get("version", "0.0.0")))
