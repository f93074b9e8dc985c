"""Helpers for building packages, platforms and install options in tests."""

from pathlib import Path
from typing import Any

from agentpack.flows.context import FlowContext
from agentpack.install.installer import InstallOptions
from agentpack.models.flow import Flow, PlatformDefinition
from agentpack.models.package import ResolvedPackage
from agentpack.models.plan import ConflictStrategy, PlannedTarget
from agentpack.prompts import ConflictPrompt

RULES_FLOW: dict[str, Any] = {"from": "rules/*.md", "to": ".tool/rules/*.md"}


def write_files(root: Path, files: dict[str, str]) -> None:
    """Create files (and parent directories) under root."""
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")


def make_package(
    tmp_path: Path,
    name: str,
    files: dict[str, str],
    *,
    version: str = "1.0.0",
    directory: str | None = None,
    resources: list[str] | None = None,
) -> ResolvedPackage:
    """Write a package's universal files and return it as a resolved package."""
    root = tmp_path / "packages" / (directory or name.replace("@", "").replace("/", "_"))
    root.mkdir(parents=True, exist_ok=True)
    write_files(root, files)
    return ResolvedPackage(name=name, version=version, content_root=root, resources=resources)


def make_flow(data: dict[str, Any]) -> Flow:
    return Flow.model_validate(data)


def tool_platform(*flows: dict[str, Any], **extra: Any) -> PlatformDefinition:
    """A minimal platform rooted at .tool with the given export flows."""
    return PlatformDefinition.model_validate(
        {"name": "Tool", "root_dir": ".tool", "export": list(flows), **extra}
    )


def tool_options(
    *flows: dict[str, Any],
    strategy: ConflictStrategy = "keep-both",
    namespace_threshold: float | None = 0.0,
    prompt: ConflictPrompt | None = None,
) -> InstallOptions:
    """Install options for the single .tool platform."""
    if not flows:
        flows = (RULES_FLOW,)
    return InstallOptions(
        platforms={"tool": tool_platform(*flows)},
        strategy=strategy,
        prompt=prompt,
        namespace_threshold=namespace_threshold,
    )


def make_context(
    workspace: Path,
    package_root: Path,
    *,
    platform: str = "tool",
    package_name: str = "pkg",
    known_platforms: frozenset[str] = frozenset({"tool", "claude", "cursor"}),
    variables: dict[str, Any] | None = None,
) -> FlowContext:
    return FlowContext.create(
        platform=platform,
        workspace_root=workspace,
        package_root=package_root,
        package_name=package_name,
        known_platforms=known_platforms,
        platform_variables=variables,
    )


def planned_target(
    workspace: Path,
    registry_key: str,
    relative_path: str,
    *,
    platform: str = "tool",
    flow: dict[str, Any] | None = None,
    target_pattern: str = ".tool/rules/*.md",
) -> PlannedTarget:
    """A planned target built directly, without flow resolution."""
    return PlannedTarget(
        source_path=workspace.parent / "pkg" / registry_key,
        registry_key=registry_key,
        absolute_path=workspace / relative_path,
        relative_path=relative_path,
        target_pattern=target_pattern,
        platform=platform,
        flow=make_flow(flow or RULES_FLOW),
    )
