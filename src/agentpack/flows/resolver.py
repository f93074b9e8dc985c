"""Flow resolver: declarative flows to concrete planned targets."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from agentpack.errors import FlowResolutionError
from agentpack.flows.context import FlowContext
from agentpack.flows.discovery import discover_sources
from agentpack.flows.patterns import substitute_variables
from agentpack.flows.switch import evaluate_condition, resolve_target_pattern
from agentpack.flows.targets import resolve_target_path
from agentpack.io.files import escapes_root
from agentpack.models.flow import Flow
from agentpack.models.plan import PlannedTarget

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FlowResolution:
    """Planned targets plus warnings for flows that were skipped."""

    targets: list[PlannedTarget]
    warnings: list[str] = field(default_factory=list)


def describe_flow(flow: Flow) -> str:
    return ", ".join(flow.source_patterns)


def resolve_flows(flows: Sequence[Flow], context: FlowContext) -> FlowResolution:
    """Resolve every flow against the package source tree.

    Each (flow, source) pair resolves independently. Unmet guard conditions,
    unmatched switches and targets escaping the workspace are reported as
    warnings and skipped; they never abort resolution.

    Args:
        flows: Flows in declaration order
        context: Resolution context for one platform

    Returns:
        FlowResolution with targets in flow order, then source order
    """
    targets: list[PlannedTarget] = []
    warnings: list[str] = []

    for flow in flows:
        if not flow.applies_to(context.platform):
            continue

        if flow.when is not None and not evaluate_condition(
            flow.when,
            platform=context.platform,
            workspace_root=context.workspace_root,
            variables=context.variables,
        ):
            logger.debug("Condition not met for flow %s", describe_flow(flow))
            warnings.append(f"Skipped flow {describe_flow(flow)}: condition not met")
            continue

        for match in discover_sources(flow, context):
            try:
                target = _plan_target(flow, match.path, match.registry_key, match.pattern, context)
            except FlowResolutionError as e:
                logger.warning("Could not resolve %s for %s: %s", match.path, context.platform, e)
                warnings.append(f"{match.path}: {e}")
                continue
            targets.append(target)

    return FlowResolution(targets=targets, warnings=warnings)


def _plan_target(
    flow: Flow,
    source: str,
    registry_key: str,
    from_pattern: str,
    context: FlowContext,
) -> PlannedTarget:
    # SwitchResolutionError is a FlowResolutionError; the caller skips the pair.
    to_pattern = substitute_variables(
        resolve_target_pattern(flow.to, context.variables), context.variables
    )
    relative = resolve_target_path(registry_key, from_pattern, to_pattern)
    if escapes_root(relative):
        raise FlowResolutionError(f"target {relative} escapes the workspace root")

    return PlannedTarget(
        source_path=context.package_root / source,
        registry_key=registry_key,
        absolute_path=context.workspace_root / relative,
        relative_path=relative,
        target_pattern=to_pattern,
        platform=context.platform,
        flow=flow,
    )
