"""Evaluation of $switch target patterns and flow guard conditions."""

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from agentpack.errors import SwitchResolutionError
from agentpack.flows.patterns import glob_match, has_glob
from agentpack.models.flow import Condition, SwitchExpression, SwitchTarget


def _normalize(value: str) -> str:
    if value.startswith("~"):
        return str(Path(value).expanduser())
    return value


def _case_matches(pattern: Any, value: Any) -> bool:
    if isinstance(pattern, dict):
        return pattern == value
    if isinstance(pattern, str):
        if isinstance(value, bool):
            return pattern == str(value).lower()
        text = str(value)
        if has_glob(pattern):
            return glob_match(pattern, text)
        return _normalize(pattern) == _normalize(text)
    return pattern == value


def resolve_switch(expression: SwitchExpression, variables: Mapping[str, Any]) -> str:
    """Evaluate a switch expression against context variables.

    Cases are tried in declaration order; the first match wins.

    Args:
        expression: Switch expression to evaluate
        variables: Context variables (keys without the ``$$`` prefix)

    Returns:
        The selected target pattern

    Raises:
        SwitchResolutionError: If the field is not a known variable, or no
            case matches and no default is declared
    """
    name = expression.field.removeprefix("$$")
    if name not in variables:
        raise SwitchResolutionError(f"Switch field '{expression.field}' is not a context variable")

    value = variables[name]
    for case in expression.cases:
        if _case_matches(case.pattern, value):
            return case.value

    if expression.default is not None:
        return expression.default

    raise SwitchResolutionError(
        f"No switch case matched {expression.field}={value!r} and no default is declared"
    )


def resolve_target_pattern(to: str | SwitchTarget, variables: Mapping[str, Any]) -> str:
    """Resolve a flow's ``to`` into a plain target pattern."""
    if isinstance(to, SwitchTarget):
        return resolve_switch(to.switch, variables)
    return to


def evaluate_condition(
    condition: Condition,
    *,
    platform: str,
    workspace_root: Path,
    variables: Mapping[str, Any],
) -> bool:
    """Check whether every populated clause of a condition holds."""
    if condition.all_of is not None:
        for nested in condition.all_of:
            if not evaluate_condition(
                nested, platform=platform, workspace_root=workspace_root, variables=variables
            ):
                return False

    if condition.any_of is not None:
        matched = any(
            evaluate_condition(
                nested, platform=platform, workspace_root=workspace_root, variables=variables
            )
            for nested in condition.any_of
        )
        if not matched:
            return False

    if condition.negate is not None:
        if evaluate_condition(
            condition.negate, platform=platform, workspace_root=workspace_root, variables=variables
        ):
            return False

    if condition.exists is not None and not (workspace_root / condition.exists).exists():
        return False

    if condition.platform is not None and condition.platform != platform:
        return False

    if condition.key is not None:
        name = condition.key.removeprefix("$$")
        if variables.get(name) != condition.equals:
            return False

    return True
