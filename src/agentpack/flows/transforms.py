"""Structural transforms applied by flows, and their inverses for save."""

import copy
import logging
from collections.abc import Mapping
from typing import Any

from agentpack.flows.merge import get_nested, has_nested, remove_keys, set_nested
from agentpack.flows.patterns import substitute_variables
from agentpack.models.flow import Flow

logger = logging.getLogger(__name__)


def apply_transforms(data: Any, flow: Flow, variables: Mapping[str, Any]) -> Any:
    """Apply a flow's pick/omit, map operations and embed, in that order.

    Transforms only apply to mapping content; anything else is returned
    unchanged.
    """
    if not isinstance(data, dict):
        if flow.has_transforms:
            logger.debug("Skipping transforms for non-mapping content of %s", flow.source_patterns)
        return data

    result: dict[str, Any] = copy.deepcopy(data)
    if flow.pick:
        picked: dict[str, Any] = {}
        for key_path in flow.pick:
            if has_nested(result, key_path):
                set_nested(picked, key_path, get_nested(result, key_path))
        result = picked
    elif flow.omit:
        result = remove_keys(result, flow.omit)

    for operation in flow.map or []:
        result = apply_map_operation(result, operation, variables)

    if flow.embed:
        return {flow.embed: result}
    return result


def apply_map_operation(
    data: dict[str, Any], operation: dict[str, Any], variables: Mapping[str, Any]
) -> dict[str, Any]:
    """Apply one ``$rename``/``$set``/``$unset``/``$copy`` operation."""
    operator, argument = next(iter(operation.items()))
    result = copy.deepcopy(data)

    if operator == "$rename":
        for old, new in argument.items():
            if has_nested(result, old):
                value = get_nested(result, old)
                result = remove_keys(result, [old])
                set_nested(result, new, value)
        return result

    if operator == "$set":
        for key_path, value in argument.items():
            if isinstance(value, str):
                value = substitute_variables(value, variables)
            set_nested(result, key_path, value)
        return result

    if operator == "$unset":
        keys = [argument] if isinstance(argument, str) else list(argument)
        return remove_keys(result, keys)

    if operator == "$copy":
        source, destination = argument["from"], argument["to"]
        if has_nested(result, source):
            set_nested(result, destination, copy.deepcopy(get_nested(result, source)))
        return result

    raise ValueError(f"Unknown map operator: {operator}")


def invert_map(operations: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
    """Build the reverse of a map pipeline.

    Operations are inverted in reverse order. ``$rename`` swaps its pairs,
    ``$set`` and ``$copy`` become ``$unset`` of the keys they introduced.
    ``$unset`` removed data that cannot be restored and has no inverse.
    """
    inverted: list[dict[str, Any]] = []
    for operation in reversed(operations or []):
        operator, argument = next(iter(operation.items()))
        if operator == "$rename":
            inverted.append({"$rename": {new: old for old, new in argument.items()}})
        elif operator == "$set":
            inverted.append({"$unset": list(argument.keys())})
        elif operator == "$copy":
            inverted.append({"$unset": [argument["to"]]})
        else:
            logger.debug("No inverse for %s; removed keys cannot be restored", operator)
    return inverted


def apply_inverse_transforms(data: Any, flow: Flow, variables: Mapping[str, Any]) -> Any:
    """Undo a flow's structural transforms on workspace content.

    Raises:
        ValueError: If the content does not have the shape the flow produces
    """
    if not isinstance(data, dict):
        if flow.has_transforms:
            raise ValueError("expected mapping content to reverse flow transforms")
        return data

    result: dict[str, Any] = copy.deepcopy(data)
    if flow.embed:
        embedded = result.get(flow.embed)
        if not isinstance(embedded, dict):
            raise ValueError(f"embedded key '{flow.embed}' not found")
        result = copy.deepcopy(embedded)

    for operation in invert_map(flow.map):
        result = apply_map_operation(result, operation, variables)
    return result
