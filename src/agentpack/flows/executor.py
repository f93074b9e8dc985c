"""Execution of planned targets: render content and write it to the workspace."""

import logging
import shutil
from dataclasses import dataclass, field
from typing import Literal

from agentpack.flows.context import FlowContext
from agentpack.flows.formats import (
    FileFormat,
    ParsedContent,
    detect_format,
    is_document,
    is_structured,
    parse_content,
    serialize_content,
)
from agentpack.flows.merge import (
    MergeConflict,
    collect_leaf_keys,
    compose_section,
    merge_content,
)
from agentpack.flows.transforms import apply_transforms
from agentpack.io.files import (
    read_bytes_if_exists,
    read_text_if_exists,
    write_bytes_atomic,
)
from agentpack.models.flow import Flow
from agentpack.models.plan import PlannedTarget

logger = logging.getLogger(__name__)

WriteStatus = Literal["created", "updated", "unchanged"]


@dataclass(frozen=True)
class RenderedTarget:
    """Final text for a target plus the keys this package contributed to it."""

    text: str
    merge_keys: list[str] = field(default_factory=list)
    conflicts: list[MergeConflict] = field(default_factory=list)


@dataclass(frozen=True)
class WriteOutcome:
    target: PlannedTarget
    status: WriteStatus
    merge_keys: list[str] = field(default_factory=list)
    conflicts: list[MergeConflict] = field(default_factory=list)


def needs_parsing(flow: Flow, source_name: str, target_name: str) -> bool:
    """Whether a flow restructures content instead of copying bytes."""
    if flow.is_merge or flow.has_transforms:
        return True
    source_fmt = detect_format(source_name)
    target_fmt = detect_format(target_name)
    return is_structured(source_fmt) and is_structured(target_fmt) and source_fmt != target_fmt


def transform_source(
    raw: str, flow: Flow, source_name: str, context: FlowContext
) -> ParsedContent:
    """Parse source text and apply the flow's transforms, without merging."""
    parsed = parse_content(raw, detect_format(source_name))
    data = apply_transforms(parsed.data, flow, context.variables)
    return ParsedContent(parsed.format, data, parsed.body)


def render_standalone(
    raw: str, flow: Flow, source_name: str, target_name: str, context: FlowContext
) -> str:
    """Text a non-merge flow would write for the given source text."""
    if not needs_parsing(flow, source_name, target_name):
        return raw
    transformed = transform_source(raw, flow, source_name, context)
    return serialize_content(transformed, _output_format(transformed, target_name))


def copies_verbatim(target: PlannedTarget) -> bool:
    """Whether a target is a byte-for-byte copy of its source file."""
    return not needs_parsing(target.flow, target.source_path.name, target.relative_path)


def render_bytes(target: PlannedTarget, context: FlowContext) -> bytes:
    """Exact bytes :func:`execute_target` would write for a target."""
    if copies_verbatim(target):
        return target.source_path.read_bytes()
    return render_target(target, context).text.encode("utf-8")


def render_target(target: PlannedTarget, context: FlowContext) -> RenderedTarget:
    """Render the final text for a planned target.

    Merge flows read the current target file and merge into it; the text
    returned is the whole shared file after this package's contribution.
    """
    flow = target.flow
    raw = target.source_path.read_text(encoding="utf-8")
    source_name = target.source_path.name

    if not flow.is_merge:
        return RenderedTarget(
            render_standalone(raw, flow, source_name, target.relative_path, context)
        )

    existing_raw = read_text_if_exists(target.absolute_path)

    if flow.merge == "composite" and is_document(detect_format(target.relative_path)):
        text = compose_section(existing_raw or "", raw, context.package_name)
        return RenderedTarget(text)

    transformed = transform_source(raw, flow, source_name, context)
    output_format = _output_format(transformed, target.relative_path)
    existing_data = None
    if existing_raw is not None and existing_raw.strip():
        existing_data = parse_content(existing_raw, output_format).data

    result = merge_content(
        transformed.data, existing_data, flow.merge, package_name=context.package_name
    )
    for conflict in result.conflicts:
        logger.debug(
            "Value conflict at %s in %s resolved %s",
            conflict.path,
            target.relative_path,
            conflict.resolution,
        )

    text = serialize_content(
        ParsedContent(output_format, result.data, transformed.body), output_format
    )
    return RenderedTarget(
        text=text,
        merge_keys=collect_leaf_keys(transformed.data),
        conflicts=result.conflicts,
    )


def execute_target(target: PlannedTarget, context: FlowContext) -> WriteOutcome:
    """Render a target and write it when its content changed.

    Verbatim copies keep the source bytes and permission bits unchanged.

    Raises:
        OSError: If the source cannot be read or the target written
        ValueError: If structured content cannot be parsed
    """
    verbatim = copies_verbatim(target)
    if verbatim:
        rendered = RenderedTarget("")
        data = target.source_path.read_bytes()
    else:
        rendered = render_target(target, context)
        data = rendered.text.encode("utf-8")
    existing = read_bytes_if_exists(target.absolute_path)

    if existing == data:
        status: WriteStatus = "unchanged"
    else:
        write_bytes_atomic(target.absolute_path, data)
        status = "created" if existing is None else "updated"
    if verbatim:
        shutil.copymode(target.source_path, target.absolute_path)

    logger.debug("%s %s (%s)", status, target.relative_path, target.platform)
    return WriteOutcome(
        target=target,
        status=status,
        merge_keys=rendered.merge_keys,
        conflicts=rendered.conflicts,
    )


def _output_format(content: ParsedContent, target_name: str) -> FileFormat:
    target_fmt = detect_format(target_name)
    if target_fmt == "text":
        return content.format
    return target_fmt
