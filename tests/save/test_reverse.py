"""Tests for converting workspace content back into universal form."""

import json
from pathlib import Path

from agentpack.flows.context import FlowContext
from agentpack.io.platforms import load_platforms
from agentpack.save.candidates import SaveCandidate
from agentpack.save.reverse import find_import_flow, reverse_candidate
from tests.test_utils.package_helpers import make_context, make_flow

HOOKS_FLOW = {
    "from": "hooks.json",
    "to": ".claude/settings.json",
    "merge": "deep",
    "embed": "hooks",
}


def _context(tmp_path: Path, platform: str) -> FlowContext:
    platforms = load_platforms()
    return make_context(
        tmp_path / "workspace",
        tmp_path / "pkg",
        platform=platform,
        known_platforms=frozenset(platforms),
        variables=platforms[platform].variables,
    )


def test_import_flow_matches_workspace_path(tmp_path: Path) -> None:
    """Test that import flows are looked up by workspace path."""
    opencode = load_platforms()["opencode"]
    context = _context(tmp_path, "opencode")
    candidate = SaveCandidate("mcp.json", "opencode.json", "opencode", "{}")
    other = SaveCandidate("mcp.json", ".opencode/other.json", "opencode", "{}")

    assert find_import_flow(candidate, opencode, context) is opencode.import_[0]
    assert find_import_flow(other, opencode, context) is None


def test_import_flow_takes_precedence(tmp_path: Path) -> None:
    """Test that opencode's import flow renames its keys back."""
    opencode = load_platforms()["opencode"]
    content = json.dumps({"mcp": {"p": {"command": "p-server"}}})
    candidate = SaveCandidate("mcp.json", "opencode.json", "opencode", content)

    reversal = reverse_candidate(candidate, opencode, _context(tmp_path, "opencode"))

    assert reversal.warning is None
    assert json.loads(reversal.content) == {"mcpServers": {"p": {"command": "p-server"}}}


def test_export_embed_is_inverted(tmp_path: Path) -> None:
    """Test that content embedded under a key is unwrapped."""
    claude = load_platforms()["claude"]
    content = json.dumps({"hooks": {"PreToolUse": [{"matcher": "Bash"}]}})
    candidate = SaveCandidate(
        "hooks.json", ".claude/settings.json", "claude", content, flow=make_flow(HOOKS_FLOW)
    )

    reversal = reverse_candidate(candidate, claude, _context(tmp_path, "claude"))

    assert reversal.warning is None
    assert json.loads(reversal.content) == {"PreToolUse": [{"matcher": "Bash"}]}


def test_unreversible_content_is_kept_verbatim(tmp_path: Path) -> None:
    """Test the verbatim fallback and its warning."""
    claude = load_platforms()["claude"]
    content = '{"permissions": {}}'
    candidate = SaveCandidate(
        "hooks.json", ".claude/settings.json", "claude", content, flow=make_flow(HOOKS_FLOW)
    )

    reversal = reverse_candidate(candidate, claude, _context(tmp_path, "claude"))

    assert reversal.content == content
    assert reversal.warning == (
        "Saved .claude/settings.json verbatim (embedded key 'hooks' not found); "
        "it may contain platform-specific content"
    )


def test_plain_copies_are_unchanged(tmp_path: Path) -> None:
    """Test that content without transforms or platform passes through."""
    claude = load_platforms()["claude"]
    flow = make_flow({"from": "rules/**/*.md", "to": ".claude/rules/**/*.md"})
    candidate = SaveCandidate("rules/a.md", ".claude/rules/a.md", "claude", "# A\n", flow=flow)

    assert reverse_candidate(candidate, claude, _context(tmp_path, "claude")).content == "# A\n"
    assert reverse_candidate(candidate, None, None).content == "# A\n"
