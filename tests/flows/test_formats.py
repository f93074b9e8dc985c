"""Tests for content parsing and serialization."""

import json

import pytest

from agentpack.flows.formats import (
    ParsedContent,
    detect_format,
    is_document,
    is_structured,
    parse_content,
    serialize_content,
    strip_jsonc,
)


def test_detect_format_by_extension() -> None:
    """Test extension to format mapping."""
    assert detect_format("a.json") == "json"
    assert detect_format("mcp.jsonc") == "jsonc"
    assert detect_format("a.yml") == "yaml"
    assert detect_format("a.toml") == "toml"
    assert detect_format(".cursor/rules/a.mdc") == "md"
    assert detect_format("README") == "text"


def test_document_formats_are_sectioned_by_composite_merges() -> None:
    """Test which formats hold prose rather than mappings only."""
    assert is_document(detect_format("AGENTS.md"))
    assert is_document(detect_format("NOTES"))
    assert not is_document(detect_format("mcp.json"))
    assert is_structured(detect_format("AGENTS.md"))


def test_strip_jsonc_preserves_comment_markers_in_strings() -> None:
    """Test that comments and trailing commas are removed outside strings only."""
    raw = """{
  // servers
  "url": "http://example.com/*path*/",
  /* block */
  "items": [1, 2,],
}"""

    data = json.loads(strip_jsonc(raw))

    assert data == {"url": "http://example.com/*path*/", "items": [1, 2]}


def test_parse_empty_json_is_empty_mapping() -> None:
    """Test that blank JSON files parse as an empty mapping."""
    assert parse_content("  \n", "json").data == {}


def test_parse_invalid_yaml_raises_value_error() -> None:
    """Test that YAML errors surface as ValueError."""
    with pytest.raises(ValueError, match="Invalid YAML"):
        parse_content("key: [unclosed", "yaml")


def test_parse_invalid_json_raises_value_error() -> None:
    """Test that JSON decode errors are ValueErrors."""
    with pytest.raises(ValueError):
        parse_content("{not json", "json")


def test_markdown_frontmatter_round_trip() -> None:
    """Test that frontmatter and body survive parse and serialize."""
    raw = "---\ndescription: Review code\nmodel: fast\n---\n\n# Reviewer\n\nBe thorough.\n"

    parsed = parse_content(raw, "md")
    assert parsed.data == {"description": "Review code", "model": "fast"}
    assert parsed.body is not None and parsed.body.startswith("# Reviewer")

    reparsed = parse_content(serialize_content(parsed), "md")
    assert reparsed.data == parsed.data
    assert reparsed.body == parsed.body


def test_markdown_without_frontmatter_serializes_body_only() -> None:
    """Test that an empty metadata mapping emits no frontmatter block."""
    text = serialize_content(ParsedContent("md", {}, "# Title"))

    assert text == "# Title\n"


def test_serialize_converts_between_formats() -> None:
    """Test conversion from YAML data to JSON and TOML text."""
    content = ParsedContent("yaml", {"server": {"port": 8080}})

    assert json.loads(serialize_content(content, "json")) == {"server": {"port": 8080}}
    assert "[server]" in serialize_content(content, "toml")
