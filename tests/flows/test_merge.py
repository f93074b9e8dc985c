"""Tests for merge semantics of shared targets."""

from agentpack.flows.merge import (
    collect_leaf_keys,
    compose_section,
    extract_section,
    merge_content,
    remove_keys,
    remove_section,
)


class TestMergeContent:
    """Tests for merge_content."""

    def test_deep_merge_combines_nested_mappings(self) -> None:
        """Test that nested mappings from both sides are kept."""
        existing = {"mcpServers": {"p": {"command": "p-server"}}}
        incoming = {"mcpServers": {"q": {"command": "q-server"}}}

        result = merge_content(incoming, existing, "deep", package_name="q")

        assert result.data == {
            "mcpServers": {"p": {"command": "p-server"}, "q": {"command": "q-server"}}
        }
        assert result.conflicts == []

    def test_deep_merge_records_scalar_conflicts(self) -> None:
        """Test last-writer-wins for differing scalars."""
        existing = {"settings": {"theme": "dark", "size": 12}}
        incoming = {"settings": {"theme": "light"}}

        result = merge_content(incoming, existing, "deep", package_name="q")

        assert result.data == {"settings": {"theme": "light", "size": 12}}
        assert [(c.path, c.winner) for c in result.conflicts] == [("settings.theme", "q")]

    def test_deep_merge_appends_unique_list_items(self) -> None:
        """Test that list items are appended without duplicates."""
        existing = {"tools": ["a", "b"]}

        result = merge_content({"tools": ["b", "c"]}, existing, "deep", package_name="q")

        assert result.data == {"tools": ["a", "b", "c"]}

    def test_shallow_merge_overwrites_top_level_keys(self) -> None:
        """Test that shallow merge replaces whole top-level values."""
        existing = {"a": {"x": 1}, "b": 2}
        incoming = {"a": {"y": 2}}

        result = merge_content(incoming, existing, "shallow", package_name="q")

        assert result.data == {"a": {"y": 2}, "b": 2}
        assert [c.path for c in result.conflicts] == ["a"]

    def test_replace_ignores_existing(self) -> None:
        """Test that replace discards existing content."""
        result = merge_content({"a": 1}, {"b": 2}, "replace", package_name="q")

        assert result.data == {"a": 1}

    def test_composite_text_creates_section(self) -> None:
        """Test that composite merge of text wraps it in a package section."""
        result = merge_content("Use tabs.", None, "composite", package_name="p")

        assert result.data == "<!-- agentpack:p -->\nUse tabs.\n<!-- /agentpack:p -->\n"


class TestCompositeSections:
    """Tests for composite section helpers."""

    def test_sections_from_two_packages_coexist(self) -> None:
        """Test that each package's section is independent."""
        text = compose_section("# Project\n", "From P.", "p")
        text = compose_section(text, "From Q.", "q")

        assert text.startswith("# Project\n")
        assert extract_section(text, "p") == "From P.\n"
        assert extract_section(text, "q") == "From Q.\n"

    def test_compose_replaces_existing_section(self) -> None:
        """Test that re-composing a package updates its section in place."""
        text = compose_section("", "Old.", "p")
        text = compose_section(text, "New.", "p")

        assert text == "<!-- agentpack:p -->\nNew.\n<!-- /agentpack:p -->\n"

    def test_compose_is_stable(self) -> None:
        """Test that composing the same content twice changes nothing."""
        once = compose_section("# Project\n", "From P.", "p")

        assert compose_section(once, "From P.", "p") == once

    def test_remove_section_leaves_other_content(self) -> None:
        """Test that removal only drops the package's own section."""
        text = compose_section(compose_section("", "From P.", "p"), "From Q.", "q")

        remaining = remove_section(text, "p")

        assert extract_section(remaining, "p") is None
        assert extract_section(remaining, "q") == "From Q.\n"

    def test_scoped_names_are_escaped(self) -> None:
        """Test that package names with regex characters work as markers."""
        text = compose_section("", "Scoped.", "@acme/rules+extra")

        assert extract_section(text, "@acme/rules+extra") == "Scoped.\n"


def test_collect_leaf_keys() -> None:
    """Test dot-path collection of leaf values."""
    data = {"mcpServers": {"p": {"command": "x", "args": ["--a"]}}, "empty": {}, "flag": True}

    assert collect_leaf_keys(data) == [
        "mcpServers.p.command",
        "mcpServers.p.args",
        "empty",
        "flag",
    ]


def test_remove_keys_prunes_empty_parents() -> None:
    """Test that mappings emptied by removal disappear."""
    data = {"mcpServers": {"p": {"command": "x"}, "q": {"command": "y"}}}

    assert remove_keys(data, ["mcpServers.p.command"]) == {"mcpServers": {"q": {"command": "y"}}}
    assert remove_keys(data, ["mcpServers.p.command", "mcpServers.q.command"]) == {}
    assert data["mcpServers"]["p"] == {"command": "x"}
