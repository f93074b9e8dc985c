"""Tests for pure ledger merge operations."""

from pathlib import Path

from agentpack.models.ledger import Ledger, LedgerEntry, MergeMapping
from agentpack.models.plan import OwnershipRecord
from agentpack.operations.ledger_merge import (
    merge_entry,
    merge_files,
    prune_files,
    transfer_paths,
)
from tests.test_utils.package_helpers import write_files


class TestPruneFiles:
    """Tests for dropping keys whose source is gone."""

    def test_keeps_keys_backed_by_source(self) -> None:
        """Test file keys and directory keys against current sources."""
        files = {
            "rules/": [".tool/rules/"],
            "agents/": [".tool/agents/"],
            "rules/gone.md": [".other/rules/gone.md"],
            "commands/run.md": [".tool/commands/run.md"],
        }

        pruned = prune_files(files, {"rules/a.md", "commands/run.md"})

        assert pruned == {
            "rules/": [".tool/rules/"],
            "commands/run.md": [".tool/commands/run.md"],
        }


class TestMergeFiles:
    """Tests for merging a new mapping into a previous one."""

    def test_directory_claim_absorbs_covered_file_keys(self) -> None:
        """Test that file keys inside a new directory claim are dropped."""
        previous = {"rules/a.md": [".tool/rules/a.md"], "mcp.json": [".mcp.json"]}
        new = {"rules/": [".tool/rules/"]}

        assert merge_files(previous, new) == {
            "mcp.json": [".mcp.json"],
            "rules/": [".tool/rules/"],
        }

    def test_directory_values_are_unioned_and_pruned(self) -> None:
        """Test that nested directories collapse into their parent."""
        previous = {"rules/": [".tool/rules/"]}
        new = {"rules/": [".other/rules/", ".tool/rules/sub/"]}

        assert merge_files(previous, new) == {"rules/": [".other/rules/", ".tool/rules/"]}

    def test_exclusive_file_values_are_replaced(self) -> None:
        """Test that a relocated file replaces the old target."""
        previous = {"rules/a.md": [".tool/rules/a.md"]}
        new = {"rules/a.md": [".tool/rules/pkg/a.md"]}

        assert merge_files(previous, new) == {"rules/a.md": [".tool/rules/pkg/a.md"]}

    def test_merge_values_are_unioned_by_target(self) -> None:
        """Test that merge mappings for other targets survive and new ones win."""
        old_claude = MergeMapping(target=".mcp.json", merge="deep", keys=["mcpServers.a"])
        new_claude = MergeMapping(target=".mcp.json", merge="deep", keys=["mcpServers.b"])
        cursor = MergeMapping(target=".cursor/mcp.json", merge="deep", keys=["mcpServers.b"])

        merged = merge_files({"mcp.json": [old_claude]}, {"mcp.json": [new_claude, cursor]})

        assert merged == {"mcp.json": [cursor, new_claude]}


def test_merge_entry_prunes_then_merges() -> None:
    """Test building a new entry from the previous one."""
    previous = LedgerEntry(
        path="/old",
        version="1.0.0",
        files={"rules/gone.md": [".tool/rules/gone.md"], "agents/x.md": [".tool/agents/x.md"]},
    )

    entry = merge_entry(
        previous,
        path="/new",
        version="2.0.0",
        files={"rules/a.md": [".tool/rules/a.md"]},
        source_files={"rules/a.md", "agents/x.md"},
        content_hash="abc",
    )

    assert entry == LedgerEntry(
        path="/new",
        version="2.0.0",
        files={"agents/x.md": [".tool/agents/x.md"], "rules/a.md": [".tool/rules/a.md"]},
        hash="abc",
    )


class TestTransferPaths:
    """Tests for removing overwritten paths from their previous owners."""

    def test_file_claim_loses_the_path(self, tmp_path: Path) -> None:
        """Test that a transferred file key disappears from its owner."""
        ledger = Ledger(
            packages={
                "p": LedgerEntry(
                    path="/p",
                    version="1",
                    files={
                        "rules/a.md": [".tool/rules/a.md"],
                        "rules/b.md": [".tool/rules/b.md"],
                    },
                )
            }
        )
        transfers = {".tool/rules/a.md": OwnershipRecord("p", "rules/a.md", "file")}

        result = transfer_paths(ledger, transfers, tmp_path)

        assert result.packages["p"].files == {"rules/b.md": [".tool/rules/b.md"]}

    def test_directory_claim_is_narrowed(self, tmp_path: Path) -> None:
        """Test that a directory claim becomes file claims for the rest."""
        write_files(tmp_path, {".tool/rules/a.md": "A", ".tool/rules/b.md": "B"})
        ledger = Ledger(
            packages={"p": LedgerEntry(path="/p", version="1", files={"rules/": [".tool/rules/"]})}
        )
        transfers = {".tool/rules/a.md": OwnershipRecord("p", "rules/", "dir")}

        result = transfer_paths(ledger, transfers, tmp_path)

        assert result.packages["p"].files == {"rules/b.md": [".tool/rules/b.md"]}

    def test_entry_emptied_by_transfer_is_removed(self, tmp_path: Path) -> None:
        """Test that a package left with no files leaves the ledger."""
        ledger = Ledger(
            packages={
                "p": LedgerEntry(path="/p", version="1", files={"rules/a.md": [".tool/rules/a.md"]})
            }
        )
        transfers = {".tool/rules/a.md": OwnershipRecord("p", "rules/a.md", "file")}

        assert transfer_paths(ledger, transfers, tmp_path).packages == {}
