"""Tests for conflict classification and arbitration."""

from pathlib import Path

from agentpack.install.conflicts import Renderer, classify_target, decide, resolve_conflicts
from agentpack.install.ownership import build_ownership_context
from agentpack.models.ledger import Ledger, LedgerEntry
from agentpack.models.plan import OwnershipContext, PlannedTarget, TargetConflict
from tests.fakes.prompts import FakeConflictPrompt
from tests.test_utils.package_helpers import planned_target, write_files


def _owned_by_p(workspace: Path) -> OwnershipContext:
    write_files(workspace, {".tool/rules/a.md": "from p"})
    ledger = Ledger(
        packages={
            "p": LedgerEntry(path="/p", version="1.0.0", files={"rules/": [".tool/rules/"]})
        }
    )
    return build_ownership_context(ledger, "q", workspace)


def _render_from(text: str) -> Renderer:
    def render(target: PlannedTarget) -> bytes:
        return text.encode("utf-8")

    return render


class TestClassifyTarget:
    """Tests for classify_target."""

    def test_owned_by_other(self, tmp_path: Path) -> None:
        """Test that a path owned by another package is reported with its owner."""
        ownership = _owned_by_p(tmp_path)
        target = planned_target(tmp_path, "rules/a.md", ".tool/rules/a.md")

        conflict = classify_target(
            target, package_name="q", ownership=ownership, render=_render_from("q")
        )

        assert conflict.kind == "owned-by-other"
        assert conflict.owner is not None and conflict.owner.package_name == "p"

    def test_untracked_file_with_different_content(self, tmp_path: Path) -> None:
        """Test that unowned files with other content are conflicts."""
        write_files(tmp_path, {".tool/rules/a.md": "hand written"})
        ownership = build_ownership_context(Ledger.empty(), "q", tmp_path)
        target = planned_target(tmp_path, "rules/a.md", ".tool/rules/a.md")

        conflict = classify_target(
            target, package_name="q", ownership=ownership, render=_render_from("q")
        )

        assert conflict.kind == "exists-unowned"

    def test_untracked_file_with_identical_content_is_not_a_conflict(self, tmp_path: Path) -> None:
        """Test that an identical untracked file is adopted silently."""
        write_files(tmp_path, {".tool/rules/a.md": "same"})
        ownership = build_ownership_context(Ledger.empty(), "q", tmp_path)
        target = planned_target(tmp_path, "rules/a.md", ".tool/rules/a.md")

        conflict = classify_target(
            target, package_name="q", ownership=ownership, render=_render_from("same")
        )

        assert conflict.kind == "none"

    def test_non_utf8_untracked_file_is_compared_as_bytes(self, tmp_path: Path) -> None:
        """Test that an untracked Latin-1 file is a conflict rather than an error."""
        (tmp_path / ".tool" / "rules").mkdir(parents=True)
        (tmp_path / ".tool" / "rules" / "b.md").write_bytes(b"caf\xe9\n")
        ownership = build_ownership_context(Ledger.empty(), "q", tmp_path)
        target = planned_target(tmp_path, "rules/b.md", ".tool/rules/b.md")

        conflict = classify_target(
            target, package_name="q", ownership=ownership, render=_render_from("B\n")
        )

        assert conflict.kind == "exists-unowned"

    def test_identical_binary_file_is_not_a_conflict(self, tmp_path: Path) -> None:
        """Test that byte-identical untracked binaries are adopted silently."""
        data = b"\x89PNG\r\n\x1a\n\x00\xff"
        (tmp_path / ".tool" / "skills").mkdir(parents=True)
        (tmp_path / ".tool" / "skills" / "logo.png").write_bytes(data)
        ownership = build_ownership_context(Ledger.empty(), "q", tmp_path)
        target = planned_target(tmp_path, "skills/logo.png", ".tool/skills/logo.png")

        conflict = classify_target(
            target, package_name="q", ownership=ownership, render=lambda _: data
        )

        assert conflict.kind == "none"

    def test_merge_targets_never_conflict(self, tmp_path: Path) -> None:
        """Test that shared merge targets are exempt from arbitration."""
        write_files(tmp_path, {".tool/mcp.json": "{}"})
        ownership = build_ownership_context(Ledger.empty(), "q", tmp_path)
        target = planned_target(
            tmp_path,
            "mcp.json",
            ".tool/mcp.json",
            flow={"from": "mcp.json", "to": ".tool/mcp.json", "merge": "deep"},
        )

        conflict = classify_target(
            target, package_name="q", ownership=ownership, render=_render_from("other")
        )

        assert conflict.kind == "none"


class TestDecide:
    """Tests for decide."""

    def test_fixed_strategies_apply_directly(self, tmp_path: Path) -> None:
        """Test non-interactive strategies."""
        conflict = TargetConflict(
            target=planned_target(tmp_path, "rules/a.md", ".tool/rules/a.md"),
            kind="exists-unowned",
        )

        assert decide(conflict, "overwrite", None) == "overwrite"
        assert decide(conflict, "skip", None) == "skip"
        assert decide(conflict, "keep-both", None) == "keep-both"

    def test_ask_without_prompt_uses_safe_defaults(self, tmp_path: Path) -> None:
        """Test non-interactive fallbacks for the ask strategy."""
        target = planned_target(tmp_path, "rules/a.md", ".tool/rules/a.md")

        assert decide(TargetConflict(target, "owned-by-other"), "ask", None) == "keep-both"
        assert decide(TargetConflict(target, "exists-unowned"), "ask", None) == "skip"

    def test_ask_with_prompt_delegates(self, tmp_path: Path) -> None:
        """Test that the prompt decides under the ask strategy."""
        target = planned_target(tmp_path, "rules/a.md", ".tool/rules/a.md")
        prompt = FakeConflictPrompt(by_path={".tool/rules/a.md": "overwrite"})

        assert decide(TargetConflict(target, "exists-unowned"), "ask", prompt) == "overwrite"
        assert prompt.asked == [".tool/rules/a.md"]


class TestResolveConflicts:
    """Tests for resolve_conflicts."""

    def test_keep_both_at_threshold_namespaces_package(self, tmp_path: Path) -> None:
        """Test that reaching the threshold requests whole-package namespacing."""
        ownership = _owned_by_p(tmp_path)
        targets = [planned_target(tmp_path, "rules/a.md", ".tool/rules/a.md")]

        resolution = resolve_conflicts(
            targets,
            package_name="@acme/q",
            workspace_root=tmp_path,
            ownership=ownership,
            strategy="keep-both",
            render=_render_from("q"),
            namespace_threshold=0.0,
        )

        assert resolution.namespace_slug == "q"
        assert resolution.targets == targets

    def test_keep_both_below_threshold_relocates_file(self, tmp_path: Path) -> None:
        """Test per-file relocation when the collision share is small."""
        ownership = _owned_by_p(tmp_path)
        targets = [
            planned_target(tmp_path, "rules/a.md", ".tool/rules/a.md"),
            planned_target(tmp_path, "rules/b.md", ".tool/rules/b.md"),
        ]

        resolution = resolve_conflicts(
            targets,
            package_name="@acme/q",
            workspace_root=tmp_path,
            ownership=ownership,
            strategy="keep-both",
            render=_render_from("q"),
            namespace_threshold=1.0,
        )

        assert resolution.namespace_slug is None
        assert [t.relative_path for t in resolution.targets] == [
            ".tool/rules/q/a.md",
            ".tool/rules/b.md",
        ]
        assert resolution.relocated == [".tool/rules/q/a.md"]
        assert resolution.targets[0].absolute_path == tmp_path / ".tool/rules/q/a.md"

    def test_disabled_namespacing_relocates_per_file(self, tmp_path: Path) -> None:
        """Test that a None threshold never namespaces the whole package."""
        ownership = _owned_by_p(tmp_path)
        targets = [planned_target(tmp_path, "rules/a.md", ".tool/rules/a.md")]

        resolution = resolve_conflicts(
            targets,
            package_name="q",
            workspace_root=tmp_path,
            ownership=ownership,
            strategy="keep-both",
            render=_render_from("q"),
            namespace_threshold=None,
        )

        assert resolution.namespace_slug is None
        assert resolution.relocated == [".tool/rules/q/a.md"]

    def test_skip_drops_target_with_note(self, tmp_path: Path) -> None:
        """Test that skipped targets are excluded and reported."""
        ownership = _owned_by_p(tmp_path)
        targets = [planned_target(tmp_path, "rules/a.md", ".tool/rules/a.md")]

        resolution = resolve_conflicts(
            targets,
            package_name="q",
            workspace_root=tmp_path,
            ownership=ownership,
            strategy="skip",
            render=_render_from("q"),
        )

        assert resolution.targets == []
        assert resolution.notes == ["Skipped .tool/rules/a.md (owned by p)"]

    def test_overwrite_records_ownership_transfer(self, tmp_path: Path) -> None:
        """Test that overwriting an owned path transfers it."""
        ownership = _owned_by_p(tmp_path)
        targets = [planned_target(tmp_path, "rules/a.md", ".tool/rules/a.md")]

        resolution = resolve_conflicts(
            targets,
            package_name="q",
            workspace_root=tmp_path,
            ownership=ownership,
            strategy="overwrite",
            render=_render_from("q"),
        )

        assert resolution.targets == targets
        assert list(resolution.transfers) == [".tool/rules/a.md"]
        assert resolution.transfers[".tool/rules/a.md"].package_name == "p"

    def test_second_pass_skips_remaining_collisions(self, tmp_path: Path) -> None:
        """Test that collisions left after namespacing are skipped."""
        ownership = _owned_by_p(tmp_path)
        targets = [planned_target(tmp_path, "rules/a.md", ".tool/rules/a.md")]

        resolution = resolve_conflicts(
            targets,
            package_name="q",
            workspace_root=tmp_path,
            ownership=ownership,
            strategy="keep-both",
            render=_render_from("q"),
            allow_namespace=False,
        )

        assert resolution.targets == []
        assert resolution.namespace_slug is None

    def test_internal_failure_falls_back_to_all_targets(self, tmp_path: Path) -> None:
        """Test that arbitration errors never abort the install."""
        write_files(tmp_path, {".tool/rules/a.md": "hand written"})
        ownership = build_ownership_context(Ledger.empty(), "q", tmp_path)
        targets = [planned_target(tmp_path, "rules/a.md", ".tool/rules/a.md")]

        def broken_render(target: PlannedTarget) -> bytes:
            raise RuntimeError("renderer exploded")

        resolution = resolve_conflicts(
            targets,
            package_name="q",
            workspace_root=tmp_path,
            ownership=ownership,
            strategy="keep-both",
            render=broken_render,
        )

        assert resolution.fallback
        assert resolution.targets == targets
        assert "renderer exploded" in resolution.notes[0]

    def test_fallback_never_writes_paths_owned_by_other_packages(self, tmp_path: Path) -> None:
        """Test that a failed arbitration still leaves other packages' files alone."""
        ownership = _owned_by_p(tmp_path)
        write_files(tmp_path, {".tool/notes/c.md": "hand written"})
        owned = planned_target(tmp_path, "rules/a.md", ".tool/rules/a.md")
        untracked = planned_target(
            tmp_path, "notes/c.md", ".tool/notes/c.md", target_pattern=".tool/notes/*.md"
        )

        def broken_render(target: PlannedTarget) -> bytes:
            raise RuntimeError("renderer exploded")

        resolution = resolve_conflicts(
            [owned, untracked],
            package_name="q",
            workspace_root=tmp_path,
            ownership=ownership,
            strategy="skip",
            render=broken_render,
        )

        assert resolution.fallback
        assert resolution.targets == [untracked]
        assert "1 of 2 target(s)" in resolution.notes[0]
