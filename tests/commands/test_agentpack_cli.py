"""Tests for the agentpack command line."""

from pathlib import Path

from click.testing import CliRunner, Result

from agentpack.cli import cli
from tests.test_utils.package_helpers import write_files

TOOL_PLATFORM = (
    "platforms:\n"
    "  tool:\n"
    "    name: Tool\n"
    "    root_dir: .tool\n"
    "    export:\n"
    "      - from: rules/*.md\n"
    "        to: .tool/rules/*.md\n"
)


def _setup(tmp_path: Path) -> tuple[Path, Path]:
    workspace = tmp_path / "workspace"
    package = tmp_path / "reviewer"
    write_files(workspace, {".agentpack/platforms.yml": TOOL_PLATFORM})
    write_files(package, {"package.yml": "name: pkg\nversion: 1.0.0\n", "rules/a.md": "# A\n"})
    return workspace, package


def _install(cli_runner: CliRunner, workspace: Path, package: Path) -> Result:
    return cli_runner.invoke(
        cli,
        ["install", str(package), "--platform", "tool", "--workspace", str(workspace)],
        catch_exceptions=False,
    )


def test_install_reports_counts(tmp_path: Path, cli_runner: CliRunner) -> None:
    """Test that install writes files and prints a summary line."""
    workspace, package = _setup(tmp_path)

    result = _install(cli_runner, workspace, package)

    assert result.exit_code == 0
    assert "✓ Installed pkg v1.0.0 (1 created, 0 updated, 0 unchanged)" in result.output
    assert (workspace / ".tool" / "rules" / "a.md").read_text(encoding="utf-8") == "# A\n"


def test_reinstall_is_unchanged(tmp_path: Path, cli_runner: CliRunner) -> None:
    """Test that installing twice reports the file as unchanged."""
    workspace, package = _setup(tmp_path)
    _install(cli_runner, workspace, package)

    result = _install(cli_runner, workspace, package)

    assert result.exit_code == 0
    assert "(0 created, 0 updated, 1 unchanged)" in result.output


def test_install_without_manifest_fails(tmp_path: Path, cli_runner: CliRunner) -> None:
    """Test that a directory without package.yml is reported and exits 1."""
    workspace, _ = _setup(tmp_path)
    empty = tmp_path / "empty"
    empty.mkdir()

    result = _install(cli_runner, workspace, empty)

    assert result.exit_code == 1
    assert "✗ Failed to install" in result.output
    assert "No package.yml found" in result.output


def test_list(tmp_path: Path, cli_runner: CliRunner) -> None:
    """Test listing before and after an install."""
    workspace, package = _setup(tmp_path)
    args = ["list", "--workspace", str(workspace)]

    empty = cli_runner.invoke(cli, args, catch_exceptions=False)
    _install(cli_runner, workspace, package)
    listed = cli_runner.invoke(cli, args, catch_exceptions=False)

    assert "No packages installed" in empty.output
    assert "Installed 1 package(s):" in listed.output
    assert "pkg" in listed.output
    assert "0 file(s), 1 dir(s)" in listed.output


def test_save(tmp_path: Path, cli_runner: CliRunner) -> None:
    """Test save with and without workspace edits."""
    workspace, package = _setup(tmp_path)
    _install(cli_runner, workspace, package)
    args = ["save", "pkg", "--platform", "tool", "--workspace", str(workspace)]

    clean = cli_runner.invoke(cli, args, catch_exceptions=False)
    write_files(workspace, {".tool/rules/a.md": "# A, edited\n"})
    edited = cli_runner.invoke(cli, args, catch_exceptions=False)

    assert clean.exit_code == 0
    assert "No changes to save for pkg" in clean.output
    assert edited.exit_code == 0
    assert "✓ Saved 1 file(s)" in edited.output
    assert "rules/a.md" in edited.output
    assert (package / "rules" / "a.md").read_text(encoding="utf-8") == "# A, edited\n"


def test_uninstall(tmp_path: Path, cli_runner: CliRunner) -> None:
    """Test that uninstall removes the package's files."""
    workspace, package = _setup(tmp_path)
    _install(cli_runner, workspace, package)

    result = cli_runner.invoke(
        cli, ["uninstall", "pkg", "--workspace", str(workspace)], catch_exceptions=False
    )

    assert result.exit_code == 0
    assert "✓ Removed pkg" in result.output
    assert "Deleted 1 file(s)" in result.output
    assert not (workspace / ".tool" / "rules" / "a.md").exists()


def test_unknown_package_is_a_clean_error(tmp_path: Path, cli_runner: CliRunner) -> None:
    """Test that errors are shown without a traceback."""
    workspace, _ = _setup(tmp_path)

    result = cli_runner.invoke(
        cli, ["uninstall", "ghost", "--workspace", str(workspace)], catch_exceptions=False
    )

    assert result.exit_code == 1
    assert "Error: Package not installed: ghost" in result.output
    assert "Run 'agentpack list' to see installed packages." in result.output


def test_unknown_platform_is_a_clean_error(tmp_path: Path, cli_runner: CliRunner) -> None:
    """Test that selecting an undefined platform fails with a message."""
    workspace, package = _setup(tmp_path)

    result = cli_runner.invoke(
        cli,
        ["install", str(package), "--platform", "vim", "--workspace", str(workspace)],
        catch_exceptions=False,
    )

    assert result.exit_code == 1
    assert "Error: Unknown platform: vim" in result.output


def test_corrupt_ledger_suggests_repair(tmp_path: Path, cli_runner: CliRunner) -> None:
    """Test that an unreadable ledger names the file to fix."""
    workspace, _ = _setup(tmp_path)
    write_files(workspace, {".agentpack/agentpack.index.yml": "packages: [\n"})

    result = cli_runner.invoke(cli, ["list", "--workspace", str(workspace)])

    assert result.exit_code == 1
    assert "Error: Cannot parse ledger" in result.output
    assert "Repair or delete .agentpack/agentpack.index.yml" in result.output
