"""Tests for command execution, batching and output shaping."""

import pytest

from git_lfs_state.config import GitSettings
from git_lfs_state.exceptions import CommandLaunchError
from git_lfs_state.git.batching import iter_batches, plan_commit_batches
from git_lfs_state.git.command import GitCommandRunner, GitPythonGateway, split_lines


class TestBatching:
    """Test file list batching."""

    def test_iter_batches_sizes(self):
        """Test 120 files split into 50/50/20 in order."""
        files = [f"file{i}.txt" for i in range(120)]

        batches = list(iter_batches(files, 50))

        assert [len(batch) for batch in batches] == [50, 50, 20]
        assert [name for batch in batches for name in batch] == files

    def test_iter_batches_rejects_non_positive_size(self):
        with pytest.raises(ValueError):
            list(iter_batches(["a"], 0))

    def test_plan_commit_batches(self):
        """Test only the first batch creates the commit."""
        plan = plan_commit_batches([f"f{i}" for i in range(120)], 50)

        assert [amend for amend, _ in plan] == [False, True, True]

    def test_plan_commit_batches_without_files(self):
        assert plan_commit_batches([], 50) == [(False, [])]


class TestSplitLines:
    """Test output line splitting."""

    def test_keeps_leading_spaces_and_drops_empty_lines(self):
        text = " M Content/Hero.uasset\r\n\n    message line\n"

        assert split_lines(text) == [" M Content/Hero.uasset", "    message line"]


class TestGitCommandRunner:
    """Test GitCommandRunner class."""

    def test_arguments_reach_gateway(self, runner, gateway, root):
        """Test command, parameters and files are forwarded in the repository."""
        runner.run("log", ["-1"], ["Content/Hero.uasset"])

        call = gateway.calls[0]
        assert call.binary == "git"
        assert call.repository_root == root
        assert call.command == "log"
        assert call.parameters == ["-1"]
        assert call.files == ["Content/Hero.uasset"]

    def test_stderr_on_success_becomes_info(self, runner, gateway):
        """Test progress text written to stderr by a successful command is informational."""
        gateway.on("fetch", stdout="", stderr="From origin\n * branch main\n")

        result = runner.run("fetch")

        assert result.success
        assert result.info_messages == ["From origin", " * branch main"]
        assert result.error_messages == []

    def test_failure_keeps_stderr_as_errors(self, runner, gateway):
        gateway.on("status", stderr="fatal: not a git repository\n", return_code=128)

        result = runner.run("status")

        assert not result.success
        assert result.error_messages == ["fatal: not a git repository"]

    def test_expected_return_code(self, runner, gateway):
        """Test a non-zero return code can be the expected one."""
        gateway.on("diff", stdout="a.txt\n", return_code=1)

        success, results, _ = runner.run_raw("diff", ["--quiet"], expected_return_code=1)

        assert success
        assert results == "a.txt\n"

    def test_launch_failure(self, runner, gateway):
        """Test a binary that cannot be launched yields a failed, empty result."""
        gateway.launch_error = True

        result = runner.run("status")

        assert not result.success
        assert result.info_messages == []
        assert result.error_messages

    def test_run_batches_large_file_lists(self, runner, gateway):
        """Test more than 50 files are split into several invocations."""
        gateway.on("add", stdout="ok\n")
        files = [f"Content/File{i}.uasset" for i in range(120)]

        result = runner.run("add", [], files)

        assert [len(call.files) for call in gateway.calls] == [50, 50, 20]
        assert result.success
        assert result.info_messages == ["ok", "ok", "ok"]

    def test_batch_failure_fails_whole_command(self, runner, gateway):
        """Test batch success is AND-ed while all output is kept."""
        gateway.on("add", "Content/File60.uasset", stderr="bad file\n", return_code=1)
        files = [f"Content/File{i}.uasset" for i in range(120)]

        result = runner.run("add", [], files)

        assert not result.success
        assert result.error_messages == ["bad file"]
        assert len(gateway.calls) == 3

    def test_run_commit_by_batches(self, runner, gateway):
        """Test one initial commit followed by two amends for 120 files."""
        files = [f"Content/File{i}.uasset" for i in range(120)]

        result = runner.run_commit(["-m", "Import"], files)

        commits = gateway.calls_for("commit")
        assert result.success
        assert len(gateway.calls_for("add")) == 3
        assert all(call.parameters == ["-A"] for call in gateway.calls_for("add"))
        assert [call.parameters for call in commits] == [
            ["-m", "Import"],
            ["-m", "Import", "--amend"],
            ["-m", "Import", "--amend"],
        ]

    def test_run_lfs_through_git(self, runner, gateway):
        runner.run_lfs("locks", ["--json"])

        assert gateway.calls[0].binary == "git"
        assert gateway.calls[0].command == "lfs locks"

    def test_run_lfs_standalone_binary(self, settings, root, gateway):
        """Test a configured git-lfs binary is called with the bare command."""
        settings.lfs_binary_path = "/usr/local/bin/git-lfs"
        runner = GitCommandRunner(settings, root, gateway)

        runner.run_lfs("locks")

        assert gateway.calls[0].binary == "/usr/local/bin/git-lfs"
        assert gateway.calls[0].command == "locks"

    def test_dump_to_file_writes_bytes(self, runner, gateway, tmp_path):
        """Test binary content is written untouched."""
        payload = b"\x00\x01binary\r\n\xff"
        gateway.on_bytes("cat-file", "HEAD:Content/Hero.uasset", stdout=payload)
        output = tmp_path / "Hero.uasset"

        assert runner.dump_to_file("HEAD:Content/Hero.uasset", str(output))
        assert output.read_bytes() == payload
        assert gateway.calls[0].parameters == ["--filters", "HEAD:Content/Hero.uasset"]

    def test_dump_to_file_failure(self, runner, gateway, tmp_path):
        gateway.on("cat-file", stderr="fatal: path does not exist", return_code=128)
        output = tmp_path / "missing.uasset"

        assert not runner.dump_to_file("HEAD:missing.uasset", str(output))
        assert not output.exists()


class TestGitPythonGateway:
    """Test process launch through GitPython."""

    @pytest.fixture
    def not_executable(self, tmp_path):
        binary = tmp_path / "git"
        binary.write_text("#!/bin/sh\nexit 0\n")
        binary.chmod(0o644)
        return str(binary)

    def test_binary_not_executable_raises_launch_error(self, not_executable, root):
        with pytest.raises(CommandLaunchError):
            GitPythonGateway().invoke(not_executable, root, "status", [], [])

    def test_binary_not_executable_is_a_failed_result(self, not_executable, root):
        """Test a binary that exists but cannot run yields a failed, empty result."""
        runner = GitCommandRunner(GitSettings(_env_file=None, binary_path=not_executable), root)

        result = runner.run_internal("status")

        assert not result.success
        assert result.info_messages == []
        assert result.error_messages

    def test_missing_binary_is_a_failed_result(self, tmp_path, root):
        runner = GitCommandRunner(GitSettings(_env_file=None, binary_path=str(tmp_path / "no-git")), root)

        result = runner.run_internal("status")

        assert not result.success
        assert result.info_messages == []
