"""Invocation of the git / git-lfs binaries and line-oriented result handling."""

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, Tuple

from git import Git
from git.exc import GitCommandNotFound

from ..config import GitSettings
from ..exceptions import CommandLaunchError
from ..logging import get_logger
from .batching import iter_batches, plan_commit_batches
from .models import CommandResult


logger = get_logger(__name__)


@dataclass
class ProcessOutput:
    """Raw outcome of one process: exit status, stdout bytes and stderr text."""
    return_code: int
    stdout: bytes
    stderr: str

    @property
    def stdout_text(self) -> str:
        return self.stdout.decode("utf-8", errors="replace")


class CommandGateway(Protocol):
    """Narrow synchronous boundary to the version-control binary."""

    def invoke(
        self,
        binary: str,
        repository_root: str,
        command: str,
        parameters: Sequence[str],
        files: Sequence[str],
    ) -> ProcessOutput:
        ...


class GitPythonGateway:
    """Gateway running commands through GitPython's process execution.

    The call blocks until the process exits; no timeout is enforced.
    """

    def invoke(
        self,
        binary: str,
        repository_root: str,
        command: str,
        parameters: Sequence[str],
        files: Sequence[str],
    ) -> ProcessOutput:
        args = [binary, *command.split(), *parameters, *files]
        try:
            status, stdout, stderr = Git(repository_root or None).execute(
                args,
                with_extended_output=True,
                with_exceptions=False,
                stdout_as_string=False,
                strip_newline_in_stdout=False,
            )
        except (GitCommandNotFound, OSError) as e:
            raise CommandLaunchError.from_exception(
                f"Failed to launch '{binary}'", e, details={"command": command}
            )
        if isinstance(stderr, bytes):
            stderr = stderr.decode("utf-8", errors="replace")
        return ProcessOutput(return_code=status, stdout=stdout or b"", stderr=stderr or "")


def split_lines(text: str) -> List[str]:
    """Split command output into non-empty lines, keeping leading spaces."""
    lines = []
    for line in text.split("\n"):
        line = line.rstrip("\r")
        if line:
            lines.append(line)
    return lines


class GitCommandRunner:
    """Runs git commands for one repository and shapes their output."""

    def __init__(self, settings: GitSettings, repository_root: str, gateway: Optional[CommandGateway] = None):
        self.settings = settings
        self.repository_root = repository_root
        self.gateway = gateway or GitPythonGateway()

    @property
    def binary_path(self) -> str:
        return self.settings.binary_path

    def run_raw(
        self,
        command: str,
        parameters: Sequence[str] = (),
        files: Sequence[str] = (),
        expected_return_code: int = 0,
        binary: Optional[str] = None,
        repository_root: Optional[str] = None,
    ) -> Tuple[bool, str, str]:
        """Run one command and return ``(success, stdout, stderr)``.

        A successful command that wrote to stderr (progress text) gets that
        text moved into stdout.
        """
        binary = binary or self.binary_path
        root = self.repository_root if repository_root is None else repository_root
        logger.debug("Running git command", command=command, parameters=list(parameters), files=len(files))
        try:
            output = self.gateway.invoke(binary, root, command, list(parameters), list(files))
        except CommandLaunchError as e:
            logger.error("Command launch failed", command=command, binary=binary, error=str(e))
            return False, "", str(e)

        results = output.stdout_text
        errors = output.stderr
        success = output.return_code == expected_return_code
        if not success:
            logger.warning(
                "Command returned unexpected code",
                command=command,
                return_code=output.return_code,
                stderr=errors,
            )
        elif errors:
            results = results + errors
            errors = ""
        return success, results, errors

    def run_internal(
        self,
        command: str,
        parameters: Sequence[str] = (),
        files: Sequence[str] = (),
        binary: Optional[str] = None,
        repository_root: Optional[str] = None,
    ) -> CommandResult:
        """Run one command without batching and split its output into lines."""
        success, results, errors = self.run_raw(
            command, parameters, files, binary=binary, repository_root=repository_root
        )
        return CommandResult(
            success=success,
            info_messages=split_lines(results),
            error_messages=split_lines(errors),
        )

    def run(
        self,
        command: str,
        parameters: Sequence[str] = (),
        files: Sequence[str] = (),
        binary: Optional[str] = None,
        repository_root: Optional[str] = None,
    ) -> CommandResult:
        """Run a command, batching the files to respect command-line limits."""
        batch_size = self.settings.max_files_per_batch
        if len(files) <= batch_size:
            return self.run_internal(command, parameters, files, binary=binary, repository_root=repository_root)

        result = CommandResult()
        for batch in iter_batches(files, batch_size):
            result.merge(self.run_internal(command, parameters, batch, binary=binary, repository_root=repository_root))
        return result

    def run_lfs(
        self,
        command: str,
        parameters: Sequence[str] = (),
        files: Sequence[str] = (),
        repository_root: Optional[str] = None,
    ) -> CommandResult:
        """Run a Git LFS command with the standalone binary when one is configured."""
        if self.settings.lfs_binary_path:
            return self.run(
                command, parameters, files, binary=self.settings.lfs_binary_path, repository_root=repository_root
            )
        return self.run(f"lfs {command}", parameters, files, repository_root=repository_root)

    def run_commit(self, parameters: Sequence[str], files: Sequence[str]) -> CommandResult:
        """Stage and commit files by batches: one initial commit, then amends."""
        result = CommandResult()
        for amend, batch in plan_commit_batches(files, self.settings.max_files_per_batch):
            result.merge(self.run_internal("add", ["-A"], batch))
            commit_parameters = [*parameters, "--amend"] if amend else list(parameters)
            result.merge(self.run_internal("commit", commit_parameters, batch))
        return result

    def dump_to_file(self, parameter: str, dump_filename: str) -> bool:
        """Write the content of ``rev:path`` (after smudge filters) into a file."""
        try:
            output = self.gateway.invoke(
                self.binary_path, self.repository_root, "cat-file", ["--filters", parameter], []
            )
        except CommandLaunchError as e:
            logger.error("Failed to launch 'git cat-file'", error=str(e))
            return False

        if output.return_code != 0:
            logger.error("DumpToFile failed", parameter=parameter, return_code=output.return_code, stderr=output.stderr)
            return False
        try:
            Path(dump_filename).write_bytes(output.stdout)
        except OSError as e:
            logger.error("Could not write dump file", filename=dump_filename, error=str(e))
            return False
        logger.info("Wrote dump file", filename=dump_filename, size=len(output.stdout))
        return True
