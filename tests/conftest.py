"""Pytest configuration and fixtures."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional, Sequence, Tuple

import pytest

from git_lfs_state.config import GitSettings
from git_lfs_state.exceptions import CommandLaunchError
from git_lfs_state.git.command import GitCommandRunner, ProcessOutput
from git_lfs_state.git.repository import GitLfsRepository
from git_lfs_state.logging import reset_warnings


@dataclass
class Call:
    """One recorded gateway invocation."""
    binary: str
    repository_root: str
    command: str
    parameters: List[str]
    files: List[str]

    @property
    def arguments(self) -> List[str]:
        return [*self.parameters, *self.files]


@dataclass
class Rule:
    command: str
    markers: Tuple[str, ...]
    output: ProcessOutput
    once: bool = False


@dataclass
class FakeGateway:
    """Scripted stand-in for the git binary.

    Rules match on the exact command string plus markers that must all be
    present among the parameters and files. The first matching rule wins;
    unmatched commands succeed with empty output.
    """
    calls: List[Call] = field(default_factory=list)
    rules: List[Rule] = field(default_factory=list)
    launch_error: bool = False

    def on(
        self,
        command: str,
        *markers: str,
        stdout: str = "",
        stderr: str = "",
        return_code: int = 0,
        once: bool = False,
    ) -> "FakeGateway":
        output = ProcessOutput(return_code=return_code, stdout=stdout.encode("utf-8"), stderr=stderr)
        self.rules.append(Rule(command, markers, output, once))
        return self

    def on_bytes(self, command: str, *markers: str, stdout: bytes = b"", return_code: int = 0) -> "FakeGateway":
        self.rules.append(Rule(command, markers, ProcessOutput(return_code, stdout, "")))
        return self

    def invoke(
        self,
        binary: str,
        repository_root: str,
        command: str,
        parameters: Sequence[str],
        files: Sequence[str],
    ) -> ProcessOutput:
        call = Call(binary, repository_root, command, list(parameters), list(files))
        self.calls.append(call)
        if self.launch_error:
            raise CommandLaunchError(f"Failed to launch '{binary}'")

        for rule in self.rules:
            if rule.command == command and all(marker in call.arguments for marker in rule.markers):
                if rule.once:
                    self.rules.remove(rule)
                return rule.output
        return ProcessOutput(return_code=0, stdout=b"", stderr="")

    def calls_for(self, command: str) -> List[Call]:
        return [call for call in self.calls if call.command == command]


class FakeClock:
    """Deterministic clock used in place of ``datetime.now``."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture(autouse=True)
def clear_one_time_warnings():
    """Make one-time warnings observable in every test."""
    reset_warnings()
    yield
    reset_warnings()


@pytest.fixture
def gateway():
    """Scripted git gateway."""
    return FakeGateway()


@pytest.fixture
def clock():
    """Deterministic clock."""
    return FakeClock()


@pytest.fixture
def settings():
    """Settings with a fixed lock user and no status branches."""
    return GitSettings(
        binary_path="git",
        lock_user="alice",
        using_lfs_locking=True,
        status_branches=[],
    )


@pytest.fixture
def repo_root(tmp_path):
    """Temporary working tree with a ``.git`` directory and some content."""
    root = tmp_path / "project"
    (root / ".git").mkdir(parents=True)
    (root / "Content" / "Maps").mkdir(parents=True)
    (root / "Content" / "Hero.uasset").write_bytes(b"hero")
    (root / "Content" / "Maps" / "Level.umap").write_bytes(b"level")
    (root / "Config").mkdir()
    (root / "Config" / "DefaultGame.ini").write_text("[Game]\n")
    return root


@pytest.fixture
def root(repo_root) -> str:
    """Canonical string form of the working tree root."""
    return repo_root.as_posix()


@pytest.fixture
def runner(settings, root, gateway):
    """Command runner wired to the scripted gateway."""
    return GitCommandRunner(settings, root, gateway)


@pytest.fixture
def repository(settings, root, gateway, clock):
    """Repository facade with ``.uasset`` and ``.umap`` lockable."""
    repository = GitLfsRepository(root, settings=settings, gateway=gateway, clock=clock)
    repository.lockable_types.types = [".uasset", ".umap"]
    return repository
