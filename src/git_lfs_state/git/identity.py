"""Repository identity: git version, user, branch, commit and remote URL."""

from typing import Optional, Tuple

from ..logging import get_logger
from .command import GitCommandRunner
from .models import GitVersion


logger = get_logger(__name__)

VERSION_PREFIX = "git version"
DETACHED_HEAD_PREFIX = "HEAD detached at "


def parse_git_version(version_string: str) -> GitVersion:
    """Parse ``git version 2.31.1.vfs.0.3`` style output.

    Unparseable input yields an all-zero version.
    """
    version = GitVersion()
    text = version_string.strip()
    if text.startswith(VERSION_PREFIX):
        text = text[len(VERSION_PREFIX):].strip()
    # "2.39.2 (Apple Git-143)"
    text = text.split(" ")[0] if text else ""
    parts = [part for part in text.split(".") if part]
    if len(parts) < 3 or not all(part.isdigit() for part in parts[:3]):
        return version

    version.major, version.minor, version.patch = (int(part) for part in parts[:3])
    if len(parts) >= 5 and not parts[3].isdigit():
        version.is_fork = True
        version.fork = parts[3]
        version.fork_major = _to_int(parts[4])
        if len(parts) >= 6:
            version.fork_minor = _to_int(parts[5])
        if len(parts) >= 7:
            version.fork_patch = _to_int(parts[6])
    return version


def _to_int(text: str) -> int:
    return int(text) if text.isdigit() else 0


def check_git_availability(runner: GitCommandRunner) -> Optional[GitVersion]:
    """Version of the configured git binary, or None when it is unusable."""
    success, results, errors = runner.run_raw("version", repository_root="")
    if not success or not results.startswith(VERSION_PREFIX):
        logger.error("Git binary not available", binary=runner.binary_path, errors=errors)
        return None

    version = parse_git_version(results)
    logger.info(
        "Git version",
        major=version.major,
        minor=version.minor,
        patch=version.patch,
        fork=version.fork or None,
    )
    return version


def get_user_config(runner: GitCommandRunner) -> Tuple[str, str]:
    """``(user.name, user.email)``; missing values are empty strings."""
    name = runner.run_internal("config", ["user.name"])
    email = runner.run_internal("config", ["user.email"])
    user_name = name.info_messages[0] if name.success and name.info_messages else ""
    user_email = email.info_messages[0] if email.success and email.info_messages else ""
    return user_name, user_email


def get_branch_name(runner: GitCommandRunner) -> Optional[str]:
    """Current branch, or ``HEAD detached at <hash>`` outside any branch."""
    result = runner.run("symbolic-ref", ["--short", "--quiet", "HEAD"])
    if result.success and result.info_messages:
        return result.info_messages[0]

    result = runner.run("log", ["-1", "--format=%h"])
    if result.success and result.info_messages:
        return DETACHED_HEAD_PREFIX + result.info_messages[0]
    return None


def get_commit_info(runner: GitCommandRunner) -> Optional[Tuple[str, str]]:
    """``(commit id, summary)`` of HEAD."""
    result = runner.run_internal("log", ["-1", "--format=%H %s"])
    if not result.success or not result.info_messages:
        return None
    line = result.info_messages[0]
    return line[:40], line[41:]


def get_remote_url(runner: GitCommandRunner) -> Optional[str]:
    result = runner.run_internal("remote", ["get-url", "origin"])
    if result.success and result.info_messages:
        return result.info_messages[0]
    return None
