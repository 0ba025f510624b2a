"""Parsing of ``git log --name-status`` history and ``git ls-tree --long`` blobs.

Example log::

    commit 97a4e7626681895e073aaefd68b8ac087db81b0b
    Author: Sebastien Rombauts <sebastien.rombauts@gmail.com>
    Date:   1431718347 +0200

        Another commit used to test History

         - with many lines

    M	Content/Blueprints/Blueprint_CeilingLight.uasset
    R100	Content/Textures/T_Concrete_Poured_D.uasset	Content/Textures/T_Concrete_Poured_D2.uasset

The log lists the most recent commit first.
"""

from datetime import datetime
from typing import List, Optional, Tuple

from ..core.constants import SHORT_COMMIT_ID_LENGTH
from ..logging import get_logger, warn_once
from .command import GitCommandRunner
from .models import CommandResult, Revision
from .paths import normalize_path, relative_filenames


logger = get_logger(__name__)

COMMIT_MARKER = "commit "
AUTHOR_MARKER = "Author: "
DATE_MARKER = "Date:   "
MERGE_MARKER = "Merge: "
MESSAGE_INDENT = "    "
BRANCH_ACTION = "branch"

# Keywords understood by history front ends ("add", "delete", "branch"; everything else reads as an edit)
LOG_STATUS_ACTIONS = {
    ' ': "unmodified",
    'M': "modified",
    'A': "add",
    'D': "delete",
    'R': BRANCH_ACTION,
    'C': BRANCH_ACTION,
    'T': "type changed",
    'U': "unmerged",
    'X': "unknown",
    'B': "broken pairing",
}

LOG_PARAMETERS = ["--follow", "--date=raw", "--name-status", "--pretty=medium"]


def log_status_to_action(status: str) -> str:
    return LOG_STATUS_ACTIONS.get(status, "")


def _start_revision(line: str) -> Revision:
    fields = line[len(COMMIT_MARKER):].split()
    commit_id = fields[0] if fields else ""
    short_commit_id = commit_id[:SHORT_COMMIT_ID_LENGTH]
    try:
        commit_id_number = int(short_commit_id, 16)
    except ValueError:
        commit_id_number = 0
    return Revision(commit_id=commit_id, short_commit_id=short_commit_id, commit_id_number=commit_id_number)


def _parse_date(text: str) -> Optional[datetime]:
    fields = text.split()
    if not fields:
        return None
    try:
        return datetime.fromtimestamp(int(fields[0]))
    except (ValueError, OverflowError, OSError):
        return None


def parse_log_results(lines: List[str]) -> List[Revision]:
    """Decode a multi-commit log into revisions, newest first.

    Revision numbers count up from the oldest commit (1) to the newest.
    A rename or copy points to the next older revision as its source.
    """
    history: List[Revision] = []
    current: Optional[Revision] = None
    message_lines: List[str] = []

    def finish() -> None:
        if current is not None:
            current.description = "\n".join(message_lines)
            history.append(current)

    for line in lines:
        if line.startswith(COMMIT_MARKER):
            finish()
            current = _start_revision(line)
            message_lines = []
            continue
        if current is None or not line:
            continue
        if line.startswith(AUTHOR_MARKER):
            user_name_email = line[len(AUTHOR_MARKER):]
            email_index = user_name_email.rfind('<')
            if email_index != -1:
                user_name_email = user_name_email[:email_index]
            current.user_name = user_name_email.strip()
        elif line.startswith(DATE_MARKER):
            current.date = _parse_date(line[len(DATE_MARKER):])
        elif line.startswith(MERGE_MARKER):
            continue
        elif line.startswith(MESSAGE_INDENT):
            message_lines.append(line[len(MESSAGE_INDENT):])
        else:
            # File line: status letter (with optional similarity score), then tab separated paths
            current.action = log_status_to_action(line[0])
            tab_index = line.rfind('\t')
            if tab_index != -1:
                current.filename = line[tab_index + 1:]
    finish()

    count = len(history)
    for index, revision in enumerate(history):
        revision.revision_number = count - index
        if revision.action == BRANCH_ACTION and index < count - 1:
            revision.branch_source = history[index + 1]
    return history


def parse_ls_tree(lines: List[str]) -> Optional[Tuple[str, int]]:
    """Blob hash and size from ``git ls-tree --long``.

    Example::

        100644 blob a14347dc3b589b78fb19ba62a7e3982f343718bc   70731	Content/Blueprints/BP_Test.uasset
    """
    if not lines:
        return None
    head = lines[0].partition('\t')[0]
    fields = head.split()
    if len(fields) < 4:
        return None
    try:
        size = int(fields[3])
    except ValueError:
        size = 0
    return fields[2], size


def run_get_history(
    runner: GitCommandRunner,
    filename: str,
    merge_conflict: bool = False,
    max_count: int = 250,
) -> Tuple[CommandResult, List[Revision]]:
    """Run ``git log`` on one file and annotate each revision with its blob.

    For a conflicted file only the tip of MERGE_HEAD is listed.
    """
    parameters = list(LOG_PARAMETERS)
    if merge_conflict:
        parameters.extend(["MERGE_HEAD", "--max-count=1"])
    else:
        parameters.append(f"--max-count={max_count}")
    parameters.append("--")

    result = runner.run("log", parameters, [filename])
    history = parse_log_results(result.info_messages) if result.success else []

    for revision in history:
        blob = runner.run("ls-tree", ["--long", revision.revision, "--"], [revision.filename])
        if blob.success:
            parsed = parse_ls_tree(blob.info_messages)
            if parsed is not None:
                revision.file_hash, revision.file_size = parsed
        else:
            result.error_messages.extend(blob.error_messages)
            warn_once(
                "history-ls-tree",
                "Could not read blob information for a revision",
                revision=revision.short_commit_id,
                filename=revision.filename,
            )
        revision.path_to_repo_root = runner.repository_root

    logger.debug("History parsed", filename=filename, revisions=len(history))
    return result, history


def get_origin_revision_on_branch(
    runner: GitCommandRunner,
    filename: str,
    branch_name: str,
) -> Tuple[CommandResult, Optional[Revision]]:
    """Tip revision of ``branch_name``, reported against ``filename``."""
    result = runner.run("show", [branch_name, "--date=raw", "--pretty=medium"])
    if not result.success:
        return result, None

    history = parse_log_results(result.info_messages)
    if not history:
        return result, None

    revision = history[0]
    relative = relative_filenames([filename], runner.repository_root)
    revision.filename = relative[0] if relative else normalize_path(filename).lstrip("/")
    revision.path_to_repo_root = runner.repository_root
    return result, revision
