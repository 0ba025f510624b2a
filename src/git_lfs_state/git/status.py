"""Parsing of ``git status --porcelain`` and ``git ls-files --unmerged`` output.

Example status lines::

    M  Content/Textures/T_Perlin_Noise_M.uasset
    R  Content/Textures/T_Perlin_Noise_M.uasset -> Content/Textures/T_Perlin_Noise_M2.uasset
    ?? Content/Materials/M_Basic_Wall.uasset
    !! BasicCode.sln

The first character is the index state, the second the working tree state:
' ' unmodified, 'M' modified, 'A' added, 'D' deleted, 'R' renamed,
'C' copied, 'U' updated but unmerged, '?' untracked, '!' ignored.
"""

from typing import List, NamedTuple, Optional

from ..core.constants import RENAME_ARROW, STAGED_CHANGELIST, STATUS_PREFIX_LENGTH, WORKING_CHANGELIST
from .models import ConflictInfo, FileState, TreeState


class StatusParseResult(NamedTuple):
    file_state: FileState
    tree_state: TreeState


def _trim_quotes(text: str) -> str:
    if text.startswith('"'):
        text = text[1:]
    if text.endswith('"'):
        text = text[:-1]
    return text


def filename_from_status(line: str) -> str:
    """Relative filename of a status line; for a rename, the destination."""
    arrow = f" {RENAME_ARROW} "
    rename_index = line.rfind(arrow)
    if rename_index != -1:
        result = line[rename_index + len(arrow):]
    else:
        result = line[STATUS_PREFIX_LENGTH:]
    return _trim_quotes(result.strip())


def parse_status_line(line: str) -> StatusParseResult:
    """Classify a porcelain status line into file and tree states.

    The checks run in a fixed order and the first match wins; conflicts are
    detected before anything else so that 'AA' and 'DD' are not mistaken
    for plain additions or deletions.
    """
    if len(line) < 2:
        return StatusParseResult(FileState.UNKNOWN, TreeState.UNSET)

    index_state = line[0]
    wcopy_state = line[1]

    if (
        index_state == 'U' or wcopy_state == 'U'
        or (index_state == 'A' and wcopy_state == 'A')
        or (index_state == 'D' and wcopy_state == 'D')
    ):
        return StatusParseResult(FileState.UNMERGED, TreeState.WORKING)

    tree_state = TreeState.UNSET
    if index_state == ' ':
        tree_state = TreeState.WORKING
    elif wcopy_state == ' ':
        tree_state = TreeState.STAGED

    if index_state == '?' or wcopy_state == '?':
        return StatusParseResult(FileState.UNKNOWN, TreeState.UNTRACKED)
    if index_state == '!' or wcopy_state == '!':
        return StatusParseResult(FileState.UNKNOWN, TreeState.IGNORED)

    if index_state == 'A':
        file_state = FileState.ADDED
    elif index_state == 'D':
        file_state = FileState.DELETED
    elif wcopy_state == 'D':
        file_state = FileState.MISSING
    elif index_state == 'M' or wcopy_state == 'M':
        file_state = FileState.MODIFIED
    elif index_state == 'R':
        file_state = FileState.RENAMED
    elif index_state == 'C':
        file_state = FileState.COPIED
    else:
        # An unmodified file never yields a status line
        file_state = FileState.UNKNOWN

    return StatusParseResult(file_state, tree_state)


def classify_changelist(line: str) -> Optional[str]:
    """Staged when the index has a change, Working when only the tree has one."""
    if len(line) < 2 or line[0] == '!':
        return None
    if line[0] == '?':
        return WORKING_CHANGELIST
    if not line[0].isspace():
        return STAGED_CHANGELIST
    if not line[1].isspace():
        return WORKING_CHANGELIST
    return None


def _parse_unmerged_record(record: str):
    head, _, filename = record.partition("\t")
    fields = head.split()
    blob_id = fields[1] if len(fields) >= 2 else ""
    return blob_id, filename


def parse_conflict_status(lines: List[str]) -> Optional[ConflictInfo]:
    """Extract merge base and other-branch blobs from ``ls-files --unmerged``.

    Example output::

        100644 d9b33098273547b57c0af314136f35b494e16dcb 1	Content/Blueprints/BP_Test.uasset
        100644 a14347dc3b589b78fb19ba62a7e3982f343718bc 2	Content/Blueprints/BP_Test.uasset
        100644 f3137a7167c840847cd7bd2bf07eefbfb2d9bcd2 3	Content/Blueprints/BP_Test.uasset

    Stage 1 is the common ancestor, 2 the current branch, 3 the other branch.
    """
    if len(lines) != 3:
        return None
    base_revision, base_file = _parse_unmerged_record(lines[0])
    remote_revision, remote_file = _parse_unmerged_record(lines[2])
    return ConflictInfo(
        base_file=base_file,
        base_revision=base_revision,
        remote_file=remote_file,
        remote_revision=remote_revision,
    )
