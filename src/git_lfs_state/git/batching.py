"""Split file lists into command-line sized batches."""

from typing import Iterator, List, Sequence, Tuple


def iter_batches(files: Sequence[str], batch_size: int) -> Iterator[List[str]]:
    """Yield consecutive chunks of at most ``batch_size`` files, preserving order."""
    if batch_size <= 0:
        raise ValueError("batch_size must be positive")
    for start in range(0, len(files), batch_size):
        yield list(files[start:start + batch_size])


def plan_commit_batches(files: Sequence[str], batch_size: int) -> List[Tuple[bool, List[str]]]:
    """Plan a multi-step commit as ``(amend, files)`` pairs.

    The first batch creates the commit, every following batch amends it.
    An empty file list still yields one (empty) initial batch so that a
    commit of everything already staged can go through.
    """
    batches = list(iter_batches(files, batch_size)) or [[]]
    return [(index > 0, batch) for index, batch in enumerate(batches)]
