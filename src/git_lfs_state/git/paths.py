"""Path helpers: canonical absolute paths, repository roots and submodules."""

import os
import posixpath
from typing import Iterable, List, Tuple

from ..logging import get_logger


logger = get_logger(__name__)


def normalize_path(path: str) -> str:
    """Canonical form used as cache key: forward slashes, no trailing slash."""
    if not path:
        return path
    return posixpath.normpath(path.replace("\\", "/"))


def absolute_path(repository_root: str, relative: str) -> str:
    """Absolute canonical path of a repository-relative (or absolute) path."""
    relative = relative.replace("\\", "/")
    if posixpath.isabs(relative) or (len(relative) > 1 and relative[1] == ":"):
        return normalize_path(relative)
    return normalize_path(f"{repository_root.rstrip('/')}/{relative}")


def absolute_filenames(files: Iterable[str], relative_to: str) -> List[str]:
    return [absolute_path(relative_to, name) for name in files]


def relative_filenames(files: Iterable[str], relative_to: str) -> List[str]:
    """Paths relative to ``relative_to``; files outside of it are dropped."""
    root = normalize_path(relative_to).rstrip("/") + "/"
    relatives = []
    for name in files:
        normalized = normalize_path(name)
        if normalized.startswith(root):
            relatives.append(normalized[len(root):])
        elif not posixpath.isabs(normalized):
            relatives.append(normalized)
    return relatives


def is_under(path: str, root: str) -> bool:
    normalized_root = normalize_path(root).rstrip("/")
    normalized = normalize_path(path)
    return normalized == normalized_root or normalized.startswith(normalized_root + "/")


def _has_git_entry(directory: str) -> bool:
    git_path = os.path.join(directory, ".git")
    return os.path.isdir(git_path) or os.path.isfile(git_path)


def find_root_directory(path: str) -> Tuple[bool, str]:
    """Walk upward from ``path`` looking for a ``.git`` directory or file.

    Returns ``(found, root)``; when nothing is found ``root`` is the input path.
    """
    candidate = normalize_path(path).rstrip("/") or "/"
    while candidate:
        if _has_git_entry(candidate):
            return True, candidate
        parent = posixpath.dirname(candidate)
        if parent == candidate:
            break
        candidate = parent
    return False, path


def change_repository_root_if_submodule(files: List[str], repository_root: str) -> Tuple[str, List[str]]:
    """Use the nested repository of the files when they all live in one.

    Files that are not inside any repository are dropped from the returned
    list. Files spread over different nested repositories keep the given
    root.
    """
    root = normalize_path(repository_root)
    selected_root = root
    kept: List[str] = []

    for file_path in files:
        current = normalize_path(file_path)
        included = True
        while current != root:
            parent = posixpath.dirname(current)
            if parent == current or not parent:
                logger.warning("File is not inside a git repository", file=file_path)
                included = False
                break
            current = parent
            if _has_git_entry(current):
                if selected_root != root and selected_root != current:
                    logger.error("Selected files belong to different submodules")
                    return repository_root, list(files)
                selected_root = current
                break
        if included:
            kept.append(file_path)

    return selected_root, kept
