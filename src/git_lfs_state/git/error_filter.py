"""Reclassify benign error lines as informational."""

from typing import Iterable

from ..logging import get_logger
from .models import CommandResult


logger = get_logger(__name__)


def remove_redundant_errors(result: CommandResult, error_filter: str) -> CommandResult:
    """Move error lines containing ``error_filter`` into the info messages.

    If that leaves a failed command without any error line, the command is
    considered successful.
    """
    redundant = [line for line in result.error_messages if error_filter in line]
    if not redundant:
        return result

    result.info_messages.extend(redundant)
    result.error_messages = [line for line in result.error_messages if error_filter not in line]
    logger.debug("Reclassified redundant errors", count=len(redundant), error_filter=error_filter)

    if not result.error_messages and not result.success:
        result.success = True
    return result


def remove_all_redundant_errors(result: CommandResult, error_filters: Iterable[str]) -> CommandResult:
    """Apply several benign-error filters in turn."""
    for error_filter in error_filters:
        remove_redundant_errors(result, error_filter)
    return result
