"""Custom exceptions for the git LFS state engine."""

from typing import Any, Dict, Optional


class GitLfsStateError(Exception):
    """Base exception for git LFS state errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None, cause: Optional[Exception] = None):
        """Initialize with message, optional details, and cause."""
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        """String representation with details."""
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message

    @classmethod
    def from_exception(cls, message: str, cause: Exception, details: Optional[Dict[str, Any]] = None):
        """Create exception with proper chaining from another exception."""
        return cls(message, details, cause)


class CommandLaunchError(GitLfsStateError):
    """Raised when the version-control binary cannot be launched at all."""
    pass


class RepositoryError(GitLfsStateError):
    """Exception raised for repository-related errors."""
    pass


class ConfigurationError(GitLfsStateError):
    """Exception raised for configuration-related errors."""
    pass
