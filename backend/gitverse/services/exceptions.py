"""Custom exceptions for the analysis pipeline."""
from __future__ import annotations


class AnalysisError(Exception):
    """Base exception for analysis failures."""


class RepositoryNotFoundError(AnalysisError):
    """Raised when a repository id is unknown in the caller's scope."""

    def __init__(self, repository_id: str):
        super().__init__(f"Repository not found: {repository_id}")
        self.repository_id = repository_id


class ExtractionError(AnalysisError):
    """Raised when a git invocation fails outright (not a parse anomaly)."""

    def __init__(
        self,
        message: str,
        command: list[str] | None = None,
        returncode: int | None = None,
        stderr: str | None = None,
    ):
        super().__init__(message)
        self.command = command or []
        self.returncode = returncode
        self.stderr = stderr


class CloneError(ExtractionError):
    """Raised when the remote repository cannot be cloned."""


class AnalysisInProgressError(AnalysisError):
    """Raised when another analysis already holds the lock for the repository."""

    def __init__(self, repository_id: str):
        super().__init__(f"Analysis already running for repository {repository_id}")
        self.repository_id = repository_id
