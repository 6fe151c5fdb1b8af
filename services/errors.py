"""Exception hierarchy for the interview engine."""
from __future__ import annotations

USER_FACING_FAILURE = "We couldn't continue this interview session."


class InterviewEngineError(RuntimeError):
    """Base error raised by the interview engine."""

    retryable = False

    @property
    def user_message(self) -> str:
        return USER_FACING_FAILURE


class SessionNotFoundError(InterviewEngineError):
    """Raised when a session id has no stored state."""


class SessionCompletedError(InterviewEngineError):
    """Raised when a turn is submitted to a completed session."""


class SessionConflictError(InterviewEngineError):
    """Raised when a save keeps losing the optimistic version race."""

    retryable = True


class TreeCorruptionError(InterviewEngineError, ValueError):
    """Raised when a loaded tree breaks the parent/child or path invariants."""


class MalformedAnalysisError(InterviewEngineError, ValueError):
    """Raised when a turn analysis lacks fields the grader requires."""


__all__ = [
    "USER_FACING_FAILURE",
    "InterviewEngineError",
    "SessionNotFoundError",
    "SessionCompletedError",
    "SessionConflictError",
    "TreeCorruptionError",
    "MalformedAnalysisError",
]
