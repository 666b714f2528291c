from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    CHAPTER_FETCH_FAILED = "CHAPTER_FETCH_FAILED"
    CHAPTER_NOT_FOUND = "CHAPTER_NOT_FOUND"
    INVALID_REFERENCE = "INVALID_REFERENCE"
    INVALID_INPUT = "INVALID_INPUT"
    SERMON_NOT_FOUND = "SERMON_NOT_FOUND"
    SYNC_IN_PROGRESS = "SYNC_IN_PROGRESS"
    SYNC_FAILED = "SYNC_FAILED"
    SYNC_NOT_CONFIGURED = "SYNC_NOT_CONFIGURED"


class MountBuilderError(Exception):
    """Raised for all expected failure conditions.

    Tool handlers let it propagate; server.py serialises it into the MCP
    error response so the caller receives a structured, user-visible message.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        suggestion: str,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.recoverable = recoverable

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "suggestion": self.suggestion,
                "recoverable": self.recoverable,
            }
        }


class ProviderError(MountBuilderError):
    """A content provider could not deliver a chapter.

    Carries the attempted (book, chapter, translation) for diagnostics.
    """

    def __init__(
        self,
        message: str,
        *,
        book: str,
        chapter: int,
        translation: str,
        code: ErrorCode = ErrorCode.CHAPTER_FETCH_FAILED,
        recoverable: bool = True,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            suggestion="Could not load chapter, try again or pick another translation.",
            recoverable=recoverable,
        )
        self.book = book
        self.chapter = chapter
        self.translation = translation


class SyncInProgressError(MountBuilderError):
    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.SYNC_IN_PROGRESS,
            message="Sync already in progress",
            suggestion="Wait for the running sync to finish before starting another.",
            recoverable=True,
        )


class RemoteStoreError(MountBuilderError):
    """The remote sermon store rejected a request or could not be reached."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(
            code=ErrorCode.SYNC_FAILED,
            message=message,
            suggestion="Check the sync API URL and token, then sync again.",
            recoverable=True,
        )
        self.status_code = status_code
