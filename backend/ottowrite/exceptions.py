"""Custom exception hierarchy for Ottowrite."""

from enum import Enum
from typing import Optional, Dict, Any


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Document errors
    DOCUMENT_NOT_FOUND = "DOCUMENT_NOT_FOUND"
    SNAPSHOT_NOT_FOUND = "SNAPSHOT_NOT_FOUND"

    # Branch errors
    BRANCH_NOT_FOUND = "BRANCH_NOT_FOUND"
    BRANCH_ALREADY_EXISTS = "BRANCH_ALREADY_EXISTS"
    COMMIT_NOT_FOUND = "COMMIT_NOT_FOUND"
    IMMUTABLE_COMMIT = "IMMUTABLE_COMMIT"

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Database errors
    DATABASE_ERROR = "DATABASE_ERROR"

    # Auth & rate limiting
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    RATE_LIMITED = "RATE_LIMITED"

    # Concurrency errors
    CONFLICT = "CONFLICT"
    AUTOSAVE_CONFLICT = "AUTOSAVE_CONFLICT"

    # Generic errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


class OttowriteException(Exception):
    """
    Base exception for all Ottowrite errors.

    Provides structured error responses with:
    - Human-readable message
    - Machine-readable error code
    - HTTP status code
    - Optional additional details
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for JSON response.

        Returns:
            Dictionary with error, message, and details fields
        """
        return {
            "error": self.error_code.value,
            "message": self.message,
            "details": self.details
        }


class DocumentNotFoundError(OttowriteException):
    """Document not found in database."""

    def __init__(self, doc_id: str):
        super().__init__(
            f"Document not found: {doc_id}",
            ErrorCode.DOCUMENT_NOT_FOUND,
            status_code=404,
            details={"doc_id": doc_id}
        )


class SnapshotNotFoundError(OttowriteException):
    """Autosave snapshot not found."""

    def __init__(self, snapshot_id: str):
        super().__init__(
            f"Snapshot not found: {snapshot_id}",
            ErrorCode.SNAPSHOT_NOT_FOUND,
            status_code=404,
            details={"snapshot_id": snapshot_id}
        )


class BranchNotFoundError(OttowriteException):
    """Branch not found in database."""

    def __init__(self, branch_id: str):
        super().__init__(
            f"Branch not found: {branch_id}",
            ErrorCode.BRANCH_NOT_FOUND,
            status_code=404,
            details={"branch_id": branch_id}
        )


class CommitNotFoundError(OttowriteException):
    """Commit not found in database."""

    def __init__(self, commit_id: str):
        super().__init__(
            f"Commit not found: {commit_id}",
            ErrorCode.COMMIT_NOT_FOUND,
            status_code=404,
            details={"commit_id": commit_id}
        )


class BranchAlreadyExistsError(OttowriteException):
    """A branch with this name already exists on the document."""

    def __init__(self, document_id: str, branch_name: str):
        super().__init__(
            f"Branch name already exists: {branch_name}",
            ErrorCode.BRANCH_ALREADY_EXISTS,
            status_code=409,
            details={"document_id": document_id, "branch_name": branch_name}
        )


class ImmutableCommitError(OttowriteException):
    """Raised when something tries to rewrite a stored commit."""

    def __init__(self, commit_id: str):
        super().__init__(
            f"Commits are immutable: {commit_id}",
            ErrorCode.IMMUTABLE_COMMIT,
            status_code=500,
            details={"commit_id": commit_id}
        )


class ValidationError(OttowriteException):
    """Validation failed for user input."""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(
            message,
            ErrorCode.VALIDATION_ERROR,
            status_code=400,
            details=details
        )


class AuthenticationError(OttowriteException):
    """Request lacks valid authentication credentials."""

    def __init__(self, message: str = "Invalid or missing authentication token"):
        super().__init__(
            message,
            ErrorCode.UNAUTHORIZED,
            status_code=401,
        )


class ForbiddenError(OttowriteException):
    """Authenticated user lacks permission for the requested action."""

    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(
            message,
            ErrorCode.FORBIDDEN,
            status_code=403,
        )


class ConflictError(OttowriteException):
    """Update conflicts with a concurrent modification."""

    def __init__(self, doc_id: str, message: str = "Document was modified by another session"):
        super().__init__(
            message,
            ErrorCode.CONFLICT,
            status_code=409,
            details={"doc_id": doc_id}
        )


class AutosaveConflictError(OttowriteException):
    """The client's base hash no longer matches the stored document.

    ``details`` carries everything the editor needs to show both versions:
    the server hash and the server's current html, structure, word count
    and modification time.
    """

    def __init__(self, doc_id: str, server_hash: str, document: Dict[str, Any]):
        super().__init__(
            "Document has been updated in another session.",
            ErrorCode.AUTOSAVE_CONFLICT,
            status_code=409,
            details={
                "status": "conflict",
                "doc_id": doc_id,
                "hash": server_hash,
                "document": document,
            }
        )


class DatabaseError(OttowriteException):
    """Database operation failed."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        details = {}
        if original_error:
            details["original_error"] = type(original_error).__name__

        super().__init__(
            message,
            ErrorCode.DATABASE_ERROR,
            status_code=500,
            details=details
        )


class RateLimitExceededError(OttowriteException):
    """Client exhausted its token bucket for this kind of request."""

    def __init__(self, message: str, retry_after: float, limit: int):
        super().__init__(
            message,
            ErrorCode.RATE_LIMITED,
            status_code=429,
            details={"retry_after": round(retry_after, 1), "limit": limit},
        )
