"""
Error taxonomy for the blogging lab.

Every error carries an optional ``context`` dict describing the offending
entity or fields. The HTTP layer maps each class to a status code.
"""
from typing import Any, Dict, Optional


class BlogLabError(Exception):
    """Base exception for all blogging lab errors."""

    status_code = 500

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)

    def __str__(self) -> str:
        if not self.context:
            return self.message
        context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
        return f"{self.message} ({context_str})"


class ValidationError(BlogLabError):
    """Raised when input is malformed or a required field is missing."""

    status_code = 422


class NotFoundError(BlogLabError):
    """Raised when a referenced entity does not exist."""

    status_code = 404


class ConflictError(BlogLabError):
    """Raised when a uniqueness constraint would be violated."""

    status_code = 409


class InvalidNestingError(BlogLabError):
    """Raised when a reply targets another reply."""

    status_code = 400


class StoreUnavailableError(BlogLabError):
    """Raised when the backing store or the cache cannot be reached."""

    status_code = 503


class RateLimitExceededError(BlogLabError):
    """Raised when a caller exceeds the write rate limit."""

    status_code = 429
