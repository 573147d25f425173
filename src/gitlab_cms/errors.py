"""Exception hierarchy for the GitLab content backend.

Every error raised by this package derives from ``GitLabBackendError``, so
callers can catch the whole family at once. None of them are retried or
recovered from inside the package.
"""

import typing as tp


class GitLabBackendError(Exception):
    """Base exception for all gitlab-cms errors."""


class ConfigurationError(GitLabBackendError):
    """Raised when the backend configuration cannot be used."""


class AuthorizationError(GitLabBackendError):
    """Raised when the authenticated user may not write to the project."""


class MalformedResponseError(GitLabBackendError):
    """Raised when a response lacks usable pagination metadata."""


class NavigationError(GitLabBackendError):
    """Raised when a cursor is asked for an action it does not offer."""

    def __init__(self, action: str, available: tp.Iterable[str]):
        available = sorted(available)
        super().__init__(
            f"Action {action!r} is not available from this cursor "
            f"(available: {', '.join(available) or 'none'})"
        )
        self.action = action
        self.available = available


class TransportError(GitLabBackendError):
    """Raised when a request to GitLab fails.

    ``status_code`` is ``None`` when no HTTP response was received.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class EntryParseError(GitLabBackendError):
    """Raised when an entry's front matter is not valid YAML."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Could not parse front matter of {path}: {reason}")
        self.path = path
