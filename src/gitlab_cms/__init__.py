"""Store CMS content entries in a GitLab repository."""

from gitlab_cms.auth import (
    AuthStore,
    Credentials,
    FileAuthStore,
    GitLabAuth,
    MemoryAuthStore,
    User,
)
from gitlab_cms.backend import GitLabBackend
from gitlab_cms.config import BackendConfig, CollectionConfig, CollectionFile
from gitlab_cms.cursor import Cursor, CursorMeta
from gitlab_cms.errors import (
    AuthorizationError,
    ConfigurationError,
    EntryParseError,
    GitLabBackendError,
    MalformedResponseError,
    NavigationError,
    TransportError,
)
from gitlab_cms.listing import TreeListing
from gitlab_cms.models import Entry, EntryPage, TreeEntry
from gitlab_cms.pagination import PageInfo, TreeQuery, parse_pagination
from gitlab_cms.transport import GitLabTransport, create_gitlab_client

__all__ = [
    "AuthStore",
    "AuthorizationError",
    "BackendConfig",
    "CollectionConfig",
    "CollectionFile",
    "ConfigurationError",
    "Credentials",
    "Cursor",
    "CursorMeta",
    "Entry",
    "EntryPage",
    "EntryParseError",
    "FileAuthStore",
    "GitLabAuth",
    "GitLabBackend",
    "GitLabBackendError",
    "GitLabTransport",
    "MalformedResponseError",
    "MemoryAuthStore",
    "NavigationError",
    "PageInfo",
    "TransportError",
    "TreeEntry",
    "TreeListing",
    "TreeQuery",
    "User",
    "create_gitlab_client",
    "parse_pagination",
]
