"""Content backend storing entries in a GitLab repository."""

import logging
import typing as tp

import pydantic
from gitlab.const import AccessLevel

from gitlab_cms.auth import (
    AuthStore,
    Credentials,
    GitLabAuth,
    MemoryAuthStore,
    User,
)
from gitlab_cms.config import BackendConfig, CollectionConfig
from gitlab_cms.cursor import Action, Cursor
from gitlab_cms.entries import EntryMaterializer, file_url, parse_entry
from gitlab_cms.errors import (
    AuthorizationError,
    ConfigurationError,
    MalformedResponseError,
    TransportError,
)
from gitlab_cms.listing import TreeListing
from gitlab_cms.models import Entry, EntryPage
from gitlab_cms.transport import GitLabTransport, project_path

logger = logging.getLogger(__name__)

# Minimum project or group access level needed to edit content
WRITE_ACCESS = AccessLevel.DEVELOPER

TransportFactory = tp.Callable[[Credentials], GitLabTransport]


def has_write_access(project: tp.Mapping[str, tp.Any]) -> bool:
    """Whether a ``GET /projects/:id`` payload grants write access."""
    permissions = project.get("permissions") or {}
    levels = [
        (permissions.get(scope) or {}).get("access_level") or 0
        for scope in ("project_access", "group_access")
    ]
    return max(levels) >= WRITE_ACCESS


class GitLabBackend:
    """Read and write content entries stored in a GitLab repository.

    Parameters
    ----------
    config : BackendConfig or Mapping
        Backend configuration; must name a ``repo``
    auth_store : AuthStore, optional
        Where the logged-in user is kept (defaults to an in-memory store)
    transport_factory : callable, optional
        Builds a ``GitLabTransport`` from ``Credentials``; defaults to a
        python-gitlab client against ``config.base_url``

    Raises
    ------
    ConfigurationError
        If the configuration asks for the editorial workflow or has no repo.
        No request is made before these checks.
    """

    def __init__(
        self,
        config: BackendConfig | tp.Mapping[str, tp.Any],
        auth_store: AuthStore | None = None,
        transport_factory: TransportFactory | None = None,
    ):
        self.config = BackendConfig.load(config)
        if self.config.publish_mode == "editorial_workflow":
            raise ConfigurationError(
                "The GitLab backend does not support the Editorial Workflow."
            )
        if not self.config.repo:
            raise ConfigurationError(
                'The GitLab backend needs a "repo" in the backend configuration.'
            )

        self.repo: str = self.config.repo
        self.branch = self.config.branch
        self.auth_store = auth_store if auth_store is not None else MemoryAuthStore()
        self.transport_factory = transport_factory or self._connect
        self._transport: GitLabTransport | None = None

    def _connect(self, credentials: Credentials) -> GitLabTransport:
        return GitLabTransport.connect(
            self.config.base_url, credentials.get_auth_kwargs()
        )

    def authenticate(self, credentials: Credentials | tp.Mapping[str, tp.Any]) -> User:
        """Check the token against GitLab and remember the user.

        Raises
        ------
        AuthorizationError
            If the credentials are unusable or the user cannot write to the
            project.
        TransportError
            If GitLab rejects the token or cannot be reached.
        """
        if not isinstance(credentials, Credentials):
            try:
                credentials = Credentials.model_validate(credentials)
            except pydantic.ValidationError as e:
                raise AuthorizationError(f"Invalid credentials: {e}") from e

        transport = self.transport_factory(credentials)
        identity = transport.get("/user").json()
        project = transport.get(project_path(self.repo)).json()
        if not has_write_access(project):
            raise AuthorizationError(
                "Your GitLab user account does not have access to this repo."
            )

        try:
            user = User.model_validate(
                {
                    **identity,
                    "token": credentials.token,
                    "token_type": credentials.token_type,
                    "backend_name": self.config.name,
                }
            )
        except pydantic.ValidationError as e:
            raise MalformedResponseError(f"Unexpected /user payload: {e}") from e
        self.auth_store.persist(user)
        self._transport = transport
        logger.info("Authenticated GitLab user %s for %s", user.id, self.repo)
        return user

    def current_user(self) -> User | None:
        """Return the stored user after re-checking its token, or ``None``."""
        user = self.auth_store.retrieve()
        if user is None:
            return None
        return self.authenticate(user.credentials)

    def get_token(self) -> str | None:
        user = self.auth_store.retrieve()
        return user.token if user is not None else None

    def logout(self) -> None:
        self.auth_store.clear()
        self._transport = None

    @property
    def transport(self) -> GitLabTransport:
        """Transport bound to the stored user's token.

        Without a stored user, a token from the ``GITLAB_*`` environment
        variables is used instead.

        Raises
        ------
        AuthorizationError
            If nobody is logged in and the environment holds no token.
        """
        if self._transport is None:
            user = self.auth_store.retrieve()
            credentials = user.credentials if user else GitLabAuth().get_credentials()
            if credentials is None:
                raise AuthorizationError("Not logged in to GitLab.")
            self._transport = self.transport_factory(credentials)
        return self._transport

    @property
    def materializer(self) -> EntryMaterializer:
        return EntryMaterializer(
            self.transport, self.repo, self.branch, max_workers=self.config.max_workers
        )

    @property
    def listing(self) -> TreeListing:
        return TreeListing(
            self.transport,
            self.repo,
            self.materializer,
            ref=self.branch,
            per_page=self.config.per_page,
        )

    def list_entries(
        self, collection: CollectionConfig | tp.Mapping[str, tp.Any]
    ) -> EntryPage:
        """Return the newest page of a folder collection, or all files of a
        file collection.
        """
        collection = CollectionConfig.load(collection)
        if collection.is_folder:
            return self.listing.list(
                tp.cast(str, collection.folder), collection.extension
            )

        paths = [file.file for file in collection.files or []]
        return EntryPage(
            cursor=Cursor.empty(), entries=self.materializer.fetch_many(paths)
        )

    def traverse_cursor(self, cursor: Cursor, action: Action | str) -> EntryPage:
        return self.listing.traverse(cursor, action)

    def get_entry(self, path: str) -> Entry:
        return self.materializer.fetch(path)

    def file_exists(self, path: str) -> bool:
        try:
            self.transport.head(file_url(self.repo, path), {"ref": self.branch})
        except TransportError as e:
            if e.status_code == 404:
                return False
            raise
        return True

    def persist_entry(self, path: str, raw: str, message: str | None = None) -> Entry:
        """Create or update ``path`` with ``raw`` in a single commit."""
        entry = parse_entry(path, raw)
        action = "update" if self.file_exists(path) else "create"
        self._commit(
            message or f"{action.capitalize()} {path}",
            [{"action": action, "file_path": path, "content": raw, "encoding": "text"}],
        )
        return entry

    def delete_file(self, path: str, message: str | None = None) -> None:
        self._commit(
            message or f"Delete {path}", [{"action": "delete", "file_path": path}]
        )

    def _commit(
        self, message: str, actions: list[dict[str, str]]
    ) -> dict[str, tp.Any]:
        logger.info(
            "Committing %d change(s) to %s@%s", len(actions), self.repo, self.branch
        )
        response = self.transport.post(
            f"{project_path(self.repo)}/repository/commits",
            {"branch": self.branch, "commit_message": message, "actions": actions},
        )
        return response.json()
