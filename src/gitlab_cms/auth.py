"""Credentials, user records and token storage."""

import json
import pathlib
import typing as tp

import pydantic
import pydantic_settings


class GitLabAuthKwargs(tp.TypedDict, total=False):
    """Type definition for GitLab authentication kwargs."""

    private_token: str
    oauth_token: str
    job_token: str


class Credentials(pydantic.BaseModel):
    """A token handed to ``GitLabBackend.authenticate``."""

    token: str
    token_type: tp.Literal["private", "oauth", "job"] = "oauth"

    def get_auth_kwargs(self) -> GitLabAuthKwargs:
        if self.token_type == "private":
            return {"private_token": self.token}
        elif self.token_type == "job":
            return {"job_token": self.token}
        return {"oauth_token": self.token}


class GitLabAuth(pydantic_settings.BaseSettings):
    """Token found in the environment, used when nobody has logged in.

    Reads ``GITLAB_PRIVATE_TOKEN``, ``GITLAB_OAUTH_TOKEN`` and
    ``GITLAB_JOB_TOKEN``/``CI_JOB_TOKEN``; when several are set the private
    token wins over the OAuth token, which wins over the job token.
    """

    private_token: str | None = None
    oauth_token: str | None = None
    job_token: tp.Annotated[
        str | None,
        pydantic.Field(
            validation_alias=pydantic.AliasChoices("gitlab_job_token", "ci_job_token")
        ),
    ] = None

    model_config = pydantic_settings.SettingsConfigDict(
        env_prefix="GITLAB_",
        extra="ignore",
    )

    def get_credentials(self) -> Credentials | None:
        for token_type in ("private", "oauth", "job"):
            token = getattr(self, f"{token_type}_token")
            if token:
                return Credentials(token=token, token_type=token_type)
        return None

    def get_auth_kwargs(self) -> GitLabAuthKwargs:
        credentials = self.get_credentials()
        return credentials.get_auth_kwargs() if credentials else {}



class User(pydantic.BaseModel):
    """An authenticated GitLab user together with the token that proved it.

    Identity fields returned by ``GET /user`` other than ``id`` are kept as
    extra attributes.
    """

    id: int
    token: str
    token_type: tp.Literal["private", "oauth", "job"] = "oauth"
    backend_name: str = "gitlab"

    model_config = pydantic.ConfigDict(extra="allow")

    @property
    def credentials(self) -> Credentials:
        return Credentials(token=self.token, token_type=self.token_type)


class AuthStore:
    """Keyed storage for the logged-in user.

    Subclasses implement ``retrieve``, ``persist`` and ``clear``.
    """

    def retrieve(self) -> User | None:
        raise NotImplementedError

    def persist(self, user: User) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class MemoryAuthStore(AuthStore):
    """Keeps the user in memory for the lifetime of the store."""

    def __init__(self):
        self._user: User | None = None

    def retrieve(self) -> User | None:
        return self._user

    def persist(self, user: User) -> None:
        self._user = user

    def clear(self) -> None:
        self._user = None


class FileAuthStore(AuthStore):
    """Keeps the user as a JSON document on disk.

    Parameters
    ----------
    path : str or pathlib.Path
        Location of the JSON file; parent directories are created on persist.
    """

    def __init__(self, path: str | pathlib.Path):
        self.path = pathlib.Path(path)

    def retrieve(self) -> User | None:
        if not self.path.exists():
            return None
        return User.model_validate(json.loads(self.path.read_text()))

    def persist(self, user: User) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(user.model_dump_json())

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
