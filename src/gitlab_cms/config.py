"""Backend and collection configuration."""

import typing as tp

import pydantic
import pydantic_settings

from gitlab_cms.errors import ConfigurationError


class BackendConfig(pydantic_settings.BaseSettings):
    """Settings for a GitLab-backed content repository.

    Values can be passed explicitly or loaded from ``GITLAB_CMS_*``
    environment variables (e.g. ``GITLAB_CMS_REPO``, ``GITLAB_CMS_BRANCH``).

    Parameters
    ----------
    repo : str, optional
        Project path, e.g. ``group/project``. Required by ``GitLabBackend``.
    branch : str
        Branch entries are read from and committed to.
    base_url : str
        GitLab instance URL; the REST API lives under ``/api/v4``.
    publish_mode : {"simple", "editorial_workflow"}
        Only ``simple`` is supported by the backend.
    per_page : int
        Page size for tree listings.
    max_workers : int
        Upper bound on concurrent file body fetches per page.
    """

    name: str = "gitlab"
    repo: str | None = None
    branch: str = "master"
    base_url: str = "https://gitlab.com"
    publish_mode: tp.Literal["simple", "editorial_workflow"] = "simple"
    per_page: tp.Annotated[int, pydantic.Field(gt=0)] = 20
    max_workers: tp.Annotated[int, pydantic.Field(gt=0)] = 10

    model_config = pydantic_settings.SettingsConfigDict(
        env_prefix="GITLAB_CMS_",
        extra="ignore",
    )

    @classmethod
    def load(cls, config: "BackendConfig | tp.Mapping[str, tp.Any]") -> "BackendConfig":
        """Coerce a mapping into a ``BackendConfig``.

        Raises
        ------
        ConfigurationError
            If the mapping does not validate.
        """
        if isinstance(config, cls):
            return config
        try:
            return cls(**config)
        except pydantic.ValidationError as e:
            raise ConfigurationError(f"Invalid backend configuration: {e}") from e


class CollectionFile(pydantic.BaseModel):
    """A single file listed by a file collection."""

    name: str
    file: str
    label: str | None = None


class CollectionConfig(pydantic.BaseModel):
    """A group of entries, either every file in a folder or a fixed file list."""

    name: str
    folder: str | None = None
    extension: str = "md"
    files: list[CollectionFile] | None = None

    model_config = pydantic.ConfigDict(extra="ignore")

    @pydantic.model_validator(mode="after")
    def _folder_or_files(self) -> "CollectionConfig":
        if (self.folder is None) == (self.files is None):
            raise ValueError("a collection needs exactly one of 'folder' or 'files'")
        return self

    @property
    def is_folder(self) -> bool:
        return self.folder is not None

    @classmethod
    def load(
        cls, collection: "CollectionConfig | tp.Mapping[str, tp.Any]"
    ) -> "CollectionConfig":
        if isinstance(collection, cls):
            return collection
        try:
            return cls.model_validate(collection)
        except pydantic.ValidationError as e:
            raise ConfigurationError(f"Invalid collection configuration: {e}") from e
