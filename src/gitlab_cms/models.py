"""Records returned by the GitLab API and by the backend."""

import typing as tp

import pydantic

from gitlab_cms.cursor import Cursor


class TreeEntry(pydantic.BaseModel):
    """Model for a GitLab repository tree item.

    Submodules are listed with type ``commit``.
    """

    id: str
    name: str
    type: tp.Literal["blob", "tree", "commit"]
    path: str
    mode: str

    model_config = pydantic.ConfigDict(frozen=True)

    @property
    def is_blob(self) -> bool:
        return self.type == "blob"


class Entry(pydantic.BaseModel):
    """A content file: its path, raw body and parsed front matter."""

    path: str
    raw: str
    data: dict[str, tp.Any] = pydantic.Field(default_factory=dict)
    body: str = ""


class EntryPage(pydantic.BaseModel):
    """One page of entries and the cursor to move from it."""

    cursor: Cursor
    entries: list[Entry]
