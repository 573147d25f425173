"""Immutable pagination cursors.

A cursor remembers where a listing stands and carries the ready-made URL for
every move that is possible from there, so traversing is a lookup rather
than page arithmetic.

Listings are presented newest-first while GitLab paginates oldest-first, so
the server's relations are mirrored when a cursor is built: the newest page
(the server's last) is our ``first``, and ``next`` walks towards older
entries (the server's ``prev``).
"""

import types
import typing as tp

import pydantic

from gitlab_cms.errors import MalformedResponseError, NavigationError
from gitlab_cms.pagination import RELATIONS, PageInfo, Relation

Action = Relation

_MIRRORED: dict[Relation, Action] = {
    "first": "last",
    "last": "first",
    "prev": "next",
    "next": "prev",
}


class CursorLinks(pydantic.BaseModel):
    """URL bound to each available action; ``None`` when unavailable."""

    first: str | None = None
    prev: str | None = None
    next: str | None = None
    last: str | None = None

    model_config = pydantic.ConfigDict(frozen=True, extra="forbid")


class CursorMeta(pydantic.BaseModel):
    """Listing position a cursor was built from.

    ``page`` is the server-side page number, ``index`` the 1-based position
    in the newest-first view.
    """

    folder: str
    per_page: int
    page: int
    page_count: int
    total_count: int
    extension: str | None = None

    model_config = pydantic.ConfigDict(frozen=True)

    @property
    def index(self) -> int:
        return self.page_count - self.page + 1


class Cursor(pydantic.BaseModel):
    """Position in a paginated listing plus the moves available from it."""

    links: CursorLinks = CursorLinks()
    meta: CursorMeta | None = None

    model_config = pydantic.ConfigDict(frozen=True)

    @pydantic.computed_field
    @property
    def actions(self) -> frozenset[Action]:
        return frozenset(self.urls)

    @property
    def urls(self) -> tp.Mapping[Action, str]:
        """Read-only mapping from available action to URL."""
        return types.MappingProxyType(
            {
                action: url
                for action in RELATIONS
                if (url := getattr(self.links, action)) is not None
            }
        )

    @classmethod
    def empty(cls) -> "Cursor":
        """A cursor that offers no moves, e.g. for fixed file lists."""
        return cls()

    @classmethod
    def from_page(
        cls,
        folder: str,
        info: PageInfo,
        links: tp.Mapping[Relation, str],
        extension: str | None = None,
    ) -> "Cursor":
        """Build a newest-first cursor from a page's parsed headers."""
        return cls(
            links=CursorLinks(**{_MIRRORED[rel]: url for rel, url in links.items()}),
            meta=CursorMeta(
                folder=folder,
                per_page=info.per_page,
                page=info.page,
                page_count=info.page_count,
                total_count=info.total_count,
                extension=extension,
            ),
        )

    def has_action(self, action: str) -> bool:
        return action in self.urls

    def url_for(self, action: str) -> str:
        """Return the URL bound to ``action``.

        Raises
        ------
        NavigationError
            If the cursor does not offer ``action``.
        """
        try:
            return self.urls[tp.cast(Action, action)]
        except KeyError:
            raise NavigationError(action, self.actions) from None

    def serialize(self) -> str:
        return self.model_dump_json()

    @classmethod
    def deserialize(cls, data: str | bytes) -> "Cursor":
        try:
            return cls.model_validate_json(data)
        except pydantic.ValidationError as e:
            raise MalformedResponseError(f"Invalid serialized cursor: {e}") from e
