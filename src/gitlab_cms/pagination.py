"""Tree listing queries and GitLab pagination headers."""

import typing as tp

import pydantic
import requests.utils

from gitlab_cms.errors import MalformedResponseError

Relation = tp.Literal["first", "prev", "next", "last"]
RELATIONS: tuple[Relation, ...] = ("first", "prev", "next", "last")


class TreeQuery(pydantic.BaseModel):
    """Query parameters for ``GET /projects/:id/repository/tree``.

    ``page`` left as ``None`` is omitted, which GitLab treats as page 1.
    """

    path: str
    page: int | None = None
    per_page: int = 20
    recursive: bool = False
    ref: str | None = None

    def params(self) -> dict[str, str | int]:
        params: dict[str, str | int] = {
            "path": self.path,
            "per_page": self.per_page,
            "recursive": "true" if self.recursive else "false",
        }
        if self.page is not None:
            params["page"] = self.page
        if self.ref is not None:
            params["ref"] = self.ref
        return params


class PageInfo(pydantic.BaseModel):
    """Position of one page within a paginated listing."""

    page: tp.Annotated[int, pydantic.Field(ge=1, validation_alias="X-Page")]
    per_page: tp.Annotated[int, pydantic.Field(gt=0, validation_alias="X-Per-Page")]
    page_count: tp.Annotated[
        int, pydantic.Field(ge=1, validation_alias="X-Total-Pages")
    ]
    total_count: tp.Annotated[int, pydantic.Field(ge=0, validation_alias="X-Total")]

    model_config = pydantic.ConfigDict(frozen=True, populate_by_name=True)

    @property
    def is_first(self) -> bool:
        return self.page == 1

    @property
    def is_last(self) -> bool:
        return self.page >= self.page_count


_NUMERIC_HEADERS = ("X-Page", "X-Per-Page", "X-Total-Pages", "X-Total")


def parse_link_header(value: str) -> dict[Relation, str]:
    """Map each ``rel`` of a ``Link`` header to its URL.

    Relations other than first/prev/next/last are ignored.

    Raises
    ------
    MalformedResponseError
        If an entry has no URL or no ``rel`` parameter.
    """
    links: dict[Relation, str] = {}
    for link in requests.utils.parse_header_links(value):
        url, rel = link.get("url"), link.get("rel")
        if not url or not rel:
            raise MalformedResponseError(f"Unparsable Link header: {value!r}")
        if rel in RELATIONS:
            links[tp.cast(Relation, rel)] = url
    return links


def parse_pagination(
    headers: tp.Mapping[str, str],
) -> tuple[PageInfo, dict[Relation, str]]:
    """Read page metadata and navigation links from response headers.

    Parameters
    ----------
    headers : Mapping[str, str]
        Response headers; lookups are expected to be case-insensitive as with
        ``requests.structures.CaseInsensitiveDict``.

    Returns
    -------
    tuple[PageInfo, dict]
        The page position, and a mapping from relation to URL. ``prev`` is
        absent on the first page and ``next`` on the last one.

    Raises
    ------
    MalformedResponseError
        If a numeric header is missing or not a base-10 integer, or the
        ``Link`` header is missing or unparsable.
    """
    fields: dict[str, int] = {}
    for name in _NUMERIC_HEADERS:
        raw = headers.get(name)
        if raw is None or not raw.strip().isdecimal():
            raise MalformedResponseError(
                f"Header {name} is missing or not a number: {raw!r}"
            )
        fields[name] = int(raw, 10)
    # an empty tree reports zero pages
    fields["X-Total-Pages"] = max(fields["X-Total-Pages"], 1)

    try:
        info = PageInfo.model_validate(fields)
    except pydantic.ValidationError as e:
        raise MalformedResponseError(f"Inconsistent pagination headers: {e}") from e

    link = headers.get("Link")
    if link is None:
        raise MalformedResponseError("Header Link is missing")
    return info, parse_link_header(link)
