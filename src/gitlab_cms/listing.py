"""Newest-first traversal of paginated repository trees.

GitLab returns tree items oldest-first, so the newest entries sit on the
last page. ``TreeListing.list`` first sends a ``HEAD`` request to learn the
page count without downloading any items, then fetches that last page.
Further pages are reached through the URLs the server put in the ``Link``
header, which the returned ``Cursor`` keeps.
"""

import builtins
import logging
import urllib.parse

import pydantic
import requests

from gitlab_cms.cursor import Action, Cursor
from gitlab_cms.entries import EntryMaterializer
from gitlab_cms.errors import MalformedResponseError
from gitlab_cms.models import EntryPage, TreeEntry
from gitlab_cms.pagination import PageInfo, TreeQuery, parse_pagination
from gitlab_cms.transport import GitLabTransport, project_path

logger = logging.getLogger(__name__)


def matches_extension(entry: TreeEntry, extension: str | None) -> bool:
    return extension is None or entry.path.endswith(f".{extension}")


class TreeListing:
    """Lists folders of a repository one page at a time, newest page first.

    Parameters
    ----------
    transport : GitLabTransport
        Request layer bound to the user's token
    repo : str
        Project path
    materializer : EntryMaterializer
        Fetches file bodies for the blobs on each page
    ref : str, optional
        Branch, tag or commit to list (defaults to the default branch)
    per_page : int
        Page size requested from the server
    """

    def __init__(
        self,
        transport: GitLabTransport,
        repo: str,
        materializer: EntryMaterializer,
        ref: str | None = None,
        per_page: int = 20,
    ):
        self.transport = transport
        self.repo = repo
        self.materializer = materializer
        self.ref = ref
        self.per_page = per_page

    @property
    def tree_url(self) -> str:
        return f"{project_path(self.repo)}/repository/tree"

    def query(self, folder: str, page: int | None = None) -> TreeQuery:
        return TreeQuery(path=folder, page=page, per_page=self.per_page, ref=self.ref)

    def probe(self, folder: str) -> PageInfo:
        """Read the pagination headers of ``folder`` without its items."""
        response = self.transport.head(self.tree_url, self.query(folder).params())
        info, _ = parse_pagination(response.headers)
        return info

    def list(self, folder: str, extension: str | None = None) -> EntryPage:
        """Return the newest page of ``folder``.

        Parameters
        ----------
        folder : str
            Directory path relative to the repository root
        extension : str, optional
            Only blobs whose path ends in ``.<extension>`` become entries
        """
        info = self.probe(folder)
        last_page = info.page_count
        logger.debug(
            "%s holds %d items over %d pages; fetching page %d",
            folder,
            info.total_count,
            info.page_count,
            last_page,
        )
        response = self.transport.get(
            self.tree_url, self.query(folder, page=last_page).params()
        )
        return self._page_from_response(folder, response, extension)

    def traverse(self, cursor: Cursor, action: Action | str) -> EntryPage:
        """Follow ``action`` from ``cursor`` and return the page it leads to.

        Raises
        ------
        NavigationError
            If ``action`` is not among ``cursor.actions``.
        """
        url = cursor.url_for(action)
        if cursor.meta is None:
            raise MalformedResponseError("Cursor has links but no listing metadata")
        self._check_link(url)

        logger.debug(
            "Traversing %s from page %d of %s",
            action,
            cursor.meta.page,
            cursor.meta.folder,
        )
        response = self.transport.get(url)
        return self._page_from_response(
            cursor.meta.folder, response, cursor.meta.extension
        )

    def _check_link(self, url: str) -> None:
        """Refuse URLs outside this project's tree endpoint; the session token
        travels with every request."""
        expected = urllib.parse.urlsplit(f"{self.transport.api_url}{self.tree_url}")
        actual = urllib.parse.urlsplit(url)
        if (actual.scheme, actual.netloc.lower(), actual.path) != (
            expected.scheme,
            expected.netloc.lower(),
            expected.path,
        ):
            raise MalformedResponseError(
                f"Cursor link {url!r} does not point at {self.tree_url}"
            )

    def _page_from_response(
        self,
        folder: str,
        response: requests.Response,
        extension: str | None,
    ) -> EntryPage:
        info, links = parse_pagination(response.headers)
        items = self._tree_entries(response)
        cursor = Cursor.from_page(folder, info, links, extension=extension)

        # newest first
        paths = [
            item.path
            for item in reversed(items)
            if item.is_blob and matches_extension(item, extension)
        ]
        return EntryPage(cursor=cursor, entries=self.materializer.fetch_many(paths))

    @staticmethod
    def _tree_entries(response: requests.Response) -> builtins.list[TreeEntry]:
        try:
            return [TreeEntry.model_validate(item) for item in response.json()]
        except (ValueError, TypeError, pydantic.ValidationError) as e:
            raise MalformedResponseError(f"Unexpected tree listing body: {e}") from e
