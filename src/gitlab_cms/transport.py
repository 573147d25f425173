"""HTTP access to the GitLab REST API through python-gitlab."""

import logging
import typing as tp

import gitlab
import requests
from gitlab.utils import EncodedId

from gitlab_cms.auth import GitLabAuth, GitLabAuthKwargs
from gitlab_cms.errors import TransportError

logger = logging.getLogger(__name__)


def create_gitlab_client(
    url: str,
    auth_kwargs: GitLabAuthKwargs | None = None,
) -> gitlab.Gitlab:
    """Create and return a GitLab client instance with authentication.

    Parameters
    ----------
    url : str
        GitLab instance URL
    auth_kwargs : GitLabAuthKwargs, optional
        Authentication kwargs dict

    Returns
    -------
    gitlab.Gitlab
        Configured GitLab client instance
    """
    # Environment variables are only consulted when no token is given
    if not auth_kwargs:
        auth_kwargs = GitLabAuth().get_auth_kwargs()

    return gitlab.Gitlab(url, **auth_kwargs)


def project_path(repo: str) -> str:
    """API path of a project, e.g. ``/projects/group%2Fproject``."""
    return f"/projects/{EncodedId(repo)}"


class GitLabTransport:
    """Thin request layer over ``gitlab.Gitlab.http_request``.

    Paths are relative to the client's API URL (``/projects/...``) or
    absolute URLs as returned in ``Link`` headers. Failures never get retried.

    Parameters
    ----------
    client : gitlab.Gitlab
        Authenticated (or anonymous) python-gitlab client
    """

    def __init__(self, client: gitlab.Gitlab):
        self.client = client

    @classmethod
    def connect(
        cls, url: str, auth_kwargs: GitLabAuthKwargs | None = None
    ) -> "GitLabTransport":
        return cls(create_gitlab_client(url, auth_kwargs))

    @property
    def api_url(self) -> str:
        """Base URL of the REST API, e.g. ``https://gitlab.com/api/v4``."""
        return self.client.api_url

    def request(
        self,
        verb: str,
        path: str,
        query: tp.Mapping[str, tp.Any] | None = None,
        post_data: tp.Mapping[str, tp.Any] | None = None,
    ) -> requests.Response:
        """Issue a request and return the raw response.

        Raises
        ------
        TransportError
            On any non-2xx status or network failure.
        """
        logger.debug("%s %s %s", verb.upper(), path, dict(query or {}))
        try:
            return self.client.http_request(
                verb,
                path,
                query_data=dict(query or {}),
                post_data=dict(post_data) if post_data is not None else None,
                retry_transient_errors=False,
            )
        except gitlab.GitlabError as e:
            raise TransportError(
                f"{verb.upper()} {path} failed: {e.error_message}",
                status_code=e.response_code,
            ) from e
        except requests.RequestException as e:
            raise TransportError(f"{verb.upper()} {path} failed: {e}") from e

    def head(self, path: str, query: tp.Mapping[str, tp.Any] | None = None):
        return self.request("head", path, query)

    def get(self, path: str, query: tp.Mapping[str, tp.Any] | None = None):
        return self.request("get", path, query)

    def post(self, path: str, data: tp.Mapping[str, tp.Any]):
        return self.request("post", path, post_data=data)
