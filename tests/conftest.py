"""Test configuration and fixtures."""

import json
import math
import typing as tp
import urllib.parse

import pytest
import requests
from dotenv import find_dotenv, load_dotenv
from requests.structures import CaseInsensitiveDict

from gitlab_cms import Credentials, GitLabBackend, GitLabTransport, TransportError

API_ROOT = "https://gitlab.com/api/v4"
REPO = "foo/bar"
REPO_URL = "/projects/foo%2Fbar"
DEFAULT_CONFIG = {"name": "gitlab", "repo": REPO}
MOCK_CREDENTIALS = {"token": "MOCK_TOKEN"}

USER = {"id": 1, "username": "editor"}
PROJECT = {"permissions": {"project_access": {"access_level": 30}, "group_access": None}}
READ_ONLY_PROJECT = {
    "permissions": {"project_access": {"access_level": 10}, "group_access": None}
}


def pytest_configure(config):
    """Load .env.test file before any tests run."""
    load_dotenv(find_dotenv(".env.test"))


@pytest.fixture
def clean_gitlab_env(monkeypatch):
    """Clear GitLab environment variables for isolated testing."""
    gitlab_env_vars = [
        "GITLAB_PRIVATE_TOKEN",
        "GITLAB_OAUTH_TOKEN",
        "GITLAB_JOB_TOKEN",
        "CI_JOB_TOKEN",
        "GITLAB_CMS_REPO",
        "GITLAB_CMS_BRANCH",
        "GITLAB_CMS_BASE_URL",
        "GITLAB_CMS_PUBLISH_MODE",
        "GITLAB_CMS_PER_PAGE",
        "GITLAB_CMS_MAX_WORKERS",
    ]
    for var in gitlab_env_vars:
        monkeypatch.delenv(var, raising=False)


def entry_body(title: str) -> str:
    return f"---\ntitle: {title}\n---\n# {title}\n"


def generate_entries(folder: str, count: int) -> tuple[list[dict], dict[str, str]]:
    """Tree items and file bodies for ``count`` files named test001.md, ..."""
    tree, files = [], {}
    for number in range(1, count + 1):
        name = f"test{number:03d}.md"
        path = f"{folder}/{name}"
        tree.append(
            {
                "id": f"d8345753a1d935fa47a26317a503e73e1192d{number:03d}",
                "name": name,
                "type": "blob",
                "path": path,
                "mode": "100644",
            }
        )
        files[path] = entry_body(f"test {number:03d}")
    return tree, files


def tree_blob(path: str, id: str) -> dict:
    name = path.rsplit("/", 1)[-1]
    return {"id": id, "name": name, "type": "blob", "path": path, "mode": "100644"}


def build_mock_repo() -> dict[str, dict]:
    many_tree, many_files = generate_entries("many-entries", 500)
    partial_tree, partial_files = generate_entries("partial-entries", 490)
    return {
        "tree": {
            "content": [
                tree_blob("content/test1.md", "b1a200e48be54fde12b636f9563d659d44c206a5"),
                tree_blob("content/test2.md", "d8345753a1d935fa47a26317a503e73e1192d623"),
            ],
            "many-entries": many_tree,
            "partial-entries": partial_tree,
            "mixed": [
                {
                    "id": "5d0620ebdbc92068a3e866866e928cc373f18429",
                    "name": "drafts",
                    "type": "tree",
                    "path": "mixed/drafts",
                    "mode": "040000",
                },
                {
                    "id": "9a1b2c3d4e5f60718293a4b5c6d7e8f901234567",
                    "name": "theme",
                    "type": "commit",
                    "path": "mixed/theme",
                    "mode": "160000",
                },
                tree_blob("mixed/notes.txt", "0f3c8c4a3a1b8e0c2f6a2ad9a0d1e5e7b0a1c001"),
                tree_blob("mixed/post.md", "0f3c8c4a3a1b8e0c2f6a2ad9a0d1e5e7b0a1c002"),
            ],
            "empty": [],
        },
        "files": {
            "content/test1.md": entry_body("test"),
            "content/test2.md": entry_body("test2"),
            "mixed/notes.txt": "plain notes\n",
            "mixed/post.md": entry_body("post"),
            **many_files,
            **partial_files,
        },
    }


def make_response(
    status_code: int = 200,
    body: tp.Any = None,
    text: str | None = None,
    headers: tp.Mapping[str, str] | None = None,
) -> requests.Response:
    response = requests.Response()
    response.status_code = status_code
    response.headers = CaseInsensitiveDict(headers or {})
    response.encoding = "utf-8"
    if text is not None:
        response._content = text.encode("utf-8")
    elif body is not None:
        response._content = json.dumps(body).encode("utf-8")
        response.headers["Content-Type"] = "application/json"
    else:
        response._content = b""
    return response


def pagination_headers(
    folder: str, page: int, per_page: int, page_count: int, total_count: int
) -> dict[str, str]:
    """Headers GitLab sends with a tree page, ``prev``/``next`` only inside the range."""

    def link(target: int) -> str:
        return (
            f"<{API_ROOT}{REPO_URL}/repository/tree?id=foo%2Fbar&page={target}"
            f"&path={folder}&per_page={per_page}&recursive=false>"
        )

    links = [f'{link(1)}; rel="first"', f'{link(page_count)}; rel="last"']
    if page > 1:
        links.append(f'{link(page - 1)}; rel="prev"')
    if page < page_count:
        links.append(f'{link(page + 1)}; rel="next"')

    return {
        "X-Page": str(page),
        "X-Total-Pages": str(page_count),
        "X-Per-Page": str(per_page),
        "X-Total": str(total_count),
        "Link": ", ".join(links),
    }


class FakeGitLab:
    """In-process GitLab API answering requests from ``build_mock_repo()``.

    Every request is recorded in ``requests`` as ``(verb, path, query)``.
    Paths listed in ``failing_files`` answer 500 when their body is fetched.
    """

    def __init__(self):
        self.repo = build_mock_repo()
        self.user: dict = dict(USER)
        self.project: dict = PROJECT
        self.requests: list[tuple[str, str, dict[str, str]]] = []
        self.tokens: list[str] = []
        self.commits: list[dict] = []
        self.failing_files: set[str] = set()

    def transport(self, credentials: Credentials) -> "FakeTransport":
        self.tokens.append(credentials.token)
        return FakeTransport(self)

    def tree_requests(self) -> list[tuple[str, dict[str, str]]]:
        return [
            (verb, query)
            for verb, path, query in self.requests
            if path.endswith("/repository/tree")
        ]

    def handle(self, verb, path, query, post_data) -> requests.Response:
        split = urllib.parse.urlsplit(path)
        if split.scheme:
            path = split.path.removeprefix("/api/v4")
            query = {**dict(urllib.parse.parse_qsl(split.query)), **query}
        query = {key: str(value) for key, value in query.items()}
        self.requests.append((verb, path, query))

        if path == "/user" and verb == "get":
            return make_response(body=self.user)
        if not path.startswith(REPO_URL):
            raise TransportError(f"{verb.upper()} {path} failed: 404 Not Found", 404)

        resource = path.removeprefix(REPO_URL)
        if resource == "" and verb == "get":
            return make_response(body=self.project)
        if resource == "/repository/tree":
            return self._tree(verb, query)
        if resource == "/repository/commits" and verb == "post":
            return self._commit(post_data)
        if resource.startswith("/repository/files/"):
            return self._file(verb, resource.removeprefix("/repository/files/"))
        raise TransportError(f"{verb.upper()} {path} failed: 404 Not Found", 404)

    def _tree(self, verb, query) -> requests.Response:
        folder = query["path"]
        if folder not in self.repo["tree"]:
            raise TransportError("GET tree failed: 404 Tree Not Found", 404)
        tree = self.repo["tree"][folder]
        page = int(query.get("page", 1))
        per_page = int(query.get("per_page", 20))
        page_count = max(math.ceil(len(tree) / per_page), 1)
        items = tree[(page - 1) * per_page : page * per_page]
        return make_response(
            body=None if verb == "head" else items,
            headers=pagination_headers(folder, page, per_page, page_count, len(tree)),
        )

    def _file(self, verb, resource) -> requests.Response:
        raw = resource.endswith("/raw")
        path = urllib.parse.unquote(resource.removesuffix("/raw"))
        if path in self.failing_files:
            raise TransportError(f"GET {path} failed: 500 Internal Server Error", 500)
        if path not in self.repo["files"]:
            raise TransportError(f"{verb.upper()} {path} failed: 404 File Not Found", 404)
        if raw:
            return make_response(text=self.repo["files"][path])
        return make_response(headers={"X-Gitlab-File-Path": path})

    def _commit(self, data) -> requests.Response:
        self.commits.append(data)
        for action in data["actions"]:
            if action["action"] == "delete":
                del self.repo["files"][action["file_path"]]
            else:
                self.repo["files"][action["file_path"]] = action["content"]
        return make_response(status_code=201, body={"id": f"commit{len(self.commits)}"})


class FakeTransport(GitLabTransport):
    """``GitLabTransport`` whose requests are answered by a ``FakeGitLab``."""

    api_url = API_ROOT

    def __init__(self, server: FakeGitLab):
        super().__init__(client=None)
        self.server = server

    def request(self, verb, path, query=None, post_data=None):
        return self.server.handle(verb, path, dict(query or {}), post_data)


@pytest.fixture
def gitlab_server():
    return FakeGitLab()


@pytest.fixture
def backend(clean_gitlab_env, gitlab_server):
    return GitLabBackend(DEFAULT_CONFIG, transport_factory=gitlab_server.transport)


@pytest.fixture
def logged_in_backend(backend):
    backend.authenticate(MOCK_CREDENTIALS)
    yield backend
    backend.logout()
    assert backend.auth_store.retrieve() is None
