"""Fetching file bodies and turning them into entries."""

import logging
import re
import typing as tp
from concurrent.futures import ThreadPoolExecutor, as_completed

import yaml
from gitlab.utils import EncodedId

from gitlab_cms.errors import EntryParseError
from gitlab_cms.models import Entry
from gitlab_cms.transport import GitLabTransport, project_path

logger = logging.getLogger(__name__)

# YAML front matter between --- delimiters at the very start of the file
FRONT_MATTER_PATTERN = re.compile(
    r"\A---[ \t]*\r?\n(?P<yaml>(?:.*?\r?\n)?)---[ \t]*(?:\r?\n|\Z)", re.DOTALL
)


def parse_entry(path: str, raw: str) -> Entry:
    """Split ``raw`` into front matter and body.

    Raises
    ------
    EntryParseError
        If the front matter is not YAML or not a mapping.
    """
    match = FRONT_MATTER_PATTERN.match(raw)
    if not match:
        return Entry(path=path, raw=raw, data={}, body=raw)

    try:
        data = yaml.safe_load(match.group("yaml"))
    except yaml.YAMLError as e:
        raise EntryParseError(path, str(e)) from e
    if data is None:
        data = {}
    elif not isinstance(data, dict):
        raise EntryParseError(path, f"expected a mapping, got {type(data).__name__}")

    return Entry(path=path, raw=raw, data=data, body=raw[match.end() :])


def file_url(repo: str, path: str) -> str:
    return f"{project_path(repo)}/repository/files/{EncodedId(path)}"


def raw_file_url(repo: str, path: str) -> str:
    return f"{file_url(repo, path)}/raw"


class EntryMaterializer:
    """Fetches the bodies of content files, several at a time.

    Parameters
    ----------
    transport : GitLabTransport
        Request layer bound to the user's token
    repo : str
        Project path
    branch : str
        Ref the files are read from
    max_workers : int
        Maximum number of concurrent fetches
    """

    def __init__(
        self,
        transport: GitLabTransport,
        repo: str,
        branch: str,
        max_workers: int = 10,
    ):
        self.transport = transport
        self.repo = repo
        self.branch = branch
        self.max_workers = max_workers

    def fetch(self, path: str) -> Entry:
        response = self.transport.get(
            raw_file_url(self.repo, path), {"ref": self.branch}
        )
        return parse_entry(path, response.text)

    def fetch_many(self, paths: tp.Sequence[str]) -> list[Entry]:
        """Fetch every path and return entries in the order given.

        The first failure cancels the fetches that have not started yet and
        is re-raised.
        """
        if not paths:
            return []

        logger.debug("Fetching %d file bodies from %s", len(paths), self.repo)
        results: dict[str, Entry] = {}
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {executor.submit(self.fetch, path): path for path in paths}
            try:
                for future in as_completed(futures):
                    results[futures[future]] = future.result()
            except Exception:
                for future in futures:
                    future.cancel()
                raise

        return [results[path] for path in paths]
