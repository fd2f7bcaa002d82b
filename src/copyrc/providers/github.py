"""GitHub provider backed by the REST API and raw content host."""

from __future__ import annotations

import logging
import re
import threading
from posixpath import join as posix_join

import requests

from copyrc.cancel import CancelToken, check
from copyrc.config_schema import SourceConfig
from copyrc.errors import ProviderError

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
RAW_URL = "https://raw.githubusercontent.com"
WEB_URL = "https://github.com"

_REPO_RE = re.compile(
    r"^(?:https?://)?github\.com/([^/\s]+)/([^/\s]+?)(?:\.git)?/?$"
)
_SHA_RE = re.compile(r"^[0-9a-f]{40}$")

_CHUNK_SIZE = 1 << 16


def parse_repo(repo: str) -> tuple[str, str]:
    """Split ``github.com/org/repo`` into ``(org, repo)``.

    Raises:
        ProviderError: If *repo* is not a GitHub repository locator.
    """
    match = _REPO_RE.match(repo.strip())
    if not match:
        raise ProviderError(
            f"Invalid GitHub repository '{repo}' "
            "(expected github.com/org/repo)"
        )
    return match.group(1), match.group(2)


class GitHubProvider:
    """Fetch files from public or token-authenticated GitHub repos.

    Args:
        token: Optional API token sent as ``Authorization: Bearer``.
        api_url: Base URL of the REST API.
        timeout: Read timeout in seconds for every request.
    """

    name = "github"

    def __init__(
        self,
        token: str | None = None,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 60.0,
    ) -> None:
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._thread_local = threading.local()

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    @property
    def session(self) -> requests.Session:
        """Return the current thread's session."""
        return self._get_session()

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers["User-Agent"] = "copyrc"
        if self.token:
            session.headers["Authorization"] = f"Bearer {self.token}"
        return session

    def _get(
        self,
        url: str,
        cancel: CancelToken | None = None,
        **kwargs,
    ) -> requests.Response:
        check(cancel)
        try:
            response = self._get_session().get(
                url, timeout=(10, self.timeout), **kwargs
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise ProviderError(f"GET {url} failed: {exc}") from exc
        return response

    # ------------------------------------------------------------------
    # Provider operations
    # ------------------------------------------------------------------

    def matches(self, repo: str) -> bool:
        return bool(_REPO_RE.match(repo.strip()))

    def get_commit_hash(
        self, source: SourceConfig, cancel: CancelToken | None = None
    ) -> str:
        if source.ref_type == "commit" or _SHA_RE.match(source.ref):
            return source.ref
        org, repo = parse_repo(source.repo)
        response = self._get(
            f"{self.api_url}/repos/{org}/{repo}/commits/{source.ref}",
            cancel,
            headers={"Accept": "application/vnd.github.sha"},
        )
        sha = response.text.strip()
        if not _SHA_RE.match(sha):
            raise ProviderError(
                f"Unexpected commit hash for {source.repo}@{source.ref}: "
                f"{sha[:80]!r}"
            )
        logger.debug("Resolved %s@%s to %s", source.repo, source.ref, sha)
        return sha

    def list_files(
        self,
        source: SourceConfig,
        commit_hash: str,
        recursive: bool = False,
        cancel: CancelToken | None = None,
    ) -> list[str]:
        org, repo = parse_repo(source.repo)
        response = self._get(
            f"{self.api_url}/repos/{org}/{repo}/git/trees/{commit_hash}",
            cancel,
            params={"recursive": "1"},
            headers={"Accept": "application/vnd.github+json"},
        )
        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError(f"Invalid tree response: {exc}") from exc
        if data.get("truncated"):
            logger.warning(
                "Tree listing for %s@%s was truncated by the API",
                source.repo,
                commit_hash,
            )

        prefix = source.path.strip("/")
        prefix = prefix + "/" if prefix else ""
        files = []
        for item in data.get("tree", []):
            if item.get("type") != "blob":
                continue
            path = item.get("path", "")
            if not path.startswith(prefix):
                continue
            rel = path[len(prefix) :]
            if not recursive and "/" in rel:
                continue
            files.append(rel)
        return sorted(files)

    def _full_path(self, source: SourceConfig, path: str) -> str:
        base = source.path.strip("/")
        return posix_join(base, path) if base else path

    def get_file(
        self,
        source: SourceConfig,
        commit_hash: str,
        path: str,
        cancel: CancelToken | None = None,
    ) -> bytes:
        return self._get(
            self.get_permalink(source, commit_hash, path), cancel
        ).content

    def get_permalink(
        self, source: SourceConfig, commit_hash: str, path: str
    ) -> str:
        org, repo = parse_repo(source.repo)
        return (
            f"{RAW_URL}/{org}/{repo}/{commit_hash}/"
            f"{self._full_path(source, path)}"
        )

    def get_source_info(self, source: SourceConfig, commit_hash: str) -> str:
        org, repo = parse_repo(source.repo)
        return f"github.com/{org}/{repo}@{commit_hash}"

    def get_archive_url(self, source: SourceConfig) -> str:
        org, repo = parse_repo(source.repo)
        if source.ref_type == "commit":
            ref_path = source.ref
        elif source.ref_type == "branch":
            ref_path = f"refs/heads/{source.ref}"
        elif source.ref.startswith("tags/"):
            ref_path = f"refs/{source.ref}"
        else:
            ref_path = f"refs/tags/{source.ref}"
        return f"{WEB_URL}/{org}/{repo}/archive/{ref_path}.tar.gz"

    def get_archive(
        self,
        source: SourceConfig,
        commit_hash: str,
        cancel: CancelToken | None = None,
    ) -> bytes:
        url = self.get_archive_url(source)
        response = self._get(url, cancel, stream=True)
        chunks = []
        try:
            for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
                check(cancel)
                chunks.append(chunk)
        except requests.RequestException as exc:
            raise ProviderError(f"Download of {url} failed: {exc}") from exc
        finally:
            response.close()
        return b"".join(chunks)
