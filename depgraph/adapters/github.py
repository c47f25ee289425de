import logging
from typing import Optional, List, Tuple
from urllib.parse import quote, urlparse

import httpx

from depgraph.config import get_settings
from depgraph.adapters.base import BaseRepoLoader, RepoLoaderError
from depgraph.models.repo import SourceFile
from depgraph.services.path_resolver import SCRIPT_EXTENSIONS

logger = logging.getLogger("github_loader")
settings = get_settings()


def parse_repo_url(repo_url: str) -> Tuple[str, str]:
    """'https://github.com/owner/repo(.git)' → ('owner', 'repo')."""
    parts = [p for p in urlparse(repo_url).path.split("/") if p]
    if not urlparse(repo_url).netloc or len(parts) < 2:
        raise ValueError("Invalid github url")
    owner, repo = parts[0], parts[1]
    if repo.endswith(".git"):
        repo = repo[:-4]
    if not owner or not repo:
        raise ValueError("Invalid github url")
    return owner, repo


class GitHubRepoLoader(BaseRepoLoader):
    def __init__(
        self,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_files: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = (api_url or settings.GITHUB_API_URL).rstrip("/")
        self.timeout = timeout or settings.FETCH_TIMEOUT_S
        self.max_files = max_files or settings.REMOTE_MAX_FILES
        self.transport = transport

    async def load(self, repo_url: str, token: Optional[str] = None) -> List[SourceFile]:
        """
        Snapshot of the default branch: one tree listing, then one raw
        content request per allow-listed blob.
        """
        owner, repo = parse_repo_url(repo_url)

        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": "depgraph",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            async with httpx.AsyncClient(
                base_url=self.api_url,
                headers=headers,
                timeout=self.timeout,
                transport=self.transport,
            ) as client:
                resp = await client.get(f"/repos/{owner}/{repo}")
                self._check(resp)
                branch = self._json_object(resp).get("default_branch") or "main"
                if not isinstance(branch, str):
                    raise RepoLoaderError(
                        f"Unexpected default_branch {branch!r} for {owner}/{repo}",
                        status_code=resp.status_code,
                    )

                resp = await client.get(
                    f"/repos/{owner}/{repo}/git/trees/{quote(branch, safe='')}",
                    params={"recursive": "1"},
                )
                self._check(resp)
                tree = self._json_object(resp)
                if tree.get("truncated"):
                    logger.warning(f"Tree listing for {owner}/{repo} truncated by GitHub")

                entries = tree.get("tree", [])
                if not isinstance(entries, list):
                    raise RepoLoaderError(
                        f"Tree listing for {owner}/{repo} is not a list",
                        status_code=resp.status_code,
                    )
                paths = [
                    entry["path"]
                    for entry in entries
                    if isinstance(entry, dict)
                    and entry.get("type") == "blob"
                    and isinstance(entry.get("path"), str)
                    and entry["path"].endswith(SCRIPT_EXTENSIONS)
                ]
                if len(paths) > self.max_files:
                    logger.warning(
                        f"{owner}/{repo} has {len(paths)} source files, loading first {self.max_files}"
                    )
                    paths = paths[: self.max_files]

                files = []
                for path in paths:
                    resp = await client.get(
                        f"/repos/{owner}/{repo}/contents/{quote(path)}",
                        params={"ref": branch},
                        headers={"Accept": "application/vnd.github.raw+json"},
                    )
                    self._check(resp)
                    files.append(SourceFile(path=path, content=resp.text))

        except httpx.HTTPError as e:
            raise RepoLoaderError(f"{type(e).__name__}: {e}") from e

        logger.info(f"Loaded {len(files)} files from {owner}/{repo}@{branch}")
        return files

    @staticmethod
    def _check(resp: httpx.Response) -> None:
        """Raise RepoLoaderError carrying the status and GitHub's message."""
        if resp.status_code < 400:
            return
        try:
            data = resp.json()
            message = (data.get("message") if isinstance(data, dict) else None) or resp.reason_phrase
        except ValueError:
            message = resp.text or resp.reason_phrase
        if resp.headers.get("x-ratelimit-remaining") == "0" and "rate limit" not in message.lower():
            message = f"{message} (rate limit exhausted)"
        raise RepoLoaderError(message, status_code=resp.status_code)

    @staticmethod
    def _json_object(resp: httpx.Response) -> dict:
        """Decode a 2xx body that must be a JSON object; anything else is a loader failure."""
        try:
            data = resp.json()
        except ValueError as e:
            raise RepoLoaderError(
                f"Malformed JSON from {resp.request.url.path}: {e}",
                status_code=resp.status_code,
            ) from e
        if not isinstance(data, dict):
            raise RepoLoaderError(
                f"Unexpected {type(data).__name__} payload from {resp.request.url.path}",
                status_code=resp.status_code,
            )
        return data
