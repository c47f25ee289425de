"""
Source Collector: produces the SourceFiles one graph build analyzes.

Remote first (repository snapshot through a loader, retried with
exponential backoff), local directory walk as the fallback.

Failure handling around the remote fetch:
    AUTH                      → stop, warn, fall back
    RATE_LIMIT, no token      → stop, warn, fall back
    RATE_LIMIT, token present → retry; on exhaustion warn, fall back
    TRANSIENT                 → retry; on exhaustion SourceFetchError,
                                caught in collect() → warn, fall back
"""

import asyncio
import enum
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from depgraph.adapters.base import BaseRepoLoader, RepoLoaderError
from depgraph.config import get_settings
from depgraph.models.db import Project
from depgraph.models.repo import CollectedSources, SourceFile, SourceOrigin
from depgraph.services.errors import ProjectNotFoundError
from depgraph.services.path_resolver import SCRIPT_EXTENSIONS

logger = logging.getLogger("scanner")
settings = get_settings()

# Directories never descended into during the local walk
SKIP_DIRS = {
    "node_modules", ".next", ".git", "dist", "build", "public",
}
# Multi-segment excludes, relative to the walk root
SKIP_PATHS = {"prisma/migrations"}

AUTH_MARKERS = ("bad credentials", "unauthorized", "requires authentication")
RATE_LIMIT_MARKERS = ("rate limit",)


class FailureKind(str, enum.Enum):
    auth = "auth"
    rate_limit = "rate_limit"
    transient = "transient"


class SourceFetchError(Exception):
    """Remote fetch failed after the whole retry budget."""

    def __init__(self, message: str, attempts: int):
        super().__init__(message)
        self.attempts = attempts


@dataclass
class FetchOutcome:
    """
    Result of the retry loop. `files` is None when the fetch was abandoned
    early; `failure` and `warning` then say why.
    """
    files: Optional[List[SourceFile]] = None
    failure: Optional[FailureKind] = None
    warning: Optional[str] = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.files is not None


def classify_failure(status_code: Optional[int], message: str) -> FailureKind:
    """Map the signals a remote reports (HTTP status, message text) to a failure kind."""
    text = (message or "").lower()

    if status_code == 429 or any(m in text for m in RATE_LIMIT_MARKERS):
        return FailureKind.rate_limit
    if status_code in (401, 403) or any(m in text for m in AUTH_MARKERS):
        return FailureKind.auth
    return FailureKind.transient


class ScannerService:
    @staticmethod
    async def fetch_with_retry(
        loader: BaseRepoLoader,
        repo_url: str,
        token: Optional[str] = None,
        max_attempts: Optional[int] = None,
        base_delay: Optional[float] = None,
    ) -> FetchOutcome:
        """
        Call the loader up to max_attempts times, sleeping
        base_delay × 2^attempt between attempts.
        Raises SourceFetchError when transient failures use up the budget.
        """
        max_attempts = max_attempts if max_attempts is not None else settings.FETCH_MAX_ATTEMPTS
        base_delay = base_delay if base_delay is not None else settings.FETCH_BASE_DELAY_S
        has_token = bool(token)
        last_error: Optional[RepoLoaderError] = None
        last_kind: Optional[FailureKind] = None

        for attempt in range(max_attempts):
            try:
                files = await loader.load(repo_url, token)
                if attempt:
                    logger.info(f"Remote fetch of {repo_url} succeeded on attempt {attempt + 1}")
                return FetchOutcome(files=files, attempts=attempt + 1)

            except RepoLoaderError as e:
                last_error = e
                last_kind = classify_failure(e.status_code, e.message)

                if last_kind == FailureKind.auth:
                    logger.warning(f"Remote fetch of {repo_url} rejected credentials: {e.message}")
                    return FetchOutcome(
                        failure=last_kind,
                        warning=f"Repository authentication failed ({e.message}); analyzed local source instead.",
                        attempts=attempt + 1,
                    )

                if last_kind == FailureKind.rate_limit and not has_token:
                    logger.warning(f"Remote fetch of {repo_url} rate limited without a token")
                    return FetchOutcome(
                        failure=last_kind,
                        warning="Repository API rate limit reached and no access token is configured; analyzed local source instead.",
                        attempts=attempt + 1,
                    )

                if attempt + 1 < max_attempts:
                    delay = base_delay * (2 ** attempt)
                    logger.warning(
                        f"Remote fetch of {repo_url} failed ({last_kind.value}, attempt {attempt + 1}/{max_attempts}): "
                        f"{e.message}; retrying in {delay:.1f}s"
                    )
                    await asyncio.sleep(delay)

        if last_kind == FailureKind.rate_limit:
            logger.warning(f"Remote fetch of {repo_url} still rate limited after {max_attempts} attempts")
            return FetchOutcome(
                failure=last_kind,
                warning="Repository API rate limit persisted after retries; analyzed local source instead.",
                attempts=max_attempts,
            )

        message = last_error.message if last_error else "no attempts made"
        logger.error(f"Remote fetch of {repo_url} failed after {max_attempts} attempts: {message}")
        raise SourceFetchError(message, attempts=max_attempts)

    @staticmethod
    def walk_local(root: str) -> List[SourceFile]:
        """
        Collect allow-listed source files under root.
        Keys are prefixed with the root directory's own name.
        """
        root_path = Path(root).resolve()
        prefix = root_path.name
        files: List[SourceFile] = []

        for dirpath, dirnames, filenames in os.walk(root_path):
            rel_dir = Path(dirpath).relative_to(root_path).as_posix()
            # Prune ignored dirs in-place
            dirnames[:] = sorted(
                d for d in dirnames
                if d not in SKIP_DIRS
                and (d if rel_dir == "." else f"{rel_dir}/{d}") not in SKIP_PATHS
            )
            for fname in sorted(filenames):
                if not fname.endswith(SCRIPT_EXTENSIONS):
                    continue
                file_path = Path(dirpath) / fname
                try:
                    content = file_path.read_text(encoding="utf-8", errors="replace")
                except OSError as e:
                    logger.warning(f"Cannot read {file_path}: {e}")
                    continue
                rel = file_path.relative_to(root_path).as_posix()
                files.append(SourceFile(path=f"{prefix}/{rel}" if prefix else rel, content=content))

        return files

    @staticmethod
    async def collect(
        project: Optional[Project],
        loader: BaseRepoLoader,
        local_root: Optional[str] = None,
        base_delay: Optional[float] = None,
    ) -> CollectedSources:
        """
        Remote snapshot when the project names a repository, otherwise (or
        when the remote is unusable) the local root.
        """
        warning: Optional[str] = None

        if project is not None and project.github_url:
            token = project.github_token or settings.GITHUB_TOKEN
            try:
                outcome = await ScannerService.fetch_with_retry(
                    loader, project.github_url, token, base_delay=base_delay
                )
            except ValueError as e:
                logger.warning(f"Project {project.id}: {e} ({project.github_url})")
                warning = f"{e}; analyzed local source instead."
            except SourceFetchError as e:
                warning = f"Repository fetch failed after {e.attempts} attempts ({e}); analyzed local source instead."
            else:
                if outcome.ok:
                    return CollectedSources(files=outcome.files, origin=SourceOrigin.remote)
                warning = outcome.warning

        if not local_root or not os.path.isdir(local_root):
            logger.error(f"No usable source for project {project.id if project else '<unknown>'}")
            raise ProjectNotFoundError("project not found")

        files = await asyncio.to_thread(ScannerService.walk_local, local_root)
        logger.info(f"Collected {len(files)} local files from {local_root}")
        return CollectedSources(files=files, origin=SourceOrigin.local, warning=warning)
