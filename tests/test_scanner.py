"""
Tests for the source collector: retry policy, failure classification,
local walk and fallback behavior.
"""

import asyncio

import httpx
import pytest

from depgraph.adapters.base import RepoLoaderError
from depgraph.adapters.github import GitHubRepoLoader
from depgraph.models.db import Project
from depgraph.models.repo import SourceOrigin
from depgraph.services import scanner
from depgraph.services.errors import ProjectNotFoundError
from depgraph.services.scanner import (
    FailureKind, ScannerService, SourceFetchError, classify_failure,
)


@pytest.fixture
def sleeps(monkeypatch):
    """Record backoff delays instead of sleeping."""
    recorded = []

    async def fake_sleep(delay):
        recorded.append(delay)

    monkeypatch.setattr(scanner.asyncio, "sleep", fake_sleep)
    return recorded


def fetch(loader, token=None, base_delay=1.0):
    return asyncio.run(
        ScannerService.fetch_with_retry(loader, "https://github.com/acme/web", token, base_delay=base_delay)
    )


class TestClassifyFailure:
    @pytest.mark.parametrize(
        "status,message,kind",
        [
            (401, "Bad credentials", FailureKind.auth),
            (403, "Resource not accessible by integration", FailureKind.auth),
            (None, "Requires authentication", FailureKind.auth),
            (403, "API rate limit exceeded for 1.2.3.4.", FailureKind.rate_limit),
            (429, "Too Many Requests", FailureKind.rate_limit),
            (None, "secondary rate limit", FailureKind.rate_limit),
            (502, "Bad Gateway", FailureKind.transient),
            (None, "ConnectTimeout: timed out", FailureKind.transient),
            (404, "Not Found", FailureKind.transient),
        ],
    )
    def test_signals(self, status, message, kind):
        assert classify_failure(status, message) == kind


class TestFetchWithRetry:
    def test_success_first_try(self, scripted_loader, remote_files, sleeps):
        loader = scripted_loader(remote_files)
        outcome = fetch(loader)

        assert outcome.ok
        assert outcome.files == remote_files
        assert outcome.warning is None
        assert outcome.attempts == 1
        assert sleeps == []

    def test_two_transient_failures_then_success(self, scripted_loader, remote_files, transient_error, sleeps):
        loader = scripted_loader(transient_error, transient_error, remote_files)
        outcome = fetch(loader, base_delay=0.5)

        assert outcome.files == remote_files
        assert outcome.warning is None
        assert outcome.attempts == 3
        assert sleeps == [0.5, 1.0]

    def test_transient_exhaustion_raises(self, scripted_loader, transient_error, sleeps):
        loader = scripted_loader(transient_error)

        with pytest.raises(SourceFetchError) as exc_info:
            fetch(loader)

        assert exc_info.value.attempts == 3
        assert len(loader.calls) == 3
        assert sleeps == [1.0, 2.0]

    def test_auth_failure_stops_immediately(self, scripted_loader, auth_error, remote_files, sleeps):
        loader = scripted_loader(auth_error, remote_files)
        outcome = fetch(loader, token="ghp_bad")

        assert not outcome.ok
        assert outcome.failure == FailureKind.auth
        assert "authentication" in outcome.warning.lower()
        assert len(loader.calls) == 1
        assert sleeps == []

    def test_rate_limit_without_token_stops_immediately(self, scripted_loader, remote_files, sleeps):
        loader = scripted_loader(RepoLoaderError("API rate limit exceeded", 403), remote_files)
        outcome = fetch(loader, token=None)

        assert outcome.failure == FailureKind.rate_limit
        assert "rate limit" in outcome.warning.lower()
        assert len(loader.calls) == 1

    def test_rate_limit_with_token_is_retried(self, scripted_loader, remote_files, sleeps):
        loader = scripted_loader(RepoLoaderError("API rate limit exceeded", 403), remote_files)
        outcome = fetch(loader, token="ghp_ok")

        assert outcome.files == remote_files
        assert len(loader.calls) == 2
        assert loader.calls[0] == ("https://github.com/acme/web", "ghp_ok")

    def test_rate_limit_with_token_exhausted_downgrades(self, scripted_loader, sleeps):
        loader = scripted_loader(RepoLoaderError("Too Many Requests", 429))
        outcome = fetch(loader, token="ghp_ok")

        assert outcome.failure == FailureKind.rate_limit
        assert outcome.warning
        assert len(loader.calls) == 3


class TestWalkLocal:
    def test_allow_list_and_prefix(self, local_project):
        files = ScannerService.walk_local(str(local_project))
        paths = [f.path for f in files]

        assert "webapp/src/app/page.tsx" in paths
        assert "webapp/src/components/header.tsx" in paths
        assert "webapp/src/lib/db.ts" in paths
        assert "webapp/src/hooks/use-thing.ts" in paths
        assert not any(p.endswith("README.md") for p in paths)
        assert not any("node_modules" in p for p in paths)

    def test_reads_full_content(self, local_project):
        files = {f.path: f.content for f in ScannerService.walk_local(str(local_project))}
        assert files["webapp/src/lib/db.ts"] == "export const db = {}\n"

    def test_skip_paths(self, tmp_path):
        root = tmp_path / "proj"
        (root / "prisma" / "migrations").mkdir(parents=True)
        (root / "prisma" / "migrations" / "m.ts").write_text("", encoding="utf-8")
        (root / "prisma" / "seed.ts").write_text("", encoding="utf-8")

        paths = [f.path for f in ScannerService.walk_local(str(root))]
        assert paths == ["proj/prisma/seed.ts"]

    def test_undecodable_bytes_are_replaced(self, tmp_path):
        root = tmp_path / "proj"
        root.mkdir()
        (root / "bin.js").write_bytes(b"const a = '\xff';")

        files = ScannerService.walk_local(str(root))
        assert files[0].content.startswith("const a = '")


class TestCollect:
    def project(self, url="https://github.com/acme/web", token=None):
        return Project(id="p1", name="web", github_url=url, github_token=token)

    def test_remote_success(self, scripted_loader, remote_files):
        collected = asyncio.run(
            ScannerService.collect(self.project(), scripted_loader(remote_files), None, base_delay=0)
        )

        assert collected.origin == SourceOrigin.remote
        assert collected.files == remote_files
        assert collected.warning is None

    def test_auth_failure_falls_back_with_warning(self, scripted_loader, auth_error, local_project):
        collected = asyncio.run(
            ScannerService.collect(self.project(), scripted_loader(auth_error), str(local_project), base_delay=0)
        )

        assert collected.origin == SourceOrigin.local
        assert collected.warning
        assert any(f.path == "webapp/src/lib/db.ts" for f in collected.files)

    def test_auth_failure_without_local_root_is_not_found(self, scripted_loader, auth_error):
        with pytest.raises(ProjectNotFoundError):
            asyncio.run(ScannerService.collect(self.project(), scripted_loader(auth_error), None, base_delay=0))

    def test_missing_local_root_is_not_found(self, scripted_loader, auth_error, tmp_path):
        with pytest.raises(ProjectNotFoundError):
            asyncio.run(
                ScannerService.collect(
                    self.project(), scripted_loader(auth_error), str(tmp_path / "nope"), base_delay=0
                )
            )

    def test_transient_exhaustion_falls_back(self, scripted_loader, transient_error, local_project):
        loader = scripted_loader(transient_error)
        collected = asyncio.run(ScannerService.collect(self.project(), loader, str(local_project), base_delay=0))

        assert collected.origin == SourceOrigin.local
        assert "3 attempts" in collected.warning
        assert len(loader.calls) == 3

    def test_malformed_remote_payload_is_retried_then_falls_back(self, local_project):
        seen = []

        def handler(request):
            seen.append(request.url.path)
            return httpx.Response(200, text="<html>maintenance</html>")

        loader = GitHubRepoLoader(api_url="https://api.test", transport=httpx.MockTransport(handler))
        collected = asyncio.run(ScannerService.collect(self.project(), loader, str(local_project), base_delay=0))

        assert collected.origin == SourceOrigin.local
        assert "3 attempts" in collected.warning
        assert seen == ["/repos/acme/web"] * 3

    def test_invalid_url_falls_back_without_retry(self, local_project):
        class BadUrlLoader(scanner.BaseRepoLoader):
            calls = 0

            async def load(self, repo_url, token=None):
                BadUrlLoader.calls += 1
                raise ValueError("Invalid github url")

        collected = asyncio.run(
            ScannerService.collect(self.project(url="not a url"), BadUrlLoader(), str(local_project), base_delay=0)
        )

        assert collected.origin == SourceOrigin.local
        assert "Invalid github url" in collected.warning
        assert BadUrlLoader.calls == 1

    def test_no_project_record_uses_local(self, scripted_loader, local_project):
        loader = scripted_loader([])
        collected = asyncio.run(ScannerService.collect(None, loader, str(local_project)))

        assert collected.origin == SourceOrigin.local
        assert collected.warning is None
        assert loader.calls == []

    def test_project_token_preferred(self, scripted_loader, remote_files):
        loader = scripted_loader(remote_files)
        asyncio.run(ScannerService.collect(self.project(token="ghp_project"), loader, None, base_delay=0))

        assert loader.calls == [("https://github.com/acme/web", "ghp_project")]
