"""
Pytest configuration and shared fixtures for depgraph tests.
"""

import os
import tempfile
from pathlib import Path

# Settings are read once and cached; point them at a throwaway database
# before anything from depgraph is imported.
_TEST_DB_DIR = tempfile.mkdtemp(prefix="depgraph-test-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{Path(_TEST_DB_DIR) / 'test.db'}"
os.environ["FETCH_BASE_DELAY_S"] = "0"
os.environ.pop("LOCAL_SOURCE_ROOT", None)
os.environ.pop("GITHUB_TOKEN", None)

import pytest
from fastapi.testclient import TestClient

from depgraph.adapters.base import BaseRepoLoader, RepoLoaderError
from depgraph.models.repo import SourceFile


class ScriptedLoader(BaseRepoLoader):
    """
    Loader that plays back a script of outcomes, one per call.
    Each step is either a list of SourceFile (success) or an exception.
    """

    def __init__(self, *steps):
        self.steps = list(steps)
        self.calls = []

    async def load(self, repo_url, token=None):
        self.calls.append((repo_url, token))
        step = self.steps[min(len(self.calls), len(self.steps)) - 1]
        if isinstance(step, Exception):
            raise step
        return step


@pytest.fixture
def remote_files():
    return [
        SourceFile("src/app/page.tsx", "import Foo from './foo'"),
        SourceFile("src/app/foo.ts", "export const Foo = 1;"),
    ]


@pytest.fixture
def auth_error():
    return RepoLoaderError("Bad credentials", status_code=401)


@pytest.fixture
def transient_error():
    return RepoLoaderError("Server Error", status_code=502)


@pytest.fixture
def local_project(tmp_path):
    """A small Next.js-style tree on disk, rooted at a dir named 'webapp'."""
    root = tmp_path / "webapp"
    files = {
        "src/app/page.tsx": "import Header from '../components/header'\nimport { db } from '../lib/db'\n",
        "src/components/header.tsx": "import React from 'react'\nexport default function Header() {}\n",
        "src/lib/db.ts": "export const db = {}\n",
        "src/hooks/use-thing.ts": "const x = require('../lib/db')\n",
        "node_modules/react/index.js": "module.exports = {}\n",
        "README.md": "# not source\n",
    }
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def client():
    """FastAPI test client with lifespan (table creation) run."""
    from depgraph.main import app

    with TestClient(app) as c:
        yield c


@pytest.fixture
def scripted_loader():
    return ScriptedLoader
