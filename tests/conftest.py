"""
Pytest configuration and shared fixtures for agency tests.

Fixtures build throwaway git repositories under ``tmp_path`` with
GitPython. Every repository starts on ``main`` with one commit holding
README.md.
"""

import json
import sys
from pathlib import Path
from typing import Optional

import pytest
from git import Repo

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from agency.config import AgencyConfig
from agency.git_manager import GitManager
from agency.orchestrator import WorkflowOrchestrator


def init_repo(path: Path) -> Repo:
    """Create a repository on ``main`` with an initial README commit."""
    path.mkdir(parents=True, exist_ok=True)
    repo = Repo.init(path)

    with repo.config_writer() as config:
        config.set_value("user", "name", "Test User")
        config.set_value("user", "email", "test@example.com")
        config.set_value("commit", "gpgsign", "false")

    (path / "README.md").write_text("# Test Repository\n")
    repo.index.add(["README.md"])
    repo.index.commit("Initial commit")
    repo.git.branch("-M", "main")
    return repo


def commit_file(repo: Repo, relative_path: str, content: str, message: Optional[str] = None) -> str:
    """Write, stage and commit one file. Returns the commit hash."""
    path = Path(repo.working_tree_dir) / relative_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    repo.index.add([relative_path])
    commit = repo.index.commit(message or f"Update {relative_path}")
    return commit.hexsha


def metadata_content(**overrides) -> str:
    data = {
        "version": 1,
        "injectedFiles": [],
        "template": "default",
        "createdAt": "2024-01-15T10:30:00.000Z",
    }
    data.update(overrides)
    return json.dumps(data, indent=2) + "\n"


def commit_metadata(repo: Repo, message: str = "Add agency files", **overrides) -> str:
    """Commit agency.json (with ``overrides``) and TASK.md on the current branch."""
    root = Path(repo.working_tree_dir)
    (root / "agency.json").write_text(metadata_content(**overrides))
    (root / "TASK.md").write_text("# Task\n")
    repo.index.add(["agency.json", "TASK.md"])
    return repo.index.commit(message).hexsha


@pytest.fixture(autouse=True)
def isolated_user_config(tmp_path, monkeypatch):
    """Keep tests away from the real ~/.config/agency/agency.json."""
    monkeypatch.setenv("AGENCY_CONFIG_PATH", str(tmp_path / "user-config" / "agency.json"))
    monkeypatch.delenv("AGENCY_CONFIG_DIR", raising=False)


@pytest.fixture
def repo(tmp_path) -> Repo:
    """Fresh repository on main."""
    return init_repo(tmp_path / "repo")


@pytest.fixture
def repo_path(repo) -> Path:
    return Path(repo.working_tree_dir)


@pytest.fixture
def git_manager(repo_path) -> GitManager:
    return GitManager(str(repo_path))


@pytest.fixture
def agency_repo(repo) -> Repo:
    """
    Repository with a source branch ``agency/feature`` checked out.

    ``agency/feature`` carries agency.json (emitBranch ``feature``,
    baseBranch ``main``) and TASK.md on top of main.
    """
    repo.git.checkout("-b", "agency/feature")
    commit_metadata(repo, emitBranch="feature", baseBranch="main")
    return repo


@pytest.fixture
def orchestrator(repo_path) -> WorkflowOrchestrator:
    return WorkflowOrchestrator(str(repo_path), config=AgencyConfig())
