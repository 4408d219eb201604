"""
Integration tests for the rebase and next workflows.

Tests precondition ordering, base branch resolution, rebasing and
conflict reporting against real repositories. History filtering is
mocked here; tests/integration/test_filter_workflows.py runs it for real.
"""

import json
from unittest.mock import Mock, patch

import pytest

from agency.exceptions import (
    BranchNotFoundError,
    GitCommandError,
    RebaseConflictError,
    UncommittedChangesError,
    ValidationError,
)
from agency.filter_repo import FilterRepoManager
from agency.models import GitResult

from conftest import commit_file, commit_metadata


def branch_heads(repo):
    return {head.name: head.commit.hexsha for head in repo.heads}


@pytest.fixture
def stub_filter(orchestrator):
    """Replace git-filter-repo with a mock that succeeds without rewriting."""
    filter_repo = Mock(spec=FilterRepoManager)
    filter_repo.retain_paths.return_value = GitResult("git-filter-repo", 0, "", "")
    orchestrator.filter_repo = filter_repo
    return filter_repo


@pytest.mark.integration
class TestPreconditions:
    """Test checks that run before any mutation."""

    def test_next_without_metadata_fails_without_mutation(self, repo, orchestrator):
        before = branch_heads(repo)

        with pytest.raises(ValidationError, match="does not have agency.json"):
            orchestrator.next()

        assert branch_heads(repo) == before
        assert repo.active_branch.name == "main"
        assert not repo.is_dirty(untracked_files=True)

    def test_uncommitted_changes_stop_before_fetch_filter_or_rebase(
        self, agency_repo, repo_path, orchestrator
    ):
        (repo_path / "README.md").write_text("local edit\n")
        orchestrator.filter_repo = Mock(spec=FilterRepoManager)
        git_manager = orchestrator.git_manager

        with patch.object(git_manager, "fetch", wraps=git_manager.fetch) as fetch, patch.object(
            git_manager, "rebase", wraps=git_manager.rebase
        ) as rebase:
            with pytest.raises(UncommittedChangesError, match="uncommitted changes"):
                orchestrator.next()

        fetch.assert_not_called()
        rebase.assert_not_called()
        orchestrator.filter_repo.retain_paths.assert_not_called()
        orchestrator.filter_repo.filter_paths.assert_not_called()

    def test_rebase_without_metadata_fails(self, repo, orchestrator):
        with pytest.raises(ValidationError, match="does not have agency.json"):
            orchestrator.rebase()


@pytest.mark.integration
class TestBaseBranchResolution:
    """Test the base branch fallback chain."""

    def test_explicit_branch_must_exist(self, agency_repo, orchestrator):
        with pytest.raises(BranchNotFoundError, match="missing"):
            orchestrator.resolve_base_branch("missing")

    def test_metadata_base_branch(self, agency_repo, orchestrator):
        agency_repo.git.branch("develop", "main")
        commit_metadata(agency_repo, baseBranch="develop")

        assert orchestrator.resolve_base_branch() == "develop"

    def test_repository_config_beats_conventional_names(self, repo, orchestrator):
        repo.git.branch("trunk")
        repo.git.config("--local", "agency.baseBranch", "trunk")

        assert orchestrator.resolve_base_branch() == "trunk"

    def test_main_branch_hint(self, repo, orchestrator):
        repo.git.branch("stable")
        repo.git.config("--local", "agency.mainBranch", "stable")

        assert orchestrator.resolve_base_branch() == "stable"

    def test_stale_configured_branch_is_skipped(self, repo, orchestrator):
        repo.git.config("--local", "agency.baseBranch", "gone")

        assert orchestrator.resolve_base_branch() == "main"

    def test_remote_default_branch(self, repo, orchestrator):
        repo.create_remote("origin", "https://example.com/origin.git")
        repo.git.update_ref("refs/remotes/origin/develop", "HEAD")
        repo.git.symbolic_ref("refs/remotes/origin/HEAD", "refs/remotes/origin/develop")

        assert orchestrator.resolve_base_branch() == "origin/develop"

    def test_conventional_remote_name(self, repo, orchestrator):
        repo.create_remote("origin", "https://example.com/origin.git")
        repo.git.update_ref("refs/remotes/origin/main", "HEAD")

        assert orchestrator.resolve_base_branch() == "origin/main"

    def test_nothing_resolves(self, repo, orchestrator):
        repo.git.branch("-M", "trunk")

        with pytest.raises(ValidationError, match="Could not auto-detect base branch"):
            orchestrator.resolve_base_branch()


@pytest.mark.integration
class TestRebase:
    """Test rebasing the source branch onto its base."""

    def test_rebases_onto_advanced_base(self, agency_repo, orchestrator, stub_filter):
        agency_repo.git.checkout("main")
        commit_file(agency_repo, "main.txt", "main work")
        agency_repo.git.checkout("agency/feature")

        result = orchestrator.rebase()

        assert result.base_branch == "main"
        assert result.source_branch == "agency/feature"
        assert "agency.json" in result.filtered_files
        assert "TASK.md" in result.filtered_files
        stub_filter.retain_paths.assert_called_once()
        assert agency_repo.is_ancestor("main", "agency/feature")
        assert agency_repo.active_branch.name == "agency/feature"

    def test_records_new_emit_branch(self, agency_repo, repo_path, orchestrator, stub_filter):
        result = orchestrator.rebase(emit_branch="feature-2")

        assert result.emit_branch == "feature-2"
        data = json.loads((repo_path / "agency.json").read_text())
        assert data["emitBranch"] == "feature-2"
        assert data["createdAt"] != "2024-01-15T10:30:00.000Z"
        assert agency_repo.head.commit.message.strip() == (
            "chore: agency rebase (main) agency/feature → feature-2"
        )
        assert not agency_repo.is_dirty()

    def test_conflict_reports_instructions_and_leaves_state(
        self, agency_repo, orchestrator, stub_filter
    ):
        commit_file(agency_repo, "README.md", "source side\n")
        agency_repo.git.checkout("main")
        commit_file(agency_repo, "README.md", "main side\n")
        agency_repo.git.checkout("agency/feature")

        with pytest.raises(RebaseConflictError) as exc_info:
            orchestrator.rebase()

        message = str(exc_info.value)
        assert message.startswith("[rebase]")
        assert "git rebase --continue" in message
        assert "git rebase --abort" in message
        # no automatic abort
        git_dir = orchestrator.git_manager.git_dir
        assert (git_dir / "rebase-merge").exists() or (git_dir / "rebase-apply").exists()

    def test_next_filters_before_rebasing(self, agency_repo, orchestrator):
        calls = []
        filter_repo = Mock(spec=FilterRepoManager)
        filter_repo.retain_paths.side_effect = lambda refs, paths: (
            calls.append(("filter", refs, list(paths))) or GitResult("git-filter-repo", 0, "", "")
        )
        orchestrator.filter_repo = filter_repo
        fork_point = agency_repo.commit("main").hexsha

        result = orchestrator.next()

        assert calls == [("filter", f"{fork_point}..agency/feature", result.filtered_files)]
        assert "agency.json" in result.filtered_files
        filter_repo.ensure_installed.assert_called_once()

    def test_next_filter_failure_is_reported(self, agency_repo, orchestrator):
        filter_repo = Mock(spec=FilterRepoManager)
        filter_repo.retain_paths.return_value = GitResult("git-filter-repo", 1, "", "Aborting: bad refs")
        orchestrator.filter_repo = filter_repo

        with pytest.raises(RebaseConflictError, match="Aborting: bad refs") as exc_info:
            orchestrator.next()

        assert str(exc_info.value).startswith("[filter]")

    def test_failed_reset_after_filter_stops_before_rebase(self, agency_repo, orchestrator, stub_filter):
        git_manager = orchestrator.git_manager
        failed = GitResult("git reset --hard HEAD", 128, "", "fatal: unable to write index")

        with patch.object(git_manager, "reset_hard", return_value=failed), patch.object(
            git_manager, "rebase", wraps=git_manager.rebase
        ) as rebase:
            with pytest.raises(GitCommandError, match="Failed to sync the working tree") as exc_info:
                orchestrator.rebase()

        assert exc_info.value.stderr == "fatal: unable to write index"
        rebase.assert_not_called()
