"""
Unit tests for the Git Manager.

Tests command results, branch queries and mutations, history helpers,
configuration and remote selection against real repositories.
"""

import pytest
from git import Repo

from agency.config import REMOTE_KEY
from agency.exceptions import BranchNotFoundError, GitCommandError, NotAGitRepositoryError
from agency.git_manager import GitManager
from agency.models import GitResult, WorkflowStep

from conftest import commit_file


@pytest.mark.unit
class TestInitialization:
    """Test repository discovery."""

    def test_finds_root_from_subdirectory(self, repo_path):
        subdir = repo_path / "pkg" / "module"
        subdir.mkdir(parents=True)

        manager = GitManager(str(subdir))

        assert manager.root == str(repo_path)

    def test_rejects_non_repository(self, tmp_path):
        plain = tmp_path / "plain"
        plain.mkdir()

        with pytest.raises(NotAGitRepositoryError, match="Not in a git repository"):
            GitManager(str(plain))

    def test_rejects_missing_path(self, tmp_path):
        with pytest.raises(NotAGitRepositoryError):
            GitManager(str(tmp_path / "missing"))

    def test_rejects_bare_repository(self, tmp_path):
        Repo.init(tmp_path / "bare.git", bare=True)

        with pytest.raises(NotAGitRepositoryError):
            GitManager(str(tmp_path / "bare.git"))


@pytest.mark.unit
class TestCommandResults:
    """Test that expected failures are values, not exceptions."""

    def test_successful_command(self, git_manager):
        result = git_manager.run("rev-parse", "--abbrev-ref", "HEAD")

        assert isinstance(result, GitResult)
        assert result.ok
        assert result.stdout == "main"

    def test_failing_command_returns_result(self, git_manager):
        result = git_manager.run("rev-parse", "--verify", "no-such-ref")

        assert not result.ok
        assert result.exit_code != 0
        assert result.stderr

    def test_run_checked_raises_with_stderr(self, git_manager):
        with pytest.raises(GitCommandError) as exc_info:
            git_manager.run_checked(WorkflowStep.SWITCH, "Checkout failed", "checkout", "nope")

        error = exc_info.value
        assert error.step == WorkflowStep.SWITCH
        assert error.exit_code != 0
        assert "nope" in error.stderr
        assert str(error).startswith("[switch] Checkout failed")


@pytest.mark.unit
class TestBranches:
    """Test branch queries and mutations."""

    def test_current_branch(self, git_manager):
        assert git_manager.current_branch() == "main"

    def test_detached_head_has_no_current_branch(self, repo, git_manager):
        repo.git.checkout("--detach")

        with pytest.raises(BranchNotFoundError, match="detached"):
            git_manager.current_branch()

    def test_create_checkout_and_delete(self, git_manager):
        git_manager.create_branch("topic", "main", WorkflowStep.EMIT)
        assert git_manager.local_branch_exists("topic")
        assert git_manager.current_branch() == "main"

        git_manager.checkout("topic")
        assert git_manager.current_branch() == "topic"

        git_manager.checkout("main")
        git_manager.delete_branch("topic", WorkflowStep.CLEAN)
        assert not git_manager.local_branch_exists("topic")

    def test_list_local_branches_sorted(self, repo, git_manager):
        repo.git.branch("zeta")
        repo.git.branch("agency/alpha")

        assert git_manager.list_local_branches() == ["agency/alpha", "main", "zeta"]

    def test_branch_exists_accepts_remote_tracking_refs(self, repo, git_manager):
        repo.git.update_ref("refs/remotes/origin/main", "HEAD")

        assert git_manager.branch_exists("origin/main")
        assert not git_manager.local_branch_exists("origin/main")
        assert not git_manager.branch_exists("origin/other")

    def test_list_merged_branches(self, repo, git_manager):
        repo.git.branch("merged")
        repo.git.checkout("-b", "ahead")
        commit_file(repo, "ahead.txt", "ahead")
        repo.git.checkout("main")

        merged = git_manager.list_merged_branches("main")

        assert "merged" in merged
        assert "main" in merged
        assert "ahead" not in merged

    def test_file_at_ref(self, repo, git_manager):
        repo.git.checkout("-b", "other")
        commit_file(repo, "notes.txt", "hello")
        repo.git.checkout("main")

        assert git_manager.file_at_ref("other", "notes.txt") == "hello"
        assert git_manager.file_at_ref("main", "notes.txt") is None

    def test_clean_and_dirty_tree(self, repo_path, git_manager):
        assert git_manager.is_clean()

        (repo_path / "README.md").write_text("changed\n")

        assert not git_manager.is_clean()

    def test_commit_staged_changes(self, repo_path, git_manager):
        (repo_path / "new.txt").write_text("new")
        git_manager.add(["new.txt"], WorkflowStep.MERGE)
        assert git_manager.has_staged_changes()

        git_manager.commit("Add new", WorkflowStep.MERGE, no_verify=True)

        assert not git_manager.has_staged_changes()
        assert git_manager.is_clean()


@pytest.mark.unit
class TestHistory:
    """Test history helpers."""

    def test_merge_base_and_fork_point(self, repo, git_manager):
        base = repo.head.commit.hexsha
        repo.git.checkout("-b", "topic")
        commit_file(repo, "topic.txt", "topic")
        repo.git.checkout("main")
        commit_file(repo, "main.txt", "main")

        assert git_manager.merge_base("main", "topic") == base
        assert git_manager.fork_point("main", "topic") == base

    def test_merge_base_of_unknown_ref(self, git_manager):
        assert git_manager.merge_base("main", "missing") is None

    def test_commits_between_oldest_first(self, repo, git_manager):
        repo.git.checkout("-b", "topic")
        first = commit_file(repo, "a.txt", "a")
        second = commit_file(repo, "b.txt", "b")

        assert git_manager.commits_between("main", "topic") == [first, second]
        assert git_manager.commits_between("topic", "main") == []


@pytest.mark.unit
class TestConfigAndRemotes:
    """Test repository configuration and remote selection."""

    def test_get_set_unset_config(self, git_manager):
        assert git_manager.get_config("agency.baseBranch") is None

        git_manager.set_config("agency.baseBranch", "develop")
        assert git_manager.get_config("agency.baseBranch") == "develop"

        git_manager.unset_config("agency.baseBranch")
        assert git_manager.get_config("agency.baseBranch") is None

    def test_no_remotes(self, git_manager):
        assert git_manager.resolve_remote() is None

    def test_prefers_origin_then_upstream(self, repo, git_manager):
        repo.create_remote("zzz", "https://example.com/zzz.git")
        assert git_manager.resolve_remote() == "zzz"

        repo.create_remote("upstream", "https://example.com/upstream.git")
        assert git_manager.resolve_remote() == "upstream"

        repo.create_remote("origin", "https://example.com/origin.git")
        assert git_manager.resolve_remote() == "origin"

    def test_configured_remote_wins(self, repo, git_manager):
        repo.create_remote("origin", "https://example.com/origin.git")
        repo.create_remote("fork", "https://example.com/fork.git")
        git_manager.set_config(REMOTE_KEY, "fork")

        assert REMOTE_KEY == "agency.remote"
        assert git_manager.resolve_remote() == "fork"
        assert git_manager.resolve_remote(preferred="origin") == "origin"

    def test_remote_prefix_handling(self, repo, git_manager):
        repo.create_remote("origin", "https://example.com/origin.git")

        assert git_manager.remote_of("origin/main") == "origin"
        assert git_manager.remote_of("main") is None
        assert git_manager.strip_remote("origin/feature/x") == "feature/x"
        assert git_manager.strip_remote("agency/x") == "agency/x"

    def test_default_remote_branch(self, repo, git_manager):
        repo.create_remote("origin", "https://example.com/origin.git")
        assert git_manager.default_remote_branch("origin") is None

        repo.git.update_ref("refs/remotes/origin/main", "HEAD")
        repo.git.symbolic_ref("refs/remotes/origin/HEAD", "refs/remotes/origin/main")

        assert git_manager.default_remote_branch("origin") == "origin/main"
