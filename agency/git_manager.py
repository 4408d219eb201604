"""
Git Manager for agency workflows.

Handles every git invocation the workflows issue: branch queries and
mutations, ref-scoped file reads, fetch/rebase/cherry-pick/merge/push and
repository-level configuration. Built on GitPython; each command returns
a GitResult carrying exit code, stdout and stderr so that expected
non-zero exits are values rather than exceptions.
"""

import logging
from pathlib import Path
from typing import Optional

from git import Repo
from git.exc import GitCommandNotFound, InvalidGitRepositoryError, NoSuchPathError

from .config import REMOTE_KEY
from .exceptions import (
    BranchNotFoundError,
    ExternalToolMissingError,
    GitCommandError,
    NotAGitRepositoryError,
)
from .models import GitResult, WorkflowStep

logger = logging.getLogger(__name__)

PREFERRED_REMOTES = ("origin", "upstream")


class GitManager:
    """
    Manages git operations for agency workflows.

    The checked-out branch is process-wide state shared by every step of a
    workflow, so nothing here caches it: ``current_branch`` asks git each
    time it is called.
    """

    def __init__(self, repo_path: str = "."):
        """
        Initialize Git Manager.

        Args:
            repo_path: Any path inside the working tree of a repository

        Raises:
            NotAGitRepositoryError: If ``repo_path`` is not inside a work tree
        """
        try:
            self.repo = Repo(repo_path, search_parent_directories=True)
        except (InvalidGitRepositoryError, NoSuchPathError):
            raise NotAGitRepositoryError(str(repo_path))

        if self.repo.bare or not self.repo.working_tree_dir:
            raise NotAGitRepositoryError(str(repo_path))

        self.root = str(self.repo.working_tree_dir)

    @property
    def git_dir(self) -> Path:
        return Path(self.repo.git_dir)

    def run(self, *args: str) -> GitResult:
        """
        Run a git command in the repository root.

        Args:
            *args: Arguments following ``git``

        Returns:
            GitResult; non-zero exits are not raised

        Raises:
            ExternalToolMissingError: If the git binary cannot be spawned
        """
        command = ["git", *args]
        try:
            status, stdout, stderr = self.repo.git.execute(
                command,
                with_extended_output=True,
                with_exceptions=False,
            )
        except GitCommandNotFound:
            raise ExternalToolMissingError(
                WorkflowStep.PRECHECK,
                "git",
                "Install git from https://git-scm.com/downloads",
            )
        result = GitResult(
            command=" ".join(command),
            exit_code=status if status is not None else -1,
            stdout=stdout,
            stderr=stderr,
        )
        logger.debug(f"{result.command} -> {result.exit_code}")
        return result

    def run_checked(self, step: WorkflowStep, message: str, *args: str) -> GitResult:
        """
        Run a git command that is expected to succeed.

        Raises:
            GitCommandError: If the command exits non-zero
        """
        result = self.run(*args)
        if not result.ok:
            raise GitCommandError(
                step,
                message,
                command=result.command,
                exit_code=result.exit_code,
                stderr=result.stderr,
            )
        return result

    # Branch queries

    def current_branch(self) -> str:
        """
        Get the checked-out branch name.

        Raises:
            BranchNotFoundError: If HEAD is detached
        """
        result = self.run_checked(
            WorkflowStep.PRECHECK, "Failed to get current branch", "branch", "--show-current"
        )
        branch = result.stdout.strip()
        if not branch:
            raise BranchNotFoundError(
                WorkflowStep.PRECHECK,
                "HEAD",
                "HEAD is detached. Check out a branch first.",
            )
        return branch

    def local_branch_exists(self, branch: str) -> bool:
        return self.run("rev-parse", "--verify", "--quiet", f"refs/heads/{branch}").ok

    def branch_exists(self, branch: str) -> bool:
        """Check for a local branch or a remote-tracking branch of that name."""
        if self.local_branch_exists(branch):
            return True
        return self.run("rev-parse", "--verify", "--quiet", f"refs/remotes/{branch}").ok

    def list_local_branches(self) -> list[str]:
        return sorted(head.name for head in self.repo.heads)

    def list_merged_branches(self, target: str) -> list[str]:
        """List local branches whose tips are reachable from ``target``."""
        result = self.run(
            "for-each-ref", f"--merged={target}", "--format=%(refname)", "refs/heads/"
        )
        if not result.ok:
            return []
        return [
            line.strip()[len("refs/heads/"):]
            for line in result.stdout.splitlines()
            if line.strip().startswith("refs/heads/")
        ]

    def file_at_ref(self, ref: str, path: str) -> Optional[str]:
        """
        Read a file's content at a ref without checking it out.

        Returns:
            File content, or None if the ref or path does not exist
        """
        result = self.run("show", f"{ref}:{path}")
        if not result.ok:
            return None
        return result.stdout

    def status_porcelain(self) -> str:
        return self.run_checked(
            WorkflowStep.PRECHECK, "Failed to read working tree status", "status", "--porcelain"
        ).stdout

    def is_clean(self) -> bool:
        return not self.status_porcelain().strip()

    def has_staged_changes(self) -> bool:
        return self.run("diff", "--cached", "--quiet").exit_code == 1

    # Branch mutations

    def checkout(self, branch: str, step: WorkflowStep = WorkflowStep.SWITCH) -> None:
        self.run_checked(step, f"Failed to checkout branch {branch}", "checkout", branch)

    def create_branch(self, branch: str, start_point: str, step: WorkflowStep) -> None:
        """Create ``branch`` at ``start_point`` without checking it out."""
        self.run_checked(
            step, f"Failed to create branch {branch}", "branch", branch, start_point
        )

    def delete_branch(self, branch: str, step: WorkflowStep, force: bool = True) -> None:
        self.run_checked(
            step,
            f"Failed to delete branch {branch}",
            "branch",
            "-D" if force else "-d",
            branch,
        )

    def add(self, paths: list[str], step: WorkflowStep) -> None:
        self.run_checked(step, "Failed to stage files", "add", "--", *paths)

    def commit(self, message: str, step: WorkflowStep, no_verify: bool = False) -> None:
        args = ["commit", "-m", message]
        if no_verify:
            args.append("--no-verify")
        self.run_checked(step, "Failed to commit", *args)

    def reset_hard(self, ref: str = "HEAD") -> GitResult:
        return self.run("reset", "--hard", ref)

    # History operations

    def merge_base(self, first: str, second: str) -> Optional[str]:
        result = self.run("merge-base", first, second)
        if not result.ok:
            return None
        return result.stdout.strip() or None

    def fork_point(self, base: str, branch: str) -> Optional[str]:
        """
        Find where ``branch`` forked from ``base``.

        ``merge-base --fork-point`` relies on the reflog of ``base``, which
        may be missing or expired; plain merge-base is used when it fails.
        """
        result = self.run("merge-base", "--fork-point", base, branch)
        if result.ok and result.stdout.strip():
            return result.stdout.strip()
        logger.debug(f"Fork-point lookup failed for {base}, using merge-base")
        return self.merge_base(base, branch)

    def fetch(self, remote: str, branch: Optional[str] = None) -> GitResult:
        args = ["fetch", remote]
        if branch:
            args.append(branch)
        return self.run(*args)

    def rebase(self, onto: str) -> GitResult:
        return self.run("rebase", onto)

    def commits_between(self, base: str, head: str) -> list[str]:
        """List commits in ``base..head``, oldest first."""
        result = self.run("rev-list", "--reverse", f"{base}..{head}")
        if not result.ok:
            return []
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def cherry_pick(self, commit: str) -> GitResult:
        return self.run("cherry-pick", commit)

    def merge(self, branch: str, squash: bool = False) -> GitResult:
        if squash:
            return self.run("merge", "--squash", branch)
        return self.run("merge", "--no-edit", branch)

    def push(
        self,
        remote: str,
        branch: str,
        set_upstream: bool = True,
        force: bool = False,
    ) -> GitResult:
        args = ["push"]
        if set_upstream:
            args.append("-u")
        if force:
            args.append("--force")
        args.extend([remote, branch])
        return self.run(*args)

    # Configuration and remotes

    def get_config(self, key: str) -> Optional[str]:
        result = self.run("config", "--local", "--get", key)
        if not result.ok:
            return None
        return result.stdout.strip() or None

    def set_config(self, key: str, value: str, step: WorkflowStep = WorkflowStep.CONFIG) -> None:
        self.run_checked(step, f"Failed to set git config {key}", "config", "--local", key, value)

    def unset_config(self, key: str) -> None:
        # exit code 5 means the key was not set
        self.run("config", "--local", "--unset", key)

    def list_remotes(self) -> list[str]:
        return [remote.name for remote in self.repo.remotes]

    def resolve_remote(self, preferred: Optional[str] = None) -> Optional[str]:
        """
        Pick the remote to talk to.

        Order: ``preferred`` if configured, ``agency.remote`` from git
        config, ``origin``, ``upstream``, then the first configured remote.
        """
        remotes = self.list_remotes()
        if preferred and preferred in remotes:
            return preferred

        configured = self.get_config(REMOTE_KEY)
        if configured and configured in remotes:
            return configured

        for name in PREFERRED_REMOTES:
            if name in remotes:
                return name

        return remotes[0] if remotes else None

    def remote_of(self, branch: str) -> Optional[str]:
        """Return the remote a remote-scoped branch name belongs to, if any."""
        for remote in self.list_remotes():
            if branch.startswith(f"{remote}/"):
                return remote
        return None

    def strip_remote(self, branch: str) -> str:
        remote = self.remote_of(branch)
        if remote:
            return branch[len(remote) + 1:]
        return branch

    def default_remote_branch(self, remote: str) -> Optional[str]:
        """Return what ``<remote>/HEAD`` points to, e.g. ``origin/main``."""
        result = self.run("rev-parse", "--abbrev-ref", f"{remote}/HEAD")
        if not result.ok:
            return None
        value = result.stdout.strip()
        if not value or value == f"{remote}/HEAD":
            return None
        return value
