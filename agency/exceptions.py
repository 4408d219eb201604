"""
Exception classes for agency workflows.

Provides a hierarchy of exceptions for the failures a workflow can hit,
so the command boundary can report each one with the right message and
exit code. Soft metadata problems never appear here: the metadata store
turns an absent or invalid agency.json into ``None``.
"""

from typing import Optional

from .models import WorkflowStep


class AgencyError(Exception):
    """
    Base exception for agency operations.

    Attributes:
        step: The workflow step where the error occurred
        message: Human-readable error description
    """

    def __init__(self, step: WorkflowStep, message: str) -> None:
        self.step = step
        self.message = message
        super().__init__(f"[{step.value}] {message}")


class ValidationError(AgencyError):
    """A required input is missing or cannot be resolved (e.g. no base branch)."""


class NotAGitRepositoryError(AgencyError):
    """The working directory is not inside a git repository."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(
            WorkflowStep.PRECHECK,
            "Not in a git repository. Please run this command inside a git repo."
            f" (path: {path})",
        )


class BranchNotFoundError(AgencyError):
    """A branch the workflow depends on does not exist."""

    def __init__(
        self, step: WorkflowStep, branch: str, message: Optional[str] = None
    ) -> None:
        self.branch = branch
        super().__init__(step, message or f"Branch {branch} does not exist")


class UncommittedChangesError(AgencyError):
    """The working tree has changes that a mutating workflow would clobber."""

    def __init__(self, step: WorkflowStep, action: str = "rebasing") -> None:
        super().__init__(
            step,
            f"You have uncommitted changes. Please commit or stash them before {action}.\n"
            "Run 'git status' to see the changes.",
        )


class MetadataError(AgencyError):
    """
    Hard metadata failure.

    Only raised on explicit write paths (writing agency.json, setting the
    base branch); reads treat missing or invalid metadata as absent.
    """


class ExternalToolMissingError(AgencyError):
    """
    A required external binary is not installed.

    Attributes:
        tool: Name of the missing executable
        install_hint: Platform-specific installation guidance
    """

    def __init__(self, step: WorkflowStep, tool: str, install_hint: str) -> None:
        self.tool = tool
        self.install_hint = install_hint
        super().__init__(step, f"{tool} is not installed. {install_hint}")


class GitCommandError(AgencyError):
    """
    A git invocation failed unexpectedly.

    Attributes:
        command: The git command that failed
        exit_code: Process exit code
        stderr: Captured standard error, verbatim
    """

    def __init__(
        self,
        step: WorkflowStep,
        message: str,
        command: Optional[str] = None,
        exit_code: Optional[int] = None,
        stderr: str = "",
    ) -> None:
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        error_msg = message
        if command:
            error_msg = f"{message} (command: {command})"
        if stderr:
            error_msg = f"{error_msg}\n{stderr}"
        super().__init__(step, error_msg)


class RebaseConflictError(AgencyError):
    """
    History filtering or rebasing stopped with a non-zero exit.

    The repository is left exactly as the external tool left it; the
    message carries the raw stderr and the commands to resolve or abort.
    """

    def __init__(self, step: WorkflowStep, operation: str, stderr: str) -> None:
        self.operation = operation
        self.stderr = stderr
        if operation == "rebase":
            instructions = (
                "To resolve:\n"
                "  1. Fix the conflicts in your files\n"
                "  2. Run: git add <resolved-files>\n"
                "  3. Run: git rebase --continue\n\n"
                "To abort the rebase:\n"
                "  Run: git rebase --abort"
            )
            headline = "Rebase failed with conflicts."
        else:
            instructions = (
                "Inspect the repository state with 'git status' and 'git log'.\n"
                "To restore the branch, reset it to its previous tip from the reflog:\n"
                "  Run: git reflog\n"
                "  Run: git reset --hard <previous-tip>"
            )
            headline = f"{operation} failed."
        super().__init__(step, f"{headline}\n\n{stderr}\n\n{instructions}")


class CherryPickConflictError(AgencyError):
    """
    Cherry-picking remote emit commits stopped at a conflict.

    Attributes:
        commit: Full hash of the commit that failed
        applied: Number of commits applied before the failure
        total: Number of commits that were to be applied
    """

    def __init__(
        self, commit: str, applied: int, total: int, stderr: str = ""
    ) -> None:
        self.commit = commit
        self.applied = applied
        self.total = total
        self.stderr = stderr
        message = (
            f"Cherry-picked {applied} of {total} commits before conflict.\n"
            f"Cherry-pick conflict at commit {commit[:8]}.\n"
            "Resolve conflicts, then run: git cherry-pick --continue\n"
            "To give up on this commit, run: git cherry-pick --abort"
        )
        if stderr:
            message = f"{message}\n\n{stderr}"
        super().__init__(WorkflowStep.PULL, message)


class ForcePushRequiredError(AgencyError):
    """The remote rejected a plain push and force was not authorized."""

    def __init__(self, branch: str, remote: str) -> None:
        self.branch = branch
        self.remote = remote
        super().__init__(
            WorkflowStep.PUSH,
            f"Failed to push {branch} to {remote}. The branch has diverged from the remote.\n"
            "Run 'agency push --force' to force push the branch.",
        )


class WorkflowInterruptedError(AgencyError):
    """
    A protected workflow was interrupted by a signal.

    Attributes:
        branch: Branch checked out when the workflow started
        restored: Whether the single restoration checkout succeeded
    """

    def __init__(self, branch: str, restored: bool, detail: str = "") -> None:
        self.branch = branch
        self.restored = restored
        if restored:
            message = f"Interrupted. Restored branch {branch}."
        else:
            message = f"Interrupted. Could not restore branch {branch}."
            if detail:
                message = f"{message}\n{detail}"
            message = f"{message}\nYou may need to run 'git rebase --abort' or 'git checkout {branch}'."
        super().__init__(WorkflowStep.PROTECTION, message)
