"""
Data models for agency workflows.

Defines the data structures shared by the metadata store, the branch
resolvers and the workflow orchestrator: the persisted agency metadata,
derived branch pairs, git command results and workflow result records.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class WorkflowStep(Enum):
    """
    Steps of the agency workflows.

    Each error raised by a workflow is tagged with the step it failed in,
    so the command boundary can report where a multi-step workflow stopped.
    """

    PRECHECK = "precheck"
    CONFIG = "config"
    METADATA = "metadata"
    RESOLVE = "resolve"
    FETCH = "fetch"
    FILTER = "filter"
    REBASE = "rebase"
    EMIT = "emit"
    MERGE = "merge"
    PUSH = "push"
    PULL = "pull"
    CLEAN = "clean"
    SWITCH = "switch"
    PROTECTION = "protection"


class BranchType(Enum):
    """Classification of the checked-out branch reported by status."""

    SOURCE = "source"
    EMIT = "emit"
    NEITHER = "neither"


@dataclass
class AgencyMetadata:
    """
    Contents of agency.json on a source branch.

    One record exists per source branch, stored at the repository root.
    Only ``version == 1`` records are ever constructed by the store.
    """

    injected_files: list[str]
    template: str
    created_at: datetime
    version: int = 1
    base_branch: Optional[str] = None
    emit_branch: Optional[str] = None


@dataclass(frozen=True)
class BranchPair:
    """
    Source/emit pairing for the checked-out branch.

    Computed fresh on every command invocation, never persisted.
    """

    source_branch: str
    emit_branch: str
    is_on_emit_branch: bool


@dataclass(frozen=True)
class GitResult:
    """
    Outcome of a git or git-filter-repo invocation.

    Expected non-zero exits are reported through ``exit_code`` rather
    than raised, so callers decide what a failure means.
    """

    command: str
    exit_code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


@dataclass
class RebaseResult:
    """Result of a rebase or next workflow."""

    source_branch: str
    base_branch: str
    fork_point: Optional[str]
    filtered_files: list[str] = field(default_factory=list)
    emit_branch: Optional[str] = None


@dataclass
class EmitResult:
    """Result of producing an emit branch from a source branch."""

    source_branch: str
    emit_branch: str
    base_branch: str
    merge_base: str
    filtered_files: list[str]


@dataclass
class MergeResult:
    """Result of merging an emit branch into its base branch."""

    source_branch: str
    emit_branch: str
    base_branch: str
    squashed: bool
    pushed: bool = False
    forced: bool = False


@dataclass
class PushResult:
    """Result of pushing an emit branch to a remote."""

    branch: str
    remote: str
    forced: bool


@dataclass
class PullResult:
    """
    Result of pulling remote emit commits onto the source branch.

    ``applied`` counts commits cherry-picked successfully, in order.
    """

    source_branch: str
    remote_branch: str
    commits: list[str]
    applied: int


@dataclass(frozen=True)
class CleanCandidate:
    """A branch selected for deletion by the clean workflow."""

    branch: str
    fallback_branch: str
    reason: str  # 'emit' or 'merged'


@dataclass
class CleanResult:
    """Result of the clean workflow."""

    candidates: list[CleanCandidate]
    deleted: list[str]
    dry_run: bool


@dataclass
class StatusReport:
    """Snapshot of the agency state of the checked-out branch."""

    initialized: bool
    branch_type: BranchType
    current_branch: str
    source_branch: Optional[str]
    emit_branch: Optional[str]
    corresponding_branch_exists: bool
    template: Optional[str]
    managed_files: list[str]
    base_branch: Optional[str]
    created_at: Optional[str]

    def to_dict(self) -> dict:
        return {
            "initialized": self.initialized,
            "branchType": self.branch_type.value,
            "currentBranch": self.current_branch,
            "sourceBranch": self.source_branch,
            "emitBranch": self.emit_branch,
            "correspondingBranchExists": self.corresponding_branch_exists,
            "template": self.template,
            "managedFiles": self.managed_files,
            "baseBranch": self.base_branch,
            "createdAt": self.created_at,
        }


@dataclass
class TaskBranchInfo:
    """A task (source) branch listed by the tasks command."""

    branch: str
    template: Optional[str] = None
    base_branch: Optional[str] = None
    created_at: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "branch": self.branch,
            "template": self.template,
            "baseBranch": self.base_branch,
            "createdAt": self.created_at,
        }
