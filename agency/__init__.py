"""
Two-branch git workflow for task-based development.

A source branch carries task context (agency.json, TASK.md, AGENCY.md and
injected files); its emit branch holds only the reviewable history,
produced by filtering those files out with git-filter-repo.
"""

from .branch_pair import ResolutionContext, STRATEGIES, resolve_branch_pair_with_metadata
from .config import AgencyConfig, load_config
from .exceptions import (
    AgencyError,
    BranchNotFoundError,
    CherryPickConflictError,
    ExternalToolMissingError,
    ForcePushRequiredError,
    GitCommandError,
    MetadataError,
    NotAGitRepositoryError,
    RebaseConflictError,
    UncommittedChangesError,
    ValidationError,
    WorkflowInterruptedError,
)
from .file_manager import FileManager
from .filter_repo import FilterRepoManager
from .git_manager import GitManager
from .metadata import AgencyMetadataStore, parse_metadata, serialize_metadata
from .models import (
    AgencyMetadata,
    BranchPair,
    BranchType,
    CleanCandidate,
    CleanResult,
    EmitResult,
    GitResult,
    MergeResult,
    PullResult,
    PushResult,
    RebaseResult,
    StatusReport,
    TaskBranchInfo,
    WorkflowStep,
)
from .orchestrator import WorkflowOrchestrator
from .rollback import BranchProtection

__version__ = "0.1.0"

__all__ = [
    # Exceptions
    "AgencyError",
    "BranchNotFoundError",
    "CherryPickConflictError",
    "ExternalToolMissingError",
    "ForcePushRequiredError",
    "GitCommandError",
    "MetadataError",
    "NotAGitRepositoryError",
    "RebaseConflictError",
    "UncommittedChangesError",
    "ValidationError",
    "WorkflowInterruptedError",
    # Orchestrator
    "WorkflowOrchestrator",
    "BranchProtection",
    # Resolution
    "ResolutionContext",
    "STRATEGIES",
    "resolve_branch_pair_with_metadata",
    # Gateways
    "FileManager",
    "FilterRepoManager",
    "GitManager",
    "AgencyMetadataStore",
    "parse_metadata",
    "serialize_metadata",
    # Configuration
    "AgencyConfig",
    "load_config",
    # Models
    "AgencyMetadata",
    "BranchPair",
    "BranchType",
    "CleanCandidate",
    "CleanResult",
    "EmitResult",
    "GitResult",
    "MergeResult",
    "PullResult",
    "PushResult",
    "RebaseResult",
    "StatusReport",
    "TaskBranchInfo",
    "WorkflowStep",
]
