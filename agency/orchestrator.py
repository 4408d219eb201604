"""
Workflow Orchestrator for agency branch workflows.

Sequences the git and history-filter operations behind each command:
rebase/next, emit, merge, push, pull, clean, source/switch, status, tasks
and base branch management. Every mutating workflow runs inside a
BranchProtection region so an interrupt puts the user back on the branch
they started from.

The checked-out branch is read from git at the start of each step that
depends on it and passed along explicitly; it is never cached across a
git invocation that may change it.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from .branch_pair import ResolutionContext, resolve_branch_pair_with_metadata
from .config import BASE_BRANCH_KEY, MAIN_BRANCH_KEY, TEMPLATE_KEY, AgencyConfig, load_config
from .exceptions import (
    BranchNotFoundError,
    CherryPickConflictError,
    ForcePushRequiredError,
    GitCommandError,
    RebaseConflictError,
    UncommittedChangesError,
    ValidationError,
)
from .file_manager import FileManager
from .filter_repo import FilterRepoManager
from .git_manager import GitManager
from .metadata import METADATA_FILE, AgencyMetadataStore, format_timestamp
from .models import (
    AgencyMetadata,
    BranchPair,
    BranchType,
    CleanCandidate,
    CleanResult,
    EmitResult,
    MergeResult,
    PullResult,
    PushResult,
    RebaseResult,
    StatusReport,
    TaskBranchInfo,
    WorkflowStep,
)
from .patterns import extract_clean, source_prefix
from .rollback import BranchProtection

CONVENTIONAL_BASE_BRANCHES = ("main", "master")

# stderr fragments git prints when a plain push is rejected as non-fast-forward
FORCE_PUSH_MARKERS = (
    "rejected",
    "non-fast-forward",
    "fetch first",
    "Updates were rejected",
)


def needs_force_push(stderr: str) -> bool:
    return any(marker in stderr for marker in FORCE_PUSH_MARKERS)


class WorkflowOrchestrator:
    """
    Coordinator for the agency two-branch workflow.

    Gateways can be injected for testing; by default they are built for
    the repository containing ``repo_path``.
    """

    def __init__(
        self,
        repo_path: str = ".",
        config: Optional[AgencyConfig] = None,
        git_manager: Optional[GitManager] = None,
        file_manager: Optional[FileManager] = None,
        filter_repo: Optional[FilterRepoManager] = None,
        store: Optional[AgencyMetadataStore] = None,
    ):
        """
        Initialize Workflow Orchestrator.

        Args:
            repo_path: Any path inside the repository (default: current directory)
            config: Branch naming configuration (None = load user config)
            git_manager: Git gateway
            file_manager: Filesystem gateway
            filter_repo: History filter gateway
            store: Metadata store

        Raises:
            NotAGitRepositoryError: If ``repo_path`` is not inside a repository
        """
        self.logger = logging.getLogger(__name__)
        self.git_manager = git_manager or GitManager(repo_path)
        self.repo_root = self.git_manager.root
        self.config = config or load_config()
        self.file_manager = file_manager or FileManager()
        self.store = store or AgencyMetadataStore(self.file_manager, self.git_manager)
        self.filter_repo = filter_repo or FilterRepoManager(self.repo_root)

    # Resolution helpers

    def resolve_pair(self, current_branch: Optional[str] = None) -> BranchPair:
        """Resolve the branch pair for ``current_branch`` (default: checked-out branch)."""
        current = current_branch or self.git_manager.current_branch()
        context = ResolutionContext(
            current_branch=current,
            repo_root=self.repo_root,
            config=self.config,
            store=self.store,
            git_manager=self.git_manager,
        )
        return resolve_branch_pair_with_metadata(context)

    def resolve_base_branch(
        self,
        explicit: Optional[str] = None,
        metadata: Optional[AgencyMetadata] = None,
    ) -> str:
        """
        Resolve the base branch through the fallback chain.

        Order: explicit argument, metadata ``baseBranch``, ``agency.baseBranch``,
        ``agency.mainBranch``, ``<remote>/HEAD``, then ``<remote>/main``,
        ``<remote>/master``, ``main`` and ``master``.

        Args:
            explicit: Base branch given by the user
            metadata: Metadata of the source branch (None = read from disk)

        Returns:
            Name of an existing local or remote-tracking branch

        Raises:
            BranchNotFoundError: If ``explicit`` does not exist
            ValidationError: If nothing in the chain resolves
        """
        git = self.git_manager
        if explicit:
            if not git.branch_exists(explicit):
                raise BranchNotFoundError(
                    WorkflowStep.RESOLVE, explicit, f"Base branch {explicit} does not exist"
                )
            return explicit

        if metadata is None:
            metadata = self.store.read_from_disk(self.repo_root)

        configured = [
            metadata.base_branch if metadata else None,
            git.get_config(BASE_BRANCH_KEY),
            git.get_config(MAIN_BRANCH_KEY),
        ]
        for candidate in configured:
            if candidate and git.branch_exists(candidate):
                return candidate
            if candidate:
                self.logger.debug(f"Configured base branch {candidate} does not exist, skipping")

        conventional: list[str] = []
        remote = git.resolve_remote()
        if remote:
            remote_default = git.default_remote_branch(remote)
            if remote_default:
                conventional.append(remote_default)
            conventional.extend(f"{remote}/{name}" for name in CONVENTIONAL_BASE_BRANCHES)
        conventional.extend(CONVENTIONAL_BASE_BRANCHES)

        for candidate in conventional:
            if git.branch_exists(candidate):
                return candidate

        raise ValidationError(
            WorkflowStep.RESOLVE,
            "Could not auto-detect base branch. Please specify one explicitly "
            "or set it with 'agency base set <branch>'.",
        )

    def _require_clean(self, step: WorkflowStep, action: str) -> None:
        if not self.git_manager.is_clean():
            raise UncommittedChangesError(step, action)

    def _require_metadata(self, branch: str, step: WorkflowStep, command: str) -> AgencyMetadata:
        metadata = self.store.read_from_disk(self.repo_root)
        if metadata is None:
            raise ValidationError(
                step,
                f"Current branch {branch} does not have agency.json. "
                f"The {command} command can only be used on agency source branches.",
            )
        return metadata

    def _require_remote(self, step: WorkflowStep, preferred: Optional[str] = None) -> str:
        git = self.git_manager
        if preferred:
            if preferred not in git.list_remotes():
                raise ValidationError(step, f"Remote {preferred} is not configured")
            return preferred
        remote = git.resolve_remote()
        if not remote:
            raise ValidationError(step, "No git remote configured. Add one with 'git remote add'.")
        return remote

    def _fetch_if_remote(self, base_branch: str) -> None:
        remote = self.git_manager.remote_of(base_branch)
        if not remote:
            return
        branch = self.git_manager.strip_remote(base_branch)
        self.logger.info(f"Fetching {base_branch}...")
        result = self.git_manager.fetch(remote, branch)
        if not result.ok:
            raise GitCommandError(
                WorkflowStep.FETCH,
                f"Failed to fetch {base_branch}",
                command=result.command,
                exit_code=result.exit_code,
                stderr=result.stderr,
            )

    def _commit_metadata(self, message: str, step: WorkflowStep) -> None:
        self.git_manager.add([METADATA_FILE], step)
        self.git_manager.commit(message, step, no_verify=True)

    # Rebase / next

    def rebase(
        self, base_branch: Optional[str] = None, emit_branch: Optional[str] = None
    ) -> RebaseResult:
        """
        Rebase the current source branch onto its base branch.

        The branch's own commits since the fork point are first filtered
        down to the filter file set, so only task context is carried onto
        the new base.

        Args:
            base_branch: Explicit base branch (None = fallback chain)
            emit_branch: New emit branch name to record in agency.json

        Returns:
            RebaseResult

        Raises:
            ValidationError: No agency.json, or no base branch resolvable
            UncommittedChangesError: Working tree is dirty
            ExternalToolMissingError: git-filter-repo is not installed
            RebaseConflictError: Filtering or rebasing exited non-zero
        """
        return self._run_rebase("rebase", base_branch, emit_branch)

    def next(
        self, base_branch: Optional[str] = None, emit_branch: Optional[str] = None
    ) -> RebaseResult:
        """
        Move a source branch on to its next unit of work.

        Same workflow as :meth:`rebase`, used once the previous emit branch
        has been merged.
        """
        return self._run_rebase("next", base_branch, emit_branch)

    def _run_rebase(
        self, command: str, base_branch: Optional[str], emit_branch: Optional[str]
    ) -> RebaseResult:
        git = self.git_manager

        with BranchProtection(git):
            current = git.current_branch()
            self.logger.debug(f"Current branch: {current}")
            metadata = self._require_metadata(current, WorkflowStep.PRECHECK, command)
            self._require_clean(WorkflowStep.PRECHECK, "rebasing")
            self.filter_repo.ensure_installed()

            base = self.resolve_base_branch(base_branch, metadata)
            self.logger.info(f"Using base branch: {base}")
            self._fetch_if_remote(base)

            fork_point = git.fork_point(base, current)
            if not fork_point:
                raise GitCommandError(
                    WorkflowStep.REBASE,
                    f"Could not find a common ancestor of {current} and {base}",
                )
            self.logger.debug(f"Fork point: {fork_point}")

            filtered_files = self.store.get_files_to_filter(self.repo_root)
            self.logger.debug(f"Files to keep: {', '.join(filtered_files)}")
            self.filter_repo.clear_state(str(git.git_dir))
            self.logger.info(f"Filtering {current} to agency files...")
            result = self.filter_repo.retain_paths(f"{fork_point}..{current}", filtered_files)
            if not result.ok:
                raise RebaseConflictError(
                    WorkflowStep.FILTER, "git-filter-repo", result.stderr or result.stdout
                )
            result = git.reset_hard("HEAD")
            if not result.ok:
                raise GitCommandError(
                    WorkflowStep.FILTER,
                    f"Failed to sync the working tree after filtering {current}",
                    command=result.command,
                    exit_code=result.exit_code,
                    stderr=result.stderr,
                )

            self.logger.info(f"Rebasing {current} onto {base}...")
            result = git.rebase(base)
            if not result.ok:
                raise RebaseConflictError(WorkflowStep.REBASE, "rebase", result.stderr or result.stdout)

            if emit_branch:
                self._record_emit_branch(current, base, emit_branch)

            self.logger.info(f"Rebased {current} onto {base}")
            return RebaseResult(
                source_branch=current,
                base_branch=base,
                fork_point=fork_point,
                filtered_files=filtered_files,
                emit_branch=emit_branch,
            )

    def _record_emit_branch(self, current: str, base: str, emit_branch: str) -> None:
        metadata = self.store.read_from_disk(self.repo_root)
        if metadata is None:
            self.logger.warning("agency.json disappeared during rebase; emit branch not recorded")
            return
        metadata.emit_branch = emit_branch
        metadata.created_at = datetime.now(timezone.utc)
        self.store.write(self.repo_root, metadata)
        self._commit_metadata(
            f"chore: agency rebase ({base}) {current} → {emit_branch}", WorkflowStep.REBASE
        )
        self.logger.info(f"Updated emit branch to {emit_branch}")

    # Emit / push / merge

    def emit(
        self, base_branch: Optional[str] = None, emit_branch: Optional[str] = None
    ) -> EmitResult:
        """
        Produce the emit branch from the source branch.

        The emit branch is recreated from the source branch and the filter
        file set is stripped from its commits since the merge base. The
        source branch stays checked out.

        Raises:
            ExternalToolMissingError: git-filter-repo is not installed
            RebaseConflictError: git-filter-repo exited non-zero
        """
        with BranchProtection(self.git_manager):
            return self._emit(base_branch, emit_branch)

    def _emit(self, base_branch: Optional[str], emit_branch: Optional[str]) -> EmitResult:
        git = self.git_manager
        self.filter_repo.ensure_installed(WorkflowStep.EMIT)

        current = git.current_branch()
        pair = self.resolve_pair(current)
        self._require_clean(WorkflowStep.EMIT, "emitting")
        if pair.is_on_emit_branch:
            self.logger.info(f"Switching to source branch {pair.source_branch}")
            git.checkout(pair.source_branch, WorkflowStep.EMIT)
        source = pair.source_branch

        metadata = self._require_metadata(source, WorkflowStep.EMIT, "emit")
        target = emit_branch or metadata.emit_branch or pair.emit_branch
        base = self.resolve_base_branch(base_branch, metadata)
        if target in (base, source):
            raise ValidationError(
                WorkflowStep.EMIT,
                f"Emit branch {target} must differ from the source and base branches.",
            )

        if metadata.emit_branch != target:
            metadata.emit_branch = target
            self.store.write(self.repo_root, metadata)
            self._commit_metadata("chore: agency emit", WorkflowStep.EMIT)

        self._fetch_if_remote(base)

        merge_base = git.merge_base(base, source)
        if not merge_base:
            raise GitCommandError(
                WorkflowStep.EMIT, f"Could not find a common ancestor of {source} and {base}"
            )

        if git.local_branch_exists(target):
            git.run_checked(
                WorkflowStep.EMIT, f"Failed to reset branch {target}", "branch", "-f", target, source
            )
        else:
            git.create_branch(target, source, WorkflowStep.EMIT)
        # the emit branch is rewritten; stale upstream tracking would point at old history
        git.unset_config(f"branch.{target}.remote")
        git.unset_config(f"branch.{target}.merge")

        files = self.store.get_files_to_filter(self.repo_root)
        self.filter_repo.clear_state(str(git.git_dir))
        self.logger.info(f"Emitting {target} from {source}...")
        result = self.filter_repo.remove_paths(f"{merge_base}..{target}", files)
        if not result.ok:
            raise RebaseConflictError(WorkflowStep.EMIT, "git-filter-repo", result.stderr or result.stdout)

        if git.current_branch() != source:
            git.checkout(source, WorkflowStep.EMIT)

        self.logger.info(f"Emitted {target}")
        return EmitResult(
            source_branch=source,
            emit_branch=target,
            base_branch=base,
            merge_base=merge_base,
            filtered_files=files,
        )

    def push(
        self,
        force: bool = False,
        base_branch: Optional[str] = None,
        emit_branch: Optional[str] = None,
        remote: Optional[str] = None,
    ) -> PushResult:
        """
        Emit and push the emit branch, ending on the source branch.

        Raises:
            ForcePushRequiredError: Remote rejected the push and ``force`` is False
            GitCommandError: Push failed for another reason
        """
        with BranchProtection(self.git_manager):
            emitted = self._emit(base_branch, emit_branch)
            remote_name = self._require_remote(WorkflowStep.PUSH, remote)
            return self._push_branch(emitted.emit_branch, remote_name, force, emitted.source_branch)

    def _push_branch(self, branch: str, remote: str, force: bool, return_to: str) -> PushResult:
        git = self.git_manager
        git.checkout(branch, WorkflowStep.PUSH)
        forced = False
        try:
            self.logger.info(f"Pushing {branch} to {remote}...")
            result = git.push(remote, branch)
            if not result.ok and needs_force_push(result.stderr):
                if not force:
                    raise ForcePushRequiredError(branch, remote)
                self.logger.info(f"Remote rejected push, force pushing {branch}...")
                result = git.push(remote, branch, force=True)
                forced = True
            if not result.ok:
                raise GitCommandError(
                    WorkflowStep.PUSH,
                    f"Failed to push {branch} to {remote}",
                    command=result.command,
                    exit_code=result.exit_code,
                    stderr=result.stderr,
                )
        except (GitCommandError, ForcePushRequiredError):
            self._return_to(return_to)
            raise

        git.checkout(return_to, WorkflowStep.PUSH)
        return PushResult(branch=branch, remote=remote, forced=forced)

    def _return_to(self, branch: str) -> None:
        result = self.git_manager.run("checkout", branch)
        if not result.ok:
            self.logger.error(f"Could not return to {branch}: {result.stderr.strip()}")

    def merge(
        self,
        squash: bool = False,
        push: bool = False,
        base_branch: Optional[str] = None,
    ) -> MergeResult:
        """
        Merge the emit branch into the base branch.

        From a source branch the emit branch is produced first. The
        workflow ends on the base branch. With ``push``, the base branch
        is pushed (never forced) afterwards.

        Raises:
            UncommittedChangesError: Working tree is dirty
            GitCommandError: Merge or push failed
        """
        git = self.git_manager
        with BranchProtection(git) as protection:
            self._require_clean(WorkflowStep.MERGE, "merging")
            current = git.current_branch()
            pair = self.resolve_pair(current)

            if pair.is_on_emit_branch:
                metadata = self.store.read_from_ref(self.repo_root, pair.source_branch)
                if metadata is None:
                    raise ValidationError(
                        WorkflowStep.MERGE,
                        f"Source branch {pair.source_branch} does not have agency.json",
                    )
                base = self.resolve_base_branch(base_branch, metadata)
                source, emit_branch = pair.source_branch, pair.emit_branch
            else:
                emitted = self._emit(base_branch, None)
                base = emitted.base_branch
                source, emit_branch = emitted.source_branch, emitted.emit_branch

            local_base = git.strip_remote(base)
            if not git.local_branch_exists(local_base):
                raise BranchNotFoundError(
                    WorkflowStep.MERGE, local_base, f"Base branch {local_base} does not exist locally"
                )

            git.checkout(local_base, WorkflowStep.MERGE)
            self.logger.info(f"Merging {emit_branch} into {local_base}...")
            result = git.merge(emit_branch, squash=squash)
            if not result.ok:
                raise GitCommandError(
                    WorkflowStep.MERGE,
                    f"Failed to merge {emit_branch} into {local_base}. "
                    "Resolve the conflicts and commit, or run 'git merge --abort'.",
                    command=result.command,
                    exit_code=result.exit_code,
                    stderr=result.stderr or result.stdout,
                )
            if squash and git.has_staged_changes():
                git.commit(f"Squash merge branch '{emit_branch}' into {local_base}", WorkflowStep.MERGE)

            merge_result = MergeResult(
                source_branch=source,
                emit_branch=emit_branch,
                base_branch=local_base,
                squashed=squash,
            )

            if push:
                remote = self._require_remote(WorkflowStep.PUSH)
                self.logger.info(f"Pushing {local_base} to {remote}...")
                result = git.push(remote, local_base, set_upstream=False)
                if not result.ok:
                    self._return_to(protection.branch)
                    raise GitCommandError(
                        WorkflowStep.PUSH,
                        f"Failed to push {local_base} to {remote}",
                        command=result.command,
                        exit_code=result.exit_code,
                        stderr=result.stderr,
                    )
                merge_result.pushed = True

            self.logger.info(f"Merged {emit_branch} into {local_base}")
            return merge_result

    # Pull

    def pull(self, remote: Optional[str] = None) -> PullResult:
        """
        Bring commits pushed to the remote emit branch onto the source branch.

        Commits in ``<compare>..<remote>/<emit>`` are cherry-picked in
        order, where ``<compare>`` is the local emit branch if it exists,
        else the source branch. Stops at the first conflict.

        Raises:
            CherryPickConflictError: A commit failed to apply
        """
        git = self.git_manager
        with BranchProtection(git):
            current = git.current_branch()
            self._require_clean(WorkflowStep.PULL, "pulling")
            pair = self.resolve_pair(current)
            if pair.is_on_emit_branch:
                self.logger.info(f"Switching to source branch {pair.source_branch}")
                git.checkout(pair.source_branch, WorkflowStep.PULL)

            remote_name = self._require_remote(WorkflowStep.PULL, remote)
            self.logger.info(f"Fetching {remote_name}/{pair.emit_branch}...")
            result = git.fetch(remote_name, pair.emit_branch)
            if not result.ok:
                raise GitCommandError(
                    WorkflowStep.FETCH,
                    f"Failed to fetch {pair.emit_branch} from {remote_name}",
                    command=result.command,
                    exit_code=result.exit_code,
                    stderr=result.stderr,
                )

            remote_branch = f"{remote_name}/{pair.emit_branch}"
            if not git.branch_exists(remote_branch):
                raise BranchNotFoundError(WorkflowStep.PULL, remote_branch)

            compare = pair.emit_branch if git.local_branch_exists(pair.emit_branch) else pair.source_branch
            commits = git.commits_between(compare, remote_branch)
            if not commits:
                self.logger.info("No new commits to pull")
                return PullResult(pair.source_branch, remote_branch, [], 0)

            self.logger.info(f"Cherry-picking {len(commits)} commit(s) from {remote_branch}...")
            applied = 0
            for commit in commits:
                result = git.cherry_pick(commit)
                if not result.ok:
                    raise CherryPickConflictError(commit, applied, len(commits), result.stderr or result.stdout)
                applied += 1

            self.logger.info(f"Pulled {applied} commit(s) onto {pair.source_branch}")
            return PullResult(pair.source_branch, remote_branch, commits, applied)

    # Clean

    def find_clean_candidates(self, merged_into: Optional[str] = None) -> list[CleanCandidate]:
        """
        Collect branches to delete.

        Emit branches declared by any local branch's agency.json, and with
        ``merged_into``, local branches fully merged into that branch. Emit
        candidates come first.
        """
        git = self.git_manager
        candidates: dict[str, CleanCandidate] = {}
        for branch in git.list_local_branches():
            metadata = self.store.read_from_ref(self.repo_root, branch)
            if not metadata or not metadata.emit_branch:
                continue
            emit_branch = metadata.emit_branch
            if emit_branch == branch or emit_branch in candidates:
                continue
            if git.local_branch_exists(emit_branch):
                candidates[emit_branch] = CleanCandidate(emit_branch, branch, "emit")

        if merged_into:
            if not git.branch_exists(merged_into):
                raise BranchNotFoundError(WorkflowStep.CLEAN, merged_into)
            fallback = git.strip_remote(merged_into)
            for branch in git.list_merged_branches(merged_into):
                if branch in (merged_into, fallback) or branch in candidates:
                    continue
                candidates[branch] = CleanCandidate(branch, fallback, "merged")

        return list(candidates.values())

    def clean(self, dry_run: bool = False, merged_into: Optional[str] = None) -> CleanResult:
        """
        Delete emit branches (and optionally merged branches).

        Args:
            dry_run: Only report what would be deleted
            merged_into: Also delete local branches merged into this branch
        """
        git = self.git_manager
        candidates = self.find_clean_candidates(merged_into)
        if dry_run:
            for candidate in candidates:
                self.logger.info(f"Would delete {candidate.branch} ({candidate.reason})")
            return CleanResult(candidates=candidates, deleted=[], dry_run=True)

        deleted: list[str] = []
        with BranchProtection(git):
            for candidate in candidates:
                current = git.current_branch()
                if current == candidate.branch:
                    self.logger.info(f"Switching to {candidate.fallback_branch}")
                    git.checkout(candidate.fallback_branch, WorkflowStep.CLEAN)
                git.delete_branch(candidate.branch, WorkflowStep.CLEAN)
                self.logger.info(f"Deleted {candidate.branch}")
                deleted.append(candidate.branch)

        return CleanResult(candidates=candidates, deleted=deleted, dry_run=False)

    # Navigation

    def source(self) -> str:
        """Check out the source branch of the current pair. Returns the branch."""
        git = self.git_manager
        current = git.current_branch()
        pair = self.resolve_pair(current)
        if not pair.is_on_emit_branch:
            self.logger.info(f"Already on source branch {current}")
            return current
        if not git.local_branch_exists(pair.source_branch):
            raise BranchNotFoundError(WorkflowStep.SWITCH, pair.source_branch)
        git.checkout(pair.source_branch)
        return pair.source_branch

    def switch(self) -> str:
        """Toggle between the source and emit branch. Returns the new branch."""
        git = self.git_manager
        current = git.current_branch()
        pair = self.resolve_pair(current)
        target = pair.source_branch if pair.is_on_emit_branch else pair.emit_branch
        if target == current:
            raise ValidationError(WorkflowStep.SWITCH, f"Branch {current} has no counterpart")
        if not git.local_branch_exists(target):
            hint = "" if pair.is_on_emit_branch else " Run 'agency emit' first."
            raise BranchNotFoundError(
                WorkflowStep.SWITCH, target, f"Branch {target} does not exist.{hint}"
            )
        git.checkout(target)
        return target

    # Reporting

    def status(self) -> StatusReport:
        git = self.git_manager
        current = git.current_branch()
        pair = self.resolve_pair(current)

        if pair.is_on_emit_branch:
            metadata = self.store.read_from_ref(self.repo_root, pair.source_branch)
            branch_type = BranchType.EMIT
            counterpart = pair.source_branch
        else:
            metadata = self.store.read_from_disk(self.repo_root)
            branch_type = BranchType.SOURCE if metadata else BranchType.NEITHER
            counterpart = pair.emit_branch

        is_neither = branch_type == BranchType.NEITHER
        return StatusReport(
            initialized=metadata is not None,
            branch_type=branch_type,
            current_branch=current,
            source_branch=None if is_neither else pair.source_branch,
            emit_branch=None if is_neither else pair.emit_branch,
            corresponding_branch_exists=(
                not is_neither and counterpart != current and git.local_branch_exists(counterpart)
            ),
            template=(metadata.template if metadata else None) or git.get_config(TEMPLATE_KEY),
            managed_files=list(metadata.injected_files) if metadata else [],
            base_branch=(metadata.base_branch if metadata else None) or git.get_config(BASE_BRANCH_KEY),
            created_at=format_timestamp(metadata.created_at) if metadata else None,
        )

    def tasks(self) -> list[TaskBranchInfo]:
        """List task (source) branches with their metadata."""
        pattern = self.config.source_branch_pattern
        prefix = source_prefix(pattern)
        tasks = []
        for branch in self.git_manager.list_local_branches():
            if prefix:
                matches = branch.startswith(prefix)
            else:
                matches = extract_clean(branch, pattern) is not None
            if not matches:
                continue
            metadata = self.store.read_from_ref(self.repo_root, branch)
            tasks.append(
                TaskBranchInfo(
                    branch=branch,
                    template=metadata.template if metadata else None,
                    base_branch=metadata.base_branch if metadata else None,
                    created_at=format_timestamp(metadata.created_at) if metadata else None,
                )
            )
        return tasks

    # Base branch

    def get_base_branch(self) -> str:
        """
        Raises:
            ValidationError: If no base branch resolves
        """
        return self.resolve_base_branch()

    def set_base_branch(self, branch: str, repo_level: bool = False) -> None:
        """
        Store the base branch.

        Args:
            branch: Base branch name
            repo_level: Write ``agency.baseBranch`` git config instead of agency.json

        Raises:
            MetadataError: agency.json is missing or invalid (branch level only)
        """
        if repo_level:
            self.git_manager.set_config(BASE_BRANCH_KEY, branch)
            self.logger.info(f"Set repository base branch to {branch}")
            return
        self.store.set_base_branch(self.repo_root, branch)
        self.logger.info(f"Set base branch to {branch} in agency.json")
