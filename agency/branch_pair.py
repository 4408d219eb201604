"""
Metadata-aware branch pair resolution.

Classifies the checked-out branch as a source or emit branch and finds
its counterpart. Resolution is an ordered list of strategies; each one
returns a BranchPair or None to defer to the next. The last strategy
always answers.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from .config import AgencyConfig
from .git_manager import GitManager
from .metadata import AgencyMetadataStore
from .models import BranchPair
from .patterns import BRANCH_TOKEN, make_source_name, resolve_branch_pair

logger = logging.getLogger(__name__)


@dataclass
class ResolutionContext:
    """
    Inputs shared by the resolution strategies.

    Attributes:
        current_branch: Branch checked out when resolution started
        repo_root: Repository working tree root
        config: Branch naming patterns
        store: Metadata store used for disk and ref-scoped reads
        git_manager: Git gateway used for branch listing and existence checks
    """

    current_branch: str
    repo_root: str
    config: AgencyConfig
    store: AgencyMetadataStore
    git_manager: GitManager


Strategy = Callable[[ResolutionContext], Optional[BranchPair]]


def from_current_metadata(context: ResolutionContext) -> Optional[BranchPair]:
    """Current branch declares its emit branch in its own agency.json."""
    metadata = context.store.read_from_disk(context.repo_root)
    if not metadata or not metadata.emit_branch:
        return None
    # filtered copies can keep stale metadata naming themselves
    if metadata.emit_branch == context.current_branch:
        return None
    return BranchPair(
        source_branch=context.current_branch,
        emit_branch=metadata.emit_branch,
        is_on_emit_branch=False,
    )


def from_reverse_scan(context: ResolutionContext) -> Optional[BranchPair]:
    """Another local branch declares the current branch as its emit branch."""
    for branch in context.git_manager.list_local_branches():
        if branch == context.current_branch:
            continue
        metadata = context.store.read_from_ref(context.repo_root, branch)
        if metadata and metadata.emit_branch == context.current_branch:
            return BranchPair(
                source_branch=branch,
                emit_branch=context.current_branch,
                is_on_emit_branch=True,
            )
    return None


def from_patterned_source(context: ResolutionContext) -> Optional[BranchPair]:
    """With the identity emit pattern, a patterned source branch exists for the current one."""
    if context.config.emit_branch_pattern != BRANCH_TOKEN:
        return None
    candidate = make_source_name(context.current_branch, context.config.source_branch_pattern)
    if candidate == context.current_branch:
        return None
    if not context.git_manager.local_branch_exists(candidate):
        return None
    return BranchPair(
        source_branch=candidate,
        emit_branch=context.current_branch,
        is_on_emit_branch=True,
    )


def from_patterns(context: ResolutionContext) -> Optional[BranchPair]:
    return resolve_branch_pair(
        context.current_branch,
        context.config.source_branch_pattern,
        context.config.emit_branch_pattern,
    )


STRATEGIES: tuple[Strategy, ...] = (
    from_current_metadata,
    from_reverse_scan,
    from_patterned_source,
    from_patterns,
)


def resolve_branch_pair_with_metadata(
    context: ResolutionContext,
    strategies: Sequence[Strategy] = STRATEGIES,
) -> BranchPair:
    """
    Resolve the branch pair of the current branch.

    Args:
        context: Resolution inputs
        strategies: Ordered strategies, first answer wins

    Returns:
        BranchPair for ``context.current_branch``
    """
    for strategy in strategies:
        pair = strategy(context)
        if pair is not None:
            logger.debug(
                f"Resolved {context.current_branch} via {strategy.__name__}: "
                f"source={pair.source_branch} emit={pair.emit_branch}"
            )
            return pair

    # only reachable with a custom strategy list lacking the pattern fallback
    return from_patterns(context)
