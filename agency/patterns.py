"""Branch name pattern algebra for source and emit branches.

A pattern either contains the ``%branch%`` placeholder or is a literal.
Literal source patterns act as prefixes, literal emit patterns as
suffixes, and the bare ``%branch%`` emit pattern means the emit branch
carries the clean name unchanged.
"""

from typing import Optional

from .models import BranchPair

BRANCH_TOKEN = "%branch%"


def make_source_name(clean: str, pattern: str) -> str:
    """Apply a source pattern to a clean branch name.

    Example:
        >>> make_source_name("main", "agency/%branch%")
        'agency/main'
        >>> make_source_name("main", "agency--")
        'agency--main'
    """
    if BRANCH_TOKEN in pattern:
        return pattern.replace(BRANCH_TOKEN, clean, 1)
    return pattern + clean


def _split_around_token(name: str, pattern: str) -> Optional[str]:
    parts = pattern.split(BRANCH_TOKEN)
    if len(parts) != 2:
        return None
    prefix, suffix = parts
    if not name.startswith(prefix) or not name.endswith(suffix):
        return None
    # len() checks guard against prefix and suffix overlapping in short names
    if len(name) < len(prefix) + len(suffix):
        return None
    clean = name[len(prefix):len(name) - len(suffix)]
    return clean or None


def extract_clean(source_branch: str, pattern: str) -> Optional[str]:
    """Inverse of :func:`make_source_name`.

    Returns:
        The clean branch name, or None when ``source_branch`` does not
        match ``pattern`` or the match would be empty.
    """
    if BRANCH_TOKEN in pattern:
        return _split_around_token(source_branch, pattern)

    if not source_branch.startswith(pattern):
        return None
    return source_branch[len(pattern):] or None


def make_emit_name(clean: str, emit_pattern: str) -> str:
    """Apply an emit pattern to a clean branch name.

    Example:
        >>> make_emit_name("main", "%branch%")
        'main'
        >>> make_emit_name("feature", "%branch%--PR")
        'feature--PR'
        >>> make_emit_name("feature", "--PR")
        'feature--PR'
    """
    if emit_pattern == BRANCH_TOKEN:
        return clean
    if BRANCH_TOKEN in emit_pattern:
        return emit_pattern.replace(BRANCH_TOKEN, clean, 1)
    return clean + emit_pattern


def extract_clean_from_emit(emit_branch: str, emit_pattern: str) -> Optional[str]:
    """Inverse of :func:`make_emit_name`."""
    if emit_pattern == BRANCH_TOKEN:
        return emit_branch or None
    if BRANCH_TOKEN in emit_pattern:
        return _split_around_token(emit_branch, emit_pattern)

    if not emit_pattern or not emit_branch.endswith(emit_pattern):
        return None
    return emit_branch[:-len(emit_pattern)] or None


def resolve_branch_pair(
    current: str, source_pattern: str, emit_pattern: str
) -> BranchPair:
    """
    Classify a branch from its name alone.

    Source-pattern matches are source branches. Otherwise, unless the emit
    pattern is the bare token (which would match anything), emit-pattern
    matches are emit branches. Anything else is a legacy branch, treated
    as a source branch whose clean name is its own name.
    """
    clean = extract_clean(current, source_pattern)
    if clean:
        return BranchPair(
            source_branch=current,
            emit_branch=make_emit_name(clean, emit_pattern),
            is_on_emit_branch=False,
        )

    if emit_pattern != BRANCH_TOKEN:
        clean = extract_clean_from_emit(current, emit_pattern)
        if clean:
            return BranchPair(
                source_branch=make_source_name(clean, source_pattern),
                emit_branch=current,
                is_on_emit_branch=True,
            )

    return BranchPair(
        source_branch=current,
        emit_branch=make_emit_name(current, emit_pattern),
        is_on_emit_branch=False,
    )


def source_prefix(pattern: str) -> str:
    """Return the literal part of a source pattern before the placeholder."""
    if BRANCH_TOKEN in pattern:
        return pattern.split(BRANCH_TOKEN, 1)[0]
    return pattern
