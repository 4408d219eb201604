"""
History filtering through git-filter-repo.

git-filter-repo is an external tool; this module only decides how to call
it. It never runs without a ref range, so rewriting is confined to the
commits of one branch.
"""

import logging
import os
import shutil
import subprocess
import sys
from typing import Optional, Sequence

from .exceptions import ExternalToolMissingError
from .models import GitResult, WorkflowStep

logger = logging.getLogger(__name__)

FILTER_REPO_TOOL = "git-filter-repo"


def install_hint(platform: Optional[str] = None) -> str:
    """Return installation guidance for git-filter-repo on ``platform``."""
    platform = platform or sys.platform
    if platform == "darwin":
        return "Please install it via Homebrew: brew install git-filter-repo"
    if platform.startswith("win"):
        return "Please install it with pip: pip install git-filter-repo"
    return (
        "Please install it using your package manager or pip install git-filter-repo. "
        "See: https://github.com/newren/git-filter-repo/blob/main/INSTALL.md"
    )


class FilterRepoManager:
    """Runs git-filter-repo against one repository."""

    def __init__(self, repo_root: str):
        self.repo_root = repo_root

    def is_installed(self) -> bool:
        return shutil.which(FILTER_REPO_TOOL) is not None

    def ensure_installed(self, step: WorkflowStep = WorkflowStep.FILTER) -> None:
        """
        Raises:
            ExternalToolMissingError: If git-filter-repo is not on PATH
        """
        if not self.is_installed():
            raise ExternalToolMissingError(step, FILTER_REPO_TOOL, install_hint())

    def filter_paths(
        self,
        refs: str,
        paths: Sequence[str],
        invert: bool = False,
    ) -> GitResult:
        """
        Rewrite the commits in ``refs`` so that only ``paths`` survive.

        Args:
            refs: Ref range to rewrite, e.g. ``<fork-point>..<branch>``
            paths: Repository-relative paths to keep
            invert: Remove ``paths`` instead of keeping them

        Returns:
            GitResult of the git-filter-repo process

        Raises:
            ExternalToolMissingError: If git-filter-repo is not installed
        """
        self.ensure_installed()

        args = [FILTER_REPO_TOOL]
        for path in paths:
            args.extend(["--path", path])
        if invert:
            args.append("--invert-paths")
        args.extend(["--force", "--refs", refs])

        # user-level git config (aliases, hooks paths) must not leak into the rewrite
        env = dict(os.environ)
        env["GIT_CONFIG_GLOBAL"] = os.devnull

        logger.debug(f"Running {' '.join(args)}")
        try:
            completed = subprocess.run(
                args,
                capture_output=True,
                text=True,
                cwd=self.repo_root,
                env=env,
            )
        except FileNotFoundError:
            raise ExternalToolMissingError(WorkflowStep.FILTER, FILTER_REPO_TOOL, install_hint())

        return GitResult(
            command=" ".join(args),
            exit_code=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
        )

    def retain_paths(self, refs: str, paths: Sequence[str]) -> GitResult:
        return self.filter_paths(refs, paths)

    def remove_paths(self, refs: str, paths: Sequence[str]) -> GitResult:
        return self.filter_paths(refs, paths, invert=True)

    def clear_state(self, git_dir: str) -> None:
        """Delete leftover ``.git/filter-repo`` state from earlier runs."""
        state_dir = os.path.join(git_dir, "filter-repo")
        if os.path.isdir(state_dir):
            shutil.rmtree(state_dir)
            logger.debug(f"Removed {state_dir}")
