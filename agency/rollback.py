"""
Branch protection for mutating workflows.

A protected region snapshots the checked-out branch on entry. If the
region is left because of an interrupt (Ctrl-C or SIGTERM), exactly one
checkout back to the snapshot is attempted and the outcome is reported
as a WorkflowInterruptedError. Ordinary errors pass through untouched;
the repository stays as the failing step left it.
"""

import logging
import signal
from types import TracebackType
from typing import Optional

from .exceptions import AgencyError, WorkflowInterruptedError
from .git_manager import GitManager

logger = logging.getLogger(__name__)


def _raise_interrupt(signum: int, _frame: object) -> None:
    try:
        name = signal.Signals(signum).name
    except ValueError:
        name = str(signum)
    raise KeyboardInterrupt(name)


class BranchProtection:
    """
    Context manager guarding the checked-out branch.

    Example:
        >>> with BranchProtection(git_manager):
        ...     orchestrator_step()
    """

    def __init__(self, git_manager: GitManager):
        self.git_manager = git_manager
        self.branch: Optional[str] = None
        self._original_handlers: dict[int, object] = {}

    def __enter__(self) -> "BranchProtection":
        self.branch = self.git_manager.current_branch()
        logger.debug(f"Protecting branch {self.branch}")
        self._install_handlers()
        return self

    def __exit__(
        self,
        exc_type: Optional[type],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> bool:
        self._restore_handlers()
        if exc_type is None or not issubclass(exc_type, KeyboardInterrupt):
            return False

        restored, detail = self._restore_branch()
        raise WorkflowInterruptedError(self.branch, restored, detail) from exc

    def _install_handlers(self) -> None:
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                self._original_handlers[signum] = signal.getsignal(signum)
                signal.signal(signum, _raise_interrupt)
            except ValueError:
                # Signal handlers can only be installed in main thread.
                self._original_handlers.pop(signum, None)

    def _restore_handlers(self) -> None:
        for signum, handler in self._original_handlers.items():
            try:
                signal.signal(signum, handler)
            except ValueError:
                logger.debug(f"Could not restore handler for signal {signum}")
        self._original_handlers = {}

    def _restore_branch(self) -> tuple[bool, str]:
        """Make the single restoration attempt."""
        try:
            if self.git_manager.current_branch() == self.branch:
                return True, ""
        except AgencyError:
            # detached HEAD, e.g. in the middle of a rebase
            pass

        result = self.git_manager.run("checkout", self.branch)
        if result.ok:
            logger.info(f"Restored branch {self.branch} after interrupt")
            return True, ""
        logger.error(f"Failed to restore branch {self.branch}: {result.stderr.strip()}")
        return False, result.stderr.strip()
