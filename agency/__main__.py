"""
Entry point for running agency as a module.

Usage:
    python -m agency [command] [options]

Commands:
    rebase, next         Rebase the source branch onto its base branch
    emit, push, merge    Produce, publish and merge the emit branch
    pull                 Cherry-pick remote emit commits onto the source branch
    clean                Delete emit branches
    source, switch       Move between source and emit branches
    status, tasks        Report agency state
    base                 Get or set the base branch
"""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
