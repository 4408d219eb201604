"""
Command-line interface for agency branch workflows.

Usage:
    agency --help
    agency status --json
    agency next [base-branch] [--emit NAME]
    agency rebase [base-branch] [--emit NAME]
    agency emit [base-branch]
    agency push [--force]
    agency merge [--squash] [--push]
    agency pull [--remote NAME]
    agency clean [--merged-into BRANCH] [--dry-run]
    agency source | switch | tasks [--json]
    agency base get | base set BRANCH [--repo]
"""

import argparse
import json
import logging
import sys
from typing import Optional

from .config import create_default_config, load_config
from .exceptions import AgencyError, WorkflowInterruptedError
from .orchestrator import WorkflowOrchestrator

logger = logging.getLogger(__name__)

EXIT_INTERRUPTED = 130


def _build_orchestrator(args: argparse.Namespace) -> WorkflowOrchestrator:
    return WorkflowOrchestrator(
        repo_path=args.project_root or ".",
        config=load_config(args.config),
    )


def _print_json(data) -> None:
    print(json.dumps(data, indent=2))


def rebase_command(args: argparse.Namespace) -> int:
    """
    Run rebase or next.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    orchestrator = _build_orchestrator(args)
    workflow = orchestrator.next if args.command == "next" else orchestrator.rebase
    result = workflow(base_branch=args.base_branch, emit_branch=args.emit)

    print(f"Rebased {result.source_branch} onto {result.base_branch}")
    if result.filtered_files:
        print(f"Kept history of: {', '.join(result.filtered_files)}")
    if result.emit_branch:
        print(f"Emit branch set to {result.emit_branch}")
    return 0


def emit_command(args: argparse.Namespace) -> int:
    orchestrator = _build_orchestrator(args)
    result = orchestrator.emit(base_branch=args.base_branch, emit_branch=args.emit)
    print(f"Emitted {result.emit_branch} from {result.source_branch} (base: {result.base_branch})")
    return 0


def push_command(args: argparse.Namespace) -> int:
    orchestrator = _build_orchestrator(args)
    result = orchestrator.push(
        force=args.force,
        base_branch=args.base_branch,
        emit_branch=args.emit,
        remote=args.remote,
    )
    verb = "Force pushed" if result.forced else "Pushed"
    print(f"{verb} {result.branch} to {result.remote}")
    return 0


def merge_command(args: argparse.Namespace) -> int:
    orchestrator = _build_orchestrator(args)
    result = orchestrator.merge(squash=args.squash, push=args.push, base_branch=args.base_branch)
    mode = "Squash merged" if result.squashed else "Merged"
    print(f"{mode} {result.emit_branch} into {result.base_branch}")
    if result.pushed:
        print(f"Pushed {result.base_branch}")
    return 0


def pull_command(args: argparse.Namespace) -> int:
    orchestrator = _build_orchestrator(args)
    result = orchestrator.pull(remote=args.remote)
    if not result.commits:
        print("No new commits to pull")
    else:
        print(f"Cherry-picked {result.applied} commit(s) from {result.remote_branch} onto {result.source_branch}")
    return 0


def clean_command(args: argparse.Namespace) -> int:
    """
    Delete emit branches, and merged branches with --merged-into.

    Returns:
        Exit code (0 for success)
    """
    orchestrator = _build_orchestrator(args)
    result = orchestrator.clean(dry_run=args.dry_run, merged_into=args.merged_into)

    if not result.candidates:
        print("No branches to clean")
        return 0

    if result.dry_run:
        print("Would delete:")
        for candidate in result.candidates:
            print(f"  {candidate.branch} ({candidate.reason})")
    else:
        print(f"Deleted {len(result.deleted)} branch(es):")
        for branch in result.deleted:
            print(f"  {branch}")
    return 0


def source_command(args: argparse.Namespace) -> int:
    branch = _build_orchestrator(args).source()
    print(f"On source branch {branch}")
    return 0


def switch_command(args: argparse.Namespace) -> int:
    branch = _build_orchestrator(args).switch()
    print(f"Switched to {branch}")
    return 0


def status_command(args: argparse.Namespace) -> int:
    """
    Show the agency state of the current branch.

    Returns:
        Exit code (always 0 unless git fails)
    """
    report = _build_orchestrator(args).status()
    if args.json:
        _print_json(report.to_dict())
        return 0

    print(f"Branch: {report.current_branch} ({report.branch_type.value})")
    if not report.initialized:
        print("Not initialized (no agency.json)")
    if report.source_branch:
        print(f"Source branch: {report.source_branch}")
    if report.emit_branch:
        exists = "exists" if report.corresponding_branch_exists else "missing"
        print(f"Emit branch: {report.emit_branch}")
        print(f"Counterpart: {exists}")
    if report.base_branch:
        print(f"Base branch: {report.base_branch}")
    if report.template:
        print(f"Template: {report.template}")
    if report.managed_files:
        print("Managed files:")
        for path in report.managed_files:
            print(f"  {path}")
    if report.created_at:
        print(f"Created: {report.created_at}")
    return 0


def tasks_command(args: argparse.Namespace) -> int:
    tasks = _build_orchestrator(args).tasks()
    if args.json:
        _print_json([task.to_dict() for task in tasks])
        return 0

    if not tasks:
        print("No task branches found")
        return 0
    for task in tasks:
        details = ", ".join(
            part
            for part in (
                task.template and f"template: {task.template}",
                task.base_branch and f"base: {task.base_branch}",
            )
            if part
        )
        print(f"{task.branch}  {details}" if details else task.branch)
    return 0


def base_command(args: argparse.Namespace) -> int:
    orchestrator = _build_orchestrator(args)
    if args.base_action == "set":
        orchestrator.set_base_branch(args.branch, repo_level=args.repo)
        scope = "repository default" if args.repo else "agency.json"
        print(f"Set base branch to {args.branch} ({scope})")
        return 0

    print(orchestrator.get_base_branch())
    return 0


def create_config_command(args: argparse.Namespace) -> int:
    path = create_default_config(args.output)
    print(f"Created default configuration: {path}")
    return 0


def _add_rebase_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "base_branch",
        nargs="?",
        help="Base branch (default: agency.json, git config, then remote default)",
    )
    parser.add_argument(
        "--emit",
        "--branch",
        dest="emit",
        help="New emit branch name to record in agency.json",
    )


def create_parser() -> argparse.ArgumentParser:
    """
    Create argument parser for the agency CLI.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog="agency",
        description="Two-branch (source/emit) git workflow for task-based development",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Move on to the next task after the emit branch was merged
  agency next

  # Produce and push the emit branch
  agency push

  # Delete emit branches, preview only
  agency clean --dry-run
        """,
    )
    parser.add_argument("--config", type=str, help="Path to configuration file")
    parser.add_argument(
        "--project-root",
        type=str,
        help="Repository directory (default: current directory)",
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Show debug output")
    verbosity.add_argument("-s", "--silent", action="store_true", help="Only show errors")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    rebase_parser = subparsers.add_parser(
        "rebase", help="Keep only agency files on the source branch and rebase it"
    )
    _add_rebase_arguments(rebase_parser)

    next_parser = subparsers.add_parser(
        "next", help="Start the next task once the emit branch was merged"
    )
    _add_rebase_arguments(next_parser)

    emit_parser = subparsers.add_parser("emit", help="Produce the filtered emit branch")
    _add_rebase_arguments(emit_parser)

    push_parser = subparsers.add_parser("push", help="Emit and push the emit branch")
    _add_rebase_arguments(push_parser)
    push_parser.add_argument("--force", action="store_true", help="Force push if the remote diverged")
    push_parser.add_argument("--remote", help="Remote to push to")

    merge_parser = subparsers.add_parser("merge", help="Merge the emit branch into the base branch")
    merge_parser.add_argument("base_branch", nargs="?", help="Base branch to merge into")
    merge_parser.add_argument("--squash", action="store_true", help="Squash merge")
    merge_parser.add_argument("--push", action="store_true", help="Push the base branch afterwards")

    pull_parser = subparsers.add_parser("pull", help="Cherry-pick remote emit commits onto the source branch")
    pull_parser.add_argument("--remote", help="Remote to fetch from")

    clean_parser = subparsers.add_parser("clean", help="Delete emit branches")
    clean_parser.add_argument(
        "--merged-into",
        metavar="BRANCH",
        help="Also delete local branches merged into BRANCH",
    )
    clean_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be deleted without deleting",
    )

    subparsers.add_parser("source", help="Switch to the source branch")
    subparsers.add_parser("switch", help="Toggle between source and emit branch")

    status_parser = subparsers.add_parser("status", help="Show agency status of the current branch")
    status_parser.add_argument("--json", action="store_true", help="Output JSON")

    tasks_parser = subparsers.add_parser("tasks", help="List task branches")
    tasks_parser.add_argument("--json", action="store_true", help="Output JSON")

    base_parser = subparsers.add_parser("base", help="Get or set the base branch")
    base_subparsers = base_parser.add_subparsers(dest="base_action")
    base_subparsers.add_parser("get", help="Show the effective base branch")
    base_set_parser = base_subparsers.add_parser("set", help="Set the base branch")
    base_set_parser.add_argument("branch", help="Base branch name")
    base_set_parser.add_argument(
        "--repo",
        action="store_true",
        help="Set the repository default (git config) instead of agency.json",
    )

    config_parser = subparsers.add_parser("create-config", help="Create default configuration file")
    config_parser.add_argument("output", nargs="?", help="Output path (default: ~/.config/agency/agency.json)")

    return parser


COMMANDS = {
    "rebase": rebase_command,
    "next": rebase_command,
    "emit": emit_command,
    "push": push_command,
    "merge": merge_command,
    "pull": pull_command,
    "clean": clean_command,
    "source": source_command,
    "switch": switch_command,
    "status": status_command,
    "tasks": tasks_command,
    "base": base_command,
    "create-config": create_config_command,
}


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the agency CLI.

    Args:
        argv: Command-line arguments (None = sys.argv)

    Returns:
        Exit code (0 for success, 1 for failure, 130 when interrupted)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        level = logging.DEBUG
    elif args.silent:
        level = logging.ERROR
    else:
        level = logging.INFO
    logging.basicConfig(
        level=level,
        format="%(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    if not args.command:
        parser.print_help()
        return 0

    try:
        return COMMANDS[args.command](args)
    except WorkflowInterruptedError as e:
        print(str(e), file=sys.stderr)
        return EXIT_INTERRUPTED
    except AgencyError as e:
        logger.debug(f"{type(e).__name__} in step {e.step.value}")
        print(str(e), file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())
