"""
Agency Metadata Store.

Reads, validates and writes ``agency.json`` and computes the set of paths
that must survive history filtering. Every read path is soft: a missing,
unparsable, wrong-version or malformed file is reported as ``None`` and
never raised. Only explicit writes fail loudly.
"""

import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Optional

from .exceptions import MetadataError
from .file_manager import FileManager
from .git_manager import GitManager
from .models import AgencyMetadata, WorkflowStep

logger = logging.getLogger(__name__)

METADATA_FILE = "agency.json"
METADATA_VERSION = 1

# Always part of the filter file set, even without metadata
BASE_FILES = ("TASK.md", "AGENCY.md", METADATA_FILE)


def _parse_timestamp(value: str) -> Optional[datetime]:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime) -> str:
    """Format a datetime as ISO-8601 UTC with millisecond precision and a ``Z``."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def _is_str_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(item, str) for item in value)


def _optional_str(data: dict, key: str) -> tuple[bool, Optional[str]]:
    if key not in data or data[key] is None:
        return True, None
    value = data[key]
    if not isinstance(value, str):
        return False, None
    return True, value


def parse_metadata(content: str) -> Optional[AgencyMetadata]:
    """
    Parse and validate agency.json content.

    Args:
        content: Raw file content

    Returns:
        AgencyMetadata, or None if the content is not valid version 1 metadata
    """
    try:
        data = json.loads(content)
    except (json.JSONDecodeError, TypeError):
        logger.debug("agency.json is not valid JSON")
        return None

    if not isinstance(data, dict):
        return None

    version = data.get("version")
    # bool is an int subclass; true must not pass as version 1
    if isinstance(version, bool) or version != METADATA_VERSION:
        logger.debug(f"Unsupported agency.json version: {version!r}")
        return None

    injected_files = data.get("injectedFiles")
    template = data.get("template")
    created_at = data.get("createdAt")
    if not _is_str_list(injected_files):
        return None
    if not isinstance(template, str) or not isinstance(created_at, str):
        return None

    timestamp = _parse_timestamp(created_at)
    if timestamp is None:
        return None

    base_ok, base_branch = _optional_str(data, "baseBranch")
    emit_ok, emit_branch = _optional_str(data, "emitBranch")
    if not (base_ok and emit_ok):
        return None

    return AgencyMetadata(
        injected_files=list(injected_files),
        template=template,
        created_at=timestamp,
        version=METADATA_VERSION,
        base_branch=base_branch,
        emit_branch=emit_branch,
    )


def serialize_metadata(metadata: AgencyMetadata) -> str:
    """Serialize metadata as pretty-printed JSON with a trailing newline."""
    data: dict[str, Any] = {
        "version": metadata.version,
        "injectedFiles": list(metadata.injected_files),
    }
    if metadata.base_branch:
        data["baseBranch"] = metadata.base_branch
    data["template"] = metadata.template
    data["createdAt"] = format_timestamp(metadata.created_at)
    if metadata.emit_branch:
        data["emitBranch"] = metadata.emit_branch
    return json.dumps(data, indent=2) + "\n"


class AgencyMetadataStore:
    """
    Access to the agency.json record of a repository.

    Reads from disk use the Filesystem Gateway; reads at a ref go through
    the Git Gateway with ``git show`` and never touch the working tree.
    """

    def __init__(
        self,
        file_manager: Optional[FileManager] = None,
        git_manager: Optional[GitManager] = None,
    ):
        self.file_manager = file_manager or FileManager()
        self.git_manager = git_manager

    def _metadata_path(self, repo_root: str) -> str:
        return os.path.join(repo_root, METADATA_FILE)

    def _git(self, repo_root: str) -> GitManager:
        if self.git_manager is None:
            self.git_manager = GitManager(repo_root)
        return self.git_manager

    def exists(self, repo_root: str) -> bool:
        return self.file_manager.exists(self._metadata_path(repo_root))

    def read_from_disk(self, repo_root: str) -> Optional[AgencyMetadata]:
        """
        Read agency.json from the working tree.

        Returns:
            AgencyMetadata, or None if missing or invalid
        """
        path = self._metadata_path(repo_root)
        if not self.file_manager.exists(path):
            return None
        try:
            content = self.file_manager.read_file(path)
        except (OSError, UnicodeDecodeError) as e:
            logger.debug(f"Could not read {path}: {e}")
            return None
        return parse_metadata(content)

    def read_from_ref(self, repo_root: str, ref: str) -> Optional[AgencyMetadata]:
        """
        Read agency.json as committed on ``ref`` without checking it out.

        Returns:
            AgencyMetadata, or None if the ref has no valid agency.json
        """
        content = self._git(repo_root).file_at_ref(ref, METADATA_FILE)
        if content is None:
            return None
        return parse_metadata(content)

    def write(self, repo_root: str, metadata: AgencyMetadata) -> None:
        """
        Write agency.json to the working tree.

        Raises:
            MetadataError: If the file cannot be written
        """
        path = self._metadata_path(repo_root)
        try:
            self.file_manager.write_file(path, serialize_metadata(metadata))
        except OSError as e:
            raise MetadataError(WorkflowStep.METADATA, f"Failed to write {path}: {e}")
        logger.debug(f"Wrote {path}")

    def get_files_to_filter(self, repo_root: str) -> list[str]:
        """
        Compute the filter file set.

        The base files, the injected files from metadata with globs
        expanded, and the repository-relative target of every symlink among
        them. Injected entries and symlink targets outside the repository
        are dropped one by one; the rest of the set is kept.

        Returns:
            Ordered, de-duplicated list of repository-relative paths
        """
        files: dict[str, None] = dict.fromkeys(BASE_FILES)
        metadata = self.read_from_disk(repo_root)
        if metadata:
            expanded = self.file_manager.expand_globs(metadata.injected_files, repo_root)
            files.update(dict.fromkeys(expanded))

        for path in list(files):
            target = self._resolve_symlink_target(repo_root, path)
            if target:
                files[target] = None

        return list(files)

    def _resolve_symlink_target(self, repo_root: str, path: str) -> Optional[str]:
        full_path = os.path.join(repo_root, path)
        raw_target = self.file_manager.read_symlink_target(full_path)
        if not raw_target:
            return None

        if os.path.isabs(raw_target):
            try:
                relative = os.path.relpath(raw_target, repo_root)
            except ValueError:
                # different drive on Windows
                return None
        else:
            relative = os.path.normpath(os.path.join(os.path.dirname(path), raw_target))

        relative = relative.replace(os.sep, "/")
        if relative == "." or relative == ".." or relative.startswith("../"):
            logger.debug(f"Ignoring symlink target outside repository: {path} -> {raw_target}")
            return None
        return relative

    def get_base_branch(self, repo_root: str) -> Optional[str]:
        metadata = self.read_from_disk(repo_root)
        return metadata.base_branch if metadata else None

    def set_base_branch(self, repo_root: str, branch: str) -> AgencyMetadata:
        """
        Record the base branch in agency.json.

        Raises:
            MetadataError: If agency.json is missing or invalid
        """
        if not self.exists(repo_root):
            raise MetadataError(
                WorkflowStep.METADATA,
                "agency.json not found. Please run 'agency task' first to initialize backpack files.",
            )
        metadata = self.read_from_disk(repo_root)
        if metadata is None:
            raise MetadataError(
                WorkflowStep.METADATA,
                "agency.json is invalid. Fix or recreate it before setting a base branch.",
            )
        metadata.base_branch = branch
        self.write(repo_root, metadata)
        return metadata
