"""
User configuration for agency workflows.

The configuration file holds the branch naming patterns. It lives at
``~/.config/agency/agency.json`` unless ``AGENCY_CONFIG_PATH`` or
``AGENCY_CONFIG_DIR`` point elsewhere. A missing or broken file never
fails a command: defaults are used instead.
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .exceptions import ValidationError
from .models import WorkflowStep
from .patterns import BRANCH_TOKEN

logger = logging.getLogger(__name__)

DEFAULT_SOURCE_PATTERN = f"agency/{BRANCH_TOKEN}"
DEFAULT_EMIT_PATTERN = BRANCH_TOKEN

# Repository-level git config keys
BASE_BRANCH_KEY = "agency.baseBranch"
MAIN_BRANCH_KEY = "agency.mainBranch"
REMOTE_KEY = "agency.remote"
TEMPLATE_KEY = "agency.template"


@dataclass
class AgencyConfig:
    """
    Branch naming configuration.

    Attributes:
        source_branch_pattern: Pattern turning a clean name into a source branch
        emit_branch_pattern: Pattern turning a clean name into an emit branch
    """

    source_branch_pattern: str = DEFAULT_SOURCE_PATTERN
    emit_branch_pattern: str = DEFAULT_EMIT_PATTERN

    def to_dict(self) -> dict[str, str]:
        return {
            "sourceBranchPattern": self.source_branch_pattern,
            "emitBranch": self.emit_branch_pattern,
        }


def get_config_dir() -> Path:
    """Return the configuration directory, honouring ``AGENCY_CONFIG_DIR``."""
    override = os.environ.get("AGENCY_CONFIG_DIR")
    if override:
        return Path(override)
    return Path.home() / ".config" / "agency"


def get_config_path() -> Path:
    """Return the configuration file path, honouring ``AGENCY_CONFIG_PATH``."""
    override = os.environ.get("AGENCY_CONFIG_PATH")
    if override:
        return Path(override)
    return get_config_dir() / "agency.json"


def load_config(config_path: Optional[str] = None) -> AgencyConfig:
    """
    Load agency configuration from a JSON file.

    Args:
        config_path: Path to configuration file (None = default location)

    Returns:
        AgencyConfig instance; defaults when the file is missing or invalid
    """
    path = Path(config_path) if config_path else get_config_path()
    if not path.exists():
        return AgencyConfig()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Could not read config file at {path}: {e}. Using defaults.")
        return AgencyConfig()

    if not isinstance(data, dict):
        logger.warning(f"Config file at {path} is not a JSON object. Using defaults.")
        return AgencyConfig()

    config = AgencyConfig()
    source_pattern = data.get("sourceBranchPattern")
    emit_pattern = data.get("emitBranch")

    if isinstance(source_pattern, str) and source_pattern:
        config.source_branch_pattern = source_pattern
    elif source_pattern is not None:
        logger.warning(f"Ignoring invalid sourceBranchPattern in {path}")

    if isinstance(emit_pattern, str) and emit_pattern:
        config.emit_branch_pattern = emit_pattern
    elif emit_pattern is not None:
        logger.warning(f"Ignoring invalid emitBranch in {path}")

    return config


def create_default_config(output_path: Optional[str] = None) -> Path:
    """
    Write a configuration file holding the defaults.

    Args:
        output_path: Where to write (None = default location)

    Returns:
        Path of the written file

    Raises:
        ValidationError: If the file cannot be written
    """
    path = Path(output_path) if output_path else get_config_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(AgencyConfig().to_dict(), f, indent=2)
            f.write("\n")
    except OSError as e:
        raise ValidationError(WorkflowStep.CONFIG, f"Failed to write configuration {path}: {e}")

    return path
