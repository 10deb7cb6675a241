"""
linenotes settings.

All settings use Pydantic with strict validation and no silent coercion.
Settings come from an optional JSON file in the project; every field has a
default so a project without a config file works out of the box.
"""

import json
import logging
import os
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import SettingsError

logger = logging.getLogger(__name__)


CONFIG_ENV_VAR = "LINENOTES_CONFIG"
DEFAULT_CONFIG_PATH = Path(".notes") / "config.json"


class NotesSettings(BaseModel):
    """
    Per-project configuration.

    Paths are project-relative unless absolute. Use resolve_store_path() and
    resolve_document_path() to get filesystem paths.
    """

    model_config = {"extra": "forbid", "strict": True}

    store_path: str = Field(
        default=".notes/data.txt", description="Canonical annotation store"
    )
    document_path: str = Field(
        default=".notes.local.md", description="Rendered Markdown document"
    )
    show_preamble: bool = Field(
        default=True, description="Prefix the document with editing instructions"
    )
    include_code: bool = Field(
        default=True, description="Embed source excerpts under each range heading"
    )
    track_columns: bool = Field(
        default=False, description='Accept "<line>,<column>" positions in the store'
    )
    sync_mode: Literal["update", "rewrite"] = Field(
        default="update",
        description='"update" edits text only; "rewrite" replaces the store with the document',
    )

    @field_validator("store_path", "document_path")
    @classmethod
    def validate_non_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Path must not be empty")
        return v

    def resolve_store_path(self, project_root: Path) -> Path:
        return _resolve(project_root, self.store_path)

    def resolve_document_path(self, project_root: Path) -> Path:
        return _resolve(project_root, self.document_path)


def _resolve(project_root: Path, value: str) -> Path:
    path = Path(value).expanduser()
    if path.is_absolute():
        return path
    return Path(project_root) / path


def resolve_config_path(project_root: Path, config_path: Optional[Path] = None) -> Path:
    """Explicit path, then the environment override, then .notes/config.json."""
    if config_path is not None:
        return Path(config_path)
    override = os.environ.get(CONFIG_ENV_VAR, "").strip()
    if override:
        return Path(override).expanduser()
    return Path(project_root) / DEFAULT_CONFIG_PATH


def load_settings(project_root: Path, config_path: Optional[Path] = None) -> NotesSettings:
    """
    Load settings for a project.

    A missing default config file yields defaults. An explicitly requested
    file that is missing, unreadable or invalid is an error.

    Raises:
        SettingsError: If the config file cannot be read or fails validation
    """
    explicit = config_path is not None or bool(os.environ.get(CONFIG_ENV_VAR, "").strip())
    path = resolve_config_path(project_root, config_path)

    if not path.exists():
        if explicit:
            raise SettingsError(f"Config file not found: {path}")
        return NotesSettings()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise SettingsError(f"Failed to read config {path}: {e}") from e

    if not isinstance(data, dict):
        raise SettingsError(f"Config file {path} must contain a JSON object")

    try:
        settings = NotesSettings(**data)
    except ValidationError as e:
        raise SettingsError(f"Invalid config {path}: {e}") from e

    logger.debug(f"Loaded settings from {path}")
    return settings
