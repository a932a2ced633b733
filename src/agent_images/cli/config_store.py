"""Local CLI configuration persisted as JSON under the user's config directory."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = "agent-images"
LEGACY_CONFIG_DIR_NAME = "gh-agent-images"
CONFIG_FILE_NAME = "config.json"
DEFAULT_AGENT_NAME = "codex-agent"


class CliConfig(BaseModel):
    """Persisted CLI auth settings."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    api: str
    token: str
    default_agent: str = DEFAULT_AGENT_NAME


def config_path(home: Path | None = None) -> Path:
    """Return the path the CLI writes its config to."""

    return (home or Path.home()) / ".config" / CONFIG_DIR_NAME / CONFIG_FILE_NAME


def legacy_config_path(home: Path | None = None) -> Path:
    """Return the pre-rename config path, read only as a fallback."""

    return (home or Path.home()) / ".config" / LEGACY_CONFIG_DIR_NAME / CONFIG_FILE_NAME


def save_config(config: CliConfig, *, home: Path | None = None) -> Path:
    """Write config to the current path and return it."""

    path = config_path(home)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = config.model_dump(by_alias=True)
    path.write_text(f"{json.dumps(payload, indent=2)}\n", encoding="utf-8")
    return path


def read_config(*, home: Path | None = None) -> CliConfig | None:
    """Return the current config, else the legacy one, else None."""

    for path in (config_path(home), legacy_config_path(home)):
        config = _read_config_file(path)
        if config is not None:
            return config
    return None


def _read_config_file(path: Path) -> CliConfig | None:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    try:
        return CliConfig.model_validate_json(raw)
    except ValidationError:
        logger.warning("cli_config_unreadable path=%s", path)
        return None
