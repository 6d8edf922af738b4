"""Server configuration model and YAML loader."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "mdpreview.yml"
VALID_THEMES = ("light", "dark", "auto")
DEFAULT_THEME = "auto"


class ServerConfig(BaseModel):
    """Immutable settings for one preview server instance."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    host: str = Field(default="localhost", description="Interface the listener binds to.")
    port: int = Field(default=6419, ge=0, le=65535, description="TCP port; 0 picks a free port.")
    theme: str = Field(default=DEFAULT_THEME, description="Page theme: light, dark or auto.")
    bounding_box: bool = Field(default=True, description="Draw a box around the rendered document.")
    browser: bool = Field(default=True, description="Open the announced URL in a browser on start.")

    @field_validator("theme", mode="before")
    @classmethod
    def _normalize_theme(cls, value: Any) -> str:
        if value in VALID_THEMES:
            return str(value)
        logger.warning("Unknown theme '%s', defaulting to '%s'.", value, DEFAULT_THEME)
        return DEFAULT_THEME

    def merged(self, **overrides: Any) -> "ServerConfig":
        """Return a validated copy with ``overrides`` applied, ignoring ``None`` values."""
        updates = {key: value for key, value in overrides.items() if value is not None}
        if not updates:
            return self
        return ServerConfig(**{**self.model_dump(), **updates})


def load_config(path: str | Path) -> ServerConfig:
    """Load server settings from YAML.

    ``path`` may name a config file or a directory. A directory without a
    ``mdpreview.yml`` yields the defaults; an explicit file that does not exist
    raises ``FileNotFoundError``. Malformed YAML or invalid values raise
    ``ValueError``.
    """
    candidate = Path(path)
    if candidate.is_dir():
        config_file = candidate / CONFIG_FILENAME
        if not config_file.exists():
            return ServerConfig()
    else:
        config_file = candidate
        if not config_file.exists():
            raise FileNotFoundError(config_file)

    try:
        with config_file.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {config_file}: {exc}") from exc

    if not isinstance(data, dict):
        raise ValueError(f"Configuration file {config_file} should define a mapping.")

    logger.debug("Loaded configuration from %s", config_file)
    return ServerConfig(**data)
