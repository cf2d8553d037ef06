"""Settings remembered between interactive sessions."""

import json
from pathlib import Path
from typing import Optional

import click
import structlog
from pydantic import BaseModel, Field, ValidationError

from hostrunner.core.state import DEFAULT_TIMEOUT_MS, NO_HOST_SELECTED

log = structlog.get_logger("storage.settings")

APP_NAME = "hostrunner"
SETTINGS_FILE = "settings.json"


class UserSettings(BaseModel):
    """The durable subset of the run configuration."""

    working_directory: Optional[str] = Field(default=None, description="Last working directory")
    assembly_path: Optional[str] = Field(default=None, description="Last test assembly")
    results_path: Optional[str] = Field(default=None, description="Last results file")
    is_debug: bool = Field(default=False, description="Debug mode")
    timeout: int = Field(default=DEFAULT_TIMEOUT_MS, ge=1, description="Per-unit timeout in ms")
    selected_product: int = Field(
        default=NO_HOST_SELECTED, description="Index of the selected host instance"
    )


def default_settings_path() -> Path:
    """Per-user settings file location."""
    return Path(click.get_app_dir(APP_NAME)) / SETTINGS_FILE


class SettingsStore:
    """Loads and saves UserSettings as JSON."""

    def __init__(self, path: Path | str | None = None):
        self.path = Path(path) if path else default_settings_path()

    def load(self) -> UserSettings:
        """Load settings; a missing or unreadable file yields the defaults."""
        if not self.path.exists():
            return UserSettings()

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return UserSettings.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            log.warning("Ignoring unreadable settings", path=str(self.path), error=str(e))
            return UserSettings()

    def save(self, settings: UserSettings) -> None:
        """Save settings, creating the settings directory if needed."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(settings.model_dump(), f, indent=2)
        log.debug("Saved settings", path=str(self.path))
