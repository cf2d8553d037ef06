"""Configuration management for hostrunner."""

import json
import string
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator

CONFIG_NAMES = ["hostrunner.json", ".hostrunner.json"]

COMMAND_PLACEHOLDERS = {
    "host",
    "assembly",
    "fixture",
    "test",
    "unit",
    "working_dir",
    "scratch",
    "debug",
}

DEFAULT_COMMAND = (
    "{host} --assembly {assembly} --fixture {fixture} --test {test}"
    " --working-dir {working_dir}"
)


class HostInstanceConfig(BaseModel):
    """A host installation listed explicitly in the configuration."""

    name: str = Field(description="Display name of the installation")
    install_location: str = Field(description="Directory containing the host executable")


class HostConfig(BaseModel):
    """Host application discovery and launch configuration."""

    executable: str = Field(default="host", description="File name of the host executable")
    search_paths: list[str] = Field(
        default_factory=list,
        description="Directories whose subdirectories are scanned for host installations",
    )
    instances: list[HostInstanceConfig] = Field(
        default_factory=list, description="Host installations to use as-is"
    )
    command: str = Field(
        default=DEFAULT_COMMAND,
        description="Command template used to launch the host for one unit",
    )
    environment: dict[str, str] = Field(
        default_factory=dict, description="Additional environment variables"
    )

    @field_validator("executable")
    @classmethod
    def validate_executable(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Host executable cannot be empty")
        return v

    @field_validator("command")
    @classmethod
    def validate_command(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Host command cannot be empty")
        fields = {name for _, name, _, _ in string.Formatter().parse(v) if name is not None}
        if "" in fields:
            raise ValueError("Host command placeholders must be named, not '{}'")
        unknown = fields - COMMAND_PLACEHOLDERS
        if unknown:
            raise ValueError(
                f"Unknown placeholders in host command: {sorted(unknown)}; "
                f"allowed: {sorted(COMMAND_PLACEHOLDERS)}"
            )
        return v


class RunConfig(BaseModel):
    """Run defaults applied when the command line does not override them."""

    timeout_ms: int = Field(default=120_000, description="Per-unit timeout in milliseconds")
    results_file: str = Field(
        default="results.jsonl",
        description="Results file name, relative to the working directory",
    )

    @field_validator("timeout_ms")
    @classmethod
    def validate_timeout(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Timeout must be at least 1 millisecond")
        return v


class HostRunnerConfig(BaseModel):
    """Main configuration for hostrunner."""

    host: HostConfig = Field(default_factory=HostConfig)
    run: RunConfig = Field(default_factory=RunConfig)

    @classmethod
    def from_file(cls, path: Path | str) -> "HostRunnerConfig":
        """Load configuration from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path, "r") as f:
            data = json.load(f)

        return cls.model_validate(data)

    @classmethod
    def find(cls, start_dir: Path | str | None = None) -> Optional[Path]:
        """Find a configuration file, searching up the directory tree."""
        if start_dir is None:
            start_dir = Path.cwd()
        else:
            start_dir = Path(start_dir)

        current = start_dir.resolve()
        for directory in [current, *current.parents]:
            for name in CONFIG_NAMES:
                config_path = directory / name
                if config_path.exists():
                    return config_path
        return None

    @classmethod
    def find_and_load(cls, start_dir: Path | str | None = None) -> "HostRunnerConfig":
        """Load the nearest configuration file, or the defaults when there is none."""
        config_path = cls.find(start_dir)
        if config_path is None:
            return cls()
        return cls.from_file(config_path)

    def to_file(self, path: Path | str) -> None:
        """Save configuration to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            json.dump(self.model_dump(), f, indent=2)
