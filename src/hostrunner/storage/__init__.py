"""Storage for run results and interactive settings."""

from hostrunner.storage.results import ResultsArtifact
from hostrunner.storage.settings import SettingsStore, UserSettings

__all__ = ["ResultsArtifact", "SettingsStore", "UserSettings"]
