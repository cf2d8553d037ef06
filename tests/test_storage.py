"""Tests for the results artifact and the settings store."""

import json
import threading

from hostrunner.core.models import UnitKind, UnitResult, UnitStatus
from hostrunner.storage.results import ResultsArtifact
from hostrunner.storage.settings import SettingsStore, UserSettings, default_settings_path


def make_result(test: str, status: UnitStatus = UnitStatus.PASSED) -> UnitResult:
    return UnitResult(kind=UnitKind.TEST, assembly="suite.json", fixture="F", test=test, status=status)


class TestResultsArtifact:
    """Tests for ResultsArtifact."""

    def test_append_and_read(self, tmp_path):
        """Test results are read back in append order."""
        artifact = ResultsArtifact(tmp_path / "out" / "results.jsonl")
        artifact.append(make_result("a"))
        artifact.append(make_result("b", UnitStatus.FAILED))

        results = artifact.read()
        assert [r.test for r in results] == ["a", "b"]
        assert results[1].status == UnitStatus.FAILED

    def test_one_json_object_per_line(self, tmp_path):
        """Test the file holds one JSON object per line."""
        artifact = ResultsArtifact(tmp_path / "results.jsonl")
        artifact.append(make_result("a"))

        lines = artifact.path.read_text().splitlines()
        assert len(lines) == 1
        assert json.loads(lines[0])["test"] == "a"

    def test_reset(self, tmp_path):
        """Test reset deletes an existing file and reports it."""
        artifact = ResultsArtifact(tmp_path / "results.jsonl")
        artifact.append(make_result("a"))

        assert artifact.reset() is True
        assert not artifact.exists()
        assert artifact.reset() is False

    def test_read_missing(self, tmp_path):
        """Test a missing file reads as empty."""
        assert ResultsArtifact(tmp_path / "none.jsonl").read() == []

    def test_read_skips_bad_lines(self, tmp_path):
        """Test unreadable lines are skipped."""
        artifact = ResultsArtifact(tmp_path / "results.jsonl")
        artifact.append(make_result("a"))
        with open(artifact.path, "a") as f:
            f.write("not json\n\n")
        artifact.append(make_result("b"))

        assert [r.test for r in artifact.read()] == ["a", "b"]

    def test_same_file_shares_lock(self, tmp_path):
        """Test artifacts for the same file serialize through one lock."""
        (tmp_path / "sub").mkdir()
        first = ResultsArtifact(tmp_path / "results.jsonl")
        second = ResultsArtifact(tmp_path / "sub" / ".." / "results.jsonl")
        other = ResultsArtifact(tmp_path / "other.jsonl")

        assert first._lock is second._lock
        assert first._lock is not other._lock

    def test_concurrent_appends(self, tmp_path):
        """Test appends from separate instances on separate threads keep whole lines."""
        path = tmp_path / "results.jsonl"

        def write(prefix):
            artifact = ResultsArtifact(path)
            for i in range(50):
                artifact.append(make_result(f"{prefix}{i}"))

        threads = [threading.Thread(target=write, args=(p,)) for p in "abcd"]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        results = ResultsArtifact(path).read()
        assert len(results) == 200
        assert len(path.read_text().splitlines()) == 200


class TestSettingsStore:
    """Tests for SettingsStore."""

    def test_load_missing_gives_defaults(self, tmp_path):
        """Test a missing file yields default settings."""
        settings = SettingsStore(tmp_path / "settings.json").load()
        assert settings == UserSettings()
        assert settings.selected_product == -1
        assert settings.timeout == 120_000

    def test_save_and_load(self, tmp_path):
        """Test settings survive a save and load."""
        store = SettingsStore(tmp_path / "nested" / "settings.json")
        store.save(
            UserSettings(
                working_directory="/work",
                assembly_path="/work/suite.json",
                results_path="/work/results.jsonl",
                is_debug=True,
                timeout=5000,
                selected_product=2,
            )
        )

        loaded = store.load()
        assert loaded.assembly_path == "/work/suite.json"
        assert loaded.is_debug is True
        assert loaded.timeout == 5000
        assert loaded.selected_product == 2

    def test_corrupt_file_gives_defaults(self, tmp_path):
        """Test an unreadable settings file is ignored."""
        path = tmp_path / "settings.json"
        path.write_text("{broken")
        assert SettingsStore(path).load() == UserSettings()

    def test_invalid_values_give_defaults(self, tmp_path):
        """Test settings failing validation are ignored."""
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"timeout": 0}))
        assert SettingsStore(path).load().timeout == 120_000

    def test_default_path(self):
        """Test the default location is in the per-user app directory."""
        path = default_settings_path()
        assert path.name == "settings.json"
        assert "hostrunner" in str(path).lower()
