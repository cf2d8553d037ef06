"""Shared fixtures for hostrunner tests."""

import json
import logging
import stat
import threading
from pathlib import Path
from typing import Optional

import pytest

from hostrunner.core.executor import HostAdapter
from hostrunner.core.loader import load_assemblies
from hostrunner.core.models import HostInstance, RunUnit, UnitResult, UnitStatus
from hostrunner.core.state import RunConfiguration
from hostrunner.storage.results import ResultsArtifact


class FakeHostAdapter(HostAdapter):
    """Records executed units instead of launching a host process."""

    def __init__(
        self,
        fail: tuple[str, ...] = (),
        timeout: tuple[str, ...] = (),
        raise_on: tuple[str, ...] = (),
        cancel_after: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
        tag: str = "",
    ):
        self.fail = fail
        self.timeout = timeout
        self.raise_on = raise_on
        self.cancel_after = cancel_after
        self.cancel_event = cancel_event
        self.tag = tag
        self.executed: list[RunUnit] = []
        self.cleanup_calls = 0

    def execute(self, unit, config, append_results):
        self.executed.append(unit)

        if self.cancel_after is not None and len(self.executed) >= self.cancel_after:
            self.cancel_event.set()

        if unit.label in self.raise_on:
            raise RuntimeError(f"adapter broke on {unit.label}")

        if unit.label in self.fail:
            status = UnitStatus.FAILED
        elif unit.label in self.timeout:
            status = UnitStatus.TIMEOUT
        else:
            status = UnitStatus.PASSED

        result = UnitResult.for_unit(unit, status, message=self.tag)
        if append_results and config.results_path:
            ResultsArtifact(config.results_path).append(result)
        return result

    def cleanup(self):
        self.cleanup_calls += 1


def write_manifest(path: Path, data: dict) -> Path:
    path.write_text(json.dumps(data))
    return path


def make_executable(path: Path, content: str = "#!/bin/sh\nexit 0\n") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers installed by CLI runs so later tests do not log to closed streams."""
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)


@pytest.fixture
def sample_manifest(tmp_path: Path) -> Path:
    """An assembly with fixtures A(t1, t2) and B(t3)."""
    return write_manifest(
        tmp_path / "sample.json",
        {
            "fixtures": [
                {"name": "A", "tests": ["t1", "t2"]},
                {"name": "B", "tests": ["t3"]},
            ]
        },
    )


@pytest.fixture
def multi_manifest(tmp_path: Path) -> Path:
    """Two assemblies; fixture 'Shared' and test 'dup' exist in both."""
    return write_manifest(
        tmp_path / "multi.json",
        {
            "assemblies": [
                {
                    "path": "first.dll",
                    "fixtures": [
                        {"name": "First.Alpha", "tests": ["a1", "dup"]},
                        {"name": "Shared", "tests": ["s1"]},
                    ],
                },
                {
                    "path": "second.dll",
                    "fixtures": [
                        {"name": "Shared", "tests": ["s2", "s3"]},
                        {"name": "Second.Beta", "tests": ["dup", "b1"]},
                    ],
                },
            ]
        },
    )


@pytest.fixture
def sample_config(tmp_path: Path, sample_manifest: Path) -> RunConfiguration:
    """A configuration with the sample assembly loaded and a results path set."""
    config = RunConfiguration()
    config.set_working_directory(tmp_path)
    config.set_test_assembly(sample_manifest)
    config.set_results_path(tmp_path / "results.jsonl")
    config.host_instances = [HostInstance("Host 2024", tmp_path)]
    config.assemblies = load_assemblies(sample_manifest, tmp_path)
    return config


@pytest.fixture
def host_install(tmp_path: Path) -> Path:
    """A fake host installation whose executable exits successfully."""
    install = tmp_path / "hosts" / "Host2024"
    make_executable(install / "host")
    return install
