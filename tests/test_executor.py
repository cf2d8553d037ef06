"""Tests for the host process adapter."""

from pathlib import Path

import pytest

from conftest import make_executable
from hostrunner.config import HostConfig
from hostrunner.core.executor import HostAdapter, ProcessHostAdapter
from hostrunner.core.models import (
    AssemblyData,
    FixtureData,
    HostInstance,
    RunUnit,
    TestData,
    UnitKind,
    UnitStatus,
)
from hostrunner.core.state import RunConfiguration
from hostrunner.storage.results import ResultsArtifact


@pytest.fixture
def assembly(tmp_path) -> AssemblyData:
    return AssemblyData(
        path=tmp_path / "suite.json",
        fixtures=[FixtureData(name="Ns.Walls", tests=[TestData("test_create")])],
    )


@pytest.fixture
def config(tmp_path) -> RunConfiguration:
    config = RunConfiguration(host_instances=[HostInstance("Host", tmp_path / "install")])
    config.set_working_directory(tmp_path)
    config.set_results_path(tmp_path / "results.jsonl")
    config.timeout_ms = 10_000
    return config


def make_unit(assembly: AssemblyData) -> RunUnit:
    fixture = assembly.fixtures[0]
    return RunUnit.for_test(assembly, fixture, fixture.tests[0])


class TestProcessHostAdapter:
    """Tests for ProcessHostAdapter."""

    def test_passing_command(self, assembly, config):
        """Test a zero exit code is a passed unit."""
        adapter = ProcessHostAdapter(HostConfig(command="echo {fixture} {test}"))
        result = adapter.execute(make_unit(assembly), config, append_results=False)

        assert result.status == UnitStatus.PASSED
        assert result.exit_code == 0
        assert result.message == "Ns.Walls test_create"
        assert result.kind == UnitKind.TEST
        assert result.finished_at is not None

    def test_failing_command(self, assembly, config):
        """Test a non-zero exit code is a failed unit with stderr as message."""
        adapter = ProcessHostAdapter(HostConfig(command="echo broken >&2; exit 3"))
        result = adapter.execute(make_unit(assembly), config, append_results=False)

        assert result.status == UnitStatus.FAILED
        assert result.exit_code == 3
        assert "broken" in result.message

    def test_timeout(self, assembly, config):
        """Test a unit exceeding the timeout is reported as timed out."""
        config.timeout_ms = 300
        adapter = ProcessHostAdapter(HostConfig(command="sleep 5"))
        result = adapter.execute(make_unit(assembly), config, append_results=False)

        assert result.status == UnitStatus.TIMEOUT
        assert result.exit_code == -1
        assert "timed out" in result.message.lower()
        assert result.duration_ms == 300

    def test_runs_host_executable(self, assembly, config, tmp_path):
        """Test the host placeholder points at the resolved executable."""
        make_executable(tmp_path / "install" / "host", "#!/bin/sh\necho \"host got $2\"\n")
        adapter = ProcessHostAdapter(HostConfig(command="{host} --assembly {assembly}"))
        result = adapter.execute(make_unit(assembly), config, append_results=False)

        assert result.status == UnitStatus.PASSED
        assert result.message == f"host got {assembly.path}"
        assert result.host == str(tmp_path / "install" / "host")

    def test_values_are_shell_quoted(self, tmp_path, config):
        """Test unit names cannot inject shell syntax."""
        assembly = AssemblyData(
            path=tmp_path / "suite.json",
            fixtures=[FixtureData(name="Odd; echo injected", tests=[TestData("it's")])],
        )
        adapter = ProcessHostAdapter(HostConfig(command="echo {fixture} {test}"))
        result = adapter.execute(make_unit(assembly), config, append_results=False)

        assert result.message == "Odd; echo injected it's"

    def test_environment(self, assembly, config):
        """Test unit identity and configured variables reach the host."""
        adapter = ProcessHostAdapter(
            HostConfig(
                command='echo "$HOSTRUNNER_UNIT $HOSTRUNNER_TEST $HOSTRUNNER_DEBUG $EXTRA"',
                environment={"EXTRA": "yes"},
            )
        )
        config.debug_mode = True
        result = adapter.execute(make_unit(assembly), config, append_results=False)

        assert result.message == "test test_create 1 yes"

    def test_working_directory(self, assembly, config, tmp_path):
        """Test the host runs in the working directory."""
        adapter = ProcessHostAdapter(HostConfig(command="pwd"))
        result = adapter.execute(make_unit(assembly), config, append_results=False)
        assert Path(result.message).resolve() == tmp_path.resolve()

    def test_appends_results(self, assembly, config):
        """Test results are appended only when asked to."""
        adapter = ProcessHostAdapter(HostConfig(command="true"))
        adapter.execute(make_unit(assembly), config, append_results=True)
        adapter.execute(make_unit(assembly), config, append_results=True)
        adapter.execute(make_unit(assembly), config, append_results=False)

        results = ResultsArtifact(config.results_path).read()
        assert len(results) == 2
        assert results[0].test == "test_create"

    def test_scratch_directory_cleanup(self, assembly, config):
        """Test the scratch directory exists during the run and is removed by cleanup."""
        adapter = ProcessHostAdapter(HostConfig(command="test -d {scratch}"))
        result = adapter.execute(make_unit(assembly), config, append_results=False)
        scratch = adapter.scratch_dir

        assert result.status == UnitStatus.PASSED
        assert scratch.is_dir()

        adapter.cleanup()
        assert not scratch.exists()
        adapter.cleanup()

    def test_build_command_empty_values(self, assembly, config):
        """Test absent fixture and test names become empty arguments."""
        adapter = ProcessHostAdapter(HostConfig(command="{host} {unit} {fixture} {test}"))
        unit = RunUnit.for_assembly(assembly)
        command = adapter.build_command(unit, config, Path("/opt/host"))
        adapter.cleanup()
        assert command == "/opt/host assembly '' ''"

    def test_truncates_long_output(self, assembly, config):
        """Test captured output is truncated."""
        adapter = ProcessHostAdapter(HostConfig(command="yes x | head -c 5000"))
        result = adapter.execute(make_unit(assembly), config, append_results=False)
        assert result.message.endswith("(truncated)")

    def test_is_host_adapter(self):
        """Test the process adapter implements the adapter interface."""
        assert issubclass(ProcessHostAdapter, HostAdapter)
