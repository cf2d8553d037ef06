"""Data models for assemblies, host instances and run results."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class HostInstance:
    """An installed instance of the host application."""

    name: str
    install_location: Path

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {"name": self.name, "install_location": str(self.install_location)}


@dataclass
class TestData:
    """A single named test."""

    __test__ = False

    name: str


@dataclass
class FixtureData:
    """A named group of tests, identified by its namespace-qualified name."""

    name: str
    tests: list[TestData] = field(default_factory=list)

    @property
    def test_count(self) -> int:
        return len(self.tests)


@dataclass
class AssemblyData:
    """A loaded test assembly and the fixtures declared in it."""

    path: Path
    fixtures: list[FixtureData] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def test_count(self) -> int:
        """Count the tests across every fixture of the assembly."""
        return sum(f.test_count for f in self.fixtures)


class UnitKind(str, Enum):
    """Granularity of one host invocation."""

    ASSEMBLY = "assembly"
    FIXTURE = "fixture"
    TEST = "test"


class TargetKind(str, Enum):
    """What the selector resolved a configuration to."""

    ALL = "all"
    FIXTURE = "fixture"
    TEST = "test"


class UnitStatus(str, Enum):
    """Outcome of one execution unit."""

    PASSED = "passed"
    FAILED = "failed"
    TIMEOUT = "timeout"
    ERROR = "error"


@dataclass(frozen=True)
class RunUnit:
    """Identity of one execution unit handed to the host adapter."""

    kind: UnitKind
    assembly_path: Path
    fixture_name: Optional[str] = None
    test_name: Optional[str] = None
    test_count: int = 0

    @property
    def label(self) -> str:
        """Human readable name of the unit."""
        if self.kind == UnitKind.TEST:
            return f"{self.fixture_name}.{self.test_name}"
        if self.kind == UnitKind.FIXTURE:
            return self.fixture_name or ""
        return self.assembly_path.name

    @classmethod
    def for_assembly(cls, assembly: AssemblyData) -> "RunUnit":
        return cls(
            kind=UnitKind.ASSEMBLY,
            assembly_path=assembly.path,
            test_count=assembly.test_count,
        )

    @classmethod
    def for_fixture(cls, assembly: AssemblyData, fixture: FixtureData) -> "RunUnit":
        return cls(
            kind=UnitKind.FIXTURE,
            assembly_path=assembly.path,
            fixture_name=fixture.name,
            test_count=fixture.test_count,
        )

    @classmethod
    def for_test(
        cls, assembly: AssemblyData, fixture: FixtureData, test: TestData
    ) -> "RunUnit":
        return cls(
            kind=UnitKind.TEST,
            assembly_path=assembly.path,
            fixture_name=fixture.name,
            test_name=test.name,
            test_count=1,
        )


@dataclass
class RunTarget:
    """The resolved selection: the units to execute and the expected test count."""

    kind: TargetKind
    units: list[RunUnit] = field(default_factory=list)
    run_count: int = 0


@dataclass
class UnitResult:
    """Outcome of one execution unit, one line of the results artifact."""

    kind: UnitKind
    assembly: str
    status: UnitStatus
    fixture: Optional[str] = None
    test: Optional[str] = None
    exit_code: Optional[int] = None
    duration_ms: int = 0
    message: str = ""
    host: Optional[str] = None
    finished_at: Optional[datetime] = None

    @property
    def success(self) -> bool:
        return self.status == UnitStatus.PASSED

    @classmethod
    def for_unit(cls, unit: RunUnit, status: UnitStatus, **kwargs) -> "UnitResult":
        """Create a result carrying the identity of the given unit."""
        return cls(
            kind=unit.kind,
            assembly=str(unit.assembly_path),
            fixture=unit.fixture_name,
            test=unit.test_name,
            status=status,
            **kwargs,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "kind": self.kind.value,
            "assembly": self.assembly,
            "fixture": self.fixture,
            "test": self.test,
            "status": self.status.value,
            "exit_code": self.exit_code,
            "duration_ms": self.duration_ms,
            "message": self.message,
            "host": self.host,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "UnitResult":
        """Create from a dictionary written by to_dict()."""
        try:
            status = UnitStatus(data.get("status"))
        except ValueError:
            status = UnitStatus.ERROR

        finished_at = data.get("finished_at")
        return cls(
            kind=UnitKind(data["kind"]),
            assembly=data["assembly"],
            fixture=data.get("fixture"),
            test=data.get("test"),
            status=status,
            exit_code=data.get("exit_code"),
            duration_ms=data.get("duration_ms") or 0,
            message=data.get("message") or "",
            host=data.get("host"),
            finished_at=datetime.fromisoformat(finished_at) if finished_at else None,
        )


@dataclass
class RunSummary:
    """Aggregated outcome of one orchestrated run."""

    target: Optional[RunTarget] = None
    run_count: int = 0
    completed: int = 0
    results: list[UnitResult] = field(default_factory=list)
    cancelled: bool = False

    @property
    def passed(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "run_count": self.run_count,
            "completed": self.completed,
            "passed": self.passed,
            "failed": self.failed,
            "cancelled": self.cancelled,
            "results": [r.to_dict() for r in self.results],
        }
