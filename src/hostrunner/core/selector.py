"""Run target resolution.

A configuration resolves to exactly one of: every loaded assembly, one
fixture, or one test. Lookups are a linear scan in assembly load order, then
fixture and test declaration order; the first exact match wins.
"""

from typing import Optional

from hostrunner.core.models import AssemblyData, RunTarget, RunUnit, TargetKind
from hostrunner.core.state import RunConfiguration
from hostrunner.errors import TargetNotFoundError


def resolve_target(
    config: RunConfiguration, assemblies: Optional[list[AssemblyData]] = None
) -> RunTarget:
    """Resolve the configuration's filters against the loaded assemblies.

    Raises:
        ConfigurationError: If both a fixture and a test filter are set
        TargetNotFoundError: If the named fixture or test does not exist
    """
    if assemblies is None:
        assemblies = config.assemblies

    config.check_filters()

    if not config.fixture_filter and not config.test_filter:
        units = [RunUnit.for_assembly(a) for a in assemblies]
        return RunTarget(
            kind=TargetKind.ALL,
            units=units,
            run_count=sum(a.test_count for a in assemblies),
        )

    if config.fixture_filter:
        unit = find_fixture(assemblies, config.fixture_filter)
        if unit is None:
            raise TargetNotFoundError("fixture", config.fixture_filter)
        return RunTarget(kind=TargetKind.FIXTURE, units=[unit], run_count=unit.test_count)

    unit = find_test(assemblies, config.test_filter)
    if unit is None:
        raise TargetNotFoundError("test", config.test_filter)
    return RunTarget(kind=TargetKind.TEST, units=[unit], run_count=1)


def find_fixture(assemblies: list[AssemblyData], name: str) -> Optional[RunUnit]:
    """First fixture named ``name``, as a run unit."""
    for assembly in assemblies:
        for fixture in assembly.fixtures:
            if fixture.name == name:
                return RunUnit.for_fixture(assembly, fixture)
    return None


def find_test(assemblies: list[AssemblyData], name: str) -> Optional[RunUnit]:
    """First test named ``name``, as a run unit."""
    for assembly in assemblies:
        for fixture in assembly.fixtures:
            for test in fixture.tests:
                if test.name == name:
                    return RunUnit.for_test(assembly, fixture, test)
    return None
