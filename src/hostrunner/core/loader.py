"""Test assembly loading.

Two assembly formats are understood:

- a JSON manifest (``.json``) listing fixtures and their tests, either for a
  single assembly (``{"fixtures": [...]}``) or for several
  (``{"assemblies": [{"path": ..., "fixtures": [...]}]}``);
- a Python test module (``.py``), read with ``ast`` without importing it.
  Classes named ``Test*`` are fixtures and their ``test*`` methods are tests;
  module level ``test*`` functions form a fixture named after the module.
"""

import ast
import json
from pathlib import Path
from typing import Optional

import structlog
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from hostrunner.core.models import AssemblyData, FixtureData, TestData
from hostrunner.errors import AssemblyLoadError

log = structlog.get_logger("core.loader")


class ManifestFixture(BaseModel):
    """A fixture entry in an assembly manifest."""

    name: str = Field(min_length=1)
    tests: list[str] = Field(default_factory=list)

    @field_validator("tests", mode="before")
    @classmethod
    def normalize_tests(cls, v):
        # Tests may be given as plain names or as {"name": ...} objects.
        if isinstance(v, list):
            return [t.get("name") if isinstance(t, dict) else t for t in v]
        return v

    @field_validator("tests")
    @classmethod
    def validate_unique_tests(cls, v: list[str]) -> list[str]:
        duplicates = sorted({t for t in v if v.count(t) > 1})
        if duplicates:
            raise ValueError(f"Duplicate test names: {duplicates}")
        return v


class ManifestAssembly(BaseModel):
    """One assembly described by a manifest."""

    path: Optional[str] = None
    fixtures: list[ManifestFixture] = Field(default_factory=list)

    @field_validator("fixtures")
    @classmethod
    def validate_unique_fixtures(cls, v: list[ManifestFixture]) -> list[ManifestFixture]:
        names = [f.name for f in v]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate fixture names: {duplicates}")
        return v


class AssemblyManifest(BaseModel):
    """Top level of a manifest file."""

    fixtures: Optional[list[ManifestFixture]] = None
    assemblies: Optional[list[ManifestAssembly]] = None

    @model_validator(mode="after")
    def validate_shape(self) -> "AssemblyManifest":
        if self.fixtures is not None and self.assemblies is not None:
            raise ValueError("A manifest lists either 'fixtures' or 'assemblies', not both")
        if self.fixtures is None and self.assemblies is None:
            raise ValueError("A manifest must list 'fixtures' or 'assemblies'")
        return self


class AssemblyLoader:
    """Reads test assemblies into AssemblyData."""

    def __init__(self, working_directory: Optional[Path] = None):
        """Initialize the loader.

        Args:
            working_directory: Base for relative assembly paths inside a
                manifest. Defaults to the manifest's own directory.
        """
        self.working_directory = working_directory

    def load(self, path: Path | str) -> list[AssemblyData]:
        """Load the assemblies described by the given file."""
        path = Path(path)
        if not path.is_file():
            raise AssemblyLoadError(f"The specified test assembly does not exist: {path}")

        suffix = path.suffix.lower()
        if suffix == ".json":
            assemblies = self._load_manifest(path)
        elif suffix == ".py":
            assemblies = [self._load_module(path)]
        else:
            raise AssemblyLoadError(
                f"Unsupported test assembly type '{path.suffix}': expected .json or .py"
            )

        log.debug(
            "Loaded test assembly",
            path=str(path),
            assemblies=len(assemblies),
            tests=sum(a.test_count for a in assemblies),
        )
        return assemblies

    def _load_manifest(self, path: Path) -> list[AssemblyData]:
        """Load a JSON assembly manifest."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            manifest = AssemblyManifest.model_validate(data)
        except (OSError, json.JSONDecodeError) as e:
            raise AssemblyLoadError(f"Could not read test assembly {path}: {e}") from e
        except ValidationError as e:
            raise AssemblyLoadError(f"Invalid test assembly manifest {path}: {e}") from e

        if manifest.fixtures is not None:
            return [AssemblyData(path=path, fixtures=self._fixtures(manifest.fixtures))]

        base_dir = self.working_directory or path.parent
        assemblies = []
        for entry in manifest.assemblies or []:
            assembly_path = (base_dir / entry.path).resolve() if entry.path else path
            assemblies.append(
                AssemblyData(path=assembly_path, fixtures=self._fixtures(entry.fixtures))
            )
        return assemblies

    @staticmethod
    def _fixtures(entries: list[ManifestFixture]) -> list[FixtureData]:
        return [
            FixtureData(name=f.name, tests=[TestData(name=t) for t in f.tests])
            for f in entries
        ]

    def _load_module(self, path: Path) -> AssemblyData:
        """Load a Python test module without importing it."""
        try:
            source = path.read_text(encoding="utf-8")
            tree = ast.parse(source, filename=str(path))
        except (OSError, UnicodeDecodeError, SyntaxError) as e:
            raise AssemblyLoadError(f"Could not read test assembly {path}: {e}") from e

        module_name = qualified_module_name(path)
        fixtures: list[FixtureData] = []
        seen: set[str] = set()
        module_tests: list[TestData] = []

        for node in tree.body:
            if isinstance(node, ast.ClassDef) and node.name.startswith("Test"):
                name = f"{module_name}.{node.name}"
                if name in seen:
                    log.warning("Duplicate fixture ignored", fixture=name, path=str(path))
                    continue
                tests = _test_functions(node.body)
                if tests:
                    seen.add(name)
                    fixtures.append(FixtureData(name=name, tests=tests))
            elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
                if node.name.startswith("test") and all(
                    t.name != node.name for t in module_tests
                ):
                    module_tests.append(TestData(name=node.name))

        if module_tests:
            fixtures.insert(0, FixtureData(name=module_name, tests=module_tests))

        return AssemblyData(path=path, fixtures=fixtures)


def _test_functions(body: list[ast.stmt]) -> list[TestData]:
    tests: list[TestData] = []
    for node in body:
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)) and node.name.startswith("test"):
            if all(t.name != node.name for t in tests):
                tests.append(TestData(name=node.name))
    return tests


def qualified_module_name(path: Path) -> str:
    """Dotted module name of a file, including enclosing packages."""
    parts = [path.stem]
    parent = path.parent
    while (parent / "__init__.py").exists() and parent != parent.parent:
        parts.insert(0, parent.name)
        parent = parent.parent
    return ".".join(parts)


def load_assemblies(path: Path | str, working_directory: Optional[Path] = None) -> list[AssemblyData]:
    """Load the assemblies described by ``path``."""
    return AssemblyLoader(working_directory).load(path)
