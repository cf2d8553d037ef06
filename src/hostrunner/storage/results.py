"""Results artifact: one JSON object per executed unit, one per line."""

import json
import threading
from pathlib import Path

import structlog

from hostrunner.core.models import UnitResult

log = structlog.get_logger("storage.results")

_locks: dict[Path, threading.Lock] = {}
_locks_guard = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    """The lock shared by every artifact writing to ``path``."""
    with _locks_guard:
        return _locks.setdefault(path.resolve(), threading.Lock())


class ResultsArtifact:
    """The file that accumulates unit results across one or more runs.

    All instances for the same file share one lock, so appends and resets
    of that file never interleave.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self._lock = _lock_for(self.path)

    def exists(self) -> bool:
        return self.path.is_file()

    def reset(self) -> bool:
        """Delete the artifact. Returns True if a file was removed."""
        with self._lock:
            if not self.path.is_file():
                return False
            self.path.unlink()
        log.debug("Deleted previous results", path=str(self.path))
        return True

    def append(self, result: UnitResult) -> None:
        """Append one result line."""
        line = json.dumps(result.to_dict(), sort_keys=True)
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")

    def read(self) -> list[UnitResult]:
        """Read every result in file order. A missing file reads as empty."""
        if not self.path.is_file():
            return []

        results = []
        with open(self.path, "r", encoding="utf-8") as f:
            for number, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    results.append(UnitResult.from_dict(json.loads(line)))
                except (json.JSONDecodeError, KeyError, ValueError) as e:
                    log.warning(
                        "Skipping unreadable result line",
                        path=str(self.path),
                        line=number,
                        error=str(e),
                    )
        return results
