"""
Dataclasses for tracking download session statistics and per-call results.
"""

import time
from dataclasses import dataclass, field
from pathlib import Path

from switchdl.core.scope import DownloadRequest


@dataclass
class StepResult:
    """The outcome of one download request within a scope expansion."""

    request: DownloadRequest
    path: Path | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class DownloadReport:
    """Collects every step of a single scope download, in execution order."""

    title_id: str
    steps: list[StepResult] = field(default_factory=list)

    @property
    def succeeded(self) -> list[StepResult]:
        return [s for s in self.steps if s.ok]

    @property
    def failed(self) -> list[StepResult]:
        return [s for s in self.steps if not s.ok]

    @property
    def ok(self) -> bool:
        return not self.failed


@dataclass
class DownloadStats:
    """Tracks statistics for a download session."""

    titles_downloaded: int = 0
    titles_failed: int = 0
    repacks_failed: int = 0
    updates_attached: int = 0
    total_size_downloaded: int = 0
    titles_processed: set[str] = field(default_factory=set)
    _start_time: float = field(default=0.0, repr=False)

    def __post_init__(self):
        self._start_time = time.monotonic()

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self._start_time
