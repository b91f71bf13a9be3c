from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import Path


ROOT_PATH = "/"


@dataclass(slots=True)
class RemoteObjectRecord:
    key: str
    fingerprint: str


@dataclass(slots=True)
class InventoryPage:
    records: list[RemoteObjectRecord]
    next_token: str | None = None


@dataclass(slots=True)
class LocalFileEntry:
    absolute_path: Path
    relative_path: str
    is_regular_file: bool


@dataclass(slots=True)
class UploadTask:
    key: str
    source_path: Path
    content_type: str
    size: int = 0


@dataclass(slots=True)
class ScanReport:
    scanned_count: int = 0
    unchanged_count: int = 0
    changed_count: int = 0
    skipped_count: int = 0


class ChangedKeySet:
    """Append-only list of invalidation paths, seeded with the root path."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._paths: list[str] = [ROOT_PATH]

    def add(self, key: str) -> None:
        with self._lock:
            self._paths.append(f"/{key}")

    @property
    def paths(self) -> list[str]:
        with self._lock:
            return list(self._paths)

    @property
    def has_changes(self) -> bool:
        with self._lock:
            return len(self._paths) > 1

    def __len__(self) -> int:
        with self._lock:
            return len(self._paths)


@dataclass(slots=True)
class DeployResult:
    uploaded_keys: list[str]
    invalidation_paths: list[str]
    invalidation_id: str | None
    report: ScanReport = field(default_factory=ScanReport)

    @property
    def invalidated(self) -> bool:
        return self.invalidation_id is not None


@dataclass(slots=True)
class PlanResult:
    tasks: list[UploadTask]
    invalidation_paths: list[str]
    report: ScanReport = field(default_factory=ScanReport)

    @property
    def has_changes(self) -> bool:
        return bool(self.tasks)
