"""Pytest configuration and fixtures."""

from __future__ import annotations

import hashlib
import threading
import time
from pathlib import Path

import pytest

from edgesync.config import EdgeSyncConfig
from edgesync.errors import InvalidationError, UploadError
from edgesync.models import InventoryPage, RemoteObjectRecord


def etag_of(data: bytes) -> str:
    return f'"{hashlib.md5(data).hexdigest()}"'


class FakeObjectStore:
    """In-memory bucket that records uploads and tracks concurrent puts."""

    def __init__(
        self,
        objects: dict[str, str] | None = None,
        *,
        page_size: int = 1000,
        upload_delay: float = 0.0,
        fail_keys: set[str] | None = None,
    ) -> None:
        self.objects: dict[str, str] = dict(objects or {})
        self.page_size = page_size
        self.upload_delay = upload_delay
        self.fail_keys = set(fail_keys or ())
        self.puts: list[dict] = []
        self.list_calls: list[str | None] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def list_page(self, continuation_token: str | None = None) -> InventoryPage:
        self.list_calls.append(continuation_token)
        keys = sorted(self.objects)
        start = int(continuation_token) if continuation_token else 0
        end = start + self.page_size
        records = [RemoteObjectRecord(key=k, fingerprint=self.objects[k]) for k in keys[start:end]]
        return InventoryPage(records=records, next_token=str(end) if end < len(keys) else None)

    def put(self, task, *, cache_control, acl, on_progress=None) -> None:
        with self._lock:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.upload_delay:
                time.sleep(self.upload_delay)
            if task.key in self.fail_keys:
                raise UploadError(f"Upload of {task.key} failed: boom", key=task.key)
            data = Path(task.source_path).read_bytes()
            if on_progress is not None:
                on_progress(len(data))
            with self._lock:
                self.objects[task.key] = etag_of(data)
                self.puts.append(
                    {
                        "key": task.key,
                        "content_type": task.content_type,
                        "cache_control": cache_control,
                        "acl": acl,
                    }
                )
        finally:
            with self._lock:
                self.in_flight -= 1

    @property
    def uploaded_keys(self) -> list[str]:
        return sorted(put["key"] for put in self.puts)


class FakeEdgeCache:
    def __init__(self, *, reject: bool = False) -> None:
        self.reject = reject
        self.requests: list[dict] = []

    def invalidate(self, distribution_id, reference, paths) -> str:
        if self.reject:
            raise InvalidationError("TooManyInvalidationsInProgress")
        self.requests.append(
            {"distribution_id": distribution_id, "reference": reference, "paths": list(paths)}
        )
        return f"I{len(self.requests)}"


def write_tree(root: Path, files: dict[str, bytes | str]) -> Path:
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, str):
            content = content.encode("utf-8")
        path.write_bytes(content)
    return root


@pytest.fixture
def site_root(tmp_path):
    root = tmp_path / "dist"
    root.mkdir()
    return root


@pytest.fixture
def config(site_root):
    return EdgeSyncConfig(
        bucket="test-bucket",
        distribution_id="E123TEST",
        local_root=str(site_root),
    )


@pytest.fixture
def edge():
    return FakeEdgeCache()
