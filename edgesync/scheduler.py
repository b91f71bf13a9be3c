from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Iterable, Protocol

from edgesync.config import DEFAULT_ACL, DEFAULT_CACHE_CONTROL, DEFAULT_CONCURRENCY
from edgesync.errors import EdgeSyncError, UploadError
from edgesync.models import UploadTask


logger = logging.getLogger(__name__)


class ObjectUploader(Protocol):
    def put(
        self,
        task: UploadTask,
        *,
        cache_control: str,
        acl: str,
        on_progress: Callable[[int], None] | None = None,
    ) -> None: ...


class UploadObserver:
    """Receives per-upload progress events. Events never affect scheduling."""

    def queued(self, task: UploadTask) -> None:
        pass

    def started(self, task: UploadTask) -> None:
        pass

    def advanced(self, task: UploadTask, bytes_sent: int) -> None:
        pass

    def completed(self, task: UploadTask) -> None:
        pass

    def failed(self, task: UploadTask, exc: BaseException) -> None:
        pass


class UploadScheduler:
    """Runs uploads with at most ``concurrency`` in flight and stops at the first failure.

    Tasks are pulled from the iterable only when a slot is free, so a lazy
    producer is never more than ``concurrency`` tasks ahead of the uploads.
    """

    def __init__(
        self,
        store: ObjectUploader,
        *,
        concurrency: int = DEFAULT_CONCURRENCY,
        cache_control: str = DEFAULT_CACHE_CONTROL,
        acl: str = DEFAULT_ACL,
        observer: UploadObserver | None = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._store = store
        self._concurrency = concurrency
        self._cache_control = cache_control
        self._acl = acl
        self._observer = observer or UploadObserver()
        self._lock = threading.Lock()
        self._slots = threading.BoundedSemaphore(concurrency)
        self._failed = threading.Event()
        self._first_error: BaseException | None = None
        self._uploaded: list[str] = []

    @property
    def concurrency(self) -> int:
        return self._concurrency

    def run(self, tasks: Iterable[UploadTask]) -> list[str]:
        self._failed.clear()
        self._first_error = None
        self._uploaded = []
        iterator = iter(tasks)

        with ThreadPoolExecutor(
            max_workers=self._concurrency, thread_name_prefix="edgesync-upload"
        ) as executor:
            while True:
                self._slots.acquire()
                try:
                    task = None if self._failed.is_set() else next(iterator, None)
                except BaseException:
                    self._slots.release()
                    raise
                if task is None:
                    self._slots.release()
                    break
                self._observer.queued(task)
                future = executor.submit(self._upload_one, task)
                future.add_done_callback(self._on_done)
            # Leaving the block waits for in-flight uploads.

        if self._first_error is not None:
            raise self._first_error
        return list(self._uploaded)

    def _upload_one(self, task: UploadTask) -> str:
        self._observer.started(task)
        logger.debug("Uploading %s (%s, %d bytes)", task.key, task.content_type, task.size)
        try:
            self._store.put(
                task,
                cache_control=self._cache_control,
                acl=self._acl,
                on_progress=lambda sent: self._observer.advanced(task, sent),
            )
        except EdgeSyncError as exc:
            self._observer.failed(task, exc)
            raise
        except Exception as exc:
            self._observer.failed(task, exc)
            raise UploadError(f"Upload of {task.key} failed: {exc}", key=task.key) from exc
        self._observer.completed(task)
        logger.info("Uploaded %s", task.key)
        return task.key

    def _on_done(self, future: Future[str]) -> None:
        try:
            exc = future.exception()
            with self._lock:
                if exc is None:
                    self._uploaded.append(future.result())
                elif self._first_error is None:
                    self._first_error = exc
                    self._failed.set()
        finally:
            self._slots.release()
