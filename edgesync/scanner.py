from __future__ import annotations

import logging
import mimetypes
import os
from pathlib import Path
from typing import Iterator, Mapping

from edgesync.errors import KeyCollisionError, LocalReadError
from edgesync.filters import PathFilter
from edgesync.fingerprint import DEFAULT_CHUNK_SIZE, compute_fingerprint
from edgesync.models import ChangedKeySet, LocalFileEntry, ScanReport, UploadTask


logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def store_key(relative_path: str, sep: str = os.sep) -> str:
    """Normalize a root-relative path into a slash-separated store key.

    Only the host separator is rewritten, so on POSIX a backslash inside a
    file name stays part of the name.
    """
    key = relative_path if sep == "/" else relative_path.replace(sep, "/")
    return key.lstrip("/")


def guess_content_type(path: str | Path) -> str:
    content_type, _ = mimetypes.guess_type(str(path), strict=False)
    return content_type or DEFAULT_CONTENT_TYPE


def _raise_walk_error(exc: OSError) -> None:
    raise LocalReadError(f"Cannot list directory {exc.filename}: {exc.strerror}", path=exc.filename) from exc


def iter_local_files(root: Path) -> Iterator[LocalFileEntry]:
    """Walk ``root`` lazily in sorted order without following directory symlinks."""
    root = root.resolve()
    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise_walk_error):
        dirnames.sort()
        current = Path(dirpath)
        for name in sorted(filenames):
            path = current / name
            try:
                is_regular_file = path.is_file()
            except OSError as exc:
                raise LocalReadError(f"Cannot stat {path}: {exc}", path=str(path)) from exc
            yield LocalFileEntry(
                absolute_path=path,
                relative_path=os.path.relpath(path, root),
                is_regular_file=is_regular_file,
            )


def scan_changes(
    root: Path,
    inventory: Mapping[str, str],
    changed: ChangedKeySet,
    *,
    path_filter: PathFilter | None = None,
    report: ScanReport | None = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> Iterator[UploadTask]:
    """Yield an upload task for every local file whose content differs from the store.

    Each changed key is appended to ``changed`` as it is discovered.
    """
    path_filter = path_filter or PathFilter()
    report = report if report is not None else ScanReport()
    seen: dict[str, str] = {}

    for entry in iter_local_files(root):
        if not entry.is_regular_file:
            continue

        key = store_key(entry.relative_path)
        if not path_filter.matches(key):
            report.skipped_count += 1
            continue
        if key in seen:
            raise KeyCollisionError(
                f"{entry.relative_path!r} and {seen[key]!r} both map to store key {key!r}",
                path=str(entry.absolute_path),
            )
        seen[key] = entry.relative_path

        try:
            fingerprint = compute_fingerprint(entry.absolute_path, chunk_size)
        except OSError as exc:
            raise LocalReadError(
                f"Cannot read {entry.absolute_path}: {exc}", path=str(entry.absolute_path)
            ) from exc

        report.scanned_count += 1
        if fingerprint.matches(inventory.get(key)):
            report.unchanged_count += 1
            logger.debug("Unchanged %s", key)
            continue

        report.changed_count += 1
        changed.add(key)
        logger.debug("Changed %s (local %s, remote %s)", key, fingerprint.etag, inventory.get(key))
        yield UploadTask(
            key=key,
            source_path=entry.absolute_path,
            content_type=guess_content_type(entry.absolute_path),
            size=fingerprint.size,
        )
