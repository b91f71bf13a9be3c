from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from edgesync.config import EdgeSyncConfig
from edgesync.errors import LocalReadError
from edgesync.filters import PathFilter, build_path_filter
from edgesync.inventory import InventorySource, fetch_inventory
from edgesync.invalidation import EdgeCache, dispatch_invalidation
from edgesync.models import ChangedKeySet, DeployResult, PlanResult, ScanReport
from edgesync.scanner import scan_changes
from edgesync.scheduler import ObjectUploader, UploadObserver, UploadScheduler


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DeployOptions:
    include_patterns: tuple[str, ...] = ()
    exclude_patterns: tuple[str, ...] = ()
    concurrency: int | None = None

    @classmethod
    def from_config(cls, config: EdgeSyncConfig, **overrides) -> "DeployOptions":
        options = cls(
            include_patterns=tuple(config.include),
            exclude_patterns=tuple(config.exclude),
            concurrency=config.concurrency,
        )
        for name, value in overrides.items():
            if value:
                setattr(options, name, value)
        return options

    @property
    def path_filter(self) -> PathFilter:
        return build_path_filter(self.include_patterns, self.exclude_patterns)


class ObjectStore(InventorySource, ObjectUploader, Protocol):
    pass


def _require_local_root(config: EdgeSyncConfig) -> Path:
    local_root = config.local_root_path
    if not local_root.is_dir():
        raise LocalReadError(f"Configured local_root is not a directory: {local_root}", path=str(local_root))
    return local_root


def deploy(
    config: EdgeSyncConfig,
    *,
    store: ObjectStore,
    edge: EdgeCache,
    options: DeployOptions | None = None,
    observer: UploadObserver | None = None,
    reference: str | None = None,
) -> DeployResult:
    """Upload changed files and invalidate their paths at the edge.

    The inventory is fetched completely before the first file is classified.
    Scanning and uploading overlap; invalidation starts after every upload
    has finished. Any error aborts the run.
    """
    options = options or DeployOptions.from_config(config)
    local_root = _require_local_root(config)

    logger.info("Retrieving bucket %s inventory", config.bucket)
    inventory = fetch_inventory(store)

    changed = ChangedKeySet()
    report = ScanReport()
    scheduler = UploadScheduler(
        store,
        concurrency=options.concurrency or config.concurrency,
        cache_control=config.cache_control,
        acl=config.acl,
        observer=observer,
    )
    tasks = scan_changes(
        local_root,
        inventory,
        changed,
        path_filter=options.path_filter,
        report=report,
    )
    uploaded_keys = scheduler.run(tasks)
    logger.info(
        "Bucket synced: %d uploaded, %d unchanged", len(uploaded_keys), report.unchanged_count
    )

    invalidation_id = dispatch_invalidation(
        edge, config.distribution_id, changed, reference=reference
    )
    return DeployResult(
        uploaded_keys=sorted(uploaded_keys),
        invalidation_paths=changed.paths if invalidation_id is not None else [],
        invalidation_id=invalidation_id,
        report=report,
    )


def plan(
    config: EdgeSyncConfig,
    *,
    store: InventorySource,
    options: DeployOptions | None = None,
) -> PlanResult:
    """Classify local files against the store without uploading anything."""
    options = options or DeployOptions.from_config(config)
    local_root = _require_local_root(config)

    inventory = fetch_inventory(store)
    changed = ChangedKeySet()
    report = ScanReport()
    tasks = list(
        scan_changes(
            local_root,
            inventory,
            changed,
            path_filter=options.path_filter,
            report=report,
        )
    )
    return PlanResult(
        tasks=tasks,
        invalidation_paths=changed.paths if changed.has_changes else [],
        report=report,
    )
