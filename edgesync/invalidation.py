from __future__ import annotations

import logging
import time
from typing import Protocol, Sequence

from edgesync.errors import EdgeSyncError, InvalidationError
from edgesync.models import ChangedKeySet


logger = logging.getLogger(__name__)


class EdgeCache(Protocol):
    def invalidate(self, distribution_id: str, reference: str, paths: Sequence[str]) -> str: ...


def caller_reference() -> str:
    return str(time.time_ns())


def dispatch_invalidation(
    edge: EdgeCache,
    distribution_id: str,
    changed: ChangedKeySet,
    *,
    reference: str | None = None,
) -> str | None:
    """Invalidate every changed path in one batch.

    Must only be called once all uploads have finished. Returns the
    provider's invalidation id, or ``None`` when only the root path is
    present and no request was sent.
    """
    if not changed.has_changes:
        logger.info("No changed objects; skipping invalidation")
        return None

    paths = changed.paths
    reference = reference or caller_reference()
    logger.info("Invalidating %d path(s) on %s (reference %s)", len(paths), distribution_id, reference)
    try:
        invalidation_id = edge.invalidate(distribution_id, reference, paths)
    except EdgeSyncError:
        raise
    except Exception as exc:
        raise InvalidationError(
            f"Invalidation of {len(paths)} path(s) on {distribution_id} failed: {exc}"
        ) from exc
    logger.info("Invalidation %s created", invalidation_id)
    return invalidation_id
