from __future__ import annotations

import logging
from typing import Protocol

from edgesync.errors import EdgeSyncError, RemoteListError
from edgesync.models import InventoryPage


logger = logging.getLogger(__name__)


class InventorySource(Protocol):
    def list_page(self, continuation_token: str | None = None) -> InventoryPage: ...


def fetch_inventory(store: InventorySource) -> dict[str, str]:
    """Return the complete ``key -> fingerprint`` map of the remote store.

    Pages are requested until the store stops returning a continuation token.
    Nothing is returned unless every page was read.
    """
    inventory: dict[str, str] = {}
    token: str | None = None
    pages = 0

    while True:
        try:
            page = store.list_page(token)
        except EdgeSyncError:
            raise
        except Exception as exc:
            raise RemoteListError(f"Listing remote objects failed on page {pages + 1}: {exc}") from exc

        pages += 1
        for record in page.records:
            if not record.key or not record.fingerprint:
                raise RemoteListError(
                    f"Malformed listing page {pages}: entry {record!r} has no key or fingerprint."
                )
            inventory[record.key] = record.fingerprint
        logger.debug("Listed page %d (%d objects)", pages, len(page.records))

        if not page.next_token:
            break
        if page.next_token == token:
            raise RemoteListError(f"Listing page {pages} repeated continuation token {token!r}.")
        token = page.next_token

    logger.info("Remote inventory: %d object(s) across %d page(s)", len(inventory), pages)
    return inventory
