"""Content fingerprints comparable with S3 ETags.

S3 reports the MD5 of the object as a quoted hex string for single-part
uploads, and ``md5(concat(part_md5s))-<part count>`` for multipart uploads.
Both forms are computed in one streaming pass so either can be matched.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from pathlib import Path
from typing import Callable


# Must equal the multipart threshold and chunk size of the uploader.
DEFAULT_CHUNK_SIZE = 8 * 1024 * 1024


@dataclass(slots=True, frozen=True)
class ContentFingerprint:
    md5: str
    multipart_md5: str | None
    size: int

    @property
    def etag(self) -> str:
        return f'"{self.md5}"'

    def matches(self, remote_etag: str | None) -> bool:
        if not remote_etag:
            return False
        normalized = normalize_etag(remote_etag)
        if "-" in normalized:
            return self.multipart_md5 is not None and normalized == self.multipart_md5
        return normalized == self.md5


def normalize_etag(etag: str) -> str:
    value = etag.strip()
    if value.startswith("W/"):
        value = value[2:]
    return value.strip('"').strip("'").lower()


def compute_fingerprint(
    path: Path,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    *,
    on_chunk: Callable[[int], None] | None = None,
) -> ContentFingerprint:
    digest = hashlib.md5(usedforsecurity=False)
    part_digests: list[bytes] = []
    size = 0
    with path.open("rb") as fh:
        while True:
            chunk = fh.read(chunk_size)
            if not chunk:
                break
            digest.update(chunk)
            part_digests.append(hashlib.md5(chunk, usedforsecurity=False).digest())
            size += len(chunk)
            if on_chunk is not None:
                on_chunk(len(chunk))

    multipart_md5 = None
    if size >= chunk_size:
        combined = hashlib.md5(b"".join(part_digests), usedforsecurity=False).hexdigest()
        multipart_md5 = f"{combined}-{len(part_digests)}"

    return ContentFingerprint(md5=digest.hexdigest(), multipart_md5=multipart_md5, size=size)
