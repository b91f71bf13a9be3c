from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Iterable

from edgesync.config import CONFIG_FILENAME


ALWAYS_EXCLUDED_NAMES = frozenset({CONFIG_FILENAME})


def _normalize_pattern(pattern: str) -> str:
    normalized = pattern.strip().replace("\\", "/")
    if normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized.lstrip("/")


def _match_pattern(key: str, pattern: str) -> bool:
    if not pattern:
        return False
    if pattern.endswith("/"):
        return key.startswith(pattern)
    # Patterns match anchored at the sync root or at any depth.
    key_path = PurePosixPath(key)
    return key_path.match(pattern) or key_path.match(f"**/{pattern}")


@dataclass(slots=True, frozen=True)
class PathFilter:
    """Include/exclude glob filter applied to store keys."""

    include_patterns: tuple[str, ...] = ()
    exclude_patterns: tuple[str, ...] = ()

    def matches(self, key: str) -> bool:
        if PurePosixPath(key).name in ALWAYS_EXCLUDED_NAMES:
            return False
        if self.include_patterns and not any(
            _match_pattern(key, pattern) for pattern in self.include_patterns
        ):
            return False
        return not any(_match_pattern(key, pattern) for pattern in self.exclude_patterns)


def build_path_filter(
    include_patterns: Iterable[str] | None = None,
    exclude_patterns: Iterable[str] | None = None,
) -> PathFilter:
    include = tuple(_normalize_pattern(p) for p in (include_patterns or ()) if p.strip())
    exclude = tuple(_normalize_pattern(p) for p in (exclude_patterns or ()) if p.strip())
    return PathFilter(include_patterns=include, exclude_patterns=exclude)
