from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path

from edgesync.errors import ConfigError


CONFIG_FILENAME = ".edgesync.json"
DEFAULT_REGION = "us-west-2"
DEFAULT_CONCURRENCY = 20
DEFAULT_CACHE_CONTROL = "public, max-age=31536000, immutable"
DEFAULT_ACL = "public-read"
DEFAULT_LOCAL_ROOT = "dist"


@dataclass(slots=True)
class EdgeSyncConfig:
    bucket: str
    distribution_id: str
    local_root: str = DEFAULT_LOCAL_ROOT
    region: str = DEFAULT_REGION
    profile: str = ""
    concurrency: int = DEFAULT_CONCURRENCY
    cache_control: str = DEFAULT_CACHE_CONTROL
    acl: str = DEFAULT_ACL
    include: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)

    @property
    def local_root_path(self) -> Path:
        return Path(self.local_root).expanduser().resolve()

    def validate(self) -> "EdgeSyncConfig":
        if not self.bucket.strip():
            raise ConfigError("`bucket` must be set in the edgesync config.")
        if not self.distribution_id.strip():
            raise ConfigError("`distribution_id` must be set in the edgesync config.")
        if self.concurrency < 1:
            raise ConfigError(f"`concurrency` must be at least 1, got {self.concurrency}.")
        return self


def config_path(base_dir: Path | None = None) -> Path:
    return (base_dir or Path.cwd()).resolve() / CONFIG_FILENAME


def load_config(base_dir: Path | None = None) -> EdgeSyncConfig:
    path = config_path(base_dir)
    if not path.exists():
        raise ConfigError(
            f"Config file not found: {path}. Run `edgesync init <bucket> <distribution_id>` first."
        )

    try:
        with path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Could not read config file {path}: {exc}") from exc

    try:
        config = EdgeSyncConfig(
            bucket=str(data["bucket"]),
            distribution_id=str(data["distribution_id"]),
            local_root=_resolve_local_root(path.parent, data.get("local_root", DEFAULT_LOCAL_ROOT)),
            region=data.get("region") or DEFAULT_REGION,
            profile=data.get("profile", ""),
            concurrency=int(data.get("concurrency", DEFAULT_CONCURRENCY)),
            cache_control=data.get("cache_control") or DEFAULT_CACHE_CONTROL,
            acl=data.get("acl") or DEFAULT_ACL,
            include=list(data.get("include") or []),
            exclude=list(data.get("exclude") or []),
        )
    except KeyError as exc:
        raise ConfigError(f"Config file {path} is missing required key {exc}.") from exc
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Config file {path} has an invalid value: {exc}") from exc

    return config.validate()


def save_config(config: EdgeSyncConfig, base_dir: Path | None = None) -> Path:
    path = config_path(base_dir)
    payload = asdict(config)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2)
        fh.write("\n")
    return path


def default_profile() -> str:
    return os.getenv("AWS_PROFILE", "")


def _resolve_local_root(config_dir: Path, value: str) -> str:
    # Relative roots are anchored at the directory holding the config file.
    root = Path(value).expanduser()
    if not root.is_absolute():
        root = config_dir / root
    return str(root)
