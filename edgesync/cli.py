from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table
from rich.text import Text

from edgesync.aws import CloudFrontEdgeCache, S3ObjectStore
from edgesync.config import (
    DEFAULT_CONCURRENCY,
    DEFAULT_LOCAL_ROOT,
    DEFAULT_REGION,
    EdgeSyncConfig,
    default_profile,
    load_config,
    save_config,
)
from edgesync.deploy import DeployOptions, deploy, plan
from edgesync.errors import EdgeSyncError, KeyCollisionError, LocalReadError, UploadError
from edgesync.logging_config import setup_logging
from edgesync.scheduler import UploadObserver
from edgesync.transfer_ui import LoggingUploadObserver, TransferProgressUI


EXIT_INTERRUPTED = 130

app = typer.Typer(help="Sync a local build directory to S3 and invalidate CloudFront.")
console = Console()


def build_store(config: EdgeSyncConfig, concurrency: int | None = None) -> S3ObjectStore:
    return S3ObjectStore.from_config(config, concurrency=concurrency)


def build_edge(config: EdgeSyncConfig) -> CloudFrontEdgeCache:
    return CloudFrontEdgeCache.from_config(config)


def _render_error(action: str, exc: EdgeSyncError) -> None:
    console.print(f"[red]{action} failed:[/red] {exc}")
    if isinstance(exc, UploadError) and exc.key:
        console.print(f"  key: {exc.key}")
    elif isinstance(exc, LocalReadError) and exc.path:
        console.print(f"  path: {exc.path}")
    if isinstance(exc, KeyCollisionError):
        console.print("[yellow]Rename one of the files so every path maps to a distinct key.[/yellow]")


def _render_path_summary(title: str, paths: list[str], style: str) -> None:
    if not paths:
        return
    console.print(Text(f"{title} ({len(paths)}):", style=style))
    for path in paths:
        console.print(f"  {path}")


def _options(include: list[str] | None, exclude: list[str] | None, config: EdgeSyncConfig, **extra) -> DeployOptions:
    return DeployOptions.from_config(
        config,
        include_patterns=tuple(include or ()),
        exclude_patterns=tuple(exclude or ()),
        **extra,
    )


@app.callback()
def main(
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        help="DEBUG, INFO, WARNING or ERROR. Defaults to $EDGESYNC_LOG_LEVEL or INFO.",
    ),
) -> None:
    setup_logging(log_level, console=console)


@app.command()
def init(
    bucket: str,
    distribution_id: str,
    local_root: str = typer.Option(DEFAULT_LOCAL_ROOT, "--local-root", help="Directory to sync."),
    region: str = typer.Option(DEFAULT_REGION, "--region", help="AWS region of the bucket."),
    profile: str | None = typer.Option(None, "--profile", help="AWS profile. Defaults to $AWS_PROFILE."),
    concurrency: int = typer.Option(DEFAULT_CONCURRENCY, "--concurrency", min=1, help="Parallel uploads."),
) -> None:
    """Write an edgesync config in the current directory."""
    config = EdgeSyncConfig(
        bucket=bucket.strip(),
        distribution_id=distribution_id.strip(),
        local_root=local_root,
        region=region,
        profile=profile if profile is not None else default_profile(),
        concurrency=concurrency,
    )
    try:
        config.validate()
    except EdgeSyncError as exc:
        _render_error("Init", exc)
        raise typer.Exit(code=exc.exit_code)

    path = save_config(config, Path.cwd())
    console.print(f"[green]Initialized edgesync[/green] for s3://{config.bucket}")
    console.print(f"Config: {path}")
    if not (Path.cwd() / local_root).is_dir():
        console.print(f"[yellow]Local root {local_root} does not exist yet.[/yellow]")


def _status(include: list[str] | None, exclude: list[str] | None) -> int:
    try:
        config = load_config()
        console.print(f"Comparing [bold]{config.local_root_path}[/bold] with s3://{config.bucket} ...")
        result = plan(config, store=build_store(config), options=_options(include, exclude, config))
    except KeyboardInterrupt:
        console.print("[yellow]Status interrupted.[/yellow]")
        return EXIT_INTERRUPTED
    except EdgeSyncError as exc:
        _render_error("Status", exc)
        return exc.exit_code

    if result.tasks:
        table = Table(title="Would upload")
        table.add_column("Key")
        table.add_column("Size", justify="right")
        table.add_column("Content-Type")
        for task in result.tasks:
            table.add_row(task.key, str(task.size), task.content_type)
        console.print(table)
        _render_path_summary("Would invalidate", result.invalidation_paths, "yellow")
    else:
        console.print("[green]Bucket already matches local files.[/green]")

    console.print(
        f"Scanned: {result.report.scanned_count} | Unchanged: {result.report.unchanged_count}"
        f" | Filtered out: {result.report.skipped_count}"
    )
    return 0


@app.command()
def status(
    include: list[str] | None = typer.Option(
        None, "--include", help="Include glob pattern(s) for keys to consider (repeatable)."
    ),
    exclude: list[str] | None = typer.Option(
        None, "--exclude", help="Exclude glob pattern(s) for keys to ignore (repeatable)."
    ),
) -> None:
    """Show which files would be uploaded and invalidated, without changing anything."""
    raise typer.Exit(code=_status(include, exclude))


def _deploy(
    include: list[str] | None,
    exclude: list[str] | None,
    concurrency: int | None,
    show_progress: bool,
) -> int:
    try:
        config = load_config()
        options = _options(include, exclude, config, concurrency=concurrency)
        store = build_store(config, options.concurrency)
        edge = build_edge(config)
        if show_progress:
            with TransferProgressUI(console=console) as ui:
                result = deploy(config, store=store, edge=edge, options=options, observer=ui)
        else:
            observer: UploadObserver = LoggingUploadObserver()
            result = deploy(config, store=store, edge=edge, options=options, observer=observer)
    except KeyboardInterrupt:
        console.print("[yellow]Deploy interrupted.[/yellow] Bucket may be partially updated; rerun `edgesync deploy`.")
        return EXIT_INTERRUPTED
    except EdgeSyncError as exc:
        _render_error("Deploy", exc)
        return exc.exit_code

    _render_path_summary("Uploaded", result.uploaded_keys, "green")
    if result.invalidated:
        _render_path_summary("Invalidated", result.invalidation_paths, "yellow")
        console.print(f"Invalidation: {result.invalidation_id}")
    else:
        console.print("[green]No files changed; nothing to invalidate.[/green]")
    console.print(
        f"Uploaded: {len(result.uploaded_keys)} | Unchanged: {result.report.unchanged_count}"
        f" | Filtered out: {result.report.skipped_count}"
    )
    return 0


@app.command(name="deploy")
def deploy_command(
    include: list[str] | None = typer.Option(
        None, "--include", help="Include glob pattern(s) for keys to upload (repeatable)."
    ),
    exclude: list[str] | None = typer.Option(
        None, "--exclude", help="Exclude glob pattern(s) for keys to skip (repeatable)."
    ),
    concurrency: int | None = typer.Option(
        None, "--concurrency", min=1, help="Parallel uploads. Overrides the config value."
    ),
    progress: bool = typer.Option(True, "--progress/--no-progress", help="Show live transfer progress."),
) -> None:
    """Upload changed files to S3 and invalidate them in CloudFront."""
    raise typer.Exit(code=_deploy(include, exclude, concurrency, progress))


if __name__ == "__main__":
    app()
