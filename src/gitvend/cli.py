"""gitvend CLI — Typer application with conflicts, verify, drift, sync, extract, and init commands."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from gitvend import __version__

app = typer.Typer(
    name="gitvend",
    help="Vendor files and line ranges from other repositories, and track their drift.",
    add_completion=False,
    no_args_is_help=True,
)

console = Console(stderr=True)
logger = logging.getLogger(__name__)


def _resolve_repo_root() -> Path:
    """Find the git repo root, exit 2 on failure."""
    from gitvend.git.adapter import GitError, get_repo_root

    try:
        return get_repo_root()
    except GitError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(code=2) from exc


def _fail(label: str, exc: Exception) -> typer.Exit:
    console.print(f"[bold red]{label}:[/bold red] {exc}")
    return typer.Exit(code=2)


def _load_settings(repo_root: Path, config: Optional[str], format: Optional[str]):
    from gitvend.config.loader import ConfigError, load_config

    try:
        cfg = load_config(repo_root, config)
    except ConfigError as exc:
        raise _fail("Config error", exc) from exc

    if format:
        if format not in ("terminal", "json"):
            console.print(f"[bold red]Invalid format:[/bold red] {format}")
            raise typer.Exit(code=2)
        cfg.output.format = format  # type: ignore[assignment]
    return cfg


def _load_manifest(repo_root: Path, cfg):
    from gitvend.config.loader import ConfigError, load_vendor_config

    try:
        return load_vendor_config(repo_root / cfg.paths.config, allow_missing=False)
    except ConfigError as exc:
        raise _fail("Config error", exc) from exc


def _load_lock(repo_root: Path, cfg):
    from gitvend.lock.store import LockfileError, LockStore

    try:
        return LockStore(repo_root / cfg.paths.lockfile).load()
    except LockfileError as exc:
        raise _fail("Lockfile error", exc) from exc


# ── conflicts ─────────────────────────────────────────────────────────────────


@app.command()
def conflicts(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to .gitvend.toml"),
    format: Optional[str] = typer.Option(None, "--format", "-f", help="Output format: terminal | json"),
    fail_on_conflict: Optional[bool] = typer.Option(
        None, "--fail-on-conflict/--no-fail-on-conflict", help="Exit 1 when conflicts are found"
    ),
) -> None:
    """Validate the vendor manifest and list overlapping destinations."""
    from gitvend.conflicts import ConfigValidationError, detect_conflicts, validate_config
    from gitvend.output import json_report, terminal

    repo_root = _resolve_repo_root()
    cfg = _load_settings(repo_root, config, format)
    manifest = _load_manifest(repo_root, cfg)

    try:
        validate_config(manifest)
    except ConfigValidationError as exc:
        raise _fail("Invalid manifest", exc) from exc

    found = detect_conflicts(manifest)
    logger.debug("%d conflict(s) across %d vendor(s)", len(found), len(manifest.vendors))

    if cfg.output.format == "json":
        print(json_report.render(json_report.conflicts_to_dict(found)))
    else:
        terminal.render_conflicts(found, console=console, show_summary=cfg.output.show_summary)

    should_fail = cfg.conflicts.fail_on_conflict if fail_on_conflict is None else fail_on_conflict
    if found and should_fail:
        raise typer.Exit(code=1)


# ── verify ────────────────────────────────────────────────────────────────────


@app.command()
def verify(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to .gitvend.toml"),
    format: Optional[str] = typer.Option(None, "--format", "-f", help="Output format: terminal | json"),
) -> None:
    """Verify vendored files in the working tree against the lockfile."""
    from gitvend.drift.models import VerifyResult
    from gitvend.drift.verifier import verify_workspace
    from gitvend.output import json_report, terminal

    repo_root = _resolve_repo_root()
    cfg = _load_settings(repo_root, config, format)
    manifest = _load_manifest(repo_root, cfg)
    lock = _load_lock(repo_root, cfg)

    try:
        report = verify_workspace(repo_root, manifest, lock)
    except OSError as exc:
        raise _fail("Verify error", exc) from exc

    if cfg.output.format == "json":
        print(json_report.render(json_report.verify_to_dict(report)))
    else:
        terminal.render_verify(report, console=console, show_summary=cfg.output.show_summary)

    if report.summary.result is VerifyResult.FAIL:
        raise typer.Exit(code=1)


# ── drift ─────────────────────────────────────────────────────────────────────


@app.command()
def drift(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to .gitvend.toml"),
    format: Optional[str] = typer.Option(None, "--format", "-f", help="Output format: terminal | json"),
    offline: Optional[bool] = typer.Option(None, "--offline/--online", help="Skip the upstream comparison"),
    dependency: Optional[str] = typer.Option(None, "--dependency", "-d", help="Only analyse this vendor"),
    detail: Optional[bool] = typer.Option(None, "--detail/--no-detail", help="Show line diffs for modified files"),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", min=1, help="Dependencies analysed in parallel"),
    fail_on_conflict_risk: bool = typer.Option(
        False, "--fail-on-conflict-risk", help="Exit 1 when local and upstream both changed"
    ),
) -> None:
    """Report local and upstream drift for vendored dependencies."""
    from gitvend.drift.models import DriftResult
    from gitvend.drift.service import DriftError, DriftService
    from gitvend.git.adapter import GitError
    from gitvend.output import json_report, terminal

    repo_root = _resolve_repo_root()
    cfg = _load_settings(repo_root, config, format)
    manifest = _load_manifest(repo_root, cfg)
    lock = _load_lock(repo_root, cfg)

    service = DriftService(manifest, lock, repo_root, workers=workers or cfg.drift.workers)
    try:
        report = service.analyze(
            dependency,
            offline=cfg.drift.offline if offline is None else offline,
            detail=cfg.drift.detail if detail is None else detail,
        )
    except (DriftError, GitError) as exc:
        raise _fail("Drift error", exc) from exc

    if cfg.output.format == "json":
        print(json_report.render(json_report.drift_to_dict(report)))
    else:
        terminal.render_drift(report, console=console, show_summary=cfg.output.show_summary)

    if fail_on_conflict_risk and report.summary.result is DriftResult.CONFLICT:
        raise typer.Exit(code=1)


# ── sync ──────────────────────────────────────────────────────────────────────


@app.command()
def sync(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to .gitvend.toml"),
    format: Optional[str] = typer.Option(None, "--format", "-f", help="Output format: terminal | json"),
    dependency: Optional[str] = typer.Option(None, "--dependency", "-d", help="Only sync this vendor"),
    group: Optional[str] = typer.Option(None, "--group", "-g", help="Only sync vendors in this group"),
    update: bool = typer.Option(
        False, "--update", "-u", help="Fetch the latest commit of each ref instead of the locked one"
    ),
    fail_on_conflict: Optional[bool] = typer.Option(
        None, "--fail-on-conflict/--no-fail-on-conflict", help="Refuse to sync when destinations overlap"
    ),
    local: bool = typer.Option(False, "--local", help="Allow local paths and file:// vendor URLs"),
) -> None:
    """Copy vendored files and positions into the workspace and write the lockfile."""
    from gitvend.conflicts import ConfigValidationError, detect_conflicts, validate_config
    from gitvend.git.adapter import GitError
    from gitvend.lock.store import LockfileError, LockStore
    from gitvend.output import json_report, terminal
    from gitvend.sync import SyncError, SyncService

    repo_root = _resolve_repo_root()
    cfg = _load_settings(repo_root, config, format)
    manifest = _load_manifest(repo_root, cfg)

    try:
        validate_config(manifest, allow_local=local)
    except ConfigValidationError as exc:
        raise _fail("Invalid manifest", exc) from exc

    found = detect_conflicts(manifest)
    should_fail = cfg.conflicts.fail_on_conflict if fail_on_conflict is None else fail_on_conflict
    if found:
        for c in found:
            logger.warning("Overlapping destination: %s", c.describe())
        if should_fail:
            console.print(f"[bold red]Refusing to sync:[/bold red] {len(found)} path conflict(s)")
            raise typer.Exit(code=1)

    store = LockStore(repo_root / cfg.paths.lockfile)
    try:
        lock = store.load(allow_missing=True)
    except LockfileError as exc:
        raise _fail("Lockfile error", exc) from exc

    try:
        result = SyncService(manifest, lock, repo_root).sync(dependency, group, update=update)
        store.save(result.lock)
    except (SyncError, GitError, OSError) as exc:
        raise _fail("Sync error", exc) from exc

    if cfg.output.format == "json":
        print(json_report.render(json_report.sync_to_dict(result)))
    else:
        terminal.render_sync(result, console=console, show_summary=cfg.output.show_summary)


# ── extract ───────────────────────────────────────────────────────────────────


@app.command()
def extract(
    path: str = typer.Argument(..., help="File path with optional position, e.g. src/api.go:L5-L20"),
    format: Optional[str] = typer.Option(None, "--format", "-f", help="Output format: terminal | json"),
) -> None:
    """Print the bytes a position designates in a local file, and their hash."""
    import json

    from gitvend.drift.hashing import hash_content
    from gitvend.position import PositionError, extract as extract_range, parse_path_position

    if format not in (None, "terminal", "json"):
        console.print(f"[bold red]Invalid format:[/bold red] {format}")
        raise typer.Exit(code=2)

    try:
        file_path, spec = parse_path_position(path)
    except PositionError as exc:
        raise _fail("Invalid position", exc) from exc

    target = Path(file_path)
    if not target.is_file():
        console.print(f"[bold red]Error:[/bold red] file not found: {file_path}")
        raise typer.Exit(code=2)

    try:
        content = extract_range(target.read_bytes(), spec, label=file_path)
    except PositionError as exc:
        raise _fail("Extract error", exc) from exc

    digest = hash_content(content)
    if format == "json":
        print(json.dumps({
            "path": file_path,
            "position": str(spec) if spec is not None else None,
            "hash": digest,
            "content": content.decode("utf-8", errors="replace"),
        }, indent=2))
        return

    sys.stdout.buffer.write(content)
    if content and not content.endswith(b"\n"):
        sys.stdout.buffer.write(b"\n")
    sys.stdout.flush()
    console.print(f"[dim]{digest}[/dim]")


# ── init ──────────────────────────────────────────────────────────────────────


@app.command()
def init(
    force: bool = typer.Option(False, "--force", help="Overwrite an existing .gitvend.toml"),
) -> None:
    """Generate a starter .gitvend.toml and vendor manifest in the repo root."""
    from gitvend.config.defaults import DEFAULT_TOML, MANIFEST_TEMPLATE
    from gitvend.config.schema import CONFIG_FILENAME, DEFAULT_MANIFEST

    repo_root = _resolve_repo_root()
    config_path = repo_root / CONFIG_FILENAME

    if config_path.exists() and not force:
        console.print(f"[yellow]⚠[/yellow]  {CONFIG_FILENAME} already exists at {config_path}")
        raise typer.Exit(code=1)

    config_path.write_text(DEFAULT_TOML, encoding="utf-8")
    console.print(f"[green]✓[/green] Created {config_path}")

    manifest_path = repo_root / DEFAULT_MANIFEST
    if not manifest_path.exists():
        manifest_path.parent.mkdir(parents=True, exist_ok=True)
        manifest_path.write_text(MANIFEST_TEMPLATE, encoding="utf-8")
        console.print(f"[green]✓[/green] Created {manifest_path}")


# ── version / logging ─────────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        print(f"gitvend {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool, debug: bool) -> None:
    level = logging.DEBUG if debug else logging.INFO if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=debug)],
        force=True,
    )


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-V", callback=_version_callback,
        is_eager=True, help="Show version and exit",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
    debug: bool = typer.Option(False, "--debug", help="Debug output"),
) -> None:
    """gitvend — vendor code from other repositories and keep it honest."""
    _configure_logging(verbose, debug)
