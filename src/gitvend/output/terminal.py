"""Rich terminal reporter — colour, icons, status pills."""

from __future__ import annotations

from typing import List, Optional

from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from gitvend.conflicts.models import PathConflict
from gitvend.drift.models import DriftReport, DriftStatus, DriftStats, VerifyReport
from gitvend.sync.service import SyncResult

_STATUS_STYLE = {
    "verified": "green",
    "unchanged": "green",
    "modified": "bold yellow",
    "added": "cyan",
    "deleted": "bold red",
    "stale": "magenta",
    "orphaned": "magenta",
}

_RESULT_STYLE = {
    "PASS": "bold white on green",
    "CLEAN": "bold white on green",
    "WARN": "bold black on yellow",
    "DRIFTED": "bold black on yellow",
    "FAIL": "bold white on red",
    "CONFLICT": "bold white on red",
}


def _status(value: Optional[str]) -> Text:
    if value is None:
        return Text("-", style="dim")
    return Text(value, style=_STATUS_STYLE.get(value, ""))


def _result_pill(result: str) -> Text:
    return Text(f" {result} ", style=_RESULT_STYLE.get(result, "bold"))


def _mapping_label(vendor: str, ref: str, from_path: str) -> str:
    return f"{vendor}@{ref}: {from_path}" if ref else f"{vendor}: {from_path}"


# ── conflicts ─────────────────────────────────────────────────────────────────


def render_conflicts(
    conflicts: List[PathConflict],
    *,
    console: Optional[Console] = None,
    show_summary: bool = True,
) -> None:
    """Print detected path conflicts."""
    console = console or Console(stderr=True)
    console.print()
    if not conflicts:
        console.print("[bold green]✅ No path conflicts — every destination has one owner.[/bold green]")
        return

    table = Table(title="Path Conflicts", show_lines=True, title_style="bold", border_style="dim")
    table.add_column("Path", style="magenta")
    table.add_column("Owner", style="cyan")
    table.add_column("Other owner", style="cyan")
    for c in conflicts:
        table.add_row(
            c.describe(),
            _mapping_label(c.vendor1, c.ref1, c.mapping1.from_path),
            _mapping_label(c.vendor2, c.ref2, c.mapping2.from_path),
        )
    console.print(table)

    if show_summary:
        vendors = {c.vendor1 for c in conflicts} | {c.vendor2 for c in conflicts}
        console.print()
        console.print(f"[dim]Conflicts:[/dim]  {len(conflicts)}")
        console.print(f"[dim]Vendors:[/dim]    {len(vendors)}")
    console.print()
    console.print(
        "[bold yellow]⚠️  Overlapping destinations — the last vendor synced wins.[/bold yellow]"
    )


# ── verify ────────────────────────────────────────────────────────────────────


def render_verify(
    report: VerifyReport,
    *,
    console: Optional[Console] = None,
    show_summary: bool = True,
) -> None:
    """Print a workspace verification report. Verified files are only counted."""
    console = console or Console(stderr=True)
    console.print()
    problems = [f for f in report.files if f.status.value != "verified"]
    if problems:
        table = Table(title="Vendored Files", show_lines=False, title_style="bold", border_style="dim")
        table.add_column("Status", width=10)
        table.add_column("Type", style="dim")
        table.add_column("Vendor", style="cyan")
        table.add_column("Path", style="magenta")
        table.add_column("Detail")
        for f in problems:
            table.add_row(
                _status(f.status.value),
                f.kind,
                f.vendor or "-",
                f.path,
                f.error or "",
            )
        console.print(table)

    s = report.summary
    if show_summary:
        console.print()
        console.print(f"[dim]Checked:[/dim]    {s.total_files}")
        console.print(f"[dim]Verified:[/dim]   {s.verified}")
        console.print(f"[dim]Modified:[/dim]   {s.modified}")
        console.print(f"[dim]Deleted:[/dim]    {s.deleted}")
        console.print(f"[dim]Added:[/dim]      {s.added}")
        if s.stale or s.orphaned:
            console.print(f"[dim]Stale:[/dim]      {s.stale}")
            console.print(f"[dim]Orphaned:[/dim]   {s.orphaned}")
    console.print()
    console.print(Text("Result: ").append(_result_pill(s.result.value)))


# ── drift ─────────────────────────────────────────────────────────────────────


def _side(stats: Optional[DriftStats]) -> str:
    if stats is None:
        return "[dim]offline[/dim]"
    return (
        f"{stats.files_changed} changed, {stats.drift_percentage:.0f}% "
        f"([green]+{stats.lines_added}[/green]/[red]-{stats.lines_removed}[/red])"
    )


def render_drift(
    report: DriftReport,
    *,
    console: Optional[Console] = None,
    show_summary: bool = True,
) -> None:
    """Print a drift report, one table per dependency."""
    console = console or Console(stderr=True)
    for dep in report.dependencies:
        console.print()
        commit = dep.locked_commit[:7] if dep.locked_commit else "unlocked"
        header = f"[bold]{dep.name}[/bold]@{dep.ref} [dim]({commit}"
        if dep.latest_commit:
            header += f" → {dep.latest_commit[:7]}"
        console.print(header + ")[/dim]")
        console.print(f"  local:    {_side(dep.local_drift)}")
        console.print(f"  upstream: {_side(dep.upstream_drift)}")

        changed = [
            f for f in dep.files
            if f.local_status is not DriftStatus.UNCHANGED
            or f.upstream_status not in (None, DriftStatus.UNCHANGED)
        ]
        if not changed:
            continue
        table = Table(show_lines=False, border_style="dim")
        table.add_column("Path", style="magenta")
        table.add_column("Local", width=10)
        table.add_column("Upstream", width=10)
        table.add_column("Risk", justify="center")
        for f in changed:
            table.add_row(
                f.path,
                _status(f.local_status.value),
                _status(f.upstream_status.value if f.upstream_status else None),
                "[bold red]![/bold red]" if f.has_conflict_risk else "",
            )
        console.print(table)
        for f in changed:
            if f.diff:
                console.print(Syntax(f.diff, "diff", theme="ansi_dark"))

    s = report.summary
    if show_summary:
        console.print()
        console.print(f"[dim]Dependencies:[/dim]   {s.total_dependencies}")
        console.print(f"[dim]Clean:[/dim]          {s.clean}")
        console.print(f"[dim]Local drift:[/dim]    {s.drifted_local}")
        console.print(f"[dim]Upstream drift:[/dim] {s.drifted_upstream}")
        console.print(f"[dim]Conflict risk:[/dim]  {s.conflict_risk}")
        console.print(f"[dim]Drift score:[/dim]    {s.overall_drift_score:.1f}%")
    console.print()
    console.print(Text("Result: ").append(_result_pill(s.result.value)))


# ── sync ──────────────────────────────────────────────────────────────────────


def render_sync(
    result: SyncResult,
    *,
    console: Optional[Console] = None,
    show_summary: bool = True,
) -> None:
    """Print what a sync copied, one row per vendor ref."""
    console = console or Console(stderr=True)
    console.print()
    table = Table(title="Synced", show_lines=False, title_style="bold", border_style="dim")
    table.add_column("Vendor", style="cyan")
    table.add_column("Commit", style="dim")
    table.add_column("Files", justify="right")
    table.add_column("Positions", justify="right")
    table.add_column("License")
    for r in result.refs:
        license_cell = r.license or "-"
        if r.license_path:
            license_cell += f" [dim]({r.license_path})[/dim]"
        table.add_row(r.key, r.commit[:7], str(r.files_written), str(r.positions), license_cell)
    console.print(table)

    for r in result.refs:
        for path in r.removed:
            console.print(f"[red]-[/red] {path} [dim]({r.key})[/dim]")
        for pos in r.pruned:
            console.print(f"[dim]pruned position lock {pos.from_path} → {pos.to_path or '(auto)'}[/dim]")
    for warning in result.warnings:
        console.print(f"[yellow]⚠[/yellow]  {warning}")

    if show_summary:
        console.print()
        console.print(f"[dim]Refs:[/dim]       {len(result.refs)}")
        console.print(f"[dim]Files:[/dim]      {result.files_written}")
        console.print(f"[dim]Warnings:[/dim]   {len(result.warnings)}")
        if result.dropped:
            console.print(f"[dim]Dropped:[/dim]    {', '.join(e.key for e in result.dropped)}")
    console.print()
    console.print("[bold green]✓ Lockfile updated[/bold green]")
