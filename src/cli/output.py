"""CLI output formatters for Rich tables and JSON.

Provides human-readable Rich table output (default) and machine-parseable
JSON output (--json flag). All formatting goes through these functions
so the CLI commands stay clean.
"""

import dataclasses
import json

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from src.couriers.models import CourierRate, TrackingResponse
from src.db.models import SalesChannel
from src.services.shipment_tracking_service import TrackingRefreshResult
from src.services.sync_types import ChannelSyncResult

console = Console()

# Status color map for sync runs and shipments
STATUS_COLORS = {
    "completed": "green",
    "completed_with_errors": "yellow",
    "failed": "red",
    "cancelled": "dim",
    "not_implemented": "dim",
    "delivered": "green",
    "in_transit": "blue",
    "out_for_delivery": "blue",
    "delivery_failed": "red",
    "lost": "red",
    "rto_initiated": "yellow",
}


def _render(renderable) -> str:
    with console.capture() as capture:
        console.print(renderable)
    return capture.get()


def format_money(amount: float | None) -> str:
    """Format an INR amount, or "—" for None."""
    if amount is None:
        return "—"
    return f"₹{amount:,.2f}"


def format_sync_result(result: ChannelSyncResult, as_json: bool = False) -> str:
    """Format one sync run as a Rich panel or JSON.

    Args:
        result: Finished sync run.
        as_json: If True, return JSON string instead of Rich panel.

    Returns:
        Formatted string output.
    """
    if as_json:
        return json.dumps(result.to_dict(), indent=2)

    status = result.status.value
    color = STATUS_COLORS.get(status, "white")
    lines = [
        f"[bold]Channel:[/bold]  {result.channel_id}",
        f"[bold]Entity:[/bold]   {result.entity.value}",
        f"[bold]Status:[/bold]   [{color}]{status}[/{color}]",
        "",
    ]
    counters = {
        "orders": ("imported", "updated", "failed", "skipped"),
        "products": ("imported", "updated", "failed", "skipped"),
        "inventory": ("updated", "failed", "skipped"),
    }[result.entity.value]
    for name in counters:
        value = getattr(result, f"{result.entity.value}_{name}")
        lines.append(f"[bold]{name.capitalize() + ':':<10}[/bold]{value}")

    if result.conflicts:
        lines.append("")
        lines.append(f"[bold yellow]Conflicts ({len(result.conflicts)}):[/bold yellow]")
        lines.extend(f"  - {c}" for c in result.conflicts)
    if result.errors:
        lines.append("")
        lines.append(f"[bold red]Errors ({len(result.errors)}):[/bold red]")
        lines.extend(f"  - {e}" for e in result.errors)

    title = f"{result.entity.value.capitalize()} sync"
    return _render(Panel("\n".join(lines), title=title, border_style="cyan"))


def format_rates(rates: list[CourierRate], as_json: bool = False) -> str:
    """Format rate candidates, cheapest first."""
    if as_json:
        return json.dumps([r.model_dump(mode="json") for r in rates], indent=2)
    if not rates:
        return "No serviceable options."

    table = Table(title="Rates", show_lines=False)
    table.add_column("Service", style="cyan")
    table.add_column("Code")
    table.add_column("Freight", justify="right")
    table.add_column("COD", justify="right")
    table.add_column("Total", justify="right", style="bold")
    table.add_column("Days", justify="right")
    table.add_column("Mode")
    for rate in rates:
        mode = "express" if rate.is_express else "surface" if rate.is_surface else "—"
        if rate.is_estimate:
            mode += " (estimate)"
        table.add_row(
            rate.service_name,
            rate.service_code,
            format_money(rate.freight_charge),
            format_money(rate.cod_charge),
            format_money(rate.total_charge),
            str(rate.estimated_days) if rate.estimated_days is not None else "—",
            mode,
        )
    return _render(table)


def format_tracking(tracking: TrackingResponse, as_json: bool = False) -> str:
    """Format a tracking response with its scan history."""
    if as_json:
        return json.dumps(tracking.model_dump(mode="json"), indent=2)

    status = tracking.current_status.value if tracking.current_status else "unmapped"
    color = STATUS_COLORS.get(status, "white")
    header = [
        f"[bold]AWB:[/bold]       {tracking.awb}",
        f"[bold]Status:[/bold]    [{color}]{status}[/{color}] ({tracking.carrier_status or '—'})",
        f"[bold]Location:[/bold]  {tracking.current_location or '—'}",
    ]
    if tracking.delivered_at:
        header.append(f"[bold]Delivered:[/bold] {tracking.delivered_at.isoformat()[:19]}")
    output = _render(Panel("\n".join(header), title="Tracking", border_style="cyan"))

    if tracking.events:
        table = Table(show_lines=False)
        table.add_column("Time")
        table.add_column("Status")
        table.add_column("Location")
        table.add_column("Remarks")
        for event in tracking.events:
            table.add_row(
                event.timestamp.isoformat()[:19] if event.timestamp else "—",
                event.status,
                event.location or "—",
                event.remarks or "",
            )
        output += _render(table)
    return output


def format_refresh_result(result: TrackingRefreshResult, as_json: bool = False) -> str:
    if as_json:
        return json.dumps(dataclasses.asdict(result), indent=2)
    lines = [
        f"Checked [bold]{result.checked}[/bold] shipments: "
        f"[green]{result.updated} updated[/green], [red]{result.failed} failed[/red]"
    ]
    lines.extend(f"  - {e}" for e in result.errors)
    return "\n".join(lines)


def format_channel_table(channels: list[SalesChannel], as_json: bool = False) -> str:
    """Format sales channels; secrets are never shown."""
    if as_json:
        return json.dumps(
            [
                {
                    "id": c.id,
                    "name": c.name,
                    "store_url": c.store_url,
                    "is_connected": c.is_connected,
                    "last_sync_at": c.last_sync_at,
                    "last_sync_status": c.last_sync_status,
                }
                for c in channels
            ],
            indent=2,
        )
    if not channels:
        return "No channels found."

    table = Table(title="Channels", show_lines=True)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Store")
    table.add_column("Connected")
    table.add_column("Last sync")
    table.add_column("Status")
    for c in channels:
        table.add_row(
            c.id[:12],
            c.name,
            c.store_url or "—",
            "[green]yes[/green]" if c.is_connected else "[red]no[/red]",
            c.last_sync_at[:19] if c.last_sync_at else "—",
            c.last_sync_status or "—",
        )
    return _render(table)
