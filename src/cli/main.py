"""ShipSync CLI: manual sync, tracking and rate lookups.

Runs every command in-process against the configured database; the API
server is started separately with ``shipsync serve``.

Usage:
    shipsync channel list                List sales channels
    shipsync sync orders <channel-id>    Import recent storefront orders
    shipsync rates delhivery --from 110001 --to 560001 --weight 0.5
    shipsync track shiprocket <awb>      Show live tracking for an AWB
    shipsync refresh                     Poll carriers for stale shipments
"""

import asyncio
import logging
import os
import signal
import sys
from datetime import datetime
from typing import Optional

import typer
from rich.console import Console

from src.cli.output import (
    format_channel_table,
    format_rates,
    format_refresh_result,
    format_sync_result,
    format_tracking,
)
from src.config import load_config, reset_config
from src.couriers.factory import build_default_factory
from src.couriers.models import CourierCredentials, CourierType, RateRequest
from src.couriers.settings import CourierConfigError, settings_for
from src.db.connection import async_init_db, get_async_db_context
from src.db.models import SalesChannel
from src.errors import ShipSyncError
from src.errors.domain import DomainError
from src.services.courier_accounts import account_credentials, build_account, get_default_account
from src.services.credential_encryption import get_or_create_key
from src.services.shipment_tracking_service import ShipmentTrackingService
from src.services.sync_types import CancellationToken, SyncEntity

_log = logging.getLogger(__name__)

app = typer.Typer(
    name="shipsync",
    help="Courier and sales-channel synchronization engine",
    no_args_is_help=True,
)
channel_app = typer.Typer(help="Manage sales channels")
account_app = typer.Typer(help="Manage courier accounts")
config_app = typer.Typer(help="Configuration management")

app.add_typer(channel_app, name="channel")
app.add_typer(account_app, name="account")
app.add_typer(config_app, name="config")

console = Console()

# --- Global state ---
_config_path: str | None = None


@app.callback()
def main(
    config: Optional[str] = typer.Option(
        None, "--config", help="Path to shipsync.yaml config file"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level"),
):
    """ShipSync CLI."""
    global _config_path
    _config_path = config
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s:%(name)s:%(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )
    if config:
        # Services read the process-wide config; point it at the chosen file.
        os.environ["SHIPSYNC_CONFIG"] = config
        reset_config()


def _fail(message: str) -> None:
    console.print(f"[red]Error:[/red] {message}")
    raise typer.Exit(1)


def _parse_date(value: str | None, flag: str) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        _fail(f"{flag} must be an ISO8601 date, got '{value}'")


def _courier(value: str) -> CourierType:
    try:
        return CourierType(value.lower())
    except ValueError:
        supported = ", ".join(c.value for c in CourierType)
        _fail(f"Unknown courier '{value}' (supported: {supported})")


def _run(coro):
    """Run a coroutine, turning domain and config errors into a clean exit."""
    try:
        return asyncio.run(coro)
    except (DomainError, ShipSyncError) as e:
        _fail(str(e))


# --- Version ---


@app.command()
def version():
    """Show ShipSync version."""
    from importlib.metadata import version as pkg_version
    try:
        v = pkg_version("shipsync")
    except Exception:
        v = "unknown"
    console.print(f"[bold]ShipSync[/bold] v{v}")


# --- Config commands ---


@config_app.command("show")
def config_show():
    """Display resolved configuration (secrets masked)."""
    try:
        cfg = load_config(config_path=_config_path)
    except FileNotFoundError as e:
        _fail(str(e))

    console.print("[bold]Sync:[/bold]")
    console.print(f"  page_size: {cfg.sync.page_size}")
    console.print(f"  max_items: {cfg.sync.max_items}")
    console.print(f"  inventory_batch_size: {cfg.sync.inventory_batch_size}")

    console.print("\n[bold]HTTP:[/bold]")
    console.print(f"  timeout: {cfg.http.timeout_seconds}s (connect {cfg.http.connect_timeout_seconds}s)")

    console.print("\n[bold]Shopify:[/bold]")
    console.print(f"  api_version: {cfg.shopify.api_version}")
    console.print(f"  client_id: {cfg.shopify.client_id or '—'}")
    console.print(f"  client_secret: {'***' if cfg.shopify.client_secret else '—'}")
    console.print(f"  webhook_base_url: {cfg.shopify.webhook_base_url or '—'}")

    console.print("\n[bold]Carriers:[/bold]")
    for name, url in cfg.carriers.model_dump().items():
        console.print(f"  {name}: {url}")


@config_app.command("validate")
def config_validate(
    config: Optional[str] = typer.Option(None, "--config", help="Config file path"),
):
    """Validate a config file without running anything."""
    from pydantic import ValidationError

    try:
        load_config(config_path=config or _config_path)
        console.print("[green]Config is valid.[/green]")
    except FileNotFoundError as e:
        console.print(f"[red]Config file not found:[/red] {e}")
        raise typer.Exit(1)
    except ValidationError as e:
        console.print(f"[red]Config validation failed:[/red] {e}")
        raise typer.Exit(1)


# --- Server ---


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", help="Bind port"),
    log_level: str = typer.Option("info", "--log-level", help="uvicorn log level"),
):
    """Start the API server (webhooks and sync triggers)."""
    import uvicorn

    uvicorn.run(
        "src.api.main:app",
        host=host,
        port=port,
        workers=1,
        log_level=log_level,
        lifespan="on",
    )


# --- Channel commands ---


@channel_app.command("list")
def channel_list(
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """List sales channels."""
    from sqlalchemy import select

    async def _list():
        await async_init_db()
        async with get_async_db_context() as db:
            rows = await db.execute(
                select(SalesChannel)
                .where(SalesChannel.deleted_at.is_(None))
                .order_by(SalesChannel.created_at)
            )
            return list(rows.scalars())

    console.print(format_channel_table(_run(_list()), as_json=json_output))


@channel_app.command("create")
def channel_create(
    name: str = typer.Argument(help="Display name"),
    store_url: str = typer.Argument(help="mystore.myshopify.com"),
    order_sync_days: int = typer.Option(7, "--order-days", help="Order lookback in days"),
):
    """Register a Shopify store."""
    from src.services.channel_service import ChannelService

    async def _create():
        await async_init_db()
        async with get_async_db_context() as db:
            return await ChannelService(db).create_channel(name, store_url, order_sync_days)

    channel = _run(_create())
    console.print(f"[green]Created channel[/green] {channel.id} ({channel.store_url})")


@channel_app.command("connect")
def channel_connect(
    channel_id: str = typer.Argument(help="Channel ID"),
    access_token: str = typer.Option(
        ..., "--token", prompt=True, hide_input=True, help="Admin API access token"
    ),
):
    """Connect a channel with a custom-app access token."""
    from src.channels.shopify_client import ShopifyApiError
    from src.services.channel_service import ChannelService

    async def _connect():
        await async_init_db()
        async with get_async_db_context() as db:
            return await ChannelService(db).save_access_token(channel_id, access_token)

    try:
        channel = _run(_connect())
    except ShopifyApiError as e:
        _fail(f"Shopify rejected the token: {e.message}")
    console.print(f"[green]Connected[/green] {channel.store_name or channel.store_url}")


# --- Sync ---


@app.command()
def sync(
    entity: SyncEntity = typer.Argument(help="orders, products or inventory"),
    channel_id: str = typer.Argument(help="Channel ID"),
    from_date: Optional[str] = typer.Option(None, "--from", help="Orders updated on/after (ISO8601)"),
    to_date: Optional[str] = typer.Option(None, "--to", help="Orders updated on/before (ISO8601)"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Run one channel sync. Ctrl-C stops after the current item."""
    from src.services.channel_sync_service import ChannelSyncService

    start = _parse_date(from_date, "--from")
    end = _parse_date(to_date, "--to")

    async def _sync():
        await async_init_db()
        token = CancellationToken()
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, token.cancel)
        except NotImplementedError:
            _log.debug("Signal handlers unavailable; Ctrl-C will abort immediately")
        async with get_async_db_context() as db:
            service = ChannelSyncService(db)
            if entity == SyncEntity.orders:
                return await service.sync_orders(channel_id, start, end, cancel=token)
            if entity == SyncEntity.products:
                return await service.sync_products(channel_id, cancel=token)
            return await service.sync_inventory(channel_id, cancel=token)

    result = _run(_sync())
    console.print(format_sync_result(result, as_json=json_output))
    if result.status.value == "failed":
        raise typer.Exit(1)


# --- Courier accounts ---


@account_app.command("add")
def account_add(
    name: str = typer.Argument(help="Account label"),
    courier: str = typer.Argument(help="shiprocket, delhivery, bluedart or dtdc"),
    api_key: str = typer.Option(..., "--api-key", help="API key / login email / login id"),
    api_secret: Optional[str] = typer.Option(None, "--api-secret", help="Password / licence key"),
    setting: list[str] = typer.Option([], "--setting", "-s", help="key=value carrier setting"),
    default: bool = typer.Option(False, "--default", help="Use as the carrier's default account"),
    validate: bool = typer.Option(True, "--validate/--no-validate", help="Check credentials first"),
):
    """Store an encrypted courier account."""
    courier_type = _courier(courier)
    settings: dict[str, str] = {}
    for item in setting:
        if "=" not in item:
            _fail(f"--setting must be key=value, got '{item}'")
        k, v = item.split("=", 1)
        settings[k.strip()] = v.strip()
    creds = CourierCredentials(api_key=api_key, api_secret=api_secret, settings=settings)
    try:
        settings_for(courier_type, creds)
    except CourierConfigError as e:
        _fail(e.message)

    async def _add():
        if validate:
            adapter = build_default_factory().get(courier_type)
            check = await adapter.validate_credentials(creds)
            if not check:
                _fail(f"{adapter.display_name} rejected the credentials: {check.error_message}")
        await async_init_db()
        async with get_async_db_context() as db:
            account = build_account(name, courier_type, creds, get_or_create_key(), is_default=default)
            db.add(account)
            return account

    account = _run(_add())
    console.print(f"[green]Saved {courier_type.value} account[/green] {account.id}")


# --- Carrier lookups ---


async def _default_credentials(courier_type: CourierType) -> CourierCredentials:
    await async_init_db()
    async with get_async_db_context() as db:
        account = await get_default_account(db, courier_type)
        return account_credentials(account, get_or_create_key())


@app.command()
def rates(
    courier: str = typer.Argument(help="Carrier"),
    pickup: str = typer.Option(..., "--from", help="Pickup pincode"),
    delivery: str = typer.Option(..., "--to", help="Delivery pincode"),
    weight: float = typer.Option(..., "--weight", help="Weight in kg"),
    cod_amount: Optional[float] = typer.Option(None, "--cod", help="Collect this amount on delivery"),
    declared_value: Optional[float] = typer.Option(None, "--value", help="Declared value"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Quote rates for one parcel."""
    courier_type = _courier(courier)
    request = RateRequest(
        pickup_pincode=pickup,
        delivery_pincode=delivery,
        weight=weight,
        declared_value=declared_value,
        is_cod=cod_amount is not None,
        cod_amount=cod_amount,
    )

    async def _rates():
        creds = await _default_credentials(courier_type)
        return await build_default_factory().get(courier_type).get_rates(creds, request)

    result = _run(_rates())
    if not result:
        _fail(result.error_message or "Rate lookup failed")
    console.print(format_rates(result.value or [], as_json=json_output))


@app.command()
def track(
    courier: str = typer.Argument(help="Carrier"),
    awb: str = typer.Argument(help="Air waybill number"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Show live tracking for an AWB."""
    courier_type = _courier(courier)

    async def _track():
        creds = await _default_credentials(courier_type)
        return await build_default_factory().get(courier_type).get_tracking(creds, awb)

    result = _run(_track())
    if not result:
        _fail(result.error_message or "Tracking failed")
    console.print(format_tracking(result.value, as_json=json_output))


@app.command()
def refresh(
    limit: Optional[int] = typer.Option(None, "--limit", help="Max shipments to poll"),
    stale_hours: Optional[int] = typer.Option(None, "--stale-hours", help="Poll shipments older than this"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Poll carriers for active shipments with stale tracking."""

    async def _refresh():
        await async_init_db()
        async with get_async_db_context() as db:
            return await ShipmentTrackingService(db).refresh_tracking(
                limit=limit, stale_after_hours=stale_hours
            )

    console.print(format_refresh_result(_run(_refresh()), as_json=json_output))


if __name__ == "__main__":
    app()
