"""Apply carrier tracking updates to Shipment rows.

Two inputs feed the same update path: webhook pushes (normalized by
``src.couriers.webhooks``) and polling through the courier adapters. A
status is only changed when the carrier code maps to a canonical status;
unmapped codes still record the raw carrier text but leave ``status``
alone.
"""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import get_config
from src.couriers.factory import CourierAdapterFactory, build_default_factory
from src.couriers.models import (
    ACTIVE_SHIPMENT_STATUSES,
    CourierCredentials,
    CourierType,
    ShipmentStatus,
    TrackingResponse,
    WebhookEvent,
)
from src.couriers.webhooks import get_webhook_normalizer
from src.db.models import CourierAccount, Shipment, ShipmentTrackingEvent, utc_now_iso
from src.errors.domain import NotFoundError
from src.services.courier_accounts import account_credentials, get_default_account
from src.services.credential_encryption import CredentialDecryptionError, get_or_create_key
from src.utils.redaction import sanitize_error_message
from src.utils.text import truncate

logger = logging.getLogger(__name__)

SOURCE_WEBHOOK = "webhook"
SOURCE_POLL = "poll"


def _iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat()


@dataclass
class TrackingRefreshResult:
    """Counters for one polling pass."""

    checked: int = 0
    updated: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)


class ShipmentTrackingService:
    """Keeps Shipment status, location and history current."""

    def __init__(
        self,
        session: AsyncSession,
        factory: CourierAdapterFactory | None = None,
        key: bytes | None = None,
    ) -> None:
        self.session = session
        self.factory = factory or build_default_factory()
        self._key = key

    @property
    def key(self) -> bytes:
        if self._key is None:
            self._key = get_or_create_key()
        return self._key

    async def _find(self, awb: str) -> Shipment | None:
        return (
            await self.session.execute(select(Shipment).where(Shipment.awb_number == awb))
        ).scalar_one_or_none()

    @staticmethod
    def _recorded(shipment: Shipment) -> set[tuple[str | None, str | None]]:
        return {(e.event_time, e.carrier_status) for e in shipment.events}

    @staticmethod
    def _set_status(shipment: Shipment, status: ShipmentStatus | None, when: str | None) -> bool:
        if status is None or shipment.status == status.value:
            return False
        shipment.status = status.value
        if status == ShipmentStatus.PICKED_UP and not shipment.picked_up_at:
            shipment.picked_up_at = when or utc_now_iso()
        if status == ShipmentStatus.DELIVERED and not shipment.delivered_at:
            shipment.delivered_at = when or utc_now_iso()
        return True

    async def apply_webhook(self, courier: CourierType | str, raw_payload: str | bytes) -> WebhookEvent:
        """Normalize a carrier push and apply it to the matching shipment.

        Raises:
            ValueError: If the carrier is not supported.
        """
        event = get_webhook_normalizer(courier).handle(raw_payload)
        if not event.success:
            return event

        shipment = await self._find(event.awb)
        if shipment is None:
            logger.info("Webhook for unknown AWB %s ignored", event.awb)
            return event.model_copy(update={"message": f"No shipment with AWB {event.awb}"})

        when = _iso(event.event_time)
        changed = self._set_status(shipment, event.new_status, when)
        if event.carrier_status:
            shipment.carrier_status = truncate(event.carrier_status, 255)
        if event.location:
            shipment.current_location = truncate(event.location, 255)
        if event.delivered_to:
            shipment.delivered_to = truncate(event.delivered_to, 255)

        if (when, event.carrier_status) not in self._recorded(shipment):
            shipment.events.append(
                ShipmentTrackingEvent(
                    status=event.new_status.value if event.new_status else None,
                    carrier_status=truncate(event.carrier_status, 255),
                    location=truncate(event.location, 255),
                    remarks=event.remarks,
                    event_time=when,
                    source=SOURCE_WEBHOOK,
                )
            )
        await self.session.commit()
        if changed:
            logger.info("Shipment %s moved to %s via webhook", shipment.awb_number, shipment.status)
        return event

    def apply_tracking(self, shipment: Shipment, tracking: TrackingResponse) -> bool:
        """Merge a polled TrackingResponse into a shipment. Returns True on status change."""
        changed = self._set_status(shipment, tracking.current_status, _iso(tracking.delivered_at))
        if tracking.carrier_status:
            shipment.carrier_status = truncate(tracking.carrier_status, 255)
        if tracking.current_location:
            shipment.current_location = truncate(tracking.current_location, 255)
        if tracking.expected_delivery:
            shipment.expected_delivery_at = _iso(tracking.expected_delivery)
        if tracking.delivered_to:
            shipment.delivered_to = truncate(tracking.delivered_to, 255)

        recorded = self._recorded(shipment)
        for event in tracking.events:
            key = (_iso(event.timestamp), truncate(event.status, 255))
            if key in recorded:
                continue
            recorded.add(key)
            shipment.events.append(
                ShipmentTrackingEvent(
                    status=event.mapped_status.value if event.mapped_status else None,
                    carrier_status=key[1],
                    location=truncate(event.location, 255),
                    remarks=event.remarks,
                    event_time=key[0],
                    source=SOURCE_POLL,
                )
            )
        shipment.last_tracked_at = utc_now_iso()
        shipment.last_error = None
        return changed

    async def refresh_tracking(
        self, limit: int | None = None, stale_after_hours: int | None = None
    ) -> TrackingRefreshResult:
        """Poll active shipments not tracked recently.

        A failure on one shipment is recorded on that row and the pass
        continues. All changes are committed once at the end.
        """
        tracking_config = get_config().tracking
        limit = limit or tracking_config.batch_size
        hours = tracking_config.stale_after_hours if stale_after_hours is None else stale_after_hours
        cutoff = (datetime.now(UTC) - timedelta(hours=hours)).isoformat()

        shipments = (
            await self.session.execute(
                select(Shipment)
                .where(
                    Shipment.status.in_([s.value for s in ACTIVE_SHIPMENT_STATUSES]),
                    or_(Shipment.last_tracked_at.is_(None), Shipment.last_tracked_at < cutoff),
                )
                .order_by(Shipment.last_tracked_at.is_not(None), Shipment.last_tracked_at)
                .limit(limit)
            )
        ).scalars().all()

        result = TrackingRefreshResult()
        credentials_cache: dict[str, CourierCredentials] = {}
        for shipment in shipments:
            result.checked += 1
            try:
                courier = CourierType(shipment.courier_type)
                account_id = shipment.courier_account_id or courier.value
                if account_id not in credentials_cache:
                    if shipment.courier_account_id:
                        account = await self.session.get(CourierAccount, shipment.courier_account_id)
                        if account is None:
                            raise NotFoundError("Courier account", shipment.courier_account_id)
                    else:
                        account = await get_default_account(self.session, courier)
                    credentials_cache[account_id] = account_credentials(account, self.key)
                tracked = await self.factory.get(courier).get_tracking(
                    credentials_cache[account_id], shipment.awb_number
                )
            except (ValueError, NotFoundError, CredentialDecryptionError) as e:
                self._record_failure(shipment, str(e), result)
                continue

            if not tracked.is_success or tracked.value is None:
                self._record_failure(shipment, tracked.error_message or "Tracking failed", result)
                continue
            if self.apply_tracking(shipment, tracked.value):
                result.updated += 1

        await self.session.commit()
        logger.info(
            "Tracking refresh: %d checked, %d updated, %d failed",
            result.checked, result.updated, result.failed,
        )
        return result

    @staticmethod
    def _record_failure(shipment: Shipment, message: str, result: TrackingRefreshResult) -> None:
        message = sanitize_error_message(message, 500)
        shipment.last_error = message
        shipment.last_tracked_at = utc_now_iso()
        result.failed += 1
        result.errors.append(f"AWB {shipment.awb_number}: {message}")
        logger.warning("Tracking refresh failed for %s: %s", shipment.awb_number, message)
