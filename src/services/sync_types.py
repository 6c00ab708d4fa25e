"""Result and control types shared by channel sync runs.

A sync run never raises for per-item problems. It returns a
``ChannelSyncResult`` whose counters, error list and status describe what
happened, so a caller can persist partial progress and still report the
failures.
"""

import asyncio
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from src.db.models import generate_uuid


class SyncRunStatus(str, Enum):
    """Overall outcome of a sync run."""

    completed = "completed"
    completed_with_errors = "completed_with_errors"
    failed = "failed"
    not_implemented = "not_implemented"
    cancelled = "cancelled"


class SyncEntity(str, Enum):
    """What a sync run imports."""

    orders = "orders"
    products = "products"
    inventory = "inventory"


@dataclass
class ChannelSyncResult:
    """Counters and messages for one sync run.

    Attributes:
        channel_id: Channel the run targeted.
        entity: Which entity the run imported.
        errors: One human-readable message per failed item, plus the
            single explanatory error of a run that could not start.
        conflicts: Identifiers of rows skipped because they are in
            conflict and need an explicit resolution.
    """

    channel_id: str
    entity: SyncEntity
    run_id: str = field(default_factory=generate_uuid)
    status: SyncRunStatus = SyncRunStatus.completed
    started_at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())
    finished_at: str | None = None

    orders_imported: int = 0
    orders_updated: int = 0
    orders_failed: int = 0
    orders_skipped: int = 0
    products_imported: int = 0
    products_updated: int = 0
    products_failed: int = 0
    products_skipped: int = 0
    inventory_updated: int = 0
    inventory_failed: int = 0
    inventory_skipped: int = 0

    errors: list[str] = field(default_factory=list)
    conflicts: list[str] = field(default_factory=list)

    @property
    def failed_count(self) -> int:
        return self.orders_failed + self.products_failed + self.inventory_failed

    @property
    def processed_count(self) -> int:
        """Items that reached the upsert step, whatever their outcome."""
        return (
            self.orders_imported + self.orders_updated + self.orders_failed + self.orders_skipped
            + self.products_imported + self.products_updated + self.products_failed
            + self.products_skipped
            + self.inventory_updated + self.inventory_failed + self.inventory_skipped
        )

    def fail(self, message: str) -> "ChannelSyncResult":
        """Mark the run as unable to start or continue."""
        self.errors.append(message)
        self.status = SyncRunStatus.failed
        return self.finish()

    def finish(self, cancelled: bool = False) -> "ChannelSyncResult":
        """Stamp the finish time and derive the final status.

        A run already marked failed stays failed.
        """
        self.finished_at = datetime.now(UTC).isoformat()
        if self.status == SyncRunStatus.failed:
            return self
        if cancelled:
            self.status = SyncRunStatus.cancelled
        elif self.failed_count or self.errors:
            self.status = SyncRunStatus.completed_with_errors
        else:
            self.status = SyncRunStatus.completed
        return self

    @property
    def channel_status_text(self) -> str:
        """Text stored on ``SalesChannel.last_sync_status``."""
        if self.status == SyncRunStatus.failed:
            return f"Failed: {self.errors[0] if self.errors else 'unknown error'}"
        if self.status == SyncRunStatus.completed_with_errors:
            return "CompletedWithErrors"
        if self.status == SyncRunStatus.cancelled:
            return "Cancelled"
        return "Success"

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["entity"] = self.entity.value
        data["status"] = self.status.value
        return data


class CancellationToken:
    """Cooperative cancellation signal checked between pages and items."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()
