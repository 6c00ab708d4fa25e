"""Tests for sync run results and cancellation."""

from src.services.sync_types import (
    CancellationToken,
    ChannelSyncResult,
    SyncEntity,
    SyncRunStatus,
)


def _result() -> ChannelSyncResult:
    return ChannelSyncResult(channel_id="ch-1", entity=SyncEntity.orders)


class TestChannelSyncResult:
    def test_clean_run(self):
        result = _result()
        result.orders_imported = 2

        result.finish()

        assert result.status == SyncRunStatus.completed
        assert result.finished_at is not None
        assert result.channel_status_text == "Success"

    def test_item_failures(self):
        result = _result()
        result.orders_failed = 1
        result.errors.append("Order 1001: bad date")

        result.finish()

        assert result.status == SyncRunStatus.completed_with_errors
        assert result.channel_status_text == "CompletedWithErrors"

    def test_fail_is_sticky(self):
        result = _result().fail("Channel is not connected")

        result.finish(cancelled=True)

        assert result.status == SyncRunStatus.failed
        assert result.channel_status_text == "Failed: Channel is not connected"

    def test_cancelled(self):
        result = _result().finish(cancelled=True)

        assert result.status == SyncRunStatus.cancelled
        assert result.channel_status_text == "Cancelled"

    def test_processed_count(self):
        result = ChannelSyncResult(channel_id="ch-1", entity=SyncEntity.products)
        result.products_imported = 2
        result.products_updated = 1
        result.products_failed = 1
        result.products_skipped = 1
        result.inventory_updated = 3

        assert result.processed_count == 8
        assert result.failed_count == 1

    def test_to_dict(self):
        data = _result().finish().to_dict()

        assert data["entity"] == "orders"
        assert data["status"] == "completed"
        assert data["channel_id"] == "ch-1"
        assert data["errors"] == []


async def test_cancellation_token():
    token = CancellationToken()
    assert not token.is_cancelled

    token.cancel()

    assert token.is_cancelled
    await token.wait()
