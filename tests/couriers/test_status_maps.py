"""Tests for carrier status vocabularies."""

import pytest

from src.couriers.models import CourierType, ShipmentStatus
from src.couriers.status_maps import (
    STATUS_MAPS,
    map_bluedart_status,
    map_delhivery_status,
    map_dtdc_status,
    map_shiprocket_status,
    map_status,
)


class TestShiprocketStatus:
    """Tests for Shiprocket numeric status ids."""

    def test_delivered(self):
        """Test id 7 maps to delivered."""
        assert map_shiprocket_status(7) == ShipmentStatus.DELIVERED

    def test_numeric_string_accepted(self):
        """Test a digit string is coerced to the numeric id."""
        assert map_shiprocket_status(" 13 ") == ShipmentStatus.OUT_FOR_DELIVERY

    def test_ndr_is_delivery_failed(self):
        """Test NDR (12) maps to delivery failed."""
        assert map_shiprocket_status(12) == ShipmentStatus.DELIVERY_FAILED

    def test_unknown_id_is_none(self):
        """Test an id missing from the table gives no status."""
        assert map_shiprocket_status(999) is None

    def test_non_numeric_is_none(self):
        """Test text codes are not guessed for Shiprocket."""
        assert map_shiprocket_status("DELIVERED") is None


class TestStringVocabularies:
    """Tests for Delhivery, BlueDart and DTDC code tables."""

    def test_delhivery_codes_case_insensitive(self):
        """Test lowercase codes are normalized."""
        assert map_delhivery_status("dl") == ShipmentStatus.DELIVERED
        assert map_delhivery_status("RTO") == ShipmentStatus.RTO_INITIATED

    def test_bluedart_out_for_delivery(self):
        """Test BlueDart OD code."""
        assert map_bluedart_status("OD") == ShipmentStatus.OUT_FOR_DELIVERY

    def test_dtdc_returned(self):
        """Test DTDC RTN maps to RTO delivered."""
        assert map_dtdc_status("RTN") == ShipmentStatus.RTO_DELIVERED

    def test_same_code_means_different_things(self):
        """Test tables are per carrier: DL exists for Delhivery but not DTDC."""
        assert map_delhivery_status("DL") == ShipmentStatus.DELIVERED
        assert map_dtdc_status("DL") is None


class TestMapStatusTotality:
    """Tests that lookups never raise."""

    @pytest.mark.parametrize("courier", list(CourierType))
    @pytest.mark.parametrize("code", [None, "", "   ", True, 3.5, ["DL"], {"a": 1}])
    def test_garbage_maps_to_none(self, courier, code):
        """Test blank, boolean and wrongly typed codes give None."""
        assert map_status(courier, code) is None

    def test_every_carrier_has_a_table(self):
        """Test each supported carrier has a vocabulary."""
        assert set(STATUS_MAPS) == set(CourierType)

    def test_every_table_reaches_delivered(self):
        """Test each table has at least one delivered code."""
        for table in STATUS_MAPS.values():
            assert ShipmentStatus.DELIVERED in table.values()
