"""
Tests for the Identity Normalizer.

Covers phone canonicalization, category mapping for both feeds, amount
parsing and the origin/target record builders.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from callsync.models.enums import Category
from callsync.services.normalization import (
    category_from_target,
    normalize_phone,
    origin_record_from_feed,
    parse_amount,
    parse_category,
    target_record_from_row,
)
from callsync.tests.conftest import API_TARGET_ID, STATIC_TARGET_ID, TEST_TARGET_IDS


class TestNormalizePhone:

    @pytest.mark.parametrize('raw', [
        '5551234567',
        '15551234567',
        '+15551234567',
        '(555) 123-4567',
        '1-555-123-4567',
        ' +1 (555) 123 4567 ',
    ])
    def test_north_american_forms_are_equivalent(self, raw) -> None:
        assert normalize_phone(raw) == '+15551234567'

    def test_plus_keeps_digits_as_is(self) -> None:
        assert normalize_phone('+44 20 7946 0958') == '+442079460958'

    def test_other_lengths_are_prefixed(self) -> None:
        assert normalize_phone('5551234') == '+5551234'
        assert normalize_phone('25551234567') == '+25551234567'

    @pytest.mark.parametrize('raw', [None, '', '   ', 'anonymous', '+', '()-'])
    def test_no_digits_is_no_identity(self, raw) -> None:
        assert normalize_phone(raw) is None


class TestCategory:

    def test_static_target_name(self) -> None:
        assert category_from_target('Elocal - Appliance repair - Static Line') == Category.STATIC
        assert category_from_target('STATIC line') == Category.STATIC

    def test_other_target_names_are_api(self) -> None:
        assert category_from_target('Elocal - Appliance Repair') == Category.API
        assert category_from_target(None) == Category.API
        assert category_from_target('') == Category.API

    def test_target_column(self) -> None:
        assert parse_category('STATIC') == Category.STATIC
        assert parse_category('api') == Category.API
        assert parse_category(' Static ') == Category.STATIC

    def test_target_column_blank_uses_default(self) -> None:
        assert parse_category(None) == Category.STATIC
        assert parse_category('') == Category.STATIC

    def test_target_column_unknown_is_api(self) -> None:
        assert parse_category('PREMIUM') == Category.API


class TestParseAmount:

    @pytest.mark.parametrize('value,expected', [
        ('12.00', Decimal('12.00')),
        (12.5, Decimal('12.5')),
        (7, Decimal('7')),
        (Decimal('3.10'), Decimal('3.10')),
        ('$1,200.50', Decimal('1200.50')),
    ])
    def test_valid_amounts(self, value, expected) -> None:
        assert parse_amount(value) == expected

    @pytest.mark.parametrize('value', [
        None, '', 'n/a', True, 'NaN', 'Infinity', '-inf', float('nan'), Decimal('Infinity'),
    ])
    def test_missing_or_invalid(self, value) -> None:
        assert parse_amount(value) is None


class TestOriginRecordFromFeed:

    def _row(self, **overrides):
        row = {
            'inboundCallId': 'RGB8f3a',
            'callDt': '02/03/2026 06:00:00 PM',
            'targetName': 'Elocal - Appliance repair - Static Line',
            'targetId': STATIC_TARGET_ID,
            'conversionAmount': 25,
            'payoutAmount': '12.00',
            'callLengthInSeconds': 184,
            'inboundPhoneNumber': '+18775550100',
            'tag:InboundNumber:Number': '(555) 123-4567',
            'campaignName': 'Appliance Repair',
            'publisherName': 'Publisher A',
        }
        row.update(overrides)
        return row

    def test_maps_feed_columns(self) -> None:
        record = origin_record_from_feed(self._row(), STATIC_TARGET_ID, TEST_TARGET_IDS)

        assert record.external_id == 'RGB8f3a'
        assert record.caller_phone == '(555) 123-4567'
        assert record.caller_phone_normalized == '+15551234567'
        assert record.category == Category.STATIC
        assert record.timestamp_raw == '02/03/2026 06:00:00 PM'
        assert record.timestamp_instant == datetime(2026, 2, 3, 18, 0, tzinfo=timezone.utc)
        assert record.payout == Decimal('12.00')
        assert record.revenue == Decimal('25')
        assert record.duration_seconds == 184
        assert record.inbound_phone == '+18775550100'
        assert record.publisher_name == 'Publisher A'
        assert record.has_identity

    def test_category_follows_configured_target(self) -> None:
        row = self._row(targetName='Renamed in the dashboard', targetId=API_TARGET_ID)
        record = origin_record_from_feed(row, API_TARGET_ID, TEST_TARGET_IDS)
        assert record.category == Category.API
        assert record.target_name == 'Renamed in the dashboard'

    def test_unconfigured_target_uses_row_name(self) -> None:
        record = origin_record_from_feed(self._row(), 'unknown-target', {})
        assert record.category == Category.STATIC

    def test_missing_fields_are_kept_as_none(self) -> None:
        row = {'inboundCallId': 'RGB1', 'callDt': 'garbage'}
        record = origin_record_from_feed(row, API_TARGET_ID, TEST_TARGET_IDS)

        assert record.caller_phone_normalized is None
        assert record.timestamp_instant is None
        assert record.timestamp_raw == 'garbage'
        assert record.payout is None
        assert record.target_id == API_TARGET_ID
        assert not record.has_identity

    def test_missing_id_yields_empty_external_id(self) -> None:
        record = origin_record_from_feed(self._row(inboundCallId=None), STATIC_TARGET_ID, TEST_TARGET_IDS)
        assert record.external_id == ''

    def test_non_finite_values_are_dropped(self) -> None:
        row = self._row(payoutAmount='NaN', conversionAmount='Infinity', callLengthInSeconds='inf')
        record = origin_record_from_feed(row, STATIC_TARGET_ID, TEST_TARGET_IDS)

        assert record.payout is None
        assert record.revenue is None
        assert record.duration_seconds is None


class TestTargetRecordFromRow:

    def test_maps_table_columns(self) -> None:
        row = {
            'id': 101,
            'caller_id': '5551234567',
            'call_timestamp': '2026-02-03T13:05:00',
            'payout': Decimal('12.00'),
            'category': 'STATIC',
            'call_duration': 95,
            'link_id': None,
            'enriched_payout': None,
            'enriched_revenue': None,
        }
        record = target_record_from_row(row)

        assert record.external_id == '101'
        assert record.caller_phone_normalized == '+15551234567'
        assert record.category == Category.STATIC
        assert record.timestamp_instant == datetime(2026, 2, 3, 18, 5, tzinfo=timezone.utc)
        assert record.payout == Decimal('12.00')
        assert not record.has_enrichment

    def test_enrichment_present(self) -> None:
        row = {
            'id': 7,
            'caller_id': '5551234567',
            'call_timestamp': '2026-02-03T13:05:00',
            'category': None,
            'enriched_payout': Decimal('0'),
            'enriched_revenue': Decimal('25.00'),
            'link_id': 'RGB1',
        }
        record = target_record_from_row(row)

        assert record.category == Category.STATIC
        assert record.has_enrichment
        assert record.link_id == 'RGB1'
