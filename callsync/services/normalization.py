"""
Identity Normalizer Service.

Turns raw rows from either feed into CallRecord instances with a canonical
caller phone and a campaign category, which together form the match identity.

Phone canonicalization (E.164-like):
- strip every non-digit; nothing left -> None ("no identity")
- raw value with a leading '+' -> '+' + digits
- 11 digits starting with the country code 1 -> '+' + digits
- 10 digits -> '+1' + digits (North American)
- any other length -> '+' + digits

Records that fail normalization are still returned: they are excluded from
matching, never from storage.
"""

import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Optional

from callsync.models.enums import Category, CivilZone
from callsync.models.schemas import CallRecord
from callsync.services.timezone import parse_timestamp

logger = logging.getLogger(__name__)


_NON_DIGITS = re.compile(r'\D')

# Origin call-log value columns
ORIGIN_ID_FIELD = 'inboundCallId'
ORIGIN_TIME_FIELD = 'callDt'
ORIGIN_CALLER_FIELD = 'tag:InboundNumber:Number'
ORIGIN_PAYOUT_FIELD = 'payoutAmount'
ORIGIN_REVENUE_FIELD = 'conversionAmount'
ORIGIN_DURATION_FIELD = 'callLengthInSeconds'


# =============================================================================
# Scalar Normalizers
# =============================================================================

def normalize_phone(raw: Optional[str]) -> Optional[str]:
    """
    Canonicalize a caller number.

    Examples:
        >>> normalize_phone('(555) 123-4567')
        '+15551234567'
        >>> normalize_phone('15551234567')
        '+15551234567'
        >>> normalize_phone('+44 20 7946 0958')
        '+442079460958'
        >>> normalize_phone('n/a') is None
        True
    """
    if raw is None:
        return None

    text = str(raw).strip()
    digits = _NON_DIGITS.sub('', text)
    if not digits:
        return None

    if text.startswith('+'):
        return '+' + digits
    if len(digits) == 11 and digits.startswith('1'):
        return '+' + digits
    if len(digits) == 10:
        return '+1' + digits
    return '+' + digits


def category_from_target(target_name: Optional[str]) -> Category:
    """Origin category: STATIC when the campaign target name mentions 'static', else API."""
    if target_name and 'static' in target_name.lower():
        return Category.STATIC
    return Category.API


def parse_category(value: Optional[str]) -> Category:
    """
    Target category column to Category.

    Blank values take the column default (STATIC); unrecognized values
    fall back to API.
    """
    if value is None or not str(value).strip():
        return Category.STATIC
    text = str(value).strip().upper()
    try:
        return Category(text)
    except ValueError:
        logger.debug(f"Unrecognized category {value!r}, using {Category.API.value}")
        return Category.API


def parse_amount(value: Any) -> Optional[Decimal]:
    """Parse a money value ('12.5', 12.5, '$1,200.00') into Decimal; None when absent, invalid or not finite."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        amount = Decimal(str(value))
    else:
        text = str(value).strip().replace('$', '').replace(',', '')
        if not text:
            return None
        try:
            amount = Decimal(text)
        except InvalidOperation:
            return None

    # NaN and Infinity parse as Decimal but are not amounts
    return amount if amount.is_finite() else None


def parse_duration(value: Any) -> Optional[int]:
    if value is None or value == '':
        return None
    try:
        return max(int(float(value)), 0)
    except (TypeError, ValueError, OverflowError):
        return None


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


# =============================================================================
# Record Builders
# =============================================================================

def origin_record_from_feed(
    row: Mapping[str, Any],
    target_id: str,
    target_names: Optional[Dict[str, str]] = None,
) -> CallRecord:
    """
    Build a CallRecord from one origin call-log record.

    The category comes from the configured name of the campaign target the
    record was queried for; the row's own targetName is used when the target
    is not configured. Origin call times are UTC.

    Args:
        row: One entry of the feed's report records.
        target_id: Campaign target id the page was fetched for.
        target_names: Configured target id -> target name mapping.

    Returns:
        CallRecord with origin-only descriptive fields populated.
    """
    row_target_name = _text(row.get('targetName'))
    configured_name = (target_names or {}).get(target_id)
    target_name = configured_name or row_target_name

    caller = _text(row.get(ORIGIN_CALLER_FIELD))
    timestamp_raw = _text(row.get(ORIGIN_TIME_FIELD)) or ''

    return CallRecord(
        external_id=_text(row.get(ORIGIN_ID_FIELD)) or '',
        caller_phone=caller,
        caller_phone_normalized=normalize_phone(caller),
        category=category_from_target(target_name),
        timestamp_raw=timestamp_raw,
        timestamp_instant=parse_timestamp(timestamp_raw, assume=CivilZone.UTC),
        payout=parse_amount(row.get(ORIGIN_PAYOUT_FIELD)),
        revenue=parse_amount(row.get(ORIGIN_REVENUE_FIELD)),
        duration_seconds=parse_duration(row.get(ORIGIN_DURATION_FIELD)),
        target_id=_text(row.get('targetId')) or target_id,
        target_name=row_target_name or configured_name,
        campaign_name=_text(row.get('campaignName')),
        publisher_name=_text(row.get('publisherName')),
        inbound_phone=_text(row.get('inboundPhoneNumber')),
    )


def target_record_from_row(row: Mapping[str, Any]) -> CallRecord:
    """
    Build a CallRecord from a target_calls row.

    Stored call times are Eastern wall-clock strings.
    """
    caller = _text(row.get('caller_id'))
    timestamp_raw = _text(row.get('call_timestamp')) or ''

    return CallRecord(
        external_id=str(row['id']),
        caller_phone=caller,
        caller_phone_normalized=normalize_phone(caller),
        category=parse_category(row.get('category')),
        timestamp_raw=timestamp_raw,
        timestamp_instant=parse_timestamp(timestamp_raw, assume=CivilZone.EASTERN),
        payout=parse_amount(row.get('payout')),
        duration_seconds=parse_duration(row.get('call_duration')),
        enriched_payout=parse_amount(row.get('enriched_payout')),
        enriched_revenue=parse_amount(row.get('enriched_revenue')),
        link_id=_text(row.get('link_id')),
    )
