"""
Parameterized SQL for the reconciliation tables.

Tables:
    origin_calls: mirror of the origin call-log feed, keyed by external_id
        (the feed's inbound call id). Rewritten on every sync.
    target_calls: canonical call table populated by the publisher-side fetch.
        Call times are stored as Eastern wall-clock strings
        (YYYY-MM-DDTHH:MM:SS). Only the enrichment columns
        (enriched_payout, enriched_revenue, link_id) are written here.

Enrichment contract:
    A row that is already linked or carries non-zero enrichment is never
    overwritten. The fill update re-checks that condition in its WHERE clause,
    and link_id is only ever backfilled onto a NULL value.
"""

from typing import List, Optional

from callsync.models.enums import Category


# =============================================================================
# Schema
# =============================================================================

SCHEMA_STATEMENTS: List[str] = [
    """
    CREATE TABLE IF NOT EXISTS origin_calls (
        id SERIAL PRIMARY KEY,
        external_id VARCHAR(255) UNIQUE NOT NULL,
        call_timestamp VARCHAR(100) NOT NULL,
        call_timestamp_eastern VARCHAR(100),
        caller_id VARCHAR(50),
        caller_id_normalized VARCHAR(50),
        category VARCHAR(50),
        payout DECIMAL(10, 2) DEFAULT 0,
        revenue DECIMAL(10, 2) DEFAULT 0,
        call_duration INTEGER DEFAULT 0,
        target_id VARCHAR(255),
        target_name VARCHAR(255),
        campaign_name VARCHAR(255),
        publisher_name VARCHAR(255),
        inbound_phone VARCHAR(50),
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_origin_calls_caller_id ON origin_calls(caller_id_normalized)",
    "CREATE INDEX IF NOT EXISTS idx_origin_calls_call_timestamp ON origin_calls(call_timestamp_eastern)",
    """
    CREATE TABLE IF NOT EXISTS target_calls (
        id SERIAL PRIMARY KEY,
        caller_id VARCHAR(50) NOT NULL,
        call_timestamp VARCHAR(100) NOT NULL,
        payout DECIMAL(10, 2) DEFAULT 0,
        category VARCHAR(50) DEFAULT 'STATIC',
        call_duration INTEGER,
        link_id VARCHAR(255),
        enriched_payout DECIMAL(10, 2) DEFAULT NULL,
        enriched_revenue DECIMAL(10, 2) DEFAULT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        UNIQUE(caller_id, call_timestamp, category)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_target_calls_caller_id ON target_calls(caller_id)",
    "CREATE INDEX IF NOT EXISTS idx_target_calls_call_timestamp ON target_calls(call_timestamp)",
    "CREATE INDEX IF NOT EXISTS idx_target_calls_category ON target_calls(category)",
    "CREATE INDEX IF NOT EXISTS idx_target_calls_link_id ON target_calls(link_id)",
]


# =============================================================================
# Origin Mirror
# =============================================================================

def get_origin_upsert_query() -> str:
    """
    Upsert one origin call, keyed by external_id.

    Every mutable column is overwritten on conflict. `inserted` is true when
    the row was created by this statement (xmax is 0 for fresh tuples).

    Parameters:
        $1 external_id, $2 call_timestamp, $3 call_timestamp_eastern,
        $4 caller_id, $5 caller_id_normalized, $6 category, $7 payout,
        $8 revenue, $9 call_duration, $10 target_id, $11 target_name,
        $12 campaign_name, $13 publisher_name, $14 inbound_phone
    """
    return """
        INSERT INTO origin_calls (
            external_id, call_timestamp, call_timestamp_eastern,
            caller_id, caller_id_normalized, category,
            payout, revenue, call_duration,
            target_id, target_name, campaign_name, publisher_name, inbound_phone
        )
        VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14)
        ON CONFLICT (external_id) DO UPDATE SET
            call_timestamp = EXCLUDED.call_timestamp,
            call_timestamp_eastern = EXCLUDED.call_timestamp_eastern,
            caller_id = EXCLUDED.caller_id,
            caller_id_normalized = EXCLUDED.caller_id_normalized,
            category = EXCLUDED.category,
            payout = EXCLUDED.payout,
            revenue = EXCLUDED.revenue,
            call_duration = EXCLUDED.call_duration,
            target_id = EXCLUDED.target_id,
            target_name = EXCLUDED.target_name,
            campaign_name = EXCLUDED.campaign_name,
            publisher_name = EXCLUDED.publisher_name,
            inbound_phone = EXCLUDED.inbound_phone,
            updated_at = NOW()
        RETURNING (xmax = 0) AS inserted
    """


# =============================================================================
# Target Reads
# =============================================================================

_TARGET_COLUMNS = """
    id, caller_id, call_timestamp, payout, category, call_duration,
    link_id, enriched_payout, enriched_revenue
"""


def get_target_range_query(category: Optional[Category] = None) -> str:
    """
    Target calls whose Eastern civil date lies in [$1, $2] ('YYYY-MM-DD').

    The stored timestamp is an Eastern wall-clock string, so its first ten
    characters are the civil date. Blank categories count as the column
    default STATIC. With a category, STATIC selects the
    STATIC rows and API selects every other row.

    Rows are ordered by call time then id, which becomes the candidate
    order inside each index bucket.
    """
    category_filter = ''
    if category == Category.STATIC:
        category_filter = "AND UPPER(COALESCE(NULLIF(TRIM(category), ''), 'STATIC')) = 'STATIC'"
    elif category == Category.API:
        category_filter = "AND UPPER(COALESCE(NULLIF(TRIM(category), ''), 'STATIC')) <> 'STATIC'"

    return f"""
        SELECT {_TARGET_COLUMNS}
        FROM target_calls
        WHERE LEFT(call_timestamp, 10) BETWEEN $1 AND $2
        {category_filter}
        ORDER BY call_timestamp, id
    """


def get_target_by_id_query() -> str:
    return f"SELECT {_TARGET_COLUMNS} FROM target_calls WHERE id = $1"


# =============================================================================
# Enrichment Merge
# =============================================================================

def get_target_lock_query() -> str:
    """Lock one target row for the duration of the merge transaction."""
    return """
        SELECT id, enriched_payout, enriched_revenue, link_id
        FROM target_calls
        WHERE id = $1
        FOR UPDATE
    """


def get_enrichment_fill_query() -> str:
    """
    Write enrichment onto a row that has none.

    Parameters: $1 id, $2 enriched_payout, $3 enriched_revenue, $4 link_id
    """
    return """
        UPDATE target_calls
        SET enriched_payout = $2,
            enriched_revenue = $3,
            link_id = $4,
            updated_at = NOW()
        WHERE id = $1
          AND link_id IS NULL
          AND COALESCE(enriched_payout, 0) = 0
          AND COALESCE(enriched_revenue, 0) = 0
    """


def get_link_backfill_query() -> str:
    """
    Set a missing link id without touching the enrichment amounts.

    Parameters: $1 id, $2 link_id
    """
    return """
        UPDATE target_calls
        SET link_id = $2,
            updated_at = NOW()
        WHERE id = $1
          AND link_id IS NULL
    """
