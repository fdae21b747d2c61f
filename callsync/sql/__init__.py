"""
SQL Query Module for Call Sync.

Provides the schema and parameterized queries for the reconciliation
tables (origin_calls, target_calls). Queries use asyncpg $n placeholders.

Example usage:
    from callsync.sql import get_target_range_query

    rows = await conn.fetch(get_target_range_query(Category.STATIC), '2026-02-02', '2026-02-04')
"""

from callsync.sql.call_queries import (
    SCHEMA_STATEMENTS,
    get_origin_upsert_query,
    get_target_range_query,
    get_target_by_id_query,
    get_target_lock_query,
    get_enrichment_fill_query,
    get_link_backfill_query,
)

__all__ = [
    'SCHEMA_STATEMENTS',
    'get_origin_upsert_query',
    'get_target_range_query',
    'get_target_by_id_query',
    'get_target_lock_query',
    'get_enrichment_fill_query',
    'get_link_backfill_query',
]
