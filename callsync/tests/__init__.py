'''
Call Sync Test Suite

Test Modules:
-------------
- test_timezone.py: Eastern offset rule, timestamp parsing, day bounds
- test_normalization.py: phone canonicalization, categories, feed row mapping
- test_matching.py: candidate index, windows, payout weighting, tie-break
- test_persistence.py: PostgresCallStore against a mock asyncpg pool
- test_reconciliation.py: staged sync runs against in-memory fakes
- test_ringba_client.py: origin feed client over httpx.MockTransport
- test_scheduler.py: sequential schedule execution
- test_sync_digest.py: Slack digest formatting and delivery
- test_api.py: FastAPI endpoints

Running Tests:
--------------
    pip install -e ".[test]"
    pytest callsync/tests -v

Configuration:
--------------
See conftest.py for shared fixtures and the in-memory fakes.
'''

__all__ = []
