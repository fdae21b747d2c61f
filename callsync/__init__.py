"""
Call Sync Package.

Cross-source call reconciliation service: links call records from the origin
call-log feed onto the canonical target call table and merges the origin
payout/revenue into it, idempotently.

Subpackages:
    - api: FastAPI route handlers
    - clients: Origin feed HTTP client
    - core: Configuration, database, dependencies and errors
    - jobs: Sequential scheduler and Slack sync digest
    - models: Pydantic schemas and enums
    - services: Normalization, timezone, matching, persistence, reconciliation
    - sql: Parameterized SQL queries
"""

__version__ = "1.0.0"
