"""
Send Governance Backend Package.

Decision layer consulted before every outbound campaign email. For a
(campaign, recipient) pair it decides whether the address may be contacted,
whether daily sending quota remains, and which message variant to use, and
later judges which variant of an A/B experiment wins.

Subpackages:
    - api: FastAPI route handlers
    - core: Configuration, database, clock, errors and dependencies
    - models: Pydantic schemas and enums
    - repositories: Storage contracts and the PostgreSQL implementation
    - services: Suppression, quota, variant assignment, significance,
      experiment lifecycle and the send-decision pipeline
    - jobs: Explicitly invoked maintenance jobs (experiment sweep)
    - sql: Parameterized SQL queries and schema DDL
"""

__version__ = "1.0.0"
