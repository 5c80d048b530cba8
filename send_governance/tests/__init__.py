"""
Test package for the Send Governance backend.

Tests use pytest with pytest-asyncio. Services are exercised against the
in-memory stores in send_governance/tests/fakes.py; the PostgreSQL stores are exercised
against a mocked asyncpg pool (see conftest.py).
"""
