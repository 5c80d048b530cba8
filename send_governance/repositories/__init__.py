"""
Storage layer for the Send Governance backend.

Protocols in base describe what each service needs from the store; postgres
provides the asyncpg-backed production implementations.
"""

from send_governance.repositories.base import (
    ExperimentStore,
    QuotaStore,
    SuppressionStore,
    VariantStore,
    VariantValidator,
)
from send_governance.repositories.postgres import (
    PostgresExperimentStore,
    PostgresQuotaStore,
    PostgresSuppressionStore,
    PostgresVariantStore,
)


__all__ = [
    "ExperimentStore",
    "QuotaStore",
    "SuppressionStore",
    "VariantStore",
    "VariantValidator",
    "PostgresExperimentStore",
    "PostgresQuotaStore",
    "PostgresSuppressionStore",
    "PostgresVariantStore",
]
