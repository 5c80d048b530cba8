"""
FastAPI dependency injection module for the Send Governance backend.

Provides reusable dependencies for database connections, configuration and
the governance services. Routers never build stores or services themselves,
so tests swap any of them through app.dependency_overrides.

Key Dependencies Provided:
- get_db_session: Async generator yielding a pooled asyncpg connection
- get_settings_dependency: Returns the cached Settings singleton
- get_service_clock: ServiceClock pinned to SERVICE_TIMEZONE
- get_suppression_registry / get_quota_governor / get_variant_service /
  get_experiment_service / get_send_decision_pipeline: Service factories
  wired to the PostgreSQL stores
- SettingsDep, DBSessionDep and one *Dep alias per service

Usage Examples:
    @router.get("/{campaign_id}")
    async def check(campaign_id: str, workspace_id: str, quota: QuotaGovernorDep):
        return await quota.check_send_limits(campaign_id, workspace_id)

    # In tests
    app.dependency_overrides[get_quota_governor] = lambda: fake_governor
"""

from typing import Annotated, AsyncGenerator

from asyncpg import Connection
from fastapi import Depends

from send_governance.core.clock import ServiceClock
from send_governance.core.config import Settings, get_settings
from send_governance.core.database import get_db_pool
from send_governance.repositories.postgres import (
    PostgresExperimentStore,
    PostgresQuotaStore,
    PostgresSuppressionStore,
    PostgresVariantStore,
)
from send_governance.services.experiments import ExperimentService
from send_governance.services.quota import QuotaGovernor
from send_governance.services.send_decision import SendDecisionPipeline
from send_governance.services.suppression import SuppressionRegistry
from send_governance.services.variants import VariantService


# =============================================================================
# Database Session Dependency
# =============================================================================

async def get_db_session() -> AsyncGenerator[Connection, None]:
    """
    Yield an async database connection from the pool.

    The connection is released back to the pool when the endpoint completes,
    whether it succeeded or raised.
    """
    pool = await get_db_pool()
    async with pool.acquire() as connection:
        yield connection


# =============================================================================
# Settings and Clock Dependencies
# =============================================================================

def get_settings_dependency() -> Settings:
    """
    Return the Settings singleton instance.

    Thin wrapper around get_settings() so tests can use
    app.dependency_overrides[get_settings_dependency].
    """
    return get_settings()


SettingsDep = Annotated[Settings, Depends(get_settings_dependency)]

DBSessionDep = Annotated[Connection, Depends(get_db_session)]


def get_service_clock(settings: SettingsDep) -> ServiceClock:
    return ServiceClock(settings.service_timezone)


ServiceClockDep = Annotated[ServiceClock, Depends(get_service_clock)]


# =============================================================================
# Service Dependencies
# =============================================================================

def get_suppression_registry(settings: SettingsDep, clock: ServiceClockDep) -> SuppressionRegistry:
    return SuppressionRegistry(PostgresSuppressionStore(), clock=clock, settings=settings)


def get_quota_governor(settings: SettingsDep, clock: ServiceClockDep) -> QuotaGovernor:
    return QuotaGovernor(PostgresQuotaStore(), clock=clock, settings=settings)


def get_variant_service(clock: ServiceClockDep) -> VariantService:
    return VariantService(PostgresVariantStore(), clock=clock)


def get_experiment_service(settings: SettingsDep, clock: ServiceClockDep) -> ExperimentService:
    return ExperimentService(PostgresExperimentStore(), clock=clock, settings=settings)


SuppressionRegistryDep = Annotated[SuppressionRegistry, Depends(get_suppression_registry)]
QuotaGovernorDep = Annotated[QuotaGovernor, Depends(get_quota_governor)]
VariantServiceDep = Annotated[VariantService, Depends(get_variant_service)]
ExperimentServiceDep = Annotated[ExperimentService, Depends(get_experiment_service)]


def get_send_decision_pipeline(
    suppression: SuppressionRegistryDep,
    quota: QuotaGovernorDep,
    variants: VariantServiceDep,
) -> SendDecisionPipeline:
    return SendDecisionPipeline(suppression, quota, variants)


SendDecisionPipelineDep = Annotated[SendDecisionPipeline, Depends(get_send_decision_pipeline)]
