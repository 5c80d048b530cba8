"""
asyncpg implementations of the governance stores.

Every method runs either a single statement or a single transaction on one
pooled connection, so the atomicity the services rely on is provided by
PostgreSQL itself:

- Quota counts go through one guarded INSERT ... ON CONFLICT DO UPDATE per
  counter with the lazy reset folded in; slot consumption wraps the campaign
  and workspace updates in one transaction (campaign row first, so concurrent senders
  always lock in the same order).
- Variant writers serialize on a per-campaign advisory lock, which makes the
  weight-sum check and the insert one unit.
- Assignment races are settled by the primary key on campaign_lead_id.
- Experiment transitions are conditional UPDATEs on the current status.

Driver and network failures are translated into StorageUnavailableError
(QuotaUnavailableError for counters) by storage_errors().
"""

import json
import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple

import asyncpg
from asyncpg import Pool

from send_governance.core.database import get_db_pool, rows_affected, storage_errors
from send_governance.core.errors import QuotaUnavailableError, ValidationFailedError
from send_governance.models import (
    Experiment,
    ExperimentStatus,
    LimitType,
    QuotaCounter,
    QuotaScope,
    SuppressionEntry,
    SuppressionReason,
    Variant,
    VariantAssignment,
    VariantResult,
)
from send_governance.repositories.base import VariantValidator
from send_governance.sql import (
    get_assigned_variant_query,
    get_assignment_insert_query,
    get_assignment_variant_id_query,
    get_auto_end_candidates_query,
    get_campaign_experiments_query,
    get_campaign_send_counts_query,
    get_campaign_variants_lock_query,
    get_consume_slot_query,
    get_counters_query,
    get_experiment_insert_query,
    get_experiment_query,
    get_experiment_transition_query,
    get_experiment_variant_stats_query,
    get_pause_losers_query,
    get_promote_winner_query,
    get_set_limit_query,
    get_suppression_bulk_lookup_query,
    get_suppression_count_query,
    get_suppression_delete_query,
    get_suppression_list_query,
    get_suppression_lookup_query,
    get_suppression_upsert_query,
    get_variant_insert_query,
    get_variant_query,
    get_variant_weight_update_query,
    get_variants_query,
    get_workspace_counters_query,
)


logger = logging.getLogger(__name__)


def _json_value(value: Any) -> Any:
    """jsonb arrives as text when the pool has no codec registered."""
    if isinstance(value, str):
        return json.loads(value)
    return value


class _PostgresStore:
    """Shared pool handling; tests inject a mock pool."""

    def __init__(self, pool: Optional[Pool] = None) -> None:
        self._pool = pool

    async def _get_pool(self) -> Pool:
        if self._pool is None:
            self._pool = await get_db_pool()
        return self._pool


# =============================================================================
# Suppression Registry
# =============================================================================


class PostgresSuppressionStore(_PostgresStore):

    @staticmethod
    def _entry(row: Any) -> SuppressionEntry:
        data = dict(row)
        data['metadata'] = _json_value(data.get('metadata')) or {}
        return SuppressionEntry(**data)

    @staticmethod
    def _upsert_args(entry: SuppressionEntry) -> Tuple[Any, ...]:
        return (
            entry.id,
            entry.workspace_id,
            entry.email,
            entry.reason.value,
            entry.suppressed_at,
            entry.campaign_id,
            entry.lead_id,
            entry.metadata,
        )

    async def get(self, workspace_id: str, email: str) -> Optional[SuppressionEntry]:
        with storage_errors("suppression lookup"):
            pool = await self._get_pool()
            async with pool.acquire() as conn:
                row = await conn.fetchrow(get_suppression_lookup_query(), workspace_id, email)
        return self._entry(row) if row else None

    async def get_many(
        self, workspace_id: str, emails: Sequence[str]
    ) -> Dict[str, SuppressionEntry]:
        if not emails:
            return {}
        with storage_errors("bulk suppression lookup"):
            pool = await self._get_pool()
            async with pool.acquire() as conn:
                rows = await conn.fetch(
                    get_suppression_bulk_lookup_query(), workspace_id, list(emails)
                )
        entries = [self._entry(row) for row in rows]
        return {entry.email: entry for entry in entries}

    async def upsert(self, entry: SuppressionEntry) -> SuppressionEntry:
        with storage_errors("suppression upsert"):
            pool = await self._get_pool()
            async with pool.acquire() as conn:
                row = await conn.fetchrow(get_suppression_upsert_query(), *self._upsert_args(entry))
        return self._entry(row) if row else entry

    async def upsert_many(self, entries: Sequence[SuppressionEntry]) -> int:
        if not entries:
            return 0
        with storage_errors("bulk suppression upsert"):
            pool = await self._get_pool()
            async with pool.acquire() as conn:
                async with conn.transaction():
                    await conn.executemany(
                        get_suppression_upsert_query(),
                        [self._upsert_args(entry) for entry in entries],
                    )
        return len(entries)

    async def delete(self, workspace_id: str, email: str) -> bool:
        with storage_errors("suppression delete"):
            pool = await self._get_pool()
            async with pool.acquire() as conn:
                status = await conn.execute(get_suppression_delete_query(), workspace_id, email)
        return rows_affected(status) > 0

    async def list_entries(
        self,
        workspace_id: str,
        reason: Optional[SuppressionReason],
        limit: int,
        offset: int,
    ) -> Tuple[List[SuppressionEntry], int]:
        reason_value = reason.value if reason else None
        with storage_errors("suppression list"):
            pool = await self._get_pool()
            async with pool.acquire() as conn:
                rows = await conn.fetch(
                    get_suppression_list_query(), workspace_id, reason_value, limit, offset
                )
                total = await conn.fetchval(
                    get_suppression_count_query(), workspace_id, reason_value
                )
        return [self._entry(row) for row in rows], int(total or 0)


# =============================================================================
# Quota Counters
# =============================================================================


class PostgresQuotaStore(_PostgresStore):

    @staticmethod
    def _counter(row: Any) -> QuotaCounter:
        return QuotaCounter(**dict(row))

    async def get_counters(
        self, campaign_id: str, workspace_id: str
    ) -> Tuple[Optional[QuotaCounter], Optional[QuotaCounter]]:
        with storage_errors("quota lookup", QuotaUnavailableError):
            pool = await self._get_pool()
            async with pool.acquire() as conn:
                rows = await conn.fetch(get_counters_query(), campaign_id, workspace_id)

        campaign: Optional[QuotaCounter] = None
        workspace: Optional[QuotaCounter] = None
        for row in rows:
            counter = self._counter(row)
            if counter.scope == QuotaScope.CAMPAIGN:
                campaign = counter
            else:
                workspace = counter
        return campaign, workspace

    async def consume_slot(
        self,
        campaign_id: str,
        workspace_id: str,
        campaign_default_limit: int,
        workspace_default_limit: int,
        today: date,
    ) -> Optional[LimitType]:
        with storage_errors("quota slot consumption", QuotaUnavailableError):
            pool = await self._get_pool()
            async with pool.acquire() as conn:
                tx = conn.transaction()
                await tx.start()
                try:
                    row = await conn.fetchrow(
                        get_consume_slot_query(),
                        QuotaScope.CAMPAIGN.value, campaign_id, workspace_id,
                        campaign_default_limit, today,
                    )
                    if row is None:
                        await tx.rollback()
                        return LimitType.CAMPAIGN

                    row = await conn.fetchrow(
                        get_consume_slot_query(),
                        QuotaScope.WORKSPACE.value, workspace_id, workspace_id,
                        workspace_default_limit, today,
                    )
                    if row is None:
                        # Releases the campaign increment taken above
                        await tx.rollback()
                        return LimitType.WORKSPACE
                except BaseException:
                    await tx.rollback()
                    raise
                await tx.commit()
        return None

    async def set_limit(
        self,
        scope: QuotaScope,
        scope_id: str,
        workspace_id: Optional[str],
        daily_limit: int,
    ) -> QuotaCounter:
        with storage_errors(f"{scope.value} limit update", QuotaUnavailableError):
            pool = await self._get_pool()
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    get_set_limit_query(), scope.value, scope_id, workspace_id, daily_limit
                )
        return self._counter(row)

    async def list_workspace_counters(self, workspace_id: str) -> List[QuotaCounter]:
        with storage_errors("workspace counter listing", QuotaUnavailableError):
            pool = await self._get_pool()
            async with pool.acquire() as conn:
                rows = await conn.fetch(get_workspace_counters_query(), workspace_id)
        return [self._counter(row) for row in rows]


# =============================================================================
# Variants and Assignments
# =============================================================================


class PostgresVariantStore(_PostgresStore):

    @staticmethod
    def _variant(row: Any) -> Variant:
        return Variant(**dict(row))

    async def list_variants(self, campaign_id: str, active_only: bool = False) -> List[Variant]:
        with storage_errors("variant listing"):
            pool = await self._get_pool()
            async with pool.acquire() as conn:
                rows = await conn.fetch(get_variants_query(active_only), campaign_id)
        return [self._variant(row) for row in rows]

    async def get_variant(self, variant_id: str) -> Optional[Variant]:
        with storage_errors("variant lookup"):
            pool = await self._get_pool()
            async with pool.acquire() as conn:
                row = await conn.fetchrow(get_variant_query(), variant_id)
        return self._variant(row) if row else None

    async def insert_variant(self, variant: Variant, validate: VariantValidator) -> Variant:
        with storage_errors("variant insert"):
            pool = await self._get_pool()
            async with pool.acquire() as conn:
                async with conn.transaction():
                    await conn.execute(get_campaign_variants_lock_query(), variant.campaign_id)
                    rows = await conn.fetch(get_variants_query(), variant.campaign_id)
                    validate([self._variant(row) for row in rows])
                    try:
                        row = await conn.fetchrow(
                            get_variant_insert_query(),
                            variant.id,
                            variant.campaign_id,
                            variant.workspace_id,
                            variant.name,
                            variant.variant_key,
                            variant.description,
                            variant.is_control,
                            variant.subject_template,
                            variant.body_template,
                            variant.weight,
                            variant.status.value,
                            variant.created_at,
                        )
                    except asyncpg.UniqueViolationError as e:
                        raise ValidationFailedError(
                            "Campaign already has a control variant"
                        ) from e
        return self._variant(row)

    async def set_weights(self, campaign_id: str, weights: Dict[str, int]) -> bool:
        with storage_errors("variant rebalance"):
            pool = await self._get_pool()
            async with pool.acquire() as conn:
                async with conn.transaction():
                    await conn.execute(get_campaign_variants_lock_query(), campaign_id)
                    rows = await conn.fetch(get_variants_query(), campaign_id)
                    known = {row['id'] for row in rows}
                    if not set(weights) <= known:
                        return False
                    for variant_id, weight in weights.items():
                        await conn.execute(
                            get_variant_weight_update_query(), variant_id, campaign_id, weight
                        )
        return True

    async def apply_winner(self, campaign_id: str, winner_variant_id: str) -> bool:
        with storage_errors("apply winner"):
            pool = await self._get_pool()
            async with pool.acquire() as conn:
                async with conn.transaction():
                    await conn.execute(get_campaign_variants_lock_query(), campaign_id)
                    rows = await conn.fetch(get_variants_query(), campaign_id)
                    if winner_variant_id not in {row['id'] for row in rows}:
                        return False
                    # Pause first so the control index never sees two active controls
                    await conn.execute(get_pause_losers_query(), campaign_id, winner_variant_id)
                    await conn.execute(get_promote_winner_query(), winner_variant_id, campaign_id)
        return True

    async def get_assigned_variant(self, campaign_lead_id: str) -> Optional[Variant]:
        with storage_errors("assignment lookup"):
            pool = await self._get_pool()
            async with pool.acquire() as conn:
                row = await conn.fetchrow(get_assigned_variant_query(), campaign_lead_id)
        return self._variant(row) if row else None

    async def insert_assignment(self, assignment: VariantAssignment) -> str:
        with storage_errors("assignment insert"):
            pool = await self._get_pool()
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    get_assignment_insert_query(),
                    assignment.campaign_lead_id,
                    assignment.campaign_id,
                    assignment.variant_id,
                    assignment.assigned_at,
                )
                if row is not None:
                    return row['variant_id']

                # Lost the race: the conflicting insert has committed by now
                existing = await conn.fetchval(
                    get_assignment_variant_id_query(), assignment.campaign_lead_id
                )
        logger.debug(
            f"Assignment for {assignment.campaign_lead_id} already existed ({existing})"
        )
        return existing


# =============================================================================
# Experiments and Statistics
# =============================================================================


class PostgresExperimentStore(_PostgresStore):

    @staticmethod
    def _experiment(row: Any) -> Experiment:
        data = dict(row)
        data['result_summary'] = _json_value(data.get('result_summary'))
        return Experiment(**data)

    async def insert_experiment(self, experiment: Experiment) -> Experiment:
        with storage_errors("experiment insert"):
            pool = await self._get_pool()
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    get_experiment_insert_query(),
                    experiment.id,
                    experiment.campaign_id,
                    experiment.workspace_id,
                    experiment.name,
                    experiment.description,
                    experiment.hypothesis,
                    experiment.test_type.value,
                    experiment.success_metric.value,
                    experiment.minimum_sample_size,
                    experiment.confidence_level,
                    experiment.auto_end_on_significance,
                    experiment.created_at,
                )
        return self._experiment(row)

    async def get_experiment(self, experiment_id: str) -> Optional[Experiment]:
        with storage_errors("experiment lookup"):
            pool = await self._get_pool()
            async with pool.acquire() as conn:
                row = await conn.fetchrow(get_experiment_query(), experiment_id)
        return self._experiment(row) if row else None

    async def list_experiments(self, campaign_id: str) -> List[Experiment]:
        with storage_errors("experiment listing"):
            pool = await self._get_pool()
            async with pool.acquire() as conn:
                rows = await conn.fetch(get_campaign_experiments_query(), campaign_id)
        return [self._experiment(row) for row in rows]

    async def transition(
        self,
        experiment_id: str,
        to_status: ExperimentStatus,
        from_statuses: Sequence[ExperimentStatus],
        changes: Optional[Dict[str, Any]] = None,
    ) -> Optional[Experiment]:
        changes = changes or {}
        significance = changes.get('statistical_significance')
        if significance is not None:
            significance = Decimal(str(significance))

        with storage_errors("experiment transition"):
            pool = await self._get_pool()
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    get_experiment_transition_query(),
                    experiment_id,
                    to_status.value,
                    [status.value for status in from_statuses],
                    changes.get('started_at'),
                    changes.get('ended_at'),
                    changes.get('winner_variant_id'),
                    significance,
                    changes.get('result_summary'),
                )
        return self._experiment(row) if row else None

    async def list_auto_end_candidates(self) -> List[Experiment]:
        with storage_errors("auto-end candidate listing"):
            pool = await self._get_pool()
            async with pool.acquire() as conn:
                rows = await conn.fetch(get_auto_end_candidates_query())
        return [self._experiment(row) for row in rows]

    async def get_variant_stats(self, experiment_id: str) -> List[VariantResult]:
        with storage_errors("variant stats lookup"):
            pool = await self._get_pool()
            async with pool.acquire() as conn:
                rows = await conn.fetch(get_experiment_variant_stats_query(), experiment_id)
        return [VariantResult(**dict(row)) for row in rows]

    async def get_campaign_send_counts(self, campaign_id: str) -> List[VariantResult]:
        with storage_errors("send record aggregation"):
            pool = await self._get_pool()
            async with pool.acquire() as conn:
                rows = await conn.fetch(get_campaign_send_counts_query(), campaign_id)

        results = []
        for row in rows:
            results.append(
                VariantResult(
                    variant_id=row['variant_id'],
                    name=row['name'],
                    is_control=row['is_control'],
                    emails_sent=row['emails_sent'],
                    emails_delivered=row['emails_delivered'],
                    emails_bounced=row['emails_bounced'],
                    emails_opened=row['emails_opened'],
                    unique_opens=row['emails_opened'],
                    emails_clicked=row['emails_clicked'],
                    unique_clicks=row['emails_clicked'],
                    emails_replied=row['emails_replied'],
                )
            )
        return results
