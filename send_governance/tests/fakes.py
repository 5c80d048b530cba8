"""
In-memory stores for service tests.

Each store honours the same atomicity contract as its PostgreSQL counterpart:
multi-row operations run under one asyncio.Lock, and the operations that race
in production (slot consumption, assignment insert) yield to the event loop
before entering the lock so concurrent callers actually interleave.

Failing* stores raise StorageUnavailableError (or QuotaUnavailableError) from
every method to exercise the failure policies.
"""

import asyncio
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Tuple

from send_governance.core.errors import QuotaUnavailableError, StorageUnavailableError
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
    VariantStatus,
)
from send_governance.repositories.base import VariantValidator


# =============================================================================
# Suppression
# =============================================================================


class InMemorySuppressionStore:

    def __init__(self) -> None:
        self.entries: Dict[Tuple[str, str], SuppressionEntry] = {}

    async def get(self, workspace_id: str, email: str) -> Optional[SuppressionEntry]:
        return self.entries.get((workspace_id, email))

    async def get_many(
        self, workspace_id: str, emails: Sequence[str]
    ) -> Dict[str, SuppressionEntry]:
        return {
            email: self.entries[(workspace_id, email)]
            for email in emails
            if (workspace_id, email) in self.entries
        }

    async def upsert(self, entry: SuppressionEntry) -> SuppressionEntry:
        self.entries[(entry.workspace_id, entry.email)] = entry
        return entry

    async def upsert_many(self, entries: Sequence[SuppressionEntry]) -> int:
        for entry in entries:
            self.entries[(entry.workspace_id, entry.email)] = entry
        return len(entries)

    async def delete(self, workspace_id: str, email: str) -> bool:
        return self.entries.pop((workspace_id, email), None) is not None

    async def list_entries(
        self,
        workspace_id: str,
        reason: Optional[SuppressionReason],
        limit: int,
        offset: int,
    ) -> Tuple[List[SuppressionEntry], int]:
        matching = [
            entry for (ws, _), entry in self.entries.items()
            if ws == workspace_id and (reason is None or entry.reason == reason)
        ]
        matching.sort(key=lambda entry: entry.suppressed_at, reverse=True)
        return matching[offset:offset + limit], len(matching)


class FailingSuppressionStore:

    async def _fail(self, *args: Any, **kwargs: Any) -> Any:
        raise StorageUnavailableError("Storage unavailable during suppression lookup")

    get = _fail
    get_many = _fail
    upsert = _fail
    upsert_many = _fail
    delete = _fail
    list_entries = _fail


class FlakySuppressionStore(InMemorySuppressionStore):
    """Lookups fail `failures` times, then behave normally; `lookups` counts calls."""

    def __init__(self, failures: int = 1) -> None:
        super().__init__()
        self.failures = failures
        self.lookups = 0

    def _maybe_fail(self) -> None:
        self.lookups += 1
        if self.lookups <= self.failures:
            raise StorageUnavailableError("Storage unavailable during suppression lookup")

    async def get(self, workspace_id: str, email: str) -> Optional[SuppressionEntry]:
        self._maybe_fail()
        return await super().get(workspace_id, email)

    async def get_many(
        self, workspace_id: str, emails: Sequence[str]
    ) -> Dict[str, SuppressionEntry]:
        self._maybe_fail()
        return await super().get_many(workspace_id, emails)


# =============================================================================
# Quota
# =============================================================================


class InMemoryQuotaStore:

    def __init__(self) -> None:
        self.counters: Dict[Tuple[QuotaScope, str], QuotaCounter] = {}
        self._lock = asyncio.Lock()

    def seed(
        self,
        scope: QuotaScope,
        scope_id: str,
        daily_limit: int,
        sent_count: int = 0,
        last_reset_date: Optional[date] = None,
        workspace_id: Optional[str] = None,
        name: Optional[str] = None,
    ) -> QuotaCounter:
        counter = QuotaCounter(
            scope=scope,
            scope_id=scope_id,
            workspace_id=workspace_id,
            name=name,
            daily_limit=daily_limit,
            sent_count=sent_count,
            last_reset_date=last_reset_date,
        )
        self.counters[(scope, scope_id)] = counter
        return counter

    def _current(
        self, scope: QuotaScope, scope_id: str, workspace_id: Optional[str], default_limit: int
    ) -> QuotaCounter:
        counter = self.counters.get((scope, scope_id))
        if counter is None:
            counter = QuotaCounter(
                scope=scope, scope_id=scope_id, workspace_id=workspace_id,
                daily_limit=default_limit,
            )
        return counter

    def _bumped(self, counter: QuotaCounter, today: date) -> QuotaCounter:
        return counter.model_copy(update={
            'sent_count': counter.effective_sent(today) + 1,
            'last_reset_date': today,
        })

    async def get_counters(
        self, campaign_id: str, workspace_id: str
    ) -> Tuple[Optional[QuotaCounter], Optional[QuotaCounter]]:
        return (
            self.counters.get((QuotaScope.CAMPAIGN, campaign_id)),
            self.counters.get((QuotaScope.WORKSPACE, workspace_id)),
        )

    async def consume_slot(
        self,
        campaign_id: str,
        workspace_id: str,
        campaign_default_limit: int,
        workspace_default_limit: int,
        today: date,
    ) -> Optional[LimitType]:
        await asyncio.sleep(0)
        async with self._lock:
            campaign = self._current(
                QuotaScope.CAMPAIGN, campaign_id, workspace_id, campaign_default_limit
            )
            workspace = self._current(
                QuotaScope.WORKSPACE, workspace_id, workspace_id, workspace_default_limit
            )
            if campaign.effective_sent(today) >= campaign.daily_limit:
                return LimitType.CAMPAIGN
            if workspace.effective_sent(today) >= workspace.daily_limit:
                return LimitType.WORKSPACE
            self.counters[(QuotaScope.CAMPAIGN, campaign_id)] = self._bumped(campaign, today)
            self.counters[(QuotaScope.WORKSPACE, workspace_id)] = self._bumped(workspace, today)
        return None

    async def set_limit(
        self,
        scope: QuotaScope,
        scope_id: str,
        workspace_id: Optional[str],
        daily_limit: int,
    ) -> QuotaCounter:
        async with self._lock:
            counter = self._current(scope, scope_id, workspace_id, daily_limit)
            counter = counter.model_copy(update={'daily_limit': daily_limit})
            self.counters[(scope, scope_id)] = counter
        return counter

    async def list_workspace_counters(self, workspace_id: str) -> List[QuotaCounter]:
        return [
            counter for counter in self.counters.values()
            if (counter.scope == QuotaScope.WORKSPACE and counter.scope_id == workspace_id)
            or (counter.scope == QuotaScope.CAMPAIGN and counter.workspace_id == workspace_id)
        ]


class FailingQuotaStore:
    """Raises on every call; `calls` counts attempts so retries can be asserted."""

    def __init__(self) -> None:
        self.calls = 0

    async def _fail(self, *args: Any, **kwargs: Any) -> Any:
        self.calls += 1
        raise QuotaUnavailableError("Storage unavailable during quota slot consumption")

    get_counters = _fail
    consume_slot = _fail
    set_limit = _fail
    list_workspace_counters = _fail


# =============================================================================
# Variants
# =============================================================================


class InMemoryVariantStore:

    def __init__(self) -> None:
        self.variants: List[Variant] = []
        self.assignments: Dict[str, VariantAssignment] = {}
        self.fail_assignment_insert = False
        self._lock = asyncio.Lock()

    def seed(self, *variants: Variant) -> None:
        self.variants.extend(variants)

    def _replace(self, updated: Variant) -> None:
        self.variants = [updated if v.id == updated.id else v for v in self.variants]

    async def list_variants(self, campaign_id: str, active_only: bool = False) -> List[Variant]:
        return [
            v for v in self.variants
            if v.campaign_id == campaign_id
            and (not active_only or v.status == VariantStatus.ACTIVE)
        ]

    async def get_variant(self, variant_id: str) -> Optional[Variant]:
        return next((v for v in self.variants if v.id == variant_id), None)

    async def insert_variant(self, variant: Variant, validate: VariantValidator) -> Variant:
        async with self._lock:
            validate(await self.list_variants(variant.campaign_id))
            self.variants.append(variant)
        return variant

    async def set_weights(self, campaign_id: str, weights: Dict[str, int]) -> bool:
        async with self._lock:
            campaign_variants = {v.id: v for v in await self.list_variants(campaign_id)}
            if not set(weights) <= set(campaign_variants):
                return False
            for variant_id, weight in weights.items():
                self._replace(campaign_variants[variant_id].model_copy(update={'weight': weight}))
        return True

    async def apply_winner(self, campaign_id: str, winner_variant_id: str) -> bool:
        async with self._lock:
            campaign_variants = await self.list_variants(campaign_id)
            if winner_variant_id not in {v.id for v in campaign_variants}:
                return False
            for variant in campaign_variants:
                if variant.id == winner_variant_id:
                    update = {'weight': 100, 'status': VariantStatus.ACTIVE}
                elif variant.status == VariantStatus.ARCHIVED:
                    update = {'weight': 0}
                else:
                    update = {'weight': 0, 'status': VariantStatus.PAUSED}
                self._replace(variant.model_copy(update=update))
        return True

    async def get_assigned_variant(self, campaign_lead_id: str) -> Optional[Variant]:
        assignment = self.assignments.get(campaign_lead_id)
        if assignment is None:
            return None
        return await self.get_variant(assignment.variant_id)

    async def insert_assignment(self, assignment: VariantAssignment) -> str:
        if self.fail_assignment_insert:
            raise StorageUnavailableError("Storage unavailable during assignment insert")
        await asyncio.sleep(0)
        async with self._lock:
            stored = self.assignments.setdefault(assignment.campaign_lead_id, assignment)
        return stored.variant_id


class FailingVariantStore:

    async def _fail(self, *args: Any, **kwargs: Any) -> Any:
        raise StorageUnavailableError("Storage unavailable during variant listing")

    list_variants = _fail
    get_variant = _fail
    insert_variant = _fail
    set_weights = _fail
    apply_winner = _fail
    get_assigned_variant = _fail
    insert_assignment = _fail


# =============================================================================
# Experiments
# =============================================================================


class InMemoryExperimentStore:

    def __init__(self) -> None:
        self.experiments: Dict[str, Experiment] = {}
        self.variant_stats: Dict[str, List[VariantResult]] = {}
        self.send_counts: Dict[str, List[VariantResult]] = {}
        self._lock = asyncio.Lock()

    async def insert_experiment(self, experiment: Experiment) -> Experiment:
        self.experiments[experiment.id] = experiment
        return experiment

    async def get_experiment(self, experiment_id: str) -> Optional[Experiment]:
        return self.experiments.get(experiment_id)

    async def list_experiments(self, campaign_id: str) -> List[Experiment]:
        return [e for e in self.experiments.values() if e.campaign_id == campaign_id]

    async def transition(
        self,
        experiment_id: str,
        to_status: ExperimentStatus,
        from_statuses: Sequence[ExperimentStatus],
        changes: Optional[Dict[str, Any]] = None,
    ) -> Optional[Experiment]:
        async with self._lock:
            experiment = self.experiments.get(experiment_id)
            if experiment is None or experiment.status not in from_statuses:
                return None
            updated = experiment.model_copy(update={'status': to_status, **(changes or {})})
            self.experiments[experiment_id] = updated
        return updated

    async def list_auto_end_candidates(self) -> List[Experiment]:
        return [
            e for e in self.experiments.values()
            if e.status == ExperimentStatus.RUNNING and e.auto_end_on_significance
        ]

    async def get_variant_stats(self, experiment_id: str) -> List[VariantResult]:
        return list(self.variant_stats.get(experiment_id, []))

    async def get_campaign_send_counts(self, campaign_id: str) -> List[VariantResult]:
        return list(self.send_counts.get(campaign_id, []))
