"""
Storage contracts for the governance core.

Each service receives one of these stores by injection. The production
implementations in send_governance.repositories.postgres run every operation
below as a single statement or a single transaction; test doubles must give
the same atomicity guarantees.

Conventions shared by every store:
- Missing rows are reported as None / empty results, never as exceptions.
- Transient storage failures surface as StorageUnavailableError (or its
  QuotaUnavailableError subclass for quota operations).
"""

from datetime import date
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple

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


# Callback run by insert_variant against the campaign's current variants,
# while the campaign's variant set is locked. Raises to abort the insert.
VariantValidator = Callable[[List[Variant]], None]


class SuppressionStore(Protocol):
    """Registry of suppressed addresses keyed by (workspace_id, email)."""

    async def get(self, workspace_id: str, email: str) -> Optional[SuppressionEntry]: ...

    async def get_many(
        self, workspace_id: str, emails: Sequence[str]
    ) -> Dict[str, SuppressionEntry]: ...

    async def upsert(self, entry: SuppressionEntry) -> SuppressionEntry: ...

    async def upsert_many(self, entries: Sequence[SuppressionEntry]) -> int: ...

    async def delete(self, workspace_id: str, email: str) -> bool: ...

    async def list_entries(
        self,
        workspace_id: str,
        reason: Optional[SuppressionReason],
        limit: int,
        offset: int,
    ) -> Tuple[List[SuppressionEntry], int]: ...


class QuotaStore(Protocol):
    """Arena of daily counters keyed by (scope, scope_id)."""

    async def get_counters(
        self, campaign_id: str, workspace_id: str
    ) -> Tuple[Optional[QuotaCounter], Optional[QuotaCounter]]:
        """Return (campaign counter, workspace counter); None where no row exists."""
        ...

    async def consume_slot(
        self,
        campaign_id: str,
        workspace_id: str,
        campaign_default_limit: int,
        workspace_default_limit: int,
        today: date,
    ) -> Optional[LimitType]:
        """
        Count one send against both counters only if both stay within limit.

        Returns None when the slot was consumed, otherwise the ceiling that
        refused it (nothing is written in that case).
        """
        ...

    async def set_limit(
        self,
        scope: QuotaScope,
        scope_id: str,
        workspace_id: Optional[str],
        daily_limit: int,
    ) -> QuotaCounter: ...

    async def list_workspace_counters(self, workspace_id: str) -> List[QuotaCounter]:
        """Return the workspace counter (if any) plus its campaign counters."""
        ...


class VariantStore(Protocol):
    """Variant definitions and sticky per-recipient assignments."""

    async def list_variants(
        self, campaign_id: str, active_only: bool = False
    ) -> List[Variant]: ...

    async def get_variant(self, variant_id: str) -> Optional[Variant]: ...

    async def insert_variant(
        self, variant: Variant, validate: VariantValidator
    ) -> Variant: ...

    async def set_weights(self, campaign_id: str, weights: Dict[str, int]) -> bool:
        """Apply all weights or none; False if any id is not in the campaign."""
        ...

    async def apply_winner(self, campaign_id: str, winner_variant_id: str) -> bool:
        """Promote the winner and pause the rest atomically; False if unknown."""
        ...

    async def get_assigned_variant(self, campaign_lead_id: str) -> Optional[Variant]: ...

    async def insert_assignment(self, assignment: VariantAssignment) -> str:
        """
        Record an assignment unless one exists; return the stored variant_id.

        When a concurrent caller already assigned the recipient, the existing
        variant_id is returned instead of the proposed one.
        """
        ...


class ExperimentStore(Protocol):
    """Experiment rows and the per-variant statistics they are judged on."""

    async def insert_experiment(self, experiment: Experiment) -> Experiment: ...

    async def get_experiment(self, experiment_id: str) -> Optional[Experiment]: ...

    async def list_experiments(self, campaign_id: str) -> List[Experiment]: ...

    async def transition(
        self,
        experiment_id: str,
        to_status: ExperimentStatus,
        from_statuses: Sequence[ExperimentStatus],
        changes: Optional[Dict[str, Any]] = None,
    ) -> Optional[Experiment]:
        """
        Move an experiment to to_status if it is currently in from_statuses.

        changes may carry started_at, ended_at, winner_variant_id,
        statistical_significance and result_summary. Returns the updated
        experiment, or None when the precondition failed.
        """
        ...

    async def list_auto_end_candidates(self) -> List[Experiment]: ...

    async def get_variant_stats(self, experiment_id: str) -> List[VariantResult]:
        """Precomputed aggregates recorded for the experiment, if any."""
        ...

    async def get_campaign_send_counts(self, campaign_id: str) -> List[VariantResult]:
        """
        Raw counts aggregated from send records for each active variant.

        Rates and sample_size are left at zero; the caller derives them.
        """
        ...

