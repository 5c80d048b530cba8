"""
Experiment lifecycle and result analysis.

Key Functions:
- create_experiment / get_experiment / list_experiments
- start_experiment, pause_experiment, resume_experiment, cancel_experiment,
  end_experiment: State machine transitions
- get_experiment_results: Gather per-variant stats and run the analysis

State Machine:
    draft -> running
    running <-> paused
    running | paused -> completed
    draft | running | paused -> cancelled

completed and cancelled are terminal. Every transition is a single
conditional update on the current status, so of two concurrent transitions
from the same state only one succeeds; the other raises
InvalidTransitionError.

Statistics Source:
Aggregates recorded for the experiment are used when present. Otherwise the
raw send records of every active variant in the campaign are aggregated on
the fly and rates are derived here.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional, Sequence

from send_governance.core.clock import ServiceClock
from send_governance.core.config import Settings, get_settings
from send_governance.core.errors import InvalidTransitionError
from send_governance.models import (
    Experiment,
    ExperimentCreate,
    ExperimentOutcome,
    ExperimentResult,
    ExperimentStatus,
)
from send_governance.repositories.base import ExperimentStore
from send_governance.services.significance import analyze_experiment, build_variant_stats


logger = logging.getLogger(__name__)


class ExperimentService:
    """Creates, transitions and judges campaign experiments."""

    def __init__(
        self,
        store: ExperimentStore,
        clock: Optional[ServiceClock] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.store = store
        self.clock = clock or ServiceClock()
        self.settings = settings or get_settings()

    # =========================================================================
    # CRUD
    # =========================================================================

    async def create_experiment(
        self, campaign_id: str, workspace_id: Optional[str], data: ExperimentCreate
    ) -> Experiment:
        experiment = Experiment(
            id=str(uuid.uuid4()),
            campaign_id=campaign_id,
            workspace_id=workspace_id,
            name=data.name,
            description=data.description,
            hypothesis=data.hypothesis,
            test_type=data.test_type,
            success_metric=data.success_metric,
            minimum_sample_size=(
                data.minimum_sample_size or self.settings.experiment_min_sample_size_default
            ),
            confidence_level=(
                data.confidence_level or self.settings.experiment_confidence_level_default
            ),
            auto_end_on_significance=data.auto_end_on_significance,
            status=ExperimentStatus.DRAFT,
            created_at=self.clock.now(),
        )
        created = await self.store.insert_experiment(experiment)
        logger.info(f"Created experiment {created.id} for campaign {campaign_id}")
        return created

    async def get_experiment(self, experiment_id: str) -> Optional[Experiment]:
        return await self.store.get_experiment(experiment_id)

    async def list_experiments(self, campaign_id: str) -> List[Experiment]:
        return await self.store.list_experiments(campaign_id)

    async def list_auto_end_candidates(self) -> List[Experiment]:
        """Running experiments that should end once a winner is significant."""
        return await self.store.list_auto_end_candidates()

    # =========================================================================
    # Transitions
    # =========================================================================

    async def _transition(
        self,
        experiment_id: str,
        to_status: ExperimentStatus,
        from_statuses: Sequence[ExperimentStatus],
        changes: Optional[Dict[str, Any]] = None,
    ) -> Optional[Experiment]:
        """
        Apply a status change, returning None for an unknown experiment.

        Raises:
            InvalidTransitionError: If the experiment exists but is not in one
                of from_statuses.
        """
        updated = await self.store.transition(experiment_id, to_status, from_statuses, changes)
        if updated is not None:
            logger.info(f"Experiment {experiment_id} is now {to_status.value}")
            return updated

        current = await self.store.get_experiment(experiment_id)
        if current is None:
            return None

        allowed = ", ".join(status.value for status in from_statuses)
        raise InvalidTransitionError(
            f"Cannot move experiment from {current.status.value} to {to_status.value} "
            f"(requires {allowed})"
        )

    async def start_experiment(self, experiment_id: str) -> Optional[Experiment]:
        return await self._transition(
            experiment_id,
            ExperimentStatus.RUNNING,
            [ExperimentStatus.DRAFT],
            {'started_at': self.clock.now()},
        )

    async def pause_experiment(self, experiment_id: str) -> Optional[Experiment]:
        return await self._transition(
            experiment_id, ExperimentStatus.PAUSED, [ExperimentStatus.RUNNING]
        )

    async def resume_experiment(self, experiment_id: str) -> Optional[Experiment]:
        return await self._transition(
            experiment_id, ExperimentStatus.RUNNING, [ExperimentStatus.PAUSED]
        )

    async def cancel_experiment(self, experiment_id: str) -> Optional[Experiment]:
        return await self._transition(
            experiment_id,
            ExperimentStatus.CANCELLED,
            [ExperimentStatus.DRAFT, ExperimentStatus.RUNNING, ExperimentStatus.PAUSED],
            {'ended_at': self.clock.now()},
        )

    async def end_experiment(
        self, experiment_id: str, winner_variant_id: Optional[str] = None
    ) -> Optional[Experiment]:
        """
        Complete an experiment.

        Without an explicit winner the current results are computed and their
        winner and confidence adopted when a winner was found; otherwise the
        experiment completes with no winner.
        """
        if winner_variant_id:
            return await self._complete(experiment_id, {'winner_variant_id': winner_variant_id})

        results = await self.get_experiment_results(experiment_id)
        if results is None:
            return None
        return await self.complete_with_results(experiment_id, results)

    async def complete_with_results(
        self, experiment_id: str, results: ExperimentResult
    ) -> Optional[Experiment]:
        """Complete an experiment, recording the winner of an analysis if it has one."""
        changes: Dict[str, Any] = {}
        if results.status == ExperimentOutcome.WINNER_FOUND:
            changes['winner_variant_id'] = results.winner_variant_id
            changes['statistical_significance'] = results.confidence_level
            changes['result_summary'] = {
                'winner_name': results.winner_name,
                'lift_percent': results.lift_percent,
                'recommendation': results.recommendation,
            }
        return await self._complete(experiment_id, changes)

    async def _complete(self, experiment_id: str, changes: Dict[str, Any]) -> Optional[Experiment]:
        changes['ended_at'] = self.clock.now()
        return await self._transition(
            experiment_id,
            ExperimentStatus.COMPLETED,
            [ExperimentStatus.RUNNING, ExperimentStatus.PAUSED],
            changes,
        )

    # =========================================================================
    # Results
    # =========================================================================

    async def get_experiment_results(self, experiment_id: str) -> Optional[ExperimentResult]:
        """Analyse an experiment; None when it does not exist."""
        experiment = await self.store.get_experiment(experiment_id)
        if experiment is None:
            return None

        stats = await self.store.get_variant_stats(experiment_id)
        if not stats:
            counts = await self.store.get_campaign_send_counts(experiment.campaign_id)
            stats = [
                build_variant_stats(row, name=row.name, is_control=row.is_control)
                for row in counts
            ]
            logger.debug(
                f"Experiment {experiment_id} has no recorded stats; aggregated "
                f"{len(stats)} variants from send records"
            )

        return analyze_experiment(experiment, stats)
