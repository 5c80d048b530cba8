"""
Variant configuration and sticky weighted assignment.

Key Functions:
- assign_variant: Pick (once) the variant a recipient receives
- select_weighted_variant: Cumulative-weight walk over a variant snapshot
- create_variant / get_variants: Campaign variant configuration
- update_variant_weights: Transactional rebalance (weights must total 100)
- apply_winner: Move all traffic to one variant and pause the rest

Assignment Rules:
1. An existing assignment always wins; weights changed later never move a
   recipient to another variant.
2. Active variants are read once, in creation order, and the draw is made
   against that single snapshot.
3. No active variants, or a zero total weight, means no experiment: None.
4. The assignment insert is idempotent; a recipient assigned concurrently by
   another worker receives the variant that worker stored.
5. If the insert fails for any other reason the first variant is served so
   the recipient still gets mail; this degradation is logged at WARNING.
"""

import logging
import uuid
from typing import List, Optional, Sequence

import numpy as np

from send_governance.core.clock import ServiceClock
from send_governance.core.errors import StorageUnavailableError, ValidationFailedError
from send_governance.models import (
    Variant,
    VariantAssignment,
    VariantCreate,
    VariantStatus,
    VariantWeight,
)
from send_governance.repositories.base import VariantStore


logger = logging.getLogger(__name__)


DEFAULT_VARIANT_WEIGHT = 50
TOTAL_WEIGHT = 100


def select_weighted_variant(
    variants: Sequence[Variant], rng: np.random.Generator
) -> Optional[Variant]:
    """
    Weighted random choice over variants in the given order.

    Draws r uniformly from [0, total_weight) and returns the first variant
    whose cumulative weight exceeds r, so a variant with weight 0 is never
    chosen. Returns None for an empty list or a zero total.
    """
    total_weight = sum(variant.weight for variant in variants)
    if not variants or total_weight <= 0:
        return None

    r = rng.uniform(0, total_weight)
    cumulative = 0
    for variant in variants:
        cumulative += variant.weight
        if cumulative > r:
            return variant

    # Only reachable through floating point rounding at the upper edge
    return next(variant for variant in reversed(variants) if variant.weight > 0)


class VariantService:
    """Variant configuration plus per-recipient assignment for campaigns."""

    def __init__(
        self,
        store: VariantStore,
        clock: Optional[ServiceClock] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        self.store = store
        self.clock = clock or ServiceClock()
        self.rng = rng if rng is not None else np.random.default_rng()

    # =========================================================================
    # Assignment
    # =========================================================================

    async def assign_variant(self, campaign_lead_id: str, campaign_id: str) -> Optional[Variant]:
        """
        Return the recipient's variant, assigning one on first request.

        Returns None when the campaign has nothing to assign (no active
        variants or all active weights are zero).
        """
        existing = await self.store.get_assigned_variant(campaign_lead_id)
        if existing is not None:
            return existing

        variants = await self.store.list_variants(campaign_id, active_only=True)
        selected = select_weighted_variant(variants, self.rng)
        if selected is None:
            return None

        assignment = VariantAssignment(
            campaign_lead_id=campaign_lead_id,
            campaign_id=campaign_id,
            variant_id=selected.id,
            assigned_at=self.clock.now(),
        )
        try:
            stored_variant_id = await self.store.insert_assignment(assignment)
        except StorageUnavailableError as e:
            logger.warning(
                f"Could not persist assignment for {campaign_lead_id} in campaign "
                f"{campaign_id}; serving first variant {variants[0].id}: {e.message}"
            )
            return variants[0]

        if stored_variant_id == selected.id:
            return selected

        # Another worker assigned this recipient first
        for variant in variants:
            if variant.id == stored_variant_id:
                return variant
        return await self.store.get_variant(stored_variant_id)

    async def get_assigned_variant(self, campaign_lead_id: str) -> Optional[Variant]:
        return await self.store.get_assigned_variant(campaign_lead_id)

    # =========================================================================
    # Configuration
    # =========================================================================

    async def get_variants(self, campaign_id: str) -> List[Variant]:
        """All variants of a campaign, oldest first."""
        return await self.store.list_variants(campaign_id)

    async def create_variant(
        self, campaign_id: str, workspace_id: Optional[str], data: VariantCreate
    ) -> Variant:
        """
        Add a variant to a campaign.

        Raises:
            ValidationFailedError: If the new weight would push the active
                total above 100, or a second control variant is requested.
        """
        weight = DEFAULT_VARIANT_WEIGHT if data.weight is None else data.weight

        def validate(current: List[Variant]) -> None:
            active_sum = sum(v.weight for v in current if v.status == VariantStatus.ACTIVE)
            if active_sum + weight > TOTAL_WEIGHT:
                raise ValidationFailedError(
                    f"Total weight would be {active_sum + weight}; active variant weights "
                    f"cannot exceed {TOTAL_WEIGHT}"
                )
            if data.is_control and any(
                v.is_control and v.status != VariantStatus.ARCHIVED for v in current
            ):
                raise ValidationFailedError("Campaign already has a control variant")

        variant = Variant(
            id=str(uuid.uuid4()),
            campaign_id=campaign_id,
            workspace_id=workspace_id,
            name=data.name,
            variant_key=data.variant_key,
            description=data.description,
            is_control=data.is_control,
            subject_template=data.subject_template,
            body_template=data.body_template,
            weight=weight,
            status=VariantStatus.ACTIVE,
            created_at=self.clock.now(),
        )
        created = await self.store.insert_variant(variant, validate)
        logger.info(
            f"Created variant {created.variant_key} ({created.id}) for campaign "
            f"{campaign_id} at weight {weight}"
        )
        return created

    async def update_variant_weights(
        self, campaign_id: str, weights: Sequence[VariantWeight]
    ) -> None:
        """
        Rebalance traffic; applied all-or-nothing.

        Raises:
            ValidationFailedError: If the weights do not total exactly 100, a
                variant is listed twice, or a variant is not in the campaign.
        """
        total = sum(item.weight for item in weights)
        if total != TOTAL_WEIGHT:
            raise ValidationFailedError(f"Weights must sum to {TOTAL_WEIGHT} (got {total})")

        mapping = {item.variant_id: item.weight for item in weights}
        if len(mapping) != len(weights):
            raise ValidationFailedError("Each variant may appear only once")

        if not await self.store.set_weights(campaign_id, mapping):
            raise ValidationFailedError("Every variant must belong to the campaign")

        logger.info(f"Rebalanced {len(mapping)} variants of campaign {campaign_id}")

    async def apply_winner(self, campaign_id: str, winner_variant_id: str) -> None:
        """
        Give the winner all traffic and pause every other variant.

        Raises:
            ValidationFailedError: If the winner is not a variant of the campaign.
        """
        if not await self.store.apply_winner(campaign_id, winner_variant_id):
            raise ValidationFailedError(
                f"Variant {winner_variant_id} does not belong to campaign {campaign_id}"
            )
        logger.info(f"Applied winner {winner_variant_id} to campaign {campaign_id}")
