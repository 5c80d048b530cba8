"""
Send-decision pipeline.

Runs before every send attempt and answers accepted (with a variant when the
campaign has one to assign) or blocked with a reason.

Order of checks:
1. Suppression registry. A suppressed recipient is blocked before any quota
   is touched. If the registry cannot be read and SUPPRESSION_FAIL_OPEN is
   false the send is blocked as suppression_unavailable.
2. Quota slot. One slot is consumed from both daily counters atomically.
   Exhausted ceilings block as campaign_limit / workspace_limit; unreadable
   counters block as quota_unavailable.
3. Variant assignment. Sticky weighted choice; None when the campaign runs
   no experiment or the variant tables cannot be read.

An accepted decision has already been counted against both ceilings, so the
caller must not call increment_send_count for it. A slot consumed for a send
that later fails delivery is not returned.
"""

import logging

from send_governance.core.errors import StorageUnavailableError
from send_governance.models import (
    BlockReason,
    DecisionStatus,
    LimitType,
    SendDecision,
    SendDecisionRequest,
)
from send_governance.services.quota import QuotaGovernor
from send_governance.services.suppression import SuppressionRegistry
from send_governance.services.variants import VariantService


logger = logging.getLogger(__name__)


_LIMIT_REASONS = {
    LimitType.CAMPAIGN: BlockReason.CAMPAIGN_LIMIT,
    LimitType.WORKSPACE: BlockReason.WORKSPACE_LIMIT,
}


class SendDecisionPipeline:
    """Composes suppression, quota and assignment into one decision."""

    def __init__(
        self,
        suppression: SuppressionRegistry,
        quota: QuotaGovernor,
        variants: VariantService,
    ) -> None:
        self.suppression = suppression
        self.quota = quota
        self.variants = variants

    async def decide(self, request: SendDecisionRequest) -> SendDecision:
        try:
            suppression = await self.suppression.is_suppressed(request.workspace_id, request.email)
        except StorageUnavailableError as e:
            return self._blocked(request, BlockReason.SUPPRESSION_UNAVAILABLE, detail=e.message)

        if suppression.is_suppressed:
            return self._blocked(
                request,
                BlockReason.SUPPRESSED,
                detail=f"Recipient suppressed ({suppression.reason.value})",
                suppression=suppression,
            )

        reservation = await self.quota.try_consume_slot(request.campaign_id, request.workspace_id)
        if not reservation.allowed:
            if reservation.limit_type is None:
                return self._blocked(
                    request, BlockReason.QUOTA_UNAVAILABLE, detail=reservation.error
                )
            return self._blocked(
                request,
                _LIMIT_REASONS[reservation.limit_type],
                detail=f"Daily {reservation.limit_type.value} limit reached",
                limit_type=reservation.limit_type,
            )

        try:
            variant = await self.variants.assign_variant(
                request.campaign_lead_id, request.campaign_id
            )
        except StorageUnavailableError as e:
            # The slot is already consumed; send with the campaign's default content
            logger.warning(
                f"Variant lookup failed for lead {request.campaign_lead_id} in campaign "
                f"{request.campaign_id}; accepting without variant: {e.message}"
            )
            variant = None

        return SendDecision(
            status=DecisionStatus.ACCEPTED,
            variant=variant,
            suppression=suppression,
        )

    @staticmethod
    def _blocked(request: SendDecisionRequest, reason: BlockReason, **fields) -> SendDecision:
        logger.info(
            f"Blocked send to lead {request.campaign_lead_id} in campaign "
            f"{request.campaign_id}: {reason.value}"
        )
        return SendDecision(status=DecisionStatus.BLOCKED, reason=reason, **fields)
