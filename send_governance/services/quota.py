"""
Quota governor service.

Enforces the per-campaign and per-workspace daily send ceilings.

Key Functions:
- check_send_limits: Report both counters and whether another send fits
- try_consume_slot: Atomic check-and-increment of both counters
- increment_send_count: Two-call form of try_consume_slot, returning a bool
- update_campaign_daily_limit / update_workspace_daily_limit: Bounded edits
- get_workspace_send_stats: Dashboard rollup

Service Day:
"Today" is taken once per call from the ServiceClock (SERVICE_TIMEZONE) and
handed to the store. A counter whose last_reset_date is not today counts as
zero sent; no job ever resets counters.

Failure Policy:
Quota state that cannot be read or written never allows a send. Transient
storage failures are retried (STORAGE_RETRY_ATTEMPTS) before giving up; a
confirmed "limit reached" answer is a result, not an error, and is never
retried.
"""

import logging
from typing import Optional

from send_governance.core.clock import ServiceClock
from send_governance.core.config import Settings, get_settings
from send_governance.core.database import storage_retry
from send_governance.core.errors import StorageUnavailableError, ValidationFailedError
from send_governance.models import (
    CampaignSendStats,
    LimitType,
    QuotaCounter,
    QuotaScope,
    SendLimitsStatus,
    SlotReservation,
    WorkspaceSendStats,
)
from send_governance.repositories.base import QuotaStore


logger = logging.getLogger(__name__)


class QuotaGovernor:
    """Daily send ceilings backed by an atomic counter store."""

    def __init__(
        self,
        store: QuotaStore,
        clock: Optional[ServiceClock] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.store = store
        self.clock = clock or ServiceClock()
        self.settings = settings or get_settings()

    # =========================================================================
    # Read Path
    # =========================================================================

    async def check_send_limits(self, campaign_id: str, workspace_id: str) -> SendLimitsStatus:
        """
        Report today's usage of both ceilings.

        The campaign ceiling is evaluated first, so limit_type is 'campaign'
        whenever the campaign is exhausted, even if the workspace is too.
        When the counters cannot be read the result has can_send=False and
        error set.
        """
        today = self.clock.today()
        try:
            async for attempt in storage_retry():
                with attempt:
                    campaign, workspace = await self.store.get_counters(campaign_id, workspace_id)
        except StorageUnavailableError as e:
            logger.error(
                f"Quota lookup failed for campaign {campaign_id} / workspace "
                f"{workspace_id}; refusing sends: {e.message}"
            )
            return SendLimitsStatus(can_send=False, error=e.message)

        campaign_limit = campaign.daily_limit if campaign else self.settings.campaign_daily_limit_default
        campaign_sent = campaign.effective_sent(today) if campaign else 0
        workspace_limit = workspace.daily_limit if workspace else self.settings.workspace_daily_limit_default
        workspace_sent = workspace.effective_sent(today) if workspace else 0

        limit_type: Optional[LimitType] = None
        if campaign_sent >= campaign_limit:
            limit_type = LimitType.CAMPAIGN
        elif workspace_sent >= workspace_limit:
            limit_type = LimitType.WORKSPACE

        return SendLimitsStatus(
            can_send=limit_type is None,
            campaign_limit=campaign_limit,
            campaign_sent=campaign_sent,
            campaign_remaining=max(0, campaign_limit - campaign_sent),
            workspace_limit=workspace_limit,
            workspace_sent=workspace_sent,
            workspace_remaining=max(0, workspace_limit - workspace_sent),
            limit_reached=limit_type is not None,
            limit_type=limit_type,
        )

    # =========================================================================
    # Write Path
    # =========================================================================

    async def try_consume_slot(self, campaign_id: str, workspace_id: str) -> SlotReservation:
        """
        Take one send slot from both counters, or neither.

        Concurrent callers can never push either counter past its limit:
        with K callers and L free slots exactly min(K, L) succeed.
        """
        today = self.clock.today()
        try:
            async for attempt in storage_retry():
                with attempt:
                    blocked_by = await self.store.consume_slot(
                        campaign_id,
                        workspace_id,
                        self.settings.campaign_daily_limit_default,
                        self.settings.workspace_daily_limit_default,
                        today,
                    )
        except StorageUnavailableError as e:
            logger.error(
                f"Quota slot for campaign {campaign_id} could not be reserved; "
                f"refusing send: {e.message}"
            )
            return SlotReservation(allowed=False, error=e.message)

        if blocked_by is not None:
            return SlotReservation(allowed=False, limit_type=blocked_by)
        return SlotReservation(allowed=True)

    async def increment_send_count(self, campaign_id: str, workspace_id: str) -> bool:
        """
        Count one send against both counters, refusing it at either limit.

        Uses the same conditional write as try_consume_slot: both counters
        move together or neither does, so concurrent callers never push a
        counter past its limit. Returns False when a ceiling refused the
        increment or storage failed after retries.
        """
        reservation = await self.try_consume_slot(campaign_id, workspace_id)
        if reservation.limit_type is not None:
            logger.warning(
                f"Refused send count for campaign {campaign_id}: "
                f"{reservation.limit_type.value} daily limit reached"
            )
        return reservation.allowed

    # =========================================================================
    # Administration
    # =========================================================================

    async def update_campaign_daily_limit(
        self, campaign_id: str, workspace_id: str, new_limit: int
    ) -> QuotaCounter:
        """
        Raises:
            ValidationFailedError: If new_limit is outside the campaign bounds.
        """
        low = self.settings.campaign_daily_limit_min
        high = self.settings.campaign_daily_limit_max
        if not low <= new_limit <= high:
            raise ValidationFailedError(
                f"Campaign daily limit must be between {low} and {high}"
            )

        counter = await self.store.set_limit(QuotaScope.CAMPAIGN, campaign_id, workspace_id, new_limit)
        logger.info(f"Campaign {campaign_id} daily limit set to {new_limit}")
        return counter

    async def update_workspace_daily_limit(self, workspace_id: str, new_limit: int) -> QuotaCounter:
        """
        Raises:
            ValidationFailedError: If new_limit is outside the workspace bounds.
        """
        low = self.settings.workspace_daily_limit_min
        high = self.settings.workspace_daily_limit_max
        if not low <= new_limit <= high:
            raise ValidationFailedError(
                f"Workspace daily limit must be between {low} and {high}"
            )

        counter = await self.store.set_limit(QuotaScope.WORKSPACE, workspace_id, workspace_id, new_limit)
        logger.info(f"Workspace {workspace_id} daily limit set to {new_limit}")
        return counter

    async def get_workspace_send_stats(self, workspace_id: str) -> WorkspaceSendStats:
        """Today's usage of a workspace and each of its campaigns."""
        today = self.clock.today()
        counters = await self.store.list_workspace_counters(workspace_id)

        global_limit = self.settings.workspace_daily_limit_default
        global_sent = 0
        campaigns = []

        for counter in counters:
            if counter.scope == QuotaScope.WORKSPACE:
                global_limit = counter.daily_limit
                global_sent = counter.effective_sent(today)
                continue
            campaigns.append(
                CampaignSendStats(
                    id=counter.scope_id,
                    name=counter.name,
                    limit=counter.daily_limit,
                    sent=counter.effective_sent(today),
                    remaining=counter.remaining(today),
                )
            )

        return WorkspaceSendStats(
            global_limit=global_limit,
            global_sent=global_sent,
            global_remaining=max(0, global_limit - global_sent),
            campaigns=campaigns,
        )
