"""
FastAPI router for daily send quotas.

Key Endpoints:
- GET  /send-limits/campaigns/{campaign_id}            Both ceilings for a send
- POST /send-limits/campaigns/{campaign_id}/increment  Count a completed send (409 at a limit)
- PUT  /send-limits/campaigns/{campaign_id}            Change the campaign limit
- PUT  /send-limits/workspaces/{workspace_id}          Change the workspace limit
- GET  /send-limits/workspaces/{workspace_id}/stats    Dashboard rollup
"""

import logging
from typing import Dict

from fastapi import APIRouter, HTTPException, Query

from send_governance.api.errors import http_errors
from send_governance.core.dependencies import QuotaGovernorDep
from send_governance.models import (
    DailyLimitUpdate,
    QuotaCounter,
    SendLimitsStatus,
    WorkspaceSendStats,
)


logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/campaigns/{campaign_id}", response_model=SendLimitsStatus)
async def get_send_limits(
    campaign_id: str,
    quota: QuotaGovernorDep,
    workspace_id: str = Query(..., min_length=1),
) -> SendLimitsStatus:
    # Storage failures are reported in the body (can_send=False, error set)
    return await quota.check_send_limits(campaign_id, workspace_id)


@router.post("/campaigns/{campaign_id}/increment")
async def increment_send_count(
    campaign_id: str,
    quota: QuotaGovernorDep,
    workspace_id: str = Query(..., min_length=1),
) -> Dict[str, bool]:
    # Guarded like a send decision: a full counter refuses the increment
    reservation = await quota.try_consume_slot(campaign_id, workspace_id)
    if reservation.error:
        raise HTTPException(status_code=503, detail="Send count could not be recorded")
    if not reservation.allowed:
        raise HTTPException(
            status_code=409,
            detail=f"{reservation.limit_type.value.capitalize()} daily limit reached",
        )
    return {"success": True}


@router.put("/campaigns/{campaign_id}", response_model=QuotaCounter)
async def update_campaign_limit(
    campaign_id: str,
    body: DailyLimitUpdate,
    quota: QuotaGovernorDep,
    workspace_id: str = Query(..., min_length=1),
) -> QuotaCounter:
    with http_errors("campaign limit update"):
        return await quota.update_campaign_daily_limit(campaign_id, workspace_id, body.daily_limit)


@router.put("/workspaces/{workspace_id}", response_model=QuotaCounter)
async def update_workspace_limit(
    workspace_id: str,
    body: DailyLimitUpdate,
    quota: QuotaGovernorDep,
) -> QuotaCounter:
    with http_errors("workspace limit update"):
        return await quota.update_workspace_daily_limit(workspace_id, body.daily_limit)


@router.get("/workspaces/{workspace_id}/stats", response_model=WorkspaceSendStats)
async def get_workspace_stats(
    workspace_id: str,
    quota: QuotaGovernorDep,
) -> WorkspaceSendStats:
    with http_errors("workspace send stats"):
        return await quota.get_workspace_send_stats(workspace_id)
