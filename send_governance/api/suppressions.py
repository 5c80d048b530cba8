"""
FastAPI router for the suppression registry.

Key Endpoints:
- GET    /suppressions/{workspace_id}                Paginated list, newest first
- POST   /suppressions/{workspace_id}                Add or re-add one address
- POST   /suppressions/{workspace_id}/bulk           Add many addresses
- GET    /suppressions/{workspace_id}/check          Check one address
- POST   /suppressions/{workspace_id}/check          Check many addresses
- DELETE /suppressions/{workspace_id}/{email}        Remove an address

Administrative writes come from the CRM and from unsubscribe, bounce and
complaint handlers; the send pipeline only reads.
"""

import logging
from typing import Dict, Optional

from fastapi import APIRouter, Query

from send_governance.api.errors import http_errors, not_found
from send_governance.core.dependencies import SuppressionRegistryDep
from send_governance.models import (
    SuppressionBulkCreate,
    SuppressionBulkResult,
    SuppressionCheckRequest,
    SuppressionCreate,
    SuppressionEntry,
    SuppressionListResponse,
    SuppressionReason,
    SuppressionResult,
)
from send_governance.services.suppression import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE


logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/{workspace_id}", response_model=SuppressionListResponse)
async def list_suppressions(
    workspace_id: str,
    registry: SuppressionRegistryDep,
    reason: Optional[SuppressionReason] = Query(default=None),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(default=0, ge=0),
) -> SuppressionListResponse:
    with http_errors("suppression listing"):
        entries, total = await registry.list_entries(workspace_id, reason, limit, offset)
    return SuppressionListResponse(entries=entries, total=total, limit=limit, offset=offset)


@router.post("/{workspace_id}", response_model=SuppressionEntry, status_code=201)
async def add_suppression(
    workspace_id: str,
    body: SuppressionCreate,
    registry: SuppressionRegistryDep,
) -> SuppressionEntry:
    with http_errors("suppression add"):
        return await registry.add(
            workspace_id,
            body.email,
            body.reason,
            campaign_id=body.campaign_id,
            lead_id=body.lead_id,
            metadata=body.metadata,
        )


@router.post("/{workspace_id}/bulk", response_model=SuppressionBulkResult)
async def add_suppressions_bulk(
    workspace_id: str,
    body: SuppressionBulkCreate,
    registry: SuppressionRegistryDep,
) -> SuppressionBulkResult:
    with http_errors("bulk suppression add"):
        return await registry.add_bulk(workspace_id, body.emails, body.reason)


@router.get("/{workspace_id}/check", response_model=SuppressionResult)
async def check_suppression(
    workspace_id: str,
    registry: SuppressionRegistryDep,
    email: str = Query(..., min_length=3),
) -> SuppressionResult:
    with http_errors("suppression check"):
        return await registry.is_suppressed(workspace_id, email)


@router.post("/{workspace_id}/check", response_model=Dict[str, SuppressionResult])
async def check_suppressions_bulk(
    workspace_id: str,
    body: SuppressionCheckRequest,
    registry: SuppressionRegistryDep,
) -> Dict[str, SuppressionResult]:
    with http_errors("bulk suppression check"):
        return await registry.check_bulk(workspace_id, body.emails)


@router.delete("/{workspace_id}/{email}")
async def remove_suppression(
    workspace_id: str,
    email: str,
    registry: SuppressionRegistryDep,
) -> Dict[str, bool]:
    with http_errors("suppression removal"):
        removed = await registry.remove(workspace_id, email)
    if not removed:
        raise not_found("Suppression entry")
    return {"success": True}
