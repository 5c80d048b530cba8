"""
FastAPI router for campaign variants and assignments.

Key Endpoints:
- GET  /campaigns/{campaign_id}/variants                         List (oldest first)
- POST /campaigns/{campaign_id}/variants                         Create
- PUT  /campaigns/{campaign_id}/variants/weights                 Rebalance (sum 100)
- POST /campaigns/{campaign_id}/variants/apply-winner            Winner takes all
- GET  /campaigns/{campaign_id}/variants/assignments/{lead_id}   Existing assignment
- POST /campaigns/{campaign_id}/variants/assignments/{lead_id}   Assign (sticky)
"""

import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Query

from send_governance.api.errors import http_errors, not_found
from send_governance.core.dependencies import VariantServiceDep
from send_governance.models import (
    ApplyWinnerRequest,
    Variant,
    VariantCreate,
    VariantWeightsUpdate,
)


logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=List[Variant])
async def list_variants(campaign_id: str, service: VariantServiceDep) -> List[Variant]:
    with http_errors("variant listing"):
        return await service.get_variants(campaign_id)


@router.post("", response_model=Variant, status_code=201)
async def create_variant(
    campaign_id: str,
    body: VariantCreate,
    service: VariantServiceDep,
    workspace_id: Optional[str] = Query(default=None),
) -> Variant:
    with http_errors("variant creation"):
        return await service.create_variant(campaign_id, workspace_id, body)


@router.put("/weights")
async def update_weights(
    campaign_id: str,
    body: VariantWeightsUpdate,
    service: VariantServiceDep,
) -> Dict[str, bool]:
    with http_errors("variant rebalance"):
        await service.update_variant_weights(campaign_id, body.weights)
    return {"success": True}


@router.post("/apply-winner")
async def apply_winner(
    campaign_id: str,
    body: ApplyWinnerRequest,
    service: VariantServiceDep,
) -> Dict[str, bool]:
    with http_errors("apply winner"):
        await service.apply_winner(campaign_id, body.winner_variant_id)
    return {"success": True}


@router.get("/assignments/{campaign_lead_id}", response_model=Variant)
async def get_assignment(
    campaign_id: str,
    campaign_lead_id: str,
    service: VariantServiceDep,
) -> Variant:
    with http_errors("assignment lookup"):
        variant = await service.get_assigned_variant(campaign_lead_id)
    if variant is None or variant.campaign_id != campaign_id:
        raise not_found("Assignment")
    return variant


@router.post("/assignments/{campaign_lead_id}", response_model=Optional[Variant])
async def assign_variant(
    campaign_id: str,
    campaign_lead_id: str,
    service: VariantServiceDep,
) -> Optional[Variant]:
    """Returns null when the campaign has no assignable variant."""
    with http_errors("variant assignment"):
        return await service.assign_variant(campaign_lead_id, campaign_id)
