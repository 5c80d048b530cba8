"""
Send Governance API package initialization.

FastAPI routers for the governance core:
- suppressions: Suppression registry administration and lookups
- send_limits: Daily quota status, increments and limit changes
- variants: Campaign variants, rebalancing and sticky assignment
- experiments: Experiment lifecycle and significance results
- decisions: The per-send decision pipeline
"""

from fastapi import APIRouter

from send_governance.api.suppressions import router as suppressions_router
from send_governance.api.send_limits import router as send_limits_router
from send_governance.api.variants import router as variants_router
from send_governance.api.experiments import router as experiments_router
from send_governance.api.decisions import router as decisions_router

api_router = APIRouter()

api_router.include_router(suppressions_router, prefix="/suppressions", tags=["suppressions"])
api_router.include_router(send_limits_router, prefix="/send-limits", tags=["send-limits"])
api_router.include_router(
    variants_router, prefix="/campaigns/{campaign_id}/variants", tags=["variants"]
)
api_router.include_router(experiments_router, prefix="/experiments", tags=["experiments"])
api_router.include_router(decisions_router, prefix="/send-decisions", tags=["send-decisions"])

__all__ = [
    "api_router",
    "suppressions_router",
    "send_limits_router",
    "variants_router",
    "experiments_router",
    "decisions_router",
]
