"""
FastAPI router for send decisions.

- POST /send-decisions  Suppression -> quota slot -> variant for one send

A blocked decision is a normal 200 response carrying the block reason; only
malformed requests fail. An accepted decision has already consumed a quota
slot, so sender workers do not call the increment endpoint afterwards.
"""

from fastapi import APIRouter

from send_governance.api.errors import http_errors
from send_governance.core.dependencies import SendDecisionPipelineDep
from send_governance.models import SendDecision, SendDecisionRequest


router = APIRouter()


@router.post("", response_model=SendDecision)
async def decide_send(
    body: SendDecisionRequest,
    pipeline: SendDecisionPipelineDep,
) -> SendDecision:
    with http_errors("send decision"):
        return await pipeline.decide(body)
