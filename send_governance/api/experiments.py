"""
FastAPI router for A/B experiments.

Key Endpoints:
- GET  /experiments?campaign_id=...        List a campaign's experiments
- POST /experiments?campaign_id=...        Create (draft)
- GET  /experiments/{experiment_id}        Fetch one
- POST /experiments/{experiment_id}/start  draft -> running
- POST /experiments/{experiment_id}/pause  running -> paused
- POST /experiments/{experiment_id}/resume paused -> running
- POST /experiments/{experiment_id}/cancel draft|running|paused -> cancelled
- POST /experiments/{experiment_id}/end    running|paused -> completed
- GET  /experiments/{experiment_id}/results  Significance analysis

Illegal transitions answer 409, unknown experiments 404.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Body, Query

from send_governance.api.errors import http_errors, not_found
from send_governance.core.dependencies import ExperimentServiceDep
from send_governance.models import (
    EndExperimentRequest,
    Experiment,
    ExperimentCreate,
    ExperimentResult,
)


logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=List[Experiment])
async def list_experiments(
    service: ExperimentServiceDep,
    campaign_id: str = Query(..., min_length=1),
) -> List[Experiment]:
    with http_errors("experiment listing"):
        return await service.list_experiments(campaign_id)


@router.post("", response_model=Experiment, status_code=201)
async def create_experiment(
    body: ExperimentCreate,
    service: ExperimentServiceDep,
    campaign_id: str = Query(..., min_length=1),
    workspace_id: Optional[str] = Query(default=None),
) -> Experiment:
    with http_errors("experiment creation"):
        return await service.create_experiment(campaign_id, workspace_id, body)


@router.get("/{experiment_id}", response_model=Experiment)
async def get_experiment(experiment_id: str, service: ExperimentServiceDep) -> Experiment:
    with http_errors("experiment lookup"):
        experiment = await service.get_experiment(experiment_id)
    if experiment is None:
        raise not_found("Experiment")
    return experiment


@router.post("/{experiment_id}/start", response_model=Experiment)
async def start_experiment(experiment_id: str, service: ExperimentServiceDep) -> Experiment:
    with http_errors("experiment start"):
        experiment = await service.start_experiment(experiment_id)
    if experiment is None:
        raise not_found("Experiment")
    return experiment


@router.post("/{experiment_id}/pause", response_model=Experiment)
async def pause_experiment(experiment_id: str, service: ExperimentServiceDep) -> Experiment:
    with http_errors("experiment pause"):
        experiment = await service.pause_experiment(experiment_id)
    if experiment is None:
        raise not_found("Experiment")
    return experiment


@router.post("/{experiment_id}/resume", response_model=Experiment)
async def resume_experiment(experiment_id: str, service: ExperimentServiceDep) -> Experiment:
    with http_errors("experiment resume"):
        experiment = await service.resume_experiment(experiment_id)
    if experiment is None:
        raise not_found("Experiment")
    return experiment


@router.post("/{experiment_id}/cancel", response_model=Experiment)
async def cancel_experiment(experiment_id: str, service: ExperimentServiceDep) -> Experiment:
    with http_errors("experiment cancel"):
        experiment = await service.cancel_experiment(experiment_id)
    if experiment is None:
        raise not_found("Experiment")
    return experiment


@router.post("/{experiment_id}/end", response_model=Experiment)
async def end_experiment(
    experiment_id: str,
    service: ExperimentServiceDep,
    body: Optional[EndExperimentRequest] = Body(default=None),
) -> Experiment:
    winner_variant_id = body.winner_variant_id if body else None
    with http_errors("experiment end"):
        experiment = await service.end_experiment(experiment_id, winner_variant_id)
    if experiment is None:
        raise not_found("Experiment")
    return experiment


@router.get("/{experiment_id}/results", response_model=ExperimentResult)
async def get_experiment_results(
    experiment_id: str, service: ExperimentServiceDep
) -> ExperimentResult:
    with http_errors("experiment results"):
        result = await service.get_experiment_results(experiment_id)
    if result is None:
        raise not_found("Experiment")
    return result
