"""Public plan catalog routes."""
from __future__ import annotations

from fastapi import APIRouter

from ..schemas.billing import PlanListResponse, PlanResponse
from ..services.billing import get_plan_catalog_service

router = APIRouter(prefix="/api/plans", tags=["plans"])


@router.get("", response_model=PlanListResponse)
def list_plans() -> PlanListResponse:
    plans = get_plan_catalog_service().list_visible_plans()
    return PlanListResponse(plans=[PlanResponse.from_plan(plan) for plan in plans])


@router.get("/{plan_id}", response_model=PlanResponse)
def get_plan(plan_id: int) -> PlanResponse:
    return PlanResponse.from_plan(get_plan_catalog_service().get_plan(plan_id))
