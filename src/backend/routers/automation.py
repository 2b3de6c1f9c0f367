"""
automation.py — Manual trigger for one automation cycle.

POST /automation/run runs the same cycle as scripts/run_automation.py,
for operators and external schedulers (cron, scheduled functions).
"""

import logging

from fastapi import APIRouter, Depends

from database import async_session_maker
from models import AutomationCycleResponse, ResolutionResponse, SyncResultResponse
from services.automation_service import AutomationService
from services.match_data import FootballDataClient

logger = logging.getLogger("automation")

router = APIRouter()


def get_automation_service() -> AutomationService:
    return AutomationService(async_session_maker, FootballDataClient())


@router.post("/run", response_model=AutomationCycleResponse)
async def run_cycle(
    service: AutomationService = Depends(get_automation_service),
) -> AutomationCycleResponse:
    result = await service.run_automation_cycle()
    logger.info(
        "Manual automation cycle: %d synced, %d resolution attempts",
        len(result.status_sync_results), len(result.resolution_results),
    )
    return AutomationCycleResponse(
        status_sync_results=[
            SyncResultResponse.model_validate(r) for r in result.status_sync_results
        ],
        resolution_results=[
            ResolutionResponse.model_validate(r) for r in result.resolution_results
        ],
    )
