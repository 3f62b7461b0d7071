"""routers/alerts.py - Triggers for the daily alert job."""

from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from schemas.alerts import DailyRunRequest
from services.alert_service import DailyAlertJob, build_default_job, run_all_alerts_cycle

router = APIRouter()


def get_daily_alert_job() -> DailyAlertJob:
    return build_default_job()


@router.post("/alerts/daily-run")
async def trigger_daily_run(
    payload: DailyRunRequest,
    job: DailyAlertJob = Depends(get_daily_alert_job),
) -> Dict[str, Any]:
    user_id = (payload.userId or "").strip()
    if not user_id:
        raise HTTPException(status_code=400, detail={"code": "USER_ID_REQUIRED"})

    try:
        result = await job.run_for_user(user_id, force_send=payload.forceSend)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SQLAlchemyError as e:
        logger.exception(f"[alerts] store error during daily run user={user_id}: {e}")
        raise HTTPException(status_code=500, detail={"code": "STORE_UNAVAILABLE"})

    return result.to_dict()


@router.post("/alerts/daily-run/all")
async def trigger_daily_run_all(job: DailyAlertJob = Depends(get_daily_alert_job)) -> Dict[str, Any]:
    try:
        results = await run_all_alerts_cycle(job)
    except SQLAlchemyError as e:
        logger.exception(f"[alerts] store error during alerts cycle: {e}")
        raise HTTPException(status_code=500, detail={"code": "STORE_UNAVAILABLE"})

    return {
        "users": len(results),
        "sent": sum(1 for r in results if r.status == "sent"),
        "results": [r.to_dict() for r in results],
    }
