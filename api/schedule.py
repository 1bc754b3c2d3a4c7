from schemas.schedule.generate import ScheduleRequest
from typing import Any, Dict, List
from fastapi import APIRouter, Body, HTTPException
from scheduler.builder import ScheduleOptions, build_schedule
from scheduler.extractor import schedule_to_frame, summary_frame
from exceptions.custom_errors import *
import traceback
from docs.schedule.generate import schedule_generate_description
from utils.logger import get_logger

router = APIRouter(prefix="/schedule", tags=["Schedule"])
logger = get_logger(__name__)


# generate schedule
@router.post(
    "/generate",
    response_model=dict,
    description=schedule_generate_description,
    summary="Generate Schedule",
)
async def generate_schedule(
    request: ScheduleRequest,
    series: List[Dict[str, Any]] = Body(...),
    links: List[Dict[str, Any]] = Body(default_factory=list),
    constraints: List[Dict[str, Any]] = Body(default_factory=list),
    conditions: Dict[str, Any] = Body(default_factory=dict),
    completions: List[Dict[str, Any]] = Body(default_factory=list),
    exceptions: List[Dict[str, Any]] = Body(default_factory=list),
):
    try:
        options = ScheduleOptions(
            timeout_seconds=request.timeoutSeconds,
            value_order=request.valueOrder,
            slot_minutes=request.slotMinutes,
            diagnose=request.diagnose,
        )
        logger.info(
            f"Generate: {len(series)} series, {len(links)} links, "
            f"{len(constraints)} constraints, {len(completions)} completions, "
            f"{len(exceptions)} exceptions, "
            f"{request.startDate} → {request.endDate}"
        )

        result = build_schedule(
            series=series,
            links=links,
            constraints=constraints,
            conditions=conditions,
            history=completions,
            horizon={"start": request.startDate, "end": request.endDate},
            options=options,
            exceptions=exceptions,
        )

        order = [s.get("id") for s in series]
        grid = schedule_to_frame(result, order).reset_index()
        summary = summary_frame(result, order)

        # ==== final response ====
        payload = result.model_dump(mode="json")
        response = {
            "status": payload["status"],
            "schedule": payload["instances"],
            "grid": grid.to_dict(orient="records"),
            "summary": summary.to_dict(orient="records"),
            "cycling": payload["cycling"],
            "reminders": payload["reminders"],
            "issues": payload["issues"],
        }
        return response

    except tuple(CUSTOM_ERRORS) as e:
        report = getattr(e, "report", None)
        detail = report.model_dump(mode="json") if report is not None else str(e)
        raise HTTPException(status_code=CUSTOM_ERRORS[type(e)], detail=detail)
    except Exception as e:
        tb = traceback.format_exc()
        raise HTTPException(status_code=500, detail=f"{str(e)}\n\nTraceback:\n{tb}")
