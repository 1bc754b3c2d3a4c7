from fastapi import APIRouter
from utils.constants import SOLVER_TIMEOUT_SECONDS, VALUE_ORDER

router = APIRouter(prefix="/health", tags=["Health Check"])


@router.get("/check", summary="Health Check")
def healthcheck():
    return {
        "status": "ok",
        "valueOrder": VALUE_ORDER,
        "timeoutSeconds": SOLVER_TIMEOUT_SECONDS,
    }
