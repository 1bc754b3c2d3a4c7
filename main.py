from fastapi import Depends, FastAPI, HTTPException, Security
from fastapi.security.api_key import APIKeyHeader
from api.schedule import router as schedule_router
from api.healthcheck import router as healthcheck_router
from dotenv import load_dotenv
from utils.logger import get_logger
import os
import secrets

load_dotenv()

logger = get_logger(__name__)

api_key_header = APIKeyHeader(name="x-api-key", auto_error=False)


# API key guard
def require_api_key(client_key: str = Security(api_key_header)):
    """
    Compare the `x-api-key` header with the API_KEY environment variable.

    The variable is read per request; while it is unset every request passes
    (dev mode).
    """
    expected = os.getenv("API_KEY")
    if not expected:
        logger.warning("API_KEY not set; API key auth is DISABLED (dev mode).")
        return None
    if not client_key or not secrets.compare_digest(str(client_key), str(expected)):
        raise HTTPException(status_code=401, detail="Unauthorized")
    return client_key


app = FastAPI(title="Recurring Schedule API", description="Recurring-series scheduling API")

# Register routers; health stays public
app.include_router(schedule_router, prefix="/api", dependencies=[Depends(require_api_key)])
app.include_router(healthcheck_router, prefix="/api")
