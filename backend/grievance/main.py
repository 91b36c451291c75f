import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from grievance.api.v1.api import router as api_router
from grievance.config import settings
from grievance.errors import ErrorCode, GrievanceError

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

STATUS_BY_CODE = {
    ErrorCode.UNAUTHORIZED: 403,
    ErrorCode.VALIDATION_FAILED: 422,
    ErrorCode.LIMIT_EXCEEDED: 409,
    ErrorCode.INVALID_TRANSITION: 409,
    ErrorCode.CONFLICT: 409,
    ErrorCode.NOT_FOUND: 404,
}

app = FastAPI(title="Grievance Desk API", version="1.0.0")


@app.exception_handler(GrievanceError)
async def grievance_error_handler(request: Request, exc: GrievanceError):
    status_code = STATUS_BY_CODE.get(exc.code, 400)
    if exc.code == ErrorCode.CONFLICT:
        logger.warning("Conflict surfaced to client: %s %s", request.method, request.url.path)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


# Health check route
@app.get("/health")
def health_check():
    return {"status": "ok"}


# Include v1 routers
app.include_router(api_router, prefix="/api/v1")
