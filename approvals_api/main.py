from fastapi import FastAPI, Depends, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import HTTPException, RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import structlog

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from approvals_api.config import settings
from approvals_api.database import init_db, close_db, get_db
from approvals_api.exceptions import ApprovalError
from approvals_api.logging_config import setup_logging
from approvals_api.middleware.correlation import CorrelationIdMiddleware

# Import models so they are registered with Base.metadata
import approvals_api.models  # noqa: F401

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("starting_approvals_api", env=settings.ENVIRONMENT)
    await init_db()
    yield
    await close_db()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    docs_url="/docs" if settings.DEBUG and not settings.is_production else None,
    redoc_url="/redoc" if settings.DEBUG and not settings.is_production else None,
    lifespan=lifespan,
)


# ---------------------------------------------------------------------------
# Global exception handlers. All errors use the structured format:
# {"error": {"code": "...", "message": "..."}}
# ---------------------------------------------------------------------------

@app.exception_handler(ApprovalError)
async def approval_error_handler(request: Request, exc: ApprovalError) -> JSONResponse:
    logger.info(
        "approval_error",
        code=exc.code.value,
        message=exc.message,
        path=request.url.path,
    )
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    detail = exc.detail
    if isinstance(detail, str):
        detail = {"error": {"code": "HTTP_ERROR", "message": detail}}
    elif isinstance(detail, dict) and "error" not in detail:
        detail = {"error": detail}
    return JSONResponse(status_code=exc.status_code, content=detail, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Request validation failed",
                "details": jsonable_encoder(exc.errors()),
            }
        },
    )


app.add_middleware(CorrelationIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Requested-With", "X-Request-ID"],
)


@app.get("/health", tags=["System"])
async def health(response: Response, db: AsyncSession = Depends(get_db)):
    health_status = {"status": "healthy", "version": settings.APP_VERSION, "checks": {}}

    try:
        await db.execute(text("SELECT 1"))
        health_status["checks"]["db"] = "ok"
    except Exception as e:
        logger.error("health_check_db_failed", error=str(e))
        health_status["checks"]["db"] = "error"
        health_status["status"] = "unhealthy"

    if health_status["status"] == "unhealthy":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return health_status


# --- Routers ---
from approvals_api.routes.approvals import router as approvals_router  # noqa: E402
from approvals_api.routes.approval_matrix import router as approval_matrix_router  # noqa: E402

app.include_router(approvals_router, prefix="/api/v1/approvals", tags=["Approvals"])
app.include_router(approval_matrix_router, prefix="/api/v1/approval-matrix", tags=["Approval Matrix"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "approvals_api.main:app",
        host="0.0.0.0",
        port=settings.PORT,
        reload=settings.DEBUG and not settings.is_production,
    )
