"""
Approval workflow service (FastAPI).

Endpoints (all under /api/v1):
- POST/GET        /workflows, GET/PUT/DELETE /workflows/{workflow_id}
- POST/GET        /requests
- GET             /requests/pending | /assigned | /created | /stats
- GET/PUT         /requests/{request_id}
- POST            /requests/{request_id}/approve | /reject | /return | /cancel
- POST/GET        /delegations, GET/PUT/DELETE /delegations/{delegation_id}

Ops: GET /health, GET /metrics

Identity is supplied by the gateway as X-User-ID / X-User-Role headers.

Local dev: python -m uvicorn approvalflow.api.main:app --reload
"""
from fastapi import Depends, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from approvalflow.api.core.config import settings
from approvalflow.api.core.logging import logger
from approvalflow.api.core.security import get_client_ip
from approvalflow.api.db.session import get_db
from approvalflow.api.routers import delegations, requests, workflows
from approvalflow.observability.metrics import render_latest

# Create FastAPI app
app = FastAPI(
    title="Approval Workflow Service",
    description="Multi-step, role-gated approval workflows",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every request with its client address and response status."""
    logger.info("%s %s - %s", request.method, request.url.path, get_client_ip(request))
    response = await call_next(request)
    logger.info("%s %s -> %s", request.method, request.url.path, response.status_code)
    return response


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# Include routers
app.include_router(workflows.router)
app.include_router(requests.router)
app.include_router(delegations.router)


@app.get("/health")
def health_check(db: Session = Depends(get_db)):
    """Health check endpoint, including database connectivity."""
    try:
        db.execute(text("SELECT 1"))
        database = "connected"
    except SQLAlchemyError as exc:
        logger.warning("Health check database query failed: %s", exc)
        database = "disconnected"

    return {"status": "healthy" if database == "connected" else "degraded", "service": "approval-service", "database": database}


@app.get("/metrics")
def metrics():
    """Prometheus scrape endpoint."""
    payload, content_type = render_latest()
    return Response(content=payload, media_type=content_type)


@app.on_event("startup")
async def startup():
    """Startup event."""
    logger.info("Approval workflow service starting on port %s...", settings.PORT)
    logger.info("API prefix: %s", settings.API_PREFIX)


@app.on_event("shutdown")
async def shutdown():
    """Shutdown event."""
    logger.info("Approval workflow service shutting down...")
