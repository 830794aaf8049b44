"""
Pricing Campaign Service Main Application

FastAPI application for store-wide discount campaigns: simulate, apply,
and revert.
Port: 8252
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse

from core.config import get_settings

from .factory import SERVICE_NAME, PricingCampaignServiceFactory, close_factory, get_factory
from .models import (
    ApplyRequest,
    ApplyResponse,
    CampaignHistoryResponse,
    CampaignStateResponse,
    HealthResponse,
    LivenessResponse,
    Projection,
    ReadinessResponse,
    RecoveryResult,
    RevertResponse,
    SimulateRequest,
)
from .protocols import (
    CampaignStateError,
    PersistenceError,
    PricingValidationError,
)
from .routes_registry import SERVICE_METADATA, get_route_metadata

# Configure logging
settings = get_settings()
settings.logging.apply()
logger = logging.getLogger(__name__)

# Service configuration
SERVICE_PORT = settings.pricing.service_port
SERVICE_VERSION = SERVICE_METADATA["version"]

# Track startup time for uptime calculation
startup_time = time.time()

# Global factory instance
factory: Optional[PricingCampaignServiceFactory] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    global factory

    logger.info(f"Starting {SERVICE_NAME} on port {SERVICE_PORT}")

    # Initialize factory; runs the recovery pass before serving
    factory = await get_factory()
    logger.info(f"Serving routes: {get_route_metadata()['routes']}")

    yield

    # Cleanup
    logger.info(f"Shutting down {SERVICE_NAME}")
    await close_factory()
    factory = None


# Create FastAPI application
app = FastAPI(
    title="Pricing Campaign Service",
    description="Store-wide discount campaigns with a minimum markup floor and exact revert",
    version=SERVICE_VERSION,
    lifespan=lifespan,
)


# ====================
# Exception Handlers
# ====================


@app.exception_handler(PricingValidationError)
async def validation_error_handler(request: Request, exc: PricingValidationError):
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": str(exc), "error": type(exc).__name__, "field": exc.field},
    )


@app.exception_handler(CampaignStateError)
async def campaign_state_handler(request: Request, exc: CampaignStateError):
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={
            "detail": str(exc),
            "error": type(exc).__name__,
            "phase": exc.current_phase.value if exc.current_phase else None,
        },
    )


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    logger.error(f"Persistence failure on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "detail": f"{exc}. The operation is recoverable and safe to retry.",
            "error": type(exc).__name__,
            "campaign_id": exc.campaign_id,
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": str(exc), "error": type(exc).__name__},
    )


# ====================
# Dependencies
# ====================


def get_service():
    """Get pricing campaign service from factory"""
    if not factory:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not initialized",
        )
    return factory.service


# ====================
# Health Endpoints
# ====================


@app.get("/api/v1/pricing/health")
@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint"""
    dependencies = {}

    if factory:
        try:
            db_healthy = await factory.repository.health_check()
            dependencies["postgres"] = "healthy" if db_healthy else "unhealthy"
        except Exception:
            dependencies["postgres"] = "unhealthy"

        if factory.nats_client:
            dependencies["nats"] = "healthy" if factory.nats_client.is_connected else "unhealthy"
        else:
            dependencies["nats"] = "not_configured"

    return HealthResponse(
        status="healthy",
        service=SERVICE_NAME,
        port=SERVICE_PORT,
        version=SERVICE_VERSION,
        dependencies=dependencies,
    )


@app.get("/health/ready", response_model=ReadinessResponse, tags=["Health"])
async def readiness_check():
    """Readiness check endpoint"""
    checks = {}
    details = {}

    if factory:
        try:
            db_healthy = await factory.repository.health_check()
            checks["database"] = db_healthy
            details["database"] = "Connected" if db_healthy else "Connection failed"
        except Exception as e:
            checks["database"] = False
            details["database"] = str(e)

        if factory.nats_client:
            checks["nats"] = factory.nats_client.is_connected
            details["nats"] = "Connected" if factory.nats_client.is_connected else "Disconnected"
        else:
            checks["nats"] = True  # Optional
            details["nats"] = "Not configured (optional)"
    else:
        checks["factory"] = False
        details["factory"] = "Factory not initialized"

    ready = all(checks.get(k, False) for k in ["database"])

    return ReadinessResponse(
        ready=ready,
        checks=checks,
        details=details,
    )


@app.get("/health/live", response_model=LivenessResponse, tags=["Health"])
async def liveness_check():
    """Liveness check endpoint"""
    return LivenessResponse(
        alive=True,
        uptime_seconds=time.time() - startup_time,
    )


# ====================
# Campaign Endpoints
# ====================


@app.post(
    "/api/v1/pricing/simulate",
    response_model=Projection,
    tags=["Pricing"],
)
async def simulate_campaign(
    request: SimulateRequest,
    service=Depends(get_service),
):
    """
    Project a discount against the current catalog.

    Read-only; allowed whether or not a campaign is active.
    """
    return await service.simulate(
        discount_percent=request.discount_percent,
        min_markup_factor=request.min_markup_factor,
    )


@app.post(
    "/api/v1/pricing/apply",
    response_model=ApplyResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Pricing"],
)
async def apply_campaign(
    request: ApplyRequest,
    service=Depends(get_service),
):
    """Apply a discount to every product that clears the markup floor"""
    campaign = await service.apply(
        discount_percent=request.discount_percent,
        min_markup_factor=request.min_markup_factor,
        name=request.name,
    )

    return ApplyResponse(
        campaign_id=campaign.campaign_id,
        message=f"Campaign '{campaign.name}' applied to {len(campaign.target_prices)} products",
        affected_count=campaign.affected_count,
        blocked_count=campaign.blocked_count,
    )


@app.post(
    "/api/v1/pricing/revert",
    response_model=RevertResponse,
    tags=["Pricing"],
)
async def revert_campaign(service=Depends(get_service)):
    """Restore the prices captured when the active campaign was applied"""
    record = await service.revert()

    return RevertResponse(
        message=f"Campaign '{record.name}' reverted; {record.restored_count} prices restored",
        campaign_id=record.campaign_id,
        restored_count=record.restored_count,
    )


@app.post(
    "/api/v1/pricing/recover",
    response_model=RecoveryResult,
    tags=["Pricing"],
)
async def recover_campaign(service=Depends(get_service)):
    """Complete an apply or revert that was interrupted"""
    return await service.recover_pending()


@app.get(
    "/api/v1/pricing/campaign",
    response_model=CampaignStateResponse,
    tags=["Pricing"],
)
async def get_campaign_state(service=Depends(get_service)):
    """Current campaign status"""
    return await service.get_campaign_state()


@app.get(
    "/api/v1/pricing/campaigns/history",
    response_model=CampaignHistoryResponse,
    tags=["Pricing"],
)
async def list_campaign_history(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    service=Depends(get_service),
):
    """Reverted campaigns, newest first"""
    campaigns = await service.list_history(limit=limit, offset=offset)
    return CampaignHistoryResponse(campaigns=campaigns, limit=limit, offset=offset)


# ====================
# Main Entry Point
# ====================


def main():
    """Run the service"""
    import uvicorn

    uvicorn.run(
        "microservices.pricing_campaign_service.main:app",
        host=settings.default_host,
        port=SERVICE_PORT,
        reload=settings.debug,
        log_level=settings.logging.log_level.lower(),
    )


if __name__ == "__main__":
    main()
