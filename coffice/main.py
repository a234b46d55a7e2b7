# coffice/main.py
"""
Coffice reservation API.

Mounts the v1 routers under /api/v1 and exposes /health and /metrics.
"""

import logging

from fastapi import APIRouter, FastAPI, Request, Response, status
from fastapi.responses import JSONResponse

from .core.config import settings
from .core.exceptions import DomainException, RepositoryException
from .middleware.prometheus_middleware import PrometheusMiddleware
from .monitoring.prometheus_metrics import prometheus_metrics
from .routes.v1 import promo_codes as promo_codes_v1
from .routes.v1 import reservations as reservations_v1
from .routes.v1 import resources as resources_v1

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)

API_TITLE = "Coffice Reservation API"
API_VERSION = "1.0.0"

app = FastAPI(
    title=API_TITLE,
    description="Reservation scheduling and pricing for the Coffice coworking space",
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
)
app.add_middleware(PrometheusMiddleware)


@app.exception_handler(DomainException)
async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    http_exc = exc.to_http_exception()
    return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})


@app.exception_handler(RepositoryException)
async def repository_exception_handler(request: Request, exc: RepositoryException) -> JSONResponse:
    logger.error("Unhandled repository error on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": {
                "message": "An error occurred processing your request",
                "code": "DATABASE_ERROR",
                "details": {},
            }
        },
    )


api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(reservations_v1.router, prefix="/reservations")
api_v1.include_router(resources_v1.router, prefix="/resources")
api_v1.include_router(promo_codes_v1.router, prefix="/promo-codes")
app.include_router(api_v1)


@app.get("/health", include_in_schema=False)
def health_check() -> dict[str, str]:
    return {"status": "healthy", "service": "coffice", "environment": settings.environment}


@app.get("/metrics", include_in_schema=False)
def metrics_endpoint() -> Response:
    return Response(
        content=prometheus_metrics.get_metrics(),
        media_type=prometheus_metrics.get_content_type(),
    )
