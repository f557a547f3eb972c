import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware
from redis.exceptions import RedisError
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rebooked.app.core.limiter import limiter
from rebooked.app.api import affiliates, banking, lockers, notifications, orders, refunds, wallet
from rebooked.app.api.deps import get_session
from rebooked.app.services.cache import CacheService
from rebooked.app.core.logging import setup_logging, get_logger
from rebooked.app.core.settings import get_settings
from rebooked.app.core.metrics import PrometheusMiddleware, get_metrics_response

APP_VERSION = "1.0.0"

# Load and validate settings
try:
    settings = get_settings()
except ValueError as e:
    print(f"Configuration error: {e}", file=sys.stderr)
    sys.exit(1)

# JSON logs in production
setup_logging(
    log_level=settings.LOG_LEVEL,
    json_format=settings.is_production
)

logger = get_logger(__name__)

logger.info(
    "Application configuration loaded",
    environment=settings.ENVIRONMENT,
    db_host=settings.DB_HOST,
    redis_host=settings.REDIS_HOST,
    bobpay_configured=settings.bobpay_configured,
    bobgo_configured=bool(settings.BOBGO_API_KEY),
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.
    - Shutdown: close the shared Redis connection
    """
    logger.info("Application starting up", version=APP_VERSION)
    yield
    logger.info("Application shutting down")
    await CacheService.close()


app = FastAPI(title="ReBooked Backend", version=APP_VERSION, lifespan=lifespan)

# Routers use the same instance for @limiter.limit
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

ALLOWED_ORIGINS = settings.allowed_origins_list
logger.info("CORS configuration", allowed_origins=ALLOWED_ORIGINS, is_production=settings.is_production)
if not ALLOWED_ORIGINS:
    if settings.is_production:
        logger.error("ALLOWED_ORIGINS must be set in production environment")
        raise ValueError("ALLOWED_ORIGINS environment variable is required in production")
    ALLOWED_ORIGINS = ["*"]
    logger.warning("CORS: Allowing all origins (development mode). Set ALLOWED_ORIGINS in production!")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["*"],
)

# Added after CORS so it runs first on the way in
app.add_middleware(PrometheusMiddleware)

app.include_router(orders.router, prefix="/orders", tags=["orders"])
app.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
# Internal key required (support tooling)
app.include_router(refunds.router, prefix="/refunds", tags=["refunds"])
app.include_router(wallet.router, prefix="/wallet", tags=["wallet"])
app.include_router(banking.router, prefix="/banking", tags=["banking"])
app.include_router(lockers.router, prefix="/lockers", tags=["lockers"])
app.include_router(affiliates.router, prefix="/affiliates", tags=["affiliates"])


@app.get("/")
async def root():
    return {"status": "ok"}


@app.get("/health")
async def health_check(session: AsyncSession = Depends(get_session)):
    """
    Health check endpoint for monitoring and orchestration.
    Checks database and Redis connectivity.
    """
    health_status = {
        "status": "healthy",
        "version": APP_VERSION,
        "checks": {
            "database": "ok",
            "redis": "ok"
        }
    }

    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("Database health check failed", error=str(e))
        health_status["status"] = "unhealthy"
        health_status["checks"]["database"] = f"error: {str(e)}"

    try:
        redis = await CacheService.get_redis()
        await redis.ping()
    except (RedisError, OSError) as e:
        logger.error("Redis health check failed", error=str(e))
        health_status["status"] = "unhealthy"
        health_status["checks"]["redis"] = f"error: {str(e)}"

    return health_status


@app.get("/metrics")
async def metrics_endpoint(openmetrics: bool = False):
    """
    Prometheus metrics endpoint.

    Args:
        openmetrics: If True, return OpenMetrics format
    """
    return get_metrics_response(openmetrics=openmetrics)
