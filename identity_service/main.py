from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from identity_service.config import settings
from identity_service.database import Database
from identity_service.core.logging import logger
from identity_service.core.rate_limit import FixedWindowRateLimiter
from identity_service.features.users.router import router as users_router
from identity_service.features.users.store import MongoUserStore
from identity_service.shared.exceptions import error_response, register_exception_handlers


# Paths outside the general request budget
RATE_LIMIT_EXEMPT_PATHS = {"/health"}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan events for FastAPI application."""
    # Startup
    logger.info(f"Starting {settings.APP_NAME} ({settings.ENVIRONMENT})...")
    client = await Database.connect_db()
    app.state.user_store = MongoUserStore(client)
    
    for limiter in (app.state.general_limiter, app.state.otp_limiter):
        limiter.start_sweeper(settings.RATE_LIMIT_SWEEP_INTERVAL_SECONDS)
    
    logger.info(f"🚀 Application started on port {settings.PORT}")
    
    yield
    
    # Shutdown
    logger.info("Shutting down...")
    for limiter in (app.state.general_limiter, app.state.otp_limiter):
        await limiter.stop_sweeper()
    await Database.close_db()
    logger.info("Application shutdown complete")


def create_app() -> FastAPI:
    """Build the FastAPI application with its own rate limit counters."""
    app = FastAPI(
        title=settings.APP_NAME,
        description="Multi-step user identity service",
        version="1.0.0",
        lifespan=lifespan,
    )
    
    app.state.general_limiter = FixedWindowRateLimiter(
        "general",
        settings.GENERAL_RATE_LIMIT_MAX,
        settings.GENERAL_RATE_LIMIT_WINDOW_SECONDS,
    )
    app.state.otp_limiter = FixedWindowRateLimiter(
        "otp",
        settings.OTP_RATE_LIMIT_MAX,
        settings.OTP_RATE_LIMIT_WINDOW_SECONDS,
    )
    
    register_exception_handlers(app)
    
    @app.middleware("http")
    async def general_rate_limit(request: Request, call_next):
        """Request budget per caller address."""
        if request.url.path not in RATE_LIMIT_EXEMPT_PATHS:
            caller = request.client.host if request.client else "unknown"
            decision = request.app.state.general_limiter.check(caller)
            if not decision.allowed:
                return error_response(
                    429,
                    "Too many requests from this IP, please try again later.",
                    retry_after=decision.retry_after_seconds,
                    headers={"Retry-After": str(decision.retry_after_seconds)},
                )
        return await call_next(request)
    
    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    
    # Register routers
    app.include_router(users_router, prefix=settings.API_PREFIX)
    
    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "message": "✅ Backend API is running",
            "service": settings.APP_NAME,
            "docs": "/docs",
            "health": "/health",
        }
    
    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "environment": settings.ENVIRONMENT,
        }
    
    return app


app = create_app()
