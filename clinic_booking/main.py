# Main application module
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from clinic_booking.api import appointments, clients, rewards
from clinic_booking.api.routes import router
from clinic_booking.config import Settings, settings
from clinic_booking.errors import AppError
from clinic_booking.services.availability import AvailabilityService
from clinic_booking.services.booking import BookingService
from clinic_booking.services.challenges import ChallengeService
from clinic_booking.services.clients import ClientAccountService
from clinic_booking.services.leaderboard import LeaderboardService
from clinic_booking.services.notifications import EmailNotifier
from clinic_booking.services.phorest_client import BookingProvider, PhorestClient
from clinic_booking.services.progress import ProgressService
from clinic_booking.services.spending_challenges import SpendingChallengeService
from clinic_booking.services.store import KeyValueStore, create_store

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI, app_settings: Settings) -> None:
    # Every error leaves the API in the same JSON envelope

    def error_body(error: str, message: str, code: str, details=None) -> dict:
        body = {"success": False, "error": error, "message": message, "code": code}
        if details and not app_settings.is_production:
            body["details"] = jsonable_encoder(details)
        return body

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.code} {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.error, exc.message, exc.code, exc.details),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content=error_body("Invalid request", "Request body or parameters are invalid", "VALIDATION_ERROR",
                               {"errors": exc.errors()}),
        )


def create_app(
    app_settings: Optional[Settings] = None,
    provider: Optional[BookingProvider] = None,
    store: Optional[KeyValueStore] = None,
    notifier: Optional[EmailNotifier] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> FastAPI:
    """Build the application and wire its shared components.

    The provider client and the store are created once here and reused by
    every request; tests pass their own fakes in.
    """
    app_settings = app_settings or settings
    provider = provider or PhorestClient.from_settings(app_settings)
    store = store or create_store(app_settings)
    notifier = notifier or EmailNotifier.from_settings(app_settings)
    local_tz = app_settings.business_timezone

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {app_settings.api_title} ({app_settings.environment})")
        yield
        await provider.aclose()

    # Create FastAPI app
    app = FastAPI(
        title=app_settings.api_title,
        description=app_settings.api_description,
        version=app_settings.api_version,
        lifespan=lifespan,
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    progress_service = ProgressService(store, local_tz, clock=clock)

    app.state.settings = app_settings
    app.state.provider = provider
    app.state.store = store
    app.state.notifier = notifier
    app.state.availability_service = AvailabilityService(
        provider,
        slot_fetch_timeout=app_settings.slot_fetch_timeout_seconds,
        test_account_markers=app_settings.test_account_markers,
        expose_details=not app_settings.is_production,
    )
    app.state.booking_service = BookingService(provider, local_tz)
    app.state.client_account_service = ClientAccountService(provider)
    app.state.progress_service = progress_service
    app.state.challenge_service = ChallengeService(progress_service)
    app.state.spending_challenge_service = SpendingChallengeService(progress_service)
    app.state.leaderboard_service = LeaderboardService(
        progress_service,
        seed_demo_users=app_settings.seed_demo_leaderboard,
    )

    register_exception_handlers(app, app_settings)

    # Include API routes
    app.include_router(router)
    app.include_router(appointments.router)
    app.include_router(rewards.router)
    app.include_router(clients.router)

    @app.get("/")
    async def root():
        # Root endpoint
        return {
            "message": app_settings.api_title,
            "docs": "/docs",
            "version": app_settings.api_version,
        }

    return app


app = create_app()

# Run the application with uvicorn
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("clinic_booking.main:app", host="0.0.0.0", port=8000, reload=True)
