# Request dependencies; shared components live on app.state
from fastapi import Request

from clinic_booking.config import Settings
from clinic_booking.services.availability import AvailabilityService
from clinic_booking.services.booking import BookingService
from clinic_booking.services.challenges import ChallengeService
from clinic_booking.services.clients import ClientAccountService
from clinic_booking.services.leaderboard import LeaderboardService
from clinic_booking.services.notifications import EmailNotifier
from clinic_booking.services.phorest_client import BookingProvider
from clinic_booking.services.progress import ProgressService
from clinic_booking.services.spending_challenges import SpendingChallengeService


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_provider(request: Request) -> BookingProvider:
    return request.app.state.provider


def get_availability_service(request: Request) -> AvailabilityService:
    return request.app.state.availability_service


def get_booking_service(request: Request) -> BookingService:
    return request.app.state.booking_service


def get_notifier(request: Request) -> EmailNotifier:
    return request.app.state.notifier


def get_progress_service(request: Request) -> ProgressService:
    return request.app.state.progress_service


def get_challenge_service(request: Request) -> ChallengeService:
    return request.app.state.challenge_service


def get_leaderboard_service(request: Request) -> LeaderboardService:
    return request.app.state.leaderboard_service


def get_spending_challenge_service(request: Request) -> SpendingChallengeService:
    return request.app.state.spending_challenge_service


def get_client_account_service(request: Request) -> ClientAccountService:
    return request.app.state.client_account_service
