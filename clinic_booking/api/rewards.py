# Rewards routes: progress, challenges, spending challenges and leaderboard
import logging

from fastapi import APIRouter, Depends, Query

from clinic_booking.api.dependencies import (
    get_challenge_service,
    get_leaderboard_service,
    get_progress_service,
    get_spending_challenge_service,
)
from clinic_booking.models.schemas import ChallengeUpdate, ProgressUpdate, SpendingChallengeAction
from clinic_booking.services.challenges import ChallengeService
from clinic_booking.services.leaderboard import LeaderboardService
from clinic_booking.services.progress import DEFAULT_USER_ID, ProgressService
from clinic_booking.services.spending_challenges import SpendingChallengeService

# Configure logging
logger = logging.getLogger(__name__)

# Create router
router = APIRouter(prefix="/api", tags=["rewards"])


@router.get("/user/progress")
def get_user_progress(
    userId: str = Query(default=DEFAULT_USER_ID),
    progress_service: ProgressService = Depends(get_progress_service),
):
    return {"success": True, "data": progress_service.get(userId)}


@router.post("/user/progress")
def update_user_progress(
    payload: ProgressUpdate,
    progress_service: ProgressService = Depends(get_progress_service),
):
    progress = progress_service.apply(payload.userId or DEFAULT_USER_ID, payload.action, payload.data)
    return {
        "success": True,
        "data": progress.model_dump(),
        "message": "Progress updated successfully",
    }


@router.delete("/user/progress")
def reset_user_progress(
    userId: str = Query(default=DEFAULT_USER_ID),
    progress_service: ProgressService = Depends(get_progress_service),
):
    progress = progress_service.reset(userId)
    return {
        "success": True,
        "data": progress.model_dump(),
        "message": "Progress reset successfully",
    }


@router.get("/challenges")
def list_challenges(
    userId: str = Query(default=DEFAULT_USER_ID),
    type: str = Query(default="all"),
    challenge_service: ChallengeService = Depends(get_challenge_service),
):
    return {"success": True, "data": challenge_service.list_for_user(userId, type)}


@router.post("/challenges")
def record_challenge(
    payload: ChallengeUpdate,
    challenge_service: ChallengeService = Depends(get_challenge_service),
):
    result = challenge_service.record(
        payload.userId or DEFAULT_USER_ID,
        payload.challengeId,
        payload.challengeType,
        payload.progress,
    )
    return {"success": True, "data": result}


@router.get("/leaderboard")
def get_leaderboard(
    userId: str = Query(default=DEFAULT_USER_ID),
    limit: int = Query(default=20, ge=1, le=100),
    period: str = Query(default="all-time"),
    leaderboard_service: LeaderboardService = Depends(get_leaderboard_service),
):
    return {"success": True, "data": leaderboard_service.build(userId, limit, period)}


@router.get("/spending-challenges")
def get_spending_challenges(
    userId: str = Query(default=DEFAULT_USER_ID),
    type: str = Query(default="active"),
    spending_service: SpendingChallengeService = Depends(get_spending_challenge_service),
):
    return {"success": True, **spending_service.overview(userId, type)}


@router.post("/spending-challenges")
def update_spending_challenge(
    payload: SpendingChallengeAction,
    spending_service: SpendingChallengeService = Depends(get_spending_challenge_service),
):
    result = spending_service.apply(
        payload.userId or DEFAULT_USER_ID,
        payload.challengeId,
        payload.action,
        payload.data,
    )
    return {"success": True, "data": result, "message": result["message"]}
