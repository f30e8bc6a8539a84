# Daily, weekly and seasonal challenges
import logging
from datetime import date
from typing import Any, Dict, List, Optional

from clinic_booking.errors import NotFoundError, RequestValidationFailed
from clinic_booking.models.schemas import Challenge, ChallengeRequirement
from clinic_booking.services.progress import ProgressService
from clinic_booking.utils.helpers import iso_week_key

# Configure logging
logger = logging.getLogger(__name__)

CHALLENGES_PER_DAY = 3
CHALLENGE_TYPES = ("daily", "weekly", "seasonal")


def _challenge(id, title, description, icon, type, category, points, requirement_type, target, **extra) -> Challenge:
    return Challenge(
        id=id,
        title=title,
        description=description,
        icon=icon,
        type=type,
        category=category,
        points=points,
        requirement=ChallengeRequirement(type=requirement_type, target=target),
        **extra,
    )


# Daily challenges that rotate
DAILY_CHALLENGES: List[Challenge] = [
    _challenge("morning_routine", "Morning Glow", "Complete your morning skincare routine",
               "🌅", "daily", "skincare", 25, "action", 1),
    _challenge("evening_routine", "Night Ritual", "Complete your evening skincare routine",
               "🌙", "daily", "skincare", 30, "action", 1),
    _challenge("product_learn", "Knowledge Seeker", "Read about a skincare ingredient",
               "📚", "daily", "education", 20, "action", 1),
    _challenge("water_intake", "Hydration Hero", "Log drinking 8 glasses of water",
               "💧", "daily", "skincare", 15, "count", 8),
    _challenge("photo_progress", "Progress Tracker", "Take a skincare progress photo",
               "📸", "daily", "skincare", 35, "action", 1),
]

WEEKLY_CHALLENGES: List[Challenge] = [
    _challenge("streak_master", "Consistency Champion", "Complete daily routine 5 days this week",
               "🔥", "weekly", "skincare", 200, "count", 5),
    _challenge("product_explorer", "Product Explorer", "Try 3 different product types",
               "🧪", "weekly", "shopping", 150, "count", 3),
    _challenge("social_sharer", "Beauty Influencer", "Share your routine on social media",
               "📱", "weekly", "social", 100, "action", 1),
]

SEASONAL_EVENT: Dict[str, Any] = {
    "id": "summer_glow",
    "name": "Summer Glow Challenge",
    "description": "Achieve your best summer skin with daily challenges and exclusive rewards",
    "theme": "summer",
    "startDate": "2024-12-01",
    "endDate": "2024-12-31",
    "challenges": [
        _challenge("spf_champion", "SPF Champion", "Apply sunscreen daily for 7 days",
                   "☀️", "seasonal", "skincare", 300, "streak", 7,
                   multiplier=2.0, startDate="2024-12-01", endDate="2024-12-31"),
    ],
    "exclusiveRewards": {
        "bonusPoints": 1000,
        "specialOffers": ["20% off sun protection products"],
    },
}


def get_daily_challenges(day: date) -> List[Challenge]:
    # Three of the daily challenges, rotating with the day of the week (Sunday first)
    day_of_week = (day.weekday() + 1) % 7
    start = (day_of_week * CHALLENGES_PER_DAY) % len(DAILY_CHALLENGES)
    rotated = DAILY_CHALLENGES[start:] + DAILY_CHALLENGES[:start]
    return rotated[:CHALLENGES_PER_DAY]


def _find(challenges: List[Challenge], challenge_id: str) -> Optional[Challenge]:
    return next((c for c in challenges if c.id == challenge_id), None)


class ChallengeService:
    # Challenge listing and progress on top of the user's rewards progress

    def __init__(self, progress_service: ProgressService):
        self.progress_service = progress_service

    def list_for_user(self, user_id: str, challenge_type: str = "all") -> Dict[str, Any]:
        if challenge_type != "all" and challenge_type not in CHALLENGE_TYPES:
            raise RequestValidationFailed(
                "type must be one of: all, daily, weekly, seasonal",
                error="Invalid challenge type",
            )

        progress = self.progress_service.load(user_id)
        today = self.progress_service.today()
        week = iso_week_key(today)
        event_id = SEASONAL_EVENT["id"]
        challenges: List[Dict[str, Any]] = []

        if challenge_type in ("all", "daily"):
            done_today = progress.dailyTasks.get(today.isoformat(), {})
            for challenge in get_daily_challenges(today):
                done = bool(done_today.get(challenge.id))
                challenges.append({
                    **challenge.model_dump(),
                    "isCompleted": done,
                    "progress": {"current": 1 if done else 0, "target": challenge.requirement.target},
                })

        if challenge_type in ("all", "weekly"):
            week_progress = progress.weeklyChallenges.get(week, {})
            for challenge in WEEKLY_CHALLENGES:
                current = week_progress.get(challenge.id, 0)
                challenges.append({
                    **challenge.model_dump(),
                    "isCompleted": current >= challenge.requirement.target,
                    "progress": {"current": current, "target": challenge.requirement.target},
                })

        if challenge_type in ("all", "seasonal"):
            event_progress = progress.seasonalChallenges.get(event_id, {})
            for challenge in SEASONAL_EVENT["challenges"]:
                current = event_progress.get(challenge.id, 0)
                challenges.append({
                    **challenge.model_dump(),
                    "isCompleted": current >= challenge.requirement.target,
                    "progress": {"current": current, "target": challenge.requirement.target},
                    "event": {"id": event_id, "name": SEASONAL_EVENT["name"], "theme": SEASONAL_EVENT["theme"]},
                })

        current_event = None
        if challenge_type in ("all", "seasonal"):
            current_event = {
                **{k: v for k, v in SEASONAL_EVENT.items() if k != "challenges"},
                "challenges": [c.model_dump() for c in SEASONAL_EVENT["challenges"]],
            }

        return {
            "challenges": challenges,
            "currentEvent": current_event,
            "meta": {"userId": user_id, "today": today.isoformat(), "currentWeek": week},
        }

    def record(self, user_id: str, challenge_id: str, challenge_type: str, amount: Optional[int] = None) -> Dict[str, Any]:
        """Add progress to a challenge; points are awarded once, when the target is first reached."""
        if amount is not None and amount < 1:
            raise RequestValidationFailed("progress must be a positive number", error="Invalid progress")

        progress = self.progress_service.load(user_id)
        today = self.progress_service.today()
        step = amount or 1
        points_earned = 0
        completed = False

        if challenge_type == "daily":
            challenge = _find(get_daily_challenges(today), challenge_id)
            if challenge is None:
                raise NotFoundError(f"{challenge_id} is not one of today's challenges")
            day_tasks = progress.dailyTasks.setdefault(today.isoformat(), {})
            if not day_tasks.get(challenge_id):
                day_tasks[challenge_id] = True
                points_earned = challenge.points
                completed = True

        elif challenge_type == "weekly":
            challenge = _find(WEEKLY_CHALLENGES, challenge_id)
            if challenge is None:
                raise NotFoundError(f"Unknown weekly challenge: {challenge_id}")
            counts = progress.weeklyChallenges.setdefault(iso_week_key(today), {})
            before = counts.get(challenge_id, 0)
            counts[challenge_id] = before + step
            if before < challenge.requirement.target <= counts[challenge_id]:
                points_earned = challenge.points
                completed = True

        elif challenge_type == "seasonal":
            challenge = _find(SEASONAL_EVENT["challenges"], challenge_id)
            if challenge is None:
                raise NotFoundError(f"Unknown seasonal challenge: {challenge_id}")
            counts = progress.seasonalChallenges.setdefault(SEASONAL_EVENT["id"], {})
            before = counts.get(challenge_id, 0)
            counts[challenge_id] = before + step
            if before < challenge.requirement.target <= counts[challenge_id]:
                points_earned = int(challenge.points * (challenge.multiplier or 1))
                completed = True

        else:
            raise RequestValidationFailed(
                "challengeType must be one of: daily, weekly, seasonal",
                error="Invalid challenge type",
            )

        if completed:
            progress.points += points_earned
            progress.lastActivity = self.progress_service.now().isoformat()
            progress.stats.daysActive = max(progress.stats.daysActive, progress.streak)
            logger.info(f"{user_id} completed challenge {challenge_id} (+{points_earned} points)")

        self.progress_service.save(progress)

        return {
            "challengeCompleted": completed,
            "pointsEarned": points_earned,
            "totalPoints": progress.points,
            "progress": progress.model_dump(),
        }
