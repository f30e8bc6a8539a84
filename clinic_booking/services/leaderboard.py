# Points leaderboard
import logging
import re
from typing import Any, Dict, List

from clinic_booking.errors import RequestValidationFailed
from clinic_booking.models.schemas import UserProgress, UserStats
from clinic_booking.services.loyalty import tier_for_points
from clinic_booking.services.progress import DEFAULT_USER_ID, ProgressService
from clinic_booking.utils.timezones import parse_datetime

# Configure logging
logger = logging.getLogger(__name__)

# Demo members so a fresh install shows a populated board
DEMO_USERS: List[Dict[str, Any]] = [
    {"userId": "sarah_beauty", "displayName": "Sarah M.", "avatar": "👩‍🦰", "clinic": "Cottesloe",
     "points": 2850, "streak": 12, "achievements": ["first_100", "week_warrior", "first_purchase", "big_spender"],
     "stats": {"totalOrders": 8, "totalVisits": 4, "totalSpent": 1200, "daysActive": 15}},
    {"userId": "emma_glow", "displayName": "Emma K.", "avatar": "👩‍🦱", "clinic": "Perth CBD",
     "points": 2340, "streak": 8, "achievements": ["first_100", "week_warrior", "first_purchase"],
     "stats": {"totalOrders": 5, "totalVisits": 3, "totalSpent": 800, "daysActive": 12}},
    {"userId": "jessica_skin", "displayName": "Jessica L.", "avatar": "👩‍🦳", "clinic": "Subiaco",
     "points": 1890, "streak": 15, "achievements": ["first_100", "week_warrior", "first_visit"],
     "stats": {"totalOrders": 3, "totalVisits": 6, "totalSpent": 450, "daysActive": 18}},
    {"userId": "mia_radiant", "displayName": "Mia R.", "avatar": "👩", "clinic": "Fremantle",
     "points": 1675, "streak": 5, "achievements": ["first_100", "first_purchase"],
     "stats": {"totalOrders": 4, "totalVisits": 2, "totalSpent": 600, "daysActive": 8}},
    {"userId": "chloe_beauty", "displayName": "Chloe T.", "avatar": "👱‍♀️", "clinic": "Joondalup",
     "points": 1420, "streak": 3, "achievements": ["first_100", "first_visit"],
     "stats": {"totalOrders": 2, "totalVisits": 4, "totalSpent": 300, "daysActive": 6}},
    {"userId": "amy_glow", "displayName": "Amy S.", "avatar": "👩‍🦲", "clinic": "Cottesloe",
     "points": 1180, "streak": 7, "achievements": ["first_100"],
     "stats": {"totalOrders": 2, "totalVisits": 1, "totalSpent": 250, "daysActive": 9}},
    {"userId": "sophie_care", "displayName": "Sophie W.", "avatar": "🧑‍🦰", "clinic": "Perth CBD",
     "points": 980, "streak": 2, "achievements": ["first_100"],
     "stats": {"totalOrders": 1, "totalVisits": 2, "totalSpent": 150, "daysActive": 4}},
    {"userId": "olivia_skin", "displayName": "Olivia B.", "avatar": "👩‍🦴", "clinic": "Subiaco",
     "points": 750, "streak": 4, "achievements": ["first_100"],
     "stats": {"totalOrders": 1, "totalVisits": 1, "totalSpent": 120, "daysActive": 5}},
]

DEMO_PROFILES = {user["userId"]: user for user in DEMO_USERS}

PERIODS = ("all-time", "weekly", "monthly")


def display_name_for(user_id: str, current_user_id: str) -> str:
    if user_id == current_user_id or user_id == DEFAULT_USER_ID:
        return "You"
    profile = DEMO_PROFILES.get(user_id)
    if profile:
        return profile["displayName"]
    return re.sub(r"\b\w", lambda m: m.group().upper(), user_id.replace("_", " "))


class LeaderboardService:
    """Ranks every stored user by points.

    ``period`` is echoed back; points are not bucketed by period, so every
    period ranks lifetime points.
    """

    def __init__(self, progress_service: ProgressService, seed_demo_users: bool = True):
        self.progress_service = progress_service
        self.seed_demo_users = seed_demo_users

    def seed(self) -> None:
        # Only seed demo users that do not exist yet
        now = self.progress_service.now().isoformat()
        for user in DEMO_USERS:
            if self.progress_service.exists(user["userId"]):
                continue
            self.progress_service.save(UserProgress(
                userId=user["userId"],
                points=user["points"],
                streak=user["streak"],
                lastActivity=now,
                achievements=list(user["achievements"]),
                stats=UserStats(**user["stats"]),
            ))

    def _entry(self, progress: UserProgress, current_user_id: str) -> Dict[str, Any]:
        profile = DEMO_PROFILES.get(progress.userId, {})
        try:
            last_active = parse_datetime(progress.lastActivity).date().isoformat()
        except ValueError:
            last_active = "Never"

        return {
            "userId": progress.userId,
            "displayName": display_name_for(progress.userId, current_user_id),
            "avatar": profile.get("avatar", "👤"),
            "clinic": profile.get("clinic", "Not set"),
            "points": progress.points,
            "streak": progress.streak,
            "achievements": len(progress.achievements),
            "tier": tier_for_points(progress.points).name,
            "stats": progress.stats.model_dump(),
            "isCurrentUser": progress.userId == current_user_id,
            "lastActive": last_active,
        }

    def build(self, current_user_id: str = DEFAULT_USER_ID, limit: int = 20, period: str = "all-time") -> Dict[str, Any]:
        if period not in PERIODS:
            raise RequestValidationFailed("period must be one of: all-time, weekly, monthly", error="Invalid period")

        if self.seed_demo_users:
            self.seed()

        entries = [self._entry(p, current_user_id) for p in self.progress_service.all_progress()]
        # Highest points first; ties keep a stable order by user id
        entries.sort(key=lambda e: e["userId"])
        entries.sort(key=lambda e: e["points"], reverse=True)
        for rank, entry in enumerate(entries, start=1):
            entry["rank"] = rank
            entry["change"] = 0

        current = next((e for e in entries if e["userId"] == current_user_id), None)
        if current is None:
            current = {
                "userId": current_user_id,
                "displayName": "You",
                "avatar": "👤",
                "clinic": "Not set",
                "points": 0,
                "streak": 0,
                "achievements": 0,
                "tier": tier_for_points(0).name,
                "rank": len(entries) + 1,
                "isCurrentUser": True,
                "lastActive": "Never",
            }

        total = len(entries)
        return {
            "leaderboard": entries[:limit],
            "currentUser": current,
            "stats": {
                "totalUsers": total,
                "averagePoints": round(sum(e["points"] for e in entries) / total) if total else 0,
                "topScore": entries[0]["points"] if entries else 0,
                "yourRank": current["rank"],
                "period": period,
            },
        }
