# User rewards progress: points, streaks, daily tasks and achievements
import logging
import math
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Any, Callable, Dict, List, Optional

from clinic_booking.errors import RequestValidationFailed
from clinic_booking.models.schemas import UserProgress
from clinic_booking.services.loyalty import next_tier_progress, streak_multiplier, tier_for_points
from clinic_booking.services.store import KeyValueStore
from clinic_booking.utils.timezones import parse_datetime

# Configure logging
logger = logging.getLogger(__name__)

DAILY_TASKS = ("morningCleanse", "vitaminC", "eveningRoutine")

TASK_POINTS = 25
STREAK_BONUS_POINTS = 50
APPOINTMENT_POINTS = 100
PROFILE_POINTS = 50
PURCHASE_POINTS_RATE = 0.1

DEFAULT_USER_ID = "demo-user"
PROGRESS_PREFIX = "progress"


class ProgressService:
    """Reads and updates rewards progress held in a key-value store.

    Dates are clinic-local calendar days. Updates are read-modify-write with
    no locking; concurrent updates for the same user can overwrite each
    other.
    """

    def __init__(
        self,
        store: KeyValueStore,
        local_tz: tzinfo,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.local_tz = local_tz
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def now(self) -> datetime:
        return self.clock()

    def today(self) -> date:
        return self.now().astimezone(self.local_tz).date()

    def _key(self, user_id: str) -> str:
        return self.store.get_key(PROGRESS_PREFIX, user_id)

    def default_progress(self, user_id: str) -> UserProgress:
        return UserProgress(userId=user_id, lastActivity=self.now().isoformat())

    def load(self, user_id: str) -> UserProgress:
        data = self.store.get(self._key(user_id))
        if data is None:
            return self.default_progress(user_id)
        return UserProgress.model_validate(data)

    def exists(self, user_id: str) -> bool:
        return self.store.get(self._key(user_id)) is not None

    def save(self, progress: UserProgress) -> None:
        self.store.set(self._key(progress.userId), progress.model_dump())

    def all_progress(self) -> List[UserProgress]:
        return [UserProgress.model_validate(data) for _, data in self.store.items(self.store.key_prefix(PROGRESS_PREFIX))]

    def _last_activity_day(self, progress: UserProgress) -> Optional[date]:
        try:
            return parse_datetime(progress.lastActivity).astimezone(self.local_tz).date()
        except ValueError:
            return None

    def get(self, user_id: str) -> Dict[str, Any]:
        progress = self.load(user_id)

        # A streak survives only if the user was active today or yesterday
        today = self.today()
        last_day = self._last_activity_day(progress)
        if last_day not in (today, today - timedelta(days=1)) and progress.streak:
            logger.info(f"Streak broken for {user_id} (last active {last_day})")
            progress.streak = 0
        self.save(progress)

        tasks = {task: progress.dailyTasks.get(today.isoformat(), {}).get(task, False) for task in DAILY_TASKS}
        completed = sum(1 for done in tasks.values() if done)
        tier = tier_for_points(progress.points)

        return {
            **progress.model_dump(),
            "todayProgress": {
                "completed": completed,
                "total": len(DAILY_TASKS),
                "percentage": round(completed / len(DAILY_TASKS) * 100),
                "tasks": tasks,
            },
            "tier": tier.to_dict(),
            "nextTier": next_tier_progress(progress.points),
            "streakMultiplier": streak_multiplier(progress.streak),
        }

    def apply(self, user_id: str, action: str, data: Optional[Dict[str, Any]] = None) -> UserProgress:
        data = data or {}
        progress = self.load(user_id)
        today = self.today()
        now = self.now().isoformat()

        if action == "complete_task":
            self._complete_task(progress, data.get("task"), today, now)
        elif action == "purchase_made":
            self._purchase_made(progress, data.get("amount"), now)
        elif action == "appointment_booked":
            progress.stats.totalVisits += 1
            progress.points += APPOINTMENT_POINTS
            progress.lastActivity = now
            if progress.stats.totalVisits == 1:
                self._award(progress, "first_visit")
        elif action == "profile_completed":
            if self._award(progress, "profile_complete"):
                progress.points += PROFILE_POINTS
        else:
            raise RequestValidationFailed(f"Unknown action: {action}", error="Invalid action")

        self.save(progress)
        logger.info(f"Progress updated for {user_id}: {action} (points {progress.points}, streak {progress.streak})")
        return progress

    def reset(self, user_id: str) -> UserProgress:
        progress = self.default_progress(user_id)
        self.save(progress)
        return progress

    def _complete_task(self, progress: UserProgress, task: Any, today: date, now: str) -> None:
        if task not in DAILY_TASKS:
            raise RequestValidationFailed(
                f"task must be one of: {', '.join(DAILY_TASKS)}",
                error="Invalid task",
            )

        day_tasks = progress.dailyTasks.setdefault(today.isoformat(), {})
        if day_tasks.get(task):
            return

        day_tasks[task] = True
        progress.points += TASK_POINTS
        progress.lastActivity = now

        if all(day_tasks.get(t) for t in DAILY_TASKS):
            yesterday = progress.dailyTasks.get((today - timedelta(days=1)).isoformat(), {})
            if all(yesterday.get(t) for t in DAILY_TASKS) or progress.streak == 0:
                progress.streak += 1
                progress.points += STREAK_BONUS_POINTS
            else:
                progress.streak = 1

        if progress.points >= 100:
            self._award(progress, "first_100")
        if progress.streak >= 7:
            self._award(progress, "week_warrior")

    def _purchase_made(self, progress: UserProgress, amount: Any, now: str) -> None:
        if isinstance(amount, bool) or not isinstance(amount, (int, float)) or amount < 0:
            raise RequestValidationFailed("amount must be a non-negative number", error="Invalid amount")

        progress.stats.totalOrders += 1
        progress.stats.totalSpent += amount
        progress.points += math.floor(amount * PURCHASE_POINTS_RATE)
        progress.lastActivity = now

        if progress.stats.totalOrders == 1:
            self._award(progress, "first_purchase")
        if progress.stats.totalSpent >= 500:
            self._award(progress, "big_spender")

    @staticmethod
    def _award(progress: UserProgress, achievement: str) -> bool:
        if achievement in progress.achievements:
            return False
        progress.achievements.append(achievement)
        return True
