"""Tests for loyalty tiers, challenges and the leaderboard."""
from datetime import date

import pytest

from clinic_booking.errors import NotFoundError, RequestValidationFailed
from clinic_booking.models.schemas import UserProgress
from clinic_booking.services.challenges import ChallengeService, get_daily_challenges
from clinic_booking.services.leaderboard import DEMO_USERS, LeaderboardService
from clinic_booking.services.loyalty import next_tier_progress, streak_multiplier, tier_for_points
from clinic_booking.services.progress import ProgressService


@pytest.fixture
def progress_service(store, perth, clock):
    return ProgressService(store, perth, clock=clock)


@pytest.fixture
def challenges(progress_service):
    return ChallengeService(progress_service)


class TestLoyalty:

    @pytest.mark.parametrize("points,name", [
        (0, "Glow Starter"),
        (499, "Glow Starter"),
        (500, "Beauty Enthusiast"),
        (1999, "Skincare Guru"),
        (5000, "VIP Goddess"),
    ])
    def test_tier_for_points(self, points, name):
        assert tier_for_points(points).name == name

    def test_next_tier_progress(self):
        assert next_tier_progress(750) == {"nextTier": "Skincare Guru", "pointsNeeded": 250, "percentage": 50.0}
        assert next_tier_progress(2500)["nextTier"] == "MAX_TIER"

    @pytest.mark.parametrize("days,multiplier", [(0, 1.0), (7, 1.2), (14, 1.5), (30, 2.0), (50, 3.0), (100, 5.0)])
    def test_streak_multiplier(self, days, multiplier):
        assert streak_multiplier(days) == multiplier


class TestChallenges:

    def test_daily_rotation(self):
        # Monday
        assert [c.id for c in get_daily_challenges(date(2025, 3, 10))] == [
            "water_intake", "photo_progress", "morning_routine",
        ]
        # Sunday
        assert [c.id for c in get_daily_challenges(date(2025, 3, 9))] == [
            "morning_routine", "evening_routine", "product_learn",
        ]

    def test_list_all(self, challenges):
        data = challenges.list_for_user("u1")

        types = [c["type"] for c in data["challenges"]]
        assert types.count("daily") == 3
        assert types.count("weekly") == 3
        assert types.count("seasonal") == 1
        assert data["currentEvent"]["id"] == "summer_glow"
        assert data["meta"]["currentWeek"] == "2025-W11"

    def test_invalid_type(self, challenges):
        with pytest.raises(RequestValidationFailed):
            challenges.list_for_user("u1", "hourly")

    def test_daily_completion_awarded_once(self, challenges):
        first = challenges.record("u1", "photo_progress", "daily")
        second = challenges.record("u1", "photo_progress", "daily")

        assert first["challengeCompleted"] is True
        assert first["pointsEarned"] == 35
        assert second["pointsEarned"] == 0
        assert second["totalPoints"] == 35

    def test_daily_challenge_not_offered_today(self, challenges):
        with pytest.raises(NotFoundError):
            challenges.record("u1", "evening_routine", "daily")

    def test_weekly_awards_when_target_reached(self, challenges):
        results = [challenges.record("u1", "product_explorer", "weekly") for _ in range(4)]

        assert [r["pointsEarned"] for r in results] == [0, 0, 150, 0]
        listed = challenges.list_for_user("u1", "weekly")["challenges"]
        explorer = next(c for c in listed if c["id"] == "product_explorer")
        assert explorer["isCompleted"] is True
        assert explorer["progress"] == {"current": 4, "target": 3}

    @pytest.mark.parametrize("amount", [0, -1])
    def test_progress_must_be_positive(self, challenges, amount):
        with pytest.raises(RequestValidationFailed):
            challenges.record("u1", "product_explorer", "weekly", amount)

    def test_completed_weekly_cannot_be_rewound_and_reawarded(self, challenges):
        first = challenges.record("u1", "product_explorer", "weekly", 3)
        with pytest.raises(RequestValidationFailed):
            challenges.record("u1", "product_explorer", "weekly", -1)
        again = challenges.record("u1", "product_explorer", "weekly", 1)

        assert first["pointsEarned"] == 150
        assert again["pointsEarned"] == 0
        assert again["totalPoints"] == 150

    def test_seasonal_applies_multiplier(self, challenges):
        result = challenges.record("u1", "spf_champion", "seasonal", amount=7)

        assert result["pointsEarned"] == 600

    def test_invalid_challenge_type(self, challenges):
        with pytest.raises(RequestValidationFailed):
            challenges.record("u1", "spf_champion", "monthly")


class TestLeaderboard:

    def test_seeds_demo_users_and_ranks_by_points(self, progress_service):
        board = LeaderboardService(progress_service).build("u1")

        points = [e["points"] for e in board["leaderboard"]]
        assert points == sorted(points, reverse=True)
        assert board["leaderboard"][0]["userId"] == "sarah_beauty"
        assert board["leaderboard"][0]["rank"] == 1
        assert board["stats"]["totalUsers"] == len(DEMO_USERS)
        # Unknown user gets a placeholder ranked after everyone
        assert board["currentUser"]["rank"] == len(DEMO_USERS) + 1

    def test_current_user_is_ranked(self, progress_service):
        progress_service.save(UserProgress(userId="u1", points=2500, lastActivity="2025-03-10T09:00:00+08:00"))

        board = LeaderboardService(progress_service).build("u1")

        assert board["currentUser"]["rank"] == 2
        assert board["currentUser"]["displayName"] == "You"
        assert board["currentUser"]["isCurrentUser"] is True
        assert board["stats"]["yourRank"] == 2

    def test_ties_are_ordered_by_user_id(self, progress_service):
        for user_id in ("zoe", "amy"):
            progress_service.save(UserProgress(userId=user_id, points=10, lastActivity="2025-03-10T09:00:00+08:00"))

        board = LeaderboardService(progress_service, seed_demo_users=False).build("amy")

        assert [e["userId"] for e in board["leaderboard"]] == ["amy", "zoe"]

    def test_limit(self, progress_service):
        board = LeaderboardService(progress_service).build("u1", limit=3)

        assert len(board["leaderboard"]) == 3
        assert board["stats"]["totalUsers"] == len(DEMO_USERS)

    def test_invalid_period(self, progress_service):
        with pytest.raises(RequestValidationFailed):
            LeaderboardService(progress_service).build("u1", period="yearly")
