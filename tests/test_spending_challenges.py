"""Tests for spending challenges and bundle recommendations."""
from datetime import date

import pytest

from clinic_booking.errors import NotFoundError, RequestValidationFailed
from clinic_booking.services.progress import ProgressService
from clinic_booking.services.spending_challenges import (
    SPENDING_BUNDLES,
    SpendingChallengeService,
    active_challenges,
    bundle_score,
    challenge_progress,
    find_challenge,
    next_spending_milestone,
    recommend_challenge,
    urgency_level,
)

TODAY = date(2025, 3, 10)


@pytest.fixture
def progress_service(store, perth, clock):
    return ProgressService(store, perth, clock=clock)


@pytest.fixture
def spending(progress_service):
    return SpendingChallengeService(progress_service)


def bundle(bundle_id):
    return next(b for b in SPENDING_BUNDLES if b["id"] == bundle_id)


class TestCatalogue:

    def test_expired_challenges_are_not_running(self):
        assert [c["id"] for c in active_challenges(TODAY)] == [
            "routine_builder_basic",
            "glow_up_quarterly",
            "luxury_experience",
        ]

    def test_end_date_is_inclusive(self):
        running = active_challenges(date(2024, 12, 31))

        assert "acne_solution_bundle" in [c["id"] for c in running]

    def test_spend_progress(self):
        assert challenge_progress(find_challenge("routine_builder_basic"), 60) == 0.5
        assert challenge_progress(find_challenge("routine_builder_basic"), 500) == 1.0

    def test_product_challenge_weighs_products(self):
        progress = challenge_progress(find_challenge("acne_solution_bundle"), 75, ["salicylic-cleanser", "other"])

        assert progress == pytest.approx(0.25 + 0.5 / 3)

    @pytest.mark.parametrize("spend,expected", [
        (0, "routine_builder_basic"),
        (150, "glow_up_quarterly"),
        (400, "luxury_experience"),
    ])
    def test_recommendation_by_spend(self, spend, expected):
        assert recommend_challenge(spend, active_challenges(TODAY))["id"] == expected

    def test_urgency_from_participants(self):
        assert urgency_level(find_challenge("luxury_experience"), TODAY) == "medium"
        assert urgency_level(find_challenge("routine_builder_basic"), TODAY) == "low"

    def test_bundle_scores_for_new_customer(self):
        assert bundle_score(bundle("weekend_glow_flash"), "glow_starter", 0) == 66
        assert bundle_score(bundle("hydration_rescue"), "glow_starter", 0) == 61
        assert bundle_score(bundle("complete_routine_starter"), "glow_starter", 0) == 60

    def test_next_milestone(self):
        assert next_spending_milestone(120)["amount"] == 250
        assert next_spending_milestone(1000) is None


class TestOverview:

    def test_active_view(self, spending):
        result = spending.overview("u1", "active")

        challenges = result["data"]["challenges"]
        assert len(challenges) == 3
        assert challenges[1]["spotsRemaining"] == 33
        assert challenges[0]["isJoined"] is False
        assert result["meta"]["userTier"] == "glow_starter"

    def test_recommended_view(self, spending):
        recommended = spending.overview("u1", "recommended")["data"]["recommendedChallenge"]

        assert recommended["id"] == "routine_builder_basic"
        assert recommended["personalizedReason"] == "Perfect for beginners - build your first complete routine!"

    def test_bundles_are_ranked(self, spending):
        bundles = spending.overview("u1", "bundles")["data"]["bundles"]

        assert [b["id"] for b in bundles][:3] == ["weekend_glow_flash", "hydration_rescue", "complete_routine_starter"]
        assert bundles[0]["associatedChallenge"] is None
        assert bundles[1]["isRecommended"] is True
        assert bundles[2]["isRecommended"] is False
        assert bundles[2]["associatedChallenge"]["id"] == "routine_builder_basic"
        assert bundles[0]["recommendationReason"] == "Investment piece for serious results • Limited time offer"

    def test_invalid_view(self, spending):
        with pytest.raises(RequestValidationFailed):
            spending.overview("u1", "completed")


class TestActions:

    def test_join_once(self, spending):
        first = spending.apply("u1", "routine_builder_basic", "join_challenge")
        second = spending.apply("u1", "routine_builder_basic", "join_challenge")

        assert first["message"] == "Successfully joined challenge!"
        assert second["message"] == "Already participating in this challenge"
        assert len(second["spendingChallenges"]["active"]) == 1

    def test_join_expired_challenge(self, spending):
        with pytest.raises(NotFoundError):
            spending.apply("u1", "flash_weekend_boost", "join_challenge")

    def test_completion_awards_rewards_once(self, spending, progress_service):
        spending.apply("u1", "routine_builder_basic", "join_challenge")
        partial = spending.apply("u1", "routine_builder_basic", "update_progress", {"amount": 100})
        done = spending.apply("u1", "routine_builder_basic", "update_progress", {
            "amount": 30, "productId": "daily-moisturizer", "productName": "Daily Hydrating Moisturizer",
            "productPrice": 30,
        })
        rejoin = spending.apply("u1", "routine_builder_basic", "join_challenge")

        assert partial["challengeCompleted"] is False
        assert done["challengeCompleted"] is True
        assert done["totalPoints"] == 700
        assert done["spendingChallenges"]["completed"][0]["finalSpend"] == 130
        assert rejoin["message"] == "Challenge already completed"
        assert progress_service.load("u1").points == 700
        assert progress_service.load("u1").spendingChallenges.active == []

    def test_progress_requires_joining(self, spending):
        with pytest.raises(NotFoundError):
            spending.apply("u1", "routine_builder_basic", "update_progress", {"amount": 50})

    @pytest.mark.parametrize("amount", [None, 0, -20, "50"])
    def test_invalid_amount(self, spending, amount):
        spending.apply("u1", "routine_builder_basic", "join_challenge")

        with pytest.raises(RequestValidationFailed):
            spending.apply("u1", "routine_builder_basic", "update_progress", {"amount": amount})

    def test_abandon(self, spending):
        spending.apply("u1", "glow_up_quarterly", "join_challenge")

        result = spending.apply("u1", "glow_up_quarterly", "abandon_challenge")

        assert result["spendingChallenges"]["active"] == []

    def test_unknown_action(self, spending):
        with pytest.raises(RequestValidationFailed):
            spending.apply("u1", "glow_up_quarterly", "share")


class TestSpendingChallengesEndpoint:

    def test_get_defaults_to_active(self, client):
        response = client.get("/api/spending-challenges", params={"userId": "u1"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert len(body["data"]["challenges"]) == 3
        assert body["meta"]["userId"] == "u1"

    def test_invalid_type(self, client):
        response = client.get("/api/spending-challenges", params={"type": "nope"})

        assert response.status_code == 400

    def test_join_and_complete(self, client):
        client.post("/api/spending-challenges", json={
            "userId": "u1", "challengeId": "glow_up_quarterly", "action": "join_challenge",
        })

        response = client.post("/api/spending-challenges", json={
            "userId": "u1", "challengeId": "glow_up_quarterly", "action": "update_progress",
            "data": {"amount": 250},
        })

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["challengeCompleted"] is True
        assert data["totalPoints"] == 1000

        progress = client.get("/api/user/progress", params={"userId": "u1"}).json()["data"]
        assert progress["points"] == 1000
