# Spend-based challenges, product bundles and spending milestones
import logging
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from clinic_booking.errors import NotFoundError, RequestValidationFailed
from clinic_booking.models.schemas import (
    ActiveSpendingChallenge,
    CompletedSpendingChallenge,
    SpendingChallengeProgress,
)
from clinic_booking.services.loyalty import tier_for_points
from clinic_booking.services.progress import ProgressService
from clinic_booking.utils.helpers import parse_iso_date

# Configure logging
logger = logging.getLogger(__name__)

VIEWS = ("active", "recommended", "bundles", "user-progress")
ACTIONS = ("join_challenge", "update_progress", "abandon_challenge")

# Bundles scoring above this are flagged as recommended
RECOMMENDED_BUNDLE_SCORE = 60

SPENDING_CHALLENGES: List[Dict[str, Any]] = [
    {
        "id": "routine_builder_basic",
        "title": "Complete Your Routine",
        "description": "Build a complete skincare routine with cleanser, serum, and moisturizer. "
                       "Get bonus points and free travel sizes!",
        "shortDescription": "Cleanser + Serum + Moisturizer",
        "icon": "🧴",
        "type": "routine_builder",
        "category": "starter",
        "requirements": {"minSpend": 120, "categories": ["cleansers", "serums", "moisturizers"], "minQuantity": 3},
        "rewards": {
            "points": 500,
            "bonusPoints": 200,
            "freeProducts": ["travel-cleanser", "travel-serum"],
            "badge": "routine_master",
        },
        "isActive": True,
        "difficulty": "easy",
        "estimatedCompletion": "1-2 weeks",
        "urgencyText": "Popular this week!",
    },
    {
        "id": "glow_up_quarterly",
        "title": "Quarterly Glow Up",
        "description": "Invest in your skin this quarter! Spend $200 in 90 days and unlock VIP benefits "
                       "plus exclusive products.",
        "shortDescription": "Spend $200 in 90 days",
        "icon": "✨",
        "type": "seasonal",
        "category": "skincare",
        "requirements": {"minSpend": 200, "timeLimit": 90},
        "rewards": {
            "points": 1000,
            "tierBoost": {"points": 300, "immediate": True},
            "discount": {"percentage": 20, "maxAmount": 50, "validFor": 30},
            "exclusiveAccess": ["premium-serum-collection"],
        },
        "isActive": True,
        "difficulty": "medium",
        "estimatedCompletion": "2-3 months",
        "maxParticipants": 100,
        "currentParticipants": 67,
    },
    {
        "id": "luxury_experience",
        "title": "Luxury Skincare Experience",
        "description": "Treat yourself to premium products worth $300+. Unlock VIP Goddess tier instantly "
                       "and get personal consultation.",
        "shortDescription": "Premium products $300+",
        "icon": "💎",
        "type": "milestone",
        "category": "luxury",
        "requirements": {"minSpend": 300, "categories": ["premium", "luxury"], "timeLimit": 30},
        "rewards": {
            "points": 1500,
            "tierBoost": {"points": 500, "immediate": True},
            "exclusiveAccess": ["personal-consultation", "vip-events"],
            "badge": "luxury_connoisseur",
        },
        "isActive": True,
        "difficulty": "expert",
        "estimatedCompletion": "1 month",
        "urgencyText": "Only 15 spots left!",
        "maxParticipants": 50,
        "currentParticipants": 35,
    },
    {
        "id": "acne_solution_bundle",
        "title": "Clear Skin Solution",
        "description": "Target acne with our curated collection. Complete the bundle and get 25% off "
                       "your next acne treatment.",
        "shortDescription": "Acne-fighting bundle",
        "icon": "🎯",
        "type": "bundle",
        "category": "skincare",
        "requirements": {
            "minSpend": 150,
            "specificProducts": ["salicylic-cleanser", "niacinamide-serum", "acne-moisturizer"],
            "minQuantity": 3,
        },
        "rewards": {
            "points": 750,
            "discount": {"percentage": 25, "maxAmount": 75, "validFor": 60},
            "freeProducts": ["acne-patches", "spot-treatment"],
        },
        "isActive": True,
        "difficulty": "medium",
        "estimatedCompletion": "2-4 weeks",
        "endDate": "2024-12-31",
    },
    {
        "id": "flash_weekend_boost",
        "title": "Weekend Flash Challenge",
        "description": "This weekend only! Spend $100 and get instant tier boost plus weekend-exclusive products.",
        "shortDescription": "Weekend exclusive - $100",
        "icon": "⚡",
        "type": "time_limited",
        "category": "skincare",
        "requirements": {"minSpend": 100, "timeLimit": 3},
        "rewards": {
            "points": 400,
            "bonusPoints": 300,
            "tierBoost": {"points": 200, "immediate": True},
            "exclusiveAccess": ["weekend-exclusive-kit"],
        },
        "isActive": True,
        "startDate": "2024-08-05",
        "endDate": "2024-08-07",
        "difficulty": "easy",
        "estimatedCompletion": "2-3 days",
        "urgencyText": "Ends Sunday night!",
        "maxParticipants": 200,
        "currentParticipants": 143,
    },
]


def _product(id, name, price, category, rating) -> Dict[str, Any]:
    return {"id": id, "name": name, "price": price, "category": category, "rating": rating}


SPENDING_BUNDLES: List[Dict[str, Any]] = [
    {
        "id": "complete_routine_starter",
        "name": "Complete Routine Starter Kit",
        "description": "Everything you need for healthy, glowing skin. Perfect for beginners starting "
                       "their skincare journey.",
        "category": "routine-building",
        "difficulty": "beginner",
        "completionRate": 87,
        "products": [
            _product("gentle-cleanser", "Gentle Daily Cleanser", 35, "cleanser", 4.8),
            _product("vitamin-c-serum", "Vitamin C Brightening Serum", 45, "serum", 4.9),
            _product("daily-moisturizer", "Daily Hydrating Moisturizer", 40, "moisturizer", 4.7),
            _product("spf-sunscreen", "Daily SPF 50 Sunscreen", 25, "sunscreen", 4.6),
        ],
        "originalPrice": 145,
        "bundlePrice": 119,
        "savings": 26,
        "challengeId": "routine_builder_basic",
        "benefits": ["Complete morning & evening routine", "Gentle for all skin types",
                     "Visible results in 2-4 weeks", "Perfect for beginners"],
        "isPopular": True,
    },
    {
        "id": "anti_aging_powerhouse",
        "name": "Anti-Aging Powerhouse Collection",
        "description": "Advanced anti-aging routine for visible results. Turn back time with clinically "
                       "proven ingredients.",
        "category": "anti-aging",
        "difficulty": "advanced",
        "completionRate": 78,
        "products": [
            _product("retinol-serum", "Advanced Retinol Serum", 85, "serum", 4.9),
            _product("peptide-cream", "Peptide Recovery Cream", 95, "moisturizer", 4.8),
            _product("eye-cream", "Anti-Aging Eye Cream", 55, "eye-care", 4.7),
            _product("face-mask", "Weekly Renewal Mask", 35, "mask", 4.5),
            _product("hyaluronic-serum", "Hyaluronic Acid Serum", 50, "serum", 4.8),
        ],
        "originalPrice": 320,
        "bundlePrice": 270,
        "savings": 50,
        "benefits": ["Reduces fine lines & wrinkles", "Firms and lifts skin",
                     "Intensive hydration", "Professional-grade results"],
        "isLimitedTime": True,
        "timeLeft": 168,
    },
    {
        "id": "acne_solution_complete",
        "name": "Clear Skin Solution Bundle",
        "description": "Target breakouts with our dermatologist-approved acne-fighting collection.",
        "category": "acne",
        "difficulty": "intermediate",
        "completionRate": 82,
        "products": [
            _product("salicylic-cleanser", "Salicylic Acid Cleanser", 28, "cleanser", 4.6),
            _product("niacinamide-serum", "Niacinamide 10% Serum", 35, "serum", 4.8),
            _product("acne-moisturizer", "Oil-Free Acne Moisturizer", 32, "moisturizer", 4.5),
            _product("spot-treatment", "Benzoyl Peroxide Spot Treatment", 18, "treatment", 4.4),
        ],
        "originalPrice": 113,
        "bundlePrice": 89,
        "savings": 24,
        "challengeId": "acne_solution_bundle",
        "benefits": ["Clear existing breakouts", "Prevent future acne",
                     "Minimize pore appearance", "Gentle yet effective"],
        "spotsLeft": 45,
    },
    {
        "id": "hydration_rescue",
        "name": "Hydration Rescue Kit",
        "description": "Intensive moisture therapy for dry, dehydrated skin. Restore your natural glow.",
        "category": "hydration",
        "difficulty": "beginner",
        "completionRate": 91,
        "products": [
            _product("hydrating-cleanser", "Hydrating Cream Cleanser", 30, "cleanser", 4.7),
            _product("hyaluronic-serum", "Hyaluronic Acid Serum", 50, "serum", 4.8),
            _product("moisture-barrier-cream", "Moisture Barrier Repair Cream", 55, "moisturizer", 4.9),
            _product("hydrating-mask", "Overnight Hydrating Mask", 25, "mask", 4.6),
        ],
        "originalPrice": 160,
        "bundlePrice": 129,
        "savings": 31,
        "benefits": ["24-hour hydration", "Plumps fine lines", "Restores skin barrier", "Instant glow"],
        "isPopular": True,
    },
    {
        "id": "luxury_vip_collection",
        "name": "VIP Luxury Collection",
        "description": "Exclusive premium products for the ultimate skincare experience. VIP members only.",
        "category": "luxury",
        "difficulty": "expert",
        "completionRate": 65,
        "products": [
            _product("platinum-serum", "Platinum Peptide Serum", 120, "serum", 4.9),
            _product("diamond-cream", "Diamond Radiance Cream", 150, "moisturizer", 4.8),
            _product("gold-eye-cream", "24K Gold Eye Treatment", 85, "eye-care", 4.7),
            _product("caviar-mask", "Caviar Recovery Mask", 95, "mask", 4.6),
        ],
        "originalPrice": 450,
        "bundlePrice": 360,
        "savings": 90,
        "challengeId": "luxury_experience",
        "benefits": ["Instant visible lift", "Red carpet ready skin",
                     "Professional spa results", "Exclusive ingredients"],
        "isLimitedTime": True,
        "timeLeft": 72,
        "spotsLeft": 12,
    },
    {
        "id": "weekend_glow_flash",
        "name": "Weekend Glow Flash Kit",
        "description": "Quick transformation for instant glow. Perfect for weekend plans and special events.",
        "category": "instant-glow",
        "difficulty": "easy",
        "completionRate": 95,
        "products": [
            _product("glow-serum", "Instant Glow Serum", 42, "serum", 4.7),
            _product("illuminating-moisturizer", "Illuminating Day Cream", 38, "moisturizer", 4.6),
            _product("glow-mask", "15-Minute Glow Mask", 22, "mask", 4.8),
        ],
        "originalPrice": 102,
        "bundlePrice": 79,
        "savings": 23,
        "challengeId": "flash_weekend_boost",
        "benefits": ["Instant radiance", "Perfect for events", "Easy 3-step routine", "Quick visible results"],
        "isLimitedTime": True,
        "timeLeft": 48,
    },
]

SPENDING_MILESTONES: List[Dict[str, Any]] = [
    {"amount": 100, "reward": "200 bonus points"},
    {"amount": 250, "reward": "Beauty Enthusiast tier"},
    {"amount": 500, "reward": "15% discount code"},
    {"amount": 1000, "reward": "VIP Goddess tier + consultation"},
]

# Bundle difficulties that suit each loyalty tier
TIER_DIFFICULTIES: Dict[str, Sequence[str]] = {
    "glow_starter": ("beginner", "easy"),
    "beauty_enthusiast": ("beginner", "intermediate"),
    "skincare_guru": ("intermediate", "advanced"),
    "vip_goddess": ("advanced", "expert", "luxury"),
}

# Categories new users are assumed to know already; others get a discovery bonus
FAMILIAR_CATEGORIES = ("routine-building", "hydration")


def is_running(challenge: Dict[str, Any], today: date) -> bool:
    # Start and end dates are inclusive
    if not challenge.get("isActive"):
        return False

    start = parse_iso_date(challenge.get("startDate") or "")
    if start and today < start:
        return False

    end = parse_iso_date(challenge.get("endDate") or "")
    if end and today > end:
        return False

    limit = challenge.get("maxParticipants")
    if limit and challenge.get("currentParticipants", 0) >= limit:
        return False

    return True


def active_challenges(today: date) -> List[Dict[str, Any]]:
    return [challenge for challenge in SPENDING_CHALLENGES if is_running(challenge, today)]


def find_challenge(challenge_id: str) -> Optional[Dict[str, Any]]:
    return next((c for c in SPENDING_CHALLENGES if c["id"] == challenge_id), None)


def challenge_progress(challenge: Dict[str, Any], spend: float, product_ids: Sequence[str] = ()) -> float:
    """Fraction of a challenge completed, between 0 and 1.

    Spend is the only tracked requirement, except for challenges that name
    specific products: those weigh spend and matched products equally.
    """
    requirements = challenge["requirements"]
    spend_progress = min(spend / requirements["minSpend"], 1.0)

    required = requirements.get("specificProducts")
    if required:
        matched = len(set(product_ids) & set(required))
        return min(spend_progress * 0.5 + matched / len(required) * 0.5, 1.0)

    return spend_progress


def days_remaining(challenge: Dict[str, Any], today: date) -> Optional[int]:
    end = parse_iso_date(challenge.get("endDate") or "")
    if end is None:
        return None
    return max(0, (end - today).days)


def spots_remaining(challenge: Dict[str, Any]) -> Optional[int]:
    if challenge.get("maxParticipants") and challenge.get("currentParticipants"):
        return challenge["maxParticipants"] - challenge["currentParticipants"]
    return None


def urgency_level(challenge: Dict[str, Any], today: date) -> str:
    remaining = days_remaining(challenge, today)
    if remaining is not None:
        if remaining <= 1:
            return "critical"
        if remaining <= 3:
            return "high"
        if remaining <= 7:
            return "medium"

    if challenge.get("maxParticipants") and challenge.get("currentParticipants"):
        full = challenge["currentParticipants"] / challenge["maxParticipants"] * 100
        if full >= 90:
            return "critical"
        if full >= 75:
            return "high"
        if full >= 50:
            return "medium"

    return "low"


def recommend_challenge(spend: float, running: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    # Starter challenges for new spenders, medium ones next, luxury at the top
    if spend < 100:
        matches = [c for c in running if c["category"] == "starter"]
    elif spend < 300:
        matches = [c for c in running if c["difficulty"] == "medium"]
    else:
        matches = [c for c in running if c["category"] == "luxury"]
    return matches[0] if matches else None


def personalized_reason(challenge: Dict[str, Any], spend: float, tier_id: str) -> str:
    if challenge["category"] == "starter" and spend < 100:
        return "Perfect for beginners - build your first complete routine!"
    if challenge["category"] == "luxury" and tier_id == "vip_goddess":
        return "Exclusive VIP challenge - unlock premium benefits!"
    if challenge["type"] == "routine_builder":
        return "Complete your skincare routine with expert-curated products"
    return "Recommended based on your skincare journey"


def _price_ratio(bundle: Dict[str, Any], spend: float) -> float:
    return bundle["bundlePrice"] / max(spend, 50)


def bundle_score(bundle: Dict[str, Any], tier_id: str, spend: float) -> int:
    """Score a bundle out of 100 for a customer.

    Price against past spend, difficulty against tier, completion rate and
    popularity, savings, scarcity, and a bonus for unfamiliar categories.
    """
    score = 0.0

    ratio = _price_ratio(bundle, spend)
    if ratio <= 0.8:
        score += 30
    elif ratio <= 1.2:
        score += 25
    elif ratio <= 1.5:
        score += 15
    else:
        score += 5

    if bundle["difficulty"] in TIER_DIFFICULTIES.get(tier_id, ("beginner",)):
        score += 25
    else:
        score += 10

    score += bundle["completionRate"] / 100 * 15
    if bundle.get("isPopular"):
        score += 5

    savings = bundle["savings"] / bundle["originalPrice"] * 100
    if savings >= 25:
        score += 15
    elif savings >= 15:
        score += 12
    elif savings >= 10:
        score += 8
    else:
        score += 3

    if bundle.get("isLimitedTime"):
        score += 5
    if bundle.get("spotsLeft") and bundle["spotsLeft"] < 20:
        score += 5

    if bundle["category"] not in FAMILIAR_CATEGORIES:
        score += 5

    # Half up, never negative
    return int(score + 0.5)


def bundle_reason(bundle: Dict[str, Any], tier_id: str, spend: float) -> str:
    reasons = []

    ratio = _price_ratio(bundle, spend)
    if ratio <= 0.8:
        reasons.append("Great value for your budget")
    elif ratio > 1.5:
        reasons.append("Investment piece for serious results")

    if tier_id == "glow_starter" and bundle["difficulty"] == "beginner":
        reasons.append("Perfect for skincare beginners")
    elif tier_id == "vip_goddess" and bundle["category"] == "luxury":
        reasons.append("Exclusive VIP collection")

    if bundle["category"] == "routine-building":
        reasons.append("Complete routine solution")
    elif bundle["category"] == "anti-aging":
        reasons.append("Advanced anti-aging technology")

    if bundle.get("isLimitedTime"):
        reasons.append("Limited time offer")
    if bundle.get("spotsLeft") and bundle["spotsLeft"] < 20:
        reasons.append("Almost sold out")
    if bundle.get("isPopular"):
        reasons.append("Customer favorite")
    if bundle["completionRate"] > 85:
        reasons.append("High success rate")

    return " • ".join(reasons[:2]) or "Recommended for you"


def next_spending_milestone(spend: float) -> Optional[Dict[str, Any]]:
    return next((m for m in SPENDING_MILESTONES if m["amount"] > spend), None)


class SpendingChallengeService:
    # Spending challenges on top of the user's rewards progress

    def __init__(self, progress_service: ProgressService):
        self.progress_service = progress_service

    def overview(self, user_id: str, view: str = "active") -> Dict[str, Any]:
        if view not in VIEWS:
            raise RequestValidationFailed(
                f"type must be one of: {', '.join(VIEWS)}",
                error="Invalid spending challenge view",
            )

        progress = self.progress_service.load(user_id)
        today = self.progress_service.today()
        spend = progress.stats.totalSpent
        tier_id = tier_for_points(progress.points).id
        running = active_challenges(today)

        if view == "active":
            data = {"challenges": [self._describe(c, progress.spendingChallenges, spend, today) for c in running]}

        elif view == "recommended":
            recommended = recommend_challenge(spend, running)
            data = {"recommendedChallenge": None}
            if recommended is not None:
                data["recommendedChallenge"] = {
                    **self._describe(recommended, progress.spendingChallenges, spend, today),
                    "personalizedReason": personalized_reason(recommended, spend, tier_id),
                }

        elif view == "bundles":
            bundles = []
            for bundle in SPENDING_BUNDLES:
                score = bundle_score(bundle, tier_id, spend)
                associated = next((c for c in running if c["id"] == bundle.get("challengeId")), None)
                bundles.append({
                    **bundle,
                    "score": score,
                    "recommendationReason": bundle_reason(bundle, tier_id, spend),
                    "isRecommended": score > RECOMMENDED_BUNDLE_SCORE,
                    "associatedChallenge": associated,
                })
            # Stable: equal scores keep catalogue order
            bundles.sort(key=lambda b: b["score"], reverse=True)
            data = {"bundles": bundles}

        else:
            data = {
                "userProgress": {
                    "activeChallenges": [c.model_dump() for c in progress.spendingChallenges.active],
                    "completedChallenges": [c.model_dump() for c in progress.spendingChallenges.completed],
                    "totalSpent": spend,
                    "currentTier": tier_id,
                    "nextMilestone": next_spending_milestone(spend),
                }
            }

        return {
            "data": data,
            "meta": {
                "userId": user_id,
                "userTier": tier_id,
                "totalSpent": spend,
                "timestamp": self.progress_service.now().isoformat(),
            },
        }

    def _describe(
        self,
        challenge: Dict[str, Any],
        state: SpendingChallengeProgress,
        spend: float,
        today: date,
    ) -> Dict[str, Any]:
        # Joined challenges measure their own spend; others the lifetime total
        joined = _find_active(state, challenge["id"])
        if joined is not None:
            progress = challenge_progress(challenge, joined.currentSpend, [p.get("productId") for p in joined.products])
        else:
            progress = challenge_progress(challenge, spend)

        return {
            **challenge,
            "progress": round(progress, 4),
            "isJoined": joined is not None,
            "timeRemaining": days_remaining(challenge, today),
            "spotsRemaining": spots_remaining(challenge),
            "urgency": urgency_level(challenge, today),
        }

    def apply(self, user_id: str, challenge_id: str, action: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Join, record spend on, or leave a spending challenge.

        Rewards are added to the user's points when recorded spend first
        reaches the challenge's minimum; a completed challenge cannot be
        joined again.
        """
        if action not in ACTIONS:
            raise RequestValidationFailed(
                f"action must be one of: {', '.join(ACTIONS)}",
                error="Invalid action",
            )

        data = data or {}
        progress = self.progress_service.load(user_id)
        state = progress.spendingChallenges
        now = self.progress_service.now().isoformat()
        result: Dict[str, Any] = {"challengeCompleted": False, "rewardsEarned": None}

        if action == "join_challenge":
            challenge = find_challenge(challenge_id)
            if challenge is None or not is_running(challenge, self.progress_service.today()):
                raise NotFoundError(f"Spending challenge {challenge_id} is not running")

            if _find_active(state, challenge_id) is not None:
                result["message"] = "Already participating in this challenge"
            elif any(c.challengeId == challenge_id for c in state.completed):
                result["message"] = "Challenge already completed"
            else:
                state.active.append(ActiveSpendingChallenge(challengeId=challenge_id, startedAt=now))
                result["message"] = "Successfully joined challenge!"
                logger.info(f"{user_id} joined spending challenge {challenge_id}")

        elif action == "update_progress":
            entry = _find_active(state, challenge_id)
            if entry is None:
                raise NotFoundError(f"Not participating in spending challenge {challenge_id}")

            amount = data.get("amount")
            if isinstance(amount, bool) or not isinstance(amount, (int, float)) or amount <= 0:
                raise RequestValidationFailed("amount must be a positive number", error="Invalid amount")

            entry.currentSpend += amount
            if data.get("productId"):
                entry.products.append({
                    "productId": data["productId"],
                    "name": data.get("productName"),
                    "price": data.get("productPrice"),
                    "purchasedAt": now,
                })
            result["message"] = "Progress updated"

            challenge = find_challenge(challenge_id)
            if challenge is not None and entry.currentSpend >= challenge["requirements"]["minSpend"]:
                rewards = challenge["rewards"]
                state.active.remove(entry)
                state.completed.append(CompletedSpendingChallenge(
                    challengeId=challenge_id,
                    completedAt=now,
                    finalSpend=entry.currentSpend,
                    rewardsEarned=rewards,
                ))
                progress.points += rewards["points"] + rewards.get("bonusPoints", 0)
                progress.lastActivity = now
                result.update({
                    "challengeCompleted": True,
                    "rewardsEarned": rewards,
                    "message": f"Challenge completed! You earned {rewards['points']} points!",
                })
                logger.info(f"{user_id} completed spending challenge {challenge_id}")

        else:
            state.active = [c for c in state.active if c.challengeId != challenge_id]
            result["message"] = "Left challenge successfully"

        self.progress_service.save(progress)

        return {
            **result,
            "totalPoints": progress.points,
            "spendingChallenges": state.model_dump(),
        }


def _find_active(state: SpendingChallengeProgress, challenge_id: str) -> Optional[ActiveSpendingChallenge]:
    return next((c for c in state.active if c.challengeId == challenge_id), None)
