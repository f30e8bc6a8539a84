# Loyalty tiers and streak bonuses
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class LoyaltyTier:
    id: str
    name: str
    level: int
    min_points: int
    discount_percentage: int
    free_shipping: bool
    birthday_bonus: int
    benefits: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "level": self.level,
            "minPoints": self.min_points,
            "discountPercentage": self.discount_percentage,
            "freeShipping": self.free_shipping,
            "birthdayBonus": self.birthday_bonus,
            "benefits": list(self.benefits),
        }


TIERS: Tuple[LoyaltyTier, ...] = (
    LoyaltyTier(
        id="glow_starter",
        name="Glow Starter",
        level=1,
        min_points=0,
        discount_percentage=0,
        free_shipping=False,
        birthday_bonus=50,
        benefits=("Welcome bonus", "Birthday month special offer", "First treatment discount"),
    ),
    LoyaltyTier(
        id="beauty_enthusiast",
        name="Beauty Enthusiast",
        level=2,
        min_points=500,
        discount_percentage=5,
        free_shipping=False,
        birthday_bonus=100,
        benefits=("5% discount", "Priority booking", "Quarterly skin analysis"),
    ),
    LoyaltyTier(
        id="skincare_guru",
        name="Skincare Guru",
        level=3,
        min_points=1000,
        discount_percentage=10,
        free_shipping=True,
        birthday_bonus=200,
        benefits=("10% discount", "Free shipping", "Monthly skin consultation", "Exclusive product previews"),
    ),
    LoyaltyTier(
        id="vip_goddess",
        name="VIP Goddess",
        level=4,
        min_points=2000,
        discount_percentage=15,
        free_shipping=True,
        birthday_bonus=500,
        benefits=("15% discount", "VIP events", "Personal skincare specialist", "Complimentary monthly facial"),
    ),
)


def tier_for_points(points: int) -> LoyaltyTier:
    current = TIERS[0]
    for tier in TIERS:
        if points >= tier.min_points:
            current = tier
    return current


def next_tier(points: int) -> Optional[LoyaltyTier]:
    for tier in TIERS:
        if tier.min_points > points:
            return tier
    return None


def next_tier_progress(points: int) -> Dict[str, Any]:
    upcoming = next_tier(points)
    if upcoming is None:
        return {"nextTier": "MAX_TIER", "pointsNeeded": 0, "percentage": 100.0}

    current = tier_for_points(points)
    span = upcoming.min_points - current.min_points
    return {
        "nextTier": upcoming.name,
        "pointsNeeded": upcoming.min_points - points,
        "percentage": round((points - current.min_points) / span * 100, 1),
    }


def streak_multiplier(streak_days: int) -> float:
    if streak_days >= 100:
        return 5.0
    if streak_days >= 50:
        return 3.0
    if streak_days >= 30:
        return 2.0
    if streak_days >= 14:
        return 1.5
    if streak_days >= 7:
        return 1.2
    return 1.0
