"""Health tips bundled with the site."""
from __future__ import annotations

from medihealth.app.models import ALL_CATEGORIES, HealthTip, TipCategory

HEALTH_TIPS: tuple[HealthTip, ...] = (
    HealthTip(
        id=1,
        category=TipCategory.NUTRITION,
        emoji="🥗",
        title="Balanced Eating Habits",
        body=(
            "Incorporate whole grains, lean proteins, and a variety of colourful vegetables "
            "into every meal for sustained energy and long-term wellbeing."
        ),
    ),
    HealthTip(
        id=2,
        category=TipCategory.FITNESS,
        emoji="🏃",
        title="30-Minute Daily Movement",
        body=(
            "Just 30 minutes of moderate exercise daily can reduce heart disease risk by up "
            "to 35%, improve mood, and boost energy levels significantly."
        ),
    ),
    HealthTip(
        id=3,
        category=TipCategory.SLEEP,
        emoji="😴",
        title="Quality Sleep Matters",
        body=(
            "Aim for 7–9 hours of quality sleep each night. Maintain a consistent schedule "
            "and limit blue light exposure before bed for better rest."
        ),
    ),
    HealthTip(
        id=4,
        category=TipCategory.MENTAL_HEALTH,
        emoji="🧘",
        title="Mindfulness & Meditation",
        body=(
            "Practising mindfulness for just 10 minutes a day can reduce stress hormones, "
            "improve focus, and enhance your overall emotional wellbeing."
        ),
    ),
    HealthTip(
        id=5,
        category=TipCategory.HYDRATION,
        emoji="💧",
        title="Stay Hydrated Daily",
        body=(
            "Drink at least 2 litres of water per day. Proper hydration supports digestion, "
            "clear skin, cognitive function, and physical performance."
        ),
    ),
    HealthTip(
        id=6,
        category=TipCategory.PREVENTION,
        emoji="🩺",
        title="Regular Health Check-ups",
        body=(
            "Schedule routine check-ups every 6–12 months. Early detection is the most "
            "effective strategy for preventing and managing health conditions."
        ),
    ),
    HealthTip(
        id=7,
        category=TipCategory.NUTRITION,
        emoji="🍎",
        title="Reduce Processed Sugar",
        body=(
            "Cutting back on processed sugars can lower inflammation, improve dental health, "
            "stabilise energy levels, and reduce the risk of type 2 diabetes."
        ),
    ),
    HealthTip(
        id=8,
        category=TipCategory.FITNESS,
        emoji="🚶",
        title="Walk After Meals",
        body=(
            "A short 10–15 minute walk after eating aids digestion, helps regulate blood "
            "sugar levels, and contributes to your daily movement goals."
        ),
    ),
    HealthTip(
        id=9,
        category=TipCategory.SLEEP,
        emoji="🌙",
        title="Create a Sleep Routine",
        body=(
            "Establish a calming pre-sleep routine: dim the lights, avoid caffeine after 2pm, "
            "and keep your bedroom cool and quiet for optimal rest."
        ),
    ),
    HealthTip(
        id=10,
        category=TipCategory.MENTAL_HEALTH,
        emoji="📝",
        title="Journaling for Wellbeing",
        body=(
            "Writing down thoughts and feelings for just 5 minutes daily can improve mental "
            "clarity, reduce anxiety, and help process emotions constructively."
        ),
    ),
)


def filter_tips(category: str | TipCategory = ALL_CATEGORIES) -> list[HealthTip]:
    """Return the tips for ``category`` in bundled order.

    ``"all"`` passes every tip through. Unknown categories raise ``ValueError``.
    """

    if category == ALL_CATEGORIES:
        return list(HEALTH_TIPS)
    wanted = TipCategory(category)
    return [tip for tip in HEALTH_TIPS if tip.category is wanted]
