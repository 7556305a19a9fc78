from __future__ import annotations

DEFAULT_SPORTS: tuple[str, ...] = (
    "soccer",
    "basketball",
    "football",
    "baseball",
    "volleyball",
    "running",
    "cycling",
    "swimming",
    "tennis",
    "golf",
    "boxing",
    "martial-arts",
    "skiing",
    "gymnastics",
    "other",
)

GENDERS: tuple[str, ...] = ("MALE", "FEMALE")

ROLE_ATHLETE = "athlete"
ROLE_GUIDE = "guide"
ROLE_ADMIN = "admin"
ROLES: tuple[str, ...] = (ROLE_ATHLETE, ROLE_GUIDE, ROLE_ADMIN)

# Cosmetic tiers shown next to a username.
RANKS: tuple[str, ...] = ("KING", "QUEEN", "ROOK", "BISHOP", "KNIGHT", "PAWN")
DEFAULT_RANK = "PAWN"
CLASS_LABELS: dict[str, str] = {
    "A": "Elite",
    "B": "Advanced",
    "C": "Intermediate",
    "D": "Beginner",
    "E": "Novice",
}
DEFAULT_CLASS = "E"

NOTIFICATION_TYPES: tuple[str, ...] = (
    "FOLLOW",
    "STAT_UPDATE_REQUEST",
    "STAT_UPDATE_APPROVED",
    "STAT_UPDATE_DENIED",
    "EVALUATION_COMPLETED",
)

GUIDE_STATUSES: tuple[str, ...] = ("pending", "approved", "rejected")
REQUEST_STATUSES: tuple[str, ...] = ("PENDING", "ACCEPTED", "REJECTED", "CANCELLED")

STAT_CATEGORIES: tuple[str, ...] = ("strength", "speed", "stamina")
SCORE_AXES: tuple[str, ...] = ("strength", "power", "speed", "agility", "recovery", "stamina")
