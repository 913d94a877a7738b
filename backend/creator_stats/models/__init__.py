from creator_stats.models.profile import UserProfile
from creator_stats.models.reward import AwardedReward

__all__ = [
    "UserProfile",
    "AwardedReward",
]
