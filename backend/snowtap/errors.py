"""
Reward errors.

Every failure of the mining and referral rules is a RewardError; the API
renders all of them through one handler.
"""

from __future__ import annotations


class RewardError(Exception):
    code = "REWARD_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(RewardError):
    code = "NOT_FOUND"


class LevelCapError(RewardError):
    code = "LEVEL_CAP"


class InvalidLevelError(RewardError):
    code = "INVALID_LEVEL"


class UnknownLevelError(RewardError):
    code = "UNKNOWN_LEVEL"


class InvalidClaimError(RewardError):
    code = "INVALID_CLAIM"


class InsufficientScoreError(RewardError):
    """Upgrade denied: carries both scores for diagnostics."""

    code = "INSUFFICIENT_SCORE"

    def __init__(self, user_id: int, level: int, score: int, required_score: int):
        super().__init__(
            f"Insufficient balance for {user_id} to upgrade from {level} to {level + 1}. "
            f"Current score: {score}, Required score: {required_score}"
        )
        self.score = score
        self.required_score = required_score
