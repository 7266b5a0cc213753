"""Trust-gated moderation routing and privileges."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from hyperlocal.core.settings import settings


class TrustTier(str, Enum):
    NEWCOMER = "newcomer"
    NEIGHBOR = "neighbor"
    ACTIVE_NEIGHBOR = "active_neighbor"
    TRUSTED_NEIGHBOR = "trusted_neighbor"
    COMMUNITY_PILLAR = "community_pillar"
    NEIGHBORHOOD_GUARDIAN = "neighborhood_guardian"


# Lower score bound of each tier, highest first.
TIER_THRESHOLDS: tuple[tuple[int, TrustTier], ...] = (
    (400, TrustTier.NEIGHBORHOOD_GUARDIAN),
    (200, TrustTier.COMMUNITY_PILLAR),
    (100, TrustTier.TRUSTED_NEIGHBOR),
    (50, TrustTier.ACTIVE_NEIGHBOR),
    (25, TrustTier.NEIGHBOR),
)


@dataclass(frozen=True)
class ModerationDecision:
    auto_approve: bool


class TrustGate:
    """Pure functions of a user's current trust score."""

    def __init__(
        self,
        moderation_threshold: int | None = None,
        confirm_extension_threshold: int | None = None,
    ) -> None:
        self.moderation_threshold = (
            settings.moderation_trust_threshold
            if moderation_threshold is None
            else moderation_threshold
        )
        self.confirm_extension_threshold = (
            settings.confirm_extension_trust_threshold
            if confirm_extension_threshold is None
            else confirm_extension_threshold
        )

    def moderation_decision(self, trust_score: int) -> ModerationDecision:
        return ModerationDecision(auto_approve=trust_score >= self.moderation_threshold)

    def can_extend_via_confirm(self, trust_score: int) -> bool:
        return trust_score >= self.confirm_extension_threshold

    @staticmethod
    def tier_for_score(trust_score: int) -> TrustTier:
        for lower_bound, tier in TIER_THRESHOLDS:
            if trust_score >= lower_bound:
                return tier
        return TrustTier.NEWCOMER
