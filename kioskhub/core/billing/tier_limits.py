"""Tier concurrency limits supplied by the billing collaborator."""

from __future__ import annotations

from typing import Callable, Mapping, Optional, Protocol

TierLookup = Callable[[str], Optional[str]]


class TierLimitSource(Protocol):
    def kiosk_code_limit(self, role_id: str) -> int:
        ...


class ConfiguredTierLimits:
    """Resolve a role's tier, then its live kiosk code ceiling from a static table."""

    def __init__(
        self,
        limits_by_tier: Mapping[str, int],
        default_tier: str = "FREE",
        tier_lookup: Optional[TierLookup] = None,
    ) -> None:
        self.limits_by_tier = {str(k).upper(): int(v) for k, v in limits_by_tier.items()}
        self.default_tier = default_tier.upper()
        self.tier_lookup = tier_lookup

    def tier_for(self, role_id: str) -> str:
        tier = self.tier_lookup(role_id) if self.tier_lookup else None
        tier = (tier or self.default_tier).upper()
        if tier not in self.limits_by_tier:
            tier = self.default_tier
        return tier

    def kiosk_code_limit(self, role_id: str) -> int:
        return self.limits_by_tier.get(self.tier_for(role_id), 0)

    @classmethod
    def from_config(cls, config: Mapping, tier_lookup: Optional[TierLookup] = None) -> "ConfiguredTierLimits":
        return cls(
            config.get("KIOSK_TIER_CODE_LIMITS") or {},
            default_tier=config.get("KIOSK_DEFAULT_TIER", "FREE"),
            tier_lookup=tier_lookup,
        )


__all__ = ["TierLimitSource", "ConfiguredTierLimits"]
