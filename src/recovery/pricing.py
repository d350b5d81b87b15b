"""
Retrieval cost estimates for archived backups.

Flat per-GB rates, one per restore tier. Request fees and the storage cost
of the temporary restored copy are not included.
"""

from enum import Enum
from typing import Dict, Iterable, Optional

from exceptions import PreconditionError

BYTES_PER_GB = 1024 ** 3

ARCHIVE_STORAGE_CLASSES = frozenset(["GLACIER", "DEEP_ARCHIVE"])


class RestoreTier(Enum):
    """S3 Glacier retrieval tiers, valued as the API expects them."""

    EXPEDITED = "Expedited"
    STANDARD = "Standard"
    BULK = "Bulk"

    @classmethod
    def from_name(cls, name: str) -> "RestoreTier":
        """Parse a tier name case-insensitively."""
        for tier in cls:
            if tier.value.lower() == name.strip().lower():
                return tier
        choices = ", ".join(t.value.lower() for t in cls)
        raise PreconditionError(f"Unknown restore tier '{name}' (expected one of: {choices})")


class RestoreCostEstimator:
    """Estimate retrieval cost and latency per restore tier."""

    # USD per GB retrieved
    PRICING = {
        RestoreTier.EXPEDITED: 0.10,
        RestoreTier.STANDARD: 0.02,
        RestoreTier.BULK: 0.0025,
    }

    RETRIEVAL_TIME = {
        "GLACIER": {
            RestoreTier.EXPEDITED: "1-5 minutes",
            RestoreTier.STANDARD: "3-5 hours",
            RestoreTier.BULK: "5-12 hours",
        },
        "DEEP_ARCHIVE": {
            RestoreTier.STANDARD: "within 12 hours",
            RestoreTier.BULK: "within 48 hours",
        },
    }

    @staticmethod
    def size_in_gb(size_bytes: int) -> float:
        return size_bytes / BYTES_PER_GB

    def estimate_cost(self, size_bytes: int, tier: RestoreTier) -> float:
        """Cost of retrieving ``size_bytes`` at ``tier`` (size_GB * rate)."""
        return self.size_in_gb(size_bytes) * self.PRICING[tier]

    def estimate_all_tiers(self, size_bytes: int) -> Dict[str, float]:
        return {tier.value: self.estimate_cost(size_bytes, tier) for tier in RestoreTier}

    def is_supported(self, storage_class: str, tier: RestoreTier) -> bool:
        """Check whether a tier can restore objects of a storage class."""
        times = self.RETRIEVAL_TIME.get(storage_class)
        return times is None or tier in times

    def retrieval_time(self, storage_class: str, tier: RestoreTier) -> Optional[str]:
        return self.RETRIEVAL_TIME.get(storage_class, {}).get(tier)

    def check_supported(self, storage_classes: Iterable[str], tier: RestoreTier) -> None:
        """Raise if any storage class cannot be restored at ``tier``."""
        unsupported = sorted(
            {sc for sc in storage_classes if not self.is_supported(sc, tier)}
        )
        if unsupported:
            raise PreconditionError(
                f"{tier.value} retrieval is not available for storage class "
                + ", ".join(unsupported)
            )


def estimate_cost(size_bytes: int, tier: RestoreTier) -> float:
    """Module-level shortcut for RestoreCostEstimator().estimate_cost."""
    return RestoreCostEstimator().estimate_cost(size_bytes, tier)
