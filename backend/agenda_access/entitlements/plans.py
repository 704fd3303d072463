"""
Plan taxonomy — maps raw identifiers onto PlanTier.

Backend plan identifiers are free-form strings. Resolution order:
    1. 100% discount                       → courtesy
    2. Exact match in the identifier table → mapped tier
    3. Case-insensitive substring scan     → premium / pro / basic
    4. Anything else                       → basic (logged for audit)
"""

import logging
from typing import Mapping, Optional, Tuple

from agenda_access.entitlements.models import EntitlementRecord, PlanTier
from agenda_access.entitlements.policy import (
    DEFAULT_PLAN_IDENTIFIERS,
    DEFAULT_STORE_PRODUCTS,
)

logger = logging.getLogger(__name__)

# Order matters: "premium" must be tested before "pro".
_SUBSTRING_TIERS: Tuple[Tuple[str, PlanTier], ...] = (
    ("premium", PlanTier.PREMIUM),
    ("pro", PlanTier.PRO),
    ("basic", PlanTier.BASIC),
)

FALLBACK_TIER = PlanTier.BASIC


def tier_from_plan_identifier(
    plan_id: Optional[str],
    identifiers: Optional[Mapping[str, PlanTier]] = None,
) -> PlanTier:
    """Infer a paid tier from a backend plan identifier."""
    table = DEFAULT_PLAN_IDENTIFIERS if identifiers is None else identifiers

    if plan_id:
        mapped = table.get(plan_id)
        if mapped is not None:
            return mapped

        lowered = plan_id.lower()
        for needle, tier in _SUBSTRING_TIERS:
            if needle in lowered:
                return tier

    logger.warning("Unrecognized plan identifier, defaulting tier", extra={
        "event": "unrecognized_plan_identifier",
        "plan_id": plan_id,
        "fallback_tier": FALLBACK_TIER.value,
    })
    return FALLBACK_TIER


def tier_for_record(
    record: EntitlementRecord,
    identifiers: Optional[Mapping[str, PlanTier]] = None,
) -> PlanTier:
    """Effective tier of a subscription record."""
    if record.is_courtesy:
        return PlanTier.COURTESY
    return tier_from_plan_identifier(record.plan_id, identifiers)


def tier_for_store_product(
    product_id: str,
    products: Optional[Mapping[str, PlanTier]] = None,
) -> PlanTier:
    """Tier of a store product id; unknown products grant nothing."""
    table = DEFAULT_STORE_PRODUCTS if products is None else products
    return table.get(product_id, PlanTier.NONE)
