"""
Access policy — the named knobs that shape access evaluation.

Two behaviours historically varied between releases and are therefore explicit,
named policies rather than implicit defaults:

- ActiveStatusPolicy: whether an ``active`` paid subscription is trusted as-is
  (the billing webhook moves it away from active on payment failure) or
  whether a local grace window past ``next_billing_date`` is computed.
- StoreEntitlementPolicy: how in-app purchase entitlements combine with
  backend-billed subscriptions.

The production values live in config/access_policy.yml and are loaded by
``agenda_access.entitlements.loader``.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Mapping

from agenda_access.entitlements.models import PlanTier


class ActiveStatusPolicy(str, Enum):
    TRUST_UPSTREAM = "trust_upstream"
    LOCAL_GRACE = "local_grace"


class StoreEntitlementPolicy(str, Enum):
    # Backend records win; store receipts and the premium flag are only
    # consulted when no backend record is valid.
    BACKEND_FIRST = "backend_first"
    # Store sources are ignored entirely.
    DISABLED = "disabled"


DEFAULT_TRIAL_DURATION_DAYS = 7
DEFAULT_PAID_GRACE_PERIOD_DAYS = 5

# Legacy plan row ids from the billing database.
DEFAULT_PLAN_IDENTIFIERS: Dict[str, PlanTier] = {
    "357d1216-1796-40ed-9098-bb7f5cd1a907": PlanTier.PREMIUM,
    "10312af4-d757-4400-b7c0-f058ac9083d0": PlanTier.PRO,
    "40864483-0418-4713-8df3-31a003b4d15b": PlanTier.BASIC,
}

DEFAULT_STORE_PRODUCTS: Dict[str, PlanTier] = {
    "com.agendahof.basic": PlanTier.BASIC,
    "com.agendahof.pro": PlanTier.PRO,
    "com.agendahof.premium": PlanTier.PREMIUM,
}


@dataclass(frozen=True)
class AccessPolicy:
    """Immutable snapshot of the access policy configuration."""

    trial_duration_days: int = DEFAULT_TRIAL_DURATION_DAYS
    active_status_policy: ActiveStatusPolicy = ActiveStatusPolicy.TRUST_UPSTREAM
    paid_grace_period_days: int = DEFAULT_PAID_GRACE_PERIOD_DAYS
    store_entitlement_policy: StoreEntitlementPolicy = StoreEntitlementPolicy.BACKEND_FIRST
    staff_inherits_trial: bool = True
    plan_identifiers: Mapping[str, PlanTier] = field(
        default_factory=lambda: dict(DEFAULT_PLAN_IDENTIFIERS)
    )
    store_products: Mapping[str, PlanTier] = field(
        default_factory=lambda: dict(DEFAULT_STORE_PRODUCTS)
    )

    def __post_init__(self):
        if self.trial_duration_days < 0:
            raise ValueError("trial_duration_days must be >= 0")
        if self.paid_grace_period_days < 0:
            raise ValueError("paid_grace_period_days must be >= 0")

    @property
    def uses_store_entitlements(self) -> bool:
        return self.store_entitlement_policy == StoreEntitlementPolicy.BACKEND_FIRST

    def is_known_product(self, product_id: str) -> bool:
        return product_id in self.store_products
