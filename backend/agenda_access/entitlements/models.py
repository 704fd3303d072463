"""
Entitlement models — canonical types for the access evaluation engine.

Provides:
- SubscriptionStatus / PlanTier / EntitlementSource / PrincipalRole enums
- EntitlementRecord: one backend-billed subscription row, as seen by the core
- StoreReceipt: one store purchase receipt
- Principal / AccountInfo: who is asking, and the account facts trial needs
- AccessState: the immutable result of an access evaluation

All value objects are frozen dataclasses. They are built from SQLAlchemy rows
via ``to_domain()`` on the model classes and never mutated afterwards.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


# ---------------------------------------------------------------------------
# Canonical enums: single source of truth, import from here
# ---------------------------------------------------------------------------

class SubscriptionStatus(str, Enum):
    """Status of a backend-billed subscription row."""
    ACTIVE = "active"
    PENDING_CANCELLATION = "pending_cancellation"
    CANCELLED = "cancelled"
    PAST_DUE = "past_due"
    EXPIRED = "expired"


class PlanTier(str, Enum):
    """Plan tiers. Only basic/pro/premium carry a capability level."""
    BASIC = "basic"
    PRO = "pro"
    PREMIUM = "premium"
    COURTESY = "courtesy"
    TRIAL = "trial"
    NONE = "none"

    @property
    def tier_level(self) -> int:
        return _TIER_LEVELS[self]

    @property
    def display_name(self) -> str:
        return _TIER_DISPLAY_NAMES[self]


_TIER_LEVELS: Dict[PlanTier, int] = {
    PlanTier.PREMIUM: 3,
    PlanTier.PRO: 2,
    PlanTier.BASIC: 1,
    PlanTier.COURTESY: 0,
    PlanTier.TRIAL: 0,
    PlanTier.NONE: 0,
}

_TIER_DISPLAY_NAMES: Dict[PlanTier, str] = {
    PlanTier.BASIC: "Basic",
    PlanTier.PRO: "Pro",
    PlanTier.PREMIUM: "Premium",
    PlanTier.COURTESY: "Courtesy",
    PlanTier.TRIAL: "Trial",
    PlanTier.NONE: "No plan",
}


class EntitlementSource(str, Enum):
    """Where an active entitlement came from."""
    BACKEND = "backend"  # billed by the web billing system
    STORE = "store"      # in-app purchase
    NONE = "none"


class PrincipalRole(str, Enum):
    OWNER = "owner"
    STAFF = "staff"


COURTESY_DISCOUNT_PERCENTAGE = 100


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


# ---------------------------------------------------------------------------
# Entitlement source records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class EntitlementRecord:
    """
    A backend-billed subscription row.

    Created and updated exclusively by the external billing system; read-only
    to the access engine.
    """
    id: str
    user_id: str
    status: SubscriptionStatus
    created_at: datetime
    plan_id: Optional[str] = None
    discount_percentage: Optional[int] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    next_billing_date: Optional[datetime] = None

    def __post_init__(self):
        discount = self.discount_percentage
        if discount is not None and not 0 <= discount <= 100:
            raise ValueError(
                f"discount_percentage must be within 0..100, got {discount}"
            )

    @property
    def is_courtesy(self) -> bool:
        """A 100% discount marks a fully comped grant, whatever the plan."""
        return self.discount_percentage == COURTESY_DISCOUNT_PERCENTAGE

    @property
    def effective_discount(self) -> int:
        return self.discount_percentage or 0


@dataclass(frozen=True)
class StoreReceipt:
    """An in-app purchase receipt recorded by the receipt webhook."""
    transaction_id: str
    product_id: str
    purchase_date: datetime
    original_transaction_id: Optional[str] = None
    expiration_date: Optional[datetime] = None
    status: str = "active"

    def is_current(self, now: datetime) -> bool:
        if self.status != "active":
            return False
        expiration = ensure_utc(self.expiration_date)
        return expiration is None or expiration > ensure_utc(now)


# ---------------------------------------------------------------------------
# Principal and account facts
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Principal:
    """
    The account whose access is being evaluated.

    Staff principals inherit access from the owner linked by ``clinic_id``.
    """
    id: str
    role: PrincipalRole = PrincipalRole.OWNER
    is_active: bool = True
    clinic_id: Optional[str] = None

    @property
    def is_staff(self) -> bool:
        return self.role == PrincipalRole.STAFF


@dataclass(frozen=True)
class AccountInfo:
    """Account facts used by the trial evaluator and store fallback."""
    user_id: str
    created_at: datetime
    trial_end_metadata: Optional[str] = None
    is_premium: bool = False


# ---------------------------------------------------------------------------
# Evaluation result
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AccessState:
    """
    Immutable result of an access evaluation.

    A new state replaces the old one on every re-evaluation.
    """
    has_active_subscription: bool
    is_in_trial: bool
    is_courtesy: bool
    plan_tier: PlanTier
    expiration_date: Optional[datetime]
    source: EntitlementSource

    @property
    def has_access(self) -> bool:
        return self.has_active_subscription or self.is_in_trial

    @classmethod
    def no_access(cls) -> "AccessState":
        return cls(
            has_active_subscription=False,
            is_in_trial=False,
            is_courtesy=False,
            plan_tier=PlanTier.NONE,
            expiration_date=None,
            source=EntitlementSource.NONE,
        )

    @classmethod
    def trial(cls, until: datetime) -> "AccessState":
        return cls(
            has_active_subscription=False,
            is_in_trial=True,
            is_courtesy=False,
            plan_tier=PlanTier.TRIAL,
            expiration_date=until,
            source=EntitlementSource.NONE,
        )

    @classmethod
    def active(
        cls,
        tier: PlanTier,
        expires_at: Optional[datetime],
        is_courtesy: bool = False,
        source: EntitlementSource = EntitlementSource.BACKEND,
    ) -> "AccessState":
        return cls(
            has_active_subscription=True,
            is_in_trial=False,
            is_courtesy=is_courtesy,
            plan_tier=tier,
            expiration_date=expires_at,
            source=source,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "has_access": self.has_access,
            "has_active_subscription": self.has_active_subscription,
            "is_in_trial": self.is_in_trial,
            "is_courtesy": self.is_courtesy,
            "plan_tier": self.plan_tier.value,
            "plan_name": self.plan_tier.display_name,
            "expiration_date": _iso(self.expiration_date),
            "source": self.source.value,
        }
