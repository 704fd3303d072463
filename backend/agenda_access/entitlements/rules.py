"""
Access Rules - pure decision rules for subscription access.

Provides:
- is_currently_valid: does one subscription record grant access at ``now``?
- has_revoked_courtesy: anti-abuse check over cancelled records
- evaluate_trial: trial window evaluation with metadata fallback parsing

Every function here is a pure computation over already-fetched data and a
caller-supplied ``now``. Nothing reads the system clock.
"""

import logging
from datetime import datetime, timedelta
from typing import Iterable, Optional

from agenda_access.entitlements.models import (
    AccessState,
    EntitlementRecord,
    SubscriptionStatus,
    ensure_utc,
)
from agenda_access.entitlements.policy import (
    AccessPolicy,
    ActiveStatusPolicy,
    DEFAULT_TRIAL_DURATION_DAYS,
)

logger = logging.getLogger(__name__)

# Trial-end metadata formats, tried in order.
TRIAL_METADATA_FORMATS = (
    "%Y-%m-%dT%H:%M:%S.%f%z",  # RFC3339 with fractional seconds
    "%Y-%m-%dT%H:%M:%S%z",     # plain RFC3339
)


# ---------------------------------------------------------------------------
# Subscription validator
# ---------------------------------------------------------------------------

def is_currently_valid(
    record: EntitlementRecord,
    now: datetime,
    policy: Optional[AccessPolicy] = None,
) -> bool:
    """
    Decide whether a subscription record currently grants access.

    Rules, in order:
        1. Courtesy grant      → valid iff active (no grace period)
        2. Pending cancellation → valid through next_billing_date (inclusive)
        3. Active              → per ActiveStatusPolicy
        4. Anything else       → invalid
    """
    policy = policy or AccessPolicy()
    now = ensure_utc(now)

    if record.is_courtesy:
        return record.status == SubscriptionStatus.ACTIVE

    if record.status == SubscriptionStatus.PENDING_CANCELLATION:
        next_billing = ensure_utc(record.next_billing_date)
        if next_billing is None:
            return False
        return now <= next_billing

    if record.status == SubscriptionStatus.ACTIVE:
        if policy.active_status_policy == ActiveStatusPolicy.TRUST_UPSTREAM:
            return True
        next_billing = ensure_utc(record.next_billing_date)
        if next_billing is None:
            return True
        grace_ends = next_billing + timedelta(days=policy.paid_grace_period_days)
        return now <= grace_ends

    return False


# ---------------------------------------------------------------------------
# Anti-abuse
# ---------------------------------------------------------------------------

def has_revoked_courtesy(cancelled_records: Iterable[EntitlementRecord]) -> bool:
    """True if the principal once held a courtesy grant that was cancelled."""
    return any(
        record.is_courtesy and record.status == SubscriptionStatus.CANCELLED
        for record in cancelled_records
    )


# ---------------------------------------------------------------------------
# Trial evaluator
# ---------------------------------------------------------------------------

def parse_trial_end(metadata: Optional[str]) -> Optional[datetime]:
    """Parse trial-end metadata; None when absent or in no known format."""
    if not metadata:
        return None

    value = metadata.strip()
    for fmt in TRIAL_METADATA_FORMATS:
        try:
            return ensure_utc(datetime.strptime(value, fmt))
        except ValueError:
            continue

    logger.debug("Unparseable trial_end_date metadata, using default window", extra={
        "trial_end_metadata": metadata,
    })
    return None


def trial_end_for(
    account_created_at: datetime,
    trial_end_metadata: Optional[str],
    trial_days: int = DEFAULT_TRIAL_DURATION_DAYS,
) -> datetime:
    parsed = parse_trial_end(trial_end_metadata)
    if parsed is not None:
        return parsed
    return ensure_utc(account_created_at) + timedelta(days=trial_days)


def evaluate_trial(
    account_created_at: datetime,
    trial_end_metadata: Optional[str],
    now: datetime,
    trial_days: int = DEFAULT_TRIAL_DURATION_DAYS,
) -> AccessState:
    """
    Trial access for an account.

    Explicit ``trial_end_date`` metadata wins when it parses; otherwise the
    window is ``account_created_at + trial_days``. The end is inclusive.
    """
    trial_end = trial_end_for(account_created_at, trial_end_metadata, trial_days)
    if ensure_utc(now) <= trial_end:
        return AccessState.trial(until=trial_end)
    return AccessState.no_access()
