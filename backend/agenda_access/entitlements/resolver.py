"""
Entitlement resolver — picks the single best entitlement for a principal.

Backend records:
    Sort by (discount ascending, None as 0; created_at descending) and return
    the first record the validator accepts. Fully paid records therefore win
    over comped ones, and the newest record breaks ties.

Store receipts:
    Highest tier among current receipts for known products.
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from agenda_access.entitlements.models import (
    AccessState,
    EntitlementRecord,
    EntitlementSource,
    PlanTier,
    StoreReceipt,
    ensure_utc,
)
from agenda_access.entitlements.plans import tier_for_record, tier_for_store_product
from agenda_access.entitlements.policy import AccessPolicy
from agenda_access.entitlements.rules import is_currently_valid

logger = logging.getLogger(__name__)


def order_records(records: Iterable[EntitlementRecord]) -> List[EntitlementRecord]:
    """Deterministic evaluation order for subscription records."""
    # Two stable sorts: secondary key first, then primary key.
    newest_first = sorted(
        records, key=lambda r: ensure_utc(r.created_at), reverse=True
    )
    return sorted(newest_first, key=lambda r: r.effective_discount)


def resolve_best(
    records: Sequence[EntitlementRecord],
    now: datetime,
    policy: Optional[AccessPolicy] = None,
) -> Optional[AccessState]:
    """
    Return the access state of the best valid record, or None.

    None means "no backend entitlement", not "no access": the caller still has
    to run the anti-abuse and trial steps.
    """
    if not records:
        return None

    policy = policy or AccessPolicy()
    for record in order_records(records):
        if is_currently_valid(record, now, policy):
            return AccessState.active(
                tier=tier_for_record(record, policy.plan_identifiers),
                expires_at=ensure_utc(record.next_billing_date),
                is_courtesy=record.is_courtesy,
                source=EntitlementSource.BACKEND,
            )
    return None


def resolve_store_entitlement(
    receipts: Sequence[StoreReceipt],
    now: datetime,
    policy: Optional[AccessPolicy] = None,
) -> Optional[AccessState]:
    """Return the highest-tier current store entitlement, or None."""
    policy = policy or AccessPolicy()
    best: Optional[StoreReceipt] = None
    best_tier = PlanTier.NONE

    for receipt in receipts:
        if not receipt.is_current(now):
            continue
        tier = tier_for_store_product(receipt.product_id, policy.store_products)
        if tier == PlanTier.NONE:
            logger.warning("Ignoring receipt for unknown store product", extra={
                "product_id": receipt.product_id,
                "transaction_id": receipt.transaction_id,
            })
            continue
        if best is None or tier.tier_level > best_tier.tier_level:
            best, best_tier = receipt, tier

    if best is None:
        return None

    return AccessState.active(
        tier=best_tier,
        expires_at=ensure_utc(best.expiration_date),
        is_courtesy=False,
        source=EntitlementSource.STORE,
    )
