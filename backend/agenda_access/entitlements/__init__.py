"""
Subscription access evaluation.

This module provides:
- AccessEvaluationService: Composes the steps below into one AccessState
- is_currently_valid: Per-record validity rules (courtesy, pending, active)
- resolve_best: Ordered best-record selection over backend subscriptions
- resolve_store_entitlement: Best current in-app purchase entitlement
- evaluate_trial: Trial window with metadata fallback parsing
- has_revoked_courtesy: Anti-abuse check over cancelled records
- AccessPolicyLoader: Policy config from config/access_policy.yml

Resolution order: staff gate → backend → store → anti-abuse → trial
"""

from agenda_access.entitlements.models import (
    AccessState,
    AccountInfo,
    EntitlementRecord,
    EntitlementSource,
    PlanTier,
    Principal,
    PrincipalRole,
    StoreReceipt,
    SubscriptionStatus,
)
from agenda_access.entitlements.policy import (
    AccessPolicy,
    ActiveStatusPolicy,
    StoreEntitlementPolicy,
)
from agenda_access.entitlements.errors import (
    EntitlementError,
    EntitlementFetchError,
    InvalidProductError,
    PrincipalNotFoundError,
)
from agenda_access.entitlements.plans import (
    tier_for_record,
    tier_for_store_product,
    tier_from_plan_identifier,
)
from agenda_access.entitlements.rules import (
    evaluate_trial,
    has_revoked_courtesy,
    is_currently_valid,
)
from agenda_access.entitlements.resolver import (
    resolve_best,
    resolve_store_entitlement,
)
from agenda_access.entitlements.loader import (
    AccessPolicyLoader,
    get_access_policy,
    reset_access_policy_loader,
)
from agenda_access.entitlements.service import (
    AccessEvaluationService,
    evaluate_access,
)

__all__ = [
    "AccessState",
    "AccountInfo",
    "EntitlementRecord",
    "EntitlementSource",
    "PlanTier",
    "Principal",
    "PrincipalRole",
    "StoreReceipt",
    "SubscriptionStatus",
    "AccessPolicy",
    "ActiveStatusPolicy",
    "StoreEntitlementPolicy",
    "EntitlementError",
    "EntitlementFetchError",
    "InvalidProductError",
    "PrincipalNotFoundError",
    "tier_for_record",
    "tier_for_store_product",
    "tier_from_plan_identifier",
    "evaluate_trial",
    "has_revoked_courtesy",
    "is_currently_valid",
    "resolve_best",
    "resolve_store_entitlement",
    "AccessPolicyLoader",
    "get_access_policy",
    "reset_access_policy_loader",
    "AccessEvaluationService",
    "evaluate_access",
]
