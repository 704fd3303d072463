"""
Access Evaluation Service — single entry point for access decisions.

Provides:
- evaluate_access(principal, now) → AccessState

Evaluation order (fixed):
    1. Effective principal: inactive staff / unlinked staff → no access
    2. Backend subscriptions of the target owner → best valid record wins
    3. Store entitlements (receipts, then premium flag), per store policy
    4. Revoked courtesy grant → no access (trial forfeited)
    5. Trial window of the target account

Architecture:
- Fail-LOUD on fetch errors: EntitlementFetchError propagates, it is never
  turned into a no-access state
- Pure decision rules live in rules.py / resolver.py; this module only
  sequences them around collaborator fetches
- Stateless between calls; callers keep the last AccessState themselves
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional, Protocol, TypeVar

from agenda_access.entitlements.errors import EntitlementFetchError
from agenda_access.entitlements.models import (
    AccessState,
    AccountInfo,
    EntitlementRecord,
    EntitlementSource,
    PlanTier,
    Principal,
    StoreReceipt,
    ensure_utc,
)
from agenda_access.entitlements.policy import AccessPolicy
from agenda_access.entitlements.resolver import (
    resolve_best,
    resolve_store_entitlement,
)
from agenda_access.entitlements.rules import evaluate_trial, has_revoked_courtesy

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Collaborator contracts
# ---------------------------------------------------------------------------

class SubscriptionFetcher(Protocol):
    def fetch_subscriptions(self, owner_id: str) -> List[EntitlementRecord]:
        ...

    def fetch_cancelled_subscriptions(self, owner_id: str) -> List[EntitlementRecord]:
        ...


class AccountFetcher(Protocol):
    def get_account(self, user_id: str) -> Optional[AccountInfo]:
        ...


class ReceiptFetcher(Protocol):
    def fetch_active_receipts(self, user_id: str) -> List[StoreReceipt]:
        ...


# ---------------------------------------------------------------------------
# AccessEvaluationService
# ---------------------------------------------------------------------------

class AccessEvaluationService:
    """
    Composes principal resolution, entitlement resolution, anti-abuse and
    trial evaluation into one AccessState.

    One instance per request / process. Collaborators are injected.
    """

    def __init__(
        self,
        subscriptions: SubscriptionFetcher,
        accounts: AccountFetcher,
        receipts: Optional[ReceiptFetcher] = None,
        policy: Optional[AccessPolicy] = None,
    ):
        self._subscriptions = subscriptions
        self._accounts = accounts
        self._receipts = receipts
        self.policy = policy or AccessPolicy()

    # ------------------------------------------------------------------
    # Primary API
    # ------------------------------------------------------------------

    def resolve_target(self, principal: Principal) -> Optional[str]:
        """
        Id of the account whose entitlements apply, or None when the
        principal is blocked outright.
        """
        if not principal.is_staff:
            return principal.id
        if not principal.is_active:
            return None
        return principal.clinic_id or None

    def evaluate_access(self, principal: Principal, now: datetime) -> AccessState:
        now = ensure_utc(now)
        log_ctx = {"principal_id": principal.id, "role": principal.role.value}

        # --- 1. Effective principal ---
        target_id = self.resolve_target(principal)
        if target_id is None:
            reason = "inactive_staff" if not principal.is_active else "staff_without_clinic"
            logger.info("Access denied before entitlement lookup", extra={
                **log_ctx, "reason": reason,
            })
            return AccessState.no_access()

        log_ctx["target_id"] = target_id

        # --- 2. Backend subscriptions ---
        records = self._fetch(
            target_id, "subscriptions",
            lambda: self._subscriptions.fetch_subscriptions(target_id),
        )
        logger.info("Subscriptions fetched", extra={**log_ctx, "count": len(records)})

        backend_state = resolve_best(records, now, self.policy)
        if backend_state is not None:
            self._log_decision("backend_subscription", backend_state, log_ctx)
            return backend_state

        # --- 3. Store entitlements ---
        account: Optional[AccountInfo] = None
        if self.policy.uses_store_entitlements:
            store_state, account = self._evaluate_store(target_id, now)
            if store_state is not None:
                self._log_decision("store_entitlement", store_state, log_ctx)
                return store_state

        # --- 4. Anti-abuse ---
        cancelled = self._fetch(
            target_id, "cancelled subscriptions",
            lambda: self._subscriptions.fetch_cancelled_subscriptions(target_id),
        )
        if has_revoked_courtesy(cancelled):
            logger.info("Revoked courtesy grant found, trial forfeited", extra=log_ctx)
            return AccessState.no_access()

        # --- 5. Trial ---
        if principal.is_staff and not self.policy.staff_inherits_trial:
            logger.info("Staff without owner subscription, trial not inherited", extra=log_ctx)
            return AccessState.no_access()

        if account is None:
            account = self._get_account(target_id)
        if account is None:
            logger.warning("No account found for trial evaluation", extra=log_ctx)
            return AccessState.no_access()

        state = evaluate_trial(
            account.created_at,
            account.trial_end_metadata,
            now,
            trial_days=self.policy.trial_duration_days,
        )
        self._log_decision("trial", state, log_ctx)
        return state

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _evaluate_store(self, target_id: str, now: datetime):
        """
        Receipts are authoritative whenever any exist. The is_premium flag is
        only consulted for accounts with no receipt rows (legacy purchases,
        or no receipt source wired in).
        """
        if self._receipts is not None:
            receipts = self._fetch(
                target_id, "store receipts",
                lambda: self._receipts.fetch_active_receipts(target_id),
            )
            if receipts:
                return resolve_store_entitlement(receipts, now, self.policy), None

        account = self._get_account(target_id)
        if account is not None and account.is_premium:
            premium = AccessState.active(
                tier=PlanTier.PREMIUM,
                expires_at=None,
                is_courtesy=False,
                source=EntitlementSource.STORE,
            )
            return premium, account
        return None, account

    def _get_account(self, target_id: str) -> Optional[AccountInfo]:
        return self._fetch(
            target_id, "account",
            lambda: self._accounts.get_account(target_id),
        )

    def _fetch(self, target_id: str, what: str, call: Callable[[], T]) -> T:
        try:
            return call()
        except EntitlementFetchError:
            raise
        except Exception as exc:
            logger.error(f"Failed to fetch {what}", extra={
                "target_id": target_id,
                "error_type": type(exc).__name__,
                "error": str(exc),
            })
            raise EntitlementFetchError(target_id, f"Could not fetch {what}", cause=exc)

    def _log_decision(self, step: str, state: AccessState, log_ctx: dict) -> None:
        logger.info("Access evaluated", extra={
            **log_ctx,
            "step": step,
            "has_access": state.has_access,
            "plan_tier": state.plan_tier.value,
            "source": state.source.value,
        })


def evaluate_access(
    principal: Principal,
    now: datetime,
    subscriptions: SubscriptionFetcher,
    accounts: AccountFetcher,
    receipts: Optional[ReceiptFetcher] = None,
    policy: Optional[AccessPolicy] = None,
) -> AccessState:
    """Module-level convenience wrapper around AccessEvaluationService."""
    service = AccessEvaluationService(subscriptions, accounts, receipts, policy)
    return service.evaluate_access(principal, now)
