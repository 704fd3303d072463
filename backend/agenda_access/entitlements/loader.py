"""
Access Policy Loader - Load the access policy from config/access_policy.yml.

Provides:
- AccessPolicyLoader: Singleton loader for the policy configuration
- get_access_policy(): Current AccessPolicy snapshot

CRITICAL: Trial length, grace handling and plan identifier tables come from
this file. Do NOT hardcode them elsewhere.
"""

import logging
import os
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Mapping, Optional

import yaml

from agenda_access.entitlements.models import PlanTier
from agenda_access.entitlements.policy import (
    AccessPolicy,
    ActiveStatusPolicy,
    StoreEntitlementPolicy,
    DEFAULT_PAID_GRACE_PERIOD_DAYS,
    DEFAULT_PLAN_IDENTIFIERS,
    DEFAULT_STORE_PRODUCTS,
    DEFAULT_TRIAL_DURATION_DAYS,
)

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "access_policy.yml"


def _parse_tier_table(
    raw: Optional[Mapping[str, Any]],
    default: Mapping[str, PlanTier],
    section: str,
) -> Dict[str, PlanTier]:
    if raw is None:
        return dict(default)

    table: Dict[str, PlanTier] = {}
    for identifier, tier_value in raw.items():
        try:
            table[str(identifier)] = PlanTier(str(tier_value).lower())
        except ValueError:
            raise ValueError(
                f"{section}: unknown tier '{tier_value}' for '{identifier}'"
            )
    return table


def parse_access_policy(raw: Mapping[str, Any]) -> AccessPolicy:
    """Build an AccessPolicy from the parsed YAML document."""
    trial = raw.get("trial", {}) or {}
    subscriptions = raw.get("subscriptions", {}) or {}
    store = raw.get("store", {}) or {}

    return AccessPolicy(
        trial_duration_days=int(trial.get("duration_days", DEFAULT_TRIAL_DURATION_DAYS)),
        staff_inherits_trial=bool(trial.get("staff_inherits_trial", True)),
        active_status_policy=ActiveStatusPolicy(
            subscriptions.get("active_status_policy", ActiveStatusPolicy.TRUST_UPSTREAM.value)
        ),
        paid_grace_period_days=int(
            subscriptions.get("paid_grace_period_days", DEFAULT_PAID_GRACE_PERIOD_DAYS)
        ),
        plan_identifiers=_parse_tier_table(
            subscriptions.get("plan_identifiers"),
            DEFAULT_PLAN_IDENTIFIERS,
            "subscriptions.plan_identifiers",
        ),
        store_entitlement_policy=StoreEntitlementPolicy(
            store.get("entitlement_policy", StoreEntitlementPolicy.BACKEND_FIRST.value)
        ),
        store_products=_parse_tier_table(
            store.get("products"),
            DEFAULT_STORE_PRODUCTS,
            "store.products",
        ),
    )


class AccessPolicyLoader:
    """
    Thread-safe singleton loader for config/access_policy.yml.

    Usage:
        policy = AccessPolicyLoader().policy
    """

    _instance: Optional["AccessPolicyLoader"] = None
    _lock = Lock()

    def __new__(cls, config_path: Optional[str] = None):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self, config_path: Optional[str] = None):
        if self._initialized:
            return

        self._config_path = config_path or os.getenv("ACCESS_POLICY_PATH")
        self._policy: AccessPolicy = AccessPolicy()
        self._load_lock = Lock()

        self._load()
        self._initialized = True

    def _resolve_path(self) -> Path:
        if self._config_path:
            return Path(self._config_path)

        candidates = [
            Path(__file__).parent.parent.parent / "config" / CONFIG_FILENAME,  # backend/config/
            Path(os.getcwd()) / "config" / CONFIG_FILENAME,
            Path(os.getcwd()) / "backend" / "config" / CONFIG_FILENAME,
        ]

        for path in candidates:
            if path.exists():
                return path

        raise FileNotFoundError(
            f"{CONFIG_FILENAME} not found in any of: {[str(p) for p in candidates]}"
        )

    def _load(self) -> None:
        with self._load_lock:
            path = self._resolve_path()
            logger.info("Loading access policy from %s", path)

            with open(path, "r") as f:
                raw = yaml.safe_load(f) or {}

            self._policy = parse_access_policy(raw)

            logger.info(
                "Loaded access policy: trial_days=%d active=%s store=%s",
                self._policy.trial_duration_days,
                self._policy.active_status_policy.value,
                self._policy.store_entitlement_policy.value,
            )

    def reload(self) -> None:
        """Reload from disk; the previous policy stays in place on failure."""
        previous = self._policy
        try:
            self._load()
        except Exception:
            self._policy = previous
            logger.error("Access policy reload failed, keeping previous policy", exc_info=True)
            raise

    @property
    def policy(self) -> AccessPolicy:
        return self._policy


def get_access_policy(config_path: Optional[str] = None) -> AccessPolicy:
    """Get the current AccessPolicy from the singleton loader."""
    return AccessPolicyLoader(config_path).policy


def reset_access_policy_loader() -> None:
    """
    Reset the singleton instance (for testing).

    WARNING: Only use in tests!
    """
    AccessPolicyLoader._instance = None
