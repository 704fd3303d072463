"""
Tests for the access policy loader.

Tests cover:
- Parsing every section of access_policy.yml
- Defaults for missing sections
- Validation of tiers and policy names
- Singleton behaviour, env override and reload
"""

import pytest

from agenda_access.entitlements.loader import (
    AccessPolicyLoader,
    get_access_policy,
    parse_access_policy,
    reset_access_policy_loader,
)
from agenda_access.entitlements.models import PlanTier
from agenda_access.entitlements.policy import (
    AccessPolicy,
    ActiveStatusPolicy,
    DEFAULT_PLAN_IDENTIFIERS,
    StoreEntitlementPolicy,
)

FULL_CONFIG = {
    "trial": {"duration_days": 14, "staff_inherits_trial": False},
    "subscriptions": {
        "active_status_policy": "local_grace",
        "paid_grace_period_days": 3,
        "plan_identifiers": {"plan-gold": "premium", "plan-silver": "PRO"},
    },
    "store": {
        "entitlement_policy": "disabled",
        "products": {"com.example.max": "premium"},
    },
}


class TestParseAccessPolicy:

    def test_full_config(self):
        policy = parse_access_policy(FULL_CONFIG)

        assert policy.trial_duration_days == 14
        assert policy.staff_inherits_trial is False
        assert policy.active_status_policy == ActiveStatusPolicy.LOCAL_GRACE
        assert policy.paid_grace_period_days == 3
        assert policy.plan_identifiers == {
            "plan-gold": PlanTier.PREMIUM,
            "plan-silver": PlanTier.PRO,
        }
        assert policy.store_entitlement_policy == StoreEntitlementPolicy.DISABLED
        assert policy.uses_store_entitlements is False
        assert policy.is_known_product("com.example.max")
        assert not policy.is_known_product("com.agendahof.premium")

    def test_empty_document_uses_defaults(self):
        policy = parse_access_policy({})

        assert policy == AccessPolicy()
        assert policy.plan_identifiers == DEFAULT_PLAN_IDENTIFIERS
        assert policy.uses_store_entitlements is True

    def test_null_sections_use_defaults(self):
        policy = parse_access_policy({"trial": None, "subscriptions": None, "store": None})
        assert policy.trial_duration_days == 7

    def test_unknown_tier_rejected(self):
        with pytest.raises(ValueError, match="unknown tier"):
            parse_access_policy({"store": {"products": {"com.x": "platinum"}}})

    def test_unknown_policy_rejected(self):
        with pytest.raises(ValueError):
            parse_access_policy({"subscriptions": {"active_status_policy": "sometimes"}})

    def test_negative_days_rejected(self):
        with pytest.raises(ValueError, match="trial_duration_days"):
            parse_access_policy({"trial": {"duration_days": -1}})


class TestAccessPolicyLoader:

    def test_loads_explicit_path(self, make_yaml_config):
        path = make_yaml_config("access_policy.yml", FULL_CONFIG)

        policy = get_access_policy(str(path))

        assert policy.trial_duration_days == 14

    def test_env_override(self, make_yaml_config, monkeypatch):
        path = make_yaml_config("policy.yml", {"trial": {"duration_days": 21}})
        monkeypatch.setenv("ACCESS_POLICY_PATH", str(path))

        assert get_access_policy().trial_duration_days == 21

    def test_singleton(self, make_yaml_config):
        path = make_yaml_config("access_policy.yml", FULL_CONFIG)

        first = AccessPolicyLoader(str(path))
        second = AccessPolicyLoader()

        assert first is second

    def test_bundled_config(self, monkeypatch):
        monkeypatch.delenv("ACCESS_POLICY_PATH", raising=False)

        policy = get_access_policy()

        assert policy.trial_duration_days == 7
        assert policy.active_status_policy == ActiveStatusPolicy.TRUST_UPSTREAM
        assert policy.store_entitlement_policy == StoreEntitlementPolicy.BACKEND_FIRST
        assert policy.plan_identifiers["357d1216-1796-40ed-9098-bb7f5cd1a907"] == PlanTier.PREMIUM

    def test_missing_file(self, temp_config_dir):
        with pytest.raises(FileNotFoundError):
            AccessPolicyLoader(str(temp_config_dir / "missing.yml"))

    def test_reload_picks_up_changes(self, make_yaml_config):
        path = make_yaml_config("access_policy.yml", {"trial": {"duration_days": 5}})
        loader = AccessPolicyLoader(str(path))
        assert loader.policy.trial_duration_days == 5

        make_yaml_config("access_policy.yml", {"trial": {"duration_days": 9}})
        loader.reload()

        assert loader.policy.trial_duration_days == 9

    def test_failed_reload_keeps_previous_policy(self, make_yaml_config):
        path = make_yaml_config("access_policy.yml", {"trial": {"duration_days": 5}})
        loader = AccessPolicyLoader(str(path))

        make_yaml_config("access_policy.yml", {"store": {"products": {"x": "gold"}}})
        with pytest.raises(ValueError):
            loader.reload()

        assert loader.policy.trial_duration_days == 5

    def test_reset(self, make_yaml_config):
        path = make_yaml_config("access_policy.yml", {"trial": {"duration_days": 5}})
        first = AccessPolicyLoader(str(path))
        reset_access_policy_loader()
        assert AccessPolicyLoader(str(path)) is not first
