"""
Feature switches.

A feature runs for an organization when both layers allow it:
- the platform switch, FEATURE_<NAME>_ENABLED (on unless set to a false value)
- the organization's platform plan, whose `features` map lists what the tier includes

Organizations without a plan, or on a plan with an empty feature map, get
every feature the platform switch allows.
"""

import os
from functools import lru_cache
from typing import Any, Dict, Optional, Tuple

# feature -> (environment switch, key in PlatformPlan.features or None when plans never restrict it)
FEATURES: Dict[str, Tuple[str, Optional[str]]] = {
    "email_notifications": ("FEATURE_EMAIL_NOTIFICATIONS_ENABLED", None),
    "discord": ("FEATURE_DISCORD_ENABLED", "discord"),
    "tv": ("FEATURE_TV_ENABLED", "tv_display"),
    "teams": ("FEATURE_TEAMS_ENABLED", "teams"),
    "workflows": ("FEATURE_WORKFLOWS_ENABLED", "workflows"),
}

_FALSE_VALUES = frozenset({"", "0", "false", "no", "off"})


def _switch_on(env_var: str) -> bool:
    raw = os.getenv(env_var)
    return raw is None or raw.strip().lower() not in _FALSE_VALUES


@lru_cache(maxsize=None)
def get_feature_flags() -> Dict[str, bool]:
    """Platform switches keyed by feature name, read once from the environment."""
    return {name: _switch_on(env_var) for name, (env_var, _) in FEATURES.items()}


def feature_enabled(name: str) -> bool:
    return get_feature_flags()[name]


def plan_includes(plan: Any, name: str) -> bool:
    plan_key = FEATURES[name][1]
    if plan is None or plan_key is None or not plan.features:
        return True
    return bool(plan.features.get(plan_key))


def org_feature_enabled(organization: Any, name: str) -> bool:
    if not feature_enabled(name):
        return False
    plan = getattr(organization, "platform_plan", None) if organization is not None else None
    return plan_includes(plan, name)


def org_feature_map(organization: Any) -> Dict[str, bool]:
    return {name: org_feature_enabled(organization, name) for name in FEATURES}


def refresh_feature_flag_cache() -> None:
    """Forget cached switches; tests flip the environment between cases."""
    get_feature_flags.cache_clear()
