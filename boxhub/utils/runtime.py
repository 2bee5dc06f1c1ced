"""DEV_MODE switch: impersonate a local user when no auth proxy sits in front."""

import os
from typing import Tuple
from urllib.parse import urlparse

DEV_IDENTITY: Tuple[str, str] = ("Development User", "dev@localhost")

_LOCAL_HOSTS = frozenset({"localhost", "127.0.0.1", "::1"})


def _base_url_host() -> str:
    raw = os.getenv("APP_BASE_URL", "").strip()
    if not raw:
        return ""
    return (urlparse(raw if "://" in raw else f"http://{raw}").hostname or "").lower()


def dev_mode_active() -> bool:
    """
    True when DEV_MODE=true and the app is served from a local host.

    Extra hosts can be allowed with DEV_MODE_ALLOWED_HOSTS (comma separated).
    A public APP_BASE_URL, or none at all outside tests, is a configuration
    error and raises RuntimeError.
    """
    if os.getenv("DEV_MODE", "false").lower() != "true":
        return False

    allowed = set(_LOCAL_HOSTS)
    allowed.update(h.strip().lower() for h in os.getenv("DEV_MODE_ALLOWED_HOSTS", "").split(",") if h.strip())

    host = _base_url_host()
    if not host:
        if os.getenv("PYTEST_CURRENT_TEST"):
            return True
        raise RuntimeError("DEV_MODE=true requires APP_BASE_URL pointing at a local host")
    if host not in allowed:
        raise RuntimeError(f"DEV_MODE=true is not permitted for host '{host}'")
    return True
