"""
URL utilities for building absolute links in emails and chat messages.

Primary source: APP_BASE_URL (e.g., https://app.boxhub.com)
Fallback: APP_HOST (adds scheme heuristically if missing).
"""
from __future__ import annotations

import os
from urllib.parse import urlencode


def _add_scheme_if_missing(host: str) -> str:
    h = host.strip()
    if not h:
        return "http://localhost:3000"
    if h.startswith("http://") or h.startswith("https://"):
        return h
    lower = h.lower()
    if lower.startswith("localhost") or lower.startswith("127.0.0.1"):
        return f"http://{h}"
    return f"https://{h}"


def get_app_base_url() -> str:
    """Return normalized base URL for the front-end application.

    Precedence: APP_BASE_URL, then APP_HOST; defaults to http://localhost:3000.
    """
    base = os.getenv("APP_BASE_URL")
    if base and base.strip():
        return base.strip().rstrip("/")
    host = os.getenv("APP_HOST")
    if host and host.strip():
        return _add_scheme_if_missing(host.strip()).rstrip("/")
    return "http://localhost:3000"


def build_member_planning_link(*, org_slug: str | None = None, class_id: str | None = None) -> str:
    base = get_app_base_url()
    params = {}
    if org_slug:
        params["org"] = org_slug
    if class_id:
        params["class"] = class_id
    qs = f"?{urlencode(params)}" if params else ""
    return f"{base}/member/planning{qs}"


def build_member_profile_link() -> str:
    return f"{get_app_base_url()}/member/profile"


def build_rgpd_export_path(request_id) -> str:
    """Relative download path stored on completed export requests."""
    return f"/api/rgpd/export/{request_id}"


def build_tv_display_link(org_slug_or_id: str) -> str:
    return f"{get_app_base_url()}/tv/{org_slug_or_id}"
