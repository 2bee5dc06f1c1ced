import uuid

import pytest
from fastapi import HTTPException

from boxhub.api.auth import resolve_identity_from_headers, get_or_create_user
from boxhub.api.deps import raise_for_result, verify_cron_secret
from boxhub.api.permissions import can_read_org, can_write_org, can_manage_org, get_member_profile


def test_resolve_identity_and_get_or_create_user(db_session):
    name, email = resolve_identity_from_headers("User", " User@Example.com ", None, None)
    assert name == "User" and email == "user@example.com"

    user = get_or_create_user(db_session, email=email, display_name=name)
    user2 = get_or_create_user(db_session, email=email, display_name=name)
    assert user.id == user2.id
    assert user.is_superadmin is False


def test_forwarded_headers_are_a_fallback():
    name, email = resolve_identity_from_headers(None, None, "proxy-user", "Proxy@Example.com")
    assert (name, email) == ("proxy-user", "proxy@example.com")


def test_admin_emails_promote_existing_user(db_session, monkeypatch):
    user = get_or_create_user(db_session, email="boss@example.com")
    assert user.display_name == "boss"
    assert not user.is_superadmin

    monkeypatch.setenv("ADMIN_EMAILS", "'boss@example.com', other@example.com")
    user = get_or_create_user(db_session, email="boss@example.com")
    assert user.is_superadmin is True


@pytest.mark.parametrize(
    "code,status",
    [("invalid", 400), ("not_found", 404), ("conflict", 409), ("gone", 410), ("upstream", 502), ("error", 500), ("weird", 400)],
)
def test_raise_for_result_maps_codes(code, status):
    with pytest.raises(HTTPException) as exc:
        raise_for_result({"success": False, "code": code, "error": "nope"})
    assert exc.value.status_code == status
    assert exc.value.detail == "nope"


def test_raise_for_result_passes_success_through():
    result = {"success": True, "value": 1}
    assert raise_for_result(result) is result


def test_cron_secret_checks(monkeypatch):
    verify_cron_secret(authorization="Bearer test-cron-secret")

    with pytest.raises(HTTPException) as wrong:
        verify_cron_secret(authorization="Bearer nope")
    assert wrong.value.status_code == 401

    with pytest.raises(HTTPException) as missing:
        verify_cron_secret(authorization=None)
    assert missing.value.status_code == 401

    monkeypatch.delenv("CRON_SECRET")
    with pytest.raises(HTTPException) as unset:
        verify_cron_secret(authorization="Bearer test-cron-secret")
    assert unset.value.status_code == 503


def _ctx(org_id, role=None, can_write=False, superadmin=False, member_id=None):
    memberships = []
    if role:
        memberships.append({"organization_id": str(org_id), "role": role, "can_read": True, "can_write": can_write})
    profiles = []
    if member_id:
        profiles.append({"organization_id": str(org_id), "member_id": str(member_id), "status": "active"})
    # no memberships_by_org: lookups go through the list
    return {"is_superadmin": superadmin, "memberships": memberships, "member_profiles": profiles}


def test_permission_helpers_by_role():
    org_id = uuid.uuid4()

    owner = _ctx(org_id, "owner")
    assert can_read_org(org_id, owner) and can_write_org(org_id, owner) and can_manage_org(org_id, owner)

    coach = _ctx(org_id, "coach")
    assert can_write_org(org_id, coach)
    assert not can_manage_org(org_id, coach)

    desk = _ctx(org_id, "staff")
    assert can_read_org(org_id, desk)
    assert not can_write_org(org_id, desk)

    desk_with_write = _ctx(org_id, "staff", can_write=True)
    assert can_write_org(org_id, desk_with_write)
    assert not can_manage_org(org_id, desk_with_write)

    outsider = _ctx(org_id)
    assert not can_read_org(org_id, outsider)
    assert not can_read_org(uuid.uuid4(), owner)
    assert not can_read_org(org_id, None)

    admin = _ctx(org_id, superadmin=True)
    assert can_manage_org(uuid.uuid4(), admin)


def test_member_profile_lookup():
    org_id = uuid.uuid4()
    member_id = uuid.uuid4()
    ctx = _ctx(org_id, member_id=member_id)
    assert get_member_profile(org_id, ctx)["member_id"] == str(member_id)
    assert get_member_profile(uuid.uuid4(), ctx) is None
    assert get_member_profile(org_id, None) is None
