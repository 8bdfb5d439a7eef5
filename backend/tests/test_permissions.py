"""Tests for capability evaluation."""

from types import SimpleNamespace

import pytest

from utils.errors import ForbiddenError
from utils.permissions import (
    Capability, build_actor, can_perform, normalize_admin_flag, parse_permissions, require, require_admin,
)


def _user(role="", is_admin=None, permissions=None, name="Test User"):
    return SimpleNamespace(id=1, email="user@example.com", name=name, role=role,
                           is_admin=is_admin, permissions=permissions)


# ── Admin flag ───────────────────────────────────────────────────

@pytest.mark.parametrize("value", [1, "1", "t", "true", "TRUE", "yes", True])
def test_truthy_admin_flags(value):
    assert normalize_admin_flag(value) is True


@pytest.mark.parametrize("value", [None, 0, "0", "f", "false", "", "nope", False])
def test_falsy_admin_flags(value):
    assert normalize_admin_flag(value) is False


def test_admin_role_grants_everything():
    actor = build_actor(_user(role="admin"))
    assert actor.is_admin
    assert all(can_perform(actor, cap) for cap in Capability)


def test_legacy_admin_flag_grants_everything():
    actor = build_actor(_user(role="handlowiec", is_admin="TRUE"))
    assert actor.is_admin
    assert can_perform(actor, Capability.APPROVE_TRANSPORT_REQUESTS)


# ── Roles and permission flags ───────────────────────────────────

def test_sales_role_can_only_submit():
    actor = build_actor(_user(role="handlowiec"))
    assert actor.capabilities == frozenset({Capability.SUBMIT_TRANSPORT_REQUESTS})


@pytest.mark.parametrize("role", ["magazyn", "magazyn_bialystok", "magazyn_zielonka"])
def test_warehouse_roles_approve_and_respond(role):
    actor = build_actor(_user(role=role))
    assert can_perform(actor, Capability.APPROVE_TRANSPORT_REQUESTS)
    assert can_perform(actor, Capability.RESPOND_FORWARDING_ORDERS)
    assert not can_perform(actor, Capability.SUBMIT_TRANSPORT_REQUESTS)
    assert not can_perform(actor, Capability.EDIT_FORWARDING_ORDERS)


def test_permission_flags_grant_capabilities():
    raw = '{"transport_requests": {"add": true, "approve": true}, "spedycja": {"edit": true}}'
    actor = build_actor(_user(role="kierownik", permissions=raw))
    assert can_perform(actor, Capability.SUBMIT_TRANSPORT_REQUESTS)
    assert can_perform(actor, Capability.APPROVE_TRANSPORT_REQUESTS)
    assert can_perform(actor, Capability.EDIT_FORWARDING_ORDERS)
    assert not can_perform(actor, Capability.RESPOND_FORWARDING_ORDERS)


def test_flags_must_be_literal_true():
    actor = build_actor(_user(role="kierownik", permissions='{"transport_requests": {"approve": "yes"}}'))
    assert not can_perform(actor, Capability.APPROVE_TRANSPORT_REQUESTS)


def test_broken_permission_document_means_no_flags():
    assert parse_permissions("{not json") == {}
    assert parse_permissions('["a", "b"]') == {}
    actor = build_actor(_user(role="kierownik", permissions="{not json"))
    assert actor.capabilities == frozenset()


def test_display_name_falls_back_to_email():
    actor = build_actor(_user(role="handlowiec", name=None))
    assert actor.display_name == "user@example.com"


# ── Guards ───────────────────────────────────────────────────────

def test_require_raises_forbidden():
    actor = build_actor(_user(role="handlowiec"))
    with pytest.raises(ForbiddenError):
        require(actor, Capability.APPROVE_TRANSPORT_REQUESTS)
    with pytest.raises(ForbiddenError):
        require_admin(actor)
