# backend/utils/permissions.py
"""
Capability evaluation.

A user's role and free-form permission document are turned into an ``Actor``
exactly once per request; workflows only ever look at ``actor.is_admin`` and
``actor.capabilities``.
"""
import enum
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Optional, Tuple

from utils.errors import ForbiddenError

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"

# Encodings of a true admin flag found in legacy rows
_TRUTHY_FLAGS = {"1", "t", "true", "yes", "y", "on"}


class Capability(str, enum.Enum):
    SUBMIT_TRANSPORT_REQUESTS = "submit_transport_requests"
    APPROVE_TRANSPORT_REQUESTS = "approve_transport_requests"
    RESPOND_FORWARDING_ORDERS = "respond_forwarding_orders"
    EDIT_FORWARDING_ORDERS = "edit_forwarding_orders"


@dataclass(frozen=True)
class CapabilityRule:
    roles: FrozenSet[str] = frozenset()
    role_prefixes: Tuple[str, ...] = ()
    # (section, flag) inside the permission document
    flag: Optional[Tuple[str, str]] = None


CAPABILITY_RULES: Dict[Capability, CapabilityRule] = {
    Capability.SUBMIT_TRANSPORT_REQUESTS: CapabilityRule(
        roles=frozenset({"handlowiec"}), flag=("transport_requests", "add")
    ),
    Capability.APPROVE_TRANSPORT_REQUESTS: CapabilityRule(
        roles=frozenset({"magazyn"}), role_prefixes=("magazyn_",), flag=("transport_requests", "approve")
    ),
    Capability.RESPOND_FORWARDING_ORDERS: CapabilityRule(
        roles=frozenset({"magazyn"}), role_prefixes=("magazyn_",), flag=("spedycja", "respond")
    ),
    Capability.EDIT_FORWARDING_ORDERS: CapabilityRule(flag=("spedycja", "edit")),
}


@dataclass(frozen=True)
class Actor:
    """Resolved identity passed explicitly into every workflow call."""

    id: Optional[int]
    email: str
    name: Optional[str]
    role: str
    is_admin: bool
    capabilities: FrozenSet[Capability] = field(default_factory=frozenset)

    @property
    def display_name(self) -> str:
        return self.name or self.email


def normalize_admin_flag(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    return str(value).strip().lower() in _TRUTHY_FLAGS


def parse_permissions(raw: Any) -> Dict[str, Any]:
    """Decode the stored permission document; anything unreadable means no flags."""
    if not raw:
        return {}
    if isinstance(raw, dict):
        return raw
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError) as e:
        logger.error(f"Błąd parsowania uprawnień: {e}")
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _flag_set(permissions: Dict[str, Any], flag: Optional[Tuple[str, str]]) -> bool:
    if not flag:
        return False
    section = permissions.get(flag[0])
    return isinstance(section, dict) and section.get(flag[1]) is True


def role_grants(role: str, capability: Capability) -> bool:
    rule = CAPABILITY_RULES[capability]
    role = role or ""
    return role in rule.roles or any(role.startswith(p) for p in rule.role_prefixes)


def evaluate(role: str, is_admin: bool, permissions: Dict[str, Any]) -> FrozenSet[Capability]:
    if is_admin:
        return frozenset(Capability)
    return frozenset(
        cap for cap, rule in CAPABILITY_RULES.items()
        if role_grants(role, cap) or _flag_set(permissions, rule.flag)
    )


def build_actor(user) -> Actor:
    role = (user.role or "").strip()
    is_admin = role == ADMIN_ROLE or normalize_admin_flag(user.is_admin)
    permissions = parse_permissions(user.permissions)
    return Actor(
        id=user.id,
        email=user.email,
        name=user.name,
        role=role,
        is_admin=is_admin,
        capabilities=evaluate(role, is_admin, permissions),
    )


def can_perform(actor: Actor, capability: Capability) -> bool:
    return actor.is_admin or capability in actor.capabilities


def require(actor: Actor, capability: Capability, message: str = "Brak uprawnień") -> None:
    if not can_perform(actor, capability):
        raise ForbiddenError(message)


def require_admin(actor: Actor, message: str = "Brak uprawnień administratora") -> None:
    if not actor.is_admin:
        raise ForbiddenError(message)
