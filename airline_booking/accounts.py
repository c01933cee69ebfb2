"""User roles, role payloads and permission checks."""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, FrozenSet, Optional, Union

from .errors import PermissionDeniedError, ValidationError

if TYPE_CHECKING:  # pragma: no cover - import for type hints only
    from .models import Reservation, User


class UserRole(str, enum.Enum):
    CUSTOMER = "CUSTOMER"
    FLIGHT_AGENT = "FLIGHT_AGENT"
    SYSTEM_ADMIN = "SYSTEM_ADMIN"


class MembershipStatus(str, enum.Enum):
    REGULAR = "REGULAR"
    SILVER = "SILVER"
    GOLD = "GOLD"
    PLATINUM = "PLATINUM"


class Permission(str, enum.Enum):
    MANAGE_USERS = "MANAGE_USERS"
    MANAGE_FLIGHTS = "MANAGE_FLIGHTS"
    MANAGE_ROUTES = "MANAGE_ROUTES"
    MANAGE_AIRCRAFT = "MANAGE_AIRCRAFT"
    VIEW_REPORTS = "VIEW_REPORTS"
    MODIFY_SYSTEM_SETTINGS = "MODIFY_SYSTEM_SETTINGS"


_ALL_MARKER = "*"


@dataclass(frozen=True)
class PermissionSet:
    """Immutable set of permissions with an explicit grant-everything flag."""

    permissions: FrozenSet[Permission] = field(default_factory=frozenset)
    all_granted: bool = False

    @classmethod
    def of(cls, *permissions: Permission) -> "PermissionSet":
        return cls(frozenset(permissions))

    @classmethod
    def everything(cls) -> "PermissionSet":
        return cls(frozenset(), all_granted=True)

    def has_all(self) -> bool:
        return self.all_granted

    def allows(self, permission: Permission) -> bool:
        return self.has_all() or permission in self.permissions

    def serialize(self) -> str:
        if self.all_granted:
            return _ALL_MARKER
        return ",".join(sorted(p.value for p in self.permissions))

    @classmethod
    def parse(cls, raw: Optional[str]) -> "PermissionSet":
        if not raw:
            return cls()
        if raw.strip() == _ALL_MARKER:
            return cls.everything()
        try:
            return cls(frozenset(Permission(item.strip()) for item in raw.split(",") if item.strip()))
        except ValueError as exc:
            raise ValidationError(f"unknown permission in '{raw}'") from exc


@dataclass(frozen=True)
class CustomerProfile:
    first_name: str
    last_name: str
    phone: Optional[str] = None
    membership: MembershipStatus = MembershipStatus.REGULAR

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class AgentProfile:
    employee_id: str


@dataclass(frozen=True)
class AdminProfile:
    permissions: PermissionSet


RoleProfile = Union[CustomerProfile, AgentProfile, AdminProfile]


def authorize(actor: Optional["User"], permission: Permission) -> None:
    """Raise unless ``actor`` may perform an administrative action.

    ``None`` stands for a trusted internal caller and is always allowed.
    """

    if actor is None:
        return
    if actor.role is UserRole.SYSTEM_ADMIN:
        if actor.profile.permissions.allows(permission):
            return
        raise PermissionDeniedError(f"user {actor.username} lacks {permission.value}")
    raise PermissionDeniedError(f"role {actor.role.value} cannot perform {permission.value}")


def authorize_reservation(actor: Optional["User"], reservation: "Reservation") -> None:
    """Customers may only touch their own bookings; agents and admins any booking."""

    if actor is None:
        return
    if actor.role is UserRole.CUSTOMER:
        if reservation.customer_id != actor.id:
            raise PermissionDeniedError(
                f"reservation {reservation.id} does not belong to user {actor.username}"
            )
        return
    if actor.role in (UserRole.FLIGHT_AGENT, UserRole.SYSTEM_ADMIN):
        return
    raise PermissionDeniedError(f"role {actor.role} cannot manage reservations")
