from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from cashdesk.time_utils import parse_iso_datetime, to_utc_z, utcnow

ROLE_EMPLOYEE = "employee"
ROLE_ADMIN = "admin"
ROLES = (ROLE_EMPLOYEE, ROLE_ADMIN)


@dataclass
class User:
    """
    Employee account.

    Holds the bcrypt password hash, so instances stay inside the user
    directory; everything else receives a UserView.
    """
    id: str
    code: str
    name: str
    password_hash: str
    role: str = ROLE_EMPLOYEE
    is_active: bool = True
    last_login: datetime | None = None
    terminal_id: str | None = None

    def view(self) -> "UserView":
        return UserView(
            id=self.id,
            code=self.code,
            name=self.name,
            role=self.role,
            is_active=self.is_active,
            last_login=self.last_login,
            terminal_id=self.terminal_id,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "password_hash": self.password_hash,
            "role": self.role,
            "is_active": self.is_active,
            "last_login": to_utc_z(self.last_login),
            "terminal_id": self.terminal_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "User":
        return cls(
            id=str(data["id"]),
            code=data["code"],
            name=data["name"],
            password_hash=data["password_hash"],
            role=data.get("role", ROLE_EMPLOYEE),
            is_active=bool(data.get("is_active", True)),
            last_login=parse_iso_datetime(data.get("last_login")),
            terminal_id=data.get("terminal_id"),
        )


@dataclass(frozen=True)
class UserView:
    """Read-only user projection without credentials."""
    id: str
    code: str
    name: str
    role: str
    is_active: bool
    last_login: datetime | None = None
    terminal_id: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "role": self.role,
            "is_active": self.is_active,
            "last_login": to_utc_z(self.last_login),
            "terminal_id": self.terminal_id,
        }


@dataclass
class Session:
    """Login of one employee at one terminal."""
    terminal_id: str
    employee_id: str
    start_time: datetime = field(default_factory=utcnow)
    last_activity: datetime = field(default_factory=utcnow)
    is_active: bool = True

    def idle_seconds(self, now: datetime) -> int:
        return int((now - self.last_activity).total_seconds())

    def to_dict(self) -> dict:
        return {
            "terminal_id": self.terminal_id,
            "employee_id": self.employee_id,
            "start_time": to_utc_z(self.start_time),
            "last_activity": to_utc_z(self.last_activity),
            "is_active": self.is_active,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Session":
        return cls(
            terminal_id=data["terminal_id"],
            employee_id=str(data["employee_id"]),
            start_time=parse_iso_datetime(data["start_time"]),
            last_activity=parse_iso_datetime(data["last_activity"]),
            is_active=bool(data.get("is_active", True)),
        )
