# Overview: Terminal sessions; exclusive per-employee login with idle-timeout expiry.

"""
Session Management Service

WHY: An employee may be signed in at one terminal at a time. Sales are
attributed to the session's employee, so a second concurrent login elsewhere
is refused rather than silently sharing the identity.

LIFECYCLE (per employee):
    logged out --login(code, password, terminal)--> logged in at terminal
    logged in --logout() / idle timeout--> logged out

SECURITY FEATURES:
- Unknown code and wrong password both return False with no detail
- Deactivated accounts and concurrent sessions raise distinct errors so the
  counter can show the right message
- Idle timeout (SESSION_IDLE_TIMEOUT_SECONDS, 1200 by default) checked by a
  periodic caller via check_idle()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Callable

from ..models import Session, UserView
from ..time_utils import utcnow
from .auth_service import UserDirectory

logger = logging.getLogger(__name__)

DEFAULT_IDLE_TIMEOUT_SECONDS = 1200
IDLE_LOGOUT_MESSAGE = "Session closed due to inactivity"


class AuthError(Exception):
    """Base class for login failures the counter must explain."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class AccountInactiveError(AuthError):
    """The employee account exists but is deactivated."""


class ConcurrentSessionError(AuthError):
    """The employee already holds an active session at another terminal."""


@dataclass(frozen=True)
class IdleLogout:
    """Notice returned by check_idle() when it closes the terminal's session."""
    employee_id: str
    terminal_id: str
    idle_seconds: int
    message: str = IDLE_LOGOUT_MESSAGE

    def to_dict(self) -> dict:
        return {
            "employee_id": self.employee_id,
            "terminal_id": self.terminal_id,
            "idle_seconds": self.idle_seconds,
            "message": self.message,
        }


class AuthManager:
    def __init__(
        self,
        users: UserDirectory,
        *,
        terminal_id: str,
        idle_timeout_seconds: int = DEFAULT_IDLE_TIMEOUT_SECONDS,
        clock: Callable = utcnow,
    ):
        self._users = users
        self._terminal_id = terminal_id
        self._idle_timeout = idle_timeout_seconds
        self._clock = clock

        self._sessions: list[Session] = []
        self._current_user_id: str | None = None

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def users(self) -> UserDirectory:
        return self._users

    @property
    def terminal_id(self) -> str:
        return self._terminal_id

    @property
    def idle_timeout_seconds(self) -> int:
        return self._idle_timeout

    @property
    def current_user(self) -> UserView | None:
        if self._current_user_id is None:
            return None
        return self._users.get(self._current_user_id)

    @property
    def is_authenticated(self) -> bool:
        return self._current_user_id is not None

    @property
    def sessions(self) -> list[Session]:
        return [replace(s) for s in self._sessions]

    def current_session(self) -> Session | None:
        """The active session of this terminal, if any."""
        session = self._active_session_for_terminal(self._terminal_id)
        return replace(session) if session else None

    # =========================================================================
    # LOGIN / LOGOUT
    # =========================================================================

    def login(self, code: str, password: str, terminal_id: str | None = None) -> bool:
        """
        Sign an employee in at terminal_id (this terminal by default).

        Returns False for an unknown code or a wrong password.

        Raises:
            AccountInactiveError: account is deactivated
            ConcurrentSessionError: employee is active at another terminal
        """
        terminal_id = terminal_id or self._terminal_id
        now = self._clock()

        user = self._users.authenticate(code, password)
        if user is None:
            logger.info("Rejected login for code %s at terminal %s", code, terminal_id)
            return False

        if not user.is_active:
            raise AccountInactiveError(
                "Employee account is inactive",
                details={"employee_id": user.id},
            )

        self._expire_stale_sessions(now)
        if self.is_user_active_elsewhere(user.id, terminal_id):
            raise ConcurrentSessionError(
                "Employee is already active at another terminal",
                details={"employee_id": user.id},
            )

        # Replace whatever session this terminal held
        self._sessions = [s for s in self._sessions if s.terminal_id != terminal_id]
        self._sessions.append(Session(
            terminal_id=terminal_id,
            employee_id=user.id,
            start_time=now,
            last_activity=now,
            is_active=True,
        ))

        user.last_login = now
        user.terminal_id = terminal_id
        self._terminal_id = terminal_id
        self._current_user_id = user.id
        logger.info("Employee %s signed in at terminal %s", user.code, terminal_id)
        return True

    def logout(self) -> None:
        """Close this terminal's session and unbind the user."""
        if self._current_user_id is None:
            return
        for session in self._sessions:
            if session.terminal_id == self._terminal_id:
                session.is_active = False
        logger.info("Employee %s signed out at terminal %s", self._current_user_id, self._terminal_id)
        self._current_user_id = None

    def is_user_active_elsewhere(self, user_id: str, terminal_id: str) -> bool:
        return any(
            s.employee_id == user_id and s.terminal_id != terminal_id and s.is_active
            for s in self._sessions
        )

    # =========================================================================
    # ACTIVITY / IDLE TIMEOUT
    # =========================================================================

    def record_activity(self) -> None:
        """Stamp last_activity on this terminal's session (input, pointer, cart change)."""
        if self._current_user_id is None:
            return
        now = self._clock()
        for session in self._sessions:
            if session.terminal_id == self._terminal_id and session.is_active:
                # never move backwards
                if now > session.last_activity:
                    session.last_activity = now

    def check_idle(self) -> IdleLogout | None:
        """
        Periodic idle check.

        Force-logs-out this terminal's user once idle time reaches the
        timeout and returns the notice to display. Sessions of other
        terminals past the timeout are marked inactive.
        """
        now = self._clock()
        notice = None
        current = self._active_session_for_terminal(self._terminal_id) if self._current_user_id else None
        if current is not None:
            idle = current.idle_seconds(now)
            if idle >= self._idle_timeout:
                notice = IdleLogout(
                    employee_id=current.employee_id,
                    terminal_id=current.terminal_id,
                    idle_seconds=idle,
                )
                logger.warning(
                    "Closing session of %s at terminal %s after %ss idle",
                    current.employee_id, current.terminal_id, idle,
                )
                self.logout()

        self._expire_stale_sessions(now)
        return notice

    def seconds_left(self) -> int:
        """Seconds before the idle timeout closes this terminal's session, floored at 0."""
        if self._current_user_id is None:
            return 0
        session = self._active_session_for_terminal(self._terminal_id)
        if session is None:
            return 0
        return max(0, self._idle_timeout - session.idle_seconds(self._clock()))

    # =========================================================================
    # STATE
    # =========================================================================

    def to_state(self) -> dict:
        return {
            "current_user_id": self._current_user_id,
            "terminal_id": self._terminal_id,
            "sessions": [s.to_dict() for s in self._sessions],
            "users": self._users.to_state(),
        }

    def load_state(self, state: dict) -> None:
        self._users.load_state(state.get("users") or [])
        self._sessions = [Session.from_dict(row) for row in state.get("sessions") or []]
        current = state.get("current_user_id")
        # a bound user without a live session here is not signed in
        if current and self._users.get_record(current) is not None:
            terminal = state.get("terminal_id") or self._terminal_id
            self._terminal_id = terminal
            self._current_user_id = current if self._active_session_for_terminal(terminal) else None
        else:
            self._current_user_id = None

    # =========================================================================
    # INTERNAL HELPERS
    # =========================================================================

    def _active_session_for_terminal(self, terminal_id: str) -> Session | None:
        for session in self._sessions:
            if session.terminal_id == terminal_id and session.is_active:
                return session
        return None

    def _expire_stale_sessions(self, now) -> None:
        for session in self._sessions:
            if session.terminal_id == self._terminal_id and self._current_user_id is not None:
                continue
            if session.is_active and session.idle_seconds(now) >= self._idle_timeout:
                session.is_active = False
                logger.info(
                    "Expired idle session of %s at terminal %s",
                    session.employee_id, session.terminal_id,
                )
