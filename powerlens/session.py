from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Optional

from .errors import InvalidInputError
from .settings import settings

logger = logging.getLogger(__name__)


class Role(str, Enum):
    ADMIN = "Admin"
    HOUSEHOLD_USER = "Household User"

    @classmethod
    def parse(cls, value: str) -> "Role":
        for role in cls:
            if role.value.lower() == str(value).strip().lower():
                return role
        raise InvalidInputError(f"Unknown role: {value!r}")


SHARED_SECTIONS = {"analysis", "reports", "settings"}


def landing_section(role: Role) -> str:
    if role is Role.ADMIN:
        return "admin"
    return "prediction"


def can_access(role: Role, section: str) -> bool:
    if section == "admin":
        return role is Role.ADMIN
    if section == "prediction":
        return role is Role.HOUSEHOLD_USER
    return section in SHARED_SECTIONS


@dataclass(frozen=True)
class DashboardSession:
    role: Role
    household_id: str

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    def with_role(self, role: Role) -> "DashboardSession":
        return replace(self, role=role)


def new_household_id() -> str:
    return f"hh-{int(time.time() * 1000)}"


class SessionStore:
    """Keeps the household id stable across restarts and holds the active role."""

    def __init__(self, path: Optional[str] = None, default_role: Optional[str] = None) -> None:
        self._path = Path(path or settings.session_path)
        household_id = self._load_household_id()
        if household_id is None:
            household_id = new_household_id()
            self._save_household_id(household_id)
        self._session = DashboardSession(
            role=Role.parse(default_role or settings.default_role),
            household_id=household_id,
        )

    @property
    def current(self) -> DashboardSession:
        return self._session

    def switch_role(self, role: Role) -> DashboardSession:
        self._session = self._session.with_role(role)
        logger.info("Role switched to %s", role.value)
        return self._session

    def _load_household_id(self) -> Optional[str]:
        try:
            if self._path.exists():
                raw = json.loads(self._path.read_text(encoding="utf-8"))
                stored = str(raw.get("household_id") or "").strip()
                return stored or None
        except (OSError, ValueError, AttributeError) as exc:
            logger.warning("Ignoring unreadable session file %s: %s", self._path, exc)
        return None

    def _save_household_id(self, household_id: str) -> None:
        try:
            self._path.write_text(json.dumps({"household_id": household_id}, indent=2), encoding="utf-8")
        except OSError as exc:
            # Keep the generated id for this process only
            logger.warning("Could not persist household id to %s: %s", self._path, exc)
