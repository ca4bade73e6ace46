"""Per-session application state.

The role, workspace and operator id are created at login, replaced when the
user switches workspace and discarded at logout.  They travel in the Flask
session and are rebuilt for each request instead of living in module globals.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Any, MutableMapping

from vqcenter.constants import ROLE_MANAGER, ROLE_OPERATOR

_SESSION_KEYS = ("role", "workspace_id", "employee_id", "username")
_WORKSPACE_RE = re.compile(r"[^a-z0-9_-]+")


def normalize_workspace_id(value: Any, default: str = "default") -> str:
    """Lower-case slug used to partition the store (``Planta 1`` -> ``planta-1``)."""

    slug = _WORKSPACE_RE.sub("-", str(value or "").strip().lower()).strip("-")
    return slug or default


@dataclass(frozen=True)
class AppState:
    role: str
    workspace_id: str
    employee_id: str = ""
    username: str = ""

    @property
    def is_manager(self) -> bool:
        return self.role == ROLE_MANAGER

    @property
    def is_operator(self) -> bool:
        return self.role == ROLE_OPERATOR

    @classmethod
    def from_session(cls, session: MutableMapping[str, Any]) -> "AppState | None":
        role = session.get("role")
        workspace_id = session.get("workspace_id")
        if role not in (ROLE_OPERATOR, ROLE_MANAGER) or not workspace_id:
            return None
        return cls(
            role=role,
            workspace_id=workspace_id,
            employee_id=session.get("employee_id") or "",
            username=session.get("username") or "",
        )

    def save(self, session: MutableMapping[str, Any]) -> None:
        session["role"] = self.role
        session["workspace_id"] = self.workspace_id
        session["employee_id"] = self.employee_id
        session["username"] = self.username

    def switch_workspace(self, workspace_id: str) -> "AppState":
        return replace(self, workspace_id=normalize_workspace_id(workspace_id))

    @staticmethod
    def clear(session: MutableMapping[str, Any]) -> None:
        for key in _SESSION_KEYS:
            session.pop(key, None)
