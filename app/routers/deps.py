# app/routers/deps.py
"""
Requester identity for the HTTP layer.
Authentication happens upstream; the gateway forwards the resolved user id and
role as X-User-Id / X-User-Role headers.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Header

PRIVILEGED_ROLES = ("admin", "staff")


@dataclass
class Requester:
    user_id: Optional[int]
    role: Optional[str]

    @property
    def is_admin_or_staff(self) -> bool:
        return self.role in PRIVILEGED_ROLES


def get_requester(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> Requester:
    user_id = int(x_user_id) if x_user_id and x_user_id.strip().isdigit() else None
    role = x_user_role.strip().lower() if x_user_role else None
    return Requester(user_id=user_id, role=role)
