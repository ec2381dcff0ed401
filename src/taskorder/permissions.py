"""Member roles and the edit check that gates dragging and order seeding."""

from __future__ import annotations

from enum import Enum
from typing import Mapping, Optional


class MemberRole(str, Enum):
    OWNER = "owner"
    EDITOR = "editor"
    VIEWER = "viewer"


def resolve_member_role(
    owner_id: Optional[str],
    member_roles: Optional[Mapping[str, str]],
    user_id: Optional[str],
) -> MemberRole:
    """Role of *user_id* in a project.

    Anonymous users and missing projects are viewers; members without an
    explicit role default to editor.
    """
    if not owner_id or not user_id:
        return MemberRole.VIEWER
    if owner_id == user_id:
        return MemberRole.OWNER
    raw = (member_roles or {}).get(user_id)
    if raw is None:
        return MemberRole.EDITOR
    try:
        return MemberRole(raw)
    except ValueError:
        return MemberRole.VIEWER


def can_edit_content(role: MemberRole) -> bool:
    return role != MemberRole.VIEWER
