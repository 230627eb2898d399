"""Pure role-change rules.

Nothing here touches the database or the request, so the same checks run
on the server before a write and in the review client before a request.
"""
from dataclasses import dataclass
from typing import Optional

from ..errors import Forbidden, ValidationError

ROLES = ("student", "faculty", "recruiter", "admin")
MIN_REASON_LENGTH = 10

DEMOTION_REASON_MESSAGE = "Admin demotion requires a detailed reason (minimum 10 characters)"


@dataclass(frozen=True)
class RoleChangeDecision:
    current: str
    target: str
    is_demotion: bool
    requires_reason: bool


def validate_reason(reason: Optional[str]) -> bool:
    return bool(reason) and len(reason.strip()) >= MIN_REASON_LENGTH


def requires_reason(current: str, target: str) -> bool:
    return current == "admin" and target != "admin"


def check_role_change(current: str, target: str, actor_is_self: bool,
                      is_super_admin: bool = False, is_primary_admin: bool = False,
                      reason: Optional[str] = None, check_reason: bool = True) -> RoleChangeDecision:
    """Decide whether ``current`` may become ``target``.

    Raises ``Forbidden`` for self-changes and protected accounts and
    ``ValidationError`` for an unknown role or a missing demotion reason.
    ``check_reason=False`` skips the reason rule, for the first phase of a
    two-phase change where the reason is collected afterwards.
    """
    if actor_is_self:
        raise Forbidden("You cannot change your own role")
    if is_super_admin:
        raise Forbidden("Super admin role cannot be changed")
    if is_primary_admin:
        raise Forbidden("Primary admin role cannot be changed")
    if target not in ROLES:
        raise ValidationError(f"Invalid role: {target}")

    needs_reason = requires_reason(current, target)
    if needs_reason and check_reason and not validate_reason(reason):
        raise ValidationError(DEMOTION_REASON_MESSAGE)

    return RoleChangeDecision(current=current, target=target,
                              is_demotion=needs_reason, requires_reason=needs_reason)
