"""
Access Collaborators
====================

Capability predicates and the suspension switch guarding the engine's
entry points. The classification core never imports this module; only
the facade consults it, and only before any state is touched.
"""

from __future__ import annotations
from typing import Dict, Iterable, Optional, Set

from .contracts.base import (
    CallerId, ErrorCode, PermissionDeniedError, Role, SuspendedError,
)


class AccessPolicy:
    """
    Role registry. The owner holds every role and cannot lose ADMIN.
    """

    def __init__(self, owner: CallerId, trainers: Optional[Iterable[CallerId]] = None):
        self._owner = owner
        self._grants: Dict[Role, Set[str]] = {role: {owner.value} for role in Role}
        for trainer in trainers or ():
            self._grants[Role.TRAINER].add(trainer.value)

    @property
    def owner(self) -> CallerId:
        return self._owner

    def has_role(self, caller: CallerId, role: Role) -> bool:
        return caller.value in self._grants[role]

    def require_role(self, caller: CallerId, role: Role) -> None:
        if not self.has_role(caller, role):
            raise PermissionDeniedError.of(
                ErrorCode.PERMISSION_DENIED,
                f"{caller.value} lacks role {role.value}",
                caller=caller.value,
                role=role.value
            )

    def grant(self, admin: CallerId, caller: CallerId, role: Role) -> None:
        self.require_role(admin, Role.ADMIN)
        self._grants[role].add(caller.value)

    def revoke(self, admin: CallerId, caller: CallerId, role: Role) -> None:
        self.require_role(admin, Role.ADMIN)
        if caller == self._owner and role == Role.ADMIN:
            raise PermissionDeniedError.of(
                ErrorCode.PERMISSION_DENIED,
                "the owner's admin role cannot be revoked",
                caller=caller.value
            )
        self._grants[role].discard(caller.value)


class SuspensionSwitch:
    """Pause/resume kill-switch."""

    def __init__(self, paused: bool = False):
        self._paused = paused

    @property
    def paused(self) -> bool:
        return self._paused

    def pause(self) -> None:
        self._paused = True

    def unpause(self) -> None:
        self._paused = False

    def require_active(self, operation: str) -> None:
        if self._paused:
            raise SuspendedError.of(
                ErrorCode.SYSTEM_SUSPENDED,
                f"engine is paused; {operation} rejected",
                operation=operation
            )
