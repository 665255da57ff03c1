"""
Active session collaborators.

The host owns session creation and teardown. The role manager only asks
whether the current session holds a role and, if so, tells it to
recompute its cached capabilities.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable, Iterable, List, Optional

from .capabilities import CapabilitySet
from .registry import RoleRegistry

logger = logging.getLogger(__name__)


class ActiveSession(ABC):
    """The currently acting entity with a cached capability snapshot."""

    @abstractmethod
    def satisfies(self, role: str) -> bool:
        """True if the session holds ``role`` or is granted it as a capability."""
        pass

    @abstractmethod
    def refresh_capabilities(self) -> CapabilitySet:
        """Recompute the cached capability snapshot from the registry."""
        pass


SessionProvider = Callable[[], Optional[ActiveSession]]


def no_active_session() -> Optional[ActiveSession]:
    """Session provider for contexts without a logged-in actor."""
    return None


class InMemorySession(ActiveSession):
    """
    Session backed by an in-process registry.

    The snapshot is built by folding the capability sets of every assigned
    role in order, then applying per-session overrides. Later values win, so
    an explicit deny on a later role hides an earlier grant.
    """

    def __init__(
        self,
        registry: RoleRegistry,
        roles: Iterable[str],
        user_id: Optional[str] = None,
        capability_overrides: Optional[CapabilitySet] = None,
    ):
        self.registry = registry
        self.roles: List[str] = list(roles)
        self.user_id = user_id
        self.capability_overrides: CapabilitySet = dict(capability_overrides or {})
        self.refresh_count = 0
        self.allcaps: CapabilitySet = self._compute()

    def _compute(self) -> CapabilitySet:
        allcaps: CapabilitySet = {}
        for role in self.roles:
            role_obj = self.registry.get_role(role)
            if role_obj is not None:
                allcaps.update(role_obj.capabilities)
        allcaps.update(self.capability_overrides)
        for role in self.roles:
            allcaps[role] = True
        return allcaps

    def satisfies(self, role: str) -> bool:
        return role in self.roles or self.allcaps.get(role, False)

    def can(self, capability: str) -> bool:
        return self.allcaps.get(capability, False)

    def refresh_capabilities(self) -> CapabilitySet:
        self.allcaps = self._compute()
        self.refresh_count += 1
        logger.debug(f"Refreshed capabilities for session user_id={self.user_id} roles={self.roles}")
        return dict(self.allcaps)

    def __repr__(self) -> str:
        return f"InMemorySession(user_id={self.user_id!r}, roles={self.roles!r})"
