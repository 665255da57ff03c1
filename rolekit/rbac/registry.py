"""
Authoritative role registry.

The registry is owned by the host platform. ``RoleRegistry`` is the
interface the role manager needs from it; ``InMemoryRoleRegistry`` is a
process-local implementation for hosts without their own role store.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterator, Mapping, Optional

from .capabilities import CapabilitySet, normalize_capabilities

logger = logging.getLogger(__name__)


class RoleError(Exception):
    """Base class for role management errors."""
    pass


class RoleNotFoundError(RoleError):
    """Raised in strict mode when an operation targets an unknown role."""

    def __init__(self, role: str):
        self.role = role
        super().__init__(f"Role not found: {role}")


# ============================================================================
# Role
# ============================================================================

class Role:
    """
    A named bundle of capabilities.

    Capabilities are mutated one at a time with ``add_cap``/``remove_cap``
    or replaced wholesale with ``set_capabilities``.
    """

    def __init__(self, role: str, name: str, capabilities: Optional[Mapping[str, Any]] = None):
        if not role:
            raise ValueError("role identifier cannot be empty")
        self.role = role
        self.name = name
        self.capabilities: CapabilitySet = normalize_capabilities(capabilities)

    def add_cap(self, cap: str, grant: bool = True) -> None:
        self.capabilities[cap] = bool(grant)

    def remove_cap(self, cap: str) -> None:
        # Revoking keeps the key as an explicit deny.
        self.capabilities[cap] = False

    def set_capabilities(self, capabilities: Optional[Mapping[str, Any]]) -> None:
        self.capabilities = normalize_capabilities(capabilities)

    def has_cap(self, cap: str) -> bool:
        return self.capabilities.get(cap, False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "capabilities": dict(sorted(self.capabilities.items())),
        }

    def __repr__(self) -> str:
        return f"Role(role={self.role!r}, name={self.name!r}, capabilities={self.capabilities!r})"


# ============================================================================
# Registry Interface
# ============================================================================

class RoleRegistry(ABC):
    """Abstract base class for the authoritative role store."""

    @abstractmethod
    def get_role(self, role: str) -> Optional[Role]:
        """
        Look up a role by identifier.

        Returns:
            The live Role object, or None if the role does not exist
        """
        pass

    @abstractmethod
    def add_role(self, role: str, name: str, capabilities: Optional[Mapping[str, Any]] = None) -> Optional[Role]:
        """
        Create a role.

        Returns:
            The new Role, or None if a role with that identifier already exists
        """
        pass

    @abstractmethod
    def roles(self) -> Iterator[Role]:
        """Iterate over all registered roles."""
        pass


# ============================================================================
# In-Memory Registry
# ============================================================================

class InMemoryRoleRegistry(RoleRegistry):
    """Process-local role registry."""

    def __init__(self, definitions: Optional[Mapping[str, Mapping[str, Any]]] = None):
        self._roles: Dict[str, Role] = {}
        if definitions:
            self.reinitialize(definitions)

    def get_role(self, role: str) -> Optional[Role]:
        return self._roles.get(role)

    def add_role(self, role: str, name: str, capabilities: Optional[Mapping[str, Any]] = None) -> Optional[Role]:
        if role in self._roles:
            logger.debug(f"Role {role} already registered, not re-adding")
            return None
        role_obj = Role(role, name, capabilities)
        self._roles[role] = role_obj
        return role_obj

    def remove_role(self, role: str) -> bool:
        return self._roles.pop(role, None) is not None

    def roles(self) -> Iterator[Role]:
        return iter(list(self._roles.values()))

    def reinitialize(self, definitions: Mapping[str, Mapping[str, Any]]) -> None:
        """
        Discard all roles and reload them from ``{role: {"name", "capabilities"}}``.
        """
        self._roles = {}
        for role, definition in definitions.items():
            self._roles[role] = Role(
                role,
                definition.get("name", role),
                definition.get("capabilities"),
            )
        logger.info(f"Role registry reinitialized with {len(self._roles)} roles")

    def __contains__(self, role: str) -> bool:
        return role in self._roles

    def __len__(self) -> int:
        return len(self._roles)
