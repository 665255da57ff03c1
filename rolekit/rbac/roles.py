"""
Role management on top of the host role registry.

Creates roles, merges or overrides their capabilities, duplicates roles
and adds/removes single capabilities. Every change is written to the
authoritative registry and copied into a ``RegistryMirror`` so that it
survives a registry re-initialization. When the active session holds the
role that just changed, its capability snapshot is refreshed right away.

Operations on unknown roles are silent no-ops unless the manager is
created with ``strict=True``, in which case they raise
``RoleNotFoundError``.

Usage:
    manager = RoleManager(registry)
    manager.add_role("super-editor", "Super Editor", {"level_0": True})
    manager.merge_role_capabilities("author", {"publish_posts": False})
    manager.duplicate_role("administrator", "station-administrator",
                           "Station Administrator", {"manage_categories": False})
    manager.add_role_capabilities("contributor", ["upload_files"])
"""

import logging
import threading
from typing import Any, Dict, Mapping, Optional

from ..metrics import (
    audit_role_change,
    record_registry_size,
    record_role_mutation,
    record_session_refresh,
    time_operation,
)
from .capabilities import (
    CapabilityNames,
    CapabilitySet,
    deny_all,
    grant_all,
    merge_capabilities,
    normalize_capabilities,
)
from .mirror import RegistryMirror
from .registry import InMemoryRoleRegistry, RoleNotFoundError, RoleRegistry
from .session import SessionProvider, no_active_session

logger = logging.getLogger(__name__)


class RoleManager:
    """
    Keeps the role registry, its mirror and the active session in sync.

    All public operations run under one re-entrant lock, so a merge is
    atomic from the point of view of other callers even though the
    registry is updated one capability at a time.
    """

    def __init__(
        self,
        registry: RoleRegistry,
        mirror: Optional[RegistryMirror] = None,
        session_provider: Optional[SessionProvider] = None,
        strict: bool = False,
        refresh_sessions: bool = True,
        use_mirror: bool = True,
    ):
        """
        Initialize role manager.

        Args:
            registry: Authoritative role registry
            mirror: Mirror to keep in sync (a fresh one is created if omitted)
            session_provider: Callable returning the active session or None
            strict: Raise RoleNotFoundError instead of silently ignoring unknown roles
            refresh_sessions: Refresh the active session after mutations
            use_mirror: Disable to skip mirroring entirely
        """
        self.registry = registry
        if use_mirror:
            self.mirror: Optional[RegistryMirror] = mirror if mirror is not None else RegistryMirror()
        else:
            self.mirror = None
        self.session_provider: SessionProvider = session_provider or no_active_session
        self.strict = strict
        self.refresh_sessions = refresh_sessions
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_role_capabilities(self, role: str) -> CapabilitySet:
        """
        Get the capability set of a role.

        Args:
            role: Role identifier

        Returns:
            Copy of the role's capabilities, or {} if the role is unknown
        """
        with self._lock:
            role_obj = self.registry.get_role(role)
            if role_obj is None or not role_obj.capabilities:
                return {}
            return dict(role_obj.capabilities)

    def has_capability(self, role: str, capability: str) -> bool:
        """True only if the role explicitly grants the capability."""
        return self.get_role_capabilities(role).get(capability, False)

    def list_roles(self) -> Dict[str, Dict[str, Any]]:
        """List all registry roles with their names and capabilities."""
        with self._lock:
            return {role_obj.role: role_obj.to_dict() for role_obj in self.registry.roles()}

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_role(self, role: str, name: str, capabilities: Optional[Mapping[str, Any]]) -> None:
        """
        Add a new role, or merge capabilities into it if it already exists.

        An existing role keeps its display name; ``name`` is only used on
        creation.
        """
        self._validate_role(role)
        caps = normalize_capabilities(capabilities)

        with self._lock:
            if self.registry.get_role(role) is not None:
                logger.debug(f"Role {role} already exists, merging capabilities instead")
                self.merge_role_capabilities(role, caps)
                return

            with time_operation("rbac.add_role"):
                self.registry.add_role(role, name, caps)
                if self.mirror is not None:
                    self.mirror.insert(role, name, caps)

            logger.info(f"Added role {role} ({name}) with {len(caps)} capabilities")
            self._after_mutation("add", role, caps)

    def merge_role_capabilities(self, role: str, capabilities: Optional[Mapping[str, Any]]) -> None:
        """
        Add new or change existing capabilities of a role.

        Incoming values win on collision; capabilities not mentioned are
        left as they are.
        """
        caps = normalize_capabilities(capabilities)

        with self._lock:
            role_obj = self.registry.get_role(role)
            if role_obj is None:
                self._missing_role("merge", role)
                return

            with time_operation("rbac.merge_role_capabilities"):
                merged = merge_capabilities(self.get_role_capabilities(role), caps)
                for cap, granted in merged.items():
                    if granted:
                        role_obj.add_cap(cap)
                    else:
                        role_obj.remove_cap(cap)

                if self.mirror is not None:
                    self.mirror.set_capabilities(role, merged)

            logger.debug(f"Merged {len(caps)} capabilities into role {role}")
            self._after_mutation("merge", role, merged)

    def override_role_capabilities(self, role: str, capabilities: Optional[Mapping[str, Any]]) -> None:
        """Replace the whole capability set of a role."""
        caps = normalize_capabilities(capabilities)

        with self._lock:
            role_obj = self.registry.get_role(role)
            if role_obj is None:
                self._missing_role("override", role)
                return

            with time_operation("rbac.override_role_capabilities"):
                role_obj.set_capabilities(caps)
                if self.mirror is not None:
                    self.mirror.set_capabilities(role, caps)

            logger.info(f"Overrode capabilities of role {role} ({len(caps)} capabilities)")
            self._after_mutation("override", role, caps)

    def duplicate_role(
        self,
        source_role: str,
        target_role: str,
        target_name: str,
        override_capabilities: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """
        Copy a role's capabilities into another role, applying overrides.

        An unknown source contributes no capabilities. If the target
        already exists the result is merged into it, like ``add_role``.
        """
        with self._lock:
            caps = merge_capabilities(
                self.get_role_capabilities(source_role),
                override_capabilities,
            )
            logger.debug(f"Duplicating role {source_role} into {target_role}")
            self.add_role(target_role, target_name, caps)

    def add_role_capabilities(self, role: str, capability_names: CapabilityNames) -> None:
        """Grant each named capability to a role."""
        self.merge_role_capabilities(role, grant_all(capability_names))

    def remove_role_capabilities(self, role: str, capability_names: CapabilityNames) -> None:
        """Explicitly deny each named capability on a role."""
        self.merge_role_capabilities(role, deny_all(capability_names))

    def restore_from_mirror(self) -> int:
        """
        Re-apply mirrored definitions after the registry was re-initialized.

        Roles missing from the registry are recreated; roles that exist get
        their mirrored capability set back. The active session is refreshed
        once, after every mirrored role has been written back.

        Returns:
            Number of roles restored
        """
        if self.mirror is None:
            logger.warning("restore_from_mirror called without a mirror, nothing to restore")
            return 0

        restored = []
        with self._lock:
            for role, entry in self.mirror.snapshot().items():
                role_obj = self.registry.get_role(role)
                if role_obj is None:
                    self.registry.add_role(role, entry["name"], entry["capabilities"])
                else:
                    role_obj.set_capabilities(entry["capabilities"])
                restored.append(role)
                self._after_mutation("restore", role, entry["capabilities"], refresh=False)

            logger.info(f"Restored {len(restored)} roles from mirror")
            for role in restored:
                if self._refresh_active_session(role):
                    break

        return len(restored)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _validate_role(self, role: str) -> None:
        if not role or not isinstance(role, str):
            raise ValueError(f"Invalid role identifier: {role!r}")

    def _missing_role(self, operation: str, role: str) -> None:
        record_role_mutation(operation, role, applied=False)
        if self.strict:
            raise RoleNotFoundError(role)
        logger.debug(f"Role {role} does not exist, skipping {operation}")

    def _after_mutation(
        self,
        operation: str,
        role: str,
        capabilities: CapabilitySet,
        refresh: bool = True,
    ) -> None:
        record_role_mutation(operation, role)
        record_registry_size(
            sum(1 for _ in self.registry.roles()),
            len(self.mirror) if self.mirror is not None else 0,
        )
        audit_role_change(operation, role, capabilities)
        if refresh:
            self._refresh_active_session(role)

    def _refresh_active_session(self, role: str) -> bool:
        """
        Refresh the active session's capabilities if it holds ``role``.

        A session whose snapshot was built before the role changed would
        otherwise keep the stale capabilities until it ends.

        Returns:
            True if a refresh was performed
        """
        if not self.refresh_sessions:
            return False

        session = self.session_provider()
        if session is None or not session.satisfies(role):
            return False

        try:
            session.refresh_capabilities()
        except Exception as e:
            logger.error(f"Error refreshing session capabilities for role {role}: {e}", exc_info=True)
            raise

        record_session_refresh(role)
        return True


# ============================================================================
# Global Manager Instance
# ============================================================================

_global_manager: Optional[RoleManager] = None


def get_role_manager() -> RoleManager:
    """
    Get the global role manager instance.

    Returns:
        Global RoleManager, created over an in-memory registry if none was configured
    """
    global _global_manager

    if _global_manager is None:
        logger.warning("Using default role manager with in-memory registry (not configured)")
        _global_manager = RoleManager(InMemoryRoleRegistry())

    return _global_manager


def configure_role_manager(
    registry: Optional[RoleRegistry] = None,
    session_provider: Optional[SessionProvider] = None,
    strict: bool = False,
    refresh_sessions: bool = True,
    use_mirror: bool = True,
) -> RoleManager:
    """
    Configure the global role manager.

    Args:
        registry: Host role registry (in-memory registry if omitted)
        session_provider: Callable returning the active session or None
        strict: Raise on unknown roles
        refresh_sessions: Refresh the active session after mutations
        use_mirror: Keep a registry mirror

    Returns:
        Configured RoleManager instance
    """
    global _global_manager

    _global_manager = RoleManager(
        registry if registry is not None else InMemoryRoleRegistry(),
        session_provider=session_provider,
        strict=strict,
        refresh_sessions=refresh_sessions,
        use_mirror=use_mirror,
    )

    logger.info("Configured global role manager")
    return _global_manager


def configure_role_manager_from_config(
    cfg: Dict[str, Any],
    registry: Optional[RoleRegistry] = None,
    session_provider: Optional[SessionProvider] = None,
) -> RoleManager:
    """
    Configure the global role manager from ``config.load_config()`` output.

    If ``ROLES_DEFINITIONS_PATH`` is set, the role definitions file is
    applied to the new manager.
    """
    from .loader import RoleDefinitionsLoader

    manager = configure_role_manager(
        registry=registry,
        session_provider=session_provider,
        strict=cfg.get("ROLES_STRICT", False),
        refresh_sessions=cfg.get("ROLES_REFRESH_SESSION", True),
        use_mirror=cfg.get("ROLES_MIRROR_ENABLED", True),
    )

    definitions_path = cfg.get("ROLES_DEFINITIONS_PATH")
    if definitions_path:
        loader = RoleDefinitionsLoader(definitions_path, strict=manager.strict)
        loader.apply(manager)

    return manager


def reset_role_manager():
    """Reset the global role manager (useful for testing)."""
    global _global_manager
    _global_manager = None


# ============================================================================
# Module-Level Helpers
# ============================================================================

def get_role_capabilities(role: str) -> CapabilitySet:
    """Get a list of capabilities for a role."""
    return get_role_manager().get_role_capabilities(role)


def add_role(role: str, name: str, capabilities: Optional[Mapping[str, Any]]) -> None:
    """
    Add a new role.

    Usage:
        add_role("super-editor", "Super Editor", {"level_0": True})
    """
    get_role_manager().add_role(role, name, capabilities)


def merge_role_capabilities(role: str, capabilities: Optional[Mapping[str, Any]]) -> None:
    """
    Add new or change existing capabilities for a given role.

    Usage:
        merge_role_capabilities("author", {"publish_posts": False})
    """
    get_role_manager().merge_role_capabilities(role, capabilities)


def override_role_capabilities(role: str, capabilities: Optional[Mapping[str, Any]]) -> None:
    """
    Completely override capabilities for a given role.

    Usage:
        override_role_capabilities("editor", {"level_0": False})
    """
    get_role_manager().override_role_capabilities(role, capabilities)


def duplicate_role(
    source_role: str,
    target_role: str,
    target_name: str,
    override_capabilities: Optional[Mapping[str, Any]] = None,
) -> None:
    """
    Duplicate an existing role and modify some capabilities.

    Usage:
        duplicate_role("administrator", "station-administrator",
                       "Station Administrator", {"manage_categories": False})
    """
    get_role_manager().duplicate_role(source_role, target_role, target_name, override_capabilities)


def add_role_capabilities(role: str, capability_names: CapabilityNames) -> None:
    """
    Add capabilities to an existing role.

    Usage:
        add_role_capabilities("contributor", ["upload_files"])
    """
    get_role_manager().add_role_capabilities(role, capability_names)


def remove_role_capabilities(role: str, capability_names: CapabilityNames) -> None:
    """
    Remove capabilities from an existing role.

    Usage:
        remove_role_capabilities("author", ["publish_posts"])
    """
    get_role_manager().remove_role_capabilities(role, capability_names)
