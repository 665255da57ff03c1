"""
Role-Based Access Control (RBAC) module.

Provides the role manager, the registry and session collaborators it
drives, and declarative role provisioning from YAML.
"""

from .capabilities import (
    CapabilitySet,
    normalize_capabilities,
    normalize_capability_names,
    merge_capabilities,
    grant_all,
    deny_all,
    granted_capabilities,
    denied_capabilities,
)

from .registry import (
    # Errors
    RoleError,
    RoleNotFoundError,
    # Registry
    Role,
    RoleRegistry,
    InMemoryRoleRegistry,
)

from .mirror import RegistryMirror

from .session import (
    ActiveSession,
    InMemorySession,
    no_active_session,
)

from .roles import (
    RoleManager,
    # Global manager
    configure_role_manager,
    configure_role_manager_from_config,
    get_role_manager,
    reset_role_manager,
    # Functions
    get_role_capabilities,
    add_role,
    merge_role_capabilities,
    override_role_capabilities,
    duplicate_role,
    add_role_capabilities,
    remove_role_capabilities,
)

from .loader import (
    RoleConfigError,
    RoleProvisioningStep,
    RoleDefinitionsLoader,
)

__all__ = [
    # Capabilities
    "CapabilitySet",
    "normalize_capabilities",
    "normalize_capability_names",
    "merge_capabilities",
    "grant_all",
    "deny_all",
    "granted_capabilities",
    "denied_capabilities",
    # Registry
    "RoleError",
    "RoleNotFoundError",
    "Role",
    "RoleRegistry",
    "InMemoryRoleRegistry",
    "RegistryMirror",
    # Sessions
    "ActiveSession",
    "InMemorySession",
    "no_active_session",
    # Manager
    "RoleManager",
    "configure_role_manager",
    "configure_role_manager_from_config",
    "get_role_manager",
    "reset_role_manager",
    "get_role_capabilities",
    "add_role",
    "merge_role_capabilities",
    "override_role_capabilities",
    "duplicate_role",
    "add_role_capabilities",
    "remove_role_capabilities",
    # Provisioning
    "RoleConfigError",
    "RoleProvisioningStep",
    "RoleDefinitionsLoader",
]
