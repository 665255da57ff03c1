"""
Tests for the global role manager and module-level helpers.
"""

import pytest

from rolekit.rbac import (
    InMemoryRoleRegistry,
    InMemorySession,
    RoleNotFoundError,
    configure_role_manager,
    configure_role_manager_from_config,
    get_role_manager,
    reset_role_manager,
    get_role_capabilities,
    add_role,
    merge_role_capabilities,
    override_role_capabilities,
    duplicate_role,
    add_role_capabilities,
    remove_role_capabilities,
)


@pytest.fixture(autouse=True)
def clean_manager():
    """Reset the global manager around each test."""
    reset_role_manager()
    yield
    reset_role_manager()


class TestGlobalManager:
    """Test configure/get/reset of the global manager."""

    def test_default_manager_is_created_lazily(self):
        manager = get_role_manager()
        assert manager is get_role_manager()
        assert isinstance(manager.registry, InMemoryRoleRegistry)

    def test_configure_replaces_manager(self):
        registry = InMemoryRoleRegistry()
        manager = configure_role_manager(registry=registry, strict=True)

        assert get_role_manager() is manager
        assert manager.registry is registry
        assert manager.strict is True

    def test_reset(self):
        first = get_role_manager()
        reset_role_manager()
        assert get_role_manager() is not first


class TestModuleHelpers:
    """Test the module-level helpers against the global manager."""

    def test_full_workflow(self):
        configure_role_manager(registry=InMemoryRoleRegistry())

        add_role("x", "X", {"a": True})
        add_role("x", "X2", {"b": True})
        assert get_role_capabilities("x") == {"a": True, "b": True}

        merge_role_capabilities("x", {"a": False})
        assert get_role_capabilities("x") == {"a": False, "b": True}

        override_role_capabilities("x", {"c": True})
        assert get_role_capabilities("x") == {"c": True}

        duplicate_role("x", "y", "Y", {"d": True})
        assert get_role_capabilities("y") == {"c": True, "d": True}

        add_role_capabilities("y", ["e"])
        assert get_role_capabilities("y")["e"] is True
        remove_role_capabilities("y", ["e"])
        assert get_role_capabilities("y")["e"] is False

        assert get_role_capabilities("x") == {"c": True}

    def test_session_refreshed_through_helpers(self):
        registry = InMemoryRoleRegistry({"author": {"name": "Author", "capabilities": {}}})
        session = InMemorySession(registry, ["author"])
        configure_role_manager(registry=registry, session_provider=lambda: session)

        add_role_capabilities("author", "upload_files")

        assert session.can("upload_files") is True


class TestConfigureFromConfig:
    """Test building the global manager from load_config() output."""

    def test_flags_are_applied(self):
        manager = configure_role_manager_from_config({
            "ROLES_STRICT": True,
            "ROLES_MIRROR_ENABLED": False,
            "ROLES_REFRESH_SESSION": False,
            "ROLES_DEFINITIONS_PATH": None,
        })

        assert manager.strict is True
        assert manager.mirror is None
        assert manager.refresh_sessions is False
        with pytest.raises(RoleNotFoundError):
            merge_role_capabilities("ghost", {"a": True})

    def test_definitions_file_is_applied(self, tmp_path):
        path = tmp_path / "roles.yaml"
        path.write_text(
            "roles:\n"
            "  - action: add\n"
            "    role: super-editor\n"
            "    name: Super Editor\n"
            "    capabilities: {level_0: true}\n"
        )

        configure_role_manager_from_config({"ROLES_DEFINITIONS_PATH": str(path)})

        assert get_role_capabilities("super-editor") == {"level_0": True}
        assert get_role_manager().mirror.get("super-editor")["name"] == "Super Editor"
