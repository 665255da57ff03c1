"""
Tests for the in-memory registry, the registry mirror and sessions.
"""

import pytest

from rolekit.rbac import (
    Role,
    InMemoryRoleRegistry,
    InMemorySession,
    RegistryMirror,
    no_active_session,
)


# ============================================================================
# Role
# ============================================================================

class TestRole:
    """Test per-capability role primitives."""

    def test_add_and_remove_cap(self):
        role = Role("editor", "Editor", {"edit_posts": True})
        role.add_cap("edit_pages")
        role.remove_cap("edit_posts")

        assert role.capabilities == {"edit_posts": False, "edit_pages": True}
        assert role.has_cap("edit_pages") is True
        assert role.has_cap("edit_posts") is False
        assert role.has_cap("missing") is False

    def test_add_cap_with_deny_flag(self):
        role = Role("editor", "Editor")
        role.add_cap("moderate_comments", grant=False)
        assert role.capabilities == {"moderate_comments": False}

    def test_set_capabilities_replaces(self):
        role = Role("editor", "Editor", {"a": True, "b": True})
        role.set_capabilities({"c": 1})
        assert role.capabilities == {"c": True}

    def test_capabilities_are_copied_on_construction(self):
        caps = {"a": True}
        role = Role("editor", "Editor", caps)
        role.add_cap("b")
        assert caps == {"a": True}

    def test_empty_identifier_rejected(self):
        with pytest.raises(ValueError):
            Role("", "Nameless")


# ============================================================================
# Registry
# ============================================================================

class TestInMemoryRoleRegistry:
    """Test the in-memory registry."""

    def test_add_and_get(self):
        registry = InMemoryRoleRegistry()
        role = registry.add_role("editor", "Editor", {"edit_posts": True})

        assert registry.get_role("editor") is role
        assert "editor" in registry
        assert len(registry) == 1

    def test_add_existing_returns_none(self):
        registry = InMemoryRoleRegistry()
        registry.add_role("editor", "Editor", {"edit_posts": True})

        assert registry.add_role("editor", "Other", {}) is None
        assert registry.get_role("editor").name == "Editor"

    def test_get_unknown_returns_none(self):
        assert InMemoryRoleRegistry().get_role("missing") is None

    def test_remove_role(self):
        registry = InMemoryRoleRegistry({"editor": {"name": "Editor", "capabilities": {}}})
        assert registry.remove_role("editor") is True
        assert registry.remove_role("editor") is False

    def test_reinitialize_discards_existing_roles(self):
        registry = InMemoryRoleRegistry({"editor": {"name": "Editor", "capabilities": {"a": True}}})
        registry.reinitialize({"author": {"capabilities": {"b": True}}})

        assert registry.get_role("editor") is None
        assert registry.get_role("author").name == "author"
        assert registry.get_role("author").capabilities == {"b": True}

    def test_roles_iteration_is_a_snapshot(self):
        registry = InMemoryRoleRegistry({"a": {"name": "A"}, "b": {"name": "B"}})
        for role in registry.roles():
            registry.remove_role(role.role)
        assert len(registry) == 0


# ============================================================================
# Mirror
# ============================================================================

class TestRegistryMirror:
    """Test the advisory mirror."""

    def test_insert_only_when_absent(self):
        mirror = RegistryMirror()
        assert mirror.insert("x", "X", {"a": True}) is True
        assert mirror.insert("x", "Other", {"b": True}) is False
        assert mirror.get("x") == {"name": "X", "capabilities": {"a": True}}

    def test_set_capabilities_requires_entry(self):
        mirror = RegistryMirror()
        assert mirror.set_capabilities("x", {"a": True}) is False
        assert "x" not in mirror

        mirror.insert("x", "X", {})
        assert mirror.set_capabilities("x", {"a": True}) is True
        assert mirror.get_capabilities("x") == {"a": True}

    def test_get_returns_copy(self):
        mirror = RegistryMirror()
        mirror.insert("x", "X", {"a": True})

        entry = mirror.get("x")
        entry["capabilities"]["a"] = False
        snapshot = mirror.snapshot()
        snapshot["x"]["name"] = "changed"

        assert mirror.get("x") == {"name": "X", "capabilities": {"a": True}}

    def test_missing_entry(self):
        mirror = RegistryMirror()
        assert mirror.get("x") is None
        assert mirror.get_capabilities("x") == {}

    def test_clear(self):
        mirror = RegistryMirror()
        mirror.insert("x", "X", {})
        mirror.insert("y", "Y", {})
        assert sorted(mirror) == ["x", "y"]

        mirror.clear()
        assert len(mirror) == 0


# ============================================================================
# Sessions
# ============================================================================

class TestInMemorySession:
    """Test capability snapshots of the in-memory session."""

    @pytest.fixture
    def registry(self):
        return InMemoryRoleRegistry({
            "author": {"name": "Author", "capabilities": {"publish_posts": True, "upload_files": True}},
            "restricted": {"name": "Restricted", "capabilities": {"upload_files": False}},
        })

    def test_snapshot_includes_role_caps_and_role_names(self, registry):
        session = InMemorySession(registry, ["author"])
        assert session.can("publish_posts") is True
        assert session.satisfies("author") is True
        assert session.satisfies("restricted") is False

    def test_later_role_deny_wins(self, registry):
        session = InMemorySession(registry, ["author", "restricted"])
        assert session.can("upload_files") is False

    def test_overrides_apply_last(self, registry):
        session = InMemorySession(
            registry, ["author"], capability_overrides={"publish_posts": False, "edit_theme": True}
        )
        assert session.can("publish_posts") is False
        assert session.satisfies("edit_theme") is True

    def test_snapshot_is_stale_until_refreshed(self, registry):
        session = InMemorySession(registry, ["author"])
        registry.get_role("author").add_cap("edit_others_posts")

        assert session.can("edit_others_posts") is False
        caps = session.refresh_capabilities()
        assert caps["edit_others_posts"] is True
        assert session.can("edit_others_posts") is True
        assert session.refresh_count == 1

    def test_unknown_roles_are_ignored(self, registry):
        session = InMemorySession(registry, ["ghost"])
        assert session.allcaps == {"ghost": True}

    def test_no_active_session_provider(self):
        assert no_active_session() is None
