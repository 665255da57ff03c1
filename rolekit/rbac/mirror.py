"""
Adapter-owned cache of role definitions.

The mirror keeps a copy of every role the manager created so the registry
can be rebuilt if the host re-initializes it. It is advisory: the
registry stays authoritative.
"""

import copy
import logging
from typing import Any, Dict, Iterator, Mapping, Optional

from .capabilities import CapabilitySet, normalize_capabilities

logger = logging.getLogger(__name__)


class RegistryMirror:
    """Mapping of role -> {"name": str, "capabilities": {cap: bool}}."""

    def __init__(self):
        self._entries: Dict[str, Dict[str, Any]] = {}

    def __contains__(self, role: str) -> bool:
        return role in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))

    def get(self, role: str) -> Optional[Dict[str, Any]]:
        """Return a copy of the entry for ``role`` or None."""
        entry = self._entries.get(role)
        return copy.deepcopy(entry) if entry is not None else None

    def insert(self, role: str, name: str, capabilities: Optional[Mapping[str, Any]]) -> bool:
        """
        Add an entry if the role is not mirrored yet.

        Returns:
            True if an entry was inserted, False if one already existed
        """
        if role in self._entries:
            return False
        self._entries[role] = {
            "name": name,
            "capabilities": normalize_capabilities(capabilities),
        }
        return True

    def set_capabilities(self, role: str, capabilities: Optional[Mapping[str, Any]]) -> bool:
        """
        Replace the capability set of an existing entry.

        Returns:
            True if the entry existed and was updated
        """
        entry = self._entries.get(role)
        if entry is None:
            return False
        entry["capabilities"] = normalize_capabilities(capabilities)
        return True

    def get_capabilities(self, role: str) -> CapabilitySet:
        entry = self._entries.get(role)
        if entry is None:
            return {}
        return dict(entry["capabilities"])

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        """Deep copy of every entry, suitable for ``RoleRegistry.reinitialize``."""
        return copy.deepcopy(self._entries)

    def clear(self) -> None:
        self._entries.clear()
