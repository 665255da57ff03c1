"""
Capability set helpers.

A capability set maps capability names to a binary grant flag:
True grants the capability, False explicitly denies it, and a missing
key means the role does not say anything about it.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Union
import logging

logger = logging.getLogger(__name__)


CapabilitySet = Dict[str, bool]
CapabilityNames = Union[str, Iterable[str]]


# ============================================================================
# Normalization
# ============================================================================

def normalize_capabilities(capabilities: Optional[Mapping[str, Any]]) -> CapabilitySet:
    """
    Coerce a capability mapping into a fresh ``{name: bool}`` dict.

    Args:
        capabilities: Mapping of capability name to grant flag, or None

    Returns:
        New dict with every value coerced to bool ({} for None)

    Raises:
        ValueError: If capabilities is not a mapping or a name is empty

    Examples:
        >>> normalize_capabilities({"edit_posts": 1, "delete_posts": 0})
        {'edit_posts': True, 'delete_posts': False}
        >>> normalize_capabilities(None)
        {}
    """
    if capabilities is None:
        return {}

    if not isinstance(capabilities, Mapping):
        raise ValueError(
            f"capabilities must be a mapping of name -> bool, got {type(capabilities).__name__}"
        )

    normalized: CapabilitySet = {}
    for cap, granted in capabilities.items():
        if not cap or not isinstance(cap, str):
            raise ValueError(f"Invalid capability name: {cap!r}")
        normalized[cap] = bool(granted)
    return normalized


def normalize_capability_names(names: Optional[CapabilityNames]) -> List[str]:
    """
    Turn a capability name or an iterable of names into a list.

    A bare string is a single capability, not a sequence of characters.

    Examples:
        >>> normalize_capability_names("upload_files")
        ['upload_files']
        >>> normalize_capability_names(["edit_posts", "edit_pages"])
        ['edit_posts', 'edit_pages']
    """
    if names is None:
        return []
    if isinstance(names, str):
        names = [names]

    result = []
    for name in names:
        if not name or not isinstance(name, str):
            raise ValueError(f"Invalid capability name: {name!r}")
        result.append(name)
    return result


# ============================================================================
# Set Construction
# ============================================================================

def grant_all(names: Optional[CapabilityNames]) -> CapabilitySet:
    """Build a capability set granting every name."""
    return {name: True for name in normalize_capability_names(names)}


def deny_all(names: Optional[CapabilityNames]) -> CapabilitySet:
    """Build a capability set explicitly denying every name."""
    return {name: False for name in normalize_capability_names(names)}


def merge_capabilities(
    base: Optional[Mapping[str, Any]],
    overrides: Optional[Mapping[str, Any]],
) -> CapabilitySet:
    """
    Merge two capability sets, override values winning on collision.

    Neither input is modified.

    Examples:
        >>> merge_capabilities({"a": True, "b": True}, {"a": False})
        {'a': False, 'b': True}
    """
    merged = normalize_capabilities(base)
    merged.update(normalize_capabilities(overrides))
    return merged


# ============================================================================
# Queries
# ============================================================================

def granted_capabilities(capabilities: Mapping[str, bool]) -> Set[str]:
    """Names explicitly granted in a capability set."""
    return {cap for cap, granted in capabilities.items() if granted}


def denied_capabilities(capabilities: Mapping[str, bool]) -> Set[str]:
    """Names explicitly denied in a capability set."""
    return {cap for cap, granted in capabilities.items() if not granted}
