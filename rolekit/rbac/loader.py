"""
Declarative role provisioning from a YAML file.

Loads an ordered list of provisioning steps and replays them against a
RoleManager, typically once at application bootstrap:

    roles:
      - action: add
        role: super-editor
        name: Super Editor
        capabilities: {level_0: true}
      - action: add_caps
        role: contributor
        capabilities: [upload_files]
"""

import logging
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from .registry import RoleError

logger = logging.getLogger(__name__)


class RoleConfigError(RoleError):
    """Raised in strict mode when a role definitions file is invalid."""
    pass


# Actions that take a name -> bool mapping
MAPPING_ACTIONS = ("add", "merge", "override", "duplicate")
# Actions that take a list of capability names
NAME_LIST_ACTIONS = ("add_caps", "remove_caps")
VALID_ACTIONS = MAPPING_ACTIONS + NAME_LIST_ACTIONS


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class RoleProvisioningStep:
    """One provisioning step from the role definitions file."""
    action: str
    role: str
    name: Optional[str] = None
    source: Optional[str] = None
    capabilities: Union[Dict[str, bool], List[str]] = field(default_factory=dict)

    def __post_init__(self):
        """Validate field values."""
        if self.action not in VALID_ACTIONS:
            raise ValueError(f"action must be one of {list(VALID_ACTIONS)}, got {self.action!r}")
        if not self.role or not isinstance(self.role, str):
            raise ValueError("role cannot be empty")

        if self.capabilities is None:
            self.capabilities = {} if self.action in MAPPING_ACTIONS else []

        if self.action in MAPPING_ACTIONS:
            if not isinstance(self.capabilities, dict):
                raise ValueError(
                    f"capabilities for '{self.action}' must be a mapping, got {type(self.capabilities).__name__}"
                )
            for cap, granted in self.capabilities.items():
                if not cap or not isinstance(cap, str):
                    raise ValueError(f"capability names must be non-empty strings, got {cap!r}")
                # Quoted flags like 'false' would otherwise coerce to a grant.
                if not isinstance(granted, bool):
                    raise ValueError(
                        f"capability '{cap}' must be true or false, got {type(granted).__name__} {granted!r}"
                    )
        else:
            if isinstance(self.capabilities, str):
                self.capabilities = [self.capabilities]
            if not isinstance(self.capabilities, list):
                raise ValueError(
                    f"capabilities for '{self.action}' must be a list, got {type(self.capabilities).__name__}"
                )
            for cap in self.capabilities:
                if not cap or not isinstance(cap, str):
                    raise ValueError(f"capability names must be non-empty strings, got {cap!r}")

        if self.action in ("add", "duplicate") and not self.name:
            raise ValueError(f"name is required for '{self.action}'")
        if self.action == "duplicate" and not self.source:
            raise ValueError("source is required for 'duplicate'")

    def apply(self, manager) -> None:
        """Run this step against a RoleManager."""
        if self.action == "add":
            manager.add_role(self.role, self.name, self.capabilities)
        elif self.action == "merge":
            manager.merge_role_capabilities(self.role, self.capabilities)
        elif self.action == "override":
            manager.override_role_capabilities(self.role, self.capabilities)
        elif self.action == "duplicate":
            manager.duplicate_role(self.source, self.role, self.name, self.capabilities)
        elif self.action == "add_caps":
            manager.add_role_capabilities(self.role, self.capabilities)
        elif self.action == "remove_caps":
            manager.remove_role_capabilities(self.role, self.capabilities)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


# ============================================================================
# Loader
# ============================================================================

class RoleDefinitionsLoader:
    """
    Loads and validates role provisioning steps from YAML.

    A missing or unreadable file yields an empty plan and a logged error,
    unless ``strict`` is set, in which case RoleConfigError is raised.
    """

    def __init__(self, path: Union[str, Path], strict: bool = False):
        self.path = Path(path)
        self.strict = strict
        self._steps: List[RoleProvisioningStep] = []
        self._load()

    @property
    def steps(self) -> List[RoleProvisioningStep]:
        return list(self._steps)

    def _fail(self, message: str) -> None:
        if self.strict:
            raise RoleConfigError(message)
        logger.error(f"{message}. No roles will be provisioned from this file.")
        self._steps = []

    def _load(self) -> None:
        if not self.path.exists():
            if self.strict:
                raise RoleConfigError(f"Role definitions file not found at {self.path}")
            logger.warning(f"Role definitions file not found at {self.path}. Skipping provisioning.")
            return

        try:
            with open(self.path, 'r') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            self._fail(f"Failed to parse role definitions YAML at {self.path}: {e}")
            return

        if data is None:
            logger.info(f"Role definitions file {self.path} is empty")
            return

        if not isinstance(data, dict) or not isinstance(data.get("roles", []), list):
            self._fail(f"Role definitions at {self.path} must be a mapping with a 'roles' list")
            return

        self._steps = self._parse_steps(data.get("roles") or [])
        logger.info(f"Loaded {len(self._steps)} role provisioning steps from {self.path}")

    def _parse_steps(self, items: List[Any]) -> List[RoleProvisioningStep]:
        steps = []
        for i, item in enumerate(items):
            if not isinstance(item, dict):
                message = f"Role step {i} must be a mapping, got {type(item).__name__}"
                if self.strict:
                    raise RoleConfigError(message)
                logger.error(f"{message}, skipping")
                continue
            try:
                steps.append(RoleProvisioningStep(**item))
            except (TypeError, ValueError) as e:
                if self.strict:
                    raise RoleConfigError(f"Invalid role step {i}: {e}") from e
                logger.error(f"Invalid role step {i}: {e}, skipping")
        return steps

    def apply(self, manager) -> int:
        """
        Apply every step in file order.

        Returns:
            Number of steps applied
        """
        for step in self._steps:
            logger.debug(f"Applying role step {step.action} on {step.role}")
            step.apply(manager)
        return len(self._steps)
