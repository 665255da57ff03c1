# config.py: role management config with loud failures

import os

TRUE_VALUES = ('true', '1', 'yes', 'on')

# Optional knobs with defaults that match the forgiving provisioning behaviour.
DEFAULTS = {
    "ROLES_STRICT": False,            # raise RoleNotFoundError instead of silent no-ops
    "ROLES_MIRROR_ENABLED": True,     # keep a mirror to survive registry re-init
    "ROLES_REFRESH_SESSION": True,    # refresh the active session after role changes
    "ROLES_DEFINITIONS_PATH": None,   # YAML provisioning file applied at bootstrap
}

BOOL_KEYS = {"ROLES_STRICT", "ROLES_MIRROR_ENABLED", "ROLES_REFRESH_SESSION"}


def _parse_bool(key, val):
    if isinstance(val, bool):
        return val
    if isinstance(val, str):
        lowered = val.strip().lower()
        if lowered in TRUE_VALUES:
            return True
        if lowered in ('false', '0', 'no', 'off', ''):
            return False
    raise RuntimeError(f"{key} must be a boolean (true/false, 1/0, yes/no, on/off), got: {val}")


def load_config():
    """
    Load env config, erroring clearly if any value is malformed.
    Returns a dict of defaults overridden by the environment (with types normalized).
    """
    cfg = {}

    for k, v in DEFAULTS.items():
        val = os.getenv(k, v)

        if k in BOOL_KEYS:
            val = _parse_bool(k, val)
        elif k == "ROLES_DEFINITIONS_PATH":
            if val is not None:
                val = val.strip() or None
            if val is not None and not val.endswith((".yaml", ".yml")):
                raise RuntimeError(
                    f"ROLES_DEFINITIONS_PATH must point to a .yaml or .yml file, got: {val}"
                )

        cfg[k] = val

    return cfg
