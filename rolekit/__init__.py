"""
rolekit: role and capability management helpers for host role registries.
"""

__version__ = "0.1.0"
