"""
Version module read by hatchling at build time.

Keep this the single source of truth for the package version.
"""

__version__ = "0.1.0"
