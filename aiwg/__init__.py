"""
AIWG plugin lifecycle and workspace migration engine.

Installs, uninstalls and validates framework plugins under a registry root,
and migrates project workspaces from the flat legacy `.aiwg/` layout to the
framework-scoped layout.
"""

__version__ = "0.1.0"
