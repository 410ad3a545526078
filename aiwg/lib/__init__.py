"""
Shared library modules: logging, typed errors, filesystem helpers, locking.
"""
