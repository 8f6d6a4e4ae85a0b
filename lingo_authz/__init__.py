"""
lingo-authz: authorization engine for the language-learning platform.

Combines role-based abilities with a deny-first, tenant-scoped policy overlay.
"""

__version__ = "0.1.0"
