"""
Users Module
============

Bounded context for accounts and roles.
"""

__version__ = "1.0.0"
