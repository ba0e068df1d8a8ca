"""
Users Domain Layer
==================

Pure Python user entities, free of infrastructure concerns.
"""

from helpdesk.users.domain.entities import Actor, User

__all__ = ["Actor", "User"]
