"""
Enumeration Types
------------------

Enum classes for the catalog database models.

Enums:
    - ComicStatus: Publication status of a comic
    - UserRole: Account role of a user

These enums provide type safety and consistent categorization across the database.
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from enum import Enum
from typing import List, Optional


class ComicStatus(str, Enum):
    """
    Enumeration of comic publication statuses.
    - ONGOING: New chapters still being released
    - COMPLETED: Finished series
    - HIATUS: Paused indefinitely
    - DROPPED: Cancelled
    - COMING_SOON: Announced, not yet released
    """

    ONGOING = "Ongoing"
    COMPLETED = "Completed"
    HIATUS = "Hiatus"
    DROPPED = "Dropped"
    COMING_SOON = "Coming Soon"

    @classmethod
    def choices(cls) -> List[str]:
        """Get all available status choices."""
        return [status.value for status in cls]

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["ComicStatus"]:
        """
        Match a loosely-spelled status ("ongoing", "coming_soon") to a member.

        Returns:
            The matching status, or None if nothing matches
        """
        if not value:
            return None
        wanted = value.strip().lower().replace("_", " ").replace("-", " ")
        for status in cls:
            if status.value.lower() == wanted:
                return status
        return None

    @property
    def display_name(self) -> str:
        """Get human-readable display name."""
        return self.value


class UserRole(str, Enum):
    """
    Enumeration of user roles.
    - USER: Regular reader
    - ADMIN: Full administrative access
    - MODERATOR: Content moderation access
    """

    USER = "user"
    ADMIN = "admin"
    MODERATOR = "moderator"

    @classmethod
    def choices(cls) -> List[str]:
        """Get all available role choices."""
        return [role.value for role in cls]

    @property
    def display_name(self) -> str:
        """Get human-readable display name."""
        return self.value.title()
