"""
Database Models Package
------------------------

SQLAlchemy ORM models for the comic catalog database.

This package provides a modular organization of database models:
- base: Base class and timestamp mixin
- associations: Many-to-many relationship tables
- enums: Enumeration types
- users: User
- reference: Author, Artist, Genre, ComicType
- catalog: Comic, Chapter, ComicImage, ChapterImage

Usage:
    from comicseed.database.models import Comic, Chapter, Author
"""
# Base classes
from .base import Base, TimestampMixin, utc_now

# Enumerations
from .enums import ComicStatus, UserRole

# Association tables
from .associations import comic_genres

# Entity models
from .users import User
from .reference import Artist, Author, ComicType, Genre
from .catalog import Chapter, ChapterImage, Comic, ComicImage

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "utc_now",
    # Enums
    "ComicStatus",
    "UserRole",
    # Associations
    "comic_genres",
    # Models
    "User",
    "Author",
    "Artist",
    "Genre",
    "ComicType",
    "Comic",
    "Chapter",
    "ComicImage",
    "ChapterImage",
]
