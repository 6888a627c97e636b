"""
Reference Entity Models
------------------------

Models for the reference entities a comic points at.

Models:
    - Author: Writer of a comic
    - Artist: Illustrator of a comic
    - Genre: Genre tag (many-to-many with comics)
    - ComicType: Format of a comic (Manga, Manhwa, ...)

Reference entities are created during their own seeding phase and are
referenced, never mutated, by later phases.
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from typing import TYPE_CHECKING, List, Optional

# --- Third party imports ---
from sqlalchemy import CheckConstraint, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

# --- Local imports ---
from .associations import comic_genres
from .base import Base, TimestampMixin

if TYPE_CHECKING:
    from .catalog import Comic


class Author(Base, TimestampMixin):
    """
    Represents a comic author.

    Attributes:
        id: Primary key
        name: Unique author name (natural key)
        bio: Optional biography
        image: Optional portrait asset reference
    """

    __tablename__ = "authors"
    __table_args__ = (CheckConstraint("name != ''", name="ck_author_non_empty_name"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)

    comics: Mapped[List["Comic"]] = relationship("Comic", back_populates="author")

    def __repr__(self) -> str:
        return f"<Author(id={self.id}, name={self.name})>"


class Artist(Base, TimestampMixin):
    """
    Represents a comic artist.

    Attributes:
        id: Primary key
        name: Unique artist name (natural key)
        bio: Optional biography
        image: Optional portrait asset reference
    """

    __tablename__ = "artists"
    __table_args__ = (CheckConstraint("name != ''", name="ck_artist_non_empty_name"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)

    comics: Mapped[List["Comic"]] = relationship("Comic", back_populates="artist")

    def __repr__(self) -> str:
        return f"<Artist(id={self.id}, name={self.name})>"


class Genre(Base, TimestampMixin):
    """
    Represents a genre tag.

    Attributes:
        id: Primary key
        name: Unique genre name (natural key)
        slug: URL slug derived from the name
        description: Optional description
    """

    __tablename__ = "genres"
    __table_args__ = (CheckConstraint("name != ''", name="ck_genre_non_empty_name"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    comics: Mapped[List["Comic"]] = relationship(
        "Comic", secondary=comic_genres, back_populates="genres"
    )

    def __repr__(self) -> str:
        return f"<Genre(id={self.id}, name={self.name})>"


class ComicType(Base, TimestampMixin):
    """
    Represents a comic format (Manga, Manhwa, Manhua, ...).

    Attributes:
        id: Primary key
        name: Unique type name (natural key)
        description: Optional description
    """

    __tablename__ = "comic_types"
    __table_args__ = (CheckConstraint("name != ''", name="ck_type_non_empty_name"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    comics: Mapped[List["Comic"]] = relationship("Comic", back_populates="comic_type")

    def __repr__(self) -> str:
        return f"<ComicType(id={self.id}, name={self.name})>"
