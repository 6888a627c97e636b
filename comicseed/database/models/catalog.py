"""
Catalog Models
---------------

Models for comics, their chapters and their page images.

Models:
    - Comic: A catalog item
    - Chapter: A chapter of a comic, keyed on (comic_id, chapter_number)
    - ComicImage: Gallery image of a comic
    - ChapterImage: Page image of a chapter

Image rows are immutable: they are replaced by delete + reinsert, never
updated in place, and per owner their ``image_order`` runs 1..N.
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from datetime import datetime
from typing import List, Optional

# --- Third party imports ---
from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

# --- Local imports ---
from .associations import comic_genres
from .base import Base, TimestampMixin, utc_now
from .enums import ComicStatus
from .reference import Artist, Author, ComicType, Genre


class Comic(Base, TimestampMixin):
    """
    Represents a catalog item.

    Attributes:
        id: Primary key
        title: Globally unique title
        slug: Globally unique slug (upsert conflict target)
        description: Synopsis
        cover_image: Cover asset reference
        status: Publication status (enum)
        publication_date: First publication date
        rating: Average rating
        views: View counter
        author_id: Foreign key to Author
        artist_id: Optional foreign key to Artist
        type_id: Foreign key to ComicType

    Relationships:
        genres: Many-to-many with Genre
        chapters: One-to-many with Chapter
        images: One-to-many with ComicImage
    """

    __tablename__ = "comics"
    __table_args__ = (
        CheckConstraint("title != ''", name="ck_comic_non_empty_title"),
        CheckConstraint("slug != ''", name="ck_comic_non_empty_slug"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cover_image: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    status: Mapped[ComicStatus] = mapped_column(
        SQLEnum(ComicStatus, values_callable=lambda x: [e.value for e in x]),
        default=ComicStatus.ONGOING,
        nullable=False,
    )
    publication_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    rating: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    views: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    author_id: Mapped[int] = mapped_column(
        ForeignKey("authors.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    artist_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("artists.id", ondelete="SET NULL"), nullable=True, index=True
    )
    type_id: Mapped[int] = mapped_column(
        ForeignKey("comic_types.id", ondelete="RESTRICT"), nullable=False, index=True
    )

    author: Mapped[Author] = relationship("Author", back_populates="comics")
    artist: Mapped[Optional[Artist]] = relationship("Artist", back_populates="comics")
    comic_type: Mapped[ComicType] = relationship("ComicType", back_populates="comics")
    genres: Mapped[List[Genre]] = relationship(
        "Genre", secondary=comic_genres, back_populates="comics"
    )
    chapters: Mapped[List["Chapter"]] = relationship(
        "Chapter", back_populates="comic", cascade="all, delete-orphan"
    )
    images: Mapped[List["ComicImage"]] = relationship(
        "ComicImage",
        back_populates="comic",
        cascade="all, delete-orphan",
        order_by="ComicImage.image_order",
    )

    def __repr__(self) -> str:
        return f"<Comic(id={self.id}, slug={self.slug})>"


class Chapter(Base, TimestampMixin):
    """
    Represents a chapter of a comic.

    (comic_id, chapter_number) is the natural key used for idempotent
    upserts.
    """

    __tablename__ = "chapters"
    __table_args__ = (
        UniqueConstraint("comic_id", "chapter_number", name="uq_chapter_comic_number"),
        CheckConstraint("chapter_number > 0", name="ck_chapter_positive_number"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    comic_id: Mapped[int] = mapped_column(
        ForeignKey("comics.id", ondelete="CASCADE"), nullable=False, index=True
    )
    chapter_number: Mapped[int] = mapped_column(Integer, nullable=False)
    slug: Mapped[str] = mapped_column(String(300), nullable=False, index=True)
    title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    release_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    views: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    comic: Mapped[Comic] = relationship("Comic", back_populates="chapters")
    images: Mapped[List["ChapterImage"]] = relationship(
        "ChapterImage",
        back_populates="chapter",
        cascade="all, delete-orphan",
        order_by="ChapterImage.image_order",
    )

    def __repr__(self) -> str:
        return f"<Chapter(id={self.id}, slug={self.slug})>"


class ComicImage(Base):
    """Gallery image of a comic (immutable row)."""

    __tablename__ = "comic_images"
    __table_args__ = (
        UniqueConstraint("comic_id", "image_order", name="uq_comic_image_order"),
        CheckConstraint("image_order >= 1", name="ck_comic_image_order"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    comic_id: Mapped[int] = mapped_column(
        ForeignKey("comics.id", ondelete="CASCADE"), nullable=False, index=True
    )
    image_url: Mapped[str] = mapped_column(String(512), nullable=False)
    image_order: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    comic: Mapped[Comic] = relationship("Comic", back_populates="images")


class ChapterImage(Base):
    """Page image of a chapter (immutable row)."""

    __tablename__ = "chapter_images"
    __table_args__ = (
        UniqueConstraint("chapter_id", "image_order", name="uq_chapter_image_order"),
        CheckConstraint("image_order >= 1", name="ck_chapter_image_order"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    chapter_id: Mapped[int] = mapped_column(
        ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False, index=True
    )
    image_url: Mapped[str] = mapped_column(String(512), nullable=False)
    image_order: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    chapter: Mapped[Chapter] = relationship("Chapter", back_populates="images")
