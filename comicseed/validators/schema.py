#!/usr/bin/env python3
"""
schema.py
---------
Per-entity structural validation of raw export records.

Validation is structural and type-directed: identity fields (title, slug,
name, email) must be present, strings and non-empty; optional fields are
permissive and fall back to None or a documented default. Nested
``{slug, name}`` objects in foreign-key positions are reduced to a bare
identifier string by the extraction strategy tables.

A failing record raises RecordValidationError from ``validate``;
``validate_batch`` turns those into RecordError entries so one bad record
never halts its siblings.

Usage:
    from comicseed.validators.schema import SchemaValidator

    validator = SchemaValidator()
    batch = validator.validate_batch("comic", raw_comics, phase="comics")
    print(f"{len(batch.valid)} valid, {len(batch.errors)} invalid")
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

# --- Local imports ---
from comicseed.core.exceptions import RecordError, RecordValidationError
from comicseed.database.models.enums import ComicStatus, UserRole
from comicseed.pipeline import extractors as ex
from comicseed.utils.normalize import normalize_email
from comicseed.utils.slugify import slugify

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

DEFAULT_DESCRIPTION = "No description available"

REFERENCE_KINDS = ("author", "artist", "genre", "type")


# ═══════════════════════════════════════════════════════════════════════════
# NORMALIZED RECORDS
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class UserRecord:
    """A validated user."""

    id: str
    email: str
    name: Optional[str]
    image: Optional[str]
    role: UserRole = UserRole.USER
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class ReferenceRecord:
    """
    A validated reference entity (author, artist, genre or type).

    ``description`` holds an author/artist bio or a genre/type description.
    """

    kind: str
    name: str
    description: Optional[str] = None
    image: Optional[str] = None
    slug: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class ComicRecord:
    """A validated comic with its references still as names."""

    title: str
    slug: str
    description: str
    cover_image: Optional[str]
    status: ComicStatus
    publication_date: datetime
    rating: float
    views: int
    author: str
    artist: Optional[str]
    comic_type: str
    genres: List[str] = field(default_factory=list)
    images: List[str] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class ChapterRecord:
    """A validated chapter with its comic reference still as slug/title."""

    comic_slug: Optional[str]
    comic_title: Optional[str]
    chapter_number: int
    title: str
    slug: Optional[str]
    release_date: datetime
    url: Optional[str]
    views: int
    images: List[str] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def comic_keys(self) -> List[str]:
        """Every comic lookup key this chapter carries, slug first."""
        return [k for k in (self.comic_slug, self.comic_title) if k]


@dataclass
class BatchValidation:
    """Outcome of validating a batch: valid records plus per-record errors."""

    valid: List[Any] = field(default_factory=list)
    errors: List[RecordError] = field(default_factory=list)

    def summary(self) -> str:
        return f"{len(self.valid)} valid, {len(self.errors)} invalid"


# ═══════════════════════════════════════════════════════════════════════════
# VALIDATOR
# ═══════════════════════════════════════════════════════════════════════════

class SchemaValidator:
    """
    Validates raw export records against per-entity shapes.

    Attributes:
        run_timestamp: Fallback for missing or invalid dates
    """

    def __init__(self, run_timestamp: Optional[datetime] = None) -> None:
        self.run_timestamp = run_timestamp or datetime.now(timezone.utc)
        self._validators: Dict[str, Callable[[Any], Any]] = {
            "user": self.validate_user,
            "comic": self.validate_comic,
            "chapter": self.validate_chapter,
        }
        for kind in REFERENCE_KINDS:
            self._validators[kind] = self._reference_validator(kind)

    # ---- Entry points ----

    def validate(self, entity: str, raw: Any) -> Any:
        """
        Validate one raw record.

        Args:
            entity: 'user', 'comic', 'chapter', 'author', 'artist',
                'genre' or 'type'
            raw: Raw record as parsed from JSON

        Returns:
            The normalized record dataclass

        Raises:
            RecordValidationError: If the record does not fit the shape
            ValueError: If the entity type is unknown
        """
        try:
            validator = self._validators[entity]
        except KeyError:
            raise ValueError(f"Unknown entity type: {entity}")
        if not isinstance(raw, dict):
            raise RecordValidationError(
                entity, "<record>", f"must be an object, got {type(raw).__name__}", raw
            )
        return validator(raw)

    def validate_batch(
        self, entity: str, raws: Sequence[Any], phase: Optional[str] = None
    ) -> BatchValidation:
        """
        Validate every record, collecting failures instead of raising.

        Args:
            entity: Entity type (see validate)
            raws: Raw records in input order
            phase: Phase name recorded on each error (default: entity)

        Returns:
            BatchValidation with valid records in input order
        """
        result = BatchValidation()
        for raw in raws:
            try:
                result.valid.append(self.validate(entity, raw))
            except RecordValidationError as e:
                result.errors.append(RecordError.from_exception(phase or entity, e, raw))
        return result

    # ---- Field helpers ----

    @staticmethod
    def _required_text(entity: str, raw: Dict[str, Any], key: str) -> str:
        """Identity field: present, a string, non-empty after trimming."""
        if key not in raw or raw[key] is None:
            raise RecordValidationError(entity, key, "is required", raw)
        value = raw[key]
        if not isinstance(value, str):
            raise RecordValidationError(
                entity, key, f"must be a string, got {type(value).__name__}", raw
            )
        if not value.strip():
            raise RecordValidationError(entity, key, "must not be empty", raw)
        return value.strip()

    @staticmethod
    def _optional_text(value: Any) -> Optional[str]:
        """Optional field: trimmed string or None."""
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None

    # ---- Entities ----

    def validate_user(self, raw: Dict[str, Any]) -> UserRecord:
        """Validate a user: email is the identity field."""
        email = normalize_email(self._required_text("user", raw, "email"))
        if not _EMAIL_RE.match(email):
            raise RecordValidationError("user", "email", "is not a valid address", raw)

        raw_id = raw.get("id")
        if isinstance(raw_id, bool) or not isinstance(raw_id, (str, int)) or str(raw_id).strip() == "":
            # Stable ID so re-runs upsert the same row
            user_id = str(uuid.uuid5(uuid.NAMESPACE_URL, f"mailto:{email}"))
        else:
            user_id = str(raw_id).strip()

        role_value = raw.get("role")
        role = UserRole.USER
        if isinstance(role_value, str) and role_value.strip().lower() in UserRole.choices():
            role = UserRole(role_value.strip().lower())

        return UserRecord(
            id=user_id,
            email=email,
            name=self._optional_text(raw.get("name")) or email.split("@")[0],
            image=ex.extract_first(raw, ex.PORTRAIT_IMAGE),
            role=role,
            raw=raw,
        )

    def _reference_validator(self, kind: str) -> Callable[[Dict[str, Any]], ReferenceRecord]:
        def validate_reference(raw: Dict[str, Any]) -> ReferenceRecord:
            name = self._required_text(kind, raw, "name")
            slug = self._optional_text(raw.get("slug")) if kind == "genre" else None
            return ReferenceRecord(
                kind=kind,
                name=name,
                description=ex.extract_first(raw, ex.BIO),
                image=ex.extract_first(raw, ex.PORTRAIT_IMAGE)
                if kind in ("author", "artist")
                else None,
                slug=slug or (slugify(name) if kind == "genre" else None),
                raw=raw,
            )

        return validate_reference

    def validate_comic(self, raw: Dict[str, Any]) -> ComicRecord:
        """Validate a comic: title and slug are identity fields."""
        title = self._required_text("comic", raw, "title")
        slug = self._required_text("comic", raw, "slug")

        status_value = raw.get("status")
        status = ComicStatus.parse(status_value if isinstance(status_value, str) else None)

        return ComicRecord(
            title=title,
            slug=slug,
            description=self._optional_text(raw.get("description")) or DEFAULT_DESCRIPTION,
            cover_image=ex.extract_first(raw, ex.COVER_IMAGE),
            status=status or ComicStatus.ONGOING,
            publication_date=ex.parse_date(
                ex.extract_first(raw, ex.PUBLICATION_DATE), self.run_timestamp
            ),
            rating=ex.parse_float(raw.get("rating")),
            views=ex.parse_int(raw.get("views")),
            author=ex.extract_first(raw, ex.AUTHOR_NAME, default=ex.DEFAULT_AUTHOR),
            artist=ex.extract_first(raw, ex.ARTIST_NAME),
            comic_type=ex.extract_first(raw, ex.TYPE_NAME, default=ex.DEFAULT_TYPE),
            genres=ex.extract_genres(raw),
            images=ex.extract_image_urls(raw, keys=("images",)),
            raw=raw,
        )

    def validate_chapter(self, raw: Dict[str, Any], position: int = 1) -> ChapterRecord:
        """
        Validate a chapter: it must name its comic by slug or title.

        Args:
            raw: Raw chapter record
            position: 1-based position in the export (chapter number fallback)
        """
        comic_slug = ex.extract_first(raw, ex.CHAPTER_COMIC_SLUG)
        comic_title = ex.extract_first(raw, ex.CHAPTER_COMIC_TITLE)
        if not comic_slug and not comic_title:
            raise RecordValidationError(
                "chapter", "comic", "is required: missing comic slug and title", raw
            )

        number = ex.extract_chapter_number(raw, position)
        return ChapterRecord(
            comic_slug=comic_slug,
            comic_title=comic_title,
            chapter_number=number,
            title=ex.extract_first(raw, ex.CHAPTER_NAME) or f"Chapter {number}",
            slug=ex.extract_first(raw, ex.CHAPTER_SLUG),
            release_date=ex.parse_date(
                ex.extract_first(raw, ex.RELEASE_DATE), self.run_timestamp
            ),
            url=self._optional_text(raw.get("url")),
            views=ex.parse_int(raw.get("views")),
            images=ex.extract_image_urls(raw),
            raw=raw,
        )

    def validate_chapters(
        self, raws: Sequence[Any], phase: str = "chapters"
    ) -> BatchValidation:
        """Validate chapters, passing each record's 1-based position."""
        result = BatchValidation()
        for position, raw in enumerate(raws, start=1):
            try:
                if not isinstance(raw, dict):
                    raise RecordValidationError(
                        "chapter", "<record>", f"must be an object, got {type(raw).__name__}", raw
                    )
                result.valid.append(self.validate_chapter(raw, position))
            except RecordValidationError as e:
                result.errors.append(RecordError.from_exception(phase, e, raw))
        return result
