#!/usr/bin/env python3
"""
phases.py
---------
The seeding phases, in dependency order.

Every phase follows the same flow:
    load → validate → detect duplicates → resolve foreign keys →
    download images → batch upsert → build the ID map for later phases

and runs inside exactly one transaction (``SeedContext.session``), so a
failing batch leaves that phase's writes absent while earlier phases stay
committed. Record-level problems (validation, resolution, download) are
recorded on the report and never abort a phase.

Phase order:
    users → authors → artists → types → genres → comics → chapters

Each phase function takes the SeedContext and returns the PhaseCounts
the report closes the phase with.
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from dataclasses import dataclass, replace
from functools import partial
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

# --- Third party imports ---
from sqlalchemy import select, tuple_
from sqlalchemy.orm import Session

# --- Local imports ---
from comicseed.core.exceptions import ResolutionError
from comicseed.database.decorators import handle_db_errors
from comicseed.database.models import (
    Artist,
    Author,
    Chapter,
    ChapterImage,
    Comic,
    ComicImage,
    ComicType,
    Genre,
    User,
    comic_genres,
)
from comicseed.pipeline.context import PhaseCounts, SeedContext
from comicseed.pipeline.duplicate_detector import detect_duplicates
from comicseed.pipeline.image_downloader import ImageRequest
from comicseed.utils.normalize import (
    normalize_email,
    normalize_for_matching,
    normalize_name,
    normalize_slug,
)
from comicseed.utils.slugify import chapter_slug, slugify
from comicseed.validators.schema import ChapterRecord, ComicRecord, ReferenceRecord

_QUERY_CHUNK = 500

USER_FIELDS = ("name", "email", "image", "role")
COMIC_FIELDS = (
    "title",
    "description",
    "cover_image",
    "status",
    "rating",
    "views",
    "author_id",
    "artist_id",
    "type_id",
)
CHAPTER_FIELDS = ("title", "slug", "release_date", "url")


# ═══════════════════════════════════════════════════════════════════════════
# USERS
# ═══════════════════════════════════════════════════════════════════════════

def seed_users(ctx: SeedContext) -> PhaseCounts:
    """Users: keyed on their external id, deduplicated on email."""
    phase = "users"
    loaded = ctx.load("users")
    counts = PhaseCounts(processed=len(loaded.records))
    if not loaded.records:
        counts.skipped_reason = "No user records found"
        return counts

    batch = ctx.validator.validate_batch("user", loaded.records, phase=phase)
    ctx.record_errors(batch.errors)

    detection = detect_duplicates(
        batch.valid,
        key_func=lambda u: u.email,
        key_field="email",
        key_normalizer=normalize_email,
        check_titles=False,
        label_func=lambda u: u.email,
        entity="users",
        logger=ctx.logger,
    )
    ctx.note_duplicates(phase, detection, counts)

    with ctx.session() as session:
        users = _guard_user_emails(ctx, session, detection.unique_records, counts)

        images = ctx.download(
            [
                ImageRequest(u.image, ctx.downloader.storage_key("user", slugify(u.id) or u.id, u.image), "user")
                for u in users
            ],
            phase,
        )
        rows = [
            {
                "id": u.id,
                "name": u.name,
                "email": u.email,
                "image": image,
                "role": u.role,
            }
            for u, image in zip(users, images)
        ]
        result = ctx.engine(session).upsert(
            User,
            ["id"],
            rows,
            USER_FIELDS,
            batch_size=ctx.config.batch_size_for("users"),
            dry_run=ctx.dry_run,
        )
        counts.add(result)

    return counts


@handle_db_errors
def _guard_user_emails(
    ctx: SeedContext, session: Optional[Session], users: List[Any], counts: PhaseCounts
) -> List[Any]:
    """Drop users whose email is already stored under a different id."""
    if session is None or not users:
        return users

    owners: Dict[str, str] = {}
    emails = [u.email for u in users]
    for start in range(0, len(emails), _QUERY_CHUNK):
        chunk = emails[start : start + _QUERY_CHUNK]
        for email, user_id in session.execute(
            select(User.email, User.id).where(User.email.in_(chunk))
        ):
            owners[email] = user_id

    kept = []
    for user in users:
        owner = owners.get(user.email)
        if owner is not None and owner != user.id:
            counts.skipped += 1
            ctx.warn(
                "users",
                f'Email "{user.email}" already belongs to user {owner}; skipped user {user.id}',
                {"email": user.email, "existing_id": owner, "id": user.id},
            )
            continue
        kept.append(user)
    return kept


# ═══════════════════════════════════════════════════════════════════════════
# REFERENCE ENTITIES
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ReferenceSpec:
    """How one reference entity type is stored."""

    kind: str
    plural: str
    model: Any
    mutable: Tuple[str, ...]
    description_column: Optional[str]
    has_image: bool = False
    key_attrs: Tuple[str, ...] = ("name",)


REFERENCE_SPECS: Dict[str, ReferenceSpec] = {
    "author": ReferenceSpec("author", "authors", Author, ("bio", "image"), "bio", has_image=True),
    "artist": ReferenceSpec("artist", "artists", Artist, ("bio", "image"), "bio", has_image=True),
    "type": ReferenceSpec("type", "types", ComicType, ("description",), "description"),
    "genre": ReferenceSpec(
        "genre", "genres", Genre, ("slug", "description"), "description",
        key_attrs=("name", "slug"),
    ),
}


@handle_db_errors
def _stored_keys(
    session: Optional[Session], model: Any, attr: str, normalizer: Callable[[str], str]
) -> Dict[str, str]:
    """
    Stored natural keys by normalized form; the oldest row wins.

    Upserts conflict on the exact key, so a record spelling a stored key
    differently ("hero-saga" for "Hero-Saga") must reuse the stored spelling.
    """
    if session is None:
        return {}
    stored: Dict[str, str] = {}
    column = getattr(model, attr)
    for (value,) in session.execute(select(column).order_by(model.id)):
        stored.setdefault(normalizer(value), value)
    return stored


def _adopt_stored_keys(
    records: Sequence[Any], attr: str, stored: Dict[str, str], normalizer: Callable[[str], str]
) -> List[Any]:
    """Records with their natural key replaced by the stored spelling, if any."""
    adopted = []
    for record in records:
        value = getattr(record, attr)
        canonical = stored.get(normalizer(value))
        if canonical is not None and canonical != value:
            record = replace(record, **{attr: canonical})
        adopted.append(record)
    return adopted


def _reference_key(kind: str) -> Callable[[ReferenceRecord], str]:
    # Genres are unique by slug as well as name
    if kind == "genre":
        return lambda r: normalize_slug(r.slug or slugify(r.name))
    return lambda r: normalize_name(r.name)


def referenced_names(comics: Sequence[ComicRecord], kind: str) -> List[str]:
    """Names of one reference kind mentioned by comics, in first-mention order."""
    names: List[str] = []
    for comic in comics:
        if kind == "author":
            mentioned = [comic.author]
        elif kind == "artist":
            mentioned = [comic.artist] if comic.artist else []
        elif kind == "type":
            mentioned = [comic.comic_type]
        else:
            mentioned = list(comic.genres)
        names.extend(n for n in mentioned if n)
    return names


def seed_references(ctx: SeedContext, kind: str) -> PhaseCounts:
    """
    One reference entity type: explicit export file first, then the names
    comics mention.

    Explicit records go through duplicate detection; mentions only add the
    names no explicit record already covers.
    """
    spec = REFERENCE_SPECS[kind]
    phase = spec.plural
    key_of = _reference_key(kind)

    loaded = ctx.load(spec.plural)
    batch = ctx.validator.validate_batch(kind, loaded.records, phase=phase)
    ctx.record_errors(batch.errors)

    counts = PhaseCounts(processed=len(loaded.records))
    detection = detect_duplicates(
        batch.valid,
        key_func=key_of,
        key_field="slug" if kind == "genre" else "name",
        key_normalizer=lambda k: k or "",
        check_titles=False,
        label_func=lambda r: r.name,
        entity=spec.plural,
        logger=ctx.logger,
    )
    ctx.note_duplicates(phase, detection, counts)

    records: List[ReferenceRecord] = list(detection.unique_records)
    known = {key_of(r) for r in records}
    # "Jane Doe" and "jane-doe" name the same entity
    matching = {normalize_for_matching(r.name) for r in records}
    for name in referenced_names(ctx.comic_batch().valid, kind):
        mention = ReferenceRecord(
            kind=kind, name=name, slug=slugify(name) if kind == "genre" else None
        )
        key = key_of(mention)
        loose = normalize_for_matching(name)
        if key and key not in known and loose not in matching:
            known.add(key)
            matching.add(loose)
            records.append(mention)
            counts.processed += 1

    if not records:
        counts.skipped_reason = f"No {spec.plural} found"
        return counts

    with ctx.session() as session:
        stored_names = _stored_keys(session, spec.model, "name", normalize_for_matching)
        records = _adopt_stored_keys(records, "name", stored_names, normalize_for_matching)

        # A reference without any image stays without one
        images: List[Optional[str]] = [None] * len(records)
        if spec.has_image:
            pictured = [i for i, r in enumerate(records) if r.image]
            stored = ctx.download(
                [
                    ImageRequest(
                        records[i].image,
                        ctx.downloader.storage_key(kind, slugify(records[i].name), records[i].image),
                        kind,
                    )
                    for i in pictured
                ],
                phase,
            )
            for i, image in zip(pictured, stored):
                images[i] = image

        rows = []
        for record, image in zip(records, images):
            row: Dict[str, Any] = {"name": record.name}
            if spec.description_column:
                row[spec.description_column] = record.description
            if spec.has_image:
                row["image"] = image
            if kind == "genre":
                row["slug"] = record.slug or slugify(record.name)
            rows.append(row)

        result = ctx.engine(session).upsert(
            spec.model,
            ["name"],
            rows,
            spec.mutable,
            batch_size=ctx.config.batch_size,
            dry_run=ctx.dry_run,
        )
        counts.add(result)

        ctx.build_map(
            session,
            kind,
            spec.model,
            spec.key_attrs,
            [(r["name"], r.get("slug")) if kind == "genre" else (r["name"],) for r in rows],
        )

    return counts


seed_authors = partial(seed_references, kind="author")
seed_artists = partial(seed_references, kind="artist")
seed_types = partial(seed_references, kind="type")
seed_genres = partial(seed_references, kind="genre")


# ═══════════════════════════════════════════════════════════════════════════
# COMICS
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class ResolvedComic:
    """A comic with its references turned into IDs."""

    record: ComicRecord
    author_id: int
    artist_id: Optional[int]
    type_id: int
    genre_ids: List[int]


def seed_comics(ctx: SeedContext) -> PhaseCounts:
    """Comics: keyed on slug, then genre links and gallery images."""
    phase = "comics"
    batch = ctx.comic_batch()
    ctx.record_errors(batch.errors)
    counts = PhaseCounts(processed=len(batch.valid) + len(batch.errors))
    if counts.processed == 0:
        counts.skipped_reason = "No comic records found"
        return counts

    detection = detect_duplicates(
        batch.valid,
        key_func=lambda c: c.slug,
        key_field="slug",
        key_normalizer=normalize_slug,
        title_func=lambda c: c.title,
        threshold=ctx.config.title_similarity_threshold,
        entity="comics",
        logger=ctx.logger,
    )
    ctx.note_duplicates(phase, detection, counts)

    with ctx.session() as session:
        stored_slugs = _stored_keys(session, Comic, "slug", normalize_slug)
        comics = _adopt_stored_keys(
            detection.unique_records, "slug", stored_slugs, normalize_slug
        )
        comics = _guard_titles(ctx, session, comics, counts)
        resolved = _resolve_comic_references(ctx, comics, counts)

        covers = ctx.download(
            [
                ImageRequest(
                    item.record.cover_image,
                    ctx.downloader.storage_key("comic", item.record.slug, item.record.cover_image),
                    "comic",
                )
                for item in resolved
            ],
            phase,
        )
        rows = [
            {
                "title": item.record.title,
                "slug": item.record.slug,
                "description": item.record.description,
                "cover_image": cover,
                "status": item.record.status,
                "publication_date": item.record.publication_date,
                "rating": item.record.rating,
                "views": item.record.views,
                "author_id": item.author_id,
                "artist_id": item.artist_id,
                "type_id": item.type_id,
            }
            for item, cover in zip(resolved, covers)
        ]
        engine = ctx.engine(session)
        result = engine.upsert(
            Comic,
            ["slug"],
            rows,
            COMIC_FIELDS,
            batch_size=ctx.config.batch_size_for("comics"),
            dry_run=ctx.dry_run,
        )
        counts.add(result)

        id_map = ctx.build_map(
            session,
            "comic",
            Comic,
            ("slug", "title"),
            [(item.record.slug, item.record.title) for item in resolved],
        )

        # Genre links mirror the latest export: stale links of a comic go
        owners = [(item, id_map.get(item.record.slug)) for item in resolved]
        owners = [(item, comic_id) for item, comic_id in owners if comic_id is not None]
        links = [
            {"comic_id": comic_id, "genre_id": genre_id}
            for item, comic_id in owners
            for genre_id in item.genre_ids
        ]
        if owners:
            engine.replace_children(
                comic_genres,
                "comic_id",
                [comic_id for _, comic_id in owners],
                links,
                batch_size=ctx.config.batch_size_for("images"),
                dry_run=ctx.dry_run,
            )

        _replace_gallery(ctx, engine, resolved, id_map)

    return counts


@handle_db_errors
def _guard_titles(
    ctx: SeedContext, session: Optional[Session], comics: List[ComicRecord], counts: PhaseCounts
) -> List[ComicRecord]:
    """
    Drop comics whose exact title is taken by another slug.

    Titles are unique in the store but the upsert conflict target is the
    slug, so a stored title under a different slug (or a title repeated
    within this batch) would abort the whole phase.
    """
    stored: Dict[str, str] = {}
    if session is not None:
        titles = [c.title for c in comics]
        for start in range(0, len(titles), _QUERY_CHUNK):
            chunk = titles[start : start + _QUERY_CHUNK]
            for title, slug in session.execute(
                select(Comic.title, Comic.slug).where(Comic.title.in_(chunk))
            ):
                stored[title] = slug

    kept: List[ComicRecord] = []
    seen: Dict[str, str] = {}
    for comic in comics:
        owner = stored.get(comic.title) or seen.get(comic.title)
        if owner is not None and owner != comic.slug:
            counts.skipped += 1
            ctx.warn(
                "comics",
                f'Title "{comic.title}" already used by slug "{owner}"; skipped "{comic.slug}"',
                {"title": comic.title, "slug": comic.slug, "existing_slug": owner},
            )
            continue
        seen[comic.title] = comic.slug
        kept.append(comic)
    return kept


def _resolve_comic_references(
    ctx: SeedContext, comics: List[ComicRecord], counts: PhaseCounts
) -> List[ResolvedComic]:
    """Resolve author, artist, type and genres; unresolvable comics are skipped."""
    resolved: List[ResolvedComic] = []
    for comic in comics:
        try:
            author_id = ctx.resolver.resolve("author", comic.author, raw=comic.raw)
            artist_id = (
                ctx.resolver.resolve("artist", comic.artist, raw=comic.raw)
                if comic.artist
                else None
            )
            type_id = ctx.resolver.resolve("type", comic.comic_type, raw=comic.raw)
        except ResolutionError as e:
            counts.skipped += 1
            ctx.record_error("comics", e, comic.raw)
            continue

        genre_ids: List[int] = []
        for genre in comic.genres:
            genre_id = ctx.resolver.get("genre", genre, slugify(genre))
            if genre_id is None:
                ctx.warn("comics", f'Genre "{genre}" of "{comic.slug}" not found', {"genre": genre})
            elif genre_id not in genre_ids:
                genre_ids.append(genre_id)

        resolved.append(ResolvedComic(comic, author_id, artist_id, type_id, genre_ids))
    return resolved


def _replace_gallery(ctx: SeedContext, engine: Any, resolved: List[ResolvedComic], id_map: Any) -> None:
    """Replace the gallery images of every comic that lists some."""
    requests: List[ImageRequest] = []
    owners: List[Tuple[int, int]] = []
    for item in resolved:
        comic_id = id_map.get(item.record.slug)
        if comic_id is None or not item.record.images:
            continue
        for order, url in enumerate(item.record.images, start=1):
            stem = f"{item.record.slug}/gallery-{order:03d}"
            requests.append(ImageRequest(url, ctx.downloader.storage_key("comic", stem, url), "comic"))
            owners.append((comic_id, order))

    if not requests:
        return

    stored = ctx.download(requests, "comics")
    rows = [
        {"comic_id": comic_id, "image_url": url, "image_order": order}
        for (comic_id, order), url in zip(owners, stored)
    ]
    engine.replace_children(
        ComicImage,
        "comic_id",
        [comic_id for comic_id, _ in owners],
        rows,
        batch_size=ctx.config.batch_size_for("images"),
        dry_run=ctx.dry_run,
    )


# ═══════════════════════════════════════════════════════════════════════════
# CHAPTERS
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class ResolvedChapter:
    """A chapter with its comic resolved."""

    record: ChapterRecord
    comic_id: int
    slug: str

    @property
    def natural_key(self) -> str:
        return f"{self.comic_id}-{self.record.chapter_number}"


def _comic_slug_of(record: ChapterRecord) -> str:
    """Comic slug a chapter slug is built from: its comic slug, else its title."""
    if record.comic_slug:
        return record.comic_slug
    return normalize_for_matching(record.comic_title).replace(" ", "-")


def seed_chapters(ctx: SeedContext) -> PhaseCounts:
    """Chapters: keyed on (comic, number), then their page images."""
    phase = "chapters"
    loaded = ctx.load("chapters")
    counts = PhaseCounts(processed=len(loaded.records))
    if not loaded.records:
        counts.skipped_reason = "No chapter records found"
        return counts

    batch = ctx.validator.validate_chapters(loaded.records, phase=phase)
    ctx.record_errors(batch.errors)

    resolved: List[ResolvedChapter] = []
    for record in batch.valid:
        try:
            comic_id = ctx.resolver.resolve("comic", *record.comic_keys, raw=record.raw)
        except ResolutionError as e:
            counts.skipped += 1
            ctx.record_error(phase, e, record.raw)
            continue
        slug = record.slug or chapter_slug(_comic_slug_of(record), record.chapter_number)
        resolved.append(ResolvedChapter(record, comic_id, slug))

    detection = detect_duplicates(
        resolved,
        key_func=lambda c: c.natural_key,
        key_field="chapter",
        key_normalizer=lambda k: k or "",
        check_titles=False,
        label_func=lambda c: c.slug,
        entity="chapters",
        logger=ctx.logger,
    )
    ctx.note_duplicates(phase, detection, counts)
    chapters: List[ResolvedChapter] = detection.unique_records

    with ctx.session() as session:
        rows = [
            {
                "comic_id": c.comic_id,
                "chapter_number": c.record.chapter_number,
                "slug": c.slug,
                "title": c.record.title,
                "release_date": c.record.release_date,
                "url": c.record.url,
                "views": c.record.views,
            }
            for c in chapters
        ]
        engine = ctx.engine(session)
        result = engine.upsert(
            Chapter,
            ["comic_id", "chapter_number"],
            rows,
            CHAPTER_FIELDS,
            batch_size=ctx.config.batch_size_for("chapters"),
            dry_run=ctx.dry_run,
        )
        counts.add(result)

        with_pages = [c for c in chapters if c.record.images]
        if with_pages:
            ids = _chapter_ids(session, [(c.comic_id, c.record.chapter_number) for c in with_pages])
            slugs = _comic_slugs(session, [c.comic_id for c in with_pages])
            _replace_pages(ctx, engine, with_pages, ids, slugs)

    return counts


@handle_db_errors
def _chapter_ids(
    session: Optional[Session], keys: List[Tuple[int, int]]
) -> Dict[Tuple[int, int], int]:
    """Chapter IDs by (comic_id, chapter_number); sequential fakes in dry runs."""
    if session is None:
        return {key: index for index, key in enumerate(keys, start=1)}

    ids: Dict[Tuple[int, int], int] = {}
    for start in range(0, len(keys), _QUERY_CHUNK):
        chunk = keys[start : start + _QUERY_CHUNK]
        stmt = select(Chapter.id, Chapter.comic_id, Chapter.chapter_number).where(
            tuple_(Chapter.comic_id, Chapter.chapter_number).in_(chunk)
        )
        for chapter_id, comic_id, number in session.execute(stmt):
            ids[(comic_id, number)] = chapter_id
    return ids


@handle_db_errors
def _comic_slugs(session: Optional[Session], comic_ids: List[int]) -> Dict[int, str]:
    """Stored slug of each comic; empty in dry runs."""
    if session is None:
        return {}

    unique = list(dict.fromkeys(comic_ids))
    slugs: Dict[int, str] = {}
    for start in range(0, len(unique), _QUERY_CHUNK):
        chunk = unique[start : start + _QUERY_CHUNK]
        for comic_id, slug in session.execute(
            select(Comic.id, Comic.slug).where(Comic.id.in_(chunk))
        ):
            slugs[comic_id] = slug
    return slugs


def _replace_pages(
    ctx: SeedContext,
    engine: Any,
    chapters: List[ResolvedChapter],
    ids: Dict[Tuple[int, int], int],
    comic_slugs: Dict[int, str],
) -> None:
    """
    Download page images and replace each chapter's page rows.

    Pages live under their comic's directory: chapter slugs such as
    "chapter-1" repeat across comics.
    """
    requests: List[ImageRequest] = []
    owners: List[Tuple[int, int]] = []
    for chapter in chapters:
        chapter_id = ids.get((chapter.comic_id, chapter.record.chapter_number))
        if chapter_id is None:
            continue
        for order, url in enumerate(chapter.record.images, start=1):
            comic_dir = comic_slugs.get(chapter.comic_id) or _comic_slug_of(chapter.record)
            stem = f"{comic_dir}/{chapter.slug}/page-{order:03d}"
            requests.append(ImageRequest(url, ctx.downloader.storage_key("chapter", stem, url), "chapter"))
            owners.append((chapter_id, order))

    if not requests:
        return

    stored = ctx.download(requests, "chapters")
    rows = [
        {"chapter_id": chapter_id, "image_url": url, "image_order": order}
        for (chapter_id, order), url in zip(owners, stored)
    ]
    engine.replace_children(
        ChapterImage,
        "chapter_id",
        [chapter_id for chapter_id, _ in owners],
        rows,
        batch_size=ctx.config.batch_size_for("images"),
        dry_run=ctx.dry_run,
    )


# Dependency order: references before comics, comics before chapters
PHASES: List[Tuple[str, Callable[[SeedContext], PhaseCounts]]] = [
    ("users", seed_users),
    ("authors", seed_authors),
    ("artists", seed_artists),
    ("types", seed_types),
    ("genres", seed_genres),
    ("comics", seed_comics),
    ("chapters", seed_chapters),
]
