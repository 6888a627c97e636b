#!/usr/bin/env python3
"""
entity_resolver.py
------------------
Natural key → surrogate ID resolution across independently generated files.

After an entity phase is upserted, the just-written rows are read back by
natural key and every known key variant is mapped to the row's surrogate
ID. Dependent phases loaded later (comics referencing authors, chapters
referencing comics) resolve their loosely-formatted foreign keys through
these maps.

Key Variants:
    raw       "Hero Saga", "hero-saga-1a2b3c4d"  (exact, as stored)
    slug      "hero-saga"                        (slugified, ID suffix stripped)
    matching  "hero saga"                        (non-alphanumerics → space)

Resolution Flow:
    1. Raw key lookup (exact; always wins)
    2. Slug variant of each key, then its matching variant
    3. A variant shared by several IDs is ambiguous: it never resolves,
       and if nothing else matches the ResolutionError lists the candidates
    4. Nothing matches → ResolutionError with every attempted key

Usage:
    from comicseed.pipeline.entity_resolver import EntityResolver

    resolver = EntityResolver(logger=logger)
    resolver.build_from_store(session, "author", Author, ["name"], names)
    author_id = resolver.resolve("author", "jane-doe")
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

# --- Third-party imports ---
from sqlalchemy import select
from sqlalchemy.orm import Session

# --- Local imports ---
from comicseed.core.exceptions import ResolutionError
from comicseed.core.logging_manager import SeedLogger, safe_logger
from comicseed.database.decorators import handle_db_errors
from comicseed.utils.normalize import normalize_for_matching, strip_id_suffix
from comicseed.utils.slugify import slugify

# Keep IN (...) lists well under SQLite's bound-parameter limit
_QUERY_CHUNK = 500


def key_variants(key: str) -> List[str]:
    """
    Derived lookup variants of a key, most specific first.

    Examples:
        >>> key_variants("Hero-Saga-1a2b3c4d")
        ['hero-saga', 'hero saga 1a2b3c4d', 'hero saga']
        >>> key_variants("Jane  Doe")
        ['jane-doe', 'jane doe']
    """
    variants: List[str] = []
    for candidate in (
        strip_id_suffix(slugify(key)),
        normalize_for_matching(key),
        normalize_for_matching(strip_id_suffix(key)),
    ):
        if candidate and candidate not in variants:
            variants.append(candidate)
    return variants


@dataclass
class IdMap:
    """
    Multi-variant key → ID map for one entity type.

    Attributes:
        entity: Entity type ('author', 'comic', ...)
        exact: Raw keys → IDs
        derived: Derived variants → IDs (more than one ID means ambiguous)
    """

    entity: str
    exact: Dict[str, Set[int]] = field(default_factory=dict)
    derived: Dict[str, Set[int]] = field(default_factory=dict)

    def register(self, entity_id: int, *keys: Optional[str]) -> None:
        """Map every key of one row, and all their variants, to its ID."""
        for key in keys:
            if not key:
                continue
            self.exact.setdefault(key, set()).add(entity_id)
            for variant in key_variants(key):
                self.derived.setdefault(variant, set()).add(entity_id)

    @property
    def ids(self) -> Set[int]:
        """Every ID registered in the map."""
        return {i for ids in self.exact.values() for i in ids}

    @property
    def ambiguous(self) -> Dict[str, List[int]]:
        """Derived variants shared by more than one ID."""
        return {k: sorted(v) for k, v in self.derived.items() if len(v) > 1}

    def __len__(self) -> int:
        return len(self.ids)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def get(self, *keys: Optional[str]) -> Optional[int]:
        """Like resolve, but returns None instead of raising."""
        try:
            return self.resolve(*keys)
        except ResolutionError:
            return None

    def resolve(self, *keys: Optional[str], raw: Any = None) -> int:
        """
        Resolve the first key (in argument order) that maps to one ID.

        Args:
            *keys: Candidate keys, most authoritative first (e.g. slug, title)
            raw: Dependent record, attached to the error on failure

        Returns:
            Surrogate ID

        Raises:
            ResolutionError: No key matched, or only ambiguous variants did
        """
        present = [k for k in keys if k]

        # Raw keys are exact and win over any derived form
        for key in present:
            ids = self.exact.get(key)
            if ids and len(ids) == 1:
                return next(iter(ids))

        attempted: List[str] = list(present)
        candidates: Set[int] = set()
        for key in present:
            exact_ids = self.exact.get(key)
            if exact_ids:
                candidates.update(exact_ids)
            for variant in key_variants(key):
                if variant not in attempted:
                    attempted.append(variant)
                ids = self.derived.get(variant)
                if not ids:
                    continue
                if len(ids) == 1:
                    return next(iter(ids))
                candidates.update(ids)

        raise ResolutionError(self.entity, attempted, sorted(candidates), raw=raw)


class EntityResolver:
    """
    Holds one IdMap per entity type for the duration of a run.

    Attributes:
        maps: Entity type → IdMap
        logger: Optional SeedLogger
    """

    def __init__(self, logger: Optional[SeedLogger] = None) -> None:
        self.maps: Dict[str, IdMap] = {}
        self.logger = logger

    def get_map(self, entity: str) -> IdMap:
        """Map of an entity type (empty if not built yet)."""
        return self.maps.setdefault(entity, IdMap(entity))

    def clear(self) -> None:
        """Forget every map."""
        self.maps.clear()

    def resolve(self, entity: str, *keys: Optional[str], raw: Any = None) -> int:
        """Resolve keys through the map of ``entity`` (see IdMap.resolve)."""
        return self.get_map(entity).resolve(*keys, raw=raw)

    def get(self, entity: str, *keys: Optional[str]) -> Optional[int]:
        """Resolve or return None."""
        return self.get_map(entity).get(*keys)

    # ---- Builders ----

    @handle_db_errors
    def build_from_store(
        self,
        session: Session,
        entity: str,
        model: Any,
        key_attrs: Sequence[str],
        values: Optional[Iterable[str]] = None,
    ) -> IdMap:
        """
        Read rows back from the store and register their keys.

        Args:
            session: Open session (same transaction as the writes)
            entity: Entity type of the map
            model: ORM model with an ``id`` column
            key_attrs: Natural key columns to register (first one is used
                to filter by ``values``)
            values: Just-written natural keys; None reads the whole table

        Returns:
            The (extended) IdMap

        Raises:
            DatabaseError: If the read fails
        """
        id_map = self.get_map(entity)
        columns = [getattr(model, attr) for attr in key_attrs]
        stmt = select(model.id, *columns)

        if values is None:
            rows = session.execute(stmt).all()
        else:
            wanted = list(dict.fromkeys(v for v in values if v))
            rows = []
            for start in range(0, len(wanted), _QUERY_CHUNK):
                chunk = wanted[start : start + _QUERY_CHUNK]
                rows.extend(session.execute(stmt.where(columns[0].in_(chunk))).all())

        for row in rows:
            id_map.register(row[0], *row[1:])

        self._log_map(id_map, source="store")
        return id_map

    def build_simulated(
        self, entity: str, key_groups: Iterable[Sequence[Optional[str]]]
    ) -> IdMap:
        """
        Build a dry-run map with sequential fake IDs.

        One ID is assigned per distinct normalized primary key (the first
        key of each group); every key of the group is registered under it.

        Args:
            entity: Entity type of the map
            key_groups: Per record, its keys (primary key first)

        Returns:
            The IdMap
        """
        id_map = self.get_map(entity)
        assigned: Dict[str, int] = {}
        next_id = max(id_map.ids, default=0) + 1

        for keys in key_groups:
            present = [k for k in keys if k]
            if not present:
                continue
            primary = normalize_for_matching(present[0]) or present[0]
            if primary not in assigned:
                assigned[primary] = next_id
                next_id += 1
            id_map.register(assigned[primary], *present)

        self._log_map(id_map, source="simulated")
        return id_map

    def _log_map(self, id_map: IdMap, source: str) -> None:
        log = safe_logger(self.logger)
        details: Dict[str, Any] = {
            "entity": id_map.entity,
            "source": source,
            "ids": len(id_map),
            "keys": len(id_map.exact) + len(id_map.derived),
        }
        ambiguous = id_map.ambiguous
        if ambiguous:
            details["ambiguous"] = len(ambiguous)
            log.log_warning(
                f"Ambiguous {id_map.entity} key variants",
                {"variants": dict(list(ambiguous.items())[:20])},
            )
        log.log_operation("id_map_built", details)
