"""
Tests for foreign-key resolution through multi-variant ID maps.
"""
import pytest
from unittest.mock import MagicMock

from comicseed.core.exceptions import ResolutionError
from comicseed.core.logging_manager import SeedLogger
from comicseed.database.models import Author
from comicseed.pipeline.entity_resolver import EntityResolver, IdMap, key_variants


class TestKeyVariants:
    """Tests for key_variants."""

    def test_suffixed_slug(self):
        """Suffixed slugs derive their bare forms."""
        assert key_variants("Hero-Saga-1a2b3c4d") == [
            "hero-saga",
            "hero saga 1a2b3c4d",
            "hero saga",
        ]

    def test_spaced_name(self):
        """Names derive slug and matching forms without repeats."""
        assert key_variants("Jane  Doe") == ["jane-doe", "jane doe"]


class TestIdMap:
    """Tests for IdMap lookups."""

    @pytest.mark.parametrize("key", ["Jane Doe", "jane-doe", "Jane  Doe", "JANE DOE"])
    def test_spellings_round_trip(self, key):
        """Every spelling of a registered name resolves to its ID."""
        id_map = IdMap("author")
        id_map.register(7, "Jane Doe")
        assert id_map.resolve(key) == 7

    def test_suffixed_slug_resolves_bare_reference(self):
        """A chapter citing the bare slug finds the suffixed comic."""
        id_map = IdMap("comic")
        id_map.register(3, "hero-saga-1a2b3c4d", "Hero Saga")
        assert id_map.resolve("hero-saga") == 3

    def test_first_key_wins(self):
        """Keys are tried in argument order."""
        id_map = IdMap("comic")
        id_map.register(1, "alpha", "Alpha")
        id_map.register(2, "beta", "Beta")
        assert id_map.resolve("beta", "Alpha") == 2

    def test_falls_back_to_later_key(self):
        """A missing slug falls back to the title."""
        id_map = IdMap("comic")
        id_map.register(1, "hero-saga", "Hero Saga")
        assert id_map.resolve("ghost-slug", "Hero Saga") == 1

    def test_exact_key_beats_ambiguous_variant(self):
        """An exact raw key resolves even when its variants are shared."""
        id_map = IdMap("author")
        id_map.register(1, "Jane Doe")
        id_map.register(2, "jane-doe")
        assert id_map.resolve("jane-doe") == 2
        assert id_map.resolve("Jane Doe") == 1

    def test_ambiguous_variant_raises(self):
        """A derived variant shared by two IDs is never guessed."""
        id_map = IdMap("author")
        id_map.register(1, "Jane Doe")
        id_map.register(2, "jane-doe")

        with pytest.raises(ResolutionError) as exc_info:
            id_map.resolve("JANE  DOE", raw={"author": "JANE  DOE"})

        error = exc_info.value
        assert error.candidates == [1, 2]
        assert error.raw == {"author": "JANE  DOE"}
        assert id_map.ambiguous["jane doe"] == [1, 2]

    def test_not_found_lists_attempts(self):
        """Unknown keys raise with every attempted variant."""
        id_map = IdMap("comic")
        id_map.register(1, "hero-saga")

        with pytest.raises(ResolutionError) as exc_info:
            id_map.resolve("Ghost Comic")

        assert exc_info.value.candidates == []
        assert exc_info.value.attempted_keys == ["Ghost Comic", "ghost-comic", "ghost comic"]

    def test_get_returns_none(self):
        """get never raises."""
        assert IdMap("genre").get("Action") is None

    def test_empty_keys_ignored(self):
        """None and empty keys are neither registered nor tried."""
        id_map = IdMap("artist")
        id_map.register(5, None, "", "John Roe")
        assert len(id_map) == 1
        assert id_map.resolve(None, "", "john roe") == 5
        assert "John Roe" in id_map


class TestEntityResolver:
    """Tests for EntityResolver builders."""

    def test_build_simulated_assigns_sequential_ids(self):
        """Dry-run maps give one fake ID per distinct primary key."""
        resolver = EntityResolver()
        resolver.build_simulated("author", [("Jane Doe",), ("jane-doe",), ("Max Kane",)])

        assert resolver.resolve("author", "Jane Doe") == 1
        assert resolver.resolve("author", "Max Kane") == 2

    def test_build_simulated_extends_existing_map(self):
        """A second build continues numbering after the existing IDs."""
        resolver = EntityResolver()
        resolver.build_simulated("comic", [("a", "A")])
        resolver.build_simulated("comic", [("b", "B")])
        assert resolver.resolve("comic", "B") == 2

    def test_build_from_store(self, test_db):
        """Store maps register every key column of the written rows."""
        with test_db.session_scope() as session:
            session.add_all([Author(name="Jane Doe"), Author(name="Max Kane")])

        resolver = EntityResolver(logger=MagicMock(spec=SeedLogger))
        with test_db.session_scope() as session:
            id_map = resolver.build_from_store(session, "author", Author, ["name"], ["Jane Doe"])

        assert len(id_map) == 1
        assert resolver.get("author", "jane-doe") is not None
        assert resolver.get("author", "Max Kane") is None

    def test_build_from_store_whole_table(self, test_db):
        """Without values the whole table is read."""
        with test_db.session_scope() as session:
            session.add_all([Author(name="Jane Doe"), Author(name="Max Kane")])

        resolver = EntityResolver()
        with test_db.session_scope() as session:
            resolver.build_from_store(session, "author", Author, ["name"])

        assert len(resolver.get_map("author")) == 2

    def test_ambiguous_map_logged(self):
        """Ambiguous variants are reported when a map is built."""
        logger = MagicMock(spec=SeedLogger)
        resolver = EntityResolver(logger=logger)
        id_map = resolver.get_map("author")
        id_map.register(1, "Jane Doe")
        id_map.register(2, "jane-doe")
        resolver.build_simulated("author", [])
        logger.log_warning.assert_called_once()

    def test_clear(self):
        """clear forgets every map."""
        resolver = EntityResolver()
        resolver.build_simulated("type", [("Manga",)])
        resolver.clear()
        assert resolver.get("type", "Manga") is None
