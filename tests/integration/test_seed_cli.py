#!/usr/bin/env python3
"""
Integration tests for the seeding CLI.

Commands are invoked through click's CliRunner with every directory
pointed into a temporary tree.
"""
import json
import pytest
from click.testing import CliRunner
from sqlalchemy import func, select

from comicseed.database.manager import SeedDB
from comicseed.database.models import Chapter, Comic
from comicseed.pipeline.cli import cli


@pytest.fixture
def runner():
    """Create Click test runner."""
    return CliRunner()


@pytest.fixture
def base_args(tmp_dir):
    """Global options sending logs into the temporary tree."""
    return ["--log-dir", str(tmp_dir / "logs")]


@pytest.fixture
def seed_args(base_args, tmp_dir, source_dir):
    """Options of the seed command for the temporary tree."""
    return base_args + [
        "seed",
        "--data-dir", str(source_dir),
        "--report-dir", str(tmp_dir / "reports"),
        "--db", str(tmp_dir / "cli.db"),
    ]


class TestCLIBasics:
    """Test basic CLI functionality."""

    def test_cli_help(self, runner):
        """Test that CLI help message works."""
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "Comic Catalog Seeding Pipeline" in result.output

    def test_seed_help(self, runner):
        """Test seed command help lists its options."""
        result = runner.invoke(cli, ["seed", "--help"])
        assert result.exit_code == 0
        assert "--dry-run" in result.output
        assert "--skip-images" in result.output

    def test_logs_written(self, runner, base_args, tmp_dir):
        """The command group creates the operations log directory."""
        runner.invoke(cli, base_args + ["check-duplicates", "--help"])
        assert (tmp_dir / "logs" / "operations").is_dir()


class TestSeedCommand:
    """Test the seed command."""

    def test_dry_run(self, runner, seed_args, tmp_dir, write_source, raw_comics, raw_chapters):
        """A dry run prints the report and creates no database."""
        write_source("comics.json", raw_comics)
        write_source("chapters.json", raw_chapters)

        result = runner.invoke(cli, seed_args + ["--dry-run"], obj={})

        assert result.exit_code == 0, result.output
        assert "Dry run" in result.output
        assert "SEED EXECUTION REPORT" in result.output
        assert "DRY-RUN" in result.output
        assert not (tmp_dir / "cli.db").exists()

    def test_full_run(self, runner, seed_args, tmp_dir, write_source, raw_comics, raw_chapters):
        """A full run writes the database and both report files."""
        write_source("comics.json", raw_comics)
        write_source("chapters.json", raw_chapters)

        result = runner.invoke(cli, seed_args, obj={})

        assert result.exit_code == 0, result.output
        assert "Seeding complete" in result.output
        assert "Inserted:" in result.output

        db = SeedDB(db_path=tmp_dir / "cli.db")
        try:
            with db.session_scope() as session:
                assert session.scalar(select(func.count()).select_from(Comic)) == 3
                assert session.scalar(select(func.count()).select_from(Chapter)) == 4
        finally:
            db.dispose()

        reports = list((tmp_dir / "reports").glob("seed-report-*.json"))
        assert len(reports) == 1
        assert json.loads(reports[0].read_text(encoding="utf-8"))["mode"] == "full"

    def test_record_errors_exit_two(self, runner, seed_args, write_source, raw_comics):
        """Rejected records make the run exit with status 2."""
        write_source("comics.json", raw_comics)
        write_source("chapters.json", [{"comicslug": "ghost-comic", "chaptername": "Chapter 1"}])

        result = runner.invoke(cli, seed_args, obj={})

        assert result.exit_code == 2
        assert "Errors: 1" in result.output

    def test_config_file(self, runner, seed_args, tmp_dir, write_source, raw_comics):
        """Settings are read from a YAML config file."""
        write_source("comics.json", raw_comics)
        config = tmp_dir / "seed.yaml"
        config.write_text("batch_size: 1\nbatch_sizes:\n  comics: 1\n", encoding="utf-8")

        result = runner.invoke(cli, seed_args + ["--config", str(config)], obj={})

        assert result.exit_code == 0, result.output

    def test_bad_config_exits_one(self, runner, seed_args, tmp_dir):
        """An unknown config key is reported and exits with status 1."""
        config = tmp_dir / "seed.yaml"
        config.write_text("bogus_setting: 3\n", encoding="utf-8")

        result = runner.invoke(cli, seed_args + ["--config", str(config)], obj={})

        assert result.exit_code == 1
        assert "Unknown config keys: bogus_setting" in result.output

    def test_empty_source_dir(self, runner, seed_args):
        """With no export files every phase is skipped."""
        result = runner.invoke(cli, seed_args, obj={})
        assert result.exit_code == 0, result.output
        assert "No comic records found" in result.output


class TestCheckDuplicates:
    """Test the check-duplicates command."""

    def test_reports_conflicts(self, runner, base_args, write_source, raw_comics):
        """Slug duplicates and similar titles are both listed."""
        twin = dict(raw_comics[0], title="Hero Saga Remastered")
        similar = dict(raw_comics[1], slug="moon-gardens", title="Moon Gardens")
        path = write_source("comics.json", raw_comics + [twin, similar])

        result = runner.invoke(cli, base_args + ["check-duplicates", str(path)], obj={})

        assert result.exit_code == 0, result.output
        assert "CRITICAL" in result.output
        assert "WARNING" in result.output
        assert "Duplicates Skipped: 1" in result.output

    def test_clean_file(self, runner, base_args, write_source, raw_comics):
        """A file without duplicates says so."""
        path = write_source("comics.json", raw_comics)
        result = runner.invoke(cli, base_args + ["check-duplicates", str(path)], obj={})
        assert result.exit_code == 0
        assert "No duplicates detected" in result.output

    def test_threshold_option(self, runner, base_args, write_source, raw_comics):
        """A strict threshold hides merely similar titles."""
        similar = dict(raw_comics[1], slug="moon-gardens", title="Moon Gardens")
        path = write_source("comics.json", raw_comics + [similar])

        result = runner.invoke(
            cli, base_args + ["check-duplicates", str(path), "--threshold", "100"], obj={}
        )

        assert "No duplicates detected" in result.output

    def test_requires_files(self, runner, base_args):
        """At least one file must be given."""
        result = runner.invoke(cli, base_args + ["check-duplicates"])
        assert result.exit_code == 2
