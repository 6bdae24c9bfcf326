"""Tests for migration file discovery."""

from datetime import datetime, timezone
from pathlib import Path

import pytest

from surreal_migrate.migrations.base import DiscoveryError
from surreal_migrate.migrations.discovery import (
    MIGRATION_PATTERN,
    discover_migrations,
    parse_migration_filename,
)
from tests.helpers.fakes import write_migration_files


class TestMigrationPattern:
    """Tests for the filename contract."""

    @pytest.mark.parametrize(
        "filename",
        [
            "20230101000000-init.py",
            "20230101000000-.py",
            "20230101000000-add-user-index.py",
        ],
    )
    def test_matches(self, filename):
        assert MIGRATION_PATTERN.match(filename)

    @pytest.mark.parametrize(
        "filename",
        [
            "2023010100000-init.py",
            "20230101000000_init.py",
            "20230101000000-init.js",
            "README.md",
            "__init__.py",
        ],
    )
    def test_rejects(self, filename):
        assert MIGRATION_PATTERN.match(filename) is None


class TestParseMigrationFilename:
    """Tests for parse_migration_filename."""

    def test_parses_timestamp_and_name(self):
        """Test timestamp is UTC and name excludes the extension."""
        migration = parse_migration_filename("20230615123045-create_users.py", Path("/m"))

        assert migration is not None
        assert migration.timestamp == datetime(2023, 6, 15, 12, 30, 45, tzinfo=timezone.utc)
        assert migration.name == "create_users"
        assert migration.filename == "20230615123045-create_users.py"
        assert migration.directory == Path("/m")
        assert migration.body is None

    def test_empty_name(self):
        """Test a migration may have an empty name."""
        migration = parse_migration_filename("20230101000000-.py", Path("/m"))
        assert migration is not None
        assert migration.name == ""

    def test_non_matching_returns_none(self):
        assert parse_migration_filename("notes.txt", Path("/m")) is None

    def test_invalid_date(self):
        """Test an impossible date in the prefix raises DiscoveryError."""
        with pytest.raises(DiscoveryError, match="Invalid timestamp"):
            parse_migration_filename("20231341000000-bad.py", Path("/m"))


class TestDiscoverMigrations:
    """Tests for discover_migrations."""

    def test_filters_non_migrations(self, tmp_path):
        """Test only files matching the pattern are returned."""
        write_migration_files(
            tmp_path,
            ["20230101000000-init.py", "README.md", "helpers.py", "20230102000000-next.py"],
        )

        migrations = discover_migrations([tmp_path])

        assert sorted(m.filename for m in migrations) == [
            "20230101000000-init.py",
            "20230102000000-next.py",
        ]
        assert all(m.directory == tmp_path for m in migrations)

    def test_multiple_roots_in_root_order(self):
        """Test results keep root order without sorting."""
        listings = {
            Path("/a"): ["20230105000000-later.py"],
            Path("/b"): ["20230101000000-earlier.py"],
        }

        migrations = discover_migrations([Path("/a"), Path("/b")], listings.__getitem__)

        assert [m.name for m in migrations] == ["later", "earlier"]
        assert [m.directory for m in migrations] == [Path("/a"), Path("/b")]

    def test_same_filename_in_two_roots(self):
        """Test identical filenames in different roots are distinct migrations."""
        listings = {
            Path("/a"): ["20230101000000-init.py"],
            Path("/b"): ["20230101000000-init.py"],
        }

        migrations = discover_migrations([Path("/a"), Path("/b")], listings.__getitem__)

        assert len(migrations) == 2
        assert migrations[0].key != migrations[1].key

    def test_empty_roots(self):
        assert discover_migrations([]) == []

    def test_missing_directory(self, tmp_path):
        """Test an unreadable root raises DiscoveryError."""
        with pytest.raises(DiscoveryError, match="Cannot read migrations directory"):
            discover_migrations([tmp_path / "missing"])

    def test_any_failing_root_fails_whole_call(self, tmp_path):
        """Test a failure in a later root discards earlier results."""
        write_migration_files(tmp_path, ["20230101000000-init.py"])

        with pytest.raises(DiscoveryError):
            discover_migrations([tmp_path, tmp_path / "missing"])
