"""Tests for migration options."""

from pathlib import Path

import pytest

from surreal_migrate.config import MigrateOptions, validate_options
from surreal_migrate.migrations.base import ConfigError, Direction


class TestMigrateOptionsDefaults:
    """Tests for default option values."""

    def test_defaults(self):
        """Test defaults when only op and db are given."""
        options = MigrateOptions(op=Direction.UP, db="app")

        assert options.migrations_table == "_migrations"
        assert options.migrations_directory == "migrations"
        assert options.additional_migrations_directories == []
        assert options.ignore_timestamp is False
        assert options.keep_connection_open is False
        assert options.url == "ws://localhost:8000/rpc"
        assert options.namespace == "migrations"
        assert options.pool is False
        assert options.pool_size == 5

    def test_env_overrides(self, monkeypatch):
        """Test environment-backed defaults."""
        monkeypatch.setenv("SURREAL_URL", "wss://db.example.com/rpc")
        monkeypatch.setenv("SURREAL_NAMESPACE", "prod")
        monkeypatch.setenv("SURREAL_POOL_SIZE", "8")
        monkeypatch.setenv("SURREAL_SKIP_SSL_VERIFY", "true")

        options = MigrateOptions(op=Direction.UP, db="app")

        assert options.url == "wss://db.example.com/rpc"
        assert options.namespace == "prod"
        assert options.pool_size == 8
        assert options.skip_ssl_verify is True
        assert options.is_secure is True

    def test_login_prefers_username(self, monkeypatch):
        """Test login resolution order."""
        monkeypatch.setenv("SURREAL_USER", "env-user")

        assert MigrateOptions(username="alice").login == "alice"
        assert MigrateOptions(user="bob").login == "bob"
        assert MigrateOptions().login == "env-user"

    def test_secret_falls_back_to_env(self, monkeypatch):
        """Test password falls back to SURREAL_PASS."""
        assert MigrateOptions().secret == "root"
        monkeypatch.setenv("SURREAL_PASS", "s3cret")
        assert MigrateOptions().secret == "s3cret"
        assert MigrateOptions(password="given").secret == "given"

    def test_roots_primary_first(self, tmp_path):
        """Test migration roots resolve against relative_to in order."""
        options = MigrateOptions(
            relative_to=str(tmp_path),
            migrations_directory="migrations",
            additional_migrations_directories=["plugins/a", "plugins/b"],
        )

        assert options.roots == [
            (tmp_path / "migrations").resolve(),
            (tmp_path / "plugins/a").resolve(),
            (tmp_path / "plugins/b").resolve(),
        ]

    def test_relative_to_defaults_to_cwd(self, tmp_path, monkeypatch):
        """Test relative_to defaults to the working directory."""
        monkeypatch.chdir(tmp_path)
        assert Path(MigrateOptions().relative_to) == Path.cwd()


class TestFromDict:
    """Tests for building options from a mapping."""

    def test_snake_case_keys(self):
        """Test plain field names are accepted."""
        options = MigrateOptions.from_dict({"op": "down", "db": "app", "to": "create_users"})
        assert options.op == "down"
        assert options.to == "create_users"

    def test_camel_case_aliases(self):
        """Test camelCase option names are mapped."""
        options = MigrateOptions.from_dict(
            {
                "op": "up",
                "db": "app",
                "migrationsTable": "history",
                "ignoreTimestamp": True,
                "migrationsDirectory": "db/migrations",
                "additionalMigrationsDirectories": ["extra"],
                "relativeTo": "/srv/app",
                "authKey": "tok",
                "dontCloseConnectionAfterMigrations": True,
            }
        )

        assert options.migrations_table == "history"
        assert options.ignore_timestamp is True
        assert options.migrations_directory == "db/migrations"
        assert options.additional_migrations_directories == ["extra"]
        assert options.relative_to == "/srv/app"
        assert options.token == "tok"
        assert options.keep_connection_open is True

    def test_unknown_keys_rejected(self):
        """Test unknown options raise ConfigError."""
        with pytest.raises(ConfigError, match="Unknown options: bogus"):
            MigrateOptions.from_dict({"op": "up", "db": "app", "bogus": 1})

    def test_non_mapping_rejected(self):
        """Test non-dict options raise ConfigError."""
        with pytest.raises(ConfigError, match="must be a mapping"):
            MigrateOptions.from_dict(["up"])  # type: ignore[arg-type]


class TestValidateOptions:
    """Tests for option validation."""

    def test_valid_dict(self):
        """Test a minimal mapping validates and coerces op."""
        options = validate_options({"op": "up", "db": "app"})

        assert isinstance(options, MigrateOptions)
        assert options.op == Direction.UP

    def test_valid_instance_returned(self):
        """Test an options instance is validated in place."""
        given = MigrateOptions(op="down", db="app")
        options = validate_options(given)

        assert options is given
        assert options.op == Direction.DOWN

    def test_missing_op(self):
        """Test op is required."""
        with pytest.raises(ConfigError, match="op is required"):
            validate_options({"db": "app"})

    def test_invalid_op(self):
        """Test op must be up or down."""
        with pytest.raises(ConfigError, match="op must be one of"):
            validate_options({"op": "sideways", "db": "app"})

    def test_missing_db(self):
        """Test db is required."""
        with pytest.raises(ConfigError, match="db is required"):
            validate_options({"op": "up"})

    def test_all_errors_reported(self):
        """Test every problem is listed in one error."""
        with pytest.raises(ConfigError) as exc_info:
            validate_options({"op": "up", "db": "", "url": "http://localhost:8000"})

        message = str(exc_info.value)
        assert message.startswith("Invalid migration options: ")
        assert "db is required" in message
        assert "url must start with ws:// or wss://" in message

    @pytest.mark.parametrize("table", ["bad-name", "1table", "drop table", ""])
    def test_invalid_table_name(self, table):
        """Test the ledger table must be a plain identifier."""
        with pytest.raises(ConfigError, match="migrations_table must be a plain identifier"):
            validate_options({"op": "up", "db": "app", "migrations_table": table})

    def test_user_and_username_exclusive(self):
        """Test user and username cannot both be set."""
        with pytest.raises(ConfigError, match="mutually exclusive"):
            validate_options({"op": "up", "db": "app", "user": "a", "username": "b"})

    def test_password_and_token_exclusive(self):
        """Test password and token cannot both be set."""
        with pytest.raises(ConfigError, match="password and token are mutually exclusive"):
            validate_options({"op": "up", "db": "app", "password": "p", "authKey": "t"})

    def test_boolean_flags_checked(self):
        """Test boolean options reject other types."""
        with pytest.raises(ConfigError, match="ignore_timestamp must be a boolean"):
            validate_options({"op": "up", "db": "app", "ignoreTimestamp": "yes"})

    def test_additional_directories_none_becomes_empty(self):
        """Test None additional directories are normalized."""
        options = validate_options(
            {"op": "up", "db": "app", "additional_migrations_directories": None}
        )
        assert options.additional_migrations_directories == []

    def test_additional_directories_must_be_strings(self):
        """Test additional directories must be a list of strings."""
        with pytest.raises(ConfigError, match="list of strings"):
            validate_options(
                {"op": "up", "db": "app", "additional_migrations_directories": "extra"}
            )

    @pytest.mark.parametrize("name", ["connect_timeout", "wait_timeout", "retry_delay"])
    def test_timeouts_positive(self, name):
        """Test timeouts must be positive numbers."""
        with pytest.raises(ConfigError, match=f"{name} must be a positive number"):
            validate_options({"op": "up", "db": "app", name: 0})

    def test_pool_size_positive(self):
        """Test pool_size must be at least one."""
        with pytest.raises(ConfigError, match="pool_size must be a positive integer"):
            validate_options({"op": "up", "db": "app", "pool": True, "pool_size": 0})
