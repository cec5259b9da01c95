"""Unit tests for certverify.db.init -- database initialisation."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_db_settings(
    host="localhost",
    port=5432,
    database="certverify_test",
    user="testuser",
    password="secret",
    sslmode="prefer",
    min_connections=1,
    max_connections=10,
    connection_timeout=5.0,
    auto_setup=True,
):
    return SimpleNamespace(
        host=host,
        port=port,
        database=database,
        user=user,
        password=password,
        sslmode=sslmode,
        min_connections=min_connections,
        max_connections=max_connections,
        connection_timeout=connection_timeout,
        auto_setup=auto_setup,
    )


class TestSettingsToConfig:
    @patch("certverify.db.init.DatabaseConfig")
    def test_maps_all_fields(self, mock_db_config_class):
        from certverify.db.init import _settings_to_config

        settings = _make_db_settings(host="db.example.edu", port=5433, sslmode="require")
        _settings_to_config(settings)

        mock_db_config_class.assert_called_once_with(
            host="db.example.edu",
            port=5433,
            database="certverify_test",
            user="testuser",
            password="secret",
            sslmode="require",
            min_connections=1,
            max_connections=10,
            connection_timeout=5.0,
        )


class TestInitDatabase:
    @patch("certverify.db.init.Database")
    def test_returns_existing_instance(self, mock_database):
        from certverify.db.init import init_database

        mock_database.is_initialized.return_value = True
        sentinel = MagicMock(name="existing")
        mock_database.get_instance.return_value = sentinel

        assert init_database(_make_db_settings()) is sentinel
        mock_database.init.assert_not_called()

    @patch("certverify.db.init.DatabaseConfig")
    @patch("certverify.db.init.Database")
    def test_auto_setup_applies_schema(self, mock_database, mock_config):
        from certverify.db.init import SCHEMA_PATH, init_database

        mock_database.is_initialized.return_value = False
        init_database(_make_db_settings(auto_setup=True))

        kwargs = mock_database.init.call_args.kwargs
        assert kwargs["schema_path"] == SCHEMA_PATH
        assert kwargs["auto_setup"] is True
        assert kwargs["interactive"] is False

    @patch("certverify.db.init.DatabaseConfig")
    @patch("certverify.db.init.Database")
    def test_without_auto_setup(self, mock_database, mock_config):
        from certverify.db.init import init_database

        mock_database.is_initialized.return_value = False
        init_database(_make_db_settings(auto_setup=False))

        kwargs = mock_database.init.call_args.kwargs
        assert kwargs["schema_path"] is None
        assert kwargs["auto_setup"] is False


class TestMissingTables:
    def test_all_present(self):
        from certverify.db.init import missing_tables

        db = MagicMock(name="Database")
        db.fetch_all.return_value = [
            {"table_name": "universities"},
            {"table_name": "certificates"},
            {"table_name": "verification_logs"},
        ]
        assert missing_tables(db) == []

    def test_reports_missing(self):
        from certverify.db.init import missing_tables

        db = MagicMock(name="Database")
        db.fetch_all.return_value = [{"table_name": "certificates"}]
        assert missing_tables(db) == ["universities", "verification_logs"]


class TestSchemaFile:
    def test_schema_defines_required_tables(self):
        from certverify.db.init import REQUIRED_TABLES, SCHEMA_PATH

        sql = SCHEMA_PATH.read_text(encoding="utf-8")
        for table in REQUIRED_TABLES:
            assert f"CREATE TABLE IF NOT EXISTS {table}" in sql
