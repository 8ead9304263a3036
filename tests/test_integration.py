# ==============================================
# Integration Tests
# ==============================================
#
# These tests drive the command line entry point end-to-end
# against the in-memory store from conftest.py.
#
# ==============================================

import logging
import os

import pytest

from docrepair.cli import build_options, build_parser, main
from docrepair.config import AppConfig, MongoConfig, RunConfig
from docrepair.normalization.canonical import CanonicalTimestamp
from docrepair.normalization.timestamps import LEGACY_THRESHOLDS, PRIMARY_THRESHOLDS
from docrepair.storage.base import StoreError

INSTANT = CanonicalTimestamp.from_seconds(1_700_000_000)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    environ = {
        k: v for k, v in os.environ.items()
        if not k.startswith("MONGO_") and k not in ("BATCH_SIZE", "PREVIEW_LIMIT",
                                                   "TIMESTAMP_THRESHOLDS", "DRY_RUN",
                                                   "BACKUP", "VERBOSE")
    }
    monkeypatch.setattr(os, "environ", environ)

    # main() reconfigures the root logger; put it back afterwards
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield environ
    root.handlers[:] = handlers
    root.setLevel(level)


def factory_for(store):
    def factory(config):
        return store
    return factory


# ==============================================
# CLI End-to-End Tests
# ==============================================

class TestCommandLine:

    def test_list(self, populated_store, capsys):
        code = main(["list"], store_factory=factory_for(populated_store))
        out = capsys.readouterr().out

        assert code == 0
        assert "Available collections:" in out
        assert "  captures: 3 documents" in out
        assert "  users: 1 documents" in out

    def test_default_target_is_list(self, store, capsys):
        assert main([], store_factory=factory_for(store)) == 0
        assert "No collections found" in capsys.readouterr().out

    def test_dry_run(self, populated_store, capsys):
        before = populated_store.dump()
        code = main(["captures", "--dry-run", "--preview", "1"], store_factory=factory_for(populated_store))
        out = capsys.readouterr().out

        assert code == 0
        assert populated_store.dump() == before
        assert "DRY RUN - Showing first 1 of 2 changes:" in out
        assert "Normalization completed!" in out

    def test_live_all(self, populated_store, capsys):
        code = main(["all", "--batch-size", "2"], store_factory=factory_for(populated_store))
        out = capsys.readouterr().out

        assert code == 0
        assert populated_store.collections["captures"]["c3"]["timestamp"] == INSTANT
        assert populated_store.collections["predictions"]["p1"]["variety"] == "Arabica"
        assert "users" not in [name for name, _ in populated_store.committed_groups]
        assert "Documents scanned: 6" in out
        assert "Documents failed: 1" in out
        assert "Errors encountered:" in out
        assert populated_store.connected is False

    def test_backup_flag(self, populated_store, capsys):
        assert main(["captures", "--backup"], store_factory=factory_for(populated_store)) == 0
        backups = [name for name in populated_store.collections if name.startswith("captures_backup_")]
        assert len(backups) == 1
        assert f"Backup of captures available at: {backups[0]}" in capsys.readouterr().out

    def test_collection_failure_still_exits_zero(self, populated_store, capsys):
        code = main(["missing"], store_factory=factory_for(populated_store))
        out = capsys.readouterr().out
        assert code == 0
        assert "Collections that could not be processed:" in out

    def test_environment_dry_run(self, populated_store, clean_env):
        clean_env["DRY_RUN"] = "true"
        before = populated_store.dump()
        assert main(["captures"], store_factory=factory_for(populated_store)) == 0
        assert populated_store.dump() == before

    def test_credential_file(self, populated_store, tmp_path):
        credentials = tmp_path / "mongo.env"
        credentials.write_text("MONGO_DATABASE=field_app\n")
        seen = []

        def factory(config):
            seen.append(config.mongo.database)
            return populated_store

        assert main(["list", str(credentials)], store_factory=factory) == 0
        assert seen == ["field_app"]


# ==============================================
# Fatal Error Tests
# ==============================================

class TestFatalErrors:

    def test_missing_credential_file(self, populated_store, tmp_path, capsys):
        code = main(["captures", str(tmp_path / "nope.env")], store_factory=factory_for(populated_store))
        assert code == 1
        assert "Credential file not found" in capsys.readouterr().err
        assert populated_store.connected is False

    def test_connection_failure(self, capsys):
        class Unreachable:
            def connect(self):
                raise StoreError("Could not connect to MongoDB: refused")

        code = main(["captures"], store_factory=lambda config: Unreachable())
        assert code == 1
        assert "Could not connect" in capsys.readouterr().err

    def test_malformed_mongo_uri(self, clean_env, capsys):
        clean_env["MONGO_URI"] = "http://not-a-mongo-uri"
        assert main(["list"]) == 1
        assert "Fatal error: Invalid MongoDB configuration" in capsys.readouterr().err

    def test_invalid_config_value(self, populated_store, clean_env):
        clean_env["BATCH_SIZE"] = "lots"
        assert main(["captures"], store_factory=factory_for(populated_store)) == 1

    @pytest.mark.parametrize("argv", [
        ["captures", "--batch-size", "0"],
        ["captures", "--preview", "-1"],
        ["captures", "--thresholds", "newest"],
    ])
    def test_invalid_arguments(self, argv):
        with pytest.raises(SystemExit) as excinfo:
            main(argv)
        assert excinfo.value.code == 2


# ==============================================
# Option Merging Tests
# ==============================================

class TestBuildOptions:

    def config(self, **run):
        return AppConfig(mongo=MongoConfig(), run=RunConfig(**run))

    def test_config_defaults(self):
        args = build_parser().parse_args(["captures"])
        options = build_options(self.config(batch_size=50, backup=True), args)
        assert options.batch_size == 50
        assert options.backup is True
        assert options.dry_run is False
        assert options.thresholds is PRIMARY_THRESHOLDS

    def test_flags_override_config(self):
        args = build_parser().parse_args(
            ["captures", "--dry-run", "--batch-size", "7", "--preview", "0", "--thresholds", "legacy"]
        )
        options = build_options(self.config(batch_size=50), args)
        assert options.dry_run is True
        assert options.batch_size == 7
        assert options.preview_limit == 0
        assert options.thresholds is LEGACY_THRESHOLDS
