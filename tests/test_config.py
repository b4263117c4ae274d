"""
Tests for settings loading and the command-line entry point.
"""

import json
import logging

import pytest

import sync
from lethe_sync.config import SyncConfig
from lethe_sync.core.log import setup_logging
from lethe_sync.sync import AuxiliaryAsset, SyncPhase, SyncResult


class TestSyncConfig:
    """Tests for SyncConfig - lethe-sync.json handling."""

    def test_missing_file_created_with_defaults(self, temp_dir):
        path = temp_dir / "lethe-sync.json"
        config = SyncConfig.load(path)

        assert path.exists()
        assert config.path == path
        saved = json.loads(path.read_text())
        assert saved["max_retries"] == 3
        assert saved["disable_auto_update"] is False
        assert len(saved["auxiliary_assets"]) == 2

    def test_missing_file_not_created(self, temp_dir):
        path = temp_dir / "lethe-sync.json"
        SyncConfig.load(path, create=False)
        assert not path.exists()

    def test_values_loaded(self, temp_dir):
        path = temp_dir / "lethe-sync.json"
        path.write_text(json.dumps({
            "destination": "D:/Games/Limbus",
            "max_workers": 4,
            "use_donor": False,
            "auxiliary_assets": [{"url": "https://example.test/x.dll", "path": "BepInEx/plugins/x.dll"}],
        }))
        config = SyncConfig.load(path)

        assert config.destination == "D:/Games/Limbus"
        assert config.max_workers == 4
        assert not config.use_donor
        assert config.max_retries == 3
        assert config.auxiliary_assets == [
            AuxiliaryAsset(url="https://example.test/x.dll", path="BepInEx/plugins/x.dll")
        ]

    @pytest.mark.parametrize("value,expected", [
        ("true", True), ("True", True), ("false", False), (True, True), (False, False), (0, False),
    ])
    def test_disable_auto_update_parsing(self, value, expected):
        assert SyncConfig.from_dict({"disable_auto_update": value}).disable_auto_update is expected

    def test_invalid_json_uses_defaults(self, temp_dir):
        path = temp_dir / "lethe-sync.json"
        path.write_text("{broken")
        config = SyncConfig.load(path)
        assert config.max_retries == 3
        assert config.path == path
        assert path.read_text() == "{broken"

    def test_bad_value_uses_defaults(self, temp_dir):
        path = temp_dir / "lethe-sync.json"
        path.write_text(json.dumps({"max_workers": "many"}))
        assert SyncConfig.load(path).max_workers == 1

    def test_non_object_auxiliary_asset_uses_defaults(self, temp_dir):
        path = temp_dir / "lethe-sync.json"
        path.write_text(json.dumps({"max_workers": 4, "auxiliary_assets": ["Lethe.dll"]}))
        config = SyncConfig.load(path)
        assert config.max_workers == 1
        assert len(config.auxiliary_assets) == 2
        assert config.path == path

    def test_auxiliary_asset_rejects_non_object(self):
        with pytest.raises(ValueError):
            AuxiliaryAsset.from_dict("Lethe.dll")

    @pytest.mark.parametrize("value,expected", [
        ("false", False), ("true", True), (False, False), (True, True),
    ])
    def test_use_donor_parsing(self, value, expected):
        assert SyncConfig.from_dict({"use_donor": value}).use_donor is expected

    def test_use_donor_string_from_file(self, temp_dir):
        path = temp_dir / "lethe-sync.json"
        path.write_text(json.dumps({"use_donor": "false"}))
        assert not SyncConfig.load(path).use_donor

    def test_save_round_trip(self, temp_dir):
        path = temp_dir / "lethe-sync.json"
        config = SyncConfig(destination="game", donor_root="steam", max_workers=2, path=path)
        config.save()
        assert SyncConfig.load(path) == config

    def test_save_without_path(self):
        with pytest.raises(ValueError):
            SyncConfig().save()


class TestSetupLogging:
    """Tests for setup_logging()."""

    def test_writes_banner_and_messages(self, temp_dir):
        log_path = temp_dir / "lethe-launcher.log"
        logger = setup_logging(log_path)
        logger.info("Downloaded: %s", "a.bin")
        for handler in logger.handlers:
            handler.flush()

        text = log_path.read_text(encoding="utf-8")
        assert "=== Lethe Sync started at" in text
        assert "Downloaded: a.bin" in text
        setup_logging(None)

    def test_appends(self, temp_dir):
        log_path = temp_dir / "lethe-launcher.log"
        log_path.write_text("earlier run\n")
        setup_logging(log_path)
        setup_logging(None)
        assert log_path.read_text(encoding="utf-8").startswith("earlier run\n")

    def test_no_destination(self):
        logger = setup_logging(None)
        assert logger.name == "lethe_sync"
        assert all(isinstance(h, logging.NullHandler) for h in logger.handlers)
        assert not logger.propagate

    def test_verbose_level(self):
        assert setup_logging(None, verbose=True).level == logging.DEBUG
        assert setup_logging(None).level == logging.INFO


class TestCommandLine:
    """Tests for the sync.py entry point."""

    @pytest.mark.parametrize("result,code", [
        (SyncResult(phase=SyncPhase.DONE), sync.EXIT_OK),
        (SyncResult(phase=SyncPhase.FAILED, error="x"), sync.EXIT_MANIFEST_FAILED),
        (SyncResult(phase=SyncPhase.CANCELLED), sync.EXIT_CANCELLED),
    ])
    def test_exit_codes(self, result, code):
        assert sync.exit_code_for(result) == code

    def test_partial_failure_exit_code(self):
        result = SyncResult(phase=SyncPhase.DONE)
        result.record_failure("a.bin", "download failed: HTTP 404")
        assert sync.exit_code_for(result) == sync.EXIT_PARTIAL

    def test_flags_override_settings(self, temp_dir):
        settings = temp_dir / "lethe-sync.json"
        args = sync.parse_args([
            "--config", str(settings), "--dest", str(temp_dir / "game"),
            "--donor", str(temp_dir / "steam"), "--workers", "4",
        ])
        config = sync.load_config(args)

        assert config.destination == str(temp_dir / "game")
        assert config.donor_root == str(temp_dir / "steam")
        assert config.max_workers == 4
        assert config.use_donor

    def test_no_donor_flag(self, temp_dir):
        args = sync.parse_args(["--config", str(temp_dir / "s.json"), "--no-donor"])
        assert not sync.load_config(args).use_donor

    def test_auto_update_disabled_skips_sync(self, temp_dir, capsys):
        config = SyncConfig(
            destination=str(temp_dir / "game"),
            disable_auto_update=True,
            log_file=str(temp_dir / "lethe-launcher.log"),
        )
        app = sync.SyncApp(config)
        app.build_orchestrator = None  # must not be reached

        assert app.run() == sync.EXIT_OK
        assert "skipping" in capsys.readouterr().out
        assert not (temp_dir / "game").exists()
        setup_logging(None)

    def test_local_manifest_option(self, temp_dir, monkeypatch):
        monkeypatch.setattr(sync, "get_local_manifest_path", lambda: temp_dir / "lethe-manifest.json")
        config = SyncConfig(destination=str(temp_dir / "game"), log_file=str(temp_dir / "l.log"))
        app = sync.SyncApp(config, use_local_manifest=True)

        orchestrator = app.build_orchestrator()

        assert orchestrator.manifest_loader is not None
        assert orchestrator.cancel is app.cancel
        setup_logging(None)
