"""Tests for configuration loading and editing."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from xnbtedit.config import (
    BatchConfig,
    ConfigManager,
    WatchConfig,
    XnbtEditConfig,
    is_known_key,
)


@pytest.fixture
def isolated(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """No config from the environment, cwd or home directory."""
    monkeypatch.delenv("XNBTEDIT_CONFIG", raising=False)
    monkeypatch.setattr(ConfigManager, "DEFAULT_USER_CONFIG_DIR", tmp_path / "home")
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.chdir(work)
    return tmp_path


def write_json(path: Path, data: dict) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestModels:
    def test_defaults(self) -> None:
        config = XnbtEditConfig()
        assert config.editor.command is None
        assert config.editor.args == []
        assert config.batch.concurrency == 10
        assert config.watch.stability_threshold == 2.0
        assert config.log.dir is None

    def test_concurrency_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            BatchConfig(concurrency=0)

    def test_codec_workers(self) -> None:
        assert BatchConfig().codec_workers is None
        assert BatchConfig(codec_workers=2).codec_workers == 2
        with pytest.raises(ValidationError):
            BatchConfig(codec_workers=0)

    def test_poll_interval_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            WatchConfig(poll_interval=0)

    @pytest.mark.parametrize(
        "key", ["editor", "editor.command", "batch.concurrency", "watch.poll_interval", "log.level"]
    )
    def test_known_keys(self, key: str) -> None:
        assert is_known_key(key)

    @pytest.mark.parametrize("key", ["editor.colour", "nope", "editor.command.extra", ""])
    def test_unknown_keys(self, key: str) -> None:
        assert not is_known_key(key)


class TestLoad:
    def test_defaults_without_any_file(self, isolated: Path) -> None:
        manager = ConfigManager()
        config = manager.load()

        assert config == XnbtEditConfig()
        assert manager.config_path is None

    def test_explicit_path(self, isolated: Path) -> None:
        path = write_json(isolated / "custom.json", {"batch": {"concurrency": 2}})

        config = ConfigManager().load(config_path=path)

        assert config.batch.concurrency == 2

    def test_env_var_beats_cwd(self, isolated: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        env_file = write_json(isolated / "env.json", {"batch": {"concurrency": 3}})
        write_json(isolated / "work" / "xnbtedit.json", {"batch": {"concurrency": 4}})
        monkeypatch.setenv("XNBTEDIT_CONFIG", str(env_file))

        manager = ConfigManager()
        assert manager.load().batch.concurrency == 3
        assert manager.config_path == env_file

    def test_env_override_can_be_disabled(
        self, isolated: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("XNBTEDIT_CONFIG", str(write_json(isolated / "env.json", {})))
        write_json(isolated / "work" / "xnbtedit.json", {"batch": {"concurrency": 4}})

        assert ConfigManager().load(env_override=False).batch.concurrency == 4

    def test_cwd_beats_user_dir(self, isolated: Path) -> None:
        write_json(isolated / "work" / "xnbtedit.json", {"editor": {"command": "nano"}})
        write_json(isolated / "home" / "config.json", {"editor": {"command": "vim"}})

        assert ConfigManager().load().editor.command == "nano"

    def test_user_dir(self, isolated: Path) -> None:
        write_json(isolated / "home" / "config.json", {"editor": {"command": "vim"}})

        assert ConfigManager().load().editor.command == "vim"

    def test_missing_explicit_file_uses_defaults(self, isolated: Path) -> None:
        manager = ConfigManager()
        config = manager.load(config_path=isolated / "later.json")

        assert config == XnbtEditConfig()
        assert manager.config_path == isolated / "later.json"

    def test_invalid_json(self, isolated: Path) -> None:
        path = isolated / "broken.json"
        path.write_text("{not json")

        with pytest.raises(ValueError):
            ConfigManager().load(config_path=path)

    def test_invalid_value(self, isolated: Path) -> None:
        path = write_json(isolated / "bad.json", {"batch": {"concurrency": -1}})

        with pytest.raises(ValidationError):
            ConfigManager().load(config_path=path)


class TestGetSet:
    def test_get_dotted(self, isolated: Path) -> None:
        path = write_json(isolated / "c.json", {"editor": {"command": "code", "args": ["-w"]}})
        manager = ConfigManager()
        manager.load(config_path=path)

        assert manager.get("editor.command") == "code"
        assert manager.get("editor.args") == ["-w"]
        assert manager.get("editor.missing", "fallback") == "fallback"

    def test_set_then_get(self, isolated: Path) -> None:
        manager = ConfigManager()
        manager.load()

        manager.set("batch.concurrency", 4)

        assert manager.config.batch.concurrency == 4

    def test_set_unknown_key(self, isolated: Path) -> None:
        manager = ConfigManager()
        with pytest.raises(KeyError):
            manager.set("editor.colour", "blue")

    def test_set_invalid_value_keeps_config(self, isolated: Path) -> None:
        manager = ConfigManager()
        manager.load()

        with pytest.raises(ValidationError):
            manager.set("batch.concurrency", 0)
        assert manager.config.batch.concurrency == 10


class TestSave:
    def test_only_changed_keys_are_merged(self, isolated: Path) -> None:
        path = write_json(isolated / "c.json", {"editor": {"command": "vim"}, "custom": 1})
        manager = ConfigManager()
        manager.load(config_path=path)

        manager.set("batch.concurrency", 2)
        saved = manager.save()

        assert saved == path
        assert json.loads(path.read_text()) == {
            "editor": {"command": "vim"},
            "custom": 1,
            "batch": {"concurrency": 2},
        }

    def test_full_dump(self, isolated: Path) -> None:
        manager = ConfigManager()
        manager.load()

        saved = manager.save(isolated / "full.json", full_dump=True)

        data = json.loads(saved.read_text())
        assert set(data) == {"editor", "batch", "watch", "log"}

    def test_default_location_is_user_dir(self, isolated: Path) -> None:
        manager = ConfigManager()
        manager.load()
        manager.set("editor.command", "nano")

        saved = manager.save()

        assert saved == isolated / "home" / "config.json"
        assert ConfigManager().load().editor.command == "nano"

    def test_directory_target(self, isolated: Path) -> None:
        target = isolated / "dir"
        target.mkdir()
        manager = ConfigManager()
        manager.load()

        assert manager.save(target) == target / "xnbtedit.json"
