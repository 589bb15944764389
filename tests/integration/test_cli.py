"""CLI integration tests."""

from __future__ import annotations

import gzip
import json
from collections.abc import Iterator
from pathlib import Path

import pytest
from click.testing import CliRunner

from xnbtedit import __version__
from xnbtedit.cli import app
from xnbtedit.cli.ui import reset_consoles
from xnbtedit.config import ConfigManager


@pytest.fixture(autouse=True)
def cli_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Wide, fresh consoles and no config or log dir from the environment."""
    monkeypatch.setenv("COLUMNS", "400")
    monkeypatch.delenv("XNBTEDIT_CONFIG", raising=False)
    monkeypatch.delenv("XNBTEDIT_LOG_DIR", raising=False)
    monkeypatch.setattr(ConfigManager, "DEFAULT_USER_CONFIG_DIR", tmp_path / "home")
    monkeypatch.chdir(tmp_path)
    reset_consoles()
    yield tmp_path
    reset_consoles()


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


class TestBasics:
    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"xnbtedit {__version__}" in result.output

    def test_no_input_shows_help(self, runner: CliRunner) -> None:
        result = runner.invoke(app, [])
        assert result.exit_code == 0
        assert "INPUT" in result.output
        assert "--compression" in result.output
        assert "config" in result.output

    def test_missing_input_file(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(app, [str(tmp_path / "nope.dat"), "-o", "x.xml"])
        assert result.exit_code == 1
        assert "Input file not found" in result.output

    def test_no_output_and_not_editing(self, runner: CliRunner, sample_nbt: Path) -> None:
        result = runner.invoke(app, [str(sample_nbt)])
        assert result.exit_code == 1
        assert "Use --output or --edit." in result.output


class TestSingleFile:
    def test_forward(self, runner: CliRunner, sample_nbt: Path, tmp_path: Path) -> None:
        out = tmp_path / "out.xml"

        result = runner.invoke(app, [str(sample_nbt), "-o", str(out)])

        assert result.exit_code == 0, result.output
        assert out.read_text(encoding="utf-8").startswith("<?xml")
        assert "model.dat" in result.output
        assert not sample_nbt.with_name("model.dat.backup").exists()

    def test_options_before_input(self, runner: CliRunner, sample_nbt: Path, tmp_path: Path) -> None:
        out = tmp_path / "out.xml"

        result = runner.invoke(app, ["-c", "none", "--output", str(out), str(sample_nbt)])

        assert result.exit_code == 0, result.output
        assert out.read_text(encoding="utf-8").startswith("<?xml")

    def test_input_after_double_dash(
        self, runner: CliRunner, sample_nbt: Path, tmp_path: Path
    ) -> None:
        out = tmp_path / "out.xml"

        result = runner.invoke(app, ["-o", str(out), "--", str(sample_nbt)])

        assert result.exit_code == 0, result.output
        assert out.exists()

    def test_forward_snbt_quiet(self, runner: CliRunner, sample_nbt_gz: Path, tmp_path: Path) -> None:
        out = tmp_path / "level.snbt"

        result = runner.invoke(app, [str(sample_nbt_gz), "-s", "-q", "-o", str(out)])

        assert result.exit_code == 0, result.output
        assert out.read_text(encoding="utf-8").startswith("{")
        assert result.output.strip() == ""

    def test_round_trip_through_cli(
        self, runner: CliRunner, sample_nbt_gz: Path, tmp_path: Path
    ) -> None:
        text = tmp_path / "level.xml"
        back = tmp_path / "back.dat"

        assert runner.invoke(app, [str(sample_nbt_gz), "-o", str(text)]).exit_code == 0
        result = runner.invoke(app, [str(text), "-o", str(back), "-c", "gzip"])

        assert result.exit_code == 0, result.output
        assert gzip.decompress(back.read_bytes()) == gzip.decompress(sample_nbt_gz.read_bytes())

    def test_reverse_backs_up_existing_binary(
        self, runner: CliRunner, sample_nbt: Path, tmp_path: Path
    ) -> None:
        text = tmp_path / "model.xml"
        runner.invoke(app, [str(sample_nbt), "-o", str(text)])
        original = sample_nbt.read_bytes()

        result = runner.invoke(app, [str(text), "-o", str(sample_nbt), "-c", "none"])

        assert result.exit_code == 0, result.output
        assert sample_nbt.with_name("model.dat.backup").read_bytes() == original
        assert sample_nbt.read_bytes() == original

    def test_reverse_needs_compression(
        self, runner: CliRunner, sample_nbt: Path, tmp_path: Path
    ) -> None:
        text = tmp_path / "model.xml"
        runner.invoke(app, [str(sample_nbt), "-o", str(text)])

        result = runner.invoke(app, [str(text), "-o", str(tmp_path / "back.dat")])

        assert result.exit_code == 1
        assert "Compression must be stated" in result.output
        assert not (tmp_path / "back.dat").exists()

    def test_xml_input_flag(self, runner: CliRunner, sample_nbt: Path, tmp_path: Path) -> None:
        text = tmp_path / "edited.txt"
        runner.invoke(app, [str(sample_nbt), "-o", str(text)])

        result = runner.invoke(app, ["-x", str(text), "-o", str(tmp_path / "b.dat"), "-c", "none"])

        assert result.exit_code == 0, result.output
        assert (tmp_path / "b.dat").read_bytes() == sample_nbt.read_bytes()

    def test_malformed_input(self, runner: CliRunner, tmp_path: Path) -> None:
        bad = tmp_path / "bad.dat"
        bad.write_bytes(b"\x0a\x00\x00\x0d")

        result = runner.invoke(app, [str(bad), "-o", str(tmp_path / "bad.xml")])

        assert result.exit_code == 1
        assert "Unknown tag id 13" in result.output
        assert not (tmp_path / "bad.xml").exists()


class TestBulk:
    def test_directory_layout(self, runner: CliRunner, nbt_tree: Path, tmp_path: Path) -> None:
        out = tmp_path / "out"

        result = runner.invoke(app, ["-b", str(nbt_tree), "-o", str(out), "-j", "2"])

        assert result.exit_code == 0, result.output
        assert (out / "level.dat.xml").is_file()
        assert (out / "region" / "r.0.0.dat.xml").is_file()
        assert (out / "players" / "data" / "steve.dat.xml").is_file()
        assert "3 file(s) converted" in result.output

    def test_glob_pattern(self, runner: CliRunner, nbt_tree: Path, tmp_path: Path) -> None:
        out = tmp_path / "out"

        result = runner.invoke(app, ["-b", f"{nbt_tree}/**/r.*.dat", "-o", str(out)])

        assert result.exit_code == 0, result.output
        assert [p.name for p in out.rglob("*.xml")] == ["r.0.0.dat.xml"]
        assert (out / "region" / "r.0.0.dat.xml").is_file()

    def test_non_empty_output_needs_overwrite(
        self, runner: CliRunner, nbt_tree: Path, tmp_path: Path
    ) -> None:
        out = tmp_path / "out"
        out.mkdir()
        (out / "old.txt").write_text("keep")

        refused = runner.invoke(app, ["-b", str(nbt_tree), "-o", str(out)])
        assert refused.exit_code == 1
        assert "not empty" in refused.output
        assert not (out / "level.dat.xml").exists()

        accepted = runner.invoke(app, ["-b", str(nbt_tree), "-o", str(out), "-y"])
        assert accepted.exit_code == 0, accepted.output
        assert (out / "level.dat.xml").is_file()
        assert (out / "old.txt").read_text() == "keep"

    def test_bulk_on_single_file(self, runner: CliRunner, sample_nbt: Path, tmp_path: Path) -> None:
        result = runner.invoke(app, ["-b", str(sample_nbt), "-o", str(tmp_path / "out")])
        assert result.exit_code == 1
        assert "Bulk input must be a directory or a glob pattern" in result.output

    def test_partial_failure(self, runner: CliRunner, nbt_tree: Path, tmp_path: Path) -> None:
        (nbt_tree / "region" / "broken.dat").write_bytes(b"\x0a\x00")
        out = tmp_path / "out"

        result = runner.invoke(app, ["-b", str(nbt_tree), "-o", str(out)])

        assert result.exit_code == 1
        assert "1 of 4 file(s) failed" in result.output
        assert "broken.dat" in result.output
        assert (out / "region" / "r.0.0.dat.xml").is_file()
        assert not (out / "region" / "broken.dat.xml").exists()

    def test_bulk_reverse(self, runner: CliRunner, nbt_tree: Path, tmp_path: Path) -> None:
        text = tmp_path / "text"
        back = tmp_path / "back"
        runner.invoke(app, ["-b", str(nbt_tree), "-o", str(text)])

        result = runner.invoke(app, ["-b", "-x", str(text), "-o", str(back), "-c", "none"])

        assert result.exit_code == 0, result.output
        assert (back / "region" / "r.0.0.dat").read_bytes() == (
            nbt_tree / "region" / "r.0.0.dat"
        ).read_bytes()


class TestConfigCommands:
    def test_set_and_get(self, runner: CliRunner, tmp_path: Path) -> None:
        cfg = tmp_path / "cfg.json"
        cfg.write_text("{}")

        result = runner.invoke(app, ["--config", str(cfg), "config", "set", "editor.command", "nano"])
        assert result.exit_code == 0, result.output
        assert json.loads(cfg.read_text()) == {"editor": {"command": "nano"}}

        result = runner.invoke(app, ["--config", str(cfg), "config", "get", "editor.command"])
        assert result.exit_code == 0
        assert result.output.strip() == "nano"

    def test_set_list_value(self, runner: CliRunner, tmp_path: Path) -> None:
        cfg = tmp_path / "cfg.json"
        cfg.write_text("{}")

        result = runner.invoke(
            app, ["--config", str(cfg), "config", "set", "editor.args", '["--wait"]']
        )

        assert result.exit_code == 0, result.output
        assert json.loads(cfg.read_text())["editor"]["args"] == ["--wait"]

    def test_set_unknown_key(self, runner: CliRunner, tmp_path: Path) -> None:
        cfg = tmp_path / "cfg.json"
        cfg.write_text("{}")

        result = runner.invoke(app, ["--config", str(cfg), "config", "set", "editor.colour", "x"])

        assert result.exit_code == 1
        assert "Unknown configuration key" in result.output

    def test_set_invalid_value(self, runner: CliRunner, tmp_path: Path) -> None:
        cfg = tmp_path / "cfg.json"
        cfg.write_text("{}")

        result = runner.invoke(app, ["--config", str(cfg), "config", "set", "batch.concurrency", "0"])

        assert result.exit_code == 1
        assert "Invalid value" in result.output
        assert json.loads(cfg.read_text()) == {}

    def test_list(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["config", "list"])
        assert result.exit_code == 0
        assert '"concurrency": 10' in result.output

    def test_path(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["config", "path"])
        assert result.exit_code == 0
        assert "XNBTEDIT_CONFIG" in result.output
        assert "Using default configuration" in result.output

    def test_jobs_from_config_file(
        self, runner: CliRunner, nbt_tree: Path, tmp_path: Path
    ) -> None:
        cfg = tmp_path / "cfg.json"
        cfg.write_text(json.dumps({"batch": {"concurrency": 1}}))

        result = runner.invoke(
            app, ["--config", str(cfg), "-b", str(nbt_tree), "-o", str(tmp_path / "out")]
        )

        assert result.exit_code == 0, result.output

    def test_set_codec_workers(self, runner: CliRunner, tmp_path: Path) -> None:
        cfg = tmp_path / "cfg.json"
        cfg.write_text("{}")

        result = runner.invoke(app, ["--config", str(cfg), "config", "set", "batch.codec_workers", "2"])

        assert result.exit_code == 0, result.output
        assert json.loads(cfg.read_text())["batch"]["codec_workers"] == 2

    def test_broken_config_file(self, runner: CliRunner, sample_nbt: Path, tmp_path: Path) -> None:
        cfg = tmp_path / "cfg.json"
        cfg.write_text("{oops")

        result = runner.invoke(app, ["--config", str(cfg), str(sample_nbt), "-o", "x.xml"])

        assert result.exit_code == 1
        assert "Could not load configuration" in result.output
