"""Tests for the command-line interface."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from tif2pyramid import cli
from tif2pyramid.cli import _build_parser, _config_from_args, _resolve_log_level, main
from tif2pyramid.pipeline import BatchPipeline
from tests.conftest import FakeConverter, list_files, make_tree

_ENV_VARS = ("INPUT_DIR", "OUTPUT_DIR", "THREADS", "USE_LOCAL_CACHE",
             "LOCAL_CACHE_DIR", "LOG_LEVEL", "VIPS")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def restore_root_logger():
    """``setup_colorized_logging`` replaces the root handlers; undo that."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def fake_pipeline(monkeypatch):
    """Route the CLI's BatchPipeline through a FakeConverter."""
    converter = FakeConverter({"bad.tif"})

    def _factory(config):
        return BatchPipeline(config, converter)

    monkeypatch.setattr(cli, "BatchPipeline", _factory)
    return converter


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class TestParser:

    def test_convert_defaults(self):
        args = _build_parser().parse_args(["convert"])
        assert args.command == "convert"
        assert args.input_dir is None
        assert args.output_dir is None
        assert args.jobs is None
        assert args.use_cache is None
        assert args.verbose is False

    def test_convert_options(self):
        args = _build_parser().parse_args([
            "convert", "/in", "/out", "-j", "8", "--no-cache",
            "--cache-dir", "/scratch", "--joblog", "j.jsonl", "--vips", "myvips", "-v",
        ])
        assert args.input_dir == Path("/in")
        assert args.output_dir == Path("/out")
        assert args.jobs == 8
        assert args.use_cache is False
        assert args.cache_dir == Path("/scratch")
        assert args.joblog == Path("j.jsonl")
        assert args.vips_executable == "myvips"
        assert args.verbose is True

    def test_cache_flags_exclusive(self):
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["convert", "--cache", "--no-cache"])

    def test_status(self):
        args = _build_parser().parse_args(["status", "/in", "/out"])
        assert args.command == "status"


class TestConfigFromArgs:

    def test_cli_overrides_env(self, monkeypatch):
        monkeypatch.setenv("THREADS", "16")
        monkeypatch.setenv("USE_LOCAL_CACHE", "true")
        args = _build_parser().parse_args(["convert", "/in", "/out", "-j", "3", "--no-cache"])
        cfg = _config_from_args(args)
        assert cfg.threads == 3
        assert cfg.use_local_cache is False
        assert cfg.input_root == Path("/in")

    def test_env_used_when_flags_absent(self, monkeypatch):
        monkeypatch.setenv("THREADS", "5")
        monkeypatch.setenv("INPUT_DIR", "/env/in")
        cfg = _config_from_args(_build_parser().parse_args(["status"]))
        assert cfg.threads == 5
        assert cfg.input_root == Path("/env/in")


class TestLogLevel:

    def test_verbose_wins(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        assert _resolve_log_level(True) == logging.DEBUG

    def test_env(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "warning")
        assert _resolve_log_level(False) == logging.WARNING

    def test_unknown_falls_back_to_info(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "chatty")
        assert _resolve_log_level(False) == logging.INFO


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


class TestMain:

    def test_no_args_prints_help(self, capsys):
        assert main([]) == 0
        assert "tif2pyramid" in capsys.readouterr().out

    def test_show_command(self, capsys):
        assert main(["show-command"]) == 0
        out = capsys.readouterr().out.strip()
        assert out.startswith("vips tiffsave SOURCE DEST")
        assert "--pyramid" in out

    def test_convert_success(self, tmp_path: Path, fake_pipeline):
        make_tree(tmp_path / "in", ["a/b.tif", "c.tiff"])
        rc = main(["convert", str(tmp_path / "in"), str(tmp_path / "out"),
                   "--no-cache", "-j", "2"])
        assert rc == 0
        assert list_files(tmp_path / "out") == ["a/b.tif", "c.tif"]
        assert fake_pipeline.call_count == 2

    def test_convert_with_failure_exits_one(self, tmp_path: Path, fake_pipeline):
        make_tree(tmp_path / "in", ["good.tif", "bad.tif"])
        rc = main(["convert", str(tmp_path / "in"), str(tmp_path / "out"),
                   "--cache-dir", str(tmp_path / "cache")])
        assert rc == 1
        assert list_files(tmp_path / "out") == ["good.tif"]

    def test_convert_missing_input_exits_one(self, tmp_path: Path, fake_pipeline):
        rc = main(["convert", str(tmp_path / "absent"), str(tmp_path / "out")])
        assert rc == 1
        assert fake_pipeline.call_count == 0

    def test_status_does_not_convert(self, tmp_path: Path, fake_pipeline):
        make_tree(tmp_path / "in", ["a.tif", "b.tif"])
        make_tree(tmp_path / "out", ["a.tif"])
        assert main(["status", str(tmp_path / "in"), str(tmp_path / "out")]) == 0
        assert fake_pipeline.call_count == 0
        assert list_files(tmp_path / "out") == ["a.tif"]

    def test_status_missing_input_exits_one(self, tmp_path: Path, fake_pipeline):
        assert main(["status", str(tmp_path / "absent"), str(tmp_path / "out")]) == 1

    def test_convert_unusable_joblog_exits_one(self, tmp_path: Path, fake_pipeline):
        make_tree(tmp_path / "in", ["a.tif"])
        blocker = tmp_path / "blocker"
        blocker.write_text("x")
        rc = main(["convert", str(tmp_path / "in"), str(tmp_path / "out"),
                   "--no-cache", "--joblog", str(blocker / "jobs.jsonl")])
        assert rc == 1
        assert fake_pipeline.call_count == 0

    def test_convert_cache_inside_output_exits_one(self, tmp_path: Path, fake_pipeline):
        make_tree(tmp_path / "in", ["a.tif"])
        make_tree(tmp_path / "out", ["a.tif"])
        rc = main(["convert", str(tmp_path / "in"), str(tmp_path / "out"),
                   "--cache-dir", str(tmp_path / "out" / "cache")])
        assert rc == 1
        assert list_files(tmp_path / "out") == ["a.tif"]
