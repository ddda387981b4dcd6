"""Tests for RunConfig construction and validation."""

from __future__ import annotations

from pathlib import Path

import pytest

from tif2pyramid.config import (
    DEFAULT_CACHE_DIR,
    DEFAULT_INPUT_DIR,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_THREADS,
    RunConfig,
    parse_bool,
    parse_int,
)
from tif2pyramid.errors import ConfigurationError


class TestParsers:

    @pytest.mark.parametrize("value", ["true", "TRUE", " yes ", "1", "on"])
    def test_true(self, value):
        assert parse_bool(value, "X") is True

    @pytest.mark.parametrize("value", ["false", "No", "0", "off"])
    def test_false(self, value):
        assert parse_bool(value, "X") is False

    def test_bad_bool(self):
        with pytest.raises(ConfigurationError, match="USE_LOCAL_CACHE"):
            parse_bool("maybe", "USE_LOCAL_CACHE")

    def test_int(self):
        assert parse_int(" 8 ", "THREADS") == 8

    def test_bad_int(self):
        with pytest.raises(ConfigurationError, match="THREADS"):
            parse_int("four", "THREADS")


class TestFromEnv:

    def test_defaults(self):
        cfg = RunConfig.from_env({})
        assert cfg.input_root == DEFAULT_INPUT_DIR
        assert cfg.output_root == DEFAULT_OUTPUT_DIR
        assert cfg.cache_dir == DEFAULT_CACHE_DIR
        assert cfg.threads == DEFAULT_THREADS
        assert cfg.use_local_cache is True
        assert cfg.vips_executable == "vips"
        assert cfg.joblog is None

    def test_environment(self):
        cfg = RunConfig.from_env({
            "INPUT_DIR": "/mnt/in",
            "OUTPUT_DIR": "/mnt/out",
            "LOCAL_CACHE_DIR": "/scratch",
            "THREADS": "16",
            "USE_LOCAL_CACHE": "false",
            "VIPS": "/usr/local/bin/vips",
        })
        assert cfg.input_root == Path("/mnt/in")
        assert cfg.output_root == Path("/mnt/out")
        assert cfg.cache_dir == Path("/scratch")
        assert cfg.threads == 16
        assert cfg.use_local_cache is False
        assert cfg.vips_executable == "/usr/local/bin/vips"

    def test_overrides_win(self):
        cfg = RunConfig.from_env(
            {"THREADS": "16", "USE_LOCAL_CACHE": "true"},
            threads=2, use_local_cache=False, input_root=Path("/x"),
        )
        assert cfg.threads == 2
        assert cfg.use_local_cache is False
        assert cfg.input_root == Path("/x")

    def test_none_override_falls_through(self):
        cfg = RunConfig.from_env({"THREADS": "6"}, threads=None)
        assert cfg.threads == 6

    def test_unknown_override(self):
        with pytest.raises(ConfigurationError, match="bogus"):
            RunConfig.from_env({}, bogus=1)

    def test_malformed_env(self):
        with pytest.raises(ConfigurationError):
            RunConfig.from_env({"THREADS": "lots"})


class TestValidate:

    def test_ok(self, tmp_path: Path):
        RunConfig(tmp_path, tmp_path / "out").validate()

    def test_missing_input(self, tmp_path: Path):
        with pytest.raises(ConfigurationError) as exc_info:
            RunConfig(tmp_path / "absent", tmp_path / "out").validate()
        assert exc_info.value.path == tmp_path / "absent"

    def test_input_is_file(self, tmp_path: Path):
        f = tmp_path / "file.tif"
        f.write_bytes(b"x")
        with pytest.raises(ConfigurationError):
            RunConfig(f, tmp_path / "out").validate()

    def test_threads_below_one(self, tmp_path: Path):
        with pytest.raises(ConfigurationError):
            RunConfig(tmp_path, tmp_path / "out", threads=0).validate()

    def test_negative_progress(self, tmp_path: Path):
        with pytest.raises(ConfigurationError):
            RunConfig(tmp_path, tmp_path / "out", progress_every=-1).validate()

    def test_cache_equal_to_output_rejected(self, tmp_path: Path):
        cfg = RunConfig(tmp_path / "in", tmp_path / "out", cache_dir=tmp_path / "out")
        (tmp_path / "in").mkdir()
        with pytest.raises(ConfigurationError, match="output"):
            cfg.validate()

    def test_cache_inside_input_rejected(self, tmp_path: Path):
        (tmp_path / "in").mkdir()
        cfg = RunConfig(tmp_path / "in", tmp_path / "out",
                        cache_dir=tmp_path / "in" / "scratch")
        with pytest.raises(ConfigurationError, match="input"):
            cfg.validate()

    def test_cache_containing_output_rejected(self, tmp_path: Path):
        (tmp_path / "in").mkdir()
        cfg = RunConfig(tmp_path / "in", tmp_path / "data" / "out",
                        cache_dir=tmp_path / "data")
        with pytest.raises(ConfigurationError):
            cfg.validate()

    def test_sibling_cache_accepted(self, tmp_path: Path):
        (tmp_path / "in").mkdir()
        RunConfig(tmp_path / "in", tmp_path / "out",
                  cache_dir=tmp_path / "cache").validate()

    def test_overlap_ignored_without_cache(self, tmp_path: Path):
        (tmp_path / "in").mkdir()
        RunConfig(tmp_path / "in", tmp_path / "out", use_local_cache=False,
                  cache_dir=tmp_path / "out").validate()

    def test_resolved_is_absolute(self):
        cfg = RunConfig(Path("in"), Path("out"), cache_dir=Path("c")).resolved()
        assert cfg.input_root.is_absolute()
        assert cfg.output_root.is_absolute()
        assert cfg.cache_dir.is_absolute()
