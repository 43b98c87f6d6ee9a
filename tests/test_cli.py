"""Tests for the streamfilter CLI."""

import zlib

import pytest
import yaml

from streamfilter.cli import Filters, Pipe, main, parse_filter_spec, run_pipe
from streamfilter.config import FilterEntry, StreamFilterConfig


@pytest.fixture
def source(tmp_path):
    path = tmp_path / "in.txt"
    path.write_bytes(b"hello world")
    return path


@pytest.fixture
def target(tmp_path):
    return tmp_path / "out.bin"


class TestParseFilterSpec:
    """Test NAME:key=value parsing."""

    def test_name_only(self):
        assert parse_filter_spec("dechunk") == FilterEntry(name="dechunk")

    def test_params_parsed_as_yaml_scalars(self):
        entry = parse_filter_spec("zlib.deflate:level=9,window_bits=-15")

        assert entry.name == "zlib.deflate"
        assert entry.params == {"level": 9, "window_bits": -15}

    def test_invalid_param(self):
        with pytest.raises(ValueError, match="expected key=value"):
            parse_filter_spec("zlib.deflate:level")


class TestRunPipe:
    """Test the pipe subcommand."""

    def test_pipe_through_filters(self, source, target):
        code = run_pipe(StreamFilterConfig(), Pipe(filter=["string.toupper", "string.rot13"], input=source, output=target))

        assert code == 0
        assert target.read_bytes() == b"URYYB JBEYQ"

    def test_pipe_uses_config_filters(self, source, target):
        config = StreamFilterConfig(filters=["string.toupper"], read_block_size=4)

        assert run_pipe(config, Pipe(input=source, output=target)) == 0
        assert target.read_bytes() == b"HELLO WORLD"

    def test_pipe_flushes_on_end(self, source, target):
        code = run_pipe(StreamFilterConfig(), Pipe(filter=["zlib.deflate:level=9"], input=source, output=target))

        assert code == 0
        assert zlib.decompress(target.read_bytes(), -15) == b"hello world"

    def test_unknown_filter(self, source, target, capsys):
        code = run_pipe(StreamFilterConfig(), Pipe(filter=["no.such"], input=source, output=target))

        assert code == 1
        assert "Unable to access built-in filter" in capsys.readouterr().err
        assert not target.exists()

    def test_reported_failure_exits_nonzero(self, tmp_path, target, capsys):
        source = tmp_path / "bad.b64"
        source.write_bytes(b"!!!!")

        code = run_pipe(StreamFilterConfig(), Pipe(filter=["convert.base64-decode"], input=source, output=target))

        assert code == 1
        assert target.read_bytes() == b""
        assert "Error invoking filter" in capsys.readouterr().err


class TestMain:
    """Test the CLI entry function."""

    def test_filters_lists_builtins(self, capsys):
        main(Filters())

        out = capsys.readouterr().out
        assert "dechunk" in out
        assert "string.toupper" in out

    def test_pipe_with_config_dir(self, tmp_path, source, target):
        config_dir = tmp_path / "conf"
        config_dir.mkdir()
        (config_dir / "streamfilter.yaml").write_text(
            yaml.safe_dump({"streamfilter": {"filters": ["string.toupper"]}})
        )

        with pytest.raises(SystemExit) as exc_info:
            main(Pipe(input=source, output=target), config_dir=config_dir)

        assert exc_info.value.code == 0
        assert target.read_bytes() == b"HELLO WORLD"
