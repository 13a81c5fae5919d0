"""
Tests for '*F,' File Chaining
=============================

Test coverage includes:
- Chain directive detection
- Encoder splitting one text stream into several binary files
- Decoder joining chained binary files into one text stream
- Chaining disabled
- Header skip applied to the first file only
- Missing chained files
"""

import errno
import io
import logging
import os

import pytest

from dams_codec.chain import FileChain, chain_target
from dams_codec.decoder import Decoder, decode_file
from dams_codec.encoder import Encoder, encode_file
from dams_codec.errors import CodecFileError, UnknownMnemonicError
from dams_codec.format import CodecOptions, HEADER_SIZE


PART1 = b"\xc8&4000\r*F,PART2.SRC\r\x00"
PART2 = b"\x9f\r\x00"
TEXT = b"\tORG\t&4000\n*F,PART2.SRC\n\tRET\n"


class FailingFile(io.BytesIO):
    """In-memory output whose write or close fails as on a full disk."""

    def __init__(self, fail_on: str):
        super().__init__()
        self.fail_on = fail_on

    def _fail(self):
        raise OSError(errno.ENOSPC, os.strerror(errno.ENOSPC))

    def write(self, data):
        if self.fail_on == "write":
            self._fail()
        return super().write(data)

    def close(self):
        if self.fail_on == "close":
            self._fail()
        super().close()


class TestChainTarget:
    """Tests for directive detection."""

    def test_directive(self):
        assert chain_target("*F,NEXT.SRC") == "NEXT.SRC"

    def test_plain_label(self):
        assert chain_target("LOOP") is None
        assert chain_target("*F") is None

    def test_disabled(self):
        assert FileChain(follow=False).target("*F,NEXT.SRC") is None

    def test_enabled(self):
        assert FileChain().target("*F,NEXT.SRC") == "NEXT.SRC"


class TestFileChain:
    """Tests for stream ownership."""

    def test_open_missing_input(self, tmp_path):
        chain = FileChain(base_dir=tmp_path)
        with pytest.raises(CodecFileError) as exc_info:
            chain.open_input("NOPE.SRC")
        assert "can't open NOPE.SRC" in str(exc_info.value)

    def test_adopted_stream_not_closed(self):
        chain = FileChain()
        stream = chain.adopt(io.BytesIO(), "<stdin>")
        chain.close(stream, "<stdin>")
        assert not stream.closed

    def test_opened_stream_closed(self, tmp_path):
        chain = FileChain(base_dir=tmp_path)
        stream = chain.open_output("OUT.SRC")
        chain.close(stream, "OUT.SRC")
        assert stream.closed
        assert chain.files == ["OUT.SRC"]


class TestEncodeChain:
    """Tests for splitting output at chain directives."""

    def test_split(self, tmp_path):
        encoder = Encoder(options=CodecOptions(base_dir=tmp_path))
        stats = encoder.encode(io.BytesIO(TEXT), output_name="PART1.SRC")

        assert (tmp_path / "PART1.SRC").read_bytes() == PART1
        assert (tmp_path / "PART2.SRC").read_bytes() == PART2
        assert stats.files == ["PART1.SRC", "PART2.SRC"]
        assert stats.lines == 3

    def test_split_disabled(self, tmp_path):
        options = CodecOptions(base_dir=tmp_path, follow_chain=False)
        Encoder(options=options).encode(io.BytesIO(TEXT), output_name="PART1.SRC")

        assert (tmp_path / "PART1.SRC").read_bytes() == b"\xc8&4000\r*F,PART2.SRC\r\x9f\r\x00"
        assert not (tmp_path / "PART2.SRC").exists()

    def test_transition_logged(self, tmp_path, caplog):
        caplog.set_level(logging.INFO, logger="dams_codec")
        encoder = Encoder(options=CodecOptions(base_dir=tmp_path))
        encoder.encode(io.BytesIO(TEXT), output_name="PART1.SRC")
        assert "Next file: PART2.SRC" in caplog.text

    def test_directive_on_last_line(self, tmp_path):
        """A trailing directive leaves an empty chained file."""
        encoder = Encoder(options=CodecOptions(base_dir=tmp_path))
        encoder.encode(io.BytesIO(b" NOP\n*F,LAST.SRC\n"), output_name="FIRST.SRC")
        assert (tmp_path / "FIRST.SRC").read_bytes() == b"\xa1\r*F,LAST.SRC\r\x00"
        assert (tmp_path / "LAST.SRC").read_bytes() == b"\x00"

    def test_encode_file_helper(self, tmp_path):
        (tmp_path / "game.txt").write_bytes(TEXT)
        options = CodecOptions(base_dir=tmp_path, output_name="PART1.SRC")
        stats = encode_file(tmp_path / "game.txt", options)
        assert stats.files == ["PART1.SRC", "PART2.SRC"]
        assert (tmp_path / "PART2.SRC").read_bytes() == PART2


class TestDecodeChain:
    """Tests for joining chained input files."""

    def write_parts(self, tmp_path, first: bytes = PART1):
        (tmp_path / "PART1.SRC").write_bytes(first)
        (tmp_path / "PART2.SRC").write_bytes(PART2)

    def test_join(self, tmp_path):
        self.write_parts(tmp_path)
        sink = io.StringIO()
        decoder = Decoder(options=CodecOptions(base_dir=tmp_path))
        with open(tmp_path / "PART1.SRC", "rb") as source:
            stats = decoder.decode(source, sink, name="PART1.SRC")

        assert sink.getvalue() == TEXT.decode("ascii")
        assert stats.files == ["PART1.SRC", "PART2.SRC"]
        assert stats.lines == 3

    def test_join_disabled(self, tmp_path):
        self.write_parts(tmp_path)
        sink = io.StringIO()
        decoder = Decoder(options=CodecOptions(base_dir=tmp_path, follow_chain=False))
        with open(tmp_path / "PART1.SRC", "rb") as source:
            stats = decoder.decode(source, sink, name="PART1.SRC")

        assert sink.getvalue() == "\tORG\t&4000\n*F,PART2.SRC\n"
        assert stats.files == ["PART1.SRC"]

    def test_header_skipped_on_first_file_only(self, tmp_path):
        self.write_parts(tmp_path, first=bytes(HEADER_SIZE) + PART1)
        sink = io.StringIO()
        decoder = Decoder(options=CodecOptions(base_dir=tmp_path, skip_header=True))
        with open(tmp_path / "PART1.SRC", "rb") as source:
            decoder.decode(source, sink, name="PART1.SRC")

        assert sink.getvalue() == TEXT.decode("ascii")

    def test_missing_chained_file(self, tmp_path):
        (tmp_path / "PART1.SRC").write_bytes(PART1)
        decoder = Decoder(options=CodecOptions(base_dir=tmp_path))
        with open(tmp_path / "PART1.SRC", "rb") as source:
            with pytest.raises(CodecFileError) as exc_info:
                decoder.decode(source, io.StringIO(), name="PART1.SRC")
        assert exc_info.value.filename == "PART2.SRC"

    def test_decode_file_helper(self, tmp_path, caplog):
        caplog.set_level(logging.INFO, logger="dams_codec")
        self.write_parts(tmp_path)
        sink = io.StringIO()
        decode_file(tmp_path / "PART1.SRC", sink, CodecOptions(base_dir=tmp_path))

        assert sink.getvalue() == TEXT.decode("ascii")
        assert "Next file: PART2.SRC" in caplog.text

    def test_decode_file_missing(self, tmp_path):
        with pytest.raises(CodecFileError):
            decode_file(tmp_path / "NOPE.SRC", io.StringIO())

    def test_round_trip_through_chain(self, tmp_path):
        """Encoding the joined text recreates both parts."""
        self.write_parts(tmp_path)
        sink = io.StringIO()
        decode_file(tmp_path / "PART1.SRC", sink, CodecOptions(base_dir=tmp_path))

        out_dir = tmp_path / "out"
        out_dir.mkdir()
        encoder = Encoder(options=CodecOptions(base_dir=out_dir))
        encoder.encode(io.BytesIO(sink.getvalue().encode("ascii")), output_name="PART1.SRC")

        assert (out_dir / "PART1.SRC").read_bytes() == PART1
        assert (out_dir / "PART2.SRC").read_bytes() == PART2

    def test_loop_back_to_same_file(self, tmp_path):
        """A file chaining to itself is decoded once, then refused."""
        (tmp_path / "A.SRC").write_bytes(b"\xa1\r*F,A.SRC\r\x00")
        sink = io.StringIO()

        with pytest.raises(CodecFileError) as exc_info:
            decode_file(tmp_path / "A.SRC", sink, CodecOptions(base_dir=tmp_path))

        assert exc_info.value.filename == "A.SRC"
        assert "already used" in str(exc_info.value)
        assert sink.getvalue() == "\tNOP\n*F,A.SRC\n"

    def test_loop_through_two_files(self, tmp_path):
        (tmp_path / "A.SRC").write_bytes(b"*F,B.SRC\r\x00")
        (tmp_path / "B.SRC").write_bytes(b"*F,A.SRC\r\x00")
        sink = io.StringIO()

        with pytest.raises(CodecFileError) as exc_info:
            decode_file(tmp_path / "A.SRC", sink, CodecOptions(base_dir=tmp_path))

        assert exc_info.value.filename == "A.SRC"
        assert sink.getvalue() == "*F,B.SRC\n*F,A.SRC\n"


class TestChainReuse:
    """Tests for chain targets naming a file already written."""

    def test_encode_refuses_finished_part(self, tmp_path):
        """The first part is not truncated by a directive naming it again."""
        encoder = Encoder(options=CodecOptions(base_dir=tmp_path))

        with pytest.raises(CodecFileError) as exc_info:
            encoder.encode(io.BytesIO(b" NOP\n*F,PART1.SRC\n RET\n"), output_name="PART1.SRC")

        assert exc_info.value.filename == "PART1.SRC"
        assert (tmp_path / "PART1.SRC").read_bytes() == b"\xa1\r*F,PART1.SRC\r\x00"

    def test_open_output_twice(self, tmp_path):
        chain = FileChain(base_dir=tmp_path)
        chain.close(chain.open_output("OUT.SRC"), "OUT.SRC")
        with pytest.raises(CodecFileError):
            chain.open_output("OUT.SRC")


class TestFileErrors:
    """Tests for write and close failures on encoder output."""

    def use_failing_output(self, monkeypatch, fail_on: str) -> None:
        monkeypatch.setattr(
            "dams_codec.chain.open", lambda path, mode: FailingFile(fail_on), raising=False
        )

    def test_write_failure(self, monkeypatch):
        self.use_failing_output(monkeypatch, "write")

        with pytest.raises(CodecFileError) as exc_info:
            Encoder().encode(io.BytesIO(b" NOP\n"), output_name="OUT.SRC")

        assert exc_info.value.action == "write"
        assert str(exc_info.value) == "can't write OUT.SRC: No space left on device"

    def test_close_failure(self, monkeypatch):
        """A failure while closing the finished file is reported."""
        self.use_failing_output(monkeypatch, "close")

        with pytest.raises(CodecFileError) as exc_info:
            Encoder().encode(io.BytesIO(b" NOP\n"), output_name="OUT.SRC")

        assert exc_info.value.action == "write"
        assert exc_info.value.filename == "OUT.SRC"

    def test_close_failure_keeps_original_error(self, monkeypatch):
        """The codec error is raised, not the failing close behind it."""
        self.use_failing_output(monkeypatch, "close")

        with pytest.raises(UnknownMnemonicError):
            Encoder().encode(io.BytesIO(b" JMP LOOP\n"), output_name="OUT.SRC")

    def test_discard_suppresses_close_failure(self, monkeypatch):
        self.use_failing_output(monkeypatch, "close")
        chain = FileChain()
        stream = chain.open_output("OUT.SRC")
        chain.discard(stream)
        assert not stream.closed
