"""
DAMS Text Form Encoder
======================

Converts plain-text Z80 source back into the tokenised form DAMS loads.

Each text line is split into three fields:

    LABEL <whitespace> MNEMONIC <whitespace> OPERANDS [; COMMENT]

- the label is copied unchanged
- the mnemonic is replaced by its token byte
- operands are copied with whitespace removed, except inside a quoted
  character literal ("A") and in DEFM, where every byte is data
- comments are dropped unless keep_comments is set, because DAMS sources
  share the CPC's memory with the assembled program

Comment-only and blank lines keep a bare $FF so they survive the trip.

Usage Examples
--------------
Encoding a file, splitting it at '*F,' directives:
    >>> from dams_codec import Encoder
    >>> with open("game.txt", "rb") as f:
    ...     stats = Encoder().encode(f, output_name="GAME.SRC")

Encoding a snippet in memory:
    >>> Encoder().encode_bytes(b"START LD A,0\\n")
    b'START\\x80A,0\\r\\x00'
"""

import io
import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from pathlib import Path
from typing import BinaryIO, Iterator, Optional, Union

from dams_codec.chain import FileChain
from dams_codec.errors import CodecFileError, SourceLocation, UnexpectedTrailingInputError
from dams_codec.format import COMMENT_SENTINEL, FILE_END, LINE_END, CodecOptions
from dams_codec.mnemonics import RAW_DATA_DIRECTIVE, MnemonicTable, default_table

logger = logging.getLogger(__name__)


# C isspace() set: the field separators DAMS itself accepts
WHITESPACE = frozenset(b" \t\n\r\x0b\x0c")
COMMENT_START = ord(";")
QUOTE = ord('"')


# =============================================================================
# Operand Quoting State
# =============================================================================

class QuoteState(Enum):
    """
    Position relative to a "x" character literal.

    Z80 character operands hold exactly one character, so a quoted region
    ends after one data byte; the closing quote is optional.
    """
    UNQUOTED = auto()
    QUOTED = auto()          # opening quote seen, data byte pending
    AFTER_FIRST = auto()     # data byte copied, closing quote optional


@dataclass
class EncodedLine:
    """
    One text line converted to binary form.

    Attributes:
        data: The binary-form bytes, including the $0D terminator
        label: Label field, used for chain detection
    """
    data: bytes
    label: str


@dataclass
class EncodeStats:
    """Summary of an encode run."""
    files: list[str] = field(default_factory=list)
    lines: int = 0


def _skip_whitespace(line: bytes, pos: int) -> int:
    while pos < len(line) and line[pos] in WHITESPACE:
        pos += 1
    return pos


def _read_field(line: bytes, pos: int) -> tuple[bytes, int]:
    """Read up to the next whitespace or ';'."""
    start = pos
    while pos < len(line) and line[pos] not in WHITESPACE and line[pos] != COMMENT_START:
        pos += 1
    return line[start:pos], pos


def iter_text_lines(source: BinaryIO) -> Iterator[bytes]:
    """Yield the lines of a text stream without their LF or CRLF endings."""
    for raw in source:
        if raw.endswith(b"\n"):
            raw = raw[:-1]
        if raw.endswith(b"\r"):
            raw = raw[:-1]
        yield raw


# =============================================================================
# Encoder
# =============================================================================

class Encoder:
    """
    Text form to binary form converter.

    Usage:
        encoder = Encoder(options=CodecOptions(keep_comments=True))
        with open("game.txt", "rb") as f:
            encoder.encode(f, output_name="GAME.SRC")
    """

    def __init__(
        self,
        table: Optional[MnemonicTable] = None,
        options: Optional[CodecOptions] = None,
    ):
        self.table = table if table is not None else default_table()
        self.options = options if options is not None else CodecOptions()

    # -------------------------------------------------------------------------
    # Single line
    # -------------------------------------------------------------------------

    def _encode_operands(self, line: bytes, pos: int, out: bytearray) -> int:
        """
        Copy operand bytes into out, stopping at an unquoted ';'.

        Returns:
            Position of the first unconsumed byte
        """
        state = QuoteState.UNQUOTED

        while pos < len(line):
            byte = line[pos]

            if state is QuoteState.QUOTED:
                out.append(byte)
                state = QuoteState.AFTER_FIRST
                pos += 1
            elif state is QuoteState.AFTER_FIRST:
                state = QuoteState.UNQUOTED
                if byte == QUOTE:
                    out.append(byte)
                    pos += 1
                # any other byte is read again as plain operand text
            elif byte == QUOTE:
                out.append(byte)
                state = QuoteState.QUOTED
                pos += 1
            elif byte == COMMENT_START:
                break
            else:
                if byte not in WHITESPACE:
                    out.append(byte)
                pos += 1

        return pos

    def encode_line(
        self,
        line: bytes,
        location: Optional[SourceLocation] = None,
    ) -> EncodedLine:
        """
        Convert one text line (without its newline) to binary form.

        Nothing is produced for a line that fails; the caller only sees
        complete lines.

        Args:
            line: Raw line bytes
            location: Position used in error messages

        Returns:
            EncodedLine with the binary bytes and the label

        Raises:
            UnknownMnemonicError: If the mnemonic has no DAMS token
            UnexpectedTrailingInputError: If text is left after parsing
        """
        out = bytearray()

        label, pos = _read_field(line, 0)
        out += label
        pos = _skip_whitespace(line, pos)

        raw_mnemonic, pos = _read_field(line, pos)
        pos = _skip_whitespace(line, pos)
        mnemonic = raw_mnemonic.decode("latin-1").upper()

        if mnemonic:
            out.append(self.table.token_byte(mnemonic, location))
            if mnemonic == RAW_DATA_DIRECTIVE:
                out += line[pos:]
                pos = len(line)
            else:
                pos = self._encode_operands(line, pos, out)

        is_empty = not label and not mnemonic
        got_comment = False

        if pos < len(line):
            # Guard: field and operand scanning only stop at ';' or end of line
            if line[pos] != COMMENT_START:
                raise UnexpectedTrailingInputError(line[pos:].decode("latin-1"), location=location)
            if self.options.keep_comments:
                out.append(COMMENT_SENTINEL)
                out += line[pos + 1:]
                got_comment = True
            elif is_empty:
                # Keep the marker so the decoder still produces the line
                out.append(COMMENT_SENTINEL)
                got_comment = True
            else:
                logger.debug(f"{location or 'input'}: comment dropped")

        if is_empty and not got_comment:
            out.append(COMMENT_SENTINEL)

        out.append(LINE_END)
        return EncodedLine(bytes(out), label.decode("latin-1"))

    # -------------------------------------------------------------------------
    # Whole streams
    # -------------------------------------------------------------------------

    @staticmethod
    def _write(stream: BinaryIO, name: str, data: bytes) -> None:
        try:
            stream.write(data)
        except OSError as e:
            raise CodecFileError(name, e.strerror or str(e), "write") from e

    def encode(
        self,
        source: BinaryIO,
        output_name: Optional[str] = None,
        source_name: str = "<stdin>",
    ) -> EncodeStats:
        """
        Encode a text stream into one or more binary-form files.

        A line whose label is '*F,NAME' ends the current file; the lines
        after it go to NAME. Each file is closed, and its write status
        checked, before the next one is created.

        Args:
            source: Binary stream of text lines
            output_name: First output file (default: options.output_name)
            source_name: Name of the text input, for messages

        Returns:
            EncodeStats listing the files written and the line count
        """
        chain = FileChain(self.options.follow_chain, self.options.base_dir)
        stats = EncodeStats(files=chain.files)
        name = output_name or self.options.output_name
        out = chain.open_output(name)

        try:
            for raw in iter_text_lines(source):
                stats.lines += 1
                encoded = self.encode_line(raw, SourceLocation(source_name, stats.lines))
                self._write(out, name, encoded.data)

                target = chain.target(encoded.label)
                if target:
                    self._write(out, name, bytes([FILE_END]))
                    out = chain.next_output(out, name, target)
                    name = target

            self._write(out, name, bytes([FILE_END]))
        except BaseException:
            chain.discard(out)
            raise

        chain.close(out, name)
        logger.debug(f"{stats.lines} lines encoded into {len(stats.files)} file(s)")
        return stats

    def encode_bytes(self, text: bytes) -> bytes:
        """
        Encode in-memory text into a single binary-form file.

        '*F,' directives are not followed; the label is encoded as written.
        """
        out = bytearray()
        for number, raw in enumerate(iter_text_lines(io.BytesIO(text)), 1):
            out += self.encode_line(raw, SourceLocation("<bytes>", number)).data
        out.append(FILE_END)
        return bytes(out)


def encode_file(
    path: Union[str, Path],
    options: Optional[CodecOptions] = None,
) -> EncodeStats:
    """
    Encode a text file; outputs are created in options.base_dir.

    Raises:
        CodecFileError: If the text file cannot be opened
    """
    options = options if options is not None else CodecOptions()
    try:
        source = open(path, "rb")
    except OSError as e:
        raise CodecFileError(str(path), e.strerror or str(e), "open") from e
    with source:
        return Encoder(options=options).encode(source, source_name=str(path))
