"""
DAMS Binary Form Decoder
========================

Converts tokenised DAMS source files into plain text suitable for editing
on a host machine.

Each binary line is processed by a three-state machine:

    IN_LABEL ──token──> IN_OPERAND ──$FF──> IN_COMMENT
        └──────────────────$FF─────────────────┘

Transitions only move forward. Text bytes are copied as they are; token
bytes become the mnemonic with tab padding in front; the comment sentinel
becomes '; ' padded out to the comment column.

Output layout for a typical line:

    LOOP<TAB>DJNZ<TAB>LOOP<TAB><TAB>; count down

Usage Examples
--------------
Decoding a file (following '*F,' chains):
    >>> from dams_codec import Decoder
    >>> with open("GAME.SRC", "rb") as f:
    ...     stats = Decoder().decode(f, sys.stdout, name="GAME.SRC")

Decoding bytes already in memory:
    >>> Decoder().decode_bytes(b"START\\x80A,0\\r\\x00")
    'START\\tLD\\tA,0\\n'
"""

import io
import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from pathlib import Path
from typing import BinaryIO, Optional, TextIO, Union

from dams_codec.chain import FileChain
from dams_codec.errors import (
    CodecFileError,
    MalformedNulError,
    SourceLocation,
    UnexpectedSentinelError,
)
from dams_codec.format import (
    COMMENT_SENTINEL,
    FILE_END,
    HEADER_SIZE,
    LINE_END,
    TAB_WIDTH,
    CodecOptions,
)
from dams_codec.mnemonics import TOKEN_FLAG, TOKEN_MASK, MnemonicTable, default_table

logger = logging.getLogger(__name__)


# =============================================================================
# Line State Machine
# =============================================================================

class DecodeStep(Enum):
    """Field of the line currently being emitted."""
    IN_LABEL = auto()
    IN_OPERAND = auto()
    IN_COMMENT = auto()


def next_step(step: DecodeStep, byte: int) -> DecodeStep:
    """
    Transition function of the line state machine.

    Args:
        step: Current state
        byte: The binary-form byte just consumed

    Returns:
        The state after consuming byte
    """
    if byte == COMMENT_SENTINEL:
        return DecodeStep.IN_COMMENT
    if byte & TOKEN_FLAG and step is not DecodeStep.IN_COMMENT:
        return DecodeStep.IN_OPERAND
    return step


def comment_padding(step: DecodeStep, col: int, label_length: int) -> str:
    """
    Whitespace emitted before '; ' to line comments up in a column.

    Args:
        step: State when the comment sentinel was read
        col: Characters emitted in the current field
        label_length: Length of the line's label

    Returns:
        Tabs (or a single space) to emit ahead of the comment
    """
    if step is DecodeStep.IN_LABEL:
        if col == 0:
            return ""
        return ("\t" if label_length < TAB_WIDTH else "") + "\t\t\t"

    if col == 0:
        return "\t\t\t"
    if col < TAB_WIDTH:
        return "\t\t"
    if col < 2 * TAB_WIDTH:
        return "\t"
    return " "


@dataclass
class DecodedLine:
    """
    One binary-form line rendered as text.

    Attributes:
        text: Formatted line, without the trailing newline
        label: Label field, used for chain detection
        truncated: True when a stray NUL ended the line (header-skip mode)
    """
    text: str
    label: str
    truncated: bool = False


@dataclass
class DecodeStats:
    """Summary of a decode run."""
    files: list[str] = field(default_factory=list)
    lines: int = 0


# =============================================================================
# Decoder
# =============================================================================

class Decoder:
    """
    Binary form to text form converter.

    Usage:
        decoder = Decoder(options=CodecOptions(skip_header=True))
        with open("PART1.SRC", "rb") as f:
            decoder.decode(f, sys.stdout, name="PART1.SRC")
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

    def decode_line(
        self,
        line: bytes,
        location: Optional[SourceLocation] = None,
    ) -> DecodedLine:
        """
        Render one binary-form line (without its $0D terminator) as text.

        Args:
            line: The raw line bytes
            location: Position used in error messages

        Returns:
            DecodedLine with the formatted text and the label

        Raises:
            MalformedNulError: On a $00 byte, unless header-skip mode is on
            UnknownTokenError: On a token byte beyond the mnemonic table
            UnexpectedSentinelError: On a second $FF inside the comment
        """
        step = DecodeStep.IN_LABEL
        col = 0
        label: list[str] = []
        out: list[str] = []

        for byte in line:
            if byte == FILE_END:
                if not self.options.skip_header:
                    raise MalformedNulError(location=location)
                logger.warning(
                    f"{location or 'input'}: unexpected NUL character, treating as end of file"
                )
                return DecodedLine("".join(out), "".join(label), truncated=True)

            if not byte & TOKEN_FLAG:
                char = chr(byte)
                if step is DecodeStep.IN_LABEL:
                    label.append(char)
                elif step is DecodeStep.IN_OPERAND and col == 0:
                    out.append("\t")
                out.append(char)
                col += 1
                continue

            if byte == COMMENT_SENTINEL:
                if step is DecodeStep.IN_COMMENT:
                    raise UnexpectedSentinelError(location=location)
                out.append(comment_padding(step, col, len(label)))
                out.append("; ")
            elif step is DecodeStep.IN_COMMENT:
                # Not produced by DAMS; kept visible rather than dropped
                out.append(f"(0x{byte:02x})")
                continue
            else:
                mnemonic = self.table.mnemonic(byte & TOKEN_MASK, location)
                out.append("\t" if len(label) < TAB_WIDTH else " ")
                out.append(mnemonic)

            step = next_step(step, byte)
            col = 0

        return DecodedLine("".join(out), "".join(label))

    # -------------------------------------------------------------------------
    # Whole files
    # -------------------------------------------------------------------------

    def _decode_file(
        self,
        data: bytes,
        sink: TextIO,
        name: str,
        chain: FileChain,
        stats: DecodeStats,
    ) -> Optional[str]:
        """
        Decode one binary-form file into sink.

        Returns:
            The chained file name recorded in this file, if any
        """
        next_name = None
        pos = 0
        start_lines = stats.lines

        while True:
            if pos >= len(data):
                logger.warning(f"{name}: no end of file marker")
                break
            if data[pos] == FILE_END:
                break

            end = data.find(bytes([LINE_END]), pos)
            if end < 0:
                line, pos = data[pos:], len(data)
            else:
                line, pos = data[pos:end], end + 1

            stats.lines += 1
            decoded = self.decode_line(line, SourceLocation(name, stats.lines))
            sink.write(decoded.text + "\n")

            target = chain.target(decoded.label)
            if target:
                next_name = target
            if decoded.truncated:
                break

        logger.debug(f"{name}: {stats.lines - start_lines} lines decoded")
        return next_name

    def decode(self, source: BinaryIO, sink: TextIO, name: str = "<stdin>") -> DecodeStats:
        """
        Decode a binary-form stream, following '*F,' chains.

        The header, when skip_header is set, is only skipped on the first
        file; chained parts written by DAMS itself never carry one.

        Args:
            source: Binary stream positioned at the start of the first file
            sink: Text stream receiving every decoded line
            name: Name of the first file, for messages

        Returns:
            DecodeStats listing the files visited and the line count
        """
        chain = FileChain(self.options.follow_chain, self.options.base_dir)
        stats = DecodeStats(files=chain.files)
        stream = chain.adopt(source, name)

        try:
            data = chain.read(stream, name)
            if self.options.skip_header:
                logger.debug(f"{name}: skipping {HEADER_SIZE} byte header")
                data = data[HEADER_SIZE:]

            while True:
                next_name = self._decode_file(data, sink, name, chain, stats)
                if not next_name:
                    break
                stream = chain.next_input(stream, name, next_name)
                name = next_name
                data = chain.read(stream, name)
        except BaseException:
            chain.discard(stream)
            raise

        chain.close(stream, name)
        return stats

    def decode_bytes(self, data: bytes) -> str:
        """
        Decode a single in-memory binary-form file to text.

        '*F,' directives are not followed; the label is decoded as written.
        """
        if self.options.skip_header:
            data = data[HEADER_SIZE:]
        sink = io.StringIO()
        chain = FileChain(follow=False)
        self._decode_file(data, sink, "<bytes>", chain, DecodeStats())
        return sink.getvalue()


def decode_file(
    path: Union[str, Path],
    sink: TextIO,
    options: Optional[CodecOptions] = None,
) -> DecodeStats:
    """
    Decode a binary-form file and any files chained from it into sink.

    Chained names are resolved against options.base_dir.

    Raises:
        CodecFileError: If the file cannot be opened
    """
    options = options if options is not None else CodecOptions()
    try:
        source = open(path, "rb")
    except OSError as e:
        raise CodecFileError(str(path), e.strerror or str(e), "open") from e
    with source:
        return Decoder(options=options).decode(source, sink, name=str(path))
