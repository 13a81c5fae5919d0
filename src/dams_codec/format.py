"""
DAMS Binary Format Constants and Run Options
============================================

Binary-form layout, one line:

    [label bytes][token byte]?[operand bytes]?[$FF comment bytes]? $0D

and the file ends with a single $00 byte at the start of a line.

Label, operand and comment bytes are plain 7-bit ASCII. A token byte has
bit 7 set (see dams_codec.mnemonics). $FF is never a token; it starts the
comment field.

Options can come from:
- Default values (defined here)
- Environment variables (CodecOptions.from_env)
- Command-line flags (dams_codec.cli.damsdecode)
"""

from dataclasses import dataclass, field
from pathlib import Path
import os


LINE_END = 0x0D
FILE_END = 0x00
COMMENT_SENTINEL = 0xFF

# Disk captures made with some CPC transfer tools start with an AMSDOS header
HEADER_SIZE = 128

# Label prefix that continues the source in another file: '*F,NEXT.SRC'
CHAIN_PREFIX = "*F,"

DEFAULT_OUTPUT_NAME = "damsencode.out"

# Column width used by the decoder's tab alignment
TAB_WIDTH = 8


def _env_flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class CodecOptions:
    """
    Run configuration shared by the decoder and the encoder.

    Attributes:
        encode: Convert text to binary form instead of binary to text
        keep_comments: Write comment text into the binary form (encode only)
        follow_chain: Honour '*F,' directives (False = -F, disable chaining)
        output_name: First binary file written by the encoder
        skip_header: Ignore the first HEADER_SIZE bytes of the first input
            file (decode only)
        base_dir: Directory that chained file names are resolved against
    """

    encode: bool = False
    keep_comments: bool = False
    follow_chain: bool = True
    output_name: str = DEFAULT_OUTPUT_NAME
    skip_header: bool = False
    base_dir: Path = field(default_factory=lambda: Path("."))

    @classmethod
    def from_env(cls) -> "CodecOptions":
        """
        Create CodecOptions from environment variables.

        Environment variables (all optional):
            DAMS_OUTPUT: Default encoder output file name
            DAMS_KEEP_COMMENTS: Keep comments when encoding (1/true/yes/on)
            DAMS_NO_CHAIN: Disable '*F,' chaining (1/true/yes/on)
            DAMS_SKIP_HEADER: Skip the 128-byte header when decoding

        Returns:
            CodecOptions with values from environment variables
        """
        options = cls()

        if output := os.environ.get("DAMS_OUTPUT"):
            options.output_name = output

        if keep := os.environ.get("DAMS_KEEP_COMMENTS"):
            options.keep_comments = _env_flag(keep)

        if no_chain := os.environ.get("DAMS_NO_CHAIN"):
            options.follow_chain = not _env_flag(no_chain)

        if skip := os.environ.get("DAMS_SKIP_HEADER"):
            options.skip_header = _env_flag(skip)

        return options
