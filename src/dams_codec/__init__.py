"""
DAMS Codec - Tokenised Source Converter for the DAMS Z80 Assembler
==================================================================

DAMS, the Amstrad CPC assembler/monitor, saves source files in a compact
binary form: every mnemonic is replaced by a single byte with the high bit
set, and comments are marked with $FF. This package converts those files
to ordinary text and back.

Main Components
---------------
- **mnemonics**: the 77-entry DAMS keyword table
- **decoder**: binary form -> text form
- **encoder**: text form -> binary form
- **chain**: '*F,NAME' multi-file source handling

Quick Start
-----------
Decode a source captured from a CPC disk:
    >>> import sys
    >>> from dams_codec import decode_file
    >>> decode_file("GAME.SRC", sys.stdout)

Encode edited text back:
    >>> from dams_codec import encode_file, CodecOptions
    >>> encode_file("game.txt", CodecOptions(output_name="GAME.SRC"))

Or use the command-line tool:
    $ damsdecode <GAME.SRC >game.txt
    $ damsdecode -e -o GAME.SRC <game.txt

Version History
---------------
1.0.0 - Initial release with decoder, encoder and file chaining
"""

__version__ = "1.0.0"

# =============================================================================
# Public API Exports
# =============================================================================

from dams_codec.errors import (
    DamsError,
    CodecError,
    CodecFileError,
    SourceLocation,
    UnknownMnemonicError,
    UnknownTokenError,
    MalformedNulError,
    UnexpectedSentinelError,
    UnexpectedTrailingInputError,
)
from dams_codec.format import (
    CodecOptions,
    CHAIN_PREFIX,
    COMMENT_SENTINEL,
    DEFAULT_OUTPUT_NAME,
    FILE_END,
    HEADER_SIZE,
    LINE_END,
)
from dams_codec.mnemonics import DAMS_MNEMONICS, MnemonicTable, default_table
from dams_codec.chain import FileChain, chain_target
from dams_codec.decoder import Decoder, DecodedLine, DecodeStats, DecodeStep, decode_file
from dams_codec.encoder import Encoder, EncodedLine, EncodeStats, QuoteState, encode_file

__all__ = [
    "__version__",
    # Exception hierarchy
    "DamsError",
    "CodecError",
    "CodecFileError",
    "SourceLocation",
    "UnknownMnemonicError",
    "UnknownTokenError",
    "MalformedNulError",
    "UnexpectedSentinelError",
    "UnexpectedTrailingInputError",
    # Format and options
    "CodecOptions",
    "CHAIN_PREFIX",
    "COMMENT_SENTINEL",
    "DEFAULT_OUTPUT_NAME",
    "FILE_END",
    "HEADER_SIZE",
    "LINE_END",
    # Mnemonic table
    "DAMS_MNEMONICS",
    "MnemonicTable",
    "default_table",
    # Chaining
    "FileChain",
    "chain_target",
    # Decoder
    "Decoder",
    "DecodedLine",
    "DecodeStats",
    "DecodeStep",
    "decode_file",
    # Encoder
    "Encoder",
    "EncodedLine",
    "EncodeStats",
    "QuoteState",
    "encode_file",
]
