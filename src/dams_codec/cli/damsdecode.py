"""
damsdecode - DAMS Source Decoder/Encoder Command-Line Interface
===============================================================

This module implements the command-line interface for converting DAMS
tokenised source files to text and back.

Usage Examples
--------------
Decode a file from a CPC disk (chained parts are followed):
    $ damsdecode <GAME.SRC >game.txt

Decode a raw disk capture carrying a 128-byte header:
    $ damsdecode -S GAME.BIN -o game.txt

Encode edited text back, stripping comments:
    $ damsdecode -e -o GAME.SRC <game.txt

Encode, keeping comments in the binary form:
    $ damsdecode -e -c -o GAME.SRC game.txt

Treat '*F,' labels as plain labels:
    $ damsdecode -F <PART2.SRC
"""

import logging
from pathlib import Path
from typing import Optional

import click

from dams_codec import __version__
from dams_codec.cli.errors import handle_cli_exception
from dams_codec.decoder import Decoder
from dams_codec.encoder import Encoder
from dams_codec.errors import CodecFileError
from dams_codec.format import CodecOptions

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool) -> None:
    """Send codec diagnostics to stderr; DEBUG with level names when verbose."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s" if verbose else "%(message)s",
    )


def _open(path: str, mode: str):
    """Open a file or '-' through Click, reporting failures as codec errors."""
    try:
        return click.open_file(path, mode)
    except OSError as e:
        raise CodecFileError(path, e.strerror or str(e), "open") from e


# =============================================================================
# CLI Definition
# =============================================================================

@click.command(context_settings={"help_option_names": ["-h", "--help", "-?"]})
@click.argument(
    "input_file",
    type=click.Path(dir_okay=False, allow_dash=True),
    default="-",
    required=False,
)
@click.option(
    "-e", "--encode",
    is_flag=True,
    help="Encode text to DAMS binary format (default: decode)",
)
@click.option(
    "-c", "--keep-comments",
    is_flag=True,
    help="Keep comments in the encoded file (encode only)",
)
@click.option(
    "-F", "--no-follow",
    is_flag=True,
    help="Don't execute '*F,' directives (disable file chaining)",
)
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False),
    default=None,
    help="Encode: first binary file (default: damsencode.out). "
         "Decode: text file (default: stdout)",
)
@click.option(
    "-S", "--skip-header",
    is_flag=True,
    help="On decode, skip the first 128 bytes",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="damsdecode")
def main(
    input_file: str,
    encode: bool,
    keep_comments: bool,
    no_follow: bool,
    output: Optional[str],
    skip_header: bool,
    verbose: bool,
) -> None:
    """
    Convert DAMS tokenised source files to plain text and back.

    INPUT_FILE is the file to convert (default: stdin). When decoding it is
    a DAMS binary source; when encoding it is a text file.

    \b
    Examples:
        damsdecode <mysrc.src >mysrc.txt       # Decode
        damsdecode -e -o mysrc.src <mysrc.txt  # Encode
    """
    setup_logging(verbose)

    options = CodecOptions.from_env()
    options.encode = options.encode or encode
    options.keep_comments = options.keep_comments or keep_comments
    options.follow_chain = options.follow_chain and not no_follow
    options.skip_header = options.skip_header or skip_header
    options.base_dir = Path(".")

    if options.encode and options.skip_header:
        logger.debug("--skip-header ignored when encoding")
    if not options.encode and options.keep_comments:
        logger.debug("--keep-comments ignored when decoding")

    source_name = "<stdin>" if input_file == "-" else input_file

    try:
        if options.encode:
            if output:
                options.output_name = output
            with _open(input_file, "rb") as source:
                stats = Encoder(options=options).encode(source, source_name=source_name)
            logger.debug(f"Wrote {', '.join(stats.files)}")
        else:
            with _open(input_file, "rb") as source, _open(output or "-", "w") as sink:
                stats = Decoder(options=options).decode(source, sink, name=source_name)
            logger.debug(f"Read {', '.join(stats.files)} ({stats.lines} lines)")
    except Exception as e:
        handle_cli_exception(e, verbose=verbose)


# =============================================================================
# Entry Point
# =============================================================================

if __name__ == "__main__":
    main()
