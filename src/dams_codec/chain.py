"""
'*F,' File Chaining
===================

DAMS sources too large for the CPC's memory are split across several files.
The last line of each part carries a label of the form

    *F,NEXT.SRC

which tells the assembler to continue with NEXT.SRC. The codec follows the
same directive in both directions:

- decoding concatenates every part into one text stream
- encoding splits one text stream back into the original parts

FileChain owns the "current file" for either direction. Transitions are a
flat sequence of close/open steps driven by the name found on the last
line; the previous file is always closed before the next one is opened.
"""

import contextlib
import logging
from pathlib import Path
from typing import BinaryIO, Optional

from dams_codec.errors import CodecFileError
from dams_codec.format import CHAIN_PREFIX

logger = logging.getLogger(__name__)


def chain_target(label: str) -> Optional[str]:
    """
    Extract the next file name from a chain directive label.

    Args:
        label: Label field of a line, as text

    Returns:
        The file name after '*F,', or None if label is not a directive
    """
    if label.startswith(CHAIN_PREFIX):
        return label[len(CHAIN_PREFIX):]
    return None


class FileChain:
    """
    Opens, closes and switches the binary-form files of a chained source.

    Streams passed in by the caller (stdin, an already open file) are never
    closed here; only files this object opened itself are.

    Attributes:
        follow: Whether '*F,' directives trigger a transition
        base_dir: Directory chained file names are resolved against
        files: Names of every binary file visited so far, in order
    """

    def __init__(self, follow: bool = True, base_dir: Optional[Path] = None):
        self.follow = follow
        self.base_dir = Path(base_dir) if base_dir is not None else Path(".")
        self.files: list[str] = []
        self._owned: set[int] = set()
        self._visited: set[Path] = set()

    def target(self, label: str) -> Optional[str]:
        """Return the chained file name for label, or None when not chaining."""
        if not self.follow:
            return None
        return chain_target(label)

    def resolve(self, name: str) -> Path:
        return self.base_dir / name

    def _visit(self, name: str, path: Path) -> None:
        """
        Record a file as part of the chain, refusing one already in it.

        A second visit would loop forever when decoding and overwrite a
        finished part when encoding.

        Raises:
            CodecFileError: If the file was already used in this chain
        """
        key = path.resolve()
        if key in self._visited:
            raise CodecFileError(name, "already used earlier in this chain", "open")
        self._visited.add(key)
        self.files.append(name)

    # -------------------------------------------------------------------------
    # Stream lifecycle
    # -------------------------------------------------------------------------

    def adopt(self, stream: BinaryIO, name: str) -> BinaryIO:
        """Register a caller-owned stream as the first file of the chain."""
        if name.startswith("<"):
            self.files.append(name)
        else:
            self._visit(name, Path(name))
        return stream

    def open_input(self, name: str) -> BinaryIO:
        """
        Open a binary-form file for reading.

        Raises:
            CodecFileError: If the file cannot be opened
        """
        self._visit(name, self.resolve(name))
        try:
            stream = open(self.resolve(name), "rb")
        except OSError as e:
            raise CodecFileError(name, e.strerror or str(e), "open") from e
        self._owned.add(id(stream))
        return stream

    def open_output(self, name: str) -> BinaryIO:
        """
        Create (or truncate) a binary-form file for writing.

        Raises:
            CodecFileError: If the file cannot be created
        """
        self._visit(name, self.resolve(name))
        try:
            stream = open(self.resolve(name), "wb")
        except OSError as e:
            raise CodecFileError(name, e.strerror or str(e), "open") from e
        self._owned.add(id(stream))
        return stream

    def read(self, stream: BinaryIO, name: str) -> bytes:
        """Read the whole of a binary-form file."""
        try:
            return stream.read()
        except OSError as e:
            raise CodecFileError(name, e.strerror or str(e), "read") from e

    def close(self, stream: BinaryIO, name: str) -> None:
        """
        Flush and release a stream, checking for deferred write errors.

        Caller-owned streams are flushed but left open.

        Raises:
            CodecFileError: If flushing or closing fails
        """
        try:
            if id(stream) in self._owned:
                self._owned.discard(id(stream))
                stream.close()
            elif stream.writable():
                stream.flush()
        except OSError as e:
            raise CodecFileError(name, e.strerror or str(e), "write") from e

    def discard(self, stream: BinaryIO) -> None:
        """
        Release a stream on an error path.

        Close failures are not reported here; the error that aborted the
        run is the one the caller re-raises.
        """
        if id(stream) in self._owned:
            self._owned.discard(id(stream))
            with contextlib.suppress(OSError):
                stream.close()

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def next_input(self, current: BinaryIO, current_name: str, name: str) -> BinaryIO:
        """Close the exhausted input and open the chained one."""
        self.close(current, current_name)
        stream = self.open_input(name)
        logger.info(f"Next file: {name}")
        return stream

    def next_output(self, current: BinaryIO, current_name: str, name: str) -> BinaryIO:
        """Close the finished output and create the chained one."""
        self.close(current, current_name)
        stream = self.open_output(name)
        logger.info(f"Next file: {name}")
        return stream
