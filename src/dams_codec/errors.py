"""
DAMS Codec Error Hierarchy
==========================

This module defines the exception hierarchy for the DAMS source codec.
All exceptions inherit from DamsError, allowing callers to catch every
codec-related failure with a single except clause.

Exception Hierarchy
-------------------
DamsError (base)
├── CodecError (malformed content, carries a source location)
│   ├── UnknownMnemonicError - mnemonic text not in the DAMS table (encode)
│   ├── UnknownTokenError - token index beyond the table (decode)
│   ├── MalformedNulError - 0x00 inside a line body (decode)
│   ├── UnexpectedSentinelError - comment sentinel inside a comment (decode)
│   └── UnexpectedTrailingInputError - unparsed text after operands (encode)
└── CodecFileError (open/read/write/close failure on a stream)

None of these are recoverable: the binary form has no resynchronisation
marker, so the run stops at the first failing line.

Error messages follow this format:
    filename:line: error: description
"""

from dataclasses import dataclass
from typing import Optional


# =============================================================================
# Base Exception Class
# =============================================================================

class DamsError(Exception):
    """
    Base exception for all DAMS codec errors.

        try:
            decoder.decode(source, sink)
        except DamsError as e:
            print(f"Error: {e}")
    """
    pass


# =============================================================================
# Source Location Tracking
# =============================================================================

@dataclass(frozen=True)
class SourceLocation:
    """
    A line position in a binary-form or text-form file.

    Attributes:
        filename: Name of the file (or "<stdin>" for piped input)
        line: Line number (1-indexed, counted across the whole run)
    """
    filename: str
    line: int

    def __str__(self) -> str:
        """Format as 'filename:line' for error messages."""
        return f"{self.filename}:{self.line}"


# =============================================================================
# Content Errors
# =============================================================================

class CodecError(DamsError):
    """
    Base exception for malformed input detected while converting a line.

    Attributes:
        message: The error description
        location: Where in the input the error occurred (optional)
    """

    def __init__(self, message: str, location: Optional[SourceLocation] = None):
        self.message = message
        self.location = location
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.location:
            return f"{self.location}: error: {self.message}"
        return f"error: {self.message}"


class UnknownMnemonicError(CodecError):
    """
    Mnemonic text in a text-form line has no DAMS token.

    Example:
        LOOP    JMP  LOOP    ; JMP is not a Z80 mnemonic
    """

    def __init__(self, mnemonic: str, location: Optional[SourceLocation] = None):
        self.mnemonic = mnemonic
        super().__init__(f"invalid mnemonic '{mnemonic}'", location=location)


class UnknownTokenError(CodecError):
    """Token byte whose low 7 bits index past the end of the mnemonic table."""

    def __init__(self, index: int, location: Optional[SourceLocation] = None):
        self.index = index
        super().__init__(f"unexpected token {index}", location=location)


class MalformedNulError(CodecError):
    """
    A 0x00 byte found inside a line body.

    0x00 is only legal at the start of a line, where it marks the end of
    the file. Some captured disk images carry garbage after the last line;
    header-skip mode treats this error as a clean end of file instead.
    """

    def __init__(self, location: Optional[SourceLocation] = None):
        super().__init__("unexpected NUL character", location=location)


class UnexpectedSentinelError(CodecError):
    """A second comment sentinel (0xFF) seen while already inside a comment."""

    def __init__(self, location: Optional[SourceLocation] = None):
        super().__init__("unexpected comment marker inside comment", location=location)


class UnexpectedTrailingInputError(CodecError):
    """Characters left over after operand and comment parsing."""

    def __init__(self, text: str, location: Optional[SourceLocation] = None):
        self.text = text
        super().__init__(f"unexpected extra characters: '{text}'", location=location)


# =============================================================================
# File Errors
# =============================================================================

class CodecFileError(DamsError):
    """
    Failure opening, reading, writing or closing one of the codec's files.

    Raised for chained files too, so a missing '*F,' target surfaces as
    "can't open NEXT.SRC: No such file or directory".
    """

    def __init__(self, filename: str, reason: str, action: str = "access"):
        self.filename = filename
        self.reason = reason
        self.action = action
        super().__init__(f"can't {action} {filename}: {reason}")
