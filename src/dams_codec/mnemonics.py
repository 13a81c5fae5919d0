"""
DAMS Mnemonic Table
===================

DAMS stores each source line's mnemonic as a single byte with the high bit
set. The low 7 bits index into a fixed keyword list: the Z80 instruction
set followed by the assembler directives. This module holds that list and
the two lookup directions built from it.

Token Layout
------------
    bit 7    : always 1 (marks a token byte)
    bits 0-6 : index into DAMS_MNEMONICS

Example:
    LD   -> index 0  -> $80
    DEFM -> index 69 -> $C5

The table is built once and never changes; callers share one instance
through default_table() and pass it into the decoder and encoder.

Reference
---------
- DAMS assembler manual (Amstrad CPC, 1985)
"""

import functools
import logging
from dataclasses import dataclass, field
from typing import Iterator, Optional

from dams_codec.errors import UnknownMnemonicError, UnknownTokenError, SourceLocation

logger = logging.getLogger(__name__)


TOKEN_FLAG = 0x80
TOKEN_MASK = 0x7F


# =============================================================================
# Keyword List
# =============================================================================
# Order is significant: the position of each entry is its token value.
# =============================================================================

DAMS_MNEMONICS: tuple[str, ...] = (
    # Z80 instructions with operands
    "LD", "INC", "DEC", "ADD", "ADC", "SUB", "SBC", "AND", "XOR", "OR", "CP",
    "PUSH", "POP", "BIT", "RES", "SET",
    "RLC", "RRC", "RL", "RR", "SLA", "SRA", "SRL",
    "IN", "OUT", "RST", "DJNZ", "EX", "IM", "JR", "CALL", "RET", "JP",
    # Z80 instructions without operands
    "NOP", "RLCA", "RRCA", "RLA", "RRA", "DAA", "CPL", "SCF", "CCF",
    "HALT", "EXX", "DI", "EI", "NEG", "RETN", "RETI", "RRD", "RLD",
    # Block transfer, search and I/O
    "LDI", "CPI", "INI", "OUTI", "LDD", "CPD", "IND", "OUTD",
    "LDIR", "CPIR", "INIR", "OTIR", "LDDR", "CPDR", "INDR", "OTDR",
    # Assembler directives
    "DEFB", "DEFW", "DEFM", "DEFS", "EQU", "ORG", "ENT", "IF", "ELSE", "END",
)

# Directive whose operand is copied byte for byte by the encoder
RAW_DATA_DIRECTIVE = "DEFM"


# =============================================================================
# Mnemonic Table
# =============================================================================

@dataclass(frozen=True)
class MnemonicTable:
    """
    Bidirectional mapping between DAMS token indices and mnemonic names.

    Attributes:
        names: Mnemonics in token order (upper case, no duplicates)
    """
    names: tuple[str, ...] = DAMS_MNEMONICS
    _index: dict[str, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if len(self.names) > TOKEN_MASK + 1:
            raise ValueError(f"too many mnemonics ({len(self.names)}), limit is {TOKEN_MASK + 1}")

        index: dict[str, int] = {}
        for position, name in enumerate(self.names):
            if name != name.upper():
                raise ValueError(f"mnemonic '{name}' is not upper case")
            if name in index:
                raise ValueError(f"duplicate mnemonic '{name}'")
            index[name] = position

        # Frozen dataclass: bypass __setattr__ for the derived lookup
        object.__setattr__(self, "_index", index)
        logger.debug(f"{len(self.names)} keywords loaded")

    def __len__(self) -> int:
        return len(self.names)

    def __iter__(self) -> Iterator[str]:
        return iter(self.names)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.upper() in self._index

    def mnemonic(self, index: int, location: Optional[SourceLocation] = None) -> str:
        """
        Resolve a token index to its mnemonic.

        Args:
            index: Token value with the high bit already stripped
            location: Position reported if the index is out of range

        Returns:
            The upper-case mnemonic

        Raises:
            UnknownTokenError: If index is not a valid table position
        """
        if not 0 <= index < len(self.names):
            raise UnknownTokenError(index, location=location)
        return self.names[index]

    def token(self, name: str, location: Optional[SourceLocation] = None) -> int:
        """
        Resolve a mnemonic to its token index (case-insensitive).

        Raises:
            UnknownMnemonicError: If the name is not in the table
        """
        try:
            return self._index[name.upper()]
        except KeyError:
            raise UnknownMnemonicError(name.upper(), location=location) from None

    def token_byte(self, name: str, location: Optional[SourceLocation] = None) -> int:
        """Resolve a mnemonic to the byte written in the binary form."""
        return self.token(name, location) | TOKEN_FLAG


@functools.lru_cache(maxsize=None)
def default_table() -> MnemonicTable:
    """Return the shared DAMS table, building it on first use."""
    return MnemonicTable()
