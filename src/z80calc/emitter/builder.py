"""
Image Builder
=============

This module implements the emitter core: a linear output buffer with a
label table and deferred absolute fixups. Code is generated in one forward
pass; addresses that are not known yet are emitted as placeholders and
patched by a single resolution pass.

Two-Phase Lifecycle
-------------------
1. **Building**: emit(), emit_word(), label(), fixup() and emit_relative()
   append to the buffer. Labels may be referenced before they are defined
   (absolute fixups only).
2. **Finished**: resolve() (or finish()) patches every fixup and returns an
   immutable Image. The builder refuses any further use, so "resolution
   already happened" can never be confused with "still building".

Reference Kinds
---------------
Absolute fixup (JP, CALL, LD HL,label ...):
    ```
    offset  size  contents
    ------  ----  --------
    n       2     placeholder, patched to the label address (little-endian)
    ```
    Forward or backward; resolved in finish().

Relative displacement (JR, DJNZ):
    ```
    offset  size  contents
    ------  ----  --------
    n       1     target - (address of byte n + 1), signed
    ```
    Computed immediately, so the target must already be defined.
"""

from dataclasses import dataclass, field
from difflib import get_close_matches
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional, Union
import logging

from z80calc.errors import (
    BranchRangeError,
    BuilderFinalizedError,
    DuplicateLabelError,
    ImageSizeError,
    UndefinedLabelError,
)

logger = logging.getLogger(__name__)

ByteLike = Union[int, bytes, bytearray]


# =============================================================================
# Fixup Record
# =============================================================================

@dataclass(frozen=True)
class Fixup:
    """
    A pending absolute address patch.

    Attributes:
        offset: Buffer offset of the 2-byte little-endian field
        label: Name of the label whose address goes there
    """
    offset: int
    label: str


# =============================================================================
# Finished Image
# =============================================================================

@dataclass(frozen=True)
class Image:
    """
    A fully resolved output image.

    Attributes:
        data: The machine code and data bytes
        origin: Address of data[0] on the target
        symbols: Label name -> absolute address
    """
    data: bytes
    origin: int = 0
    symbols: Mapping[str, int] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.data)

    @property
    def end(self) -> int:
        """Address one past the last byte."""
        return self.origin + len(self.data)

    def padded(self, size: int, fill: int = 0x00) -> bytes:
        """
        Return the image padded to exactly `size` bytes.

        Raises:
            ImageSizeError: If the image is already larger than `size`
        """
        if len(self.data) > size:
            raise ImageSizeError(len(self.data), size)
        return self.data + bytes([fill]) * (size - len(self.data))

    def write(self, filepath: Union[str, Path], size: Optional[int] = None, fill: int = 0x00) -> None:
        """Write the image (optionally padded to `size`) to a file."""
        data = self.data if size is None else self.padded(size, fill)
        Path(filepath).write_bytes(data)
        logger.debug(f"Wrote {len(data)} bytes to {filepath}")

    def format_symbols(self) -> str:
        """
        Format the symbol table, sorted by address then name.

        Example output:
            0000 start
            0012 main_loop
        """
        lines = [
            f"{address:04X} {name}"
            for name, address in sorted(self.symbols.items(), key=lambda s: (s[1], s[0]))
        ]
        return "\n".join(lines) + "\n" if lines else ""

    def write_symbols(self, filepath: Union[str, Path]) -> None:
        """Write the symbol table to a text file."""
        Path(filepath).write_text(self.format_symbols())


# =============================================================================
# Image Builder
# =============================================================================

class ImageBuilder:
    """
    Linear code/data emitter with deferred label resolution.

    Usage:
        builder = ImageBuilder()
        builder.emit(0xC3)          # JP ...
        builder.fixup("start")      # ... start (forward reference)
        builder.label("start")
        builder.emit(0x76)          # HALT
        image = builder.finish()
    """

    def __init__(self, origin: int = 0x0000):
        """
        Initialize an empty builder.

        Args:
            origin: Target address of the first emitted byte
        """
        self.origin = origin
        self._buffer = bytearray()
        self._labels: dict[str, int] = {}
        self._fixups: list[Fixup] = []
        self._finished = False

    # =========================================================================
    # Introspection
    # =========================================================================

    @property
    def address(self) -> int:
        """Target address of the next byte to be emitted."""
        return self.origin + len(self._buffer)

    @property
    def offset(self) -> int:
        """Buffer offset of the next byte to be emitted."""
        return len(self._buffer)

    @property
    def labels(self) -> Mapping[str, int]:
        """Read-only view of the label table."""
        return MappingProxyType(self._labels)

    @property
    def pending_fixups(self) -> tuple[Fixup, ...]:
        return tuple(self._fixups)

    @property
    def finished(self) -> bool:
        return self._finished

    def lookup(self, name: str) -> int:
        """
        Address of a defined label.

        Raises:
            UndefinedLabelError: If the label has not been defined
        """
        if name not in self._labels:
            raise UndefinedLabelError(name, similar_labels=self._similar(name))
        return self._labels[name]

    def is_defined(self, name: str) -> bool:
        return name in self._labels

    # =========================================================================
    # Emission
    # =========================================================================

    def emit(self, *values: ByteLike) -> None:
        """
        Append raw bytes.

        Each value is either an int in 0..255 or a bytes-like object.

        Raises:
            ValueError: If an int is outside the byte range
            BuilderFinalizedError: If the builder was already resolved
        """
        self._check_open("emit bytes")
        for value in values:
            if isinstance(value, (bytes, bytearray)):
                self._buffer.extend(value)
                continue
            if not 0 <= value <= 0xFF:
                raise ValueError(f"byte out of range: {value}")
            self._buffer.append(value)

    def emit_word(self, value: int) -> None:
        """Append a 16-bit value, least-significant byte first."""
        if not 0 <= value <= 0xFFFF:
            raise ValueError(f"word out of range: {value}")
        self.emit(value & 0xFF, (value >> 8) & 0xFF)

    def label(self, name: str) -> None:
        """
        Define `name` at the current address.

        Raises:
            DuplicateLabelError: If `name` is already defined
        """
        self._check_open(f"define label '{name}'")
        if name in self._labels:
            raise DuplicateLabelError(name, self._labels[name])
        self._labels[name] = self.address

    def fixup(self, name: str) -> None:
        """
        Append a 2-byte placeholder to be patched with the address of `name`.

        The label may be defined before or after this call.
        """
        self._check_open(f"reference label '{name}'")
        self._fixups.append(Fixup(self.offset, name))
        self._buffer.extend(b"\x00\x00")

    def emit_relative(self, name: str) -> None:
        """
        Append a signed 8-bit displacement to an already defined label.

        The displacement is measured from the address of the byte after the
        displacement itself, as the Z80 does for JR and DJNZ.

        Raises:
            UndefinedLabelError: If `name` is not defined yet
            BranchRangeError: If the displacement is outside -128..127
        """
        self._check_open(f"branch to '{name}'")
        if name not in self._labels:
            raise UndefinedLabelError(
                name, site=self.offset, similar_labels=self._similar(name)
            )
        displacement = self._labels[name] - (self.address + 1)
        if not -128 <= displacement <= 127:
            raise BranchRangeError(name, displacement)
        self._buffer.append(displacement & 0xFF)

    # =========================================================================
    # Resolution
    # =========================================================================

    def resolve(self) -> Image:
        """
        Patch every pending fixup with its label address and close the builder.

        All fixups are checked before any byte is written, so a missing
        label leaves the buffer exactly as it was and the builder open.
        Resolution runs once: afterwards every emit, label, fixup, resolve
        or finish call raises BuilderFinalizedError.

        Raises:
            UndefinedLabelError: For the first fixup whose label is missing
        """
        self._check_open("resolve fixups")
        for fixup in self._fixups:
            if fixup.label not in self._labels:
                raise UndefinedLabelError(
                    fixup.label,
                    site=fixup.offset,
                    similar_labels=self._similar(fixup.label),
                )

        for fixup in self._fixups:
            address = self._labels[fixup.label]
            self._buffer[fixup.offset] = address & 0xFF
            self._buffer[fixup.offset + 1] = (address >> 8) & 0xFF

        logger.debug(
            f"Resolved {len(self._fixups)} fixups against {len(self._labels)} labels"
        )
        self._fixups.clear()
        self._finished = True
        return Image(
            data=bytes(self._buffer),
            origin=self.origin,
            symbols=MappingProxyType(dict(self._labels)),
        )

    def finish(self) -> Image:
        """Resolve all fixups and return the finished image."""
        return self.resolve()

    # =========================================================================
    # Helpers
    # =========================================================================

    def _check_open(self, operation: str) -> None:
        if self._finished:
            raise BuilderFinalizedError(operation)

    def _similar(self, name: str) -> list[str]:
        return get_close_matches(name, list(self._labels), n=3)
