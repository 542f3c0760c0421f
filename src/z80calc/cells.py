"""
Cell Store
==========

Host-side model of the spreadsheet's RAM: 1024 fixed-size cell records in
row-major order, plus the append-only heap holding formula and label text.
Addresses are the target's absolute addresses (taken from MemoryLayout), so
a heap pointer read from a record here is the same value the firmware would
store.

Cell Record Format (6 bytes)
----------------------------
    ```
    type        byte 0   byte 1   bytes 2-5
    ----------  ------   ------   -----------------------------
    EMPTY       0        0        0 0 0 0
    NUMBER      1        sign     packed BCD magnitude
    FORMULA     2        0        heap ptr (LE), 0, 0
    ERROR       3        0        0 0 0 0
    REPEAT      4        char     char, 0, 0, 0
    LABEL       5        0        heap ptr (LE), 0, 0
    ```

Heap Entry Format
-----------------
    ```
    label:    source text ... 00
    formula:  source text ... 00  sign  magnitude(4)
    ```
The source text is stored as typed, including the leading '=' or '"'.
Only the trailing sign and magnitude of a formula entry are ever rewritten.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Iterator, Optional
import logging

from z80calc.bcd import MAGNITUDE_SIZE, SIGN_POSITIVE, ZERO, is_digit
from z80calc.config import GRID_COLS, GRID_ROWS, RECORD_SIZE
from z80calc.errors import HeapFullError
from z80calc.layout import MemoryLayout

logger = logging.getLogger(__name__)


class CellType(IntEnum):
    """Value of byte 0 of a cell record."""
    EMPTY = 0
    NUMBER = 1
    FORMULA = 2
    ERROR = 3
    REPEAT = 4
    LABEL = 5

    @property
    def is_numeric(self) -> bool:
        """Whether formulas can read a value from this cell."""
        return self in (CellType.NUMBER, CellType.FORMULA)


# =============================================================================
# Cell Record
# =============================================================================

@dataclass(frozen=True)
class CellRecord:
    """
    Decoded form of one 6-byte cell record.

    Only the fields that belong to `type` are meaningful; the others keep
    their defaults, so a record always encodes back to consistent bytes.

    Attributes:
        type: Cell type
        sign: SIGN_POSITIVE or SIGN_NEGATIVE (NUMBER only)
        magnitude: Packed BCD magnitude (NUMBER only)
        pointer: Heap address of the source text (FORMULA and LABEL)
        fill: Fill character code (REPEAT only)
    """
    type: CellType = CellType.EMPTY
    sign: int = SIGN_POSITIVE
    magnitude: bytes = ZERO
    pointer: int = 0
    fill: int = 0

    def encode(self) -> bytes:
        """Encode to the on-target 6-byte layout."""
        if self.type == CellType.NUMBER:
            return bytes([self.type, self.sign]) + self.magnitude
        if self.type in (CellType.FORMULA, CellType.LABEL):
            return bytes([self.type, 0, self.pointer & 0xFF, self.pointer >> 8, 0, 0])
        if self.type == CellType.REPEAT:
            return bytes([self.type, self.fill, self.fill, 0, 0, 0])
        return bytes([self.type]) + bytes(RECORD_SIZE - 1)

    @classmethod
    def decode(cls, data: bytes) -> "CellRecord":
        """
        Decode a 6-byte record.

        Raises:
            ValueError: If the length or the type byte is invalid
        """
        if len(data) != RECORD_SIZE:
            raise ValueError(f"cell record must be {RECORD_SIZE} bytes, got {len(data)}")
        cell_type = CellType(data[0])
        if cell_type == CellType.NUMBER:
            return cls(cell_type, sign=data[1], magnitude=bytes(data[2:6]))
        if cell_type in (CellType.FORMULA, CellType.LABEL):
            return cls(cell_type, pointer=data[2] | (data[3] << 8))
        if cell_type == CellType.REPEAT:
            return cls(cell_type, fill=data[1])
        return cls(cell_type)


# =============================================================================
# Formula Heap
# =============================================================================

class FormulaHeap:
    """
    Append-only arena for formula and label text.

    Entries are never freed: editing a cell abandons its old entry. The
    capacity check runs before anything is written.
    """

    def __init__(self, start: int, end: int):
        self.start = start
        self.end = end
        self._data = bytearray(end - start)
        self._next = start

    @property
    def pointer(self) -> int:
        """Address of the next free byte."""
        return self._next

    @property
    def used(self) -> int:
        return self._next - self.start

    @property
    def available(self) -> int:
        return self.end - self._next

    @staticmethod
    def entry_size(text: str, formula: bool) -> int:
        """Bytes an entry for `text` occupies."""
        size = len(text.encode("ascii")) + 1
        if formula:
            size += 1 + MAGNITUDE_SIZE
        return size

    def check(self, size: int) -> None:
        """
        Raises:
            HeapFullError: If `size` more bytes do not fit
        """
        if size > self.available:
            raise HeapFullError(size, self.available)

    def append_label(self, text: str) -> int:
        """Store label text; return its address."""
        raw = text.encode("ascii") + b"\x00"
        self.check(len(raw))
        return self._append(raw)

    def append_formula(self, text: str, sign: int, magnitude: bytes) -> int:
        """Store formula text followed by its cached result; return its address."""
        raw = text.encode("ascii") + b"\x00" + bytes([sign]) + magnitude
        self.check(len(raw))
        return self._append(raw)

    def _append(self, raw: bytes) -> int:
        address = self._next
        offset = address - self.start
        self._data[offset:offset + len(raw)] = raw
        self._next += len(raw)
        logger.debug(f"Heap entry of {len(raw)} bytes at ${address:04X}")
        return address

    def read_text(self, address: int) -> str:
        """Source text of the entry at `address`."""
        offset = address - self.start
        terminator = self._data.index(0, offset)
        return self._data[offset:terminator].decode("ascii")

    def result_address(self, address: int) -> int:
        """Address of the cached sign byte of a formula entry."""
        return address + len(self.read_text(address)) + 1

    def read_result(self, address: int) -> tuple[int, bytes]:
        offset = self.result_address(address) - self.start
        return self._data[offset], bytes(self._data[offset + 1:offset + 1 + MAGNITUDE_SIZE])

    def write_result(self, address: int, sign: int, magnitude: bytes) -> None:
        """Overwrite the cached result of a formula entry in place."""
        offset = self.result_address(address) - self.start
        self._data[offset] = sign
        self._data[offset + 1:offset + 1 + MAGNITUDE_SIZE] = magnitude

    def dump(self) -> bytes:
        """Bytes of the used part of the heap."""
        return bytes(self._data[:self.used])


# =============================================================================
# Cell Store
# =============================================================================

class CellStore:
    """
    The 16 x 64 grid of cell records and the formula heap.

    Coordinates are 0-based (col 0 = A, row 0 = row 1). Accessors do not
    bounds-check beyond what Python indexing does; callers clamp first.

    Usage:
        store = CellStore(MemoryLayout.from_config(TargetConfig()))
        store.write_number(0, 0, *ascii_to_bcd("12.50"))
        store.read(0, 0).magnitude
    """

    def __init__(self, layout: MemoryLayout):
        self.layout = layout
        self.base = layout.cell_base
        self._records = bytearray(GRID_COLS * GRID_ROWS * RECORD_SIZE)
        self.heap = FormulaHeap(layout.heap_start, layout.heap_end)

    # =========================================================================
    # Addressing
    # =========================================================================

    def address(self, col: int, row: int) -> int:
        """Absolute address of the record for (col, row)."""
        return self.base + (row * GRID_COLS + col) * RECORD_SIZE

    def _offset(self, col: int, row: int) -> int:
        return self.address(col, row) - self.base

    def raw(self, col: int, row: int) -> bytes:
        offset = self._offset(col, row)
        return bytes(self._records[offset:offset + RECORD_SIZE])

    def dump(self) -> bytes:
        """All 1024 records as laid out in target RAM."""
        return bytes(self._records)

    # =========================================================================
    # Reading
    # =========================================================================

    def read(self, col: int, row: int) -> CellRecord:
        return CellRecord.decode(self.raw(col, row))

    def value(self, col: int, row: int) -> Optional[tuple[int, bytes]]:
        """
        Numeric value of a cell as formulas see it.

        Empty cells read as zero, Number cells as their stored value and
        Formula cells as their cached result. Other types return None.
        """
        record = self.read(col, row)
        if record.type == CellType.EMPTY:
            return SIGN_POSITIVE, ZERO
        if record.type == CellType.NUMBER:
            return record.sign, record.magnitude
        if record.type == CellType.FORMULA:
            return self.heap.read_result(record.pointer)
        return None

    def source_text(self, col: int, row: int) -> str:
        """Heap text of a Formula or Label cell."""
        record = self.read(col, row)
        if record.type not in (CellType.FORMULA, CellType.LABEL):
            raise ValueError(f"cell {cell_name(col, row)} has no heap text")
        return self.heap.read_text(record.pointer)

    def cached_result(self, col: int, row: int) -> tuple[int, bytes]:
        record = self.read(col, row)
        if record.type != CellType.FORMULA:
            raise ValueError(f"cell {cell_name(col, row)} is not a formula")
        return self.heap.read_result(record.pointer)

    def formulas(self) -> Iterator[tuple[int, int, CellRecord]]:
        """Yield (col, row, record) for every Formula cell in address order."""
        for index in range(GRID_COLS * GRID_ROWS):
            row, col = divmod(index, GRID_COLS)
            offset = index * RECORD_SIZE
            if self._records[offset] == CellType.FORMULA:
                yield col, row, self.read(col, row)

    # =========================================================================
    # Writing
    # =========================================================================

    def _store(self, col: int, row: int, record: CellRecord) -> None:
        offset = self._offset(col, row)
        self._records[offset:offset + RECORD_SIZE] = record.encode()

    def write_number(self, col: int, row: int, sign: int, magnitude: bytes) -> None:
        if magnitude == ZERO:
            sign = SIGN_POSITIVE
        self._store(col, row, CellRecord(CellType.NUMBER, sign=sign, magnitude=magnitude))

    def write_formula(self, col: int, row: int, text: str, sign: int, magnitude: bytes) -> None:
        """
        Store a formula and its first result.

        Raises:
            HeapFullError: If the heap cannot hold the entry; the cell is
                           left unchanged
        """
        pointer = self.heap.append_formula(text, sign, magnitude)
        self._store(col, row, CellRecord(CellType.FORMULA, pointer=pointer))

    def write_label(self, col: int, row: int, text: str) -> None:
        """
        Raises:
            HeapFullError: If the heap cannot hold the text
        """
        pointer = self.heap.append_label(text)
        self._store(col, row, CellRecord(CellType.LABEL, pointer=pointer))

    def write_repeat(self, col: int, row: int, fill: str) -> None:
        self._store(col, row, CellRecord(CellType.REPEAT, fill=ord(fill)))

    def write_error(self, col: int, row: int) -> None:
        self._store(col, row, CellRecord(CellType.ERROR))

    def clear(self, col: int, row: int) -> None:
        self._store(col, row, CellRecord())

    def set_cached_result(self, col: int, row: int, sign: int, magnitude: bytes) -> None:
        record = self.read(col, row)
        if record.type != CellType.FORMULA:
            raise ValueError(f"cell {cell_name(col, row)} is not a formula")
        if magnitude == ZERO:
            sign = SIGN_POSITIVE
        self.heap.write_result(record.pointer, sign, magnitude)

    def copy(self, src: tuple[int, int], dst: tuple[int, int]) -> None:
        """
        Copy one record to another cell.

        Formula and label cells share the source's heap entry, exactly as
        the firmware's 6-byte block copy does.
        """
        offset = self._offset(*src)
        raw = self._records[offset:offset + RECORD_SIZE]
        target = self._offset(*dst)
        self._records[target:target + RECORD_SIZE] = raw


# =============================================================================
# Cell Names
# =============================================================================

def cell_name(col: int, row: int) -> str:
    """'A1'-style name for 0-based coordinates."""
    return f"{chr(ord('A') + col)}{row + 1}"


def parse_cell_name(name: str) -> tuple[int, int]:
    """
    Parse 'B5' (or 'b5') into 0-based (col, row).

    Raises:
        ValueError: If the name is not a cell on the grid
    """
    name = name.strip().upper()
    if len(name) < 2 or not all(is_digit(char) for char in name[1:]):
        raise ValueError(f"invalid cell name '{name}'")
    col = ord(name[0]) - ord("A")
    row = int(name[1:]) - 1
    if not (0 <= col < GRID_COLS and 0 <= row < GRID_ROWS):
        raise ValueError(f"cell '{name}' is outside the A1:P64 grid")
    return col, row

