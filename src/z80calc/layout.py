"""
Target Memory Layout
====================

This module turns a TargetConfig into concrete RAM addresses shared by the
host-side sheet model and the generated firmware. Both sides must agree on
where the cell records and the formula heap live, because heap pointers are
stored in the cell records as absolute 16-bit addresses.

RAM is carved up in this order, starting at cell_base:

    cells       1024 x 6-byte records
    input       edit buffer (input_capacity + NUL)
    variables   editor state and BCD workspace (see VARIABLES)
    heap        formula/label heap (heap_size bytes)
    ...         unused
    stack       stack_size bytes below stack_top
"""

from dataclasses import dataclass, field

from z80calc.config import TargetConfig, GRID_COLS, RECORD_SIZE
from z80calc.errors import LayoutError


# =============================================================================
# Firmware Variables
# =============================================================================
# Named RAM locations used by the generated code, with their sizes in bytes.
# They replace fixed magic addresses: each one is allocated in order inside
# the variables region.
# =============================================================================

VARIABLES: tuple[tuple[str, int], ...] = (
    # Editor state
    ("CURSOR_COL", 1),
    ("CURSOR_ROW", 1),
    ("VIEW_TOP", 1),
    ("VIEW_LEFT", 1),
    ("INPUT_LEN", 1),
    ("EDIT_MODE", 1),
    ("COL_WIDTH", 1),
    ("HEAP_PTR", 2),
    ("TEMP1", 2),
    ("TEMP2", 2),
    # Display loop counters
    ("DISP_ROW", 1),
    ("DISP_COL", 1),
    ("PAD_COUNT", 1),
    # Formula evaluation
    ("EXPR_PTR", 2),
    ("OPERATOR", 1),
    ("FUNC_TYPE", 1),
    ("RANGE_COL1", 1),
    ("RANGE_ROW1", 1),
    ("RANGE_COL2", 1),
    ("RANGE_ROW2", 1),
    ("RANGE_COL", 1),
    ("RANGE_ROW", 1),
    ("RANGE_FOUND", 1),
    ("RECALC_PTR", 2),
    ("RECALC_COUNT", 2),
    # BCD registers: a sign byte immediately followed by a 4-byte magnitude
    ("ACC_SIGN", 1),
    ("ACC", 4),
    ("OPD_SIGN", 1),
    ("OPD", 4),
    ("SAVE_SIGN", 1),
    ("SAVE", 4),
    ("EXT_SIGN", 1),
    ("EXT", 4),
    ("COUNT", 4),
    ("TMP", 4),
    # Multiply / divide scratch
    ("MUL_ACC", 8),
    ("MUL_CAND", 8),
    ("MUL_PLIER", 4),
    ("DIV_DVD", 6),
    ("DIV_REM", 6),
    ("DIV_DVS", 6),
    ("DIV_QUO", 6),
    # Number conversion
    ("NUM_SIGN", 1),
    ("NUM_MAG", 4),
    ("NUM_POINT", 1),
    ("NUM_FRAC", 1),
    ("NUM_DIGITS", 1),
    ("TEXT_BUF", 12),
)


class VariableMap:
    """
    Name -> address lookup for firmware variables.

    Attribute access keeps the generator code readable:

        >>> hex(layout.vars.CURSOR_COL)
        '0x9829'
    """

    def __init__(self, addresses: dict[str, int], sizes: dict[str, int]):
        self._addresses = addresses
        self._sizes = sizes

    def __getattr__(self, name: str) -> int:
        try:
            return self._addresses[name]
        except KeyError:
            raise AttributeError(f"no firmware variable named '{name}'") from None

    def size(self, name: str) -> int:
        """Size of a variable in bytes."""
        return self._sizes[name]

    def items(self):
        return self._addresses.items()

    def __len__(self) -> int:
        return len(self._addresses)


# =============================================================================
# Memory Layout
# =============================================================================

@dataclass(frozen=True)
class MemoryLayout:
    """
    Concrete RAM addresses for one TargetConfig.

    Attributes:
        config: The configuration the layout was derived from
        cell_base: Address of cell A1
        input_buf: Address of the edit buffer
        vars_base: First variable address
        heap_start: First heap byte
        heap_end: One past the last heap byte
        stack_bottom: Lowest address reserved for the stack
        stack_top: Initial SP value (0 means the top of the address space)
    """
    config: TargetConfig
    cell_base: int
    input_buf: int
    vars_base: int
    heap_start: int
    heap_end: int
    stack_bottom: int
    stack_top: int
    vars: VariableMap = field(repr=False, compare=False)

    @classmethod
    def from_config(cls, config: TargetConfig) -> "MemoryLayout":
        """Allocate every region for the given configuration."""
        cell_base = config.cell_base
        input_buf = cell_base + config.cell_array_size
        vars_base = input_buf + config.input_capacity + 1

        addresses: dict[str, int] = {}
        sizes: dict[str, int] = {}
        cursor = vars_base
        for name, size in VARIABLES:
            addresses[name] = cursor
            sizes[name] = size
            cursor += size

        # Heap starts on a 16-byte boundary for readable memory dumps
        heap_start = (cursor + 0x0F) & ~0x0F
        heap_end = heap_start + config.heap_size

        stack_limit = config.ram_end
        stack_bottom = stack_limit - config.stack_size

        return cls(
            config=config,
            cell_base=cell_base,
            input_buf=input_buf,
            vars_base=vars_base,
            heap_start=heap_start,
            heap_end=heap_end,
            stack_bottom=stack_bottom,
            stack_top=config.stack_top,
            vars=VariableMap(addresses, sizes),
        )

    # =========================================================================
    # Address Arithmetic
    # =========================================================================

    def cell_address(self, col: int, row: int) -> int:
        """
        Address of the record for (col, row), both 0-based.

        No bounds checking: callers clamp coordinates to the grid first.
        """
        return self.cell_base + (row * GRID_COLS + col) * RECORD_SIZE

    @property
    def heap_size(self) -> int:
        return self.heap_end - self.heap_start

    # =========================================================================
    # Validation
    # =========================================================================

    def regions(self) -> list[tuple[str, int, int]]:
        """All RAM regions as (name, start, end) with end exclusive."""
        return [
            ("cells", self.cell_base, self.input_buf),
            ("input", self.input_buf, self.vars_base),
            ("variables", self.vars_base, self.heap_start),
            ("heap", self.heap_start, self.heap_end),
            ("stack", self.stack_bottom, self.config.ram_end),
        ]

    def validate(self) -> None:
        """
        Check that the layout fits the target.

        Raises:
            LayoutError: If the RAM window overlaps the ROM, a region leaves
                         the RAM window, or two regions overlap
        """
        config = self.config
        if config.ram_start < config.rom_size:
            raise LayoutError(
                f"RAM at ${config.ram_start:04X} overlaps the "
                f"{config.rom_size}-byte ROM"
            )
        if config.ram_end > 0x10000 or config.ram_start >= config.ram_end:
            raise LayoutError(
                f"invalid RAM window ${config.ram_start:04X}-${config.ram_end:05X}"
            )

        regions = self.regions()
        for name, start, end in regions:
            if start < config.ram_start or end > config.ram_end:
                raise LayoutError(
                    f"{name} region ${start:04X}-${end:04X} is outside RAM "
                    f"${config.ram_start:04X}-${config.ram_end:05X}"
                )

        ordered = sorted(regions, key=lambda region: region[1])
        for (name_a, _, end_a), (name_b, start_b, _) in zip(ordered, ordered[1:]):
            if end_a > start_b:
                raise LayoutError(f"{name_a} region overlaps {name_b} region")
