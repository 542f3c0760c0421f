"""
z80calc - Target Configuration
==============================

Build configuration for the generated spreadsheet image: ROM size, the RAM
window, heap size, edit buffer length, display defaults and the serial port
numbers. Configuration can come from:
- Default values (defined here)
- Environment variables (Z80CALC_*)
- Command-line options (applied by the CLI on top of the above)

Default memory map (16KB ROM, 32KB RAM):

    $0000-$3FFF  ROM image (code, strings)
    $8000-$97FF  Cell records (1024 x 6 bytes)
    $9800-...    Input buffer, editor variables, BCD workspace
    ...          Formula/label heap (heap_size bytes)
    $FE00-$FFFF  Stack (stack_size bytes)
"""

from dataclasses import dataclass
import logging
import os

logger = logging.getLogger(__name__)


# =============================================================================
# Grid and Record Constants
# =============================================================================
# These are fixed by the on-target record format and are not configurable.
# =============================================================================

GRID_COLS = 16            # A-P
GRID_ROWS = 64            # 1-64
CELL_COUNT = GRID_COLS * GRID_ROWS
RECORD_SIZE = 6           # type, sign/flags, 4 payload bytes


@dataclass
class TargetConfig:
    """
    Configuration of the generated target image.

    All addresses are absolute Z80 addresses. The RAM window is
    [ram_start, ram_end); ram_end may be 0x10000 for RAM reaching the top
    of the address space.

    Attributes:
        rom_size: Size of the output image in bytes (image is padded to it)
        ram_start: First RAM address
        ram_end: One past the last RAM address
        cell_base: Address of cell record (A1)
        heap_size: Bytes reserved for the formula/label heap
        stack_size: Bytes reserved for the stack at the top of RAM
        input_capacity: Maximum characters in the edit buffer
        default_col_width: Initial display column width
        acia_status_port: MC6850 status/control I/O port
        acia_data_port: MC6850 data I/O port
        fill_byte: Value used to pad the image up to rom_size
    """

    # ═══════════════════════════════════════════════════════════════════════════
    # MEMORY MAP
    # ═══════════════════════════════════════════════════════════════════════════

    rom_size: int = 0x4000
    ram_start: int = 0x8000
    ram_end: int = 0x10000
    cell_base: int = 0x8000
    heap_size: int = 0x4000
    stack_size: int = 0x0200

    # ═══════════════════════════════════════════════════════════════════════════
    # EDITOR
    # ═══════════════════════════════════════════════════════════════════════════

    input_capacity: int = 40
    default_col_width: int = 9

    # ═══════════════════════════════════════════════════════════════════════════
    # HARDWARE
    # ═══════════════════════════════════════════════════════════════════════════

    acia_status_port: int = 0x80
    acia_data_port: int = 0x81
    fill_byte: int = 0x00

    # ═══════════════════════════════════════════════════════════════════════════
    # FACTORY METHODS
    # ═══════════════════════════════════════════════════════════════════════════

    @classmethod
    def from_env(cls) -> "TargetConfig":
        """
        Create TargetConfig from environment variables.

        Environment variables (all optional, decimal or 0x-prefixed hex):
            Z80CALC_ROM_SIZE: Image size in bytes
            Z80CALC_CELL_BASE: Address of the cell array
            Z80CALC_HEAP_SIZE: Formula heap size in bytes
            Z80CALC_INPUT_CAPACITY: Edit buffer length

        Invalid values are logged and ignored.

        Returns:
            TargetConfig with values from environment variables
        """
        config = cls()

        overrides = {
            "Z80CALC_ROM_SIZE": "rom_size",
            "Z80CALC_CELL_BASE": "cell_base",
            "Z80CALC_HEAP_SIZE": "heap_size",
            "Z80CALC_INPUT_CAPACITY": "input_capacity",
        }
        for variable, attribute in overrides.items():
            if value := os.environ.get(variable):
                try:
                    setattr(config, attribute, int(value, 0))
                except ValueError:
                    logger.warning(f"Ignoring invalid {variable}={value!r}")

        return config

    # ═══════════════════════════════════════════════════════════════════════════
    # DERIVED VALUES
    # ═══════════════════════════════════════════════════════════════════════════

    @property
    def cell_array_size(self) -> int:
        """Bytes occupied by the cell records."""
        return CELL_COUNT * RECORD_SIZE

    @property
    def stack_top(self) -> int:
        """Initial stack pointer (the first PUSH writes just below it)."""
        return self.ram_end & 0xFFFF
