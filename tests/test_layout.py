# =============================================================================
# test_layout.py - Target Configuration and Memory Layout Tests
# =============================================================================
# Tests for TargetConfig and the RAM layout derived from it.
#
# Test coverage includes:
#   - Defaults and environment overrides
#   - Region placement and variable allocation
#   - Layout validation failures
# =============================================================================

import pytest

from z80calc.config import CELL_COUNT, RECORD_SIZE, TargetConfig
from z80calc.errors import LayoutError
from z80calc.layout import VARIABLES, MemoryLayout


# =============================================================================
# Configuration
# =============================================================================

class TestTargetConfig:
    """Tests for TargetConfig."""

    def test_defaults(self):
        """Default configuration matches the reference board."""
        config = TargetConfig()
        assert config.rom_size == 0x4000
        assert config.cell_base == 0x8000
        assert config.acia_status_port == 0x80
        assert config.acia_data_port == 0x81
        assert config.cell_array_size == 1024 * 6

    def test_stack_top_wraps(self):
        """ram_end of $10000 gives a stack top of 0."""
        assert TargetConfig().stack_top == 0x0000
        assert TargetConfig(ram_end=0xF000).stack_top == 0xF000

    def test_from_env(self, monkeypatch):
        """Z80CALC_* variables override the defaults."""
        monkeypatch.setenv("Z80CALC_ROM_SIZE", "0x2000")
        monkeypatch.setenv("Z80CALC_HEAP_SIZE", "4096")
        monkeypatch.setenv("Z80CALC_INPUT_CAPACITY", "60")
        monkeypatch.setenv("Z80CALC_CELL_BASE", "0x8800")
        config = TargetConfig.from_env()
        assert config.rom_size == 0x2000
        assert config.heap_size == 4096
        assert config.input_capacity == 60
        assert config.cell_base == 0x8800

    def test_from_env_ignores_invalid(self, monkeypatch, caplog):
        """Invalid values are logged and ignored."""
        monkeypatch.setenv("Z80CALC_ROM_SIZE", "big")
        config = TargetConfig.from_env()
        assert config.rom_size == 0x4000
        assert "Z80CALC_ROM_SIZE" in caplog.text

    def test_from_env_without_variables(self, monkeypatch):
        """No variables gives the defaults."""
        for name in ("Z80CALC_ROM_SIZE", "Z80CALC_CELL_BASE",
                     "Z80CALC_HEAP_SIZE", "Z80CALC_INPUT_CAPACITY"):
            monkeypatch.delenv(name, raising=False)
        assert TargetConfig.from_env() == TargetConfig()


# =============================================================================
# Layout
# =============================================================================

class TestMemoryLayout:
    """Tests for MemoryLayout.from_config()."""

    @pytest.fixture
    def layout(self):
        return MemoryLayout.from_config(TargetConfig())

    def test_regions_in_order(self, layout):
        """Cells, input, variables and heap follow each other."""
        assert layout.cell_base == 0x8000
        assert layout.input_buf == 0x8000 + CELL_COUNT * RECORD_SIZE
        assert layout.vars_base == layout.input_buf + 41
        assert layout.heap_start % 16 == 0
        assert layout.heap_end - layout.heap_start == 0x4000
        assert layout.stack_bottom == 0xFE00

    def test_variables_packed(self, layout):
        """Variables are packed in declaration order."""
        assert layout.vars.CURSOR_COL == layout.vars_base
        assert layout.vars.CURSOR_ROW == layout.vars_base + 1
        assert layout.vars.ACC == layout.vars.ACC_SIGN + 1
        assert layout.vars.OPD_SIGN == layout.vars.ACC + 4
        assert len(layout.vars) == len(VARIABLES)
        total = sum(size for _, size in VARIABLES)
        assert layout.heap_start >= layout.vars_base + total

    def test_variable_sizes(self, layout):
        """Variable sizes are recorded."""
        assert layout.vars.size("HEAP_PTR") == 2
        assert layout.vars.size("MUL_ACC") == 8

    def test_unknown_variable(self, layout):
        """Unknown variable raises AttributeError."""
        with pytest.raises(AttributeError):
            layout.vars.NOT_A_VARIABLE

    def test_cell_address(self, layout):
        """Cell address is row-major with 6-byte records."""
        assert layout.cell_address(0, 0) == 0x8000
        assert layout.cell_address(2, 1) == 0x8000 + (16 + 2) * 6

    def test_default_layout_valid(self, layout):
        """Default layout passes validation."""
        layout.validate()

    def test_regions_listing(self, layout):
        """Regions are listed in address order."""
        names = [name for name, _, _ in layout.regions()]
        assert names == ["cells", "input", "variables", "heap", "stack"]


class TestValidation:
    """Tests for MemoryLayout.validate()."""

    @pytest.mark.parametrize("config", [
        TargetConfig(rom_size=0x9000),                      # RAM inside ROM
        TargetConfig(ram_start=0x8000, ram_end=0x8000),     # empty RAM window
        TargetConfig(cell_base=0x7000),                     # cells below RAM
        TargetConfig(heap_size=0x7000),                     # heap past RAM end
        TargetConfig(heap_size=0x6600),                     # heap into the stack
    ])
    def test_invalid(self, config):
        """Overlapping or oversized layouts are rejected."""
        with pytest.raises(LayoutError):
            MemoryLayout.from_config(config).validate()
