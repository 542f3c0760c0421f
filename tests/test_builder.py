# =============================================================================
# test_builder.py - Image Builder Unit Tests
# =============================================================================
# Tests for the linear emitter with deferred label resolution.
#
# Test coverage includes:
#   - Raw byte and word emission
#   - Label definition and duplicate detection
#   - Absolute fixups (forward and backward references)
#   - Relative branches (backward only, range checking)
#   - Resolution pass atomicity and finalization
#   - Image padding, writing and symbol listing
# =============================================================================

import pytest

from z80calc.emitter import Fixup, Image, ImageBuilder
from z80calc.errors import (
    BranchRangeError,
    BuilderFinalizedError,
    DuplicateLabelError,
    GenerationError,
    ImageSizeError,
    UndefinedLabelError,
)


# =============================================================================
# Emission
# =============================================================================

class TestEmit:
    """Tests for emit() and emit_word()."""

    def test_emit_ints(self):
        """Integers are emitted as single bytes."""
        builder = ImageBuilder()
        builder.emit(0x3E, 0x41)
        assert builder.finish().data == b"\x3e\x41"

    def test_emit_bytes_and_ints_mixed(self):
        """Bytes, bytearrays and ints can be mixed in one call."""
        builder = ImageBuilder()
        builder.emit(b"AB", 0x00, bytearray(b"C"))
        assert builder.finish().data == b"AB\x00C"

    def test_emit_word_little_endian(self):
        """Words are emitted low byte first."""
        builder = ImageBuilder()
        builder.emit_word(0x1234)
        assert builder.finish().data == b"\x34\x12"

    def test_byte_out_of_range(self):
        """Values outside 0-255 are rejected."""
        builder = ImageBuilder()
        with pytest.raises(ValueError):
            builder.emit(0x100)
        with pytest.raises(ValueError):
            builder.emit(-1)

    def test_word_out_of_range(self):
        """Words above $FFFF are rejected."""
        with pytest.raises(ValueError):
            ImageBuilder().emit_word(0x10000)

    def test_address_follows_origin(self):
        """Address is origin plus offset."""
        builder = ImageBuilder(origin=0x8000)
        assert builder.address == 0x8000
        builder.emit(0, 0, 0)
        assert builder.address == 0x8003
        assert builder.offset == 3


# =============================================================================
# Labels
# =============================================================================

class TestLabels:
    """Tests for label definition."""

    def test_label_records_current_address(self):
        """Label takes the address of the next byte."""
        builder = ImageBuilder()
        builder.emit(0, 0)
        builder.label("here")
        assert builder.lookup("here") == 2
        assert builder.is_defined("here")

    def test_label_uses_origin(self):
        """Label addresses include the origin."""
        builder = ImageBuilder(origin=0x100)
        builder.label("start")
        assert builder.lookup("start") == 0x100

    def test_duplicate_label(self):
        """Redefining a label names the first definition."""
        builder = ImageBuilder()
        builder.label("loop")
        builder.emit(0)
        with pytest.raises(DuplicateLabelError) as exc_info:
            builder.label("loop")
        assert exc_info.value.label == "loop"
        assert exc_info.value.address == 0
        assert "first defined at $0000" in str(exc_info.value)

    def test_lookup_undefined_suggests_similar(self):
        """Unknown label lookup suggests close names."""
        builder = ImageBuilder()
        builder.label("print_string")
        with pytest.raises(UndefinedLabelError) as exc_info:
            builder.lookup("print_strng")
        assert "print_string" in exc_info.value.similar_labels
        assert "did you mean" in str(exc_info.value)

    def test_labels_view_is_read_only(self):
        """Label table cannot be modified from outside."""
        builder = ImageBuilder()
        builder.label("a")
        with pytest.raises(TypeError):
            builder.labels["b"] = 1


# =============================================================================
# Absolute Fixups
# =============================================================================

class TestFixups:
    """Tests for deferred absolute references."""

    def test_forward_reference(self):
        """Forward reference is patched on finish."""
        builder = ImageBuilder()
        builder.emit(0xC3)
        builder.fixup("target")
        builder.emit(0x00)
        builder.label("target")
        image = builder.finish()
        assert image.data == b"\xc3\x04\x00\x00"

    def test_backward_reference(self):
        """Backward reference is patched on finish."""
        builder = ImageBuilder(origin=0x1000)
        builder.label("top")
        builder.emit(0x00)
        builder.emit(0xC3)
        builder.fixup("top")
        assert builder.finish().data == b"\x00\xc3\x00\x10"

    def test_many_fixups_same_label(self):
        """Every site referring to one label is patched."""
        builder = ImageBuilder()
        for _ in range(3):
            builder.fixup("end")
        builder.label("end")
        assert builder.finish().data == b"\x06\x00" * 3

    def test_pending_fixups_recorded(self):
        """Fixup records the offset and label."""
        builder = ImageBuilder()
        builder.emit(0xCD)
        builder.fixup("routine")
        assert builder.pending_fixups == (Fixup(1, "routine"),)

    def test_placeholder_is_zero_until_resolved(self):
        """Fixup site holds zero until resolution."""
        builder = ImageBuilder()
        builder.fixup("later")
        builder.label("later")
        assert builder.pending_fixups[0].offset == 0
        assert builder.finish().data == b"\x02\x00"

    def test_undefined_fixup_names_label_and_site(self):
        """Missing label error names the label and site."""
        builder = ImageBuilder()
        builder.emit(0xCD)
        builder.fixup("missing")
        with pytest.raises(UndefinedLabelError) as exc_info:
            builder.finish()
        assert exc_info.value.label == "missing"
        assert exc_info.value.site == 1
        assert "missing" in str(exc_info.value)

    def test_failed_resolution_patches_nothing(self):
        """Failed resolution leaves fixups pending."""
        builder = ImageBuilder()
        builder.label("known")
        builder.fixup("known")
        builder.fixup("unknown")
        with pytest.raises(UndefinedLabelError):
            builder.resolve()
        assert len(builder.pending_fixups) == 2
        assert not builder.finished

    def test_undefined_label_is_generation_error(self):
        """Missing label is a GenerationError."""
        builder = ImageBuilder()
        builder.fixup("nowhere")
        with pytest.raises(GenerationError):
            builder.finish()


# =============================================================================
# Relative Branches
# =============================================================================

class TestRelativeBranches:
    """Tests for emit_relative()."""

    def test_backward_branch_displacement(self):
        """DJNZ to itself encodes -2."""
        builder = ImageBuilder()
        builder.label("loop")
        builder.emit(0x10)          # DJNZ
        builder.emit_relative("loop")
        assert builder.finish().data == b"\x10\xfe"

    def test_displacement_measured_from_next_instruction(self):
        """Displacement counts from after the operand."""
        builder = ImageBuilder()
        builder.label("top")
        builder.emit(0x00, 0x00, 0x00)
        builder.emit(0x18)          # JR at 3, displacement byte at 4
        builder.emit_relative("top")
        assert builder.finish().data[-1] == 0xFB     # 0 - 5

    def test_forward_branch_is_rejected(self):
        """Relative branch to an unknown label is rejected."""
        builder = ImageBuilder()
        builder.emit(0x18)
        with pytest.raises(UndefinedLabelError) as exc_info:
            builder.emit_relative("ahead")
        assert exc_info.value.site == 1

    def test_maximum_backward_range(self):
        """Displacement of -128 is accepted."""
        builder = ImageBuilder()
        builder.label("far")
        builder.emit(bytes(126))
        builder.emit(0x18)
        builder.emit_relative("far")
        assert builder.finish().data[-1] == 0x80     # -128

    def test_out_of_range(self):
        """Displacement of -129 raises BranchRangeError."""
        builder = ImageBuilder()
        builder.label("far")
        builder.emit(bytes(127))
        builder.emit(0x18)
        with pytest.raises(BranchRangeError) as exc_info:
            builder.emit_relative("far")
        assert exc_info.value.offset == -129
        assert "use JP" in str(exc_info.value)

    def test_relative_branch_leaves_no_fixup(self):
        """Relative branches resolve immediately."""
        builder = ImageBuilder()
        builder.label("x")
        builder.emit(0x18)
        builder.emit_relative("x")
        assert builder.pending_fixups == ()


# =============================================================================
# Finalization
# =============================================================================

class TestFinish:
    """Tests for finish() and the finished state."""

    def test_finish_returns_symbols(self):
        """Image carries origin, end and symbols."""
        builder = ImageBuilder(origin=0x0100)
        builder.label("start")
        builder.emit(0x76)
        builder.label("end")
        image = builder.finish()
        assert dict(image.symbols) == {"start": 0x0100, "end": 0x0101}
        assert image.origin == 0x0100
        assert image.end == 0x0101

    @pytest.mark.parametrize("operation", [
        lambda b: b.emit(0),
        lambda b: b.label("late"),
        lambda b: b.fixup("x"),
        lambda b: b.emit_relative("x"),
        lambda b: b.resolve(),
        lambda b: b.finish(),
    ])
    def test_builder_closed_after_finish(self, operation):
        """Every mutation after finish() is rejected."""
        builder = ImageBuilder()
        builder.label("x")
        builder.finish()
        assert builder.finished
        with pytest.raises(BuilderFinalizedError):
            operation(builder)

    @pytest.mark.parametrize("operation", [
        lambda b: b.label("late"),
        lambda b: b.fixup("a"),
        lambda b: b.resolve(),
        lambda b: b.finish(),
    ])
    def test_builder_closed_after_resolve(self, operation):
        """resolve() runs once and closes the builder like finish()."""
        builder = ImageBuilder()
        builder.label("a")
        builder.fixup("a")
        builder.resolve()
        assert builder.finished
        with pytest.raises(BuilderFinalizedError):
            operation(builder)

    def test_resolve_returns_patched_image(self):
        """resolve() hands back the same image finish() would."""
        builder = ImageBuilder(origin=0x0200)
        builder.fixup("here")
        builder.label("here")
        image = builder.resolve()
        assert image.data == b"\x02\x02"
        assert image.symbols["here"] == 0x0202


# =============================================================================
# Image
# =============================================================================

class TestImage:
    """Tests for the finished Image."""

    def test_padded(self):
        """Padding uses the fill byte."""
        image = Image(b"\x01\x02")
        assert image.padded(4) == b"\x01\x02\x00\x00"
        assert image.padded(4, fill=0xFF) == b"\x01\x02\xff\xff"

    def test_padded_exact_size(self):
        """Exact-size image is unchanged."""
        assert Image(b"\x01\x02").padded(2) == b"\x01\x02"

    def test_padded_too_large(self):
        """Oversize image raises ImageSizeError."""
        with pytest.raises(ImageSizeError) as exc_info:
            Image(bytes(10)).padded(8)
        assert exc_info.value.size == 10
        assert exc_info.value.limit == 8

    def test_write(self, tmp_path):
        """Image is written padded to size."""
        path = tmp_path / "out.bin"
        Image(b"\xc9").write(path, size=4, fill=0xFF)
        assert path.read_bytes() == b"\xc9\xff\xff\xff"

    def test_format_symbols_sorted_by_address_then_name(self):
        """Symbol listing sorts by address, then name."""
        image = Image(b"", symbols={"b": 0x10, "a": 0x10, "start": 0})
        assert image.format_symbols() == "0000 start\n0010 a\n0010 b\n"

    def test_format_symbols_empty(self):
        """No symbols gives an empty listing."""
        assert Image(b"").format_symbols() == ""

    def test_write_symbols(self, tmp_path):
        """Symbol listing is written to a file."""
        path = tmp_path / "out.sym"
        Image(b"", symbols={"main_loop": 0x12}).write_symbols(path)
        assert path.read_text() == "0012 main_loop\n"
