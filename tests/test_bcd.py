# =============================================================================
# test_bcd.py - Packed BCD Arithmetic Tests
# =============================================================================
# Tests for the 8-digit, 2-decimal packed BCD number format.
#
# Test coverage includes:
#   - Unsigned add/sub/compare and carry/borrow handling
#   - Multiplication with rescaling and truncation
#   - Long division, divide by zero and quotient overflow
#   - Signed arithmetic and zero normalisation
#   - Algebraic properties checked against Python's Decimal
#   - ASCII parsing and formatting
# =============================================================================

from decimal import ROUND_DOWN, Decimal
from functools import cmp_to_key
import random

import pytest

from z80calc import bcd
from z80calc.bcd import SIGN_NEGATIVE, SIGN_POSITIVE, ZERO, Comparison
from z80calc.errors import (
    BCDArithmeticError,
    BCDOverflowError,
    DivideByZeroError,
    MalformedNumberError,
)

CENT = Decimal("0.01")
LIMIT = Decimal("1000000")


def num(text: str) -> tuple[int, bytes]:
    return bcd.ascii_to_bcd(text)


def value(result: tuple[int, bytes]) -> Decimal:
    return bcd.to_decimal(*result)


def magnitude(cents: int) -> bytes:
    """Packed magnitude for a whole number of hundredths."""
    return bytes.fromhex(f"{cents:08d}")


def random_cents(rng: random.Random) -> int:
    """Hundredths with a random number of digits, so small values are common."""
    return rng.randint(0, 10 ** rng.randint(1, 8) - 1)


def random_signed(rng: random.Random, limit: int = 50_000_000) -> tuple[int, bytes]:
    cents = rng.randint(0, limit - 1)
    sign = SIGN_NEGATIVE if cents and rng.random() < 0.5 else SIGN_POSITIVE
    return sign, magnitude(cents)


# =============================================================================
# Unsigned Operations
# =============================================================================

class TestUnsigned:
    """Tests for magnitude-only arithmetic."""

    def test_add_with_decimal_carry(self):
        """Carry out of a digit pair propagates to the next byte."""
        assert bcd.add(bytes.fromhex("00000099"), bytes.fromhex("00000001")) == \
            bytes.fromhex("00000100")

    def test_add_overflow(self):
        """A ninth digit is an overflow."""
        with pytest.raises(BCDOverflowError):
            bcd.add(bcd.MAX_MAGNITUDE, bytes.fromhex("00000001"))

    def test_sub_with_borrow(self):
        """Borrow propagates across bytes."""
        assert bcd.sub(bytes.fromhex("00000100"), bytes.fromhex("00000001")) == \
            bytes.fromhex("00000099")

    def test_sub_requires_ordered_operands(self):
        """sub() refuses a subtrahend larger than the minuend."""
        with pytest.raises(ValueError):
            bcd.sub(bytes.fromhex("00000001"), bytes.fromhex("00000002"))

    def test_compare(self):
        """Compare magnitudes across a digit boundary."""
        small, large = num("9.99")[1], num("10")[1]
        assert bcd.compare(small, large) == Comparison.LESS
        assert bcd.compare(large, small) == Comparison.GREATER
        assert bcd.compare(large, large) == Comparison.EQUAL

    def test_magnitude_length_checked(self):
        """Magnitudes must be exactly four bytes."""
        with pytest.raises(ValueError):
            bcd.add(b"\x00\x01", ZERO)


# =============================================================================
# Multiplication and Division
# =============================================================================

class TestMulDiv:
    """Tests for mul() and div()."""

    def test_multiply(self):
        """Multiply with two implied decimals."""
        assert value(bcd.signed_mul(*num("12.5"), *num("4"))) == Decimal("50.00")

    def test_multiply_truncates(self):
        """Digits below the second decimal are dropped."""
        # 0.05 * 0.05 = 0.0025 -> 0.00
        assert bcd.mul(num("0.05")[1], num("0.05")[1]) == ZERO
        # 1.25 * 1.25 = 1.5625 -> 1.56
        assert value(bcd.signed_mul(*num("1.25"), *num("1.25"))) == Decimal("1.56")

    def test_multiply_largest_fitting_product(self):
        """The largest magnitude times one still fits."""
        assert value(bcd.signed_mul(*num("999999.99"), *num("1"))) == Decimal("999999.99")

    def test_multiply_overflow(self):
        """A product of seven whole digits overflows."""
        with pytest.raises(BCDOverflowError):
            bcd.mul(num("1000")[1], num("1000")[1])

    def test_divide(self):
        """Divide with a fractional quotient."""
        assert value(bcd.signed_div(*num("10"), *num("4"))) == Decimal("2.50")

    def test_divide_truncates(self):
        """Quotients are truncated, not rounded."""
        assert value(bcd.signed_div(*num("10"), *num("3"))) == Decimal("3.33")
        assert value(bcd.signed_div(*num("2"), *num("3"))) == Decimal("0.66")

    def test_divide_small_divisor(self):
        """Dividing by 0.01 scales up by 100."""
        assert value(bcd.signed_div(*num("1"), *num("0.01"))) == Decimal("100.00")

    def test_divide_by_zero(self):
        """A zero divisor raises DivideByZeroError."""
        with pytest.raises(DivideByZeroError):
            bcd.div(num("5")[1], ZERO)

    def test_divide_overflow(self):
        """A quotient past six whole digits overflows."""
        with pytest.raises(BCDOverflowError):
            bcd.div(num("999999")[1], num("0.01")[1])

    def test_arithmetic_errors_share_base(self):
        """Arithmetic failures are all BCDArithmeticError."""
        assert issubclass(DivideByZeroError, BCDArithmeticError)
        assert issubclass(BCDOverflowError, BCDArithmeticError)


# =============================================================================
# Signed Operations
# =============================================================================

class TestSigned:
    """Tests for sign handling."""

    @pytest.mark.parametrize("a,b,expected", [
        ("5", "3", "8.00"),
        ("5", "-3", "2.00"),
        ("-5", "3", "-2.00"),
        ("3", "-5", "-2.00"),
        ("-5", "-3", "-8.00"),
    ])
    def test_signed_add(self, a, b, expected):
        """Add every sign combination."""
        assert value(bcd.signed_add(*num(a), *num(b))) == Decimal(expected)

    def test_signed_sub(self):
        """Subtract by flipping the second sign."""
        assert value(bcd.signed_sub(*num("3"), *num("5"))) == Decimal("-2.00")
        assert value(bcd.signed_sub(*num("-3"), *num("-5"))) == Decimal("2.00")

    def test_zero_result_is_positive(self):
        """Zero results always carry the positive sign."""
        assert bcd.signed_add(*num("-5"), *num("5")) == (SIGN_POSITIVE, ZERO)
        assert bcd.signed_mul(*num("-5"), *num("0")) == (SIGN_POSITIVE, ZERO)
        assert bcd.signed_div(*num("0"), *num("-5")) == (SIGN_POSITIVE, ZERO)

    def test_sign_of_product_and_quotient(self):
        """Product and quotient signs are the XOR of the operand signs."""
        assert bcd.signed_mul(*num("-2"), *num("3"))[0] == SIGN_NEGATIVE
        assert bcd.signed_mul(*num("-2"), *num("-3"))[0] == SIGN_POSITIVE
        assert bcd.signed_div(*num("6"), *num("-3"))[0] == SIGN_NEGATIVE

    def test_signed_compare(self):
        """Signed comparison orders negatives below positives."""
        assert bcd.signed_compare(*num("-10"), *num("1")) == Comparison.LESS
        assert bcd.signed_compare(*num("-10"), *num("-1")) == Comparison.LESS
        assert bcd.signed_compare(*num("2"), *num("1")) == Comparison.GREATER
        assert bcd.signed_compare(SIGN_NEGATIVE, ZERO, SIGN_POSITIVE, ZERO) == Comparison.EQUAL


# =============================================================================
# Properties
# =============================================================================

class TestProperties:
    """Randomised checks of algebraic properties against Decimal."""

    def test_signed_add_commutes(self):
        """a + b equals b + a for every sign combination."""
        rng = random.Random(1)
        for _ in range(2000):
            a, b = random_signed(rng), random_signed(rng)
            assert bcd.signed_add(*a, *b) == bcd.signed_add(*b, *a)

    def test_signed_add_matches_decimal(self):
        """Signed addition agrees with exact decimal addition."""
        rng = random.Random(2)
        for _ in range(2000):
            a, b = random_signed(rng), random_signed(rng)
            assert value(bcd.signed_add(*a, *b)) == value(a) + value(b)

    def test_compare_is_total_order_of_values(self):
        """Sorting by compare() gives the same order as sorting by value."""
        rng = random.Random(3)
        magnitudes = [magnitude(random_cents(rng)) for _ in range(500)]
        magnitudes += [ZERO, bcd.MAX_MAGNITUDE, magnitude(1)]
        by_compare = sorted(magnitudes, key=cmp_to_key(bcd.compare))
        by_value = sorted(magnitudes, key=lambda m: value((SIGN_POSITIVE, m)))
        assert by_compare == by_value

    def test_compare_is_antisymmetric(self):
        """compare(a, b) is the mirror of compare(b, a) and EQUAL only for equal values."""
        rng = random.Random(4)
        for _ in range(2000):
            a, b = magnitude(random_cents(rng)), magnitude(random_cents(rng))
            assert bcd.compare(a, b) == -bcd.compare(b, a)
            assert (bcd.compare(a, b) == Comparison.EQUAL) == (a == b)
            expected = value((SIGN_POSITIVE, a)) - value((SIGN_POSITIVE, b))
            assert bcd.compare(a, b) == (expected > 0) - (expected < 0)

    def test_signed_compare_matches_decimal(self):
        """Signed comparison agrees with the decimal values."""
        rng = random.Random(5)
        for _ in range(2000):
            a, b = random_signed(rng), random_signed(rng)
            difference = value(a) - value(b)
            assert bcd.signed_compare(*a, *b) == (difference > 0) - (difference < 0)

    @pytest.mark.parametrize("operation", ["add", "mul", "div"])
    def test_unsigned_operations_match_decimal(self, operation):
        """Results are the truncated decimal result, or an error when out of range."""
        rng = random.Random(6)
        for _ in range(2000):
            a_cents, b_cents = random_cents(rng), random_cents(rng)
            a, b = Decimal(a_cents) / 100, Decimal(b_cents) / 100
            if operation == "div" and not b_cents:
                with pytest.raises(DivideByZeroError):
                    bcd.div(magnitude(a_cents), magnitude(b_cents))
                continue
            exact = {"add": lambda: a + b, "mul": lambda: a * b, "div": lambda: a / b}[operation]()
            expected = exact.quantize(CENT, rounding=ROUND_DOWN)
            function = getattr(bcd, operation)
            if expected >= LIMIT:
                with pytest.raises(BCDOverflowError):
                    function(magnitude(a_cents), magnitude(b_cents))
            else:
                result = function(magnitude(a_cents), magnitude(b_cents))
                assert value((SIGN_POSITIVE, result)) == expected


# =============================================================================
# ASCII Conversion
# =============================================================================

class TestParse:
    """Tests for ascii_to_bcd() and parse_decimal()."""

    @pytest.mark.parametrize("text,magnitude", [
        ("0", "00000000"),
        ("5", "00000500"),
        ("123.45", "00012345"),
        ("123.4", "00012340"),
        (".5", "00000050"),
        ("7.", "00000700"),
        ("999999.99", "99999999"),
        ("0000012", "00001200"),
    ])
    def test_magnitudes(self, text, magnitude):
        """Parse literals into packed magnitudes."""
        assert num(text) == (SIGN_POSITIVE, bytes.fromhex(magnitude))

    def test_negative(self):
        """A leading '-' sets the negative sign."""
        assert num("-0.5") == (SIGN_NEGATIVE, bytes.fromhex("00000050"))

    def test_negative_zero_normalised(self):
        """Negative zero parses as positive zero."""
        assert num("-0") == (SIGN_POSITIVE, ZERO)
        assert num("-0.00") == (SIGN_POSITIVE, ZERO)

    def test_extra_fraction_digits_ignored(self):
        """Fraction digits after the second are dropped."""
        assert num("1.239") == num("1.23")

    @pytest.mark.parametrize("text", ["", "-", ".", "-.", "1234567", "1x", "1.2.3", "+1", " 1"])
    def test_malformed(self, text):
        """Reject malformed literals."""
        with pytest.raises(MalformedNumberError):
            num(text)

    @pytest.mark.parametrize("text", ["²", "١٢", "５", "1²", "1.٣"])
    def test_non_ascii_digits_rejected(self, text):
        """Only the ASCII digits 0-9 count as digits."""
        with pytest.raises(MalformedNumberError):
            num(text)

    def test_is_digit(self):
        """is_digit() accepts single ASCII digits only."""
        assert all(bcd.is_digit(char) for char in "0123456789")
        assert not any(bcd.is_digit(char) for char in ["", "a", "/", ":", "²", "12"])

    def test_parse_decimal_stops_at_operator(self):
        """parse_decimal() returns the index after the literal."""
        sign, magnitude, end = bcd.parse_decimal("=12+3", 1)
        assert (sign, magnitude, end) == (SIGN_POSITIVE, bytes.fromhex("00001200"), 3)

    def test_error_reports_position(self):
        """Errors carry the offending column."""
        with pytest.raises(MalformedNumberError) as exc_info:
            num("12a")
        assert exc_info.value.position == 2


class TestFormat:
    """Tests for bcd_to_ascii() and format_value()."""

    def test_bcd_to_ascii_fixed_width(self):
        """bcd_to_ascii() always shows six whole and two fraction digits."""
        assert bcd.bcd_to_ascii(*num("123.45")) == "000123.45"
        assert bcd.bcd_to_ascii(*num("-1")) == "-000001.00"
        assert bcd.bcd_to_ascii(SIGN_NEGATIVE, ZERO) == "000000.00"

    @pytest.mark.parametrize("text,shown", [
        ("0", "0.00"),
        ("0.5", "0.50"),
        ("-0.5", "-0.50"),
        ("1234", "1234.00"),
        ("999999.99", "999999.99"),
    ])
    def test_format_value(self, text, shown):
        """format_value() suppresses leading zeros."""
        assert bcd.format_value(*num(text)) == shown

    def test_formatted_text_parses_back(self):
        """Display text parses back to the same value."""
        for text in ("0.07", "-42.10", "100000"):
            assert num(bcd.format_value(*num(text))) == num(text)


class TestInterop:
    """Tests for the integer and Decimal helpers."""

    def test_from_int(self):
        """Convert integers to signed BCD."""
        assert bcd.from_int(12) == (SIGN_POSITIVE, bytes.fromhex("00001200"))
        assert bcd.from_int(-3)[0] == SIGN_NEGATIVE
        assert bcd.from_int(0) == (SIGN_POSITIVE, ZERO)

    def test_from_int_range(self):
        """Integers past six digits do not fit."""
        with pytest.raises(BCDOverflowError):
            bcd.from_int(1_000_000)

    def test_to_int_truncates(self):
        """to_int() truncates toward zero."""
        assert bcd.to_int(*num("-12.99")) == -12
