"""Fixed-point decimal numbers backed by scaled integers.

Every protocol quantity (collateral, debt, price, ratio) is a
:class:`FixedPointDecimal` holding an integer mantissa at the contracts'
native scale of 18 fractional digits. Conversion to and from the 256-bit
wire integer is therefore lossless, and arithmetic truncates exactly like
the on-chain ``a * b / 1e18`` integer math does.
"""
from __future__ import annotations

import decimal
from typing import Optional, Union

from .errors import ParseError

DECIMALS = 18
SCALE = 10**DECIMALS
MAX_WIRE = 2**256 - 1

_SUFFIXES = ("", "K", "M", "B", "T")

Decimalish = Union["FixedPointDecimal", int, float, str, decimal.Decimal]


def _div_trunc(numerator: int, denominator: int) -> int:
    """Integer division truncating toward zero (EVM ``DIV`` semantics)."""
    quotient = abs(numerator) // abs(denominator)
    return quotient if (numerator >= 0) == (denominator >= 0) else -quotient


def _mantissa_from_decimal(parsed: decimal.Decimal, original: object) -> int:
    if not parsed.is_finite():
        raise ParseError(f"Not a finite number: {original!r}")

    sign, digits, exponent = parsed.as_tuple()
    coefficient = int("".join(map(str, digits))) if digits else 0
    if coefficient == 0:
        return 0

    shift = exponent + DECIMALS
    if shift >= 0:
        if len(digits) + shift > 80:
            raise ParseError(f"Value out of range: {original!r}")
        mantissa = coefficient * 10**shift
    else:
        # A nonzero coefficient below 10**-shift cannot be a multiple of it.
        if -shift > len(digits):
            raise ParseError(
                f"More than {DECIMALS} decimal places: {original!r}"
            )
        mantissa, remainder = divmod(coefficient, 10**-shift)
        if remainder:
            raise ParseError(
                f"More than {DECIMALS} decimal places: {original!r}"
            )

    if mantissa > MAX_WIRE:
        raise ParseError(f"Value out of range: {original!r}")
    return -mantissa if sign else mantissa


class FixedPointDecimal:
    """Signed decimal with 18 fractional digits, stored as an integer mantissa.

    Instances are immutable. ``INFINITY`` is the sentinel returned by a
    division by zero; it shares the all-ones bit pattern the contracts use
    for an unbounded collateral ratio.
    """

    __slots__ = ("_mantissa",)

    ZERO: FixedPointDecimal
    ONE: FixedPointDecimal
    INFINITY: FixedPointDecimal

    def __init__(self, mantissa: int) -> None:
        if isinstance(mantissa, bool) or not isinstance(mantissa, int):
            raise TypeError(
                f"Mantissa must be an int, got {type(mantissa).__name__}"
            )
        self._mantissa = mantissa

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_value(cls, value: Decimalish) -> FixedPointDecimal:
        """Convert a number, numeric string or Decimal into a fixed-point value.

        Raises:
            ParseError: malformed input, more than 18 fractional digits, or
                a magnitude that does not fit the wire integer.
        """
        if isinstance(value, FixedPointDecimal):
            return value
        if isinstance(value, bool):
            raise ParseError(f"Cannot convert {value!r} to a decimal")
        if isinstance(value, int):
            return cls(_mantissa_from_decimal(decimal.Decimal(value), value))
        if isinstance(value, float):
            return cls(_mantissa_from_decimal(decimal.Decimal(repr(value)), value))
        if isinstance(value, decimal.Decimal):
            return cls(_mantissa_from_decimal(value, value))
        if isinstance(value, str):
            return cls.from_string(value)
        raise ParseError(f"Cannot convert {type(value).__name__} to a decimal")

    @classmethod
    def from_string(cls, text: str) -> FixedPointDecimal:
        try:
            parsed = decimal.Decimal(text.strip())
        except decimal.InvalidOperation as e:
            raise ParseError(f"Malformed decimal string: {text!r}") from e
        return cls(_mantissa_from_decimal(parsed, text))

    @classmethod
    def from_wire(cls, value: int) -> FixedPointDecimal:
        """Wrap an unsigned 256-bit wire integer (already scaled by 1e18)."""
        if isinstance(value, bool) or not isinstance(value, int):
            raise ParseError(f"Wire value must be an int, got {value!r}")
        if value < 0 or value > MAX_WIRE:
            raise ParseError(f"Wire value out of uint256 range: {value}")
        return cls(value)

    def to_wire(self) -> int:
        """Return the unsigned 256-bit integer the contracts expect."""
        if self._mantissa < 0 or self._mantissa > MAX_WIRE:
            raise OverflowError(f"{self} does not fit a uint256 wire value")
        return self._mantissa

    # ------------------------------------------------------------------
    # Predicates and sentinels
    # ------------------------------------------------------------------

    @property
    def mantissa(self) -> int:
        return self._mantissa

    @property
    def is_zero(self) -> bool:
        return self._mantissa == 0

    @property
    def is_infinite(self) -> bool:
        return abs(self._mantissa) == MAX_WIRE

    @property
    def non_zero(self) -> Optional[FixedPointDecimal]:
        """``self``, or ``None`` when zero (absent value)."""
        return None if self._mantissa == 0 else self

    @property
    def finite(self) -> Optional[FixedPointDecimal]:
        """``self``, or ``None`` for the infinity sentinel."""
        return None if self.is_infinite else self

    @property
    def absolute_value(self) -> FixedPointDecimal:
        return self if self._mantissa >= 0 else FixedPointDecimal(-self._mantissa)

    # ------------------------------------------------------------------
    # Arithmetic
    # ------------------------------------------------------------------

    def add(self, other: Decimalish) -> FixedPointDecimal:
        return FixedPointDecimal(self._mantissa + _coerce(other)._mantissa)

    def sub(self, other: Decimalish) -> FixedPointDecimal:
        return FixedPointDecimal(self._mantissa - _coerce(other)._mantissa)

    def mul(self, other: Decimalish) -> FixedPointDecimal:
        return FixedPointDecimal(
            _div_trunc(self._mantissa * _coerce(other)._mantissa, SCALE)
        )

    def div(self, divisor: Decimalish) -> FixedPointDecimal:
        """``self / divisor``; division by zero yields ``INFINITY``."""
        divisor = _coerce(divisor)
        if divisor.is_zero:
            return FixedPointDecimal.INFINITY
        return FixedPointDecimal(_div_trunc(self._mantissa * SCALE, divisor._mantissa))

    def mul_div(self, multiplier: Decimalish, divisor: Decimalish) -> FixedPointDecimal:
        """``self * multiplier / divisor`` with a full-width intermediate product.

        Only one truncation happens, after the division, so the result is
        the exact quotient rounded toward zero at the 18th digit.
        """
        multiplier = _coerce(multiplier)
        divisor = _coerce(divisor)
        if divisor.is_zero:
            return FixedPointDecimal.INFINITY
        return FixedPointDecimal(
            _div_trunc(self._mantissa * multiplier._mantissa, divisor._mantissa)
        )

    # ------------------------------------------------------------------
    # Comparison
    # ------------------------------------------------------------------

    def eq(self, other: Decimalish) -> bool:
        return self._mantissa == _coerce(other)._mantissa

    def lt(self, other: Decimalish) -> bool:
        return self._mantissa < _coerce(other)._mantissa

    def lte(self, other: Decimalish) -> bool:
        return self._mantissa <= _coerce(other)._mantissa

    def gt(self, other: Decimalish) -> bool:
        return self._mantissa > _coerce(other)._mantissa

    def gte(self, other: Decimalish) -> bool:
        return self._mantissa >= _coerce(other)._mantissa

    # ------------------------------------------------------------------
    # Formatting
    # ------------------------------------------------------------------

    def to_string(self, precision: Optional[int] = None) -> str:
        """Exact decimal string, or rounded half-up to ``precision`` digits."""
        if self.is_infinite:
            return "∞" if self._mantissa > 0 else "-∞"

        sign = "-" if self._mantissa < 0 else ""
        magnitude = abs(self._mantissa)

        if precision is None:
            whole, frac = divmod(magnitude, SCALE)
            frac_str = f"{frac:0{DECIMALS}d}".rstrip("0")
            return f"{sign}{whole}.{frac_str}" if frac_str else f"{sign}{whole}"

        if not 0 <= precision <= DECIMALS:
            raise ValueError(f"precision must be between 0 and {DECIMALS}")

        factor = 10 ** (DECIMALS - precision)
        rounded, remainder = divmod(magnitude, factor)
        if remainder * 2 >= factor:
            rounded += 1
        if precision == 0:
            return f"{sign}{rounded}" if rounded else "0"
        whole, frac = divmod(rounded, 10**precision)
        if not rounded:
            sign = ""
        return f"{sign}{whole}.{frac:0{precision}d}"

    def prettify(self, precision: int = 2) -> str:
        """Rounded string with thousands separators, e.g. ``1,234.50``."""
        text = self.to_string(precision)
        if self.is_infinite:
            return text
        sign = "-" if text.startswith("-") else ""
        whole, _, frac = text.lstrip("-").partition(".")
        grouped = f"{int(whole):,}"
        return f"{sign}{grouped}.{frac}" if frac else f"{sign}{grouped}"

    def shorten(self) -> str:
        """Compact form with a K/M/B/T suffix, e.g. ``12.35M``."""
        if self.is_infinite:
            return self.to_string()
        whole = abs(self._mantissa) // SCALE
        index = min(max((len(str(whole)) - 1) // 3, 0), len(_SUFFIXES) - 1)
        scaled = FixedPointDecimal(_div_trunc(self._mantissa, 10 ** (3 * index)))
        return scaled.to_string(2) + _SUFFIXES[index]

    def __str__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        return f"FixedPointDecimal('{self}')"

    # ------------------------------------------------------------------
    # Python protocol
    # ------------------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FixedPointDecimal):
            return NotImplemented
        return self._mantissa == other._mantissa

    def __hash__(self) -> int:
        return hash((FixedPointDecimal, self._mantissa))

    def __lt__(self, other: Decimalish) -> bool:
        return self.lt(other)

    def __le__(self, other: Decimalish) -> bool:
        return self.lte(other)

    def __gt__(self, other: Decimalish) -> bool:
        return self.gt(other)

    def __ge__(self, other: Decimalish) -> bool:
        return self.gte(other)

    def __add__(self, other: Decimalish) -> FixedPointDecimal:
        return self.add(other)

    def __radd__(self, other: Decimalish) -> FixedPointDecimal:
        return _coerce(other).add(self)

    def __sub__(self, other: Decimalish) -> FixedPointDecimal:
        return self.sub(other)

    def __rsub__(self, other: Decimalish) -> FixedPointDecimal:
        return _coerce(other).sub(self)

    def __mul__(self, other: Decimalish) -> FixedPointDecimal:
        return self.mul(other)

    def __rmul__(self, other: Decimalish) -> FixedPointDecimal:
        return _coerce(other).mul(self)

    def __truediv__(self, other: Decimalish) -> FixedPointDecimal:
        return self.div(other)

    def __neg__(self) -> FixedPointDecimal:
        return FixedPointDecimal(-self._mantissa)

    def __abs__(self) -> FixedPointDecimal:
        return self.absolute_value

    def __bool__(self) -> bool:
        return self._mantissa != 0


FixedPointDecimal.ZERO = FixedPointDecimal(0)
FixedPointDecimal.ONE = FixedPointDecimal(SCALE)
FixedPointDecimal.INFINITY = FixedPointDecimal(MAX_WIRE)


def _coerce(value: Decimalish) -> FixedPointDecimal:
    return FixedPointDecimal.from_value(value)


class Difference:
    """Signed change between two decimals.

    The value is ``None`` when the difference is undefined (one side was
    absent, or both sides were infinite).
    """

    __slots__ = ("_value",)

    def __init__(self, value: Optional[FixedPointDecimal]) -> None:
        self._value = value

    @classmethod
    def between(
        cls, after: Optional[Decimalish], before: Optional[Decimalish]
    ) -> Difference:
        """``after - before``, saturating at the infinity sentinel."""
        if after is None or before is None:
            return cls(None)

        after = _coerce(after)
        before = _coerce(before)

        if after.is_infinite and before.is_infinite:
            return cls(None)
        if after.is_infinite:
            return cls(FixedPointDecimal.INFINITY)
        if before.is_infinite:
            return cls(-FixedPointDecimal.INFINITY)
        return cls(after.sub(before))

    @property
    def value(self) -> Optional[FixedPointDecimal]:
        return self._value

    @property
    def is_zero(self) -> bool:
        return self._value is not None and self._value.is_zero

    @property
    def positive(self) -> Optional[Difference]:
        if self._value is not None and self._value.mantissa > 0:
            return self
        return None

    @property
    def negative(self) -> Optional[Difference]:
        if self._value is not None and self._value.mantissa < 0:
            return self
        return None

    @property
    def non_zero(self) -> Optional[Difference]:
        if self._value is not None and not self._value.is_zero:
            return self
        return None

    @property
    def finite(self) -> Optional[Difference]:
        if self._value is not None and not self._value.is_infinite:
            return self
        return None

    @property
    def absolute_value(self) -> Optional[FixedPointDecimal]:
        return None if self._value is None else self._value.absolute_value

    def apply_to(self, base: Decimalish) -> FixedPointDecimal:
        """Replay this change onto ``base``; an undefined change is a no-op."""
        base = _coerce(base)
        if self._value is None:
            return base
        return base.add(self._value)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Difference):
            return NotImplemented
        return self._value == other._value

    def __hash__(self) -> int:
        return hash((Difference, self._value))

    def __str__(self) -> str:
        if self._value is None:
            return "N/A"
        if self._value.mantissa > 0:
            return f"+{self._value}"
        return str(self._value)

    def __repr__(self) -> str:
        return f"Difference({self})"
