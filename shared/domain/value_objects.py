"""
Common Value Objects

Value objects used across multiple domains:
- Money: Represents monetary amounts with currency
- DateRange: Represents a range of dates (check-in to check-out)
"""

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from shared.domain.base import ValueObject

SUPPORTED_CURRENCIES = ('PHP', 'USD', 'EUR')

CENT = Decimal('0.01')
UNIT = Decimal('1')


def to_decimal(value) -> Decimal:
    """Coerce ints, strings and floats to Decimal without binary float noise"""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


@dataclass(frozen=True)
class Money(ValueObject):
    """
    Money value object

    Represents a non-negative monetary amount with currency.
    Immutable and supports arithmetic operations within one currency.
    """
    amount: Decimal
    currency: str = 'PHP'

    def __post_init__(self):
        object.__setattr__(self, 'amount', to_decimal(self.amount))
        # Validation
        if self.amount < 0:
            raise ValueError("Amount cannot be negative")
        if not self.currency:
            raise ValueError("Currency is required")
        if self.currency not in SUPPORTED_CURRENCIES:
            raise ValueError(f"Unsupported currency: {self.currency}")

    @classmethod
    def zero(cls, currency: str = 'PHP') -> 'Money':
        return cls(Decimal('0'), currency)

    def _check_currency(self, other: 'Money', operation: str):
        if not isinstance(other, Money):
            raise TypeError(f"Can only {operation} Money and Money")
        if self.currency != other.currency:
            raise ValueError(
                f"Cannot {operation} different currencies: {self.currency} and {other.currency}"
            )

    def __add__(self, other: 'Money') -> 'Money':
        """Add two money objects"""
        self._check_currency(other, 'add')
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: 'Money') -> 'Money':
        """Subtract two money objects"""
        self._check_currency(other, 'subtract')
        return Money(self.amount - other.amount, self.currency)

    def __mul__(self, factor) -> 'Money':
        """Multiply money by a factor"""
        if not isinstance(factor, (int, float, Decimal)):
            raise TypeError("Can only multiply Money by number")
        return Money(self.amount * to_decimal(factor), self.currency)

    def __lt__(self, other: 'Money') -> bool:
        self._check_currency(other, 'compare')
        return self.amount < other.amount

    def __le__(self, other: 'Money') -> bool:
        self._check_currency(other, 'compare')
        return self.amount <= other.amount

    def __gt__(self, other: 'Money') -> bool:
        self._check_currency(other, 'compare')
        return self.amount > other.amount

    def __ge__(self, other: 'Money') -> bool:
        self._check_currency(other, 'compare')
        return self.amount >= other.amount

    def percent(self, pct) -> 'Money':
        """Return ``pct`` percent of this amount, unrounded"""
        return Money(self.amount * to_decimal(pct) / Decimal('100'), self.currency)

    def quantized(self) -> 'Money':
        """Round to cents"""
        return Money(self.amount.quantize(CENT, rounding=ROUND_HALF_UP), self.currency)

    def rounded(self) -> 'Money':
        """Round half-up to whole currency units"""
        return Money(self.amount.quantize(UNIT, rounding=ROUND_HALF_UP), self.currency)

    @property
    def is_zero(self) -> bool:
        return self.amount == 0

    def to_dict(self) -> dict:
        return {'amount': str(self.amount), 'currency': self.currency}

    def __str__(self):
        return f"{self.amount:,.2f} {self.currency}"

    def __repr__(self):
        return f"Money({self.amount}, '{self.currency}')"


@dataclass(frozen=True)
class DateRange(ValueObject):
    """
    Date range value object

    Represents a stay from start_date (inclusive) to end_date (exclusive).
    """
    start_date: date
    end_date: date

    def __post_init__(self):
        # Validation
        if self.start_date >= self.end_date:
            raise ValueError(f"Start date ({self.start_date}) must be before end date ({self.end_date})")

    def contains(self, check_date: date) -> bool:
        """
        Check if a date is within this range

        Note: start_date is inclusive, end_date is exclusive
        """
        return self.start_date <= check_date < self.end_date

    def __len__(self) -> int:
        """Number of nights in the stay"""
        return (self.end_date - self.start_date).days

    def to_dict(self) -> dict:
        return {'start_date': self.start_date.isoformat(), 'end_date': self.end_date.isoformat()}

    def __str__(self):
        return f"{self.start_date.strftime('%d.%m.%Y')} - {self.end_date.strftime('%d.%m.%Y')}"

    def __repr__(self):
        return f"DateRange({self.start_date}, {self.end_date})"
