"""Money value object for monetary amounts with currency."""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import String

from ordering.domain import ordering

DEFAULT_CURRENCY = "CNY"

_CENT = Decimal("0.01")


def _to_decimal(value) -> Decimal:
    if isinstance(value, float):
        # Go through str so 0.1 stays 0.1
        value = str(value)
    try:
        return Decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ValidationError({"amount": [f"Invalid monetary amount: {value!r}"]}) from exc


@ordering.value_object
class Money:
    """A decimal amount in a single currency, kept to two decimal places.

    Arithmetic returns new instances and refuses to mix currencies.
    """

    amount: Decimal
    currency = String(max_length=3, default=DEFAULT_CURRENCY)

    def defaults(self):
        self.amount = _to_decimal(self.amount)

    @invariant.post
    def currency_is_an_iso_code(self):
        if not self.currency or len(self.currency) != 3:
            raise ValidationError({"currency": [f"Invalid currency: {self.currency!r}"]})

    @classmethod
    def of(cls, value, currency: str = DEFAULT_CURRENCY) -> "Money":
        return cls(amount=_to_decimal(value), currency=currency)

    @classmethod
    def zero(cls, currency: str = DEFAULT_CURRENCY) -> "Money":
        return cls(amount=Decimal("0.00"), currency=currency)

    def _check_currency(self, other: "Money") -> None:
        if self.currency != other.currency:
            raise ValidationError({"currency": [f"Cannot combine {self.currency} with {other.currency}"]})

    def __add__(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(amount=self.amount + other.amount, currency=self.currency)

    def __sub__(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(amount=self.amount - other.amount, currency=self.currency)

    def __lt__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.amount < other.amount

    def __le__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.amount <= other.amount

    def __gt__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.amount > other.amount

    def __ge__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.amount >= other.amount

    def times(self, quantity: int) -> "Money":
        return Money(amount=self.amount * quantity, currency=self.currency)

    @property
    def is_negative(self) -> bool:
        return self.amount < 0

    def __str__(self) -> str:
        return f"{self.amount} {self.currency}"
