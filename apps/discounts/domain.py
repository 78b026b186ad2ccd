"""
Discount providers

A booking carries at most one discount provider. Coupons and vouchers are
modelled as a closed union so pricing, tie-break and usage accounting have
one code path:

    DiscountProvider = CouponProvider | VoucherProvider
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import ClassVar, Union

from shared.domain.base import ValueObject
from shared.domain.exceptions import ValidationError
from shared.domain.value_objects import CENT


class DiscountRejected(ValidationError):
    """A code was presented but cannot be applied; ``reason`` says why."""

    code = "discount_rejected"

    def __init__(self, reason: str, message: str = ""):
        super().__init__(message or reason.replace("_", " ").capitalize())
        self.reason = reason


@dataclass(frozen=True)
class CouponProvider(ValueObject):
    kind: ClassVar[str] = "coupon"

    provider_id: int
    code: str
    discount_type: str
    discount_value: Decimal

    def raw_amount(self, subtotal: Decimal) -> Decimal:
        if self.discount_type == "percentage":
            return subtotal * self.discount_value / Decimal(100)
        return self.discount_value


@dataclass(frozen=True)
class VoucherProvider(ValueObject):
    kind: ClassVar[str] = "voucher"

    provider_id: int
    code: str
    discount_percent: int

    def raw_amount(self, subtotal: Decimal) -> Decimal:
        return subtotal * Decimal(self.discount_percent) / Decimal(100)


DiscountProvider = Union[CouponProvider, VoucherProvider]


@dataclass(frozen=True)
class AppliedDiscount(ValueObject):
    """A provider priced against one subtotal. ``0 < amount <= subtotal``."""

    provider: DiscountProvider
    amount: Decimal

    @classmethod
    def price(cls, provider: DiscountProvider, subtotal: Decimal) -> 'AppliedDiscount':
        amount = min(provider.raw_amount(subtotal), subtotal)
        amount = amount.quantize(CENT, rounding=ROUND_HALF_UP)
        if amount <= 0:
            raise DiscountRejected("zero_discount", "Discount does not reduce the price")
        return cls(provider=provider, amount=amount)

    @property
    def kind(self) -> str:
        return self.provider.kind

    @property
    def provider_id(self) -> int:
        return self.provider.provider_id

    @property
    def code(self) -> str:
        return self.provider.code

    def to_dict(self) -> dict:
        return {
            'kind': self.kind,
            'code': self.code,
            'provider_id': self.provider_id,
            'amount': str(self.amount),
        }
