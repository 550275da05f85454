"""Commission calculation service.

CRITICAL BUSINESS LOGIC:
- The platform keeps a commission on every paid booking (default 15%)
- A resource may carry an explicit platform fee that replaces the percentage
- The fee never exceeds the total and is never negative
- owner_payout = total - platform_fee, so the two always add up exactly
- All arithmetic is Decimal; amounts leave this module as integer minor units
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from app.config import settings
from app.core.exceptions import ValidationError

MINOR_UNITS_PER_MAJOR = Decimal("100")


@dataclass(frozen=True)
class PaymentSplit:
    """Platform / owner split of a booking total, in minor units."""

    total_minor: int
    platform_fee_minor: int
    owner_payout_minor: int
    currency: str  # upper-case, as stored

    @property
    def processor_currency(self) -> str:
        return self.currency.lower()


def to_minor_units(amount: Decimal | int | str) -> int:
    """Convert a major-unit amount to minor units, rounding half up."""
    value = Decimal(str(amount)) * MINOR_UNITS_PER_MAJOR
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class CommissionService:
    """Service for calculating platform commission and owner payouts."""

    def __init__(self, commission_percent: Decimal | None = None):
        self.commission_percent = (
            commission_percent
            if commission_percent is not None
            else settings.marketplace_commission_percent
        )

    def calculate_commission(self, total_minor: int) -> int:
        """Commission in minor units for a total in minor units."""
        commission = Decimal(total_minor) * self.commission_percent / Decimal("100")
        return int(commission.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    def calculate_split(
        self,
        total_amount: Decimal,
        currency: str,
        platform_fee_override: Decimal | None = None,
    ) -> PaymentSplit:
        """Compute the platform fee and owner payout for a booking total.

        Args:
            total_amount: Amount the renter pays, in major units
            currency: ISO currency code (any case)
            platform_fee_override: Explicit fee in major units, replaces the percentage

        Returns:
            PaymentSplit in minor units
        """
        total_minor = to_minor_units(total_amount)
        if total_minor <= 0:
            raise ValidationError("Booking total must be positive")

        if platform_fee_override is not None:
            fee = to_minor_units(platform_fee_override)
        else:
            fee = self.calculate_commission(total_minor)
        fee = max(0, min(fee, total_minor))

        return PaymentSplit(
            total_minor=total_minor,
            platform_fee_minor=fee,
            owner_payout_minor=total_minor - fee,
            currency=currency.upper(),
        )
