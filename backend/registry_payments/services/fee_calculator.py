"""
Fee Calculator

Splits a gift price between couple, guest and platform.

couple_pays: the guest pays the list price and the fee is taken out of it.
    display = gross = base
    fee = floor(gross * pct)
    net_couple = gross - fee
    platform = fee

guest_pays: the price shown to guests is marked up so the couple nets the
list price.
    display = gross = round_half_up(base / (1 - pct))
    net_couple = base
    platform = fee = gross - net_couple

Arithmetic is done in Decimal; the percentage goes through str() so that
0.05 means exactly 5/100 rather than its binary approximation.
"""
from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP
from typing import Union

from ..exceptions import InvalidModalityError, InvalidFeePercentageError
from ..models.fees import FeeModality, PaymentAmounts

_ONE = Decimal(1)


def _to_modality(modality: Union[FeeModality, str]) -> FeeModality:
    try:
        return FeeModality(modality)
    except ValueError:
        raise InvalidModalityError(modality) from None


def _to_decimal_percentage(fee_percentage: Union[float, Decimal]) -> Decimal:
    if isinstance(fee_percentage, bool) or not isinstance(fee_percentage, (int, float, Decimal)):
        raise InvalidFeePercentageError(fee_percentage)
    pct = Decimal(str(fee_percentage))
    if not pct.is_finite() or pct < 0 or pct >= _ONE:
        raise InvalidFeePercentageError(fee_percentage)
    return pct


def _check_base_price(base_price_cents: int) -> None:
    if isinstance(base_price_cents, bool) or not isinstance(base_price_cents, int):
        raise ValueError(f"Base price must be an integer number of cents, got {base_price_cents!r}")
    if base_price_cents < 0:
        raise ValueError(f"Base price must be >= 0, got {base_price_cents}")


def _guest_pays_gross(base_price_cents: int, pct: Decimal) -> int:
    return int((Decimal(base_price_cents) / (_ONE - pct)).quantize(_ONE, rounding=ROUND_HALF_UP))


def calculate(
    base_price_cents: int,
    fee_percentage: Union[float, Decimal],
    modality: Union[FeeModality, str]
) -> PaymentAmounts:
    """
    Compute display price, gross, fee, net-to-couple and platform amounts.

    Args:
        base_price_cents: Gift list price in cents (>= 0)
        fee_percentage: Platform fee in [0, 1), e.g. 0.05 for 5%
        modality: couple_pays or guest_pays

    Returns:
        PaymentAmounts (all integer cents)

    Raises:
        InvalidModalityError: modality is not recognized
        InvalidFeePercentageError: percentage outside [0, 1)
        ValueError: negative or non-integer base price
    """
    fee_modality = _to_modality(modality)
    pct = _to_decimal_percentage(fee_percentage)
    _check_base_price(base_price_cents)

    if fee_modality is FeeModality.COUPLE_PAYS:
        gross_amount = base_price_cents
        fee_amount = int((Decimal(gross_amount) * pct).to_integral_value(rounding=ROUND_FLOOR))
        net_amount_couple = gross_amount - fee_amount
        return PaymentAmounts(
            display_price=gross_amount,
            gross_amount=gross_amount,
            fee_amount=fee_amount,
            net_amount_couple=net_amount_couple,
            platform_amount=fee_amount,
        )

    gross_amount = _guest_pays_gross(base_price_cents, pct)
    net_amount_couple = base_price_cents
    platform_amount = gross_amount - net_amount_couple
    return PaymentAmounts(
        display_price=gross_amount,
        gross_amount=gross_amount,
        fee_amount=platform_amount,
        net_amount_couple=net_amount_couple,
        platform_amount=platform_amount,
    )


def calculate_display_price(
    base_price_cents: int,
    fee_percentage: Union[float, Decimal],
    modality: Union[FeeModality, str]
) -> int:
    """Price shown to guests for a gift under the given modality."""
    fee_modality = _to_modality(modality)
    pct = _to_decimal_percentage(fee_percentage)
    _check_base_price(base_price_cents)

    if fee_modality is FeeModality.COUPLE_PAYS:
        return base_price_cents
    return _guest_pays_gross(base_price_cents, pct)
