"""
Shift money math: percentage split, hourly guarantee and top-up.

Every function here is pure and total. Bad numeric input is coerced to a safe
default instead of raising, so a settlement can always be reproduced from the
figures stored on the shift.
"""
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from staffshift.core.money import HUNDRED, ZERO, round_cents, round_units, to_decimal


DEFAULT_PERCENT_MASTER = Decimal("60")
DEFAULT_PERCENT_SALON = Decimal("40")


class PaymentMode(str, Enum):
    percent_with_guarantee = "percent_with_guarantee"
    percent_only = "percent_only"


@dataclass(frozen=True)
class NormalizedPercentages:
    master: Decimal
    salon: Decimal


@dataclass(frozen=True)
class BaseShares:
    master_share: Decimal
    salon_share: Decimal


@dataclass(frozen=True)
class ShiftFinancials:
    total_amount: Decimal
    total_consumables: Decimal
    base_master_share: Decimal
    base_salon_share: Decimal
    guaranteed_amount: Decimal
    topup_amount: Decimal
    final_master_share: Decimal
    final_salon_share: Decimal
    normalized_percent_master: Decimal
    normalized_percent_salon: Decimal


@dataclass(frozen=True)
class DisplayShares:
    master_share: Decimal
    salon_share: Decimal
    topup_amount: Decimal


@dataclass(frozen=True)
class GuaranteeSplit:
    guaranteed_amount: Decimal
    topup_amount: Decimal
    master_share: Decimal
    salon_share: Decimal


def _non_negative_or(value: Any, default: Decimal) -> Decimal:
    amount = to_decimal(value, default)
    return amount if amount >= ZERO else default


def normalize_percentages(percent_master: Any, percent_salon: Any) -> NormalizedPercentages:
    """
    Scale a master/salon percentage pair so it sums to 100.

    Each side that is not a finite non-negative number is replaced by its
    default (60 / 40). A pair summing to zero falls back to the defaults too.

    Args:
        percent_master: Worker percentage as configured
        percent_salon: Business percentage as configured

    Returns:
        NormalizedPercentages summing to 100
    """
    master = _non_negative_or(percent_master, DEFAULT_PERCENT_MASTER)
    salon = _non_negative_or(percent_salon, DEFAULT_PERCENT_SALON)
    total = master + salon
    if total == ZERO:
        master, salon = DEFAULT_PERCENT_MASTER, DEFAULT_PERCENT_SALON
        total = master + salon
    return NormalizedPercentages(
        master=master / total * HUNDRED,
        salon=salon / total * HUNDRED,
    )


def _split(total_amount: Decimal, total_consumables: Decimal, percentages: NormalizedPercentages) -> BaseShares:
    master_share = round_units(total_amount * percentages.master / HUNDRED)
    # Consumables go to the business in full, added after rounding the split
    salon_share = round_units(total_amount * percentages.salon / HUNDRED) + total_consumables
    return BaseShares(master_share=master_share, salon_share=salon_share)


def calculate_base_shares(
    total_amount: Any,
    total_consumables: Any,
    percent_master: Any,
    percent_salon: Any,
) -> BaseShares:
    """
    Split service revenue between worker and business before any guarantee.

    Each side is rounded to whole currency units independently, so
    master + salon - consumables may differ from total_amount by one unit.

    Args:
        total_amount: Service revenue of the shift
        total_consumables: Consumables revenue, kept entirely by the business
        percent_master: Raw worker percentage
        percent_salon: Raw business percentage

    Returns:
        BaseShares with integer-rounded master_share and salon_share
    """
    return _split(
        _non_negative_or(total_amount, ZERO),
        _non_negative_or(total_consumables, ZERO),
        normalize_percentages(percent_master, percent_salon),
    )


def calculate_guaranteed_amount(hours_worked: Any, hourly_rate: Any) -> Decimal:
    """Minimum pay for the hours worked, in cents. Zero without a positive rate and positive hours."""
    hours = to_decimal(hours_worked)
    rate = to_decimal(hourly_rate)
    if hours is None or rate is None or hours <= ZERO or rate <= ZERO:
        return round_cents(ZERO)
    return round_cents(hours * rate)


def calculate_topup_amount(guaranteed_amount: Any, base_master_share: Any) -> Decimal:
    """What the business adds so the worker reaches the guarantee."""
    guaranteed = to_decimal(guaranteed_amount, ZERO)
    base = to_decimal(base_master_share, ZERO)
    if guaranteed > base:
        return round_cents(guaranteed - base)
    return round_cents(ZERO)


def apply_guarantee(base_master_share: Any, base_salon_share: Any, guaranteed_amount: Any) -> GuaranteeSplit:
    """
    Final shares for an already computed base split.

    The top-up moves money from the business share to the worker share, so
    the worker never gets less than the base share and the business share
    never goes below zero.
    """
    base_master = to_decimal(base_master_share, ZERO)
    base_salon = to_decimal(base_salon_share, ZERO)
    guaranteed = round_cents(to_decimal(guaranteed_amount, ZERO))
    topup = calculate_topup_amount(guaranteed, base_master)
    return GuaranteeSplit(
        guaranteed_amount=guaranteed,
        topup_amount=topup,
        master_share=round_cents(max(guaranteed, base_master)),
        salon_share=round_cents(max(ZERO, base_salon - topup)),
    )


def calculate_shift_financials(
    total_amount: Any,
    total_consumables: Any,
    percent_master: Any,
    percent_salon: Any,
    hours_worked: Any = None,
    hourly_rate: Any = None,
    payment_mode: str = PaymentMode.percent_with_guarantee.value,
) -> ShiftFinancials:
    """
    Full settlement of one shift.

    The percentages are normalized once and the same pair is used for the
    split and for the returned normalized_percent_* fields. The final worker
    share is never below the base share; the top-up only moves money from
    the business share to the worker share.

    Args:
        total_amount: Service revenue of the shift
        total_consumables: Consumables revenue of the shift
        percent_master: Raw worker percentage
        percent_salon: Raw business percentage
        hours_worked: Hours on shift, None when unknown
        hourly_rate: Guaranteed hourly rate, None when the worker has none
        payment_mode: 'percent_with_guarantee' (default) or 'percent_only'

    Returns:
        ShiftFinancials
    """
    total = _non_negative_or(total_amount, ZERO)
    consumables = _non_negative_or(total_consumables, ZERO)
    percentages = normalize_percentages(percent_master, percent_salon)
    base = _split(total, consumables, percentages)

    if payment_mode == PaymentMode.percent_only.value:
        guaranteed = round_cents(ZERO)
    else:
        guaranteed = calculate_guaranteed_amount(hours_worked, hourly_rate)
    split = apply_guarantee(base.master_share, base.salon_share, guaranteed)

    return ShiftFinancials(
        total_amount=total,
        total_consumables=consumables,
        base_master_share=base.master_share,
        base_salon_share=base.salon_share,
        guaranteed_amount=split.guaranteed_amount,
        topup_amount=split.topup_amount,
        final_master_share=split.master_share,
        final_salon_share=split.salon_share,
        normalized_percent_master=percentages.master,
        normalized_percent_salon=percentages.salon,
    )


def resolve_display_shares(
    base_master_share: Any,
    base_salon_share: Any,
    guaranteed_amount: Optional[Any],
    is_open: bool,
) -> DisplayShares:
    """
    Shares to show for a shift.

    An open shift with a live guarantee gets the same top-up treatment as a
    close would give it. Anything else passes the base shares through.
    """
    master = to_decimal(base_master_share, ZERO)
    salon = to_decimal(base_salon_share, ZERO)
    guaranteed = to_decimal(guaranteed_amount)

    if not is_open or guaranteed is None:
        return DisplayShares(
            master_share=round_cents(master),
            salon_share=round_cents(salon),
            topup_amount=round_cents(ZERO),
        )

    split = apply_guarantee(master, salon, guaranteed)
    return DisplayShares(
        master_share=split.master_share,
        salon_share=split.salon_share,
        topup_amount=split.topup_amount,
    )
