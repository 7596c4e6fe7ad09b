"""
Date and amount utilities shared by the term and payment calculators.
"""

import math
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from dateutil.relativedelta import relativedelta

from .models import PaymentFrequency

DAYS_PER_YEAR = 365

# tolerance for treating a fractional year as a whole number of months
_MONTH_EPSILON = 1e-6


def earliest_date(*dates: Optional[date]) -> Optional[date]:
    """Return the earliest non-null date, or None"""
    present = [d for d in dates if d is not None]
    return min(present) if present else None


def years_to_duration(length_years: Optional[float]) -> relativedelta:
    """
    Convert a (possibly fractional) length in years to a calendar duration.

    - under one year with an exact month fraction: months only (0.5 -> 6 months)
    - over one year with an exact month fraction: years + months (2.25 -> 2y 3m)
    - otherwise whole years plus the fraction as days

    Args:
        length_years: Term length in years

    Returns:
        relativedelta (zero when the length is missing or zero)
    """
    if not length_years:
        return relativedelta()

    length = float(length_years)
    months = length * 12
    whole_months = round(months)

    if abs(months - whole_months) < _MONTH_EPSILON:
        if length < 1:
            return relativedelta(months=whole_months)
        return relativedelta(years=whole_months // 12, months=whole_months % 12)

    whole_years = int(length)
    return relativedelta(years=whole_years, days=round((length - whole_years) * DAYS_PER_YEAR))


def add_duration_end(start: date, length_years: Optional[float]) -> date:
    """End date of a span: start + duration - 1 day"""
    return start + years_to_duration(length_years) - relativedelta(days=1)


def calculate_compounding_growth(amount: float, rate: float, periods: int) -> float:
    """Compounding growth: amount * (1 + rate) ** periods"""
    return amount * (1 + rate) ** periods


def calculate_growth(amount: float, rate: float, periods: int) -> float:
    """Linear growth: amount * (1 + rate * periods)"""
    return amount * (1 + rate * periods)


def round_decimal(value: float, places: int = 2) -> float:
    """Round half-up to a number of decimal places"""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def period_delta(frequency: PaymentFrequency) -> Optional[relativedelta]:
    """Calendar length of one period, or None for once-per-term"""
    if frequency.months is None:
        return None
    return relativedelta(months=frequency.months)


def frequency_ratio(payment: PaymentFrequency, escalation: PaymentFrequency) -> float:
    """
    Number of payment periods per escalation step.

    Monthly payments with annual escalation -> 12. Escalating once per term
    never escalates within the term.
    """
    if escalation.months is None:
        return math.inf
    if payment.months is None:
        return 1.0
    return escalation.months / payment.months


def escalation_steps(period_index: int, ratio: float) -> int:
    """Escalations applied by a given 0-based period index"""
    if ratio <= 0 or math.isinf(ratio):
        return 0
    return math.floor(period_index / ratio + _MONTH_EPSILON)


def prorata_factor(period_start: date, period_end: date, frequency: PaymentFrequency) -> float:
    """
    Fraction of a full period covered by [period_start, period_end].

    Returns 1.0 when the span is a full frequency unit (or longer).
    """
    delta = period_delta(frequency)
    if delta is None:
        return 1.0
    full_days = ((period_start + delta) - period_start).days
    actual_days = (period_end - period_start).days + 1
    if full_days <= 0 or actual_days >= full_days:
        return 1.0
    return actual_days / full_days
