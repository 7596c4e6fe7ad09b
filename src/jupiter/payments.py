"""
Payment schedule engine: term-based periodic payments, date-based payments
and the estimated purchase-price settlement.
"""

import logging
from datetime import date, timedelta
from enum import Enum
from typing import List, Optional, Tuple

from dateutil.relativedelta import relativedelta

from .calculations import (
    calculate_compounding_growth,
    calculate_growth,
    earliest_date,
    escalation_steps,
    frequency_ratio,
    period_delta,
    prorata_factor,
    round_decimal,
)
from .exceptions import UnsupportedFrequencyError
from .models import (
    AgreementTerm,
    DatePaymentModel,
    DocStage,
    EscalationMethod,
    FirstPaymentPolicy,
    Grantor,
    JupiterDoc,
    Payment,
    PaymentFrequency,
    TermPaymentModel,
)
from .settings import settings

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)
PURCHASE_PRICE_SOURCE = "Estimated Purchase Price"

_NICKNAME_SEPARATORS = (" and ", ", ")


def nickname_grantor(name: Optional[str]) -> str:
    """
    Short display name for a grantor.

    "John Smith and Jane Smith" -> "John Smith"
    "Acme LLC, a Delaware company" -> "Acme LLC"

    Args:
        name: Full legal name

    Returns:
        Prefix up to the earliest " and " / ", " (case-insensitive), or the name itself
    """
    if not name:
        return ""
    lowered = name.lower()
    positions = [lowered.find(sep) for sep in _NICKNAME_SEPARATORS]
    positions = [p for p in positions if p >= 0]
    return name[:min(positions)] if positions else name


class PricingMethod(Enum):
    """Independent ways a periodic payment can be priced"""
    MINIMUM_PAYMENT = "minimum_payment"
    PER_MW = "per_mw"
    PER_MVA = "per_mva"
    FLAT = "flat"
    PER_ACRE = "per_acre"


def pricing_amount(method: PricingMethod, model: TermPaymentModel, default_acres: float = 0.0) -> float:
    """Amount produced by one pricing method (missing inputs count as zero)"""
    acres = model.agreement_acres if model.agreement_acres is not None else default_acres
    amounts = {
        PricingMethod.MINIMUM_PAYMENT: lambda: model.minimum_payment or 0.0,
        PricingMethod.PER_MW: lambda: (model.payment_per_mw or 0.0) * (model.mw or 0.0),
        PricingMethod.PER_MVA: lambda: (
            (model.inverter_count or 0.0) * (model.inverter_rating_mvas or 0.0) * (model.payment_per_mva or 0.0)
        ),
        PricingMethod.FLAT: lambda: model.flat_payment_amount or 0.0,
        PricingMethod.PER_ACRE: lambda: (model.payment_per_acre or 0.0) * (acres or 0.0),
    }
    return amounts[method]()


def periodic_base_payment(model: Optional[TermPaymentModel], default_acres: float = 0.0) -> float:
    """Largest amount across all pricing methods"""
    if model is None:
        return 0.0
    return max(pricing_amount(method, model, default_acres) for method in PricingMethod)


def term_payment_model(term: AgreementTerm, models: List[TermPaymentModel]) -> Optional[TermPaymentModel]:
    """
    Payment model that applies to a term.

    Matches term.payment_model (falling back to term.term_type) against the
    model names; with no name at all the first model applies.
    """
    if not models:
        return None

    model_name = term.payment_model or term.term_type
    if not model_name:
        return models[0]

    wanted = model_name.strip().lower()
    return next((m for m in models if (m.model_type or "").strip().lower() == wanted), None)


def grantor_shares(grantors: List[Grantor]) -> List[Tuple[Grantor, float]]:
    """
    Fraction of each payment owed to each grantor.

    Explicit splits (percent) are used when any grantor has one; otherwise
    the payment is shared equally.
    """
    if not grantors:
        return []
    if any(g.split is not None for g in grantors):
        return [(g, (g.split or 0.0) / 100) for g in grantors]
    share = 1 / len(grantors)
    return [(g, share) for g in grantors]


def _split_payment(
    amount: float,
    grantors: List[Grantor],
    payee_override: Optional[str],
    **details,
) -> List[Payment]:
    """One payment per grantor for a single period"""
    return [
        Payment(
            payment_amount=round_decimal(amount * share, settings.AMOUNT_DECIMALS),
            payee=payee_override or nickname_grantor(grantor.name),
            **details,
        )
        for grantor, share in grantor_shares(grantors)
    ]


def _escalate(amount: float, rate_percent: Optional[float], method: EscalationMethod, steps: int) -> float:
    rate = (rate_percent or 0.0) / 100
    if method is EscalationMethod.LINEAR:
        return calculate_growth(amount, rate, steps)
    return calculate_compounding_growth(amount, rate, steps)


def _escalation_frequency(value: Optional[str], owner: str) -> PaymentFrequency:
    try:
        return PaymentFrequency.parse(value, default=PaymentFrequency.ANNUALLY)
    except UnsupportedFrequencyError as e:
        logger.warning("%s: %s; escalating annually", owner, e)
        return PaymentFrequency.ANNUALLY


def _late_date(payment_date: date, index: int, first_lag: Optional[int], subsequent_lag: Optional[int]) -> date:
    lag = first_lag if index == 0 else subsequent_lag
    return payment_date + timedelta(days=lag or 0)


def _period_start(anchor: date, index: int, delta: Optional[relativedelta], previous_end: date) -> date:
    # always offset from the anchor: relativedelta clamps month-end days
    if delta is None:
        return previous_end + ONE_DAY
    return anchor + delta * index


def _period_end(anchor: date, index: int, delta: Optional[relativedelta], last: date) -> date:
    if delta is None:
        return last
    return min(anchor + delta * (index + 1) - ONE_DAY, last)


def first_payment_date(term: AgreementTerm, model: TermPaymentModel) -> date:
    """
    Date the first payment period of a term begins.

    Jan 1 and 1st-of-month policies take the first such date on or after the
    term start. A fixed date earlier than the term start is moved to it.
    """
    start = term.start_date
    policy = FirstPaymentPolicy.parse(model.first_payment_start)

    if policy is FirstPaymentPolicy.NEXT_JAN_1:
        if start.month == 1 and start.day == 1:
            return start
        return date(start.year + 1, 1, 1)
    if policy is FirstPaymentPolicy.FIRST_OF_MONTH:
        if start.day == 1:
            return start
        return (start + relativedelta(months=1)).replace(day=1)
    if policy is FirstPaymentPolicy.FIXED_DATE:
        if model.first_payment_date is None:
            return start
        return max(model.first_payment_date, start)
    return start


def calc_periodic_payments_for_term(doc: JupiterDoc, term: AgreementTerm) -> List[Payment]:
    """
    Periodic payments owed during one agreement term.

    Args:
        doc: Document with computed term dates
        term: Term to price

    Returns:
        Payments (one per grantor per period), empty when the term was
        cancelled by operations, has no dates, has no applicable model, the
        document has no grantors, or the payment frequency is not recognized
    """
    if term.cancelled_by_ops or term.start_date is None or term.end_date is None or not doc.grantor:
        return []

    model = term_payment_model(term, doc.term_payment_models)
    if model is None:
        return []

    source = model.model_type or term.term_type
    owner = f"{doc.id} term {term.term_ordinal}"

    try:
        frequency = PaymentFrequency.parse(model.payment_frequency)
    except UnsupportedFrequencyError as e:
        logger.warning("%s: %s; no payments generated", owner, e)
        return []

    escalation = _escalation_frequency(model.escalation_frequency, owner)
    ratio = frequency_ratio(frequency, escalation)
    method = EscalationMethod.parse(model.escalation_method)
    delta = period_delta(frequency)

    base = periodic_base_payment(model, doc.agreement_acres)
    term_amount = (base + term.cumulative_increase_amount) * (1 + term.cumulative_escalation_rate)

    suppress_lag = term.extension and not model.lag_on_extensions
    first_lag = 0 if suppress_lag else model.first_payment_lag_days
    subsequent_lag = 0 if suppress_lag else model.subsequent_payment_lag_days

    payments: List[Payment] = []
    index = 0
    first = first_payment_date(term, model)
    period_start = first

    while period_start <= term.end_date:
        period_end = _period_end(first, index, delta, term.end_date)
        factor = prorata_factor(period_start, period_end, frequency) if model.prorate_partial_periods else 1.0
        amount = _escalate(term_amount, model.escalation_rate, method, escalation_steps(index, ratio)) * factor

        payments.extend(_split_payment(
            amount,
            doc.grantor,
            model.payee,
            payment_index=index,
            payment_date=period_start,
            late_payment_date=_late_date(period_start, index, first_lag, subsequent_lag),
            payment_period_start=period_start,
            payment_period_end=period_end,
            prorata_factor=factor,
            source=source,
            term_ordinal=term.term_ordinal,
            applicable_to_purchase=model.applicable_to_purchase,
            refundable=model.refundable,
        ))

        index += 1
        period_start = _period_start(first, index, delta, period_end)

    return payments


def calc_date_payments(doc: JupiterDoc, model: DatePaymentModel) -> List[Payment]:
    """
    Payments for a date-based model.

    A model with a begin date recurs over [begin_date, end) at its payment
    frequency, where end is the earliest of the document termination date,
    the model end date and the model's one-time date (falling back to the
    final term end date). Otherwise the model pays once on payment_date,
    provided that date is not after the termination or model end date.

    Args:
        doc: Document with computed term dates
        model: Date payment model

    Returns:
        Payments (one per grantor per occurrence)
    """
    if not doc.grantor or model.payment_amount is None:
        return []

    owner = f"{doc.id} date model '{model.payment_name or model.id}'"
    source = model.payment_name or "Date Payment"
    common = dict(
        source=source,
        applicable_to_purchase=model.applicable_to_purchase,
        refundable=model.refundable,
    )

    if not model.is_recurring:
        if model.payment_date is None:
            return []
        cap = earliest_date(doc.termination_date, model.end_date, model.payment_date)
        if model.payment_date > cap:
            return []
        return _split_payment(
            model.payment_amount,
            doc.grantor,
            model.payee,
            payment_index=0,
            payment_date=model.payment_date,
            late_payment_date=_late_date(model.payment_date, 0, model.first_payment_lag_days, None),
            payment_period_start=model.payment_date,
            payment_period_end=model.payment_date,
            **common,
        )

    try:
        frequency = PaymentFrequency.parse(model.payment_frequency)
    except UnsupportedFrequencyError as e:
        logger.warning("%s: %s; no payments generated", owner, e)
        return []

    end = earliest_date(doc.termination_date, model.end_date, model.payment_date) or doc.final_term_end_date
    if end is None:
        logger.warning("%s: recurring schedule has no end date; no payments generated", owner)
        return []

    escalation = _escalation_frequency(model.escalation_frequency, owner)
    ratio = frequency_ratio(frequency, escalation)
    method = EscalationMethod.parse(model.escalation_method)
    delta = period_delta(frequency)

    payments: List[Payment] = []
    index = 0
    payment_date = model.begin_date

    while payment_date < end:
        period_end = _period_end(model.begin_date, index, delta, end - ONE_DAY)
        amount = _escalate(model.payment_amount, model.escalation_rate, method, escalation_steps(index, ratio))

        payments.extend(_split_payment(
            amount,
            doc.grantor,
            model.payee,
            payment_index=index,
            payment_date=payment_date,
            late_payment_date=_late_date(
                payment_date, index, model.first_payment_lag_days, model.subsequent_payment_lag_days
            ),
            payment_period_start=payment_date,
            payment_period_end=period_end,
            **common,
        ))

        index += 1
        payment_date = _period_start(model.begin_date, index, delta, period_end)

    return payments


def calc_estimated_purchase_price(doc: JupiterDoc) -> List[Payment]:
    """
    Settlement payments due at closing.

    The full purchase price less every payment already credited toward the
    purchase (term and date streams), split across grantors and dated at
    closing. Nothing is computed without a price and closing date, or for
    terminated documents.
    """
    if doc.full_purchase_price is None or doc.closing_date is None or doc.is_terminated:
        return []

    credited = sum(
        p.payment_amount for p in doc.term_payments + doc.date_payments if p.applicable_to_purchase
    )
    remainder = doc.full_purchase_price - credited
    if remainder < 0:
        logger.warning("%s: credited payments exceed the purchase price by %.2f", doc.id, -remainder)
        remainder = 0.0

    return _split_payment(
        remainder,
        doc.grantor,
        None,
        payment_index=0,
        payment_date=doc.closing_date,
        late_payment_date=doc.closing_date,
        payment_period_start=doc.closing_date,
        payment_period_end=doc.closing_date,
        source=PURCHASE_PRICE_SOURCE,
    )


def calc_payments(doc: JupiterDoc) -> JupiterDoc:
    """
    Recompute every payment stream of a document from scratch.

    Returns:
        New snapshot at the PRICED stage
    """
    priced = doc.evolve(DocStage.PRICED)

    for model in priced.term_payment_models:
        model.payments = []
    for model in priced.date_payment_models:
        model.payments = []
    priced.date_payments = []

    for term in priced.agreement_terms:
        model = term_payment_model(term, priced.term_payment_models)
        if model is not None:
            model.payments.extend(calc_periodic_payments_for_term(priced, term))

    for model in priced.date_payment_models:
        model.payments = calc_date_payments(priced, model)
        priced.date_payments.extend(model.payments)

    priced.date_payments.extend(calc_estimated_purchase_price(priced))

    logger.debug(
        "%s: %d term payments, %d date payments",
        priced.id, len(priced.term_payments), len(priced.date_payments),
    )
    return priced
