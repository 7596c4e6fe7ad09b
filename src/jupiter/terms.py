"""
Agreement term date calculation.
"""

import logging
from datetime import date, timedelta
from typing import Optional

from .calculations import add_duration_end, earliest_date
from .models import TERM_TYPE_CONSTRUCTION, AgreementTerm, DocStage, JupiterDoc, OperationalDetails

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)


def _term_start(
    term: AgreementTerm,
    previous: Optional[AgreementTerm],
    effective_date: Optional[date],
    ops: OperationalDetails,
) -> Optional[date]:
    """Start date: operational override, else day after previous term, else effective date"""
    if term.is_operational_type and not term.extension:
        override = ops.commencement_for(term.term_type)
        if override is not None:
            return override

    if previous is None:
        return effective_date
    if previous.end_date is None:
        return None
    return previous.end_date + ONE_DAY


def _apply_operational_truncation(term: AgreementTerm, ops: OperationalDetails) -> None:
    if term.term_type == TERM_TYPE_CONSTRUCTION:
        operations = ops.operations_commencement_date
        if operations is not None and operations < term.end_date:
            term.end_date = operations - ONE_DAY
        return

    if term.is_operational_type:
        return

    commencement = earliest_date(ops.construction_commencement_date, ops.operations_commencement_date)
    if commencement is None:
        return

    if commencement <= term.start_date:
        term.cancelled_by_ops = True
    elif commencement <= term.end_date:
        term.end_date = commencement - ONE_DAY


def _apply_cumulative_escalation(doc: JupiterDoc) -> None:
    for term in doc.agreement_terms:
        increase = 0.0
        factor = 1.0
        for other in doc.agreement_terms:
            if other.ordinal > term.ordinal or other.payment_model != term.payment_model:
                continue
            increase += other.term_increase_amount or 0.0
            factor *= 1 + (other.term_escalation_rate or 0.0) / 100
        term.cumulative_increase_amount = increase
        term.cumulative_escalation_rate = factor - 1


def calc_term_dates(doc: JupiterDoc) -> JupiterDoc:
    """
    Compute start/end dates for every agreement term.

    Terms are processed in ascending ordinal order. Construction and
    Operations terms start on their commencement date when one is recorded;
    other terms start the day after the previous term ends (the first one on
    the effective date). End dates are capped by a recorded termination date
    and cut short (or the term cancelled) by operational commencement.

    Args:
        doc: Document snapshot

    Returns:
        New snapshot at the DATED stage. If there is neither an effective
        date nor an operational commencement date, term dates are left as they are.
    """
    dated = doc.evolve(DocStage.DATED)
    ops = dated.operational_details or OperationalDetails()

    if dated.effective_date is None and earliest_date(
        ops.construction_commencement_date, ops.operations_commencement_date
    ) is None:
        logger.debug("%s: no effective or commencement date; skipping term dates", dated.id)
        return dated

    dated.agreement_terms.sort(key=lambda t: t.ordinal)
    termination_date = dated.termination_date

    previous = None
    for term in dated.agreement_terms:
        term.cancelled_by_ops = False
        term.start_date = _term_start(term, previous, dated.effective_date, ops)

        if term.start_date is None:
            term.end_date = None
            logger.debug("%s: term %s has no derivable start date", dated.id, term.term_ordinal)
        else:
            term.end_date = add_duration_end(term.start_date, term.term_length_years)
            if termination_date is not None and termination_date < term.end_date:
                term.end_date = termination_date
            _apply_operational_truncation(term, ops)

        previous = term

    _apply_cumulative_escalation(dated)
    dated.final_term_end_date = dated.agreement_terms[-1].end_date if dated.agreement_terms else None
    return dated
