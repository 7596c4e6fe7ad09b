"""
Tests for the payment schedule engine.
"""

from datetime import date, timedelta

import pytest

from jupiter.models import (
    AgreementTerm,
    DatePaymentModel,
    DocStage,
    Grantor,
    JupiterDoc,
    PropertyDescription,
    TermPaymentModel,
    Termination,
)
from jupiter.payments import (
    PURCHASE_PRICE_SOURCE,
    PricingMethod,
    calc_date_payments,
    calc_payments,
    calc_periodic_payments_for_term,
    first_payment_date,
    grantor_shares,
    nickname_grantor,
    periodic_base_payment,
    pricing_amount,
)
from jupiter.terms import calc_term_dates


def _lease(model=None, terms=None, grantors=None, **kwargs):
    kwargs.setdefault("effective_date", date(2024, 1, 1))
    return JupiterDoc(
        id="lease-1",
        grantor=grantors if grantors is not None else [Grantor(name="John Smith and Jane Smith")],
        agreement_terms=terms if terms is not None else [
            AgreementTerm(term_ordinal=1, term_type="Development", term_length_years=2, payment_model="Rent")
        ],
        term_payment_models=[model] if model else [],
        **kwargs,
    )


def _rent(**kwargs):
    kwargs.setdefault("model_type", "Rent")
    kwargs.setdefault("payment_frequency", "Annually")
    kwargs.setdefault("minimum_payment", 1000)
    return TermPaymentModel(**kwargs)


def _schedule(doc):
    return calc_payments(calc_term_dates(doc)).term_payments


class TestNickname:

    @pytest.mark.parametrize("name,expected", [
        ("John Smith and Jane Smith", "John Smith"),
        ("Acme LLC, a Delaware company", "Acme LLC"),
        ("JOHN DOE AND JANE DOE", "JOHN DOE"),
        ("Solo Owner", "Solo Owner"),
        ("", ""),
        (None, ""),
    ])
    def test_nickname(self, name, expected):
        assert nickname_grantor(name) == expected


class TestPricing:

    def test_base_payment_is_largest_method(self):
        model = TermPaymentModel(
            minimum_payment=1000, payment_per_mw=50, mw=10, flat_payment_amount=200, payment_per_acre=10,
        )
        assert pricing_amount(PricingMethod.PER_MW, model) == 500
        assert pricing_amount(PricingMethod.PER_ACRE, model, default_acres=150) == 1500
        assert periodic_base_payment(model, default_acres=150) == 1500

    def test_model_acres_override_document_acres(self):
        model = TermPaymentModel(payment_per_acre=10, agreement_acres=20)
        assert periodic_base_payment(model, default_acres=150) == 200

    def test_per_mva(self):
        model = TermPaymentModel(inverter_count=2, inverter_rating_mvas=3, payment_per_mva=100)
        assert pricing_amount(PricingMethod.PER_MVA, model) == 600

    def test_missing_model(self):
        assert periodic_base_payment(None) == 0.0


class TestGrantorSplit:

    def test_equal_shares(self):
        shares = grantor_shares([Grantor(name="A"), Grantor(name="B"), Grantor(name="C")])
        assert [s for _, s in shares] == pytest.approx([1 / 3] * 3)

    def test_split_conserves_amount(self):
        grantors = [Grantor(name="A"), Grantor(name="B"), Grantor(name="C")]
        payments = _schedule(_lease(_rent(), grantors=grantors))
        first_period = [p for p in payments if p.payment_index == 0]
        assert len(first_period) == 3
        assert all(p.payment_amount == 333.3333 for p in first_period)
        assert abs(sum(p.payment_amount for p in first_period) - 1000) <= 1.5e-4

    def test_explicit_splits(self):
        grantors = [Grantor(name="A", split=60), Grantor(name="B", split=40)]
        payments = _schedule(_lease(_rent(), grantors=grantors))
        assert [p.payment_amount for p in payments if p.payment_index == 0] == [600, 400]

    def test_payee_override(self):
        payments = _schedule(_lease(_rent(payee="Trust Co")))
        assert {p.payee for p in payments} == {"Trust Co"}


class TestPeriodicPayments:

    def test_annual_schedule(self):
        payments = _schedule(_lease(_rent()))

        assert [p.payment_date for p in payments] == [date(2024, 1, 1), date(2025, 1, 1)]
        assert [p.payment_amount for p in payments] == [1000, 1000]
        assert payments[0].payee == "John Smith"
        assert payments[0].source == "Rent"
        assert payments[1].payment_period_end == date(2025, 12, 31)
        assert payments[0].term_ordinal == 1

    def test_compounding_escalation(self):
        terms = [AgreementTerm(term_ordinal=1, term_length_years=3, payment_model="Rent")]
        payments = _schedule(_lease(_rent(escalation_rate=10), terms=terms))
        assert [p.payment_amount for p in payments] == pytest.approx([1000, 1100, 1210])

    def test_linear_escalation(self):
        terms = [AgreementTerm(term_ordinal=1, term_length_years=3, payment_model="Rent")]
        payments = _schedule(_lease(_rent(escalation_rate=10, escalation_method="Linear"), terms=terms))
        assert [p.payment_amount for p in payments] == pytest.approx([1000, 1100, 1200])

    def test_monthly_payments_escalate_annually(self):
        model = _rent(payment_frequency="Monthly", escalation_rate=10, escalation_frequency="Annually")
        payments = _schedule(_lease(model))

        assert len(payments) == 24
        assert payments[11].payment_amount == pytest.approx(1000)
        assert payments[12].payment_amount == pytest.approx(1100)

    def test_monthly_periods_keep_month_end_anchor(self):
        terms = [AgreementTerm(term_ordinal=1, term_length_years=1, payment_model="Rent")]
        model = _rent(payment_frequency="Monthly", minimum_payment=100)
        payments = _schedule(_lease(model, terms=terms, effective_date=date(2024, 1, 31)))

        assert len(payments) == 12
        assert [p.payment_date for p in payments[:4]] == [
            date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 31), date(2024, 4, 30),
        ]
        assert payments[0].payment_period_end == date(2024, 2, 28)
        assert payments[-1].payment_date == date(2024, 12, 31)
        assert payments[-1].payment_period_end == date(2025, 1, 30)
        assert all(p.prorata_factor == 1.0 for p in payments)
        assert all(p.payment_amount == 100 for p in payments)

    def test_quarterly_periods_keep_month_end_anchor(self):
        terms = [AgreementTerm(term_ordinal=1, term_length_years=1, payment_model="Rent")]
        model = _rent(payment_frequency="Quarterly", minimum_payment=100)
        payments = _schedule(_lease(model, terms=terms, effective_date=date(2024, 1, 31)))

        assert [(p.payment_period_start, p.payment_period_end) for p in payments] == [
            (date(2024, 1, 31), date(2024, 4, 29)),
            (date(2024, 4, 30), date(2024, 7, 30)),
            (date(2024, 7, 31), date(2024, 10, 30)),
            (date(2024, 10, 31), date(2025, 1, 30)),
        ]
        assert all(p.prorata_factor == 1.0 for p in payments)

    def test_once_per_term(self):
        model = _rent(payment_frequency="Once per Term")
        payments = _schedule(_lease(model))

        assert len(payments) == 1
        assert payments[0].payment_period_end == date(2025, 12, 31)
        assert payments[0].prorata_factor == 1.0

    def test_cumulative_term_amounts(self):
        terms = [
            AgreementTerm(term_ordinal=1, term_length_years=1, payment_model="Rent"),
            AgreementTerm(term_ordinal=2, term_length_years=1, payment_model="Rent",
                          term_increase_amount=100, term_escalation_rate=10),
        ]
        payments = _schedule(_lease(_rent(), terms=terms))
        assert [p.payment_amount for p in payments] == pytest.approx([1000, 1210])

    def test_unsupported_frequency_generates_nothing(self):
        doc = calc_term_dates(_lease(_rent(payment_frequency="Biweekly")))
        assert calc_periodic_payments_for_term(doc, doc.agreement_terms[0]) == []
        assert calc_payments(doc).term_payments == []

    def test_cancelled_term_generates_nothing(self):
        doc = calc_term_dates(_lease(_rent()))
        doc.agreement_terms[0].cancelled_by_ops = True
        assert calc_periodic_payments_for_term(doc, doc.agreement_terms[0]) == []

    def test_no_grantors_generates_nothing(self):
        assert _schedule(_lease(_rent(), grantors=[])) == []

    def test_acreage_pricing_uses_property_descriptions(self):
        model = _rent(minimum_payment=None, payment_per_acre=10)
        doc = _lease(model, property_description=[PropertyDescription(acres=60), PropertyDescription(acres=40)])
        assert _schedule(doc)[0].payment_amount == 1000


class TestFirstPaymentPolicies:

    def test_next_jan_first_with_proration(self):
        terms = [AgreementTerm(term_ordinal=1, term_length_years=1, payment_model="Rent")]
        model = _rent(first_payment_start="Start Jan 1 after Commencement")
        payments = _schedule(_lease(model, terms=terms, effective_date=date(2024, 1, 15)))

        assert len(payments) == 1
        assert payments[0].payment_date == date(2025, 1, 1)
        assert payments[0].payment_period_end == date(2025, 1, 14)
        assert payments[0].prorata_factor == pytest.approx(14 / 365)
        assert payments[0].payment_amount == pytest.approx(1000 * 14 / 365, abs=1e-4)

    def test_proration_disabled(self):
        terms = [AgreementTerm(term_ordinal=1, term_length_years=1, payment_model="Rent")]
        model = _rent(first_payment_start="Start Jan 1 after Commencement", prorate_partial_periods=False)
        payments = _schedule(_lease(model, terms=terms, effective_date=date(2024, 1, 15)))
        assert payments[0].payment_amount == 1000

    def test_first_of_month(self):
        terms = [AgreementTerm(term_ordinal=1, term_length_years=1, payment_model="Rent")]
        model = _rent(payment_frequency="Monthly", first_payment_start="Start 1st of Month after Commencement")
        payments = _schedule(_lease(model, terms=terms, effective_date=date(2024, 1, 15)))

        assert payments[0].payment_date == date(2024, 2, 1)
        assert len(payments) == 12
        assert payments[-1].payment_date == date(2025, 1, 1)
        assert payments[-1].prorata_factor == pytest.approx(14 / 31)

    def test_fixed_date_before_term_moves_to_start(self):
        term = AgreementTerm(term_ordinal=1, start_date=date(2024, 3, 1))
        model = _rent(first_payment_start="Fixed Date", first_payment_date=date(2024, 1, 1))
        assert first_payment_date(term, model) == date(2024, 3, 1)

    def test_fixed_date_after_start(self):
        term = AgreementTerm(term_ordinal=1, start_date=date(2024, 3, 1))
        model = _rent(first_payment_start="Fixed Date", first_payment_date=date(2024, 4, 15))
        assert first_payment_date(term, model) == date(2024, 4, 15)


class TestLatePaymentDates:

    def test_first_and_subsequent_lag(self):
        payments = _schedule(_lease(_rent(first_payment_lag_days=30, subsequent_payment_lag_days=10)))
        assert payments[0].late_payment_date == payments[0].payment_date + timedelta(days=30)
        assert payments[1].late_payment_date == payments[1].payment_date + timedelta(days=10)

    def test_lag_suppressed_on_extensions(self):
        terms = [AgreementTerm(term_ordinal=1, term_length_years=2, payment_model="Rent", extension=True)]
        model = _rent(first_payment_lag_days=30, subsequent_payment_lag_days=10, lag_on_extensions=False)
        payments = _schedule(_lease(model, terms=terms))
        assert all(p.late_payment_date == p.payment_date for p in payments)

    def test_lag_kept_on_extensions_by_default(self):
        terms = [AgreementTerm(term_ordinal=1, term_length_years=2, payment_model="Rent", extension=True)]
        payments = _schedule(_lease(_rent(first_payment_lag_days=30), terms=terms))
        assert payments[0].late_payment_date == date(2024, 1, 31)


class TestDatePayments:

    def test_one_time_payment_split(self):
        doc = _lease(grantors=[Grantor(name="Ann"), Grantor(name="Bob")])
        model = DatePaymentModel(payment_name="Signing Bonus", payment_amount=5000, payment_date=date(2024, 3, 1))

        payments = calc_date_payments(doc, model)

        assert [(p.payee, p.payment_amount) for p in payments] == [("Ann", 2500), ("Bob", 2500)]
        assert payments[0].source == "Signing Bonus"

    def test_one_time_payment_after_termination(self):
        doc = _lease(termination=Termination(termination_date=date(2024, 2, 1)))
        model = DatePaymentModel(payment_amount=5000, payment_date=date(2024, 3, 1))
        assert calc_date_payments(doc, model) == []

    def test_recurring_until_model_end(self):
        model = DatePaymentModel(payment_amount=100, begin_date=date(2024, 1, 1), end_date=date(2024, 7, 1),
                                 payment_frequency="Monthly")
        payments = calc_date_payments(_lease(), model)
        assert len(payments) == 6
        assert payments[-1].payment_date == date(2024, 6, 1)

    def test_recurring_from_month_end(self):
        model = DatePaymentModel(payment_amount=100, begin_date=date(2024, 1, 31), end_date=date(2025, 1, 31),
                                 payment_frequency="Monthly")
        payments = calc_date_payments(_lease(), model)

        assert len(payments) == 12
        assert [p.payment_date for p in payments[:3]] == [date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 31)]
        assert payments[-1].payment_date == date(2024, 12, 31)
        assert payments[-1].payment_period_end == date(2025, 1, 30)

    def test_recurring_falls_back_to_final_term_end(self):
        model = DatePaymentModel(payment_amount=100, begin_date=date(2024, 1, 1), payment_frequency="Quarterly")
        doc = _lease(final_term_end_date=date(2024, 12, 31))
        payments = calc_date_payments(doc, model)
        assert [p.payment_date.month for p in payments] == [1, 4, 7, 10]

    def test_recurring_without_any_end(self):
        model = DatePaymentModel(payment_amount=100, begin_date=date(2024, 1, 1), payment_frequency="Monthly")
        assert calc_date_payments(_lease(), model) == []

    def test_recurring_unsupported_frequency(self):
        model = DatePaymentModel(payment_amount=100, begin_date=date(2024, 1, 1), end_date=date(2025, 1, 1),
                                 payment_frequency="Fortnightly")
        assert calc_date_payments(_lease(), model) == []


class TestPurchasePrice:

    def test_remainder_after_credited_payments(self):
        doc = _lease(
            full_purchase_price=100000,
            closing_date=date(2025, 6, 1),
            date_payment_models=[DatePaymentModel(payment_amount=10000, payment_date=date(2024, 3, 1),
                                                  applicable_to_purchase=True)],
            terms=[],
        )
        priced = calc_payments(doc)

        settlement = [p for p in priced.date_payments if p.source == PURCHASE_PRICE_SOURCE]
        assert len(settlement) == 1
        assert settlement[0].payment_amount == 90000
        assert settlement[0].payment_date == date(2025, 6, 1)

    def test_credits_exceeding_price_clamp_to_zero(self):
        doc = _lease(
            full_purchase_price=1000,
            closing_date=date(2025, 6, 1),
            date_payment_models=[DatePaymentModel(payment_amount=5000, payment_date=date(2024, 3, 1),
                                                  applicable_to_purchase=True)],
            terms=[],
        )
        settlement = [p for p in calc_payments(doc).date_payments if p.source == PURCHASE_PRICE_SOURCE]
        assert settlement[0].payment_amount == 0

    def test_no_closing_date(self):
        doc = _lease(full_purchase_price=1000, terms=[])
        assert calc_payments(doc).date_payments == []


class TestCalcPayments:

    def test_recompute_is_idempotent(self):
        doc = calc_term_dates(_lease(
            _rent(escalation_rate=3),
            date_payment_models=[DatePaymentModel(payment_amount=250, payment_date=date(2024, 5, 1))],
        ))
        once = calc_payments(doc)
        twice = calc_payments(once)

        assert twice.all_payments == once.all_payments
        assert twice.stage is DocStage.PRICED

    def test_input_snapshot_untouched(self):
        doc = calc_term_dates(_lease(_rent()))
        calc_payments(doc)
        assert doc.term_payments == []
