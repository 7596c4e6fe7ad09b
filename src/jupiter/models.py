"""
Data models for Jupiter documents and their computed schedules.
"""

import copy
from dataclasses import asdict, dataclass, field, fields
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from .exceptions import UnsupportedFrequencyError


def _normalize(value: str) -> str:
    return "".join(ch for ch in value.lower() if ch.isalnum())


class PaymentFrequency(Enum):
    """How often a payment (or escalation) recurs"""
    ANNUALLY = "Annually"
    SEMIANNUALLY = "Semiannually"
    QUARTERLY = "Quarterly"
    MONTHLY = "Monthly"
    ONCE_PER_TERM = "Once per Term"

    @property
    def months(self) -> Optional[int]:
        return _FREQUENCY_MONTHS[self]

    @classmethod
    def parse(cls, value: Optional[str], default: Optional["PaymentFrequency"] = None) -> "PaymentFrequency":
        """
        Parse an upstream frequency label.

        Args:
            value: Label such as "Annually", "Semi-Annual" or "Once per term"
            default: Returned when value is empty

        Returns:
            PaymentFrequency

        Raises:
            UnsupportedFrequencyError: If the label is not recognized (or empty without a default)
        """
        if not value:
            if default is None:
                raise UnsupportedFrequencyError(value)
            return default
        frequency = _FREQUENCY_ALIASES.get(_normalize(value))
        if frequency is None:
            raise UnsupportedFrequencyError(value)
        return frequency


_FREQUENCY_MONTHS = {
    PaymentFrequency.ANNUALLY: 12,
    PaymentFrequency.SEMIANNUALLY: 6,
    PaymentFrequency.QUARTERLY: 3,
    PaymentFrequency.MONTHLY: 1,
    PaymentFrequency.ONCE_PER_TERM: None,
}

_FREQUENCY_ALIASES = {
    "annually": PaymentFrequency.ANNUALLY,
    "annual": PaymentFrequency.ANNUALLY,
    "yearly": PaymentFrequency.ANNUALLY,
    "semiannually": PaymentFrequency.SEMIANNUALLY,
    "semiannual": PaymentFrequency.SEMIANNUALLY,
    "quarterly": PaymentFrequency.QUARTERLY,
    "monthly": PaymentFrequency.MONTHLY,
    "onceperterm": PaymentFrequency.ONCE_PER_TERM,
    "once": PaymentFrequency.ONCE_PER_TERM,
}


class FirstPaymentPolicy(Enum):
    """When the first payment period of a term begins"""
    START_WITH_TERM = "Start with Term"
    NEXT_JAN_1 = "Start Jan 1 after Commencement"
    FIRST_OF_MONTH = "Start 1st of Month after Commencement"
    FIXED_DATE = "Fixed Date"

    @classmethod
    def parse(cls, value: Optional[str]) -> "FirstPaymentPolicy":
        """Parse a policy label; anything unrecognized starts with the term"""
        if value:
            key = _normalize(value)
            for policy in cls:
                if _normalize(policy.value) == key:
                    return policy
            if "jan" in key:
                return cls.NEXT_JAN_1
            if "month" in key:
                return cls.FIRST_OF_MONTH
            if "fixed" in key or "date" in key:
                return cls.FIXED_DATE
        return cls.START_WITH_TERM


class EscalationMethod(Enum):
    COMPOUNDING = "Compounding"
    LINEAR = "Linear"

    @classmethod
    def parse(cls, value: Optional[str]) -> "EscalationMethod":
        if value and _normalize(value) in ("linear", "simple", "additive"):
            return cls.LINEAR
        return cls.COMPOUNDING


class DocStage(Enum):
    """Last pipeline phase applied to a document snapshot"""
    BUILT = "built"
    DATED = "dated"
    PRICED = "priced"
    AMENDED = "amended"
    QC = "qc"


TERM_TYPE_CONSTRUCTION = "Construction"
TERM_TYPE_OPERATIONS = "Operations"
DOC_TYPE_DEED = "Deed"
TAG_PURCHASED = "Purchased"


def _as_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)


def _as_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(round(float(value)))


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "y")
    return bool(value)


def from_record(cls, record: Dict[str, Any], aliases: Optional[Dict[str, str]] = None):
    """
    Build a model dataclass from a cleaned fact record.

    Keys that are not attributes of the dataclass are ignored; None values
    leave the attribute at its default.

    Args:
        cls: Dataclass to build
        record: Record from extract_multi_fact_values / extract_fact_multi_fields
        aliases: Optional {record_key: attribute_name} renames

    Returns:
        Instance of cls
    """
    names = {f.name for f in fields(cls) if f.init}
    kwargs = {}
    for key, value in record.items():
        key = (aliases or {}).get(key, key)
        if key in names and value is not None:
            kwargs[key] = value
    return cls(**kwargs)


@dataclass
class Payment:
    """A single computed payment"""
    payment_index: int
    payment_date: date
    payment_amount: float
    payee: Optional[str] = None
    source: Optional[str] = None
    term_ordinal: Optional[int] = None
    payment_period_start: Optional[date] = None
    payment_period_end: Optional[date] = None
    late_payment_date: Optional[date] = None
    prorata_factor: float = 1.0
    applicable_to_purchase: bool = False
    refundable: bool = False


@dataclass
class Grantor:
    id: Optional[str] = None
    name: str = ""
    split: Optional[float] = None

    def __post_init__(self):
        self.split = _as_float(self.split)


@dataclass
class PropertyDescription:
    id: Optional[str] = None
    county: Optional[str] = None
    state: Optional[str] = None
    acres: Optional[float] = None
    legal_description: Optional[str] = None
    apn: Optional[str] = None

    def __post_init__(self):
        self.acres = _as_float(self.acres)


@dataclass
class OperationalDetails:
    construction_commencement_date: Optional[date] = None
    operations_commencement_date: Optional[date] = None

    def commencement_for(self, term_type: Optional[str]) -> Optional[date]:
        """Commencement date recorded for a term type, if any"""
        if term_type == TERM_TYPE_CONSTRUCTION:
            return self.construction_commencement_date
        if term_type == TERM_TYPE_OPERATIONS:
            return self.operations_commencement_date
        return None


@dataclass
class Termination:
    termination_date: Optional[date] = None
    termination_notice_date: Optional[date] = None
    termination_reason: Optional[str] = None


@dataclass
class AgreementTerm:
    """One segment of an agreement's duration"""
    id: Optional[str] = None
    term_ordinal: Optional[int] = None
    term_type: Optional[str] = None
    term_length_years: Optional[float] = None
    extension: bool = False
    payment_model: Optional[str] = None
    term_increase_amount: Optional[float] = None
    term_escalation_rate: Optional[float] = None

    # computed
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    cancelled_by_ops: bool = False
    cumulative_increase_amount: float = 0.0
    cumulative_escalation_rate: float = 0.0

    def __post_init__(self):
        self.term_ordinal = _as_int(self.term_ordinal)
        self.term_length_years = _as_float(self.term_length_years)
        self.extension = _as_bool(self.extension)
        self.term_increase_amount = _as_float(self.term_increase_amount)
        self.term_escalation_rate = _as_float(self.term_escalation_rate)

    @property
    def ordinal(self) -> int:
        """Ordinal used for ordering (missing ordinals sort first)"""
        return self.term_ordinal if self.term_ordinal is not None else 0

    @property
    def is_operational_type(self) -> bool:
        return self.term_type in (TERM_TYPE_CONSTRUCTION, TERM_TYPE_OPERATIONS)


@dataclass
class TermPaymentModel:
    """Pricing and schedule rules for term-based periodic payments"""
    id: Optional[str] = None
    model_type: Optional[str] = None
    payment_frequency: Optional[str] = None
    escalation_rate: Optional[float] = None
    escalation_frequency: Optional[str] = None
    escalation_method: Optional[str] = None
    first_payment_start: Optional[str] = None
    first_payment_date: Optional[date] = None
    first_payment_lag_days: Optional[int] = None
    subsequent_payment_lag_days: Optional[int] = None
    lag_on_extensions: bool = True
    prorate_partial_periods: bool = True

    # pricing inputs
    minimum_payment: Optional[float] = None
    payment_per_mw: Optional[float] = None
    mw: Optional[float] = None
    inverter_count: Optional[float] = None
    inverter_rating_mvas: Optional[float] = None
    payment_per_mva: Optional[float] = None
    flat_payment_amount: Optional[float] = None
    payment_per_acre: Optional[float] = None
    agreement_acres: Optional[float] = None

    payee: Optional[str] = None
    applicable_to_purchase: bool = False
    refundable: bool = False

    payments: List[Payment] = field(default_factory=list)

    def __post_init__(self):
        for name in ("escalation_rate", "minimum_payment", "payment_per_mw", "mw", "inverter_count",
                     "inverter_rating_mvas", "payment_per_mva", "flat_payment_amount",
                     "payment_per_acre", "agreement_acres"):
            setattr(self, name, _as_float(getattr(self, name)))
        self.first_payment_lag_days = _as_int(self.first_payment_lag_days)
        self.subsequent_payment_lag_days = _as_int(self.subsequent_payment_lag_days)
        self.lag_on_extensions = _as_bool(self.lag_on_extensions)
        self.prorate_partial_periods = _as_bool(self.prorate_partial_periods)
        self.applicable_to_purchase = _as_bool(self.applicable_to_purchase)
        self.refundable = _as_bool(self.refundable)


@dataclass
class DatePaymentModel:
    """A one-time or date-bounded recurring obligation"""
    id: Optional[str] = None
    payment_name: Optional[str] = None
    payment_amount: Optional[float] = None
    payment_date: Optional[date] = None
    begin_date: Optional[date] = None
    end_date: Optional[date] = None
    payment_frequency: Optional[str] = None
    escalation_rate: Optional[float] = None
    escalation_frequency: Optional[str] = None
    escalation_method: Optional[str] = None
    first_payment_lag_days: Optional[int] = None
    subsequent_payment_lag_days: Optional[int] = None
    payee: Optional[str] = None
    applicable_to_purchase: bool = False
    refundable: bool = False

    payments: List[Payment] = field(default_factory=list)

    def __post_init__(self):
        self.payment_amount = _as_float(self.payment_amount)
        self.escalation_rate = _as_float(self.escalation_rate)
        self.first_payment_lag_days = _as_int(self.first_payment_lag_days)
        self.subsequent_payment_lag_days = _as_int(self.subsequent_payment_lag_days)
        self.applicable_to_purchase = _as_bool(self.applicable_to_purchase)
        self.refundable = _as_bool(self.refundable)

    @property
    def is_recurring(self) -> bool:
        return self.begin_date is not None


@dataclass
class AmendmentRecord:
    ordinal: int
    id: str
    name: str
    amendment_date: date


def _jsonable(value: Any) -> Any:
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, set):
        return sorted(value)
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


@dataclass
class JupiterDoc:
    """
    Normalized lease/real-estate agreement.

    Each pipeline phase returns a new snapshot (see ``evolve``); phases never
    mutate the document they are given.
    """
    id: str
    name: str = ""
    document_type: Optional[str] = None
    agreement_group: Optional[str] = None
    tags: Set[str] = field(default_factory=set)

    effective_date: Optional[date] = None
    amendment_date: Optional[date] = None
    outside_date: Optional[date] = None
    closing_date: Optional[date] = None
    full_purchase_price: Optional[float] = None
    jupiter_entity: Optional[str] = None
    grantee: Optional[str] = None

    grantor: List[Grantor] = field(default_factory=list)
    property_description: List[PropertyDescription] = field(default_factory=list)
    agreement_terms: List[AgreementTerm] = field(default_factory=list)
    term_payment_models: List[TermPaymentModel] = field(default_factory=list)
    date_payment_models: List[DatePaymentModel] = field(default_factory=list)
    operational_details: Optional[OperationalDetails] = None
    termination: Optional[Termination] = None

    # derived
    final_term_end_date: Optional[date] = None
    date_payments: List[Payment] = field(default_factory=list)
    qc_flags: List[str] = field(default_factory=list)
    amendments: List[AmendmentRecord] = field(default_factory=list)
    deed_count: int = 0
    deed_effective_date: Optional[date] = None
    deed_property_description: List[PropertyDescription] = field(default_factory=list)
    purchased_acres: Optional[float] = None

    stage: DocStage = DocStage.BUILT

    def evolve(self, stage: DocStage) -> "JupiterDoc":
        """Deep copy of this document marked with a new stage"""
        snapshot = copy.deepcopy(self)
        snapshot.stage = stage
        return snapshot

    @property
    def is_amendment(self) -> bool:
        return self.amendment_date is not None

    @property
    def is_deed(self) -> bool:
        return (self.document_type or "").lower() == DOC_TYPE_DEED.lower()

    @property
    def termination_date(self) -> Optional[date]:
        return self.termination.termination_date if self.termination else None

    @property
    def is_terminated(self) -> bool:
        return self.termination_date is not None

    @property
    def construction_commencement_date(self) -> Optional[date]:
        return self.operational_details.construction_commencement_date if self.operational_details else None

    @property
    def operations_commencement_date(self) -> Optional[date]:
        return self.operational_details.operations_commencement_date if self.operational_details else None

    @property
    def agreement_acres(self) -> float:
        """Total acreage across property descriptions"""
        return sum(p.acres or 0.0 for p in self.property_description)

    @property
    def term_payments(self) -> List[Payment]:
        return [p for model in self.term_payment_models for p in model.payments]

    @property
    def all_payments(self) -> List[Payment]:
        return sorted(self.term_payments + self.date_payments, key=lambda p: p.payment_date)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready representation (dates as ISO strings)"""
        return _jsonable(asdict(self))
