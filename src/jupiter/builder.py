"""
Builds normalized JupiterDoc values from raw documents.
"""

import logging
from typing import Any, Dict, Optional

from .fact_map import FactAccessors, FactKey
from .loader import RawDocument
from .lookups import Lookups
from .models import (
    AgreementTerm,
    DatePaymentModel,
    DocStage,
    Grantor,
    JupiterDoc,
    OperationalDetails,
    PropertyDescription,
    TermPaymentModel,
    Termination,
    from_record,
)

logger = logging.getLogger(__name__)


def _optional_record(cls, record: Optional[Dict[str, Any]]):
    return from_record(cls, record) if record else None


def build_document(raw: RawDocument, lookups: Lookups, accessors: FactAccessors) -> JupiterDoc:
    """
    Build a normalized document from raw facts and reference data.

    Args:
        raw: Raw document from the collaborator
        lookups: Reference lookups for the run
        accessors: Resolved fact accessor table

    Returns:
        JupiterDoc at the BUILT stage
    """
    tags = {name for name in (lookups.tag_name(t) for t in raw.tag_ids) if name}

    price = accessors.value(raw, FactKey.FULL_PURCHASE_PRICE)

    doc = JupiterDoc(
        id=raw.id,
        name=raw.name,
        document_type=lookups.doc_type_name(raw.document_type_id),
        agreement_group=accessors.value(raw, FactKey.AGREEMENT_GROUP),
        tags=tags,
        effective_date=accessors.value(raw, FactKey.EFFECTIVE_DATE),
        amendment_date=accessors.value(raw, FactKey.AMENDMENT_DATE),
        outside_date=accessors.value(raw, FactKey.OUTSIDE_DATE),
        closing_date=accessors.value(raw, FactKey.CLOSING_DATE),
        full_purchase_price=float(price) if price is not None else None,
        jupiter_entity=accessors.value(raw, FactKey.JUPITER_ENTITY),
        grantee=accessors.value(raw, FactKey.GRANTEE),
        grantor=[from_record(Grantor, r) for r in accessors.records(raw, FactKey.GRANTOR)],
        property_description=[
            from_record(PropertyDescription, r) for r in accessors.records(raw, FactKey.PROPERTY_DESCRIPTION)
        ],
        agreement_terms=sorted(
            (from_record(AgreementTerm, r) for r in accessors.records(raw, FactKey.AGREEMENT_TERM)),
            key=lambda t: t.ordinal,
        ),
        term_payment_models=[
            from_record(TermPaymentModel, r) for r in accessors.records(raw, FactKey.TERM_PAYMENT_MODEL)
        ],
        date_payment_models=[
            from_record(DatePaymentModel, r) for r in accessors.records(raw, FactKey.DATE_PAYMENT_MODEL)
        ],
        operational_details=_optional_record(OperationalDetails, accessors.record(raw, FactKey.OPERATIONAL_DETAILS)),
        termination=_optional_record(Termination, accessors.record(raw, FactKey.TERMINATION)),
        stage=DocStage.BUILT,
    )

    logger.debug(
        "Built %s (%s): %d terms, %d term models, %d date models",
        doc.id, doc.document_type, len(doc.agreement_terms),
        len(doc.term_payment_models), len(doc.date_payment_models),
    )
    return doc
