"""
Amendment and deed overlay onto base documents.
"""

import copy
import logging
from typing import Iterable, List

from .models import TAG_PURCHASED, AmendmentRecord, DocStage, JupiterDoc
from .payments import calc_payments
from .terms import calc_term_dates

logger = logging.getLogger(__name__)

# replaced when the amendment has a value
SCALAR_FIELDS = ("effective_date", "outside_date", "closing_date", "jupiter_entity", "grantee")

# replaced when the amendment's collection is non-empty
COLLECTION_FIELDS = ("property_description", "grantor", "agreement_terms", "term_payment_models")

# appended, never replaced
ADDITIVE_FIELDS = ("date_payment_models",)


def _same_group(doc: JupiterDoc, other: JupiterDoc) -> bool:
    return bool(doc.agreement_group) and other.agreement_group == doc.agreement_group and other.id != doc.id


def find_amendments(doc: JupiterDoc, documents: Iterable[JupiterDoc]) -> List[JupiterDoc]:
    """Non-deed amendments of a base document, oldest first"""
    amendments = [
        d for d in documents
        if _same_group(doc, d) and d.is_amendment and not d.is_deed
    ]
    return sorted(amendments, key=lambda d: (d.amendment_date, d.id))


def apply_amendment(base: JupiterDoc, amendment: JupiterDoc) -> None:
    """Overlay one amendment onto a working copy of the base document"""
    for name in SCALAR_FIELDS:
        value = getattr(amendment, name)
        if value is not None:
            setattr(base, name, value)

    for name in COLLECTION_FIELDS:
        values = getattr(amendment, name)
        if values:
            setattr(base, name, copy.deepcopy(values))

    for name in ADDITIVE_FIELDS:
        getattr(base, name).extend(copy.deepcopy(getattr(amendment, name)))


def merge_amendments(doc: JupiterDoc, documents: Iterable[JupiterDoc]) -> JupiterDoc:
    """
    Merge every amendment of a base document in chronological order.

    Later amendments win for scalar fields and non-empty collections; date
    payment models accumulate. Term dates and payments are then recomputed
    from scratch on the merged state.

    Args:
        doc: Base document (amendments and already merged documents are
            returned unchanged)
        documents: The full document set

    Returns:
        New snapshot at the AMENDED stage
    """
    if doc.is_amendment:
        return doc

    # merging twice would append the additive fields again
    if doc.stage is DocStage.AMENDED or doc.amendments:
        logger.debug("%s: amendments already merged", doc.id)
        return doc

    amendments = find_amendments(doc, documents)
    merged = doc.evolve(DocStage.AMENDED)
    merged.amendments = [
        AmendmentRecord(ordinal=i, id=a.id, name=a.name, amendment_date=a.amendment_date)
        for i, a in enumerate(amendments, start=1)
    ]

    if not amendments:
        return merged

    for amendment in amendments:
        apply_amendment(merged, amendment)

    logger.info("%s: merged %d amendment(s)", doc.id, len(amendments))
    recomputed = calc_payments(calc_term_dates(merged))
    recomputed.stage = DocStage.AMENDED
    return recomputed


def merge_deeds(doc: JupiterDoc, documents: Iterable[JupiterDoc]) -> JupiterDoc:
    """
    Fold the deeds of an agreement group into its root document.

    The earliest original deed is canonical; later deed amendments overwrite
    its effective date and property description only. The root document
    records the result and gains the "Purchased" tag.

    Args:
        doc: Root document (deeds and amendments are returned unchanged)
        documents: The full document set

    Returns:
        New snapshot with deed fields populated, or doc itself when there are no deeds
    """
    if doc.is_deed or doc.is_amendment:
        return doc

    deeds = [d for d in documents if _same_group(doc, d) and d.is_deed]
    if not deeds:
        return doc

    originals = sorted(
        (d for d in deeds if not d.is_amendment),
        key=lambda d: (d.effective_date is None, d.effective_date, d.id),
    )
    deed_amendments = sorted((d for d in deeds if d.is_amendment), key=lambda d: (d.amendment_date, d.id))

    if originals:
        canonical = copy.deepcopy(originals[0])
    else:
        canonical = copy.deepcopy(deed_amendments.pop(0))

    for amendment in deed_amendments:
        if amendment.effective_date is not None:
            canonical.effective_date = amendment.effective_date
        if amendment.property_description:
            canonical.property_description = copy.deepcopy(amendment.property_description)

    merged = doc.evolve(doc.stage)
    merged.deed_count = len(deeds)
    merged.deed_effective_date = canonical.effective_date
    merged.deed_property_description = canonical.property_description
    merged.purchased_acres = canonical.agreement_acres
    merged.tags.add(TAG_PURCHASED)
    return merged
