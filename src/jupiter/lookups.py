"""
Reference data lookups: fact types, document types and tags.

Resolution never raises; a name or id that cannot be resolved returns None
and the caller carries on with defaults.
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from rapidfuzz import fuzz

from .loader import Dataset, FactType, FieldType, NamedRef

logger = logging.getLogger(__name__)

# Fuzzy fallback only accepts near-identical names with a clear winner
FUZZY_THRESHOLD = 95
FUZZY_GAP = 5


def _match_name(name: str, candidates: Dict[str, str]) -> Optional[str]:
    """
    Match a human-readable name against a {name: id} mapping.

    Exact match first, then case-insensitive, then a high-confidence
    rapidfuzz match.

    Args:
        name: Name to resolve
        candidates: Mapping of canonical name to id

    Returns:
        The matching id, or None
    """
    if not name:
        return None

    name = name.strip()

    # Direct match first (fastest path)
    if name in candidates:
        return candidates[name]

    name_lower = name.lower()
    for canonical_name, item_id in candidates.items():
        if canonical_name.lower() == name_lower:
            return item_id

    scores: List[Tuple[str, float]] = [
        (canonical_name, fuzz.ratio(name_lower, canonical_name.lower()))
        for canonical_name in candidates.keys()
    ]
    if not scores:
        return None

    scores.sort(key=lambda x: x[1], reverse=True)
    top_match, top_score = scores[0]
    second_score = scores[1][1] if len(scores) > 1 else 0

    if top_score >= FUZZY_THRESHOLD and (top_score - second_score) >= FUZZY_GAP:
        logger.warning("Resolved '%s' to '%s' by fuzzy match (score %.1f)", name, top_match, top_score)
        return candidates[top_match]

    return None


class Lookups:
    """Read-only index over the reference collections of a run"""

    def __init__(
        self,
        fact_types: Iterable[FactType],
        doc_types: Iterable[NamedRef] = (),
        tags: Iterable[NamedRef] = (),
    ):
        self.fact_types: Dict[str, FactType] = {ft.id: ft for ft in fact_types}
        self.doc_types: Dict[str, str] = {dt.id: dt.name for dt in doc_types}
        self.tags: Dict[str, str] = {t.id: t.name for t in tags}

        # archived fact types still decode existing facts but are not resolvable by name
        self._fact_type_ids = {ft.name: ft.id for ft in self.fact_types.values() if not ft.archived}
        self._fields: Dict[Tuple[str, str], FieldType] = {
            (ft.id, fld.id): fld for ft in self.fact_types.values() for fld in ft.fields
        }

    @classmethod
    def from_dataset(cls, dataset: Dataset) -> "Lookups":
        return cls(dataset.fact_types, dataset.doc_types, dataset.tags)

    def fact_type_id(self, name: str) -> Optional[str]:
        """Resolve a fact type name to its id"""
        return _match_name(name, self._fact_type_ids)

    def field_type_id(self, fact_type_id: Optional[str], name: str) -> Optional[str]:
        """Resolve a field name on a fact type to the field type id"""
        fact_type = self.fact_types.get(fact_type_id) if fact_type_id else None
        if fact_type is None:
            return None
        return _match_name(name, {fld.name: fld.id for fld in fact_type.fields})

    def field_type(self, fact_type_id: str, field_type_id: str) -> Optional[FieldType]:
        """Return the field definition for a fact type / field type id pair"""
        return self._fields.get((fact_type_id, field_type_id))

    def tag_name(self, tag_id: str) -> Optional[str]:
        return self.tags.get(tag_id)

    def doc_type_name(self, doc_type_id: Optional[str]) -> Optional[str]:
        return self.doc_types.get(doc_type_id) if doc_type_id else None
