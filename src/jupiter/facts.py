"""
Readers over a document's raw fact collection.
"""

import logging
import re
from datetime import date
from typing import Any, Dict, List, Optional

from dateutil import parser as dateparser

from .loader import RawDocument, RawField
from .lookups import Lookups

logger = logging.getLogger(__name__)

_SEPARATORS = re.compile(r"[\s()\-]+")


def clean_field_names(name: str) -> str:
    """
    Convert an upstream field name to a property key.

    "Term Length (Years)" -> "term_length_years"

    Args:
        name: Human-readable field name

    Returns:
        Lowercase key with separator runs collapsed to a single underscore
    """
    key = _SEPARATORS.sub("_", (name or "").lower())
    return key.rstrip("_")


def parse_date(value: Any) -> Optional[date]:
    """Parse an ISO date/datetime string (or pass through a date)"""
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    try:
        return dateparser.isoparse(str(value)).date()
    except (ValueError, OverflowError):
        logger.warning("Unparseable date value %r", value)
        return None


def _field_value(raw_field: RawField, data_type: Optional[str]) -> Any:
    """Convert a raw field by its declared data type"""
    if data_type == "Number":
        return raw_field.number_value
    if data_type == "Date":
        return parse_date(raw_field.date_value)
    if data_type in ("String", "SelectList"):
        return raw_field.string_value
    if data_type == "Boolean":
        return raw_field.boolean_value
    return None


_VALUE_TYPES = {
    "date": "Date",
    "number": "Number",
    "string": "String",
    "bool": "Boolean",
}


def extract_fact_value(
    doc: RawDocument,
    fact_type_id: Optional[str],
    field_type_id: Optional[str],
    value_type: str,
) -> Any:
    """
    Extract a single field value from the first fact of a type.

    Args:
        doc: Raw document
        fact_type_id: Fact type to look for
        field_type_id: Field type inside the fact
        value_type: One of "date", "number", "string", "bool"

    Returns:
        Converted value, or None if the fact, field or value type is missing
    """
    if not doc.facts or value_type not in _VALUE_TYPES:
        return None

    fact = next((f for f in doc.facts if f.fact_type_id == fact_type_id), None)
    if fact is None:
        return None

    raw_field = next((f for f in fact.fields if f.fact_field_type_id == field_type_id), None)
    if raw_field is None:
        return None

    return _field_value(raw_field, _VALUE_TYPES[value_type])


def _fact_record(fact, lookups: Lookups) -> Dict[str, Any]:
    """Build a {clean_field_name: value} record for one fact instance"""
    record: Dict[str, Any] = {"id": fact.id}
    for raw_field in fact.fields:
        field_type = lookups.field_type(fact.fact_type_id, raw_field.fact_field_type_id)
        if field_type is None:
            continue
        data_type = raw_field.data_type or field_type.data_type
        record[clean_field_names(field_type.name)] = _field_value(raw_field, data_type)
    return record


def extract_multi_fact_values(doc: RawDocument, fact_type_id: Optional[str], lookups: Lookups) -> List[Dict[str, Any]]:
    """
    Extract one record per fact instance of a type.

    Returns:
        List of records (empty when the document has none)
    """
    if not doc.facts or fact_type_id is None:
        return []
    return [_fact_record(f, lookups) for f in doc.facts if f.fact_type_id == fact_type_id]


def extract_fact_multi_fields(doc: RawDocument, fact_type_id: Optional[str], lookups: Lookups) -> Optional[Dict[str, Any]]:
    """
    Extract the first fact of a type as a sparse record.

    Only truthy values are kept, so zero, empty strings and False are dropped.

    Returns:
        Sparse record, or None when the fact is absent
    """
    records = extract_multi_fact_values(doc, fact_type_id, lookups)
    if not records:
        return None
    return {key: value for key, value in records[0].items() if value}
