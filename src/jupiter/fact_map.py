"""
Typed accessor table from stable fact keys to upstream fact/field ids.

The fact map (YAML) names the upstream fact types and fields for every
internal key. It is resolved once per run against the fact-type lookup so
documents are read by id rather than by repeated name matching.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import yaml

from .exceptions import ConfigurationError
from .facts import extract_fact_multi_fields, extract_fact_value, extract_multi_fact_values
from .loader import RawDocument
from .lookups import Lookups
from .settings import settings

logger = logging.getLogger(__name__)


class FactKey(Enum):
    EFFECTIVE_DATE = "effective_date"
    AMENDMENT_DATE = "amendment_date"
    OUTSIDE_DATE = "outside_date"
    CLOSING_DATE = "closing_date"
    FULL_PURCHASE_PRICE = "full_purchase_price"
    AGREEMENT_GROUP = "agreement_group"
    JUPITER_ENTITY = "jupiter_entity"
    GRANTEE = "grantee"
    GRANTOR = "grantor"
    PROPERTY_DESCRIPTION = "property_description"
    AGREEMENT_TERM = "agreement_terms"
    TERM_PAYMENT_MODEL = "term_payment_models"
    DATE_PAYMENT_MODEL = "date_payment_models"
    OPERATIONAL_DETAILS = "operational_details"
    TERMINATION = "termination"


VALUE_TYPES = ("date", "number", "string", "bool")
SECTIONS = ("scalars", "collections", "records")


@dataclass
class FactSpec:
    """Upstream names for one fact key"""
    key: FactKey
    kind: str
    fact_type: str
    field_name: Optional[str] = None
    value_type: Optional[str] = None
    aliases: Dict[str, str] = field(default_factory=dict)


@dataclass
class ResolvedFact:
    spec: FactSpec
    fact_type_id: Optional[str] = None
    field_type_id: Optional[str] = None


def load_fact_map(path: Optional[str] = None) -> Dict[FactKey, FactSpec]:
    """
    Load and validate the fact map YAML file.

    Args:
        path: Fact map file (default: settings.FACT_MAP_FILE)

    Returns:
        Mapping of fact key to its upstream names

    Raises:
        ConfigurationError: If the file is missing or malformed
    """
    path = path or settings.FACT_MAP_FILE
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        raise ConfigurationError(f"Fact map file '{path}' not found!")
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Error parsing fact map YAML file: {e}")

    specs: Dict[FactKey, FactSpec] = {}
    for kind in SECTIONS:
        for name, entry in (data.get(kind) or {}).items():
            try:
                key = FactKey(name)
            except ValueError:
                raise ConfigurationError(f"Unknown fact key '{name}' in section '{kind}'")
            if not isinstance(entry, dict) or not entry.get("fact_type"):
                raise ConfigurationError(f"Fact key '{name}' must name a fact_type")
            if kind == "scalars" and (not entry.get("field") or entry.get("value_type") not in VALUE_TYPES):
                raise ConfigurationError(f"Scalar fact key '{name}' needs a field and a value_type in {VALUE_TYPES}")
            specs[key] = FactSpec(
                key=key,
                kind=kind,
                fact_type=entry["fact_type"],
                field_name=entry.get("field"),
                value_type=entry.get("value_type"),
                aliases=dict(entry.get("aliases") or {}),
            )
    return specs


class FactAccessors:
    """Fact keys resolved to upstream ids for one run"""

    def __init__(self, specs: Dict[FactKey, FactSpec], lookups: Lookups):
        self.lookups = lookups
        self.resolved: Dict[FactKey, ResolvedFact] = {}

        for key, spec in specs.items():
            fact_type_id = lookups.fact_type_id(spec.fact_type)
            field_type_id = lookups.field_type_id(fact_type_id, spec.field_name) if spec.field_name else None
            if fact_type_id is None:
                logger.warning("Fact type '%s' for key %s not found; treating as missing", spec.fact_type, key.value)
            elif spec.field_name and field_type_id is None:
                logger.warning("Field '%s' on '%s' not found; treating as missing", spec.field_name, spec.fact_type)
            self.resolved[key] = ResolvedFact(spec, fact_type_id, field_type_id)

    @classmethod
    def load(cls, lookups: Lookups, path: Optional[str] = None) -> "FactAccessors":
        return cls(load_fact_map(path), lookups)

    def value(self, doc: RawDocument, key: FactKey) -> Any:
        """Scalar fact value, or None"""
        resolved = self.resolved.get(key)
        if resolved is None or resolved.field_type_id is None:
            return None
        return extract_fact_value(doc, resolved.fact_type_id, resolved.field_type_id, resolved.spec.value_type)

    def records(self, doc: RawDocument, key: FactKey) -> List[Dict[str, Any]]:
        """One record per fact instance, with aliases applied"""
        resolved = self.resolved.get(key)
        if resolved is None:
            return []
        records = extract_multi_fact_values(doc, resolved.fact_type_id, self.lookups)
        return [self._alias(r, resolved.spec.aliases) for r in records]

    def record(self, doc: RawDocument, key: FactKey) -> Optional[Dict[str, Any]]:
        """First fact instance as a sparse record, or None"""
        resolved = self.resolved.get(key)
        if resolved is None:
            return None
        record = extract_fact_multi_fields(doc, resolved.fact_type_id, self.lookups)
        return self._alias(record, resolved.spec.aliases) if record is not None else None

    @staticmethod
    def _alias(record: Dict[str, Any], aliases: Dict[str, str]) -> Dict[str, Any]:
        return {aliases.get(k, k): v for k, v in record.items()}
