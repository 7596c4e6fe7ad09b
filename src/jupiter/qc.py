"""
QC rule engine: completeness and consistency checks over computed documents.

Rules are defined in a JSON file. Every rule is independent and additive;
a rule yields zero or more human-readable flags and never raises for a
document's content.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from .exceptions import ConfigurationError, UnsupportedFrequencyError
from .models import DocStage, JupiterDoc, PaymentFrequency
from .payments import periodic_base_payment, term_payment_model
from .settings import settings

logger = logging.getLogger(__name__)

RULE_TYPES = ("required", "exclusive", "tag_date", "collection", "custom")

DEFAULT_RULES: Dict[str, Any] = {
    "out_of_scope_document_types": ["Master Service Agreement"],
    "labels": {},
    "qc_rules": [
        {"name": "required_document_fields", "type": "required", "scope": "all",
         "fields": ["name", "document_type", "agreement_group"]},
        {"name": "effective_or_amendment_date", "type": "exclusive",
         "field1": "effective_date", "field2": "amendment_date"},
        {"name": "terminated_tag_has_date", "type": "tag_date",
         "tag": "Terminated", "field": "termination_date"},
        {"name": "property_descriptions", "type": "custom", "function": "check_property_descriptions"},
    ],
}


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, list, set, tuple, dict)):
        return len(value) == 0
    return False


class QCEngine:
    """Runs the configured QC rules over documents"""

    def __init__(self, rules_file: Optional[str] = None):
        """
        Initialize the engine.

        Args:
            rules_file: Path to the QC rules JSON file (default: settings.QC_RULES_FILE)

        Raises:
            ConfigurationError: If the rules file is malformed
        """
        rules_file = rules_file or settings.QC_RULES_FILE
        self.rules_data = self._load_rules(rules_file)
        self.rules: List[Dict[str, Any]] = self.rules_data.get("qc_rules", [])
        self.labels: Dict[str, str] = self.rules_data.get("labels", {})
        self.out_of_scope_types = {t.lower() for t in self.rules_data.get("out_of_scope_document_types", [])}
        self._validate_rules()

    def _load_rules(self, rules_file: str) -> Dict[str, Any]:
        """Load QC rules from JSON file"""
        try:
            with open(rules_file, 'r', encoding='utf-8') as f:
                return json.load(f)
        except FileNotFoundError:
            logger.warning("QC rules file %s not found, using built-in defaults", rules_file)
            return DEFAULT_RULES
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Error parsing QC rules file: {e}")

    def _validate_rules(self) -> None:
        for rule in self.rules:
            rule_type = rule.get("type")
            if rule_type not in RULE_TYPES:
                raise ConfigurationError(f"Unknown QC rule type '{rule_type}' in rule '{rule.get('name')}'")
            if rule_type == "custom" and not callable(getattr(self, rule.get("function") or "", None)):
                raise ConfigurationError(f"QC rule '{rule.get('name')}' names unknown function '{rule.get('function')}'")

    def label(self, field_name: str) -> str:
        """Human-readable name for a document or item attribute"""
        return self.labels.get(field_name) or field_name.replace("_", " ").title()

    def is_in_scope(self, doc: JupiterDoc) -> bool:
        if (doc.document_type or "").lower() in self.out_of_scope_types:
            return False
        return not doc.is_terminated

    def qc(self, doc: JupiterDoc) -> JupiterDoc:
        """
        Run every rule against a computed document.

        Args:
            doc: Document snapshot

        Returns:
            New snapshot at the QC stage with a freshly built qc_flags list
        """
        checked = doc.evolve(DocStage.QC)
        checked.qc_flags = []

        if not self.is_in_scope(checked):
            return checked

        for rule in self.rules:
            checked.qc_flags.extend(self.evaluate(rule, checked))

        if checked.qc_flags:
            logger.debug("%s: %d QC flag(s)", checked.id, len(checked.qc_flags))
        return checked

    def evaluate(self, rule: Dict[str, Any], doc: JupiterDoc) -> List[str]:
        """Flags raised by one rule"""
        rule_type = rule["type"]
        if rule_type == "required":
            return self._evaluate_required_rule(rule, doc)
        if rule_type == "exclusive":
            return self._evaluate_exclusive_rule(rule, doc)
        if rule_type == "tag_date":
            return self._evaluate_tag_date_rule(rule, doc)
        if rule_type == "collection":
            return self._evaluate_collection_rule(rule, doc)
        return list(getattr(self, rule["function"])(doc, rule))

    def _evaluate_required_rule(self, rule: Dict[str, Any], doc: JupiterDoc) -> List[str]:
        if rule.get("scope") == "original" and (doc.is_amendment or doc.is_deed):
            return []
        return [
            f"Missing {self.label(name)}"
            for name in rule.get("fields", [])
            if _is_missing(getattr(doc, name, None))
        ]

    def _evaluate_exclusive_rule(self, rule: Dict[str, Any], doc: JupiterDoc) -> List[str]:
        first, second = rule["field1"], rule["field2"]
        has_first = not _is_missing(getattr(doc, first, None))
        has_second = not _is_missing(getattr(doc, second, None))
        if has_first and has_second:
            return [f"Both {self.label(first)} and {self.label(second)} are set"]
        if not has_first and not has_second:
            return [f"Neither {self.label(first)} nor {self.label(second)} is set"]
        return []

    def _evaluate_tag_date_rule(self, rule: Dict[str, Any], doc: JupiterDoc) -> List[str]:
        tag, name = rule["tag"], rule["field"]
        if tag in doc.tags and _is_missing(getattr(doc, name, None)):
            return [f"Tagged '{tag}' but missing {self.label(name)}"]
        return []

    def _evaluate_collection_rule(self, rule: Dict[str, Any], doc: JupiterDoc) -> List[str]:
        flags = []
        item_label = rule.get("label") or self.label(rule["collection"])
        for index, item in enumerate(getattr(doc, rule["collection"], []) or [], start=1):
            for name in rule.get("fields", []):
                if _is_missing(getattr(item, name, None)):
                    flags.append(f"{item_label} #{index}: missing {self.label(name)}")
        return flags

    # custom rules

    def check_property_descriptions(self, doc: JupiterDoc, rule: Dict[str, Any]) -> List[str]:
        """Originals need a property description; each one needs county and state"""
        if not doc.property_description:
            return [] if doc.is_amendment or doc.is_deed else ["Missing Property Description"]

        flags = []
        for index, description in enumerate(doc.property_description, start=1):
            if _is_missing(description.county):
                flags.append(f"Property Description #{index}: missing County")
            if _is_missing(description.state):
                flags.append(f"Property Description #{index}: missing State")
        return flags

    def check_term_model_pricing(self, doc: JupiterDoc, rule: Dict[str, Any]) -> List[str]:
        """Every term payment model must be able to produce a non-zero payment"""
        return [
            f"Term Payment Model #{index} ({model.model_type or 'unnamed'}): no pricing method produces a payment"
            for index, model in enumerate(doc.term_payment_models, start=1)
            if periodic_base_payment(model, doc.agreement_acres) <= 0
        ]

    def check_term_model_frequency(self, doc: JupiterDoc, rule: Dict[str, Any]) -> List[str]:
        """Frequencies that are present must be recognized"""
        flags = []
        for index, model in enumerate(doc.term_payment_models, start=1):
            for name in ("payment_frequency", "escalation_frequency"):
                value = getattr(model, name)
                if _is_missing(value):
                    continue
                try:
                    PaymentFrequency.parse(value)
                except UnsupportedFrequencyError:
                    flags.append(f"Term Payment Model #{index}: unrecognized {self.label(name)} '{value}'")
        return flags

    def check_terms_resolve_to_models(self, doc: JupiterDoc, rule: Dict[str, Any]) -> List[str]:
        if not doc.term_payment_models:
            return []
        return [
            f"Agreement Term #{index}: no payment model matches '{term.payment_model or term.term_type}'"
            for index, term in enumerate(doc.agreement_terms, start=1)
            if not term.cancelled_by_ops and term_payment_model(term, doc.term_payment_models) is None
        ]

    def check_date_model_schedule(self, doc: JupiterDoc, rule: Dict[str, Any]) -> List[str]:
        """Date models need a date; recurring ones need a recognized frequency"""
        flags = []
        for index, model in enumerate(doc.date_payment_models, start=1):
            prefix = f"Date Payment Model #{index}"
            if model.payment_date is None and model.begin_date is None:
                flags.append(f"{prefix}: missing Payment Date or Begin Date")
            if not model.is_recurring:
                continue
            if _is_missing(model.payment_frequency):
                flags.append(f"{prefix}: recurring schedule missing {self.label('payment_frequency')}")
                continue
            try:
                PaymentFrequency.parse(model.payment_frequency)
            except UnsupportedFrequencyError:
                flags.append(f"{prefix}: unrecognized {self.label('payment_frequency')} '{model.payment_frequency}'")
        return flags
