"""
Shared fixtures: an upstream fact-type catalogue matching the packaged fact
map, and builders for raw documents in the collaborator's JSON shape.
"""

import itertools
from datetime import date

import pytest

from jupiter.fact_map import FactAccessors
from jupiter.facts import clean_field_names
from jupiter.loader import Dataset
from jupiter.lookups import Lookups

FACT_TYPE_FIELDS = {
    "Effective Date": [("Effective Date", "Date")],
    "Amendment Date": [("Amendment Date", "Date")],
    "Outside Date": [("Outside Date", "Date")],
    "Closing Date": [("Closing Date", "Date")],
    "Purchase Price": [("Full Purchase Price", "Number")],
    "Agreement Group": [("Agreement Group", "String")],
    "Jupiter Entity": [("Jupiter Entity", "String")],
    "Grantee": [("Grantee", "String")],
    "Grantor": [("Grantor Name", "String"), ("Split %", "Number")],
    "Property Description": [
        ("County", "String"), ("State", "SelectList"), ("Acreage", "Number"),
        ("Legal", "String"), ("APN", "String"),
    ],
    "Agreement Term": [
        ("Term Ordinal", "Number"), ("Term Type", "SelectList"), ("Term Length", "Number"),
        ("Extension", "Boolean"), ("Payment Model", "String"),
        ("Term Increase Amount", "Number"), ("Term Escalation %", "Number"),
    ],
    "Term Payment Model": [
        ("Model Name", "String"), ("Payment Frequency", "SelectList"), ("Escalation %", "Number"),
        ("Escalation Frequency", "SelectList"), ("Escalation Method", "SelectList"),
        ("First Payment Start", "SelectList"), ("First Payment Date", "Date"),
        ("First Payment Lag Days", "Number"), ("Subsequent Payment Lag Days", "Number"),
        ("Lag On Extensions", "Boolean"), ("Prorate Partial Periods", "Boolean"),
        ("Minimum Payment", "Number"), ("Payment Per MW", "Number"), ("MW", "Number"),
        ("Payment Per Acre", "Number"), ("Leased Acres", "Number"), ("Flat Payment Amount", "Number"),
        ("Payee", "String"), ("Applicable To Purchase", "Boolean"), ("Refundable", "Boolean"),
    ],
    "Date Payment Model": [
        ("Payment Name", "String"), ("Payment Amount", "Number"), ("One Time Payment Date", "Date"),
        ("Begin Date", "Date"), ("End Date", "Date"), ("Payment Frequency", "SelectList"),
        ("Applicable To Purchase", "Boolean"), ("Payee", "String"),
    ],
    "Operational Details": [
        ("Construction Commencement Date", "Date"), ("Operations Commencement Date", "Date"),
    ],
    "Termination": [("Termination Date", "Date"), ("Termination Reason", "String")],
}

MULTI_INSTANCE = {"Grantor", "Property Description", "Agreement Term", "Term Payment Model", "Date Payment Model"}

DOC_TYPES = [
    {"id": "dt-lease", "name": "Lease"},
    {"id": "dt-deed", "name": "Deed"},
    {"id": "dt-msa", "name": "Master Service Agreement"},
]

TAGS = [
    {"id": "tag-terminated", "name": "Terminated"},
    {"id": "tag-operational", "name": "Operational"},
    {"id": "tag-purchased", "name": "Purchased"},
]

_VALUE_KEYS = {
    "Number": "numberValue",
    "Date": "dateValue",
    "String": "stringValue",
    "SelectList": "stringValue",
    "Boolean": "booleanValue",
}

_fact_ids = itertools.count(1)


def fact_type_id(name):
    return f"ft-{clean_field_names(name)}"


def field_type_id(fact_type, field_name):
    return f"{fact_type_id(fact_type)}.{clean_field_names(field_name)}"


def fact_type_catalog():
    return [
        {
            "id": fact_type_id(name),
            "name": name,
            "archived": False,
            "allowMultiple": name in MULTI_INSTANCE,
            "fieldTypes": [
                {"id": field_type_id(name, field_name), "name": field_name, "dataType": data_type}
                for field_name, data_type in fields
            ],
        }
        for name, fields in FACT_TYPE_FIELDS.items()
    ]


def build_fact(fact_type, values):
    """
    Raw fact dict for a catalogue fact type.

    values is keyed by cleaned field name, e.g. {"term_length": 2}.
    """
    known = {clean_field_names(f): (f, t) for f, t in FACT_TYPE_FIELDS[fact_type]}
    unknown = set(values) - set(known)
    if unknown:
        raise KeyError(f"Unknown fields for {fact_type}: {sorted(unknown)}")

    fields = []
    for key, value in values.items():
        field_name, data_type = known[key]
        if isinstance(value, date):
            value = value.isoformat()
        fields.append({
            "factFieldTypeId": field_type_id(fact_type, field_name),
            "dataType": data_type,
            _VALUE_KEYS[data_type]: value,
        })
    return {"id": f"fact-{next(_fact_ids)}", "factTypeId": fact_type_id(fact_type), "fields": fields}


def scalar_fact(fact_type, value):
    """Fact for a single-field fact type"""
    (field_name, _), = FACT_TYPE_FIELDS[fact_type]
    return build_fact(fact_type, {clean_field_names(field_name): value})


def build_raw_document(doc_id, facts, name=None, doc_type="dt-lease", tag_ids=()):
    return {
        "id": doc_id,
        "name": name if name is not None else f"Document {doc_id}",
        "documentTypeId": doc_type,
        "tagIds": list(tag_ids),
        "facts": list(facts),
    }


def sample_collections():
    """A lease, one amendment of it and one deed, all in agreement group G-100"""
    lease = build_raw_document("lease-1", [
        scalar_fact("Effective Date", "2024-01-01"),
        scalar_fact("Agreement Group", "G-100"),
        scalar_fact("Jupiter Entity", "Jupiter Solar LLC"),
        scalar_fact("Grantee", "Jupiter Solar LLC"),
        build_fact("Grantor", {"grantor_name": "John Smith and Jane Smith"}),
        build_fact("Property Description", {"county": "Travis", "state": "TX", "acreage": 100}),
        build_fact("Agreement Term", {
            "term_ordinal": 1, "term_type": "Development", "term_length": 2, "payment_model": "Rent",
        }),
        build_fact("Term Payment Model", {
            "model_name": "Rent", "payment_frequency": "Annually", "payment_per_acre": 10,
        }),
    ], name="Smith Lease")

    amendment = build_raw_document("lease-1-a1", [
        scalar_fact("Amendment Date", "2024-06-01"),
        scalar_fact("Agreement Group", "G-100"),
        build_fact("Date Payment Model", {
            "payment_name": "Amendment Bonus", "payment_amount": 500, "one_time_payment_date": "2024-07-01",
        }),
    ], name="Smith Lease - First Amendment")

    deed = build_raw_document("deed-1", [
        scalar_fact("Effective Date", "2025-03-01"),
        scalar_fact("Agreement Group", "G-100"),
        build_fact("Property Description", {"county": "Travis", "state": "TX", "acreage": 40}),
    ], name="Smith Deed", doc_type="dt-deed")

    return {
        "documents": [lease, amendment, deed],
        "factTypes": fact_type_catalog(),
        "docTypes": DOC_TYPES,
        "tags": TAGS,
    }


@pytest.fixture
def fact_types():
    return fact_type_catalog()


@pytest.fixture
def make_dataset(fact_types):
    def _make(*documents):
        return Dataset.from_collections(list(documents), fact_types, DOC_TYPES, TAGS)
    return _make


@pytest.fixture
def lookups(make_dataset):
    return Lookups.from_dataset(make_dataset())


@pytest.fixture
def accessors(lookups):
    return FactAccessors.load(lookups)


@pytest.fixture
def collections():
    return sample_collections()
