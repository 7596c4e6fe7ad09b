"""
Typed loading of the collaborator's pre-fetched collections.

The upstream API client writes documents, fact types, document types and
tags to JSON files; this module reads them (or already-decoded lists) into
raw records. Nothing here talks to the network.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .exceptions import DataLoadError
from .settings import settings

logger = logging.getLogger(__name__)

DOCUMENTS_FILE = "documents.json"
FACT_TYPES_FILE = "factTypes.json"
DOC_TYPES_FILE = "documentTypes.json"
TAGS_FILE = "tags.json"


def _get(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first key present in data (camelCase first, then snake_case)."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


@dataclass
class FieldType:
    """A field definition on a fact type"""
    id: str
    name: str
    data_type: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FieldType":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            data_type=_get(data, "dataType", "data_type", default="String"),
        )


@dataclass
class FactType:
    """A fact type definition with its fields"""
    id: str
    name: str
    archived: bool = False
    allow_multiple: bool = False
    fields: List[FieldType] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FactType":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            archived=bool(data.get("archived", False)),
            allow_multiple=bool(_get(data, "allowMultiple", "allow_multiple", default=False)),
            fields=[FieldType.from_dict(f) for f in _get(data, "fieldTypes", "fields", default=[])],
        )


@dataclass
class RawField:
    """A single extracted field value"""
    fact_field_type_id: str
    data_type: Optional[str] = None
    number_value: Optional[float] = None
    date_value: Optional[str] = None
    string_value: Optional[str] = None
    boolean_value: Optional[bool] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RawField":
        return cls(
            fact_field_type_id=_get(data, "factFieldTypeId", "fact_field_type_id"),
            data_type=_get(data, "dataType", "data_type"),
            number_value=_get(data, "numberValue", "number_value"),
            date_value=_get(data, "dateValue", "date_value"),
            string_value=_get(data, "stringValue", "string_value"),
            boolean_value=_get(data, "booleanValue", "boolean_value"),
        )


@dataclass
class RawFact:
    """An extracted fact instance"""
    id: str
    fact_type_id: str
    fields: List[RawField] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RawFact":
        return cls(
            id=data.get("id", ""),
            fact_type_id=_get(data, "factTypeId", "fact_type_id"),
            fields=[RawField.from_dict(f) for f in data.get("fields") or []],
        )


@dataclass
class RawDocument:
    """A source document with its extracted facts"""
    id: str
    name: str
    document_type_id: Optional[str] = None
    tag_ids: List[str] = field(default_factory=list)
    facts: List[RawFact] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RawDocument":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            document_type_id=_get(data, "documentTypeId", "document_type_id"),
            tag_ids=list(_get(data, "tagIds", "tag_ids", default=[])),
            facts=[RawFact.from_dict(f) for f in data.get("facts") or []],
        )


@dataclass
class NamedRef:
    """An id/name pair (document types and tags)"""
    id: str
    name: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NamedRef":
        return cls(id=data["id"], name=data.get("name", ""))


@dataclass
class Dataset:
    """All collections handed to the core by the API collaborator"""
    documents: List[RawDocument] = field(default_factory=list)
    fact_types: List[FactType] = field(default_factory=list)
    doc_types: List[NamedRef] = field(default_factory=list)
    tags: List[NamedRef] = field(default_factory=list)

    @classmethod
    def from_collections(
        cls,
        documents: List[Dict[str, Any]],
        fact_types: List[Dict[str, Any]],
        doc_types: Optional[List[Dict[str, Any]]] = None,
        tags: Optional[List[Dict[str, Any]]] = None,
    ) -> "Dataset":
        """
        Build a dataset from decoded JSON collections.

        Args:
            documents: Raw document dictionaries
            fact_types: Fact type dictionaries
            doc_types: Document type dictionaries
            tags: Tag dictionaries

        Returns:
            Dataset of typed records

        Raises:
            DataLoadError: If a record is missing a required key
        """
        try:
            return cls(
                documents=[RawDocument.from_dict(d) for d in documents],
                fact_types=[FactType.from_dict(f) for f in fact_types],
                doc_types=[NamedRef.from_dict(d) for d in doc_types or []],
                tags=[NamedRef.from_dict(t) for t in tags or []],
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise DataLoadError(f"Malformed collection record: {e}")


def _load_json(path: Path, required: bool = True) -> List[Dict[str, Any]]:
    """Load a JSON array from a file"""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except FileNotFoundError:
        if required:
            raise DataLoadError(f"Data file '{path}' not found!")
        logger.warning("Optional data file %s not found, using an empty list", path)
        return []
    except json.JSONDecodeError as e:
        raise DataLoadError(f"Error parsing data file '{path}': {e}")

    if not isinstance(data, list):
        raise DataLoadError(f"Data file '{path}' must contain a JSON array")
    return data


def load_dataset(data_dir: Optional[Union[str, Path]] = None) -> Dataset:
    """
    Load the collaborator's JSON files from a directory.

    Documents and fact types are required; document types and tags are
    optional and default to empty lists.

    Args:
        data_dir: Directory holding the JSON files (default: settings.DATA_DIR)

    Returns:
        Dataset of typed records

    Raises:
        DataLoadError: If a required file is missing or malformed
    """
    data_dir = str(data_dir) if data_dir is not None else None
    documents = _load_json(settings.data_path(DOCUMENTS_FILE, data_dir))
    fact_types = _load_json(settings.data_path(FACT_TYPES_FILE, data_dir))
    doc_types = _load_json(settings.data_path(DOC_TYPES_FILE, data_dir), required=False)
    tags = _load_json(settings.data_path(TAGS_FILE, data_dir), required=False)

    dataset = Dataset.from_collections(documents, fact_types, doc_types, tags)
    logger.info(
        "Loaded %d documents, %d fact types, %d document types, %d tags",
        len(dataset.documents), len(dataset.fact_types), len(dataset.doc_types), len(dataset.tags),
    )
    return dataset
