"""Ordered strategies for obtaining a collection's structural schema."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Optional, Protocol

from .infer import ID_FIELD, FieldObservations, unify
from .models import CollectionSchema, FieldInfo


logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_SIZE = 100

_DECLARED_TYPES: dict[str, str] = {
    "objectid": "ObjectId",
    "number": "number",
    "int": "number",
    "int32": "number",
    "long": "number",
    "double": "number",
    "decimal": "number",
    "decimal128": "number",
    "string": "string",
    "boolean": "boolean",
    "bool": "boolean",
    "date": "date",
    "buffer": "binary",
    "uuid": "binary",
    "array": "array",
    "map": "object",
    "mixed": "object",
    "object": "object",
    "embedded": "object",
}

_BSON_TYPES: dict[str, str] = {
    "objectId": "ObjectId",
    "int": "number",
    "long": "number",
    "double": "number",
    "decimal": "number",
    "number": "number",
    "integer": "number",
    "string": "string",
    "bool": "boolean",
    "boolean": "boolean",
    "date": "date",
    "timestamp": "date",
    "binData": "binary",
    "array": "array",
    "object": "object",
    "null": "null",
}


class SchemaStrategy(Protocol):
    """A way of extracting a schema; returns None when it does not apply."""

    name: str

    def try_extract(self, collection: Any, collection_name: str) -> Optional[CollectionSchema]:
        ...


class DeclaredModelStrategy:
    """Use field definitions declared by the application for a collection.

    ``models`` maps collection names to field definitions. A definition is a
    type name (``"String"``) or a mapping with ``type``, ``required``, ``of``
    (array element or map value definition) and ``fields`` (embedded document).
    """

    name = "declared"

    def __init__(self, models: Optional[Mapping[str, Mapping[str, Any]]] = None) -> None:
        self.models = dict(models or {})

    def try_extract(self, collection: Any, collection_name: str) -> Optional[CollectionSchema]:
        model = self.models.get(collection_name)
        if not model:
            return None
        fields = {
            str(key): _declared_field(definition)
            for key, definition in model.items()
            if key != ID_FIELD
        }
        return CollectionSchema(
            collection_name=collection_name,
            fields=fields,
            total_documents=0,
            source=self.name,
        )


def _declared_field(definition: Any) -> FieldInfo:
    if isinstance(definition, str):
        definition = {"type": definition}
    elif isinstance(definition, list):
        definition = {"type": "Array", "of": definition[0] if definition else None}
    if not isinstance(definition, Mapping):
        raise ValueError(f"Invalid field definition: {definition!r}")

    required = bool(definition.get("required", False))
    declared = str(definition.get("type", "")).lower()
    element = definition.get("of")

    if declared == "array":
        items = _declared_field(element) if element is not None else FieldInfo("unknown")
        return FieldInfo("array", items=items, required=required)

    nested = definition.get("fields")
    if declared == "embedded" or isinstance(nested, Mapping):
        properties = {
            str(key): _declared_field(child)
            for key, child in (nested or {}).items()
            if key != ID_FIELD
        }
        return FieldInfo("object", properties=properties, required=required)

    if declared == "map":
        additional = _declared_field(element) if element is not None else FieldInfo("unknown")
        return FieldInfo("object", properties={}, additional_properties=additional, required=required)

    field_type = _DECLARED_TYPES.get(declared, "unknown")
    if field_type == "object":
        return FieldInfo("object", properties={}, required=required)
    if field_type == "array":
        return FieldInfo("array", items=FieldInfo("unknown"), required=required)
    return FieldInfo(field_type, required=required)


class ValidatorStrategy:
    """Use the ``$jsonSchema`` validator declared on the collection."""

    name = "validator"

    def try_extract(self, collection: Any, collection_name: str) -> Optional[CollectionSchema]:
        options = collection.options()
        validator = (options or {}).get("validator") or {}
        json_schema = validator.get("$jsonSchema")
        if not isinstance(json_schema, Mapping):
            return None

        required = set(json_schema.get("required") or [])
        fields = {
            str(key): _validator_field(definition, key in required)
            for key, definition in (json_schema.get("properties") or {}).items()
            if key != ID_FIELD
        }
        return CollectionSchema(
            collection_name=collection_name,
            fields=fields,
            total_documents=0,
            source=self.name,
        )


def _bson_type(definition: Mapping[str, Any]) -> Optional[str]:
    declared = definition.get("bsonType", definition.get("type"))
    if isinstance(declared, list):
        declared = next((item for item in declared if item != "null"), None)
    return declared


def _validator_field(definition: Any, is_required: Optional[bool]) -> FieldInfo:
    if not isinstance(definition, Mapping):
        return FieldInfo("unknown", required=is_required)

    declared = _bson_type(definition)

    if declared == "array":
        items = definition.get("items")
        return FieldInfo(
            "array",
            items=_validator_field(items, None) if isinstance(items, Mapping) else FieldInfo("unknown"),
            required=is_required,
        )

    if declared == "object":
        required = set(definition.get("required") or [])
        properties = {
            str(key): _validator_field(child, key in required)
            for key, child in (definition.get("properties") or {}).items()
        }
        additional = definition.get("additionalProperties")
        return FieldInfo(
            "object",
            properties=properties,
            additional_properties=_validator_field(additional, None) if isinstance(additional, Mapping) else None,
            required=is_required,
        )

    allowed = definition.get("enum")
    if isinstance(allowed, list) and allowed and all(isinstance(item, str) for item in allowed):
        return FieldInfo("enum", values=list(dict.fromkeys(allowed)), required=is_required)

    return FieldInfo(_BSON_TYPES.get(str(declared), "unknown"), required=is_required)


class SamplingStrategy:
    """Infer the schema from a bounded sample of stored documents."""

    name = "sample"

    def __init__(self, sample_size: int = DEFAULT_SAMPLE_SIZE) -> None:
        if sample_size <= 0:
            raise ValueError("sample size must be positive")
        self.sample_size = sample_size

    def try_extract(self, collection: Any, collection_name: str) -> Optional[CollectionSchema]:
        observations = FieldObservations()
        documents: list[Mapping[str, Any]] = []
        for document in collection.find({}, limit=self.sample_size):
            observations.walk(document)
            documents.append(document)
        total_documents = collection.count_documents({})
        logger.debug(
            "Sampled %d of %d documents from %s",
            len(documents),
            total_documents,
            collection_name,
        )
        return unify(observations, documents, total_documents, collection_name)


def default_strategies(
    models: Optional[Mapping[str, Mapping[str, Any]]] = None,
    sample_size: int = DEFAULT_SAMPLE_SIZE,
) -> list[SchemaStrategy]:
    """Declared models, then validator rules, then document sampling."""

    return [DeclaredModelStrategy(models), ValidatorStrategy(), SamplingStrategy(sample_size)]
