"""Structural schema data model and its JSON representation."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Optional

FIELD_TYPES = frozenset(
    {
        "string",
        "number",
        "boolean",
        "object",
        "array",
        "null",
        "date",
        "binary",
        "ObjectId",
        "enum",
        "unknown",
    }
)


@dataclass(slots=True, frozen=True)
class FieldInfo:
    """Inferred type of a single field path."""

    type: str
    required: Optional[bool] = None
    items: Optional["FieldInfo"] = None
    properties: Optional[dict[str, "FieldInfo"]] = None
    values: Optional[list[str]] = None
    additional_properties: Optional["FieldInfo"] = None

    def __post_init__(self) -> None:
        if self.type not in FIELD_TYPES:
            raise ValueError(f"unsupported field type: {self.type!r}")
        if self.items is not None and self.type != "array":
            raise ValueError("items only apply to array fields")
        if self.properties is not None and self.type != "object":
            raise ValueError("properties only apply to object fields")
        if self.additional_properties is not None and self.type != "object":
            raise ValueError("additional_properties only apply to object fields")
        if self.values is not None and self.type != "enum":
            raise ValueError("values only apply to enum fields")

    def with_required(self, required: bool) -> "FieldInfo":
        return replace(self, required=required)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type}
        if self.required is not None:
            data["required"] = self.required
        if self.items is not None:
            data["items"] = self.items.to_dict()
        if self.properties is not None:
            data["properties"] = {key: value.to_dict() for key, value in self.properties.items()}
        if self.additional_properties is not None:
            data["additionalProperties"] = self.additional_properties.to_dict()
        if self.values is not None:
            data["values"] = list(self.values)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FieldInfo":
        items = data.get("items")
        properties = data.get("properties")
        additional = data.get("additionalProperties")
        values = data.get("values")
        return cls(
            type=data["type"],
            required=data.get("required"),
            items=cls.from_dict(items) if isinstance(items, dict) else None,
            properties=(
                {key: cls.from_dict(value) for key, value in properties.items()}
                if isinstance(properties, dict)
                else None
            ),
            values=list(values) if values is not None else None,
            additional_properties=cls.from_dict(additional) if isinstance(additional, dict) else None,
        )


@dataclass(slots=True, frozen=True)
class FieldEnrichment:
    """Semantic annotations the language model attached to one field."""

    field: str
    semantic_meaning: str
    importance: int
    tags: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "field": self.field,
            "semanticMeaning": self.semantic_meaning,
            "importance": self.importance,
            "tags": list(self.tags),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FieldEnrichment":
        return cls(
            field=str(data["field"]),
            semantic_meaning=str(data.get("semanticMeaning", "")),
            importance=int(data["importance"]),
            tags=[str(tag) for tag in data.get("tags", [])],
        )


@dataclass(slots=True, frozen=True)
class CollectionSchema:
    """Unified schema of one collection."""

    collection_name: str
    fields: dict[str, FieldInfo]
    total_documents: int
    source: str = "sample"
    enrichment: Optional[list[FieldEnrichment]] = None

    def enrichment_for(self, path: str) -> Optional[FieldEnrichment]:
        """Return the enrichment record for a field path, if the model supplied one."""

        for record in self.enrichment or []:
            if record.field == path:
                return record
        return None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "collectionName": self.collection_name,
            "fields": {path: info.to_dict() for path, info in self.fields.items()},
            "totalDocuments": self.total_documents,
            "source": self.source,
        }
        if self.enrichment is not None:
            data["enrichment"] = [record.to_dict() for record in self.enrichment]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CollectionSchema":
        enrichment = data.get("enrichment")
        return cls(
            collection_name=data["collectionName"],
            fields={path: FieldInfo.from_dict(info) for path, info in data.get("fields", {}).items()},
            total_documents=int(data.get("totalDocuments", 0)),
            source=data.get("source", "sample"),
            enrichment=(
                [FieldEnrichment.from_dict(record) for record in enrichment]
                if isinstance(enrichment, list)
                else None
            ),
        )


@dataclass(slots=True, frozen=True)
class DatabaseSchema:
    """Schemas of every analysed collection, in discovery order."""

    database_name: str
    collections: list[CollectionSchema]

    def collection(self, name: str) -> Optional[CollectionSchema]:
        for schema in self.collections:
            if schema.collection_name == name:
                return schema
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "databaseName": self.database_name,
            "collections": [schema.to_dict() for schema in self.collections],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DatabaseSchema":
        return cls(
            database_name=data["databaseName"],
            collections=[CollectionSchema.from_dict(item) for item in data.get("collections", [])],
        )
