"""JSON schema definitions for validating structured model responses."""

from __future__ import annotations

FIELD_ENRICHMENT_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "field": {"type": "string"},
        "semanticMeaning": {"type": "string"},
        "importance": {"type": "integer", "minimum": 1, "maximum": 10},
        "tags": {
            "type": "array",
            "items": {"type": "string"},
        },
    },
    "required": ["field", "semanticMeaning", "importance", "tags"],
    "additionalProperties": True,
}

ENRICHMENT_RESPONSE_SCHEMA: dict[str, object] = {
    "anyOf": [
        {"type": "array", "items": FIELD_ENRICHMENT_SCHEMA},
        {
            "type": "object",
            "properties": {
                "fields": {"type": "array", "items": FIELD_ENRICHMENT_SCHEMA},
            },
            "required": ["fields"],
        },
    ]
}

DATABASE_CONTEXT_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "schemaDescription": {"type": "string"},
        "relationships": {"type": "array", "items": {"type": "string"}},
        "sampleQueries": {"type": "array", "items": {"type": "string"}},
        "collections": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "description": {"type": "string"},
                    "fields": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "name": {"type": "string"},
                                "type": {"type": "string"},
                                "description": {"type": "string"},
                            },
                            "required": ["name"],
                        },
                    },
                },
                "required": ["name"],
                "additionalProperties": True,
            },
        },
    },
    "required": ["schemaDescription"],
    "additionalProperties": True,
}

QUERY_RESULT_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "mongoQuery": {"type": "string"},
        "explanation": {"type": "string"},
    },
    "required": ["mongoQuery"],
    "additionalProperties": True,
}
