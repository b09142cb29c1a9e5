"""Database context and natural-language query generation from a saved analysis."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional, Union

from .llm import LLMClient
from .models import DatabaseSchema
from .schemas import DATABASE_CONTEXT_SCHEMA, QUERY_RESULT_SCHEMA


logger = logging.getLogger(__name__)

SchemaLike = Union[DatabaseSchema, dict[str, Any]]

CONTEXT_INSTRUCTION = (
    "You analyse MongoDB schemas. Using only the collections and fields given, respond with a JSON object "
    "containing: schemaDescription (overall purpose of the database), relationships (list of strings "
    "describing links between collections), sampleQueries (list of useful questions), and collections "
    "(list of {name, description, fields: [{name, type, description}]}). Never invent fields."
)

QUERY_INSTRUCTION = (
    "You translate requests into MongoDB shell queries. Use only collections and fields present in the "
    "schema. Respond with a JSON object {\"mongoQuery\": <a single db.<collection>.find(...) or "
    "db.<collection>.aggregate([...]) string>, \"explanation\": <how the query answers the request>}."
)


@dataclass(slots=True, frozen=True)
class QueryResult:
    mongo_query: str
    explanation: str

    def to_dict(self) -> dict[str, Any]:
        return {"mongoQuery": self.mongo_query, "explanation": self.explanation}


def _schema_payload(schema: SchemaLike) -> dict[str, Any]:
    return schema.to_dict() if isinstance(schema, DatabaseSchema) else schema


def generate_context(schema: SchemaLike, llm: LLMClient) -> dict[str, Any]:
    """Ask the model for a prose overview of the database."""

    payload = _schema_payload(schema)
    prompt = {
        "messages": [
            {"role": "system", "content": CONTEXT_INSTRUCTION},
            {"role": "user", "content": json.dumps(payload, ensure_ascii=False)},
        ],
        "temperature": 0.5,
    }
    context = llm.complete_json(prompt, schema=DATABASE_CONTEXT_SCHEMA)
    logger.info("Generated context for database %s", payload.get("databaseName"))
    return context


def generate_query(
    question: str,
    schema: SchemaLike,
    llm: LLMClient,
    context: Optional[dict[str, Any]] = None,
) -> QueryResult:
    """Turn a natural-language request into a MongoDB query string.

    The query is returned as text for the caller to review; it is not run.
    """

    question = question.strip()
    if not question:
        raise ValueError("question must not be empty")

    grounding: dict[str, Any] = {"schema": _schema_payload(schema)}
    if context:
        grounding["context"] = context

    prompt = {
        "messages": [
            {"role": "system", "content": QUERY_INSTRUCTION},
            {"role": "system", "content": json.dumps(grounding, ensure_ascii=False)},
            {"role": "user", "content": question},
        ],
        "temperature": 0.2,
    }
    reply = llm.complete_json(prompt, schema=QUERY_RESULT_SCHEMA)
    return QueryResult(
        mongo_query=reply["mongoQuery"],
        explanation=str(reply.get("explanation", "")),
    )
