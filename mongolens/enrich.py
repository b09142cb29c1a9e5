"""Semantic enrichment of inferred fields through the language model."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

import httpx

from .llm import LLMClient, LLMResponseError
from .models import FieldEnrichment, FieldInfo
from .schemas import ENRICHMENT_RESPONSE_SCHEMA


logger = logging.getLogger(__name__)

ENRICHMENT_INSTRUCTION = (
    "You document MongoDB collections for engineers who write queries against them. "
    "You receive a collection name and a map of dotted field paths to inferred types. "
    "Respond with a JSON object {\"fields\": [...]} holding exactly one record per field path: "
    "{\"field\": <the path, copied exactly>, \"semanticMeaning\": <one sentence on what the field stores>, "
    "\"importance\": <integer 1-10 for how often queries will need it>, \"tags\": [<short lowercase labels>]}. "
    "Do not invent fields that are not in the map."
)


class EnrichmentError(RuntimeError):
    """Raised when a collection's fields cannot be enriched."""

    def __init__(self, message: str, *, collection_name: str) -> None:
        super().__init__(message)
        self.collection_name = collection_name


class FieldEnricher:
    """Ask the language model to annotate each field of a collection."""

    def __init__(self, llm: LLMClient, *, system_instruction: str = ENRICHMENT_INSTRUCTION) -> None:
        self.llm = llm
        self.system_instruction = system_instruction

    def build_prompt(self, fields: Mapping[str, FieldInfo], collection_name: str) -> dict[str, Any]:
        return {
            "messages": [
                {"role": "system", "content": self.system_instruction},
                {
                    "role": "user",
                    "content": json.dumps(
                        {
                            "collectionName": collection_name,
                            "fields": {path: info.to_dict() for path, info in fields.items()},
                        },
                        ensure_ascii=False,
                    ),
                },
            ],
            "temperature": 0.2,
        }

    def enrich(self, fields: Mapping[str, FieldInfo], collection_name: str) -> list[FieldEnrichment]:
        """Return enrichment records for ``fields``, in field order.

        Records naming unknown fields are dropped. Fields the model skipped
        get no record at all.
        """

        if not fields:
            return []

        try:
            reply = self.llm.complete_json(
                self.build_prompt(fields, collection_name),
                schema=ENRICHMENT_RESPONSE_SCHEMA,
            )
        except (LLMResponseError, httpx.HTTPError) as error:
            logger.error("Field enrichment failed for %s: %s", collection_name, error)
            raise EnrichmentError(
                f"Field enrichment failed for {collection_name}: {error}",
                collection_name=collection_name,
            ) from error

        records = reply["fields"] if isinstance(reply, dict) else reply
        by_field: dict[str, FieldEnrichment] = {}
        for record in records:
            name = record["field"]
            if name not in fields:
                logger.warning("Dropping enrichment for unknown field %s.%s", collection_name, name)
                continue
            by_field.setdefault(name, FieldEnrichment.from_dict(record))

        missing = [path for path in fields if path not in by_field]
        if missing:
            logger.info(
                "No enrichment returned for %d field(s) of %s: %s",
                len(missing),
                collection_name,
                ", ".join(missing),
            )

        return [by_field[path] for path in fields if path in by_field]
