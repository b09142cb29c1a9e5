"""Orchestrates schema detection, unification and enrichment per collection."""

from __future__ import annotations

import enum
import logging
from dataclasses import replace
from typing import Any, Callable, Optional, Sequence

from pymongo import MongoClient

from .config import Settings
from .enrich import EnrichmentError, FieldEnricher
from .models import CollectionSchema, DatabaseSchema
from .strategies import SchemaStrategy, default_strategies


logger = logging.getLogger(__name__)


class AnalysisStage(str, enum.Enum):
    NOT_STARTED = "not_started"
    DECLARED_SCHEMA = "declared"
    VALIDATOR_RULES = "validator"
    SAMPLING = "sample"
    UNIFIED = "unified"
    ENRICHED = "enriched"


_STRATEGY_STAGES = {
    "declared": AnalysisStage.DECLARED_SCHEMA,
    "validator": AnalysisStage.VALIDATOR_RULES,
    "sample": AnalysisStage.SAMPLING,
}


class AnalysisError(RuntimeError):
    """Raised when a collection cannot be analysed; names the failing stage."""

    def __init__(self, message: str, *, collection_name: str, stage: AnalysisStage) -> None:
        super().__init__(message)
        self.collection_name = collection_name
        self.stage = stage


class SchemaAnalyzer:
    """Run the detection strategies in order and optionally enrich the result."""

    def __init__(
        self,
        strategies: Optional[Sequence[SchemaStrategy]] = None,
        enricher: Optional[FieldEnricher] = None,
    ) -> None:
        self.strategies = list(strategies) if strategies is not None else default_strategies()
        self.enricher = enricher

    def analyze_collection(self, collection: Any, collection_name: str) -> CollectionSchema:
        """Return the structural schema from the first strategy that applies.

        Declared sources that fail or are absent fall through to the next
        strategy; sampling is the last resort and its failures are raised.
        """

        _log_stage(collection_name, AnalysisStage.NOT_STARTED)
        for position, strategy in enumerate(self.strategies):
            stage = _STRATEGY_STAGES.get(strategy.name, AnalysisStage.SAMPLING)
            is_last = position == len(self.strategies) - 1
            _log_stage(collection_name, stage)
            try:
                schema = strategy.try_extract(collection, collection_name)
            except Exception as error:
                if is_last:
                    raise AnalysisError(
                        f"Schema detection failed for {collection_name}: {error}",
                        collection_name=collection_name,
                        stage=stage,
                    ) from error
                logger.debug("%s: %s strategy unavailable: %s", collection_name, strategy.name, error)
                continue
            if schema is None:
                continue

            if stage is not AnalysisStage.SAMPLING:
                schema = replace(schema, total_documents=self._count(collection, collection_name, stage))
            _log_stage(collection_name, AnalysisStage.UNIFIED)
            return schema

        raise AnalysisError(
            f"No schema strategy applied to {collection_name}",
            collection_name=collection_name,
            stage=AnalysisStage.SAMPLING,
        )

    def enrich_collection(self, schema: CollectionSchema) -> CollectionSchema:
        """Return a copy of ``schema`` carrying the model's field annotations."""

        if self.enricher is None:
            return schema
        try:
            records = self.enricher.enrich(schema.fields, schema.collection_name)
        except EnrichmentError as error:
            raise AnalysisError(
                str(error),
                collection_name=schema.collection_name,
                stage=AnalysisStage.ENRICHED,
            ) from error
        _log_stage(schema.collection_name, AnalysisStage.ENRICHED)
        return replace(schema, enrichment=records)

    def analyze_database(
        self,
        database: Any,
        collection_names: Optional[Sequence[str]] = None,
    ) -> DatabaseSchema:
        """Analyse collections one at a time; any failure aborts the run."""

        names = list(collection_names) if collection_names else discover_collections(database)
        schemas: list[CollectionSchema] = []
        for name in names:
            logger.info("Analyzing collection %s", name)
            schema = self.analyze_collection(database[name], name)
            schema = self.enrich_collection(schema)
            logger.info(
                "Collection %s: %d fields, %d documents (%s)",
                name,
                len(schema.fields),
                schema.total_documents,
                schema.source,
            )
            schemas.append(schema)
        return DatabaseSchema(database_name=database.name, collections=schemas)

    def _count(self, collection: Any, collection_name: str, stage: AnalysisStage) -> int:
        try:
            return int(collection.count_documents({}))
        except Exception as error:
            raise AnalysisError(
                f"Counting documents failed for {collection_name}: {error}",
                collection_name=collection_name,
                stage=stage,
            ) from error


def _log_stage(collection_name: str, stage: AnalysisStage) -> None:
    logger.debug("%s: %s", collection_name, stage.value)


def discover_collections(database: Any) -> list[str]:
    """Collection names in server order, without ``system.`` collections."""

    return [name for name in database.list_collection_names() if not name.startswith("system.")]


def analyze_database(
    settings: Settings,
    *,
    enricher: Optional[FieldEnricher] = None,
    client_factory: Callable[[str], Any] = MongoClient,
) -> DatabaseSchema:
    """Connect using ``settings`` and analyse the configured database."""

    uri = settings.require_uri()
    analyzer = SchemaAnalyzer(
        strategies=default_strategies(settings.models, settings.sample_size),
        enricher=enricher,
    )
    client = client_factory(uri)
    try:
        if settings.database_name:
            database = client[settings.database_name]
        else:
            database = client.get_default_database()
        return analyzer.analyze_database(database, settings.collections)
    finally:
        client.close()
