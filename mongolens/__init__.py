"""Schema inference, enrichment and query generation for MongoDB collections."""

__all__ = [
    "analyzer",
    "cache",
    "cli",
    "config",
    "enrich",
    "infer",
    "io",
    "llm",
    "models",
    "query",
    "schemas",
    "store",
    "strategies",
    "utils",
]
