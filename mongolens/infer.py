"""Schema inference over sampled MongoDB documents."""

from __future__ import annotations

import datetime
import decimal
import logging
import re
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Optional, Sequence

from bson import Decimal128, ObjectId

from .models import CollectionSchema, FieldInfo


logger = logging.getLogger(__name__)

ID_FIELD = "_id"
OBJECT_ID_LENGTH = 12
MAX_ENUM_VALUES = 10
ENUM_RATIO = 0.5
ENUM_RATIO_MIN_SAMPLE = 20

_OID_HEX_REGEX = re.compile(r"^[0-9a-fA-F]{24}$")


def _is_byte_sequence(value: Any, length: int) -> bool:
    if isinstance(value, (bytes, bytearray)):
        return len(value) == length
    if isinstance(value, (list, tuple)):
        return len(value) == length and all(
            isinstance(item, int) and not isinstance(item, bool) and 0 <= item <= 255 for item in value
        )
    return False


def is_object_id(value: Any) -> bool:
    """Return True when ``value`` is a 12-byte document identifier.

    Native ``bson.ObjectId`` instances are recognised directly. Identifiers
    serialised by other drivers are recognised by shape: a mapping holding a
    12-element ``buffer``, a mapping tagged ``_bsontype: ObjectID``, or a
    canonical extended-JSON ``{"$oid": "<24 hex>"}`` mapping.
    """

    if isinstance(value, ObjectId):
        return True
    if not isinstance(value, Mapping):
        return False
    if _is_byte_sequence(value.get("buffer"), OBJECT_ID_LENGTH):
        return True
    if value.get("_bsontype") in ("ObjectID", "ObjectId"):
        return True
    oid = value.get("$oid")
    return len(value) == 1 and isinstance(oid, str) and bool(_OID_HEX_REGEX.match(oid))


def _is_identifier_buffer(key: Any, value: Any) -> bool:
    return key == "buffer" and _is_byte_sequence(value, OBJECT_ID_LENGTH)


def _distinct(values: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(values))


def is_enum(values: Sequence[str], *, sample_size: Optional[int] = None) -> bool:
    """Decide whether observed string values form a bounded enumeration.

    At most ``MAX_ENUM_VALUES`` distinct values and at least one repeat are
    required. Given a ``sample_size`` of ``ENUM_RATIO_MIN_SAMPLE`` documents or
    more, the distinct count must also stay below half the sample.
    """

    occurrences = list(values)
    distinct = set(occurrences)
    if not 1 <= len(distinct) <= MAX_ENUM_VALUES:
        return False
    if len(distinct) >= len(occurrences):
        return False
    if sample_size is not None and sample_size >= ENUM_RATIO_MIN_SAMPLE:
        return len(distinct) < ENUM_RATIO * sample_size
    return True


def infer_type(value: Any) -> FieldInfo:
    """Infer the field type of a single value, recursing into nested values.

    Arrays are typed from their first element only; mixed-type arrays report
    whatever that element is.
    """

    if value is None:
        return FieldInfo("null")
    if is_object_id(value):
        return FieldInfo("ObjectId")
    if isinstance(value, (list, tuple)):
        if not value:
            return FieldInfo("array", items=FieldInfo("unknown"))
        if all(isinstance(item, str) for item in value) and is_enum(value):
            return FieldInfo("enum", values=_distinct(value))
        return FieldInfo("array", items=infer_type(value[0]))
    if isinstance(value, (datetime.datetime, datetime.date)):
        return FieldInfo("date")
    if isinstance(value, (bytes, bytearray, uuid.UUID)):
        return FieldInfo("binary")
    if isinstance(value, Mapping):
        properties = {
            str(key): infer_type(child)
            for key, child in value.items()
            if not _is_identifier_buffer(key, child)
        }
        return FieldInfo("object", properties=properties)
    if isinstance(value, bool):
        return FieldInfo("boolean")
    if isinstance(value, (int, float, decimal.Decimal, Decimal128)):
        return FieldInfo("number")
    if isinstance(value, str):
        return FieldInfo("string")
    return FieldInfo("unknown")


@dataclass(slots=True)
class PathObservation:
    """Every type and string value seen at one dotted path.

    ``segments`` holds the raw keys the path was built from, since keys may
    themselves contain dots.
    """

    segments: tuple[str, ...] = ()
    types: list[FieldInfo] = field(default_factory=list)
    strings: list[str] = field(default_factory=list)

    def add(self, value: Any) -> FieldInfo:
        info = infer_type(value)
        self.types.append(info)
        if isinstance(value, str):
            self.strings.append(value)
        return info

    def only_strings(self) -> bool:
        return all(info.type in ("string", "null") for info in self.types)

    def first_type(self) -> FieldInfo:
        for info in self.types:
            if info.type != "null":
                return info
        return self.types[0] if self.types else FieldInfo("unknown")


class FieldObservations:
    """Accumulator of path observations for one analysis pass."""

    def __init__(self) -> None:
        self.paths: dict[str, PathObservation] = {}
        self.documents = 0

    @classmethod
    def from_fields(cls, fields: Mapping[str, FieldInfo]) -> "FieldObservations":
        """Seed an accumulator with one observation per already-merged field."""

        observations = cls()
        for path, info in fields.items():
            observations.paths[path] = PathObservation(segments=tuple(path.split(".")), types=[info])
        return observations

    def __contains__(self, path: object) -> bool:
        return path in self.paths

    def __iter__(self) -> Iterator[str]:
        return iter(self.paths)

    def __len__(self) -> int:
        return len(self.paths)

    def items(self) -> Iterable[tuple[str, PathObservation]]:
        return self.paths.items()

    def record(self, path: str, value: Any, segments: Optional[tuple[str, ...]] = None) -> FieldInfo:
        observation = self.paths.get(path)
        if observation is None:
            observation = PathObservation(segments=segments or tuple(path.split(".")))
            self.paths[path] = observation
        return observation.add(value)

    def walk(self, document: Mapping[str, Any]) -> None:
        """Record the type of every field path reachable in ``document``.

        Nested documents extend the path with ``.child``; array elements are
        visited at the array's own path, so element shapes merge under it.
        """

        self.documents += 1
        stack: list[tuple[tuple[str, ...], Any, bool]] = [
            ((str(key),), value, True)
            for key, value in reversed(list(document.items()))
            if key != ID_FIELD
        ]
        while stack:
            segments, value, direct = stack.pop()
            if direct:
                self.record(".".join(segments), value, segments)
            stack.extend(reversed(_children(segments, value)))


def _children(segments: tuple[str, ...], value: Any) -> list[tuple[tuple[str, ...], Any, bool]]:
    if value is None or is_object_id(value):
        return []
    if isinstance(value, Mapping):
        return [
            ((*segments, str(key)), child, True)
            for key, child in value.items()
            if not _is_identifier_buffer(key, child)
        ]
    if isinstance(value, (list, tuple)):
        return [(segments, item, False) for item in value]
    return []


def walk_document(
    document: Mapping[str, Any],
    observations: Optional[FieldObservations] = None,
) -> FieldObservations:
    """Walk one document into ``observations`` (a fresh accumulator if omitted)."""

    if observations is None:
        observations = FieldObservations()
    observations.walk(document)
    return observations


def resolve_path(document: Any, path: str | Sequence[str]) -> list[Any]:
    """Resolve a path, returning every non-null value it reaches.

    ``path`` is either a dotted string or the sequence of raw keys; pass the
    keys when a key contains a dot. Arrays met along the way fan out over
    their elements. A missing or null segment yields an empty list rather
    than an error.
    """

    segments = path.split(".") if isinstance(path, str) else path
    current = [document]
    for segment in segments:
        resolved: list[Any] = []
        for candidate in current:
            members = candidate if isinstance(candidate, (list, tuple)) else [candidate]
            for member in members:
                if not isinstance(member, Mapping) or is_object_id(member):
                    continue
                child = member.get(segment)
                if child is not None:
                    resolved.append(child)
        if not resolved:
            return []
        current = resolved
    return current


def is_present(document: Any, path: str | Sequence[str]) -> bool:
    return bool(resolve_path(document, path))


def merge_types(
    observations: FieldObservations,
    sample_size: Optional[int] = None,
) -> dict[str, FieldInfo]:
    """Collapse each path's observations into a single field type.

    String-only paths are checked against the enum rule; every other path
    keeps its first non-null observation.
    """

    merged: dict[str, FieldInfo] = {}
    for path, observation in observations.items():
        if observation.strings and observation.only_strings():
            if is_enum(observation.strings, sample_size=sample_size):
                merged[path] = FieldInfo("enum", values=_distinct(observation.strings))
                continue
        merged[path] = observation.first_type()
    return merged


def unify(
    observations: FieldObservations,
    documents: Sequence[Mapping[str, Any]],
    total_documents: int,
    collection_name: str,
) -> CollectionSchema:
    """Build the collection schema from a walked document sample."""

    merged = merge_types(observations, sample_size=len(documents))
    fields = {
        path: info.with_required(
            all(is_present(document, observations.paths[path].segments) for document in documents)
        )
        for path, info in merged.items()
    }
    logger.debug(
        "Unified %d field paths for %s from %d sampled documents",
        len(fields),
        collection_name,
        len(documents),
    )
    return CollectionSchema(
        collection_name=collection_name,
        fields=fields,
        total_documents=total_documents,
        source="sample",
    )
