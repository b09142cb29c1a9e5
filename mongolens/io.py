"""Read collection exports (JSON array, JSON object or JSONL) as a document source."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterator, Optional, TextIO

from bson import json_util

_FORMATS = {"json_array", "jsonl", "json_object"}


class JSONCollection:
    """Collection-like view over an exported file.

    Documents may use MongoDB extended JSON (``$oid``, ``$date``, ...), which
    is decoded into native BSON types. Only empty filters are supported.
    """

    def __init__(self, path: Path, name: Optional[str] = None, format: Optional[str] = None) -> None:
        if format is not None and format not in _FORMATS:
            raise ValueError("format must be 'json_array', 'json_object', 'jsonl', or None")
        self.path = Path(path)
        self.name = name or self.path.stem
        self.format = format

    def find(self, filter: Optional[dict[str, Any]] = None, limit: int = 0) -> Iterator[dict[str, Any]]:
        """Yield documents in file order, at most ``limit`` of them when positive."""

        _require_empty(filter)
        for count, document in enumerate(self._iter_documents(), start=1):
            yield document
            if limit > 0 and count >= limit:
                return

    def count_documents(self, filter: Optional[dict[str, Any]] = None) -> int:
        _require_empty(filter)
        return sum(1 for _ in self._iter_documents())

    def options(self) -> dict[str, Any]:
        return {}

    def open(self) -> TextIO:
        return self.path.open("r", encoding="utf-8")

    def _iter_documents(self) -> Iterator[dict[str, Any]]:
        if not self.path.exists():
            raise FileNotFoundError(self.path)

        detected = self._detect_format()
        if detected == "jsonl":
            with self.open() as handle:
                for line in handle:
                    line = line.strip()
                    if not line:
                        continue
                    yield _as_document(json_util.loads(line))
            return

        if detected == "json_object":
            with self.open() as handle:
                yield _as_document(json_util.loads(handle.read()))
            return

        yield from self._iter_json_array()

    def _detect_format(self) -> str:
        if self.format:
            return self.format

        if self.path.suffix.lower() in {".jsonl", ".ndjson"}:
            return "jsonl"

        with self.open() as handle:
            while True:
                char = handle.read(1)
                if not char:
                    break
                if char.isspace():
                    continue
                if char == "[":
                    return "json_array"
                if char == "{":
                    return "json_object"
        raise ValueError(f"Unable to detect JSON format of {self.path}")

    def _iter_json_array(self) -> Iterator[dict[str, Any]]:
        decoder = json.JSONDecoder(object_hook=json_util.object_hook)
        with self.open() as handle:
            buffer = ""
            in_array = False
            eof = False

            while not eof:
                data = handle.read(65536)
                if not data:
                    eof = True
                buffer += data
                idx = 0

                while True:
                    idx = _consume_whitespace(buffer, idx)
                    if idx >= len(buffer):
                        break

                    if not in_array:
                        if buffer[idx] != "[":
                            raise ValueError("Expected JSON array start")
                        in_array = True
                        idx += 1
                        continue

                    if buffer[idx] == "]":
                        return

                    try:
                        obj, end = decoder.raw_decode(buffer, idx)
                    except json.JSONDecodeError:
                        if eof:
                            raise
                        break
                    yield _as_document(obj)
                    idx = _consume_whitespace(buffer, end)
                    if idx < len(buffer) and buffer[idx] == ",":
                        idx += 1

                buffer = buffer[idx:]


def _as_document(value: Any) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise ValueError("Exported documents must be JSON objects")
    return value


def _require_empty(filter: Optional[dict[str, Any]]) -> None:
    if filter:
        raise ValueError("JSONCollection only supports an empty filter")


def _consume_whitespace(buffer: str, idx: int) -> int:
    while idx < len(buffer) and buffer[idx].isspace():
        idx += 1
    return idx
