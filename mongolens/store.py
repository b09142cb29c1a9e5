"""Key-value store of JSON artifacts on disk."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Optional

_UNSAFE_KEY_REGEX = re.compile(r"[^A-Za-z0-9._-]+")


class ArtifactStore:
    """One JSON file per key under a directory, always written whole."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory).expanduser()

    def path_for(self, key: str) -> Path:
        safe = _UNSAFE_KEY_REGEX.sub("_", key).strip("._")
        if not safe:
            raise ValueError(f"Invalid artifact key: {key!r}")
        return self.directory / f"{safe}.json"

    def save(self, key: str, data: Any) -> Path:
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
        return path

    def load(self, key: str) -> Optional[Any]:
        path = self.path_for(key)
        if not path.exists():
            return None
        return json.loads(path.read_text(encoding="utf-8"))
