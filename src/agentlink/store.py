"""Persistence for the ``providerConfig`` record.

Defines the `ConfigStore` protocol plus an in-memory store and a JSON-file
store. Stores deal in plain JSON-compatible dicts; validation happens in
``agentlink.config``.
"""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    import os

CONFIG_KEY = "providerConfig"


class ConfigStore(Protocol):
    """Protocol for loading and saving the provider config record."""

    async def load(self) -> dict[str, Any] | None:
        """Return the stored record, or None when nothing was saved."""
        ...

    async def save(self, record: dict[str, Any]) -> None:
        """Replace the stored record."""
        ...


class InMemoryConfigStore:
    """Process-local store, handy for tests and embedded use."""

    def __init__(self, record: dict[str, Any] | None = None) -> None:
        self._record = copy.deepcopy(record) if record is not None else None
        self.saves = 0

    async def load(self) -> dict[str, Any] | None:
        return copy.deepcopy(self._record)

    async def save(self, record: dict[str, Any]) -> None:
        self._record = copy.deepcopy(record)
        self.saves += 1


class JSONConfigStore:
    """Single JSON file holding ``{"providerConfig": {...}}``.

    Uses copy-on-write: write to a temp file and rename for atomicity.
    Read errors propagate so the registry can report them.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        """Initialize the store pointing at a JSON file path."""
        self._path = Path(path)

    async def load(self) -> dict[str, Any] | None:
        """Load the record; a missing file means nothing was saved yet."""
        if not self._path.exists():
            return None
        data = json.loads(self._path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"{self._path} does not hold a JSON object")
        record = data.get(CONFIG_KEY)
        return record if isinstance(record, dict) else None

    async def save(self, record: dict[str, Any]) -> None:
        """Persist the record atomically via temp file rename."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps({CONFIG_KEY: record}, indent=2), encoding="utf-8")
        tmp.replace(self._path)
