"""Persisted build state on top of a JSON key/value property store."""
from __future__ import annotations

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from ..common.errors import ConfigurationError
from .tables import FIRST_DATA_ROW


LOGGER = logging.getLogger("orderrecon.storage")


class PropertyStore:
    """String key/value store kept in a single JSON file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        text = self.path.read_text(encoding="utf-8")
        if not text.strip():
            return {}
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Property store {self.path} is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigurationError(f"Property store {self.path} must hold a JSON object")
        return {str(k): str(v) for k, v in data.items()}

    def _write(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
        tmp_path.replace(self.path)

    def get_property(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set_property(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def delete_property(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)


class BuildPhase(str, Enum):
    NOT_STARTED = "not_started"
    PLATFORM_A = "platform_a"
    PLATFORM_B = "platform_b"
    DONE = "done"


class BuildState(BaseModel):
    """Resume point of an in-progress build.

    ``row_cursor`` is the next raw row to read and ``out_row`` the next
    output row to write, both in sheet row numbers (data starts at row 2).
    Only the two scanning phases are ever persisted.
    """

    phase: BuildPhase = BuildPhase.PLATFORM_A
    row_cursor: int = Field(FIRST_DATA_ROW, ge=FIRST_DATA_ROW)
    out_row: int = Field(FIRST_DATA_ROW, ge=FIRST_DATA_ROW)
    excluded_count: int = Field(0, ge=0)
    written_count: int = Field(0, ge=0)
    last_order_key: str = ""
    totaled_order_keys: List[str] = Field(default_factory=list)
    excluded_order_ids: List[str] = Field(default_factory=list)

    @field_validator("phase")
    @classmethod
    def validate_phase(cls, v):
        if v not in (BuildPhase.PLATFORM_A, BuildPhase.PLATFORM_B):
            raise ValueError(f"phase {v.value!r} is not a resumable build phase")
        return v


class BuildStateRepository:
    """Load/save/delete one BuildState under a fixed property key."""

    def __init__(self, store: PropertyStore, key: str) -> None:
        self.store = store
        self.key = key

    def load(self) -> Optional[BuildState]:
        raw = self.store.get_property(self.key)
        if not raw:
            return None
        try:
            return BuildState.model_validate_json(raw)
        except ValidationError as exc:
            LOGGER.warning("Discarding unreadable build state under %s: %s", self.key, exc)
            return None

    def save(self, state: BuildState) -> None:
        self.store.set_property(self.key, state.model_dump_json())

    def delete(self) -> None:
        self.store.delete_property(self.key)
