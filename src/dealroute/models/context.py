"""Versioned free-form key/value map used for workflow and thread context."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field


class ContextMap(BaseModel):
    """Free-form context with an explicit merge contract.

    Merging is shallow: top-level keys from the update overwrite existing
    keys, nested values are replaced rather than merged. Every merge that
    carries at least one key produces a copy with ``version`` bumped by one;
    the original is never modified.
    """

    values: dict[str, Any] = Field(default_factory=dict)
    version: int = 0

    @classmethod
    def of(cls, values: Mapping[str, Any] | None = None) -> ContextMap:
        return cls(values=dict(values or {}))

    def merged(self, updates: Mapping[str, Any] | None) -> ContextMap:
        """Return a copy with *updates* shallow-merged over the current values."""
        if not updates:
            return self
        return ContextMap(values={**self.values, **updates}, version=self.version + 1)

    def get(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)

    def __contains__(self, key: object) -> bool:
        return key in self.values

    def __len__(self) -> int:
        return len(self.values)
