"""Deal repository: the keyed store the narrow tool operations read and write."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import Any

from dealroute.core.errors import DealNotFoundError, ToolValidationError
from dealroute.models.deal import Deal

# Fields a tool call may never overwrite through a generic update.
_PROTECTED_FIELDS = frozenset({"deal_number", "created_at"})


class DealRepository(ABC):
    """Get/update-by-key access to deal records."""

    @abstractmethod
    async def get(self, deal_number: str) -> Deal | None:
        """Get a deal by number, or ``None`` if it doesn't exist."""
        ...

    @abstractmethod
    async def update(
        self,
        deal_number: str,
        updates: Mapping[str, Any],
        *,
        modified_by: str | None = None,
    ) -> Deal:
        """Apply *updates* to a deal and return the stored result.

        Raises:
            DealNotFoundError: If the deal does not exist.
            ToolValidationError: If an update names an unknown or protected field.
        """
        ...

    @abstractmethod
    async def list_deals(self) -> list[Deal]:
        """List all deals."""
        ...

    async def require(self, deal_number: str) -> Deal:
        """Like :meth:`get` but raise ``DealNotFoundError`` when missing."""
        deal = await self.get(deal_number)
        if deal is None:
            raise DealNotFoundError(deal_number)
        return deal


class InMemoryDealRepository(DealRepository):
    """Dict-backed repository for development, demos, and tests."""

    def __init__(self, deals: Iterable[Deal] = ()) -> None:
        self._deals: dict[str, Deal] = {d.deal_number: d.model_copy(deep=True) for d in deals}

    async def get(self, deal_number: str) -> Deal | None:
        deal = self._deals.get(deal_number)
        return deal.model_copy(deep=True) if deal is not None else None

    async def update(
        self,
        deal_number: str,
        updates: Mapping[str, Any],
        *,
        modified_by: str | None = None,
    ) -> Deal:
        deal = self._deals.get(deal_number)
        if deal is None:
            raise DealNotFoundError(deal_number)
        bad = [k for k in updates if k in _PROTECTED_FIELDS or k not in Deal.model_fields]
        if bad:
            raise ToolValidationError(f"Cannot update deal fields: {', '.join(sorted(bad))}")
        data = {**deal.model_dump(), **updates, "updated_at": datetime.now(UTC)}
        if modified_by:
            data["last_modified_by"] = modified_by
        try:
            updated = Deal.model_validate(data)
        except ValueError as exc:
            raise ToolValidationError(str(exc)) from exc
        self._deals[deal_number] = updated
        return updated.model_copy(deep=True)

    async def list_deals(self) -> list[Deal]:
        return [d.model_copy(deep=True) for d in self._deals.values()]
