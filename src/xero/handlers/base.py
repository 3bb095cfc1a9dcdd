"""Base class for Xero operation handler groups.

A handler group owns the handlers of one factory group (list, create,
update, delete, get). Handlers:
- Take normalized arguments and translate them to Xero requests
- Return the decoded Xero response unchanged
- Raise on failure; they never build envelopes themselves
"""

from abc import ABC, abstractmethod
from datetime import date, timedelta
from typing import Any, Optional
from urllib.parse import quote

from shared.models import (
    HandlerFactory,
    Operation,
    OperationDescriptor,
    OperationGroup,
    OperationHandler,
)
from xero.client import XeroClient


def compact(data: dict[str, Any]) -> dict[str, Any]:
    """Drop keys whose value is None."""
    return {key: value for key, value in data.items() if value is not None}


def today() -> str:
    return date.today().isoformat()


def days_from_today(days: int) -> str:
    return (date.today() + timedelta(days=days)).isoformat()


def to_line_item(item: dict[str, Any]) -> dict[str, Any]:
    """Map a normalized line item onto Xero's field names."""
    return compact({
        "Description": item.get("description"),
        "Quantity": item.get("quantity"),
        "UnitAmount": item.get("unitAmount"),
        "AccountCode": item.get("accountCode"),
        "TaxType": item.get("taxType"),
    })


def path_id(value: Any) -> str:
    """Percent-encode an identifier for use as one URL path segment."""
    return quote(str(value), safe="")


def contact_ref(contact_id: Optional[str]) -> Optional[dict[str, str]]:
    return {"ContactID": contact_id} if contact_id else None


class XeroHandlerGroup(ABC):
    """
    Base class for Xero handler groups.

    Each group:
    - Produces one factory per operation it implements
    - Shares a single XeroClient between its handlers
    - Is stateless apart from the client
    """

    group: OperationGroup

    def __init__(self, client: XeroClient) -> None:
        self.client = client

    @abstractmethod
    def handlers(self) -> dict[Operation, tuple[str, OperationHandler]]:
        """Map each operation to its (description, handler)."""

    def factories(self) -> list[HandlerFactory]:
        """One zero-argument descriptor factory per operation."""
        return [
            self._factory(operation, description, handler)
            for operation, (description, handler) in self.handlers().items()
        ]

    def _factory(
        self,
        operation: Operation,
        description: str,
        handler: OperationHandler
    ) -> HandlerFactory:
        def build() -> OperationDescriptor:
            return OperationDescriptor(
                name=operation.value,
                description=description,
                group=self.group,
                handler=handler,
            )
        return build
