"""Xero operation handlers.

Handlers are grouped the way the operations are named: list, create,
update, delete and get. `all_factories` returns every group's factories in
that order; it is what the operation registry is built from.
"""

from xero.client import XeroClient
from xero.handlers.base import HandlerFactory, XeroHandlerGroup
from xero.handlers.create import CreateHandlers
from xero.handlers.delete import DeleteHandlers
from xero.handlers.get import GetHandlers
from xero.handlers.listing import ListHandlers
from xero.handlers.update import UpdateHandlers

HANDLER_GROUPS: list[type[XeroHandlerGroup]] = [
    ListHandlers,
    CreateHandlers,
    UpdateHandlers,
    DeleteHandlers,
    GetHandlers,
]


def all_factories(client: XeroClient) -> list[HandlerFactory]:
    """Factories for every supported operation, bound to one client."""
    factories: list[HandlerFactory] = []
    for group_cls in HANDLER_GROUPS:
        factories.extend(group_cls(client).factories())
    return factories


__all__ = [
    "HANDLER_GROUPS",
    "CreateHandlers",
    "DeleteHandlers",
    "GetHandlers",
    "ListHandlers",
    "UpdateHandlers",
    "all_factories",
]
