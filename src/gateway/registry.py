"""Operation Registry for the gateway.

Maps operation names to their handlers. The registry is populated once at
startup from the handler factory groups and is read-only afterwards.
"""

from enum import Enum
from typing import Iterable, Optional

from shared.logging import get_logger
from shared.models import (
    HandlerFactory,
    OperationDescriptor,
    OperationGroup,
    OperationHandler,
)
from gateway.errors import UnknownOperation

logger = get_logger(__name__)


class OperationRegistry:
    """
    Central registry for all gateway operations.

    Responsibilities:
    - Build the name -> handler map from handler factories
    - Resolve operations by name
    - Describe the registered operations for the gateway tool description
    """

    def __init__(self) -> None:
        self._operations: dict[str, OperationDescriptor] = {}
        self._sealed = False

    @property
    def sealed(self) -> bool:
        return self._sealed

    def register(self, factories: Iterable[HandlerFactory]) -> None:
        """
        Build every descriptor and seal the registry.

        Args:
            factories: Zero-argument callables returning OperationDescriptor

        Raises:
            ValueError: If two factories produce the same operation name
            RuntimeError: If the registry was already initialized
        """
        if self._sealed:
            raise RuntimeError("Operation registry is already initialized")

        operations: dict[str, OperationDescriptor] = {}
        for factory in factories:
            descriptor = factory()
            if descriptor.name in operations:
                raise ValueError(f"Operation '{descriptor.name}' is already registered")
            operations[descriptor.name] = descriptor

        # Published in one step so no partial registry is ever visible
        self._operations = operations
        self._sealed = True

        logger.info(
            "Operations registered",
            operation_count=len(operations),
            groups=self.count_by_group(),
        )

    def assert_complete(self, operations: type[Enum]) -> None:
        """
        Check that every member of an operation enum has a handler.

        Raises:
            ValueError: Listing the operations with no registered handler
        """
        missing = [op.value for op in operations if op.value not in self._operations]
        if missing:
            raise ValueError(f"No handler registered for: {', '.join(missing)}")

    def resolve(self, name: str) -> OperationHandler:
        """
        Get the handler for an operation.

        Raises:
            UnknownOperation: If no operation with that name is registered
        """
        descriptor = self._operations.get(name)
        if descriptor is None:
            raise UnknownOperation(name)
        return descriptor.handler

    def get(self, name: str) -> Optional[OperationDescriptor]:
        """Get an operation descriptor by name."""
        return self._operations.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._operations

    def __len__(self) -> int:
        return len(self._operations)

    def names(self) -> list[str]:
        """Registered operation names in registration order."""
        return list(self._operations)

    def list_operations(self, group: Optional[OperationGroup] = None) -> list[OperationDescriptor]:
        """List registered operations, optionally filtered by group."""
        descriptors = list(self._operations.values())
        if group:
            descriptors = [d for d in descriptors if d.group == group]
        return descriptors

    def count_by_group(self) -> dict[str, int]:
        """Get count of operations per factory group."""
        counts: dict[str, int] = {}
        for descriptor in self._operations.values():
            counts[descriptor.group.value] = counts.get(descriptor.group.value, 0) + 1
        return counts

    def describe(self) -> str:
        """One line per operation: `• name: description`."""
        return "\n".join(
            f"• {d.name}: {d.description}" for d in self._operations.values()
        )

    def clear(self) -> None:
        """Drop all operations. Used on shutdown and in tests."""
        self._operations = {}
        self._sealed = False
        logger.debug("Operation registry cleared")
