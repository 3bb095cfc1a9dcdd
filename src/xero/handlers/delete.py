"""Delete operations."""

from typing import Any

from shared.models import Operation, OperationGroup, OperationHandler
from xero.handlers.base import XeroHandlerGroup, path_id


class DeleteHandlers(XeroHandlerGroup):
    """Handlers for `delete-*` operations."""

    group = OperationGroup.DELETE

    def handlers(self) -> dict[Operation, tuple[str, OperationHandler]]:
        return {
            Operation.DELETE_PAYROLL_TIMESHEET: (
                "Delete a draft payroll timesheet. Requires timesheetID",
                self.delete_payroll_timesheet),
        }

    async def delete_payroll_timesheet(self, args: dict[str, Any]) -> Any:
        return await self.client.delete(f"/Timesheets/{path_id(args['timesheetID'])}", api="payroll")
