"""Get operations: single-record payroll lookups."""

from typing import Any

from shared.models import Operation, OperationGroup, OperationHandler
from xero.handlers.base import XeroHandlerGroup, path_id


class GetHandlers(XeroHandlerGroup):
    """Handlers for `get-*` operations."""

    group = OperationGroup.GET

    def handlers(self) -> dict[Operation, tuple[str, OperationHandler]]:
        return {
            Operation.GET_PAYROLL_TIMESHEET: (
                "Retrieve one payroll timesheet with its lines. Requires timesheetID",
                self.get_payroll_timesheet),
        }

    async def get_payroll_timesheet(self, args: dict[str, Any]) -> Any:
        return await self.client.get(f"/Timesheets/{path_id(args['timesheetID'])}", api="payroll")
