"""List operations: read-only queries against accounting and payroll."""

from typing import Any

from shared.models import Operation, OperationGroup, OperationHandler
from xero.handlers.base import XeroHandlerGroup, path_id


class ListHandlers(XeroHandlerGroup):
    """Handlers for every `list-*` operation."""

    group = OperationGroup.LIST

    def handlers(self) -> dict[Operation, tuple[str, OperationHandler]]:
        return {
            Operation.LIST_ACCOUNTS: (
                "Retrieve the chart of accounts", self.list_accounts),
            Operation.LIST_CONTACTS: (
                "List contacts (customers and suppliers). Optional: page, name (search), includeArchived",
                self.list_contacts),
            Operation.LIST_INVOICES: (
                "List invoices. Optional: page, status, contactID", self.list_invoices),
            Operation.LIST_ORGANISATION_DETAILS: (
                "Retrieve details about the Xero organisation", self.list_organisation_details),
            Operation.LIST_ITEMS: (
                "List products and services", self.list_items),
            Operation.LIST_PAYMENTS: (
                "List payments, or one payment by paymentID. Optional: page", self.list_payments),
            Operation.LIST_CREDIT_NOTES: (
                "List credit notes. Optional: page", self.list_credit_notes),
            Operation.LIST_QUOTES: (
                "List quotes. Optional: page, contactID", self.list_quotes),
            Operation.LIST_BANK_TRANSACTIONS: (
                "List bank transactions. Optional: page", self.list_bank_transactions),
            Operation.LIST_MANUAL_JOURNALS: (
                "List manual journals. Optional: page", self.list_manual_journals),
            Operation.LIST_TAX_RATES: (
                "List tax rates", self.list_tax_rates),
            Operation.LIST_TRACKING_CATEGORIES: (
                "List tracking categories and their options. Optional: includeArchived",
                self.list_tracking_categories),
            Operation.LIST_TRIAL_BALANCE: (
                "Trial balance report. Optional: date", self.list_trial_balance),
            Operation.LIST_PROFIT_AND_LOSS: (
                "Profit and loss report. Optional: fromDate, toDate", self.list_profit_and_loss),
            Operation.LIST_BALANCE_SHEET: (
                "Balance sheet report. Optional: date", self.list_balance_sheet),
            Operation.LIST_AGED_RECEIVABLES: (
                "Aged receivables for a contact. Requires contactID", self.list_aged_receivables),
            Operation.LIST_AGED_PAYABLES: (
                "Aged payables for a contact. Requires contactID", self.list_aged_payables),
            Operation.LIST_CONTACT_GROUPS: (
                "List contact groups", self.list_contact_groups),
            Operation.LIST_PAYROLL_EMPLOYEES: (
                "List payroll employees. Optional: page", self.list_payroll_employees),
            Operation.LIST_PAYROLL_TIMESHEETS: (
                "List payroll timesheets. Optional: page, employeeID, status",
                self.list_payroll_timesheets),
            Operation.LIST_PAYROLL_LEAVE: (
                "List leave records for an employee. Requires employeeID", self.list_payroll_leave),
            Operation.LIST_PAYROLL_LEAVE_TYPES: (
                "List payroll leave types", self.list_payroll_leave_types),
            Operation.LIST_PAYROLL_LEAVE_BALANCES: (
                "Leave balances for an employee. Requires employeeID",
                self.list_payroll_leave_balances),
            Operation.LIST_PAYROLL_LEAVE_PERIODS: (
                "Leave periods for an employee. Requires employeeID. Optional: startDate, endDate",
                self.list_payroll_leave_periods),
        }

    # Accounting

    async def list_accounts(self, args: dict[str, Any]) -> Any:
        return await self.client.get("/Accounts")

    async def list_contacts(self, args: dict[str, Any]) -> Any:
        return await self.client.get("/Contacts", params={
            "page": args.get("page", 1),
            "includeArchived": _flag(args.get("includeArchived")),
            "searchTerm": args.get("name"),
        })

    async def list_invoices(self, args: dict[str, Any]) -> Any:
        return await self.client.get("/Invoices", params={
            "page": args.get("page", 1),
            "Statuses": args.get("status"),
            "ContactIDs": args.get("contactID"),
        })

    async def list_organisation_details(self, args: dict[str, Any]) -> Any:
        return await self.client.get("/Organisation")

    async def list_items(self, args: dict[str, Any]) -> Any:
        return await self.client.get("/Items")

    async def list_payments(self, args: dict[str, Any]) -> Any:
        payment_id = args.get("paymentID")
        if payment_id:
            return await self.client.get(f"/Payments/{path_id(payment_id)}")
        return await self.client.get("/Payments", params={"page": args.get("page", 1)})

    async def list_credit_notes(self, args: dict[str, Any]) -> Any:
        return await self.client.get("/CreditNotes", params={"page": args.get("page", 1)})

    async def list_quotes(self, args: dict[str, Any]) -> Any:
        return await self.client.get("/Quotes", params={
            "page": args.get("page", 1),
            "ContactID": args.get("contactID"),
        })

    async def list_bank_transactions(self, args: dict[str, Any]) -> Any:
        return await self.client.get("/BankTransactions", params={"page": args.get("page", 1)})

    async def list_manual_journals(self, args: dict[str, Any]) -> Any:
        return await self.client.get("/ManualJournals", params={"page": args.get("page", 1)})

    async def list_tax_rates(self, args: dict[str, Any]) -> Any:
        return await self.client.get("/TaxRates")

    async def list_tracking_categories(self, args: dict[str, Any]) -> Any:
        return await self.client.get("/TrackingCategories", params={
            "includeArchived": _flag(args.get("includeArchived")),
        })

    async def list_contact_groups(self, args: dict[str, Any]) -> Any:
        return await self.client.get("/ContactGroups")

    # Reports

    async def list_trial_balance(self, args: dict[str, Any]) -> Any:
        return await self.client.get("/Reports/TrialBalance", params={"date": args.get("date")})

    async def list_profit_and_loss(self, args: dict[str, Any]) -> Any:
        return await self.client.get("/Reports/ProfitAndLoss", params={
            "fromDate": args.get("fromDate"),
            "toDate": args.get("toDate"),
        })

    async def list_balance_sheet(self, args: dict[str, Any]) -> Any:
        return await self.client.get("/Reports/BalanceSheet", params={"date": args.get("date")})

    async def list_aged_receivables(self, args: dict[str, Any]) -> Any:
        return await self.client.get("/Reports/AgedReceivablesByContact", params={
            "contactId": args["contactId"],
            "date": args.get("date"),
        })

    async def list_aged_payables(self, args: dict[str, Any]) -> Any:
        return await self.client.get("/Reports/AgedPayablesByContact", params={
            "contactId": args["contactId"],
            "date": args.get("date"),
        })

    # Payroll

    async def list_payroll_employees(self, args: dict[str, Any]) -> Any:
        return await self.client.get("/Employees", api="payroll", params={"page": args.get("page", 1)})

    async def list_payroll_timesheets(self, args: dict[str, Any]) -> Any:
        return await self.client.get("/Timesheets", api="payroll", params={
            "page": args.get("page", 1),
            "employeeId": args.get("employeeID"),
            "status": args.get("status"),
        })

    async def list_payroll_leave(self, args: dict[str, Any]) -> Any:
        return await self.client.get(f"/Employees/{path_id(args['employeeID'])}/Leave", api="payroll")

    async def list_payroll_leave_types(self, args: dict[str, Any]) -> Any:
        return await self.client.get("/LeaveTypes", api="payroll")

    async def list_payroll_leave_balances(self, args: dict[str, Any]) -> Any:
        return await self.client.get(f"/Employees/{path_id(args['employeeID'])}/LeaveBalances", api="payroll")

    async def list_payroll_leave_periods(self, args: dict[str, Any]) -> Any:
        return await self.client.get(
            f"/Employees/{path_id(args['employeeID'])}/LeavePeriods",
            api="payroll",
            params={"startDate": args.get("startDate"), "endDate": args.get("endDate")},
        )


def _flag(value: Any) -> Any:
    """Xero expects lowercase booleans in query strings."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return value
