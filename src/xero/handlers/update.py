"""Update operations, including payroll timesheet state changes."""

from typing import Any

from shared.models import Operation, OperationGroup, OperationHandler
from xero.handlers.base import XeroHandlerGroup, compact, path_id


class UpdateHandlers(XeroHandlerGroup):
    """Handlers for `update-*` operations and timesheet transitions."""

    group = OperationGroup.UPDATE

    def handlers(self) -> dict[Operation, tuple[str, OperationHandler]]:
        return {
            Operation.UPDATE_CONTACT: (
                "Update a contact. Requires contactID. Optional: name, email, phone",
                self.update_contact),
            Operation.UPDATE_INVOICE: (
                "Update a draft invoice. Requires invoiceID. Optional: reference, date, dueDate, status",
                self.update_invoice),
            Operation.UPDATE_CREDIT_NOTE: (
                "Update a draft credit note. Requires creditNoteID. Optional: reference, date, status",
                self.update_credit_note),
            Operation.UPDATE_QUOTE: (
                "Update a draft quote. Requires quoteID. Optional: reference, date, dueDate, status",
                self.update_quote),
            Operation.UPDATE_ITEM: (
                "Update an item. Requires itemID. Optional: code, name, description, unitAmount",
                self.update_item),
            Operation.UPDATE_BANK_TRANSACTION: (
                "Update a bank transaction. Requires bankTransactionID. Optional: reference, date",
                self.update_bank_transaction),
            Operation.UPDATE_MANUAL_JOURNAL: (
                "Update a draft manual journal. Requires manualJournalID. Optional: narration, date, "
                "journalLines",
                self.update_manual_journal),
            Operation.UPDATE_TRACKING_CATEGORY: (
                "Rename or archive a tracking category. Requires trackingCategoryID. Optional: name, status",
                self.update_tracking_category),
            Operation.UPDATE_TRACKING_OPTIONS: (
                "Rename a tracking option. Requires trackingCategoryID, trackingOptionID, name",
                self.update_tracking_options),
            Operation.APPROVE_PAYROLL_TIMESHEET: (
                "Approve a payroll timesheet. Requires timesheetID", self.approve_payroll_timesheet),
            Operation.REVERT_PAYROLL_TIMESHEET: (
                "Revert an approved payroll timesheet to draft. Requires timesheetID",
                self.revert_payroll_timesheet),
            Operation.ADD_TIMESHEET_LINE: (
                "Add a line to a timesheet. Requires timesheetID, date, earningsRateID, numberOfUnits",
                self.add_timesheet_line),
            Operation.UPDATE_TIMESHEET_LINE: (
                "Update a timesheet line. Requires timesheetID, timesheetLineID, date, earningsRateID, "
                "numberOfUnits",
                self.update_timesheet_line),
        }

    async def update_contact(self, args: dict[str, Any]) -> Any:
        contact_id = args["contactId"]
        contact = compact({
            "ContactID": contact_id,
            "Name": args.get("name"),
            "EmailAddress": args.get("email"),
            "Phones": [{"PhoneType": "DEFAULT", "PhoneNumber": args["phone"]}] if args.get("phone") else None,
        })
        return await self.client.post(f"/Contacts/{path_id(contact_id)}", json={"Contacts": [contact]})

    async def update_invoice(self, args: dict[str, Any]) -> Any:
        invoice_id = args["invoiceID"]
        invoice = compact({
            "InvoiceID": invoice_id,
            "Reference": args.get("reference"),
            "Date": args.get("date"),
            "DueDate": args.get("dueDate"),
            "Status": args.get("status"),
        })
        return await self.client.post(f"/Invoices/{path_id(invoice_id)}", json={"Invoices": [invoice]})

    async def update_credit_note(self, args: dict[str, Any]) -> Any:
        credit_note_id = args["creditNoteID"]
        credit_note = compact({
            "CreditNoteID": credit_note_id,
            "Reference": args.get("reference"),
            "Date": args.get("date"),
            "Status": args.get("status"),
        })
        return await self.client.post(f"/CreditNotes/{path_id(credit_note_id)}", json={"CreditNotes": [credit_note]})

    async def update_quote(self, args: dict[str, Any]) -> Any:
        quote_id = args["quoteID"]
        quote = compact({
            "QuoteID": quote_id,
            "Reference": args.get("reference"),
            "Date": args.get("date"),
            "ExpiryDate": args.get("dueDate"),
            "Status": args.get("status"),
        })
        return await self.client.post(f"/Quotes/{path_id(quote_id)}", json={"Quotes": [quote]})

    async def update_item(self, args: dict[str, Any]) -> Any:
        item_id = args["itemID"]
        sales_details = compact({
            "UnitPrice": args.get("unitAmount"),
            "AccountCode": args.get("accountCode"),
            "TaxType": args.get("taxType"),
        })
        item = compact({
            "ItemID": item_id,
            "Code": args.get("code"),
            "Name": args.get("name"),
            "Description": args.get("description"),
            "SalesDetails": sales_details or None,
        })
        return await self.client.post(f"/Items/{path_id(item_id)}", json={"Items": [item]})

    async def update_bank_transaction(self, args: dict[str, Any]) -> Any:
        transaction_id = args["bankTransactionID"]
        transaction = compact({
            "BankTransactionID": transaction_id,
            "Reference": args.get("reference"),
            "Date": args.get("date"),
        })
        return await self.client.post(
            f"/BankTransactions/{path_id(transaction_id)}",
            json={"BankTransactions": [transaction]},
        )

    async def update_manual_journal(self, args: dict[str, Any]) -> Any:
        journal_id = args["manualJournalID"]
        lines = args.get("journalLines")
        journal = compact({
            "ManualJournalID": journal_id,
            "Narration": args.get("narration"),
            "Date": args.get("date"),
            "JournalLines": [
                compact({
                    "LineAmount": line["lineAmount"],
                    "AccountCode": line["accountCode"],
                    "Description": line.get("description"),
                    "TaxType": line.get("taxType"),
                })
                for line in lines
            ] if lines else None,
        })
        return await self.client.post(f"/ManualJournals/{path_id(journal_id)}", json={"ManualJournals": [journal]})

    async def update_tracking_category(self, args: dict[str, Any]) -> Any:
        category_id = args["trackingCategoryID"]
        body = compact({"Name": args.get("name"), "Status": args.get("status")})
        return await self.client.post(f"/TrackingCategories/{path_id(category_id)}", json=body)

    async def update_tracking_options(self, args: dict[str, Any]) -> Any:
        category_id = args["trackingCategoryID"]
        option_id = args["trackingOptionID"]
        return await self.client.post(
            f"/TrackingCategories/{path_id(category_id)}/Options/{path_id(option_id)}",
            json={"Name": args["name"]},
        )

    # Payroll timesheets

    async def approve_payroll_timesheet(self, args: dict[str, Any]) -> Any:
        return await self.client.post(f"/Timesheets/{path_id(args['timesheetID'])}/Approve", api="payroll")

    async def revert_payroll_timesheet(self, args: dict[str, Any]) -> Any:
        return await self.client.post(f"/Timesheets/{path_id(args['timesheetID'])}/RevertToDraft", api="payroll")

    async def add_timesheet_line(self, args: dict[str, Any]) -> Any:
        return await self.client.post(
            f"/Timesheets/{path_id(args['timesheetID'])}/Lines",
            api="payroll",
            json=_timesheet_line(args),
        )

    async def update_timesheet_line(self, args: dict[str, Any]) -> Any:
        return await self.client.put(
            f"/Timesheets/{path_id(args['timesheetID'])}/Lines/{path_id(args['timesheetLineID'])}",
            api="payroll",
            json=_timesheet_line(args),
        )


def _timesheet_line(args: dict[str, Any]) -> dict[str, Any]:
    return {
        "date": args["date"],
        "earningsRateID": args["earningsRateID"],
        "numberOfUnits": args["numberOfUnits"],
    }
