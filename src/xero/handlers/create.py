"""Create operations."""

from typing import Any

from shared.logging import get_logger
from shared.models import Operation, OperationGroup, OperationHandler
from xero.errors import XeroValidationError
from xero.handlers.base import (
    XeroHandlerGroup,
    compact,
    contact_ref,
    days_from_today,
    path_id,
    to_line_item,
    today,
)

logger = get_logger(__name__)

# Xero's default payment terms when the caller gives no due date
DEFAULT_DUE_DAYS = 30


class CreateHandlers(XeroHandlerGroup):
    """Handlers for every `create-*` operation."""

    group = OperationGroup.CREATE

    def handlers(self) -> dict[Operation, tuple[str, OperationHandler]]:
        return {
            Operation.CREATE_CONTACT: (
                "Create a contact. Requires name. Optional: email, phone", self.create_contact),
            Operation.CREATE_INVOICE: (
                "Create a draft sales invoice with one line item. Requires contactID, description, "
                "unitAmount. Optional: quantity, accountCode, taxType, dueDate, reference, "
                "expectedContactName",
                self.create_invoice),
            Operation.CREATE_CREDIT_NOTE: (
                "Create a draft credit note with one line item. Requires contactID, description, "
                "unitAmount",
                self.create_credit_note),
            Operation.CREATE_QUOTE: (
                "Create a draft quote with one line item. Requires contactID, description, unitAmount",
                self.create_quote),
            Operation.CREATE_PAYMENT: (
                "Pay an invoice. Requires invoiceID, accountCode (bank account), amount",
                self.create_payment),
            Operation.CREATE_ITEM: (
                "Create a product or service. Requires code, name. Optional: description, unitAmount",
                self.create_item),
            Operation.CREATE_BANK_TRANSACTION: (
                "Create a spend or receive money transaction. Requires bankAccountCode, contactID, "
                "description, unitAmount",
                self.create_bank_transaction),
            Operation.CREATE_MANUAL_JOURNAL: (
                "Create a manual journal. Requires narration, journalLines", self.create_manual_journal),
            Operation.CREATE_PAYROLL_TIMESHEET: (
                "Create a payroll timesheet. Requires employeeID, payrollCalendarID, startDate, endDate",
                self.create_payroll_timesheet),
            Operation.CREATE_TRACKING_CATEGORY: (
                "Create a tracking category. Requires name", self.create_tracking_category),
            Operation.CREATE_TRACKING_OPTIONS: (
                "Add options to a tracking category. Requires trackingCategoryID, optionNames",
                self.create_tracking_options),
        }

    async def create_contact(self, args: dict[str, Any]) -> Any:
        contact = compact({
            "Name": args["name"],
            "EmailAddress": args.get("email"),
            "Phones": [{"PhoneType": "DEFAULT", "PhoneNumber": args["phone"]}] if args.get("phone") else None,
        })
        return await self.client.put("/Contacts", json={"Contacts": [contact]})

    async def create_invoice(self, args: dict[str, Any]) -> Any:
        expected_name = args.get("expectedContactName")
        if expected_name:
            await self._verify_contact_name(args["contactId"], expected_name)

        invoice = compact({
            "Type": args.get("type", "ACCREC"),
            "Contact": contact_ref(args["contactId"]),
            "LineItems": [to_line_item(item) for item in args["lineItems"]],
            "Date": args.get("date", today()),
            "DueDate": args.get("dueDate", days_from_today(DEFAULT_DUE_DAYS)),
            "Reference": args.get("reference"),
            "Status": args.get("status", "DRAFT"),
        })
        return await self.client.put("/Invoices", json={"Invoices": [invoice]})

    async def _verify_contact_name(self, contact_id: str, expected_name: str) -> None:
        """Refuse to invoice a contact whose name differs from the expected one."""
        response = await self.client.get(f"/Contacts/{path_id(contact_id)}")
        contacts = response.get("Contacts") or []
        actual_name = contacts[0].get("Name", "") if contacts else ""

        if actual_name.strip().casefold() != expected_name.strip().casefold():
            logger.warning(
                "Contact name mismatch",
                contact_id=contact_id,
                expected=expected_name,
                actual=actual_name
            )
            raise XeroValidationError(
                f"Contact {contact_id} is '{actual_name}', not '{expected_name}'. "
                "Create a new contact instead of invoicing a different one."
            )

    async def create_credit_note(self, args: dict[str, Any]) -> Any:
        credit_note = compact({
            "Type": args.get("type", "ACCRECCREDIT"),
            "Contact": contact_ref(args["contactId"]),
            "LineItems": [to_line_item(item) for item in args["lineItems"]],
            "Date": args.get("date", today()),
            "Reference": args.get("reference"),
            "Status": args.get("status", "DRAFT"),
        })
        return await self.client.put("/CreditNotes", json={"CreditNotes": [credit_note]})

    async def create_quote(self, args: dict[str, Any]) -> Any:
        quote = compact({
            "Contact": contact_ref(args["contactId"]),
            "LineItems": [to_line_item(item) for item in args["lineItems"]],
            "Date": args.get("date", today()),
            "ExpiryDate": args.get("dueDate"),
            "Reference": args.get("reference"),
            "Title": args.get("name"),
        })
        return await self.client.put("/Quotes", json={"Quotes": [quote]})

    async def create_payment(self, args: dict[str, Any]) -> Any:
        payment = compact({
            "Invoice": {"InvoiceID": args["invoiceID"]},
            "Account": {"Code": args["accountCode"]},
            "Amount": args["amount"],
            "Date": args.get("date", today()),
            "Reference": args.get("reference"),
        })
        return await self.client.put("/Payments", json={"Payments": [payment]})

    async def create_item(self, args: dict[str, Any]) -> Any:
        sales_details = compact({
            "UnitPrice": args.get("unitAmount"),
            "AccountCode": args.get("accountCode"),
            "TaxType": args.get("taxType"),
        })
        item = compact({
            "Code": args["code"],
            "Name": args["name"],
            "Description": args.get("description"),
            "SalesDetails": sales_details or None,
        })
        return await self.client.put("/Items", json={"Items": [item]})

    async def create_bank_transaction(self, args: dict[str, Any]) -> Any:
        transaction = compact({
            "Type": args.get("type", "SPEND"),
            "Contact": contact_ref(args["contactId"]),
            "BankAccount": {"Code": args["bankAccountCode"]},
            "LineItems": [to_line_item(item) for item in args["lineItems"]],
            "Date": args.get("date", today()),
            "Reference": args.get("reference"),
        })
        return await self.client.put("/BankTransactions", json={"BankTransactions": [transaction]})

    async def create_manual_journal(self, args: dict[str, Any]) -> Any:
        journal = compact({
            "Narration": args["narration"],
            "Date": args.get("date", today()),
            "JournalLines": [
                compact({
                    "LineAmount": line["lineAmount"],
                    "AccountCode": line["accountCode"],
                    "Description": line.get("description"),
                    "TaxType": line.get("taxType"),
                })
                for line in args["journalLines"]
            ],
        })
        return await self.client.put("/ManualJournals", json={"ManualJournals": [journal]})

    async def create_payroll_timesheet(self, args: dict[str, Any]) -> Any:
        timesheet = {
            "payrollCalendarID": args["payrollCalendarID"],
            "employeeID": args["employeeID"],
            "startDate": args["startDate"],
            "endDate": args["endDate"],
        }
        return await self.client.post("/Timesheets", api="payroll", json=timesheet)

    async def create_tracking_category(self, args: dict[str, Any]) -> Any:
        return await self.client.put("/TrackingCategories", json={"Name": args["name"]})

    async def create_tracking_options(self, args: dict[str, Any]) -> Any:
        category_id = args["trackingCategoryID"]
        created = []
        for option_name in args["optionNames"]:
            response = await self.client.put(
                f"/TrackingCategories/{path_id(category_id)}/Options",
                json={"Name": option_name},
            )
            created.extend(response.get("Options") or [])
        return {"TrackingCategoryID": category_id, "Options": created}
