"""Flat parameter schema of the gateway tool.

Every parameter except `operation` is optional at the schema level; which
ones an operation actually needs is decided by the normalizer rules.
"""

from typing import Any, Iterable

from shared.schema import create_tool_schema


GATEWAY_PARAMETERS: list[dict[str, Any]] = [
    # Common parameters
    {"name": "name", "type": "string",
     "description": "Name of contact/item/tracking category. REQUIRED for: create-contact, "
                    "create-item, create-tracking-category. OPTIONAL for update-contact, update-item"},
    {"name": "email", "type": "string", "format": "email",
     "description": "Email address. OPTIONAL for create-contact, update-contact"},
    {"name": "phone", "type": "string",
     "description": "Phone number. OPTIONAL for create-contact, update-contact"},
    {"name": "contactID", "type": "string",
     "description": "Contact ID. REQUIRED for: create-invoice, create-credit-note, create-quote, "
                    "create-bank-transaction, update-contact, list-aged-receivables, list-aged-payables"},
    {"name": "description", "type": "string",
     "description": "Description text. REQUIRED for: create-invoice, create-credit-note, create-quote, "
                    "create-bank-transaction (line item description). OPTIONAL for create-item"},
    {"name": "quantity", "type": "number",
     "description": "Quantity for line items. OPTIONAL (defaults to 1 if not specified)"},
    {"name": "unitAmount", "type": "number",
     "description": "Price per unit. REQUIRED for: create-invoice, create-credit-note, create-quote, "
                    "create-bank-transaction. OPTIONAL for create-item (selling price)"},
    {"name": "accountCode", "type": "string",
     "description": "Account code from chart of accounts. OPTIONAL for line items (defaults to '200' "
                    "for sales). REQUIRED for create-payment (the bank account paid from/into)"},
    {"name": "taxType", "type": "string",
     "description": "Tax type. OPTIONAL - defaults to 'OUTPUT' (standard tax) if not specified. "
                    "Options: 'OUTPUT', 'NONE', 'INPUT'"},
    {"name": "dueDate", "type": "string",
     "description": "Due date in YYYY-MM-DD format. OPTIONAL for create-invoice "
                    "(defaults to 30 days from today)"},
    {"name": "date", "type": "string",
     "description": "Date in YYYY-MM-DD format. REQUIRED for timesheet lines. OPTIONAL for documents "
                    "and report dates"},
    {"name": "reference", "type": "string",
     "description": "Reference number or text. OPTIONAL for invoices, quotes, credit notes, payments"},
    {"name": "type", "type": "string",
     "description": "Document type. OPTIONAL: ACCREC/ACCPAY for invoices (defaults to ACCREC), "
                    "SPEND/RECEIVE for bank transactions (defaults to SPEND)"},
    {"name": "page", "type": "integer",
     "description": "Page number for list operations. OPTIONAL - defaults to 1"},
    {"name": "includeArchived", "type": "boolean",
     "description": "Include archived records. OPTIONAL for list-contacts"},
    {"name": "status", "type": "string",
     "description": "Filter by status for list operations, or the new status for updates"},

    # Identifiers
    {"name": "invoiceID", "type": "string",
     "description": "Invoice ID. REQUIRED for: update-invoice, create-payment"},
    {"name": "creditNoteID", "type": "string",
     "description": "Credit note ID. REQUIRED for update-credit-note"},
    {"name": "quoteID", "type": "string",
     "description": "Quote ID. REQUIRED for update-quote"},
    {"name": "itemID", "type": "string",
     "description": "Item ID. REQUIRED for update-item"},
    {"name": "paymentID", "type": "string",
     "description": "Payment ID. OPTIONAL filter for list-payments"},
    {"name": "bankTransactionID", "type": "string",
     "description": "Bank transaction ID. REQUIRED for update-bank-transaction"},
    {"name": "manualJournalID", "type": "string",
     "description": "Manual journal ID. REQUIRED for update-manual-journal"},
    {"name": "trackingCategoryID", "type": "string",
     "description": "Tracking category ID. REQUIRED for: create-tracking-options, "
                    "update-tracking-category, update-tracking-options"},
    {"name": "trackingOptionID", "type": "string",
     "description": "Tracking option ID. REQUIRED for update-tracking-options"},
    {"name": "timesheetID", "type": "string",
     "description": "Timesheet ID. REQUIRED for: get-, approve-, revert-, delete-payroll-timesheet, "
                    "add-timesheet-line, update-timesheet-line"},
    {"name": "timesheetLineID", "type": "string",
     "description": "Timesheet line ID. REQUIRED for update-timesheet-line"},
    {"name": "employeeID", "type": "string",
     "description": "Payroll employee ID. REQUIRED for: list-payroll-leave, list-payroll-leave-balances, "
                    "list-payroll-leave-periods, create-payroll-timesheet"},
    {"name": "payrollCalendarID", "type": "string",
     "description": "Payroll calendar ID. REQUIRED for create-payroll-timesheet"},
    {"name": "earningsRateID", "type": "string",
     "description": "Earnings rate ID. REQUIRED for add-timesheet-line, update-timesheet-line"},
    {"name": "numberOfUnits", "type": "number",
     "description": "Number of units (hours). REQUIRED for add-timesheet-line, update-timesheet-line"},

    # Operation specific fields
    {"name": "code", "type": "string",
     "description": "Item code. REQUIRED for create-item"},
    {"name": "amount", "type": "number",
     "description": "Payment amount. REQUIRED for create-payment"},
    {"name": "bankAccountCode", "type": "string",
     "description": "Bank account code. REQUIRED for create-bank-transaction"},
    {"name": "narration", "type": "string",
     "description": "Journal narration. REQUIRED for create-manual-journal"},
    {"name": "journalLines", "type": "array",
     "items": {
         "type": "object",
         "properties": {
             "lineAmount": {"type": "number"},
             "accountCode": {"type": "string"},
             "description": {"type": "string"},
             "taxType": {"type": "string"},
         },
         "required": ["lineAmount", "accountCode"],
     },
     "description": "Journal lines ({lineAmount, accountCode, description?, taxType?}); debits positive, "
                    "credits negative. REQUIRED for create-manual-journal"},
    {"name": "optionNames", "type": "array", "items": {"type": "string"},
     "description": "Tracking option names. REQUIRED for create-tracking-options"},
    {"name": "startDate", "type": "string",
     "description": "Start date (YYYY-MM-DD). REQUIRED for create-payroll-timesheet"},
    {"name": "endDate", "type": "string",
     "description": "End date (YYYY-MM-DD). REQUIRED for create-payroll-timesheet"},
    {"name": "fromDate", "type": "string",
     "description": "Report period start (YYYY-MM-DD). OPTIONAL for list-profit-and-loss"},
    {"name": "toDate", "type": "string",
     "description": "Report period end (YYYY-MM-DD). OPTIONAL for list-profit-and-loss"},

    # Contact validation parameter for invoice creation
    {"name": "expectedContactName", "type": "string",
     "description": "For invoice creation: the expected contact name to validate against. If provided, "
                    "the contact name is verified before the invoice is created."},
]


def argument_schema() -> dict[str, Any]:
    """Schema of the flat argument bag, `operation` excluded."""
    return create_tool_schema(GATEWAY_PARAMETERS, required=[])


def gateway_input_schema(operations: Iterable[str]) -> dict[str, Any]:
    """Advertised input schema of the gateway tool."""
    operation_param = {
        "name": "operation",
        "type": "string",
        "enum": list(operations),
        "description": "The Xero operation to perform",
    }
    return create_tool_schema([operation_param, *GATEWAY_PARAMETERS], required=["operation"])
