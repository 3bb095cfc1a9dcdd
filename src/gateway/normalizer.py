"""Parameter normalization.

Turns the flat argument bag of the gateway tool into the argument shape a
specific operation handler expects. Per-operation behaviour lives in a
declarative rule table; normalization itself is pure and never touches the
network.
"""

from typing import Any, Callable, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from shared.logging import get_logger
from shared.models import Operation
from shared.schema import schema_errors
from gateway.errors import ValidationError
from gateway.parameters import argument_schema

logger = get_logger(__name__)


DEFAULT_ACCOUNT_CODE = "200"
DEFAULT_TAX_TYPE = "OUTPUT"

LINE_ITEM_FIELDS = ("description", "quantity", "unitAmount", "accountCode", "taxType")


Reshape = Callable[[dict[str, Any]], dict[str, Any]]


class OperationRule(BaseModel):
    """How one operation's arguments are checked and reshaped."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    required: tuple[str, ...] = ()
    defaults: Mapping[str, Any] = Field(default_factory=dict)
    reshape: Optional[Reshape] = None
    renames: Mapping[str, str] = Field(default_factory=dict)


def line_item_document(document_type: Optional[str] = None) -> Reshape:
    """
    Build a reshape that folds the flat line item fields into `lineItems`.

    A caller-supplied `type` wins over `document_type`; a caller-supplied
    `lineItems` is discarded.
    """
    def reshape(args: dict[str, Any]) -> dict[str, Any]:
        rest = dict(args)
        rest.pop("lineItems", None)
        line_item = {field: rest.pop(field) for field in LINE_ITEM_FIELDS if field in rest}
        shaped: dict[str, Any] = {"lineItems": [line_item]}
        if document_type:
            shaped["type"] = document_type
        shaped.update(rest)
        return shaped

    return reshape


def build_rules(
    account_code: str = DEFAULT_ACCOUNT_CODE,
    tax_type: str = DEFAULT_TAX_TYPE
) -> dict[str, OperationRule]:
    """Rule table keyed by operation name."""
    line_item_defaults = {"quantity": 1, "accountCode": account_code, "taxType": tax_type}
    line_item_required = ("contactID", "description", "unitAmount")
    to_contact_id = {"contactID": "contactId"}

    rules = {
        # Documents with line items
        Operation.CREATE_INVOICE: OperationRule(
            required=line_item_required,
            defaults=line_item_defaults,
            reshape=line_item_document("ACCREC"),
            renames=to_contact_id,
        ),
        Operation.CREATE_CREDIT_NOTE: OperationRule(
            required=line_item_required,
            defaults=line_item_defaults,
            reshape=line_item_document("ACCRECCREDIT"),
            renames=to_contact_id,
        ),
        Operation.CREATE_QUOTE: OperationRule(
            required=line_item_required,
            defaults=line_item_defaults,
            reshape=line_item_document(),
            renames=to_contact_id,
        ),
        Operation.CREATE_BANK_TRANSACTION: OperationRule(
            required=("bankAccountCode",) + line_item_required,
            defaults=line_item_defaults,
            reshape=line_item_document("SPEND"),
            renames=to_contact_id,
        ),

        # Contacts and items
        Operation.CREATE_CONTACT: OperationRule(required=("name",)),
        Operation.UPDATE_CONTACT: OperationRule(required=("contactID",), renames=to_contact_id),
        Operation.CREATE_ITEM: OperationRule(required=("code", "name")),
        Operation.UPDATE_ITEM: OperationRule(required=("itemID",)),

        # Other accounting documents
        Operation.CREATE_PAYMENT: OperationRule(required=("invoiceID", "accountCode", "amount")),
        Operation.UPDATE_INVOICE: OperationRule(required=("invoiceID",)),
        Operation.UPDATE_CREDIT_NOTE: OperationRule(required=("creditNoteID",)),
        Operation.UPDATE_QUOTE: OperationRule(required=("quoteID",)),
        Operation.UPDATE_BANK_TRANSACTION: OperationRule(required=("bankTransactionID",)),
        Operation.CREATE_MANUAL_JOURNAL: OperationRule(required=("narration", "journalLines")),
        Operation.UPDATE_MANUAL_JOURNAL: OperationRule(required=("manualJournalID",)),

        # Tracking
        Operation.CREATE_TRACKING_CATEGORY: OperationRule(required=("name",)),
        Operation.UPDATE_TRACKING_CATEGORY: OperationRule(required=("trackingCategoryID",)),
        Operation.CREATE_TRACKING_OPTIONS: OperationRule(
            required=("trackingCategoryID", "optionNames"),
        ),
        Operation.UPDATE_TRACKING_OPTIONS: OperationRule(
            required=("trackingCategoryID", "trackingOptionID", "name"),
        ),

        # Reports
        Operation.LIST_AGED_RECEIVABLES: OperationRule(required=("contactID",), renames=to_contact_id),
        Operation.LIST_AGED_PAYABLES: OperationRule(required=("contactID",), renames=to_contact_id),

        # Payroll
        Operation.LIST_PAYROLL_LEAVE: OperationRule(required=("employeeID",)),
        Operation.LIST_PAYROLL_LEAVE_BALANCES: OperationRule(required=("employeeID",)),
        Operation.LIST_PAYROLL_LEAVE_PERIODS: OperationRule(required=("employeeID",)),
        Operation.CREATE_PAYROLL_TIMESHEET: OperationRule(
            required=("employeeID", "payrollCalendarID", "startDate", "endDate"),
        ),
        Operation.GET_PAYROLL_TIMESHEET: OperationRule(required=("timesheetID",)),
        Operation.APPROVE_PAYROLL_TIMESHEET: OperationRule(required=("timesheetID",)),
        Operation.REVERT_PAYROLL_TIMESHEET: OperationRule(required=("timesheetID",)),
        Operation.DELETE_PAYROLL_TIMESHEET: OperationRule(required=("timesheetID",)),
        Operation.ADD_TIMESHEET_LINE: OperationRule(
            required=("timesheetID", "date", "earningsRateID", "numberOfUnits"),
        ),
        Operation.UPDATE_TIMESHEET_LINE: OperationRule(
            required=("timesheetID", "timesheetLineID", "date", "earningsRateID", "numberOfUnits"),
        ),
    }
    return {operation.value: rule for operation, rule in rules.items()}


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    if isinstance(value, (list, dict)) and not value:
        return True
    return False


class ParameterNormalizer:
    """
    Normalizes flat gateway arguments for one operation.

    Steps: drop absent values, type-check against the parameter schema,
    apply defaults, check required fields, reshape, rename.
    """

    def __init__(
        self,
        rules: Optional[Mapping[str, OperationRule]] = None,
        schema: Optional[dict[str, Any]] = None
    ) -> None:
        self.rules = dict(rules) if rules is not None else build_rules()
        self.schema = schema if schema is not None else argument_schema()

    def rule_for(self, operation: str) -> Optional[OperationRule]:
        return self.rules.get(operation)

    def required_fields(self, operation: str) -> tuple[str, ...]:
        rule = self.rules.get(operation)
        return rule.required if rule else ()

    def normalize(self, operation: str, raw_args: Mapping[str, Any]) -> dict[str, Any]:
        """
        Produce the handler arguments for `operation`.

        Raises:
            ValidationError: Naming every missing and every malformed field
        """
        cleaned = {
            key: value for key, value in raw_args.items()
            if key != "operation" and value is not None
        }

        invalid = {
            path or "arguments": message
            for path, message in schema_errors(cleaned, self.schema)
        }

        rule = self.rules.get(operation)
        if rule is None:
            if invalid:
                raise ValidationError(operation, invalid=invalid)
            return cleaned

        args = dict(cleaned)
        for key, value in rule.defaults.items():
            if _is_missing(args.get(key)):
                args[key] = value

        missing = [field for field in rule.required if _is_missing(args.get(field))]
        if missing or invalid:
            logger.debug(
                "Argument validation failed",
                operation=operation,
                missing=missing,
                invalid=list(invalid)
            )
            raise ValidationError(operation, missing=missing, invalid=invalid)

        if rule.reshape is not None:
            args = rule.reshape(args)

        for source, target in rule.renames.items():
            if source in args and target not in args:
                args[target] = args.pop(source)

        return args
