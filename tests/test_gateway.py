"""Tests for the operation gateway core components."""

import pytest
from unittest.mock import AsyncMock, Mock

from shared.models import (
    AuthStatus,
    ErrorCode,
    OperationDescriptor,
    OperationGroup,
    OperationRequest,
)


def make_factory(name, handler, group=OperationGroup.LIST, description="Test operation"):
    """Zero-argument descriptor factory for a test handler."""
    def build():
        return OperationDescriptor(name=name, description=description, group=group, handler=handler)
    return build


def make_registry(handlers):
    from gateway.registry import OperationRegistry

    registry = OperationRegistry()
    registry.register(make_factory(name, handler) for name, handler in handlers.items())
    return registry


class TestOperationRegistry:
    """Tests for the OperationRegistry."""

    def test_register_and_resolve(self):
        """Test registering operations and resolving their handlers."""
        async def list_accounts(args):
            return {"Accounts": []}

        registry = make_registry({"list-accounts": list_accounts})

        assert registry.resolve("list-accounts") is list_accounts
        assert "list-accounts" in registry
        assert len(registry) == 1
        assert registry.sealed

    def test_duplicate_operation_raises(self):
        """Test that two factories for one name fail registration."""
        from gateway.registry import OperationRegistry

        registry = OperationRegistry()
        handler = Mock()

        with pytest.raises(ValueError, match="already registered"):
            registry.register([
                make_factory("list-accounts", handler),
                make_factory("list-accounts", handler),
            ])

        assert len(registry) == 0
        assert not registry.sealed

    def test_register_twice_raises(self):
        """Test that the registry is populated only once."""
        registry = make_registry({"list-accounts": Mock()})

        with pytest.raises(RuntimeError):
            registry.register([make_factory("list-items", Mock())])

    def test_resolve_unknown_operation(self):
        """Test resolving an unregistered name."""
        from gateway.errors import UnknownOperation

        registry = make_registry({"list-accounts": Mock()})

        with pytest.raises(UnknownOperation) as exc_info:
            registry.resolve("list-unicorns")

        assert exc_info.value.code == ErrorCode.UNKNOWN_OPERATION
        assert "list-unicorns" in exc_info.value.message

    def test_describe_is_stable(self):
        """Test the operation listing format and idempotence."""
        from gateway.registry import OperationRegistry

        registry = OperationRegistry()
        registry.register([
            make_factory("list-accounts", Mock(), description="Chart of accounts"),
            make_factory("create-contact", Mock(), OperationGroup.CREATE, "Create a contact"),
        ])

        first = registry.describe()
        assert first == "• list-accounts: Chart of accounts\n• create-contact: Create a contact"
        assert registry.describe() == first

    def test_list_and_count_by_group(self):
        """Test filtering operations by factory group."""
        from gateway.registry import OperationRegistry

        registry = OperationRegistry()
        registry.register([
            make_factory("list-accounts", Mock()),
            make_factory("list-items", Mock()),
            make_factory("create-contact", Mock(), OperationGroup.CREATE),
        ])

        assert len(registry.list_operations(OperationGroup.LIST)) == 2
        assert registry.count_by_group() == {"list": 2, "create": 1}
        assert registry.names() == ["list-accounts", "list-items", "create-contact"]

    def test_assert_complete_reports_missing(self):
        """Test completeness check against the operation enum."""
        from shared.models import Operation

        registry = make_registry({"list-accounts": Mock()})

        with pytest.raises(ValueError, match="create-invoice"):
            registry.assert_complete(Operation)

    def test_every_operation_has_a_handler(self):
        """Test that the Xero handler groups cover every operation."""
        from shared.models import Operation
        from gateway.registry import OperationRegistry
        from xero.auth import XeroTokenProvider
        from xero.client import XeroClient
        from xero.handlers import all_factories

        client = XeroClient(XeroTokenProvider(bearer_token="token"), tenant_id="tenant")
        registry = OperationRegistry()
        registry.register(all_factories(client))

        registry.assert_complete(Operation)
        assert len(registry) == len(Operation)

    def test_clear(self):
        """Test clearing the registry on teardown."""
        registry = make_registry({"list-accounts": Mock()})

        registry.clear()

        assert len(registry) == 0
        assert not registry.sealed


class TestParameterNormalizer:
    """Tests for argument normalization."""

    def test_invoice_defaults(self):
        """Test that a minimal invoice is completed with canonical defaults."""
        from gateway.normalizer import ParameterNormalizer

        normalizer = ParameterNormalizer()
        args = normalizer.normalize("create-invoice", {
            "contactID": "c-1",
            "description": "Consulting",
            "unitAmount": 150,
        })

        assert args == {
            "lineItems": [{
                "description": "Consulting",
                "quantity": 1,
                "unitAmount": 150,
                "accountCode": "200",
                "taxType": "OUTPUT",
            }],
            "type": "ACCREC",
            "contactId": "c-1",
        }

    def test_document_types(self):
        """Test the default document type per operation."""
        from gateway.normalizer import ParameterNormalizer

        normalizer = ParameterNormalizer()
        base = {"contactID": "c-1", "description": "Refund", "unitAmount": 10}

        credit_note = normalizer.normalize("create-credit-note", base)
        transaction = normalizer.normalize(
            "create-bank-transaction", {**base, "bankAccountCode": "090"}
        )
        quote = normalizer.normalize("create-quote", base)

        assert credit_note["type"] == "ACCRECCREDIT"
        assert transaction["type"] == "SPEND"
        assert "type" not in quote

    def test_caller_values_win_over_defaults(self):
        """Test that supplied values are not overwritten."""
        from gateway.normalizer import ParameterNormalizer

        normalizer = ParameterNormalizer()
        args = normalizer.normalize("create-invoice", {
            "contactID": "c-1",
            "description": "Parts",
            "unitAmount": 20,
            "quantity": 3,
            "accountCode": "400",
            "taxType": "NONE",
            "type": "ACCPAY",
        })

        assert args["lineItems"][0]["quantity"] == 3
        assert args["lineItems"][0]["accountCode"] == "400"
        assert args["lineItems"][0]["taxType"] == "NONE"
        assert args["type"] == "ACCPAY"

    def test_raw_line_items_are_ignored(self):
        """Test that a supplied lineItems list cannot replace the checked line item."""
        from gateway.normalizer import ParameterNormalizer

        normalizer = ParameterNormalizer()
        args = normalizer.normalize("create-invoice", {
            "contactID": "c-1",
            "description": "Service",
            "unitAmount": 100,
            "lineItems": [{"description": "other", "unitAmount": 1}],
        })

        assert args["lineItems"] == [{
            "description": "Service",
            "unitAmount": 100,
            "quantity": 1,
            "accountCode": "200",
            "taxType": "OUTPUT",
        }]

        args = normalizer.normalize("create-quote", {
            "contactID": "c-1",
            "description": "Service",
            "unitAmount": 100,
            "lineItems": "not a list",
        })
        assert args["lineItems"][0]["description"] == "Service"

    def test_configured_defaults(self):
        """Test rule tables built with other default codes."""
        from gateway.normalizer import ParameterNormalizer, build_rules

        normalizer = ParameterNormalizer(rules=build_rules(account_code="260", tax_type="NONE"))
        args = normalizer.normalize("create-invoice", {
            "contactID": "c-1", "description": "Service", "unitAmount": 5,
        })

        assert args["lineItems"][0]["accountCode"] == "260"
        assert args["lineItems"][0]["taxType"] == "NONE"

    def test_missing_field_is_named(self):
        """Test that a missing required field is reported by name."""
        from gateway.errors import ValidationError
        from gateway.normalizer import ParameterNormalizer

        normalizer = ParameterNormalizer()

        with pytest.raises(ValidationError) as exc_info:
            normalizer.normalize("create-invoice", {"contactID": "c-1", "description": "Service"})

        assert exc_info.value.missing == ["unitAmount"]
        assert "unitAmount" in exc_info.value.message

    def test_all_missing_fields_reported_together(self):
        """Test that every missing field appears in one error."""
        from gateway.errors import ValidationError
        from gateway.normalizer import ParameterNormalizer

        normalizer = ParameterNormalizer()

        with pytest.raises(ValidationError) as exc_info:
            normalizer.normalize("create-invoice", {})

        assert exc_info.value.missing == ["contactID", "description", "unitAmount"]

    def test_blank_and_none_count_as_missing(self):
        """Test that blank strings and None do not satisfy a requirement."""
        from gateway.errors import ValidationError
        from gateway.normalizer import ParameterNormalizer

        normalizer = ParameterNormalizer()

        with pytest.raises(ValidationError) as exc_info:
            normalizer.normalize("create-contact", {"name": "   "})
        assert exc_info.value.missing == ["name"]

        with pytest.raises(ValidationError):
            normalizer.normalize("create-contact", {"name": None})

    def test_zero_is_present(self):
        """Test that a zero amount satisfies a requirement."""
        from gateway.normalizer import ParameterNormalizer

        normalizer = ParameterNormalizer()
        args = normalizer.normalize("create-invoice", {
            "contactID": "c-1", "description": "Free sample", "unitAmount": 0,
        })

        assert args["lineItems"][0]["unitAmount"] == 0

    def test_malformed_and_missing_reported_together(self):
        """Test that type errors and missing fields share one error."""
        from gateway.errors import ValidationError
        from gateway.normalizer import ParameterNormalizer

        normalizer = ParameterNormalizer()

        with pytest.raises(ValidationError) as exc_info:
            normalizer.normalize("create-invoice", {"description": "Service", "unitAmount": "lots"})

        error = exc_info.value
        assert error.missing == ["contactID"]
        assert "unitAmount" in error.invalid
        assert error.fields == ["contactID", "unitAmount"]

    def test_operation_without_rule_passes_through(self):
        """Test that unruled operations only lose None values."""
        from gateway.normalizer import ParameterNormalizer

        normalizer = ParameterNormalizer()
        args = normalizer.normalize("list-contacts", {
            "operation": "list-contacts",
            "page": 2,
            "includeArchived": None,
        })

        assert args == {"page": 2}

    def test_malformed_field_without_rule(self):
        """Test schema checking for operations without a rule."""
        from gateway.errors import ValidationError
        from gateway.normalizer import ParameterNormalizer

        normalizer = ParameterNormalizer()

        with pytest.raises(ValidationError) as exc_info:
            normalizer.normalize("list-contacts", {"page": "two"})

        assert "page" in exc_info.value.invalid

    def test_contact_id_renamed_only_where_expected(self):
        """Test the contactID rename is per operation."""
        from gateway.normalizer import ParameterNormalizer

        normalizer = ParameterNormalizer()

        updated = normalizer.normalize("update-contact", {"contactID": "c-1", "name": "Acme"})
        invoices = normalizer.normalize("list-invoices", {"contactID": "c-1"})

        assert updated == {"contactId": "c-1", "name": "Acme"}
        assert invoices == {"contactID": "c-1"}

        for operation in ("list-aged-receivables", "list-aged-payables"):
            assert normalizer.normalize(operation, {"contactID": "c-1"}) == {"contactId": "c-1"}

    def test_normalize_is_pure(self):
        """Test that normalization is deterministic and leaves its input alone."""
        from gateway.normalizer import ParameterNormalizer

        normalizer = ParameterNormalizer()
        raw = {"contactID": "c-1", "description": "Service", "unitAmount": 10}
        snapshot = dict(raw)

        first = normalizer.normalize("create-invoice", raw)
        second = normalizer.normalize("create-invoice", raw)

        assert first == second
        assert raw == snapshot

    def test_payroll_requirements(self):
        """Test required fields of timesheet line operations."""
        from gateway.errors import ValidationError
        from gateway.normalizer import ParameterNormalizer

        normalizer = ParameterNormalizer()

        with pytest.raises(ValidationError) as exc_info:
            normalizer.normalize("update-timesheet-line", {"timesheetID": "t-1", "date": "2024-01-01"})

        assert exc_info.value.missing == ["timesheetLineID", "earningsRateID", "numberOfUnits"]


class TestDispatcher:
    """Tests for the operation dispatcher."""

    @pytest.mark.asyncio
    async def test_missing_operation(self):
        """Test dispatching without an operation name."""
        from gateway.dispatcher import Dispatcher

        handler = AsyncMock()
        dispatcher = Dispatcher(make_registry({"list-accounts": handler}))

        envelope = await dispatcher.dispatch(OperationRequest(operation="  ", arguments={}))

        assert not envelope.success
        assert envelope.error_code == ErrorCode.MISSING_OPERATION
        assert envelope.message.startswith("Error: No operation specified")
        assert envelope.operation is None
        handler.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_operation(self):
        """Test that unknown operations never reach a handler."""
        from gateway.dispatcher import Dispatcher

        handler = AsyncMock()
        dispatcher = Dispatcher(make_registry({"list-accounts": handler}))

        envelope = await dispatcher.dispatch(OperationRequest(operation="list-unicorns"))

        assert not envelope.success
        assert envelope.error_code == ErrorCode.UNKNOWN_OPERATION
        assert "list-unicorns" in envelope.message
        handler.assert_not_called()

    @pytest.mark.asyncio
    async def test_validation_error_leaves_auth_unknown(self):
        """Test rejected arguments do not run the handler."""
        from gateway.dispatcher import Dispatcher

        handler = AsyncMock()
        dispatcher = Dispatcher(make_registry({"create-invoice": handler}))

        envelope = await dispatcher.dispatch(
            OperationRequest(operation="create-invoice", arguments={"contactID": "c-1"})
        )

        assert not envelope.success
        assert envelope.error_code == ErrorCode.VALIDATION_ERROR
        assert "description" in envelope.message
        assert "unitAmount" in envelope.message
        handler.assert_not_called()

        session = dispatcher.telemetry.get_session(envelope.session_id)
        assert session.auth_status == AuthStatus.UNKNOWN
        assert session.operations == ["create-invoice"]

    @pytest.mark.asyncio
    async def test_success_returns_handler_result(self):
        """Test that handler results are returned verbatim."""
        from gateway.dispatcher import Dispatcher

        result = {"Accounts": [{"Code": "200", "Name": "Sales"}]}
        handler = AsyncMock(return_value=result)
        dispatcher = Dispatcher(make_registry({"list-accounts": handler}))

        envelope = await dispatcher.dispatch(
            OperationRequest.from_arguments({"operation": "list-accounts"})
        )

        assert envelope.success
        assert envelope.content == result
        assert envelope.message is None
        assert envelope.operation == "list-accounts"
        assert envelope.execution_time_ms >= 0
        handler.assert_awaited_once_with({})

        session = dispatcher.telemetry.get_session(envelope.session_id)
        assert session.auth_status == AuthStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_handler_receives_normalized_arguments(self):
        """Test the handler sees the normalized invoice shape."""
        from gateway.dispatcher import Dispatcher

        handler = AsyncMock(return_value={"Invoices": []})
        dispatcher = Dispatcher(make_registry({"create-invoice": handler}))

        await dispatcher.dispatch(OperationRequest.from_arguments({
            "operation": "create-invoice",
            "contactID": "c-1",
            "description": "Consulting",
            "unitAmount": 150,
        }))

        args = handler.await_args.args[0]
        assert args["contactId"] == "c-1"
        assert args["lineItems"][0]["quantity"] == 1

    @pytest.mark.asyncio
    async def test_sync_handler(self):
        """Test plain functions are accepted as handlers."""
        from gateway.dispatcher import Dispatcher

        def list_items(args):
            return {"Items": [{"Code": "WIDGET"}]}

        dispatcher = Dispatcher(make_registry({"list-items": list_items}))

        envelope = await dispatcher.dispatch(OperationRequest(operation="list-items"))

        assert envelope.success
        assert envelope.content == {"Items": [{"Code": "WIDGET"}]}

    @pytest.mark.asyncio
    async def test_empty_handler_result_is_still_content(self):
        """Test a handler returning None yields an empty object, not a bare envelope."""
        from gateway.dispatcher import Dispatcher

        handler = AsyncMock(return_value=None)
        dispatcher = Dispatcher(make_registry({"delete-payroll-timesheet": handler}))

        envelope = await dispatcher.dispatch(OperationRequest(operation="delete-payroll-timesheet"))

        assert envelope.success
        assert envelope.content == {}
        assert envelope.message is None

    @pytest.mark.asyncio
    async def test_handler_failure(self):
        """Test that handler exceptions become failed envelopes."""
        from gateway.dispatcher import Dispatcher

        handler = AsyncMock(side_effect=RuntimeError("Xero is down"))
        dispatcher = Dispatcher(make_registry({"list-accounts": handler}))

        envelope = await dispatcher.dispatch(OperationRequest(operation="list-accounts"))

        assert not envelope.success
        assert envelope.error_code == ErrorCode.HANDLER_FAILURE
        assert envelope.message == "Error executing operation 'list-accounts': Xero is down"

        session = dispatcher.telemetry.get_session(envelope.session_id)
        assert session.auth_status == AuthStatus.FAILED

    @pytest.mark.asyncio
    async def test_internal_error_still_returns_envelope(self):
        """Test that a broken collaborator cannot escape dispatch."""
        from gateway.dispatcher import Dispatcher

        normalizer = Mock()
        normalizer.normalize.side_effect = KeyError("boom")
        dispatcher = Dispatcher(make_registry({"list-accounts": AsyncMock()}), normalizer=normalizer)

        envelope = await dispatcher.dispatch(OperationRequest(operation="list-accounts"))

        assert not envelope.success
        assert envelope.error_code == ErrorCode.INTERNAL_ERROR

    @pytest.mark.asyncio
    async def test_audit_failure_does_not_fail_dispatch(self):
        """Test that audit errors are contained."""
        from gateway.dispatcher import Dispatcher

        audit = Mock()
        audit.log = AsyncMock(side_effect=OSError("disk full"))
        dispatcher = Dispatcher(
            make_registry({"list-accounts": AsyncMock(return_value={})}),
            audit_logger=audit,
        )

        envelope = await dispatcher.dispatch(OperationRequest(operation="list-accounts"), client_key="10.0.0.1")

        assert envelope.success
        audit.log.assert_awaited_once()
        assert audit.log.await_args.args[2] == "10.0.0.1"


class TestRateLimiter:
    """Tests for the rate limiter."""

    def test_allows_up_to_limit(self):
        """Test N requests pass and request N+1 is denied."""
        from gateway.rate_limit import RateLimiter

        limiter = RateLimiter(window_seconds=60, max_requests=3)

        decisions = [limiter.check("10.0.0.1", now=t) for t in (0, 1, 2, 3)]

        assert [d.allowed for d in decisions] == [True, True, True, False]
        assert decisions[2].remaining == 0
        assert decisions[3].count == 3
        assert decisions[3].retry_after == 57

    def test_window_reset(self):
        """Test the count resets once the window has passed."""
        from gateway.rate_limit import RateLimiter

        limiter = RateLimiter(window_seconds=60, max_requests=1)

        assert limiter.check("10.0.0.1", now=0).allowed
        assert not limiter.check("10.0.0.1", now=59.9).allowed

        decision = limiter.check("10.0.0.1", now=60)
        assert decision.allowed
        assert decision.count == 1
        assert decision.reset_at == 120

    def test_clients_are_independent(self):
        """Test one client's quota does not affect another."""
        from gateway.rate_limit import RateLimiter

        limiter = RateLimiter(window_seconds=60, max_requests=1)

        assert limiter.check("10.0.0.1", now=0).allowed
        assert not limiter.check("10.0.0.1", now=1).allowed
        assert limiter.check("10.0.0.2", now=1).allowed

    def test_expired_clients_are_swept(self):
        """Test stale client state is dropped."""
        from gateway.rate_limit import RateLimiter

        limiter = RateLimiter(window_seconds=60, max_requests=5)
        limiter.check("10.0.0.1", now=0)
        limiter.check("10.0.0.2", now=0)

        limiter.check("10.0.0.3", now=61)

        assert limiter.tracked_clients() == 1

    def test_concurrent_checks_never_exceed_limit(self):
        """Test check-then-increment is atomic across threads."""
        from concurrent.futures import ThreadPoolExecutor
        from gateway.rate_limit import RateLimiter

        limiter = RateLimiter(window_seconds=60, max_requests=10)

        with ThreadPoolExecutor(max_workers=50) as pool:
            decisions = list(pool.map(lambda _: limiter.check("10.0.0.1", now=0), range(200)))

        assert sum(d.allowed for d in decisions) == 10
        assert max(d.count for d in decisions) == 10
        assert limiter.check("10.0.0.1", now=1).count == 10

    def test_invalid_configuration(self):
        """Test non-positive limits are rejected."""
        from gateway.rate_limit import RateLimiter

        with pytest.raises(ValueError):
            RateLimiter(window_seconds=0)
        with pytest.raises(ValueError):
            RateLimiter(max_requests=0)


class TestTelemetryTracker:
    """Tests for session and authentication telemetry."""

    @pytest.mark.asyncio
    async def test_probe_counters(self):
        """Test probe outcomes update the counters."""
        from gateway.telemetry import TelemetryTracker

        telemetry = TelemetryTracker()

        ok = await telemetry.probe_authentication(AsyncMock(return_value={"Organisations": [{"Name": "Demo"}]}))
        failed = await telemetry.probe_authentication(AsyncMock(side_effect=RuntimeError("401")))

        assert ok is True
        assert failed is False
        assert telemetry.auth_stats() == {
            "attempts": 2,
            "successful": 1,
            "failed": 1,
            "successRate": "50.0%",
        }

    def test_success_rate_without_attempts(self):
        """Test the rate is defined before any probe."""
        from gateway.telemetry import TelemetryTracker

        assert TelemetryTracker().success_rate() == "0.0%"

    def test_session_lifecycle(self):
        """Test opening and completing a session."""
        from gateway.telemetry import TelemetryTracker

        telemetry = TelemetryTracker()
        session_id = telemetry.start_session()

        telemetry.complete_session(session_id, "list-accounts", AuthStatus.SUCCESS)

        session = telemetry.get_session(session_id)
        assert session_id.startswith("tool-")
        assert session.operations == ["list-accounts"]
        assert session.auth_status == AuthStatus.SUCCESS
        assert session.last_used >= session.created

    def test_session_map_is_bounded(self):
        """Test the oldest session is evicted past the limit."""
        from gateway.telemetry import TelemetryTracker

        telemetry = TelemetryTracker(max_sessions=2)
        first = telemetry.start_session()
        second = telemetry.start_session()
        third = telemetry.start_session()

        assert telemetry.get_session(first) is None
        assert telemetry.get_session(second) is not None
        assert telemetry.get_session(third) is not None

    def test_complete_unknown_session_is_ignored(self):
        """Test completing missing sessions is a no-op."""
        from gateway.telemetry import TelemetryTracker

        telemetry = TelemetryTracker()

        telemetry.complete_session(None, "list-accounts")
        telemetry.complete_session("tool-missing", "list-accounts")

        assert telemetry.snapshot()["totalSessions"] == 0

    def test_snapshot_active_sessions(self):
        """Test active sessions are those used recently."""
        from datetime import timedelta
        from gateway.telemetry import TelemetryTracker

        telemetry = TelemetryTracker(active_window_seconds=300)
        session_id = telemetry.start_session()
        telemetry.complete_session(session_id, "list-items")
        used_at = telemetry.get_session(session_id).last_used

        recent = telemetry.snapshot(now=used_at + timedelta(seconds=10))
        stale = telemetry.snapshot(now=used_at + timedelta(seconds=301))

        assert recent["activeSessions"] == 1
        assert stale["activeSessions"] == 0
        assert stale["totalSessions"] == 1
        assert stale["sessions"][0]["toolsCalled"] == ["list-items"]
        assert stale["sessions"][0]["authStatus"] == "unknown"


class TestAuditLogger:
    """Tests for audit logging."""

    def test_sensitive_data_redaction(self):
        """Test that sensitive arguments are redacted."""
        from shared.models import ResponseEnvelope
        from gateway.audit import AuditLogger

        audit = AuditLogger(enabled=False)
        envelope = ResponseEnvelope.ok({}, operation="create-contact", session_id="tool-1")

        entry = audit.create_entry(
            {"name": "Acme", "access_token": "abc", "nested": {"client_secret": "xyz"}},
            envelope,
            client_key="10.0.0.1",
        )

        assert entry.arguments["name"] == "Acme"
        assert entry.arguments["access_token"] == "[REDACTED]"
        assert entry.arguments["nested"]["client_secret"] == "[REDACTED]"
        assert entry.operation == "create-contact"
        assert entry.client_key == "10.0.0.1"

    @pytest.mark.asyncio
    async def test_log_flush_writes_json_lines(self, tmp_path):
        """Test entries are buffered and written as JSON lines on flush."""
        from shared.models import AuditEntry, ResponseEnvelope
        from gateway.audit import AuditLogger

        path = tmp_path / "audit.log"
        audit = AuditLogger(log_path=str(path))

        await audit.log({}, ResponseEnvelope.ok({}, operation="list-accounts"))
        await audit.log(
            {"contactID": "c-1"},
            ResponseEnvelope.fail("Error", ErrorCode.VALIDATION_ERROR, operation="create-invoice"),
        )
        assert not path.exists()

        await audit.flush()

        entries = [AuditEntry.model_validate_json(line) for line in path.read_text().splitlines()]
        assert [e.operation for e in entries] == ["list-accounts", "create-invoice"]
        assert entries[0].success
        assert not entries[1].success
        assert entries[1].error_code == ErrorCode.VALIDATION_ERROR
        assert entries[1].arguments == {"contactID": "c-1"}

    @pytest.mark.asyncio
    async def test_disabled_logger_writes_nothing(self, tmp_path):
        """Test a disabled audit log is a no-op."""
        from shared.models import ResponseEnvelope
        from gateway.audit import AuditLogger

        path = tmp_path / "audit.log"
        audit = AuditLogger(log_path=str(path), enabled=False)

        await audit.log({}, ResponseEnvelope.ok({}))
        await audit.flush()

        assert not path.exists()


class TestOperationGateway:
    """Tests for the gateway facade."""

    def make_gateway(self, handlers, **kwargs):
        from gateway.service import OperationGateway

        return OperationGateway(registry=make_registry(handlers), **kwargs)

    def test_tool_definition(self):
        """Test the advertised description and input schema."""
        gateway = self.make_gateway({"list-accounts": AsyncMock(), "list-items": AsyncMock()})

        assert gateway.tool_name == "xero-api"
        assert "• list-accounts: Test operation" in gateway.description
        assert gateway.description == gateway.description

        schema = gateway.input_schema
        assert schema["required"] == ["operation"]
        assert schema["properties"]["operation"]["enum"] == ["list-accounts", "list-items"]
        assert "contactID" in schema["properties"]

    def test_admit_without_limiter(self):
        """Test rate limiting can be disabled."""
        gateway = self.make_gateway({"list-accounts": AsyncMock()})

        assert gateway.admit("10.0.0.1") is None

    def test_admit_with_limiter(self):
        """Test admission decisions come from the limiter."""
        from gateway.rate_limit import RateLimiter

        gateway = self.make_gateway(
            {"list-accounts": AsyncMock()},
            rate_limiter=RateLimiter(window_seconds=60, max_requests=1),
        )

        assert gateway.admit("10.0.0.1").allowed
        assert not gateway.admit("10.0.0.1").allowed

    @pytest.mark.asyncio
    async def test_call_splits_operation(self):
        """Test flat argument bags are dispatched."""
        handler = AsyncMock(return_value={"Items": []})
        gateway = self.make_gateway({"list-items": handler})

        envelope = await gateway.call({"operation": "list-items", "page": 1})

        assert envelope.success
        handler.assert_awaited_once_with({"page": 1})

    @pytest.mark.asyncio
    async def test_probe_authentication(self):
        """Test the startup probe uses the organisation lookup."""
        probe = AsyncMock(return_value={"Organisations": [{"Name": "Demo Company"}]})
        gateway = self.make_gateway({"list-organisation-details": probe})

        assert await gateway.probe_authentication()
        assert gateway.telemetry.successful_authentications == 1

    @pytest.mark.asyncio
    async def test_probe_skipped_without_organisation_lookup(self):
        """Test the probe does nothing if the lookup is not registered."""
        gateway = self.make_gateway({"list-accounts": AsyncMock()})

        assert not await gateway.probe_authentication()
        assert gateway.telemetry.authentication_attempts == 0

    @pytest.mark.asyncio
    async def test_fetch_organisation_leaves_counters(self):
        """Test direct lookups do not count as authentication attempts."""
        probe = AsyncMock(return_value={"Organisations": [{"Name": "Demo Company"}]})
        gateway = self.make_gateway({"list-organisation-details": probe})

        result = await gateway.fetch_organisation()

        assert result["Organisations"][0]["Name"] == "Demo Company"
        assert gateway.telemetry.authentication_attempts == 0
        assert gateway.telemetry.snapshot()["totalSessions"] == 0

    @pytest.mark.asyncio
    async def test_close_releases_state(self):
        """Test teardown flushes the audit log and closes the client."""
        audit = Mock()
        audit.flush = AsyncMock()
        client = Mock()
        client.close = AsyncMock()
        gateway = self.make_gateway({"list-accounts": AsyncMock()}, audit_logger=audit, client=client)

        await gateway.close()

        audit.flush.assert_awaited_once()
        client.close.assert_awaited_once()
        assert len(gateway.registry) == 0

    def test_build_gateway_from_settings(self, tmp_path):
        """Test assembling a gateway from settings."""
        from shared.config import GatewaySettings, RateLimitSettings, Settings
        from gateway.service import build_gateway
        from xero.auth import XeroTokenProvider
        from xero.client import XeroClient
        from xero.handlers import all_factories

        settings = Settings(
            gateway=GatewaySettings(
                tool_name="xero",
                default_account_code="260",
                audit_log_path=str(tmp_path / "audit.log"),
            ),
            rate_limit=RateLimitSettings(max_requests=7),
        )
        client = XeroClient(XeroTokenProvider(bearer_token="token"), tenant_id="tenant")

        gateway = build_gateway(settings, all_factories(client), client=client)

        assert gateway.tool_name == "xero"
        assert gateway.rate_limiter.max_requests == 7
        assert gateway.audit_logger is not None
        assert gateway.normalizer.rule_for("create-invoice").defaults["accountCode"] == "260"


class TestSettings:
    """Tests for configuration loading."""

    def test_defaults(self):
        """Test the canonical defaults."""
        from shared.config import GatewaySettings, RateLimitSettings

        gateway = GatewaySettings()
        rate_limit = RateLimitSettings()

        assert gateway.tool_name == "xero-api"
        assert gateway.route_path == "/mcp"
        assert gateway.port == 3000
        assert rate_limit.window_seconds == 60
        assert rate_limit.max_requests == 100

    def test_environment_override(self, monkeypatch):
        """Test settings are read from prefixed environment variables."""
        from shared.config import RateLimitSettings, XeroSettings

        monkeypatch.setenv("RATE_LIMIT_MAX_REQUESTS", "5")
        monkeypatch.setenv("XERO_TENANT_ID", "tenant-from-env")

        assert RateLimitSettings().max_requests == 5
        assert XeroSettings().tenant_id == "tenant-from-env"

    def test_from_yaml(self, tmp_path):
        """Test loading settings from a YAML file."""
        from shared.config import Settings

        path = tmp_path / "settings.yaml"
        path.write_text(
            "log_level: DEBUG\n"
            "gateway:\n"
            "  tool_name: xero\n"
            "  expose_operations: true\n"
            "rate_limit:\n"
            "  max_requests: 10\n"
        )

        settings = Settings.from_yaml(path)

        assert settings.log_level == "DEBUG"
        assert settings.gateway.tool_name == "xero"
        assert settings.gateway.expose_operations is True
        assert settings.rate_limit.max_requests == 10

    def test_missing_yaml_file(self, tmp_path):
        """Test a missing file falls back to defaults."""
        from shared.config import load_yaml_config

        assert load_yaml_config(tmp_path / "absent.yaml") == {}
