"""The operation gateway.

`OperationGateway` owns every piece of gateway state (registry, rate
limiter, telemetry and audit log) and is what the transport talks to.
"""

from typing import Any, Iterable, Optional

from shared.config import Settings
from shared.logging import get_logger
from shared.models import (
    Operation,
    OperationRequest,
    RateLimitDecision,
    ResponseEnvelope,
)
from gateway.audit import AuditLogger
from gateway.dispatcher import Dispatcher
from gateway.normalizer import ParameterNormalizer, build_rules
from gateway.parameters import gateway_input_schema
from gateway.rate_limit import RateLimiter
from gateway.registry import HandlerFactory, OperationRegistry
from gateway.telemetry import TelemetryTracker

logger = get_logger(__name__)


TOOL_DESCRIPTION = """Universal Xero API tool for ALL Xero operations. Always specify the 'operation' parameter first.

This tool provides access to ALL Xero functionality:

{operations}

IMPORTANT: Check parameter descriptions - they indicate which parameters are REQUIRED vs OPTIONAL for each operation.

Common Operations:
- List contacts: {{ "operation": "list-contacts" }}
- Create contact: {{ "operation": "create-contact", "name": "Company Name" }}
- Create invoice: {{ "operation": "create-invoice", "contactID": "id", "description": "Service", "unitAmount": 100 }}
- List accounts: {{ "operation": "list-accounts" }} (to find valid account codes)

INVOICE CREATION RULES:
1. Always verify the contact exists by checking list-contacts first
2. If the contact name doesn't match EXACTLY, create a new contact
3. Never substitute one contact for another based on similarity
4. Simple flat parameters are transformed into the Xero format automatically."""


class OperationGateway:
    """
    Single entry point for gateway invocations.

    Responsibilities:
    - Admit or deny requests per client (rate limiting)
    - Dispatch admitted requests to their operation handlers
    - Expose the advertised tool definition and monitoring views
    """

    def __init__(
        self,
        registry: OperationRegistry,
        normalizer: Optional[ParameterNormalizer] = None,
        rate_limiter: Optional[RateLimiter] = None,
        telemetry: Optional[TelemetryTracker] = None,
        audit_logger: Optional[AuditLogger] = None,
        tool_name: str = "xero-api",
        client: Any = None
    ) -> None:
        """
        Initialize the gateway.

        Args:
            registry: Populated operation registry
            normalizer: Argument normalizer (default rules if omitted)
            rate_limiter: Per-client limiter; None disables rate limiting
            telemetry: Session and auth tracker
            audit_logger: Optional audit log
            tool_name: Name the gateway tool is advertised under
            client: Remote API client, closed with the gateway
        """
        self.registry = registry
        self.normalizer = normalizer or ParameterNormalizer()
        self.rate_limiter = rate_limiter
        self.telemetry = telemetry or TelemetryTracker()
        self.audit_logger = audit_logger
        self.tool_name = tool_name
        self.client = client

        self.dispatcher = Dispatcher(
            registry=self.registry,
            normalizer=self.normalizer,
            telemetry=self.telemetry,
            audit_logger=self.audit_logger,
        )

    @property
    def description(self) -> str:
        """Advertised tool description, listing every operation."""
        return TOOL_DESCRIPTION.format(operations=self.registry.describe())

    @property
    def input_schema(self) -> dict[str, Any]:
        return gateway_input_schema(self.registry.names())

    def admit(self, client_key: str) -> Optional[RateLimitDecision]:
        """
        Count a request against the client's quota.

        Returns:
            The limiter decision, or None when rate limiting is disabled
        """
        if self.rate_limiter is None:
            return None
        return self.rate_limiter.check(client_key)

    async def handle(
        self,
        request: OperationRequest,
        client_key: Optional[str] = None
    ) -> ResponseEnvelope:
        """Dispatch a request that has already been admitted."""
        return await self.dispatcher.dispatch(request, client_key=client_key)

    async def call(
        self,
        arguments: Optional[dict[str, Any]],
        client_key: Optional[str] = None
    ) -> ResponseEnvelope:
        """Dispatch a flat tool-call argument bag."""
        return await self.handle(OperationRequest.from_arguments(arguments), client_key)

    async def probe_authentication(self) -> bool:
        """Check the Xero credentials once by fetching the organisation."""
        if Operation.LIST_ORGANISATION_DETAILS.value not in self.registry:
            logger.warning("Authentication probe skipped, organisation lookup not registered")
            return False
        return await self.telemetry.probe_authentication(self.fetch_organisation)

    async def fetch_organisation(self) -> Any:
        """Fetch the organisation details directly, bypassing telemetry."""
        handler = self.registry.resolve(Operation.LIST_ORGANISATION_DETAILS.value)
        return await self.dispatcher.invoke(handler, {})

    def health(self) -> dict[str, Any]:
        return {
            "operations": len(self.registry),
            "groups": self.registry.count_by_group(),
            "authStats": self.telemetry.auth_stats(),
        }

    async def close(self) -> None:
        """Flush the audit log and release every resource."""
        if self.audit_logger is not None:
            await self.audit_logger.flush()
        if self.rate_limiter is not None:
            self.rate_limiter.reset()
        self.telemetry.clear()
        self.registry.clear()
        if self.client is not None:
            await self.client.close()
        logger.info("Operation gateway closed")


def build_gateway(
    settings: Settings,
    factories: Iterable[HandlerFactory],
    client: Any = None
) -> OperationGateway:
    """
    Assemble a gateway from settings and handler factories.

    Raises:
        ValueError: If an operation has no handler or is registered twice
    """
    registry = OperationRegistry()
    registry.register(factories)
    registry.assert_complete(Operation)

    normalizer = ParameterNormalizer(
        rules=build_rules(
            account_code=settings.gateway.default_account_code,
            tax_type=settings.gateway.default_tax_type,
        )
    )

    rate_limiter = None
    if settings.rate_limit.enabled:
        rate_limiter = RateLimiter(
            window_seconds=settings.rate_limit.window_seconds,
            max_requests=settings.rate_limit.max_requests,
        )

    telemetry = TelemetryTracker(
        max_sessions=settings.telemetry.max_sessions,
        active_window_seconds=settings.telemetry.active_window_seconds,
    )

    audit_logger = None
    if settings.gateway.enable_audit:
        audit_logger = AuditLogger(log_path=settings.gateway.audit_log_path)

    gateway = OperationGateway(
        registry=registry,
        normalizer=normalizer,
        rate_limiter=rate_limiter,
        telemetry=telemetry,
        audit_logger=audit_logger,
        tool_name=settings.gateway.tool_name,
        client=client,
    )

    logger.info(
        "Operation gateway built",
        tool_name=gateway.tool_name,
        operation_count=len(registry),
        rate_limiting=rate_limiter is not None,
        audit=audit_logger is not None
    )
    return gateway
