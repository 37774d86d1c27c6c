"""Dispatcher: validate a request, route it, package the result.

Per request the order is fixed:

1. Resolve the method (missing or unknown -> ValidationError)
2. Inject schema defaults into absent arguments, in declaration order
3. Validate required fields and argument shapes
4. Invoke the bound handler
5. Attach the credit cost to the result

The dispatcher holds no mutable state; concurrent requests share nothing
but the immutable registry.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from typing import Any

from rendergate.core.gateway.errors import ValidationError
from rendergate.core.gateway.methods import MultiOperation
from rendergate.core.gateway.models import (
    CreditQuote,
    GenerationRequest,
    GenerationResult,
    MethodDescriptor,
    PreparedCall,
)
from rendergate.core.gateway.registry import MethodRegistry, RegisteredMethod

logger = logging.getLogger(__name__)


class Dispatcher:
    """Front door of the gateway.

    Args:
        registry: Immutable method table

    Example:
        >>> handlers = GatewayHandlers.from_config(load_gateway_config())
        >>> dispatcher = Dispatcher(build_default_registry(handlers))
        >>> result = await dispatcher.handle(
        ...     GenerationRequest(method="fluxImage", args={"prompt": "a lighthouse"})
        ... )
    """

    def __init__(self, registry: MethodRegistry) -> None:
        self.registry = registry

    def list_methods(self) -> Mapping[str, MethodDescriptor]:
        """Read-only capability table."""
        return self.registry.descriptors()

    def resolve(self, request: GenerationRequest) -> RegisteredMethod:
        if not request.method:
            raise ValidationError.missing_method()
        method = self.registry.get(request.method)
        if method is None:
            raise ValidationError.unknown_method(request.method, self.registry.names)
        return method

    def prepare(self, request: GenerationRequest) -> tuple[RegisteredMethod, PreparedCall]:
        """Resolve, inject defaults and validate without invoking anything.

        Raises:
            ValidationError: If the request is malformed
        """
        method = self.resolve(request)
        args = method.spec.apply_defaults(request.args)
        return method, method.spec.validate_args(args)

    async def handle(self, request: GenerationRequest | Mapping[str, Any]) -> GenerationResult:
        """Validate and run one generation request.

        Raises:
            ValidationError: If the request is malformed
            ProviderError: Any provider failure, unchanged
        """
        if not isinstance(request, GenerationRequest):
            request = coerce_request(request)

        method, call = self.prepare(request)
        start = time.perf_counter()
        image = await method.handler(call)
        result = GenerationResult.from_rendered(call, image)

        logger.info(
            "%s%s done: %dx%d cost=%s elapsed_ms=%d",
            call.method,
            f"[{call.operation}]" if call.operation else "",
            result.width,
            result.height,
            result.credit_cost,
            (time.perf_counter() - start) * 1000,
        )
        return result

    def quote(self, request: GenerationRequest | Mapping[str, Any]) -> CreditQuote:
        """Price a request without performing it.

        Required arguments are not checked: a caller may ask for a price
        before filling in the form. Unknown sub-operations are priced as the
        method's default operation.

        Raises:
            ValidationError: If the method is missing or unknown
        """
        if not isinstance(request, GenerationRequest):
            request = coerce_request(request)

        method = self.resolve(request)
        spec = method.spec
        args = spec.apply_defaults(request.args)
        operation = spec.quote_operation(args) if isinstance(spec, MultiOperation) else None
        return CreditQuote(
            method=spec.name,
            operation=operation,
            supported=True,
            cost=spec.credit_cost(operation),
        )


def coerce_request(raw: Mapping[str, Any]) -> GenerationRequest:
    """Build a request from a loosely shaped mapping.

    Raises:
        ValidationError: If ``args`` is not an object
    """
    args = raw.get("args")
    if args is not None and not isinstance(args, Mapping):
        raise ValidationError.invalid_arguments(["args"], "args must be an object")
    method = raw.get("method")
    return GenerationRequest(
        method=method if isinstance(method, str) else None,
        args=dict(args or {}),
    )
