"""Generation job gateway: method registry, dispatcher, error taxonomy.

Only the dependency-free pieces are re-exported here; import the dispatcher,
registry and handlers from their modules.
"""

from rendergate.core.gateway.errors import (
    AdapterError,
    ErrorStage,
    FetchError,
    GatewayError,
    JobTimeoutError,
    PollError,
    ProviderError,
    SubmissionError,
    ValidationError,
)
from rendergate.core.gateway.models import (
    CreditQuote,
    FieldSpec,
    FieldType,
    GenerationRequest,
    GenerationResult,
    MethodDescriptor,
    MethodIntent,
)

__all__ = [
    "AdapterError",
    "CreditQuote",
    "ErrorStage",
    "FetchError",
    "FieldSpec",
    "FieldType",
    "GatewayError",
    "GenerationRequest",
    "GenerationResult",
    "JobTimeoutError",
    "MethodDescriptor",
    "MethodIntent",
    "PollError",
    "ProviderError",
    "SubmissionError",
    "ValidationError",
]
