"""Gateway data models.

Descriptors are static and built once at startup. Requests and results are
request-scoped: a result is produced once and handed to the caller.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FieldType(str, Enum):
    """Input widget type for a method argument."""

    TEXT = "text"
    SELECT = "select"
    NUMBER = "number"
    BOOLEAN = "boolean"
    IMAGE_URL = "image_url"


class MethodIntent(str, Enum):
    """Whether a method creates a new image or transforms a supplied one."""

    GENERATE = "generate"
    MUTATE = "mutate"


class FieldSpec(BaseModel):
    """Schema for one method argument.

    Attributes:
        label: Display label
        type: Input type
        required: Whether the argument must be present after defaults
        default: Value injected when the caller omits the argument
        options: Allowed values for ``select`` fields
        lenient: Select values match options case-insensitively, and
            unknown values fall back to ``default`` instead of failing
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    label: str
    type: FieldType = FieldType.TEXT
    required: bool = False
    default: Any = None
    options: tuple[str, ...] | None = None
    lenient: bool | None = None

    @property
    def has_default(self) -> bool:
        return self.default is not None


class MethodDescriptor(BaseModel):
    """Display metadata, price and input schema of one registered method.

    ``fields`` keeps declaration order; defaults are applied in that order.
    ``operation_costs`` prices sub-operations of multi-operation methods.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(min_length=1)
    description: str
    intent: MethodIntent = MethodIntent.GENERATE
    credit_cost: float = Field(ge=0)
    fields: dict[str, FieldSpec] = Field(default_factory=dict)
    operation_costs: dict[str, float] = Field(default_factory=dict)

    def to_listing(self) -> dict[str, Any]:
        """JSON-friendly form used by the capability listing."""
        return self.model_dump(mode="json", exclude_none=True)


class GenerationRequest(BaseModel):
    """Inbound ``{method, args}`` call.

    ``args`` is copied on construction, so the dispatcher can inject
    defaults without touching the caller's mapping.
    """

    model_config = ConfigDict(extra="forbid")

    method: str | None = None
    args: dict[str, Any] = Field(default_factory=dict)

    @field_validator("args", mode="before")
    @classmethod
    def _none_args(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("method", mode="before")
    @classmethod
    def _strip_method(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip() or None
        return v


class PreparedCall(BaseModel):
    """A validated request, ready for its handler.

    Attributes:
        method: Registered method name
        args: Arguments after default injection and coercion
        operation: Resolved sub-operation, for multi-operation methods
        credit_cost: Price of this call
    """

    model_config = ConfigDict(frozen=True)

    method: str
    args: dict[str, Any]
    operation: str | None = None
    credit_cost: float


class RenderedImage(BaseModel):
    """What a handler produces: final image bytes plus instrumentation."""

    model_config = ConfigDict(frozen=True)

    data: bytes = Field(repr=False)
    width: int = Field(gt=0)
    height: int = Field(gt=0)
    format: str = "png"
    color_hex: str = "#000000"
    duration_ms: int | None = None
    poll_count: int | None = None
    provider_metadata: dict[str, Any] = Field(default_factory=dict)


class GenerationResult(BaseModel):
    """Uniform result of one successful generation call."""

    model_config = ConfigDict(frozen=True)

    method: str
    operation: str | None = None
    data: bytes = Field(repr=False)
    width: int
    height: int
    format: str = "png"
    color_hex: str = "#000000"
    credit_cost: float
    duration_ms: int | None = None
    poll_count: int | None = None
    provider_metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def content_type(self) -> str:
        return f"image/{'jpeg' if self.format == 'jpg' else self.format}"

    @classmethod
    def from_rendered(cls, call: PreparedCall, image: RenderedImage) -> GenerationResult:
        return cls(
            method=call.method,
            operation=call.operation,
            credit_cost=call.credit_cost,
            **image.model_dump(),
        )


class CreditQuote(BaseModel):
    """Answer to "what would this call cost?" without performing it."""

    model_config = ConfigDict(frozen=True)

    method: str
    operation: str | None = None
    supported: bool = True
    cost: float
