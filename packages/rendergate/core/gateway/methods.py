"""Method kinds.

A registered method is one of three kinds, discriminated by ``kind``:

- ``SimpleGenerate``: schema-driven arguments, one fixed price
- ``ModelProxy``: forwards a caller-chosen model plus a free-form input object
- ``MultiOperation``: several sub-operations under one name, each with its
  own required fields and price

Every kind exposes the same pair: ``apply_defaults()`` then
``validate_args()``. The dispatcher always calls them in that order.
"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from rendergate.core.api.http.utils import is_absolute_url
from rendergate.core.gateway.errors import ValidationError
from rendergate.core.gateway.models import FieldSpec, FieldType, MethodDescriptor, PreparedCall

_TRUE_STRINGS = frozenset({"true", "1", "yes", "on"})
_FALSE_STRINGS = frozenset({"false", "0", "no", "off"})


def is_absent(value: Any) -> bool:
    """Missing, None and whitespace-only strings all count as absent."""
    return value is None or (isinstance(value, str) and not value.strip())


def coerce_field(name: str, spec: FieldSpec, value: Any) -> Any:
    """Coerce a present value to its field type.

    Raises:
        ValidationError: If the value cannot represent the field type
    """
    if spec.type is FieldType.NUMBER:
        if isinstance(value, bool):
            raise ValidationError.invalid_arguments([name], "expected a number")
        if isinstance(value, int):
            return value
        try:
            number = float(value if isinstance(value, float) else str(value).strip())
        except ValueError:
            raise ValidationError.invalid_arguments([name], "expected a number") from None
        # nan, inf and overflowing literals such as 1e400
        if not math.isfinite(number):
            raise ValidationError.invalid_arguments([name], "expected a finite number")
        if isinstance(value, float):
            return value
        return int(number) if number.is_integer() else number

    if spec.type is FieldType.BOOLEAN:
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
        raise ValidationError.invalid_arguments([name], "expected a boolean")

    if spec.type is FieldType.SELECT:
        if not spec.options or value in spec.options:
            return value
        if spec.lenient:
            by_key = {option.lower(): option for option in spec.options}
            return by_key.get(str(value).strip().lower(), spec.default)
        raise ValidationError.invalid_arguments(
            [name], f"expected one of {', '.join(spec.options)}"
        )

    if spec.type is FieldType.IMAGE_URL:
        text = str(value).strip()
        if not is_absolute_url(text):
            raise ValidationError.invalid_arguments([name], f"{name} must be a valid URL")
        return text

    return value


class MethodSpec(BaseModel):
    """Behavior shared by all method kinds."""

    model_config = ConfigDict(frozen=True)

    descriptor: MethodDescriptor

    @property
    def name(self) -> str:
        return self.descriptor.name

    def apply_defaults(self, args: Mapping[str, Any]) -> dict[str, Any]:
        """Return a copy of ``args`` with schema defaults filled into absent fields.

        Declaration order is kept, and a caller-supplied value always wins.
        Absent follows ``is_absent``: a blank or whitespace-only string is
        replaced by the default, the same rule ``check_required`` uses to
        report a field as missing. Falsy non-strings (``0``, ``False``) are
        real values and are kept.
        """
        merged = dict(args)
        for name, spec in self.descriptor.fields.items():
            if spec.has_default and is_absent(merged.get(name)):
                merged[name] = spec.default
        return merged

    def required_fields(self, args: Mapping[str, Any]) -> list[str]:
        return [name for name, spec in self.descriptor.fields.items() if spec.required]

    def check_required(self, args: Mapping[str, Any]) -> None:
        missing = [name for name in self.required_fields(args) if is_absent(args.get(name))]
        if missing:
            raise ValidationError.missing_arguments(missing)

    def coerce(self, args: Mapping[str, Any]) -> dict[str, Any]:
        coerced = dict(args)
        for name, spec in self.descriptor.fields.items():
            if not is_absent(coerced.get(name)):
                coerced[name] = coerce_field(name, spec, coerced[name])
        return coerced

    def resolve_operation(self, args: Mapping[str, Any]) -> str | None:
        return None

    def credit_cost(self, operation: str | None = None) -> float:
        return self.descriptor.credit_cost

    def validate_args(self, args: Mapping[str, Any]) -> PreparedCall:
        """Check ``args`` (defaults already applied) and bind the price.

        Raises:
            ValidationError: On missing or invalid arguments
        """
        self.check_required(args)
        coerced = self.coerce(args)
        operation = self.resolve_operation(coerced)
        return PreparedCall(
            method=self.name,
            args=coerced,
            operation=operation,
            credit_cost=self.credit_cost(operation),
        )


class SimpleGenerate(MethodSpec):
    kind: Literal["simple_generate"] = "simple_generate"


class ModelProxyArgs(BaseModel):
    """Typed arguments of the model proxy.

    ``input`` may arrive as a mapping or as a JSON string holding an object.
    """

    model_config = ConfigDict(frozen=True)

    model: str
    prompt: str
    input: dict[str, Any] = Field(default_factory=dict)

    @field_validator("model", "prompt")
    @classmethod
    def _strip(cls, v: str) -> str:
        return v.strip()

    def forwarded(self, extra: Mapping[str, Any]) -> dict[str, Any]:
        """Arguments sent upstream: other args, then ``prompt``, then the input blob."""
        forwarded = {k: v for k, v in extra.items() if k not in ("model", "input")}
        forwarded["prompt"] = self.prompt
        forwarded.update(self.input)
        return forwarded


def parse_input_blob(value: Any) -> dict[str, Any]:
    """Parse the proxy's optional ``input`` argument into a dict.

    Raises:
        ValidationError: If it is malformed JSON or not a JSON object
    """
    if is_absent(value):
        return {}
    if isinstance(value, Mapping):
        return dict(value)
    if not isinstance(value, str):
        raise ValidationError.invalid_arguments(["input"], "input must be a JSON object")
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError as e:
        raise ValidationError(
            f"Invalid JSON in input: {e.msg}",
            code="invalid_json",
            invalid_fields=["input"],
        ) from e
    if not isinstance(parsed, dict):
        raise ValidationError.invalid_arguments(["input"], "input must be a JSON object")
    return parsed


class ModelProxy(MethodSpec):
    """Generic proxy: non-empty ``model`` and ``prompt``, optional JSON ``input``."""

    kind: Literal["model_proxy"] = "model_proxy"

    def validate_args(self, args: Mapping[str, Any]) -> PreparedCall:
        self.check_required(args)
        for name in ("model", "prompt"):
            if not isinstance(args[name], str):
                raise ValidationError.invalid_arguments([name], f"{name} must be a string")

        proxy_args = ModelProxyArgs(
            model=args["model"],
            prompt=args["prompt"],
            input=parse_input_blob(args.get("input")),
        )
        forwarded = {"model": proxy_args.model, **proxy_args.forwarded(args)}
        return PreparedCall(
            method=self.name, args=forwarded, credit_cost=self.credit_cost()
        )


class MultiOperation(MethodSpec):
    """Several operations under one method name.

    Attributes:
        operation_field: Argument naming the operation
        default_operation: Operation used when the argument is absent
        operation_required: Extra required fields per operation
    """

    kind: Literal["multi_operation"] = "multi_operation"
    operation_field: str = "operation"
    default_operation: str
    operation_required: dict[str, tuple[str, ...]] = Field(default_factory=dict)

    @property
    def operations(self) -> tuple[str, ...]:
        return tuple(self.descriptor.operation_costs)

    def resolve_operation(self, args: Mapping[str, Any]) -> str:
        value = args.get(self.operation_field)
        return self.default_operation if is_absent(value) else str(value)

    def required_fields(self, args: Mapping[str, Any]) -> list[str]:
        required = super().required_fields(args)
        for name in self.operation_required.get(self.resolve_operation(args), ()):
            if name not in required:
                required.append(name)
        return required

    def credit_cost(self, operation: str | None = None) -> float:
        """Per-operation price, falling back to the method price."""
        costs = self.descriptor.operation_costs
        return costs.get(operation or self.default_operation, self.descriptor.credit_cost)

    def quote_operation(self, args: Mapping[str, Any]) -> str:
        """Operation a quote is priced for; unknown names price as the default."""
        operation = self.resolve_operation(args)
        return operation if operation in self.operations else self.default_operation

    def validate_args(self, args: Mapping[str, Any]) -> PreparedCall:
        operation = self.resolve_operation(args)
        if operation not in self.operations:
            raise ValidationError.invalid_arguments(
                [self.operation_field], f"expected one of {', '.join(self.operations)}"
            )
        return super().validate_args(args)


MethodKind = Annotated[
    SimpleGenerate | ModelProxy | MultiOperation,
    Field(discriminator="kind"),
]
