"""Method registry: the immutable table of supported methods.

Each entry pairs a method kind (schema, defaults, validation, price) with
the handler that serves it. The table is built once and never mutated.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterator, Mapping
from types import MappingProxyType

from pydantic import BaseModel, ConfigDict

from rendergate.core.gateway.handlers import GatewayHandlers
from rendergate.core.gateway.methods import (
    MethodKind,
    ModelProxy,
    MultiOperation,
    SimpleGenerate,
)
from rendergate.core.gateway.models import (
    FieldSpec,
    FieldType,
    MethodDescriptor,
    MethodIntent,
    PreparedCall,
    RenderedImage,
)
from rendergate.core.imaging.resolution import DEFAULT_RESOLUTION_KEY, RESOLUTION_PROFILES
from rendergate.core.providers.flux import DEFAULT_FLUX_MODEL, FLUX_MODEL_ENDPOINTS
from rendergate.core.providers.pixellab import DEFAULT_PIXELLAB_MODEL, PIXELLAB_MODELS

Handler = Callable[[PreparedCall], Awaitable[RenderedImage]]

# Advanced operation prices
ADVANCED_GENERATE_CREDITS = 3.0
ADVANCED_THUMB_CREDITS = 3.0
ADVANCED_OUTPAINT_CREDITS = 7.0
POETIC_IMAGE_CREDITS = 2.0


class RegisteredMethod(BaseModel):
    """A method kind bound to its handler."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    spec: MethodKind
    handler: Handler

    @property
    def descriptor(self) -> MethodDescriptor:
        return self.spec.descriptor


class MethodRegistry:
    """Read-only name -> method table.

    Raises:
        ValueError: On duplicate method names
    """

    def __init__(self, methods: list[RegisteredMethod]) -> None:
        table: dict[str, RegisteredMethod] = {}
        for method in methods:
            if method.spec.name in table:
                raise ValueError(f"Duplicate method name: {method.spec.name}")
            table[method.spec.name] = method
        self._methods: Mapping[str, RegisteredMethod] = MappingProxyType(table)

    def __contains__(self, name: object) -> bool:
        return name in self._methods

    def __iter__(self) -> Iterator[str]:
        return iter(self._methods)

    def __len__(self) -> int:
        return len(self._methods)

    def get(self, name: str) -> RegisteredMethod | None:
        return self._methods.get(name)

    @property
    def names(self) -> list[str]:
        return list(self._methods)

    def descriptors(self) -> Mapping[str, MethodDescriptor]:
        return MappingProxyType({name: m.descriptor for name, m in self._methods.items()})


def _prompt(required: bool = True) -> FieldSpec:
    return FieldSpec(label="Prompt", type=FieldType.TEXT, required=required)


def _image_url(required: bool = True) -> FieldSpec:
    return FieldSpec(label="Image URL", type=FieldType.IMAGE_URL, required=required)


def _style() -> FieldSpec:
    return FieldSpec(label="Style", type=FieldType.TEXT)


def default_method_specs() -> list[MethodKind]:
    """Declarative table of the methods the gateway ships with."""
    resolution = FieldSpec(
        label="Resolution",
        type=FieldType.SELECT,
        default=DEFAULT_RESOLUTION_KEY,
        options=tuple(RESOLUTION_PROFILES),
        lenient=True,
    )
    return [
        SimpleGenerate(
            descriptor=MethodDescriptor(
                name="fluxImage",
                description="Text to image with Flux, at a chosen resolution tier",
                credit_cost=1,
                fields={
                    "prompt": _prompt(),
                    "model": FieldSpec(
                        label="Model",
                        type=FieldType.SELECT,
                        default=DEFAULT_FLUX_MODEL,
                        options=tuple(FLUX_MODEL_ENDPOINTS),
                        lenient=True,
                    ),
                    "resolution": resolution,
                },
            )
        ),
        SimpleGenerate(
            descriptor=MethodDescriptor(
                name="fluxImageEdit",
                description="Edit an image with a Flux prompt",
                intent=MethodIntent.MUTATE,
                credit_cost=2,
                fields={"prompt": _prompt(), "image_url": _image_url()},
            )
        ),
        SimpleGenerate(
            descriptor=MethodDescriptor(
                name="pixelLabImage",
                description="Pixel art from PixelLab, upscaled to 1024x1024",
                credit_cost=1,
                fields={
                    "prompt": _prompt(),
                    "model": FieldSpec(
                        label="Model",
                        type=FieldType.SELECT,
                        default=DEFAULT_PIXELLAB_MODEL,
                        options=tuple(PIXELLAB_MODELS),
                        lenient=True,
                    ),
                    "width": FieldSpec(label="Width", type=FieldType.NUMBER, default=64),
                    "height": FieldSpec(label="Height", type=FieldType.NUMBER, default=64),
                    "no_background": FieldSpec(
                        label="Transparent background", type=FieldType.BOOLEAN, default=False
                    ),
                },
            )
        ),
        SimpleGenerate(
            descriptor=MethodDescriptor(
                name="retroDiffusionImage",
                description="Pixel art from Retro Diffusion, upscaled to 1024x1024",
                credit_cost=1,
                fields={
                    "prompt": _prompt(),
                    "width": FieldSpec(label="Width", type=FieldType.NUMBER, default=256),
                    "height": FieldSpec(label="Height", type=FieldType.NUMBER, default=256),
                },
            )
        ),
        ModelProxy(
            descriptor=MethodDescriptor(
                name="replicate",
                description="Run any Replicate image model",
                credit_cost=2,
                fields={
                    "model": FieldSpec(label="Model", type=FieldType.TEXT, required=True),
                    "prompt": _prompt(),
                    "input": FieldSpec(label="Input (JSON object)", type=FieldType.TEXT),
                },
            )
        ),
        MultiOperation(
            descriptor=MethodDescriptor(
                name="advancedGenerate",
                description="Prompt-written generation, thumbnails and widescreen outpaint",
                credit_cost=ADVANCED_GENERATE_CREDITS,
                fields={
                    "operation": FieldSpec(
                        label="Operation",
                        type=FieldType.SELECT,
                        default="generate",
                        options=("generate", "generate_thumb", "outpaint"),
                    ),
                    "prompt": _prompt(required=False),
                    "items": FieldSpec(label="Items", type=FieldType.TEXT),
                    "image_url": _image_url(required=False),
                },
                operation_costs={
                    "generate": ADVANCED_GENERATE_CREDITS,
                    "generate_thumb": ADVANCED_THUMB_CREDITS,
                    "outpaint": ADVANCED_OUTPAINT_CREDITS,
                },
            ),
            default_operation="generate",
            operation_required={"generate_thumb": ("prompt",), "outpaint": ("image_url",)},
        ),
        SimpleGenerate(
            descriptor=MethodDescriptor(
                name="poeticImageFlux",
                description="Random poem, rewritten by an LLM, illustrated with Flux",
                credit_cost=POETIC_IMAGE_CREDITS,
                fields={"style": _style()},
            )
        ),
        SimpleGenerate(
            descriptor=MethodDescriptor(
                name="poeticImage",
                description="Random poem, rewritten by an LLM, illustrated with DALL-E 3",
                credit_cost=POETIC_IMAGE_CREDITS,
                fields={"style": _style()},
            )
        ),
        SimpleGenerate(
            descriptor=MethodDescriptor(
                name="uploadImage",
                description="Import an image, cover-cropped to 1024x1024",
                intent=MethodIntent.MUTATE,
                credit_cost=0.5,
                fields={"image_url": _image_url()},
            )
        ),
        SimpleGenerate(
            descriptor=MethodDescriptor(
                name="gradientCircle",
                description="Random four-color gradient with a solid circle",
                credit_cost=0.5,
            )
        ),
        SimpleGenerate(
            descriptor=MethodDescriptor(
                name="centeredTextOnWhite",
                description="Text centered on a light background",
                credit_cost=0.5,
                fields={
                    "text": FieldSpec(label="Text", type=FieldType.TEXT, required=True),
                    "color": FieldSpec(label="Color", type=FieldType.TEXT, default="#000000"),
                },
            )
        ),
    ]


def build_default_registry(handlers: GatewayHandlers) -> MethodRegistry:
    """Bind the default method table to ``handlers``."""
    bindings: dict[str, Handler] = {
        "fluxImage": handlers.flux_image,
        "fluxImageEdit": handlers.flux_image_edit,
        "pixelLabImage": handlers.pixel_lab_image,
        "retroDiffusionImage": handlers.retro_diffusion_image,
        "replicate": handlers.replicate,
        "advancedGenerate": handlers.advanced_generate,
        "poeticImageFlux": handlers.poetic_image_flux,
        "poeticImage": handlers.poetic_image,
        "uploadImage": handlers.upload_image,
        "gradientCircle": handlers.gradient_circle,
        "centeredTextOnWhite": handlers.centered_text,
    }
    return MethodRegistry(
        [
            RegisteredMethod(spec=spec, handler=bindings[spec.name])
            for spec in default_method_specs()
        ]
    )
