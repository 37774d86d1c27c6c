"""Tests for method kinds: defaults, required checks, coercion, pricing."""

from __future__ import annotations

import pytest

from rendergate.core.gateway.errors import ValidationError
from rendergate.core.gateway.models import FieldSpec, FieldType
from rendergate.core.gateway.methods import (
    ModelProxy,
    MultiOperation,
    SimpleGenerate,
    coerce_field,
    is_absent,
    parse_input_blob,
)
from rendergate.core.gateway.registry import RegisteredMethod, default_method_specs


@pytest.fixture(scope="module")
def specs() -> dict:
    return {spec.name: spec for spec in default_method_specs()}


@pytest.mark.parametrize(
    ("value", "absent"),
    [(None, True), ("", True), ("  \n", True), ("x", False), (0, False), (False, False)],
)
def test_is_absent(value, absent: bool) -> None:
    assert is_absent(value) is absent


class TestDefaults:
    def test_defaults_fill_absent_fields(self, specs) -> None:
        merged = specs["fluxImage"].apply_defaults({"prompt": "x", "model": "   "})
        assert merged == {"prompt": "x", "model": "flux2Pro", "resolution": "ai_latest"}

    def test_caller_value_wins(self, specs) -> None:
        merged = specs["fluxImage"].apply_defaults({"prompt": "x", "resolution": "nes_8bit"})
        assert merged["resolution"] == "nes_8bit"

    def test_whitespace_counts_as_absent(self, specs) -> None:
        merged = specs["centeredTextOnWhite"].apply_defaults({"text": "hi", "color": " \t "})
        assert merged["color"] == "#000000"

    def test_falsy_non_strings_are_kept(self, specs) -> None:
        spec = specs["pixelLabImage"]
        merged = spec.apply_defaults({"prompt": "x", "width": 0, "no_background": False})
        assert merged["width"] == 0
        assert merged["no_background"] is False

    def test_defaults_do_not_touch_input(self, specs) -> None:
        args = {"text": "hi"}
        merged = specs["centeredTextOnWhite"].apply_defaults(args)
        assert args == {"text": "hi"}
        assert merged["color"] == "#000000"

    def test_defaults_run_before_required_check(self, specs) -> None:
        spec = specs["advancedGenerate"]
        call = spec.validate_args(spec.apply_defaults({"operation": None}))
        assert call.operation == "generate"


class TestSimpleGenerate:
    def test_missing_required(self, specs) -> None:
        with pytest.raises(ValidationError) as ei:
            specs["fluxImageEdit"].validate_args({"prompt": " "})
        assert ei.value.message == "Missing required arguments: prompt, image_url"
        assert ei.value.missing_fields == ["prompt", "image_url"]
        assert ei.value.code == "missing_arguments"

    def test_numbers_and_booleans_are_coerced(self, specs) -> None:
        spec = specs["pixelLabImage"]
        call = spec.validate_args(
            spec.apply_defaults({"prompt": "frog", "width": "128", "no_background": "yes"})
        )
        assert call.args["width"] == 128
        assert call.args["height"] == 64
        assert call.args["no_background"] is True
        assert call.credit_cost == 1

    @pytest.mark.parametrize(
        ("field", "value"),
        [("width", "wide"), ("width", True), ("no_background", "maybe")],
    )
    def test_bad_shapes_are_invalid(self, specs, field: str, value) -> None:
        with pytest.raises(ValidationError) as ei:
            specs["pixelLabImage"].validate_args({"prompt": "frog", field: value})
        assert ei.value.code == "invalid_arguments"
        assert ei.value.invalid_fields == [field]

    @pytest.mark.parametrize(
        ("field", "value", "expected"),
        [
            ("resolution", "NES_8BIT", "nes_8bit"),
            ("resolution", " Snes_16Bit ", "snes_16bit"),
            ("resolution", "vga", "ai_latest"),
            ("model", "FLUX2PRO", "flux2Pro"),
            ("model", "fluxklein", "fluxKlein"),
            ("model", "dall-e", "flux2Pro"),
        ],
    )
    def test_lenient_selects_fold_case_and_fall_back(
        self, specs, field: str, value: str, expected: str
    ) -> None:
        call = specs["fluxImage"].validate_args({"prompt": "x", field: value})
        assert call.args[field] == expected

    def test_lenient_pixel_lab_model(self, specs) -> None:
        spec = specs["pixelLabImage"]
        assert spec.validate_args({"prompt": "x", "model": "BitForge"}).args["model"] == "bitforge"
        assert spec.validate_args({"prompt": "x", "model": "nope"}).args["model"] == "pixflux"

    def test_strict_select_rejects_unknown_option(self) -> None:
        spec = FieldSpec(label="Mode", type=FieldType.SELECT, options=("fast", "slow"))
        assert coerce_field("mode", spec, "fast") == "fast"
        with pytest.raises(ValidationError) as ei:
            coerce_field("mode", spec, "FAST")
        assert ei.value.invalid_fields == ["mode"]
        assert "expected one of fast, slow" in ei.value.message

    @pytest.mark.parametrize("value", ["nan", "NaN", "inf", "-Infinity", "1e400", float("nan")])
    def test_non_finite_numbers_are_invalid(self, specs, value) -> None:
        with pytest.raises(ValidationError) as ei:
            specs["pixelLabImage"].validate_args({"prompt": "frog", "width": value})
        assert ei.value.code == "invalid_arguments"
        assert ei.value.invalid_fields == ["width"]

    def test_non_finite_numbers_never_reach_retro_diffusion(self, specs) -> None:
        spec = specs["retroDiffusionImage"]
        with pytest.raises(ValidationError) as ei:
            spec.validate_args(spec.apply_defaults({"prompt": "frog", "height": " inf "}))
        assert ei.value.invalid_fields == ["height"]

    def test_finite_number_strings_still_coerce(self, specs) -> None:
        call = specs["pixelLabImage"].validate_args({"prompt": "frog", "width": "1e2"})
        assert call.args["width"] == 100
        assert isinstance(call.args["width"], int)

    def test_image_url_must_be_absolute(self, specs) -> None:
        with pytest.raises(ValidationError) as ei:
            specs["uploadImage"].validate_args({"image_url": "not a url"})
        assert ei.value.invalid_fields == ["image_url"]

        call = specs["uploadImage"].validate_args({"image_url": " https://a.test/x.png "})
        assert call.args["image_url"] == "https://a.test/x.png"


class TestModelProxy:
    def test_input_blob_is_forwarded(self, specs) -> None:
        spec = specs["replicate"]
        assert isinstance(spec, ModelProxy)

        call = spec.validate_args(
            {"model": " owner/model ", "prompt": "fox", "input": '{"steps": 4, "prompt": "wolf"}'}
        )
        assert call.args == {"model": "owner/model", "prompt": "wolf", "steps": 4}
        assert call.credit_cost == 2

    def test_bad_json_input(self, specs) -> None:
        with pytest.raises(ValidationError) as ei:
            specs["replicate"].validate_args({"model": "m", "prompt": "p", "input": "{bad"})
        assert ei.value.code == "invalid_json"
        assert ei.value.invalid_fields == ["input"]

    def test_required_model(self, specs) -> None:
        with pytest.raises(ValidationError) as ei:
            specs["replicate"].validate_args({"prompt": "p"})
        assert ei.value.missing_fields == ["model"]

    def test_parse_input_blob(self) -> None:
        assert parse_input_blob(None) == {}
        assert parse_input_blob({"a": 1}) == {"a": 1}
        with pytest.raises(ValidationError):
            parse_input_blob("[1, 2]")
        with pytest.raises(ValidationError):
            parse_input_blob(42)


class TestMultiOperation:
    def test_per_operation_required_fields(self, specs) -> None:
        spec = specs["advancedGenerate"]
        assert isinstance(spec, MultiOperation)

        with pytest.raises(ValidationError) as ei:
            spec.validate_args(spec.apply_defaults({"operation": "outpaint"}))
        assert ei.value.missing_fields == ["image_url"]

        with pytest.raises(ValidationError) as ei:
            spec.validate_args({"operation": "generate_thumb"})
        assert ei.value.missing_fields == ["prompt"]

    def test_per_operation_prices(self, specs) -> None:
        spec = specs["advancedGenerate"]
        assert spec.credit_cost("generate") == 3
        assert spec.credit_cost("generate_thumb") == 3
        assert spec.credit_cost("outpaint") == 7
        assert spec.credit_cost(None) == 3

        call = spec.validate_args({"operation": "outpaint", "image_url": "https://a.test/x.png"})
        assert (call.operation, call.credit_cost) == ("outpaint", 7)

    def test_unknown_operation(self, specs) -> None:
        spec = specs["advancedGenerate"]
        with pytest.raises(ValidationError) as ei:
            spec.validate_args({"operation": "zoom"})
        assert ei.value.invalid_fields == ["operation"]
        assert spec.quote_operation({"operation": "zoom"}) == "generate"


def test_kinds_round_trip_through_discriminator(specs) -> None:
    async def handler(call):  # pragma: no cover - never invoked
        raise AssertionError

    dumped = specs["replicate"].model_dump()
    method = RegisteredMethod(spec=dumped, handler=handler)
    assert isinstance(method.spec, ModelProxy)
    assert isinstance(specs["gradientCircle"], SimpleGenerate)
