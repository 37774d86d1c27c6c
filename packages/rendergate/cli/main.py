"""Command-line interface for rendergate.

Lists methods, prices requests and runs generations through the same
dispatcher the HTTP layer uses.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path
import sys
from typing import Any

from pydantic import ValidationError as ConfigValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from rendergate.core.config.loader import load_gateway_config
from rendergate.core.config.models import GatewayConfig
from rendergate.core.gateway.dispatcher import Dispatcher
from rendergate.core.gateway.envelopes import capability_listing, result_summary
from rendergate.core.gateway.errors import GatewayError, ValidationError
from rendergate.core.gateway.handlers import GatewayHandlers
from rendergate.core.gateway.models import GenerationRequest
from rendergate.core.gateway.registry import build_default_registry
from rendergate.core.utils.logging import configure_logging_from_config

console = Console()
err_console = Console(stderr=True)
logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INVALID = 2


def parse_cli_args(pairs: list[str] | None, args_json: str | None) -> dict[str, Any]:
    """Merge ``--args-json`` with ``--arg k=v`` pairs; pairs win.

    Raises:
        ValidationError: On a malformed pair or JSON document
    """
    args: dict[str, Any] = {}
    if args_json:
        try:
            parsed = json.loads(args_json)
        except json.JSONDecodeError as e:
            raise ValidationError(
                f"--args-json is not valid JSON: {e.msg}", code="invalid_json"
            ) from e
        if not isinstance(parsed, dict):
            raise ValidationError("--args-json must be a JSON object", code="invalid_json")
        args.update(parsed)

    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise ValidationError(
                f"Expected KEY=VALUE, got: {pair}", code="invalid_arguments"
            )
        args[key.strip()] = value
    return args


def load_cli_config(args: argparse.Namespace) -> GatewayConfig:
    """Load config and apply the logging overrides given on the command line."""
    config = load_gateway_config(args.config)
    overrides: dict[str, Any] = {}
    if args.log_level:
        overrides["level"] = args.log_level.upper()
    if args.structured_logs:
        overrides["structured"] = True
    if overrides:
        config = config.model_copy(
            update={"logging": config.logging.model_copy(update=overrides)}
        )
    configure_logging_from_config(config.logging)
    return config


def build_dispatcher(config: GatewayConfig) -> tuple[Dispatcher, GatewayHandlers]:
    handlers = GatewayHandlers.from_config(config)
    return Dispatcher(build_default_registry(handlers)), handlers


def show_methods(dispatcher: Dispatcher, as_json: bool) -> int:
    listing = capability_listing(dispatcher.list_methods())
    if as_json:
        console.print_json(data=listing)
        return EXIT_OK

    table = Table(title="Methods")
    table.add_column("Name", style="bold")
    table.add_column("Intent")
    table.add_column("Credits", justify="right")
    table.add_column("Fields")
    for name, descriptor in dispatcher.list_methods().items():
        fields = ", ".join(
            f"{field}*" if spec.required else field for field, spec in descriptor.fields.items()
        )
        credits = ", ".join(
            f"{op}={cost:g}" for op, cost in descriptor.operation_costs.items()
        ) or f"{descriptor.credit_cost:g}"
        table.add_row(name, descriptor.intent.value, credits, fields or "-")
    console.print(table)
    return EXIT_OK


def show_quote(dispatcher: Dispatcher, request: GenerationRequest) -> int:
    quote = dispatcher.quote(request)
    console.print_json(data=quote.model_dump(mode="json"))
    return EXIT_OK


async def run_generate(dispatcher: Dispatcher, request: GenerationRequest, out: Path) -> int:
    result = await dispatcher.handle(request)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(result.data)

    console.print(f"[green]Saved[/green] {out} ({result.width}x{result.height})")
    console.print_json(data=result_summary(result))
    return EXIT_OK


def report_error(error: GatewayError) -> int:
    err_console.print(f"[red]ERROR ({error.stage.value}):[/red] {escape(error.message)}")
    err_console.print_json(data=error.to_payload())
    return EXIT_INVALID if isinstance(error, ValidationError) else EXIT_FAILURE


async def run_command(
    args: argparse.Namespace, dispatcher: Dispatcher, handlers: GatewayHandlers
) -> int:
    """Run one subcommand; provider clients are closed on every exit path."""
    try:
        if args.cmd == "methods":
            return show_methods(dispatcher, args.json)

        request = GenerationRequest(
            method=args.method, args=parse_cli_args(args.arg, args.args_json)
        )
        if args.cmd == "quote":
            return show_quote(dispatcher, request)
        return await run_generate(dispatcher, request, Path(args.out))
    finally:
        await handlers.aclose()


def run(args: argparse.Namespace) -> int:
    try:
        config = load_cli_config(args)
    except (ValueError, ConfigValidationError) as e:
        err_console.print(f"[red]ERROR: Could not load config: {escape(str(e))}[/red]")
        return EXIT_FAILURE

    dispatcher, handlers = build_dispatcher(config)
    try:
        return asyncio.run(run_command(args, dispatcher, handlers))
    except GatewayError as e:
        return report_error(e)


def build_arg_parser() -> argparse.ArgumentParser:
    """Build argument parser for CLI."""
    p = argparse.ArgumentParser(
        prog="rendergate",
        description="rendergate - image generation gateway",
    )
    p.add_argument("--config", default=None, help="Path to gateway config (.json/.yaml)")
    p.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
        help="Override the configured log level",
    )
    p.add_argument(
        "--structured-logs", action="store_true", help="Emit logs as JSON lines"
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    methods = sub.add_parser("methods", help="List supported methods")
    methods.add_argument("--json", action="store_true", help="Print the capability envelope")

    for name, help_text in (
        ("quote", "Price a request without running it"),
        ("generate", "Run a generation and save the image"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("method", help="Method name (see `rendergate methods`)")
        cmd.add_argument(
            "--arg", action="append", metavar="KEY=VALUE", help="Method argument (repeatable)"
        )
        cmd.add_argument("--args-json", default=None, help="Method arguments as a JSON object")
        if name == "generate":
            cmd.add_argument("--out", required=True, help="Output image path")

    return p


def main(argv: list[str] | None = None) -> int:
    """Main entry point for CLI."""
    p = build_arg_parser()
    args = p.parse_args(argv)
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
