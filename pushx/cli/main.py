"""Command line entry point for pushx."""

import os
from typing import Any, Dict, List, Mapping, Optional

import click
import sentry_sdk
from click.core import ParameterSource

from pushx import __version__
from pushx._drivers import DeliveryRequest, DriverRegistry, PushOrchestrator, PushResult, create_default_registry
from pushx._drivers.protocol import DEFAULT_ENV_PREFIX, STDIO_SENTINEL
from pushx.console import print_driver_table, print_push_summary
from pushx.exceptions import ConfigurationError, DriverNotFoundError
from pushx.logging_config import logger, set_log_level

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

# Generic options, not forwarded to the driver
GENERIC_PARAMS = ("driver", "input_str", "input_file", "output_file", "log_level", "list_drivers")


def initialize_sentry() -> bool:
    """
    Initialize Sentry for error tracking.

    Telemetry is opt-in: it is enabled only when PUSHX_SENTRY_DSN is set and
    TELEMETRY is not "false".

    Returns:
        True if Sentry was initialized
    """
    sentry_dsn = os.getenv("PUSHX_SENTRY_DSN")
    if not sentry_dsn or os.getenv("TELEMETRY", "").lower() == "false":
        return False

    sentry_sdk.init(
        dsn=sentry_dsn,
        release=f"pushx@{__version__}",
        traces_sample_rate=0.0,
        before_send=before_send,
    )
    return True


def before_send(event, hint):
    """
    Filter events before sending to Sentry.
    Don't send operator errors (bad settings, unknown driver).
    """
    if "exc_info" in hint:
        exc_type, exc_value, tb = hint["exc_info"]
        if isinstance(exc_value, (ConfigurationError, DriverNotFoundError)):
            return None
    return event


def _driver_options(registry: DriverRegistry) -> List[click.Option]:
    """Build one click option per distinct driver flag."""
    options: Dict[str, click.Option] = {}
    for name in registry.names():
        for setting in getattr(registry.get_factory(name), "SETTINGS", ()):
            if setting.flag in options:
                continue
            help_text = setting.help
            if setting.default not in (None, "", [], False):
                help_text += f" (default: {setting.default})"
            help_text += f" [env: {DEFAULT_ENV_PREFIX}{setting.env}]"
            decl = f"--{setting.flag}/--no-{setting.flag}" if setting.is_bool else f"--{setting.flag}"
            options[setting.flag] = click.Option([decl], default=None, help=help_text)
    return list(options.values())


def _command_line_flags(ctx: click.Context, params: Mapping[str, Any]) -> Dict[str, Any]:
    """Collect driver options the operator actually typed, keyed by flag name."""
    flags: Dict[str, Any] = {}
    for param in ctx.command.params:
        if param.name in GENERIC_PARAMS or param.name not in params:
            continue
        if ctx.get_parameter_source(param.name) != ParameterSource.COMMANDLINE:
            continue
        flag = param.opts[0].lstrip("-")
        flags[flag] = params[param.name]
    return flags


def build_request(
    driver: Optional[str],
    input_str: Optional[str],
    input_file: Optional[str],
    output_file: Optional[str],
    flags: Mapping[str, Any],
) -> DeliveryRequest:
    """
    Build the DeliveryRequest for a run from parsed CLI values.

    Args:
        driver: Driver name (may be empty; the run then fails at resolve)
        input_str: Literal payload
        input_file: Input path or "-"
        output_file: Secondary output path or "-"
        flags: Driver flags supplied on the command line

    Returns:
        DeliveryRequest ready for PushOrchestrator.run()
    """
    return DeliveryRequest(
        driver_name=(driver or "").strip(),
        input_str=input_str or "",
        input_file=input_file or STDIO_SENTINEL,
        output_file=output_file or None,
        flags=dict(flags),
    )


def _report(result: PushResult) -> None:
    print_push_summary(
        driver_name=result.driver_name,
        success=result.success,
        delivered=result.delivered,
        stage=result.stage or "",
        error_message=result.error_message or "",
    )
    if result.error is not None:
        sentry_sdk.capture_exception(result.error)


@click.command(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, "-v", "--version", prog_name="pushx", message="%(prog)s version %(version)s")
@click.option("--driver", "-d", envvar="PUSHX_DRIVER", help="Destination driver, e.g. http, aws-s3, redis-list.")
@click.option("--in", "input_str", envvar="PUSHX_INPUT_STR", help="Literal payload; wins over --in-file.")
@click.option(
    "--in-file",
    "input_file",
    envvar="PUSHX_INPUT_FILE",
    default=STDIO_SENTINEL,
    show_default=True,
    help='File to read the payload from, "-" for stdin.',
)
@click.option(
    "--out",
    "output_file",
    envvar="PUSHX_OUTPUT_FILE",
    help='Also write the payload to this file, "-" for stdout.',
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    help="Log level (default: LOG_LEVEL or INFO).",
)
@click.option("--list-drivers", is_flag=True, help="List available drivers and exit.")
@click.pass_context
def cli(
    ctx: click.Context,
    driver: Optional[str],
    input_str: Optional[str],
    input_file: Optional[str],
    output_file: Optional[str],
    log_level: Optional[str],
    list_drivers: bool,
    **driver_options: Any,
) -> None:
    """Push a payload from a string, file or stdin to a single destination.

    Driver options can also be set through PUSHX_<NAME> environment
    variables, e.g. PUSHX_HTTP_REQUEST_URL. Options given on the command
    line win over the environment.
    """
    if log_level:
        set_log_level(log_level)

    orchestrator = PushOrchestrator(registry=_registry)
    if list_drivers:
        print_driver_table(orchestrator.list_drivers())
        ctx.exit(0)

    initialize_sentry()

    request = build_request(driver, input_str, input_file, output_file, _command_line_flags(ctx, driver_options))
    logger.debug(f"Driver flags from command line: {sorted(request.flags)}")
    result = orchestrator.run(request)
    _report(result)
    ctx.exit(result.exit_code)


_registry = create_default_registry()
cli.params.extend(_driver_options(_registry))


def main() -> None:
    """Entry point for the pushx console script."""
    cli()


if __name__ == "__main__":
    main()
