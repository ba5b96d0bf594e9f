"""CLI commands for thinktank."""

import logging
import sys
from datetime import datetime
from pathlib import Path

import click
import structlog
from pydantic import ValidationError

from thinktank import __version__
from thinktank.auditlog import (
    AuditLogError,
    AuditLogger,
    FileAuditLogger,
    NoOpAuditLogger,
)
from thinktank.config import (
    DEFAULT_MAX_CONCURRENT,
    DEFAULT_RATE_LIMIT_RPM,
    CliConfig,
)
from thinktank.context import RunContext
from thinktank.llm.errors import ErrorCategory, find_categorized
from thinktank.modelproc import ModelProcessor
from thinktank.observability import (
    bind_correlation_id,
    clear_correlation_id,
    configure_logging,
)
from thinktank.orchestrator import (
    AllModelsFailedError,
    Orchestrator,
    OrchestratorError,
    PartialFailureError,
    RunSummary,
    TokenBucketRateLimiter,
)
from thinktank.output import FileWriter
from thinktank.prompt import FilterOptions, gather_context, stitch_prompt
from thinktank.registry import ModelRegistry, RegistryConfigError, load_models_config
from thinktank.service import RegistryApiService
from thinktank.settings import AppSettings, get_settings


logger = structlog.get_logger()

EXIT_SUCCESS = 0
EXIT_GENERIC_ERROR = 1
EXIT_PARTIAL_FAILURE = 11

EXIT_CODES: dict[ErrorCategory, int] = {
    ErrorCategory.UNKNOWN: EXIT_GENERIC_ERROR,
    ErrorCategory.AUTH: 2,
    ErrorCategory.RATE_LIMIT: 3,
    ErrorCategory.INVALID_REQUEST: 4,
    ErrorCategory.NOT_FOUND: 4,
    ErrorCategory.SERVER: 5,
    ErrorCategory.NETWORK: 6,
    ErrorCategory.INPUT_LIMIT: 7,
    ErrorCategory.CONTENT_FILTERED: 8,
    ErrorCategory.INSUFFICIENT_CREDITS: 9,
    ErrorCategory.CANCELLED: 10,
}


def exit_code_for(err: BaseException) -> int:
    """Map a run failure to a process exit code.

    Args:
        err: Error that ended the run.

    Returns:
        Exit code, 1 when the error carries no category.
    """
    if isinstance(err, PartialFailureError):
        return EXIT_PARTIAL_FAILURE
    if isinstance(err, AllModelsFailedError):
        return EXIT_CODES[err.category]
    categorized = find_categorized(err)
    if categorized is None:
        return EXIT_GENERIC_ERROR
    return EXIT_CODES.get(categorized.category, EXIT_GENERIC_ERROR)


def default_output_dir(now: datetime | None = None) -> Path:
    """Return ``thinktank_<YYYYMMDD_HHMMSS>`` under the working directory."""
    now = now or datetime.now()  # noqa: DTZ005
    return Path(f"thinktank_{now:%Y%m%d_%H%M%S}")


def _split_csv(values: tuple[str, ...]) -> list[str]:
    """Flatten repeated, comma-separated option values."""
    return [
        part.strip() for value in values for part in value.split(",") if part.strip()
    ]


def _load_registry(models_config: Path | None, settings: AppSettings) -> ModelRegistry:
    """Load the registry, exiting with a readable message on invalid config."""
    path = models_config or settings.models_config
    try:
        return ModelRegistry(load_models_config(path))
    except RegistryConfigError as e:
        click.echo(f"Error: {e}", err=True)
        for error in e.errors:
            click.echo(f"  - {error['loc']}: {error['msg']}", err=True)
        sys.exit(EXIT_GENERIC_ERROR)


def _build_prompt(config: CliConfig) -> tuple[str, str]:
    """Read instructions and gather context files into one prompt.

    Returns:
        Tuple of (instructions, prompt).
    """
    instructions = ""
    if config.instructions_file is not None:
        instructions = config.instructions_file.read_text(encoding="utf-8")
    options = FilterOptions.from_lists(
        config.include,
        config.exclude,
        config.exclude_names,
        use_gitignore=config.use_gitignore,
    )
    gathered = gather_context(config.paths, options)
    return instructions, stitch_prompt(instructions, gathered.files)


def _open_audit_logger(config: CliConfig) -> AuditLogger:
    if config.audit_log_file is None:
        return NoOpAuditLogger()
    try:
        return FileAuditLogger(config.audit_log_file)
    except AuditLogError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_GENERIC_ERROR)


def _report_token_usage(
    run_ctx: RunContext, service: RegistryApiService, config: CliConfig, prompt: str
) -> int:
    """Print the prompt size against each model's input window.

    Returns:
        Exit code: 0 when every model fits, otherwise the input limit code.
    """
    exit_code = EXIT_SUCCESS
    click.echo(f"Prompt: {len(prompt)} characters")
    for model_name in config.model_names:
        try:
            client = service.init_llm_client(
                run_ctx, config.api_key, model_name, config.api_endpoint
            )
        except Exception as e:  # noqa: BLE001
            click.echo(f"  {model_name}: {service.get_error_details(e)}", err=True)
            exit_code = exit_code or exit_code_for(e)
            continue
        try:
            info = service.get_token_info(run_ctx, client, prompt, model_name)
        except Exception as e:  # noqa: BLE001
            click.echo(f"  {model_name}: {service.get_error_details(e)}", err=True)
            exit_code = exit_code or exit_code_for(e)
            continue
        finally:
            client.close()
        click.echo(
            f"  {model_name}: {info.token_count} / {info.input_limit} tokens "
            f"({info.percentage:.1f}%)"
        )
        if info.exceeds_limit:
            click.echo(f"    {info.limit_error}", err=True)
            exit_code = exit_code or EXIT_CODES[ErrorCategory.INPUT_LIMIT]
    return exit_code


def _report_outputs(summary: RunSummary) -> None:
    for model_name, path in summary.output_paths.items():
        click.echo(f"{model_name}: {path}")
    if summary.synthesis_path is not None:
        click.echo(f"synthesis: {summary.synthesis_path}")
    for result in summary.failed:
        click.echo(f"{result.model_name} failed: {result.error}", err=True)


def _execute_run(config: CliConfig, models_config: Path | None) -> int:
    """Run every configured model and return the process exit code."""
    run_ctx = RunContext(timeout=config.timeout_seconds)
    bind_correlation_id(run_ctx.correlation_id)
    log = logger.bind(component="cli", command="run")
    log.info(
        "thinktank_run_started",
        models=config.model_names,
        output_dir=str(config.output_dir),
        dry_run=config.dry_run,
    )

    settings = get_settings()
    registry = _load_registry(models_config, settings)
    service = RegistryApiService(registry, settings)

    try:
        instructions, prompt = _build_prompt(config)
    except (OSError, UnicodeDecodeError) as e:
        click.echo(f"Error: {e}", err=True)
        return EXIT_GENERIC_ERROR

    if config.dry_run:
        return _report_token_usage(run_ctx, service, config, prompt)

    audit_logger = _open_audit_logger(config)
    try:
        processor = ModelProcessor(service, FileWriter(), audit_logger, config)
        rate_limiter = TokenBucketRateLimiter(
            requests_per_minute=config.rate_limit_rpm,
            burst=float(config.max_concurrent_requests),
        )
        orchestrator = Orchestrator(processor, audit_logger, config, rate_limiter)
        try:
            summary = orchestrator.run(run_ctx, prompt, instructions)
        except KeyboardInterrupt:
            run_ctx.cancel()
            click.echo("Cancelled.", err=True)
            return EXIT_CODES[ErrorCategory.CANCELLED]
        except OrchestratorError as e:
            if e.summary is not None:
                _report_outputs(e.summary)
            click.echo(f"Error: {e}", err=True)
            log.error("thinktank_run_failed", error=str(e))
            return exit_code_for(e)
    finally:
        audit_logger.close()

    _report_outputs(summary)
    log.info(
        "thinktank_run_complete",
        models_succeeded=len(summary.succeeded),
        models_failed=len(summary.failed),
    )
    return EXIT_SUCCESS


@click.group()
@click.version_option(version=__version__)
def cli() -> None:
    """Send one prompt to several LLMs and save each answer."""


@cli.command()
@click.option(
    "--instructions",
    "instructions_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="File with the instructions part of the prompt.",
)
@click.option(
    "--model",
    "model_names",
    multiple=True,
    required=True,
    help="Model to query. Repeat for several models.",
)
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory for output files (default: thinktank_<timestamp>).",
)
@click.option(
    "--models-config",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Models YAML file (default: $THINKTANK_MODELS_CONFIG).",
)
@click.option(
    "--audit-log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Append JSON-lines audit entries to this file.",
)
@click.option(
    "--api-endpoint",
    default="",
    help="Override the API endpoint for every provider.",
)
@click.option(
    "--max-concurrent",
    "max_concurrent_requests",
    type=click.IntRange(min=1),
    default=DEFAULT_MAX_CONCURRENT,
    show_default=True,
    help="Models processed in parallel.",
)
@click.option(
    "--rate-limit",
    "rate_limit_rpm",
    type=click.IntRange(min=0),
    default=DEFAULT_RATE_LIMIT_RPM,
    show_default=True,
    help="Requests started per minute, 0 to disable.",
)
@click.option(
    "--synthesis-model",
    default=None,
    help="Model that combines the successful outputs into one file.",
)
@click.option(
    "--partial-success-ok",
    is_flag=True,
    help="Exit successfully when at least one model succeeds.",
)
@click.option(
    "--timeout",
    "timeout_seconds",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Overall time budget in seconds.",
)
@click.option(
    "--include",
    multiple=True,
    help="Comma-separated extensions to include (e.g. .py,.md).",
)
@click.option(
    "--exclude",
    multiple=True,
    help="Comma-separated extensions to exclude.",
)
@click.option(
    "--exclude-names",
    multiple=True,
    help="Comma-separated file or directory names to skip.",
)
@click.option(
    "--gitignore/--no-gitignore",
    "use_gitignore",
    default=True,
    show_default=True,
    help="Skip context files ignored by git.",
)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Report prompt size per model without generating.",
)
@click.option(
    "--json-logs/--no-json-logs",
    default=False,
    help="Use JSON format for logs (default: false).",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose logging.",
)
@click.argument(
    "paths",
    nargs=-1,
    type=click.Path(exists=True, path_type=Path),
)
def run(  # noqa: PLR0913
    instructions_file: Path | None,
    model_names: tuple[str, ...],
    output_dir: Path | None,
    models_config: Path | None,
    audit_log_file: Path | None,
    api_endpoint: str,
    max_concurrent_requests: int,
    rate_limit_rpm: int,
    synthesis_model: str | None,
    partial_success_ok: bool,
    timeout_seconds: float | None,
    include: tuple[str, ...],
    exclude: tuple[str, ...],
    exclude_names: tuple[str, ...],
    use_gitignore: bool,
    dry_run: bool,
    json_logs: bool,
    verbose: bool,
    paths: tuple[Path, ...],
) -> None:
    """Send the prompt built from --instructions and PATHS to every model.

    Each model's answer is written to <output-dir>/<model>.md. Models run
    in parallel; one failing does not stop the others. With
    --synthesis-model, the successful answers are also combined into
    <output-dir>/<synthesis-model>-synthesis.md.
    """
    configure_logging(
        level=logging.DEBUG if verbose else logging.INFO, json_format=json_logs
    )
    try:
        config = CliConfig(
            output_dir=output_dir or default_output_dir(),
            model_names=list(model_names),
            instructions_file=instructions_file,
            paths=list(paths),
            include=_split_csv(include),
            exclude=_split_csv(exclude),
            exclude_names=_split_csv(exclude_names),
            audit_log_file=audit_log_file,
            api_endpoint=api_endpoint,
            max_concurrent_requests=max_concurrent_requests,
            rate_limit_rpm=rate_limit_rpm,
            partial_success_ok=partial_success_ok,
            synthesis_model=synthesis_model,
            use_gitignore=use_gitignore,
            timeout_seconds=timeout_seconds,
            dry_run=dry_run,
        )
    except ValidationError as e:
        click.echo("Invalid options:", err=True)
        for error in e.errors():
            location = ".".join(str(part) for part in error["loc"])
            click.echo(f"  - {location}: {error['msg']}", err=True)
        sys.exit(EXIT_GENERIC_ERROR)

    try:
        exit_code = _execute_run(config, models_config)
    finally:
        clear_correlation_id()
    sys.exit(exit_code)


@cli.command()
@click.option(
    "--models-config",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Models YAML file (default: $THINKTANK_MODELS_CONFIG).",
)
def models(models_config: Path | None) -> None:
    """List the models known to the registry."""
    configure_logging(level=logging.WARNING, json_format=False)
    registry = _load_registry(models_config, get_settings())
    for name in registry.available_models():
        model = registry.get_model(name)
        provider = model.provider if model else "?"
        click.echo(f"{name} ({provider})")


if __name__ == "__main__":
    cli()
