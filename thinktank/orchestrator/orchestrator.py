"""Runs the model processor for several models in parallel."""

import contextvars
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

import structlog

from thinktank.auditlog import AuditEntry, AuditLogger, AuditStatus, ErrorInfo
from thinktank.config import CliConfig
from thinktank.context import RunContext
from thinktank.llm.errors import ErrorCategory, find_categorized
from thinktank.modelproc import ModelProcessingError, ModelProcessor
from thinktank.modelproc.processor import OUTPUT_EXTENSION, sanitize_filename
from thinktank.orchestrator.rate_limiter import RateLimiterProtocol
from thinktank.prompt import stitch_synthesis_prompt


logger = structlog.get_logger()

SYNTHESIS_SUFFIX = "-synthesis"


@dataclass(frozen=True)
class ModelRunResult:
    """Outcome of processing one model."""

    model_name: str
    output_path: Path | None = None
    error: Exception | None = None
    duration_ms: float = 0.0

    @property
    def success(self) -> bool:
        """Whether the model produced an output file."""
        return self.error is None


@dataclass
class RunSummary:
    """Aggregate outcome of a run."""

    correlation_id: str
    started_at: datetime
    finished_at: datetime
    results: list[ModelRunResult] = field(default_factory=list)
    synthesis_path: Path | None = None

    @property
    def succeeded(self) -> list[ModelRunResult]:
        """Results that produced output."""
        return [r for r in self.results if r.success]

    @property
    def failed(self) -> list[ModelRunResult]:
        """Results that failed."""
        return [r for r in self.results if not r.success]

    @property
    def output_paths(self) -> dict[str, Path]:
        """Output file per successful model."""
        return {r.model_name: r.output_path for r in self.succeeded if r.output_path}

    @property
    def duration_ms(self) -> float:
        """Total wall-clock duration in milliseconds."""
        return (self.finished_at - self.started_at).total_seconds() * 1000

    def error_summary(self) -> str:
        """Failed models and their errors joined with ``; ``."""
        return "; ".join(f"{r.model_name}: {r.error}" for r in self.failed)


class OrchestratorError(Exception):
    """Base class for run-level failures.

    Attributes:
        summary: Run summary, None if the run never started.
    """

    def __init__(self, message: str, summary: RunSummary | None = None) -> None:
        super().__init__(message)
        self.summary = summary


class NoModelsSpecifiedError(OrchestratorError):
    """The run was started without any model."""


class AllModelsFailedError(OrchestratorError):
    """Every model failed."""

    @property
    def category(self) -> ErrorCategory:
        """Shared category of all failures, UNKNOWN when they differ."""
        categories = set()
        for result in self.summary.failed if self.summary else []:
            categorized = find_categorized(result.error)
            categories.add(
                categorized.category if categorized else ErrorCategory.UNKNOWN
            )
        if len(categories) == 1:
            return categories.pop()
        return ErrorCategory.UNKNOWN


class PartialFailureError(OrchestratorError):
    """Some models failed and partial success was not accepted."""


class SynthesisError(OrchestratorError):
    """The synthesis model failed to combine the model outputs."""

    @property
    def category(self) -> ErrorCategory:
        """Category of the underlying failure, UNKNOWN when it has none."""
        categorized = find_categorized(self.__cause__)
        return categorized.category if categorized else ErrorCategory.UNKNOWN


class Orchestrator:
    """Fans one prompt out to every configured model.

    Provides:
    - Parallel model processing capped at ``max_concurrent_requests``
    - Request start rate limiting
    - Failure isolation (one model failing doesn't stop others)
    """

    def __init__(
        self,
        processor: ModelProcessor,
        audit_logger: AuditLogger,
        config: CliConfig,
        rate_limiter: RateLimiterProtocol,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            processor: Per-model pipeline.
            audit_logger: Receives run-level audit entries.
            config: Run configuration.
            rate_limiter: Gate each model passes before its request starts.
        """
        self._processor = processor
        self._audit = audit_logger
        self._config = config
        self._rate_limiter = rate_limiter
        self._log = logger.bind(component="orchestrator")

    def run(self, ctx: RunContext, prompt: str, instructions: str = "") -> RunSummary:
        """Process every configured model and aggregate the outcome.

        When a synthesis model is configured and at least one model
        succeeded, the successful outputs are combined by that model into
        ``<output_dir>/<synthesis model>-synthesis.md``.

        Args:
            ctx: Run context.
            prompt: Complete prompt text.
            instructions: Original instructions, repeated in the synthesis
                prompt.

        Returns:
            RunSummary when all models succeed, or when some succeed and
            partial success is accepted.

        Raises:
            NoModelsSpecifiedError: If no model is configured.
            AllModelsFailedError: If every model failed.
            SynthesisError: If the synthesis step failed.
            PartialFailureError: If some models failed and partial success
                is not accepted.
            KeyboardInterrupt: Re-raised after cancelling the run; models
                still queued are never started.
        """
        model_names = list(self._config.model_names)
        if not model_names:
            msg = "no models specified"
            raise NoModelsSpecifiedError(msg)

        log = self._log.bind(correlation_id=ctx.correlation_id)
        started_at = datetime.now(UTC)
        self._write_audit(
            AuditEntry(
                operation="ExecuteStart",
                status=AuditStatus.IN_PROGRESS,
                inputs={
                    "model_names": model_names,
                    "prompt_length": len(prompt),
                    "max_concurrent": self._config.max_concurrent_requests,
                    "rate_limit_rpm": self._config.rate_limit_rpm,
                },
                message="Starting execution",
            )
        )
        log.info(
            "run_started",
            models=model_names,
            max_concurrent=self._config.max_concurrent_requests,
        )

        results: dict[str, ModelRunResult] = {}
        workers = min(self._config.max_concurrent_requests, len(model_names))
        executor = ThreadPoolExecutor(max_workers=workers)
        try:
            future_to_model = {
                # Each worker gets a copy of the caller's structlog contextvars
                executor.submit(
                    contextvars.copy_context().run, self._run_model, ctx, name, prompt
                ): name
                for name in model_names
            }
            for future in as_completed(future_to_model):
                name = future_to_model[future]
                results[name] = future.result()
        except KeyboardInterrupt:
            ctx.cancel()
            executor.shutdown(wait=False, cancel_futures=True)
            log.warning("run_interrupted", models_finished=len(results))
            raise
        executor.shutdown(wait=True)

        summary = RunSummary(
            correlation_id=ctx.correlation_id,
            started_at=started_at,
            finished_at=datetime.now(UTC),
            results=[results[name] for name in model_names],
        )

        synthesis_error: SynthesisError | None = None
        if self._config.synthesis_model and summary.succeeded:
            try:
                summary.synthesis_path = self._synthesize(ctx, instructions, summary)
            except SynthesisError as e:
                synthesis_error = e
            summary.finished_at = datetime.now(UTC)

        self._finish(summary, log, synthesis_error)
        return summary

    def _run_model(
        self, ctx: RunContext, model_name: str, prompt: str
    ) -> ModelRunResult:
        start_ns = time.perf_counter_ns()
        try:
            self._rate_limiter.acquire(ctx)
            path = self._processor.process(ctx, model_name, prompt)
        except Exception as e:  # noqa: BLE001
            duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
            self._log.warning(
                "model_failed",
                model=model_name,
                error=str(e),
                duration_ms=round(duration_ms, 2),
            )
            return ModelRunResult(
                model_name=model_name, error=e, duration_ms=duration_ms
            )

        duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
        return ModelRunResult(
            model_name=model_name, output_path=path, duration_ms=duration_ms
        )

    def _synthesize(
        self, ctx: RunContext, instructions: str, summary: RunSummary
    ) -> Path:
        """Combine the successful outputs with the synthesis model.

        Raises:
            SynthesisError: If the outputs cannot be read back, or the
                synthesis model fails to generate or save.
        """
        model_name = self._config.synthesis_model or ""
        log = self._log.bind(synthesis_model=model_name)
        path = self._config.output_dir / (
            f"{sanitize_filename(model_name)}{SYNTHESIS_SUFFIX}{OUTPUT_EXTENSION}"
        )
        self._write_audit(
            AuditEntry(
                operation="SynthesisStart",
                status=AuditStatus.IN_PROGRESS,
                inputs={
                    "synthesis_model": model_name,
                    "model_count": len(summary.succeeded),
                    "model_names": [r.model_name for r in summary.succeeded],
                },
                message=f"Starting synthesis with model {model_name}",
            )
        )
        log.info("synthesis_started", model_count=len(summary.succeeded))

        start_ns = time.perf_counter_ns()
        try:
            outputs = {
                name: output_path.read_text(encoding="utf-8")
                for name, output_path in summary.output_paths.items()
            }
            synthesis_prompt = stitch_synthesis_prompt(instructions, outputs)
            content = self._processor.generate(ctx, model_name, synthesis_prompt)
            self._processor.save_output(model_name, content, path)
        except (OSError, ModelProcessingError) as e:
            duration_ms = (time.perf_counter_ns() - start_ns) // 1_000_000
            log.error("synthesis_failed", error=str(e), duration_ms=duration_ms)
            self._write_audit(
                AuditEntry(
                    operation="SynthesisEnd",
                    status=AuditStatus.FAILURE,
                    duration_ms=duration_ms,
                    inputs={"synthesis_model": model_name},
                    error=ErrorInfo(message=str(e), type="SynthesisError"),
                    message=f"Synthesis failed with model {model_name}",
                )
            )
            msg = f"synthesis with model {model_name} failed: {e}"
            raise SynthesisError(msg) from e

        duration_ms = (time.perf_counter_ns() - start_ns) // 1_000_000
        self._write_audit(
            AuditEntry(
                operation="SynthesisEnd",
                status=AuditStatus.SUCCESS,
                duration_ms=duration_ms,
                inputs={"synthesis_model": model_name},
                outputs={"output_path": str(path), "content_length": len(content)},
                message=f"Synthesis completed with model {model_name}",
            )
        )
        log.info("synthesis_complete", output_path=str(path), duration_ms=duration_ms)
        return path

    def _finish(
        self,
        summary: RunSummary,
        log: structlog.stdlib.BoundLogger,
        synthesis_error: SynthesisError | None = None,
    ) -> None:
        succeeded = len(summary.succeeded)
        total = len(summary.results)
        log.info(
            "run_complete",
            duration_ms=round(summary.duration_ms, 2),
            models_succeeded=succeeded,
            models_failed=total - succeeded,
        )

        if synthesis_error is not None:
            self._write_audit(
                AuditEntry(
                    operation="ExecuteEnd",
                    status=AuditStatus.FAILURE,
                    duration_ms=int(summary.duration_ms),
                    outputs={
                        "models_succeeded": succeeded,
                        "models_failed": total - succeeded,
                    },
                    error=ErrorInfo(
                        message=str(synthesis_error), type="SynthesisError"
                    ),
                    message="Execution failed during synthesis",
                )
            )
            synthesis_error.summary = summary
            raise synthesis_error

        if succeeded == total:
            self._write_audit(
                AuditEntry(
                    operation="ExecuteEnd",
                    status=AuditStatus.SUCCESS,
                    duration_ms=int(summary.duration_ms),
                    outputs={"models_succeeded": succeeded},
                    message="Execution completed successfully",
                )
            )
            return

        if succeeded == 0:
            msg = f"all models failed: {summary.error_summary()}"
            error: OrchestratorError = AllModelsFailedError(msg, summary)
        else:
            msg = (
                f"processed {succeeded}/{total} models successfully; "
                f"{total - succeeded} failed: {summary.error_summary()}"
            )
            error = PartialFailureError(msg, summary)

        self._write_audit(
            AuditEntry(
                operation="ExecuteEnd",
                status=AuditStatus.FAILURE,
                duration_ms=int(summary.duration_ms),
                outputs={
                    "models_succeeded": succeeded,
                    "models_failed": total - succeeded,
                },
                error=ErrorInfo(message=msg, type=type(error).__name__),
                message="Execution completed with failures",
            )
        )

        if succeeded and self._config.partial_success_ok:
            log.warning("partial_success_accepted", models_failed=total - succeeded)
            return
        raise error

    def _write_audit(self, entry: AuditEntry) -> None:
        """Record an audit entry; failures are logged and never raised."""
        try:
            self._audit.log(entry)
        except Exception as e:  # noqa: BLE001
            self._log.error(
                "audit_log_write_failed", operation=entry.operation, error=str(e)
            )
