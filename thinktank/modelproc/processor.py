"""Per-model processing pipeline.

One :meth:`ModelProcessor.process` call takes a single model from client
creation to a written output file:

1. create the client through the API service;
2. resolve model parameters (best effort);
3. generate content, bracketed by ``GenerateContentStart``/``End`` audit entries;
4. extract the text from the provider result;
5. write ``<output_dir>/<sanitized model name>.md``, bracketed by
   ``SaveOutputStart``/``End`` audit entries.

Every failure is terminal for the call. Nothing is retried.
"""

import time
from pathlib import Path
from typing import Any

import structlog

from thinktank.auditlog import AuditEntry, AuditLogger, AuditStatus, ErrorInfo
from thinktank.config import CliConfig
from thinktank.context import RunContext
from thinktank.llm.errors import ErrorCategory, find_categorized
from thinktank.llm.protocols import LlmClient
from thinktank.modelproc.classify import (
    AuditErrorType,
    classify_error,
    remediation_hint,
)
from thinktank.modelproc.errors import (
    ContentFilteredError,
    EmptyModelResponseError,
    InvalidModelResponseError,
    ModelGenerationError,
    ModelInitializationError,
    ModelProcessingError,
    ModelRateLimitedError,
    ModelTokenLimitExceededError,
    OutputWriteError,
)
from thinktank.output import OutputWriter
from thinktank.service.protocols import ApiService


logger = structlog.get_logger()

OUTPUT_EXTENSION = ".md"

_FILENAME_REPLACEMENTS = str.maketrans(dict.fromkeys('/\\:*?"<>|', "-"))


def sanitize_filename(name: str) -> str:
    """Replace characters that are unsafe in file names with ``-``.

    Each of ``/ \\ : * ? " < > |`` maps to one ``-``; all other characters
    are kept, so the result has the same length as the input.

    Args:
        name: Model name.

    Returns:
        Name usable as a file name on common filesystems.
    """
    return name.translate(_FILENAME_REPLACEMENTS)


def _elapsed_ms(start_ns: int) -> int:
    return (time.perf_counter_ns() - start_ns) // 1_000_000


class ModelProcessor:
    """Runs the generate-and-save lifecycle for one model at a time.

    Instances hold only injected collaborators, so one processor may serve
    concurrent ``process`` calls for different models.
    """

    def __init__(
        self,
        api_service: ApiService,
        file_writer: OutputWriter,
        audit_logger: AuditLogger,
        config: CliConfig,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        """Initialize the processor.

        Args:
            api_service: Creates clients and interprets their results.
            file_writer: Persists output files.
            audit_logger: Receives audit entries.
            config: Run configuration (output directory, key, endpoint).
            logger: Base logger, the module logger when omitted.
        """
        self._api = api_service
        self._writer = file_writer
        self._audit = audit_logger
        self._config = config
        self._log = (logger or structlog.get_logger()).bind(component="modelproc")

    def output_path_for(self, model_name: str) -> Path:
        """Return the output file path for a model."""
        filename = f"{sanitize_filename(model_name)}{OUTPUT_EXTENSION}"
        return self._config.output_dir / filename

    def process(self, ctx: RunContext, model_name: str, prompt: str) -> Path:
        """Generate output for one model and write it to disk.

        Args:
            ctx: Run context shared by all models of the run.
            model_name: Registry model name.
            prompt: Complete prompt text.

        Returns:
            Path of the written output file.

        Raises:
            ModelProcessingError: A subclass describing the failed phase.
        """
        log = self._log.bind(model=model_name)
        log.info("model_processing_started")

        content = self.generate(ctx, model_name, prompt)
        path = self.output_path_for(model_name)
        self.save_output(model_name, content, path)

        log.info("model_processing_completed", output_path=str(path))
        return path

    def generate(self, ctx: RunContext, model_name: str, prompt: str) -> str:
        """Create the model's client, generate content and extract the text.

        The client is closed before returning, whatever the outcome.

        Raises:
            ModelProcessingError: A subclass describing the failed phase.
        """
        log = self._log.bind(model=model_name)

        client: LlmClient | None = None
        try:
            client = self._api.init_llm_client(
                ctx, self._config.api_key, model_name, self._config.api_endpoint
            )
        except Exception as e:
            log.error(
                "llm_client_init_failed", error=self._api.get_error_details(e)
            )
            category = _category_of(e, ErrorCategory.INVALID_REQUEST)
            msg = f"failed to initialize API client for model {model_name}: {e}"
            raise ModelInitializationError(msg, model_name, category) from e

        try:
            return self._generate(ctx, client, model_name, prompt, log)
        finally:
            if client is not None:
                client.close()

    def _resolve_parameters(
        self, model_name: str, log: structlog.stdlib.BoundLogger
    ) -> dict[str, Any]:
        try:
            params = self._api.get_model_parameters(model_name)
        except Exception as e:  # noqa: BLE001
            log.debug("model_parameters_unavailable", error=str(e))
            return {}
        if params:
            log.debug("model_parameters_resolved", parameters=params)
        return params

    def _generate(
        self,
        ctx: RunContext,
        client: LlmClient,
        model_name: str,
        prompt: str,
        log: structlog.stdlib.BoundLogger,
    ) -> str:
        params = self._resolve_parameters(model_name, log)

        inputs = {"model_name": model_name, "prompt_length": len(prompt)}
        self._write_audit(
            AuditEntry(
                operation="GenerateContentStart",
                status=AuditStatus.IN_PROGRESS,
                inputs=inputs,
                message=f"Starting content generation with model {model_name}",
            )
        )

        start_ns = time.perf_counter_ns()
        try:
            result = client.generate_content(ctx, prompt, params)
        except Exception as e:
            duration_ms = _elapsed_ms(start_ns)
            error_type = classify_error(e, self._api)
            log.error(
                "content_generation_failed",
                error_type=error_type.value,
                error=self._api.get_error_details(e),
                duration_ms=duration_ms,
            )
            hint = remediation_hint(error_type)
            if hint:
                log.info("remediation_hint", hint=hint)
            self._write_audit(
                AuditEntry(
                    operation="GenerateContentEnd",
                    status=AuditStatus.FAILURE,
                    duration_ms=duration_ms,
                    inputs=inputs,
                    error=ErrorInfo(message=str(e), type=error_type.value),
                    message=f"Content generation failed for model {model_name}",
                )
            )
            msg = f"output generation failed for model {model_name}: {e}"
            raise ModelGenerationError(msg, model_name, _category_of(e)) from e

        duration_ms = _elapsed_ms(start_ns)
        self._write_audit(
            AuditEntry(
                operation="GenerateContentEnd",
                status=AuditStatus.SUCCESS,
                duration_ms=duration_ms,
                inputs=inputs,
                outputs={
                    "finish_reason": result.finish_reason,
                    "has_safety_ratings": bool(result.safety_info),
                },
                message=f"Content generation completed for model {model_name}",
            )
        )

        try:
            content = self._api.process_llm_response(result)
        except Exception as e:
            raise self._response_error(e, model_name, log) from e

        log.info(
            "content_generated",
            content_length=len(content),
            token_count=result.token_count,
            finish_reason=result.finish_reason,
            duration_ms=duration_ms,
        )
        return content

    def _response_error(
        self,
        err: Exception,
        model_name: str,
        log: structlog.stdlib.BoundLogger,
    ) -> ModelProcessingError:
        """Translate a response-extraction failure into a processing error."""
        details = self._api.get_error_details(err)
        prefix = f"failed to process API response for model {model_name}"

        if self._api.is_empty_response_error(err):
            log.error("empty_model_response", error=details)
            return EmptyModelResponseError(
                f"{prefix} due to empty content: {err}",
                model_name,
                ErrorCategory.INVALID_REQUEST,
            )
        if self._api.is_safety_blocked_error(err):
            log.error("content_blocked_by_safety_filters", error=details)
            return ContentFilteredError(
                f"{prefix} due to safety restrictions: {err}",
                model_name,
                ErrorCategory.CONTENT_FILTERED,
            )

        categorized = find_categorized(err)
        if categorized is None:
            log.error("invalid_model_response", error=details)
            return InvalidModelResponseError(
                f"{prefix}: {err}", model_name, ErrorCategory.INVALID_REQUEST
            )

        category = categorized.category
        log.error("invalid_model_response", category=category.value, error=details)
        if category is ErrorCategory.CONTENT_FILTERED:
            return ContentFilteredError(
                f"{prefix} due to content filtering: {err}", model_name, category
            )
        if category is ErrorCategory.RATE_LIMIT:
            return ModelRateLimitedError(
                f"{prefix} due to rate limiting: {err}", model_name, category
            )
        if category is ErrorCategory.INPUT_LIMIT:
            return ModelTokenLimitExceededError(
                f"{prefix} due to input limits: {err}", model_name, category
            )
        return InvalidModelResponseError(
            f"{prefix} ({category.value} error): {err}", model_name, category
        )

    def save_output(self, model_name: str, content: str, path: Path) -> None:
        """Write content to path, bracketed by save audit entries.

        Any writer failure is audited as ``FileIOError``.

        Raises:
            OutputWriteError: If the writer raised.
        """
        log = self._log.bind(model=model_name)
        inputs = {"output_path": str(path), "content_length": len(content)}
        self._write_audit(
            AuditEntry(
                operation="SaveOutputStart",
                status=AuditStatus.IN_PROGRESS,
                inputs=inputs,
                message=f"Saving output for model {model_name}",
            )
        )

        start_ns = time.perf_counter_ns()
        try:
            self._writer.save_to_file(content, path)
        except Exception as e:
            duration_ms = _elapsed_ms(start_ns)
            log.error("output_save_failed", output_path=str(path), error=str(e))
            log.info("remediation_hint", hint=remediation_hint(AuditErrorType.FILE_IO))
            self._write_audit(
                AuditEntry(
                    operation="SaveOutputEnd",
                    status=AuditStatus.FAILURE,
                    duration_ms=duration_ms,
                    inputs=inputs,
                    error=ErrorInfo(message=str(e), type=AuditErrorType.FILE_IO.value),
                    message=f"Failed to save output for model {model_name}",
                )
            )
            msg = f"failed to save output for model {model_name} to {path}: {e}"
            raise OutputWriteError(msg, model_name, path) from e

        self._write_audit(
            AuditEntry(
                operation="SaveOutputEnd",
                status=AuditStatus.SUCCESS,
                duration_ms=_elapsed_ms(start_ns),
                inputs=inputs,
                outputs={"content_length": len(content)},
                message=f"Successfully saved output for model {model_name}",
            )
        )
        log.info("output_saved", output_path=str(path))

    def _write_audit(self, entry: AuditEntry) -> None:
        """Record an audit entry; failures are logged and never raised."""
        try:
            self._audit.log(entry)
        except Exception as e:  # noqa: BLE001
            self._log.error(
                "audit_log_write_failed", operation=entry.operation, error=str(e)
            )


def _category_of(
    err: BaseException, default: ErrorCategory = ErrorCategory.UNKNOWN
) -> ErrorCategory:
    categorized = find_categorized(err)
    if categorized is None or categorized.category is ErrorCategory.UNKNOWN:
        return default
    return categorized.category
