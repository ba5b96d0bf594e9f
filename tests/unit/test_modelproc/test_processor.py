"""Unit tests for ModelProcessor."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from thinktank.auditlog import AuditEntry, AuditLogError, AuditStatus
from thinktank.config import CliConfig
from thinktank.context import RunContext
from thinktank.llm.errors import (
    ClientInitializationError,
    ErrorCategory,
    LlmError,
)
from thinktank.llm.models import ProviderResult, Safety
from thinktank.llm.protocols import LlmClient
from thinktank.modelproc import (
    ContentFilteredError,
    EmptyModelResponseError,
    InvalidModelResponseError,
    ModelGenerationError,
    ModelInitializationError,
    ModelProcessor,
    ModelRateLimitedError,
    OutputWriteError,
)
from thinktank.output import FileWriteError, FileWriter
from thinktank.registry import ModelRegistry, default_models_config
from thinktank.service import RegistryApiService
from thinktank.settings import AppSettings


OUTPUT_DIR = Path("/tmp/test-output")  # noqa: S108


def _make_api(client: LlmClient | None) -> MagicMock:
    """Create an API service mock whose predicates behave like the real ones."""
    real = RegistryApiService(
        ModelRegistry(default_models_config()), MagicMock(spec=AppSettings)
    )
    api = MagicMock(spec=RegistryApiService)
    api.init_llm_client.return_value = client
    api.get_model_parameters.return_value = {}
    api.process_llm_response.side_effect = real.process_llm_response
    api.is_empty_response_error.side_effect = real.is_empty_response_error
    api.is_safety_blocked_error.side_effect = real.is_safety_blocked_error
    api.get_error_details.side_effect = real.get_error_details
    return api


def _make_client(result: ProviderResult | Exception) -> MagicMock:
    client = MagicMock(spec=LlmClient)
    if isinstance(result, Exception):
        client.generate_content.side_effect = result
    else:
        client.generate_content.return_value = result
    return client


def _make_processor(
    api: MagicMock,
    writer: MagicMock | None = None,
    audit: MagicMock | None = None,
) -> ModelProcessor:
    config = CliConfig(output_dir=OUTPUT_DIR, model_names=["test-model"])
    return ModelProcessor(
        api_service=api,
        file_writer=writer or MagicMock(spec=FileWriter),
        audit_logger=audit or MagicMock(),
        config=config,
    )


def _entries(audit: MagicMock) -> list[AuditEntry]:
    return [c.args[0] for c in audit.log.call_args_list]


class TestModelProcessorSuccess:
    """Tests for the successful processing path."""

    def test_writes_output_and_returns_path(self) -> None:
        """Should write the raw content to <output_dir>/<model>.md."""
        client = _make_client(ProviderResult(content="Test content"))
        api = _make_api(client)
        writer = MagicMock(spec=FileWriter)
        processor = _make_processor(api, writer=writer)

        path = processor.process(RunContext(), "test-model", "test prompt")

        assert path == OUTPUT_DIR / "test-model.md"
        writer.save_to_file.assert_called_once_with("Test content", path)
        saved_path = writer.save_to_file.call_args.args[1]
        assert saved_path.name == "test-model.md"

    def test_records_four_audit_entries(self) -> None:
        """Should bracket generation and saving with start/end entries."""
        client = _make_client(
            ProviderResult(content="Test content", finish_reason="STOP")
        )
        audit = MagicMock()
        processor = _make_processor(_make_api(client), audit=audit)

        processor.process(RunContext(), "test-model", "test prompt")

        entries = _entries(audit)
        assert [e.operation for e in entries] == [
            "GenerateContentStart",
            "GenerateContentEnd",
            "SaveOutputStart",
            "SaveOutputEnd",
        ]
        assert [e.status for e in entries] == [
            AuditStatus.IN_PROGRESS,
            AuditStatus.SUCCESS,
            AuditStatus.IN_PROGRESS,
            AuditStatus.SUCCESS,
        ]
        assert entries[0].inputs == {
            "model_name": "test-model",
            "prompt_length": len("test prompt"),
        }
        assert entries[1].outputs == {
            "finish_reason": "STOP",
            "has_safety_ratings": False,
        }
        assert entries[2].inputs["content_length"] == len("Test content")

    def test_passes_model_parameters_to_client(self) -> None:
        """Should forward registry parameter defaults to generate_content."""
        client = _make_client(ProviderResult(content="ok"))
        api = _make_api(client)
        api.get_model_parameters.return_value = {"temperature": 0.7}
        processor = _make_processor(api)

        ctx = RunContext()
        processor.process(ctx, "test-model", "prompt")

        client.generate_content.assert_called_once_with(
            ctx, "prompt", {"temperature": 0.7}
        )

    def test_closes_client(self) -> None:
        """Should close the client after a successful run."""
        client = _make_client(ProviderResult(content="ok"))
        processor = _make_processor(_make_api(client))

        processor.process(RunContext(), "test-model", "prompt")

        client.close.assert_called_once()

    def test_repeated_calls_are_identical(self) -> None:
        """Should produce the same path and write for repeated inputs."""
        client = _make_client(ProviderResult(content="same"))
        writer = MagicMock(spec=FileWriter)
        processor = _make_processor(_make_api(client), writer=writer)

        first = processor.process(RunContext(), "test-model", "prompt")
        second = processor.process(RunContext(), "test-model", "prompt")

        assert first == second
        assert writer.save_to_file.call_args_list[0] == (
            writer.save_to_file.call_args_list[1]
        )

    def test_sanitizes_model_name_in_output_path(self) -> None:
        """Should replace unsafe characters in the output filename."""
        client = _make_client(ProviderResult(content="ok"))
        processor = _make_processor(_make_api(client))

        path = processor.process(
            RunContext(), "openrouter/deepseek/deepseek-r1:free", "prompt"
        )

        assert path.name == "openrouter-deepseek-deepseek-r1-free.md"


class TestModelProcessorNonFatalFailures:
    """Tests for failures that must not abort processing."""

    def test_parameter_lookup_failure_uses_empty_params(self) -> None:
        """Should fall back to no parameters when lookup raises."""
        client = _make_client(ProviderResult(content="ok"))
        api = _make_api(client)
        api.get_model_parameters.side_effect = RuntimeError("registry down")
        processor = _make_processor(api)

        path = processor.process(RunContext(), "test-model", "prompt")

        assert path == OUTPUT_DIR / "test-model.md"
        assert client.generate_content.call_args.args[2] == {}

    def test_audit_failure_does_not_abort(self) -> None:
        """Should finish processing when every audit write fails."""
        client = _make_client(ProviderResult(content="ok"))
        audit = MagicMock()
        audit.log.side_effect = AuditLogError("disk full")
        writer = MagicMock(spec=FileWriter)
        processor = _make_processor(_make_api(client), writer=writer, audit=audit)

        path = processor.process(RunContext(), "test-model", "prompt")

        assert path == OUTPUT_DIR / "test-model.md"
        writer.save_to_file.assert_called_once()
        assert audit.log.call_count == 4


class TestModelProcessorInitFailure:
    """Tests for client initialization failures."""

    def test_raises_initialization_error_without_audit(self) -> None:
        """Should raise and write no audit entries."""
        api = _make_api(None)
        cause = ClientInitializationError("no API key")
        api.init_llm_client.side_effect = cause
        audit = MagicMock()
        writer = MagicMock(spec=FileWriter)
        processor = _make_processor(api, writer=writer, audit=audit)

        with pytest.raises(ModelInitializationError) as exc_info:
            processor.process(RunContext(), "test-model", "prompt")

        assert "failed to initialize API client for model test-model" in str(
            exc_info.value
        )
        assert exc_info.value.__cause__ is cause
        assert exc_info.value.model_name == "test-model"
        assert exc_info.value.category == ErrorCategory.INVALID_REQUEST
        assert audit.log.call_count == 0
        writer.save_to_file.assert_not_called()

    def test_preserves_category_of_cause(self) -> None:
        """Should carry a specific category from the init failure."""
        api = _make_api(None)
        api.init_llm_client.side_effect = ClientInitializationError(
            "bad key", category=ErrorCategory.AUTH
        )
        processor = _make_processor(api)

        with pytest.raises(ModelInitializationError) as exc_info:
            processor.process(RunContext(), "test-model", "prompt")

        assert exc_info.value.category == ErrorCategory.AUTH


class TestModelProcessorGenerationFailure:
    """Tests for failures raised by generate_content."""

    def test_records_two_entries_and_raises(self) -> None:
        """Should audit start and failed end, then raise."""
        cause = LlmError("slow down", category=ErrorCategory.RATE_LIMIT)
        client = _make_client(cause)
        audit = MagicMock()
        writer = MagicMock(spec=FileWriter)
        processor = _make_processor(_make_api(client), writer=writer, audit=audit)

        with pytest.raises(ModelGenerationError) as exc_info:
            processor.process(RunContext(), "test-model", "prompt")

        assert "output generation failed for model test-model" in str(
            exc_info.value
        )
        assert exc_info.value.__cause__ is cause
        assert exc_info.value.category == ErrorCategory.RATE_LIMIT
        entries = _entries(audit)
        assert [e.operation for e in entries] == [
            "GenerateContentStart",
            "GenerateContentEnd",
        ]
        assert entries[1].status == AuditStatus.FAILURE
        assert entries[1].error is not None
        assert entries[1].error.type == "RateLimitError"
        assert entries[1].duration_ms is not None
        writer.save_to_file.assert_not_called()
        client.close.assert_called_once()

    def test_safety_takes_precedence_over_category(self) -> None:
        """Should classify as SafetyBlockedError even with another category."""
        client = _make_client(
            LlmError("request blocked by safety policy", category=ErrorCategory.AUTH)
        )
        audit = MagicMock()
        processor = _make_processor(_make_api(client), audit=audit)

        with pytest.raises(ModelGenerationError):
            processor.process(RunContext(), "test-model", "prompt")

        assert _entries(audit)[1].error.type == "SafetyBlockedError"

    def test_uncategorized_error_is_content_generation(self) -> None:
        """Should classify plain exceptions as ContentGenerationError."""
        client = _make_client(RuntimeError("boom"))
        audit = MagicMock()
        processor = _make_processor(_make_api(client), audit=audit)

        with pytest.raises(ModelGenerationError) as exc_info:
            processor.process(RunContext(), "test-model", "prompt")

        assert _entries(audit)[1].error.type == "ContentGenerationError"
        assert exc_info.value.category == ErrorCategory.UNKNOWN


class TestModelProcessorResponseFailure:
    """Tests for results that yield no usable content."""

    def test_empty_content_raises_empty_response(self) -> None:
        """Should raise EmptyModelResponseError for empty content."""
        client = _make_client(ProviderResult(content="", finish_reason="STOP"))
        audit = MagicMock()
        writer = MagicMock(spec=FileWriter)
        processor = _make_processor(_make_api(client), writer=writer, audit=audit)

        with pytest.raises(EmptyModelResponseError) as exc_info:
            processor.process(RunContext(), "test-model", "prompt")

        assert "due to empty content" in str(exc_info.value)
        assert len(_entries(audit)) == 2
        writer.save_to_file.assert_not_called()
        client.close.assert_called_once()

    def test_whitespace_content_raises_empty_response(self) -> None:
        """Should treat whitespace-only content as empty."""
        client = _make_client(ProviderResult(content="  \n\t "))
        processor = _make_processor(_make_api(client))

        with pytest.raises(EmptyModelResponseError):
            processor.process(RunContext(), "test-model", "prompt")

    def test_blocked_content_raises_content_filtered(self) -> None:
        """Should raise ContentFilteredError when a safety entry blocked."""
        result = ProviderResult(
            content="",
            finish_reason="SAFETY",
            safety_info=(Safety(category="HARM_CATEGORY_HARASSMENT", blocked=True),),
        )
        processor = _make_processor(_make_api(_make_client(result)))

        with pytest.raises(ContentFilteredError) as exc_info:
            processor.process(RunContext(), "test-model", "prompt")

        assert exc_info.value.category == ErrorCategory.CONTENT_FILTERED
        assert "HARM_CATEGORY_HARASSMENT" in str(exc_info.value)

    def test_categorized_response_error(self) -> None:
        """Should map a categorized extraction failure to its error type."""
        client = _make_client(ProviderResult(content="ok"))
        api = _make_api(client)
        api.process_llm_response.side_effect = LlmError(
            "quota hit", category=ErrorCategory.RATE_LIMIT
        )
        processor = _make_processor(api)

        with pytest.raises(ModelRateLimitedError):
            processor.process(RunContext(), "test-model", "prompt")

    def test_uncategorized_response_error(self) -> None:
        """Should raise InvalidModelResponseError for unknown failures."""
        client = _make_client(ProviderResult(content="ok"))
        api = _make_api(client)
        api.process_llm_response.side_effect = ValueError("malformed")
        processor = _make_processor(api)

        with pytest.raises(InvalidModelResponseError) as exc_info:
            processor.process(RunContext(), "test-model", "prompt")

        assert exc_info.value.category == ErrorCategory.INVALID_REQUEST
        client.close.assert_called_once()


class TestModelProcessorSaveFailure:
    """Tests for output write failures."""

    def test_records_file_io_error(self) -> None:
        """Should audit a FileIOError and raise OutputWriteError."""
        client = _make_client(ProviderResult(content="ok"))
        writer = MagicMock(spec=FileWriter)
        path = OUTPUT_DIR / "test-model.md"
        writer.save_to_file.side_effect = FileWriteError("read-only", path)
        audit = MagicMock()
        processor = _make_processor(_make_api(client), writer=writer, audit=audit)

        with pytest.raises(OutputWriteError) as exc_info:
            processor.process(RunContext(), "test-model", "prompt")

        assert exc_info.value.path == path
        assert "failed to save output for model test-model" in str(exc_info.value)
        entries = _entries(audit)
        assert len(entries) == 4
        assert entries[3].operation == "SaveOutputEnd"
        assert entries[3].status == AuditStatus.FAILURE
        assert entries[3].error.type == "FileIOError"
        client.close.assert_called_once()

    def test_wraps_unexpected_writer_error(self) -> None:
        """Should wrap and audit a writer failure of any type."""
        client = _make_client(ProviderResult(content="ok"))
        writer = MagicMock(spec=FileWriter)
        cause = PermissionError("denied")
        writer.save_to_file.side_effect = cause
        audit = MagicMock()
        processor = _make_processor(_make_api(client), writer=writer, audit=audit)

        with pytest.raises(OutputWriteError) as exc_info:
            processor.process(RunContext(), "test-model", "prompt")

        assert exc_info.value.__cause__ is cause
        assert exc_info.value.path == OUTPUT_DIR / "test-model.md"
        entries = _entries(audit)
        assert [(e.operation, e.status) for e in entries[2:]] == [
            ("SaveOutputStart", AuditStatus.IN_PROGRESS),
            ("SaveOutputEnd", AuditStatus.FAILURE),
        ]
        assert entries[3].error.type == "FileIOError"
        assert "denied" in entries[3].error.message


class TestModelProcessorWithFileWriter:
    """Tests for processing against a real FileWriter."""

    def test_writes_generated_content_to_disk(self, tmp_path: Path) -> None:
        """Should write exactly the generated text to <output_dir>/<model>.md."""
        client = _make_client(ProviderResult(content="Generated content"))
        config = CliConfig(output_dir=tmp_path / "out", model_names=["test-model"])
        processor = ModelProcessor(
            api_service=_make_api(client),
            file_writer=FileWriter(),
            audit_logger=MagicMock(),
            config=config,
        )

        path = processor.process(RunContext(), "test-model", "test prompt")

        assert path == tmp_path / "out" / "test-model.md"
        assert path.read_bytes() == b"Generated content"

    def test_repeated_runs_write_identical_bytes(self, tmp_path: Path) -> None:
        """Should leave byte-identical output after processing twice."""
        client = _make_client(ProviderResult(content="Generated content\n"))
        config = CliConfig(output_dir=tmp_path, model_names=["test-model"])
        processor = ModelProcessor(
            api_service=_make_api(client),
            file_writer=FileWriter(),
            audit_logger=MagicMock(),
            config=config,
        )

        first_path = processor.process(RunContext(), "test-model", "prompt")
        first_bytes = first_path.read_bytes()
        second_path = processor.process(RunContext(), "test-model", "prompt")

        assert first_path == second_path
        assert second_path.read_bytes() == first_bytes == b"Generated content\n"
        assert sorted(p.name for p in tmp_path.iterdir()) == ["test-model.md"]


class TestModelProcessorLogger:
    """Tests for logger injection."""

    def test_uses_injected_logger(self) -> None:
        """Should log through the logger passed to the constructor."""
        base = MagicMock()
        bound = base.bind.return_value
        client = _make_client(ProviderResult(content="ok"))
        processor = ModelProcessor(
            api_service=_make_api(client),
            file_writer=MagicMock(spec=FileWriter),
            audit_logger=MagicMock(),
            config=CliConfig(output_dir=OUTPUT_DIR, model_names=["test-model"]),
            logger=base,
        )

        processor.process(RunContext(), "test-model", "prompt")

        base.bind.assert_called_once_with(component="modelproc")
        bound.bind.assert_any_call(model="test-model")
        events = [c.args[0] for c in bound.bind.return_value.info.call_args_list]
        assert "model_processing_completed" in events


class TestModelProcessorGenerateAndSave:
    """Tests for the generate and save_output steps used on their own."""

    def test_generate_returns_content_without_saving(self) -> None:
        """Should return the text and close the client without writing."""
        client = _make_client(ProviderResult(content="draft"))
        writer = MagicMock(spec=FileWriter)
        processor = _make_processor(_make_api(client), writer=writer)

        content = processor.generate(RunContext(), "test-model", "prompt")

        assert content == "draft"
        writer.save_to_file.assert_not_called()
        client.close.assert_called_once()

    def test_save_output_writes_to_given_path(self) -> None:
        """Should write to the exact path requested."""
        writer = MagicMock(spec=FileWriter)
        audit = MagicMock()
        processor = _make_processor(_make_api(None), writer=writer, audit=audit)
        target = OUTPUT_DIR / "custom-synthesis.md"

        processor.save_output("test-model", "merged", target)

        writer.save_to_file.assert_called_once_with("merged", target)
        assert [e.operation for e in _entries(audit)] == [
            "SaveOutputStart",
            "SaveOutputEnd",
        ]
