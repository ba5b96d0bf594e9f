"""Per-run configuration assembled from command-line options."""

from pathlib import Path
from typing import Annotated

from pydantic import Field, field_validator

from thinktank.data_model import StrictBaseModel


DEFAULT_MAX_CONCURRENT = 5
DEFAULT_RATE_LIMIT_RPM = 60


class CliConfig(StrictBaseModel):
    """Options for one run.

    Attributes:
        output_dir: Directory receiving one ``<model>.md`` file per model.
        model_names: Models to query, in the order given.
        instructions_file: File holding the instructions part of the prompt.
        paths: Files and directories gathered as prompt context.
        include: File extensions a context file must have, empty for all.
        exclude: File extensions that drop context files.
        exclude_names: File or directory names skipped during gathering.
        api_key: Fallback API key when the provider variable is unset.
        api_endpoint: Endpoint override for every provider, empty for none.
        audit_log_file: JSON-lines audit destination, None to disable.
        max_concurrent_requests: Models processed in parallel.
        rate_limit_rpm: Requests started per minute, 0 to disable.
        partial_success_ok: Exit successfully when at least one model succeeds.
        timeout_seconds: Overall time budget, None for unbounded.
        dry_run: Report the prompt size per model instead of generating.
        synthesis_model: Model that combines the successful outputs, None
            to skip synthesis.
        use_gitignore: Skip context entries ignored by git.
    """

    output_dir: Path
    model_names: Annotated[list[str], Field(min_length=1)]
    instructions_file: Path | None = None
    paths: list[Path] = Field(default_factory=list)
    include: list[str] = Field(default_factory=list)
    exclude: list[str] = Field(default_factory=list)
    exclude_names: list[str] = Field(default_factory=list)
    api_key: str = ""
    api_endpoint: str = ""
    audit_log_file: Path | None = None
    max_concurrent_requests: Annotated[int, Field(ge=1)] = DEFAULT_MAX_CONCURRENT
    rate_limit_rpm: Annotated[int, Field(ge=0)] = DEFAULT_RATE_LIMIT_RPM
    partial_success_ok: bool = False
    timeout_seconds: Annotated[float, Field(gt=0)] | None = None
    dry_run: bool = False
    synthesis_model: str | None = None
    use_gitignore: bool = True

    @field_validator("model_names")
    @classmethod
    def validate_model_names(cls, value: list[str]) -> list[str]:
        """Reject blank names and drop duplicates, keeping first occurrence."""
        seen: list[str] = []
        for name in value:
            if not name.strip():
                msg = "Model names must be non-empty strings"
                raise ValueError(msg)
            if name not in seen:
                seen.append(name)
        return seen

    @field_validator("synthesis_model")
    @classmethod
    def validate_synthesis_model(cls, value: str | None) -> str | None:
        """Treat a blank synthesis model as none."""
        if value is None or not value.strip():
            return None
        return value.strip()
