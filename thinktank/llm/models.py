"""Result types returned by LLM clients."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Safety:
    """One safety rating attached to a provider response.

    Attributes:
        category: Provider-specific safety category name.
        blocked: Whether this category caused the response to be withheld.
        score: Provider-reported probability or severity, 0.0 if absent.
    """

    category: str
    blocked: bool = False
    score: float = 0.0


@dataclass(frozen=True)
class ProviderResult:
    """Normalized output of a single generation call."""

    content: str
    token_count: int = 0
    finish_reason: str = ""
    truncated: bool = False
    safety_info: tuple[Safety, ...] = field(default_factory=tuple)

    @property
    def blocked_categories(self) -> list[str]:
        """Categories of every safety entry that blocked the response."""
        return [s.category for s in self.safety_info if s.blocked]


@dataclass(frozen=True)
class TokenCount:
    """Token count reported or estimated by a client."""

    total: int


@dataclass(frozen=True)
class ModelInfo:
    """Token limits for a model as seen by its client."""

    name: str
    input_token_limit: int
    output_token_limit: int


@dataclass(frozen=True)
class TokenResult:
    """Prompt size relative to a model's input window."""

    token_count: int
    input_limit: int
    exceeds_limit: bool
    limit_error: str
    percentage: float
