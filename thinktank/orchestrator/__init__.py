"""Concurrent multi-model execution."""

from thinktank.orchestrator.orchestrator import (
    AllModelsFailedError,
    ModelRunResult,
    NoModelsSpecifiedError,
    Orchestrator,
    OrchestratorError,
    PartialFailureError,
    RunSummary,
    SynthesisError,
)
from thinktank.orchestrator.rate_limiter import (
    RateLimiterProtocol,
    TokenBucketRateLimiter,
)


__all__ = [
    "AllModelsFailedError",
    "ModelRunResult",
    "NoModelsSpecifiedError",
    "Orchestrator",
    "OrchestratorError",
    "PartialFailureError",
    "RateLimiterProtocol",
    "RunSummary",
    "SynthesisError",
    "TokenBucketRateLimiter",
]
