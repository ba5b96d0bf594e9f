"""Prompt assembly."""

from thinktank.prompt.builder import (
    ContextFile,
    FilterOptions,
    GatherResult,
    GitIgnoreChecker,
    gather_context,
    stitch_prompt,
    stitch_synthesis_prompt,
)


__all__ = [
    "ContextFile",
    "FilterOptions",
    "GatherResult",
    "GitIgnoreChecker",
    "gather_context",
    "stitch_prompt",
    "stitch_synthesis_prompt",
]
