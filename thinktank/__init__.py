"""thinktank: fan one prompt out to several LLM providers."""

__version__ = "0.1.0"
