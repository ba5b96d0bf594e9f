"""Unit tests for CliConfig."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from thinktank.config import CliConfig


class TestCliConfig:
    """Tests for run option validation."""

    def test_duplicate_models_collapse(self) -> None:
        """Should keep the first occurrence of each model."""
        config = CliConfig(output_dir=Path("out"), model_names=["a", "b", "a"])
        assert config.model_names == ["a", "b"]

    def test_blank_model_rejected(self) -> None:
        """Should reject blank model names."""
        with pytest.raises(ValidationError):
            CliConfig(output_dir=Path("out"), model_names=["  "])

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_blank_synthesis_model_is_none(self, value: str | None) -> None:
        """Should disable synthesis for a missing or blank model."""
        config = CliConfig(
            output_dir=Path("out"), model_names=["a"], synthesis_model=value
        )
        assert config.synthesis_model is None

    def test_synthesis_model_is_stripped(self) -> None:
        """Should strip surrounding whitespace from the synthesis model."""
        config = CliConfig(
            output_dir=Path("out"), model_names=["a"], synthesis_model=" synth "
        )
        assert config.synthesis_model == "synth"
