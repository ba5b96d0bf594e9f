"""Unit tests for prompt assembly."""

import shutil
import subprocess
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from thinktank.prompt import (
    ContextFile,
    FilterOptions,
    GitIgnoreChecker,
    gather_context,
    stitch_prompt,
    stitch_synthesis_prompt,
)
from thinktank.prompt.builder import is_hidden_path, should_process_file


class TestStitchPrompt:
    """Tests for stitch_prompt."""

    def test_instructions_and_files(self) -> None:
        """Should wrap instructions and each file in tags."""
        prompt = stitch_prompt(
            "Review this",
            [ContextFile("a.py", "print(1)"), ContextFile("b.md", "# B")],
        )

        assert prompt.startswith("<instructions>\nReview this\n</instructions>")
        assert "<context>\n<path>a.py</path>\nprint(1)\n" in prompt
        assert "<path>b.md</path>\n# B\n" in prompt
        assert prompt.index("a.py") < prompt.index("b.md")
        assert prompt.endswith("</context>")

    def test_empty_instructions(self) -> None:
        """Should keep the instructions tags when empty."""
        prompt = stitch_prompt("", [ContextFile("a.py", "x")])
        assert "<instructions>\n</instructions>" in prompt

    def test_no_files(self) -> None:
        """Should emit an empty context section."""
        prompt = stitch_prompt("do it", [])
        assert "<context>\n</context>" in prompt

    def test_nothing_is_escaped(self) -> None:
        """Should keep markup in instructions, paths and content."""
        prompt = stitch_prompt(
            "use <tags> & more",
            [ContextFile("/with/<special>/x.go", "return <r>value</r>")],
        )
        assert "use <tags> & more" in prompt
        assert "<path>/with/<special>/x.go</path>" in prompt
        assert "<r>value</r>" in prompt


class TestFilters:
    """Tests for file filtering rules."""

    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            (".git/config", True),
            ("src/.hidden/x.py", True),
            (".env", True),
            ("src/main.py", False),
            ("./src/main.py", False),
        ],
    )
    def test_is_hidden_path(self, path: str, expected: bool) -> None:
        """Should flag any dot-prefixed component."""
        assert is_hidden_path(Path(path)) is expected

    def test_extension_include_and_exclude(self) -> None:
        """Should apply case-insensitive extension lists."""
        options = FilterOptions.from_lists(include=["py", ".MD"], exclude=[".md"])

        assert should_process_file(Path("a.PY"), options)[0] is True
        assert should_process_file(Path("a.txt"), options)[0] is False
        assert should_process_file(Path("README.md"), options) == (
            False,
            "extension in exclude list",
        )

    def test_default_excluded_names(self) -> None:
        """Should always skip common dependency directories."""
        options = FilterOptions.from_lists(exclude_names=["secret.txt"])
        assert "node_modules" in options.exclude_names
        assert should_process_file(Path("secret.txt"), options)[0] is False


class TestGatherContext:
    """Tests for gather_context."""

    def test_walks_directories_in_sorted_order(self, tmp_path: Path) -> None:
        """Should collect files recursively and deterministically."""
        (tmp_path / "b.py").write_text("b")
        (tmp_path / "a.py").write_text("a")
        (tmp_path / "sub").mkdir()
        (tmp_path / "sub" / "c.py").write_text("c")

        result = gather_context([tmp_path])

        assert [Path(f.path).name for f in result.files] == ["a.py", "b.py", "c.py"]
        assert result.total_chars == 3

    def test_skips_hidden_excluded_and_binary(self, tmp_path: Path) -> None:
        """Should skip hidden entries, excluded names and binary files."""
        (tmp_path / ".git").mkdir()
        (tmp_path / ".git" / "HEAD").write_text("ref")
        (tmp_path / "node_modules").mkdir()
        (tmp_path / "node_modules" / "x.js").write_text("x")
        (tmp_path / "image.png").write_bytes(b"\x89PNG\x00\x00")
        (tmp_path / "latin1.txt").write_bytes(b"caf\xe9")
        (tmp_path / "keep.txt").write_text("keep")

        result = gather_context([tmp_path])

        assert [Path(f.path).name for f in result.files] == ["keep.txt"]
        assert result.skipped[str(tmp_path / "image.png")] == "binary file"
        assert str(tmp_path / "latin1.txt") in result.skipped

    def test_applies_extension_filters(self, tmp_path: Path) -> None:
        """Should honour include lists."""
        (tmp_path / "a.py").write_text("a")
        (tmp_path / "b.txt").write_text("b")

        result = gather_context([tmp_path], FilterOptions.from_lists(include=["py"]))

        assert [Path(f.path).name for f in result.files] == ["a.py"]
        assert result.skipped[str(tmp_path / "b.txt")] == (
            "extension not in include list"
        )

    def test_explicit_file(self, tmp_path: Path) -> None:
        """Should accept individual files."""
        path = tmp_path / "notes.md"
        path.write_text("hello")

        result = gather_context([path])

        assert result.files == [ContextFile(str(path), "hello")]

    def test_missing_path_raises(self, tmp_path: Path) -> None:
        """Should raise FileNotFoundError for missing paths."""
        with pytest.raises(FileNotFoundError):
            gather_context([tmp_path / "missing"])

    def test_does_not_follow_directory_symlinks(self, tmp_path: Path) -> None:
        """Should include each file once when a symlink points back up."""
        (tmp_path / "a.txt").write_text("alpha")
        (tmp_path / "loop").symlink_to(tmp_path, target_is_directory=True)

        result = gather_context([tmp_path], FilterOptions(use_gitignore=False))

        assert [f.path for f in result.files] == [str(tmp_path / "a.txt")]
        assert result.skipped[str(tmp_path / "loop")] == "symlinked directory"

    def test_skips_entries_reported_by_ignore_checker(self, tmp_path: Path) -> None:
        """Should drop ignored files and never descend into ignored dirs."""
        (tmp_path / "keep.py").write_text("keep")
        (tmp_path / "secret.log").write_text("log")
        (tmp_path / "out").mkdir()
        (tmp_path / "out" / "gen.py").write_text("generated")
        checker = MagicMock(spec=GitIgnoreChecker)
        checker.ignored.side_effect = lambda directory, names: {
            n for n in names if n in {"secret.log", "out"}
        }

        result = gather_context([tmp_path], ignore_checker=checker)

        assert [f.content for f in result.files] == ["keep"]
        assert result.skipped[str(tmp_path / "secret.log")] == "ignored by git"
        assert result.skipped[str(tmp_path / "out")] == "ignored by git"
        checker.ignored.assert_called_once_with(
            tmp_path, ["keep.py", "out", "secret.log"]
        )

    def test_explicit_ignored_file_is_skipped(self, tmp_path: Path) -> None:
        """Should apply the ignore checker to files given directly."""
        target = tmp_path / "debug.log"
        target.write_text("noise")
        checker = MagicMock(spec=GitIgnoreChecker)
        checker.ignored.return_value = {"debug.log"}

        result = gather_context([target], ignore_checker=checker)

        assert result.files == []
        assert result.skipped == {str(target): "ignored by git"}

    def test_gitignore_disabled_skips_checker(self, tmp_path: Path) -> None:
        """Should not consult git when gitignore handling is off."""
        (tmp_path / "a.txt").write_text("a")
        checker = MagicMock(spec=GitIgnoreChecker)

        result = gather_context(
            [tmp_path], FilterOptions(use_gitignore=False), ignore_checker=checker
        )

        assert len(result.files) == 1
        checker.ignored.assert_not_called()


@pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")
class TestGitIgnoreChecker:
    """Tests for GitIgnoreChecker against a real repository."""

    def test_reports_ignored_names(self, tmp_path: Path) -> None:
        """Should return the names matched by .gitignore."""
        subprocess.run(
            ["git", "init", "-q", str(tmp_path)], check=True, capture_output=True
        )
        (tmp_path / ".gitignore").write_text("*.log\nbuild-output/\n")
        (tmp_path / "build-output").mkdir()
        (tmp_path / "app.log").write_text("x")
        (tmp_path / "main.py").write_text("x")

        ignored = GitIgnoreChecker().ignored(
            tmp_path, ["app.log", "build-output", "main.py"]
        )

        assert ignored == {"app.log", "build-output"}

    def test_outside_work_tree_ignores_nothing(self, tmp_path: Path) -> None:
        """Should report nothing for a directory that is not a repository."""
        plain = tmp_path / "plain"
        plain.mkdir()
        (plain / "app.log").write_text("x")

        assert GitIgnoreChecker().ignored(plain, ["app.log"]) == set()

    def test_gather_context_honors_gitignore(self, tmp_path: Path) -> None:
        """Should leave git-ignored files out of the gathered context."""
        subprocess.run(
            ["git", "init", "-q", str(tmp_path)], check=True, capture_output=True
        )
        (tmp_path / ".gitignore").write_text("*.log\n")
        (tmp_path / "app.log").write_text("log")
        (tmp_path / "main.py").write_text("code")

        result = gather_context([tmp_path])

        assert [f.content for f in result.files] == ["code"]


class TestStitchSynthesisPrompt:
    """Tests for stitch_synthesis_prompt."""

    def test_wraps_each_model_output(self) -> None:
        """Should tag each output with its model name, in the given order."""
        prompt = stitch_synthesis_prompt(
            "Review this", {"model-a": "First", "model-b": "Second"}
        )

        assert prompt.startswith("<instructions>\nReview this\n</instructions>")
        assert '<model_result model="model-a">\nFirst\n</model_result>' in prompt
        assert '<model_result model="model-b">\nSecond\n</model_result>' in prompt
        assert prompt.index("model-a") < prompt.index("model-b")
        assert prompt.endswith("</synthesis_instructions>")

    def test_empty_instructions(self) -> None:
        """Should keep the instructions tags when empty."""
        prompt = stitch_synthesis_prompt("", {"m": "x"})
        assert prompt.startswith("<instructions>\n</instructions>\n\n<model_outputs>")
