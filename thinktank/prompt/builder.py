"""Prompt assembly from instructions and context files."""

import shutil
import subprocess
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

import structlog


logger = structlog.get_logger()

# Names skipped regardless of options
DEFAULT_EXCLUDE_NAMES = frozenset(
    {"node_modules", "__pycache__", "dist", "build", "vendor", "venv"}
)

_BINARY_SNIFF_BYTES = 8192

SYNTHESIS_INSTRUCTIONS = (
    "The model outputs above were produced independently for the original "
    "instructions. Combine them into a single response that follows those "
    "instructions, keeping the strongest points and resolving any "
    "disagreements between the models."
)


@dataclass(frozen=True)
class ContextFile:
    """One file included in the prompt context."""

    path: str
    content: str


@dataclass(frozen=True)
class FilterOptions:
    """Rules deciding which files become context.

    Attributes:
        include_exts: Extensions a file must have, empty for any.
        exclude_exts: Extensions that drop a file.
        exclude_names: File or directory names to skip.
        use_gitignore: Skip entries git reports as ignored.
    """

    include_exts: frozenset[str] = field(default_factory=frozenset)
    exclude_exts: frozenset[str] = field(default_factory=frozenset)
    exclude_names: frozenset[str] = DEFAULT_EXCLUDE_NAMES
    use_gitignore: bool = True

    @classmethod
    def from_lists(
        cls,
        include: Sequence[str] = (),
        exclude: Sequence[str] = (),
        exclude_names: Sequence[str] = (),
        use_gitignore: bool = True,
    ) -> "FilterOptions":
        """Build options from CLI-style lists; extensions may omit the dot."""
        return cls(
            include_exts=frozenset(_normalize_ext(e) for e in include if e),
            exclude_exts=frozenset(_normalize_ext(e) for e in exclude if e),
            exclude_names=DEFAULT_EXCLUDE_NAMES | frozenset(exclude_names),
            use_gitignore=use_gitignore,
        )


@dataclass
class GatherResult:
    """Files gathered for the prompt plus what was skipped."""

    files: list[ContextFile] = field(default_factory=list)
    skipped: dict[str, str] = field(default_factory=dict)

    @property
    def total_chars(self) -> int:
        """Characters of content gathered."""
        return sum(len(f.content) for f in self.files)


def _normalize_ext(ext: str) -> str:
    ext = ext.strip().lower()
    return ext if ext.startswith(".") else f".{ext}"


def is_hidden_path(path: Path) -> bool:
    """True if any path component starts with a dot (``.`` and ``..`` excepted)."""
    return any(
        part.startswith(".") and part not in {".", ".."} for part in path.parts
    )


def should_process_file(path: Path, options: FilterOptions) -> tuple[bool, str]:
    """Decide whether a file is included.

    Args:
        path: Candidate file.
        options: Filtering rules.

    Returns:
        Tuple of (include, reason).
    """
    ext = path.suffix.lower()
    if path.name in options.exclude_names:
        return False, "excluded by name"
    if is_hidden_path(path):
        return False, "hidden file or directory"
    if options.include_exts and ext not in options.include_exts:
        return False, "extension not in include list"
    if ext in options.exclude_exts:
        return False, "extension in exclude list"
    return True, "passed all filters"


def _read_text(path: Path) -> str | None:
    """Read a text file, returning None for binary or undecodable content."""
    data = path.read_bytes()
    if b"\x00" in data[:_BINARY_SNIFF_BYTES]:
        return None
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return None


class GitIgnoreChecker:
    """Asks git which entries of a directory are ignored.

    Nothing is reported as ignored when git is not installed or the
    directory is not inside a work tree.
    """

    def __init__(self, git: str | None = None) -> None:
        """Initialize the checker.

        Args:
            git: Path to the git executable, looked up on PATH when omitted.
        """
        self._git = git if git is not None else shutil.which("git")
        self._work_trees: dict[Path, bool] = {}
        self._log = logger.bind(component="gitignore")

    @property
    def available(self) -> bool:
        """Whether a git executable was found."""
        return bool(self._git)

    def ignored(self, directory: Path, names: Sequence[str]) -> set[str]:
        """Return the subset of names in directory that git ignores.

        Args:
            directory: Directory holding the entries.
            names: Entry names relative to directory.
        """
        if not self._git or not names or not self._in_work_tree(directory):
            return set()
        result = self._run(
            directory, ["check-ignore", "-z", "--stdin"], stdin="\0".join(names)
        )
        # Exit code 1 means no entry is ignored
        if result is None or result.returncode == 1:
            return set()
        if result.returncode != 0:
            self._log.warning(
                "git_check_ignore_failed",
                directory=str(directory),
                stderr=result.stderr.strip(),
            )
            return set()
        return {name for name in result.stdout.split("\0") if name}

    def _in_work_tree(self, directory: Path) -> bool:
        if directory not in self._work_trees:
            result = self._run(directory, ["rev-parse", "--is-inside-work-tree"])
            self._work_trees[directory] = (
                result is not None
                and result.returncode == 0
                and result.stdout.strip() == "true"
            )
        return self._work_trees[directory]

    def _run(
        self, directory: Path, args: list[str], stdin: str | None = None
    ) -> subprocess.CompletedProcess[str] | None:
        try:
            return subprocess.run(  # noqa: S603
                [self._git or "git", "-C", str(directory), *args],
                input=stdin,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as e:
            self._log.warning("git_unavailable", error=str(e))
            self._git = None
            return None


def _walk(
    root: Path,
    options: FilterOptions,
    checker: GitIgnoreChecker | None,
    skipped: dict[str, str],
) -> Iterator[Path]:
    children = [
        child
        for child in sorted(root.iterdir())
        if child.name not in options.exclude_names
        and not is_hidden_path(Path(child.name))
    ]
    ignored = checker.ignored(root, [c.name for c in children]) if checker else set()
    for child in children:
        if child.name in ignored:
            skipped[str(child)] = "ignored by git"
        elif child.is_symlink() and child.is_dir():
            skipped[str(child)] = "symlinked directory"
        elif child.is_dir():
            yield from _walk(child, options, checker, skipped)
        elif child.is_file():
            yield child


def gather_context(
    paths: Sequence[Path],
    options: FilterOptions | None = None,
    ignore_checker: GitIgnoreChecker | None = None,
) -> GatherResult:
    """Collect text files from files and directories.

    Directories are walked recursively in sorted order without following
    directory symlinks. Hidden entries, excluded names, git-ignored entries
    and binary files are skipped.

    Args:
        paths: Files and directories given on the command line.
        options: Filtering rules, defaults apply when omitted.
        ignore_checker: Git ignore lookup, created on demand when
            ``options.use_gitignore`` is set.

    Returns:
        GatherResult with the files in discovery order.

    Raises:
        FileNotFoundError: If a given path does not exist.
    """
    options = options or FilterOptions()
    log = logger.bind(component="prompt")
    result = GatherResult()
    checker = None
    if options.use_gitignore:
        checker = ignore_checker or GitIgnoreChecker()

    for root in paths:
        if not root.exists():
            msg = f"context path does not exist: {root}"
            raise FileNotFoundError(msg)
        if root.is_dir():
            candidates: Iterable[Path] = _walk(
                root, options, checker, result.skipped
            )
        elif checker and checker.ignored(root.parent, [root.name]):
            result.skipped[str(root)] = "ignored by git"
            continue
        else:
            candidates = [root]
        for path in candidates:
            relative = path.relative_to(root) if root.is_dir() else Path(path.name)
            include, reason = should_process_file(relative, options)
            if not include:
                result.skipped[str(path)] = reason
                continue
            try:
                content = _read_text(path)
            except OSError as e:
                log.warning(
                    "context_file_unreadable", path=str(path), error=str(e)
                )
                result.skipped[str(path)] = "unreadable"
                continue
            if content is None:
                result.skipped[str(path)] = "binary file"
                continue
            result.files.append(ContextFile(path=str(path), content=content))

    log.info(
        "context_gathered",
        files=len(result.files),
        skipped=len(result.skipped),
        chars=result.total_chars,
    )
    return result


def stitch_prompt(instructions: str, files: Sequence[ContextFile]) -> str:
    """Combine instructions and context files into the final prompt.

    Content and paths are inserted verbatim; nothing is escaped.

    Args:
        instructions: Instructions text.
        files: Context files in the order they should appear.

    Returns:
        Prompt text with ``<instructions>`` and ``<context>`` sections.
    """
    parts = ["<instructions>\n"]
    if instructions:
        parts.append(f"{instructions}\n")
    parts.append("</instructions>\n\n<context>\n")
    for f in files:
        parts.append(f"<path>{f.path}</path>\n{f.content}\n\n")
    parts.append("</context>")
    return "".join(parts)


def stitch_synthesis_prompt(instructions: str, outputs: Mapping[str, str]) -> str:
    """Build the prompt asking one model to combine several model outputs.

    Args:
        instructions: Original instructions.
        outputs: Output text per model name, in the order to present them.

    Returns:
        Prompt text with ``<instructions>``, ``<model_outputs>`` and
        ``<synthesis_instructions>`` sections.
    """
    parts = ["<instructions>\n"]
    if instructions:
        parts.append(f"{instructions}\n")
    parts.append("</instructions>\n\n<model_outputs>\n")
    for model_name, content in outputs.items():
        parts.append(
            f'<model_result model="{model_name}">\n{content}\n</model_result>\n\n'
        )
    parts.append("</model_outputs>\n\n")
    parts.append(
        f"<synthesis_instructions>\n{SYNTHESIS_INSTRUCTIONS}\n"
        "</synthesis_instructions>"
    )
    return "".join(parts)
