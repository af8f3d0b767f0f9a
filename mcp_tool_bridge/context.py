"""Local project context for prompts and workspace file tools."""

import logging
from abc import ABC, abstractmethod
from collections import Counter
from pathlib import Path
from typing import List, Optional


MAX_FILE_CHARS = 2000

SOURCE_EXTENSIONS = {
    ".py", ".kt", ".kts", ".java", ".js", ".ts", ".go", ".rs", ".c", ".cpp",
    ".h", ".rb", ".gradle", ".xml", ".json", ".toml", ".yaml", ".yml", ".md",
}

IGNORED_DIRS = {".git", "build", "dist", "node_modules", "__pycache__", ".venv", ".idea"}


class ContextProvider(ABC):
    """Source of project context and file access for the registry."""

    @abstractmethod
    def build_context(self, current_focus: Optional[str] = None) -> str:
        """Return a human-readable context bundle, optionally centred on a file."""
        ...

    @abstractmethod
    def read_file(self, path: str) -> Optional[str]:
        ...

    @abstractmethod
    def write_file(self, path: str, content: str) -> bool:
        ...

    @abstractmethod
    def list_files(self, path: str) -> List[str]:
        ...


class ProjectContextProvider(ContextProvider):
    """Filesystem context provider rooted at a project directory.

    Paths are interpreted relative to the root. Anything that resolves
    outside the root is refused.
    """

    def __init__(self, root: str):
        self.root = Path(root).resolve()
        self.logger = logging.getLogger("context_provider")

    def _resolve(self, path: str) -> Optional[Path]:
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.root / candidate
        resolved = candidate.resolve()
        if resolved != self.root and self.root not in resolved.parents:
            self.logger.warning(f"Refusing path outside project root: {path}")
            return None
        return resolved

    def _relative(self, path: Path) -> str:
        return path.relative_to(self.root).as_posix()

    def source_files(self) -> List[Path]:
        """All source files below the root, sorted by relative path."""
        files = []
        for path in self.root.rglob("*"):
            if any(part in IGNORED_DIRS for part in path.relative_to(self.root).parts):
                continue
            if path.is_file() and path.suffix.lower() in SOURCE_EXTENSIONS:
                files.append(path)
        return sorted(files, key=self._relative)

    def read_file(self, path: str) -> Optional[str]:
        resolved = self._resolve(path)
        if resolved is None or not resolved.is_file():
            return None
        try:
            return resolved.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            self.logger.error(f"Failed to read {path}: {e}")
            return None

    def write_file(self, path: str, content: str) -> bool:
        resolved = self._resolve(path)
        if resolved is None or resolved == self.root:
            return False
        try:
            resolved.parent.mkdir(parents=True, exist_ok=True)
            resolved.write_text(content, encoding="utf-8")
        except OSError as e:
            self.logger.error(f"Failed to write {path}: {e}")
            return False
        self.logger.info(f"Wrote {len(content)} chars to {self._relative(resolved)}")
        return True

    def list_files(self, path: str = ".") -> List[str]:
        resolved = self._resolve(path)
        if resolved is None or not resolved.is_dir():
            return []
        entries = []
        for child in sorted(resolved.iterdir(), key=lambda p: p.name):
            name = self._relative(child)
            entries.append(f"{name}/" if child.is_dir() else name)
        return entries

    def build_context(self, current_focus: Optional[str] = None) -> str:
        files = self.source_files()
        by_extension = Counter(path.suffix.lower() for path in files)

        lines = [f"Project: {self.root.name} ({len(files)} source files)"]
        if by_extension:
            breakdown = ", ".join(
                f"{ext}: {count}" for ext, count in sorted(by_extension.items(), key=lambda kv: (-kv[1], kv[0]))
            )
            lines.append(f"Files by type: {breakdown}")

        if current_focus:
            content = self.read_file(current_focus)
            if content is None:
                lines.append(f"Current file: {current_focus} (not found)")
            else:
                language = Path(current_focus).suffix.lstrip(".")
                lines.append(f"Current file: {current_focus}")
                lines.append(f"```{language}")
                lines.append(content[:MAX_FILE_CHARS])
                if len(content) > MAX_FILE_CHARS:
                    lines.append("... (truncated)")
                lines.append("```")

        return "\n".join(lines)
