from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from logging_config import get_logger

logger = get_logger(__name__)

PLAINTEXT = "plaintext"

EXTENSION_LANGUAGES = {
    "js": "javascript",
    "jsx": "javascript",
    "ts": "typescript",
    "tsx": "typescript",
    "py": "python",
    "java": "java",
    "cpp": "cpp",
    "c": "c",
    "html": "html",
    "css": "css",
    "md": "markdown",
    "json": "json",
}


class VirtualFileSystemError(Exception):
    pass


class PathExistsError(VirtualFileSystemError):
    def __init__(self, path: str):
        super().__init__(f"Path already exists: {path}")
        self.path = path


class PathNotFoundError(VirtualFileSystemError):
    def __init__(self, path: str):
        super().__init__(f"Path not found: {path}")
        self.path = path


@dataclass
class FileRecord:
    content: str = ""
    language: str = PLAINTEXT

    def to_dict(self) -> dict:
        return {"content": self.content, "language": self.language}


def file_extension(path: str) -> str:
    return path.rsplit(".", 1)[-1] if "." in path else path


def infer_language(path: str) -> str:
    """Map a path's extension to an editor language tag, defaulting to plaintext."""
    return EXTENSION_LANGUAGES.get(file_extension(path).lower(), PLAINTEXT)


def default_project_files() -> Dict[str, FileRecord]:
    return {
        "src/App.js": FileRecord(
            content='// Welcome to your collaborative project!\nconsole.log("Hello, world!");',
            language="javascript",
        ),
        "src/utils.js": FileRecord(
            content='// Utility functions\nexport const helper = () => {\n  return "Helper function";\n};',
            language="javascript",
        ),
        "README.md": FileRecord(
            content=(
                "# My Collaborative Project\n\n"
                "This is a collaborative coding project.\n\n"
                "## Getting Started\n\n"
                "1. Start coding!\n"
                "2. Collaborate with your team\n"
                "3. Build something amazing"
            ),
            language="markdown",
        ),
    }


class VirtualFileSystem:
    """Flat path -> FileRecord map owned by a single room.

    Folders are not stored; a client derives them from slash-delimited
    paths. Structural operations raise PathExistsError / PathNotFoundError,
    content and language updates on a missing path are silently dropped.
    """

    def __init__(self, files: Optional[Mapping[str, FileRecord]] = None):
        self._files: Dict[str, FileRecord] = {}
        if files:
            for path, record in files.items():
                self._files[path] = FileRecord(record.content, record.language)

    @classmethod
    def with_defaults(cls) -> "VirtualFileSystem":
        return cls(default_project_files())

    def __contains__(self, path: str) -> bool:
        return path in self._files

    def __len__(self) -> int:
        return len(self._files)

    def paths(self):
        return list(self._files.keys())

    def get(self, path: str) -> Optional[FileRecord]:
        return self._files.get(path)

    def create(self, path: str, content: str = "", language: str = PLAINTEXT) -> FileRecord:
        if path in self._files:
            raise PathExistsError(path)
        record = FileRecord(content=content if content is not None else "", language=language or PLAINTEXT)
        self._files[path] = record
        logger.debug(f"Created file {path} ({record.language})")
        return record

    def delete(self, path: str):
        if path not in self._files:
            raise PathNotFoundError(path)
        del self._files[path]
        logger.debug(f"Deleted file {path}")

    def rename(self, old_path: str, new_path: str):
        if old_path not in self._files:
            raise PathNotFoundError(old_path)
        if new_path in self._files:
            raise PathExistsError(new_path)
        self._files[new_path] = self._files.pop(old_path)
        logger.debug(f"Renamed file {old_path} -> {new_path}")

    def set_content(self, path: str, content: str):
        record = self._files.get(path)
        if record is None:
            return
        record.content = content if content is not None else ""

    def set_language(self, path: str, language: str):
        record = self._files.get(path)
        if record is None:
            return
        record.language = language

    def bulk_merge(self, partial: Mapping[str, FileRecord]):
        for path, record in partial.items():
            self._files[path] = FileRecord(record.content, record.language)
        logger.debug(f"Merged {len(partial)} files")

    def snapshot(self) -> Dict[str, dict]:
        """Copy of the full file map in wire form, safe to hand to a send call."""
        return {path: record.to_dict() for path, record in self._files.items()}
