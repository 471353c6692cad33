"""Blob storage over a local folder."""

import os
from pathlib import Path, PurePosixPath

# Directory names never listed
SKIP_PATTERNS = {
    "__pycache__",
    "node_modules",
    ".git",
    ".svn",
    ".hg",
    "venv",
    ".venv",
    "env",
    ".env",
    "dist",
    "build",
    ".tox",
    ".pytest_cache",
    ".mypy_cache",
    ".ruff_cache",
}


class FolderStorage:
    """Blob storage for a local filesystem folder."""

    source_type = "folder"

    def __init__(self, root: Path | str):
        self.root = Path(root)

    @classmethod
    def can_handle(cls, source: Path) -> bool:
        """Check if this is an existing directory."""
        return source.is_dir()

    def list(self, prefix: str = "") -> list[str]:
        """List files under the folder recursively.

        Args:
            prefix: Relative path prefix to filter on (e.g., "contracts/")

        Returns:
            Sorted relative POSIX paths
        """
        paths = []
        for root, _, files in os.walk(self.root):
            for filename in files:
                rel_path = (Path(root) / filename).relative_to(self.root)

                if self._should_skip(rel_path):
                    continue

                posix = rel_path.as_posix()
                if posix.startswith(prefix):
                    paths.append(posix)
        return sorted(paths)

    def read(self, path: str) -> bytes:
        """Read a file's bytes; the path must stay inside the root."""
        return self._resolve(path).read_bytes()

    def url(self, path: str) -> str:
        return self._resolve(path).absolute().as_uri()

    def _resolve(self, path: str) -> Path:
        rel = PurePosixPath(path)
        if rel.is_absolute() or ".." in rel.parts:
            raise PermissionError(f"Path escapes storage root: {path}")
        return self.root.joinpath(*rel.parts)

    def _should_skip(self, path: Path) -> bool:
        """Check if a file should be skipped.

        Skips hidden files, common build artifacts, and version control.
        """
        parts = path.parts

        if any(part.startswith(".") for part in parts):
            return True

        return any(part in SKIP_PATTERNS or part.endswith(".egg-info") for part in parts)
