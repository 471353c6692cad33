"""Read-only blob storage over a ZIP archive."""

import zipfile
from pathlib import Path


class ZipStorage:
    """Blob storage for ZIP archive files."""

    source_type = "zip"

    def __init__(self, archive: Path | str):
        self.archive = Path(archive)

    @classmethod
    def can_handle(cls, source: Path) -> bool:
        """Check if this is a zip file."""
        return source.suffix.lower() == ".zip" and source.exists()

    def list(self, prefix: str = "") -> list[str]:
        """List archive members (directories excluded) matching prefix."""
        with zipfile.ZipFile(self.archive, "r") as zf:
            return sorted(
                info.filename
                for info in zf.infolist()
                if not info.is_dir() and info.filename.startswith(prefix)
            )

    def read(self, path: str) -> bytes:
        with zipfile.ZipFile(self.archive, "r") as zf:
            return zf.read(path)

    def url(self, path: str) -> str:
        return f"zip://{self.archive.absolute().as_posix()}!/{path}"
