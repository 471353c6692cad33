"""Storage collaborators and the document loader."""

from pathlib import Path
from typing import Callable, Optional

from docindex.loaders.folder_storage import FolderStorage
from docindex.loaders.loader import DocumentLoader, content_hash
from docindex.loaders.memory_storage import MemoryStorage
from docindex.loaders.zip_storage import ZipStorage
from docindex.protocols import BlobStorage

# Registry of (can_handle, factory) pairs for file-system sources
_STORAGES: list[tuple[Callable[[Path], bool], Callable[[Path], BlobStorage]]] = [
    (ZipStorage.can_handle, ZipStorage),
    (FolderStorage.can_handle, FolderStorage),
]


def get_storage(source: Path | str) -> Optional[BlobStorage]:
    """Find a storage that can serve the given source.

    Args:
        source: Path to the input source (folder or zip file)

    Returns:
        A BlobStorage over the source, or None
    """
    source_path = Path(source)
    for can_handle, factory in _STORAGES:
        if can_handle(source_path):
            return factory(source_path)
    return None


def register_storage(
    can_handle: Callable[[Path], bool],
    factory: Callable[[Path], BlobStorage],
) -> None:
    """Register a custom storage (for plugins/extensions).

    Args:
        can_handle: Predicate deciding whether the factory applies to a source
        factory: Builds a BlobStorage for a matching source
    """
    _STORAGES.append((can_handle, factory))


__all__ = [
    "get_storage",
    "register_storage",
    "content_hash",
    "DocumentLoader",
    "FolderStorage",
    "ZipStorage",
    "MemoryStorage",
]
