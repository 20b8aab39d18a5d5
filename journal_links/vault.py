"""Document sources for vault scanning.

A document source lists the documents under a root and reads them one at
a time. ``MarkdownVault`` is the filesystem implementation: a recursive
walk filtered by extension, with blocking reads pushed to a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, Union

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class DocumentSource(Protocol):
    def list_documents(self, root: PathLike) -> Sequence[Path]:
        """All documents under *root*. Raises if *root* cannot be enumerated."""
        ...

    async def read_text(self, path: Path) -> Optional[str]:
        """Document content, or None when it cannot be read."""
        ...


class MarkdownVault:
    """Filesystem vault of markdown (or other single-extension) documents."""

    def __init__(self, extension: str = ".md", encoding: str = "utf-8") -> None:
        self.extension = extension
        self.encoding = encoding

    def list_documents(self, root: PathLike) -> List[Path]:
        """Return every matching file under *root*, sorted by path.

        Unreadable subdirectories are skipped; a missing or non-directory
        root raises ``FileNotFoundError`` / ``NotADirectoryError``.
        """
        root_path = Path(root).expanduser()
        if not root_path.exists():
            raise FileNotFoundError(f"Vault directory not found: {root_path}")
        if not root_path.is_dir():
            raise NotADirectoryError(f"Vault path is not a directory: {root_path}")

        def _on_error(exc: OSError) -> None:
            logger.debug("Skipping unreadable directory %s: %s", exc.filename, exc)

        files: list[Path] = []
        for dirpath, _dirnames, filenames in os.walk(root_path, onerror=_on_error):
            for name in filenames:
                if name.endswith(self.extension):
                    files.append(Path(dirpath) / name)
        return sorted(files)

    def _read(self, path: Path) -> Optional[str]:
        try:
            return path.read_text(encoding=self.encoding)
        except (OSError, UnicodeDecodeError) as exc:
            logger.debug("Failed to read %s: %s", path, exc)
            return None

    async def read_text(self, path: Path) -> Optional[str]:
        return await asyncio.to_thread(self._read, path)
