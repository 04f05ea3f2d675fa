"""Raw input file handed to the orchestrators by the presentation layer."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Final, Optional

EXTENSION_CONTENT_TYPES: Final[dict[str, str]] = {
    ".pdf": "application/pdf",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
}


def content_type_for_filename(filename: str) -> Optional[str]:
    """Derive the MIME type from a file extension, or None if unsupported."""
    return EXTENSION_CONTENT_TYPES.get(Path(filename).suffix.lower())


@dataclass(frozen=True)
class DocumentFile:
    name: str
    content: bytes
    content_type: Optional[str] = None

    @classmethod
    def from_path(cls, path: str | Path) -> "DocumentFile":
        p = Path(path).expanduser()
        return cls(name=p.name, content=p.read_bytes())

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def extension(self) -> str:
        return Path(self.name).suffix.lower()

    @property
    def resolved_content_type(self) -> Optional[str]:
        return self.content_type or content_type_for_filename(self.name)
