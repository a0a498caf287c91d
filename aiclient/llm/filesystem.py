"""Filesystem collaborator used for input files and saved outputs."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, Tuple, Union

from PIL import Image, UnidentifiedImageError

PathLike = Union[str, Path]


class Filesystem(Protocol):
    """Minimal file access needed by request builders."""

    def exists(self, path: PathLike) -> bool:
        """Return True when ``path`` is a readable regular file."""

    def size(self, path: PathLike) -> int:
        """Return the file size in bytes."""

    def read(self, path: PathLike) -> bytes:
        """Return the file contents."""

    def image_dimensions(self, path: PathLike) -> Tuple[int, int] | None:
        """Return ``(width, height)`` or None when the file is not a decodable image."""


class LocalFilesystem:
    """Filesystem backed by the local disk; image sizes come from Pillow."""

    def exists(self, path: PathLike) -> bool:
        try:
            return Path(path).is_file()
        except (OSError, ValueError):
            # over-long names, e.g. inline base64 passed where a path may be
            return False

    def size(self, path: PathLike) -> int:
        return Path(path).stat().st_size

    def read(self, path: PathLike) -> bytes:
        return Path(path).read_bytes()

    def image_dimensions(self, path: PathLike) -> Tuple[int, int] | None:
        try:
            with Image.open(Path(path)) as img:
                return int(img.width), int(img.height)
        except (UnidentifiedImageError, OSError):
            return None


def extension_of(path: PathLike) -> str:
    return Path(path).suffix.lower().lstrip(".")
