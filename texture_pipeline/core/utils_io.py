"""I/O helpers for reading source images and writing generated maps."""
from __future__ import annotations

import os
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from PIL import Image, UnidentifiedImageError

from .buffers import PixelBuffer
from .errors import InvalidInput

SUPPORTED_SUFFIXES = (".png", ".jpg", ".jpeg", ".bmp", ".tga", ".webp")

# lock path -> [lock, number of writers holding or waiting on it]
_LOCK_REGISTRY: dict[Path, list] = {}
_LOCK_REGISTRY_GUARD = threading.Lock()


def ensure_dir(path: Path) -> Path:
    """Ensure that *path* exists and return it."""

    path.mkdir(parents=True, exist_ok=True)
    return path


def _acquire_file_lock(target: Path) -> threading.Lock:
    with _LOCK_REGISTRY_GUARD:
        entry = _LOCK_REGISTRY.get(target)
        if entry is None:
            entry = [threading.Lock(), 0]
            _LOCK_REGISTRY[target] = entry
        entry[1] += 1
    lock = entry[0]
    lock.acquire()
    return lock


def _release_file_lock(target: Path, lock: threading.Lock) -> None:
    lock.release()
    with _LOCK_REGISTRY_GUARD:
        entry = _LOCK_REGISTRY.get(target)
        if entry is not None:
            entry[1] -= 1
            if entry[1] <= 0:
                del _LOCK_REGISTRY[target]


@contextmanager
def file_lock(path: Path) -> Iterator[None]:
    """Serialize writers of *path* across threads and processes."""

    temp_lock = path.with_suffix(path.suffix + ".lock")
    lock = _acquire_file_lock(temp_lock)
    try:
        while True:
            try:
                fd = os.open(temp_lock, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
                os.close(fd)
                break
            except FileExistsError:
                time.sleep(0.05)
        yield
    finally:
        try:
            os.remove(temp_lock)
        except FileNotFoundError:
            pass
        _release_file_lock(temp_lock, lock)


class SafeFileManager:
    """Write generated maps atomically below a base directory."""

    def __init__(self, base_dir: Path) -> None:
        self.base_dir = Path(base_dir)
        ensure_dir(self.base_dir)

    def resolve(self, path: Path | str) -> Path:
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.base_dir / candidate
        ensure_dir(candidate.parent)
        return candidate

    def atomic_save(self, buffer: PixelBuffer | Image.Image, path: Path | str, *, format: Optional[str] = None) -> Path:
        """Save *buffer* through a temporary file so readers never see a partial map."""

        image = buffer.to_image() if isinstance(buffer, PixelBuffer) else buffer
        destination = self.resolve(path)
        # same directory as the destination so os.replace stays a rename
        temp_path = destination.with_name(f".{destination.name}.tmp")
        with file_lock(destination):
            try:
                image.save(temp_path, format=format or "PNG")
                os.replace(temp_path, destination)
            finally:
                try:
                    os.remove(temp_path)
                except FileNotFoundError:
                    pass
        return destination


def atomic_save(buffer: PixelBuffer | Image.Image, path: Path | str, base_dir: Optional[Path] = None) -> Path:
    """Convenience wrapper to persist *buffer* atomically."""

    manager = SafeFileManager(base_dir or Path(path).resolve().parent)
    return manager.atomic_save(buffer, path)


def load_image(path: Path | str) -> PixelBuffer:
    """Decode *path* with Pillow into an RGBA :class:`PixelBuffer`."""

    source = Path(path)
    if not source.is_file():
        raise InvalidInput(f"Image not found: {source}")
    try:
        with Image.open(source) as image:
            return PixelBuffer.from_image(image)
    except (UnidentifiedImageError, OSError) as exc:
        raise InvalidInput(f"Cannot decode image {source}: {exc}") from exc


def iter_images(path: Path) -> Iterator[Path]:
    """Yield *path* itself or the supported images inside it, sorted by name."""

    if path.is_file():
        yield path
        return
    if not path.is_dir():
        raise InvalidInput(f"Input path does not exist: {path}")
    for candidate in sorted(path.iterdir()):
        if candidate.is_file() and candidate.suffix.lower() in SUPPORTED_SUFFIXES:
            yield candidate
