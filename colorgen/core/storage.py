"""
File storage for references, staged output and published images

Layout under root:
    references/   uploaded source pictures (image-to-image input)
    .staging/     producer output, never served
    images/       published artifacts, served under <public_url_prefix>/images

Publishing is an os.replace from .staging into images, so a reader either
sees a complete file or nothing.
"""
import logging
import os
import uuid
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .exceptions import StorageError

logger = logging.getLogger(__name__)

REFERENCES_DIR = "references"
STAGING_DIR = ".staging"
IMAGES_DIR = "images"


class FileStorage:
    def __init__(self, root: Path, presets_dir: Path, public_url_prefix: str = "/uploads"):
        self.root = Path(root)
        self.presets_dir = Path(presets_dir)
        self.public_url_prefix = public_url_prefix.rstrip("/")

    @property
    def references_dir(self) -> Path:
        return self.root / REFERENCES_DIR

    @property
    def staging_dir(self) -> Path:
        return self.root / STAGING_DIR

    @property
    def images_dir(self) -> Path:
        return self.root / IMAGES_DIR

    @property
    def images_url_prefix(self) -> str:
        return f"{self.public_url_prefix}/{IMAGES_DIR}"

    def ensure_dirs(self):
        for path in (self.references_dir, self.staging_dir, self.images_dir):
            path.mkdir(parents=True, exist_ok=True)

    # ========== Presets ==========

    def read_preset(self, name: str) -> bytes:
        path = self._resolve(self.presets_dir, name)
        try:
            return path.read_bytes()
        except OSError as e:
            raise StorageError(f"Preset image {name} is not available: {e}")

    def list_presets(self) -> List[str]:
        if not self.presets_dir.is_dir():
            return []
        return sorted(p.name for p in self.presets_dir.iterdir() if p.is_file())

    # ========== References ==========

    def save_reference(self, data: bytes, filename: Optional[str] = None) -> str:
        """
        Store an uploaded picture

        Returns:
            Opaque handle (bare file name) used to read it back
        """
        suffix = Path(filename).suffix.lower() if filename else ""
        handle = f"ref_{uuid.uuid4().hex}{suffix}"
        self.references_dir.mkdir(parents=True, exist_ok=True)
        try:
            (self.references_dir / handle).write_bytes(data)
        except OSError as e:
            raise StorageError(f"Could not store upload: {e}")
        logger.info(f"[STORAGE] Saved reference {handle} ({len(data)} bytes)")
        return handle

    def read_reference(self, handle: str) -> bytes:
        path = self._resolve(self.references_dir, handle)
        try:
            return path.read_bytes()
        except OSError as e:
            raise StorageError(f"Reference image {handle} is not available: {e}")

    def delete_reference(self, handle: str) -> bool:
        path = self._resolve(self.references_dir, handle)
        try:
            path.unlink()
            logger.info(f"[STORAGE] Deleted reference {handle}")
            return True
        except FileNotFoundError:
            return False

    # ========== Staging and publishing ==========

    def stage(self, data: bytes, prefix: str, suffix: str = ".png") -> Path:
        """Write bytes to a new file in the staging area"""
        self.staging_dir.mkdir(parents=True, exist_ok=True)
        path = self.staging_dir / f"{prefix}-{uuid.uuid4().hex[:12]}{suffix}"
        try:
            path.write_bytes(data)
        except OSError as e:
            raise StorageError(f"Could not write staged file: {e}")
        return path

    def publish(self, staged: Dict[str, Path]) -> Dict[str, str]:
        """
        Move staged files into the public images dir

        All or nothing: if one move fails the already-published files are
        removed again and StorageError is raised.

        Returns:
            public URL per variant
        """
        self.images_dir.mkdir(parents=True, exist_ok=True)
        published: List[Path] = []
        urls: Dict[str, str] = {}
        try:
            for variant, source in staged.items():
                source = self._resolve(self.staging_dir, Path(source).name)
                target = self.images_dir / source.name
                os.replace(source, target)
                published.append(target)
                urls[variant] = f"{self.images_url_prefix}/{target.name}"
        except OSError as e:
            for path in published:
                path.unlink(missing_ok=True)
            raise StorageError(f"Publishing artifact failed: {e}")
        return urls

    def discard(self, paths: Iterable[Path]):
        """Delete staged files; missing files are ignored"""
        for path in paths:
            Path(path).unlink(missing_ok=True)

    def discard_prefix(self, prefix: str) -> int:
        """Delete every staged file whose name starts with prefix"""
        if not prefix or "/" in prefix or "\\" in prefix or not self.staging_dir.is_dir():
            return 0
        removed = 0
        for path in self.staging_dir.iterdir():
            if path.is_file() and path.name.startswith(prefix):
                path.unlink(missing_ok=True)
                removed += 1
        if removed:
            logger.info(f"[STORAGE] Swept {removed} staged files for {prefix}")
        return removed

    def unpublish(self, urls: Iterable[str]):
        """Delete published files by their public URL"""
        prefix = f"{self.images_url_prefix}/"
        for url in urls:
            if not url.startswith(prefix):
                logger.warning(f"[STORAGE] Not a published image URL: {url}")
                continue
            path = self._resolve(self.images_dir, url[len(prefix):])
            path.unlink(missing_ok=True)
            logger.info(f"[STORAGE] Removed published file {path.name}")

    def published_path(self, url: str) -> Optional[Path]:
        prefix = f"{self.images_url_prefix}/"
        if not url.startswith(prefix):
            return None
        return self._resolve(self.images_dir, url[len(prefix):])

    def _resolve(self, base: Path, name: str) -> Path:
        """Join a bare file name onto base, rejecting anything that escapes it"""
        if not name or "/" in name or "\\" in name or name in (".", ".."):
            raise StorageError(f"Invalid file handle: {name!r}")
        path = base / name
        if path.resolve().parent != base.resolve():
            raise StorageError(f"Invalid file handle: {name!r}")
        return path
