"""Directory-backed content store and result persistence."""

from __future__ import annotations

from pathlib import Path
import secrets
import time
from typing import Callable, Dict, Optional

from headshot.core.config import get_settings
from headshot.core.logger import get_logger
from headshot.media.assets import ExtractedImage, ImageAsset
from headshot.media.errors import PersistenceError


logger = get_logger("headshot.media.store")

MIME_EXTENSIONS: Dict[str, str] = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/webp": "webp",
}
DEFAULT_EXTENSION = "png"


def extension_for_mime(mime_type: str) -> str:
    return MIME_EXTENSIONS.get((mime_type or "").strip().lower(), DEFAULT_EXTENSION)


def _default_entropy() -> str:
    return secrets.token_hex(4)


class NameFactory:
    """Builds ``<prefix>-<epoch ms>-<entropy><suffix>`` names.

    Clock and entropy are injectable so tests can produce fixed names.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.time,
        entropy: Callable[[], str] = _default_entropy,
    ) -> None:
        self._clock = clock
        self._entropy = entropy

    def __call__(self, prefix: str, suffix: str = "") -> str:
        millis = int(self._clock() * 1000)
        return f"{prefix}-{millis}-{self._entropy()}{suffix}"


class ContentStore:
    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def resolve(self, name: str) -> Path:
        cleaned = (name or "").strip()
        if not cleaned or cleaned in {".", ".."} or "/" in cleaned or "\\" in cleaned or "\x00" in cleaned:
            raise ValueError(f"Invalid storage name: {name!r}")
        return self._root / cleaned

    def exists(self, name: str) -> bool:
        try:
            path = self.resolve(name)
        except ValueError:
            return False
        return path.is_file()

    def read(self, name: str) -> bytes:
        return self.resolve(name).read_bytes()

    def save(self, name: str, content: bytes) -> Path:
        path = self.resolve(name)
        self._root.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return path

    def size(self, name: str) -> int:
        return self.resolve(name).stat().st_size


def _storage_root() -> Path:
    settings = get_settings()
    configured = Path(settings.uploads_storage_path)
    if configured.is_absolute():
        return configured
    return Path.cwd() / configured


def get_content_store() -> ContentStore:
    return ContentStore(_storage_root())


class ResultPersister:
    def __init__(self, store: ContentStore, *, names: Optional[NameFactory] = None) -> None:
        self._store = store
        self._names = names or NameFactory()

    def persist(self, image: ExtractedImage) -> ImageAsset:
        """Write an accepted image and return it as a named asset."""

        extension = extension_for_mime(image.mime_type)
        name = self._names("result", f".{extension}")
        if not image.content:
            logger.error("generated_image_empty", mime=image.mime_type, bytes=0)
            raise PersistenceError("generated image empty", detail={"mime": image.mime_type})

        try:
            self._store.save(name, image.content)
            written = self._store.size(name)
        except OSError as exc:
            logger.error("result_write_failed", name=name, error=str(exc))
            raise PersistenceError("generated image could not be written", detail=str(exc)) from exc

        if written == 0:
            logger.error("generated_image_empty", mime=image.mime_type, bytes=len(image.content))
            raise PersistenceError("generated image empty", detail={"mime": image.mime_type})

        logger.info("result_persisted", name=name, mime=image.mime_type, bytes=written)
        return ImageAsset.from_bytes(image.content, name=name, hint=image.mime_type, mime_type=image.mime_type)
