"""Filesystem media storage and Pillow-based photo processing."""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from fastapi import HTTPException, status
from PIL import Image, ImageOps, UnidentifiedImageError

from app.core.config import PhotoDerivativeSettings, Settings

LOGGER = logging.getLogger(__name__)

PHOTO_FORMATS: dict[str, tuple[str, str]] = {
    "JPEG": ("image/jpeg", "jpg"),
    "PNG": ("image/png", "png"),
    "WEBP": ("image/webp", "webp"),
}

ORIGINAL_SIZE = "original"


@dataclass(slots=True)
class ProcessedPhoto:
    content_type: str
    extension: str
    width: int
    height: int
    original: bytes
    derivatives: dict[str, bytes] = field(default_factory=dict)


class MediaStorage:
    """Stores uploaded files below the configured upload root."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).resolve()

    def path_for(self, storage_key: str) -> Path:
        relative = PurePosixPath(storage_key.replace("\\", "/"))
        if relative.is_absolute() or ".." in relative.parts:
            raise ValueError(f"Invalid storage key: {storage_key!r}")
        return self.root.joinpath(*relative.parts)

    def write(self, storage_key: str, content: bytes) -> None:
        path = self.path_for(storage_key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)

    def read(self, storage_key: str) -> bytes:
        path = self.path_for(storage_key)
        if not path.is_file():
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Stored file not found.")
        return path.read_bytes()

    def delete(self, storage_key: str) -> None:
        path = self.path_for(storage_key)
        try:
            path.unlink(missing_ok=True)
        except OSError:
            LOGGER.warning("media_delete_failed storage_key=%s", storage_key, exc_info=True)

    def delete_directory(self, storage_prefix: str) -> None:
        """Remove every file under a key prefix, then the empty directories."""

        directory = self.path_for(storage_prefix)
        if not directory.is_dir():
            return
        for path in sorted(directory.rglob("*"), reverse=True):
            try:
                if path.is_dir():
                    path.rmdir()
                else:
                    path.unlink()
            except OSError:
                LOGGER.warning("media_delete_failed path=%s", path, exc_info=True)
        try:
            directory.rmdir()
        except OSError:
            LOGGER.warning("media_delete_failed path=%s", directory, exc_info=True)


def photo_directory(area: str, owner_id: object, photo_id: object) -> str:
    return f"{area}/{owner_id}/{photo_id}"


def photo_key(directory: str, size: str, extension: str = "jpg") -> str:
    if size == ORIGINAL_SIZE:
        return f"{directory}/{ORIGINAL_SIZE}.{extension}"
    return f"{directory}/{size}.jpg"


def directory_of(storage_key: str) -> str:
    return str(PurePosixPath(storage_key).parent)


def _flatten_to_rgb(image: Image.Image) -> Image.Image:
    if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[-1])
        return background
    if image.mode != "RGB":
        return image.convert("RGB")
    return image


def render_derivative(image: Image.Image, size: PhotoDerivativeSettings) -> bytes:
    rendition = _flatten_to_rgb(image.copy())
    rendition.thumbnail((size.width, size.height), Image.Resampling.LANCZOS)
    output = io.BytesIO()
    rendition.save(output, format="JPEG", quality=size.quality, optimize=True)
    return output.getvalue()


def process_photo(content: bytes, settings: Settings) -> ProcessedPhoto:
    """Validate an uploaded photo and render its configured derivatives.

    Raises HTTP errors for empty, oversized, unreadable, unsupported or
    undersized images.
    """

    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file is empty.")
    if len(content) > settings.photo_max_size_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Photo exceeds the maximum size of {settings.photo_max_size_bytes} bytes.",
        )

    try:
        image = Image.open(io.BytesIO(content))
        image.load()
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as exc:
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail="The uploaded file is not a supported image.",
        ) from exc

    detected = PHOTO_FORMATS.get(image.format or "")
    if detected is None:
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail="Only JPEG, PNG or WebP images are supported.",
        )

    oriented = ImageOps.exif_transpose(image)
    width, height = oriented.size
    if width < settings.photo_min_width or height < settings.photo_min_height:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=(
                f"Photo must be at least {settings.photo_min_width}x{settings.photo_min_height} pixels "
                f"(received {width}x{height})."
            ),
        )

    content_type, extension = detected
    return ProcessedPhoto(
        content_type=content_type,
        extension=extension,
        width=width,
        height=height,
        original=content,
        derivatives={name: render_derivative(oriented, size) for name, size in settings.photo_derivatives.items()},
    )


def read_image_size(content: bytes) -> tuple[int, int] | None:
    """Best-effort dimensions for raster uploads that are not gallery photos."""

    try:
        with Image.open(io.BytesIO(content)) as image:
            return ImageOps.exif_transpose(image).size
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError):
        return None
