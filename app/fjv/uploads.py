from __future__ import annotations

from dataclasses import dataclass

from werkzeug.datastructures import FileStorage

from app.fjv.constants import ALLOWED_IMAGE_TYPES
from app.fjv.errors import ValidationError


@dataclass(frozen=True)
class UploadedImage:
    data: bytes
    filename: str
    content_type: str

    @property
    def size(self) -> int:
        return len(self.data)


def _mb(n: int) -> str:
    return f"{n // (1024 * 1024)}MB"


def read_image(file: FileStorage, *, max_bytes: int) -> UploadedImage:
    """Validate MIME type and size of one uploaded image and read it into memory."""
    content_type = (file.mimetype or "").lower()
    if not content_type.startswith("image/"):
        raise ValidationError("El archivo debe ser una imagen")
    if content_type not in ALLOWED_IMAGE_TYPES:
        raise ValidationError("Tipo de archivo no permitido. Solo se permiten: JPEG, PNG, GIF, WebP")
    data = file.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise ValidationError(f"El archivo es demasiado grande. El tamaño máximo permitido es {_mb(max_bytes)}")
    if not data:
        raise ValidationError("El archivo está vacío")
    return UploadedImage(data=data, filename=file.filename or "imagen", content_type=content_type)


def read_images(files: list[FileStorage], *, max_bytes: int, max_files: int) -> list[UploadedImage]:
    files = [f for f in files if f and f.filename]
    if not files:
        raise ValidationError("No se recibieron imágenes")
    if len(files) > max_files:
        raise ValidationError(f"Demasiados archivos. Máximo {max_files} imágenes por vez")
    return [read_image(f, max_bytes=max_bytes) for f in files]
