from __future__ import annotations

import base64
import logging
import os
import re
import time
from dataclasses import dataclass
from pathlib import Path

from app.fjv.httpclient import HttpError, request_json

logger = logging.getLogger(__name__)


class ImageHostError(RuntimeError):
    pass


@dataclass(frozen=True)
class HostedImage:
    url: str
    thumb_url: str
    delete_url: str | None
    width: int | None = None
    height: int | None = None
    size: int | None = None


def build_image_name(prefix: str, original_filename: str | None) -> str:
    safe = re.sub(r"\s+", "_", (original_filename or "imagen").strip()) or "imagen"
    return f"{prefix}_{int(time.time() * 1000)}_{safe}"


class ImageHost:
    def upload(self, data: bytes, name: str, *, content_type: str | None = None) -> HostedImage:
        raise NotImplementedError

    def delete(self, delete_url: str) -> bool:
        raise NotImplementedError

    def delete_quietly(self, delete_url: str | None) -> bool:
        """Best-effort removal: host failures are logged, never raised."""
        if not delete_url:
            return False
        try:
            return self.delete(delete_url)
        except Exception as e:
            logger.warning("Image host delete failed (%s): %s", delete_url, e)
            return False


@dataclass(frozen=True)
class LocalImageHost(ImageHost):
    root: Path
    base_url: str = "/uploads"

    def _path(self, key: str) -> Path:
        safe_key = key.lstrip("/").replace("\\", "/")
        if ".." in safe_key.split("/"):
            raise ImageHostError("Invalid image key.")
        return self.root / safe_key

    def upload(self, data: bytes, name: str, *, content_type: str | None = None) -> HostedImage:
        ext = {
            "image/png": ".png",
            "image/gif": ".gif",
            "image/webp": ".webp",
        }.get(content_type or "", ".jpg")
        key = f"{name}{ext}" if not Path(name).suffix else name
        p = self._path(key)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(data)
        url = f"{self.base_url.rstrip('/')}/{key}"
        return HostedImage(url=url, thumb_url=url, delete_url=f"local:{key}", size=len(data))

    def delete(self, delete_url: str) -> bool:
        if not delete_url.startswith("local:"):
            return False
        p = self._path(delete_url[len("local:"):])
        if p.exists():
            p.unlink()
            return True
        return False

    def open_path(self, key: str) -> Path:
        return self._path(key)


@dataclass(frozen=True)
class ImgbbHost(ImageHost):
    api_key: str
    timeout_seconds: float = 10.0
    upload_url: str = "https://api.imgbb.com/1/upload"

    def upload(self, data: bytes, name: str, *, content_type: str | None = None) -> HostedImage:
        if not self.api_key:
            raise ImageHostError("IMGBB_API_KEY is not configured.")
        try:
            j = request_json(
                "POST",
                self.upload_url,
                form={
                    "key": self.api_key,
                    "image": base64.b64encode(data).decode("ascii"),
                    "name": name,
                },
                timeout=self.timeout_seconds,
            )
        except HttpError as e:
            raise ImageHostError(f"ImgBB upload failed: {e}") from e
        if not j.get("success"):
            raise ImageHostError(f"ImgBB upload rejected: {(j.get('error') or {}).get('message') or j}")
        d = j.get("data") or {}
        thumb = (d.get("thumb") or {}).get("url") or d.get("url")
        return HostedImage(
            url=d.get("url") or d.get("display_url") or "",
            thumb_url=thumb or "",
            delete_url=d.get("delete_url"),
            width=int(d["width"]) if d.get("width") else None,
            height=int(d["height"]) if d.get("height") else None,
            size=int(d["size"]) if d.get("size") else None,
        )

    def delete(self, delete_url: str) -> bool:
        # ImgBB has no delete API; the viewer-side delete link is requested directly.
        try:
            request_json("GET", delete_url, timeout=self.timeout_seconds, retries=0)
        except HttpError as e:
            # The delete page answers HTML; only HTTP failures matter here.
            if e.status is not None:
                raise ImageHostError(f"ImgBB delete failed: {e}") from e
        return True


def imagehost_from_config(config: dict) -> ImageHost:
    backend = (config.get("IMAGE_HOST_BACKEND") or "local").strip().lower()
    timeout = float(config.get("HTTP_TIMEOUT_SECONDS") or 10.0)
    if backend == "imgbb":
        return ImgbbHost(api_key=(config.get("IMGBB_API_KEY") or "").strip(), timeout_seconds=timeout)
    # default local
    root = Path(config.get("UPLOAD_DIR") or "uploads")
    if not root.is_absolute():
        root = Path(os.getcwd()) / root
    return LocalImageHost(root=root)
