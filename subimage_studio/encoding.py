"""
encoding.py — Turns image assets into transport-ready base64 payloads.

  ImageAsset    — an uploaded file: bytes in memory or a path read on demand
  EncodedImage  — base64 payload + content type (also used for model results)
  encode()      — ImageAsset → (base64, content type)

Content type resolution order:
  1. the asset's declared type
  2. parsed from the read result (data URL prefix, or the format Pillow detects)
  3. DEFAULT_ASSET_MIME
"""

from __future__ import annotations

import base64
import binascii
import io
import re
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple, Union

from PIL import Image, UnidentifiedImageError

from .errors import DecodeError

DEFAULT_ASSET_MIME = "image/jpeg"
DEFAULT_RESULT_MIME = "image/png"

_DATA_URL_RE = re.compile(r"^data:([^;,]+);base64,(.+)$", re.DOTALL)

_EXT_MIME = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
}


def _new_asset_id() -> str:
    return uuid.uuid4().hex[:9]


@dataclass(frozen=True)
class ImageAsset:
    """An image the user supplied. Readable once or many times; never mutated."""

    name: str
    data: Optional[bytes] = field(default=None, repr=False)
    path: Optional[Path] = None
    content_type: str = ""
    asset_id: str = field(default_factory=_new_asset_id)

    @classmethod
    def from_path(cls, path: Union[str, Path], content_type: str = "") -> "ImageAsset":
        p = Path(path)
        declared = content_type or _EXT_MIME.get(p.suffix.lower(), "")
        return cls(name=p.name, path=p, content_type=declared)

    @classmethod
    def from_bytes(cls, data: bytes, name: str = "upload", content_type: str = "") -> "ImageAsset":
        return cls(name=name, data=data, content_type=content_type)

    def read(self) -> bytes:
        if self.data is not None:
            return self.data
        if self.path is None:
            raise DecodeError(f"Image '{self.name}' has no content.")
        try:
            return self.path.read_bytes()
        except OSError as exc:
            raise DecodeError(f"Could not read image '{self.name}': {exc}") from exc


@dataclass(frozen=True)
class EncodedImage:
    payload: str = field(repr=False)
    mime_type: str = DEFAULT_RESULT_MIME

    @classmethod
    def from_bytes(cls, data: bytes, mime_type: str = DEFAULT_RESULT_MIME) -> "EncodedImage":
        return cls(payload=base64.b64encode(data).decode("ascii"), mime_type=mime_type)

    @classmethod
    def from_data_url(cls, url: str) -> "EncodedImage":
        match = _DATA_URL_RE.match(url.strip())
        if not match:
            raise DecodeError("Not a base64 data URL.")
        return cls(payload=match.group(2), mime_type=match.group(1))

    def to_bytes(self) -> bytes:
        try:
            return base64.b64decode(self.payload, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise DecodeError(f"Corrupt image payload: {exc}") from exc

    def to_data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.payload}"

    @property
    def extension(self) -> str:
        subtype = self.mime_type.split("/")[-1].lower()
        return "jpg" if subtype == "jpeg" else subtype or "png"


def sniff_content_type(data: bytes) -> Optional[str]:
    """Ask Pillow which image format the bytes are; None when it cannot tell."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            return Image.MIME.get(img.format or "")
    except Image.DecompressionBombError as exc:
        raise DecodeError(f"Image is too large to process: {exc}") from exc
    except (UnidentifiedImageError, OSError, ValueError):
        return None


def encode(asset: ImageAsset) -> Tuple[str, str]:
    raw = asset.read()
    if not raw:
        raise DecodeError(f"Image '{asset.name}' is empty.")

    # Already-encoded data URLs pass through
    if raw[:5] == b"data:":
        try:
            encoded = EncodedImage.from_data_url(raw.decode("ascii"))
        except UnicodeDecodeError as exc:
            raise DecodeError(f"Image '{asset.name}' is not a valid data URL.") from exc
        return encoded.payload, asset.content_type or encoded.mime_type

    content_type = asset.content_type or sniff_content_type(raw) or DEFAULT_ASSET_MIME
    return base64.b64encode(raw).decode("ascii"), content_type


def encode_image(asset: ImageAsset) -> EncodedImage:
    payload, content_type = encode(asset)
    return EncodedImage(payload=payload, mime_type=content_type)
