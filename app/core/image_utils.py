from __future__ import annotations

import base64
import binascii
import io
import logging
from dataclasses import dataclass

from PIL import Image, UnidentifiedImageError

from app.common.schemas import ImageData

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = {"image/jpeg", "image/png", "image/webp", "image/gif"}


@dataclass(frozen=True)
class ReadError:
    """Failed file read; returned instead of raised."""

    message: str


def load_image(
    data: bytes, filename: str, content_type: str | None = None
) -> ImageData | ReadError:
    """
    업로드된 파일 바이트를 ImageData로 변환

    Pillow로 실제 이미지인지 확인하고 포맷에서 MIME 타입을 결정합니다.
    URL은 저장소 업로드 후에 채워집니다.
    """
    if not data:
        return ReadError(f"{filename} is empty.")

    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
            image_format = img.format
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        logger.warning(f"이미지 파일 읽기 실패: {filename}, error={e}")
        return ReadError(f"There was an error reading {filename}.")

    mime_type = Image.MIME.get(image_format or "", content_type or "")
    if mime_type not in ALLOWED_MIME_TYPES:
        return ReadError(f"Unsupported image type for {filename}: {mime_type or 'unknown'}")

    return ImageData(
        base64=base64.b64encode(data).decode("ascii"),
        mime_type=mime_type,
        name=filename,
    )


def decode_base64(payload: str) -> bytes:
    """base64 문자열 디코딩 (data URL prefix 허용)"""
    if payload.startswith("data:"):
        _, payload = payload.split(",", 1)
    try:
        return base64.b64decode(payload, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 payload: {e}") from e


def extension_for(mime_type: str) -> str:
    subtype = mime_type.split("/")[-1].lower()
    return "jpg" if subtype == "jpeg" else subtype
