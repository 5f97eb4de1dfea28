from __future__ import annotations

import base64
from typing import Optional

from fastapi import UploadFile

from resumeai.core import (
    ACCEPTED_MEDIA_TYPES,
    MAX_FILE_BYTES,
    MSG_BAD_FILE_TYPE,
    MSG_EMPTY_FILE,
    MSG_FILE_TOO_LARGE,
    ValidationError,
)
from resumeai.models import UploadedFile


def _normalize_media_type(media_type: Optional[str]) -> str:
    # "text/plain; charset=utf-8" -> "text/plain"
    return (media_type or "").split(";", 1)[0].strip().lower()


def to_data_url(media_type: str, contents: bytes) -> str:
    encoded = base64.b64encode(contents).decode("ascii")
    return f"data:{media_type};base64,{encoded}"


def data_url_payload(data_url: str) -> str:
    """Keep only what follows the comma of a data URL."""
    _, sep, payload = data_url.partition(",")
    if not sep:
        raise ValidationError("Malformed data URL.")
    return payload


def check_media_type(media_type: Optional[str]) -> str:
    mt = _normalize_media_type(media_type)
    if mt not in ACCEPTED_MEDIA_TYPES:
        raise ValidationError(MSG_BAD_FILE_TYPE)
    return mt


def encode_resume(name: str, media_type: Optional[str], contents: bytes) -> UploadedFile:
    """
    Validate a selected file and turn it into an UploadedFile.

    The media type is checked before anything is encoded, so a rejected file
    never produces a payload.
    """
    mt = check_media_type(media_type)
    if not contents:
        raise ValidationError(MSG_EMPTY_FILE)
    if len(contents) > MAX_FILE_BYTES:
        raise ValidationError(MSG_FILE_TOO_LARGE)

    return UploadedFile(
        name=name or "resume",
        media_type=mt,
        data=data_url_payload(to_data_url(mt, contents)),
    )


async def read_upload(upload: UploadFile) -> UploadedFile:
    """Read a multipart upload once and validate it."""
    try:
        check_media_type(upload.content_type)
        contents = await upload.read()
    finally:
        await upload.close()
    return encode_resume(upload.filename, upload.content_type, contents)
