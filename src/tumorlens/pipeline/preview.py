"""Data-URL preview encoding for accepted uploads."""

from __future__ import annotations

import asyncio
import base64
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tumorlens.pipeline.validator import ImageUpload


def to_data_url(upload: ImageUpload) -> str:
    payload = base64.b64encode(upload.data).decode("ascii")
    return f"data:{upload.content_type};base64,{payload}"


async def encode_preview(upload: ImageUpload) -> str:
    """Encode an upload as a data URL without blocking the event loop."""
    return await asyncio.to_thread(to_data_url, upload)
