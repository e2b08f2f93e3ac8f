"""Bundled sample MRI image."""

from __future__ import annotations

import asyncio
import mimetypes
from pathlib import Path

from tumorlens.pipeline.validator import ImageUpload

SAMPLE_IMAGE_PATH: Path = Path(__file__).resolve().parent.parent / "assets" / "sample-mri.png"


class SampleUnavailableError(RuntimeError):
    """The sample image could not be read."""


async def load_sample(path: str | Path | None = None) -> ImageUpload:
    """Read the sample image into an ``ImageUpload``.

    Raises:
        SampleUnavailableError: If the file is missing or unreadable.
    """
    sample_path = Path(path) if path is not None else SAMPLE_IMAGE_PATH
    try:
        data = await asyncio.to_thread(sample_path.read_bytes)
    except OSError as exc:
        raise SampleUnavailableError(f"Failed to load sample image {sample_path}: {exc}") from exc

    content_type, _ = mimetypes.guess_type(sample_path.name)
    return ImageUpload(filename=sample_path.name, content_type=content_type, data=data)
