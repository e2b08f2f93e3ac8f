"""Upload acceptance checks."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from tumorlens.config import MAX_UPLOAD_BYTES


class RejectionReason(StrEnum):
    NOT_AN_IMAGE = "not_an_image"
    TOO_LARGE = "too_large"


class UploadRejectedError(ValueError):
    """Raised when a candidate file fails validation."""

    def __init__(self, reason: RejectionReason, detail: str) -> None:
        super().__init__(detail)
        self.reason = reason


@dataclass(frozen=True)
class ImageUpload:
    """A file handed to the pipeline by the presentation layer."""

    filename: str
    content_type: str | None
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


def validate(upload: ImageUpload, max_size: int = MAX_UPLOAD_BYTES) -> None:
    """Check an upload against the acceptance constraints.

    Raises:
        UploadRejectedError: If the declared type is not an image, or the
            file is larger than ``max_size`` bytes.
    """
    content_type = (upload.content_type or "").lower()
    if not content_type.startswith("image/"):
        raise UploadRejectedError(
            RejectionReason.NOT_AN_IMAGE,
            f"{upload.filename!r} is not an image (content type {upload.content_type!r})",
        )
    if upload.size > max_size:
        raise UploadRejectedError(
            RejectionReason.TOO_LARGE,
            f"{upload.filename!r} is {upload.size} bytes; the limit is {max_size}",
        )
