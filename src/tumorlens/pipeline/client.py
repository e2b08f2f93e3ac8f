"""HTTP client for the remote classification endpoint.

One multipart POST per upload, no retries. Anything that keeps the call from
producing the minimal ``{"data": [...]}`` envelope is reported as a
``TransportError`` so the caller can fall back; a body that arrives but lacks
the envelope is also a ``FormatError``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from tumorlens.pipeline.normalizer import FormatError

if TYPE_CHECKING:
    from tumorlens.pipeline.validator import ImageUpload

logger = logging.getLogger(__name__)

DEFAULT_PREDICT_PATH: str = "api/predict/"


class TransportError(RuntimeError):
    """The submission could not complete or came back unusable."""


class MalformedResponseError(TransportError, FormatError):
    """The endpoint answered, but not with a ``data`` envelope."""


class PredictionClient:
    """Submits images to a remote classifier over a shared ``httpx.AsyncClient``."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str,
        predict_path: str = DEFAULT_PREDICT_PATH,
        timeout: float | None = None,
    ) -> None:
        self._http = http_client
        self._timeout = timeout
        self.endpoint = f"{base_url.rstrip('/')}/{predict_path.lstrip('/')}"

    async def submit(self, upload: ImageUpload) -> dict[str, Any]:
        """POST the image and return the decoded response envelope.

        Raises:
            TransportError: On connectivity failure, a non-success status, or
                a body that is not JSON.
            MalformedResponseError: If the JSON body has no non-empty ``data`` list.
        """
        files = {"data": (upload.filename, upload.data, upload.content_type or "application/octet-stream")}
        extra: dict[str, Any] = {}
        if self._timeout is not None:
            extra["timeout"] = self._timeout

        try:
            response = await self._http.post(
                self.endpoint,
                files=files,
                headers={"Accept": "application/json"},
                **extra,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise TransportError(f"API request failed: {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Failed to reach {self.endpoint}: {exc}") from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise MalformedResponseError("Response body is not valid JSON") from exc

        if not isinstance(body, dict):
            raise MalformedResponseError(f"Expected a JSON object, got {type(body).__name__}")
        data = body.get("data")
        if not isinstance(data, list) or not data:
            raise MalformedResponseError("Response has no non-empty 'data' list")

        logger.debug("Prediction response from %s: %s", self.endpoint, body)
        return body
