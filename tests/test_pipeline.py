"""Tests for the validator, preview encoder, prediction client and normalizer."""

from __future__ import annotations

import base64
import json
from pathlib import Path
from typing import Any

import httpx
import pytest

from tumorlens.config import MAX_UPLOAD_BYTES
from tumorlens.pipeline.client import MalformedResponseError, PredictionClient, TransportError
from tumorlens.pipeline.normalizer import (
    ClassificationResult,
    FormatError,
    PredictionResult,
    ScoreMapping,
    ScoreVector,
    UnexpectedFormatError,
    fallback,
    normalize,
    parse_scores,
)
from tumorlens.pipeline.preview import encode_preview
from tumorlens.pipeline.samples import SAMPLE_IMAGE_PATH, SampleUnavailableError, load_sample
from tumorlens.pipeline.taxonomy import POSITIONAL_ORDER, OutcomeClass
from tumorlens.pipeline.validator import ImageUpload, RejectionReason, UploadRejectedError, validate

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-png-body"


def _upload(content_type: str | None = "image/png", data: bytes = PNG_BYTES, filename: str = "scan.png") -> ImageUpload:
    return ImageUpload(filename=filename, content_type=content_type, data=data)


def _confidences(result: ClassificationResult) -> dict[str, float]:
    return {p.outcome.value: p.confidence for p in result.predictions}


def _json_client(body: Any, status_code: int = 200) -> PredictionClient:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json=body)

    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return PredictionClient(http, base_url="http://model.test/")


# ---------------------------------------------------------------------------
# Taxonomy
# ---------------------------------------------------------------------------


class TestTaxonomy:
    def test_declaration_order(self) -> None:
        assert [o.value for o in OutcomeClass] == [
            "No Tumor",
            "Glioma Tumor",
            "Meningioma Tumor",
            "Pituitary Tumor",
        ]

    def test_snake_case_keys(self) -> None:
        assert OutcomeClass.GLIOMA.key == "glioma_tumor"
        assert OutcomeClass.NO_TUMOR.key == "no_tumor"

    def test_positional_order_covers_every_class(self) -> None:
        assert sorted(POSITIONAL_ORDER, key=lambda o: o.rank) == list(OutcomeClass)


# ---------------------------------------------------------------------------
# Validator
# ---------------------------------------------------------------------------


class TestValidator:
    def test_accepts_image(self) -> None:
        validate(_upload())

    @pytest.mark.parametrize("content_type", ["text/plain", "application/pdf", "", None])
    def test_rejects_non_image(self, content_type: str | None) -> None:
        with pytest.raises(UploadRejectedError) as excinfo:
            validate(_upload(content_type=content_type))
        assert excinfo.value.reason is RejectionReason.NOT_AN_IMAGE

    def test_accepts_exactly_ten_mebibytes(self) -> None:
        validate(_upload(data=b"\0" * MAX_UPLOAD_BYTES))

    def test_rejects_one_byte_over_limit(self) -> None:
        with pytest.raises(UploadRejectedError) as excinfo:
            validate(_upload(data=b"\0" * (MAX_UPLOAD_BYTES + 1)))
        assert excinfo.value.reason is RejectionReason.TOO_LARGE

    def test_type_checked_before_size(self) -> None:
        with pytest.raises(UploadRejectedError) as excinfo:
            validate(_upload(content_type="text/plain", data=b"\0" * 20), max_size=10)
        assert excinfo.value.reason is RejectionReason.NOT_AN_IMAGE


# ---------------------------------------------------------------------------
# Preview encoder and sample
# ---------------------------------------------------------------------------


class TestPreview:
    async def test_encodes_data_url(self) -> None:
        url = await encode_preview(_upload())
        prefix = "data:image/png;base64,"
        assert url.startswith(prefix)
        assert base64.b64decode(url[len(prefix) :]) == PNG_BYTES


class TestSample:
    async def test_loads_bundled_sample(self) -> None:
        upload = await load_sample()
        assert upload.filename == SAMPLE_IMAGE_PATH.name
        assert upload.content_type == "image/png"
        assert upload.data.startswith(b"\x89PNG")
        validate(upload)

    async def test_missing_sample_raises(self, tmp_path: Path) -> None:
        with pytest.raises(SampleUnavailableError):
            await load_sample(tmp_path / "missing.png")


# ---------------------------------------------------------------------------
# Prediction client
# ---------------------------------------------------------------------------


class TestPredictionClient:
    async def test_posts_multipart_with_accept_header(self) -> None:
        seen: list[httpx.Request] = []

        async def handler(request: httpx.Request) -> httpx.Response:
            await request.aread()
            seen.append(request)
            return httpx.Response(200, json={"data": [[0.1, 0.2, 0.3, 0.4]]})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = PredictionClient(http, base_url="http://model.test/")
            body = await client.submit(_upload())

        assert body == {"data": [[0.1, 0.2, 0.3, 0.4]]}
        assert len(seen) == 1
        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == "http://model.test/api/predict/"
        assert request.headers["accept"] == "application/json"
        assert request.headers["content-type"].startswith("multipart/form-data")
        assert b'name="data"' in request.content
        assert PNG_BYTES in request.content

    def test_endpoint_joins_base_url_and_path(self) -> None:
        http = httpx.AsyncClient()
        client = PredictionClient(http, base_url="http://model.test", predict_path="/run/predict")
        assert client.endpoint == "http://model.test/run/predict"

    async def test_non_success_status_is_transport_error(self) -> None:
        client = _json_client({"error": "down"}, status_code=503)
        with pytest.raises(TransportError, match="503"):
            await client.submit(_upload())

    async def test_connection_failure_is_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client = PredictionClient(http, base_url="http://model.test/")
        with pytest.raises(TransportError):
            await client.submit(_upload())

    async def test_non_json_body_is_malformed(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>gateway</html>")

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client = PredictionClient(http, base_url="http://model.test/")
        with pytest.raises(MalformedResponseError):
            await client.submit(_upload())

    @pytest.mark.parametrize("body", [{"result": 1}, {"data": []}, {"data": "x"}, [1, 2, 3]])
    async def test_missing_envelope_is_malformed(self, body: Any) -> None:
        client = _json_client(body)
        with pytest.raises(MalformedResponseError):
            await client.submit(_upload())

    async def test_malformed_is_a_transport_error(self) -> None:
        client = _json_client({"nope": True})
        with pytest.raises(TransportError):
            await client.submit(_upload())

    async def test_malformed_is_also_a_format_error(self) -> None:
        client = _json_client({"nope": True})
        with pytest.raises(FormatError):
            await client.submit(_upload())


# ---------------------------------------------------------------------------
# Normalizer
# ---------------------------------------------------------------------------


class TestParseScores:
    def test_list_is_vector(self) -> None:
        assert parse_scores([0.5, 0.5]) == ScoreVector(values=(0.5, 0.5))

    def test_none_position_reads_as_zero(self) -> None:
        assert parse_scores([0.5, None]) == ScoreVector(values=(0.5, 0.0))

    def test_mapping_prefers_snake_case_key(self) -> None:
        parsed = parse_scores({"glioma_tumor": 0.4, "Glioma Tumor": 0.9, "No Tumor": 0.6})
        assert isinstance(parsed, ScoreMapping)
        assert parsed.values == {OutcomeClass.GLIOMA: 0.4, OutcomeClass.NO_TUMOR: 0.6}

    @pytest.mark.parametrize(
        "payload",
        ["glioma", 0.7, None, True, [0.1, 0.2, 0.3, 0.4, 0.5], [0.1, "high"], [True, 0.2], {"no_tumor": "high"}],
    )
    def test_unrecognized_shapes_raise(self, payload: object) -> None:
        with pytest.raises(UnexpectedFormatError):
            parse_scores(payload)

    @pytest.mark.parametrize(
        "payload",
        [
            [-0.1, 0.6, 0.3, 0.2],
            [float("nan"), 0.5],
            [0.5, float("inf")],
            {"no_tumor": -1},
            {"Glioma Tumor": float("-inf")},
        ],
    )
    def test_out_of_range_scores_raise(self, payload: object) -> None:
        with pytest.raises(UnexpectedFormatError, match="out of range"):
            parse_scores(payload)

    def test_zero_is_in_range(self) -> None:
        assert parse_scores([0, 0.0]) == ScoreVector(values=(0.0, 0.0))


class TestNormalize:
    def test_positional_mapping_scaled_and_sorted(self) -> None:
        result = normalize({"data": [[0.2, 0.1, 0.6, 0.1]]})
        assert _confidences(result) == pytest.approx(
            {"Glioma Tumor": 20.0, "Meningioma Tumor": 10.0, "No Tumor": 60.0, "Pituitary Tumor": 10.0}
        )
        assert [p.confidence for p in result.predictions] == sorted(
            (p.confidence for p in result.predictions), reverse=True
        )
        assert result.primary_prediction == "No Tumor"
        assert result.is_fallback is False

    def test_sum_matches_scaled_input(self) -> None:
        a, b, c, d = 0.3, 0.25, 0.25, 0.2
        result = normalize({"data": [[a, b, c, d]]})
        assert sum(p.confidence for p in result.predictions) == pytest.approx(100 * (a + b + c + d))

    def test_end_to_end_glioma(self) -> None:
        result = normalize({"data": [[0.7, 0.1, 0.15, 0.05]]})
        assert result.primary_prediction == "Glioma Tumor"
        assert result.top.confidence == pytest.approx(70.0)

    def test_short_vector_pads_with_zero(self) -> None:
        result = normalize({"data": [[0.9]]})
        assert _confidences(result) == pytest.approx(
            {"Glioma Tumor": 90.0, "Meningioma Tumor": 0.0, "No Tumor": 0.0, "Pituitary Tumor": 0.0}
        )

    def test_mapping_missing_keys_default_to_zero(self) -> None:
        result = normalize({"data": [{"pituitary_tumor": 0.8, "Meningioma Tumor": 0.2}]})
        assert {p.outcome for p in result.predictions} == set(OutcomeClass)
        assert _confidences(result) == pytest.approx(
            {"Pituitary Tumor": 80.0, "Meningioma Tumor": 20.0, "No Tumor": 0.0, "Glioma Tumor": 0.0}
        )
        assert result.primary_prediction == "Pituitary Tumor"

    def test_ties_follow_declaration_order(self) -> None:
        result = normalize({"data": [[0.25, 0.25, 0.25, 0.25]]})
        assert [p.outcome for p in result.predictions] == list(OutcomeClass)

    def test_empty_mapping_keeps_all_classes(self) -> None:
        result = normalize({"data": [{}]})
        assert [p.outcome for p in result.predictions] == list(OutcomeClass)
        assert all(p.confidence == 0.0 for p in result.predictions)

    @pytest.mark.parametrize("raw", [{}, {"data": []}, {"data": ["label"]}, None, "text"])
    def test_unexpected_format(self, raw: object) -> None:
        with pytest.raises(UnexpectedFormatError):
            normalize(raw)

    def test_negative_score_is_unexpected(self) -> None:
        with pytest.raises(UnexpectedFormatError):
            normalize({"data": [[-0.1, 0.6, 0.3, 0.2]]})

    def test_overflow_when_scaled_is_unexpected(self) -> None:
        with pytest.raises(UnexpectedFormatError, match="overflow"):
            normalize({"data": [[1e308]]})


class TestFallback:
    def test_fixed_distribution(self) -> None:
        result = fallback()
        assert [p.as_dict() for p in result.predictions] == [
            {"class": "No Tumor", "confidence": 72.4},
            {"class": "Glioma Tumor", "confidence": 18.6},
            {"class": "Pituitary Tumor", "confidence": 6.8},
            {"class": "Meningioma Tumor", "confidence": 2.2},
        ]
        assert result.primary_prediction == "No Tumor"
        assert result.is_fallback is True

    def test_is_deterministic(self) -> None:
        assert fallback() == fallback()


class TestClassificationResult:
    def test_rejects_empty_predictions(self) -> None:
        with pytest.raises(ValueError, match="at least one"):
            ClassificationResult(predictions=(), primary_prediction="No Tumor")

    def test_rejects_mismatched_primary(self) -> None:
        with pytest.raises(ValueError, match="does not match"):
            ClassificationResult(
                predictions=(PredictionResult(outcome=OutcomeClass.GLIOMA, confidence=50.0),),
                primary_prediction="No Tumor",
            )

    def test_prediction_serializes_label(self) -> None:
        prediction = PredictionResult(outcome=OutcomeClass.PITUITARY, confidence=12.5)
        assert json.dumps(prediction.as_dict()) == '{"class": "Pituitary Tumor", "confidence": 12.5}'
