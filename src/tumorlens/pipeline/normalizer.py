"""Normalize raw classifier payloads into ranked results.

The endpoint returns ``{"data": [scores, ...]}`` where ``scores`` is either a
positional list of probabilities or a mapping keyed by class. Both shapes are
parsed into a tagged variant first, then scaled to percentages and ranked.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from tumorlens.pipeline.taxonomy import POSITIONAL_ORDER, OutcomeClass


class FormatError(ValueError):
    """A response was decoded but its shape is not understood."""


class UnexpectedFormatError(FormatError):
    pass


# ---------------------------------------------------------------------------
# Result model
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PredictionResult:
    """Confidence, in percent, assigned to one outcome class."""

    outcome: OutcomeClass
    confidence: float

    def as_dict(self) -> dict[str, Any]:
        return {"class": self.outcome.value, "confidence": self.confidence}


@dataclass(frozen=True)
class ClassificationResult:
    """Ranked predictions for one upload cycle."""

    predictions: tuple[PredictionResult, ...]
    primary_prediction: str
    uploaded_image: str | None = None
    is_fallback: bool = field(default=False)

    def __post_init__(self) -> None:
        if not self.predictions:
            raise ValueError("ClassificationResult requires at least one prediction")
        if self.primary_prediction != self.predictions[0].outcome.value:
            raise ValueError(
                f"primary_prediction {self.primary_prediction!r} does not match top prediction "
                f"{self.predictions[0].outcome.value!r}"
            )

    @property
    def top(self) -> PredictionResult:
        return self.predictions[0]


# ---------------------------------------------------------------------------
# Tagged payload variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ScoreVector:
    """Positional probabilities, index-aligned with ``POSITIONAL_ORDER``."""

    values: tuple[float, ...]


@dataclass(frozen=True)
class ScoreMapping:
    """Probabilities looked up per class; absent classes are omitted."""

    values: dict[OutcomeClass, float]


def _is_number(value: object) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _as_score(value: object, where: str) -> float:
    """Coerce one score to float; scores must be finite and non-negative."""
    if not _is_number(value):
        raise UnexpectedFormatError(f"Score {where} is not numeric: {value!r}")
    score = float(value)  # type: ignore[arg-type]
    if not math.isfinite(score) or score < 0:
        raise UnexpectedFormatError(f"Score {where} is out of range: {value!r}")
    return score


def _parse_vector(payload: list[Any] | tuple[Any, ...]) -> ScoreVector:
    if len(payload) > len(POSITIONAL_ORDER):
        raise UnexpectedFormatError(
            f"Score list has {len(payload)} entries; at most {len(POSITIONAL_ORDER)} are supported"
        )
    values: list[float] = []
    for index, item in enumerate(payload):
        values.append(0.0 if item is None else _as_score(item, f"at position {index}"))
    return ScoreVector(values=tuple(values))


def _parse_mapping(payload: Mapping[str, Any]) -> ScoreMapping:
    values: dict[OutcomeClass, float] = {}
    for outcome in OutcomeClass:
        raw = payload.get(outcome.key)
        if raw is None:
            raw = payload.get(outcome.value)
        if raw is None:
            continue
        values[outcome] = _as_score(raw, f"for {outcome.value!r}")
    return ScoreMapping(values=values)


def parse_scores(payload: object) -> ScoreVector | ScoreMapping:
    """Classify a score payload by shape.

    Raises:
        UnexpectedFormatError: If the payload is neither a short numeric list
            nor a mapping of numeric scores.
    """
    if isinstance(payload, list | tuple):
        return _parse_vector(payload)
    if isinstance(payload, Mapping):
        return _parse_mapping(payload)
    raise UnexpectedFormatError(f"Unexpected prediction format: {type(payload).__name__}")


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def _percentages(scores: ScoreVector | ScoreMapping) -> dict[OutcomeClass, float]:
    if isinstance(scores, ScoreVector):
        padded = scores.values + (0.0,) * (len(POSITIONAL_ORDER) - len(scores.values))
        return {outcome: value * 100 for outcome, value in zip(POSITIONAL_ORDER, padded, strict=True)}
    return {outcome: scores.values.get(outcome, 0.0) * 100 for outcome in OutcomeClass}


def rank(confidences: Mapping[OutcomeClass, float]) -> tuple[PredictionResult, ...]:
    """Order predictions by descending confidence, ties in taxonomy order."""
    ordered = sorted(confidences.items(), key=lambda item: (-item[1], item[0].rank))
    return tuple(PredictionResult(outcome=outcome, confidence=value) for outcome, value in ordered)


def _build(confidences: Mapping[OutcomeClass, float], *, is_fallback: bool) -> ClassificationResult:
    predictions = rank(confidences)
    return ClassificationResult(
        predictions=predictions,
        primary_prediction=predictions[0].outcome.value,
        is_fallback=is_fallback,
    )


def normalize(raw: object) -> ClassificationResult:
    """Turn a decoded ``{"data": [...]}`` response into a ranked result.

    Raises:
        UnexpectedFormatError: If the envelope or its first element has an
            unrecognized shape.
    """
    data = raw.get("data") if isinstance(raw, Mapping) else None
    if not isinstance(data, list) or not data:
        raise UnexpectedFormatError("Unexpected API response format")
    confidences = _percentages(parse_scores(data[0]))
    if not all(math.isfinite(value) for value in confidences.values()):
        raise UnexpectedFormatError("Scores overflow when scaled to percentages")
    return _build(confidences, is_fallback=False)


FALLBACK_CONFIDENCES: dict[OutcomeClass, float] = {
    OutcomeClass.NO_TUMOR: 72.4,
    OutcomeClass.GLIOMA: 18.6,
    OutcomeClass.PITUITARY: 6.8,
    OutcomeClass.MENINGIOMA: 2.2,
}


def fallback() -> ClassificationResult:
    """Fixed demo distribution shown when the endpoint cannot be used."""
    return _build(FALLBACK_CONFIDENCES, is_fallback=True)
