"""Pydantic response schemas for the TumorLens API."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from tumorlens.api.presentation import style_for

if TYPE_CHECKING:
    from tumorlens.pipeline.normalizer import ClassificationResult, PredictionResult
    from tumorlens.pipeline.session import Notification, SessionState


class PredictionView(BaseModel):
    """A single ranked prediction with its display style."""

    model_config = ConfigDict(populate_by_name=True)

    outcome: str = Field(alias="class")
    confidence: float = Field(ge=0.0, description="Confidence in percent (0-100)")
    color: str
    icon: str

    @classmethod
    def from_prediction(cls, prediction: PredictionResult) -> PredictionView:
        style = style_for(prediction.outcome)
        return cls(
            outcome=prediction.outcome.value,
            confidence=prediction.confidence,
            color=style.color,
            icon=style.icon,
        )


class ResultView(BaseModel):
    """Ranked classification result."""

    predictions: list[PredictionView]
    primary_prediction: str
    uploaded_image: str | None = None
    is_fallback: bool = Field(description="True when showing the demo distribution instead of model output")

    @classmethod
    def from_result(cls, result: ClassificationResult) -> ResultView:
        return cls(
            predictions=[PredictionView.from_prediction(p) for p in result.predictions],
            primary_prediction=result.primary_prediction,
            uploaded_image=result.uploaded_image,
            is_fallback=result.is_fallback,
        )


class NotificationView(BaseModel):
    kind: str
    title: str
    description: str
    level: str


class SessionView(BaseModel):
    """Current session state plus notifications raised since the last read."""

    status: str = Field(description="idle, previewing, loading, loaded or fallback_loaded")
    cycle: int
    image: str | None = None
    result: ResultView | None = None
    notifications: list[NotificationView] = Field(default_factory=list)

    @classmethod
    def build(cls, state: SessionState, notifications: list[Notification]) -> SessionView:
        return cls(
            status=state.status.value,
            cycle=state.cycle,
            image=state.image,
            result=ResultView.from_result(state.result) if state.result is not None else None,
            notifications=[
                NotificationView(kind=n.kind.value, title=n.title, description=n.description, level=n.level)
                for n in notifications
            ],
        )


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    endpoint: str
    session_status: str


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
    reason: str | None = None
